"""Tests for stack configuration loading."""

import pytest

from stackplan.config import (
    PROFILES,
    StackConfig,
    load_stack_config,
    load_stack_config_file,
    profile_flags,
)
from stackplan.errors import ConfigError


class TestStackConfig:
    """Tests for StackConfig defaults and naming."""

    def test_default_values(self, default_config):
        assert default_config.name == "AwsWorkshopStack"
        assert default_config.identifier is None
        assert default_config.profile == "service"
        assert default_config.network.cidr == "10.0.0.0/16"
        assert default_config.service.desired_count == 2

    def test_default_identifier(self):
        """Without an identifier, resources use 'default' and the stack name is bare."""
        cfg = StackConfig()
        assert cfg.resource_suffix == "default"
        assert cfg.stack_name == "AwsWorkshopStack"

    def test_identifier_suffixes_stack_name(self):
        cfg = StackConfig(identifier="dev")
        assert cfg.resource_suffix == "dev"
        assert cfg.stack_name == "AwsWorkshopStack-dev"


class TestProfiles:
    """Tests for node-group profiles."""

    def test_profiles_are_supersets(self):
        order = ["network", "registry", "cluster", "service", "full"]
        enabled = [
            {k for k, v in PROFILES[p].model_dump().items() if v} for p in order
        ]
        for smaller, larger in zip(enabled, enabled[1:]):
            assert smaller <= larger

    def test_profile_flags_are_copies(self):
        flags = profile_flags("service")
        flags.cluster = False
        assert PROFILES["service"].cluster is True

    def test_unknown_profile(self):
        with pytest.raises(ConfigError) as exc:
            load_stack_config({"stack": {"profile": "huge"}})
        assert exc.value.ids == ("huge",)

    def test_flags_override_profile(self):
        cfg = load_stack_config({"stack": {"profile": "cluster", "flags": {"repository_encryption": False}}})
        assert cfg.flags.cluster is True
        assert cfg.flags.repository_encryption is False


class TestLoadStackConfig:
    """Tests for load_stack_config / load_stack_config_file."""

    def test_load_from_file(self, config_file):
        cfg = load_stack_config_file(config_file)
        assert cfg.stack_name == "DemoStack-dev"
        assert cfg.account == "123456789012"
        assert cfg.region == "ap-northeast-1"
        assert cfg.flags.service is False
        assert cfg.service.desired_count == 3
        assert cfg.service.cpu == 512

    def test_overrides_win(self, config_file):
        cfg = load_stack_config_file(config_file, identifier="prod", profile="full")
        assert cfg.stack_name == "DemoStack-prod"
        assert cfg.flags.app_task_definition is True

    def test_none_overrides_are_ignored(self, config_file):
        cfg = load_stack_config_file(config_file, identifier=None)
        assert cfg.identifier == "dev"

    def test_numeric_identifier_is_text(self):
        cfg = load_stack_config({"stack": {"identifier": 42}})
        assert cfg.stack_name == "AwsWorkshopStack-42"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_stack_config_file(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("stack: [unclosed\n")
        with pytest.raises(ConfigError):
            load_stack_config_file(path)

    def test_unknown_section_keys(self):
        with pytest.raises(ConfigError) as exc:
            load_stack_config({"stack": {"service": {"replicas": 3}}})
        assert exc.value.ids == ("service.replicas",)

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigError):
            load_stack_config({"stack": {"network": "10.0.0.0/16"}})

    @pytest.mark.parametrize("section,key", [("network", "max_azs"), ("service", "cpu")])
    def test_non_positive_values(self, section, key):
        with pytest.raises(ConfigError):
            load_stack_config({"stack": {section: {key: 0}}})

    def test_service_requires_cluster(self):
        with pytest.raises(ConfigError) as exc:
            load_stack_config({"stack": {"flags": {"cluster": False}}})
        assert exc.value.ids == ("cluster",)

    def test_task_definitions_require_repository(self):
        with pytest.raises(ConfigError):
            load_stack_config({"stack": {"profile": "full", "flags": {"repository": False}}})

    def test_stack_must_be_mapping(self):
        with pytest.raises(ConfigError) as exc:
            load_stack_config({"stack": [1, 2]})
        assert exc.value.ids == ("stack",)

    def test_flags_must_be_mapping(self):
        with pytest.raises(ConfigError) as exc:
            load_stack_config({"stack": {"flags": ["service"]}})
        assert exc.value.ids == ("flags",)

    def test_profile_must_be_text(self):
        with pytest.raises(ConfigError):
            load_stack_config({"stack": {"profile": ["service"]}})

    def test_numeric_strings_are_coerced(self):
        cfg = load_stack_config({"stack": {"service": {"desired_count": "3"}}})
        assert cfg.service.desired_count == 3

    @pytest.mark.parametrize(
        "section,key,value",
        [
            ("service", "desired_count", "three"),
            ("service", "desired_count", -1),
            ("service", "health_check_grace_period", -5),
            ("service", "container_port", 70000),
            ("service", "image", ""),
            ("service", "memory", [1024]),
            ("network", "cidr_mask", 8),
        ],
    )
    def test_invalid_values_name_their_path(self, section, key, value):
        """Wrongly typed or out-of-range values are ConfigErrors naming section.key."""
        with pytest.raises(ConfigError) as exc:
            load_stack_config({"stack": {section: {key: value}}})
        assert exc.value.ids == (f"{section}.{key}",)

    def test_string_flags_follow_yaml_truthiness(self):
        cfg = load_stack_config(
            {"stack": {"profile": "network", "flags": {"repository": "yes", "repository_encryption": "no"}}}
        )
        assert cfg.flags.repository is True
        assert cfg.flags.repository_encryption is False

    def test_string_flag_no_disables_group(self):
        cfg = load_stack_config({"stack": {"flags": {"service": "no"}}})
        assert cfg.flags.service is False

    def test_unparseable_flag(self):
        with pytest.raises(ConfigError) as exc:
            load_stack_config({"stack": {"flags": {"cluster": "maybe"}}})
        assert exc.value.ids == ("flags.cluster",)

    def test_unknown_flag(self):
        with pytest.raises(ConfigError) as exc:
            load_stack_config({"stack": {"flags": {"database": True}}})
        assert exc.value.ids == ("flags.database",)

    def test_empty_name(self):
        with pytest.raises(ConfigError) as exc:
            load_stack_config({"stack": {"name": ""}})
        assert exc.value.ids == ("name",)


class TestIdentifier:
    """Tests for environment identifier validation."""

    @pytest.mark.parametrize("identifier", ["dev", "qa-2", "team.a", "42"])
    def test_accepted(self, identifier):
        cfg = load_stack_config({"stack": {"identifier": identifier}})
        assert cfg.stack_name == f"AwsWorkshopStack-{identifier}"

    @pytest.mark.parametrize("identifier", ["Dev", "my env", "-dev", "dev_", "dev/1", ""])
    def test_rejected(self, identifier):
        """Identifiers end up in repository names, so they must be lowercase and separator-safe."""
        with pytest.raises(ConfigError) as exc:
            load_stack_config({"stack": {"identifier": identifier}})
        assert exc.value.ids == ("identifier",)

    def test_override_is_checked(self):
        with pytest.raises(ConfigError):
            load_stack_config({}, identifier="Prod")
