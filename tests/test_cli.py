"""Tests for CLI commands."""

import json
import sys
import types

import pytest
from rich.console import Console
from typer.testing import CliRunner

from stackplan import cli
from stackplan.cli import app
from stackplan.util import load_plan


@pytest.fixture
def cli_runner():
    """Return a CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep rich tables from folding ids on the narrow test terminal."""
    monkeypatch.setattr(cli, "console", Console(width=200))
    monkeypatch.setattr(cli, "err_console", Console(stderr=True, width=200))


@pytest.fixture
def fake_applier(monkeypatch):
    """Install an importable applier module that records what it receives."""
    received = []
    module = types.ModuleType("fake_applier")

    def apply(plan):
        received.append(plan)

    def refuse(plan):
        return 3

    module.apply = apply
    module.refuse = refuse
    module.not_callable = "nope"
    monkeypatch.setitem(sys.modules, "fake_applier", module)
    return received


def test_synth_to_stdout(cli_runner):
    result = cli_runner.invoke(app, ["synth", "--profile", "network"])
    assert result.exit_code == 0, result.output
    template = json.loads(result.output)
    assert list(template["Resources"])[0] == "WorkshopVpc"
    assert "AlbUrl" in template["Outputs"]


def test_synth_to_file(cli_runner, tmp_path):
    out = tmp_path / "out" / "plan.json"
    result = cli_runner.invoke(app, ["synth", "-i", "dev", "-o", str(out)])
    assert result.exit_code == 0, result.output
    template = json.loads(out.read_text())
    assert template["Resources"]["WorkshopRepository"]["Properties"]["RepositoryName"] == "aws-workshop-app-dev"
    assert "EcrRepositoryUri" in result.output


def test_synth_pickle_snapshot(cli_runner, tmp_path, config_file):
    out = tmp_path / "plan.pkl"
    result = cli_runner.invoke(app, ["synth", "-c", str(config_file), "-o", str(out), "-f", "pickle"])
    assert result.exit_code == 0, result.output
    template, meta = load_plan(out)
    assert meta["name"] == "DemoStack-dev"
    assert meta["region"] == "ap-northeast-1"
    assert meta["resources"] == list(template["Resources"])


def test_synth_pickle_needs_output(cli_runner):
    result = cli_runner.invoke(app, ["synth", "-f", "pickle"])
    assert result.exit_code != 0


def test_config_error_exits_non_zero(cli_runner, tmp_path):
    out = tmp_path / "plan.json"
    result = cli_runner.invoke(app, ["synth", "--profile", "huge", "-o", str(out)])
    assert result.exit_code == 1
    assert "ConfigError" in result.output
    assert not out.exists()


def test_outputs_table(cli_runner):
    result = cli_runner.invoke(app, ["outputs", "--profile", "cluster"])
    assert result.exit_code == 0, result.output
    assert "EcsClusterArn" in result.output
    assert "EcsServiceName" not in result.output


def test_graph_lists_order(cli_runner):
    result = cli_runner.invoke(app, ["graph", "--profile", "network"])
    assert result.exit_code == 0, result.output
    lines = [l for l in result.output.splitlines() if l.strip()[:1].isdigit()]
    assert "WorkshopVpc" in lines[0]
    assert "WorkshopListener" in lines[-1]


def test_apply_hands_plan_to_applier(cli_runner, fake_applier):
    result = cli_runner.invoke(app, ["apply", "--applier", "fake_applier:apply", "-i", "qa"])
    assert result.exit_code == 0, result.output
    assert fake_applier[0].name == "AwsWorkshopStack-qa"


def test_apply_propagates_applier_exit_code(cli_runner, fake_applier):
    result = cli_runner.invoke(app, ["apply", "--applier", "fake_applier:refuse"])
    assert result.exit_code == 3


def test_apply_rejects_non_callable(cli_runner, fake_applier):
    result = cli_runner.invoke(app, ["apply", "--applier", "fake_applier:not_callable"])
    assert result.exit_code == 2
    assert fake_applier == []


def test_apply_rejects_malformed_applier(cli_runner, fake_applier):
    """The applier must be named as module:function."""
    result = cli_runner.invoke(app, ["apply", "--applier", "fake_applier.apply"])
    assert result.exit_code == 2
    assert fake_applier == []


def test_apply_from_snapshot(cli_runner, fake_applier, tmp_path, config_file):
    """A synthesized snapshot is applied as written, without rebuilding."""
    out = tmp_path / "plan.pkl"
    synth = cli_runner.invoke(app, ["synth", "-c", str(config_file), "-o", str(out), "-f", "pickle"])
    assert synth.exit_code == 0, synth.output
    result = cli_runner.invoke(app, ["apply", "-a", "fake_applier:apply", "--snapshot", str(out)])
    assert result.exit_code == 0, result.output
    assert fake_applier[0].name == "DemoStack-dev"
    assert "WorkshopCluster" in fake_applier[0].resource_ids()


def test_apply_snapshot_excludes_config_options(cli_runner, fake_applier, tmp_path):
    result = cli_runner.invoke(
        app, ["apply", "-a", "fake_applier:apply", "--snapshot", str(tmp_path / "p.pkl"), "-i", "dev"]
    )
    assert result.exit_code == 2
    assert fake_applier == []


@pytest.mark.parametrize("content", [None, b"not a pickle", b""])
def test_apply_unreadable_snapshot(cli_runner, fake_applier, tmp_path, content):
    """Missing, corrupt or empty snapshots are reported as SnapshotError."""
    path = tmp_path / "plan.pkl"
    if content is not None:
        path.write_bytes(content)
    result = cli_runner.invoke(app, ["apply", "-a", "fake_applier:apply", "--snapshot", str(path)])
    assert result.exit_code == 1
    assert "SnapshotError" in result.output
    assert fake_applier == []


def test_malformed_config_file_is_reported(cli_runner, tmp_path):
    """Wrongly typed config values exit 1 with a ConfigError, not a traceback."""
    path = tmp_path / "stack.yaml"
    path.write_text("stack:\n  service:\n    desired_count: three\n")
    result = cli_runner.invoke(app, ["synth", "-c", str(path)])
    assert result.exit_code == 1
    assert "ConfigError" in result.output
    assert "service.desired_count" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)
