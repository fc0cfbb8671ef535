"""Shared pytest fixtures for stackplan tests."""

from pathlib import Path

import pytest

from stackplan.config import StackConfig, load_stack_config
from stackplan.graph import DependencyGraph
from stackplan.ir import ResourceKind


@pytest.fixture
def default_config() -> StackConfig:
    """Return the default (service profile) configuration."""
    return load_stack_config({})


@pytest.fixture
def make_graph():
    """Build a graph from {id: [deps]} using log groups as filler nodes."""

    def _make(deps: dict, name: str = "test") -> DependencyGraph:
        g = DependencyGraph(name)
        for node_id, node_deps in deps.items():
            g.add(node_id, ResourceKind.LOG_GROUP, depends_on=node_deps)
        return g

    return _make


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a small YAML stack configuration."""
    path = tmp_path / "stack.yaml"
    path.write_text(
        """
stack:
  name: DemoStack
  identifier: dev
  account: "123456789012"
  region: ap-northeast-1
  profile: cluster
  service:
    desired_count: 3
"""
    )
    return path
