"""
This module defines the Intermediate Representation of a stack.
It contains:
- Resource nodes - what gets deployed
- References - how nodes point at each other's generated identifiers
- Outputs - named values read off materialized nodes
- Plan - the ordered, serializable result handed to an applier
"""
from __future__ import annotations
import copy
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Tuple


class ResourceKind(str, Enum):
    NETWORK = "Network"
    SECURITY_GROUP = "SecurityGroup"
    LOAD_BALANCER = "LoadBalancer"
    LISTENER = "Listener"
    TARGET_GROUP = "TargetGroup"
    REPOSITORY = "Repository"
    CLUSTER = "Cluster"
    ROLE = "Role"
    LOG_GROUP = "LogGroup"
    TASK_DEFINITION = "TaskDefinition"
    SERVICE = "Service"


class GraphState(str, Enum):
    BUILDING = "Building"
    RESOLVED = "Resolved"
    ORDERED = "Ordered"
    EMITTED = "Emitted"


@dataclass(frozen=True)
class Ref:
    """Symbolic pointer at another node; attribute=None means its primary identifier."""
    target: str
    attribute: Optional[str] = None


def iter_refs(value: Any) -> Iterator[Ref]:
    if isinstance(value, Ref):
        yield value
    elif isinstance(value, Mapping):
        for v in value.values():
            yield from iter_refs(v)
    elif isinstance(value, (list, tuple)):
        for v in value:
            yield from iter_refs(v)


def freeze(value: Any) -> Any:
    """Read-only deep copy: mappings become proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


@dataclass(frozen=True)
class ResourceNode:
    id: str
    kind: ResourceKind = field(compare=False)
    attributes: Mapping[str, Any] = field(default_factory=dict, compare=False)
    depends_on: FrozenSet[str] = field(default_factory=frozenset, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "kind", ResourceKind(self.kind))
        object.__setattr__(self, "attributes", freeze(self.attributes))
        object.__setattr__(self, "depends_on", frozenset(self.depends_on))

    def references(self) -> Iterator[Ref]:
        return iter_refs(self.attributes)


@dataclass(frozen=True)
class Reference:
    source: str
    target: str
    purpose: str = ""


@dataclass(frozen=True)
class OutputEntry:
    name: str
    source_node_id: str
    value_expression: str = "Ref"
    description: str = ""


@dataclass(frozen=True)
class EmittedResource:
    id: str
    kind: ResourceKind
    type: str
    properties: Dict[str, Any] = field(compare=False)
    depends_on: Tuple[str, ...] = ()
    deletion_policy: Optional[str] = None

    def to_template(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"Type": self.type, "Properties": copy.deepcopy(self.properties)}
        if self.depends_on:
            body["DependsOn"] = list(self.depends_on)
        if self.deletion_policy:
            body["UpdateReplacePolicy"] = self.deletion_policy
            body["DeletionPolicy"] = self.deletion_policy
        return body


@dataclass(frozen=True)
class ResolvedOutput:
    name: str
    source_node_id: str
    value: Any = field(compare=False)
    description: str = ""


@dataclass(frozen=True)
class Plan:
    name: str
    resources: Tuple[EmittedResource, ...]
    outputs: Tuple[ResolvedOutput, ...]
    description: str = ""

    def resource_ids(self) -> List[str]:
        return [r.id for r in self.resources]

    def to_template(self) -> Dict[str, Any]:
        template: Dict[str, Any] = {}
        if self.description:
            template["Description"] = self.description
        template["Resources"] = {r.id: r.to_template() for r in self.resources}
        template["Outputs"] = {
            o.name: {"Value": o.value, "Description": o.description} for o in self.outputs
        }
        return template

    def to_json(self) -> str:
        # insertion order is the topological order; never sort keys
        return json.dumps(self.to_template(), indent=2) + "\n"

    def output_table(self) -> List[Tuple[str, str, str, str]]:
        return [
            (o.name, o.source_node_id, json.dumps(o.value), o.description)
            for o in self.outputs
        ]
