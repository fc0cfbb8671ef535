"""
Maps a resource kind to the function that renders it into a template resource.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, Tuple, Union

from .errors import UnknownResourceKindError
from .ir import ResourceKind, ResourceNode

# (resource type, properties)
Serializer = Callable[[ResourceNode], Tuple[str, Dict[str, Any]]]

_REGISTRY: Dict[ResourceKind, Serializer] = {}


def register(kind: Union[ResourceKind, str]):
    def deco(fn: Serializer):
        _REGISTRY[ResourceKind(kind)] = fn
        return fn
    return deco


def get_serializer(node: ResourceNode) -> Serializer:
    if node.kind not in _REGISTRY:
        raise UnknownResourceKindError(node.kind.value, node.id)
    return _REGISTRY[node.kind]
