"""
Error types raised while building, ordering and emitting a stack plan.

Every error is a deterministic function of the declared graph, so none of
them is retryable: rerunning with the same input reproduces the same error.
"""
from __future__ import annotations
from typing import Iterable, Optional, Tuple


class StackPlanError(Exception):
    """Base exception for all stackplan errors."""

    def __init__(self, message: str, ids: Iterable[str] = ()):
        self.message = message
        self.ids: Tuple[str, ...] = tuple(ids)
        super().__init__(message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class DuplicateIdError(StackPlanError):
    def __init__(self, item_id: str, what: str = "Resource"):
        super().__init__(f"{what} id '{item_id}' is already declared", [item_id])


class DanglingReferenceError(StackPlanError):
    def __init__(self, source: str, target: str, missing: Optional[str] = None):
        self.source = source
        self.target = target
        self.missing = missing or target
        super().__init__(
            f"Edge '{source}' -> '{target}' names unknown resource '{self.missing}'",
            [source, target],
        )


class CyclicDependencyError(StackPlanError):
    def __init__(self, cycle: Iterable[str]):
        cycle = tuple(cycle)
        super().__init__(f"Dependency cycle between: {', '.join(cycle)}", cycle)


class GraphFrozenError(StackPlanError):
    def __init__(self, graph_name: str, state: str, item_id: str):
        super().__init__(
            f"Cannot add '{item_id}' to graph '{graph_name}' once it is {state}", [item_id]
        )


class UnresolvedOutputError(StackPlanError):
    def __init__(self, output_name: str, node_id: str):
        super().__init__(
            f"Output '{output_name}' points at unknown resource '{node_id}'",
            [output_name, node_id],
        )


class ForwardOutputReferenceError(StackPlanError):
    def __init__(self, output_name: str, node_id: str):
        super().__init__(
            f"Output '{output_name}' was resolved before resource '{node_id}' was materialized",
            [output_name, node_id],
        )


class UnknownResourceKindError(StackPlanError):
    def __init__(self, kind: str, node_id: str):
        super().__init__(f"No serializer registered for kind '{kind}'", [node_id])


class ConfigError(StackPlanError):
    """Raised when the stack configuration is malformed or inconsistent."""


class SnapshotError(StackPlanError):
    """Raised when a plan snapshot cannot be read back."""
