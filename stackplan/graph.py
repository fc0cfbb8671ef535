"""
Owns the resource nodes of one deployable unit and turns them into a
dependency-ordered sequence.

- resolves symbolic references (explicit edges, embedded Refs, depends_on)
  into one dependency set per node
- orders nodes topologically, breaking ties by declaration order
- freezes once ordered so the reviewed order cannot drift

A graph instance is not safe for concurrent mutation: confine it to one
builder at a time. Separate graphs share no state and can be built in parallel.
"""
from __future__ import annotations
import dataclasses
import heapq
import logging
from typing import Dict, Iterable, List, Optional, Set

from .errors import (
    CyclicDependencyError,
    DanglingReferenceError,
    DuplicateIdError,
    GraphFrozenError,
)
from .ir import GraphState, OutputEntry, Reference, ResourceKind, ResourceNode

logger = logging.getLogger(__name__)


class DependencyGraph:
    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._nodes: Dict[str, ResourceNode] = {}
        self._references: List[Reference] = []
        self._outputs: Dict[str, OutputEntry] = {}
        self._resolved: Optional[Dict[str, ResourceNode]] = None
        self._order: Optional[List[str]] = None
        self._state = GraphState.BUILDING

    @property
    def state(self) -> GraphState:
        return self._state

    @property
    def nodes(self) -> List[ResourceNode]:
        return list(self._nodes.values())

    @property
    def references(self) -> List[Reference]:
        return list(self._references)

    @property
    def outputs(self) -> List[OutputEntry]:
        return list(self._outputs.values())

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, node_id: str) -> ResourceNode:
        if self._resolved is not None:
            return self._resolved[node_id]
        return self._nodes[node_id]

    # -- building ---------------------------------------------------------

    def _check_mutable(self, item_id: str) -> None:
        if self._state in (GraphState.ORDERED, GraphState.EMITTED):
            raise GraphFrozenError(self.name, self._state.value, item_id)
        if self._state is GraphState.RESOLVED:
            # nothing has observed an order yet; the resolution is simply recomputed
            self._resolved = None
            self._state = GraphState.BUILDING

    def add_node(self, node: ResourceNode) -> ResourceNode:
        self._check_mutable(node.id)
        if node.id in self._nodes:
            raise DuplicateIdError(node.id)
        self._nodes[node.id] = node
        return node

    def add(
        self,
        node_id: str,
        kind: ResourceKind,
        depends_on: Iterable[str] = (),
        **attributes,
    ) -> ResourceNode:
        return self.add_node(
            ResourceNode(id=node_id, kind=kind, attributes=attributes, depends_on=frozenset(depends_on))
        )

    def add_reference(self, source: str, target: str, purpose: str = "") -> Reference:
        self._check_mutable(f"{source}->{target}")
        ref = Reference(source=source, target=target, purpose=purpose)
        self._references.append(ref)
        return ref

    def add_output(
        self,
        name: str,
        source_node_id: str,
        value_expression: str = "Ref",
        description: str = "",
    ) -> OutputEntry:
        # outputs may still be attached once ordered; only emission closes them
        if self._state is GraphState.EMITTED:
            raise GraphFrozenError(self.name, self._state.value, name)
        if name in self._outputs:
            raise DuplicateIdError(name, what="Output")
        entry = OutputEntry(
            name=name,
            source_node_id=source_node_id,
            value_expression=value_expression,
            description=description,
        )
        self._outputs[name] = entry
        return entry

    # -- resolution -------------------------------------------------------

    def resolve(self) -> Dict[str, ResourceNode]:
        """
        Fold explicit references, embedded Refs and declared depends_on into
        each node's dependency set. The declared nodes are left untouched.
        """
        if self._resolved is not None:
            return dict(self._resolved)

        edges: Dict[str, Set[str]] = {nid: set() for nid in self._nodes}

        def link(source: str, target: str) -> None:
            if source not in self._nodes:
                raise DanglingReferenceError(source, target, missing=source)
            if target not in self._nodes:
                raise DanglingReferenceError(source, target)
            edges[source].add(target)

        for node in self._nodes.values():
            for dep in sorted(node.depends_on):
                link(node.id, dep)
            for ref in node.references():
                link(node.id, ref.target)
        for ref in self._references:
            link(ref.source, ref.target)

        self._resolved = {
            nid: dataclasses.replace(node, depends_on=frozenset(edges[nid]))
            for nid, node in self._nodes.items()
        }
        self._state = GraphState.RESOLVED
        logger.debug(
            "resolved %d nodes, %d edges in %s",
            len(self._resolved),
            sum(len(e) for e in edges.values()),
            self.name,
        )
        return dict(self._resolved)

    # -- ordering ---------------------------------------------------------

    def order(self) -> List[ResourceNode]:
        if self._order is not None:
            return [self._resolved[nid] for nid in self._order]

        resolved = self.resolve()
        position = {nid: i for i, nid in enumerate(resolved)}
        pending = {nid: len(node.depends_on) for nid, node in resolved.items()}
        dependents: Dict[str, List[str]] = {nid: [] for nid in resolved}
        for nid, node in resolved.items():
            for dep in node.depends_on:
                dependents[dep].append(nid)

        ready = [(position[nid], nid) for nid, n in pending.items() if n == 0]
        heapq.heapify(ready)
        order: List[str] = []
        while ready:
            _, nid = heapq.heappop(ready)
            order.append(nid)
            for child in dependents[nid]:
                pending[child] -= 1
                if pending[child] == 0:
                    heapq.heappush(ready, (position[child], child))

        if len(order) < len(resolved):
            stuck = [nid for nid in resolved if pending[nid] > 0]
            raise CyclicDependencyError(_cycle_members(resolved, stuck))

        self._order = order
        self._state = GraphState.ORDERED
        logger.info("ordered %d resources for %s", len(order), self.name)
        return [resolved[nid] for nid in order]

    def mark_emitted(self) -> None:
        if self._state not in (GraphState.ORDERED, GraphState.EMITTED):
            raise RuntimeError(f"Graph '{self.name}' must be ordered before emission")
        self._state = GraphState.EMITTED


def _cycle_members(resolved: Dict[str, ResourceNode], stuck: List[str]) -> List[str]:
    """Nodes among `stuck` that can reach themselves, in declaration order."""
    candidates = set(stuck)
    members = []
    for start in stuck:
        seen: Set[str] = set()
        frontier = [d for d in resolved[start].depends_on if d in candidates]
        while frontier:
            nid = frontier.pop()
            if nid == start:
                members.append(start)
                break
            if nid in seen:
                continue
            seen.add(nid)
            frontier.extend(d for d in resolved[nid].depends_on if d in candidates)
    return members
