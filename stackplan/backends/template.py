"""
Emits a deployment plan from an ordered dependency graph.
- walks nodes in topological order
- renders each node through the serializer registered for its kind
- resolves outputs once their source node has been materialized
- returns the Plan only when everything rendered (no partial plans)
"""
from __future__ import annotations
import logging
import re
from typing import Any, Dict, List

from .. import resources  # noqa: F401  (registers serializers)
from ..errors import ForwardOutputReferenceError, UnresolvedOutputError
from ..graph import DependencyGraph
from ..ir import EmittedResource, OutputEntry, Plan, ResolvedOutput
from ..registry import get_serializer

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

DELETION_POLICIES = {"DESTROY": "Delete", "RETAIN": "Retain", "SNAPSHOT": "Snapshot"}


def render_output_value(node_id: str, expression: str) -> Any:
    """
    "Ref"             -> the node's primary identifier
    "Arn"             -> a generated attribute
    "http://{DNSName}" -> a substitution template ({Ref} is the identifier)
    """
    if expression == "Ref":
        return {"Ref": node_id}
    if "{" in expression:
        def sub(m):
            attr = m.group(1)
            return f"${{{node_id}}}" if attr == "Ref" else f"${{{node_id}.{attr}}}"
        return {"Fn::Sub": _PLACEHOLDER.sub(sub, expression)}
    return {"Fn::GetAtt": [node_id, expression]}


class TemplateBackend:
    def resolve_output(
        self, graph: DependencyGraph, entry: OutputEntry, materialized: Dict[str, int]
    ) -> ResolvedOutput:
        if entry.source_node_id not in graph:
            raise UnresolvedOutputError(entry.name, entry.source_node_id)
        if entry.source_node_id not in materialized:
            raise ForwardOutputReferenceError(entry.name, entry.source_node_id)
        return ResolvedOutput(
            name=entry.name,
            source_node_id=entry.source_node_id,
            value=render_output_value(entry.source_node_id, entry.value_expression),
            description=entry.description,
        )

    def emit(self, graph: DependencyGraph) -> Plan:
        ordered = graph.order()

        # unknown sources fail before anything is rendered
        for entry in graph.outputs:
            if entry.source_node_id not in graph:
                raise UnresolvedOutputError(entry.name, entry.source_node_id)

        pending: Dict[str, List[OutputEntry]] = {}
        for entry in graph.outputs:
            pending.setdefault(entry.source_node_id, []).append(entry)

        materialized: Dict[str, int] = {}
        emitted: List[EmittedResource] = []
        resolved: Dict[str, ResolvedOutput] = {}
        for position, node in enumerate(ordered):
            logger.debug(
                "STEP %s kind=%s depends_on=%s",
                node.id, node.kind.value, sorted(node.depends_on),
            )
            type_, properties = get_serializer(node)(node)
            policy = node.attributes.get("removal_policy")
            emitted.append(EmittedResource(
                id=node.id,
                kind=node.kind,
                type=type_,
                properties=properties,
                depends_on=tuple(sorted(node.depends_on)),
                deletion_policy=DELETION_POLICIES.get(policy) if policy else None,
            ))
            materialized[node.id] = position
            for entry in pending.pop(node.id, []):
                resolved[entry.name] = self.resolve_output(graph, entry, materialized)

        # keep declaration order of outputs
        outputs = tuple(resolved[e.name] for e in graph.outputs)
        plan = Plan(
            name=graph.name,
            resources=tuple(emitted),
            outputs=outputs,
            description=graph.description,
        )
        graph.mark_emitted()
        logger.info(
            "emitted plan %s: %d resources, %d outputs",
            plan.name, len(plan.resources), len(plan.outputs),
        )
        return plan
