from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Iterable, Tuple

from ..ir import Ref


def render(value: Any) -> Any:
    """
    Turn embedded Refs into symbolic template expressions.

   inputs:
    any attribute value (scalars, dicts, lists, Refs)

   outputs:
     the same structure with Ref -> {"Ref": id} or {"Fn::GetAtt": [id, attr]}
    """
    if isinstance(value, Ref):
        if value.attribute is None:
            return {"Ref": value.target}
        return {"Fn::GetAtt": [value.target, value.attribute]}
    if isinstance(value, Mapping):
        return {k: render(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [render(v) for v in value]
    return value


def props(pairs: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    # keeps declaration order, drops unset values
    return {k: render(v) for k, v in pairs if v is not None}


def managed_policy_arn(name: str) -> Dict[str, str]:
    return {"Fn::Sub": f"arn:${{AWS::Partition}}:iam::aws:policy/{name}"}
