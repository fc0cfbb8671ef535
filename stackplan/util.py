"""
Hooks around an emitted plan: loading the external applier and writing
or reading binary plan snapshots for it.
"""
from __future__ import annotations

import importlib
import pickle
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import cloudpickle

from .errors import SnapshotError
from .ir import Plan

Applier = Callable[[Plan], Any]


def load_applier(spec: str) -> Applier:
    """
    Import the applier named 'pkg.module:function'.

    Raises ImportError, AttributeError or TypeError when the module, the
    attribute or a callable is missing, and ValueError for a malformed spec.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Applier must look like 'module:function', got '{spec}'")
    fn = getattr(importlib.import_module(module_name), attr)
    if not callable(fn):
        raise TypeError(f"Applier is not callable: {spec}")
    return fn


def dump_plan(plan: Plan, path: str | Path, meta: Optional[Dict[str, Any]] = None) -> Path:
    """
    Write a snapshot of the emitted plan: (plan, meta).
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    meta = {"name": plan.name, "resources": plan.resource_ids(), **(meta or {})}
    with path.open("wb") as f:
        cloudpickle.dump((plan, meta), f)
    return path


def load_plan(path: str | Path) -> Tuple[Plan, Dict[str, Any]]:
    path = Path(path)
    try:
        with path.open("rb") as f:
            out = cloudpickle.load(f)
    except FileNotFoundError:
        raise SnapshotError(f"Plan snapshot does not exist: {path}", [str(path)])
    except (OSError, EOFError, pickle.UnpicklingError, AttributeError, ImportError) as e:
        raise SnapshotError(f"Cannot read plan snapshot {path}: {e}", [str(path)]) from e

    if isinstance(out, tuple) and len(out) == 2 and isinstance(out[0], Plan):
        plan, meta = out
        return plan, dict(meta or {})

    raise SnapshotError(
        f"Unexpected plan snapshot content in {path}: {type(out).__name__} (expected (Plan, meta))",
        [str(path)],
    )
