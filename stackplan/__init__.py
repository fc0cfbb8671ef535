from .config import StackConfig, load_stack_config, load_stack_config_file
from .errors import (
    ConfigError,
    CyclicDependencyError,
    DanglingReferenceError,
    DuplicateIdError,
    ForwardOutputReferenceError,
    GraphFrozenError,
    StackPlanError,
    UnknownResourceKindError,
    UnresolvedOutputError,
)
from .graph import DependencyGraph
from .ir import GraphState, OutputEntry, Plan, Ref, Reference, ResourceKind, ResourceNode
from .stacks import build_plan, to_graph

__version__ = "0.1.0"
