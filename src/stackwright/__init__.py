"""Stackwright - Declarative infrastructure provisioning engine."""

__version__ = "0.1.0"

from .contracts import ApplyResult, ExecutionPlan, ResourceNode, StateSnapshot
from .engine import (
    Stack,
    apply_stack,
    build_stack,
    destroy_stack,
    load_stack,
    plan_destroy,
    plan_stack,
    resolve_stack_outputs,
)
from .utils.errors import StackwrightError

__all__ = [
    "__version__",
    "Stack",
    "load_stack",
    "build_stack",
    "plan_stack",
    "plan_destroy",
    "apply_stack",
    "destroy_stack",
    "resolve_stack_outputs",
    "ApplyResult",
    "ExecutionPlan",
    "ResourceNode",
    "StateSnapshot",
    "StackwrightError",
]
