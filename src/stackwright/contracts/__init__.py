from .resources import ResourceNode, DeposedObject, NodeStatus, DeletionPolicy, StateSnapshot
from .changes import (
    ChangeOperation,
    CreateOperation,
    UpdateOperation,
    ReplaceOperation,
    DeleteOperation,
    ReplaceStrategy,
    PlanStep,
    StepAction,
    ExecutionPlan,
)
from .results import ApplyResult, StepResult, StepOutcome

__all__ = [
    "ResourceNode",
    "DeposedObject",
    "NodeStatus",
    "DeletionPolicy",
    "StateSnapshot",
    "ChangeOperation",
    "CreateOperation",
    "UpdateOperation",
    "ReplaceOperation",
    "DeleteOperation",
    "ReplaceStrategy",
    "PlanStep",
    "StepAction",
    "ExecutionPlan",
    "ApplyResult",
    "StepResult",
    "StepOutcome",
]
