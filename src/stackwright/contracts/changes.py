"""Change operations and execution plan models."""

from enum import Enum
from typing import Annotated, Literal, List, Optional, Dict, Union
from pydantic import BaseModel, Field


class ReplaceStrategy(str, Enum):
    """Ordering of the old delete relative to the new create during a replace."""
    DESTROY_BEFORE_CREATE = "destroy_before_create"
    CREATE_BEFORE_DESTROY = "create_before_destroy"


class CreateOperation(BaseModel):
    """Create a resource absent from state."""
    op: Literal["create"] = "create"
    logical_id: str
    kind: str

    @property
    def ordering_key(self) -> str:
        return self.logical_id


class UpdateOperation(BaseModel):
    """Update a resource in place. Empty changed_properties means a state-only update."""
    op: Literal["update"] = "update"
    logical_id: str
    kind: str
    changed_properties: List[str] = Field(default_factory=list)
    reason: Optional[str] = None

    @property
    def ordering_key(self) -> str:
        return self.logical_id

    @property
    def state_only(self) -> bool:
        return not self.changed_properties


class ReplaceOperation(BaseModel):
    """Delete and recreate a resource whose change cannot be applied in place."""
    op: Literal["replace"] = "replace"
    logical_id: str
    kind: str
    reason: str
    strategy: ReplaceStrategy
    changed_properties: List[str] = Field(default_factory=list)

    @property
    def ordering_key(self) -> str:
        return self.logical_id


class DeleteOperation(BaseModel):
    """Delete a resource removed from the desired state, or a deposed object."""
    op: Literal["delete"] = "delete"
    logical_id: str
    kind: str
    deposed_physical_id: Optional[str] = Field(default=None, description="Set when deleting a deposed object")

    @property
    def ordering_key(self) -> str:
        if self.deposed_physical_id:
            return f"{self.logical_id}:{self.deposed_physical_id}"
        return self.logical_id


ChangeOperation = Annotated[
    Union[CreateOperation, UpdateOperation, ReplaceOperation, DeleteOperation],
    Field(discriminator="op"),
]


class StepAction(str, Enum):
    """Provider-level action performed by a plan step."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    DELETE_DEPOSED = "delete-deposed"


class PlanStep(BaseModel):
    """A single provider call in the ordered execution sequence."""
    action: StepAction
    logical_id: str
    kind: str
    physical_id: Optional[str] = Field(default=None, description="Target physical id for deletes")
    operation: ChangeOperation
    depends_on: List[str] = Field(default_factory=list, description="Keys of steps that must complete first")

    @property
    def key(self) -> str:
        if self.action == StepAction.DELETE_DEPOSED:
            return f"{self.action.value}:{self.logical_id}:{self.physical_id}"
        return f"{self.action.value}:{self.logical_id}"

    def describe(self) -> str:
        return f"{self.action.value} {self.logical_id} ({self.kind})"


class ExecutionPlan(BaseModel):
    """Ordered steps derived from a changeset."""
    changes: List[ChangeOperation] = Field(default_factory=list)
    steps: List[PlanStep] = Field(default_factory=list)
    destroy: bool = False

    def is_empty(self) -> bool:
        return not self.steps

    def summary(self) -> Dict[str, int]:
        counts = {"create": 0, "update": 0, "replace": 0, "delete": 0}
        for change in self.changes:
            counts[change.op] += 1
        return counts

    def step_keys(self) -> List[str]:
        return [step.key for step in self.steps]
