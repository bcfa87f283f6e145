"""Apply result contract - per-step outcomes and run summary."""

from enum import Enum
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field
from .resources import NodeStatus


class StepOutcome(str, Enum):
    """Outcome of a single plan step."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepResult(BaseModel):
    """Result of executing (or not executing) one plan step."""
    step_key: str
    logical_id: str
    action: str
    outcome: StepOutcome
    attempts: int = Field(default=0, ge=0, description="Provider call attempts made")
    physical_id: Optional[str] = None
    error: Optional[str] = Field(default=None, description="Error detail for failed steps")


class ApplyResult(BaseModel):
    """Summary of an apply or destroy run."""
    run_id: str
    succeeded: bool = Field(..., description="True when every step was applied")
    cancelled: bool = False
    steps: List[StepResult] = Field(default_factory=list)
    statuses: Dict[str, NodeStatus] = Field(default_factory=dict, description="Final node status by logical id")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Resolved stack outputs")

    @property
    def partial(self) -> bool:
        return not self.succeeded

    def failed_steps(self) -> List[StepResult]:
        return [s for s in self.steps if s.outcome == StepOutcome.FAILED]

    def applied_steps(self) -> List[StepResult]:
        return [s for s in self.steps if s.outcome == StepOutcome.SUCCEEDED]

    def skipped_steps(self) -> List[StepResult]:
        return [s for s in self.steps if s.outcome == StepOutcome.SKIPPED]

    def summary(self) -> Dict[str, int]:
        return {
            "applied": len(self.applied_steps()),
            "failed": len(self.failed_steps()),
            "skipped": len(self.skipped_steps()),
        }
