"""Resource node and state snapshot models (persisted, forward-compatible)."""

import uuid
from enum import Enum
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field
from ..utils.errors import StackwrightError


class NodeStatus(str, Enum):
    """Lifecycle status of a resource node within a run."""
    PENDING = "Pending"
    PLANNED = "Planned"
    APPLYING = "Applying"
    APPLIED = "Applied"
    FAILED = "Failed"


class DeletionPolicy(str, Enum):
    """What happens to the physical resource when the node is deleted."""
    DELETE = "delete"
    RETAIN = "retain"


class DeposedObject(BaseModel):
    """An old physical object left behind by create-before-destroy."""
    physical_id: str = Field(..., description="Identifier of the old object")
    kind: str = Field(..., description="Kind the old object was created as")


class ResourceNode(BaseModel):
    """A declared resource, and once applied, its provider-assigned identity."""
    logical_id: str = Field(..., description="Stable user-assigned identifier")
    kind: str = Field(..., description="Resource kind (provider type tag)")
    properties: Dict[str, Any] = Field(default_factory=dict, description="Declared properties, references kept symbolic")
    dependencies: List[str] = Field(default_factory=list, description="Logical ids this node depends on")
    deletion_policy: DeletionPolicy = Field(default=DeletionPolicy.DELETE, description="Delete or retain on removal")
    physical_id: Optional[str] = Field(default=None, description="Identifier assigned by the provider")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Computed outputs returned by the provider")
    status: NodeStatus = Field(default=NodeStatus.PENDING, description="Lifecycle status")
    deposed: List[DeposedObject] = Field(default_factory=list, description="Old objects awaiting deletion after create-before-destroy")

    class Config:
        extra = "allow"

    def mark_applied(self, physical_id: str, outputs: Dict[str, Any]) -> None:
        """Record provider results; outputs of an Applied node cannot be rewritten."""
        if self.status == NodeStatus.APPLIED:
            raise StackwrightError(
                f"Outputs of applied resource '{self.logical_id}' are immutable until it is updated, replaced or deleted"
            )
        self.physical_id = physical_id
        self.outputs = dict(outputs or {})
        self.status = NodeStatus.APPLIED

    def deposed_ids(self) -> List[str]:
        return [d.physical_id for d in self.deposed]


class StateSnapshot(BaseModel):
    """Last successfully applied resources keyed by logical id."""
    version: int = Field(default=1, description="State document format version")
    serial: int = Field(default=0, ge=0, description="Incremented on every commit")
    lineage: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Identity of this state history")
    resources: Dict[str, ResourceNode] = Field(default_factory=dict, description="Applied resources by logical id")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Resolved stack outputs from the last full apply")

    class Config:
        extra = "allow"

    def get(self, logical_id: str) -> Optional[ResourceNode]:
        """Get an applied resource by logical id."""
        return self.resources.get(logical_id)

    def __contains__(self, logical_id: str) -> bool:
        return logical_id in self.resources

    def is_empty(self) -> bool:
        return not self.resources
