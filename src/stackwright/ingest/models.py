"""Pydantic models for desired-state documents."""

from typing import List, Dict, Any
from pydantic import BaseModel, Field
from ..contracts.resources import DeletionPolicy

LOGICAL_ID_PATTERN = r"^[A-Za-z][A-Za-z0-9_-]*$"


class ResourceDeclaration(BaseModel):
    """A single declared resource."""
    kind: str = Field(..., min_length=1, description="Resource kind")
    properties: Dict[str, Any] = Field(default_factory=dict, description="Property expressions, may contain references")
    depends_on: List[str] = Field(default_factory=list, description="Explicit dependencies by logical id")
    deletion_policy: DeletionPolicy = Field(default=DeletionPolicy.DELETE, description="Delete or retain on removal")

    class Config:
        extra = "forbid"


class OutputDeclaration(BaseModel):
    """A stack output resolved after a successful apply."""
    value: Any = Field(..., description="Value expression, typically a reference")
    description: str = Field(default="", description="Human-readable description")

    class Config:
        extra = "forbid"


class DesiredStateDocument(BaseModel):
    """Desired-state document: resources plus stack-level metadata."""
    name: str = Field(default="default", description="Stack name")
    description: str = Field(default="", description="Stack description")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Values substituted for ${var.name}")
    tags: Dict[str, str] = Field(default_factory=dict, description="Tags merged into every taggable resource")
    kinds: Dict[str, Any] = Field(default_factory=dict, description="Additional or overriding kind schemas")
    resources: Dict[str, ResourceDeclaration] = Field(default_factory=dict, description="Resources by logical id")
    outputs: Dict[str, OutputDeclaration] = Field(default_factory=dict, description="Stack outputs")

    class Config:
        extra = "forbid"
