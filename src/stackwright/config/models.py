"""Validated engine configuration."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
from ..executor.retry import RetryPolicy


class StateBackend(str, Enum):
    FILE = "file"
    MEMORY = "memory"


class StateConfig(BaseModel):
    backend: StateBackend = StateBackend.FILE
    path: str = Field(default=".stackwright/state.json", description="State file for the file backend")


class KindsConfig(BaseModel):
    path: Optional[str] = Field(default=None, description="Extra kinds YAML merged over the built-in kinds")


class ExecutorConfig(BaseModel):
    parallelism: int = Field(default=1, ge=1, le=10, description="Worker count for independent steps")


class LocalProviderConfig(BaseModel):
    path: Optional[str] = ".stackwright/provider.json"
    region: str = "local-1"


class HttpProviderConfig(BaseModel):
    base_url: Optional[str] = None
    token: Optional[str] = None
    timeout: float = Field(default=30.0, gt=0)


class ProviderConfig(BaseModel):
    type: str = Field(default="local", description="Provider type: local or http")
    local: LocalProviderConfig = Field(default_factory=LocalProviderConfig)
    http: HttpProviderConfig = Field(default_factory=HttpProviderConfig)


class LoggingConfig(BaseModel):
    level: str = "WARNING"


class EngineConfig(BaseModel):
    """Complete configuration tree after layering."""
    state: StateConfig = Field(default_factory=StateConfig)
    kinds: KindsConfig = Field(default_factory=KindsConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    class Config:
        extra = "ignore"
