"""Custom exception classes for Stackwright."""

from typing import List, Optional


class StackwrightError(Exception):
    """Base exception for all Stackwright errors."""
    pass


class ConfigError(StackwrightError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(StackwrightError):
    """Raised when a desired-state document fails validation (nothing is applied)."""
    pass


class SpecLoadError(ValidationError):
    """Raised when a desired-state document cannot be loaded or is malformed."""
    pass


class CycleError(ValidationError):
    """Raised when resource references form a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__(f"Reference cycle detected: {' -> '.join(self.cycle)}")


class DanglingReferenceError(ValidationError):
    """Raised when a property references a logical id that does not exist."""

    def __init__(self, source_id: str, target_id: str, location: Optional[str] = None):
        self.source_id = source_id
        self.target_id = target_id
        self.location = location
        where = f" (property '{location}')" if location else ""
        super().__init__(f"Resource '{source_id}' references unknown resource '{target_id}'{where}")


class DuplicateIdError(ValidationError):
    """Raised when two resources share a logical id."""

    def __init__(self, logical_id: str):
        self.logical_id = logical_id
        super().__init__(f"Duplicate logical id: {logical_id}")


class UnknownKindError(ValidationError):
    """Raised when a resource uses a kind with no registered schema."""

    def __init__(self, kind: str, logical_id: Optional[str] = None):
        self.kind = kind
        self.logical_id = logical_id
        owner = f" (resource '{logical_id}')" if logical_id else ""
        super().__init__(f"Unknown resource kind '{kind}'{owner}")


class InvalidReferenceError(ValidationError):
    """Raised when a reference names an output the target kind does not declare."""
    pass


class PlanCycleError(StackwrightError):
    """Raised when ordering constraints between plan steps cannot be satisfied."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__(f"Unsatisfiable plan ordering: {' -> '.join(self.cycle)}")


class ProviderError(StackwrightError):
    """Base class for classified provider failures."""

    def __init__(self, message: str, detail: Optional[str] = None):
        self.detail = detail
        self.attempts = 0
        super().__init__(message if detail is None else f"{message}: {detail}")


class RetryableProviderError(ProviderError):
    """Transient provider failure (rate limit, timeout); the call may be retried."""
    pass


class FatalProviderError(ProviderError):
    """Non-retryable provider failure; halts the run at the current operation."""
    pass


class ResourceNotFoundError(ProviderError):
    """Provider reports the physical resource does not exist."""
    pass


class ReferenceResolutionError(StackwrightError):
    """Raised when a reference cannot be resolved against applied state."""
    pass


class RunInProgressError(StackwrightError):
    """Raised when another apply run holds the state lock."""
    pass


class StateStoreError(StackwrightError):
    """Raised when state cannot be read or persisted."""
    pass
