"""Abstract base class for resource providers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple


class Provider(ABC):
    """
    Abstract interface to the external platform that owns the resources.

    Providers receive fully resolved properties (no symbolic references) and
    must classify every failure:
    - RetryableProviderError: transient (rate limit, timeout); will be retried
    - FatalProviderError: halts the run at the current operation
    - ResourceNotFoundError: the physical resource is gone; success on delete
    """

    name = "abstract"

    @abstractmethod
    def create_resource(self, kind: str, properties: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        Create a resource.

        Args:
            kind: Resource kind
            properties: Resolved properties

        Returns:
            Tuple of (physical_id, outputs)
        """
        pass

    @abstractmethod
    def update_resource(self, kind: str, physical_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a resource in place.

        Returns:
            New outputs
        """
        pass

    @abstractmethod
    def delete_resource(self, kind: str, physical_id: str) -> None:
        """Delete a resource."""
        pass

    def bind_kinds(self, registry) -> None:
        """Receive the kind registry in effect for the run (document kinds included)."""
        pass

    def close(self) -> None:
        """Release provider resources (sessions, files)."""
        pass
