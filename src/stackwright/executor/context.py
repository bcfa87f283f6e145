"""Explicit run context threaded through plan execution."""

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
from .retry import RetryPolicy
from ..contracts.resources import NodeStatus, StateSnapshot
from ..graph.resource_graph import ResourceGraph
from ..providers.base import Provider
from ..state.store import StateStore
from ..utils.errors import ReferenceResolutionError


@dataclass
class RunContext:
    """
    Everything one apply or destroy run needs; there is no global run state.

    The store's working snapshot is the single source of truth while the run
    executes; every read or write of it goes through `lock`.
    """
    provider: Provider
    store: StateStore
    desired: ResourceGraph
    parallelism: int = 1
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    cancel_event: threading.Event = field(default_factory=threading.Event)
    sleep: Callable[[float], None] = time.sleep
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    statuses: Dict[str, NodeStatus] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock)

    @property
    def snapshot(self) -> StateSnapshot:
        return self.store.snapshot

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def set_status(self, logical_id: str, status: NodeStatus) -> None:
        with self.lock:
            self.statuses[logical_id] = status

    def lookup(self, target: str, attribute: Optional[str]) -> Any:
        """
        Resolve one reference against the applied state.

        Args:
            target: Logical id of the referenced resource
            attribute: Output name, or None for the physical id

        Raises:
            ReferenceResolutionError: If the target is not applied or lacks the output
        """
        with self.lock:
            node = self.snapshot.get(target)
            if node is None or not node.physical_id:
                raise ReferenceResolutionError(f"Referenced resource '{target}' has not been applied")
            if attribute is None:
                return node.physical_id
            if attribute not in node.outputs:
                raise ReferenceResolutionError(
                    f"Resource '{target}' has no output '{attribute}' "
                    f"(available: {', '.join(sorted(node.outputs)) or 'none'})"
                )
            return node.outputs[attribute]
