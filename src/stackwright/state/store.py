"""State stores: persist the last applied resources with provider-assigned ids."""

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union
from filelock import FileLock, Timeout
from pydantic import ValidationError as SchemaValidationError
from ..contracts.resources import ResourceNode, StateSnapshot
from ..utils.errors import RunInProgressError, StateStoreError
from ..utils.logging import get_logger

logger = get_logger("state.store")


class StateStore(ABC):
    """
    Persistence contract for the applied state.

    save/remove stage changes on the working snapshot; commit() is the
    durability barrier. A run holds lock() for its whole duration.
    """

    def __init__(self):
        self._snapshot: Optional[StateSnapshot] = None

    @abstractmethod
    def _read(self) -> Optional[StateSnapshot]:
        """Read the committed snapshot, or None if there is none."""
        pass

    @abstractmethod
    def _write(self, snapshot: StateSnapshot) -> None:
        """Durably replace the committed snapshot."""
        pass

    @abstractmethod
    def lock(self):
        """Context manager holding the run-level lock; raises RunInProgressError if taken."""
        pass

    def load(self) -> StateSnapshot:
        """Load the committed snapshot (empty if none) as the working copy."""
        snapshot = self._read()
        self._snapshot = snapshot if snapshot is not None else StateSnapshot()
        return self._snapshot.model_copy(deep=True)

    @property
    def snapshot(self) -> StateSnapshot:
        if self._snapshot is None:
            self.load()
        return self._snapshot

    def save(self, node_id: str, node: ResourceNode) -> None:
        """Upsert one node into the working snapshot."""
        self.snapshot.resources[node_id] = node.model_copy(deep=True)

    def remove(self, node_id: str) -> None:
        """Remove one node from the working snapshot (no-op if absent)."""
        self.snapshot.resources.pop(node_id, None)

    def save_outputs(self, outputs: Dict[str, Any]) -> None:
        """Replace the resolved stack outputs."""
        self.snapshot.outputs = dict(outputs)

    def commit(self) -> None:
        """Persist the working snapshot and bump its serial."""
        snapshot = self.snapshot
        snapshot.serial += 1
        try:
            self._write(snapshot)
        except StateStoreError:
            snapshot.serial -= 1
            raise
        logger.debug(f"Committed state serial {snapshot.serial} ({len(snapshot.resources)} resources)")


class JsonFileStateStore(StateStore):
    """
    State in a JSON file, written atomically via temp file + rename.

    The run lock is a sibling '<path>.lock' file held with filelock.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self._lock = FileLock(f"{self.path}.lock", timeout=0)

    @contextmanager
    def lock(self) -> Iterator[None]:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateStoreError(f"Cannot create state directory {self.path.parent}: {e}")
        try:
            self._lock.acquire()
        except Timeout:
            raise RunInProgressError(f"Another run holds the state lock {self._lock.lock_file}")
        try:
            yield
        finally:
            self._lock.release()

    def _read(self) -> Optional[StateSnapshot]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return StateSnapshot.model_validate(data)
        except (OSError, json.JSONDecodeError) as e:
            raise StateStoreError(f"Cannot read state file {self.path}: {e}")
        except SchemaValidationError as e:
            raise StateStoreError(f"Invalid state file {self.path}: {e}")

    def _write(self, snapshot: StateSnapshot) -> None:
        payload = json.dumps(snapshot.model_dump(mode="json"), indent=2, sort_keys=True)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=".state-", suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise StateStoreError(f"Cannot write state file {self.path}: {e}")


class InMemoryStateStore(StateStore):
    """State kept in memory as serialized JSON; used in tests and embedding."""

    def __init__(self, snapshot: Optional[StateSnapshot] = None):
        super().__init__()
        self._committed: Optional[str] = snapshot.model_dump_json() if snapshot else None
        self._run_lock = threading.Lock()
        self.commits = 0

    @contextmanager
    def lock(self) -> Iterator[None]:
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("Another run holds the in-memory state lock")
        try:
            yield
        finally:
            self._run_lock.release()

    def _read(self) -> Optional[StateSnapshot]:
        if self._committed is None:
            return None
        return StateSnapshot.model_validate_json(self._committed)

    def _write(self, snapshot: StateSnapshot) -> None:
        self._committed = snapshot.model_dump_json()
        self.commits += 1

    def committed(self) -> StateSnapshot:
        """Return the last committed snapshot (empty if none)."""
        return self._read() or StateSnapshot()
