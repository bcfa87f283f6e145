"""Local simulated provider.

Keeps resources in memory (optionally persisted to a JSON file) and returns
the outputs their kind declares, echoing same-named properties. Faults can be injected per logical
operation, which is how partial-failure and retry behavior is exercised.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from .base import Provider
from ..kinds.registry import KindRegistry, load_kind_registry
from ..utils.errors import ResourceNotFoundError, StackwrightError
from ..utils.logging import get_logger

logger = get_logger("providers.local")

# Property names whose values also key injected create faults
NAME_SUFFIX = "name"


class LocalProvider(Provider):
    """
    Simulated provider for local runs and tests.

    Args:
        path: Optional JSON file persisting simulated resources between runs
        region: Region used in generated ARNs
        kinds: Kind registry whose declared outputs are synthesized (default: built-in kinds)
    """

    name = "local"

    def __init__(self, path: Optional[Union[str, Path]] = None, region: str = "local-1",
                 kinds: Optional[KindRegistry] = None):
        self.path = Path(path) if path else None
        self.region = region
        self.kinds = kinds or load_kind_registry()
        self.resources: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self._faults: Dict[Tuple[str, str], List[Exception]] = {}
        self._counter = 0
        self._lock = threading.Lock()
        if self.path and self.path.exists():
            self._load()

    def inject_fault(self, operation: str, key: str, error: Exception, times: int = 1) -> None:
        """
        Make the next `times` calls fail with error.

        Args:
            operation: "create", "update" or "delete"
            key: For create, the resource kind or the value of a 'name'-like
                property; for update/delete, the physical id or kind
            error: Exception to raise
            times: Number of consecutive failures
        """
        self._faults.setdefault((operation, key), []).extend([error] * times)

    def _take_fault(self, operation: str, keys: List[str]) -> None:
        for key in keys:
            queue = self._faults.get((operation, key))
            if queue:
                error = queue.pop(0)
                logger.debug(f"Injected fault for {operation} {key}: {error}")
                raise error

    def create_resource(self, kind: str, properties: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        keys = [kind] + [str(v) for k, v in properties.items() if k.endswith(NAME_SUFFIX) and isinstance(v, (str, int))]
        with self._lock:
            self.calls.append(("create", kind, ""))
            self._take_fault("create", keys)
            self._counter += 1
            physical_id = f"{kind.lower()}-{self._counter:04d}"
            outputs = self._outputs(kind, physical_id, properties)
            self.resources[physical_id] = {"kind": kind, "properties": properties, "outputs": outputs}
            self._persist()
        logger.debug(f"Created {kind} {physical_id}")
        return physical_id, outputs

    def update_resource(self, kind: str, physical_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            self.calls.append(("update", kind, physical_id))
            self._take_fault("update", [physical_id, kind])
            if physical_id not in self.resources:
                raise ResourceNotFoundError(f"{kind} {physical_id} does not exist")
            outputs = self._outputs(kind, physical_id, properties)
            self.resources[physical_id] = {"kind": kind, "properties": properties, "outputs": outputs}
            self._persist()
        logger.debug(f"Updated {kind} {physical_id}")
        return outputs

    def delete_resource(self, kind: str, physical_id: str) -> None:
        with self._lock:
            self.calls.append(("delete", kind, physical_id))
            self._take_fault("delete", [physical_id, kind])
            if physical_id not in self.resources:
                raise ResourceNotFoundError(f"{kind} {physical_id} does not exist")
            del self.resources[physical_id]
            self._persist()
        logger.debug(f"Deleted {kind} {physical_id}")

    def _outputs(self, kind: str, physical_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        arn = f"arn:local:{kind.lower()}:{self.region}:{physical_id}"
        outputs: Dict[str, Any] = {"id": physical_id, "arn": arn}
        schema = self.kinds.find(kind)
        for name in (schema.outputs if schema else []):
            if name in properties:
                outputs[name] = properties[name]
            elif name.endswith("_arn"):
                outputs[name] = f"{arn}/{name[:-4]}"
            elif name.endswith("_id"):
                outputs[name] = physical_id
            elif name.endswith("domain_name"):
                outputs[name] = f"{physical_id}.{kind.lower()}.local"
            elif name.endswith("url"):
                outputs[name] = f"https://{physical_id}.{self.region}.local/"
            elif name != "arn":
                outputs[name] = f"{physical_id}/{name}"
        return outputs

    def bind_kinds(self, registry: KindRegistry) -> None:
        self.kinds = registry

    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            raise StackwrightError(f"Cannot read local provider data {self.path}: {e}")
        self.resources = data.get("resources", {})
        self._counter = data.get("counter", len(self.resources))

    def _persist(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({"counter": self._counter, "resources": self.resources}, indent=2, sort_keys=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=".provider-", suffix=".tmp")
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(payload)
        os.replace(tmp, self.path)

