"""HTTP provider adapter for a remote resource API."""

import os
from typing import Any, Dict, Optional, Tuple
import requests
from .base import Provider
from ..utils.errors import (
    FatalProviderError,
    ResourceNotFoundError,
    RetryableProviderError,
)
from ..utils.logging import get_logger

logger = get_logger("providers.http")

RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


class HttpProvider(Provider):
    """
    Provider backed by a REST resource API.

    Routes:
        POST   {base_url}/resources/{kind}          -> {"physical_id": ..., "outputs": {...}}
        PUT    {base_url}/resources/{kind}/{id}     -> {"outputs": {...}}
        DELETE {base_url}/resources/{kind}/{id}

    Failures are classified: 408/429/5xx, timeouts and connection errors are
    retryable, 404 is not-found, every other 4xx is fatal.
    """

    name = "http"

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize HTTP provider.

        Args:
            base_url: API base URL (default: STACKWRIGHT_PROVIDER_URL)
            token: Bearer token (default: STACKWRIGHT_PROVIDER_TOKEN)
            timeout: Per-request timeout in seconds
            session: Optional requests session (mainly for tests)
        """
        self.base_url = (base_url or os.getenv("STACKWRIGHT_PROVIDER_URL", "http://localhost:8080")).rstrip("/")
        self.token = token or os.getenv("STACKWRIGHT_PROVIDER_TOKEN")
        self.timeout = timeout
        self.session = session or requests.Session()
        if self.token:
            self.session.headers["Authorization"] = f"Bearer {self.token}"

    def create_resource(self, kind: str, properties: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        body = self._request("POST", f"/resources/{kind}", {"properties": properties})
        physical_id = body.get("physical_id")
        if not physical_id:
            raise FatalProviderError(f"Create {kind} returned no physical_id")
        return physical_id, body.get("outputs", {})

    def update_resource(self, kind: str, physical_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        body = self._request("PUT", f"/resources/{kind}/{physical_id}", {"properties": properties})
        return body.get("outputs", {})

    def delete_resource(self, kind: str, physical_id: str) -> None:
        self._request("DELETE", f"/resources/{kind}/{physical_id}")

    def close(self) -> None:
        self.session.close()

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        description = f"{method} {url}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            logger.warning(f"Transient error on {description}: {e}")
            raise RetryableProviderError(f"{description} failed", str(e))
        except requests.exceptions.RequestException as e:
            logger.error(f"Provider API error on {description}: {e}")
            raise FatalProviderError(f"{description} failed", str(e))

        status = response.status_code
        if status in RETRYABLE_STATUS:
            raise RetryableProviderError(f"{description} returned {status}", _error_detail(response))
        if status == 404:
            raise ResourceNotFoundError(f"{description} returned 404", _error_detail(response))
        if status >= 400:
            raise FatalProviderError(f"{description} returned {status}", _error_detail(response))

        if status == 204 or not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise FatalProviderError(f"{description} returned invalid JSON", str(e))
        if not isinstance(body, dict):
            raise FatalProviderError(f"{description} returned {type(body).__name__}, expected an object")
        return body


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
