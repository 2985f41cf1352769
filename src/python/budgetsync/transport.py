"""Request/response transports between a replica and the merge endpoint."""

from __future__ import annotations

from abc import ABC, abstractmethod
import json
import logging
from typing import Any

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from budgetsync.config import SyncConfig
from budgetsync.exceptions import MalformedBatchError, TransportError
from budgetsync.merge import MergeEngine

logger = logging.getLogger(__name__)

SYNC_PATH = "/api/sync"
RETRYABLE_ERRORS = (requests.ConnectionError, requests.Timeout)


class Transport(ABC):
    """A single request/response call that fails with TransportError."""

    @abstractmethod
    def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Deliver a sync request and return the decoded response."""


class HttpTransport(Transport):
    """POST sync requests to a remote server using requests.

    Connection errors and timeouts are retried with exponential backoff before
    being reported; a non-success status is reported immediately.
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config or SyncConfig()
        self.session = session or requests.Session()
        self.url = f"{self.config.server_url}{SYNC_PATH}"

    def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        retrying = Retrying(
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_exponential(multiplier=0.5, max=5),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        )
        try:
            response = retrying(self._post, payload)
        except requests.RequestException as exc:
            raise TransportError(f"Sync request failed: {exc}") from exc

        if not response.ok:
            raise TransportError(
                f"Sync rejected: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError("Sync response is not valid JSON") from exc

    def _post(self, payload: dict[str, Any]) -> requests.Response:
        logger.debug("POST %s", self.url)
        return self.session.post(
            self.url,
            json=payload,
            timeout=self.config.timeout_seconds,
        )


class LocalTransport(Transport):
    """Deliver sync requests to an in-process merge engine.

    Payloads pass through JSON encoding so neither side shares mutable state
    with the other, as over a real wire.
    """

    def __init__(self, engine: MergeEngine) -> None:
        self.engine = engine

    def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        request = json.loads(json.dumps(payload))
        try:
            response = self.engine.handle(request)
        except MalformedBatchError as exc:
            raise TransportError(f"Sync rejected: {exc}", status_code=422) from exc
        return json.loads(json.dumps(response))
