"""Naming server HTTP client adapter with retry/timeout/error mapping."""

from __future__ import annotations

import http.client
import json
import logging
import socket
import time
from typing import Any, Iterator
from urllib import error, parse, request

from pydantic import BaseModel, ValidationError

from contracts.v1.schemas import AnalyzeRequest, AnalyzeResult, NameRequest, NameResponse, dump_wire

from .config import (
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF_SECONDS,
)
from .sse import iter_sse_data

logger = logging.getLogger(__name__)


class CoreClientError(Exception):
    """Base exception for naming server client failures."""


class CoreClientHTTPError(CoreClientError):
    """Raised for non-success HTTP responses from the server."""

    def __init__(self, status_code: int, detail: str, server_message: str | None = None):
        super().__init__(f"Naming API error {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
        self.server_message = server_message


class ProgressStreamTimeout(CoreClientError):
    """Raised when the progress stream stays silent past its read timeout."""


class ProgressConnection:
    """One open ``GET /api/progress/{sessionId}`` push stream."""

    def __init__(self, session_id: str, response: Any):
        self.session_id = session_id
        self._response = response
        self.closed = False

    def messages(self) -> Iterator[str]:
        """Yield raw event payloads in arrival order until EOF or ``close()``."""
        return iter_sse_data(self._lines())

    def _lines(self) -> Iterator[bytes]:
        while not self.closed:
            try:
                line = self._response.readline()
            except (TimeoutError, socket.timeout) as e:
                raise ProgressStreamTimeout(f"Progress stream read timed out: {e}") from e
            except (OSError, http.client.HTTPException) as e:
                if self.closed:
                    return
                raise CoreClientError(f"Progress stream read failed: {e}") from e
            if not line:
                return
            yield line

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._response.close()
        except OSError as e:
            logger.debug("Ignoring error while closing progress stream %s: %s", self.session_id, e)


class CoreClient:
    """HTTP adapter for the stateless naming server API."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff_seconds = max(0.0, retry_backoff_seconds)

    def health(self) -> dict[str, Any]:
        """Check server liveness."""
        return self._request_json("GET", "/api/health")

    def analyze(self, req: AnalyzeRequest) -> AnalyzeResult:
        """Call ``POST /api/analyze`` and validate the response contract.

        Sent once; a failure is reported to the caller, who decides whether to retry.
        """
        data = self._request_json("POST", "/api/analyze", dump_wire(req), retry_attempts=1)
        return self._validate(AnalyzeResult, data, "/api/analyze")

    def start_naming(self, req: NameRequest) -> NameResponse:
        """Call ``POST /api/name`` and validate the response contract.

        Not retried: every accepted request starts a new server-side session.
        """
        data = self._request_json("POST", "/api/name", dump_wire(req), retry_attempts=1)
        return self._validate(NameResponse, data, "/api/name")

    def open_progress(self, session_id: str, *, timeout_seconds: float | None = None) -> ProgressConnection:
        """Open ``GET /api/progress/{sessionId}``.

        ``timeout_seconds`` bounds both the connect and every subsequent read,
        so a silent stream surfaces as ``ProgressStreamTimeout``.
        """
        url = f"{self.base_url}/api/progress/{parse.quote(session_id, safe='')}"
        req = request.Request(
            url,
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            method="GET",
        )
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        try:
            response = request.urlopen(req, timeout=timeout)
        except error.HTTPError as e:
            detail, server_message = self._read_http_error_detail(e)
            raise CoreClientHTTPError(e.code, detail, server_message) from e
        except (OSError, http.client.HTTPException) as e:
            raise CoreClientError(f"Progress stream connection failed: {e}") from e
        return ProgressConnection(session_id, response)

    def export(self, session_id: str, fmt: str = "json") -> str:
        """Call ``GET /api/export/{sessionId}?format=...`` and return the raw body."""
        if fmt not in ("json", "csv"):
            raise ValueError(f"Unsupported export format '{fmt}'. Expected json or csv.")
        path = f"/api/export/{parse.quote(session_id, safe='')}?format={fmt}"
        return self._request_text("GET", path)

    def _request_json(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        *,
        retry_attempts: int | None = None,
    ) -> dict[str, Any]:
        """Send a JSON request with retry and normalized error handling."""
        raw = self._request_text(method, path, payload, retry_attempts=retry_attempts)
        if not raw:
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise CoreClientError(f"Naming API returned invalid JSON: {e}") from e

    def _request_text(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        *,
        retry_attempts: int | None = None,
    ) -> str:
        url = f"{self.base_url}{path}"
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        attempts = max(1, retry_attempts or self.retry_attempts)

        for attempt in range(1, attempts + 1):
            req = request.Request(
                url,
                data=data,
                headers={"Content-Type": "application/json"},
                method=method,
            )
            try:
                with request.urlopen(req, timeout=self.timeout_seconds) as resp:
                    return resp.read().decode("utf-8")
            except error.HTTPError as e:
                detail, server_message = self._read_http_error_detail(e)
                if e.code >= 500 and attempt < attempts:
                    logger.warning("%s %s returned %d; retrying (attempt %d/%d)", method, path, e.code, attempt, attempts)
                    self._sleep_before_retry(attempt)
                    continue
                raise CoreClientHTTPError(e.code, detail, server_message) from e
            except (OSError, http.client.HTTPException) as e:
                if attempt < attempts:
                    logger.warning("%s %s failed: %s; retrying (attempt %d/%d)", method, path, e, attempt, attempts)
                    self._sleep_before_retry(attempt)
                    continue
                raise CoreClientError(f"Naming API request failed: {e}") from e

        raise CoreClientError("Naming API request failed")

    @staticmethod
    def _validate(model: type[BaseModel], data: dict[str, Any], path: str) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise CoreClientError(f"Naming API returned an invalid {path} response: {e}") from e

    @staticmethod
    def _read_http_error_detail(exc: error.HTTPError) -> tuple[str, str | None]:
        """Return ``(detail, server_message)`` for an HTTP error.

        ``server_message`` is the body's ``error`` (or ``detail``) field when the
        body is a JSON object carrying one.
        """
        try:
            body = exc.read().decode("utf-8")
        except Exception:
            return str(exc.reason or "HTTP error"), None
        if not body:
            return str(exc.reason or "HTTP error"), None
        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return body, None
        if isinstance(payload, dict):
            for key in ("error", "detail"):
                if payload.get(key):
                    return str(payload[key]), str(payload[key])
        return body, None

    def _sleep_before_retry(self, attempt: int) -> None:
        if self.retry_backoff_seconds <= 0:
            return
        time.sleep(self.retry_backoff_seconds * attempt)
