"""
JSON API client for the console.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from shared.errors import MalformedResponseError, ServerError, TransportError
from shared.logging import get_logger, set_user_context
from shared.metrics import MetricsCollector
from ..models import ErrorEnvelope, SuccessResponse
from ..session import SessionProvider


@dataclass
class ApiResult:
    """Outcome of one successful exchange with the API.

    ``envelope`` is None when the server answered 304 Not Modified.
    """
    status_code: int
    envelope: Optional[SuccessResponse] = None
    payload: Optional[Dict[str, Any]] = None
    etag: Optional[str] = None
    last_modified: Optional[str] = None

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304


class ApiClient:
    """Thin httpx wrapper that speaks the console's response envelope.

    Raises ``TransportError`` when no response arrives,
    ``MalformedResponseError`` for bodies that are not a usable envelope and
    ``ServerError`` for non-2xx statuses or ``success: false``.
    Task cancellation propagates untouched.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        session: Optional[SessionProvider] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.headers = headers or {}
        self.transport = transport
        self.session = session
        self.metrics = metrics
        self.logger = get_logger("sync.api_client")

        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get the shared client; its cookie jar carries the session cookies."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Accept": "application/json", **self.headers},
                transport=self.transport,
            )
        return self._client

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        kind: str = "foreground",
    ) -> ApiResult:
        """Send a request and decode the envelope."""
        self._bind_identity()
        client = self._get_client()
        method = method.upper()
        start = time.perf_counter()

        try:
            response = await client.request(method, url, json=json, headers=headers)
        except httpx.HTTPError as e:
            self.logger.warning("API transport error", method=method, url=url, kind=kind, error=str(e))
            self._record_error("transport")
            raise TransportError(
                str(e) or "Network request failed",
                details={"url": url, "method": method, "error_type": type(e).__name__}
            )

        duration = time.perf_counter() - start
        if self.metrics:
            self.metrics.record_http_request(method, kind, response.status_code, duration)

        etag = response.headers.get("etag")
        last_modified = response.headers.get("last-modified")

        if response.status_code == 304:
            self.logger.debug("API resource not modified", method=method, url=url, kind=kind)
            return ApiResult(status_code=304, etag=etag, last_modified=last_modified)

        try:
            body = response.json()
        except ValueError:
            self._record_error("malformed")
            raise MalformedResponseError(details={"url": url, "status_code": response.status_code})

        if not response.is_success or (isinstance(body, dict) and body.get("success") is False):
            self._record_error("server")
            raise self._server_error(body, response.status_code)

        if not isinstance(body, dict) or body.get("success") is not True:
            self._record_error("malformed")
            raise MalformedResponseError(
                "Unexpected response format from server",
                details={"url": url, "errors": ["Server response missing success flag"]}
            )

        try:
            envelope = SuccessResponse.model_validate(body)
        except ValidationError as e:
            self._record_error("malformed")
            raise MalformedResponseError(
                "Unexpected response format from server",
                details={"url": url, "errors": [err["msg"] for err in e.errors()]}
            )

        self.logger.debug(
            "API request succeeded",
            method=method,
            url=url,
            kind=kind,
            status_code=response.status_code,
            duration=duration
        )
        return ApiResult(
            status_code=response.status_code,
            envelope=envelope,
            payload=body,
            etag=etag,
            last_modified=last_modified,
        )

    @staticmethod
    def _server_error(body: Any, status_code: int) -> ServerError:
        """Build a structured error from a failure envelope."""
        fields = body if isinstance(body, dict) else {}
        try:
            envelope = ErrorEnvelope.model_validate({**fields, "success": False})
        except ValidationError:
            envelope = ErrorEnvelope.model_construct(**{**fields, "success": False})
        message = envelope.message
        return ServerError(
            message=str(message) if message else f"HTTP Error {status_code}",
            status_code=status_code,
            code=envelope.code,
            errors=envelope.errors,
            timestamp=envelope.timestamp,
        )

    def _bind_identity(self) -> None:
        if self.session is None:
            return
        identity = self.session.current_identity()
        if identity:
            set_user_context(user_id=identity.user_id, branch_id=identity.branch_id)

    def _record_error(self, error_type: str) -> None:
        if self.metrics:
            self.metrics.record_error(error_type)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
