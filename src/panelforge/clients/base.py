"""
Shared HTTP plumbing for datasource clients.

Each request opens its own ``httpx.AsyncClient``. Transient failures
(408, 429, 5xx, connection and read errors) are retried with exponential
backoff; repeated transient failures open the client's own circuit
breaker, so one unreachable datasource never blocks the others. A 401 is
never retried and surfaces as ``AuthenticationError``.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from circuitbreaker import CircuitBreaker, CircuitBreakerError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from panelforge.core.errors import AuthenticationError, DatasourceError

logger = structlog.get_logger()

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})

Params = dict[str, Any] | list[tuple[str, Any]] | None


class RetryableHTTPError(DatasourceError):
    """Transient failure; the request is attempted again."""


class PermanentHTTPError(DatasourceError):
    """Failure that a retry cannot fix (bad query, 404, invalid body)."""


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUSES


def decode_body(response: httpx.Response) -> Any:
    """JSON for JSON responses, text otherwise, ``{}`` for an empty body."""
    if not response.content:
        return {}
    if "json" in response.headers.get("content-type", ""):
        return response.json()
    return response.text


class BaseHTTPClient:
    """Base for clients of one HTTP endpoint."""

    user_agent = "panelforge/0.1.0"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._extra_headers = dict(headers or {})
        self._breaker = CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            expected_exception=RetryableHTTPError,
            name=f"datasource:{self._base_url}",
        )
        self._guarded_request = self._breaker(self._request)

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        """Override to provide custom headers."""
        headers = {"Accept": "application/json", "User-Agent": self.user_agent}
        headers.update(self._extra_headers)
        return headers

    def _check_status(self, response: httpx.Response, method: str, url: str) -> None:
        status = response.status_code
        if status == 401:
            logger.warning("http_unauthorized", method=method, url=url)
            raise AuthenticationError("Unauthorized", {"url": url})
        if is_retryable_status(status):
            logger.warning("http_retryable_error", status=status, method=method, url=url)
            raise RetryableHTTPError(f"HTTP {status}: {response.text}", status=status)
        if status >= 400:
            logger.error("http_permanent_error", status=status, method=method, url=url)
            raise PermanentHTTPError(f"HTTP {status}: {response.text}", status=status)

    @retry(
        retry=retry_if_exception_type(RetryableHTTPError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=10),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Params = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        req_headers = self._headers()
        if headers:
            req_headers.update(headers)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(method, url, params=params, headers=req_headers)
        except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as exc:
            logger.warning("http_network_error", method=method, url=url, error=str(exc))
            raise RetryableHTTPError(f"{type(exc).__name__}: {exc}", {"url": url}) from exc

        self._check_status(response, method, url)
        try:
            return decode_body(response)
        except ValueError as exc:
            logger.error("http_invalid_json", method=method, url=url, error=str(exc))
            raise PermanentHTTPError(f"invalid JSON response from {url}") from exc

    async def get(
        self,
        path: str,
        *,
        params: Params = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET ``path``; an open circuit fails fast as DatasourceError."""
        try:
            return await self._guarded_request("GET", path, params=params, headers=headers)
        except CircuitBreakerError as exc:
            raise DatasourceError(f"circuit open for {self._base_url}") from exc
