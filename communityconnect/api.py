"""Async client for the hosted backend (PostgREST, storage, auth, RPC).

This module provides an async HTTP/2 client with:
- Connection pooling and lazy client creation
- PostgREST select/insert/rpc, storage upload, password sign-in
- Structured error parsing (PostgREST, storage and auth error bodies)
- Optional retry with exponential backoff for idempotent reads only
- Prometheus metrics and OpenTelemetry spans around every call

Example:
    >>> from communityconnect.api import AsyncBackendClient
    >>>
    >>> async with AsyncBackendClient() as backend:
    ...     await backend.sign_in_with_password("a@example.org", "secret")
    ...     rows = await backend.select("posts", filters={"status": "active"})
    ...     print(f"Fetched {len(rows)} posts")
"""

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from communityconnect.config import Settings, settings as default_settings
from communityconnect.logging import logger
from communityconnect.metrics import (
    backend_request_duration_seconds,
    backend_requests_total,
    errors_total,
)
from communityconnect.models import AuthSession
from communityconnect.telemetry import (
    add_span_attributes,
    get_tracer,
    record_exception_in_span,
    sync_logging_context_to_span,
)
from communityconnect.types import ErrorBody

tracer = get_tracer(__name__)

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


# =============================================================================
# Custom Exceptions
# =============================================================================


class TransientBackendError(Exception):
    """Retryable network/HTTP layer failures.

    Raised for:
    - Network timeouts
    - Connection errors
    - HTTP 429 (rate limit)
    - HTTP 5xx (server errors)
    """

    pass


class BackendError(RuntimeError):
    """Permanent failure reported by the backend.

    Attributes:
        message: Human-readable message, shown to users verbatim
        code: PostgREST/SQLSTATE code (e.g. ``23505``) or auth/storage error name
        status_code: HTTP status
        details: Extra detail from the error body
        hint: PostgREST hint, if any
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        details: Any = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        self.hint = hint

    @property
    def is_unique_violation(self) -> bool:
        return self.code == UNIQUE_VIOLATION

    @classmethod
    def from_response(cls, resp: httpx.Response) -> "BackendError":
        """Parse a PostgREST, storage or auth error response."""
        try:
            body: ErrorBody = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
            or resp.text
            or f"HTTP {resp.status_code}"
        )
        code = body.get("code") or body.get("error")
        return cls(
            message=str(message),
            code=str(code) if code is not None else None,
            status_code=resp.status_code,
            details=body.get("details"),
            hint=body.get("hint"),
        )


class AuthRequiredError(RuntimeError):
    """Raised when an operation needs a signed-in user and there is none."""

    pass


# =============================================================================
# Async Backend Client
# =============================================================================


class AsyncBackendClient:
    """Async HTTP/2 client for the hosted backend.

    One instance owns one ``httpx.AsyncClient`` and at most one auth session.
    Every request carries the project ``apikey``; the bearer token is the
    session's access token when signed in, otherwise the anon key.

    Args:
        config: Settings to read URL, key and timeouts from
        session: Existing session to reuse
        transport: Custom httpx transport (tests use ``httpx.MockTransport``)
        pool_limits: Custom httpx connection pool limits
        timeout: Custom httpx timeout configuration

    Example:
        >>> async with AsyncBackendClient() as backend:
        ...     session = await backend.sign_in_with_password(email, password)
        ...     print(f"Signed in as {session.email}")
    """

    def __init__(
        self,
        config: Settings | None = None,
        session: AuthSession | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        pool_limits: httpx.Limits | None = None,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self._settings = config or default_settings
        if not self._settings.supabase_anon_key:
            raise ValueError("SUPABASE_ANON_KEY is not configured")

        self._anon_key = self._settings.supabase_anon_key
        self._session = session
        self._read_attempts = self._settings.read_attempts
        self._transport = transport

        self._limits = pool_limits or httpx.Limits(
            max_connections=20,
            max_keepalive_connections=5,
            keepalive_expiry=30.0,
        )

        self._timeout = timeout or httpx.Timeout(
            timeout=self._settings.request_timeout,
            connect=10.0,
        )

        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=self._limits,
                timeout=self._timeout,
                http2=True,
                follow_redirects=True,
                transport=self._transport,
                headers={"apikey": self._anon_key},
            )
        return self._client

    async def __aenter__(self) -> "AsyncBackendClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close all connections and cleanup resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # -------------------------------------------------------------------------
    # Low-level request handling
    # -------------------------------------------------------------------------

    def _auth_headers(self) -> dict[str, str]:
        token = self._session.access_token if self._session else self._anon_key
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Perform one HTTP call with error classification, metrics and tracing.

        Returns:
            The successful (2xx) response

        Raises:
            TransientBackendError: For retryable failures
            BackendError: For permanent failures reported by the backend
        """
        client = await self._ensure_client()
        request_headers = {**self._auth_headers(), **(headers or {})}
        start_time = time.perf_counter()

        with tracer.start_as_current_span(f"backend.{operation}") as span:
            add_span_attributes(span, {"http.method": method, "http.url": url})
            sync_logging_context_to_span(span)
            try:
                try:
                    resp = await client.request(
                        method,
                        url,
                        params=params,
                        json=json,
                        content=content,
                        headers=request_headers,
                    )
                except (httpx.TimeoutException, httpx.NetworkError) as exc:
                    raise TransientBackendError(f"Network/timeout error: {exc}") from exc

                add_span_attributes(span, {"http.status_code": resp.status_code})

                if resp.status_code == 429 or 500 <= resp.status_code < 600:
                    raise TransientBackendError(f"HTTP {resp.status_code}")

                if resp.status_code >= 400:
                    error = BackendError.from_response(resp)
                    logger.debug(
                        f"Backend {operation} failed: HTTP {resp.status_code} "
                        f"code={error.code} message={error.message}"
                    )
                    raise error

            except (TransientBackendError, BackendError) as exc:
                record_exception_in_span(span, exc)
                backend_requests_total.labels(operation=operation, status="error").inc()
                errors_total.labels(error_type=type(exc).__name__, component="api").inc()
                raise
            finally:
                backend_request_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start_time
                )

        backend_requests_total.labels(operation=operation, status="success").inc()
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        return resp.json()

    # -------------------------------------------------------------------------
    # Tabular data store (PostgREST)
    # -------------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows with equality filters and optional ordering.

        Args:
            table: Table name
            columns: PostgREST select expression, embeds included
            filters: Column equality filters
            order: Column to order by
            descending: Order direction
            limit: Maximum number of rows

        Returns:
            List of row dictionaries

        Example:
            >>> rows = await backend.select(
            ...     "posts",
            ...     filters={"status": "active"},
            ...     order="created_at",
            ...     descending=True,
            ... )
        """
        params: dict[str, Any] = {"select": _compact(columns)}
        for column, value in (filters or {}).items():
            params[column] = _filter_value(value)
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = limit

        url = f"{self._settings.rest_url}/{table}"
        logging_logger = logging.getLogger(__name__)

        @retry(
            reraise=True,
            stop=stop_after_attempt(self._read_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(TransientBackendError),
            before_sleep=before_sleep_log(logging_logger, logging.WARNING),
        )
        async def _runner() -> list[dict[str, Any]]:
            resp = await self._request("select", "GET", url, params=params)
            return self._json(resp) or []

        return await _runner()

    async def insert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Insert one or more rows and return them as stored.

        Never retried: a retried insert could store a row twice.
        """
        resp = await self._request(
            "insert",
            "POST",
            f"{self._settings.rest_url}/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return self._json(resp) or []

    # -------------------------------------------------------------------------
    # Remote procedure call
    # -------------------------------------------------------------------------

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        """Call a database function; returns its decoded JSON result (or None)."""
        resp = await self._request(
            "rpc",
            "POST",
            f"{self._settings.rest_url}/rpc/{function}",
            json=params or {},
        )
        return self._json(resp)

    # -------------------------------------------------------------------------
    # Blob store
    # -------------------------------------------------------------------------

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str,
    ) -> str:
        """Upload an object and return its storage key."""
        resp = await self._request(
            "upload",
            "POST",
            f"{self._settings.storage_url}/object/{bucket}/{quote(path)}",
            content=content,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        body = self._json(resp) or {}
        return body.get("Key", f"{bucket}/{path}")

    def public_url(self, bucket: str, path: str) -> str:
        """Public URL of an object in a public bucket."""
        return f"{self._settings.storage_url}/object/public/{bucket}/{quote(path)}"

    # -------------------------------------------------------------------------
    # Session provider
    # -------------------------------------------------------------------------

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """Sign in and keep the session for subsequent calls."""
        resp = await self._request(
            "auth",
            "POST",
            f"{self._settings.auth_url}/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        self._session = AuthSession.from_token_response(resp.json())
        logger.info(f"Signed in as {self._session.email or self._session.user_id}")
        return self._session

    def get_session(self) -> AuthSession | None:
        """Current session, or None when signed out."""
        return self._session

    async def sign_out(self) -> None:
        """Revoke the session server-side and forget it locally."""
        if self._session is None:
            return
        try:
            await self._request("auth", "POST", f"{self._settings.auth_url}/logout")
        finally:
            self._session = None


def _compact(columns: str) -> str:
    """Strip whitespace from a multi-line select expression."""
    return "".join(columns.split())


def _filter_value(value: Any) -> str:
    """PostgREST equality filter for a Python value."""
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return "eq.true" if value else "eq.false"
    return f"eq.{value}"


__all__ = [
    "AsyncBackendClient",
    "BackendError",
    "TransientBackendError",
    "AuthRequiredError",
    "UNIQUE_VIOLATION",
]
