"""HTTP client for the upstream ALS progress API.

Wraps ``httpx.AsyncClient`` with:
- base URL + API prefix construction
- optional static Bearer token auth (hot-swappable after sign-in)
- retry with exponential backoff for GET requests (network / 5xx errors)
- mapping of HTTP failures onto the :mod:`errors` taxonomy
- request timing logs
- connection-pool lifecycle tied to FastAPI lifespan

Mutations (POST / PUT / PATCH / DELETE) are sent exactly once.  Timeouts
are left to the transport.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from config.settings import get_settings
from errors import (
    AuthorizationError,
    GatewayError,
    IntegrityViolation,
    NotFoundError,
    TransientNetworkError,
    ValidationError,
)
from services.middleware import current_request_id

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_client: ProgressApiClient | None = None

# Upstream message used for duplicate LRNs.
DUPLICATE_LRN_MESSAGE = "This LRN is already taken."


class ProgressApiClient:
    """Async HTTP client for the progress API with GET retry."""

    def __init__(self) -> None:
        settings = get_settings()
        self._base_url = f"{settings.api_base_url.rstrip('/')}{settings.api_prefix}"
        self._timeout = settings.api_timeout
        self._access_token = settings.api_access_token
        self._max_retries = max(1, settings.api_max_retries)
        self._retry_base_delay = settings.api_retry_base_delay
        self._http: httpx.AsyncClient | None = None

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Create the underlying ``httpx.AsyncClient`` connection pool."""
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=self._auth_headers(),
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30,
            ),
        )
        logger.info("ProgressApiClient started — base_url=%s", self._base_url)

    async def close(self) -> None:
        """Gracefully close the connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info("ProgressApiClient closed")

    # -- public API ----------------------------------------------------------

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Send a GET request, retrying transient failures with backoff.

        Raises :class:`TransientNetworkError` once retries are exhausted.
        """
        last_exc: Exception | None = None
        for attempt in range(1, self._max_retries + 1):
            try:
                return await self._send("GET", path, params=params)
            except TransientNetworkError as exc:
                last_exc = exc
                if attempt < self._max_retries:
                    delay = self._retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        "GET %s failed, retry %d/%d in %.1fs",
                        path, attempt, self._max_retries, delay,
                    )
                    await asyncio.sleep(delay)
        raise last_exc  # type: ignore[misc]

    async def post(self, path: str, json_body: Any = None) -> Any:
        return await self._send("POST", path, json_body=json_body)

    async def put(self, path: str, json_body: Any = None) -> Any:
        return await self._send("PUT", path, json_body=json_body)

    async def patch(self, path: str, json_body: Any = None) -> Any:
        return await self._send("PATCH", path, json_body=json_body)

    async def delete(self, path: str, json_body: Any = None) -> Any:
        return await self._send("DELETE", path, json_body=json_body)

    # -- token management ----------------------------------------------------

    def update_token(self, access_token: str) -> None:
        """Hot-swap the bearer token without recreating the client."""
        self._access_token = access_token
        if self._http is not None:
            self._http.headers.update(self._auth_headers())
        logger.info("ProgressApiClient token updated")

    # -- request / response --------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
    ) -> Any:
        """Execute a single HTTP request and map failures onto the taxonomy."""
        client = self._ensure_started()
        t0 = time.monotonic()
        try:
            # httpx.AsyncClient.delete() takes no body, so everything goes
            # through the generic request().
            response = await client.request(method, path, params=params, json=json_body)
        except httpx.TransportError as exc:
            elapsed_ms = (time.monotonic() - t0) * 1000
            logger.warning(
                "[%s] %s %s → network error (%.0fms): %s",
                current_request_id.get(), method, path, elapsed_ms, exc,
            )
            raise TransientNetworkError(f"Network error: {exc}", url=path) from exc

        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "[%s] %s %s → %d (%.0fms)",
            current_request_id.get(), method, path, response.status_code, elapsed_ms,
        )

        if response.status_code >= 400:
            raise _error_for_response(response)
        if not response.text:
            return {}
        return response.json()

    # -- internals -----------------------------------------------------------

    def _auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    def _ensure_started(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("ProgressApiClient not started — call await client.start() first")
        return self._http


def _error_detail(response: httpx.Response) -> str:
    """Pull the ``error`` message out of a ``{success, error}`` body if present."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text[:300] if response.text else f"HTTP {response.status_code}"


def _error_for_response(response: httpx.Response) -> Exception:
    status = response.status_code
    detail = _error_detail(response)
    url = str(response.url)

    if status == 409 or "already taken" in detail.lower():
        return IntegrityViolation(detail or DUPLICATE_LRN_MESSAGE, field="lrn")
    if status == 400:
        return ValidationError(detail)
    if status in (401, 403):
        return AuthorizationError(detail)
    if status == 404:
        return NotFoundError("resource", url, message=detail)
    if status >= 500:
        return TransientNetworkError(f"Progress API {status}: {detail}", url=url)
    return GatewayError(status_code=status, detail=detail, url=url)


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------

def get_api_client() -> ProgressApiClient:
    """Return the module-level ProgressApiClient singleton (create if needed)."""
    global _client
    if _client is None:
        _client = ProgressApiClient()
    return _client
