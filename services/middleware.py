"""FastAPI middleware — request IDs and session cookies (pure ASGI)."""

from __future__ import annotations

import contextvars
import uuid

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from services.session import session_from_cookies

# Read by the coordinator and API client log lines; "-" outside a request.
current_request_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "current_request_id", default="-"
)


class RequestIdMiddleware:
    """Tag every HTTP request/response with an ``X-Request-ID``.

    A client-supplied ID is reused; otherwise a short UUID is generated.
    The ID is also published through :data:`current_request_id` for the
    duration of the request.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = Request(scope).headers.get("x-request-id") or str(uuid.uuid4())[:8]
        scope.setdefault("state", {})
        scope["state"]["request_id"] = request_id

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers
            await send(message)

        token = current_request_id.set(request_id)
        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            current_request_id.reset(token)


class SessionCookieMiddleware:
    """Read the session cookies into ``request.state``.

    Sets ``state["session"]`` (a :class:`SessionState` or ``None``) and
    ``state["actor"]`` (an :class:`Actor` or ``None``) so route handlers can
    authorize from the role and barangay cookies without another lookup.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        session = session_from_cookies(Request(scope).cookies)

        scope.setdefault("state", {})
        scope["state"]["session"] = session
        scope["state"]["actor"] = session.to_actor() if session else None

        await self.app(scope, receive, send)
