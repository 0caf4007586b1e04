"""Signed-in session persistence.

The session token, role and assigned barangay are written twice: into a
key/value storage (the client-side store) and as cookies on the outgoing
response, so the server can authorize a request from the cookie header
alone without a round trip.

Keys are ``<prefix>_token``, ``<prefix>_user_role`` and
``<prefix>_assigned_barangay``; the prefix comes from settings.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass

from starlette.responses import Response

from config.settings import get_settings
from models.entities import Actor, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    token: str
    role: Role = Role.ADMIN
    assigned_barangay_id: str | None = None

    def to_actor(self) -> Actor:
        return Actor(role=self.role, assigned_barangay_id=self.assigned_barangay_id)


@dataclass(frozen=True)
class SessionKeys:
    token: str
    role: str
    assigned_barangay: str

    def all(self) -> tuple[str, str, str]:
        return (self.token, self.role, self.assigned_barangay)


def session_keys(prefix: str | None = None) -> SessionKeys:
    prefix = prefix or get_settings().session_cookie_prefix
    return SessionKeys(
        token=f"{prefix}_token",
        role=f"{prefix}_user_role",
        assigned_barangay=f"{prefix}_assigned_barangay",
    )


def persist_session(
    state: SessionState,
    storage: MutableMapping[str, str],
    response: Response,
    remember: bool = False,
) -> None:
    """Write *state* into *storage* and set the matching cookies on *response*.

    Without *remember* the cookies are session cookies (no ``Max-Age``).
    A stale barangay cookie is expired when the state carries none.
    """
    keys = session_keys()
    max_age = get_settings().session_cookie_max_age if remember else None
    entries = {keys.token: state.token, keys.role: state.role.value}
    if state.assigned_barangay_id:
        entries[keys.assigned_barangay] = state.assigned_barangay_id
    else:
        storage.pop(keys.assigned_barangay, None)
        response.delete_cookie(keys.assigned_barangay, path="/")

    storage.update(entries)
    for name, value in entries.items():
        response.set_cookie(name, value, max_age=max_age, path="/", samesite="lax")


def clear_session(storage: MutableMapping[str, str], response: Response) -> None:
    """Drop the stored session and expire its cookies on *response*."""
    for name in session_keys().all():
        storage.pop(name, None)
        response.delete_cookie(name, path="/")


def session_from_cookies(cookies: Mapping[str, str]) -> SessionState | None:
    """Rebuild the session from request cookies; ``None`` when signed out."""
    keys = session_keys()
    token = cookies.get(keys.token, "")
    if not token:
        return None
    try:
        role = Role(cookies.get(keys.role, Role.ADMIN.value))
    except ValueError:
        logger.warning("Unknown role cookie %r, treating as admin", cookies.get(keys.role))
        role = Role.ADMIN
    return SessionState(
        token=token,
        role=role,
        assigned_barangay_id=cookies.get(keys.assigned_barangay) or None,
    )
