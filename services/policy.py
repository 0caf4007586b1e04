"""Authorization policy for module mutations and locality-scoped reads.

One evaluation step, invoked before every module create / update / delete,
decides from (actor role, actor barangay, target barangay).  The read-side
filters apply the same rule so an admin never sees a module they could not
edit.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TypeVar

from errors import AuthorizationError
from models.entities import Actor, Barangay, Module, Role
from models.mutations import ModuleDraft

logger = logging.getLogger(__name__)

B = TypeVar("B", bound=Barangay)


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str = ""


def evaluate_module_access(actor: Actor, module_barangay_id: str | None) -> PolicyDecision:
    """Decide whether *actor* may mutate a module owned by *module_barangay_id*.

    - ``master_admin`` may touch anything.
    - Modules without an owning barangay (global / legacy) are open to every admin.
    - A scoped admin may touch modules owned by their assigned barangay.
    """
    if actor.role == Role.MASTER_ADMIN:
        return PolicyDecision(True)
    if not module_barangay_id:
        return PolicyDecision(True)
    if not actor.assigned_barangay_id:
        return PolicyDecision(False, "Admins without an assigned barangay may only manage global modules")
    if actor.assigned_barangay_id == module_barangay_id:
        return PolicyDecision(True)
    return PolicyDecision(False, "You can only manage modules in your assigned barangay")


def require_module_access(actor: Actor, module_barangay_id: str | None) -> None:
    """Raise :class:`AuthorizationError` when the policy denies access."""
    decision = evaluate_module_access(actor, module_barangay_id)
    if decision.allowed:
        return
    logger.warning(
        "Module access denied: role=%s actor_barangay=%s target_barangay=%s",
        actor.role.value, actor.assigned_barangay_id, module_barangay_id,
    )
    raise AuthorizationError(
        decision.reason,
        role=actor.role.value,
        actor_barangay_id=actor.assigned_barangay_id,
        target_barangay_id=module_barangay_id,
    )


def scope_module_draft(actor: Actor, draft: ModuleDraft) -> ModuleDraft:
    """Stamp a scoped admin's barangay onto a new module."""
    if actor.is_scoped:
        return draft.model_copy(update={"barangay_id": actor.assigned_barangay_id})
    return draft


def visible_modules(actor: Actor, modules: Iterable[Module]) -> list[Module]:
    return [m for m in modules if evaluate_module_access(actor, m.barangay_id).allowed]


def visible_barangays(actor: Actor, barangays: Iterable[B]) -> list[B]:
    """A scoped admin sees only their own barangay."""
    if actor.is_scoped:
        return [b for b in barangays if b.id == actor.assigned_barangay_id]
    return list(barangays)
