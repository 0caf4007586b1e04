"""Mutation Coordinator — the only writer to the Entity Store.

Each mutation runs: validate → authorize → gateway call → reconcile.  The
store is never touched before the server confirms, so a failure leaves the
collections exactly as they were.  Reconciliation differs by entity:

- progress: re-fetch the affected student's records (scoped refresh)
- modules:  merge the single returned record by id, or remove it
- students: full re-fetch of the masterlist

Successes are announced through a :class:`Notifier` whose message clears
itself after ``notification_ttl`` seconds.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import partial, wraps
from typing import TypeVar

from config.settings import get_settings
from errors import NotFoundError, ProgressError, ValidationError
from models.entities import Activity, ActivityType, Actor, Module, Progress, Student
from models.mutations import (
    ActivityTarget,
    ActivityTemplateDraft,
    CreateActivity,
    ModuleDraft,
    Notification,
    StudentDraft,
    UpdateActivityAt,
)
from services.entity_store import EntityStore, ModuleMerged, ModuleRemoved, find_progress
from services.gateway import Gateway
from services.middleware import current_request_id
from services.policy import require_module_access, scope_module_draft

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _announce_failures(method):
    """Show any ``ProgressError`` from *method* as an error notification, then re-raise."""

    @wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except ProgressError as exc:
            self.notifier.announce(exc.message, kind="error")
            raise

    return wrapper


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class Notifier:
    """Holds at most one visible notification.

    A success message expires after ``ttl`` seconds; announcing again
    cancels the pending expiry first, so timers never overlap.  Error
    messages stay until replaced or cleared.
    """

    def __init__(
        self,
        ttl: float | None = None,
        on_change: Callable[[Notification | None], None] | None = None,
    ) -> None:
        self._ttl = get_settings().notification_ttl if ttl is None else ttl
        self._on_change = on_change
        self._timer: asyncio.TimerHandle | None = None
        self.current: Notification | None = None

    def announce(self, message: str, kind: str = "success") -> Notification:
        self._cancel_timer()
        notification = Notification(message=message, kind=kind)
        self.current = notification
        if kind == "success":
            self._timer = asyncio.get_running_loop().call_later(self._ttl, self.clear)
        if self._on_change is not None:
            self._on_change(notification)
        return notification

    def clear(self) -> None:
        self._cancel_timer()
        self.current = None
        if self._on_change is not None:
            self._on_change(None)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _validate_template(position: int, template: ActivityTemplateDraft) -> ActivityTemplateDraft:
    prefix = f"predefinedActivities[{position}]"
    name = template.name.strip()
    if not name:
        raise ValidationError(f"Activity {position + 1} needs a name", field=f"{prefix}.name")
    activity_type = ActivityType.lookup(template.type)
    if activity_type is None:
        raise ValidationError(
            f"Activity '{name}' has an unrecognized type '{template.type}'", field=f"{prefix}.type"
        )
    if template.total is None or template.total <= 0:
        raise ValidationError(
            f"Activity '{name}' needs a positive point total", field=f"{prefix}.total"
        )
    return template.model_copy(update={"name": name, "type": activity_type.value})


def validate_module_draft(draft: ModuleDraft) -> ModuleDraft:
    """Check a module form before any network call; returns the cleaned draft."""
    title = draft.title.strip()
    if not title:
        raise ValidationError("Module title is required", field="title")
    levels = [level.strip() for level in draft.levels if level and level.strip()]
    if not levels:
        raise ValidationError("Select at least one program level", field="levels")
    templates = [_validate_template(i, t) for i, t in enumerate(draft.predefined_activities)]
    return draft.model_copy(update={
        "title": title,
        "levels": levels,
        "predefined_activities": templates,
    })


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

class MutationCoordinator:
    """Runs every create / update / delete against the gateway and the store."""

    def __init__(self, store: EntityStore, gateway: Gateway, notifier: Notifier | None = None) -> None:
        self._store = store
        self._gateway = gateway
        self.notifier = notifier or Notifier()

    async def _perform(self, description: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            result = await call()
        except ProgressError as exc:
            logger.warning("[%s] %s failed: %s", current_request_id.get(), description, exc.message)
            raise
        logger.info("[%s] %s succeeded", current_request_id.get(), description)
        return result

    async def _refresh_progress(self, student_id: str) -> None:
        await self._store.refresh(
            "progress",
            lambda: self._gateway.fetch_progress(student_id),
            scope=student_id,
        )

    def _require_activity(self, student_id: str, module_id: str, index: int) -> Progress:
        record = find_progress(self._store.state, student_id, module_id)
        if record is None:
            raise ValidationError(
                f"No progress recorded for module '{module_id}'", field="activity_index"
            )
        if not 0 <= index < len(record.activities):
            raise ValidationError(
                f"Activity index {index} is out of range (0..{len(record.activities) - 1})",
                field="activity_index",
            )
        return record

    # -- progress ----------------------------------------------------------------

    @_announce_failures
    async def save_activity(
        self,
        student: Student,
        module_id: str,
        target: ActivityTarget,
        activity: Activity,
    ) -> None:
        """Append a new activity or replace the one at ``target.index``."""
        student_id = student.lrn
        if isinstance(target, CreateActivity):
            if find_progress(self._store.state, student_id, module_id) is not None:
                call = partial(self._gateway.add_activity, student_id, module_id, activity)
            else:
                record = Progress(
                    student_id=student_id,
                    module_id=module_id,
                    barangay_id=student.barangay_id or None,
                    activities=(activity,),
                )
                call = partial(self._gateway.create_progress, record)
            message = "Activity added successfully"
        elif isinstance(target, UpdateActivityAt):
            self._require_activity(student_id, module_id, target.index)
            call = partial(
                self._gateway.update_progress, student_id, module_id, target.index, activity
            )
            message = "Activity updated successfully"
        else:
            raise TypeError(f"Unknown activity target: {target!r}")

        await self._perform(f"Saving activity for {student_id}/{module_id}", call)
        await self._refresh_progress(student_id)
        self.notifier.announce(message)

    @_announce_failures
    async def delete_activity(self, student: Student, module_id: str, index: int) -> None:
        """Remove one activity.  Removing the last one keeps an empty record."""
        student_id = student.lrn
        self._require_activity(student_id, module_id, index)
        await self._perform(
            f"Deleting activity {index} for {student_id}/{module_id}",
            lambda: self._gateway.delete_progress(student_id, module_id, index),
        )
        await self._refresh_progress(student_id)
        self.notifier.announce("Activity deleted successfully")

    # -- modules -----------------------------------------------------------------

    def _known_module(self, module_id: str) -> Module | None:
        return next((m for m in self._store.state.modules.data if m.id == module_id), None)

    @_announce_failures
    async def create_module(self, actor: Actor, draft: ModuleDraft) -> Module:
        draft = scope_module_draft(actor, validate_module_draft(draft))
        require_module_access(actor, draft.barangay_id)
        module = await self._perform(
            f"Creating module '{draft.title}'", lambda: self._gateway.create_module(draft)
        )
        self._store.dispatch(ModuleMerged(module))
        self.notifier.announce("Module created successfully")
        return module

    @_announce_failures
    async def update_module(self, actor: Actor, module_id: str, draft: ModuleDraft) -> Module:
        draft = validate_module_draft(draft)
        existing = self._known_module(module_id)
        if existing is None:
            raise NotFoundError("module", module_id, message="Module not found")
        require_module_access(actor, existing.barangay_id)
        if draft.barangay_id is None:
            draft = draft.model_copy(update={"barangay_id": existing.barangay_id})
        require_module_access(actor, draft.barangay_id)
        module = await self._perform(
            f"Updating module {module_id}", lambda: self._gateway.update_module(module_id, draft)
        )
        self._store.dispatch(ModuleMerged(module))
        self.notifier.announce("Module updated successfully")
        return module

    @_announce_failures
    async def delete_module(self, actor: Actor, module_id: str) -> None:
        existing = self._known_module(module_id)
        if existing is None:
            raise NotFoundError("module", module_id, message="Module not found")
        require_module_access(actor, existing.barangay_id)
        await self._perform(
            f"Deleting module {module_id}", lambda: self._gateway.delete_module(module_id)
        )
        self._store.dispatch(ModuleRemoved(module_id))
        self.notifier.announce("Module deleted successfully")

    # -- students ----------------------------------------------------------------

    async def _refresh_students(self) -> None:
        await self._store.refresh("students", self._gateway.fetch_students)

    @_announce_failures
    async def register_student(self, draft: StudentDraft) -> Student:
        if not draft.lrn.strip():
            raise ValidationError("LRN is required", field="lrn")
        draft = draft.model_copy(update={"lrn": draft.lrn.strip()})
        student = await self._perform(
            f"Registering student {draft.lrn}", lambda: self._gateway.create_student(draft)
        )
        await self._refresh_students()
        self.notifier.announce("Student registered successfully")
        return student

    @_announce_failures
    async def update_student(self, student: Student, draft: StudentDraft) -> Student:
        """Edit a student.  The LRN is fixed after registration."""
        lrn = draft.lrn.strip()
        if lrn and lrn != student.lrn:
            raise ValidationError("LRN cannot be changed after registration", field="lrn")
        draft = draft.model_copy(update={"lrn": student.lrn})
        updated = await self._perform(
            f"Updating student {student.lrn}",
            lambda: self._gateway.update_student(student.id, draft),
        )
        await self._refresh_students()
        self.notifier.announce("Student updated successfully")
        return updated

    @_announce_failures
    async def delete_student(self, student: Student) -> None:
        await self._perform(
            f"Deleting student {student.lrn}", lambda: self._gateway.delete_student(student.id)
        )
        await self._refresh_students()
        self.notifier.announce("Student deleted successfully")
