"""Student identity resolution by LRN.

Three tiers, first hit wins:

1. the store snapshot;
2. a live ``fetch_students()`` call, which also schedules a background
   store refresh without making the caller wait for it;
3. the bundled fallback dataset (ids are synthesized on load when missing).

When every tier misses, :class:`NotFoundError` is raised.  That outcome is
terminal for the request and is not retried.
"""

from __future__ import annotations

import asyncio
import logging

from errors import NotFoundError, ProgressError
from models.entities import Student
from services.entity_store import EntityStore
from services.fallback_data import find_fallback_student
from services.gateway import Gateway

logger = logging.getLogger(__name__)


class StudentResolver:
    def __init__(self, store: EntityStore, gateway: Gateway) -> None:
        self._store = store
        self._gateway = gateway
        self._background: set[asyncio.Task] = set()

    async def resolve_student(self, lrn: str) -> Student:
        lrn = lrn.strip()

        for student in self._store.state.students.data:
            if student.lrn == lrn:
                return student

        try:
            remote = await self._gateway.fetch_students()
        except ProgressError as exc:
            logger.warning("Live student lookup for %s failed, trying bundled data: %s", lrn, exc)
        else:
            match = next((s for s in remote if s.lrn == lrn), None)
            if match is not None:
                self._schedule_refresh()
                return match

        fallback = find_fallback_student(lrn)
        if fallback is not None:
            logger.warning("Student %s resolved from bundled fallback data", lrn)
            return fallback

        raise NotFoundError("student", lrn, message="Student not found")

    def _schedule_refresh(self) -> None:
        task = asyncio.create_task(self._store.refresh("students", self._gateway.fetch_students))
        self._background.add(task)
        task.add_done_callback(self._on_refresh_done)

    def _on_refresh_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background student refresh failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for pending background refreshes (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
