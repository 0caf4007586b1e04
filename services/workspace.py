"""Workspace — one store, its gateway, and the services wired around them.

The HTTP layer resolves a :class:`Workspace` through :func:`get_workspace`
(overridable as a FastAPI dependency).  When the API is unreachable on the
first load of a collection, the bundled dataset is served instead.  Once a
collection holds data, a transient failure propagates to the store, which
keeps the cached records.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from adapters.normalize import dedupe_modules
from config.settings import get_settings
from errors import TransientNetworkError
from models.entities import Actor, Barangay, Module, Progress, Student
from services import fallback_data
from services.entity_store import EntityStore
from services.gateway import Gateway, build_gateway
from services.mutation_coordinator import MutationCoordinator, Notifier
from services.student_resolver import StudentResolver
from services.view_binding import StudentProgressView

logger = logging.getLogger(__name__)

T = TypeVar("T")

_workspace: Workspace | None = None


class Workspace:
    def __init__(
        self,
        gateway: Gateway,
        store: EntityStore | None = None,
        notifier: Notifier | None = None,
        merge_bundled_modules: bool = True,
    ) -> None:
        self.gateway = gateway
        self.store = store or EntityStore()
        self.coordinator = MutationCoordinator(self.store, gateway, notifier)
        self.resolver = StudentResolver(self.store, gateway)
        self._merge_bundled_modules = merge_bundled_modules
        # Load keys ("students", "progress:<lrn>", ...) that already hold data.
        self._loaded: set[str] = set()

    # -- loaders -----------------------------------------------------------------

    async def _with_fallback(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Sequence[T]]],
        bundled: Callable[[], Sequence[T]],
    ) -> list[T]:
        try:
            data = list(await fetch())
        except TransientNetworkError as exc:
            if key in self._loaded:
                raise
            logger.warning("Progress API unreachable for %s, serving bundled data: %s", key, exc)
            data = list(bundled())
        self._loaded.add(key)
        return data

    async def _fetch_students(self) -> list[Student]:
        return await self._with_fallback("students", self.gateway.fetch_students, fallback_data.fallback_students)

    async def _fetch_barangays(self) -> list[Barangay]:
        return await self._with_fallback("barangays", self.gateway.fetch_barangays, fallback_data.fallback_barangays)

    async def _fetch_modules(self) -> list[Module]:
        remote = await self._with_fallback("modules", self.gateway.fetch_modules, lambda: ())
        if not self._merge_bundled_modules:
            return remote
        # Remote records override bundled ones sharing an id.
        return dedupe_modules([*fallback_data.fallback_modules(), *remote])

    async def load_students(self) -> bool:
        return await self.store.refresh("students", self._fetch_students)

    async def load_modules(self) -> bool:
        return await self.store.refresh("modules", self._fetch_modules)

    async def load_barangays(self) -> bool:
        return await self.store.refresh("barangays", self._fetch_barangays)

    async def load_progress(self, student_id: str) -> bool:
        async def fetch() -> list[Progress]:
            return await self._with_fallback(
                f"progress:{student_id}",
                lambda: self.gateway.fetch_progress(student_id),
                lambda: [p for p in fallback_data.fallback_progress() if p.student_id == student_id],
            )

        return await self.store.refresh("progress", fetch, scope=student_id)

    async def load(self) -> dict[str, bool]:
        """Load every shared collection; progress is loaded per student."""
        return {
            "students": await self.load_students(),
            "modules": await self.load_modules(),
            "barangays": await self.load_barangays(),
        }

    # -- views -------------------------------------------------------------------

    def view(self, actor: Actor, lrn: str | None = None, **kwargs) -> StudentProgressView:
        return StudentProgressView(self.store, actor, lrn=lrn, **kwargs)

    async def close(self) -> None:
        await self.resolver.drain()


def get_workspace() -> Workspace:
    """Process-wide workspace singleton."""
    global _workspace
    if _workspace is None:
        _workspace = Workspace(
            build_gateway(),
            merge_bundled_modules=not get_settings().use_fallback_data,
        )
    return _workspace
