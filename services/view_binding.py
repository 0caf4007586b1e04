"""View-Binding Adapter — memoized projections over the Entity Store.

A :class:`StudentProgressView` backs the per-student progress page: it
subscribes to the store on construction, derives the filtered / sorted
collections the page renders, and exposes navigation and selection
callbacks.  Every projection is a :class:`Projection` that recomputes only
when one of its declared dependencies changes, and every empty result is
the shared :data:`EMPTY` tuple.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from adapters.normalize import filter_modules_for_program
from config.settings import get_settings
from models.entities import Actor, Barangay, Module, Progress, Student
from services.entity_store import EMPTY, EntityStore, StoreState
from services.policy import visible_barangays, visible_modules

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALL_BARANGAYS = "all"


def _same(a: Any, b: Any) -> bool:
    return a is b or a == b


class Projection(Generic[T]):
    """Memoized derivation: ``selector(*deps())`` cached on its last deps.

    Dependencies are compared pairwise by identity, then shallow equality.
    """

    def __init__(self, selector: Callable[..., T], deps: Callable[[], Sequence[Any]]) -> None:
        self._selector = selector
        self._deps = deps
        self._last_deps: tuple | None = None
        self._value: T | None = None
        self.computations = 0

    def get(self) -> T:
        current = tuple(self._deps())
        if self._last_deps is not None and len(current) == len(self._last_deps) and all(
            _same(a, b) for a, b in zip(current, self._last_deps)
        ):
            return self._value  # type: ignore[return-value]
        self._value = self._selector(*current)
        self._last_deps = current
        self.computations += 1
        return self._value


def _tuple_or_empty(items: Sequence[T]) -> tuple[T, ...]:
    return tuple(items) if items else EMPTY


@dataclass(frozen=True)
class NavigationInfo:
    filtered_students: tuple[Student, ...]
    current_index: int
    has_previous: bool
    has_next: bool


def derive_navigation(students: tuple[Student, ...], current_lrn: str | None) -> NavigationInfo:
    """Prev/next availability of *current_lrn* within an ordered student list.

    A student outside the list has neither neighbour.
    """
    index = next((i for i, s in enumerate(students) if s.lrn == current_lrn), -1)
    return NavigationInfo(
        filtered_students=students,
        current_index=index,
        has_previous=index > 0,
        has_next=0 <= index < len(students) - 1,
    )


class StudentProgressView:
    """Per-view façade over the store for one signed-in actor.

    ``navigate`` is called with the target LRN when prev/next moves to
    another student; ``on_change`` is called after each store update.
    """

    def __init__(
        self,
        store: EntityStore,
        actor: Actor,
        *,
        lrn: str | None = None,
        navigate: Callable[[str], None] | None = None,
        on_change: Callable[[StudentProgressView], None] | None = None,
        cooldown: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._actor = actor
        self._navigate = navigate
        self._on_change = on_change
        self._cooldown = get_settings().navigation_cooldown if cooldown is None else cooldown
        self._clock = clock
        self._all_programs = get_settings().all_programs_level
        self._cooldown_until = 0.0

        self.current_lrn = lrn
        self.selected_barangay = ALL_BARANGAYS
        self.selected_module_id: str | None = None

        self._filtered_students = Projection(
            self._select_students,
            lambda: (store.state.students.data, self._effective_barangay()),
        )
        self._visible_barangays = Projection(
            lambda barangays, actor: _tuple_or_empty(visible_barangays(actor, barangays)),
            lambda: (store.state.barangays.data, self._actor),
        )
        self._student = Projection(
            lambda students, lrn: next((s for s in students if s.lrn == lrn), None),
            lambda: (store.state.students.data, self.current_lrn),
        )
        self._student_progress = Projection(
            lambda records, lrn: _tuple_or_empty([p for p in records if p.student_id == lrn]),
            lambda: (store.state.progress.data, self.current_lrn),
        )
        self._available_modules = Projection(
            self._select_modules,
            lambda: (store.state.modules.data, self._program(), self._actor),
        )
        self._navigation = Projection(
            derive_navigation,
            lambda: (self.filtered_students, self.current_lrn),
        )

        self._sync_selected_module()
        self._unsubscribe = store.subscribe(self._handle_store_change)

    # -- selectors ---------------------------------------------------------------

    @staticmethod
    def _select_students(students: tuple[Student, ...], barangay: str) -> tuple[Student, ...]:
        if barangay == ALL_BARANGAYS:
            return students if students else EMPTY
        return _tuple_or_empty([s for s in students if s.barangay_id == barangay])

    def _select_modules(self, modules: tuple[Module, ...], program: str, actor: Actor) -> tuple[Module, ...]:
        for_program = filter_modules_for_program(list(modules), program, self._all_programs)
        return _tuple_or_empty(visible_modules(actor, for_program))

    def _effective_barangay(self) -> str:
        if self._actor.is_scoped:
            return self._actor.assigned_barangay_id or ALL_BARANGAYS
        return self.selected_barangay

    def _program(self) -> str:
        student = self.student
        return student.program if student else ""

    # -- projections -------------------------------------------------------------

    @property
    def filtered_students(self) -> tuple[Student, ...]:
        return self._filtered_students.get()

    @property
    def visible_barangays(self) -> tuple[Barangay, ...]:
        return self._visible_barangays.get()

    @property
    def student(self) -> Student | None:
        return self._student.get()

    @property
    def student_progress(self) -> tuple[Progress, ...]:
        return self._student_progress.get()

    @property
    def available_modules(self) -> tuple[Module, ...]:
        return self._available_modules.get()

    @property
    def selected_module(self) -> Module | None:
        available = self.available_modules
        for module in available:
            if module.id == self.selected_module_id:
                return module
        return available[0] if available else None

    @property
    def selected_module_progress(self) -> Progress | None:
        module = self.selected_module
        if module is None:
            return None
        return next((p for p in self.student_progress if p.module_id == module.id), None)

    @property
    def navigation(self) -> NavigationInfo:
        return self._navigation.get()

    @property
    def actor(self) -> Actor:
        return self._actor

    @property
    def state(self) -> StoreState:
        return self._store.state

    # -- callbacks ---------------------------------------------------------------

    def select_barangay(self, barangay_id: str) -> None:
        self.selected_barangay = barangay_id or ALL_BARANGAYS

    def select_module(self, module_id: str) -> None:
        self.selected_module_id = module_id

    def go_previous(self) -> bool:
        return self._step(-1)

    def go_next(self) -> bool:
        return self._step(1)

    def _step(self, offset: int) -> bool:
        if self._clock() < self._cooldown_until:
            return False
        nav = self.navigation
        allowed = nav.has_next if offset > 0 else nav.has_previous
        if not allowed:
            return False
        target = nav.filtered_students[nav.current_index + offset]
        self._cooldown_until = self._clock() + self._cooldown
        self.current_lrn = target.lrn
        self._sync_selected_module()
        if self._navigate is not None:
            self._navigate(target.lrn)
        return True

    # -- lifecycle ---------------------------------------------------------------

    def _sync_selected_module(self) -> None:
        available = self.available_modules
        if any(m.id == self.selected_module_id for m in available):
            return
        self.selected_module_id = available[0].id if available else None

    def _handle_store_change(self, state: StoreState) -> None:
        self._sync_selected_module()
        if self._on_change is not None:
            self._on_change(self)

    def close(self) -> None:
        self._unsubscribe()
