"""Entity Store — canonical in-memory collections with observer notification.

State is an immutable :class:`StoreState` snapshot.  Every change goes
through :meth:`EntityStore.dispatch`, which runs the pure :func:`reduce`
function, swaps in the new snapshot and then notifies observers
synchronously, in registration order.  Observers must not dispatch from
inside a notification; re-entrancy is not guarded.

Per collection the state machine is ``{data, loading}``:

- fetch start   → ``loading=True``
- fetch success → ``data`` replaced wholesale, ``loading=False``
- fetch failure → ``loading=False``, ``data`` untouched (stale but available)

A progress fetch scoped to one student replaces only that student's records.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Any, Literal, Union

from errors import ProgressError
from models.entities import Module, Progress

logger = logging.getLogger(__name__)

CollectionName = Literal["students", "modules", "progress", "barangays"]
COLLECTIONS: tuple[CollectionName, ...] = ("students", "modules", "progress", "barangays")

# Shared empty result; projections return this instance for every empty collection.
EMPTY: tuple = ()


@dataclass(frozen=True)
class CollectionState:
    data: tuple = EMPTY
    loading: bool = False
    error: str = ""


@dataclass(frozen=True)
class StoreState:
    students: CollectionState = field(default_factory=CollectionState)
    modules: CollectionState = field(default_factory=CollectionState)
    progress: CollectionState = field(default_factory=CollectionState)
    barangays: CollectionState = field(default_factory=CollectionState)

    def collection(self, name: CollectionName) -> CollectionState:
        return getattr(self, name)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FetchStarted:
    collection: CollectionName


@dataclass(frozen=True)
class FetchSucceeded:
    collection: CollectionName
    data: tuple
    scope: str | None = None


@dataclass(frozen=True)
class FetchFailed:
    collection: CollectionName
    error: str = ""


@dataclass(frozen=True)
class ModuleMerged:
    module: Module


@dataclass(frozen=True)
class ModuleRemoved:
    module_id: str


Action = Union[FetchStarted, FetchSucceeded, FetchFailed, ModuleMerged, ModuleRemoved]
Observer = Callable[[StoreState], None]


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def _as_tuple(items: Iterable[Any]) -> tuple:
    items = tuple(items)
    return items if items else EMPTY


def _replace_scoped_progress(current: tuple, incoming: tuple, student_id: str) -> tuple:
    kept = [p for p in current if p.student_id != student_id]
    return _as_tuple([*kept, *(p for p in incoming if p.student_id == student_id)])


def _merge_module(current: tuple, module: Module) -> tuple:
    for position, existing in enumerate(current):
        if existing.id == module.id:
            return current[:position] + (module,) + current[position + 1:]
    return (*current, module)


def reduce(state: StoreState, action: Action) -> StoreState:
    """Return the next snapshot.  Never mutates *state*."""
    if isinstance(action, FetchStarted):
        slot = state.collection(action.collection)
        return replace(state, **{action.collection: replace(slot, loading=True)})

    if isinstance(action, FetchSucceeded):
        slot = state.collection(action.collection)
        if action.collection == "progress" and action.scope is not None:
            data = _replace_scoped_progress(slot.data, action.data, action.scope)
        else:
            data = _as_tuple(action.data)
        return replace(state, **{action.collection: CollectionState(data=data)})

    if isinstance(action, FetchFailed):
        slot = state.collection(action.collection)
        return replace(state, **{action.collection: replace(slot, loading=False, error=action.error)})

    if isinstance(action, ModuleMerged):
        modules = replace(state.modules, data=_merge_module(state.modules.data, action.module))
        return replace(state, modules=modules)

    if isinstance(action, ModuleRemoved):
        remaining = _as_tuple(m for m in state.modules.data if m.id != action.module_id)
        return replace(state, modules=replace(state.modules, data=remaining))

    raise TypeError(f"Unknown store action: {action!r}")


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class EntityStore:
    """Observable holder of the current :class:`StoreState`."""

    def __init__(self, initial: StoreState | None = None) -> None:
        self._state = initial or StoreState()
        self._observers: list[Observer] = []

    @property
    def state(self) -> StoreState:
        return self._state

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer*; returns a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def dispatch(self, action: Action) -> StoreState:
        self._state = reduce(self._state, action)
        snapshot = self._state
        for observer in list(self._observers):
            observer(snapshot)
        return snapshot

    async def refresh(
        self,
        collection: CollectionName,
        loader: Callable[[], Awaitable[Iterable[Any]]],
        scope: str | None = None,
    ) -> bool:
        """Load *collection* through *loader*; ``False`` when the fetch failed.

        A failure leaves the previous data in place.
        """
        self.dispatch(FetchStarted(collection))
        try:
            data = await loader()
        except ProgressError as exc:
            logger.warning("Refreshing %s failed, keeping cached data: %s", collection, exc)
            self.dispatch(FetchFailed(collection, str(exc)))
            return False
        except Exception as exc:
            self.dispatch(FetchFailed(collection, str(exc)))
            raise
        self.dispatch(FetchSucceeded(collection, tuple(data), scope))
        logger.info("Refreshed %s (%d records)", collection, len(self._state.collection(collection).data))
        return True


# ---------------------------------------------------------------------------
# Selectors
# ---------------------------------------------------------------------------

def progress_for_student(state: StoreState, student_id: str) -> tuple[Progress, ...]:
    return _as_tuple(p for p in state.progress.data if p.student_id == student_id)


def find_progress(state: StoreState, student_id: str, module_id: str) -> Progress | None:
    for record in state.progress.data:
        if record.key == (student_id, module_id):
            return record
    return None
