"""Remote Data Gateway — the single seam between the sync core and storage.

:class:`RemoteGateway` delegates to the adapters over the shared
:class:`ProgressApiClient`.  :class:`OfflineGateway` implements the same
contract in memory, seeded from the bundled fallback dataset; it backs
``USE_FALLBACK_DATA=true`` deployments and the test suite.

Every method either returns the requested / confirmed entity or raises one
of the :mod:`errors` types.
"""

from __future__ import annotations

import logging
from typing import Protocol

from adapters import module_adapter, progress_adapter, student_adapter
from adapters.module_adapter import draft_to_payload
from adapters.normalize import generate_fallback_id, normalize_module, normalize_student
from config.settings import get_settings
from errors import IntegrityViolation, NotFoundError
from models.entities import Activity, Barangay, Module, Progress, Student
from models.mutations import ModuleDraft, StudentDraft
from services import fallback_data
from services.api_client import DUPLICATE_LRN_MESSAGE, ProgressApiClient, get_api_client

logger = logging.getLogger(__name__)


class Gateway(Protocol):
    """Collaborator contract consumed by the store, coordinator and resolver."""

    async def fetch_students(self) -> list[Student]: ...

    async def fetch_modules(self) -> list[Module]: ...

    async def fetch_barangays(self) -> list[Barangay]: ...

    async def fetch_progress(self, student_id: str) -> list[Progress]: ...

    async def create_progress(self, record: Progress) -> None: ...

    async def add_activity(self, student_id: str, module_id: str, activity: Activity) -> None: ...

    async def update_progress(
        self, student_id: str, module_id: str, activity_index: int, activity: Activity
    ) -> None: ...

    async def delete_progress(self, student_id: str, module_id: str, activity_index: int) -> None: ...

    async def create_module(self, draft: ModuleDraft) -> Module: ...

    async def update_module(self, module_id: str, draft: ModuleDraft) -> Module: ...

    async def delete_module(self, module_id: str) -> None: ...

    async def create_student(self, draft: StudentDraft) -> Student: ...

    async def update_student(self, student_id: str, draft: StudentDraft) -> Student: ...

    async def delete_student(self, student_id: str) -> None: ...


# ---------------------------------------------------------------------------
# Remote
# ---------------------------------------------------------------------------

class RemoteGateway:
    """Gateway backed by the upstream progress API."""

    def __init__(self, client: ProgressApiClient) -> None:
        self._client = client

    async def fetch_students(self) -> list[Student]:
        return await student_adapter.fetch_students(self._client)

    async def fetch_modules(self) -> list[Module]:
        return await module_adapter.fetch_modules(self._client)

    async def fetch_barangays(self) -> list[Barangay]:
        return await student_adapter.fetch_barangays(self._client)

    async def fetch_progress(self, student_id: str) -> list[Progress]:
        return await progress_adapter.fetch_progress(self._client, student_id)

    async def create_progress(self, record: Progress) -> None:
        await progress_adapter.create_progress(self._client, record)

    async def add_activity(self, student_id: str, module_id: str, activity: Activity) -> None:
        await progress_adapter.add_activity(self._client, student_id, module_id, activity)

    async def update_progress(
        self, student_id: str, module_id: str, activity_index: int, activity: Activity
    ) -> None:
        await progress_adapter.update_progress(
            self._client, student_id, module_id, activity_index, activity
        )

    async def delete_progress(self, student_id: str, module_id: str, activity_index: int) -> None:
        await progress_adapter.delete_progress(self._client, student_id, module_id, activity_index)

    async def create_module(self, draft: ModuleDraft) -> Module:
        return await module_adapter.create_module(self._client, draft)

    async def update_module(self, module_id: str, draft: ModuleDraft) -> Module:
        return await module_adapter.update_module(self._client, module_id, draft)

    async def delete_module(self, module_id: str) -> None:
        await module_adapter.delete_module(self._client, module_id)

    async def create_student(self, draft: StudentDraft) -> Student:
        return await student_adapter.create_student(self._client, draft)

    async def update_student(self, student_id: str, draft: StudentDraft) -> Student:
        return await student_adapter.update_student(self._client, student_id, draft)

    async def delete_student(self, student_id: str) -> None:
        await student_adapter.delete_student(self._client, student_id)


# ---------------------------------------------------------------------------
# Offline
# ---------------------------------------------------------------------------

class OfflineGateway:
    """In-memory gateway seeded from the bundled dataset.

    Mirrors the upstream semantics the sync core relies on: at most one
    progress record per (student, module), appending to a missing record
    creates it, deleting the last activity keeps the record, module PATCH
    upserts, and LRNs are unique.
    """

    def __init__(
        self,
        students: list[Student] | None = None,
        modules: list[Module] | None = None,
        progress: list[Progress] | None = None,
        barangays: list[Barangay] | None = None,
    ) -> None:
        self._students: list[Student] = list(
            fallback_data.fallback_students() if students is None else students
        )
        self._modules: dict[str, Module] = {
            m.id: m for m in (fallback_data.fallback_modules() if modules is None else modules)
        }
        self._progress: list[Progress] = list(
            fallback_data.fallback_progress() if progress is None else progress
        )
        self._barangays: list[Barangay] = list(
            fallback_data.fallback_barangays() if barangays is None else barangays
        )

    # -- reads -----------------------------------------------------------------

    async def fetch_students(self) -> list[Student]:
        return list(self._students)

    async def fetch_modules(self) -> list[Module]:
        return list(self._modules.values())

    async def fetch_barangays(self) -> list[Barangay]:
        return sorted(self._barangays, key=lambda b: b.name)

    async def fetch_progress(self, student_id: str) -> list[Progress]:
        return [p for p in self._progress if p.student_id == student_id]

    # -- progress --------------------------------------------------------------

    def _find_progress(self, student_id: str, module_id: str) -> int | None:
        for position, record in enumerate(self._progress):
            if record.key == (student_id, module_id):
                return position
        return None

    def _require_progress(self, student_id: str, module_id: str, activity_index: int) -> int:
        position = self._find_progress(student_id, module_id)
        if position is None:
            raise NotFoundError("progress", f"{student_id}/{module_id}")
        if not 0 <= activity_index < len(self._progress[position].activities):
            raise NotFoundError("activity", str(activity_index))
        return position

    async def create_progress(self, record: Progress) -> None:
        if self._find_progress(record.student_id, record.module_id) is not None:
            raise IntegrityViolation(
                "A progress record already exists for this module.", field="moduleId"
            )
        self._progress.append(record.model_copy(update={"id": generate_fallback_id("progress")}))

    async def add_activity(self, student_id: str, module_id: str, activity: Activity) -> None:
        position = self._find_progress(student_id, module_id)
        if position is None:
            self._progress.append(Progress(
                id=generate_fallback_id("progress"),
                student_id=student_id,
                module_id=module_id,
                activities=(activity,),
            ))
            return
        record = self._progress[position]
        self._progress[position] = record.model_copy(
            update={"activities": (*record.activities, activity)}
        )

    async def update_progress(
        self, student_id: str, module_id: str, activity_index: int, activity: Activity
    ) -> None:
        position = self._require_progress(student_id, module_id, activity_index)
        record = self._progress[position]
        activities = list(record.activities)
        activities[activity_index] = activity
        self._progress[position] = record.model_copy(update={"activities": tuple(activities)})

    async def delete_progress(self, student_id: str, module_id: str, activity_index: int) -> None:
        position = self._require_progress(student_id, module_id, activity_index)
        record = self._progress[position]
        activities = record.activities[:activity_index] + record.activities[activity_index + 1:]
        self._progress[position] = record.model_copy(update={"activities": activities})

    # -- modules ---------------------------------------------------------------

    async def create_module(self, draft: ModuleDraft) -> Module:
        module = normalize_module({
            **draft_to_payload(draft),
            "_id": generate_fallback_id("module"),
        })
        self._modules[module.id] = module
        return module

    async def update_module(self, module_id: str, draft: ModuleDraft) -> Module:
        module = normalize_module({**draft_to_payload(draft), "_id": module_id})
        self._modules[module_id] = module
        return module

    async def delete_module(self, module_id: str) -> None:
        if self._modules.pop(module_id, None) is None:
            raise NotFoundError("module", module_id, message="Module not found")

    # -- students --------------------------------------------------------------

    async def create_student(self, draft: StudentDraft) -> Student:
        if any(s.lrn == draft.lrn for s in self._students):
            raise IntegrityViolation(DUPLICATE_LRN_MESSAGE, field="lrn")
        student = normalize_student({
            **draft.model_dump(by_alias=True),
            "_id": generate_fallback_id("student"),
        })
        self._students.append(student)
        return student

    async def update_student(self, student_id: str, draft: StudentDraft) -> Student:
        for position, existing in enumerate(self._students):
            if existing.id == student_id:
                student = normalize_student({**draft.model_dump(by_alias=True), "_id": student_id})
                self._students[position] = student
                return student
        raise NotFoundError("student", student_id)

    async def delete_student(self, student_id: str) -> None:
        remaining = [s for s in self._students if s.id != student_id]
        if len(remaining) == len(self._students):
            raise NotFoundError("student", student_id)
        self._students = remaining


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def build_gateway() -> Gateway:
    """Pick the gateway implementation from settings."""
    if get_settings().use_fallback_data:
        logger.info("Using offline gateway seeded from bundled fallback data")
        return OfflineGateway()
    return RemoteGateway(get_api_client())
