"""Tests for services/mutation_coordinator.py — validate → authorize → call → reconcile."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from adapters.normalize import normalize_module, normalize_student
from errors import (
    AuthorizationError,
    IntegrityViolation,
    NotFoundError,
    TransientNetworkError,
    ValidationError,
)
from models.entities import Activity, Actor, Role
from models.mutations import (
    ActivityTemplateDraft,
    CreateActivity,
    ModuleDraft,
    StudentDraft,
    UpdateActivityAt,
    activity_target_from_index,
)
from services.entity_store import EntityStore, FetchSucceeded, find_progress
from services.gateway import OfflineGateway
from services.mutation_coordinator import MutationCoordinator, Notifier, validate_module_draft

STUDENT = normalize_student({"_id": "stu-12345", "lrn": "12345", "name": "Cruz, Ana", "barangayId": "b1"})
M1 = normalize_module({"_id": "M1", "title": "Module One", "levels": ["A&E Secondary"]})
M_B1 = normalize_module({"_id": "M-b1", "title": "Owned by b1", "levels": ["A&E Secondary"], "barangayId": "b1"})
M_B2 = normalize_module({"_id": "M-b2", "title": "Owned by b2", "levels": ["A&E Secondary"], "barangayId": "b2"})


def _draft(**overrides):
    values = {
        "title": "Numeracy",
        "levels": ["A&E Elementary"],
        "predefined_activities": [ActivityTemplateDraft(name="Quiz", type="Quiz", total=10)],
    }
    values.update(overrides)
    return ModuleDraft(**values)


@pytest.fixture
def offline() -> OfflineGateway:
    return OfflineGateway(students=[STUDENT], modules=[M1, M_B1, M_B2], progress=[], barangays=[])


@pytest.fixture
async def coordinator(offline) -> MutationCoordinator:
    store = EntityStore()
    store.dispatch(FetchSucceeded("students", (STUDENT,)))
    store.dispatch(FetchSucceeded("modules", (M1, M_B1, M_B2)))
    return MutationCoordinator(store, offline, Notifier(ttl=60))


def _store(coordinator) -> EntityStore:
    return coordinator._store


# ---------------------------------------------------------------------------
# Progress activities
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_add_with_sentinel_creates_progress_record(coordinator):
    activity = Activity(type="Quiz", name="Quiz 1", score=8, total=10)

    await coordinator.save_activity(STUDENT, "M1", activity_target_from_index(-1), activity)

    record = find_progress(_store(coordinator).state, "12345", "M1")
    assert record is not None
    assert record.activities == (activity,)
    assert coordinator.notifier.current.message == "Activity added successfully"


@pytest.mark.asyncio
async def test_add_appends_when_record_exists(coordinator, quiz_activity):
    # A second create_progress for the same pair would raise IntegrityViolation.
    await coordinator.save_activity(STUDENT, "M1", CreateActivity(), quiz_activity)
    await coordinator.save_activity(STUDENT, "M1", CreateActivity(), quiz_activity)

    record = find_progress(_store(coordinator).state, "12345", "M1")
    assert len(record.activities) == 2


@pytest.mark.asyncio
async def test_update_activity_in_place(coordinator, quiz_activity):
    await coordinator.save_activity(STUDENT, "M1", CreateActivity(), quiz_activity)
    revised = quiz_activity.model_copy(update={"score": 10})

    await coordinator.save_activity(STUDENT, "M1", UpdateActivityAt(0), revised)

    record = find_progress(_store(coordinator).state, "12345", "M1")
    assert record.activities == (revised,)


@pytest.mark.asyncio
async def test_update_out_of_range_never_calls_gateway(coordinator, offline, quiz_activity):
    await coordinator.save_activity(STUDENT, "M1", CreateActivity(), quiz_activity)
    offline.update_progress = AsyncMock()

    with pytest.raises(ValidationError) as exc_info:
        await coordinator.save_activity(STUDENT, "M1", UpdateActivityAt(3), quiz_activity)

    assert exc_info.value.field == "activity_index"
    offline.update_progress.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_without_record_is_contract_violation(coordinator, quiz_activity):
    with pytest.raises(ValidationError):
        await coordinator.save_activity(STUDENT, "M1", UpdateActivityAt(0), quiz_activity)


@pytest.mark.asyncio
async def test_deleting_only_activity_keeps_empty_record(coordinator, quiz_activity):
    await coordinator.save_activity(STUDENT, "M1", CreateActivity(), quiz_activity)

    await coordinator.delete_activity(STUDENT, "M1", 0)

    record = find_progress(_store(coordinator).state, "12345", "M1")
    assert record is not None
    assert record.activities == ()


@pytest.mark.asyncio
async def test_progress_failure_leaves_store_untouched(coordinator, offline, quiz_activity):
    offline.create_progress = AsyncMock(side_effect=TransientNetworkError("down"))
    before = _store(coordinator).state

    with pytest.raises(TransientNetworkError):
        await coordinator.save_activity(STUDENT, "M1", CreateActivity(), quiz_activity)

    assert _store(coordinator).state is before
    assert coordinator.notifier.current.kind == "error"


# ---------------------------------------------------------------------------
# Module validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("overrides, field", [
    ({"title": "   "}, "title"),
    ({"levels": []}, "levels"),
    ({"levels": ["", "  "]}, "levels"),
    ({"predefined_activities": [ActivityTemplateDraft(name="", type="Quiz", total=5)]},
     "predefinedActivities[0].name"),
    ({"predefined_activities": [ActivityTemplateDraft(name="X", type="Essay", total=5)]},
     "predefinedActivities[0].type"),
    ({"predefined_activities": [ActivityTemplateDraft(name="X", type="Quiz", total=0)]},
     "predefinedActivities[0].total"),
    ({"predefined_activities": [ActivityTemplateDraft(name="X", type="Quiz")]},
     "predefinedActivities[0].total"),
])
def test_validate_module_draft_rejects(overrides, field):
    with pytest.raises(ValidationError) as exc_info:
        validate_module_draft(_draft(**overrides))
    assert exc_info.value.field == field


def test_validate_module_draft_cleans_values():
    draft = validate_module_draft(_draft(
        title="  Numeracy ",
        levels=[" A&E Elementary ", ""],
        predefined_activities=[ActivityTemplateDraft(name=" Quiz ", type="quiz", total=10)],
    ))
    assert draft.title == "Numeracy"
    assert draft.levels == ["A&E Elementary"]
    assert draft.predefined_activities[0].name == "Quiz"
    assert draft.predefined_activities[0].type == "Quiz"


# ---------------------------------------------------------------------------
# Module mutations
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_module_merges_confirmed_record(coordinator, master_admin):
    module = await coordinator.create_module(master_admin, _draft())
    ids = [m.id for m in _store(coordinator).state.modules.data]
    assert ids[-1] == module.id
    assert module.title == "Numeracy"


@pytest.mark.asyncio
async def test_failed_create_module_leaves_list_reference_equal(coordinator, offline, master_admin):
    offline.create_module = AsyncMock(side_effect=TransientNetworkError("Network error"))
    before = _store(coordinator).state.modules.data

    with pytest.raises(TransientNetworkError):
        await coordinator.create_module(master_admin, _draft())

    assert _store(coordinator).state.modules.data is before
    assert coordinator.notifier.current.message == "Network error"


@pytest.mark.asyncio
async def test_invalid_draft_blocks_network_call(coordinator, offline, master_admin):
    offline.create_module = AsyncMock()
    with pytest.raises(ValidationError):
        await coordinator.create_module(master_admin, _draft(title=""))
    offline.create_module.assert_not_awaited()


@pytest.mark.asyncio
async def test_scoped_admin_creation_stamps_barangay(coordinator):
    admin = Actor(role=Role.ADMIN, assigned_barangay_id="b1")
    module = await coordinator.create_module(admin, _draft(barangay_id="b2"))
    assert module.barangay_id == "b1"


@pytest.mark.asyncio
async def test_scoped_admin_cannot_update_other_barangay(coordinator, offline):
    admin = Actor(role=Role.ADMIN, assigned_barangay_id="b1")
    offline.update_module = AsyncMock()

    with pytest.raises(AuthorizationError) as exc_info:
        await coordinator.update_module(admin, "M-b2", _draft())

    assert exc_info.value.target_barangay_id == "b2"
    offline.update_module.assert_not_awaited()


@pytest.mark.asyncio
async def test_scoped_admin_may_update_global_and_own_modules(coordinator):
    admin = Actor(role=Role.ADMIN, assigned_barangay_id="b1")
    updated = await coordinator.update_module(admin, "M1", _draft(title="Global rev"))
    assert updated.title == "Global rev"
    owned = await coordinator.update_module(admin, "M-b1", _draft(title="Own rev"))
    assert owned.barangay_id == "b1"

@pytest.mark.asyncio
async def test_update_of_unloaded_module_is_refused(offline):
    coordinator = MutationCoordinator(EntityStore(), offline, Notifier(ttl=60))
    admin = Actor(role=Role.ADMIN, assigned_barangay_id="b1")
    offline.update_module = AsyncMock()

    with pytest.raises(NotFoundError):
        await coordinator.update_module(admin, "M-b2", _draft(title="Overwritten"))

    offline.update_module.assert_not_awaited()


@pytest.mark.asyncio
async def test_denied_update_announces_error(coordinator):
    admin = Actor(role=Role.ADMIN, assigned_barangay_id="b1")
    with pytest.raises(AuthorizationError) as exc_info:
        await coordinator.update_module(admin, "M-b2", _draft())
    assert coordinator.notifier.current.kind == "error"
    assert coordinator.notifier.current.message == exc_info.value.message


@pytest.mark.asyncio
async def test_invalid_draft_announces_error_once(offline):
    changes = []
    coordinator = MutationCoordinator(EntityStore(), offline, Notifier(ttl=60, on_change=changes.append))
    with pytest.raises(ValidationError):
        await coordinator.create_module(Actor(role=Role.MASTER_ADMIN), _draft(title=" "))
    assert [n.message for n in changes] == ["Module title is required"]



@pytest.mark.asyncio
async def test_denied_delete_never_calls_gateway(coordinator, offline):
    admin = Actor(role=Role.ADMIN, assigned_barangay_id="b1")
    offline.delete_module = AsyncMock()
    with pytest.raises(AuthorizationError):
        await coordinator.delete_module(admin, "M-b2")
    offline.delete_module.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_module_removes_from_store(coordinator, master_admin):
    await coordinator.delete_module(master_admin, "M-b2")
    assert "M-b2" not in [m.id for m in _store(coordinator).state.modules.data]


@pytest.mark.asyncio
async def test_delete_unknown_module(coordinator, master_admin):
    with pytest.raises(NotFoundError):
        await coordinator.delete_module(master_admin, "missing")


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_student_refreshes_masterlist(coordinator):
    draft = StudentDraft(lrn="55555", name="Lopez, Rina", barangay_id="b1")
    student = await coordinator.register_student(draft)
    assert student.lrn == "55555"
    assert "55555" in [s.lrn for s in _store(coordinator).state.students.data]


@pytest.mark.asyncio
async def test_register_duplicate_lrn_is_field_error(coordinator):
    with pytest.raises(IntegrityViolation) as exc_info:
        await coordinator.register_student(StudentDraft(lrn="12345", name="Dup"))
    assert exc_info.value.field == "lrn"


@pytest.mark.asyncio
async def test_register_requires_lrn(coordinator):
    with pytest.raises(ValidationError) as exc_info:
        await coordinator.register_student(StudentDraft(lrn="  "))
    assert exc_info.value.field == "lrn"


@pytest.mark.asyncio
async def test_lrn_is_immutable_on_update(coordinator):
    with pytest.raises(ValidationError) as exc_info:
        await coordinator.update_student(STUDENT, StudentDraft(lrn="99999", name="Cruz, Ana"))
    assert exc_info.value.field == "lrn"


@pytest.mark.asyncio
async def test_update_student_keeps_lrn(coordinator):
    updated = await coordinator.update_student(STUDENT, StudentDraft(name="Cruz, Ana Maria"))
    assert updated.lrn == "12345"
    assert updated.name == "Cruz, Ana Maria"


@pytest.mark.asyncio
async def test_delete_student_refreshes(coordinator):
    await coordinator.delete_student(STUDENT)
    assert _store(coordinator).state.students.data == ()


# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_notification_self_clears():
    notifier = Notifier(ttl=0.01)
    notifier.announce("Saved")
    assert notifier.current.message == "Saved"
    await asyncio.sleep(0.05)
    assert notifier.current is None


@pytest.mark.asyncio
async def test_new_notification_replaces_pending_timer():
    on_change = MagicMock()
    notifier = Notifier(ttl=0.1, on_change=on_change)
    notifier.announce("First")
    first_timer = notifier._timer
    await asyncio.sleep(0.05)
    notifier.announce("Second")

    assert first_timer.cancelled()
    await asyncio.sleep(0.07)
    # The first timer would have fired by now; the second is still pending.
    assert notifier.current.message == "Second"
    await asyncio.sleep(0.1)
    assert notifier.current is None
    assert on_change.call_count == 3


@pytest.mark.asyncio
async def test_error_notification_does_not_expire():
    notifier = Notifier(ttl=0.01)
    notifier.announce("Failed", kind="error")
    await asyncio.sleep(0.03)
    assert notifier.current.kind == "error"
