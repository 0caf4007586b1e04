"""Student, barangay and progress-activity endpoints.

Every route reads the signed-in actor from the session cookies (see
:class:`services.middleware.SessionCookieMiddleware`) and works against the
shared :class:`Workspace`.  Responses use the ``{success, data}`` envelope.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from api.deps import Workspace, get_workspace, require_actor
from models.base import CamelModel
from models.entities import Activity, Actor
from models.mutations import (
    NEW_ACTIVITY_INDEX,
    StudentDraft,
    UpdateActivityAt,
    activity_target_from_index,
)
from services.entity_store import find_progress
from services.export_bundle import build_export_bundle
from services.view_binding import ALL_BARANGAYS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["students"])


class ActivityRequest(CamelModel):
    """Activity form submission; ``activityIndex=-1`` means a new activity."""

    activity: Activity
    activity_index: int = Field(default=NEW_ACTIVITY_INDEX)


def _dump(entity) -> dict:
    return entity.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Barangays / students
# ---------------------------------------------------------------------------

@router.get("/barangays")
async def list_barangays(
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    view = workspace.view(actor)
    try:
        return {"success": True, "data": [_dump(b) for b in view.visible_barangays]}
    finally:
        view.close()


@router.get("/students")
async def list_students(
    barangay: str = Query(default=ALL_BARANGAYS),
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    """Masterlist filtered by barangay (``all`` for no filter)."""
    view = workspace.view(actor)
    try:
        view.select_barangay(barangay)
        return {"success": True, "data": [_dump(s) for s in view.filtered_students]}
    finally:
        view.close()


@router.post("/students", status_code=201)
async def register_student(
    draft: StudentDraft,
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    student = await workspace.coordinator.register_student(draft)
    return {"success": True, "data": _dump(student)}


@router.get("/students/{lrn}")
async def get_student(
    lrn: str,
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    student = await workspace.resolver.resolve_student(lrn)
    return {"success": True, "data": _dump(student)}


@router.patch("/students/{lrn}")
async def update_student(
    lrn: str,
    draft: StudentDraft,
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    student = await workspace.resolver.resolve_student(lrn)
    updated = await workspace.coordinator.update_student(student, draft)
    return {"success": True, "data": _dump(updated)}


@router.delete("/students/{lrn}")
async def delete_student(
    lrn: str,
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    student = await workspace.resolver.resolve_student(lrn)
    await workspace.coordinator.delete_student(student)
    return {"success": True}


@router.get("/students/{lrn}/summary")
async def student_summary(
    lrn: str,
    barangay: str = Query(default=ALL_BARANGAYS),
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    """Everything the progress page renders for one student."""
    student = await workspace.resolver.resolve_student(lrn)
    await workspace.load_progress(student.lrn)

    view = workspace.view(actor, lrn=student.lrn)
    try:
        view.select_barangay(barangay)
        bundle = build_export_bundle(view, student=student)
        nav = view.navigation
        neighbours = nav.filtered_students
        return {
            "success": True,
            "data": {
                "student": _dump(bundle.student),
                "barangayName": bundle.barangay_name,
                "modules": [
                    {
                        "moduleId": row.module_id,
                        "title": row.title,
                        "activityCount": row.activity_count,
                        "score": row.score,
                        "total": row.total,
                        "percentage": row.percentage,
                    }
                    for row in bundle.summaries()
                ],
                "progress": [_dump(p) for p in bundle.progress],
                "navigation": {
                    "currentIndex": nav.current_index,
                    "hasPrevious": nav.has_previous,
                    "hasNext": nav.has_next,
                    "previousLrn": neighbours[nav.current_index - 1].lrn if nav.has_previous else None,
                    "nextLrn": neighbours[nav.current_index + 1].lrn if nav.has_next else None,
                },
            },
        }
    finally:
        view.close()


# ---------------------------------------------------------------------------
# Progress activities
# ---------------------------------------------------------------------------

def _progress_response(workspace: Workspace, lrn: str, module_id: str) -> dict:
    record = find_progress(workspace.store.state, lrn, module_id)
    return {"success": True, "data": _dump(record) if record else None}


@router.post("/students/{lrn}/modules/{module_id}/activities", status_code=201)
async def save_activity(
    lrn: str,
    module_id: str,
    body: ActivityRequest,
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    """Add an activity, or edit one when ``activityIndex`` is a real index."""
    student = await workspace.resolver.resolve_student(lrn)
    await workspace.load_progress(student.lrn)
    target = activity_target_from_index(body.activity_index)
    await workspace.coordinator.save_activity(student, module_id, target, body.activity)
    return _progress_response(workspace, student.lrn, module_id)


@router.put("/students/{lrn}/modules/{module_id}/activities/{index}")
async def update_activity(
    lrn: str,
    module_id: str,
    index: int,
    activity: Activity,
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    student = await workspace.resolver.resolve_student(lrn)
    await workspace.load_progress(student.lrn)
    await workspace.coordinator.save_activity(student, module_id, UpdateActivityAt(index), activity)
    return _progress_response(workspace, student.lrn, module_id)


@router.delete("/students/{lrn}/modules/{module_id}/activities/{index}")
async def delete_activity(
    lrn: str,
    module_id: str,
    index: int,
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    student = await workspace.resolver.resolve_student(lrn)
    await workspace.load_progress(student.lrn)
    await workspace.coordinator.delete_activity(student, module_id, index)
    return _progress_response(workspace, student.lrn, module_id)
