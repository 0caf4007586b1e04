"""Adapter for the progress API → canonical Progress.

API endpoints handled:
- GET    /progress?studentId=...                                → list[Progress]
- POST   /progress {studentId, moduleId, barangayId, activities}
- PATCH  /progress {studentId, moduleId, activity, action: "add"}
- PATCH  /progress {studentId, moduleId, activityIndex, activity}
- DELETE /progress {studentId, moduleId, activityIndex}
"""

from __future__ import annotations

import logging
from typing import Any

from adapters.normalize import normalize_progress_records, unwrap_data
from models.entities import Activity, Progress
from services.api_client import ProgressApiClient

logger = logging.getLogger(__name__)


def _activity_body(activity: Activity) -> dict[str, Any]:
    return activity.model_dump(by_alias=True, mode="json")


async def fetch_progress(client: ProgressApiClient, student_id: str) -> list[Progress]:
    """Fetch every progress record of one student.

    GET /progress?studentId={lrn}
    """
    items = unwrap_data(await client.get("/progress", params={"studentId": student_id}))
    if not isinstance(items, list):
        logger.warning("fetch_progress: expected list, got %s", type(items))
        return []
    # Older deployments ignore the query and return every record.
    return [p for p in normalize_progress_records(items) if p.student_id == student_id]


async def create_progress(client: ProgressApiClient, record: Progress) -> None:
    """POST /progress"""
    body = record.model_dump(by_alias=True, mode="json", exclude_none=True)
    unwrap_data(await client.post("/progress", json_body=body))


async def add_activity(
    client: ProgressApiClient, student_id: str, module_id: str, activity: Activity
) -> None:
    """Append to an existing record — the ``add`` variant of the update call.

    PATCH /progress
    """
    unwrap_data(await client.patch("/progress", json_body={
        "studentId": student_id,
        "moduleId": module_id,
        "activity": _activity_body(activity),
        "action": "add",
    }))


async def update_progress(
    client: ProgressApiClient,
    student_id: str,
    module_id: str,
    activity_index: int,
    activity: Activity,
) -> None:
    """PATCH /progress"""
    unwrap_data(await client.patch("/progress", json_body={
        "studentId": student_id,
        "moduleId": module_id,
        "activityIndex": activity_index,
        "activity": _activity_body(activity),
    }))


async def delete_progress(
    client: ProgressApiClient, student_id: str, module_id: str, activity_index: int
) -> None:
    """DELETE /progress"""
    unwrap_data(await client.delete("/progress", json_body={
        "studentId": student_id,
        "moduleId": module_id,
        "activityIndex": activity_index,
    }))
