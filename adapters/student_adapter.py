"""Adapter for the student and barangay APIs → canonical Student / Barangay.

API endpoints handled:
- GET /students   → list[Student]
- GET /barangays  → list[Barangay] (sorted by name upstream)
- POST / PATCH / DELETE /students → registration, edit, removal
"""

from __future__ import annotations

import logging

from adapters.normalize import (
    normalize_barangays,
    normalize_student,
    normalize_students,
    unwrap_data,
)
from models.entities import Barangay, Student
from models.mutations import StudentDraft
from services.api_client import ProgressApiClient

logger = logging.getLogger(__name__)


async def fetch_students(client: ProgressApiClient) -> list[Student]:
    """Fetch the full student masterlist.

    GET /students
    """
    items = unwrap_data(await client.get("/students"))
    if not isinstance(items, list):
        logger.warning("fetch_students: expected list, got %s", type(items))
        return []
    return normalize_students(items)


async def fetch_barangays(client: ProgressApiClient) -> list[Barangay]:
    """Fetch all barangays.

    GET /barangays
    """
    items = unwrap_data(await client.get("/barangays"))
    if not isinstance(items, list):
        logger.warning("fetch_barangays: expected list, got %s", type(items))
        return []
    return normalize_barangays(items)


async def create_student(client: ProgressApiClient, draft: StudentDraft) -> Student:
    """Register a student.  A duplicate LRN surfaces as IntegrityViolation.

    POST /students
    """
    payload = draft.model_dump(by_alias=True)
    data = unwrap_data(await client.post("/students", json_body=payload))
    return normalize_student({**payload, **(data if isinstance(data, dict) else {})})


async def update_student(client: ProgressApiClient, student_id: str, draft: StudentDraft) -> Student:
    """PATCH /students"""
    payload = {"_id": student_id, **draft.model_dump(by_alias=True)}
    data = unwrap_data(await client.patch("/students", json_body=payload))
    return normalize_student({**payload, **(data if isinstance(data, dict) else {})})


async def delete_student(client: ProgressApiClient, student_id: str) -> None:
    """DELETE /students"""
    unwrap_data(await client.delete("/students", json_body={"_id": student_id}))
