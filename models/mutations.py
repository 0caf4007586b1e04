"""Mutation-side models — form payloads, tagged targets, parse results, notifications."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar, Union

from pydantic import Field

from errors import ValidationError
from models.base import CamelModel

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Activity targets
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CreateActivity:
    """Append a new activity (creating the progress record if needed)."""


@dataclass(frozen=True)
class UpdateActivityAt:
    """Replace the activity at ``index`` of an existing progress record."""

    index: int


ActivityTarget = Union[CreateActivity, UpdateActivityAt]

# Legacy clients mark "new activity" with index -1.
NEW_ACTIVITY_INDEX = -1


def activity_target_from_index(index: int) -> ActivityTarget:
    """Translate a legacy integer index into an :data:`ActivityTarget`."""
    if index == NEW_ACTIVITY_INDEX:
        return CreateActivity()
    if index < 0:
        raise ValidationError(f"Invalid activity index {index}", field="activity_index")
    return UpdateActivityAt(index=index)


# ---------------------------------------------------------------------------
# Module form payload
# ---------------------------------------------------------------------------

class ActivityTemplateDraft(CamelModel):
    """One predefined-activity row as typed into the module form."""

    name: str = ""
    type: str = ""
    total: float | None = None
    description: str = ""


class ModuleDraft(CamelModel):
    """Unvalidated module form values."""

    title: str = ""
    levels: list[str] = Field(default_factory=list)
    predefined_activities: list[ActivityTemplateDraft] = Field(default_factory=list)
    barangay_id: str | None = None


# ---------------------------------------------------------------------------
# Parse results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParseOk(Generic[T]):
    value: T
    ok: Literal[True] = True


@dataclass(frozen=True)
class ParseFailed:
    errors: tuple[str, ...]
    raw: Any = None
    ok: Literal[False] = False


ParseResult = Union[ParseOk[T], ParseFailed]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Notification:
    """A transient user-facing message."""

    message: str
    kind: Literal["success", "error"] = "success"
    created_at: float = field(default_factory=time.time)


# ---------------------------------------------------------------------------
# Student form payload
# ---------------------------------------------------------------------------

class StudentDraft(CamelModel):
    """Student registration / edit form values.

    ``name`` is derived from the three name parts on submit.
    """

    lrn: str = ""
    name: str = ""
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    status: str = "active"
    gender: str = "male"
    address: str = ""
    barangay_id: str = ""
    program: str = ""
    enrollment_date: str = ""
    modality: str = "Face to Face"
    pis_score: float | None = None
    assessment: str = ""
    group: str = "A"
