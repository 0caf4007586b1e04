"""Canonical entities — the shape every view and the store agree on.

Upstream records arrive with ``_id`` identifiers, camelCase keys and
loosely typed values.  The before-validators below coerce the common
irregularities (``None`` strings, numeric strings, scalar ``levels``,
unknown activity types) so that parsing either yields a well-formed
entity or a validation failure, never a half-typed dict.

Collections inside entities are tuples: entities are frozen and shared
between store snapshots.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import Field, ValidationInfo, field_validator

from models.base import CamelModel, EntityModel

ALL_PROGRAMS = "All Programs"

PROGRAM_LEVELS: tuple[str, ...] = (
    "Basic Literacy (BLP)",
    "A&E Elementary",
    "A&E Secondary",
    ALL_PROGRAMS,
)


class ActivityType(str, Enum):
    """Kinds of scored activity recorded against a module."""

    QUIZ = "Quiz"
    ASSIGNMENT = "Assignment"
    ACTIVITY = "Activity"
    PROJECT = "Project"
    PARTICIPATION = "Participation"
    ASSESSMENT = "Assessment"
    EXAMINATION = "Examination"

    @classmethod
    def lookup(cls, value: Any) -> ActivityType | None:
        """Case-insensitive match on the enum value; ``None`` if unrecognized."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None


class StudentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DROPPED = "dropped"
    COMPLETED = "completed"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class Role(str, Enum):
    MASTER_ADMIN = "master_admin"
    ADMIN = "admin"


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def _string_or_empty(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _number_or_zero(value: Any) -> float:
    if value is None or value == "":
        return 0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def _optional_id(value: Any) -> str | None:
    text = _string_or_empty(value)
    return text or None


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------

class PredefinedActivity(EntityModel):
    """Activity template attached to a module."""

    name: str = ""
    type: ActivityType = ActivityType.ASSESSMENT
    total: float = 0
    description: str = ""

    @field_validator("name", "description", mode="before")
    @classmethod
    def _strings(cls, value: Any) -> str:
        return _string_or_empty(value)

    @field_validator("type", mode="before")
    @classmethod
    def _activity_type(cls, value: Any) -> ActivityType:
        return ActivityType.lookup(value) or ActivityType.ASSESSMENT

    @field_validator("total", mode="before")
    @classmethod
    def _total(cls, value: Any) -> float:
        return _number_or_zero(value)


class Module(EntityModel):
    """Instructional module.  ``barangay_id=None`` means globally visible."""

    id: str = Field(alias="_id", min_length=1)
    title: str = ""
    levels: tuple[str, ...] = ()
    predefined_activities: tuple[PredefinedActivity, ...] = ()
    barangay_id: str | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: Any) -> str:
        return _string_or_empty(value)

    @field_validator("levels", mode="before")
    @classmethod
    def _levels(cls, value: Any) -> list[str]:
        if value is None or value == "":
            return []
        if isinstance(value, str) or not isinstance(value, (list, tuple, set)):
            value = [value]
        levels = [_string_or_empty(level) for level in value]
        return [level for level in levels if level]

    @field_validator("predefined_activities", mode="before")
    @classmethod
    def _activities(cls, value: Any) -> list[Any]:
        if not isinstance(value, (list, tuple)):
            return []
        return [item for item in value if isinstance(item, (dict, PredefinedActivity))]

    @field_validator("barangay_id", mode="before")
    @classmethod
    def _barangay(cls, value: Any) -> str | None:
        return _optional_id(value)


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

class Activity(EntityModel):
    """A scored activity inside a progress record."""

    type: ActivityType = ActivityType.ASSESSMENT
    name: str = ""
    score: float = 0
    total: float = 0
    date: str = ""
    remarks: str = ""

    @field_validator("name", "date", "remarks", mode="before")
    @classmethod
    def _strings(cls, value: Any) -> str:
        return _string_or_empty(value)

    @field_validator("type", mode="before")
    @classmethod
    def _activity_type(cls, value: Any) -> ActivityType:
        return ActivityType.lookup(value) or ActivityType.ASSESSMENT

    @field_validator("score", "total", mode="before")
    @classmethod
    def _numbers(cls, value: Any) -> float:
        return _number_or_zero(value)


class Progress(EntityModel):
    """Per-student, per-module container of activities.

    ``student_id`` holds the student's LRN, not the storage id.
    """

    id: str | None = Field(default=None, alias="_id")
    student_id: str = Field(min_length=1)
    module_id: str = Field(min_length=1)
    barangay_id: str | None = None
    activities: tuple[Activity, ...] = ()

    @field_validator("id", "barangay_id", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> str | None:
        return _optional_id(value)

    @field_validator("student_id", "module_id", mode="before")
    @classmethod
    def _keys(cls, value: Any) -> str:
        return _string_or_empty(value)

    @field_validator("activities", mode="before")
    @classmethod
    def _activities(cls, value: Any) -> list[Any]:
        if not isinstance(value, (list, tuple)):
            return []
        return list(value)

    @property
    def key(self) -> tuple[str, str]:
        return (self.student_id, self.module_id)


# ---------------------------------------------------------------------------
# Students / barangays
# ---------------------------------------------------------------------------

class Student(EntityModel):
    """An enrolled learner.  ``lrn`` is the immutable external reference."""

    id: str = Field(alias="_id", min_length=1)
    lrn: str = Field(min_length=1)
    name: str = ""
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    status: StudentStatus = StudentStatus.ACTIVE
    gender: Gender = Gender.MALE
    address: str = ""
    barangay_id: str = ""
    program: str = ""
    enrollment_date: str = ""
    modality: str = "Face to Face"
    pis_score: float | None = None
    assessment: str = ""
    group: str = "A"
    image: str = ""

    @field_validator(
        "lrn", "name", "first_name", "middle_name", "last_name", "address",
        "barangay_id", "program", "enrollment_date", "assessment", "image",
        mode="before",
    )
    @classmethod
    def _strings(cls, value: Any) -> str:
        return _string_or_empty(value)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> StudentStatus:
        text = _string_or_empty(value).lower()
        try:
            return StudentStatus(text)
        except ValueError:
            return StudentStatus.ACTIVE

    @field_validator("gender", mode="before")
    @classmethod
    def _gender(cls, value: Any) -> Gender:
        text = _string_or_empty(value).lower()
        try:
            return Gender(text)
        except ValueError:
            return Gender.MALE

    @field_validator("pis_score", mode="before")
    @classmethod
    def _pis_score(cls, value: Any) -> float | None:
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator("modality", "group", mode="before")
    @classmethod
    def _defaulted(cls, value: Any, info: ValidationInfo) -> str:
        text = _string_or_empty(value)
        if text:
            return text
        return "Face to Face" if info.field_name == "modality" else "A"


class Barangay(EntityModel):
    """Smallest administrative locality a student or module is scoped to."""

    id: str = Field(alias="_id", min_length=1)
    name: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> str:
        return _string_or_empty(value)


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------

class Actor(CamelModel):
    """The signed-in administrator as seen by authorization checks."""

    role: Role = Role.ADMIN
    assigned_barangay_id: str | None = None

    @field_validator("assigned_barangay_id", mode="before")
    @classmethod
    def _barangay(cls, value: Any) -> str | None:
        return _optional_id(value)

    @property
    def is_scoped(self) -> bool:
        """True for an admin restricted to one barangay."""
        return self.role == Role.ADMIN and bool(self.assigned_barangay_id)
