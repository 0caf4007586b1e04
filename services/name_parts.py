"""Student name parsing and formatting.

Names are stored as ``"Last, First Middle"``.  Parsing is a heuristic:

- with a comma, everything before the first comma is the last name, the
  next token the first name, and the rest the middle name;
- without a comma, ``"First Middle... Last"`` order is assumed;
- a single token is a last name.

Multi-word last names only survive a round trip in comma form.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from errors import ValidationError
from models.entities import Student
from models.mutations import StudentDraft


@dataclass(frozen=True)
class NameParts:
    last_name: str = ""
    first_name: str = ""
    middle_name: str = ""


def parse_student_name(full_name: str | None) -> NameParts:
    value = (full_name or "").strip()
    if not value:
        return NameParts()

    if "," in value:
        last, *rest = (segment.strip() for segment in value.split(","))
        tokens = " ".join(rest).split()
        return NameParts(
            last_name=last,
            first_name=tokens[0] if tokens else "",
            middle_name=" ".join(tokens[1:]),
        )

    tokens = value.split()
    if len(tokens) == 1:
        return NameParts(last_name=tokens[0])
    return NameParts(
        last_name=tokens[-1],
        first_name=tokens[0],
        middle_name=" ".join(tokens[1:-1]),
    )


def compose_student_name(last_name: str, first_name: str, middle_name: str | None = "") -> str:
    """Join parts as ``"Last, First Middle"``, skipping blanks."""
    last = last_name.strip()
    given = " ".join(p for p in (first_name.strip(), (middle_name or "").strip()) if p)
    if last and given:
        return f"{last}, {given}"
    return last or given


def get_student_name_parts(student: Student | None) -> NameParts:
    """Prefer the explicit name fields; fall back to parsing ``name``."""
    if student is None:
        return NameParts()
    parts = NameParts(
        last_name=student.last_name.strip(),
        first_name=student.first_name.strip(),
        middle_name=student.middle_name.strip(),
    )
    if parts.last_name or parts.first_name or parts.middle_name:
        return parts
    return parse_student_name(student.name)


def format_student_name(student: Student | str) -> str:
    parts = parse_student_name(student) if isinstance(student, str) else get_student_name_parts(student)
    return compose_student_name(parts.last_name, parts.first_name, parts.middle_name)


def unformat_student_name(formatted_name: str) -> str:
    """``"Last, First Middle"`` → ``"First Middle Last"``."""
    parts = parse_student_name(formatted_name)
    return " ".join(p for p in (parts.first_name, parts.middle_name, parts.last_name) if p)


def build_student_payload(
    fields: dict[str, Any],
    last_name: str,
    first_name: str,
    middle_name: str = "",
) -> StudentDraft:
    """Assemble a registration / edit payload from the form's name inputs."""
    if not last_name.strip():
        raise ValidationError("Last name is required", field="last_name")
    if not first_name.strip():
        raise ValidationError("First name is required", field="first_name")
    return StudentDraft.model_validate({
        **fields,
        "name": compose_student_name(last_name, first_name, middle_name),
        "lastName": last_name.strip(),
        "firstName": first_name.strip(),
        "middleName": middle_name.strip(),
    })
