"""Tests for services/name_parts.py — "Last, First Middle" handling."""

import pytest

from adapters.normalize import normalize_student
from errors import ValidationError
from services.name_parts import (
    NameParts,
    build_student_payload,
    compose_student_name,
    format_student_name,
    get_student_name_parts,
    parse_student_name,
    unformat_student_name,
)


@pytest.mark.parametrize("full, expected", [
    ("Dela Cruz, Juan Santos", NameParts("Dela Cruz", "Juan", "Santos")),
    ("Reyes, Maria Clara Luz", NameParts("Reyes", "Maria", "Clara Luz")),
    ("Bautista, Pedro", NameParts("Bautista", "Pedro", "")),
    ("Juan Santos Dela", NameParts("Dela", "Juan", "Santos")),
    ("Juan Reyes", NameParts("Reyes", "Juan", "")),
    ("Madonna", NameParts("Madonna", "", "")),
    ("  ", NameParts()),
    (None, NameParts()),
    ("Garcia,", NameParts("Garcia", "", "")),
])
def test_parse_student_name(full, expected):
    assert parse_student_name(full) == expected


def test_compose_student_name():
    assert compose_student_name("Dela Cruz", "Juan", "Santos") == "Dela Cruz, Juan Santos"
    assert compose_student_name(" Reyes ", " Maria ", "") == "Reyes, Maria"
    assert compose_student_name("Reyes", "Maria", None) == "Reyes, Maria"
    assert compose_student_name("Solo", "", "") == "Solo"


@pytest.mark.parametrize("last, first, middle", [
    ("Dela Cruz", "Juan", "Santos"),
    ("Reyes", "Maria", ""),
    ("de la Torre", "Ana", "Lopez Garcia"),
    ("Bautista", "Pedro", "M."),
])
def test_compose_then_parse_round_trip(last, first, middle):
    assert parse_student_name(compose_student_name(last, first, middle)) == NameParts(last, first, middle)


def test_get_student_name_parts_prefers_fields():
    student = normalize_student({
        "_id": "s", "lrn": "1", "name": "Wrong, Name",
        "lastName": "Dela Cruz", "firstName": "Juan", "middleName": "Santos",
    })
    assert get_student_name_parts(student) == NameParts("Dela Cruz", "Juan", "Santos")


def test_get_student_name_parts_parses_name():
    student = normalize_student({"_id": "s", "lrn": "1", "name": "Reyes, Maria Clara"})
    assert get_student_name_parts(student) == NameParts("Reyes", "Maria", "Clara")
    assert get_student_name_parts(None) == NameParts()


def test_format_student_name():
    assert format_student_name("Juan Santos Dela") == "Dela, Juan Santos"
    student = normalize_student({"_id": "s", "lrn": "1", "lastName": "Reyes", "firstName": "Maria"})
    assert format_student_name(student) == "Reyes, Maria"


def test_unformat_student_name():
    assert unformat_student_name("Dela Cruz, Juan Santos") == "Juan Santos Dela Cruz"
    assert unformat_student_name("Madonna") == "Madonna"


def test_build_student_payload():
    draft = build_student_payload(
        {"lrn": "136512140009", "barangayId": "brgy-poblacion", "program": "A&E Elementary"},
        last_name=" Dela Cruz ",
        first_name="Juan",
        middle_name="Santos",
    )
    assert draft.name == "Dela Cruz, Juan Santos"
    assert draft.last_name == "Dela Cruz"
    assert draft.barangay_id == "brgy-poblacion"


@pytest.mark.parametrize("last, first, field", [
    ("", "Juan", "last_name"),
    ("Dela Cruz", "  ", "first_name"),
])
def test_build_student_payload_requires_names(last, first, field):
    with pytest.raises(ValidationError) as exc_info:
        build_student_payload({"lrn": "1"}, last, first)
    assert exc_info.value.field == field
