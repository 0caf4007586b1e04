"""Bundled fallback dataset.

Static snapshots of students, modules, progress and barangays used when the
progress API is unreachable or ``USE_FALLBACK_DATA=true``.  Records are kept
in the raw upstream shape, including its irregularities (missing ``_id``,
scalar ``levels``, string point totals), and go through the normalization
layer like any remote payload.
"""

from __future__ import annotations

from functools import lru_cache

from adapters.normalize import (
    normalize_barangays,
    normalize_modules,
    normalize_progress_records,
    normalize_students,
)
from models.entities import Barangay, Module, Progress, Student

BARANGAYS = [
    {"_id": "brgy-poblacion", "name": "Poblacion"},
    {"_id": "brgy-san-isidro", "name": "San Isidro"},
    {"_id": "brgy-sta-cruz", "name": "Santa Cruz"},
]

STUDENTS = [
    {
        "_id": "stu-001",
        "lrn": "136512140001",
        "name": "Dela Cruz, Juan Santos",
        "firstName": "Juan",
        "middleName": "Santos",
        "lastName": "Dela Cruz",
        "status": "active",
        "gender": "male",
        "address": "Purok 1, Poblacion",
        "barangayId": "brgy-poblacion",
        "program": "A&E Elementary",
        "enrollmentDate": "2025-06-16",
        "modality": "Face to Face",
        "group": "A",
    },
    {
        "_id": "stu-002",
        "lrn": "136512140002",
        "name": "Reyes, Maria Clara",
        "status": "active",
        "gender": "female",
        "address": "Purok 3, Poblacion",
        "barangayId": "brgy-poblacion",
        "program": "A&E Secondary",
        "enrollmentDate": "2025-06-16",
        "modality": "Modular",
        "pisScore": 78,
        "group": "A",
    },
    {
        # No _id: resolution falls back to the LRN.
        "lrn": "136512140003",
        "name": "Bautista, Pedro",
        "status": "active",
        "gender": "male",
        "address": "Sitio Malinis, San Isidro",
        "barangayId": "brgy-san-isidro",
        "program": "Basic Literacy (BLP)",
        "enrollmentDate": "2025-07-01",
        "modality": "Face to Face",
        "group": "B",
    },
    {
        "_id": "stu-004",
        "lrn": "136512140004",
        "name": "Garcia, Ana Lopez",
        "status": "inactive",
        "gender": "female",
        "address": "Zone 2, Santa Cruz",
        "barangayId": "brgy-sta-cruz",
        "program": "A&E Secondary",
        "enrollmentDate": "2025-08-04",
        "modality": "Blended",
        "group": "A",
    },
]

MODULES = [
    {
        "_id": "mod-lit-01",
        "title": "Communication Skills (English)",
        "levels": ["A&E Elementary", "A&E Secondary"],
        "predefinedActivities": [
            {"name": "Reading Comprehension Quiz", "type": "Quiz", "total": 20},
            {"name": "Letter Writing", "type": "Assignment", "total": "15"},
        ],
    },
    {
        "_id": "mod-num-01",
        "title": "Problem Solving and Critical Thinking",
        "levels": "A&E Secondary",
        "predefinedActivities": [
            {"name": "Word Problems", "type": "Activity", "total": 10},
            {"name": "Module Test", "total": 50},
        ],
    },
    {
        "_id": "mod-blp-01",
        "title": "Basic Literacy: Letters and Sounds",
        "levels": ["Basic Literacy (BLP)"],
        "predefinedActivities": [
            {"name": "Alphabet Recognition", "type": "participation", "total": 10},
        ],
    },
    {
        # Legacy record without _id; a random id is synthesized on load.
        "title": "Life and Career Skills",
        "levels": ["All Programs"],
        "predefinedActivities": [],
    },
]

PROGRESS = [
    {
        "studentId": "136512140001",
        "moduleId": "mod-lit-01",
        "barangayId": "brgy-poblacion",
        "activities": [
            {
                "type": "Quiz",
                "name": "Reading Comprehension Quiz",
                "score": 16,
                "total": 20,
                "date": "2025-07-14",
                "remarks": "",
            },
        ],
    },
    {
        "studentId": "136512140002",
        "moduleId": "mod-num-01",
        "barangayId": "brgy-poblacion",
        "activities": [
            {
                "type": "Activity",
                "name": "Word Problems",
                "score": "8",
                "total": "10",
                "date": "2025-07-21",
                "remarks": "Needs practice on fractions",
            },
            {
                "type": "Assessment",
                "name": "Module Test",
                "score": 41,
                "total": 50,
                "date": "2025-08-02",
            },
        ],
    },
]


@lru_cache
def fallback_students() -> tuple[Student, ...]:
    return tuple(normalize_students(STUDENTS))


@lru_cache
def fallback_modules() -> tuple[Module, ...]:
    # Cached so synthesized ids stay stable for the life of the process.
    return tuple(normalize_modules(MODULES))


@lru_cache
def fallback_progress() -> tuple[Progress, ...]:
    return tuple(normalize_progress_records(PROGRESS))


@lru_cache
def fallback_barangays() -> tuple[Barangay, ...]:
    return tuple(normalize_barangays(BARANGAYS))


def find_fallback_student(lrn: str) -> Student | None:
    """Look a student up in the bundled snapshot by LRN."""
    for student in fallback_students():
        if student.lrn == lrn:
            return student
    return None
