"""Normalization layer — raw upstream / bundled records → canonical entities.

Every ``parse_*`` function is strict: it returns :class:`ParseOk` with a
canonical entity or :class:`ParseFailed` with the validation messages,
never a partially coerced dict.  The ``normalize_*`` helpers wrap them for
call sites that want a best-effort list (bad records are logged and
dropped) or a single entity (a bad record raises
:class:`errors.ValidationError`).

Identifier resolution probes several candidate keys because records come
from three places that disagree on naming: Mongo documents (``_id``,
possibly ``{"$oid": ...}``), API responses (``id``) and the bundled
dataset (often no id at all).
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from errors import GatewayError, ValidationError
from models.entities import ALL_PROGRAMS, Barangay, Module, Progress, Student
from models.mutations import ParseFailed, ParseOk, ParseResult

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

MODULE_ID_KEYS = ("_id", "id", "moduleId")
STUDENT_ID_KEYS = ("_id", "id", "lrn")
BARANGAY_ID_KEYS = ("_id", "id")


# ---------------------------------------------------------------------------
# Identifier helpers
# ---------------------------------------------------------------------------

def generate_fallback_id(prefix: str) -> str:
    """Random identifier for records that arrive without one."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def coerce_id(value: Any) -> str:
    """Stringify an identifier, unwrapping Mongo extended-JSON ``{"$oid": ...}``."""
    if value is None:
        return ""
    if isinstance(value, Mapping):
        value = value.get("$oid", "")
    return str(value).strip()


def resolve_id(raw: Mapping[str, Any], keys: Iterable[str]) -> str:
    """Return the first non-empty identifier among *keys*, or ``""``."""
    for key in keys:
        resolved = coerce_id(raw.get(key))
        if resolved:
            return resolved
    return ""


def _format_errors(exc: SchemaError) -> tuple[str, ...]:
    return tuple(
        f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors()
    )


def _parse(
    model: type[M],
    raw: Any,
    id_keys: Iterable[str] | None = None,
    id_prefix: str | None = None,
) -> ParseResult[M]:
    if isinstance(raw, model):
        return ParseOk(raw)
    if not isinstance(raw, Mapping):
        return ParseFailed((f"expected an object, got {type(raw).__name__}",), raw)

    data = dict(raw)
    if id_keys is not None:
        resolved = resolve_id(raw, id_keys)
        if not resolved and id_prefix:
            resolved = generate_fallback_id(id_prefix)
        data.pop("id", None)
        data["_id"] = resolved
    try:
        return ParseOk(model.model_validate(data))
    except SchemaError as exc:
        return ParseFailed(_format_errors(exc), raw)


def _require(result: ParseResult[M], entity_type: str) -> M:
    if isinstance(result, ParseFailed):
        raise ValidationError(f"Malformed {entity_type} record: {'; '.join(result.errors)}")
    return result.value


def _collect(results: Iterable[ParseResult[M]], entity_type: str) -> list[M]:
    entities: list[M] = []
    for result in results:
        if isinstance(result, ParseFailed):
            logger.warning("Dropping malformed %s record: %s", entity_type, "; ".join(result.errors))
            continue
        entities.append(result.value)
    return entities


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------

def parse_module(raw: Any) -> ParseResult[Module]:
    """Parse one module, synthesizing an id when none of the id keys is set."""
    return _parse(Module, raw, MODULE_ID_KEYS, id_prefix="module")


def normalize_module(raw: Any) -> Module:
    return _require(parse_module(raw), "module")


def normalize_modules(raws: Iterable[Any]) -> list[Module]:
    return _collect((parse_module(raw) for raw in raws), "module")


def dedupe_modules(modules: Iterable[Module]) -> list[Module]:
    """Collapse modules sharing an id; the last-seen record wins.

    Ids keep the position of their first appearance, so merging
    ``[*static, *remote]`` lets remote records override bundled ones in place.
    """
    lookup: dict[str, Module] = {}
    for module in modules:
        if not module.id:
            continue
        lookup[module.id] = module
    return list(lookup.values())


def filter_modules_for_program(
    modules: list[Module],
    program: str | None,
    all_programs: str = ALL_PROGRAMS,
) -> list[Module]:
    """Modules whose levels include *program* or the all-programs sentinel.

    Falls back to the unfiltered list when nothing matches, so a program
    label mismatch never hides every module.
    """
    target = (program or "").strip()
    if not target:
        return modules
    filtered = [
        module for module in modules
        if any(level == target or level == all_programs for level in module.levels)
    ]
    return filtered if filtered else modules


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------

def parse_student(raw: Any) -> ParseResult[Student]:
    """Parse one student.  Missing ``_id`` falls back to the LRN, then a random id."""
    return _parse(Student, raw, STUDENT_ID_KEYS, id_prefix="student")


def normalize_student(raw: Any) -> Student:
    return _require(parse_student(raw), "student")


def normalize_students(raws: Iterable[Any]) -> list[Student]:
    return _collect((parse_student(raw) for raw in raws), "student")


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

def parse_progress(raw: Any) -> ParseResult[Progress]:
    if isinstance(raw, Mapping):
        raw = {
            **raw,
            "_id": coerce_id(raw.get("_id")) or None,
            "studentId": coerce_id(raw.get("studentId", raw.get("student_id"))),
            "moduleId": coerce_id(raw.get("moduleId", raw.get("module_id"))),
        }
    return _parse(Progress, raw)


def normalize_progress(raw: Any) -> Progress:
    return _require(parse_progress(raw), "progress")


def normalize_progress_records(raws: Iterable[Any]) -> list[Progress]:
    return _collect((parse_progress(raw) for raw in raws), "progress")


# ---------------------------------------------------------------------------
# Barangays
# ---------------------------------------------------------------------------

def parse_barangay(raw: Any) -> ParseResult[Barangay]:
    return _parse(Barangay, raw, BARANGAY_ID_KEYS)


def normalize_barangays(raws: Iterable[Any]) -> list[Barangay]:
    return _collect((parse_barangay(raw) for raw in raws), "barangay")


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

def unwrap_data(response: Any) -> Any:
    """Extract ``data`` from a ``{success, data, error}`` envelope.

    Raw payloads (e.g. ``GET /modules`` returns a bare array) pass through.
    A 2xx envelope with ``success: false`` still counts as a failure.
    """
    if isinstance(response, dict) and response.get("success") is False:
        raise GatewayError(status_code=200, detail=str(response.get("error") or "Request failed"))
    if isinstance(response, dict) and "data" in response:
        return response["data"]
    return response
