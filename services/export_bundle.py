"""Hand-off to the spreadsheet exporter.

The exporter itself (workbook layout, column widths, file download) is an
external collaborator.  This module only gathers the already reconciled
data a view holds into an :class:`ExportBundle`, plus the small formatting
helpers every export shares.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol

from errors import NotFoundError
from models.entities import Barangay, Module, Progress, Student
from services.view_binding import StudentProgressView

UNKNOWN_BARANGAY = "Unknown Barangay"


@dataclass(frozen=True)
class ModuleSummary:
    module_id: str
    title: str
    activity_count: int
    score: float
    total: float

    @property
    def percentage(self) -> float:
        return round(self.score / self.total * 100, 2) if self.total else 0.0


@dataclass(frozen=True)
class ExportBundle:
    student: Student
    progress: tuple[Progress, ...]
    modules: tuple[Module, ...]
    barangays: tuple[Barangay, ...]
    barangay_name: str

    def summaries(self) -> list[ModuleSummary]:
        """Per-module score totals for the visible modules, in module order."""
        by_module = {p.module_id: p for p in self.progress}
        rows = []
        for module in self.modules:
            activities = by_module[module.id].activities if module.id in by_module else ()
            rows.append(ModuleSummary(
                module_id=module.id,
                title=module.title,
                activity_count=len(activities),
                score=sum(a.score for a in activities),
                total=sum(a.total for a in activities),
            ))
        return rows


class Exporter(Protocol):
    def export(self, bundle: ExportBundle) -> None: ...


def barangay_name(barangay_id: str | None, barangays: tuple[Barangay, ...]) -> str:
    for barangay in barangays:
        if barangay.id == barangay_id:
            return barangay.name or UNKNOWN_BARANGAY
    return UNKNOWN_BARANGAY


def build_export_bundle(view: StudentProgressView, student: Student | None = None) -> ExportBundle:
    """Collect what *view* shows.  *student* stands in when the store lacks the record."""
    student = view.student or student
    if student is None:
        raise NotFoundError("student", view.current_lrn or "", message="No student selected for export")
    # Barangay names are resolved against the full list, not the actor's visible subset.
    barangays = view.state.barangays.data
    return ExportBundle(
        student=student,
        progress=view.student_progress,
        modules=view.available_modules,
        barangays=barangays,
        barangay_name=barangay_name(student.barangay_id, barangays),
    )


def format_date_for_export(value: str | None) -> str:
    """``MM/DD/YYYY``; unparseable input is returned unchanged."""
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%m/%d/%Y")


def export_filename(kind: str, today: date | None = None) -> str:
    """``<Kind>_<YYYY-MM-DD>.xlsx``"""
    today = today or date.today()
    return f"{kind}_{today.isoformat()}.xlsx"
