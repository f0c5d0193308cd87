"""Attendance report across the processed days of a course."""

import csv
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .absence import round_half_up
from .models import LessonResult, ProcessedParticipant

logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "Nome",
    "Email",
    "Ore Totali",
    "Lezioni Frequentate",
    "Lezioni Perse",
    "Percentuale Presenza",
    "Ultima Presenza",
]


@dataclass
class ParticipantSummary:
    name: str
    email: str
    total_hours: int = 0
    attended_lessons: int = 0
    missed_lessons: int = 0
    attendance_percentage: int = 0
    last_attendance: Optional[date] = None


@dataclass
class CourseReport:
    course_id: Optional[str]
    generated_at: datetime
    total_lessons: int
    average_attendance: int
    participant_summaries: List[ParticipantSummary] = field(default_factory=list)
    lessons: List[dict] = field(default_factory=list)
    # matrix[i][j]: summary i present at lesson j
    matrix: List[List[bool]] = field(default_factory=list)

    @property
    def total_participants(self) -> int:
        return len(self.participant_summaries)


def participant_match_key(p: ProcessedParticipant) -> str:
    """Lowercase email, or lowercase name when the export had no email."""
    email = (p.email or "").strip().lower()
    return email or (p.name or "").strip().lower()


def _roster(lessons: Sequence[LessonResult]) -> Dict[str, ProcessedParticipant]:
    seen: Dict[str, ProcessedParticipant] = {}
    for lesson in lessons:
        for p in lesson.participants:
            seen.setdefault(participant_match_key(p), p)
    return seen


def build_course_report(lessons: Sequence[LessonResult],
                        course_id: Optional[str] = None) -> CourseReport:
    """Summarize attendance per participant over the given lesson days.

    Participants are everyone who appears in at least one lesson; hours are
    the lesson hours of the days they attended. Summaries are ordered by
    attendance percentage, highest first.
    """
    ordered = sorted(lessons, key=lambda l: l.date)
    n = len(ordered)
    presence = [{participant_match_key(p): p.is_present for p in l.participants} for l in ordered]

    rows = []
    for key, first in _roster(ordered).items():
        flags = [day.get(key, False) for day in presence]
        attended = sum(flags)
        s = ParticipantSummary(
            name=first.name,
            email=first.email,
            total_hours=sum(len(l.lesson_hours) for l, f in zip(ordered, flags) if f),
            attended_lessons=attended,
            missed_lessons=n - attended,
            attendance_percentage=round_half_up(attended / n * 100) if n else 0,
            last_attendance=max((l.date for l, f in zip(ordered, flags) if f), default=None),
        )
        rows.append((s, flags))

    rows.sort(key=lambda r: -r[0].attendance_percentage)
    summaries = [s for s, _ in rows]
    average = (round_half_up(sum(s.attendance_percentage for s in summaries) / len(summaries))
               if summaries else 0)
    logger.info(f"Course report: {len(summaries)} participants over {n} lessons, "
                f"average attendance {average}%")
    return CourseReport(
        course_id=course_id,
        generated_at=datetime.now(),
        total_lessons=n,
        average_attendance=average,
        participant_summaries=summaries,
        lessons=[{"date": l.date, "subject": l.subject} for l in ordered],
        matrix=[flags for _, flags in rows],
    )

# -------------------- export --------------------

def _fmt_day(d: Optional[date]) -> str:
    return d.strftime("%d/%m/%Y") if d else "Mai"


def summary_frame(report: CourseReport) -> pd.DataFrame:
    return pd.DataFrame(
        [[s.name, s.email, s.total_hours, s.attended_lessons, s.missed_lessons,
          f"{s.attendance_percentage}%", _fmt_day(s.last_attendance)]
         for s in report.participant_summaries],
        columns=REPORT_COLUMNS)


def matrix_frame(report: CourseReport) -> pd.DataFrame:
    cols = [l["date"].strftime("%d/%m/%Y") for l in report.lessons]
    df = pd.DataFrame([["✓" if f else "" for f in flags] for flags in report.matrix],
                      columns=cols)
    df.insert(0, "Nome", [s.name for s in report.participant_summaries])
    return df


def export_report(report: CourseReport, path) -> Path:
    """Write the report as ``.xlsx`` (three sheets) or ``.csv`` (summary only)."""
    path = Path(path)
    summary_df = summary_frame(report)
    if path.suffix.lower() == ".csv":
        summary_df.to_csv(path, index=False, quoting=csv.QUOTE_ALL, encoding="utf-8")
        return path
    if path.suffix.lower() != ".xlsx":
        raise ValueError(f"Unsupported report format: {path.suffix!r}")

    meta_df = pd.DataFrame([
        ["Corso", report.course_id or ""],
        ["Generato il", report.generated_at.strftime("%d/%m/%Y %H:%M")],
        ["Lezioni", report.total_lessons],
        ["Partecipanti", report.total_participants],
        ["Presenza media", f"{report.average_attendance}%"],
    ], columns=["Metric", "Value"])

    last_err = None
    for engine in ("openpyxl", "xlsxwriter"):
        try:
            with pd.ExcelWriter(path, engine=engine) as w:
                summary_df.to_excel(w, index=False, sheet_name="Riepilogo")
                matrix_frame(report).to_excel(w, index=False, sheet_name="Presenze")
                meta_df.to_excel(w, index=False, sheet_name="Meta")
        except ImportError as e:
            logger.warning(f"Excel engine {engine} unavailable: {e}")
            last_err = e
        else:
            logger.info(f"Report written to {path} ({engine})")
            return path
    raise last_err
