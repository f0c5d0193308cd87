"""Flat, string-only field record consumed by the Word template renderer.

Placeholders: ``day, month, year, orariolezione, argomento`` and, per slot
``i`` in 1..5, ``nome{i}, MattOraIn{i}, MattOraOut{i}, PomeOraIn{i},
PomeOraOut{i}, presenza{i}``. Every value is a string; empty means "nothing to
show", never missing.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence

from .hours import schedule_text
from .models import ConnectionEvent, LessonResult, LessonType, ProcessedParticipant
from .settings import (
    ABSENT_GLYPH,
    ABSENT_LABEL,
    FILENAME_PREFIX,
    MAX_PARTICIPANT_SLOTS,
    NO_CONNECTIONS_LABEL,
    PRESENT_GLYPH,
)

logger = logging.getLogger(__name__)

SLOT_FIELDS = ("nome", "MattOraIn", "MattOraOut", "PomeOraIn", "PomeOraOut", "presenza")
HEADER_FIELDS = ("day", "month", "year", "orariolezione", "argomento")

_PERIOD_FIELDS = {"morning": ("MattOraIn", "MattOraOut"), "afternoon": ("PomeOraIn", "PomeOraOut")}


def template_fields(max_slots: int = MAX_PARTICIPANT_SLOTS) -> List[str]:
    return list(HEADER_FIELDS) + [f"{f}{i}" for f in SLOT_FIELDS for i in range(1, max_slots + 1)]


def format_time_with_seconds(ts) -> str:
    return ts.strftime("%H:%M:%S")


def _periods_for(lesson_type: LessonType) -> List[str]:
    out = []
    if lesson_type.covers_morning:
        out.append("morning")
    if lesson_type.covers_afternoon:
        out.append("afternoon")
    return out


def is_slot_absent(p: ProcessedParticipant) -> bool:
    """Explicitly marked absent, or never connected and not marked present."""
    return bool(p.is_absent) or (not p.is_present and not p.has_connections())


def join_times(connections: Sequence[ConnectionEvent]) -> str:
    return " - ".join(format_time_with_seconds(c.join_time) for c in connections)


def leave_times(connections: Sequence[ConnectionEvent]) -> str:
    return " - ".join(format_time_with_seconds(c.leave_time) for c in connections)


def format_all_connections(p: ProcessedParticipant, lesson_type) -> str:
    """Every connection of the participant and of its aliases.

    ``Name: 09:00:00-10:00:00; 10:05:00-13:00:00 | 14:00:00-18:00:00 || Alias: ...``
    """
    lesson_type = LessonType(lesson_type)
    main = []
    for period in _periods_for(lesson_type):
        conns = p.all_connections[period]
        if conns:
            main.append("; ".join(
                f"{format_time_with_seconds(c.join_time)}-{format_time_with_seconds(c.leave_time)}"
                for c in conns))
    parts = []
    if main:
        parts.append(f"{p.name}: {' | '.join(main)}")
    for alias in p.aliases:
        if alias.connections_list:
            parts.append(f"{alias.name}: {alias.connections_list}")
    return " || ".join(parts) if parts else NO_CONNECTIONS_LABEL


def _fill_slot(data: Dict[str, str], i: int, p: ProcessedParticipant, lesson_type: LessonType) -> None:
    data[f"nome{i}"] = p.name or ""
    periods = _periods_for(lesson_type)
    if is_slot_absent(p):
        for period in periods:
            f_in, f_out = _PERIOD_FIELDS[period]
            data[f"{f_in}{i}"] = ABSENT_LABEL
            data[f"{f_out}{i}"] = ABSENT_LABEL
        data[f"presenza{i}"] = ABSENT_LABEL
        return
    for period in periods:
        conns = p.all_connections[period]
        if conns:
            f_in, f_out = _PERIOD_FIELDS[period]
            data[f"{f_in}{i}"] = join_times(conns)
            data[f"{f_out}{i}"] = leave_times(conns)
    glyph = PRESENT_GLYPH if p.is_present else ABSENT_GLYPH
    data[f"presenza{i}"] = f"{glyph} {format_all_connections(p, lesson_type)}"


def prepare_template_data(result: LessonResult,
                          max_slots: int = MAX_PARTICIPANT_SLOTS) -> Dict[str, str]:
    """Map a computed lesson onto the document's placeholders.

    Participants beyond ``max_slots`` are dropped: the document has no room for
    them.
    """
    lesson_type = LessonType(result.lesson_type)
    d = result.date
    data: Dict[str, str] = {f: "" for f in template_fields(max_slots)}
    data.update(
        day=f"{d.day:02d}",
        month=f"{d.month:02d}",
        year=f"{d.year:04d}",
        orariolezione=schedule_text(lesson_type, result.participants, result.organizer,
                                    result.lesson_hours),
        argomento=result.subject or "",
    )
    if len(result.participants) > max_slots:
        logger.warning(
            f"{len(result.participants)} participants, only the first {max_slots} fit the document")
    for i, p in enumerate(result.participants[:max_slots], 1):
        _fill_slot(data, i, p, lesson_type)
    return data


def generate_filename(lesson_date: date, course_id: Optional[str] = None,
                      prefix: str = FILENAME_PREFIX) -> str:
    stamp = lesson_date.strftime("%Y_%m_%d")
    return f"{prefix}_{course_id}_{stamp}.docx" if course_id else f"{prefix}_{stamp}.docx"
