"""Lesson hours actually taught, inferred from observed connections."""

import logging
from typing import Iterable, List, Optional, Sequence, Set

import pandas as pd

from .models import LessonType, ProcessedParticipant
from .settings import LESSON_HOURS

logger = logging.getLogger(__name__)

_M, _A = LESSON_HOURS["morning"], LESSON_HOURS["afternoon"]


def _population(participants: Sequence[ProcessedParticipant],
                organizer: Optional[ProcessedParticipant]) -> List[ProcessedParticipant]:
    return list(participants) + ([organizer] if organizer is not None else [])


def _add_range(hours: Set[int], lo: int, hi: int) -> None:
    hours.update(range(lo, hi + 1))


def calculate_lesson_hours(participants: Sequence[ProcessedParticipant],
                           organizer: Optional[ProcessedParticipant],
                           lesson_type) -> List[int]:
    """Distinct hours covered by any connection of participants and organizer.

    Hours are clipped to the canonical morning/afternoon ranges, except in
    ``fast`` mode where the raw observed hours are used.
    """
    lesson_type = LessonType(lesson_type)
    hours: Set[int] = set()
    for p in _population(participants, organizer):
        if lesson_type is LessonType.FAST:
            for conn in p.all_connections["morning"] + p.all_connections["afternoon"]:
                _add_range(hours, conn.join_time.hour, conn.leave_time.hour)
            continue
        if lesson_type.covers_morning:
            for conn in p.all_connections["morning"]:
                sh, eh = conn.join_time.hour, conn.leave_time.hour
                _add_range(hours, max(_M["start"], sh), min(_M["end"], eh))
                # a morning session running on into the afternoon block
                if lesson_type is LessonType.BOTH and eh >= _A["start"]:
                    _add_range(hours, _A["start"], min(_A["end"], eh))
        if lesson_type.covers_afternoon:
            for conn in p.all_connections["afternoon"]:
                sh, eh = conn.join_time.hour, conn.leave_time.hour
                _add_range(hours, max(_A["start"], sh), min(_A["end"], eh))
    return sorted(hours)

# -------------------- schedule text --------------------

def round_to_nearest_hour(ts: pd.Timestamp) -> pd.Timestamp:
    """Round on minutes: xx:30 and later goes to the next hour."""
    base = ts.replace(minute=0, second=0, microsecond=0, nanosecond=0)
    return base + pd.Timedelta(hours=1) if ts.minute >= 30 else base


def actual_session_end_hour(population: Iterable[ProcessedParticipant], period: str) -> int:
    ends = [p.last_leave(period) for p in population if p.last_leave(period) is not None]
    if not ends:
        return LESSON_HOURS[period]["end"]
    return round_to_nearest_hour(max(ends)).hour


def _hh(hour: int) -> str:
    return f"{hour:02d}:00"


def _earliest_start(population, period: str) -> Optional[pd.Timestamp]:
    starts = [p.first_join(period) for p in population if p.first_join(period) is not None]
    if not starts:
        return None
    rounded = round_to_nearest_hour(min(starts))
    floor = LESSON_HOURS[period]["start"]
    if rounded.hour < floor:
        rounded = rounded.replace(hour=floor)
    return rounded


def schedule_text(lesson_type, participants: Sequence[ProcessedParticipant],
                  organizer: Optional[ProcessedParticipant] = None,
                  lesson_hours: Optional[Sequence[int]] = None) -> str:
    """Human readable schedule, e.g. ``09:00 - 13:00 / 14:00 - 18:00``.

    Block starts come from the inferred hours; block ends from the latest
    observed leave of the period rounded to the hour.
    """
    lesson_type = LessonType(lesson_type)
    population = _population(participants, organizer)

    if lesson_hours:
        ordered = sorted(lesson_hours)
        morning = [h for h in ordered if _M["start"] <= h <= _M["end"]]
        afternoon = [h for h in ordered if _A["start"] <= h <= _A["end"]]
        blocks = []
        if morning:
            blocks.append(f"{_hh(min(morning))} - {_hh(actual_session_end_hour(population, 'morning'))}")
        if afternoon:
            blocks.append(f"{_hh(min(afternoon))} - {_hh(actual_session_end_hour(population, 'afternoon'))}")
        if blocks:
            return " / ".join(blocks)

    start = None
    if lesson_type in (LessonType.MORNING, LessonType.BOTH, LessonType.FAST):
        start = _earliest_start(population, "morning")
    if lesson_type in (LessonType.AFTERNOON, LessonType.FAST) and start is None:
        start = _earliest_start(population, "afternoon")

    m_end = _hh(actual_session_end_hour(population, "morning"))
    a_end = _hh(actual_session_end_hour(population, "afternoon"))
    if lesson_type is LessonType.FAST:
        has_m = any(p.first_join("morning") is not None for p in population)
        has_a = any(p.first_join("afternoon") is not None for p in population)
        if not (has_m or has_a):
            return ""
        lesson_type = (LessonType.BOTH if has_m and has_a
                       else LessonType.MORNING if has_m else LessonType.AFTERNOON)

    if lesson_type is LessonType.MORNING:
        return f"{start.strftime('%H:%M') if start is not None else '09:00'} - {m_end}"
    if lesson_type is LessonType.AFTERNOON:
        return f"{start.strftime('%H:%M') if start is not None else '14:00'} - {a_end}"
    return f"{start.strftime('%H:%M') if start is not None else '09:00'} - {m_end} / 14:00 - {a_end}"
