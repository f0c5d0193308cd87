import logging
import math
from typing import Iterable, Optional, Sequence

import pandas as pd

from .errors import ATTENDANCE_FAILURE
from .models import PERIODS, LessonContext, ProcessedParticipant
from .settings import (
    ABSENCE_SENTINEL,
    PRESENCE_TOLERANCE_MINUTES,
    RECONNECT_GAP_TOLERANCE_MINUTES,
    EngineSettings,
    LessonWindow,
)

logger = logging.getLogger(__name__)

# -------------------- interval helpers --------------------

def _minutes(start: pd.Timestamp, end: pd.Timestamp) -> float:
    return (end - start).total_seconds() / 60.0


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def scheduled_bounds(day: pd.Timestamp, window: LessonWindow):
    base = day.normalize()
    return base + pd.Timedelta(hours=window.start_hour), base + pd.Timedelta(hours=window.end_hour)


def session_absence_minutes(connections: Sequence, window: LessonWindow) -> int:
    """Minutes outside the window or in reconnection gaps longer than the tolerance.

    ``connections`` are objects with ``join_time``/``leave_time``; the scheduled
    window is placed on the calendar day of the earliest join.
    """
    if not connections:
        return 0
    ordered = sorted(connections, key=lambda c: c.join_time)
    first, last = ordered[0], ordered[-1]
    start, end = scheduled_bounds(first.join_time, window)

    total = max(0.0, _minutes(start, first.join_time))
    total += max(0.0, _minutes(last.leave_time, end))
    for cur, nxt in zip(ordered, ordered[1:]):
        gap = _minutes(cur.leave_time, nxt.join_time)
        if gap > RECONNECT_GAP_TOLERANCE_MINUTES:
            total += gap
    return round_half_up(total)

# -------------------- per participant --------------------

def calculate_attendance(participant: ProcessedParticipant,
                         settings: Optional[EngineSettings] = None) -> ProcessedParticipant:
    """Recompute timestamps, absence minutes and presence of one participant."""
    settings = settings or EngineSettings()
    total = 0
    for period in PERIODS:
        participant.sessions[period].sort(key=lambda r: r.join_time)
        events = participant.all_connections[period]
        events.sort(key=lambda c: c.join_time)
        if events:
            setattr(participant, f"{period}_first_join", events[0].join_time)
            setattr(participant, f"{period}_last_leave", events[-1].leave_time)
            total += session_absence_minutes(events, settings.window(period))
        else:
            setattr(participant, f"{period}_first_join", None)
            setattr(participant, f"{period}_last_leave", None)

    # An empty period next to a populated one is a single-period enrollment.
    if not participant.has_connections():
        total = ABSENCE_SENTINEL

    participant.total_absence_minutes = total
    participant.is_present = total <= PRESENCE_TOLERANCE_MINUTES
    return participant


def calculate_all(participants: Iterable[ProcessedParticipant],
                  settings: Optional[EngineSettings] = None,
                  context: Optional[LessonContext] = None) -> None:
    """Run :func:`calculate_attendance` on each record, isolating failures."""
    for p in participants:
        try:
            calculate_attendance(p, settings)
        except (TypeError, ValueError, AttributeError) as e:
            msg = f"attendance of '{p.name}' could not be computed: {e}"
            if context is not None:
                context.warn(ATTENDANCE_FAILURE, msg)
            else:
                logger.error(msg)
            p.total_absence_minutes = ABSENCE_SENTINEL
            p.is_present = False
        else:
            logger.debug(
                f"{p.name}: absence={p.total_absence_minutes}min present={p.is_present}")
