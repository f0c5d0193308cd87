import logging
from typing import List, Optional, Sequence, Tuple

from .absence import calculate_all
from .models import LessonContext, ProcessedParticipant, RawConnectionRow
from .settings import EngineSettings

logger = logging.getLogger(__name__)


def _add_rows(ctx: LessonContext, period: str, rows: Sequence[RawConnectionRow]) -> None:
    for row in rows:
        p = ctx.get_or_create(row)
        p.sessions[period].append(row)
        ev = row.to_event()
        if ev is not None:
            p.all_connections[period].append(ev)
        if row.is_organizer and ctx.organizer_key is None:
            ctx.organizer_key = p.key


def _sort_key(p: ProcessedParticipant):
    return (p.name.casefold(), p.name)


def consolidate_sessions(
    morning_rows: Sequence[RawConnectionRow],
    afternoon_rows: Sequence[RawConnectionRow],
    context: Optional[LessonContext] = None,
    settings: Optional[EngineSettings] = None,
) -> Tuple[List[ProcessedParticipant], Optional[ProcessedParticipant]]:
    """Group connection rows by case-insensitive name and compute attendance.

    Morning rows are consumed before afternoon rows, so the host of the
    morning export is the organizer when both files have one. The organizer is
    returned separately and never appears in the (alphabetical) list.
    """
    ctx = context if context is not None else LessonContext()
    _add_rows(ctx, "morning", morning_rows)
    _add_rows(ctx, "afternoon", afternoon_rows)

    calculate_all(ctx.participants.values(), settings, ctx)

    organizer = ctx.participants.get(ctx.organizer_key) if ctx.organizer_key else None
    if organizer is not None:
        organizer.is_organizer = True
    participants = sorted(
        (p for k, p in ctx.participants.items() if k != ctx.organizer_key), key=_sort_key)
    logger.info(
        f"Consolidated {len(participants)} participants"
        + (f", organizer '{organizer.name}'" if organizer else ", no organizer"))
    return participants, organizer
