"""Manual corrections a reviewer applies to computed participants.

All helpers return new records; the inputs are left untouched.
"""

import copy
from typing import Dict, List, Optional, Sequence

from .models import PERIODS, Alias, ConnectionEvent, ProcessedParticipant
from .settings import ABSENCE_SENTINEL, NO_CONNECTIONS_LABEL, PRESENCE_TOLERANCE_MINUTES


def format_connection_times(connections: Sequence[ConnectionEvent]) -> str:
    if not connections:
        return NO_CONNECTIONS_LABEL
    return "; ".join(
        f"{c.join_time.strftime('%H:%M:%S')} - {c.leave_time.strftime('%H:%M:%S')}"
        for c in connections)


def create_manual_participant(name: str) -> ProcessedParticipant:
    """A participant missing from the exports; absent until marked otherwise."""
    return ProcessedParticipant(name=name.strip(), total_absence_minutes=ABSENCE_SENTINEL,
                                is_present=False, is_absent=True)


def mark_present(p: ProcessedParticipant) -> ProcessedParticipant:
    out = copy.deepcopy(p)
    out.is_present, out.is_absent, out.total_absence_minutes = True, False, 0
    return out


def mark_absent(p: ProcessedParticipant) -> ProcessedParticipant:
    out = copy.deepcopy(p)
    out.is_present, out.is_absent, out.total_absence_minutes = False, True, ABSENCE_SENTINEL
    return out


def toggle_presence(p: ProcessedParticipant) -> ProcessedParticipant:
    return mark_absent(p) if p.is_present else mark_present(p)


def normalize_connections(connections: Sequence[ConnectionEvent]) -> List[ConnectionEvent]:
    """Sort and merge overlapping or touching intervals."""
    merged: List[ConnectionEvent] = []
    for c in sorted(connections, key=lambda c: c.join_time):
        if merged and c.join_time <= merged[-1].leave_time:
            last = merged[-1]
            if c.leave_time > last.leave_time:
                merged[-1] = ConnectionEvent(last.join_time, c.leave_time)
        else:
            merged.append(c)
    return merged


def _dedupe_sessions(rows) -> list:
    seen: Dict[tuple, object] = {}
    for r in rows:
        seen[(r.name, r.email, r.join_time, r.leave_time)] = r
    return list(seen.values())


def _self_alias(p: ProcessedParticipant) -> Alias:
    return Alias(p.name, format_connection_times(
        p.all_connections["morning"] + p.all_connections["afternoon"]))


def merge_participants(target: ProcessedParticipant,
                       source: ProcessedParticipant) -> ProcessedParticipant:
    """Merge two records of the same person seen under different names.

    The result does not depend on which record is the target: name and email
    are the first in case-insensitive order, presence is kept if either was
    present, and both display names survive as aliases.
    """
    out = copy.deepcopy(target)
    for period in PERIODS:
        conns = normalize_connections(target.all_connections[period] + source.all_connections[period])
        out.all_connections[period] = conns
        out.sessions[period] = sorted(
            _dedupe_sessions(target.sessions[period] + source.sessions[period]),
            key=lambda r: r.join_time)
        setattr(out, f"{period}_first_join", conns[0].join_time if conns else None)
        setattr(out, f"{period}_last_leave", conns[-1].leave_time if conns else None)

    raw = list(target.aliases) + list(source.aliases) + [_self_alias(source)]
    if target.name != source.name:
        raw.append(_self_alias(target))
    aliases: Dict[tuple, Alias] = {}
    for a in raw:
        aliases.setdefault((a.name, a.connections_list), a)
    out.aliases = list(aliases.values())

    names = sorted([(target.name or "").strip(), (source.name or "").strip()], key=str.casefold)
    out.name = names[0] or target.name
    emails = sorted([e for e in ((target.email or "").strip(), (source.email or "").strip()) if e],
                    key=str.casefold)
    out.email = emails[0] if emails else ""

    out.is_present = bool(target.is_present or source.is_present)
    out.is_absent = not out.is_present
    out.total_absence_minutes = min(target.total_absence_minutes, source.total_absence_minutes)
    return out


def participant_stats(participants: Sequence[ProcessedParticipant],
                      organizer: Optional[ProcessedParticipant] = None) -> dict:
    present = sum(1 for p in participants if p.is_present)
    absent = len(participants) - present
    host = 1 if organizer is not None else 0
    return {
        "total": len(participants) + host,
        "present": present + host,
        "absent": absent,
        "has_absences": absent > 0,
        "tolerance_minutes": PRESENCE_TOLERANCE_MINUTES,
    }
