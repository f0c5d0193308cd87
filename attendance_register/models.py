"""Data model of one lesson's attendance computation."""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

import pandas as pd

from .settings import ABSENCE_SENTINEL

logger = logging.getLogger(__name__)

PERIODS = ("morning", "afternoon")


class LessonType(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    BOTH = "both"
    # Auto-detect: periods and hours are taken from what the data shows.
    FAST = "fast"

    @property
    def covers_morning(self) -> bool:
        return self is not LessonType.AFTERNOON

    @property
    def covers_afternoon(self) -> bool:
        return self is not LessonType.MORNING


class CSVPeriod(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ConnectionEvent:
    """One contiguous join -> leave interval."""
    join_time: pd.Timestamp
    leave_time: pd.Timestamp


@dataclass
class RawConnectionRow:
    """A single exported connection, before aggregation."""
    name: str
    email: str
    join_time: pd.Timestamp
    leave_time: pd.Timestamp
    duration_minutes: int = 0
    is_guest: bool = False
    is_organizer: bool = False

    def to_event(self) -> Optional[ConnectionEvent]:
        if self.leave_time < self.join_time:
            logger.warning(
                f"Discarding connection of '{self.name}': leave {self.leave_time} "
                f"precedes join {self.join_time}")
            return None
        return ConnectionEvent(self.join_time, self.leave_time)


@dataclass
class Alias:
    """Alternate display name attributed to the same person by a merge."""
    name: str
    connections_list: str


def _empty_periods() -> Dict[str, list]:
    return {p: [] for p in PERIODS}


@dataclass
class ProcessedParticipant:
    name: str
    email: str = ""
    is_organizer: bool = False
    all_connections: Dict[str, List[ConnectionEvent]] = field(default_factory=_empty_periods)
    sessions: Dict[str, List[RawConnectionRow]] = field(default_factory=_empty_periods)
    morning_first_join: Optional[pd.Timestamp] = None
    morning_last_leave: Optional[pd.Timestamp] = None
    afternoon_first_join: Optional[pd.Timestamp] = None
    afternoon_last_leave: Optional[pd.Timestamp] = None
    total_absence_minutes: int = ABSENCE_SENTINEL
    is_present: bool = False
    # Manual override; None means "not set by anyone".
    is_absent: Optional[bool] = None
    aliases: List[Alias] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.name.lower()

    def has_connections(self, period: Optional[str] = None) -> bool:
        periods = (period,) if period else PERIODS
        return any(self.all_connections[p] for p in periods)

    def first_join(self, period: str) -> Optional[pd.Timestamp]:
        return getattr(self, f"{period}_first_join")

    def last_leave(self, period: str) -> Optional[pd.Timestamp]:
        return getattr(self, f"{period}_last_leave")


@dataclass
class CSVAnalysis:
    period: CSVPeriod
    first_join_time: Optional[pd.Timestamp]
    last_leave_time: Optional[pd.Timestamp]
    participant_count: int


@dataclass
class LessonContext:
    """State owned by one lesson computation; discarded afterwards."""
    participants: Dict[str, ProcessedParticipant] = field(default_factory=dict)
    organizer_key: Optional[str] = None
    warnings: List[dict] = field(default_factory=list)

    def warn(self, kind: str, message: str) -> None:
        logger.warning(f"{kind}: {message}")
        self.warnings.append({"type": kind, "message": message})

    def get_or_create(self, row: RawConnectionRow) -> ProcessedParticipant:
        k = row.name.lower()
        if k not in self.participants:
            self.participants[k] = ProcessedParticipant(
                name=row.name, email=row.email)
        return self.participants[k]


@dataclass
class LessonResult:
    date: date
    subject: str
    lesson_type: LessonType
    participants: List[ProcessedParticipant]
    organizer: Optional[ProcessedParticipant] = None
    course_id: Optional[str] = None
    lesson_hours: List[int] = field(default_factory=list)
    warnings: List[dict] = field(default_factory=list)
