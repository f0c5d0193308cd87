from typing import Dict, Optional

from pydantic import BaseModel, Field, model_validator

# -------------------- policy constants --------------------

LESSON_HOURS = {
    "morning": {"start": 9, "end": 13},
    "afternoon": {"start": 14, "end": 18},
}

# Hour that splits a file into morning (<) or afternoon (>=).
AFTERNOON_START_HOUR = 13

# "Certainly absent": outside the 0-480 range any real computation can produce.
ABSENCE_SENTINEL = 999

PRESENCE_TOLERANCE_MINUTES = 14

RECONNECT_GAP_TOLERANCE_MINUTES = 1.5

MAX_PARTICIPANT_SLOTS = 5

ORGANIZER_ROW_INDEX = 0

PARTICIPANT_MARKERS = ("Nome (nome originale)", "Name (original name)")

FILENAME_PREFIX = "modello B fad"

ABSENT_LABEL = "ASSENTE"
NO_CONNECTIONS_LABEL = "Nessuna connessione"
PRESENT_GLYPH = "✅"
ABSENT_GLYPH = "❌"


# -------------------- per-invocation settings --------------------

class LessonWindow(BaseModel):
    """Scheduled boundaries of one period, in whole hours."""
    start_hour: int = Field(ge=0, le=23)
    end_hour: int = Field(ge=1, le=24)

    @model_validator(mode='after')
    def _check_order(self):
        if self.end_hour <= self.start_hour:
            raise ValueError(
                f"end_hour ({self.end_hour}) must be after start_hour ({self.start_hour})")
        return self


def _default_window(period: str) -> LessonWindow:
    return LessonWindow(start_hour=LESSON_HOURS[period]["start"],
                        end_hour=LESSON_HOURS[period]["end"])


class EngineSettings(BaseModel):
    """Choices a caller may make for one lesson computation."""
    morning_window: LessonWindow = Field(
        default_factory=lambda: _default_window("morning"),
        description="Scheduled morning window")
    afternoon_window: LessonWindow = Field(
        default_factory=lambda: _default_window("afternoon"),
        description="Scheduled afternoon window")
    # Capacity of the document template; change only together with the template.
    max_participant_slots: int = Field(MAX_PARTICIPANT_SLOTS, ge=1,
        description="Participant slots available in the document")
    filename_prefix: str = Field(FILENAME_PREFIX,
        description="Prefix of the generated document filename")

    def window(self, period: str) -> LessonWindow:
        return self.morning_window if period == "morning" else self.afternoon_window

    @classmethod
    def from_params(cls, params: Optional[Dict]) -> "EngineSettings":
        """Build settings from a loose JSON params blob.

        Accepts ``morning_start``/``morning_end``/``afternoon_start``/``afternoon_end``,
        ``max_participant_slots`` and ``filename_prefix``; blank values fall back to
        the defaults, as the request adapter always did.
        """
        params = params or {}
        def pick(key, default):
            val = params.get(key)
            return default if val in (None, "") else val
        m, a = LESSON_HOURS["morning"], LESSON_HOURS["afternoon"]
        return cls(
            morning_window=LessonWindow(start_hour=int(pick("morning_start", m["start"])),
                                        end_hour=int(pick("morning_end", m["end"]))),
            afternoon_window=LessonWindow(start_hour=int(pick("afternoon_start", a["start"])),
                                          end_hour=int(pick("afternoon_end", a["end"]))),
            max_participant_slots=int(pick("max_participant_slots", MAX_PARTICIPANT_SLOTS)),
            filename_prefix=str(pick("filename_prefix", FILENAME_PREFIX)),
        )
