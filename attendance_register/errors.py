"""Error taxonomy of the attendance engine.

Only format-breaking and zero-data conditions are raised. Recoverable problems
(a bad timestamp, too many participants for the document, two files for the
same period) are recorded as warning tags on the lesson context and logged.
"""


class AttendanceError(ValueError):
    """Base class for errors surfaced to the caller."""


class InvalidFormat(AttendanceError):
    """The participant section marker is missing from an export."""


class EmptyParticipantSet(AttendanceError):
    """No usable connection rows remain after filtering."""


# Warning tags (never raised)
INVALID_FORMAT = "InvalidFormat"
PARSE_DEGRADATION = "ParseDegradation"
CAPACITY_EXCEEDED = "CapacityExceeded"
PERIOD_CONFLICT = "PeriodConflict"
ATTENDANCE_FAILURE = "AttendanceFailure"
