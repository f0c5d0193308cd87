import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .errors import (
    AttendanceError,
    CAPACITY_EXCEEDED,
    INVALID_FORMAT,
    EmptyParticipantSet,
    InvalidFormat,
)
from .hours import calculate_lesson_hours
from .ingest import auto_assign_csv_files, classify_rows, extract_date_from_filename, parse_zoom_csv
from .models import CSVPeriod, LessonContext, LessonResult, LessonType, ProcessedParticipant
from .participants import participant_stats
from .sessions import consolidate_sessions
from .settings import EngineSettings
from .template_data import generate_filename, prepare_template_data

logger = logging.getLogger(__name__)

AliasMerger = Callable[[List[ProcessedParticipant]], List[ProcessedParticipant]]

ERROR_MESSAGES = {
    "MISSING_SUBJECT": "Inserisci l'argomento della lezione",
    "MISSING_BOTH_FILES": "Per lezioni complete, carica entrambi i file CSV",
    "MISSING_MORNING_FILE": "Carica il file CSV della mattina",
    "MISSING_AFTERNOON_FILE": "Carica il file CSV del pomeriggio",
    "MISSING_FAST_FILES": "In modalità Fast, carica almeno un file CSV",
}

# -------------------- validation --------------------

def validate_lesson_requirements(lesson_type, morning_text: Optional[str],
                                 afternoon_text: Optional[str], subject: str) -> Optional[str]:
    """Return the code of the first missing input, or None."""
    lesson_type = LessonType(lesson_type)
    if not (subject or "").strip():
        return "MISSING_SUBJECT"
    if lesson_type is LessonType.FAST:
        return None if (morning_text or afternoon_text) else "MISSING_FAST_FILES"
    if lesson_type is LessonType.BOTH and not (morning_text and afternoon_text):
        return "MISSING_BOTH_FILES"
    if lesson_type is LessonType.MORNING and not morning_text:
        return "MISSING_MORNING_FILE"
    if lesson_type is LessonType.AFTERNOON and not afternoon_text:
        return "MISSING_AFTERNOON_FILE"
    return None


def lesson_date_from_participants(participants: Sequence[ProcessedParticipant],
                                  organizer: Optional[ProcessedParticipant] = None) -> Optional[date]:
    """Calendar day of the earliest first join among participants and organizer."""
    pop = list(participants) + ([organizer] if organizer is not None else [])
    joins = [t for p in pop for t in (p.morning_first_join, p.afternoon_first_join) if t is not None]
    return min(joins).date() if joins else None

# -------------------- lesson engine --------------------

def _ingest_period(text: Optional[str], period: str, ctx: LessonContext, failures: list):
    if not text:
        return []
    try:
        return parse_zoom_csv(text, ctx)
    except InvalidFormat as e:
        # only this period is lost
        ctx.warn(INVALID_FORMAT, f"{period}: {e}")
        failures.append(e)
        return []


def process_lesson(morning_text: Optional[str] = None,
                   afternoon_text: Optional[str] = None,
                   lesson_type="both",
                   subject: str = "",
                   lesson_date: Optional[date] = None,
                   course_id: Optional[str] = None,
                   settings: Optional[EngineSettings] = None,
                   alias_merger: Optional[AliasMerger] = None) -> LessonResult:
    """Compute the attendance of one lesson day from its exports.

    Only the files the lesson type needs are read. Raises ``InvalidFormat`` when
    no supplied file has a participant section and ``EmptyParticipantSet`` when
    no usable row remains.
    """
    settings = settings or EngineSettings()
    lesson_type = LessonType(lesson_type)
    ctx = LessonContext()
    failures: List[InvalidFormat] = []

    morning_rows = _ingest_period(morning_text if lesson_type.covers_morning else None,
                                  "morning", ctx, failures)
    afternoon_rows = _ingest_period(afternoon_text if lesson_type.covers_afternoon else None,
                                    "afternoon", ctx, failures)
    if not morning_rows and not afternoon_rows:
        if failures:
            raise failures[0]
        raise EmptyParticipantSet("Nessun partecipante trovato nei file CSV")

    participants, organizer = consolidate_sessions(morning_rows, afternoon_rows, ctx, settings)
    if alias_merger is not None:
        participants = list(alias_merger(participants))

    hours = calculate_lesson_hours(participants, organizer, lesson_type)
    day = lesson_date or lesson_date_from_participants(participants, organizer) or date.today()

    slots = settings.max_participant_slots
    if len(participants) > slots:
        dropped = ", ".join(p.name for p in participants[slots:])
        ctx.warn(CAPACITY_EXCEEDED,
                 f"{len(participants)} partecipanti, il documento ne contiene {slots}: esclusi {dropped}")

    logger.info(f"Lesson {day.isoformat()} ({lesson_type.value}): "
                f"{len(participants)} participants, hours {hours}")
    return LessonResult(date=day, subject=subject, lesson_type=lesson_type,
                        participants=participants, organizer=organizer, course_id=course_id,
                        lesson_hours=hours, warnings=ctx.warnings)

# -------------------- request adapter --------------------

def _parse_iso_date(value) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise AttendanceError(f"Data non valida: {value!r}") from e


def process_request(inputs: Dict, params: Dict,
                    alias_merger: Optional[AliasMerger] = None) -> Tuple[Dict[str, str], Dict]:
    """Run one lesson from loose inputs and return ``(record, meta)``.

    ``inputs`` holds ``morning``/``afternoon`` texts and/or ``auto``, a list of
    ``(filename, text)`` pairs routed by period. ``params`` is the JSON blob of
    the caller: ``lesson_type``, ``subject``, ``date``, ``course_id`` and the
    :class:`EngineSettings` keys.
    """
    params = params or {}
    settings = EngineSettings.from_params(params)
    lesson_type = LessonType(str(params.get("lesson_type", "both") or "both"))
    subject = str(params.get("subject", "") or "")
    morning_text, afternoon_text = inputs.get("morning"), inputs.get("afternoon")
    warnings: List[dict] = []
    lesson_date = _parse_iso_date(params.get("date"))

    if inputs.get("auto"):
        assignment = auto_assign_csv_files(inputs["auto"])
        warnings.extend(assignment.warnings)
        if assignment.morning:
            morning_text = morning_text or assignment.morning[1]
        if assignment.afternoon:
            afternoon_text = afternoon_text or assignment.afternoon[1]
        if lesson_date is None:
            for name, _ in inputs["auto"]:
                lesson_date = extract_date_from_filename(name)
                if lesson_date:
                    break

    code = validate_lesson_requirements(lesson_type, morning_text, afternoon_text, subject)
    if code:
        raise AttendanceError(ERROR_MESSAGES[code])

    result = process_lesson(morning_text, afternoon_text, lesson_type, subject, lesson_date,
                            params.get("course_id") or None, settings, alias_merger)
    record = prepare_template_data(result, settings.max_participant_slots)
    meta = {
        "filename": generate_filename(result.date, result.course_id, settings.filename_prefix),
        "date": result.date.isoformat(),
        "lesson_type": result.lesson_type.value,
        "lesson_hours": result.lesson_hours,
        "participants": len(result.participants),
        "stats": participant_stats(result.participants, result.organizer),
        "organizer": result.organizer.name if result.organizer else None,
        "warnings": warnings + result.warnings,
    }
    return record, meta

# -------------------- multi-day batch --------------------

@dataclass
class CourseDay:
    date: date
    morning_text: Optional[str] = None
    afternoon_text: Optional[str] = None
    subject: str = ""
    lesson_type: Optional[LessonType] = None

    def resolved_type(self) -> LessonType:
        if self.lesson_type is not None:
            return LessonType(self.lesson_type)
        if self.morning_text and self.afternoon_text:
            return LessonType.BOTH
        return LessonType.MORNING if self.morning_text else LessonType.AFTERNOON


@dataclass
class BatchResult:
    results: List[dict] = field(default_factory=list)
    lessons: List[LessonResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r["success"])

    @property
    def failed(self) -> int:
        return self.total - self.successful


def group_files_by_date(files: Sequence[Tuple[str, str]]) -> List[CourseDay]:
    """Pair exports into days using the date and period of their earliest join.

    Unclassifiable files are skipped; a later file for an already filled
    period of the same day replaces nothing.
    """
    days: Dict[date, CourseDay] = {}
    for name, text in files:
        try:
            analysis = classify_rows(parse_zoom_csv(text))
        except InvalidFormat as e:
            logger.warning(f"Skipping '{name}': {e}")
            continue
        if analysis.period is CSVPeriod.UNKNOWN:
            logger.warning(f"Skipping '{name}': no participants")
            continue
        day = analysis.first_join_time.date()
        pair = days.setdefault(day, CourseDay(date=day))
        attr = f"{analysis.period.value}_text"
        if getattr(pair, attr) is None:
            setattr(pair, attr, text)
        else:
            logger.warning(f"Duplicate {analysis.period.value} export for {day}: '{name}' ignored")
    return [days[d] for d in sorted(days)]


def process_course_days(days: Sequence[CourseDay],
                        course_id: Optional[str] = None,
                        settings: Optional[EngineSettings] = None,
                        alias_merger: Optional[AliasMerger] = None,
                        on_progress: Optional[Callable[[int, int, date], None]] = None,
                        on_day_complete: Optional[Callable[[date, bool], None]] = None) -> BatchResult:
    """Process each day on its own, in ascending date order.

    A day that fails is reported and does not stop the others.
    """
    settings = settings or EngineSettings()
    ordered = sorted(days, key=lambda d: d.date)
    out = BatchResult()
    total = len(ordered)
    for i, day in enumerate(ordered, 1):
        if on_progress:
            on_progress(i, total, day.date)
        subject = day.subject or f"Lezione del {day.date.strftime('%d/%m/%Y')}"
        try:
            result = process_lesson(day.morning_text, day.afternoon_text, day.resolved_type(),
                                    subject, day.date, course_id, settings, alias_merger)
        except AttendanceError as e:
            logger.error(f"Day {day.date.isoformat()} failed: {e}")
            out.results.append(dict(date=day.date.isoformat(), success=False, error=str(e)))
        else:
            out.lessons.append(result)
            out.results.append(dict(
                date=day.date.isoformat(), success=True, error=None,
                participant_count=len(result.participants),
                filename=generate_filename(result.date, course_id, settings.filename_prefix),
                record=prepare_template_data(result, settings.max_participant_slots),
                warnings=result.warnings,
            ))
        if on_day_complete:
            on_day_complete(day.date, out.results[-1]["success"])
    logger.info(f"Batch finished: {out.successful}/{out.total} days processed")
    return out
