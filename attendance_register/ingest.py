import io
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from .errors import InvalidFormat, PARSE_DEGRADATION, PERIOD_CONFLICT
from .models import CSVAnalysis, CSVPeriod, LessonContext, RawConnectionRow
from .settings import AFTERNOON_START_HOUR, ORGANIZER_ROW_INDEX, PARTICIPANT_MARKERS
from .timestamps import try_parse_zoom_datetime

logger = logging.getLogger(__name__)

_MARKER_RE = re.compile(
    r"^[^\n]*(?:" + "|".join(re.escape(m) for m in PARTICIPANT_MARKERS) + r")",
    flags=re.I | re.M,
)

_FILENAME_DATE_RE = re.compile(r"(\d{4})_(\d{2})_(\d{2})")

_GUEST_YES = {"sì", "si", "yes", "true", "1"}

# -------------------- decoding --------------------

def decode_csv_bytes(data: bytes) -> str:
    """Decode an export the way Zoom writes them (BOM utf-8, sometimes utf-16)."""
    if data.startswith((b"\xff\xfe", b"\xfe\xff")):
        return data.decode("utf-16")
    for enc in ("utf-8-sig", "utf-8"):
        try:
            return data.decode(enc)
        except UnicodeError:
            continue
    return data.decode("utf-8", errors="replace")

# -------------------- participants table --------------------

def _read_participants_table(text: str) -> pd.DataFrame:
    text = text.lstrip("\ufeff")
    m = _MARKER_RE.search(text)
    if not m:
        raise InvalidFormat(
            "Formato CSV non valido: impossibile trovare la sezione partecipanti")
    payload = text[m.start():]
    # index_col=False: a trailing comma on data rows must not shift the columns
    opts = dict(dtype=str, keep_default_na=False, skip_blank_lines=True, index_col=False)
    try:
        return pd.read_csv(io.StringIO(payload), engine="c", **opts)
    except (pd.errors.ParserError, UnicodeError):
        return pd.read_csv(io.StringIO(payload), engine="python", sep=",",
                           on_bad_lines="skip", **opts)


def _detect_columns(df: pd.DataFrame) -> dict:
    cols = {str(c).strip().lower(): c for c in df.columns}
    def pick(cands):
        for c in cands:
            if c in cols: return cols[c]
        return None
    return dict(
        name_col=pick(["nome (nome originale)", "name (original name)", "nome", "name"]),
        email_col=pick(["e-mail", "email", "user email", "e-mail utente"]),
        join_col=pick(["ora di ingresso", "join time", "ora di accesso"]),
        leave_col=pick(["ora di uscita", "leave time"]),
        duration_col=pick(["durata (minuti)", "duration (minutes)"]),
        guest_col=pick(["guest", "ospite"]),
    )


def clean_participant_name(name: str) -> str:
    """Drop the trailing role suffix, e.g. ``Mario Rossi (Organizzatore)``."""
    return re.sub(r"\s*\([^)]*\)$", "", str(name or "").strip()).strip()


def _cell(row: pd.Series, col: Optional[str]) -> str:
    if col is None:
        return ""
    val = row.get(col, "")
    return "" if val is None or (isinstance(val, float) and pd.isna(val)) else str(val).strip()


def _parse_time_cell(raw: str, who: str, context: Optional[LessonContext]) -> Optional[pd.Timestamp]:
    if not raw:
        return None
    ts = try_parse_zoom_datetime(raw)
    if ts is None:
        msg = f"timestamp {raw!r} of '{who}' unreadable, using current time"
        if context is not None:
            context.warn(PARSE_DEGRADATION, msg)
        else:
            logger.warning(f"{PARSE_DEGRADATION}: {msg}")
        ts = pd.Timestamp.now()
    return ts


def _parse_duration(raw: str) -> int:
    """Minutes of a duration cell; anything non-numeric or non-finite is 0."""
    val = pd.to_numeric(raw, errors="coerce") if raw else float("nan")
    if pd.isna(val) or not math.isfinite(val):
        return 0
    return int(val)


def parse_zoom_csv(text: str, context: Optional[LessonContext] = None) -> List[RawConnectionRow]:
    """Parse one Zoom export into connection rows.

    The first data row is the meeting host and is flagged as organizer; rows
    without a name or without join/leave values are dropped.
    """
    df = _read_participants_table(text)
    cols = _detect_columns(df)
    if cols["name_col"] is None:
        raise InvalidFormat(f"Colonna nome non trovata. Colonne: {list(df.columns)}")

    rows: List[RawConnectionRow] = []
    for pos, (_, r) in enumerate(df.iterrows()):
        name = clean_participant_name(_cell(r, cols["name_col"]))
        if not name:
            continue
        join = _parse_time_cell(_cell(r, cols["join_col"]), name, context)
        leave = _parse_time_cell(_cell(r, cols["leave_col"]), name, context)
        if join is None or leave is None:
            logger.debug(f"Skipping row {pos} of '{name}': missing join/leave time")
            continue
        rows.append(RawConnectionRow(
            name=name,
            email=_cell(r, cols["email_col"]),
            join_time=join,
            leave_time=leave,
            duration_minutes=_parse_duration(_cell(r, cols["duration_col"])),
            is_guest=_cell(r, cols["guest_col"]).lower() in _GUEST_YES,
            is_organizer=(pos == ORGANIZER_ROW_INDEX),
        ))
    logger.info(f"Parsed {len(rows)} connection rows out of {len(df)} table rows")
    return rows

# -------------------- period classification --------------------

def classify_rows(rows: Sequence[RawConnectionRow]) -> CSVAnalysis:
    if not rows:
        return CSVAnalysis(CSVPeriod.UNKNOWN, None, None, 0)
    first_join = min(r.join_time for r in rows)
    last_leave = max(r.leave_time for r in rows)
    period = CSVPeriod.MORNING if first_join.hour < AFTERNOON_START_HOUR else CSVPeriod.AFTERNOON
    return CSVAnalysis(period, first_join, last_leave, len(rows))


def analyze_csv_period(text: str) -> CSVAnalysis:
    """Classify an export as morning/afternoon from its earliest join."""
    try:
        rows = parse_zoom_csv(text)
    except InvalidFormat as e:
        logger.warning(f"Cannot classify CSV: {e}")
        return CSVAnalysis(CSVPeriod.UNKNOWN, None, None, 0)
    return classify_rows(rows)


@dataclass
class AutoAssignment:
    morning: Optional[Tuple[str, str]] = None
    afternoon: Optional[Tuple[str, str]] = None
    analyses: List[Tuple[str, CSVAnalysis]] = field(default_factory=list)
    warnings: List[dict] = field(default_factory=list)


def auto_assign_csv_files(files: Sequence[Tuple[str, str]]) -> AutoAssignment:
    """Route ``(filename, text)`` pairs to morning/afternoon by classification.

    The first file of each period (input order) wins; the others are reported.
    """
    out = AutoAssignment()
    by_period = {CSVPeriod.MORNING: [], CSVPeriod.AFTERNOON: []}
    for name, text in files:
        analysis = analyze_csv_period(text)
        out.analyses.append((name, analysis))
        if analysis.period in by_period:
            by_period[analysis.period].append((name, text))
        else:
            logger.warning(f"File '{name}' could not be classified")
    for period, label in ((CSVPeriod.MORNING, "della mattina"), (CSVPeriod.AFTERNOON, "del pomeriggio")):
        found = by_period[period]
        if found:
            setattr(out, period.value, found[0])
        if len(found) > 1:
            msg = f"Trovati {len(found)} file {label}. Utilizzato: {found[0][0]}"
            logger.warning(f"{PERIOD_CONFLICT}: {msg}")
            out.warnings.append({"type": PERIOD_CONFLICT, "message": msg})
    return out


def extract_date_from_filename(filename: str) -> Optional[date]:
    """``Mattina_2025_07_08.csv`` -> 2025-07-08; None when no date is present."""
    m = _FILENAME_DATE_RE.search(filename or "")
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None
