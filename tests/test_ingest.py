"""Tests for CSV ingestion and period classification."""

from datetime import date

import pandas as pd
import pytest

from attendance_register.errors import InvalidFormat, PARSE_DEGRADATION, PERIOD_CONFLICT
from attendance_register.ingest import (
    analyze_csv_period,
    auto_assign_csv_files,
    clean_participant_name,
    decode_csv_bytes,
    extract_date_from_filename,
    parse_zoom_csv,
)
from attendance_register.logic import process_lesson
from attendance_register.models import CSVPeriod, LessonContext


# ─── PARSING ──────────────────────────────────────────────────────────────────

class TestParseZoomCsv:
    def test_rows_of_valid_export(self, morning_valid):
        rows = parse_zoom_csv(morning_valid)
        assert len(rows) == 5
        assert rows[1].name == "Giovanni Bianchi"
        assert rows[1].email == "giovanni.bianchi@test.it"
        assert rows[1].join_time == pd.Timestamp(2025, 7, 8, 9, 5)
        assert rows[1].leave_time == pd.Timestamp(2025, 7, 8, 12, 55)
        assert rows[1].duration_minutes == 230
        assert rows[1].is_guest is False

    def test_first_row_is_organizer(self, morning_valid):
        """Only the first data row is flagged and its role suffix is removed."""
        rows = parse_zoom_csv(morning_valid)
        assert rows[0].is_organizer
        assert rows[0].name == "Prof. Mario Rossi"
        assert not any(r.is_organizer for r in rows[1:])

    def test_missing_marker(self, invalid_missing_headers):
        with pytest.raises(InvalidFormat):
            parse_zoom_csv(invalid_missing_headers)

    def test_header_only_gives_no_rows(self, invalid_no_participants):
        assert parse_zoom_csv(invalid_no_participants) == []

    def test_rows_without_name_or_times_are_dropped(self, zoom_csv):
        text = zoom_csv([
            ("", "09:00:00 AM", "10:00:00 AM"),
            ("Anna Blu", "09:00:00 AM", "01:00:00 PM"),
        ])
        text += "\nSenza Orari,senza@test.it,,,0,No,No"
        rows = parse_zoom_csv(text)
        assert [r.name for r in rows] == ["Prof. Mario Rossi", "Anna Blu"]

    def test_trailing_comma_keeps_columns(self, zoom_csv):
        """Rows with one field more than the header are read column by column."""
        text = zoom_csv([("Luca Neri", "09:10:00 AM", "10:00:00 AM"),
                         ("Luca Neri", "10:05:00 AM", "12:50:00 PM")])
        text = text.replace(",No,No", ",No,No,")
        ctx = LessonContext()
        rows = parse_zoom_csv(text, ctx)
        assert [r.name for r in rows] == ["Prof. Mario Rossi", "Luca Neri", "Luca Neri"]
        assert rows[1].email == "luca.neri@test.it"
        assert rows[2].join_time == pd.Timestamp(2025, 7, 8, 10, 5)
        assert ctx.warnings == []

    def test_trailing_comma_lesson(self, morning_valid):
        text = "\n".join(line + "," if line.endswith(",No,No") else line
                         for line in morning_valid.split("\n"))
        result = process_lesson(text, None, "morning", "Test")
        assert [p.name for p in result.participants] == ["Giovanni Bianchi", "Luca Neri", "Maria Verdi"]
        assert result.organizer.name == "Prof. Mario Rossi"

    @pytest.mark.parametrize("raw", ["inf", "-inf", "1e400", "abc", ""])
    def test_bad_duration_is_zero(self, zoom_csv, raw):
        text = zoom_csv([])
        text += f"\nAnna Blu,anna@test.it,08/07/2025 09:00:00 AM,08/07/2025 01:00:00 PM,{raw},No,No"
        text += "\nBruno Neri,bruno@test.it,08/07/2025 09:00:00 AM,08/07/2025 01:00:00 PM,240,No,No"
        rows = parse_zoom_csv(text)
        assert [(r.name, r.duration_minutes) for r in rows[1:]] == [("Anna Blu", 0), ("Bruno Neri", 240)]

    def test_english_export(self):
        text = (
            "Topic,ID,Host name\nCourse,1,Host\n\n"
            "Name (original name),User Email,Join time,Leave time,Duration (minutes),Guest\n"
            "Host,host@test.it,07/08/2025 09:00:00 AM,07/08/2025 01:00:00 PM,240,No\n"
            "Jane Doe,jane@test.it,07/08/2025 09:00:00 AM,07/08/2025 01:00:00 PM,240,Yes\n"
        )
        rows = parse_zoom_csv(text)
        assert [r.name for r in rows] == ["Host", "Jane Doe"]
        assert rows[1].email == "jane@test.it"
        assert rows[1].is_guest is True

    def test_unreadable_timestamp_is_recorded(self, zoom_csv):
        ctx = LessonContext()
        rows = parse_zoom_csv(zoom_csv([("Anna Blu", "??", "01:00:00 PM")]).replace(
            "08/07/2025 ??", "not a date"), ctx)
        assert len(rows) == 2
        assert [w["type"] for w in ctx.warnings] == [PARSE_DEGRADATION]

    def test_clean_participant_name(self):
        assert clean_participant_name("Mario Rossi (Organizzatore)") == "Mario Rossi"
        assert clean_participant_name("  Anna (Blu) Verdi  ") == "Anna (Blu) Verdi"
        assert clean_participant_name(None) == ""


class TestDecoding:
    def test_utf8_bom_is_removed(self):
        assert decode_csv_bytes("\ufeffNome".encode("utf-8")) == "Nome"

    def test_utf16(self):
        assert decode_csv_bytes("Nome (nome originale)".encode("utf-16")) == "Nome (nome originale)"

    def test_bom_prefixed_export_parses(self, morning_valid):
        text = decode_csv_bytes(("\ufeff" + morning_valid).encode("utf-8"))
        assert len(parse_zoom_csv(text)) == 5


# ─── CLASSIFICATION ───────────────────────────────────────────────────────────

class TestClassification:
    def test_morning(self, morning_valid):
        a = analyze_csv_period(morning_valid)
        assert a.period is CSVPeriod.MORNING
        assert a.first_join_time == pd.Timestamp(2025, 7, 8, 9)
        assert a.last_leave_time == pd.Timestamp(2025, 7, 8, 13)
        assert a.participant_count == 5

    def test_afternoon(self, afternoon_valid):
        assert analyze_csv_period(afternoon_valid).period is CSVPeriod.AFTERNOON

    def test_thirteen_is_afternoon(self, zoom_csv):
        text = zoom_csv([], host=("Host", "01:00:00 PM", "05:00:00 PM"))
        assert analyze_csv_period(text).period is CSVPeriod.AFTERNOON

    def test_unknown(self, invalid_missing_headers, invalid_no_participants):
        assert analyze_csv_period(invalid_missing_headers).period is CSVPeriod.UNKNOWN
        assert analyze_csv_period(invalid_no_participants).period is CSVPeriod.UNKNOWN


class TestAutoAssign:
    def test_routes_by_period(self, morning_valid, afternoon_valid):
        out = auto_assign_csv_files([("b.csv", afternoon_valid), ("a.csv", morning_valid)])
        assert out.morning == ("a.csv", morning_valid)
        assert out.afternoon == ("b.csv", afternoon_valid)
        assert out.warnings == []

    def test_first_file_wins(self, morning_valid, morning_with_absences):
        out = auto_assign_csv_files([("first.csv", morning_valid), ("second.csv", morning_with_absences)])
        assert out.morning[0] == "first.csv"
        assert out.afternoon is None
        assert out.warnings[0]["type"] == PERIOD_CONFLICT
        assert "first.csv" in out.warnings[0]["message"]
        assert len(out.warnings) == 1

    def test_unclassified_file_is_ignored(self, morning_valid, invalid_missing_headers):
        out = auto_assign_csv_files([("x.csv", invalid_missing_headers), ("m.csv", morning_valid)])
        assert out.morning[0] == "m.csv"
        assert len(out.analyses) == 2


class TestFilenameDate:
    def test_date_in_name(self):
        assert extract_date_from_filename("Mattina_2025_07_08.csv") == date(2025, 7, 8)

    def test_no_date(self):
        assert extract_date_from_filename("export.csv") is None
        assert extract_date_from_filename("x_2025_13_45.csv") is None
