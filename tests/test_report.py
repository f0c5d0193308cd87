"""Tests for the course report and its export."""

from datetime import date

import pandas as pd
import pytest

from attendance_register.logic import process_lesson
from attendance_register.report import (
    REPORT_COLUMNS,
    build_course_report,
    export_report,
)


@pytest.fixture
def two_days(morning_valid, zoom_csv):
    day1 = process_lesson(morning_valid, None, "morning", "Giorno 1")
    day2 = process_lesson(
        zoom_csv([("Maria Verdi", "09:00:00 AM", "01:00:00 PM"),
                  ("Giovanni Bianchi", "09:00:00 AM", "11:00:00 AM")], day="09/07/2025"),
        None, "morning", "Giorno 2")
    return [day2, day1]


class TestCourseReport:
    def test_summaries(self, two_days):
        report = build_course_report(two_days, course_id="C1")
        by_name = {s.name: s for s in report.participant_summaries}
        maria = by_name["Maria Verdi"]
        assert (maria.attended_lessons, maria.missed_lessons, maria.attendance_percentage) == (2, 0, 100)
        assert maria.total_hours == 10
        assert maria.last_attendance == date(2025, 7, 9)

        giovanni = by_name["Giovanni Bianchi"]
        assert (giovanni.attended_lessons, giovanni.attendance_percentage) == (1, 50)
        assert giovanni.last_attendance == date(2025, 7, 8)

        luca = by_name["Luca Neri"]
        assert (luca.attended_lessons, luca.missed_lessons) == (0, 2)
        assert luca.last_attendance is None

    def test_ordering_and_average(self, two_days):
        report = build_course_report(two_days)
        assert report.participant_summaries[0].name == "Maria Verdi"
        assert report.total_lessons == 2
        assert report.total_participants == 3
        assert report.average_attendance == 50

    def test_matrix(self, two_days):
        report = build_course_report(two_days)
        assert [l["date"] for l in report.lessons] == [date(2025, 7, 8), date(2025, 7, 9)]
        names = [s.name for s in report.participant_summaries]
        assert report.matrix[names.index("Giovanni Bianchi")] == [True, False]

    def test_empty(self):
        report = build_course_report([])
        assert report.average_attendance == 0
        assert report.participant_summaries == []


class TestExport:
    def test_csv(self, two_days, tmp_path):
        path = export_report(build_course_report(two_days), tmp_path / "report.csv")
        df = pd.read_csv(path, dtype=str)
        assert list(df.columns) == REPORT_COLUMNS
        luca = df[df["Nome"] == "Luca Neri"].iloc[0]
        assert luca["Ultima Presenza"] == "Mai"
        assert luca["Percentuale Presenza"] == "0%"
        maria = df[df["Nome"] == "Maria Verdi"].iloc[0]
        assert maria["Ultima Presenza"] == "09/07/2025"

    def test_xlsx(self, two_days, tmp_path):
        path = export_report(build_course_report(two_days, "C1"), tmp_path / "report.xlsx")
        sheets = pd.read_excel(path, sheet_name=None)
        assert set(sheets) == {"Riepilogo", "Presenze", "Meta"}
        assert list(sheets["Presenze"].columns) == ["Nome", "08/07/2025", "09/07/2025"]

    def test_unsupported_suffix(self, two_days, tmp_path):
        with pytest.raises(ValueError):
            export_report(build_course_report(two_days), tmp_path / "report.pdf")
