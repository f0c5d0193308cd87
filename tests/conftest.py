"""Shared Zoom export fixtures."""

import pytest

PREAMBLE = (
    "Argomento,Digita,ID,Nome organizzatore,E-mail organizzatore,Ora di inizio,Ora di fine\n"
    "Corso Test,0,1234567890,Prof. Mario Rossi,mario.rossi@test.it,"
    "08/07/2025 09:00:00 AM,08/07/2025 01:00:00 PM\n"
    "\n"
)
HEADER = ("Nome (nome originale),E-mail,Ora di ingresso,Ora di uscita,"
          "Durata (minuti),Guest,In sala d'attesa\n")

MORNING_VALID = PREAMBLE + HEADER + """\
Prof. Mario Rossi (Organizzatore),mario.rossi@test.it,08/07/2025 09:00:00 AM,08/07/2025 01:00:00 PM,240,No,No
Giovanni Bianchi,giovanni.bianchi@test.it,08/07/2025 09:05:00 AM,08/07/2025 12:55:00 PM,230,No,No
Maria Verdi,maria.verdi@test.it,08/07/2025 09:00:00 AM,08/07/2025 01:00:00 PM,240,No,No
Luca Neri,luca.neri@test.it,08/07/2025 09:10:00 AM,08/07/2025 10:00:00 AM,50,No,No
Luca Neri,luca.neri@test.it,08/07/2025 10:05:00 AM,08/07/2025 12:50:00 PM,165,No,No"""

AFTERNOON_VALID = PREAMBLE + HEADER + """\
Prof. Mario Rossi (Organizzatore),mario.rossi@test.it,08/07/2025 02:00:00 PM,08/07/2025 06:00:00 PM,240,No,No
Giovanni Bianchi,giovanni.bianchi@test.it,08/07/2025 02:05:00 PM,08/07/2025 05:55:00 PM,230,No,No
Maria Verdi,maria.verdi@test.it,08/07/2025 02:00:00 PM,08/07/2025 06:00:00 PM,240,No,No
Luca Neri,luca.neri@test.it,08/07/2025 02:00:00 PM,08/07/2025 06:00:00 PM,240,No,No"""

MORNING_WITH_ABSENCES = PREAMBLE + HEADER + """\
Prof. Mario Rossi (Organizzatore),mario.rossi@test.it,08/07/2025 09:00:00 AM,08/07/2025 01:00:00 PM,240,No,No
Paolo Gialli,paolo.gialli@test.it,08/07/2025 09:00:00 AM,08/07/2025 09:30:00 AM,30,No,No
Paolo Gialli,paolo.gialli@test.it,08/07/2025 10:00:00 AM,08/07/2025 12:00:00 PM,120,No,No
Anna Blu,anna.blu@test.it,08/07/2025 09:00:00 AM,08/07/2025 10:00:00 AM,60,No,No
Anna Blu,anna.blu@test.it,08/07/2025 10:20:00 AM,08/07/2025 01:00:00 PM,160,No,No
Carlo Viola,carlo.viola@test.it,08/07/2025 09:00:00 AM,08/07/2025 09:40:00 AM,40,No,No"""

INVALID_NO_PARTICIPANTS = PREAMBLE + HEADER.rstrip("\n")

INVALID_MISSING_HEADERS = """\
Some,Random,Headers
Value1,Value2,Value3
Value4,Value5,Value6"""


def build_zoom_csv(rows, host=("Prof. Mario Rossi", "09:00:00 AM", "01:00:00 PM"), day="08/07/2025"):
    """Zoom export text; ``rows`` are ``(name, join, leave)`` clock strings of ``day``."""
    lines = [PREAMBLE + HEADER.rstrip("\n")]
    for name, join, leave in [host] + list(rows):
        email = name.lower().replace(" ", ".") + "@test.it"
        lines.append(f"{name},{email},{day} {join},{day} {leave},0,No,No")
    return "\n".join(lines)


@pytest.fixture
def morning_valid():
    return MORNING_VALID


@pytest.fixture
def afternoon_valid():
    return AFTERNOON_VALID


@pytest.fixture
def morning_with_absences():
    return MORNING_WITH_ABSENCES


@pytest.fixture
def invalid_no_participants():
    return INVALID_NO_PARTICIPANTS


@pytest.fixture
def invalid_missing_headers():
    return INVALID_MISSING_HEADERS


@pytest.fixture
def zoom_csv():
    return build_zoom_csv
