"""Attendance register: Zoom participant exports to the daily presence register."""

from .errors import AttendanceError, EmptyParticipantSet, InvalidFormat
from .logic import process_course_days, process_lesson, process_request
from .models import LessonResult, LessonType, ProcessedParticipant
from .settings import EngineSettings
from .template_data import generate_filename, prepare_template_data

__version__ = "0.1.0"
