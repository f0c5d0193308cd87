#!/usr/bin/env python3
"""Command-line interface to the attendance register engine."""
from __future__ import annotations

import argparse
import json
import logging
import sys
import traceback
from pathlib import Path
from typing import Any, Dict, List, Tuple

from . import logic
from .ingest import analyze_csv_period, decode_csv_bytes
from .participants import participant_stats
from .report import build_course_report, export_report
from .settings import EngineSettings

logger = logging.getLogger(__name__)


def _read_text(path: str | None) -> str | None:
    if not path:
        return None
    with open(path, "rb") as f:
        return decode_csv_bytes(f.read())


def _read_named(paths: List[str] | None) -> List[Tuple[str, str]]:
    return [(Path(p).name, _read_text(p)) for p in (paths or [])]


def _params(args: argparse.Namespace) -> Dict[str, Any]:
    try:
        params = json.loads(args.params_json or "{}")
    except json.JSONDecodeError as e:
        raise ValueError(f"--params-json is not valid JSON: {e}") from e
    for key in ("lesson_type", "subject", "date", "course_id"):
        val = getattr(args, key, None)
        if val not in (None, ""):
            params[key] = val
    return params


def handle_process(args: argparse.Namespace) -> Dict[str, Any]:
    inputs = {
        "morning": _read_text(args.morning),
        "afternoon": _read_text(args.afternoon),
        "auto": _read_named(args.auto),
    }
    if not any(inputs.values()):
        raise ValueError("At least one CSV path is required")
    record, meta = logic.process_request(inputs, _params(args))
    return {"ok": True, "meta": meta, "data": record}


def handle_analyze(args: argparse.Namespace) -> Dict[str, Any]:
    items = []
    for name, text in _read_named(args.files):
        a = analyze_csv_period(text)
        items.append({
            "file": name,
            "period": a.period.value,
            "first_join": a.first_join_time.isoformat() if a.first_join_time is not None else None,
            "last_leave": a.last_leave_time.isoformat() if a.last_leave_time is not None else None,
            "participants": a.participant_count,
        })
    return {"ok": True, "items": items}


def handle_batch(args: argparse.Namespace) -> Dict[str, Any]:
    settings = EngineSettings.from_params(_params(args))
    days = logic.group_files_by_date(_read_named(args.files))
    batch = logic.process_course_days(
        days, course_id=args.course_id or None, settings=settings,
        on_progress=lambda i, n, d: logger.info(f"[{i}/{n}] {d.isoformat()}"),
    )
    payload: Dict[str, Any] = {
        "ok": True,
        "total": batch.total,
        "successful": batch.successful,
        "failed": batch.failed,
        "results": batch.results,
        "stats": [participant_stats(l.participants, l.organizer) for l in batch.lessons],
    }
    if args.report:
        report = build_course_report(batch.lessons, course_id=args.course_id or None)
        payload["report"] = str(export_report(report, args.report))
        payload["average_attendance"] = report.average_attendance
    return payload


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Zoom attendance register CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_process = subparsers.add_parser("process", help="Build the register record of one lesson")
    p_process.add_argument("--morning", help="Path to the morning Zoom CSV")
    p_process.add_argument("--afternoon", help="Path to the afternoon Zoom CSV")
    p_process.add_argument("--auto", nargs="+", help="CSV paths routed by their earliest join")
    p_process.add_argument("--lesson-type", dest="lesson_type",
                           choices=["morning", "afternoon", "both", "fast"])
    p_process.add_argument("--subject", help="Lesson subject")
    p_process.add_argument("--date", help="Lesson date, YYYY-MM-DD")
    p_process.add_argument("--course-id", dest="course_id", help="Course identifier")
    p_process.add_argument("--params-json", default="{}", help="JSON blob of parameters")

    p_analyze = subparsers.add_parser("analyze", help="Classify CSV files as morning/afternoon")
    p_analyze.add_argument("files", nargs="+", help="Zoom CSV paths")

    p_batch = subparsers.add_parser("batch", help="Process many days and build the course report")
    p_batch.add_argument("files", nargs="+", help="Zoom CSV paths of the whole course")
    p_batch.add_argument("--course-id", dest="course_id", help="Course identifier")
    p_batch.add_argument("--report", help="Write the course report to this .xlsx/.csv path")
    p_batch.add_argument("--params-json", default="{}", help="JSON blob of parameters")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "process":
            payload = handle_process(args)
        elif args.command == "analyze":
            payload = handle_analyze(args)
        elif args.command == "batch":
            payload = handle_batch(args)
        else:
            raise ValueError(f"Unsupported command: {args.command}")
        print(json.dumps(payload, ensure_ascii=False, default=str))
        return 0
    except (ValueError, OSError) as exc:
        err_payload = {
            "ok": False,
            "error": str(exc),
            "traceback": traceback.format_exc(),
        }
        print(json.dumps(err_payload, ensure_ascii=False))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
