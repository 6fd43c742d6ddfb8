"""Application entry point and command line for the Study Planner."""
from __future__ import annotations

import argparse
import logging
import os
import sys
import tomllib
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from planner_app.planner import __version__
from planner_app.planner.analytics import format_duration, syllabus_progress, top_subjects
from planner_app.planner.controllers import CONFIG_DIR, AppConfig, AppController, ConfigManager, ToggleOutcome
from planner_app.planner.models import InvalidIntervalError
from planner_app.planner.storage import CollectionGateway, MemoryBlobStore, SQLiteBlobStore
from planner_app.planner.subjects import CATEGORY_LABELS, VALID_TAGS, subject_for
from reports.excel_export import ExcelExporter

LOGGER = logging.getLogger(__name__)

LOG_DIR = CONFIG_DIR / "logs"
LOG_FILE = LOG_DIR / "app.log"


def _load_api_keys(config_dir: Path = CONFIG_DIR) -> None:
    """Load Gemini and Firebase credentials from a local TOML file if present."""

    path = config_dir / "api_keys.toml"
    if not path.exists():
        return
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError):
        logging.exception("Unable to read API key file %s", path)
        return

    gemini_key = data.get("gemini_api_key")
    firebase_creds = data.get("firebase_credentials")
    if gemini_key and not os.getenv("GEMINI_API_KEY"):
        os.environ["GEMINI_API_KEY"] = gemini_key
    if firebase_creds and not os.getenv("FIREBASE_CREDENTIALS"):
        os.environ["FIREBASE_CREDENTIALS"] = firebase_creds


def configure_logging(verbose: bool = False) -> None:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(LOG_FILE, maxBytes=1024 * 1024, backupCount=3)
    stream = logging.StreamHandler()
    stream.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[handler, stream],
    )
    logging.info("Study Planner v%s starting", __version__)


def build_controller(config: AppConfig) -> AppController:
    if config.storage_backend == "memory":
        backend = MemoryBlobStore()
    elif config.storage_backend == "firestore":
        from planner_app.core.firebase_store import FirestoreBlobStore

        backend = FirestoreBlobStore(
            root=config.firestore_collection,
            creds_path=config.firebase_credentials or None,
        )
    else:
        backend = SQLiteBlobStore(Path(config.data_path).expanduser())
    exporter = ExcelExporter(Path(config.export_path).expanduser())
    return AppController(CollectionGateway(backend), config=config, exporter=exporter)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="study-planner", description="Daily tasks, time logs and weekly rollups.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to the console")

    sub = parser.add_subparsers(dest="cmd", required=False)

    sub.add_parser("today", help="Show today's tasks.")

    add = sub.add_parser("add", help="Add a task, or let AI extract tasks from free text.")
    add.add_argument("title", help="Task title, or free text with --ai")
    add.add_argument("--subject", default="personal", choices=VALID_TAGS, help="Subject tag")
    add.add_argument("--note", default="", help="Optional note")
    add.add_argument("--ai", action="store_true", help="Extract tasks from the text with Gemini")

    toggle = sub.add_parser("toggle", help="Tick or untick a task.")
    toggle.add_argument("task_id")
    toggle.add_argument("--start", help="Start time HH:MM if the task has no log yet")
    toggle.add_argument("--end", help="End time HH:MM if the task has no log yet")

    log = sub.add_parser("log", help="Log a time interval for a task and mark it done.")
    log.add_argument("task_id")
    log.add_argument("--start", required=True, help="Start time HH:MM")
    log.add_argument("--end", required=True, help="End time HH:MM")

    edit = sub.add_parser("edit-log", help="Change the interval of a log entry.")
    edit.add_argument("log_id")
    edit.add_argument("--start", required=True, help="Start time HH:MM")
    edit.add_argument("--end", required=True, help="End time HH:MM")

    delete = sub.add_parser("delete-log", help="Delete a log entry.")
    delete.add_argument("log_id")

    focus = sub.add_parser("focus", help="Run a focus session for a task, logging it when finished.")
    focus.add_argument("task_id")
    focus.add_argument("--minutes", type=float, help="Session length (defaults to focus_minutes)")

    syllabus = sub.add_parser("syllabus", help="Show syllabus checklists and progress.")
    syllabus.add_argument("subject", nargs="?", help="Only show this syllabus, e.g. physics or combined-applied")

    tick = sub.add_parser("tick", help="Tick a subunit's tute or past-paper checkmark.")
    tick.add_argument("subject")
    tick.add_argument("unit_id")
    tick.add_argument("subunit_id")
    tick.add_argument("flag", choices=("tute", "past"))
    tick.add_argument("--undo", action="store_true", help="Clear the checkmark instead")

    sub.add_parser("week", help="Show this week's log book and analytics.")
    sub.add_parser("history", help="Show past weekly summaries.")

    insights = sub.add_parser("insights", help="Ask Gemini for coaching insights.")
    insights.add_argument("mode", choices=("marks", "syllabus", "logs"))

    export = sub.add_parser("export", help="Export logs and summaries to Excel.")
    export.add_argument("--path", help="Override export_path from the config")

    sub.add_parser("backup", help="Copy the SQLite database next to itself.")

    return parser


def _print_day(controller: AppController) -> None:
    day = controller.today
    print(f"Tasks for {day.date.isoformat()}")
    if not day.items:
        print("  (no tasks)")
    for item in day.items:
        mark = "x" if item.done else " "
        note = f"  - {item.note}" if item.note else ""
        print(f"  [{mark}] {item.id}  {item.title} ({item.subject_tag}){note}")


def cmd_today(controller: AppController, args: argparse.Namespace) -> int:
    _print_day(controller)
    return 0


def cmd_add(controller: AppController, args: argparse.Namespace) -> int:
    if args.ai:
        from planner_app.ai.gemini_client import GenerationError
        from planner_app.core.ai_service import AIAssistantService

        try:
            added = AIAssistantService(controller).add_suggested_tasks(args.title)
        except GenerationError as exc:
            print(str(exc), file=sys.stderr)
            return 1
    else:
        added = controller.add_tasks([{"title": args.title, "subjectTag": args.subject, "note": args.note}])
    for item in added:
        print(f"Added {item.id}: {item.title} ({item.subject_tag})")
    return 0


def cmd_toggle(controller: AppController, args: argparse.Namespace) -> int:
    outcome = controller.toggle_task(args.task_id)
    if outcome is ToggleOutcome.NEEDS_INTERVAL:
        if not (args.start and args.end):
            controller.cancel_pending()
            print("This task has no log today. Re-run with --start HH:MM --end HH:MM.", file=sys.stderr)
            return 1
        entry = controller.submit_log_interval(args.task_id, args.start, args.end)
        print(f"Logged {format_duration(entry.duration_minutes)}; task done.")
        return 0
    print("Task done." if outcome is ToggleOutcome.COMPLETED else "Task reopened.")
    return 0


def cmd_log(controller: AppController, args: argparse.Namespace) -> int:
    entry = controller.submit_log_interval(args.task_id, args.start, args.end)
    print(f"Logged {entry.id}: {format_duration(entry.duration_minutes)} for {entry.task_title}")
    return 0


def cmd_edit_log(controller: AppController, args: argparse.Namespace) -> int:
    entry = controller.edit_log(args.log_id, args.start, args.end)
    print(f"Updated {entry.id}: {entry.start_time}-{entry.end_time} ({format_duration(entry.duration_minutes)})")
    return 0


def cmd_delete_log(controller: AppController, args: argparse.Namespace) -> int:
    controller.delete_log(args.log_id)
    print(f"Deleted {args.log_id}")
    return 0


def cmd_focus(controller: AppController, args: argparse.Namespace) -> int:
    started_on = controller.today.date
    logged_before = len(controller.task_logs(args.task_id, started_on))
    session = controller.start_focus(args.task_id, args.minutes)
    print(f"Focus session running ({session.formatted}). Press Ctrl+C to abandon.")
    try:
        finished = session.join()
    except KeyboardInterrupt:
        controller.cancel_focus(args.task_id)
        print("\nFocus session abandoned; nothing logged.")
        return 130
    if not finished:
        return 0
    if len(controller.task_logs(args.task_id, started_on)) <= logged_before:
        print("Focus session finished but its time could not be logged; see the log file.", file=sys.stderr)
        return 1
    print("Focus session complete; time logged and task done.")
    return 0


def cmd_week(controller: AppController, args: argparse.Namespace) -> int:
    overview = controller.get_week_overview()
    print(f"This week: {format_duration(overview['total_minutes'])}")
    for key, minutes in overview["categories"].items():
        print(f"  {CATEGORY_LABELS[key]}: {format_duration(minutes)}")
    averages = overview["daily_averages"]
    if averages:
        print("Daily averages: " + ", ".join(f"{CATEGORY_LABELS[k]} {v}m" for k, v in averages.items()))
    for day in overview["log_book"]:
        print(f"{day.date.isoformat()}  {format_duration(day.total_minutes)}")
        for group in day.categories:
            print(f"  {CATEGORY_LABELS[group.category]} ({format_duration(group.total_minutes)})")
            for entry in group.entries:
                print(f"    {entry.start_time}-{entry.end_time}  {entry.task_title}  [{entry.id}]")
    scores = overview["average_scores"]
    if scores:
        print("Average scores: " + ", ".join(f"{_subject_name(k)} {v}%" for k, v in scores.items()))
    for session in overview["classes_remaining"]:
        print(f"Class today: {session.name} {session.start}-{session.end}")
    months, days = overview["exam_countdown"]
    print(f"Exam in {months} months and {days} days")
    return 0


def _subject_name(subject_id: str) -> str:
    subject = subject_for(subject_id)
    return subject.name if subject else subject_id


def _check(flag) -> str:
    if flag is None:
        return "-"
    return "x" if flag else " "


def cmd_syllabus(controller: AppController, args: argparse.Namespace) -> int:
    syllabi = [s for s in controller.syllabi() if args.subject in (None, s.subject_id)]
    if args.subject and not syllabi:
        raise KeyError(args.subject)
    for syllabus in syllabi:
        print(f"{_subject_name(syllabus.subject_id)}: {syllabus_progress(syllabus)}% complete")
        for unit in syllabus.units:
            print(f"  {unit.id}  {unit.name}")
            for sub in unit.subunits:
                print(f"    [{_check(sub.tute_done)}] tute [{_check(sub.past_done)}] past  {sub.id}  {sub.name}")
    return 0


def cmd_tick(controller: AppController, args: argparse.Namespace) -> int:
    field = "tuteDone" if args.flag == "tute" else "pastDone"
    controller.set_subunit_flag(args.subject, args.unit_id, args.subunit_id, field, not args.undo)
    progress = next(syllabus_progress(s) for s in controller.syllabi() if s.subject_id == args.subject)
    print(f"{'Cleared' if args.undo else 'Ticked'} {args.flag} for {args.subunit_id}; {progress}% complete")
    return 0


def cmd_history(controller: AppController, args: argparse.Namespace) -> int:
    summaries = controller.weekly_summaries()
    if not summaries:
        print("No weekly summaries yet.")
    for summary in summaries:
        top = ", ".join(f"{tag} {minutes}m/day" for tag, minutes in top_subjects(summary))
        print(
            f"Week of {summary.week_of.isoformat()}: {format_duration(summary.total_minutes)} total, "
            f"{summary.average_minutes_per_day}m/day  {top}"
        )
    return 0


def cmd_insights(controller: AppController, args: argparse.Namespace) -> int:
    from planner_app.core.ai_service import AIAssistantService

    result = AIAssistantService(controller).insights(args.mode)
    if not result.ok:
        print(result.error, file=sys.stderr)
        return 1
    print(result.text)
    return 0


def cmd_export(controller: AppController, args: argparse.Namespace) -> int:
    if args.path:
        controller.exporter = ExcelExporter(Path(args.path).expanduser())
    path = controller.export_to_excel()
    print(f"Exported to {path}")
    return 0


def cmd_backup(controller: AppController, args: argparse.Namespace) -> int:
    print(f"Backup written to {controller.backup()}")
    return 0


COMMANDS = {
    "today": cmd_today,
    "add": cmd_add,
    "toggle": cmd_toggle,
    "log": cmd_log,
    "edit-log": cmd_edit_log,
    "delete-log": cmd_delete_log,
    "focus": cmd_focus,
    "week": cmd_week,
    "syllabus": cmd_syllabus,
    "tick": cmd_tick,
    "history": cmd_history,
    "insights": cmd_insights,
    "export": cmd_export,
    "backup": cmd_backup,
}


def run(controller: AppController, args: argparse.Namespace) -> int:
    controller.start_session()
    try:
        return COMMANDS[args.cmd](controller, args)
    except InvalidIntervalError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except KeyError as exc:
        print(f"Unknown id: {exc.args[0]}", file=sys.stderr)
        return 1
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    argv = list(argv) if argv is not None else list(sys.argv[1:])
    args = parser.parse_args(argv)
    if args.cmd is None:
        args.cmd = "today"

    _load_api_keys()
    configure_logging(args.verbose)
    config_manager = ConfigManager()
    controller = build_controller(config_manager.config)
    return run(controller, args)


if __name__ == "__main__":
    sys.exit(main())
