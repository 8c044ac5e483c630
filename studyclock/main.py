"""Application entry point for Study Clock (command-line edition)."""
from __future__ import annotations

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Dict, List, Optional

from studyclock.tracker import __version__
from studyclock.tracker.aggregation import percent_of
from studyclock.tracker.catalog import SyllabusCatalog, TaskList
from studyclock.tracker.clock import format_duration, format_hms
from studyclock.tracker.controllers import CONFIG_DIR, AppController, ConfigManager
from studyclock.tracker.errors import CatalogError, StudyClockError
from studyclock.tracker.ledger import KEEP, SessionLedger
from studyclock.tracker.models import StudySession, Subject
from studyclock.tracker.snapshots import SnapshotManager
from studyclock.tracker.storage import SQLiteStore
from studyclock.tracker.timers import StudyTimer, run_display_loop

LOGGER = logging.getLogger(__name__)

SUBJECT_CHOICES = [s.value for s in Subject]


def configure_logging(log_dir: Path, level: str = "INFO") -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_dir / "app.log", maxBytes=1024 * 1024, backupCount=3)
    console = logging.StreamHandler()
    console.setLevel(logging.WARNING)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[handler, console],
        force=True,
    )
    logging.info("Study Clock v%s starting", __version__)


def load_catalog(config_manager: ConfigManager) -> SyllabusCatalog:
    syllabus_dir = config_manager.resolve(config_manager.config.syllabus_dir)
    if not syllabus_dir.is_dir():
        LOGGER.info("No syllabus directory at %s", syllabus_dir)
        return SyllabusCatalog()
    try:
        return SyllabusCatalog.from_csv_dir(syllabus_dir)
    except CatalogError:
        LOGGER.exception("Syllabus unavailable; chapters will be unnamed")
        return SyllabusCatalog()


def load_tasks(config_manager: ConfigManager) -> TaskList:
    tasks_file = config_manager.resolve(config_manager.config.tasks_file)
    if not tasks_file.exists():
        return TaskList()
    try:
        return TaskList.from_file(tasks_file)
    except CatalogError:
        LOGGER.exception("Task list unavailable")
        return TaskList()


def build_controller(config_manager: ConfigManager, with_exporter: bool = False) -> AppController:
    config = config_manager.config
    store = SQLiteStore(config_manager.resolve(config.db_path))
    catalog = load_catalog(config_manager)
    ledger = SessionLedger(store)
    timer = StudyTimer(SnapshotManager(store), ledger, catalog=catalog)
    exporter = None
    if with_exporter:
        from reports.excel_export import ExcelExporter

        exporter = ExcelExporter(config_manager.resolve(config.export_path))
    return AppController(store, timer, ledger, catalog, load_tasks(config_manager), exporter, config_manager)


def _print_timer(controller: AppController) -> None:
    timer = controller.timer
    print(f"{timer.status.value:<8} {timer.formatted}  {timer.title}")


def _session_line(session: StudySession) -> str:
    ended = session.end_time.astimezone().strftime("%Y-%m-%d %H:%M")
    return f"{session.id}  {ended}  {format_duration(session.duration):>8}  {session.title}"


def _resolve_session_id(controller: AppController, prefix: str) -> Optional[str]:
    matches = [s.id for s in controller.ledger.sessions() if s.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        print(f"Ambiguous session id {prefix!r}; {len(matches)} sessions match", file=sys.stderr)
    else:
        print(f"No session with id {prefix!r}", file=sys.stderr)
    return None


def _require_action(controller: AppController, action: str) -> bool:
    if action in controller.timer.available_actions():
        return True
    print(f"Cannot {action}: the timer is {controller.timer.status.value}", file=sys.stderr)
    return False


def cmd_status(controller: AppController, _args: argparse.Namespace) -> int:
    _print_timer(controller)
    return 0


def cmd_start(controller: AppController, args: argparse.Namespace) -> int:
    if not _require_action(controller, "start"):
        return 1
    if args.task:
        selection = controller.task_selection(args.task)
    elif args.subject:
        selection = controller.chapter_selection(args.subject, args.chapter, args.material)
    else:
        selection = controller.custom_selection(args.title or "")
    controller.start_timer(selection)
    _print_timer(controller)
    return 0


def cmd_pause(controller: AppController, _args: argparse.Namespace) -> int:
    if not _require_action(controller, "pause"):
        return 1
    controller.pause_timer()
    _print_timer(controller)
    return 0


def cmd_resume(controller: AppController, _args: argparse.Namespace) -> int:
    if not _require_action(controller, "resume"):
        return 1
    controller.resume_timer()
    _print_timer(controller)
    return 0


def cmd_end(controller: AppController, _args: argparse.Namespace) -> int:
    if not _require_action(controller, "end"):
        return 1
    session = controller.end_timer()
    if session is None:
        print("No time elapsed; nothing recorded")
    else:
        print(f"Recorded {format_hms(session.duration)}  {session.title}")
    return 0


def cmd_discard(controller: AppController, _args: argparse.Namespace) -> int:
    if not _require_action(controller, "discard"):
        return 1
    elapsed = controller.discard_timer()
    print(f"Discarded {format_hms(elapsed)}")
    return 0


def cmd_watch(controller: AppController, _args: argparse.Namespace) -> int:
    def show(_elapsed: int, text: str) -> None:
        sys.stdout.write(f"\r{text}  {controller.timer.title}")
        sys.stdout.flush()

    try:
        run_display_loop(controller.timer, show)
    except KeyboardInterrupt:
        pass
    print()
    return 0


def cmd_sessions(controller: AppController, args: argparse.Namespace) -> int:
    sessions = controller.list_sessions(args.limit or controller.config.recent_sessions_limit)
    if not sessions:
        print("No sessions recorded yet")
    for session in sessions:
        print(_session_line(session))
    return 0


def cmd_edit(controller: AppController, args: argparse.Namespace) -> int:
    session_id = _resolve_session_id(controller, args.session_id)
    if session_id is None:
        return 1
    subject = KEEP if args.subject is None else (None if args.subject == "none" else args.subject)
    material = KEEP if args.material is None else (args.material if args.material != "none" else None)
    updated = controller.edit_session(
        session_id,
        title=args.title,
        hours=args.hours,
        minutes=args.minutes,
        subject=subject,
        material=material,
    )
    if updated is None:
        print("Session no longer exists", file=sys.stderr)
        return 1
    print(_session_line(updated))
    return 0


def cmd_delete(controller: AppController, args: argparse.Namespace) -> int:
    session_id = _resolve_session_id(controller, args.session_id)
    if session_id is None:
        return 1
    controller.delete_session(session_id)
    print(f"Deleted {session_id}")
    return 0


def cmd_stats(controller: AppController, args: argparse.Namespace) -> int:
    total = controller.total_time()
    print(f"Total: {format_duration(total)}")
    if args.subject or args.chapter is not None or args.material:
        filtered = controller.filtered_time(args.subject, args.chapter, args.material)
        print(f"Filtered: {format_duration(filtered)}")
    print("Distribution:")
    for bucket, seconds in controller.distribution().as_dict().items():
        print(f"  {bucket.capitalize():<10} {format_duration(seconds):>8}  ({percent_of(seconds, total)}%)")
    subjects = [args.subject] if args.subject else SUBJECT_CHOICES
    for subject in subjects:
        top = controller.top_chapters(subject, args.top)
        if not top:
            continue
        print(f"Top chapters ({Subject(subject).label}):")
        for item in top:
            print(f"  {item.name:<30} {format_duration(item.seconds):>8}")
    return 0


def cmd_week(controller: AppController, args: argparse.Namespace) -> int:
    for day, distribution in controller.week_breakdown(args.offset).items():
        parts = ", ".join(
            f"{bucket} {format_duration(seconds)}" for bucket, seconds in distribution.as_dict().items() if seconds
        )
        print(f"{day.strftime('%a %Y-%m-%d')}  {format_duration(distribution.total):>8}  {parts}")
    return 0


def cmd_export(controller: AppController, _args: argparse.Namespace) -> int:
    print(f"Exported to {controller.export_to_excel()}")
    return 0


def cmd_chart(controller: AppController, args: argparse.Namespace) -> int:
    for path in controller.render_charts(args.offset):
        print(f"Wrote {path}")
    return 0


def cmd_backup(controller: AppController, _args: argparse.Namespace) -> int:
    print(f"Backed up to {controller.backup_database()}")
    return 0


COMMANDS: Dict[str, Callable[[AppController, argparse.Namespace], int]] = {
    "status": cmd_status,
    "start": cmd_start,
    "pause": cmd_pause,
    "resume": cmd_resume,
    "end": cmd_end,
    "discard": cmd_discard,
    "watch": cmd_watch,
    "sessions": cmd_sessions,
    "edit": cmd_edit,
    "delete": cmd_delete,
    "stats": cmd_stats,
    "week": cmd_week,
    "export": cmd_export,
    "chart": cmd_chart,
    "backup": cmd_backup,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="study-clock", description="Track study time per subject and chapter.")
    parser.add_argument("--home", type=Path, default=None, help=f"data and config directory (default {CONFIG_DIR})")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="show the timer")
    start = sub.add_parser("start", help="start timing a study session")
    target = start.add_mutually_exclusive_group()
    target.add_argument("--subject", choices=SUBJECT_CHOICES)
    target.add_argument("--title", help="free-form session title")
    target.add_argument("--task", help="planner task id")
    start.add_argument("--chapter", type=int)
    start.add_argument("--material")
    for name, text in (
        ("pause", "pause the running timer"),
        ("resume", "resume a paused timer"),
        ("end", "stop and record the session"),
        ("discard", "stop without recording"),
        ("watch", "show the running timer every second"),
        ("export", "export sessions to Excel"),
        ("backup", "back up the database"),
    ):
        sub.add_parser(name, help=text)

    sessions = sub.add_parser("sessions", help="list recorded sessions, newest first")
    sessions.add_argument("--limit", type=int)

    edit = sub.add_parser("edit", help="edit a recorded session")
    edit.add_argument("session_id")
    edit.add_argument("--title")
    edit.add_argument("--hours", type=int)
    edit.add_argument("--minutes", type=int)
    edit.add_argument("--subject", choices=SUBJECT_CHOICES + ["none"])
    edit.add_argument("--material", help="material name, or 'none' to clear")

    delete = sub.add_parser("delete", help="delete a recorded session")
    delete.add_argument("session_id")

    stats = sub.add_parser("stats", help="totals, subject distribution and top chapters")
    stats.add_argument("--subject", choices=SUBJECT_CHOICES)
    stats.add_argument("--chapter", type=int)
    stats.add_argument("--material")
    stats.add_argument("--top", type=int)

    for name, text in (("week", "per-day study time for a week"), ("chart", "render PNG charts")):
        cmd = sub.add_parser(name, help=text)
        cmd.add_argument("--offset", type=int, default=0, help="weeks relative to the current one")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "status"
    if command == "start" and not args.subject and (args.chapter is not None or args.material):
        parser.error("--chapter and --material require --subject")
    config_manager = ConfigManager(args.home)
    configure_logging(config_manager.config_dir / "logs", config_manager.config.log_level)
    try:
        controller = build_controller(config_manager, with_exporter=command == "export")
        return COMMANDS[command](controller, args)
    except StudyClockError as e:
        LOGGER.error("%s failed: %s", command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
