"""Controllers orchestrating the timer, ledger, analytics, and exports."""
from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from datetime import date, tzinfo
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from . import aggregation
from .catalog import SyllabusCatalog, TaskList
from .errors import CatalogError, StudyClockError
from .ledger import KEEP, SessionLedger, apply_edit
from .models import (
    Chapter,
    ChapterSelection,
    ChapterTotal,
    CustomSelection,
    StudySession,
    Subject,
    SubjectDistribution,
    SubjectSelection,
    TaskSelection,
)
from .storage import KeyValueStore
from .timers import StudyTimer, TimerStatus

if TYPE_CHECKING:
    from reports.excel_export import ExcelExporter

LOGGER = logging.getLogger(__name__)


CONFIG_DIR = Path.home() / ".study_clock"
CONFIG_NAME = "config.toml"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default_config.toml"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _int_setting(data: dict, key: str, default: int) -> int:
    try:
        return int(data.get(key, default))
    except (TypeError, ValueError):
        return default


@dataclass
class AppConfig:
    db_path: str = "data.db"
    export_path: str = "study_sessions.xlsx"
    chart_dir: str = "charts"
    syllabus_dir: str = "syllabus"
    tasks_file: str = "tasks.json"
    top_chapters_limit: int = 5
    recent_sessions_limit: int = 20
    log_level: str = "INFO"

    @classmethod
    def from_toml(cls, data: dict) -> "AppConfig":
        log_level = str(data.get("log_level", "INFO")).upper()
        if log_level not in LOG_LEVELS:
            log_level = "INFO"
        return cls(
            db_path=str(data.get("db_path") or "data.db"),
            export_path=str(data.get("export_path") or "study_sessions.xlsx"),
            chart_dir=str(data.get("chart_dir") or "charts"),
            syllabus_dir=str(data.get("syllabus_dir") or "syllabus"),
            tasks_file=str(data.get("tasks_file") or "tasks.json"),
            top_chapters_limit=max(1, _int_setting(data, "top_chapters_limit", 5)),
            recent_sessions_limit=max(1, _int_setting(data, "recent_sessions_limit", 20)),
            log_level=log_level,
        )

    def to_toml(self) -> str:
        lines = [
            f"db_path = \"{self.db_path}\"",
            f"export_path = \"{self.export_path}\"",
            f"chart_dir = \"{self.chart_dir}\"",
            f"syllabus_dir = \"{self.syllabus_dir}\"",
            f"tasks_file = \"{self.tasks_file}\"",
            f"top_chapters_limit = {self.top_chapters_limit}",
            f"recent_sessions_limit = {self.recent_sessions_limit}",
            f"log_level = \"{self.log_level}\"",
        ]
        return "\n".join(lines) + "\n"


class ConfigManager:
    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self.config_dir = Path(config_dir) if config_dir else CONFIG_DIR
        self.config_file = self.config_dir / CONFIG_NAME
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config = self._load()

    def _load(self) -> AppConfig:
        if self.config_file.exists():
            try:
                with open(self.config_file, "rb") as fh:
                    return AppConfig.from_toml(tomllib.load(fh))
            except tomllib.TOMLDecodeError:
                LOGGER.exception("Invalid configuration in %s; using defaults", self.config_file)
                return AppConfig()
        with open(DEFAULT_CONFIG_PATH, "rb") as fh:
            config = AppConfig.from_toml(tomllib.load(fh))
        self.save(config)
        return config

    def save(self, config: Optional[AppConfig] = None) -> None:
        cfg = config or self.config
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(cfg.to_toml(), encoding="utf-8")
        LOGGER.info("Saved configuration to %s", self.config_file)

    def resolve(self, value: str) -> Path:
        """Resolve a configured path; relative paths live under the config dir."""

        path = Path(value).expanduser()
        return path if path.is_absolute() else self.config_dir / path


class AppController:
    def __init__(
        self,
        store: KeyValueStore,
        timer: StudyTimer,
        ledger: SessionLedger,
        catalog: SyllabusCatalog,
        tasks: TaskList,
        exporter: Optional[ExcelExporter],
        config_manager: ConfigManager,
    ) -> None:
        self.store = store
        self.timer = timer
        self.ledger = ledger
        self.catalog = catalog
        self.tasks = tasks
        self.exporter = exporter
        self.config_manager = config_manager
        self.timer.restore()

    @property
    def config(self) -> AppConfig:
        return self.config_manager.config

    # Subject selection
    def chapter_choices(self, subject: Subject) -> List[Chapter]:
        return self.catalog.chapters(subject)

    def material_choices(self, subject: Subject, chapter: Optional[int] = None) -> List[str]:
        if chapter is None:
            return self.catalog.material_names(subject)
        return sorted(self.catalog.get_materials(subject, chapter))

    def chapter_selection(
        self, subject: Subject, chapter: Optional[int] = None, material: Optional[str] = None
    ) -> ChapterSelection:
        if chapter is not None and self.catalog.get_chapter(subject, chapter) is None:
            LOGGER.warning("Chapter %s is not in the %s syllabus", chapter, Subject(subject).value)
        return ChapterSelection(subject=subject, chapter_serial=chapter, material=material)

    def custom_selection(self, title: str) -> CustomSelection:
        return CustomSelection(title=title)

    def task_selection(self, task_id: str) -> TaskSelection:
        task = self.tasks.get(task_id)
        if task is None:
            raise CatalogError(f"Unknown task: {task_id}")
        if task.completed:
            LOGGER.info("Linking session to completed task %s", task_id)
        return TaskSelection.from_task(task)

    # Timer operations
    def timer_status(self) -> TimerStatus:
        return self.timer.status

    def start_timer(self, selection: Optional[SubjectSelection] = None) -> None:
        self.timer.start(selection)

    def pause_timer(self) -> int:
        return self.timer.pause()

    def resume_timer(self) -> None:
        self.timer.resume()

    def end_timer(self) -> Optional[StudySession]:
        return self.timer.end()

    def discard_timer(self) -> int:
        return self.timer.discard()

    def get_timer_display(self) -> str:
        return self.timer.formatted

    # Ledger
    def list_sessions(self, limit: Optional[int] = None) -> List[StudySession]:
        return self.ledger.recent(limit)

    def delete_session(self, session_id: str) -> bool:
        return self.ledger.remove(session_id)

    def edit_session(
        self,
        session_id: str,
        title: Optional[str] = None,
        hours: Optional[int] = None,
        minutes: Optional[int] = None,
        subject: Any = KEEP,
        material: Any = KEEP,
    ) -> Optional[StudySession]:
        """Apply a user edit; returns the updated session or None if it is gone."""

        session = self.ledger.get(session_id)
        if session is None:
            LOGGER.info("Session %s no longer exists; edit ignored", session_id)
            return None
        duration = None
        if hours is not None or minutes is not None:
            duration = int(hours or 0) * 3600 + int(minutes or 0) * 60
        updated = apply_edit(session, title=title, subject=subject, material=material, duration=duration)
        if not self.ledger.update(updated):
            return None
        return updated

    # Analytics
    def total_time(self) -> int:
        return aggregation.total_duration(self.ledger.sessions())

    def filtered_time(
        self, subject: Optional[Subject] = None, chapter: Optional[int] = None, material: Optional[str] = None
    ) -> int:
        return aggregation.filtered_duration(self.ledger.sessions(), subject, chapter, material)

    def distribution(self) -> SubjectDistribution:
        return aggregation.subject_distribution(self.ledger.sessions())

    def top_chapters(self, subject: Subject, limit: Optional[int] = None) -> List[ChapterTotal]:
        return aggregation.top_chapters_by_subject(
            self.ledger.sessions(), subject, limit if limit is not None else self.config.top_chapters_limit
        )

    def filter_options(self, subject: Optional[Subject] = None, chapter: Optional[int] = None) -> Dict[str, Any]:
        sessions = self.ledger.sessions()
        return {
            "chapters": aggregation.chapters_with_sessions(sessions, subject) if subject else {},
            "materials": aggregation.materials_with_sessions(sessions, subject, chapter),
        }

    def week_breakdown(
        self, offset: int = 0, today: Optional[date] = None, tz: Optional[tzinfo] = None
    ) -> Dict[date, SubjectDistribution]:
        days = aggregation.week_days(offset, today)
        return aggregation.daily_breakdown(self.ledger.sessions(), days, tz)

    def month_breakdown(
        self, offset: int = 0, today: Optional[date] = None, tz: Optional[tzinfo] = None
    ) -> Dict[date, SubjectDistribution]:
        days = aggregation.month_days(offset, today)
        return aggregation.daily_breakdown(self.ledger.sessions(), days, tz)

    # Reports
    def export_to_excel(self) -> Path:
        if self.exporter is None:
            raise StudyClockError("Excel export is not configured")
        return self.exporter.export(self.ledger.recent(), self.distribution())

    def render_charts(self, week_offset: int = 0, today: Optional[date] = None) -> List[Path]:
        from reports import charts

        chart_dir = self.config_manager.resolve(self.config.chart_dir)
        return [
            charts.render_distribution(self.distribution(), chart_dir / "distribution.png"),
            charts.render_week(self.week_breakdown(week_offset, today), chart_dir / "week.png"),
        ]

    def backup_database(self) -> Path:
        backup = getattr(self.store, "backup_database", None)
        if backup is None:
            raise StudyClockError("The configured store does not support backups")
        return backup()
