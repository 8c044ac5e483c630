"""Study timer driven by the wall clock, with snapshot-based recovery."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, ClassVar, Dict, FrozenSet, Optional, Union

from .catalog import SyllabusCatalog
from .clock import Clock, SystemClock, format_hms, seconds_between
from .errors import IllegalTransitionError
from .ledger import SessionLedger
from .models import (
    DEFAULT_SELECTION,
    UNTITLED,
    ChapterSelection,
    CustomSelection,
    StudySession,
    SubjectSelection,
    TaskSelection,
)
from .snapshots import PausedSnapshot, RunningSnapshot, SnapshotManager

LOGGER = logging.getLogger(__name__)


class TimerStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True)
class Idle:
    status: ClassVar[TimerStatus] = TimerStatus.IDLE


@dataclass(frozen=True)
class Running:
    started_at: datetime
    accumulated_seconds: int
    session_started_at: datetime
    status: ClassVar[TimerStatus] = TimerStatus.RUNNING


@dataclass(frozen=True)
class Paused:
    accumulated_seconds: int
    session_started_at: datetime
    paused_at: datetime
    status: ClassVar[TimerStatus] = TimerStatus.PAUSED


TimerState = Union[Idle, Running, Paused]

ACTIONS: Dict[TimerStatus, FrozenSet[str]] = {
    TimerStatus.IDLE: frozenset({"select", "start"}),
    TimerStatus.RUNNING: frozenset({"pause", "end", "discard"}),
    TimerStatus.PAUSED: frozenset({"resume", "end", "discard"}),
}


def session_title(selection: SubjectSelection, catalog: Optional[SyllabusCatalog] = None) -> str:
    """Display title for a selection, e.g. ``Physics > Optics > Notes``."""

    if isinstance(selection, CustomSelection):
        return selection.title.strip() or UNTITLED
    if isinstance(selection, TaskSelection) and selection.subject is None:
        return selection.title.strip() or UNTITLED

    parts = [selection.subject.label]
    chapter_name = _chapter_name(selection, catalog)
    if chapter_name:
        parts.append(chapter_name)
    if selection.material:
        parts.append(selection.material)
    return " > ".join(parts)


def _chapter_name(selection: SubjectSelection, catalog: Optional[SyllabusCatalog]) -> Optional[str]:
    if isinstance(selection, CustomSelection) or catalog is None:
        return None
    if selection.subject is None or selection.chapter_serial is None:
        return None
    return catalog.get_chapter_name(selection.subject, selection.chapter_serial)


class StudyTimer:
    """Idle -> Running -> {Paused, Idle}; Paused -> {Running, Idle}.

    Elapsed time is always derived from the clock and the most recent resume
    point, never from counted ticks, so time that passes while the process is
    suspended or not running at all is included. Every transition persists a
    snapshot synchronously; :meth:`restore` rebuilds the state from it.
    """

    def __init__(
        self,
        snapshots: SnapshotManager,
        ledger: SessionLedger,
        clock: Optional[Clock] = None,
        catalog: Optional[SyllabusCatalog] = None,
    ) -> None:
        self.snapshots = snapshots
        self.ledger = ledger
        self.clock = clock or SystemClock()
        self.catalog = catalog
        self.state: TimerState = Idle()
        self.selection: SubjectSelection = DEFAULT_SELECTION

    @property
    def status(self) -> TimerStatus:
        return self.state.status

    def available_actions(self) -> FrozenSet[str]:
        return ACTIONS[self.status]

    def _require(self, action: str) -> None:
        if action not in self.available_actions():
            raise IllegalTransitionError(action, self.status.value)

    def select(self, selection: SubjectSelection) -> None:
        self._require("select")
        self.selection = selection

    def start(self, selection: Optional[SubjectSelection] = None) -> None:
        self._require("start")
        if selection is not None:
            self.selection = selection
        self.snapshots.clear_all()
        now = self.clock.now()
        self.state = Running(started_at=now, accumulated_seconds=0, session_started_at=now)
        self._save_running(self.state)
        LOGGER.info("Started timer: %s", self.title)

    def pause(self) -> int:
        running = self.state
        if not isinstance(running, Running):
            raise IllegalTransitionError("pause", self.status.value)
        now = self.clock.now()
        accumulated = self._running_elapsed(running, now)
        self.state = Paused(
            accumulated_seconds=accumulated,
            session_started_at=running.session_started_at,
            paused_at=now,
        )
        self.snapshots.save_paused(
            PausedSnapshot(
                accumulated_seconds=accumulated,
                selection=self.selection,
                session_started_at=running.session_started_at,
                paused_at=now,
            )
        )
        self.snapshots.clear_running()
        LOGGER.debug("Paused timer at %ss", accumulated)
        return accumulated

    def resume(self) -> None:
        paused = self.state
        if not isinstance(paused, Paused):
            raise IllegalTransitionError("resume", self.status.value)
        self.state = Running(
            started_at=self.clock.now(),
            accumulated_seconds=paused.accumulated_seconds,
            session_started_at=paused.session_started_at,
        )
        self._save_running(self.state)
        self.snapshots.clear_paused()
        LOGGER.debug("Resumed timer from %ss", self.state.accumulated_seconds)

    def end(self) -> Optional[StudySession]:
        """Finish the run, recording a session when any time has elapsed."""

        self._require("end")
        now = self.clock.now()
        elapsed = self._elapsed_at(now)
        session_started_at = self.state.session_started_at
        recorded: Optional[StudySession] = None
        if elapsed > 0:
            # A failed append leaves the run and its snapshot in place.
            recorded = self.ledger.append(self._build_session(session_started_at, now, elapsed))
        else:
            LOGGER.info("Timer ended with no elapsed time; nothing recorded")
        self.snapshots.clear_all()
        self.state = Idle()
        return recorded

    def discard(self) -> int:
        self._require("discard")
        elapsed = self._elapsed_at(self.clock.now())
        self.snapshots.clear_all()
        self.state = Idle()
        self.selection = DEFAULT_SELECTION
        LOGGER.info("Discarded timer run of %ss", elapsed)
        return elapsed

    def elapsed_seconds(self) -> int:
        return self._elapsed_at(self.clock.now())

    @property
    def formatted(self) -> str:
        return format_hms(self.elapsed_seconds())

    @property
    def title(self) -> str:
        return session_title(self.selection, self.catalog)

    def restore(self) -> TimerStatus:
        """Rebuild the state from persisted snapshots; run once at startup."""

        if self.status != TimerStatus.IDLE:
            raise IllegalTransitionError("restore", self.status.value)
        snapshot = self.snapshots.load()
        if isinstance(snapshot, RunningSnapshot):
            self.selection = snapshot.selection
            self.state = Running(
                started_at=snapshot.started_at,
                accumulated_seconds=snapshot.accumulated_seconds,
                session_started_at=snapshot.session_started_at,
            )
            LOGGER.info("Recovered running timer at %ss", self.elapsed_seconds())
        elif isinstance(snapshot, PausedSnapshot):
            now = self.clock.now()
            accumulated = snapshot.accumulated_seconds
            self.selection = snapshot.selection
            self.state = Paused(
                accumulated_seconds=accumulated,
                session_started_at=snapshot.session_started_at or now - timedelta(seconds=accumulated),
                paused_at=snapshot.paused_at or now,
            )
            LOGGER.info("Recovered paused timer at %ss", accumulated)
        return self.status

    def _elapsed_at(self, now: datetime) -> int:
        if isinstance(self.state, Running):
            return self._running_elapsed(self.state, now)
        if isinstance(self.state, Paused):
            return self.state.accumulated_seconds
        return 0

    @staticmethod
    def _running_elapsed(state: Running, now: datetime) -> int:
        return state.accumulated_seconds + seconds_between(state.started_at, now)

    def _save_running(self, state: Running) -> None:
        self.snapshots.save_running(
            RunningSnapshot(
                started_at=state.started_at,
                accumulated_seconds=state.accumulated_seconds,
                selection=self.selection,
                session_started_at=state.session_started_at,
            )
        )

    def _build_session(self, start: datetime, end: datetime, elapsed: int) -> StudySession:
        selection = self.selection
        linked: Dict[str, object] = {}
        if isinstance(selection, TaskSelection):
            linked["task_id"] = selection.task_id
        if isinstance(selection, ChapterSelection):
            linked.update(
                subject=selection.subject,
                chapter_serial=selection.chapter_serial,
                chapter_name=_chapter_name(selection, self.catalog),
                material=selection.material,
            )
        return StudySession(
            id="",
            title=session_title(selection, self.catalog),
            kind=selection.kind,
            start_time=start,
            end_time=end,
            duration=elapsed,
            **linked,
        )


def run_display_loop(
    timer: StudyTimer,
    on_tick: Callable[[int, str], None],
    should_continue: Callable[[], bool] = lambda: True,
    interval: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Refresh the elapsed display in the foreground until told to stop.

    Each wake-up recomputes the value from the clock, so late or missed
    wake-ups never skew what is shown.
    """

    while should_continue() and timer.status != TimerStatus.IDLE:
        elapsed = timer.elapsed_seconds()
        on_tick(elapsed, format_hms(elapsed))
        if timer.status != TimerStatus.RUNNING:
            return
        sleep(interval)
