"""Timer snapshots persisted to the key-value store.

Two mutually exclusive records describe an unfinished run: a running snapshot
and a paused snapshot. Which one is present is the only recovery signal; no
separate state flag is stored. The timer is the sole writer of both keys and
this module only (de)serializes them.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union

from .clock import parse_iso, to_iso
from .models import SubjectSelection, selection_from_dict
from .storage import KeyValueStore

LOGGER = logging.getLogger(__name__)

RUNNING_KEY = "study-clock:running-timer"
PAUSED_KEY = "study-clock:paused-timer"


def _decode(raw: str) -> Dict[str, Any]:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Snapshot payload must be an object")
    return data


def _accumulated(data: Dict[str, Any]) -> int:
    value = data["accumulatedSeconds"]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"Invalid accumulatedSeconds: {value!r}")
    return int(value)


@dataclass(frozen=True)
class RunningSnapshot:
    started_at: datetime
    accumulated_seconds: int
    selection: SubjectSelection
    session_started_at: datetime

    def to_json(self) -> str:
        return json.dumps(
            {
                "startedAt": to_iso(self.started_at),
                "accumulatedSeconds": self.accumulated_seconds,
                "sessionStartedAt": to_iso(self.session_started_at),
                "selection": self.selection.to_dict(),
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> "RunningSnapshot":
        data = _decode(raw)
        started_at = parse_iso(data["startedAt"])
        accumulated = _accumulated(data)
        session_started = data.get("sessionStartedAt")
        return cls(
            started_at=started_at,
            accumulated_seconds=accumulated,
            selection=selection_from_dict(data["selection"]),
            session_started_at=(
                parse_iso(session_started) if session_started else started_at - timedelta(seconds=accumulated)
            ),
        )


@dataclass(frozen=True)
class PausedSnapshot:
    accumulated_seconds: int
    selection: SubjectSelection
    session_started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None

    def to_json(self) -> str:
        return json.dumps(
            {
                "accumulatedSeconds": self.accumulated_seconds,
                "sessionStartedAt": to_iso(self.session_started_at) if self.session_started_at else None,
                "pausedAt": to_iso(self.paused_at) if self.paused_at else None,
                "selection": self.selection.to_dict(),
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> "PausedSnapshot":
        data = _decode(raw)
        accumulated = _accumulated(data)
        paused_at = parse_iso(data["pausedAt"]) if data.get("pausedAt") else None
        session_started = data.get("sessionStartedAt")
        if session_started:
            session_started_at: Optional[datetime] = parse_iso(session_started)
        elif paused_at is not None:
            session_started_at = paused_at - timedelta(seconds=accumulated)
        else:
            session_started_at = None
        return cls(
            accumulated_seconds=accumulated,
            selection=selection_from_dict(data["selection"]),
            session_started_at=session_started_at,
            paused_at=paused_at,
        )


Snapshot = Union[RunningSnapshot, PausedSnapshot]


class SnapshotManager:
    """Read and write the timer snapshots; failures degrade to 'no snapshot'."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def save_running(self, snapshot: RunningSnapshot) -> None:
        self._write(RUNNING_KEY, snapshot.to_json())

    def save_paused(self, snapshot: PausedSnapshot) -> None:
        self._write(PAUSED_KEY, snapshot.to_json())

    def clear_running(self) -> None:
        self._remove(RUNNING_KEY)

    def clear_paused(self) -> None:
        self._remove(PAUSED_KEY)

    def clear_all(self) -> None:
        self._remove(PAUSED_KEY)
        self._remove(RUNNING_KEY)

    def load(self) -> Optional[Snapshot]:
        """Return the persisted snapshot, preferring a running one."""

        try:
            raw_running = self.store.get(RUNNING_KEY)
            raw_paused = self.store.get(PAUSED_KEY)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Unable to read timer snapshots; starting idle")
            return None

        try:
            if raw_running is not None:
                snapshot: Snapshot = RunningSnapshot.from_json(raw_running)
                if raw_paused is not None:
                    LOGGER.warning("Found both running and paused snapshots; keeping the running one")
                    self.clear_paused()
                return snapshot
            if raw_paused is not None:
                return PausedSnapshot.from_json(raw_paused)
        except (KeyError, TypeError, ValueError):
            LOGGER.warning("Discarding unreadable timer snapshot", exc_info=True)
            self.clear_all()
        return None

    def _write(self, key: str, payload: str) -> None:
        try:
            self.store.set(key, payload)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Failed to persist %s", key)

    def _remove(self, key: str) -> None:
        try:
            self.store.remove(key)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Failed to remove %s", key)
