"""Session ledger: the persisted, user-editable log of completed study runs."""
from __future__ import annotations

import json
import logging
import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import LedgerError
from .models import StudySession, optional_subject
from .storage import KeyValueStore

LOGGER = logging.getLogger(__name__)

SESSIONS_KEY = "study-clock:sessions"
CORRUPT_SUFFIX = ".corrupt"

KEEP: Any = object()


class SessionLedger:
    """Sessions keyed by id, loaded once and written through on every change."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str = SESSIONS_KEY,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self.store = store
        self.key = key
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)
        self._sessions: Dict[str, StudySession] = {}
        self._load()

    def _load(self) -> None:
        try:
            raw = self.store.get(self.key)
        except Exception as e:  # noqa: BLE001
            raise LedgerError(f"Failed to read session ledger: {e}") from e
        if raw is None:
            return

        try:
            rows = json.loads(raw)
            if not isinstance(rows, list):
                raise ValueError("Session ledger must be a list")
        except ValueError:
            LOGGER.warning("Session ledger unreadable; starting empty", exc_info=True)
            self._preserve_corrupt(raw)
            return

        skipped = 0
        for row in rows:
            try:
                session = StudySession.from_dict(row)
            except (AttributeError, KeyError, TypeError, ValueError):
                LOGGER.warning("Skipping malformed session record: %r", row)
                skipped += 1
                continue
            if session.id in self._sessions:
                LOGGER.warning("Duplicate session id %s in ledger; keeping the later record", session.id)
            self._sessions[session.id] = session
        if skipped:
            self._preserve_corrupt(raw)
        LOGGER.debug("Loaded %s sessions", len(self._sessions))

    def _preserve_corrupt(self, raw: str) -> None:
        backup_key = self.key + CORRUPT_SUFFIX
        try:
            self.store.set(backup_key, raw)
            LOGGER.info("Preserved unreadable ledger data under %s", backup_key)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Could not preserve unreadable ledger data")

    def _commit(self, sessions: Dict[str, StudySession]) -> None:
        payload = json.dumps([s.to_dict() for s in sessions.values()])
        try:
            self.store.set(self.key, payload)
        except Exception as e:  # noqa: BLE001
            LOGGER.error("Failed to save session ledger: %s", e)
            raise LedgerError(f"Failed to save session ledger: {e}") from e
        self._sessions = sessions

    def append(self, session: StudySession) -> StudySession:
        """Store ``session`` under a freshly generated id and return the stored copy."""

        session_id = self._new_id()
        while session_id in self._sessions:
            session_id = self._new_id()
        stored = replace(session, id=session_id)
        sessions = dict(self._sessions)
        sessions[session_id] = stored
        self._commit(sessions)
        LOGGER.info("Recorded session %s (%ss, %s)", session_id, stored.duration, stored.title)
        return stored

    def remove(self, session_id: str) -> bool:
        if session_id not in self._sessions:
            LOGGER.debug("Session %s already removed", session_id)
            return False
        sessions = dict(self._sessions)
        del sessions[session_id]
        self._commit(sessions)
        LOGGER.info("Deleted session %s", session_id)
        return True

    def update(self, session: StudySession) -> bool:
        """Replace the stored session with the same id; unknown ids are ignored."""

        if session.id not in self._sessions:
            LOGGER.debug("Ignoring edit of missing session %s", session.id)
            return False
        sessions = dict(self._sessions)
        sessions[session.id] = session
        self._commit(sessions)
        LOGGER.info("Updated session %s", session.id)
        return True

    def get(self, session_id: str) -> Optional[StudySession]:
        return self._sessions.get(session_id)

    def sessions(self) -> List[StudySession]:
        return list(self._sessions.values())

    def recent(self, limit: Optional[int] = None) -> List[StudySession]:
        """Sessions newest first by end time, later insertions first on ties."""

        indexed = list(enumerate(self._sessions.values()))
        indexed.sort(key=lambda item: (item[1].end_time, item[0]), reverse=True)
        ordered = [session for _index, session in indexed]
        return ordered[:limit] if limit is not None else ordered

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[StudySession]:
        return iter(self.sessions())

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions


def apply_edit(
    session: StudySession,
    title: Optional[str] = None,
    subject: Any = KEEP,
    material: Any = KEEP,
    duration: Optional[int] = None,
) -> StudySession:
    """Return ``session`` with the user's edits applied.

    A blank title or a non-positive duration keeps the existing value.
    ``subject`` and ``material`` may be cleared by passing ``None``. Start and
    end times are never recomputed from the new duration.
    """

    changes: Dict[str, Any] = {}
    if title and title.strip():
        changes["title"] = title.strip()
    if duration is not None and int(duration) > 0:
        changes["duration"] = int(duration)
    if subject is not KEEP:
        changes["subject"] = optional_subject(subject)
    if material is not KEEP:
        changes["material"] = material or None
    return replace(session, **changes)
