"""Excel export of the session ledger."""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

import pandas as pd

from studyclock.tracker.clock import to_iso
from studyclock.tracker.models import StudySession, SubjectDistribution

LOGGER = logging.getLogger(__name__)

SESSION_COLUMNS = [
    "Id",
    "Title",
    "Kind",
    "Subject",
    "ChapterSerial",
    "ChapterName",
    "Material",
    "TaskId",
    "StartTime",
    "EndTime",
    "DurationSeconds",
    "DurationHours",
]


class ExcelExporter:
    def __init__(self, export_path: Path):
        self.export_path = Path(export_path)
        self.export_path.parent.mkdir(parents=True, exist_ok=True)

    def export(self, sessions: Iterable[StudySession], distribution: SubjectDistribution) -> Path:
        """Write sessions and the subject split, merging rows by session id."""
        rows = [
            (
                s.id,
                s.title,
                s.kind.value,
                s.subject.value if s.subject else "",
                s.chapter_serial,
                s.chapter_name or "",
                s.material or "",
                s.task_id or "",
                to_iso(s.start_time),
                to_iso(s.end_time),
                s.duration,
                round(s.duration / 3600.0, 2),
            )
            for s in sessions
        ]
        sessions_df = pd.DataFrame(rows, columns=SESSION_COLUMNS)

        existing = None
        if self.export_path.exists():
            try:
                existing = pd.read_excel(self.export_path, sheet_name="Sessions", dtype={"Id": str})
            except Exception:
                LOGGER.warning("Existing Excel file unreadable, recreating: %s", self.export_path)

        if existing is not None and not existing.empty:
            combined = pd.concat([existing, sessions_df], ignore_index=True)
            combined.drop_duplicates(subset=["Id"], keep="last", inplace=True)
            sessions_df = combined

        total = distribution.total
        subjects_df = pd.DataFrame(
            [
                (bucket, seconds, round(seconds / 3600.0, 2), round(seconds / total * 100, 1) if total else 0.0)
                for bucket, seconds in distribution.as_dict().items()
            ],
            columns=["Bucket", "Seconds", "Hours", "Percent"],
        )

        with pd.ExcelWriter(self.export_path, engine="openpyxl", mode="w") as writer:
            sessions_df.to_excel(writer, sheet_name="Sessions", index=False)
            subjects_df.to_excel(writer, sheet_name="Subjects", index=False)
            meta_df = pd.DataFrame(
                [[datetime.now(), len(sessions_df), total]], columns=["ExportedAt", "RowCount", "TotalSeconds"]
            )
            meta_df.to_excel(writer, sheet_name="Meta", index=False)
        LOGGER.info("Exported %s sessions to %s", len(sessions_df), self.export_path)
        return self.export_path
