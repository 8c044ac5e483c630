"""Read-only syllabus catalog and planner task list."""
from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set

from .errors import CatalogError
from .models import Chapter, PlannerTask, Subject, SubjectSyllabus

LOGGER = logging.getLogger(__name__)

RESERVED_COLUMNS = ("serial", "chapter")


class SyllabusCatalog:
    """Subjects, their chapters and the materials tracked per chapter."""

    def __init__(self, subjects: Optional[Dict[Subject, SubjectSyllabus]] = None) -> None:
        self.subjects: Dict[Subject, SubjectSyllabus] = dict(subjects or {})

    def chapters(self, subject: Subject) -> List[Chapter]:
        syllabus = self.subjects.get(Subject(subject))
        return list(syllabus.chapters) if syllabus else []

    def material_names(self, subject: Subject) -> List[str]:
        syllabus = self.subjects.get(Subject(subject))
        return list(syllabus.material_names) if syllabus else []

    def get_chapter(self, subject: Subject, serial: int) -> Optional[Chapter]:
        for chapter in self.chapters(subject):
            if chapter.serial == serial:
                return chapter
        return None

    def get_chapter_name(self, subject: Subject, serial: int) -> Optional[str]:
        chapter = self.get_chapter(subject, serial)
        return chapter.name if chapter else None

    def get_materials(self, subject: Subject, serial: int) -> Set[str]:
        chapter = self.get_chapter(subject, serial)
        return set(chapter.materials) if chapter else set()

    @classmethod
    def from_csv_dir(cls, directory: Path) -> "SyllabusCatalog":
        """Load ``<subject>.csv`` files; subjects without a file are left empty."""

        directory = Path(directory)
        subjects: Dict[Subject, SubjectSyllabus] = {}
        for subject in Subject:
            path = directory / f"{subject.value}.csv"
            if not path.exists():
                LOGGER.warning("No syllabus file for %s at %s", subject.value, path)
                continue
            subjects[subject] = parse_syllabus_csv(path)
        return cls(subjects)


def parse_syllabus_csv(path: Path) -> SubjectSyllabus:
    """Parse a ``serial,chapter,<material>...`` CSV into a syllabus."""

    try:
        with Path(path).open("r", newline="", encoding="utf-8") as fh:
            reader = csv.DictReader(fh)
            headers = reader.fieldnames or []
            rows = list(reader)
    except (OSError, csv.Error) as e:
        raise CatalogError(f"Unable to read syllabus {path}: {e}") from e

    material_names = [h for h in headers if h and h.strip() not in RESERVED_COLUMNS]
    chapters: List[Chapter] = []
    for row in rows:
        name = (row.get("chapter") or "").strip()
        try:
            serial = int((row.get("serial") or "").strip())
        except ValueError:
            LOGGER.warning("Skipping syllabus row without a numeric serial in %s: %r", path, row)
            continue
        if not name:
            LOGGER.warning("Skipping syllabus row %s without a chapter name in %s", serial, path)
            continue
        chapters.append(Chapter(serial=serial, name=name, materials=list(material_names)))
    LOGGER.info("Loaded %s chapters from %s", len(chapters), path)
    return SubjectSyllabus(chapters=chapters, material_names=material_names)


class TaskList:
    """Planner tasks a session can be linked to."""

    def __init__(self, tasks: Iterable[PlannerTask] = ()) -> None:
        self.tasks: List[PlannerTask] = list(tasks)

    def get(self, task_id: str) -> Optional[PlannerTask]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def pending(self) -> List[PlannerTask]:
        return [task for task in self.tasks if not task.completed]

    def __iter__(self) -> Iterator[PlannerTask]:
        return iter(self.tasks)

    def __len__(self) -> int:
        return len(self.tasks)

    @classmethod
    def from_file(cls, path: Path) -> "TaskList":
        path = Path(path)
        if not path.exists():
            raise CatalogError(f"Task file not found: {path}")
        try:
            if path.suffix.lower() == ".json":
                data = json.loads(path.read_text(encoding="utf-8"))
                rows = data if isinstance(data, list) else data.get("tasks", [])
            else:
                with path.open("r", newline="", encoding="utf-8") as fh:
                    rows = list(csv.DictReader(fh))
        except (AttributeError, OSError, ValueError, csv.Error) as e:
            raise CatalogError(f"Unable to read tasks from {path}: {e}") from e

        tasks: List[PlannerTask] = []
        for row in rows:
            if not isinstance(row, dict) or not row.get("id"):
                continue
            try:
                tasks.append(PlannerTask.from_dict(row))
            except (TypeError, ValueError):
                LOGGER.warning("Skipped malformed task %r in %s", row.get("id"), path)
        LOGGER.info("Loaded %s tasks from %s", len(tasks), path)
        return cls(tasks)
