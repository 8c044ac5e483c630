"""Data models for the study clock."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from .clock import parse_iso, to_iso

UNTITLED = "Untitled Session"
CUSTOM_BUCKET = "custom"


class Subject(str, Enum):
    PHYSICS = "physics"
    CHEMISTRY = "chemistry"
    MATHS = "maths"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class SessionKind(str, Enum):
    CHAPTER = "chapter"
    CUSTOM = "custom"
    TASK = "task"


DISTRIBUTION_BUCKETS = tuple(s.value for s in Subject) + (CUSTOM_BUCKET,)


def optional_subject(value: Any) -> Optional[Subject]:
    if value in (None, ""):
        return None
    return Subject(value)


def _optional_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    return int(value)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text else None


@dataclass(frozen=True)
class ChapterSelection:
    """Study a syllabus chapter (optionally a specific material of it)."""

    subject: Subject
    chapter_serial: Optional[int] = None
    material: Optional[str] = None
    kind: ClassVar[SessionKind] = SessionKind.CHAPTER

    def __post_init__(self) -> None:
        if self.subject is None:
            raise ValueError("A chapter selection needs a subject")
        object.__setattr__(self, "subject", Subject(self.subject))
        object.__setattr__(self, "chapter_serial", _optional_int(self.chapter_serial))
        object.__setattr__(self, "material", _optional_text(self.material))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "subject": self.subject.value,
            "chapterSerial": self.chapter_serial,
            "material": self.material,
        }


@dataclass(frozen=True)
class CustomSelection:
    """Free-form study title."""

    title: str = ""
    kind: ClassVar[SessionKind] = SessionKind.CUSTOM

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "title": self.title}


@dataclass(frozen=True)
class TaskSelection:
    """Study linked to a planner task; subject fields only shape the title."""

    task_id: str
    title: str = ""
    subject: Optional[Subject] = None
    chapter_serial: Optional[int] = None
    material: Optional[str] = None
    kind: ClassVar[SessionKind] = SessionKind.TASK

    def __post_init__(self) -> None:
        if not self.task_id:
            raise ValueError("A task selection needs a task id")
        object.__setattr__(self, "subject", optional_subject(self.subject))
        object.__setattr__(self, "chapter_serial", _optional_int(self.chapter_serial))
        object.__setattr__(self, "material", _optional_text(self.material))
        if self.subject is None and (self.chapter_serial is not None or self.material is not None):
            raise ValueError("Chapter or material given without a subject")

    @classmethod
    def from_task(cls, task: "PlannerTask") -> "TaskSelection":
        if task.kind == SessionKind.CHAPTER and task.subject is not None:
            return cls(
                task_id=task.id,
                title=task.title,
                subject=task.subject,
                chapter_serial=task.chapter_serial,
                material=task.material,
            )
        return cls(task_id=task.id, title=task.title)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "taskId": self.task_id,
            "title": self.title,
            "subject": self.subject.value if self.subject else None,
            "chapterSerial": self.chapter_serial,
            "material": self.material,
        }


SubjectSelection = Union[ChapterSelection, CustomSelection, TaskSelection]
DEFAULT_SELECTION: SubjectSelection = CustomSelection()


def selection_from_dict(data: Dict[str, Any]) -> SubjectSelection:
    if not isinstance(data, dict):
        raise ValueError("Selection payload must be an object")
    kind = SessionKind(data.get("kind"))
    if kind == SessionKind.CHAPTER:
        return ChapterSelection(
            subject=data.get("subject"),
            chapter_serial=data.get("chapterSerial"),
            material=data.get("material"),
        )
    if kind == SessionKind.TASK:
        return TaskSelection(
            task_id=data.get("taskId") or "",
            title=data.get("title") or "",
            subject=data.get("subject"),
            chapter_serial=data.get("chapterSerial"),
            material=data.get("material"),
        )
    return CustomSelection(title=data.get("title") or "")


@dataclass
class Chapter:
    serial: int
    name: str
    materials: List[str] = field(default_factory=list)


@dataclass
class SubjectSyllabus:
    """Chapters of one subject and the material columns tracked for each."""

    chapters: List[Chapter] = field(default_factory=list)
    material_names: List[str] = field(default_factory=list)


@dataclass
class PlannerTask:
    """Represents a task from the planner."""

    id: str
    title: str
    kind: SessionKind = SessionKind.CUSTOM
    subject: Optional[Subject] = None
    chapter_serial: Optional[int] = None
    material: Optional[str] = None
    subtitle: str = ""
    date: str = ""
    time: str = ""
    completed: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlannerTask":
        raw_kind = data.get("type") or data.get("kind") or SessionKind.CUSTOM.value
        completed = data.get("completed", False)
        if isinstance(completed, str):
            completed = completed.strip().lower() in ("1", "true", "yes")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            kind=SessionKind(raw_kind),
            subject=optional_subject(data.get("subject")),
            chapter_serial=_optional_int(data.get("chapterSerial", data.get("chapter_serial"))),
            material=_optional_text(data.get("material")),
            subtitle=str(data.get("subtitle") or ""),
            date=str(data.get("date") or ""),
            time=str(data.get("time") or ""),
            completed=bool(completed),
        )


@dataclass(frozen=True)
class StudySession:
    """A completed study run; replaced wholesale when the user edits it."""

    id: str
    title: str
    kind: SessionKind
    start_time: datetime
    end_time: datetime
    duration: int
    subject: Optional[Subject] = None
    chapter_serial: Optional[int] = None
    chapter_name: Optional[str] = None
    material: Optional[str] = None
    task_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "kind": self.kind.value,
            "subject": self.subject.value if self.subject else None,
            "chapter_serial": self.chapter_serial,
            "chapter_name": self.chapter_name,
            "material": self.material,
            "task_id": self.task_id,
            "start_time": to_iso(self.start_time),
            "end_time": to_iso(self.end_time),
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudySession":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or UNTITLED,
            kind=SessionKind(data.get("kind") or SessionKind.CUSTOM.value),
            start_time=parse_iso(data["start_time"]),
            end_time=parse_iso(data["end_time"]),
            duration=int(data.get("duration") or 0),
            subject=optional_subject(data.get("subject")),
            chapter_serial=_optional_int(data.get("chapter_serial")),
            chapter_name=_optional_text(data.get("chapter_name")),
            material=_optional_text(data.get("material")),
            task_id=_optional_text(data.get("task_id")),
        )


@dataclass
class SubjectDistribution:
    """Seconds studied per subject plus the catch-all custom bucket."""

    physics: int = 0
    chemistry: int = 0
    maths: int = 0
    custom: int = 0

    def add(self, bucket: str, seconds: int) -> None:
        setattr(self, bucket, getattr(self, bucket) + seconds)

    @property
    def total(self) -> int:
        return self.physics + self.chemistry + self.maths + self.custom

    def as_dict(self) -> Dict[str, int]:
        return {bucket: getattr(self, bucket) for bucket in DISTRIBUTION_BUCKETS}


@dataclass
class ChapterTotal:
    """Aggregated study time for one chapter of a subject."""

    serial: int
    name: str
    seconds: int
