from datetime import datetime, timezone

import pytest

from studyclock.tracker.models import (
    UNTITLED,
    ChapterSelection,
    CustomSelection,
    PlannerTask,
    SessionKind,
    StudySession,
    Subject,
    SubjectDistribution,
    TaskSelection,
    selection_from_dict,
)


def test_chapter_selection_requires_subject():
    with pytest.raises(ValueError):
        ChapterSelection(None)
    selection = ChapterSelection("chemistry", "3", "")
    assert selection.subject == Subject.CHEMISTRY
    assert selection.chapter_serial == 3
    assert selection.material is None


def test_task_selection_rejects_chapter_without_subject():
    with pytest.raises(ValueError):
        TaskSelection("t1", chapter_serial=2)
    with pytest.raises(ValueError):
        TaskSelection("")


def test_task_selection_from_planner_task():
    chapter_task = PlannerTask.from_dict(
        {"id": 7, "title": "Kinematics PYQs", "type": "chapter", "subject": "physics", "chapterSerial": 2, "material": "PYQ"}
    )
    selection = TaskSelection.from_task(chapter_task)
    assert selection == TaskSelection("7", "Kinematics PYQs", Subject.PHYSICS, 2, "PYQ")

    custom_task = PlannerTask.from_dict({"id": "c", "title": "Read novel", "subject": "maths"})
    assert TaskSelection.from_task(custom_task) == TaskSelection("c", "Read novel")


def test_selection_from_dict_dispatches_on_kind():
    assert selection_from_dict({"kind": "custom", "title": "Essay"}) == CustomSelection("Essay")
    assert selection_from_dict({"kind": "chapter", "subject": "maths", "chapterSerial": 1}) == ChapterSelection(
        Subject.MATHS, 1
    )
    with pytest.raises(ValueError):
        selection_from_dict({"kind": "unknown"})
    with pytest.raises(ValueError):
        selection_from_dict("custom")


def test_planner_task_parses_string_flags():
    task = PlannerTask.from_dict({"id": "1", "title": "x", "completed": "Yes", "chapter_serial": ""})
    assert task.completed is True
    assert task.chapter_serial is None
    assert task.kind == SessionKind.CUSTOM


def test_study_session_dict_defaults():
    session = StudySession.from_dict(
        {"id": "s1", "start_time": "2024-03-01T10:00:00Z", "end_time": "2024-03-01T10:10:00+00:00", "duration": 600}
    )
    assert session.title == UNTITLED
    assert session.kind == SessionKind.CUSTOM
    assert session.subject is None
    assert session.start_time == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert StudySession.from_dict(session.to_dict()) == session


def test_subject_distribution_total_and_order():
    distribution = SubjectDistribution()
    distribution.add("physics", 3600)
    distribution.add("custom", 1800)
    assert distribution.total == 5400
    assert list(distribution.as_dict()) == ["physics", "chemistry", "maths", "custom"]
    assert Subject.MATHS.label == "Maths"
