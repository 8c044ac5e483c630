import json

import pytest

from studyclock.tracker.catalog import SyllabusCatalog, TaskList, parse_syllabus_csv
from studyclock.tracker.errors import CatalogError
from studyclock.tracker.models import SessionKind, Subject


def _write_syllabus(directory):
    directory.mkdir()
    (directory / "physics.csv").write_text(
        "serial,chapter,Notes,PYQ\n1,Units,,\n2,Kinematics,x,\nthree,Broken,,\n4,,,\n",
        encoding="utf-8",
    )
    (directory / "maths.csv").write_text("serial,chapter,Practice\n1,Sets,\n", encoding="utf-8")
    return directory


def test_parse_syllabus_skips_bad_rows(tmp_path):
    syllabus = parse_syllabus_csv(_write_syllabus(tmp_path / "syllabus") / "physics.csv")
    assert [c.serial for c in syllabus.chapters] == [1, 2]
    assert syllabus.material_names == ["Notes", "PYQ"]
    assert syllabus.chapters[1].materials == ["Notes", "PYQ"]


def test_catalog_lookups(tmp_path):
    catalog = SyllabusCatalog.from_csv_dir(_write_syllabus(tmp_path / "syllabus"))
    assert catalog.get_chapter_name(Subject.PHYSICS, 2) == "Kinematics"
    assert catalog.get_chapter_name("physics", 99) is None
    assert catalog.get_materials(Subject.MATHS, 1) == {"Practice"}
    assert catalog.chapters(Subject.CHEMISTRY) == []
    assert catalog.material_names(Subject.CHEMISTRY) == []


def test_missing_syllabus_file_raises(tmp_path):
    with pytest.raises(CatalogError):
        parse_syllabus_csv(tmp_path / "nope.csv")


def test_task_list_from_json(tmp_path):
    path = tmp_path / "tasks.json"
    path.write_text(
        json.dumps(
            {
                "tasks": [
                    {"id": "t1", "title": "Optics", "type": "chapter", "subject": "physics", "chapterSerial": 5},
                    {"id": "t2", "title": "Journal", "completed": True},
                    {"title": "no id"},
                    {"id": "t3", "title": "Bad", "type": "holiday"},
                ]
            }
        ),
        encoding="utf-8",
    )
    tasks = TaskList.from_file(path)
    assert len(tasks) == 2
    assert tasks.get("t1").kind == SessionKind.CHAPTER
    assert tasks.get("t1").subject == Subject.PHYSICS
    assert [t.id for t in tasks.pending()] == ["t1"]
    assert tasks.get("missing") is None


def test_task_list_from_csv(tmp_path):
    path = tmp_path / "tasks.csv"
    path.write_text("id,title,type,subject,chapterSerial,completed\n9,Sets,chapter,maths,1,false\n", encoding="utf-8")
    task = TaskList.from_file(path).get("9")
    assert task.chapter_serial == 1
    assert task.completed is False


def test_task_list_errors(tmp_path):
    with pytest.raises(CatalogError):
        TaskList.from_file(tmp_path / "missing.json")
    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    with pytest.raises(CatalogError):
        TaskList.from_file(broken)
    wrong_shape = tmp_path / "shape.json"
    wrong_shape.write_text('"tasks"', encoding="utf-8")
    with pytest.raises(CatalogError):
        TaskList.from_file(wrong_shape)
