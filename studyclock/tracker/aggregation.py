"""Study-time aggregation over the session ledger.

Every function recomputes from the sessions it is given; nothing is cached.
"""
from __future__ import annotations

import calendar
from datetime import date, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional

from .models import (
    CUSTOM_BUCKET,
    ChapterTotal,
    SessionKind,
    StudySession,
    Subject,
    SubjectDistribution,
)

DEFAULT_TOP_CHAPTERS = 5


def total_duration(sessions: Iterable[StudySession]) -> int:
    return sum(s.duration for s in sessions)


def filter_sessions(
    sessions: Iterable[StudySession],
    subject: Optional[Subject] = None,
    chapter: Optional[int] = None,
    material: Optional[str] = None,
) -> List[StudySession]:
    """Sessions matching every given filter; ``None`` leaves a field unconstrained."""

    subject = Subject(subject) if subject is not None else None
    matched = []
    for s in sessions:
        if subject is not None and s.subject != subject:
            continue
        if chapter is not None and s.chapter_serial != chapter:
            continue
        if material is not None and s.material != material:
            continue
        matched.append(s)
    return matched


def filtered_duration(
    sessions: Iterable[StudySession],
    subject: Optional[Subject] = None,
    chapter: Optional[int] = None,
    material: Optional[str] = None,
) -> int:
    return total_duration(filter_sessions(sessions, subject, chapter, material))


def distribution_bucket(session: StudySession) -> str:
    """Only chapter sessions count toward a subject; everything else is custom."""

    if session.kind != SessionKind.CHAPTER or session.subject is None:
        return CUSTOM_BUCKET
    return session.subject.value


def subject_distribution(sessions: Iterable[StudySession]) -> SubjectDistribution:
    """Split study time into one bucket per subject plus ``custom``.

    Every session lands in exactly one bucket, so the buckets always add up to
    :func:`total_duration` of the same sessions.
    """

    distribution = SubjectDistribution()
    for s in sessions:
        distribution.add(distribution_bucket(s), s.duration)
    return distribution


def top_chapters_by_subject(
    sessions: Iterable[StudySession],
    subject: Subject,
    limit: int = DEFAULT_TOP_CHAPTERS,
) -> List[ChapterTotal]:
    """Chapters of ``subject`` ranked by study time, longest first.

    Ties keep the order in which chapters were first seen. The chapter name
    comes from the first session seen for that chapter, not from the catalog.
    """

    subject = Subject(subject)
    totals: Dict[int, ChapterTotal] = {}
    for s in sessions:
        if s.subject != subject or s.chapter_serial is None:
            continue
        current = totals.get(s.chapter_serial)
        if current is None:
            current = ChapterTotal(
                serial=s.chapter_serial,
                name=s.chapter_name or f"Chapter {s.chapter_serial}",
                seconds=0,
            )
            totals[s.chapter_serial] = current
        current.seconds += s.duration
    ranked = sorted(totals.values(), key=lambda item: item.seconds, reverse=True)
    return ranked[: max(0, limit)]


def percent_of(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(round(part / total * 100))


def chapters_with_sessions(sessions: Iterable[StudySession], subject: Subject) -> Dict[int, str]:
    """Chapter serial -> name for chapters of ``subject`` that have study time."""

    subject = Subject(subject)
    chapters: Dict[int, str] = {}
    for s in sessions:
        if s.subject == subject and s.chapter_serial is not None and s.chapter_serial not in chapters:
            chapters[s.chapter_serial] = s.chapter_name or f"Chapter {s.chapter_serial}"
    return chapters


def materials_with_sessions(
    sessions: Iterable[StudySession],
    subject: Optional[Subject] = None,
    chapter: Optional[int] = None,
) -> List[str]:
    materials: List[str] = []
    for s in filter_sessions(sessions, subject, chapter):
        if s.material and s.material not in materials:
            materials.append(s.material)
    return materials


def week_days(offset: int = 0, today: Optional[date] = None) -> List[date]:
    """The seven days (Monday first) of the week ``offset`` weeks from today."""

    today = today or date.today()
    monday = today - timedelta(days=today.weekday()) + timedelta(weeks=offset)
    return [monday + timedelta(days=i) for i in range(7)]


def month_days(offset: int = 0, today: Optional[date] = None) -> List[date]:
    today = today or date.today()
    month_index = today.year * 12 + (today.month - 1) + offset
    year, month = divmod(month_index, 12)
    month += 1
    _weekday, days_in_month = calendar.monthrange(year, month)
    return [date(year, month, day) for day in range(1, days_in_month + 1)]


def daily_breakdown(
    sessions: Iterable[StudySession],
    days: Iterable[date],
    tz: Optional[tzinfo] = None,
) -> Dict[date, SubjectDistribution]:
    """Per-day subject distribution, keyed by the local date a session started.

    ``tz`` defaults to the system timezone.
    """

    breakdown = {day: SubjectDistribution() for day in days}
    for s in sessions:
        day = s.start_time.astimezone(tz).date()
        if day in breakdown:
            breakdown[day].add(distribution_bucket(s), s.duration)
    return breakdown
