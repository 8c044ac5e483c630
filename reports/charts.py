"""PNG charts of study time."""
from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Dict

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from studyclock.tracker.models import DISTRIBUTION_BUCKETS, SubjectDistribution  # noqa: E402

LOGGER = logging.getLogger(__name__)

SUBJECT_COLORS = {
    "physics": "#6366f1",
    "chemistry": "#10b981",
    "maths": "#f59e0b",
    "custom": "#8b5cf6",
}


def _hours(seconds: int) -> float:
    return round(seconds / 3600.0, 2)


def _save(fig, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, format="png")
    plt.close(fig)
    LOGGER.info("Rendered chart %s", path)
    return path


def render_distribution(distribution: SubjectDistribution, path: Path) -> Path:
    values = distribution.as_dict()
    labels = [bucket.capitalize() for bucket in DISTRIBUTION_BUCKETS]
    totals = [_hours(values[bucket]) for bucket in DISTRIBUTION_BUCKETS]
    fig, ax = plt.subplots(figsize=(5, 3))
    ax.bar(labels, totals, color=[SUBJECT_COLORS[bucket] for bucket in DISTRIBUTION_BUCKETS])
    ax.set_ylabel("Hours")
    ax.set_title("Time by subject")
    return _save(fig, path)


def render_week(breakdown: Dict[date, SubjectDistribution], path: Path) -> Path:
    """Stacked bar per day, one segment per subject bucket."""
    days = sorted(breakdown)
    labels = [day.strftime("%a") for day in days]
    bottoms = [0.0] * len(days)
    fig, ax = plt.subplots(figsize=(6, 3))
    for bucket in DISTRIBUTION_BUCKETS:
        heights = [_hours(breakdown[day].as_dict()[bucket]) for day in days]
        ax.bar(labels, heights, bottom=bottoms, color=SUBJECT_COLORS[bucket], label=bucket.capitalize())
        bottoms = [b + h for b, h in zip(bottoms, heights)]
    ax.set_ylabel("Hours")
    if days:
        ax.set_title(f"Week of {days[0].isoformat()}")
    ax.legend(loc="upper right", fontsize="small")
    return _save(fig, path)
