"""
Read-only reporting over the mood journal.

The summarising functions take any sequence of objects exposing the
MoodEntry attributes (mood, created_at, sleep_hours, tags, activities), so
they work on ORM rows as well as plain records. Nothing here is cached;
every request recomputes from the stored entries.
"""
import statistics
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from models import MoodEntry, utcnow

DEFAULT_RANGE = timedelta(days=30)
TREND_WINDOW = timedelta(days=7)
TOP_LIMIT = 10

# 1 = Sunday ... 7 = Saturday
DAY_NAMES = {
    1: "Sunday",
    2: "Monday",
    3: "Tuesday",
    4: "Wednesday",
    5: "Thursday",
    6: "Friday",
    7: "Saturday",
}


def _average(values: Sequence[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise an aware datetime to the naive UTC form stored in the database."""
    if value is None or value.tzinfo is None:
        return value
    return (value - value.utcoffset()).replace(tzinfo=None)


def resolve_range(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """Fill in the trailing-30-days default for a missing bound."""
    now = now or utcnow()
    end = to_naive_utc(end_date) or now
    start = to_naive_utc(start_date) or (now - DEFAULT_RANGE)
    return start, end


# ========== Summaries ==========

def overall_stats(entries: Sequence) -> Dict[str, float]:
    moods = [entry.mood for entry in entries]
    if not moods:
        return {"average_mood": 0, "total_entries": 0, "best_day": 0, "worst_day": 0}

    return {
        "average_mood": _average(moods),
        "total_entries": len(moods),
        "best_day": max(moods),
        "worst_day": min(moods),
    }


def _grouped(entries: Iterable, key) -> Dict[object, List[int]]:
    groups: Dict[object, List[int]] = defaultdict(list)
    for entry in entries:
        groups[key(entry)].append(entry.mood)
    return groups


def daily_trend(entries: Sequence) -> List[dict]:
    """Average mood per calendar day, oldest first."""
    groups = _grouped(entries, lambda entry: entry.created_at.date())
    return [
        {"date": day.isoformat(), "average_mood": _average(moods), "count": len(moods)}
        for day, moods in sorted(groups.items())
    ]


def by_day_of_week(entries: Sequence) -> List[dict]:
    """Average mood per weekday, numbered from Sunday (1) to Saturday (7)."""
    groups = _grouped(entries, lambda entry: entry.created_at.isoweekday() % 7 + 1)
    return [
        {"day": day, "day_name": DAY_NAMES[day], "average_mood": _average(moods), "count": len(moods)}
        for day, moods in sorted(groups.items())
    ]


def by_hour(entries: Sequence) -> List[dict]:
    """Average mood per hour of day (UTC)."""
    groups = _grouped(entries, lambda entry: entry.created_at.hour)
    return [
        {"hour": hour, "average_mood": _average(moods), "count": len(moods)}
        for hour, moods in sorted(groups.items())
    ]


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    """
    Pearson's r for paired samples.

    Returns 0.0 when the coefficient is undefined: fewer than two pairs or
    a constant series.
    """
    if len(xs) != len(ys) or len(xs) < 2:
        return 0.0
    try:
        return round(statistics.correlation(xs, ys), 4)
    except statistics.StatisticsError:
        return 0.0


def sleep_correlation(entries: Sequence) -> Dict[str, float]:
    pairs = [(entry.sleep_hours, entry.mood) for entry in entries if entry.sleep_hours is not None]
    sleep = [float(hours) for hours, _ in pairs]
    moods = [float(mood) for _, mood in pairs]
    return {"correlation": pearson_correlation(sleep, moods), "count": len(pairs)}


def top_values(entries: Sequence, attribute: str, label: str, limit: int = TOP_LIMIT) -> List[dict]:
    """
    Most frequent values of a list attribute with the mean mood of the
    entries that carry them. Ties are broken alphabetically.
    """
    groups: Dict[str, List[int]] = defaultdict(list)
    for entry in entries:
        for value in getattr(entry, attribute) or []:
            groups[value].append(entry.mood)

    ranked = sorted(groups.items(), key=lambda item: (-len(item[1]), item[0]))
    return [
        {label: value, "average_mood": _average(moods), "count": len(moods)}
        for value, moods in ranked[:limit]
    ]


# ========== Queries ==========

def fetch_entries(db: Session, user_id: int, start: datetime, end: datetime) -> List[MoodEntry]:
    return db.query(MoodEntry).filter(
        MoodEntry.user_id == user_id,
        MoodEntry.created_at >= start,
        MoodEntry.created_at <= end
    ).order_by(MoodEntry.created_at.asc()).all()


def get_overall_stats(db: Session, user_id: int, start: datetime, end: datetime) -> Dict[str, float]:
    return overall_stats(fetch_entries(db, user_id, start, end))


def get_weekly_trend(db: Session, user_id: int, now: Optional[datetime] = None) -> List[dict]:
    now = now or utcnow()
    return daily_trend(fetch_entries(db, user_id, now - TREND_WINDOW, now))


def get_mood_statistics(
    db: Session,
    user_id: int,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Full dashboard report for one account over a date range."""
    now = now or utcnow()
    start, end = resolve_range(start_date, end_date, now)
    entries = fetch_entries(db, user_id, start, end)

    return {
        "range": {"start_date": start, "end_date": end},
        "overall": overall_stats(entries),
        "trend": get_weekly_trend(db, user_id, now),
        "by_day_of_week": by_day_of_week(entries),
        "by_hour": by_hour(entries),
        "sleep_correlation": sleep_correlation(entries),
        "top_tags": top_values(entries, "tags", "tag"),
        "top_activities": top_values(entries, "activities", "activity"),
    }
