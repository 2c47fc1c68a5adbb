"""
Mood journal routes.

This module handles CRUD operations for daily mood entries, the statistics
dashboard and CSV export.
"""
import csv
import io
import logging
import math
from datetime import date, datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Query, Response, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import (
    MOOD_TEXTS,
    Activity,
    EntryLocation,
    MoodEntry,
    MoodTag,
    Weather,
    utcnow,
)
from .errors import AppError, DuplicateEntry, NotFound
from .mood_stats import (
    get_mood_statistics as build_mood_statistics,
    get_overall_stats,
    get_weekly_trend,
    resolve_range,
    to_naive_utc,
)
from .security import CurrentUser, DbSession, can_edit_stale_entries

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Mood"],
    prefix="/mood"
)

EDIT_WINDOW = timedelta(hours=24)

EXPORT_HEADER = [
    "Date", "Time", "Mood", "Mood Text", "Notes", "Tags", "Activities",
    "Sleep Hours", "Sleep Quality", "Exercise Minutes", "Weather", "Location",
]


# ========== Pydantic Schemas ==========

def _dedupe(values):
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


class MoodEntryCreateSchema(BaseModel):
    """Schema for recording today's mood."""
    mood: int = Field(ge=1, le=5, description="Mood rating from 1 (Terrible) to 5 (Excellent)")
    notes: Optional[str] = Field(None, max_length=1000)
    tags: List[MoodTag] = Field(default_factory=list)
    activities: List[Activity] = Field(default_factory=list)
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    sleep_quality: Optional[int] = Field(None, ge=1, le=5)
    exercise_minutes: Optional[int] = Field(None, ge=0)
    weather: Optional[Weather] = None
    location: Optional[EntryLocation] = None
    is_private: bool = False

    @field_validator("notes", mode="before")
    @classmethod
    def strip_notes(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags", "activities")
    @classmethod
    def unique_values(cls, v):
        return _dedupe(v)

    model_config = {
        "json_schema_extra": {
            "example": {
                "mood": 4,
                "notes": "Good walk in the park",
                "tags": ["happy", "grateful"],
                "activities": ["exercise"],
                "sleep_hours": 7.5,
                "sleep_quality": 4,
                "weather": "sunny",
                "location": "outdoors"
            }
        }
    }


class MoodEntryUpdateSchema(BaseModel):
    """Schema for updating an entry. Omitted fields are left untouched."""
    mood: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = Field(None, max_length=1000)
    tags: Optional[List[MoodTag]] = None
    activities: Optional[List[Activity]] = None
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    sleep_quality: Optional[int] = Field(None, ge=1, le=5)
    exercise_minutes: Optional[int] = Field(None, ge=0)
    weather: Optional[Weather] = None
    location: Optional[EntryLocation] = None
    is_private: Optional[bool] = None

    @field_validator("notes", mode="before")
    @classmethod
    def strip_notes(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags", "activities")
    @classmethod
    def unique_values(cls, v):
        return _dedupe(v) if v is not None else v


class MoodEntryOut(BaseModel):
    id: int
    user_id: int
    mood: int
    mood_text: str
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    activities: List[str] = Field(default_factory=list)
    sleep_hours: Optional[float] = None
    sleep_quality: Optional[int] = None
    exercise_minutes: Optional[int] = None
    weather: Optional[str] = None
    location: Optional[str] = None
    is_private: bool
    entry_date: date
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


def serialize_entry(entry: MoodEntry) -> dict:
    return MoodEntryOut.model_validate(entry).model_dump(mode="json")


# Columns that may not be cleared by an update
REQUIRED_FIELDS = {"mood", "tags", "activities", "is_private"}


# ========== Helpers ==========

def get_owned_entry(db: Session, entry_id: int, user_id: int) -> MoodEntry:
    entry = db.query(MoodEntry).filter(
        MoodEntry.id == entry_id,
        MoodEntry.user_id == user_id
    ).first()

    if not entry:
        raise NotFound("Mood entry not found")
    return entry


def _blank(value) -> str:
    return "" if value is None else value


# ========== Mood Entry Routes ==========

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_mood_entry(entry_data: MoodEntryCreateSchema, db: DbSession, user: CurrentUser):
    """
    Record today's mood for the current user.

    Raises:
        DuplicateEntry: If the user already has an entry for today (UTC).
    """
    now = utcnow()
    fields = entry_data.model_dump(mode="json")

    new_entry = MoodEntry(
        user_id=user.id,
        mood_text=MOOD_TEXTS[entry_data.mood],
        entry_date=now.date(),
        created_at=now,
        updated_at=now,
        **fields
    )

    try:
        db.add(new_entry)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateEntry("Mood entry already exists for today")

    db.refresh(new_entry)
    return {"success": True, "data": serialize_entry(new_entry)}


@router.get("")
async def get_mood_entries(
    db: DbSession,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    limit: int = Query(30, ge=1, le=100),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    mood: Optional[int] = Query(None, ge=1, le=5),
    tag: Optional[MoodTag] = None,
):
    """
    List the current user's entries, newest first.

    Returns:
        The requested page plus overall statistics for the range and the
        trailing seven-day trend.
    """
    start, end = resolve_range(start_date, end_date)
    skip = (page - 1) * limit

    query = db.query(MoodEntry).filter(
        MoodEntry.user_id == user.id,
        MoodEntry.created_at >= start,
        MoodEntry.created_at <= end
    )
    if mood is not None:
        query = query.filter(MoodEntry.mood == mood)
    query = query.order_by(MoodEntry.created_at.desc(), MoodEntry.id.desc())

    if tag is not None:
        # tags live in a JSON column; filter in Python to stay dialect-neutral
        matching = [entry for entry in query.all() if tag.value in (entry.tags or [])]
        total = len(matching)
        entries = matching[skip:skip + limit]
    else:
        total = query.count()
        entries = query.offset(skip).limit(limit).all()

    return {
        "success": True,
        "count": len(entries),
        "total": total,
        "pagination": {
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit)
        },
        "data": [serialize_entry(entry) for entry in entries],
        "stats": get_overall_stats(db, user.id, start, end),
        "trends": get_weekly_trend(db, user.id)
    }


@router.get("/stats")
async def get_mood_statistics(
    db: DbSession,
    user: CurrentUser,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    """Dashboard statistics over a date range (default: last 30 days)."""
    return {
        "success": True,
        "data": build_mood_statistics(db, user.id, start_date, end_date)
    }


@router.get("/export")
async def export_mood_data(
    db: DbSession,
    user: CurrentUser,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    """Download entries as CSV. Without a start date every entry is exported."""
    query = db.query(MoodEntry).filter(MoodEntry.user_id == user.id)

    start = to_naive_utc(start_date)
    if start is not None:
        end = to_naive_utc(end_date) or utcnow()
        query = query.filter(MoodEntry.created_at >= start, MoodEntry.created_at <= end)

    entries = query.order_by(MoodEntry.created_at.desc()).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for entry in entries:
        writer.writerow([
            entry.created_at.strftime("%Y-%m-%d"),
            entry.created_at.strftime("%H:%M:%S"),
            entry.mood,
            entry.mood_text,
            entry.notes or "",
            ", ".join(entry.tags or []),
            ", ".join(entry.activities or []),
            _blank(entry.sleep_hours),
            _blank(entry.sleep_quality),
            _blank(entry.exercise_minutes),
            entry.weather or "",
            entry.location or "",
        ])

    filename = f"mood-data-{utcnow().strftime('%Y%m%d%H%M%S')}.csv"
    logger.info(f"Exported {len(entries)} mood entries for account {user.id}")

    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/{entry_id}")
async def get_mood_entry(entry_id: int, db: DbSession, user: CurrentUser):
    entry = get_owned_entry(db, entry_id, user.id)
    return {"success": True, "data": serialize_entry(entry)}


@router.put("/{entry_id}")
async def update_mood_entry(
    entry_id: int,
    update_data: MoodEntryUpdateSchema,
    db: DbSession,
    user: CurrentUser
):
    """
    Update an entry.

    Owners may edit an entry for 24 hours after creating it; administrators
    are not bound by that window.
    """
    entry = get_owned_entry(db, entry_id, user.id)

    if utcnow() - entry.created_at > EDIT_WINDOW and not can_edit_stale_entries(user.role):
        raise AppError("Cannot update entries older than 24 hours")

    fields = update_data.model_dump(mode="json", exclude_unset=True)
    for field, value in fields.items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(entry, field, value)

    if fields.get("mood") is not None:
        entry.mood_text = MOOD_TEXTS[entry.mood]

    db.commit()
    db.refresh(entry)

    return {"success": True, "data": serialize_entry(entry)}


@router.delete("/{entry_id}")
async def delete_mood_entry(entry_id: int, db: DbSession, user: CurrentUser):
    entry = get_owned_entry(db, entry_id, user.id)

    db.delete(entry)
    db.commit()

    return {"success": True, "data": {}}
