"""
Database models for the MindCare application.

This module contains all SQLAlchemy ORM models used in the application,
together with the closed vocabularies their columns draw from.
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form every column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role(str, enum.Enum):
    """Account roles. Every authorization decision branches over all three."""
    MEMBER = "member"
    THERAPIST = "therapist"
    ADMIN = "admin"


class PrivacyLevel(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    ANONYMOUS = "anonymous"


class Interest(str, enum.Enum):
    ANXIETY = "anxiety"
    DEPRESSION = "depression"
    RELATIONSHIPS = "relationships"
    TRAUMA = "trauma"
    ADDICTION = "addiction"
    STRESS = "stress"
    PARENTING = "parenting"
    LGBTQ = "lgbtq"
    GRIEF = "grief"
    SELF_IMPROVEMENT = "self_improvement"


class MoodTag(str, enum.Enum):
    ANXIETY = "anxiety"
    STRESS = "stress"
    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    TIRED = "tired"
    ENERGETIC = "energetic"
    PRODUCTIVE = "productive"
    SOCIAL = "social"
    LONELY = "lonely"
    HOPEFUL = "hopeful"
    HOPELESS = "hopeless"
    GRATEFUL = "grateful"


class Activity(str, enum.Enum):
    WORK = "work"
    EXERCISE = "exercise"
    MEDITATION = "meditation"
    SOCIALIZING = "socializing"
    READING = "reading"
    TV = "tv"
    GAMING = "gaming"
    COOKING = "cooking"
    CLEANING = "cleaning"
    SHOPPING = "shopping"
    RESTING = "resting"
    THERAPY = "therapy"
    MEDICATION = "medication"


class Weather(str, enum.Enum):
    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    SNOWY = "snowy"
    WINDY = "windy"


class EntryLocation(str, enum.Enum):
    HOME = "home"
    WORK = "work"
    OUTDOORS = "outdoors"
    TRAVEL = "travel"
    OTHER = "other"


MOOD_TEXTS = {
    1: "Terrible",
    2: "Poor",
    3: "Okay",
    4: "Good",
    5: "Excellent",
}


class User(Base):
    """
    Account model for authentication and profile management.

    Holds the credential, the login throttling counters and the hashed
    single-use tokens for password reset and email verification.
    """
    __tablename__ = "User"

    # Primary key
    id = Column(Integer, primary_key=True, index=True)

    # Identity
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)  # Always lowercase
    hashed_password = Column(String, nullable=False)
    role = Column(
        SQLEnum(Role, values_callable=lambda obj: [e.value for e in obj], name="user_role"),
        default=Role.MEMBER,
        nullable=False,
        index=True,
    )

    # Profile fields
    date_of_birth = Column(Date, nullable=True)
    phone = Column(String, nullable=True)
    bio = Column(String(500), nullable=True)
    avatar = Column(String, default="default-avatar.png")
    location = Column(JSON, nullable=True)  # country / state / city / timezone
    interests = Column(JSON, nullable=False, default=list)

    # Preferences
    email_notifications = Column(Boolean, default=True, nullable=False)
    push_notifications = Column(Boolean, default=True, nullable=False)
    newsletter = Column(Boolean, default=True, nullable=False)
    privacy_level = Column(
        SQLEnum(PrivacyLevel, values_callable=lambda obj: [e.value for e in obj], name="privacy_level"),
        default=PrivacyLevel.PRIVATE,
        nullable=False,
    )

    # Account status
    is_email_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    is_online = Column(Boolean, default=False, nullable=False)
    last_seen = Column(DateTime, default=utcnow)

    # Single-use tokens, stored as SHA-256 digests
    reset_password_token = Column(String, index=True, nullable=True)
    reset_password_expire = Column(DateTime, nullable=True)
    email_verification_token = Column(String, index=True, nullable=True)
    email_verification_expire = Column(DateTime, nullable=True)

    # Login throttling
    login_attempts = Column(Integer, default=0, nullable=False)
    lock_until = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    mood_entries = relationship("MoodEntry", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class MoodEntry(Base):
    """
    A single daily self-reported wellbeing record.

    The (user_id, entry_date) constraint is what keeps an account to one
    entry per calendar day; inserts rely on it rather than a prior lookup.
    """
    __tablename__ = "MoodEntry"
    __table_args__ = (
        UniqueConstraint("user_id", "entry_date", name="uq_mood_entry_user_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("User.id"), index=True, nullable=False)

    mood = Column(Integer, nullable=False)
    mood_text = Column(String, nullable=False)
    notes = Column(String(1000), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    activities = Column(JSON, nullable=False, default=list)

    sleep_hours = Column(Float, nullable=True)
    sleep_quality = Column(Integer, nullable=True)
    exercise_minutes = Column(Integer, nullable=True)
    weather = Column(String, nullable=True)
    location = Column(String, nullable=True)
    is_private = Column(Boolean, default=False, nullable=False)

    # UTC calendar day of creation
    entry_date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="mood_entries")
