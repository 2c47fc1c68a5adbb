"""
Database configuration and session management for the application.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from routes.config import settings

# Database configuration
DATABASE_URL = settings.DATABASE_URL

# check_same_thread=False is needed for SQLite to work with FastAPI
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# Create database engine
engine = create_engine(
    url=DATABASE_URL,
    connect_args=connect_args
)

# One session per request, see get_db
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

Base = declarative_base()


def get_db():
    """Provide database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
