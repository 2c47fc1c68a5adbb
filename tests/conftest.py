import os
import re

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from models import Role, User
from routes.config import settings
from routes.email_service import EmailService, get_email_service

API = settings.API_PREFIX
PASSWORD = "SecurePass123"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeEmailService(EmailService):
    """Records outgoing mail instead of talking to an SMTP server."""

    def __init__(self):
        super().__init__(settings)
        self.outbox = []
        self.fail = False

    def send_email(self, to_email, subject, text_content, html_content):
        if self.fail:
            return False
        self.outbox.append({"to": to_email, "subject": subject, "text": text_content})
        return True

    def last_token(self, path):
        """Raw token from the newest message linking to ``path``."""
        for message in reversed(self.outbox):
            match = re.search(rf"{path}/([0-9a-f]+)", message["text"])
            if match:
                return match.group(1)
        return None


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def mailer():
    return FakeEmailService()


@pytest.fixture
def client(mailer):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: mailer
    app.state.api_limiter.reset()
    app.state.auth_limiter.reset()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def register(client, email="alice@example.com", password=PASSWORD, **extra):
    payload = {
        "first_name": "Alice",
        "last_name": "Smith",
        "email": email,
        "password": password,
    }
    payload.update(extra)
    return client.post(f"{API}/auth/register", json=payload)


def login(client, email="alice@example.com", password=PASSWORD, **extra):
    return client.post(f"{API}/auth/login", json={"email": email, "password": password, **extra})


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def member(client):
    """A registered member: (user id, bearer headers)."""
    body = register(client).json()
    return body["user"]["id"], auth_headers(body["token"])


@pytest.fixture
def admin(client, db_session):
    """A registered administrator: (user id, bearer headers)."""
    body = register(client, email="root@example.com").json()
    user = db_session.get(User, body["user"]["id"])
    user.role = Role.ADMIN
    db_session.commit()
    return user.id, auth_headers(body["token"])
