import smtplib
from types import SimpleNamespace

import pytest

from routes import email_service
from routes.config import settings
from routes.email_service import EmailService


class FakeSMTP:
    sent = []
    logins = []
    fail = False

    def __init__(self, host, port):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, username, password):
        FakeSMTP.logins.append(username)

    def send_message(self, message):
        if FakeSMTP.fail:
            raise smtplib.SMTPException("relay refused")
        FakeSMTP.sent.append(message)


@pytest.fixture
def smtp(monkeypatch):
    FakeSMTP.sent = []
    FakeSMTP.logins = []
    FakeSMTP.fail = False
    monkeypatch.setattr(email_service.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


@pytest.fixture
def user():
    return SimpleNamespace(first_name="Alice", email="alice@example.com")


def test_reset_email_is_multipart_with_link(smtp, user):
    service = EmailService(settings)

    assert service.send_password_reset_email(user, "http://localhost:3000/reset-password/abc") is True

    message = smtp.sent[0]
    assert message["To"] == "alice@example.com"
    assert message["Subject"] == "Reset Your MindCare Password"
    assert message["From"] == f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"
    plain, html = message.get_payload()
    assert "reset-password/abc" in plain.get_payload(decode=True).decode()
    assert "Hello Alice" in html.get_payload(decode=True).decode()


def test_login_only_with_username(smtp, user):
    service = EmailService(settings)
    service.email_username = ""
    service.send_password_changed_email(user)
    assert smtp.logins == []

    service.email_username = "mailer@example.com"
    service.send_password_changed_email(user)
    assert smtp.logins == ["mailer@example.com"]


def test_send_failure_returns_false(smtp, user):
    smtp.fail = True
    assert EmailService(settings).send_welcome_email(user) is False


def test_html_body_escapes_names(smtp):
    user = SimpleNamespace(first_name='<a href="http://evil">Al</a>', email="alice@example.com")

    EmailService(settings).send_password_changed_email(user)

    _, html = smtp.sent[0].get_payload()
    body = html.get_payload(decode=True).decode()
    assert "&lt;a href=&quot;http://evil&quot;&gt;Al&lt;/a&gt;" in body
    assert 'href="http://evil"' not in body
