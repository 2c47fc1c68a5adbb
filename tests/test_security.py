from datetime import datetime, timedelta

import pytest
from jose import jwt

from conftest import TestingSessionLocal
from models import Role, User
from routes.errors import AccountLocked, InvalidOrExpiredToken, InvalidToken, TokenExpired
from routes.security import (
    LOCK_TIME,
    MAX_LOGIN_ATTEMPTS,
    can_edit_stale_entries,
    create_access_token,
    decode_access_token,
    ensure_not_locked,
    extract_token,
    find_user_by_reset_token,
    generate_token,
    hash_password,
    hash_token,
    issue_reset_token,
    lock_minutes_remaining,
    register_failed_login,
    register_successful_login,
    validate_password_complexity,
    verify_password,
)

NOW = datetime(2025, 3, 10, 12, 0, 0)


def make_user(**fields):
    values = {"id": 1, "login_attempts": 0, "lock_until": None}
    values.update(fields)
    return User(**values)


def test_password_complexity_rules():
    assert validate_password_complexity("SecurePass123")["is_valid"] is True

    result = validate_password_complexity("short")
    assert result["is_valid"] is False
    assert "Password must be at least 8 characters long" in result["errors"]
    assert "Password must contain at least one number" in result["errors"]


def test_hash_and_verify_password():
    hashed = hash_password("SecurePass123")
    assert hashed != "SecurePass123"
    assert verify_password("SecurePass123", hashed)
    assert not verify_password("securepass123", hashed)


def test_session_token_round_trip():
    payload = decode_access_token(create_access_token(42, Role.THERAPIST))
    assert payload["id"] == 42
    assert payload["sub"] == "42"
    assert payload["role"] == "therapist"


def test_session_token_expired():
    token = create_access_token(42, Role.MEMBER, timedelta(seconds=-1))
    with pytest.raises(TokenExpired):
        decode_access_token(token)


def test_session_token_signed_with_other_key():
    token = jwt.encode({"sub": "42", "id": 42, "role": "admin"}, "not-the-secret", algorithm="HS256")
    with pytest.raises(InvalidToken):
        decode_access_token(token)


@pytest.mark.parametrize(
    "authorization, cookie, expected",
    [
        ("Bearer abc", None, "abc"),
        ("Bearer abc", "cookie-token", "abc"),
        (None, "cookie-token", "cookie-token"),
        ("Bearer ", "cookie-token", "cookie-token"),
        ("Bearer", None, None),
        (None, None, None),
    ],
)
def test_extract_token(authorization, cookie, expected):
    assert extract_token(authorization, cookie) == expected


def saved_user(db_session, **fields):
    values = {
        "first_name": "Alice",
        "last_name": "Smith",
        "email": "alice@example.com",
        "hashed_password": "x",
        "login_attempts": 0,
        "lock_until": None,
    }
    values.update(fields)
    user = User(**values)
    db_session.add(user)
    db_session.commit()
    return user


def test_failures_lock_on_fifth_attempt(db_session):
    user = saved_user(db_session)
    for _ in range(MAX_LOGIN_ATTEMPTS - 1):
        register_failed_login(db_session, user, NOW)
        assert user.lock_until is None

    register_failed_login(db_session, user, NOW)

    assert user.login_attempts == MAX_LOGIN_ATTEMPTS
    assert user.lock_until == NOW + LOCK_TIME
    assert lock_minutes_remaining(user, NOW) == 120
    with pytest.raises(AccountLocked):
        ensure_not_locked(user, NOW + timedelta(minutes=119))


def test_failure_while_locked_keeps_lock_window(db_session):
    user = saved_user(db_session, login_attempts=5, lock_until=NOW + timedelta(minutes=30))

    register_failed_login(db_session, user, NOW)

    assert user.login_attempts == 6
    assert user.lock_until == NOW + timedelta(minutes=30)


def test_failure_after_lock_expiry_restarts_at_one(db_session):
    user = saved_user(db_session, login_attempts=5, lock_until=NOW - timedelta(minutes=1))

    register_failed_login(db_session, user, NOW)

    assert user.login_attempts == 1
    assert user.lock_until is None
    ensure_not_locked(user, NOW)


def test_concurrent_failures_are_all_counted(db_session):
    user_id = saved_user(db_session, login_attempts=3).id
    first, second = TestingSessionLocal(), TestingSessionLocal()
    try:
        # both requests loaded the account before either counted its failure
        first_copy = first.get(User, user_id)
        second_copy = second.get(User, user_id)
        assert first_copy.login_attempts == second_copy.login_attempts == 3

        register_failed_login(first, first_copy, NOW)
        register_failed_login(second, second_copy, NOW)
        first.commit()
        second.commit()
    finally:
        first.close()
        second.close()

    db_session.expire_all()
    user = db_session.get(User, user_id)
    assert user.login_attempts == 5
    assert user.lock_until == NOW + LOCK_TIME


def test_lock_minutes_round_up():
    user = make_user(lock_until=NOW + timedelta(minutes=3, seconds=1))
    assert lock_minutes_remaining(user, NOW) == 4


def test_successful_login_clears_counters():
    user = make_user(login_attempts=3, is_online=False)

    register_successful_login(user, NOW)

    assert user.login_attempts == 0
    assert user.lock_until is None
    assert user.last_seen == NOW
    assert user.is_online is True


def test_generated_tokens_are_random_and_hashed():
    raw, digest = generate_token()
    other_raw, _ = generate_token()

    assert len(raw) == 40
    assert raw != other_raw
    assert digest == hash_token(raw)
    assert digest != raw


def test_find_user_by_reset_token(db_session):
    user = make_user(
        id=None,
        first_name="Alice",
        last_name="Smith",
        email="alice@example.com",
        hashed_password="x",
    )
    raw = issue_reset_token(user, NOW)
    db_session.add(user)
    db_session.commit()

    assert find_user_by_reset_token(db_session, raw, NOW + timedelta(minutes=9)).id == user.id
    with pytest.raises(InvalidOrExpiredToken):
        find_user_by_reset_token(db_session, raw, NOW + timedelta(minutes=10))
    with pytest.raises(InvalidOrExpiredToken):
        find_user_by_reset_token(db_session, "0" * 40, NOW)


@pytest.mark.parametrize(
    "role, allowed",
    [(Role.MEMBER, False), (Role.THERAPIST, False), (Role.ADMIN, True), ("admin", True)],
)
def test_can_edit_stale_entries(role, allowed):
    assert can_edit_stale_entries(role) is allowed
