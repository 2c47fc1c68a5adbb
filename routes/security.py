"""
Account security gate.

Password hashing, session tokens, login throttling, the single-use
reset/verification token lifecycle and the authorization dependencies
shared by every router.
"""
import hashlib
import logging
import math
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Annotated, Dict, List, Optional, Tuple

from fastapi import Cookie, Depends, Header
from jose import jwt, JWTError
from jose.exceptions import ExpiredSignatureError
from passlib.context import CryptContext
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from models import Role, User, utcnow
from .config import settings
from .errors import (
    AccountDeactivated,
    AccountLocked,
    Forbidden,
    InvalidOrExpiredToken,
    InvalidToken,
    TokenExpired,
    Unauthenticated,
)

logger = logging.getLogger(__name__)

# Security configuration
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# JWT configuration
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE = timedelta(days=settings.JWT_EXPIRE_DAYS)
TOKEN_COOKIE_NAME = "token"

# Lockout policy
MAX_LOGIN_ATTEMPTS = 5
LOCK_TIME = timedelta(hours=2)

# Single-use token validity
RESET_TOKEN_TTL = timedelta(minutes=10)
VERIFICATION_TOKEN_TTL = timedelta(hours=24)

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


DbSession = Annotated[Session, Depends(get_db)]


# ========== Passwords ==========

def validate_email(email: str) -> bool:
    """Validate email format"""
    return re.match(EMAIL_PATTERN, email) is not None


def validate_password_complexity(password: str) -> Dict[str, object]:
    """
    Validate password complexity and return detailed feedback

    Requirements:
    - At least 8 characters
    - At least 1 uppercase letter
    - At least 1 lowercase letter
    - At least 1 number

    Returns:
        Dict with 'is_valid' bool and 'errors' list
    """
    errors: List[str] = []

    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        errors.append("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        errors.append("Password must contain at least one lowercase letter")

    if not re.search(r'[0-9]', password):
        errors.append("Password must contain at least one number")

    return {
        "is_valid": len(errors) == 0,
        "errors": errors
    }


def check_password_complexity(password: str) -> str:
    """Pydantic validator helper: return the password or raise ValueError."""
    result = validate_password_complexity(password)
    if not result["is_valid"]:
        raise ValueError("Password requirements not met: " + "; ".join(result["errors"]))
    return password


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return pwd_context.verify(password, hashed_password)


def set_password(user: User, new_password: str) -> None:
    """Replace the stored credential and invalidate any standing reset token."""
    user.hashed_password = hash_password(new_password)
    user.reset_password_token = None
    user.reset_password_expire = None


# ========== Session Tokens ==========

def create_access_token(user_id: int, role: Role, expire_time: Optional[timedelta] = None) -> str:
    encode = {"sub": str(user_id), "id": user_id, "role": Role(role).value}
    expires = datetime.now(timezone.utc) + (expire_time if expire_time is not None else ACCESS_TOKEN_EXPIRE)
    encode.update({"exp": int(expires.timestamp())})
    return jwt.encode(encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verify a session token.

    Raises:
        TokenExpired: If the signature is valid but the token has expired.
        InvalidToken: If the token is malformed or the signature is wrong.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTError:
        raise InvalidToken()

    if not payload.get("id"):
        raise InvalidToken()
    return payload


def extract_token(authorization: Optional[str], cookie_token: Optional[str]) -> Optional[str]:
    """A bearer token in the header wins over the cookie."""
    if authorization and authorization.startswith("Bearer"):
        parts = authorization.split(" ", 1)
        if len(parts) == 2 and parts[1].strip():
            return parts[1].strip()
    return cookie_token or None


# ========== Login Throttling ==========

def is_locked(user: User, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return bool(user.lock_until and user.lock_until > now)


def lock_minutes_remaining(user: User, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    if not is_locked(user, now):
        return 0
    return math.ceil((user.lock_until - now).total_seconds() / 60)


def register_failed_login(db: Session, user: User, now: Optional[datetime] = None) -> None:
    """
    Count a failed password check.

    An elapsed lock window restarts counting at 1. Reaching
    MAX_LOGIN_ATTEMPTS locks the account for LOCK_TIME. The counter is
    changed with UPDATE statements so concurrent failures are all counted;
    ``user`` is refreshed afterwards.
    """
    now = now or utcnow()
    account = db.query(User).filter(User.id == user.id)

    restarted = account.filter(
        User.lock_until.isnot(None),
        User.lock_until <= now
    ).update({User.login_attempts: 1, User.lock_until: None}, synchronize_session=False)

    if not restarted:
        account.update({User.login_attempts: User.login_attempts + 1}, synchronize_session=False)
        locked = account.filter(
            User.login_attempts >= MAX_LOGIN_ATTEMPTS,
            or_(User.lock_until.is_(None), User.lock_until <= now)
        ).update({User.lock_until: now + LOCK_TIME}, synchronize_session=False)
        if locked:
            logger.warning(f"Account {user.id} locked after {MAX_LOGIN_ATTEMPTS} failed logins")

    db.refresh(user)


def register_successful_login(user: User, now: Optional[datetime] = None) -> None:
    now = now or utcnow()
    user.login_attempts = 0
    user.lock_until = None
    user.last_seen = now
    user.is_online = True


def ensure_not_locked(user: User, now: Optional[datetime] = None) -> None:
    if is_locked(user, now):
        minutes = lock_minutes_remaining(user, now)
        raise AccountLocked(f"Account is temporarily locked. Try again in {minutes} minutes")


# ========== Single-use Tokens ==========

def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_token() -> Tuple[str, str]:
    """Return a fresh (raw, digest) pair. Only the digest is ever stored."""
    raw_token = secrets.token_hex(20)
    return raw_token, hash_token(raw_token)


def issue_reset_token(user: User, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    raw_token, digest = generate_token()
    user.reset_password_token = digest
    user.reset_password_expire = now + RESET_TOKEN_TTL
    return raw_token


def issue_verification_token(user: User, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    raw_token, digest = generate_token()
    user.email_verification_token = digest
    user.email_verification_expire = now + VERIFICATION_TOKEN_TTL
    return raw_token


def find_user_by_reset_token(db: Session, raw_token: str, now: Optional[datetime] = None) -> User:
    now = now or utcnow()
    user = db.query(User).filter(
        User.reset_password_token == hash_token(raw_token),
        User.reset_password_expire > now
    ).first()
    if not user:
        raise InvalidOrExpiredToken()
    return user


def find_user_by_verification_token(db: Session, raw_token: str, now: Optional[datetime] = None) -> User:
    now = now or utcnow()
    user = db.query(User).filter(
        User.email_verification_token == hash_token(raw_token),
        User.email_verification_expire > now
    ).first()
    if not user:
        raise InvalidOrExpiredToken()
    return user


def mark_email_verified(user: User) -> None:
    user.is_email_verified = True
    user.email_verification_token = None
    user.email_verification_expire = None


# ========== Authorization Dependencies ==========

async def get_current_user(
    db: DbSession,
    authorization: Annotated[Optional[str], Header()] = None,
    token: Annotated[Optional[str], Cookie()] = None,
) -> User:
    access_token = extract_token(authorization, token)
    if not access_token:
        raise Unauthenticated()

    payload = decode_access_token(access_token)

    user = db.query(User).filter(User.id == payload.get("id")).first()
    if not user:
        raise Unauthenticated("User not found")

    if not user.is_active:
        raise AccountDeactivated()

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: Role):
    """Build a dependency admitting only accounts whose role is in ``roles``."""
    allowed = frozenset(Role(role) for role in roles)

    async def role_gate(user: CurrentUser) -> User:
        if Role(user.role) not in allowed:
            raise Forbidden(f"User role {Role(user.role).value} is not authorized to access this route")
        return user

    return role_gate


AdminUser = Annotated[User, Depends(require_roles(Role.ADMIN))]


def can_edit_stale_entries(role: Role) -> bool:
    """Whether ``role`` may modify mood entries past their edit window."""
    role = Role(role)
    if role is Role.ADMIN:
        return True
    if role is Role.THERAPIST:
        return False
    if role is Role.MEMBER:
        return False
    raise ValueError(f"Unhandled role: {role!r}")
