"""
Authentication and account routes.

This module handles registration, login with lockout, logout, profile and
password updates, password reset and email verification.
"""
import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError

from models import Interest, PrivacyLevel, Role, User, utcnow
from .config import settings
from .email_service import Mailer
from .errors import (
    AccountDeactivated,
    AccountLocked,
    AppError,
    DuplicateEntry,
    EmailNotSent,
    InvalidCredentials,
    NotFound,
)
from .rate_limiter import limit_auth
from .security import (
    MAX_LOGIN_ATTEMPTS,
    TOKEN_COOKIE_NAME,
    CurrentUser,
    DbSession,
    check_password_complexity,
    create_access_token,
    ensure_not_locked,
    find_user_by_reset_token,
    find_user_by_verification_token,
    hash_password,
    issue_reset_token,
    issue_verification_token,
    mark_email_verified,
    register_failed_login,
    register_successful_login,
    set_password,
    validate_email,
    verify_password,
)

logger = logging.getLogger(__name__)

# Router configuration
router = APIRouter(
    tags=["Auth"],
    prefix="/auth"
)


# ========== Pydantic Schemas ==========

def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not validate_email(value):
        raise ValueError("Please provide a valid email")
    return value


class LocationSchema(BaseModel):
    country: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    timezone: Optional[str] = Field(None, max_length=64)


class RegisterSchema(BaseModel):
    """Schema for self-registration."""
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    email: str = Field(min_length=5, max_length=100)
    password: str = Field(min_length=8, max_length=128)
    user_type: Role = Role.MEMBER
    date_of_birth: Optional[date] = None
    interests: List[Interest] = Field(default_factory=list)
    email_notifications: bool = True
    newsletter: bool = True

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password_complexity(cls, v):
        return check_password_complexity(v)

    @field_validator("user_type")
    @classmethod
    def no_self_admin(cls, v):
        if v is Role.ADMIN:
            raise ValueError("Invalid user type")
        return v

    @field_validator("date_of_birth")
    @classmethod
    def not_in_future(cls, v):
        if v is not None and v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "first_name": "Alice",
                "last_name": "Smith",
                "email": "alice@example.com",
                "password": "SecurePass123",
                "user_type": "member"
            }
        }
    }


class LoginSchema(BaseModel):
    """Schema for email/password login."""
    email: str = Field(min_length=5, max_length=100)
    password: str = Field(min_length=1)
    remember_me: bool = False

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)

    model_config = {
        "json_schema_extra": {
            "example": {
                "email": "alice@example.com",
                "password": "SecurePass123",
                "remember_me": True
            }
        }
    }


class UpdateDetailsSchema(BaseModel):
    """Schema for partial profile updates. Omitted fields are left untouched."""
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[str] = Field(None, min_length=5, max_length=100)
    date_of_birth: Optional[date] = None
    phone: Optional[str] = Field(None, pattern=r"^[\+]?[1-9][\d]{0,15}$")
    bio: Optional[str] = Field(None, max_length=500)
    location: Optional[LocationSchema] = None
    interests: Optional[List[Interest]] = None
    email_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None
    newsletter: Optional[bool] = None
    privacy_level: Optional[PrivacyLevel] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v) if v is not None else v

    @field_validator("date_of_birth")
    @classmethod
    def not_in_future(cls, v):
        if v is not None and v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v


class UpdatePasswordSchema(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password_complexity(cls, v):
        return check_password_complexity(v)


class ForgotPasswordSchema(BaseModel):
    email: str = Field(min_length=5, max_length=100)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class ResetPasswordSchema(BaseModel):
    password: str = Field(min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def validate_password_complexity(cls, v):
        return check_password_complexity(v)


class UserOut(BaseModel):
    """Public view of an account; never exposes credentials or tokens."""
    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str
    role: Role
    avatar: Optional[str] = None
    date_of_birth: Optional[date] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[dict] = None
    interests: List[str] = Field(default_factory=list)
    email_notifications: bool
    push_notifications: bool
    newsletter: bool
    privacy_level: PrivacyLevel
    is_email_verified: bool
    is_active: bool
    is_online: bool
    last_seen: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


def serialize_user(user: User) -> dict:
    return UserOut.model_validate(user).model_dump(mode="json")


# ========== Utility Functions ==========

def build_verification_url(request: Request, token: str) -> str:
    base_url = str(request.base_url).rstrip("/")
    return f"{base_url}{settings.API_PREFIX}/auth/verify-email/{token}"


def build_reset_url(token: str) -> str:
    return f"{settings.CLIENT_URL.rstrip('/')}/reset-password/{token}"


def set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=TOKEN_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=settings.JWT_COOKIE_EXPIRE_DAYS * 24 * 60 * 60
    )


# ========== Authentication Routes ==========

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(user_data: RegisterSchema, request: Request, db: DbSession, mailer: Mailer):
    """
    Create an account and sign it in.

    The account may be used immediately; email verification is tracked
    separately through the token sent by email.
    """
    existing_user = db.query(User).filter(User.email == user_data.email).first()
    if existing_user:
        raise DuplicateEntry("Email already registered")

    new_user = User(
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        email=user_data.email,
        hashed_password=hash_password(user_data.password),
        role=user_data.user_type,
        date_of_birth=user_data.date_of_birth,
        interests=[interest.value for interest in user_data.interests],
        email_notifications=user_data.email_notifications,
        newsletter=user_data.newsletter,
    )
    verification_token = issue_verification_token(new_user)

    try:
        db.add(new_user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateEntry("Email already registered")
    db.refresh(new_user)

    logger.info(f"Registered account {new_user.id} ({new_user.role.value})")

    if new_user.email_notifications:
        mailer.send_welcome_email(new_user)
    mailer.send_verification_email(new_user, build_verification_url(request, verification_token))

    return {
        "success": True,
        "token": create_access_token(new_user.id, new_user.role),
        "user": serialize_user(new_user)
    }


@router.post("/login", dependencies=[Depends(limit_auth)])
async def login(login_data: LoginSchema, db: DbSession, response: Response):
    """
    Login with email and password.

    Five consecutive failures lock the account for two hours; while locked
    every attempt is refused, whatever the password.
    """
    user = db.query(User).filter(User.email == login_data.email).first()
    if not user:
        raise InvalidCredentials()

    ensure_not_locked(user)

    if not user.is_active:
        raise AccountDeactivated()

    if not verify_password(login_data.password, user.hashed_password):
        register_failed_login(db, user)
        db.commit()

        attempts_left = MAX_LOGIN_ATTEMPTS - user.login_attempts
        if attempts_left > 0:
            raise InvalidCredentials(f"Invalid credentials. {attempts_left} attempts left")
        raise AccountLocked("Account locked due to too many failed attempts. Try again in 2 hours")

    register_successful_login(user)
    db.commit()
    db.refresh(user)

    token = create_access_token(user.id, user.role)
    if login_data.remember_me:
        set_token_cookie(response, token)

    logger.info(f"Account {user.id} logged in")

    return {
        "success": True,
        "token": token,
        "user": serialize_user(user)
    }


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(user: CurrentUser, db: DbSession, response: Response):
    user.is_online = False
    user.last_seen = utcnow()
    db.commit()

    response.delete_cookie(key=TOKEN_COOKIE_NAME)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
async def get_me(user: CurrentUser):
    return {"success": True, "user": serialize_user(user)}


@router.put("/updatedetails")
async def update_details(update_data: UpdateDetailsSchema, user: CurrentUser, db: DbSession):
    """
    Update profile fields of the current account.

    Returns:
        The updated account.

    Raises:
        DuplicateEntry: If the new email belongs to another account.
    """
    fields = update_data.model_dump(exclude_unset=True)

    new_email = fields.get("email")
    if new_email and new_email != user.email:
        taken = db.query(User).filter(User.email == new_email, User.id != user.id).first()
        if taken:
            raise DuplicateEntry("Email already registered")

    if "interests" in fields and fields["interests"] is not None:
        fields["interests"] = [interest.value for interest in update_data.interests]
    if "location" in fields and fields["location"] is not None:
        fields["location"] = update_data.location.model_dump(exclude_none=True)

    for field, value in fields.items():
        if value is None and field not in ("date_of_birth", "phone", "bio", "location"):
            continue
        setattr(user, field, value)

    db.commit()
    db.refresh(user)

    return {"success": True, "user": serialize_user(user)}


@router.put("/updatepassword")
async def update_password(
    password_data: UpdatePasswordSchema,
    user: CurrentUser,
    db: DbSession,
    mailer: Mailer
):
    if not verify_password(password_data.current_password, user.hashed_password):
        raise InvalidCredentials("Current password is incorrect")

    set_password(user, password_data.new_password)
    db.commit()

    mailer.send_password_changed_email(user)

    return {"success": True, "message": "Password updated successfully"}


# ========== Password Reset Routes ==========

@router.post("/forgotpassword")
async def forgot_password(forgot_data: ForgotPasswordSchema, db: DbSession, mailer: Mailer):
    """
    Email a single-use password reset link valid for 10 minutes.

    Requesting again replaces any outstanding link.
    """
    user = db.query(User).filter(User.email == forgot_data.email).first()
    if not user:
        raise NotFound("No user found with that email")

    reset_token = issue_reset_token(user)
    db.commit()

    if not mailer.send_password_reset_email(user, build_reset_url(reset_token)):
        user.reset_password_token = None
        user.reset_password_expire = None
        db.commit()
        raise EmailNotSent()

    return {"success": True, "message": "Password reset email sent"}


@router.put("/resetpassword/{token}")
async def reset_password(token: str, reset_data: ResetPasswordSchema, db: DbSession, mailer: Mailer):
    """Set a new password from a reset link and sign the account in."""
    user = find_user_by_reset_token(db, token)

    set_password(user, reset_data.password)
    db.commit()

    mailer.send_password_reset_confirmation(user)

    return {
        "success": True,
        "token": create_access_token(user.id, user.role),
        "message": "Password reset successful"
    }


# ========== Email Verification Routes ==========

@router.get("/verify-email/{token}")
async def verify_email(token: str, db: DbSession):
    user = find_user_by_verification_token(db, token)

    mark_email_verified(user)
    db.commit()

    return {"success": True, "message": "Email verified successfully"}


@router.post("/resend-verification")
async def resend_verification(request: Request, user: CurrentUser, db: DbSession, mailer: Mailer):
    if user.is_email_verified:
        raise AppError("Email is already verified")

    verification_token = issue_verification_token(user)
    db.commit()

    mailer.send_verification_email(user, build_verification_url(request, verification_token), resend=True)

    return {"success": True, "message": "Verification email sent"}
