"""
Administrator account management routes.

Every route here requires the admin role.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from models import Role, User, utcnow
from .auth import serialize_user
from .errors import AppError, NotFound
from .security import LOCK_TIME, AdminUser, DbSession, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Admin"],
    prefix="/admin",
    dependencies=[Depends(require_roles(Role.ADMIN))]
)


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    return user


@router.get("/users", status_code=status.HTTP_200_OK)
async def get_all_users(db: DbSession, role: Optional[Role] = None):
    """
    Get all accounts, optionally restricted to one role.

    Returns:
        List of accounts, oldest first.
    """
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    users = query.order_by(User.id.asc()).all()

    return {
        "success": True,
        "count": len(users),
        "data": [serialize_user(user) for user in users]
    }


@router.put("/users/{user_id}/lock")
async def lock_user(user_id: int, db: DbSession, admin: AdminUser):
    user = get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise AppError("Administrators cannot lock their own account")

    user.lock_until = utcnow() + LOCK_TIME
    db.commit()
    db.refresh(user)

    logger.info(f"Admin {admin.id} locked account {user.id}")
    return {"success": True, "data": {"id": user.id, "lock_until": user.lock_until}}


@router.put("/users/{user_id}/unlock")
async def unlock_user(user_id: int, db: DbSession, admin: AdminUser):
    """Clear the lock and the failed-login counter."""
    user = get_user_or_404(db, user_id)

    user.lock_until = None
    user.login_attempts = 0
    db.commit()

    logger.info(f"Admin {admin.id} unlocked account {user.id}")
    return {"success": True, "data": {"id": user.id, "login_attempts": 0, "lock_until": None}}


@router.put("/users/{user_id}/deactivate")
async def deactivate_user(user_id: int, db: DbSession, admin: AdminUser):
    user = get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise AppError("Administrators cannot deactivate their own account")

    user.is_active = False
    user.is_online = False
    db.commit()
    db.refresh(user)

    logger.info(f"Admin {admin.id} deactivated account {user.id}")
    return {"success": True, "user": serialize_user(user)}


@router.put("/users/{user_id}/activate")
async def activate_user(user_id: int, db: DbSession, admin: AdminUser):
    user = get_user_or_404(db, user_id)

    user.is_active = True
    db.commit()
    db.refresh(user)

    logger.info(f"Admin {admin.id} activated account {user.id}")
    return {"success": True, "user": serialize_user(user)}
