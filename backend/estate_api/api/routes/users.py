"""
Account endpoints: the caller's own profile and admin user management.

Registration, login and password handling belong to the authentication
service and are not exposed here.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.orm import Session

from estate_api.core.access import admin_only, get_current_user
from estate_api.core.database import get_db
from estate_api.core.errors import NotFoundError, ValidationFailed
from estate_api.core.responses import CamelModel, envelope
from estate_api.models.user import User, UserRole
from estate_api.services.query_engine import UserFilter, list_users, parse_flag

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


# =============================================================================
# Request/Response Models
# =============================================================================

class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    avatar: Optional[str] = Field(None, max_length=500)
    preferences: Optional[dict[str, Any]] = None


class RoleUpdate(CamelModel):
    role: str


class UserResponse(CamelModel):
    """Public view of an account. The password hash is never serialised."""
    id: int
    name: str
    email: str
    role: UserRole
    phone: Optional[str] = None
    avatar: Optional[str] = None
    is_active: bool
    email_verified: bool
    last_login: Optional[datetime] = None
    preferences: dict[str, Any] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            phone=user.phone,
            avatar=user.avatar,
            is_active=user.is_active,
            email_verified=user.email_verified,
            last_login=user.last_login,
            preferences=user.preferences or {},
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


# =============================================================================
# Profile endpoints
# =============================================================================

@router.get("/me")
def get_me(user: User = Depends(get_current_user)):
    return envelope({"user": UserResponse.from_user(user)}, "User profile retrieved successfully")


@router.put("/me")
def update_me(
    profile: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Update name, phone or avatar; preferences are merged into the stored ones."""
    if profile.name:
        user.name = profile.name.strip()
    if profile.phone:
        user.phone = profile.phone
    if profile.avatar:
        user.avatar = profile.avatar
    if profile.preferences:
        # New dict so the JSON column registers the change
        user.preferences = {**(user.preferences or {}), **profile.preferences}

    db.commit()
    db.refresh(user)

    return envelope({"user": UserResponse.from_user(user)}, "Profile updated successfully")


# =============================================================================
# Admin endpoints
# =============================================================================

@router.get("/users")
def get_users(
    role: Optional[UserRole] = Query(None),
    is_active: Optional[str] = Query(None, alias="isActive", description="'true' or 'false'"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    _admin: User = Depends(admin_only),
):
    result = list_users(db, UserFilter(role=role, is_active=parse_flag(is_active)), page=page, limit=limit)

    return envelope(
        {
            "users": [UserResponse.from_user(u) for u in result.items],
            "pagination": result.page_info,
        },
        "Users retrieved successfully",
    )


@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: int,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    if body.role not in {role.value for role in UserRole}:
        raise ValidationFailed("Invalid role. Must be user, agent, or admin")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")

    user.role = UserRole(body.role)
    db.commit()
    db.refresh(user)

    logger.info(f"User {user.id} role set to {body.role} by user {admin.id}")

    return envelope(
        {
            "user": {
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "role": user.role.value,
                "updatedAt": user.updated_at,
            }
        },
        "User role updated successfully",
    )
