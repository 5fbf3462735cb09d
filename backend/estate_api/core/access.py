"""
Caller identity and role checks for FastAPI routes.

Tokens are verified upstream by the authentication service, which stores
the caller's user id on request.state.user_id. This module only loads that
user and decides whether their role may use a route.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from estate_api.core.database import get_db
from estate_api.core.errors import UnauthorizedError, ForbiddenError
from estate_api.models.user import User, UserRole

logger = logging.getLogger(__name__)


def get_current_user_id(request: Request) -> Optional[int]:
    return getattr(request.state, "user_id", None)


def get_current_user(
    user_id: Optional[int] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the authenticated caller or fail with UNAUTHORIZED."""
    if user_id is None:
        raise UnauthorizedError("Access token is required")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise UnauthorizedError("Invalid or expired token")
    return user


def require_roles(*roles: UserRole):
    """Dependency factory: allow only callers whose role is in roles."""
    allowed = {UserRole(role) for role in roles}

    def checker(user: User = Depends(get_current_user)) -> User:
        if UserRole(user.role) not in allowed:
            logger.info(f"User {user.id} with role {user.role} denied; requires {sorted(r.value for r in allowed)}")
            raise ForbiddenError("Insufficient permissions")
        return user

    return checker


admin_only = require_roles(UserRole.ADMIN)
