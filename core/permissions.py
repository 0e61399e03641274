# app/core/permissions.py
"""Per-endpoint guards.

Every guard re-reads the session of the request it is attached to; nothing is
cached between calls. A missing session is a 401, a session whose role is not
enough (or not a known role at all) is a 403.
"""
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.exceptions import UnknownRoleError
from core.policy import (
    ResourceClass, Action, is_allowed,
    AUTHENTICATED_ROLES, CONTENT_ACCESS_ROLES, MODERATOR_ROLES, ADMIN_ROLES,
)
from core.security import Identity, resolve_identity
from models.user import User, UserRole, parse_role


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)


async def get_current_identity(request: Request) -> Identity:
    identity = resolve_identity(request)
    if identity is None:
        raise _unauthorized()
    return identity


def _known_role(identity: Identity) -> UserRole:
    role = parse_role(identity.role)
    if role is None:
        raise UnknownRoleError(identity.role, identity.user_id)
    return role


def require_roles(*roles_allowed, message: str = None):
    allowed = frozenset(UserRole(r) for r in roles_allowed)

    async def checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        role = _known_role(identity)
        if role not in allowed:
            raise _forbidden(
                message or f"Access denied. Required roles: {', '.join(sorted(r.value for r in allowed))}"
            )
        return identity

    return checker


def require_resource(resource_class: ResourceClass, action: Action):
    """Guard that asks the role policy table, same as the request gate."""

    async def checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        _known_role(identity)
        if not is_allowed(identity.role, resource_class, action):
            raise _forbidden(f"Not allowed to {action.value} {resource_class.value}")
        return identity

    return checker


require_authenticated = require_roles(*AUTHENTICATED_ROLES, message="Access denied")
require_content_access = require_roles(*CONTENT_ACCESS_ROLES, message="Content access required")
require_moderator_or_admin = require_roles(*MODERATOR_ROLES, message="Moderator or Admin access required")
require_admin = require_roles(*ADMIN_ROLES, message="Admin access required")


async def get_current_user(
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, identity.user_id)

    if not user or not user.is_active:
        raise _unauthorized()

    return user
