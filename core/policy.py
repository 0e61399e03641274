# app/core/policy.py
"""Role policy engine.

A single immutable table answers "may this role perform this action on this
class of resource". The request gate and the API guards both read it, so the
two enforcement points cannot drift apart.

Paths are never matched against the table directly: ``classify_path`` first
maps a URL onto a ``ResourceClass`` using an ordered prefix table, and the
policy is applied to that enum.
"""
import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, FrozenSet, Optional, Tuple

from models.user import UserRole, parse_role


class ResourceClass(str, enum.Enum):
    DASHBOARD_SELF = "dashboard-self"
    ADMIN_AREA = "admin-area"
    USER_MANAGEMENT = "user-management"
    LEAD_MANAGEMENT = "lead-management"
    ARTICLE_MANAGEMENT = "article-management"
    # a user's own profile page, carved out of user management
    PROFILE = "profile"


class Action(str, enum.Enum):
    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"


ALL_ACTIONS: FrozenSet[Action] = frozenset(Action)
NO_ACTIONS: FrozenSet[Action] = frozenset()


def _grant(**classes: FrozenSet[Action]) -> Mapping[ResourceClass, FrozenSet[Action]]:
    table = {resource: NO_ACTIONS for resource in ResourceClass}
    for name, actions in classes.items():
        table[ResourceClass[name]] = actions
    return MappingProxyType(table)


ROLE_POLICY: Mapping[UserRole, Mapping[ResourceClass, FrozenSet[Action]]] = MappingProxyType({
    UserRole.ADMIN: _grant(**{resource.name: ALL_ACTIONS for resource in ResourceClass}),
    UserRole.MODERATOR: _grant(
        DASHBOARD_SELF=ALL_ACTIONS,
        ADMIN_AREA=ALL_ACTIONS,
        LEAD_MANAGEMENT=ALL_ACTIONS,
        ARTICLE_MANAGEMENT=ALL_ACTIONS,
        PROFILE=ALL_ACTIONS,
    ),
    UserRole.CONTENT_CREATOR: _grant(
        DASHBOARD_SELF=ALL_ACTIONS,
        ADMIN_AREA=ALL_ACTIONS,
        ARTICLE_MANAGEMENT=ALL_ACTIONS,
        PROFILE=ALL_ACTIONS,
    ),
    UserRole.CLIENT: _grant(
        DASHBOARD_SELF=ALL_ACTIONS,
        PROFILE=ALL_ACTIONS,
    ),
})

# guard tiers, each stricter tier is a subset of the weaker one
AUTHENTICATED_ROLES: FrozenSet[UserRole] = frozenset(UserRole)
CONTENT_ACCESS_ROLES: FrozenSet[UserRole] = frozenset(
    {UserRole.ADMIN, UserRole.MODERATOR, UserRole.CONTENT_CREATOR}
)
MODERATOR_ROLES: FrozenSet[UserRole] = frozenset({UserRole.ADMIN, UserRole.MODERATOR})
ADMIN_ROLES: FrozenSet[UserRole] = frozenset({UserRole.ADMIN})


def is_allowed(role, resource_class, action) -> bool:
    """Total policy lookup. Unknown roles, classes or actions are denied."""
    parsed = parse_role(role)
    if parsed is None:
        return False
    try:
        resource_class = ResourceClass(resource_class)
        action = Action(action)
    except (ValueError, TypeError):
        return False
    return action in ROLE_POLICY[parsed][resource_class]


def permitted_actions(role, resource_class) -> FrozenSet[Action]:
    parsed = parse_role(role)
    if parsed is None:
        return NO_ACTIONS
    try:
        return ROLE_POLICY[parsed][ResourceClass(resource_class)]
    except (ValueError, TypeError):
        return NO_ACTIONS


def can_manage_user(actor_role, target_role) -> bool:
    """ADMIN manages everyone, MODERATOR everyone except administrators."""
    actor = parse_role(actor_role)
    if actor is UserRole.ADMIN:
        return True
    if actor is UserRole.MODERATOR:
        return parse_role(target_role) is not UserRole.ADMIN
    return False


# ---------- path classification ----------

# Ordered: the first matching prefix wins. Prefixes are relative to the
# locale-stripped path.
ADMIN_ROUTE_TABLE: Tuple[Tuple[str, ResourceClass], ...] = (
    ("/admin/users/profile", ResourceClass.PROFILE),
    ("/admin/users", ResourceClass.USER_MANAGEMENT),
    ("/admin/leads", ResourceClass.LEAD_MANAGEMENT),
    ("/admin/articles", ResourceClass.ARTICLE_MANAGEMENT),
    ("/admin", ResourceClass.ADMIN_AREA),
)

DASHBOARD_PREFIX = "/dashboard"


@dataclass(frozen=True)
class RouteMatch:
    resource_class: ResourceClass
    locale: Optional[str]


def _has_prefix(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def split_locale(path: str, locales) -> Tuple[Optional[str], str]:
    """Split ``/en/dashboard`` into ``("en", "/dashboard")``."""
    segments = path.split("/", 2)
    if len(segments) > 1 and segments[1] in locales:
        rest = "/" + segments[2] if len(segments) > 2 else "/"
        return segments[1], rest
    return None, path


def classify_path(path: str, locales) -> Optional[RouteMatch]:
    """Resource class of a gated page, or None for public paths."""
    locale, rest = split_locale(path, locales)

    # /admin nested under a locale is still the admin area
    for prefix, resource_class in ADMIN_ROUTE_TABLE:
        if _has_prefix(rest, prefix):
            return RouteMatch(resource_class, locale)

    if locale is not None and _has_prefix(rest, DASHBOARD_PREFIX):
        return RouteMatch(ResourceClass.DASHBOARD_SELF, locale)

    return None


def action_for_method(method: str) -> Action:
    return {
        "POST": Action.CREATE,
        "PUT": Action.UPDATE,
        "PATCH": Action.UPDATE,
        "DELETE": Action.DELETE,
    }.get(method.upper(), Action.VIEW)
