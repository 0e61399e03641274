import pytest

from core.policy import (
    ResourceClass, Action, ROLE_POLICY, is_allowed, permitted_actions, can_manage_user,
    classify_path, split_locale, action_for_method,
)
from models.user import UserRole

LOCALES = ["en", "ar", "fr", "ru", "zh"]


# ---------- policy table ----------
@pytest.mark.parametrize("resource", list(ResourceClass))
@pytest.mark.parametrize("action", list(Action))
def test_admin_is_allowed_everything(resource, action):
    assert is_allowed(UserRole.ADMIN, resource, action)


def test_is_allowed_is_total_over_the_enums():
    for role in UserRole:
        for resource in ResourceClass:
            for action in Action:
                assert is_allowed(role, resource, action) in (True, False)


def test_policy_table_is_immutable():
    with pytest.raises(TypeError):
        ROLE_POLICY[UserRole.CLIENT] = {}
    with pytest.raises(TypeError):
        ROLE_POLICY[UserRole.CLIENT][ResourceClass.ADMIN_AREA] = frozenset(Action)


def test_moderator_has_no_user_management():
    assert not is_allowed(UserRole.MODERATOR, ResourceClass.USER_MANAGEMENT, Action.VIEW)
    assert is_allowed(UserRole.MODERATOR, ResourceClass.LEAD_MANAGEMENT, Action.UPDATE)
    assert is_allowed(UserRole.MODERATOR, ResourceClass.PROFILE, Action.VIEW)


def test_content_creator_reaches_articles_but_not_leads():
    assert is_allowed(UserRole.CONTENT_CREATOR, ResourceClass.ARTICLE_MANAGEMENT, Action.CREATE)
    assert not is_allowed(UserRole.CONTENT_CREATOR, ResourceClass.LEAD_MANAGEMENT, Action.VIEW)


def test_client_is_limited_to_own_dashboard_and_profile():
    allowed = {r for r in ResourceClass if permitted_actions(UserRole.CLIENT, r)}
    assert allowed == {ResourceClass.DASHBOARD_SELF, ResourceClass.PROFILE}


def test_raw_string_values_are_accepted():
    assert is_allowed("MODERATOR", "lead-management", "view")
    assert not is_allowed("CLIENT", "admin-area", "view")


@pytest.mark.parametrize("role", ["SUPERUSER", "", None, 42])
def test_unknown_role_is_denied(role):
    assert not is_allowed(role, ResourceClass.DASHBOARD_SELF, Action.VIEW)
    assert permitted_actions(role, ResourceClass.DASHBOARD_SELF) == frozenset()


def test_unknown_resource_or_action_is_denied():
    assert not is_allowed(UserRole.ADMIN, "billing", Action.VIEW)
    assert not is_allowed(UserRole.ADMIN, ResourceClass.ADMIN_AREA, "publish")


# ---------- manage rule ----------
def test_can_manage_user():
    assert can_manage_user(UserRole.ADMIN, UserRole.ADMIN)
    assert can_manage_user(UserRole.MODERATOR, UserRole.CLIENT)
    assert can_manage_user(UserRole.MODERATOR, UserRole.MODERATOR)
    assert not can_manage_user(UserRole.MODERATOR, UserRole.ADMIN)
    assert not can_manage_user(UserRole.CONTENT_CREATOR, UserRole.CLIENT)
    assert not can_manage_user("NOBODY", UserRole.CLIENT)


# ---------- path classification ----------
@pytest.mark.parametrize("path, expected", [
    ("/admin", ResourceClass.ADMIN_AREA),
    ("/admin/dashboard", ResourceClass.ADMIN_AREA),
    ("/admin/projects/4", ResourceClass.ADMIN_AREA),
    ("/admin/users", ResourceClass.USER_MANAGEMENT),
    ("/admin/users/123", ResourceClass.USER_MANAGEMENT),
    ("/admin/users/profile", ResourceClass.PROFILE),
    ("/admin/leads", ResourceClass.LEAD_MANAGEMENT),
    ("/admin/articles/new", ResourceClass.ARTICLE_MANAGEMENT),
    ("/fr/admin/leads", ResourceClass.LEAD_MANAGEMENT),
    ("/en/dashboard", ResourceClass.DASHBOARD_SELF),
    ("/ar/dashboard/projects", ResourceClass.DASHBOARD_SELF),
])
def test_classify_path(path, expected):
    assert classify_path(path, LOCALES).resource_class is expected


@pytest.mark.parametrize("path", ["/", "/en", "/en/login", "/api/v1/projects", "/administrator", "/de/dashboard"])
def test_ungated_paths_are_not_classified(path):
    assert classify_path(path, LOCALES) is None


def test_classify_path_keeps_locale():
    assert classify_path("/zh/dashboard/approvals", LOCALES).locale == "zh"
    assert classify_path("/admin/leads", LOCALES).locale is None


def test_split_locale():
    assert split_locale("/en/dashboard", LOCALES) == ("en", "/dashboard")
    assert split_locale("/en", LOCALES) == ("en", "/")
    assert split_locale("/admin", LOCALES) == (None, "/admin")


def test_action_for_method():
    assert action_for_method("GET") is Action.VIEW
    assert action_for_method("post") is Action.CREATE
    assert action_for_method("PATCH") is Action.UPDATE
    assert action_for_method("DELETE") is Action.DELETE
