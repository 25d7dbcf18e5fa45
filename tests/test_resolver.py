import pytest
from sqlalchemy.exc import OperationalError

from insight_hub.errors import InternalError, ValidationError
from insight_hub.menu_order import MenuOrderManager
from insight_hub.permissions import PermissionResolver


@pytest.fixture
def students(ctx, make_page, grant):
    page = make_page("Students", "/students", sort_order=3)
    grant("teacher", page)
    return page


def test_missing_page_grant_denies_every_action(resolver, make_page):
    make_page("Schools", "/schools")
    for action in ("view", "create", "delete"):
        assert resolver.can_perform("teacher", "Schools", action) is False


def test_page_grant_set_to_false_denies_even_with_action_row(resolver, make_page, grant, action_row):
    page = make_page("Schools", "/schools")
    grant("teacher", page, allowed=False)
    action_row("teacher", page, "view", True)
    assert resolver.can_perform("teacher", "Schools", "view") is False


def test_missing_action_row_falls_back_to_allow(resolver, students):
    assert resolver.can_perform("teacher", "Students", "export") is True


def test_explicit_action_row_wins(resolver, students, action_row):
    action_row("teacher", students, "delete", False)
    action_row("teacher", students, "view", True)
    assert resolver.can_perform("teacher", "Students", "delete") is False
    assert resolver.can_perform("teacher", "Students", "view") is True


def test_teacher_delete_revoked_after_update(resolver, students):
    assert resolver.can_perform("teacher", "Students", "delete") is True
    resolver.update_action_permission(students.id, "teacher", "delete", False)
    assert resolver.can_perform("teacher", "Students", "delete") is False


def test_collector_without_system_admin_grant(resolver, make_page, grant):
    page = make_page("System Admin", "/admin")
    grant("admin", page)
    assert resolver.can_perform("collector", "System Admin", "view") is False
    assert resolver.can_perform("admin", "System Admin", "view") is True


def test_deny_policy_requires_explicit_rows(store, students, action_row):
    strict = PermissionResolver(store, MenuOrderManager(store), missing_action_policy="deny")
    action_row("teacher", students, "view", True)
    assert strict.can_perform("teacher", "Students", "view") is True
    assert strict.can_perform("teacher", "Students", "export") is False


def test_unknown_policy_rejected(store):
    with pytest.raises(ValueError):
        PermissionResolver(store, MenuOrderManager(store), missing_action_policy="maybe")


@pytest.mark.parametrize(
    "role, page_name, action",
    [
        ("janitor", "Students", "view"),
        (None, "Students", "view"),
        ("teacher", "Nowhere", "view"),
        ("teacher", "", "view"),
        ("teacher", "Students", "teleport"),
        ("teacher", "Students", None),
    ],
)
def test_unknown_inputs_fail_closed(resolver, students, role, page_name, action):
    assert resolver.can_perform(role, page_name, action) is False


def test_role_and_action_are_case_insensitive(resolver, students, action_row):
    action_row("teacher", students, "delete", False)
    assert resolver.can_perform("Teacher", "Students", "DELETE") is False
    assert resolver.can_perform("TEACHER", "Students", "View") is True


def test_effective_action_permissions_merges_defaults(resolver, students, make_page, action_row):
    make_page("Schools", "/schools")
    action_row("teacher", students, "delete", False)

    effective = resolver.effective_action_permissions("teacher")
    assert list(effective) == ["Students"]
    assert effective["Students"]["delete"] is False
    assert effective["Students"]["view"] is True
    assert set(effective["Students"]) == set(resolver.store.list_available_actions())


def test_effective_action_permissions_unknown_role(resolver, students):
    assert resolver.effective_action_permissions("janitor") == {}


def test_bulk_update_is_atomic_on_invalid_value(resolver, store, students):
    with pytest.raises(ValidationError):
        resolver.bulk_update_action_permissions(
            students.id, "teacher", {"view": True, "delete": "no"}
        )
    assert store.get_page_action_permissions("Students", "teacher") == {}


def test_bulk_update_rolls_back_on_storage_failure(resolver, store, students, monkeypatch):
    original = store.upsert_page_action_permission
    calls = []

    def flaky(*args, **kwargs):
        calls.append(args)
        if len(calls) == 2:
            raise OperationalError("UPDATE", {}, Exception("connection lost"))
        return original(*args, **kwargs)

    monkeypatch.setattr(store, "upsert_page_action_permission", flaky)
    with pytest.raises(InternalError):
        resolver.bulk_update_action_permissions(
            students.id, "teacher", {"view": True, "create": False, "delete": False}
        )
    monkeypatch.undo()
    assert store.get_page_action_permissions("Students", "teacher") == {}


def test_bulk_update_writes_every_action(resolver, store, students):
    applied = resolver.bulk_update_action_permissions(
        students.id, "Teacher", {"view": True, "Delete": False}
    )
    assert applied == {"view": True, "delete": False}
    assert store.get_page_action_permissions("Students", "teacher") == {"delete": False, "view": True}


def test_storage_failure_during_check_is_internal_error(resolver, students, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is gone"))

    monkeypatch.setattr(resolver.store, "get_role_page_permission", broken)
    with pytest.raises(InternalError):
        resolver.can_perform("teacher", "Students", "view")


def test_bulk_set_page_permissions(resolver, store, make_page):
    schools = make_page("Schools", "/schools")
    reports = make_page("Reports", "/reports")
    updated = resolver.bulk_set_page_permissions("partner", [(schools.id, True), (reports.id, False)])
    assert updated == 2
    assert resolver.can_perform("partner", "Schools", "view") is True
    assert resolver.can_perform("partner", "Reports", "view") is False

    resolver.bulk_set_page_permissions("partner", [(reports.id, True)])
    assert resolver.can_perform("partner", "Reports", "view") is True
