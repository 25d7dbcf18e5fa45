"""
Pytest configuration and shared fixtures.

Every test gets a fresh application bound to an in-memory SQLite database.
HTTP tests must issue requests outside of ``app.app_context()`` so each
request gets its own context (and its own Flask-Login user).
"""

from types import SimpleNamespace

import pytest

from config import TestConfig
from insight_hub import create_app, db
from insight_hub.menu_order import MenuOrderManager
from insight_hub.models import Page, PageActionPermission, RolePagePermission, User
from insight_hub.permissions import PermissionResolver
from insight_hub.store import PermissionStore

DEFAULT_PASSWORD = "Secret123!"


@pytest.fixture(scope="session")
def log_dir(tmp_path_factory):
    return str(tmp_path_factory.mktemp("logs"))


@pytest.fixture
def config_class(log_dir):
    class _TestConfig(TestConfig):
        LOG_DIR = log_dir

    return _TestConfig


@pytest.fixture
def app(config_class):
    app = create_app(config_class)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(ctx):
    return PermissionStore(db.session)


@pytest.fixture
def resolver(store):
    return PermissionResolver(store, MenuOrderManager(store))


@pytest.fixture
def make_user():
    def _make(username, role="teacher", password=DEFAULT_PASSWORD, active=True):
        user = User(username=username, full_name=username.title(), role=role, active=active)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_page():
    def _make(name, path=None, sort_order=None, parent=None, **fields):
        page = Page(
            page_name=name,
            page_path=path or "/" + name.lower().replace(" ", "-"),
            sort_order=sort_order,
            parent_page_id=parent.id if parent is not None else None,
            **fields,
        )
        db.session.add(page)
        db.session.commit()
        return page

    return _make


@pytest.fixture
def grant():
    def _grant(role, page, allowed=True):
        perm = RolePagePermission(role=role, page_id=page.id, is_allowed=allowed)
        db.session.add(perm)
        db.session.commit()
        return perm

    return _grant


@pytest.fixture
def action_row():
    def _row(role, page, action, allowed):
        perm = PageActionPermission(page_id=page.id, role=role, action_name=action, is_allowed=allowed)
        db.session.add(perm)
        db.session.commit()
        return perm

    return _row


@pytest.fixture
def hub(app, make_user, make_page, grant):
    """A small catalog: admin + teacher + collector users and four pages."""
    with app.app_context():
        admin = make_user("admin", role="admin")
        teacher = make_user("teacher1", role="teacher")
        collector = make_user("collector1", role="collector")
        dashboard = make_page("Dashboard", "/dashboard", sort_order=1)
        students = make_page("Students", "/students", sort_order=2, page_name_kh="សិស្ស")
        reports = make_page("Reports", "/reports", sort_order=3)
        system_admin = make_page("System Admin", "/admin", sort_order=4)
        for page in (dashboard, students, reports, system_admin):
            grant("admin", page)
        for page in (dashboard, students, reports):
            grant("teacher", page)
        grant("collector", dashboard)
        return SimpleNamespace(
            admin_id=admin.id,
            teacher_id=teacher.id,
            collector_id=collector.id,
            dashboard_id=dashboard.id,
            students_id=students.id,
            reports_id=reports.id,
            system_admin_id=system_admin.id,
        )


@pytest.fixture
def login(client):
    def _login(username, password=DEFAULT_PASSWORD):
        response = client.post("/api/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.get_json()
        return response

    return _login
