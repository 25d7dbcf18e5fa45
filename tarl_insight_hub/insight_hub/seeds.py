import os
from time import sleep
from typing import Any

import click
from sqlalchemy.exc import OperationalError

from insight_hub import db
from insight_hub.models import Page, PageActionPermission, RolePagePermission
from insight_hub.models.user import User
from insight_hub.store import PermissionStore
from insight_hub.utils.roles import Role


DEFAULT_PAGES = [
    {"page_name": "Dashboard", "page_path": "/dashboard", "icon_name": "Home", "sort_order": 1},
    {"page_name": "Schools", "page_path": "/schools", "icon_name": "School", "sort_order": 2},
    {"page_name": "Students", "page_path": "/students", "icon_name": "Users", "sort_order": 3},
    {"page_name": "Teachers", "page_path": "/teachers", "icon_name": "GraduationCap", "sort_order": 4},
    {"page_name": "Classes", "page_path": "/classes", "icon_name": "BookOpen", "sort_order": 5},
    {"page_name": "Observations", "page_path": "/observations", "icon_name": "Eye", "sort_order": 6},
    {
        "page_name": "Transcripts",
        "page_path": "/transcripts",
        "icon_name": "FileText",
        "sort_order": 7,
        "page_name_kh": "ការបញ្ចូលពិន្ទុ",
    },
    {"page_name": "Training", "page_path": "/training", "icon_name": "Calendar", "sort_order": 8},
    {"page_name": "Reports", "page_path": "/reports", "icon_name": "BarChart", "sort_order": 9},
    {"page_name": "Users", "page_path": "/users", "icon_name": "UserCog", "sort_order": 10},
    {"page_name": "Settings", "page_path": "/settings", "icon_name": "Settings", "sort_order": 11},
    {
        "page_name": "Page Management",
        "page_path": "/settings/page-permissions",
        "icon_name": "Shield",
        "sort_order": 12,
        "parent": "/settings",
    },
    {
        "page_name": "Menu Management",
        "page_path": "/settings/menu-management",
        "icon_name": "Menu",
        "sort_order": 13,
        "parent": "/settings",
    },
    {"page_name": "System Admin", "page_path": "/admin", "icon_name": "ShieldCheck", "sort_order": 14},
]

# Pages each non-admin role can open out of the box. Admin gets every page.
DEFAULT_ROLE_PAGES = {
    Role.DIRECTOR: ["Dashboard", "Schools", "Students", "Teachers", "Classes",
                    "Observations", "Transcripts", "Training", "Reports", "Users"],
    Role.COORDINATOR: ["Dashboard", "Schools", "Students", "Teachers", "Observations",
                       "Training", "Reports"],
    Role.PARTNER: ["Dashboard", "Schools", "Reports"],
    Role.TEACHER: ["Dashboard", "Students", "Classes", "Transcripts", "Training"],
    Role.COLLECTOR: ["Dashboard", "Students", "Observations"],
    Role.INTERN: ["Dashboard"],
    Role.PARTICIPANT: ["Training"],
}

ROLE_DEFAULT_ACTIONS = {
    Role.ADMIN: ("view", "create", "update", "delete", "export", "bulk_update"),
    Role.DIRECTOR: ("view", "create", "update", "export"),
    Role.COORDINATOR: ("view", "create", "update"),
    Role.PARTNER: ("view", "export"),
    Role.TEACHER: ("view",),
    Role.COLLECTOR: ("view", "create"),
    Role.INTERN: ("view",),
    Role.PARTICIPANT: ("view",),
}


def _should_create_admin() -> bool:
    return _env_bool("CREATE_DEFAULT_ADMIN", True)


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env(key: str, default: str | None = None) -> str | None:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def ensure_default_admin(app: Any) -> None:
    """Create a default admin user if one does not already exist."""
    if not _should_create_admin():
        app.logger.info("Skipping default admin creation (CREATE_DEFAULT_ADMIN disabled).")
        return

    username = _env("DEFAULT_ADMIN_USERNAME", "admin")
    password = _env("DEFAULT_ADMIN_PASSWORD", "Admin123!")
    full_name = _env("DEFAULT_ADMIN_FULL_NAME", "System Administrator")

    if not password:
        app.logger.warning("DEFAULT_ADMIN_PASSWORD not provided; cannot seed default admin.")
        return

    if User.query.filter_by(username=username).first():
        app.logger.debug("Default admin seed skipped; matching user already exists.")
        return

    admin = User(username=username, full_name=full_name, role=Role.ADMIN.value, active=True)
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    app.logger.info("Default admin created (username=%s).", username)


def ensure_default_admin_with_retry(app: Any) -> None:
    """Retry wrapper so container startup can handle transient DB availability."""
    attempts = int(_env("DEFAULT_ADMIN_RETRY_ATTEMPTS", "5") or "5")
    delay = float(_env("DEFAULT_ADMIN_RETRY_DELAY", "2") or "2")

    for attempt in range(1, attempts + 1):
        try:
            ensure_default_admin(app)
            return
        except OperationalError as exc:
            db.session.rollback()
            if attempt == attempts:
                app.logger.error(
                    "Unable to seed default admin after %d attempts: %s", attempt, exc
                )
                raise
            app.logger.warning(
                "Database not ready (attempt %d/%d): %s; retrying in %.1f sec",
                attempt,
                attempts,
                exc,
                delay,
            )
            sleep(delay)


def seed_pages(store: PermissionStore) -> int:
    created = 0
    with store.transaction():
        for entry in DEFAULT_PAGES:
            if store.session.query(Page.id).filter_by(page_path=entry["page_path"]).first():
                continue
            fields = {k: v for k, v in entry.items() if k not in {"page_name", "page_path", "parent"}}
            parent_path = entry.get("parent")
            if parent_path:
                parent = store.session.query(Page).filter_by(page_path=parent_path).first()
                fields["parent_page_id"] = parent.id if parent else None
            store.create_page(entry["page_name"], entry["page_path"], **fields)
            created += 1
    return created


def seed_page_grants(store: PermissionStore) -> int:
    """Grant every page to admin and the default page sets to other roles."""
    pages = store.session.query(Page).all()
    existing = {(p.role, p.page_id) for p in store.session.query(RolePagePermission).all()}
    created = 0
    with store.transaction():
        for page in pages:
            for role in Role:
                if (role.value, page.id) in existing:
                    continue
                allowed = role is Role.ADMIN or page.page_name in DEFAULT_ROLE_PAGES.get(role, [])
                store.session.add(RolePagePermission(role=role.value, page_id=page.id, is_allowed=allowed))
                created += 1
    return created


def seed_action_permissions(store: PermissionStore) -> int:
    """Write the default action matrix; rows that already exist are left alone."""
    pages = store.session.query(Page).order_by(Page.page_name).all()
    existing = {
        (p.page_id, p.role, p.action_name)
        for p in store.session.query(PageActionPermission).all()
    }
    created = 0
    with store.transaction():
        for page in pages:
            actions = store.default_actions_for_page(page.page_name)
            for role in Role:
                allowed_actions = ROLE_DEFAULT_ACTIONS.get(role, ("view",))
                for action in actions:
                    if (page.id, role.value, action) in existing:
                        continue
                    store.session.add(
                        PageActionPermission(
                            page_id=page.id,
                            role=role.value,
                            action_name=action,
                            is_allowed=action in allowed_actions,
                        )
                    )
                    created += 1
    return created


def register_commands(app) -> None:
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("seed")
    @click.option("--skip-admin", is_flag=True, help="Do not create the default admin user.")
    def seed_command(skip_admin):
        """Seed default admin, pages, page grants and action permissions."""
        db.create_all()
        if not skip_admin:
            ensure_default_admin_with_retry(app)
        store = PermissionStore(db.session, app.config.get("EXTRA_PERMISSION_ACTIONS", ()))
        pages = seed_pages(store)
        grants = seed_page_grants(store)
        actions = seed_action_permissions(store)
        app.logger.info("Seeded %d pages, %d page grants, %d action permissions", pages, grants, actions)
        click.echo(f"Seeded {pages} pages, {grants} page grants, {actions} action permissions.")
