# -*- coding: utf-8 -*-
"""
Permission resolution.

A role may act on a page only when it holds a page level grant for it; the
action row, when present, refines that grant. Missing action rows fall back
to the configured ``MISSING_ACTION_POLICY``.
"""

from functools import wraps
from typing import Dict, Iterable, List, Tuple

from flask import current_app, g
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from insight_hub import db
from insight_hub.errors import Forbidden, InternalError, Unauthorized, ValidationError
from insight_hub.menu_order import MenuOrderManager
from insight_hub.models import Page
from insight_hub.store import PermissionStore
from insight_hub.utils.roles import Role

MISSING_ACTION_POLICIES = ("allow", "deny")


def _storage_errors(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise InternalError("Permission lookup failed.") from exc
    return wrapper


class PermissionResolver:
    def __init__(
        self,
        store: PermissionStore,
        menu: MenuOrderManager,
        missing_action_policy: str = "allow",
        menu_sentinel: int = 999,
    ):
        if missing_action_policy not in MISSING_ACTION_POLICIES:
            raise ValueError(
                f"MISSING_ACTION_POLICY must be one of {MISSING_ACTION_POLICIES}, "
                f"got {missing_action_policy!r}"
            )
        self.store = store
        self.menu = menu
        self.missing_action_policy = missing_action_policy
        self.menu_sentinel = menu_sentinel

    # ───────── Checks ───────── #
    @_storage_errors
    def can_perform(self, role, page_name: str, action_name: str) -> bool:
        role = Role.parse(role)
        if role is None or not page_name or not isinstance(action_name, str):
            return False
        action = action_name.strip().lower()
        if action not in self.store.list_available_actions():
            return False

        grant = self.store.get_role_page_permission(role, page_name)
        if grant is None or not grant.is_allowed:
            return False

        row = self.store.get_action_permission(grant.page_id, role, action)
        if row is not None:
            return bool(row.is_allowed)
        return self.missing_action_policy == "allow"

    @_storage_errors
    def effective_action_permissions(self, role) -> Dict[str, Dict[str, bool]]:
        """Resolved value of every action on every page the role can see."""
        role = Role.parse(role)
        if role is None:
            return {}
        explicit = self.store.get_user_action_permissions(role)
        default = self.missing_action_policy == "allow"
        result = {}
        for page in self.store.default_ordered_pages(role):
            rows = explicit.get(page.page_name, {})
            result[page.page_name] = {
                action: rows.get(action, default)
                for action in self.store.list_available_actions()
            }
        return result

    @_storage_errors
    def effective_menu_order(self, user_id, role) -> List[Page]:
        role = Role.parse(role)
        if role is None or user_id is None:
            return []
        if self.menu.get_preference(user_id):
            return self.store.personal_ordered_pages(user_id, role, self.menu_sentinel)
        return self.store.default_ordered_pages(role)

    # ───────── Writes ───────── #
    def update_action_permission(self, page_id, role, action_name, is_allowed, changed_by=None) -> bool:
        with self.store.transaction():
            return self.store.upsert_page_action_permission(
                page_id, role, action_name, is_allowed, changed_by
            )

    def bulk_update_action_permissions(self, page_id, role, actions, changed_by=None) -> Dict[str, bool]:
        """
        Apply every ``{action: bool}`` entry for one page and role, or none.
        All entries are validated before the first write.
        """
        if not isinstance(actions, dict) or not actions:
            raise ValidationError("actions must be a non-empty object.", field="actions")
        role = Role.require(role)
        entries = []
        for name, allowed in actions.items():
            action = self.store.validate_action(name, field=f"actions.{name}")
            if not isinstance(allowed, bool):
                raise ValidationError(f"actions.{name} must be a boolean.", field=f"actions.{name}")
            entries.append((action, allowed))
        self.store.require_page(page_id)

        with self.store.transaction():
            for action, allowed in entries:
                self.store.upsert_page_action_permission(page_id, role, action, allowed, changed_by)
        current_app.logger.info(
            "Bulk action update: page=%s role=%s actions=%d", page_id, role.value, len(entries)
        )
        return dict(entries)

    def bulk_set_page_permissions(self, role, grants: Iterable[Tuple[int, bool]], changed_by=None) -> int:
        role = Role.require(role)
        grants = list(grants)
        with self.store.transaction():
            for page_id, allowed in grants:
                self.store.set_role_page_permission(role, page_id, allowed)
        current_app.logger.info(
            "Page permissions for role=%s updated (%d pages) by user=%s",
            role.value,
            len(grants),
            getattr(changed_by, "id", changed_by),
        )
        return len(grants)


def get_store() -> PermissionStore:
    if "permission_store" not in g:
        g.permission_store = PermissionStore(
            db.session, current_app.config.get("EXTRA_PERMISSION_ACTIONS", ())
        )
    return g.permission_store


def get_menu_manager() -> MenuOrderManager:
    if "menu_manager" not in g:
        g.menu_manager = MenuOrderManager(get_store())
    return g.menu_manager


def get_resolver() -> PermissionResolver:
    """Resolver bound to the current request; rebuilt for every request."""
    if "permission_resolver" not in g:
        g.permission_resolver = PermissionResolver(
            get_store(),
            get_menu_manager(),
            missing_action_policy=current_app.config.get("MISSING_ACTION_POLICY", "allow"),
            menu_sentinel=current_app.config.get("MENU_ORDER_SENTINEL", 999),
        )
    return g.permission_resolver


def can_perform_action(user, page_name: str, action_name: str) -> bool:
    if not user or not getattr(user, "is_authenticated", False):
        return False
    return get_resolver().can_perform(user.role, page_name, action_name)


def require_action(page_name: str, action_name: str):
    """
    Guard a view behind a page/action check for the logged in user.
    Example: @require_action("Students", "delete")
    """
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                raise Unauthorized()
            if not can_perform_action(current_user, page_name, action_name):
                raise Forbidden(f"Action '{action_name}' on '{page_name}' is not permitted.")
            return f(*args, **kwargs)
        return wrapper
    return decorator
