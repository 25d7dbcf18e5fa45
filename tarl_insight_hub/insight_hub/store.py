# -*- coding: utf-8 -*-
"""
Permission store.
Reads and writes the page catalog, role page grants and page action grants.
One instance is bound to the request's SQLAlchemy session; nothing here is
cached between requests.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy import and_, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from insight_hub import db
from insight_hub.errors import Conflict, InternalError, NotFound, ValidationError
from insight_hub.models import (
    Page,
    PageActionPermission,
    RolePagePermission,
    UserMenuOrder,
)
from insight_hub.utils.roles import AVAILABLE_ROLES, Role

BASE_ACTIONS = (
    "view",
    "create",
    "update",
    "delete",
    "export",
    "bulk_update",
    "manage_participants",
    "generate_qr",
)

DEFAULT_PAGE_ACTIONS = {
    "schools": ("view", "create", "update", "delete", "export"),
    "users": ("view", "create", "update", "delete", "export"),
    "observations": ("view", "create", "update", "delete", "export"),
    "reports": ("view", "export"),
    "settings": ("view", "update"),
}

PAGE_FIELDS = (
    "page_name",
    "page_path",
    "page_title",
    "page_name_kh",
    "page_title_kh",
    "icon_name",
    "sort_order",
    "parent_page_id",
)

# Dialects with INSERT ... ON CONFLICT DO UPDATE.
UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _role_key(role) -> str:
    if isinstance(role, Role):
        return role.value
    return (role or "").strip().lower()


def _user_id(changed_by) -> Optional[int]:
    if changed_by is None:
        return None
    if isinstance(changed_by, int):
        return changed_by
    return getattr(changed_by, "id", None)


class PermissionStore:
    def __init__(self, session=None, extra_actions: Iterable[str] = ()):
        self.session = session or db.session
        self.extra_actions = tuple(a.strip().lower() for a in extra_actions if a and a.strip())

    # ───────── Transactions ───────── #
    @contextmanager
    def transaction(self):
        """Commit everything written inside the block, or nothing."""
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise InternalError("Permission store transaction failed.") from exc
        except BaseException:
            self.session.rollback()
            raise

    def upsert(self, model, keys: dict, values: dict) -> bool:
        """
        ``INSERT ... ON CONFLICT (keys) DO UPDATE SET values``; concurrent
        writers of the same key end with the last write.
        Returns False on dialects without ON CONFLICT so the caller can
        fall back to lookup-then-write.
        """
        insert = UPSERT_INSERTS.get(self.session.get_bind().dialect.name)
        if insert is None:
            return False
        stmt = insert(model).values(**keys, **values)
        stmt = stmt.on_conflict_do_update(index_elements=list(keys), set_=values)
        self.session.execute(stmt)
        return True

    # ───────── Vocabulary ───────── #
    def list_available_actions(self) -> tuple:
        extras = tuple(a for a in self.extra_actions if a not in BASE_ACTIONS)
        return BASE_ACTIONS + extras

    @staticmethod
    def default_actions_for_page(page_name: str) -> tuple:
        key = "_".join((page_name or "").lower().split())
        return DEFAULT_PAGE_ACTIONS.get(key, ("view",))

    # ───────── Page catalog ───────── #
    def list_pages(self) -> List[Page]:
        return (
            self.session.query(Page)
            .order_by(Page.sort_order.is_(None), Page.sort_order, Page.page_name)
            .all()
        )

    def get_page(self, page_id) -> Optional[Page]:
        return self.session.get(Page, page_id)

    def require_page(self, page_id) -> Page:
        page = self.get_page(page_id)
        if page is None:
            raise NotFound(f"Page {page_id} not found.", field="pageId")
        return page

    def get_page_by_name(self, page_name: str) -> Optional[Page]:
        if not page_name:
            return None
        return self.session.query(Page).filter(Page.page_name == page_name).first()

    def create_page(self, page_name: str, page_path: str, **fields) -> Page:
        if self.session.query(Page.id).filter(Page.page_path == page_path).first():
            raise Conflict("Page path already exists.", field="page_path")
        parent_id = fields.get("parent_page_id")
        if parent_id is not None:
            self.require_page(parent_id)
        page = Page(page_name=page_name, page_path=page_path)
        for key, value in fields.items():
            if key in PAGE_FIELDS:
                setattr(page, key, value)
        self.session.add(page)
        self.session.flush()
        return page

    def update_page(self, page_id, **fields) -> Page:
        page = self.require_page(page_id)
        new_path = fields.get("page_path")
        if new_path and new_path != page.page_path:
            clash = self.session.query(Page.id).filter(Page.page_path == new_path).first()
            if clash:
                raise Conflict("Page path already exists.", field="page_path")
        parent_id = fields.get("parent_page_id")
        if parent_id is not None:
            self.require_page(parent_id)
            self._check_parent_chain(page.id, parent_id)
        for key, value in fields.items():
            if key in PAGE_FIELDS:
                setattr(page, key, value)
        self.session.flush()
        return page

    def _check_parent_chain(self, page_id, parent_id) -> None:
        """Raise if ``page_id`` is ``parent_id`` or one of its ancestors."""
        seen = set()
        current = parent_id
        while current is not None and current not in seen:
            if current == page_id:
                raise ValidationError(
                    "A page cannot be nested under itself or one of its children.",
                    field="parent_page_id",
                )
            seen.add(current)
            current = self.session.query(Page.parent_page_id).filter(Page.id == current).scalar()

    # ───────── Page level grants ───────── #
    def get_role_page_permission(self, role, page_name: str) -> Optional[RolePagePermission]:
        return (
            self.session.query(RolePagePermission)
            .join(Page, RolePagePermission.page_id == Page.id)
            .filter(RolePagePermission.role == _role_key(role), Page.page_name == page_name)
            .first()
        )

    def set_role_page_permission(self, role, page_id, is_allowed: bool) -> RolePagePermission:
        if not isinstance(is_allowed, bool):
            raise ValidationError("canAccess must be a boolean.", field="canAccess")
        role_key = Role.require(role).value
        self.require_page(page_id)
        perm = (
            self.session.query(RolePagePermission)
            .filter_by(role=role_key, page_id=page_id)
            .first()
        )
        if perm:
            perm.is_allowed = is_allowed
        else:
            perm = RolePagePermission(role=role_key, page_id=page_id, is_allowed=is_allowed)
            self.session.add(perm)
        self.session.flush()
        return perm

    def granted_pages_query(self, role):
        return (
            self.session.query(Page)
            .join(RolePagePermission, RolePagePermission.page_id == Page.id)
            .filter(
                RolePagePermission.role == _role_key(role),
                RolePagePermission.is_allowed.is_(True),
            )
        )

    def default_ordered_pages(self, role) -> List[Page]:
        return (
            self.granted_pages_query(role)
            .order_by(Page.sort_order.is_(None), Page.sort_order, Page.page_name)
            .all()
        )

    def personal_ordered_pages(self, user_id: int, role, sentinel: int) -> List[Page]:
        user_sort = func.coalesce(UserMenuOrder.sort_order, sentinel)
        return (
            self.granted_pages_query(role)
            .outerjoin(
                UserMenuOrder,
                and_(UserMenuOrder.page_id == Page.id, UserMenuOrder.user_id == user_id),
            )
            .order_by(user_sort, Page.page_name)
            .all()
        )

    def get_role_page_matrix(self) -> dict:
        pages = self.session.query(Page).order_by(Page.page_name).all()
        grants = {
            (perm.role, perm.page_id): perm.is_allowed
            for perm in self.session.query(RolePagePermission).all()
        }
        matrix = []
        for role in AVAILABLE_ROLES:
            matrix.append({
                "role": role,
                "pages": {str(page.id): grants.get((role, page.id), False) for page in pages},
            })
        return {
            "roles": list(AVAILABLE_ROLES),
            "pages": [
                {"id": page.id, "name": page.page_name, "path": page.page_path}
                for page in pages
            ],
            "matrix": matrix,
        }

    # ───────── Action level grants ───────── #
    def get_action_permission(self, page_id, role, action_name: str) -> Optional[PageActionPermission]:
        return (
            self.session.query(PageActionPermission)
            .filter_by(page_id=page_id, role=_role_key(role), action_name=action_name)
            .first()
        )

    def validate_action(self, action_name, field: str = "actionName") -> str:
        if not isinstance(action_name, str) or not action_name.strip():
            raise ValidationError("actionName is required.", field=field)
        action = action_name.strip().lower()
        if action not in self.list_available_actions():
            raise ValidationError(f"Unknown action: {action_name!r}.", field=field)
        return action

    def upsert_page_action_permission(
        self, page_id, role, action_name: str, is_allowed: bool, changed_by=None
    ) -> bool:
        """
        Insert or update one action row keyed on (page, role, action).
        Flushes only; the caller's transaction decides when it is committed.
        """
        if not isinstance(is_allowed, bool):
            raise ValidationError("isAllowed must be a boolean.", field="isAllowed")
        role_key = Role.require(role).value
        action = self.validate_action(action_name)
        page = self.require_page(page_id)

        perm = self.get_action_permission(page.id, role_key, action)
        previous = perm.is_allowed if perm else None
        keys = {"page_id": page.id, "role": role_key, "action_name": action}
        values = {
            "is_allowed": is_allowed,
            "updated_by_id": _user_id(changed_by),
            "updated_at": datetime.utcnow(),
        }
        if self.upsert(PageActionPermission, keys, values):
            if perm is not None:
                self.session.expire(perm)
        elif perm:
            perm.is_allowed = is_allowed
            perm.updated_by_id = _user_id(changed_by)
        else:
            perm = PageActionPermission(
                page_id=page.id,
                role=role_key,
                action_name=action,
                is_allowed=is_allowed,
                updated_by_id=_user_id(changed_by),
            )
            self.session.add(perm)
        self.session.flush()

        if previous != is_allowed:
            current_app.logger.info(
                "Action permission %s: page=%s role=%s action=%s (was %s) by user=%s",
                "granted" if is_allowed else "revoked",
                page.page_name,
                role_key,
                action,
                "unset" if previous is None else previous,
                _user_id(changed_by),
            )
        return True

    def get_page_action_permissions(self, page_name: str, role=None) -> Dict:
        """
        Explicit action rows for one page.
        With a role: ``{action: bool}``. Without: ``{role: {action: bool}}``.
        """
        query = (
            self.session.query(PageActionPermission)
            .join(Page, PageActionPermission.page_id == Page.id)
            .filter(Page.page_name == page_name)
        )
        if role is not None:
            rows = (
                query.filter(PageActionPermission.role == _role_key(role))
                .order_by(PageActionPermission.action_name)
                .all()
            )
            return {row.action_name: row.is_allowed for row in rows}

        grouped: Dict[str, Dict[str, bool]] = {}
        rows = query.order_by(PageActionPermission.role, PageActionPermission.action_name).all()
        for row in rows:
            grouped.setdefault(row.role, {})[row.action_name] = row.is_allowed
        return grouped

    def get_user_action_permissions(self, role) -> Dict[str, Dict[str, bool]]:
        """Explicit action rows for every page the role has page access to."""
        role_key = _role_key(role)
        rows = (
            self.session.query(Page.page_name, PageActionPermission.action_name, PageActionPermission.is_allowed)
            .join(PageActionPermission, PageActionPermission.page_id == Page.id)
            .join(
                RolePagePermission,
                and_(RolePagePermission.page_id == Page.id, RolePagePermission.role == role_key),
            )
            .filter(
                PageActionPermission.role == role_key,
                RolePagePermission.is_allowed.is_(True),
            )
            .order_by(Page.page_name, PageActionPermission.action_name)
            .all()
        )
        result: Dict[str, Dict[str, bool]] = {}
        for page_name, action_name, is_allowed in rows:
            result.setdefault(page_name, {})[action_name] = is_allowed
        return result

    def get_permission_snapshot(self, page_name: Optional[str] = None, role=None) -> Dict[str, dict]:
        """Action rows grouped page -> role -> action."""
        query = (
            self.session.query(PageActionPermission, Page)
            .join(Page, PageActionPermission.page_id == Page.id)
        )
        if page_name:
            query = query.filter(Page.page_name == page_name)
        if role:
            query = query.filter(PageActionPermission.role == _role_key(role))
        rows = query.order_by(
            Page.page_name, PageActionPermission.role, PageActionPermission.action_name
        ).all()

        snapshot: Dict[str, dict] = {}
        for perm, page in rows:
            entry = snapshot.setdefault(page.page_name, {
                "page_id": page.id,
                "page_name": page.page_name,
                "page_path": page.page_path,
                "roles": {},
            })
            entry["roles"].setdefault(perm.role, {})[perm.action_name] = perm.is_allowed
        return snapshot
