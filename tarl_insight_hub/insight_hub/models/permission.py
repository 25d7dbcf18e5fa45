# -*- coding: utf-8 -*-
"""
Page catalog and role permission models.
Page level grants gate visibility; action level rows refine what a role
may do on a page it can already see.
"""

from datetime import datetime
from insight_hub import db


class Page(db.Model):
    __tablename__ = "page_permissions"

    id = db.Column(db.Integer, primary_key=True)
    page_name = db.Column(db.String(100), nullable=False)
    page_path = db.Column(db.String(255), nullable=False, unique=True)
    page_title = db.Column(db.String(200))
    page_name_kh = db.Column(db.String(200))
    page_title_kh = db.Column(db.String(200))
    icon_name = db.Column(db.String(64))
    sort_order = db.Column(db.Integer)
    parent_page_id = db.Column(
        db.Integer, db.ForeignKey("page_permissions.id", ondelete="SET NULL"), nullable=True
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    role_permissions = db.relationship(
        "RolePagePermission", backref="page", cascade="all, delete-orphan", passive_deletes=True
    )
    action_permissions = db.relationship(
        "PageActionPermission", backref="page", cascade="all, delete-orphan", passive_deletes=True
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "page_name": self.page_name,
            "page_path": self.page_path,
            "page_title": self.page_title,
            "page_name_kh": self.page_name_kh,
            "page_title_kh": self.page_title_kh,
            "icon_name": self.icon_name,
            "sort_order": self.sort_order,
            "parent_page_id": self.parent_page_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Page {self.page_name} path={self.page_path}>"


class RolePagePermission(db.Model):
    __tablename__ = "role_page_permissions"

    id = db.Column(db.Integer, primary_key=True)
    role = db.Column(db.String(20), nullable=False)
    page_id = db.Column(
        db.Integer, db.ForeignKey("page_permissions.id", ondelete="CASCADE"), nullable=False
    )
    is_allowed = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("role", "page_id", name="uq_role_page_permission"),
    )

    def __repr__(self):
        return f"<RolePagePermission page={self.page_id} role={self.role} allowed={self.is_allowed}>"


class PageActionPermission(db.Model):
    __tablename__ = "page_action_permissions"

    id = db.Column(db.Integer, primary_key=True)
    page_id = db.Column(
        db.Integer, db.ForeignKey("page_permissions.id", ondelete="CASCADE"), nullable=False
    )
    role = db.Column(db.String(20), nullable=False)
    action_name = db.Column(db.String(50), nullable=False)
    is_allowed = db.Column(db.Boolean, default=False, nullable=False)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("tarl_user.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("page_id", "role", "action_name", name="uq_page_action_permission"),
        db.Index("idx_page_action_permissions_role", "role"),
    )

    def __repr__(self):
        return (
            f"<PageActionPermission page={self.page_id} role={self.role} "
            f"action={self.action_name} allowed={self.is_allowed}>"
        )
