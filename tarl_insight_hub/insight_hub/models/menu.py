# -*- coding: utf-8 -*-
"""
Personal menu models.
A user may opt into their own page ordering; the preference row decides
whether the ordering rows are consulted at all.
"""

from datetime import datetime
from insight_hub import db


class UserMenuOrder(db.Model):
    __tablename__ = "user_menu_order"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("tarl_user.id", ondelete="CASCADE"), nullable=False)
    page_id = db.Column(
        db.Integer, db.ForeignKey("page_permissions.id", ondelete="CASCADE"), nullable=False
    )
    sort_order = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "page_id", name="uq_user_menu_order"),
        db.Index("idx_user_menu_order_sort", "user_id", "sort_order"),
    )

    def __repr__(self):
        return f"<UserMenuOrder user={self.user_id} page={self.page_id} order={self.sort_order}>"


class UserMenuPreference(db.Model):
    __tablename__ = "user_menu_preferences"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("tarl_user.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    use_personal_order = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<UserMenuPreference user={self.user_id} personal={self.use_personal_order}>"
