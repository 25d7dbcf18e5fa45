# -*- coding: utf-8 -*-
"""
Personal menu ordering.
Saving a non-empty ordering replaces the user's whole ordering; pages left
out of the payload lose their personal position. An empty ordering only
updates the preference.
"""

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from flask import current_app

from insight_hub.errors import NotFound, ValidationError
from insight_hub.models import Page, UserMenuOrder, UserMenuPreference


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class MenuOrderManager:
    def __init__(self, store):
        self.store = store
        self.session = store.session

    def get_preference(self, user_id) -> bool:
        pref = self.session.query(UserMenuPreference).filter_by(user_id=user_id).first()
        return bool(pref and pref.use_personal_order)

    def get_personal_order(self, user_id) -> List[Tuple[int, int]]:
        rows = (
            self.session.query(UserMenuOrder)
            .filter_by(user_id=user_id)
            .order_by(UserMenuOrder.sort_order, UserMenuOrder.page_id)
            .all()
        )
        return [(row.page_id, row.sort_order) for row in rows]

    def _set_preference(self, user_id, use_personal_order: bool):
        values = {"use_personal_order": use_personal_order, "updated_at": datetime.utcnow()}
        if self.store.upsert(UserMenuPreference, {"user_id": user_id}, values):
            return
        pref = self.session.query(UserMenuPreference).filter_by(user_id=user_id).first()
        if pref:
            pref.use_personal_order = use_personal_order
        else:
            self.session.add(UserMenuPreference(user_id=user_id, use_personal_order=use_personal_order))

    def _normalise_orders(self, page_orders) -> List[Tuple[int, int]]:
        if not isinstance(page_orders, (list, tuple)):
            raise ValidationError("pageOrders must be an array.", field="pageOrders")
        normalised = []
        seen = set()
        for index, entry in enumerate(page_orders):
            if isinstance(entry, (list, tuple)) and len(entry) == 2:
                page_id, sort_order = entry
            else:
                raise ValidationError(f"pageOrders[{index}] is malformed.", field="pageOrders")
            if not _is_int(page_id):
                raise ValidationError(f"pageOrders[{index}].pageId must be an integer.", field="pageOrders")
            if sort_order is not None and not _is_int(sort_order):
                raise ValidationError(f"pageOrders[{index}].sortOrder must be an integer.", field="pageOrders")
            if not sort_order:
                sort_order = index + 1
            if page_id in seen:
                raise ValidationError(f"Page {page_id} appears more than once.", field="pageOrders")
            seen.add(page_id)
            normalised.append((page_id, sort_order))

        if seen:
            known = {pid for (pid,) in self.session.query(Page.id).filter(Page.id.in_(sorted(seen))).all()}
            missing = sorted(seen - known)
            if missing:
                raise NotFound(f"Unknown page ids: {missing}.", field="pageOrders")
        return normalised

    def save_personal_order(
        self,
        user_id,
        use_personal_order: bool,
        page_orders: Optional[Sequence[Tuple[int, Optional[int]]]] = None,
    ) -> int:
        """
        Store the preference and, when enabled with a non-empty ``page_orders``,
        replace the user's ordering. An empty list keeps the stored rows.
        Returns the number of order rows written.
        """
        if not isinstance(use_personal_order, bool):
            raise ValidationError("usePersonalOrder must be a boolean.", field="usePersonalOrder")
        orders = self._normalise_orders(page_orders if page_orders is not None else [])

        written = 0
        with self.store.transaction():
            self._set_preference(user_id, use_personal_order)
            if use_personal_order and orders:
                self.session.query(UserMenuOrder).filter_by(user_id=user_id).delete(
                    synchronize_session=False
                )
                for page_id, sort_order in orders:
                    self.session.add(UserMenuOrder(user_id=user_id, page_id=page_id, sort_order=sort_order))
                    written += 1
        current_app.logger.info(
            "Menu order saved for user=%s personal=%s rows=%d", user_id, use_personal_order, written
        )
        return written

    def reset_to_default(self, user_id) -> None:
        with self.store.transaction():
            self.session.query(UserMenuOrder).filter_by(user_id=user_id).delete(
                synchronize_session=False
            )
            self._set_preference(user_id, False)
        current_app.logger.info("Menu order reset to default for user=%s", user_id)
