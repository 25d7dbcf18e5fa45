# -*- coding: utf-8 -*-
"""
Manage blueprint routes (page catalog and role page access).
"""

from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user

from insight_hub.errors import ValidationError
from insight_hub.permissions import get_resolver, get_store
from insight_hub.utils.roles import Role, admin_required
from insight_hub.utils.validation import (
    json_body,
    optional_int,
    optional_str,
    require_bool,
    require_int,
    require_str,
)


manage_bp = Blueprint("manage", __name__)

TEXT_FIELDS = ("page_title", "page_name_kh", "page_title_kh", "icon_name")


def _page_fields(data: dict) -> dict:
    fields = {}
    for key in TEXT_FIELDS:
        if key in data:
            fields[key] = optional_str(data, key)
    for key in ("sort_order", "parent_page_id"):
        if key in data:
            fields[key] = optional_int(data, key)
    return fields


# ───────── Page catalog ───────── #
@manage_bp.route("/pages", methods=["GET"])
@login_required
def list_pages():
    return jsonify({"pages": [page.to_dict() for page in get_store().list_pages()]})


@manage_bp.route("/pages", methods=["POST"])
@admin_required
def create_page():
    data = json_body()
    page_name = require_str(data, "page_name")
    page_path = require_str(data, "page_path")
    fields = _page_fields(data)
    fields.setdefault("icon_name", "FileText")

    store = get_store()
    with store.transaction():
        page = store.create_page(page_name, page_path, **fields)
    current_app.logger.info("Page %s (%s) created by %s", page.page_name, page.page_path, current_user.username)
    return jsonify(page.to_dict()), 201


@manage_bp.route("/pages/<int:page_id>", methods=["PUT"])
@admin_required
def update_page(page_id: int):
    data = json_body()
    fields = _page_fields(data)
    for key in ("page_name", "page_path"):
        if key in data:
            fields[key] = require_str(data, key)
    if not fields:
        raise ValidationError("No updatable fields supplied.")

    store = get_store()
    with store.transaction():
        page = store.update_page(page_id, **fields)
    return jsonify({"success": True, "page": page.to_dict()})


# ───────── Role page access ───────── #
@manage_bp.route("/permissions/matrix", methods=["GET"])
@admin_required
def permission_matrix():
    return jsonify(get_store().get_role_page_matrix())


@manage_bp.route("/permissions/roles/<role>", methods=["PUT"])
@admin_required
def update_role_pages(role: str):
    target = Role.require(role)
    data = json_body()
    permissions = data.get("permissions")
    if not isinstance(permissions, list):
        raise ValidationError("permissions must be an array.", field="permissions")

    grants = []
    for entry in permissions:
        if not isinstance(entry, dict):
            raise ValidationError("Each permission must be an object.", field="permissions")
        grants.append((require_int(entry, "pageId"), require_bool(entry, "canAccess")))

    updated = get_resolver().bulk_set_page_permissions(target, grants, current_user)
    return jsonify({"success": True, "role": target.value, "updated": updated})
