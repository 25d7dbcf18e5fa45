# -*- coding: utf-8 -*-
"""
Permission API.
Session-cookie authenticated; writes are restricted to the admin role.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from insight_hub.errors import Forbidden, ValidationError
from insight_hub.permissions import get_resolver, get_store
from insight_hub.utils.roles import Role, admin_required, is_admin_role
from insight_hub.utils.validation import json_body, require_bool, require_int, require_str

api_bp = Blueprint("api", __name__)


# ───────── Helpers ───────── #
def _target_role(requested) -> str:
    """The caller's own role unless an admin asks about another one."""
    if not requested:
        return current_user.role
    if Role.parse(requested) != Role.parse(current_user.role) and not is_admin_role(current_user.role):
        raise Forbidden("Only administrators may check other roles.")
    return requested


# ───────── Snapshot & updates ───────── #
@api_bp.route("/permissions", methods=["GET"])
@login_required
def list_permissions():
    store = get_store()
    page_name = (request.args.get("pageName") or "").strip() or None
    role = (request.args.get("role") or "").strip() or None
    return jsonify(
        {
            "permissions": store.get_permission_snapshot(page_name=page_name, role=role),
            "availableActions": list(store.list_available_actions()),
        }
    )


@api_bp.route("/permissions", methods=["PUT"])
@admin_required
def update_permission():
    data = json_body()
    page_id = require_int(data, "pageId")
    role = Role.require(require_str(data, "role"))
    action_name = require_str(data, "actionName")
    is_allowed = require_bool(data, "isAllowed")

    get_resolver().update_action_permission(page_id, role, action_name, is_allowed, current_user)
    return jsonify(
        {
            "success": True,
            "message": f"Action permission {'granted' if is_allowed else 'revoked'} successfully",
        }
    )


@api_bp.route("/permissions", methods=["POST"])
@admin_required
def bulk_update_permissions():
    data = json_body()
    page_id = require_int(data, "pageId")
    role = Role.require(require_str(data, "role"))
    actions = data.get("actions")
    if not isinstance(actions, dict):
        raise ValidationError("Missing required field: actions.", field="actions")

    applied = get_resolver().bulk_update_action_permissions(page_id, role, actions, current_user)
    return jsonify(
        {
            "success": True,
            "message": f"Bulk action permissions updated successfully for {role.value}",
            "actions": applied,
        }
    )


@api_bp.route("/permissions/me", methods=["GET"])
@login_required
def my_permissions():
    return jsonify(
        {
            "role": current_user.role,
            "permissions": get_resolver().effective_action_permissions(current_user.role),
        }
    )


# ───────── Checks ───────── #
@api_bp.route("/permissions/check", methods=["POST"])
@login_required
def check_permission():
    data = json_body()
    page_name = require_str(data, "pageName")
    action_name = require_str(data, "actionName")
    role = _target_role(data.get("userRole"))

    return jsonify(
        {
            "canPerform": get_resolver().can_perform(role, page_name, action_name),
            "userRole": role,
            "pageName": page_name,
            "actionName": action_name,
        }
    )


@api_bp.route("/permissions/check", methods=["GET"])
@login_required
def check_permissions():
    page_name = (request.args.get("pageName") or "").strip()
    raw_actions = request.args.get("actions") or ""
    actions = [a.strip() for a in raw_actions.split(",") if a.strip()]
    if not page_name:
        raise ValidationError("Missing required parameter: pageName.", field="pageName")
    if not actions:
        raise ValidationError("Missing required parameter: actions.", field="actions")
    role = _target_role(request.args.get("userRole"))

    resolver = get_resolver()
    return jsonify(
        {
            "permissions": {action: resolver.can_perform(role, page_name, action) for action in actions},
            "userRole": role,
            "pageName": page_name,
        }
    )
