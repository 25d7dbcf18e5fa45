from flask import Blueprint, jsonify
from flask_login import login_required, current_user

from insight_hub.errors import ValidationError
from insight_hub.navigation import get_navigation_for_user, serialize_menu
from insight_hub.permissions import get_menu_manager, get_resolver
from insight_hub.utils.validation import json_body, optional_int, require_bool, require_int


menu_bp = Blueprint("menu", __name__)


@menu_bp.route("/menu-order", methods=["GET"])
@login_required
def get_menu_order():
    pages = get_resolver().effective_menu_order(current_user.id, current_user.role)
    return jsonify(
        {
            "pages": serialize_menu(pages),
            "usePersonalOrder": get_menu_manager().get_preference(current_user.id),
            "userRole": current_user.role,
        }
    )


@menu_bp.route("/menu-order", methods=["PUT"])
@login_required
def save_menu_order():
    data = json_body()
    use_personal_order = require_bool(data, "usePersonalOrder")
    raw_orders = data.get("pageOrders", [])
    if not isinstance(raw_orders, list):
        raise ValidationError("pageOrders must be an array.", field="pageOrders")

    page_orders = []
    for entry in raw_orders:
        if not isinstance(entry, dict):
            raise ValidationError("Each page order must be an object.", field="pageOrders")
        page_orders.append((require_int(entry, "pageId"), optional_int(entry, "sortOrder")))

    get_menu_manager().save_personal_order(current_user.id, use_personal_order, page_orders)
    return jsonify(
        {
            "success": True,
            "message": (
                "Personal menu order saved successfully"
                if use_personal_order
                else "Menu preferences updated (using default order)"
            ),
        }
    )


@menu_bp.route("/menu-order", methods=["DELETE"])
@login_required
def reset_menu_order():
    get_menu_manager().reset_to_default(current_user.id)
    return jsonify({"success": True, "message": "Menu order reset to default successfully"})


@menu_bp.route("/menu", methods=["GET"])
@login_required
def navigation():
    return jsonify({"menu": get_navigation_for_user(current_user, get_resolver())})
