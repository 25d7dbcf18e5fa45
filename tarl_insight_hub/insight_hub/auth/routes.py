from flask import Blueprint, jsonify, session, current_app
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf

from insight_hub.errors import Unauthorized, ValidationError
from insight_hub.models.user import User
from insight_hub.utils.validation import json_body, require_str


auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    return jsonify({"csrfToken": generate_csrf()})


@auth_bp.route("/login", methods=["POST"])
def login():
    data = json_body()
    username = require_str(data, "username")
    password = data.get("password")
    if not isinstance(password, str) or not password:
        raise ValidationError("Missing required field: password.", field="password")
    user = User.query.filter_by(username=username).first()
    if not user or not user.check_password(password):
        current_app.logger.warning("Failed login for username=%s", username)
        raise Unauthorized("Incorrect credentials.")
    if not user.active:
        raise Unauthorized("Account is disabled.")

    session.permanent = True
    login_user(user, remember=bool(data.get("remember")))
    current_app.logger.info("User %s logged in (role=%s)", user.username, user.role)
    return jsonify({"success": True, "user": user.to_dict()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    username = current_user.username
    logout_user()
    current_app.logger.info("User %s logged out", username)
    return jsonify({"success": True})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
