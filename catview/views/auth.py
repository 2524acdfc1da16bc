from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from ..models import User


bp = Blueprint("auth", __name__)


@bp.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "GET" or current_user.is_authenticated:
        if not current_user.is_authenticated:
            return jsonify({"authenticated": False})
        return jsonify(
            {
                "authenticated": True,
                "username": current_user.username,
                "level": current_user.level,
            }
        )

    payload = request.get_json(silent=True) or request.form
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    user = User.query.filter_by(username=username).first()
    if user and user.check_password(password):
        login_user(user)
        return jsonify({"success": True, "username": user.username, "level": user.level})
    return jsonify({"success": False, "message": "Invalid username or password"}), 401


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})
