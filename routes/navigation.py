"""
Floating navigation menu route.
"""

from flask import Blueprint, request, jsonify

from models import db, User
from auth_routes import optional_auth
from navigation import menu_for, resolve_display_role

navigation_bp = Blueprint("navigation", __name__)


@navigation_bp.route("/api/navigation", methods=["GET"])
@optional_auth
def get_navigation(user_id):
    """
    Menu for the page at ?path=... as seen by the caller.
    ``menu`` is null on admin pages, which carry their own sidebar.
    """
    path = request.args.get("path") or "/"
    auth_checking = request.args.get("auth_checking", "").lower() in ("1", "true", "yes")

    user = db.session.get(User, user_id) if user_id else None
    roles = user.role_names if user else []

    return jsonify({
        "success": True,
        "path": path,
        "authenticated": user is not None,
        "display_role": resolve_display_role(roles) if user else None,
        "menu": menu_for(path, roles, authenticated=user is not None, auth_checking=auth_checking),
    }), 200
