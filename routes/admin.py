"""
Admin API routes for the marketplace.
Protected by role-based access (admin only).
"""

import logging

from flask import Blueprint, request, jsonify

from models import (
    db, User, UserRole, ServiceProvider, Booking, ProductOrder, EquipmentRental,
    Review, ROLES,
)
from auth_routes import require_admin
from utils import validate_password_strength, paginate_query, safe_int

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

ADMIN_LISTINGS = {
    "bookings": Booking,
    "orders": ProductOrder,
    "rentals": EquipmentRental,
}


def recent_activity(provider_id=None, limit=10):
    """Latest orders, bookings and rentals merged into one feed, newest first."""
    feed = []
    for kind, model in (("order", ProductOrder), ("booking", Booking), ("rental", EquipmentRental)):
        query = model.query
        if provider_id is not None:
            query = query.filter(model.provider_id == provider_id)
        for row in query.order_by(model.created_at.desc()).limit(limit).all():
            feed.append((row.created_at, kind, row))

    feed.sort(key=lambda entry: entry[0], reverse=True)
    return [dict(row.to_dict(), type=kind) for _, kind, row in feed[:limit]]


@admin_bp.route("/dashboard", methods=["GET"])
@require_admin
def dashboard(user_id):
    """Aggregate dashboard statistics."""
    return jsonify({
        "success": True,
        "dashboard": {
            "total_users": User.query.count(),
            "total_providers": ServiceProvider.query.count(),
            "total_bookings": Booking.query.count(),
            "pending_bookings": Booking.query.filter_by(status="pending").count(),
            "total_orders": ProductOrder.query.count(),
            "pending_orders": ProductOrder.query.filter_by(status="pending").count(),
            "total_rentals": EquipmentRental.query.count(),
            "active_rentals": EquipmentRental.query.filter_by(status="active").count(),
            "total_reviews": Review.query.count(),
        },
        "recent_activity": recent_activity(),
    }), 200


# ---------------------------------------------------------------------------
# Users and roles
# ---------------------------------------------------------------------------
@admin_bp.route("/users", methods=["GET"])
@require_admin
def list_users(user_id):
    """List users with their roles. Query params: role, search, page, per_page"""
    query = User.query
    role = request.args.get("role")
    if role:
        query = query.filter(User.roles.any(UserRole.role == role))
    search = (request.args.get("search") or "").strip()
    if search:
        pattern = "%{}%".format(search)
        query = query.filter(db.or_(User.email.ilike(pattern), User.full_name.ilike(pattern)))

    page = paginate_query(
        query.order_by(User.created_at.desc()),
        safe_int(request.args.get("page"), 1),
        safe_int(request.args.get("per_page"), 20),
    )
    return jsonify({
        "success": True,
        "users": [u.to_dict(include_private=True) for u in page["items"]],
        "total": page["total"],
        "page": page["page"],
        "pages": page["pages"],
    }), 200


@admin_bp.route("/users/<target_id>/roles", methods=["POST"])
@require_admin
def add_user_role(user_id, target_id):
    """Grant a role. Body: { role }"""
    role = (request.get_json(silent=True) or {}).get("role")
    if role not in ROLES:
        return jsonify({"error": "Invalid role"}), 400

    target = db.session.get(User, target_id)
    if not target:
        return jsonify({"error": "User not found"}), 404
    if target.has_role(role):
        return jsonify({"error": "User already has this role"}), 409

    db.session.add(UserRole(user_id=target_id, role=role))
    db.session.commit()
    logger.info("Admin %s added role %s to user %s", user_id, role, target_id)
    db.session.refresh(target)
    return jsonify({"success": True, "message": "Role updated successfully", "user": target.to_dict(include_private=True)}), 201


@admin_bp.route("/users/<target_id>/roles/<role>", methods=["DELETE"])
@require_admin
def remove_user_role(user_id, target_id, role):
    """Revoke a role. An admin cannot drop their own admin role or the last one."""
    if role not in ROLES:
        return jsonify({"error": "Invalid role"}), 400

    if role == "admin":
        if target_id == user_id:
            return jsonify({"error": "Cannot remove your own admin role"}), 400
        if UserRole.query.filter_by(role="admin").count() <= 1:
            return jsonify({"error": "Cannot remove the last admin"}), 400

    user_role = UserRole.query.filter_by(user_id=target_id, role=role).first()
    if not user_role:
        return jsonify({"error": "Role not found"}), 404

    db.session.delete(user_role)
    db.session.commit()
    logger.info("Admin %s removed role %s from user %s", user_id, role, target_id)
    return jsonify({"success": True, "message": "Role updated successfully"}), 200


@admin_bp.route("/users/<target_id>/password", methods=["PUT"])
@require_admin
def reset_user_password(user_id, target_id):
    """Set a new password for a user. Body: { new_password }"""
    new_password = (request.get_json(silent=True) or {}).get("new_password")
    errors = validate_password_strength(new_password)
    if errors:
        return jsonify({"error": "Password does not meet requirements", "details": errors}), 400

    target = db.session.get(User, target_id)
    if not target:
        return jsonify({"error": "User not found"}), 404

    target.set_password(new_password)
    db.session.commit()
    logger.info("Admin %s reset password for user %s", user_id, target_id)
    return jsonify({"success": True, "message": "Password reset successfully"}), 200


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------
@admin_bp.route("/providers", methods=["GET"])
@require_admin
def list_providers(user_id):
    providers = ServiceProvider.query.order_by(ServiceProvider.created_at.desc()).all()
    return jsonify({
        "success": True,
        "providers": [p.to_dict(include_private=True) for p in providers],
    }), 200


@admin_bp.route("/providers/<provider_id>/active", methods=["PUT"])
@require_admin
def set_provider_active(user_id, provider_id):
    """Body: { is_active: bool }"""
    provider = db.session.get(ServiceProvider, provider_id)
    if not provider:
        return jsonify({"error": "Provider not found"}), 404

    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("is_active"), bool):
        return jsonify({"error": "is_active must be true or false"}), 400

    provider.is_active = data["is_active"]
    db.session.commit()
    logger.info("Admin %s set provider %s active=%s", user_id, provider_id, provider.is_active)
    return jsonify({"success": True, "provider": provider.to_dict(include_private=True)}), 200


# ---------------------------------------------------------------------------
# Bookings / orders / rentals / reviews
# ---------------------------------------------------------------------------
@admin_bp.route("/<any(bookings, orders, rentals):kind>", methods=["GET"])
@require_admin
def list_transactions(user_id, kind):
    """Platform-wide listing. Query params: status, page, per_page"""
    model = ADMIN_LISTINGS[kind]
    query = model.query
    status = request.args.get("status")
    if status:
        query = query.filter(model.status == status)

    page = paginate_query(
        query.order_by(model.created_at.desc()),
        safe_int(request.args.get("page"), 1),
        safe_int(request.args.get("per_page"), 20),
    )
    return jsonify({
        "success": True,
        kind: [row.to_dict() for row in page["items"]],
        "total": page["total"],
        "page": page["page"],
        "pages": page["pages"],
    }), 200


@admin_bp.route("/reviews", methods=["GET"])
@require_admin
def list_reviews(user_id):
    page = paginate_query(
        Review.query.order_by(Review.created_at.desc()),
        safe_int(request.args.get("page"), 1),
        safe_int(request.args.get("per_page"), 20),
    )
    return jsonify({
        "success": True,
        "reviews": [r.to_dict() for r in page["items"]],
        "total": page["total"],
        "page": page["page"],
        "pages": page["pages"],
    }), 200


@admin_bp.route("/reviews/<review_id>", methods=["DELETE"])
@require_admin
def delete_review(user_id, review_id):
    """Delete a review and recompute the provider's rating."""
    review = db.session.get(Review, review_id)
    if not review:
        return jsonify({"error": "Review not found"}), 404

    provider = review.provider
    db.session.delete(review)
    db.session.flush()
    if provider:
        provider.refresh_rating()
    db.session.commit()
    logger.info("Admin %s deleted review %s", user_id, review_id)
    return jsonify({
        "success": True,
        "provider": provider.to_dict() if provider else None,
    }), 200
