"""
Equipment rental API routes.

Status changes drive the equipment's availability flag: an active rental
takes the equipment off the shelf, completing or cancelling puts it back.
"""

import logging
from datetime import date

from flask import Blueprint, request, jsonify

from models import db, User, Equipment, EquipmentRental, ServiceProvider
from auth_routes import require_auth, require_roles
from sanitize import accepts_raw_json, sanitize_string
from utils import parse_iso_date, validate_string_fields

logger = logging.getLogger(__name__)

rentals_bp = Blueprint("rentals", __name__, url_prefix="/api/rentals")

RENTAL_TRANSITIONS = {
    "pending": ("active", "cancelled"),
    "active": ("completed", "cancelled"),
    "completed": (),
    "cancelled": (),
}


def rental_total(price_per_day, start_date, end_date):
    """Whole days between start and end, times the daily price."""
    days = (end_date - start_date).days
    return round(days * price_per_day, 2)


def apply_equipment_availability(rental):
    """Sync the equipment flag with the rental's new status.

    Returns the resulting availability.
    """
    equipment = rental.equipment
    if rental.status == "active":
        equipment.is_available = False
    elif rental.status in ("completed", "cancelled"):
        still_out = (
            EquipmentRental.query
            .filter(
                EquipmentRental.equipment_id == equipment.id,
                EquipmentRental.id != rental.id,
                EquipmentRental.status == "active",
            )
            .count()
        )
        equipment.is_available = still_out == 0
    return equipment.is_available


@rentals_bp.route("", methods=["POST"])
@accepts_raw_json
@require_auth
def create_rental(user_id):
    """
    Request a rental.
    Body: { equipment_id, rental_start_date, rental_end_date, notes }
    """
    data = request.get_json(silent=True) or {}
    err = validate_string_fields(data, "equipment_id", "rental_start_date", "rental_end_date", "notes")
    if err:
        return jsonify({"error": err}), 400
    equipment = db.session.get(Equipment, data.get("equipment_id") or "")
    if not equipment or not equipment.is_active:
        return jsonify({"error": "Equipment not found"}), 404
    if not equipment.is_available:
        return jsonify({"error": "Equipment is not available for rent"}), 400

    start_date = parse_iso_date(data.get("rental_start_date"))
    end_date = parse_iso_date(data.get("rental_end_date"))
    if start_date is None or end_date is None:
        return jsonify({"error": "Rental dates must be YYYY-MM-DD"}), 400
    if start_date < date.today():
        return jsonify({"error": "Rental cannot start in the past"}), 400
    if end_date <= start_date:
        return jsonify({"error": "End date must be after start date"}), 400

    notes = (data.get("notes") or "").strip() or None
    if notes and len(notes) > 500:
        return jsonify({"error": "Notes must be less than 500 characters"}), 400

    rental = EquipmentRental(
        customer_id=user_id,
        provider_id=equipment.provider_id,
        equipment_id=equipment.id,
        rental_start_date=start_date,
        rental_end_date=end_date,
        total_price=rental_total(equipment.price_per_day, start_date, end_date),
        notes=sanitize_string(notes),
        status="pending",
    )
    db.session.add(rental)
    db.session.commit()
    return jsonify({"success": True, "rental": rental.to_dict()}), 201


@rentals_bp.route("", methods=["GET"])
@require_auth
def list_my_rentals(user_id):
    rentals = (
        EquipmentRental.query.filter_by(customer_id=user_id)
        .order_by(EquipmentRental.created_at.desc())
        .all()
    )
    return jsonify({"success": True, "rentals": [r.to_dict() for r in rentals]}), 200


@rentals_bp.route("/provider", methods=["GET"])
@require_roles("service_provider")
def list_provider_rentals(user_id):
    """Rentals of the caller's equipment. Query params: status"""
    provider = ServiceProvider.query.filter_by(user_id=user_id).first()
    if not provider:
        return jsonify({"error": "Provider profile not found"}), 404

    query = EquipmentRental.query.filter_by(provider_id=provider.id)
    status = request.args.get("status")
    if status:
        if status not in RENTAL_TRANSITIONS:
            return jsonify({"error": "Invalid status filter"}), 400
        query = query.filter_by(status=status)
    rentals = query.order_by(EquipmentRental.created_at.desc()).all()
    return jsonify({"success": True, "rentals": [r.to_dict() for r in rentals]}), 200


@rentals_bp.route("/<rental_id>/status", methods=["PUT"])
@require_auth
def update_rental_status(user_id, rental_id):
    """
    Equipment owner (or admin) moves the rental along and the equipment
    availability follows.
    Body: { status }
    """
    rental = db.session.get(EquipmentRental, rental_id)
    if not rental:
        return jsonify({"error": "Rental not found"}), 404

    user = db.session.get(User, user_id)
    profile = user.provider_profile
    is_owner = profile is not None and rental.provider_id == profile.id
    if not is_owner and not user.has_role("admin"):
        return jsonify({"error": "Unauthorized - not your rental"}), 403

    new_status = (request.get_json(silent=True) or {}).get("status")
    if not isinstance(new_status, str) or new_status not in RENTAL_TRANSITIONS:
        return jsonify({"error": "Invalid status"}), 400
    if new_status not in RENTAL_TRANSITIONS[rental.status]:
        return jsonify({
            "error": "Cannot change rental from {} to {}".format(rental.status, new_status)
        }), 400

    rental.status = new_status
    available = apply_equipment_availability(rental)
    db.session.commit()
    logger.info("Rental %s -> %s by %s (equipment %s available=%s)",
                rental.id, new_status, user_id, rental.equipment_id, available)
    return jsonify({
        "success": True,
        "rental": rental.to_dict(),
        "equipment_available": available,
    }), 200


@rentals_bp.route("/<rental_id>/cancel", methods=["POST"])
@require_auth
def cancel_rental(user_id, rental_id):
    """Customer cancels their own rental request while it is still pending."""
    rental = db.session.get(EquipmentRental, rental_id)
    if not rental or rental.customer_id != user_id:
        return jsonify({"error": "Rental not found"}), 404
    if rental.status != "pending":
        return jsonify({"error": "Only pending rentals can be cancelled"}), 400

    rental.status = "cancelled"
    apply_equipment_availability(rental)
    db.session.commit()
    return jsonify({"success": True, "rental": rental.to_dict()}), 200
