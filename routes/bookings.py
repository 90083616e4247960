"""
Service booking API routes.

Slot uniqueness lives in the database (partial unique index on provider,
date and time for non-cancelled bookings). Creation is a single insert; a
lost race surfaces as a 409 with a slot-specific message.
"""

import logging
from datetime import date

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError

from models import db, User, Booking, Service, ServiceProvider
from auth_routes import require_auth, require_roles
from booking_slots import grid_from_config, load_availability
from sanitize import accepts_raw_json, sanitize_string
from socket_events import broadcast_booking_status
from utils import (
    normalize_booking_phone, parse_iso_date, is_unique_violation, user_message,
    validate_string_fields,
)

logger = logging.getLogger(__name__)

bookings_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")

SLOT_TAKEN_MESSAGE = "This time slot was just booked by someone else. Please choose another time."

BOOKING_TRANSITIONS = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("completed",),
    "completed": (),
    "cancelled": (),
}


# ---------------------------------------------------------------------------
# POST /api/bookings
# ---------------------------------------------------------------------------
@bookings_bp.route("", methods=["POST"])
@accepts_raw_json
@require_auth
def create_booking(user_id):
    """
    Book a service slot.
    Body: { provider_id, service_id, booking_date (YYYY-MM-DD), booking_time (HH:MM),
            customer_phone, notes }
    """
    data = request.get_json(silent=True) or {}
    err = validate_string_fields(data, "provider_id", "service_id", "booking_date",
                                 "booking_time", "customer_phone", "notes")
    if err:
        return jsonify({"error": err}), 400

    provider = db.session.get(ServiceProvider, data.get("provider_id") or "")
    if not provider or not provider.is_active:
        return jsonify({"error": "Provider not found"}), 404
    if provider.user_id == user_id:
        return jsonify({"error": "You cannot book your own service"}), 400

    service = db.session.get(Service, data.get("service_id") or "")
    if not service or not service.is_active or service.provider_id != provider.id:
        return jsonify({"error": "Service not found for this provider"}), 404

    booking_date = parse_iso_date(data.get("booking_date"))
    if booking_date is None:
        return jsonify({"error": "booking_date must be YYYY-MM-DD"}), 400
    if booking_date < date.today():
        return jsonify({"error": "Cannot book a date in the past"}), 400

    grid = grid_from_config(current_app.config)
    booking_time = (data.get("booking_time") or "").strip()
    if booking_time not in grid:
        return jsonify({"error": "Please choose one of the available time slots"}), 400

    phone = normalize_booking_phone(data.get("customer_phone"))
    if not phone:
        return jsonify({"error": "Invalid phone number. Use 09XXXXXXXXX or +639XXXXXXXXX"}), 400

    notes = (data.get("notes") or "").strip() or None
    if notes and len(notes) > 500:
        return jsonify({"error": "Notes must be less than 500 characters"}), 400

    availability = load_availability(provider.id, grid, booking_date, booking_date)
    if availability.is_fully_booked(booking_date):
        return jsonify({"error": "This date is fully booked. Please choose another date."}), 400

    booking = Booking(
        customer_id=user_id,
        provider_id=provider.id,
        service_id=service.id,
        booking_date=booking_date,
        booking_time=booking_time,
        customer_phone=phone,
        notes=sanitize_string(notes),
        status="pending",
    )
    db.session.add(booking)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if is_unique_violation(e):
            return jsonify({"error": SLOT_TAKEN_MESSAGE}), 409
        logger.error("Booking insert failed: %s", e)
        return jsonify({"error": user_message(e.orig, "Failed to create booking")}), 400

    logger.info("Booking %s created for provider %s at %s %s",
                booking.id, provider.id, booking_date.isoformat(), booking_time)
    broadcast_booking_status(booking)
    return jsonify({"success": True, "booking": booking.to_dict()}), 201


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------
@bookings_bp.route("", methods=["GET"])
@require_auth
def list_my_bookings(user_id):
    """The caller's own bookings as a customer, newest first."""
    bookings = (
        Booking.query.filter_by(customer_id=user_id)
        .order_by(Booking.booking_date.desc(), Booking.booking_time.desc())
        .all()
    )
    return jsonify({"success": True, "bookings": [b.to_dict() for b in bookings]}), 200


@bookings_bp.route("/provider", methods=["GET"])
@require_roles("service_provider")
def list_provider_bookings(user_id):
    """
    Bookings for the caller's business.
    Query params: status, date (YYYY-MM-DD)
    """
    provider = ServiceProvider.query.filter_by(user_id=user_id).first()
    if not provider:
        return jsonify({"error": "Provider profile not found"}), 404

    query = Booking.query.filter_by(provider_id=provider.id)
    status = request.args.get("status")
    if status:
        if status not in BOOKING_TRANSITIONS:
            return jsonify({"error": "Invalid status filter"}), 400
        query = query.filter_by(status=status)
    if request.args.get("date"):
        day = parse_iso_date(request.args["date"])
        if day is None:
            return jsonify({"error": "date must be YYYY-MM-DD"}), 400
        query = query.filter_by(booking_date=day)

    bookings = query.order_by(Booking.booking_date.asc(), Booking.booking_time.asc()).all()
    return jsonify({"success": True, "bookings": [b.to_dict() for b in bookings]}), 200


# ---------------------------------------------------------------------------
# Status changes
# ---------------------------------------------------------------------------
@bookings_bp.route("/<booking_id>/status", methods=["PUT"])
@require_auth
def update_booking_status(user_id, booking_id):
    """
    Provider (or admin) moves a booking along its lifecycle.
    Body: { status }
    """
    booking = db.session.get(Booking, booking_id)
    if not booking:
        return jsonify({"error": "Booking not found"}), 404

    user = db.session.get(User, user_id)
    is_owner = booking.provider is not None and booking.provider.user_id == user_id
    if not is_owner and not user.has_role("admin"):
        return jsonify({"error": "You do not manage this booking"}), 403

    new_status = (request.get_json(silent=True) or {}).get("status")
    if new_status not in BOOKING_TRANSITIONS.get(booking.status, ()):
        return jsonify({
            "error": "Cannot change booking from {} to {}".format(booking.status, new_status)
        }), 400

    booking.status = new_status
    db.session.commit()
    logger.info("Booking %s -> %s by %s", booking.id, new_status, user_id)
    broadcast_booking_status(booking)
    return jsonify({"success": True, "booking": booking.to_dict()}), 200


@bookings_bp.route("/<booking_id>/cancel", methods=["POST"])
@require_auth
def cancel_booking(user_id, booking_id):
    """Customer cancels their own booking while it is still pending."""
    booking = db.session.get(Booking, booking_id)
    if not booking or booking.customer_id != user_id:
        return jsonify({"error": "Booking not found"}), 404
    if booking.status != "pending":
        return jsonify({"error": "Only pending bookings can be cancelled"}), 400

    booking.status = "cancelled"
    db.session.commit()
    broadcast_booking_status(booking)
    return jsonify({"success": True, "booking": booking.to_dict()}), 200
