"""
Service provider API routes.
Registration, public directory, slot availability and provider self-service.
"""

import re
import logging
from datetime import date

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError

from models import (
    db, User, UserRole, ServiceProvider, Service, Product, Equipment, Review,
    Booking, ProductOrder, EquipmentRental,
)
from auth_routes import require_auth, require_roles
from booking_slots import grid_from_config, load_availability, default_window
from sanitize import accepts_raw_json, sanitize_text
from storage import StorageError, save_upload
from utils import (
    validate_length, validate_string_fields, parse_iso_date, paginate_query, safe_int,
    is_unique_violation,
)
from utils.validators import BUSINESS_NAME_PATTERN, ZIP_CODE_PATTERN, PHONE_PATTERN

logger = logging.getLogger(__name__)

providers_bp = Blueprint("providers", __name__, url_prefix="/api/providers")

# upload kind -> (bucket, ServiceProvider column)
PROVIDER_UPLOADS = {
    "profile": ("provider-backgrounds", "profile_image_url"),
    "background": ("provider-backgrounds", "background_image_url"),
    "payment-qr": ("provider-backgrounds", "payment_qr_url"),
    "valid-id": ("valid-ids", "valid_id_path"),
}


def _validate_provider_fields(data, partial=False):
    """Validate raw provider input.

    Returns (fields, errors). ``fields`` only contains keys present in the
    payload when ``partial`` is True.
    """
    fields = {}
    errors = []

    err = validate_string_fields(data, "business_name", "description", "address", "zip_code", "phone")
    if err:
        return fields, [err]

    def present(key):
        return not partial or key in data

    if present("business_name"):
        name = (data.get("business_name") or "").strip()
        err = validate_length(name, "Business name", 2, 200)
        if err:
            errors.append("business_name: {}".format(err))
        elif not re.match(BUSINESS_NAME_PATTERN, name):
            errors.append("business_name: Business name contains invalid characters")
        fields["business_name"] = name

    if present("description"):
        description = (data.get("description") or "").strip() or None
        if description is not None:
            err = validate_length(description, "Description", 10, 2000)
            if err:
                errors.append("description: {}".format(err))
        fields["description"] = description

    if present("address"):
        address = (data.get("address") or "").strip()
        err = validate_length(address, "Address", 5, 500)
        if err:
            errors.append("address: {}".format(err))
        fields["address"] = address

    if present("zip_code"):
        zip_code = (data.get("zip_code") or "").strip()
        err = validate_length(zip_code, "Zip code", 4, 20)
        if err:
            errors.append("zip_code: {}".format(err))
        elif not re.match(ZIP_CODE_PATTERN, zip_code):
            errors.append("zip_code: Invalid zip code format")
        fields["zip_code"] = zip_code.upper()

    phone = (data.get("phone") or "").strip() or None
    if phone is not None:
        err = validate_length(phone, "Phone number", 10, 20)
        if err:
            errors.append("phone: {}".format(err))
        elif not re.match(PHONE_PATTERN, phone):
            errors.append("phone: Invalid phone number format")
    fields["phone"] = phone

    return fields, errors


def _apply_provider_fields(provider, fields):
    for key in ("business_name", "description", "address"):
        if key in fields:
            setattr(provider, key, sanitize_text(fields[key]))
    if "zip_code" in fields:
        provider.zip_code = fields["zip_code"]


def _own_provider(user_id):
    return ServiceProvider.query.filter_by(user_id=user_id).first()


# ---------------------------------------------------------------------------
# POST /api/providers/register
# ---------------------------------------------------------------------------
@providers_bp.route("/register", methods=["POST"])
@accepts_raw_json
@require_auth
def register_provider(user_id):
    """Create the caller's business profile and grant the service_provider role."""
    data = request.get_json(silent=True) or {}
    fields, errors = _validate_provider_fields(data)
    if errors:
        return jsonify({"error": "Validation failed", "details": errors}), 400

    if _own_provider(user_id):
        return jsonify({"error": "Service provider profile already exists for this user"}), 400

    user = db.session.get(User, user_id)
    provider = ServiceProvider(user_id=user_id)
    _apply_provider_fields(provider, fields)
    db.session.add(provider)
    if not user.has_role("service_provider"):
        db.session.add(UserRole(user_id=user_id, role="service_provider"))
    if fields["phone"]:
        user.phone = fields["phone"]

    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if is_unique_violation(e):
            return jsonify({"error": "Service provider profile already exists for this user"}), 400
        logger.warning("Provider registration rejected by constraint: %s", e.orig)
        return jsonify({"error": "Provider details exceed allowed lengths"}), 400

    logger.info("Service provider %s registered for user %s", provider.id, user_id)
    return jsonify({"success": True, "provider": provider.to_dict(include_private=True)}), 201


# ---------------------------------------------------------------------------
# Public directory
# ---------------------------------------------------------------------------
@providers_bp.route("", methods=["GET"])
def list_providers():
    """
    List active providers.
    Query params: zip, search, page, per_page
    """
    query = ServiceProvider.query.filter_by(is_active=True)

    zip_code = (request.args.get("zip") or "").strip()
    if zip_code:
        query = query.filter(ServiceProvider.zip_code == zip_code.upper())

    search = (request.args.get("search") or "").strip()
    if search:
        query = query.filter(ServiceProvider.business_name.ilike("%{}%".format(search)))

    page = paginate_query(
        query.order_by(ServiceProvider.rating.desc(), ServiceProvider.created_at.desc()),
        safe_int(request.args.get("page"), 1),
        safe_int(request.args.get("per_page"), 20),
    )
    return jsonify({
        "success": True,
        "providers": [p.to_dict() for p in page["items"]],
        "total": page["total"],
        "page": page["page"],
        "pages": page["pages"],
    }), 200


@providers_bp.route("/<provider_id>", methods=["GET"])
def get_provider(provider_id):
    """Provider profile with its active catalog and latest reviews."""
    provider = db.session.get(ServiceProvider, provider_id)
    if not provider or not provider.is_active:
        return jsonify({"error": "Provider not found"}), 404

    reviews = (
        Review.query.filter_by(provider_id=provider_id)
        .order_by(Review.created_at.desc())
        .limit(10)
        .all()
    )
    return jsonify({
        "success": True,
        "provider": provider.to_dict(),
        "services": [s.to_dict() for s in provider.services.filter_by(is_active=True)],
        "products": [p.to_dict() for p in provider.products.filter_by(is_active=True)],
        "equipment": [e.to_dict() for e in provider.equipment.filter_by(is_active=True)],
        "reviews": [r.to_dict() for r in reviews],
    }), 200


@providers_bp.route("/<provider_id>/availability", methods=["GET"])
def get_availability(provider_id):
    """
    Slot grid and taken slots for a provider.
    Query params: start_date (default today), date (return open slots for that day)
    """
    provider = db.session.get(ServiceProvider, provider_id)
    if not provider:
        return jsonify({"error": "Provider not found"}), 404

    start_date = date.today()
    if request.args.get("start_date"):
        start_date = parse_iso_date(request.args["start_date"])
        if start_date is None:
            return jsonify({"error": "start_date must be YYYY-MM-DD"}), 400

    day = None
    if request.args.get("date"):
        day = parse_iso_date(request.args["date"])
        if day is None:
            return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    window_start, window_end = default_window(start_date)
    if day is not None:
        window_start, window_end = min(window_start, day), max(window_end, day)

    availability = load_availability(
        provider_id, grid_from_config(current_app.config), window_start, window_end
    )
    return jsonify({"success": True, "provider_id": provider_id, **availability.to_dict(day)}), 200


# ---------------------------------------------------------------------------
# Provider self-service
# ---------------------------------------------------------------------------
@providers_bp.route("/me", methods=["GET"])
@require_roles("service_provider")
def get_my_provider(user_id):
    provider = _own_provider(user_id)
    if not provider:
        return jsonify({"error": "Provider profile not found"}), 404
    return jsonify({"success": True, "provider": provider.to_dict(include_private=True)}), 200


@providers_bp.route("/me", methods=["PUT"])
@accepts_raw_json
@require_roles("service_provider")
def update_my_provider(user_id):
    """Update business details. Only the fields present in the body change."""
    provider = _own_provider(user_id)
    if not provider:
        return jsonify({"error": "Provider profile not found"}), 404

    data = request.get_json(silent=True) or {}
    fields, errors = _validate_provider_fields(data, partial=True)
    if errors:
        return jsonify({"error": "Validation failed", "details": errors}), 400

    _apply_provider_fields(provider, fields)
    if fields["phone"]:
        provider.user.phone = fields["phone"]
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.warning("Provider update rejected by constraint: %s", e.orig)
        return jsonify({"error": "Provider details exceed allowed lengths"}), 400

    return jsonify({"success": True, "provider": provider.to_dict(include_private=True)}), 200


@providers_bp.route("/me/images/<kind>", methods=["POST"])
@require_roles("service_provider")
def upload_provider_image(user_id, kind):
    """
    Upload a profile, background, payment QR or valid ID image (multipart field: file).
    The valid ID goes to the private bucket and is never given a public URL.
    """
    if kind not in PROVIDER_UPLOADS:
        return jsonify({"error": "Unknown image kind"}), 404
    provider = _own_provider(user_id)
    if not provider:
        return jsonify({"error": "Provider profile not found"}), 404

    bucket, column = PROVIDER_UPLOADS[kind]
    try:
        stored = save_upload(request.files.get("file"), bucket, user_id)
    except StorageError as e:
        return jsonify({"error": e.message}), e.status

    setattr(provider, column, stored["url"] or stored["path"])
    db.session.commit()
    return jsonify({"success": True, "file": stored, "provider": provider.to_dict(include_private=True)}), 201


@providers_bp.route("/me/dashboard", methods=["GET"])
@require_roles("service_provider")
def provider_dashboard(user_id):
    """Order/booking/rental totals and recent activity for the caller's business."""
    from routes.admin import recent_activity

    provider = _own_provider(user_id)
    if not provider:
        return jsonify({"error": "Provider profile not found"}), 404
    pid = provider.id

    stats = {
        "total_orders": ProductOrder.query.filter_by(provider_id=pid).count(),
        "pending_orders": ProductOrder.query.filter_by(provider_id=pid, status="pending").count(),
        "total_bookings": Booking.query.filter_by(provider_id=pid).count(),
        "pending_bookings": Booking.query.filter_by(provider_id=pid, status="pending").count(),
        "total_rentals": EquipmentRental.query.filter_by(provider_id=pid).count(),
        "active_rentals": EquipmentRental.query.filter_by(provider_id=pid, status="active").count(),
        "total_services": Service.query.filter_by(provider_id=pid).count(),
        "total_products": Product.query.filter_by(provider_id=pid).count(),
        "total_equipment": Equipment.query.filter_by(provider_id=pid).count(),
        "rating": provider.rating or 0.0,
        "total_reviews": provider.total_reviews or 0,
    }
    return jsonify({
        "success": True,
        "stats": stats,
        "recent_activity": recent_activity(provider_id=pid),
    }), 200
