"""
Provider Reviews API routes.
Customers who have booked a provider may leave one review for that provider.
"""

from flask import Blueprint, request, jsonify
from sqlalchemy.exc import IntegrityError

from models import db, Booking, Review, ServiceProvider
from auth_routes import require_roles
from sanitize import accepts_raw_json, sanitize_string
from utils import is_unique_violation, validate_string_fields

reviews_bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")

DUPLICATE_REVIEW_MESSAGE = "You have already reviewed this provider"


# ---------------------------------------------------------------------------
# POST /api/reviews -- Create a review
# ---------------------------------------------------------------------------
@reviews_bp.route("", methods=["POST"])
@accepts_raw_json
@require_roles("customer")
def create_review(user_id):
    """Create a review for a provider the caller has booked.

    Body JSON:
        provider_id: str (required)
        rating: int 1-5 (required)
        comment: str (optional, up to 500 characters)
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({"error": "Request body is required"}), 400
    err = validate_string_fields(data, "provider_id", "comment")
    if err:
        return jsonify({"error": err}), 400

    provider_id = data.get("provider_id")
    rating = data.get("rating")
    comment = data.get("comment", "").strip() if data.get("comment") else None

    if not provider_id:
        return jsonify({"error": "provider_id is required"}), 400

    if rating is None or isinstance(rating, bool):
        return jsonify({"error": "rating is required"}), 400

    try:
        rating = int(rating)
    except (TypeError, ValueError):
        return jsonify({"error": "rating must be an integer"}), 400

    if not (1 <= rating <= 5):
        return jsonify({"error": "rating must be between 1 and 5"}), 400

    if comment and len(comment) > 500:
        return jsonify({"error": "comment must be 500 characters or fewer"}), 400

    provider = db.session.get(ServiceProvider, provider_id)
    if not provider:
        return jsonify({"error": "Provider not found"}), 404

    booking = (
        Booking.query
        .filter(
            Booking.customer_id == user_id,
            Booking.provider_id == provider_id,
            Booking.status != "cancelled",
        )
        .order_by(Booking.created_at.desc())
        .first()
    )
    if not booking:
        return jsonify({"error": "You can only review providers you have booked"}), 403

    if Review.query.filter_by(customer_id=user_id, provider_id=provider_id).first():
        return jsonify({"error": DUPLICATE_REVIEW_MESSAGE}), 409

    review = Review(
        provider_id=provider_id,
        customer_id=user_id,
        booking_id=booking.id,
        rating=rating,
        comment=sanitize_string(comment),
    )
    db.session.add(review)
    try:
        db.session.flush()
    except IntegrityError as e:
        db.session.rollback()
        if is_unique_violation(e):
            return jsonify({"error": DUPLICATE_REVIEW_MESSAGE}), 409
        raise

    provider.refresh_rating()
    db.session.commit()

    return jsonify({"success": True, "review": review.to_dict(), "provider": provider.to_dict()}), 201


# ---------------------------------------------------------------------------
# GET /api/reviews/provider/<provider_id> -- All reviews for a provider
# ---------------------------------------------------------------------------
@reviews_bp.route("/provider/<provider_id>", methods=["GET"])
def get_provider_reviews(provider_id):
    """Get all reviews for a provider (public)."""
    provider = db.session.get(ServiceProvider, provider_id)
    if not provider:
        return jsonify({"error": "Provider not found"}), 404

    page = request.args.get("page", 1, type=int)
    per_page = min(request.args.get("per_page", 20, type=int), 100)

    pagination = (
        Review.query.filter_by(provider_id=provider_id)
        .order_by(Review.created_at.desc())
        .paginate(page=page, per_page=per_page, error_out=False)
    )

    return jsonify({
        "success": True,
        "reviews": [r.to_dict() for r in pagination.items],
        "rating": provider.rating or 0.0,
        "total_reviews": provider.total_reviews or 0,
        "page": page,
        "pages": pagination.pages,
    }), 200
