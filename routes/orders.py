"""
Product order API routes: checkout from the session cart, listings and
status changes.
"""

import logging

from flask import Blueprint, request, jsonify, session

from models import db, User, Product, ProductOrder, ServiceProvider
from auth_routes import require_auth, require_roles
from cart import Cart
from sanitize import accepts_raw_json, sanitize_string
from utils import validate_length, validate_string_fields

logger = logging.getLogger(__name__)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ORDER_TRANSITIONS = {
    "pending": ("processing", "cancelled"),
    "processing": ("shipped", "completed", "cancelled"),
    "shipped": ("completed",),
    "completed": (),
    "cancelled": (),
}


@orders_bp.route("/checkout", methods=["POST"])
@accepts_raw_json
@require_auth
def checkout(user_id):
    """
    Turn every cart line into a pending order, then empty the cart.
    Body: { delivery_address, notes }
    """
    cart = Cart.from_session(session)
    if not len(cart):
        return jsonify({"error": "Your cart is empty"}), 400

    data = request.get_json(silent=True) or {}
    err = validate_string_fields(data, "delivery_address", "notes")
    if err:
        return jsonify({"error": err}), 400
    delivery_address = (data.get("delivery_address") or "").strip()
    err = validate_length(delivery_address, "Delivery address", 8, 500)
    if err:
        return jsonify({"error": err}), 400
    notes = (data.get("notes") or "").strip() or None
    if notes and len(notes) > 500:
        return jsonify({"error": "Notes must be less than 500 characters"}), 400

    orders = []
    for line in cart.items:
        product = db.session.get(Product, line["id"])
        if not product or not product.is_active:
            db.session.rollback()
            return jsonify({"error": "{} is no longer available".format(line["name"])}), 400
        if line["quantity"] > (product.stock_quantity or 0):
            db.session.rollback()
            return jsonify({"error": "Not enough stock for {}".format(product.name)}), 400

        order = ProductOrder(
            customer_id=user_id,
            provider_id=product.provider_id,
            product_id=product.id,
            quantity=line["quantity"],
            total_price=round(product.price * line["quantity"], 2),
            delivery_address=sanitize_string(delivery_address),
            notes=sanitize_string(notes),
            status="pending",
        )
        db.session.add(order)
        orders.append(order)

    db.session.commit()
    cart.clear()
    cart.save(session)
    logger.info("Checkout by %s created %d orders", user_id, len(orders))
    return jsonify({"success": True, "orders": [o.to_dict() for o in orders]}), 201


@orders_bp.route("", methods=["GET"])
@require_auth
def list_my_orders(user_id):
    """Purchase history for the caller."""
    orders = (
        ProductOrder.query.filter_by(customer_id=user_id)
        .order_by(ProductOrder.created_at.desc())
        .all()
    )
    return jsonify({"success": True, "orders": [o.to_dict() for o in orders]}), 200


@orders_bp.route("/provider", methods=["GET"])
@require_roles("service_provider")
def list_provider_orders(user_id):
    """Orders for the caller's products. Query params: status"""
    provider = ServiceProvider.query.filter_by(user_id=user_id).first()
    if not provider:
        return jsonify({"error": "Provider profile not found"}), 404

    query = ProductOrder.query.filter_by(provider_id=provider.id)
    status = request.args.get("status")
    if status:
        if status not in ORDER_TRANSITIONS:
            return jsonify({"error": "Invalid status filter"}), 400
        query = query.filter_by(status=status)
    orders = query.order_by(ProductOrder.created_at.desc()).all()
    return jsonify({"success": True, "orders": [o.to_dict() for o in orders]}), 200


@orders_bp.route("/<order_id>/status", methods=["PUT"])
@require_auth
def update_order_status(user_id, order_id):
    """
    Provider owning the product (or an admin) advances the order.
    Body: { status }
    """
    order = db.session.get(ProductOrder, order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404

    user = db.session.get(User, user_id)
    profile = user.provider_profile
    is_owner = profile is not None and order.provider_id == profile.id
    if not is_owner and not user.has_role("admin"):
        return jsonify({"error": "You do not manage this order"}), 403

    new_status = (request.get_json(silent=True) or {}).get("status")
    if new_status not in ORDER_TRANSITIONS.get(order.status, ()):
        return jsonify({
            "error": "Cannot change order from {} to {}".format(order.status, new_status)
        }), 400

    order.status = new_status
    db.session.commit()
    logger.info("Order %s -> %s by %s", order.id, new_status, user_id)
    return jsonify({"success": True, "order": order.to_dict()}), 200


@orders_bp.route("/<order_id>/cancel", methods=["POST"])
@require_auth
def cancel_order(user_id, order_id):
    """Customer cancels their own order while it is still pending."""
    order = db.session.get(ProductOrder, order_id)
    if not order or order.customer_id != user_id:
        return jsonify({"error": "Order not found"}), 404
    if order.status != "pending":
        return jsonify({"error": "Only pending orders can be cancelled"}), 400

    order.status = "cancelled"
    db.session.commit()
    return jsonify({"success": True, "order": order.to_dict()}), 200
