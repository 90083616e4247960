"""
Shopping cart API routes.
The cart lives in the signed session cookie; see cart.Cart.
"""

from flask import Blueprint, request, jsonify, session

from models import db, Product
from cart import Cart, CartError
from utils import safe_int

cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.route("", methods=["GET"])
def get_cart():
    return jsonify({"success": True, "cart": Cart.from_session(session).to_dict()}), 200


@cart_bp.route("", methods=["DELETE"])
def clear_cart():
    cart = Cart.from_session(session)
    cart.clear()
    cart.save(session)
    return jsonify({"success": True, "cart": cart.to_dict()}), 200


@cart_bp.route("/items", methods=["POST"])
def add_cart_item():
    """
    Add a product to the cart.
    Body: { product_id, quantity (default 1) }
    Price, name and stock ceiling come from the product row, never the client.
    """
    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id")
    product = db.session.get(Product, product_id) if isinstance(product_id, str) else None
    if not product or not product.is_active:
        return jsonify({"error": "Product not found"}), 404

    quantity = safe_int(data.get("quantity"), 1)
    if quantity < 1:
        return jsonify({"error": "Quantity must be at least 1"}), 400

    cart = Cart.from_session(session)
    try:
        line = cart.add_item(
            product.id, product.name, product.price, product.stock_quantity,
            quantity=quantity, image_url=product.image_url,
        )
    except CartError as e:
        return jsonify({"error": str(e)}), 400
    cart.save(session)
    return jsonify({"success": True, "item": line, "cart": cart.to_dict()}), 200


@cart_bp.route("/items/<product_id>", methods=["PATCH"])
def update_cart_item(product_id):
    """
    Change a line's quantity.
    Body: { quantity } to set, or { delta } to adjust. Result is clamped to [1, stock].
    """
    data = request.get_json(silent=True) or {}
    cart = Cart.from_session(session)
    if product_id not in cart:
        return jsonify({"error": "Item not in cart"}), 404

    if "quantity" in data:
        line = cart.update_quantity(product_id, safe_int(data.get("quantity"), 1))
    elif "delta" in data:
        line = cart.adjust_quantity(product_id, safe_int(data.get("delta"), 0))
    else:
        return jsonify({"error": "quantity or delta is required"}), 400

    cart.save(session)
    return jsonify({"success": True, "item": line, "cart": cart.to_dict()}), 200


@cart_bp.route("/items/<product_id>", methods=["DELETE"])
def remove_cart_item(product_id):
    cart = Cart.from_session(session)
    if not cart.remove_item(product_id):
        return jsonify({"error": "Item not in cart"}), 404
    cart.save(session)
    return jsonify({"success": True, "cart": cart.to_dict()}), 200
