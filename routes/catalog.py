"""
Catalog API routes: services, products and equipment.

All three kinds share one set of handlers. Providers manage their own items;
admins manage every item, including ones with no provider.
"""

import logging

from flask import Blueprint, request, jsonify
from sqlalchemy import func

from models import (
    db, User, ServiceProvider, Service, Product, Equipment,
    ServiceImage, ProductImage, EquipmentImage,
)
from auth_routes import require_auth, require_roles, optional_auth
from sanitize import accepts_raw_json, sanitize_string
from storage import StorageError, save_upload
from utils import (
    validate_length, validate_price, validate_int_range, validate_image_url,
    validate_string_fields, paginate_query, safe_int,
)

logger = logging.getLogger(__name__)

catalog_bp = Blueprint("catalog", __name__)

KIND_RULE = "/api/<any(services, products, equipment):kind>"

CATALOG = {
    "services": {
        "model": Service,
        "image_model": ServiceImage,
        "image_fk": "service_id",
        "bucket": "service-images",
        "label": "Service",
    },
    "products": {
        "model": Product,
        "image_model": ProductImage,
        "image_fk": "product_id",
        "bucket": "product-images",
        "label": "Product",
    },
    "equipment": {
        "model": Equipment,
        "image_model": EquipmentImage,
        "image_fk": "equipment_id",
        "bucket": "equipment-images",
        "label": "Equipment",
    },
}


def _validate_item(kind, data, partial=False):
    """Re-validate raw catalog input server-side. Returns (fields, error).

    Text fields come back HTML-escaped, ready to store.
    """
    fields = {}
    err = validate_string_fields(data, "name", "description", "image_url", "provider_id")
    if err:
        return None, err

    def present(key):
        return not partial or key in data

    if present("name"):
        name = (data.get("name") or "").strip()
        err = validate_length(name, "Name", 1, 200)
        if err:
            return None, err
        fields["name"] = sanitize_string(name)

    if "description" in data:
        description = (data.get("description") or "").strip() or None
        if description and len(description) > 2000:
            return None, "Description must be less than 2000 characters"
        fields["description"] = sanitize_string(description)

    if "image_url" in data:
        image_url = (data.get("image_url") or "").strip() or None
        if not validate_image_url(image_url):
            return None, "Invalid image URL"
        fields["image_url"] = sanitize_string(image_url)

    if "is_active" in data:
        fields["is_active"] = bool(data.get("is_active"))

    if kind == "services":
        if present("price"):
            price, err = validate_price(data.get("price"))
            if err:
                return None, err
            fields["price"] = price
        if present("duration_minutes"):
            duration, err = validate_int_range(data.get("duration_minutes"), "Duration", 1, 1440)
            if err:
                return None, err
            fields["duration_minutes"] = duration

    elif kind == "products":
        if present("price"):
            price, err = validate_price(data.get("price"))
            if err:
                return None, err
            fields["price"] = price
        if "stock_quantity" in data or not partial:
            stock, err = validate_int_range(data.get("stock_quantity", 0), "Stock quantity", 0, 1000000)
            if err:
                return None, err
            fields["stock_quantity"] = stock

    elif kind == "equipment":
        if present("price_per_day"):
            price, err = validate_price(data.get("price_per_day"), "Price per day", maximum=99999)
            if err:
                return None, err
            fields["price_per_day"] = price
        if "is_available" in data:
            fields["is_available"] = bool(data.get("is_available"))

    return fields, None


def _can_manage(user, item):
    if user.has_role("admin"):
        return True
    profile = user.provider_profile
    return profile is not None and item.provider_id == profile.id


def _load_managed(kind, item_id, user_id):
    """Return (item, None) or (None, error response)."""
    item = db.session.get(CATALOG[kind]["model"], item_id)
    if not item:
        return None, (jsonify({"error": "{} not found".format(CATALOG[kind]["label"])}), 404)
    if not _can_manage(db.session.get(User, user_id), item):
        return None, (jsonify({"error": "You do not manage this item"}), 403)
    return item, None


# ---------------------------------------------------------------------------
# Public listing
# ---------------------------------------------------------------------------
@catalog_bp.route(KIND_RULE, methods=["GET"])
def list_items(kind):
    """
    List active items.
    Query params: provider_id, search, page, per_page
    """
    model = CATALOG[kind]["model"]
    query = model.query.filter(model.is_active.is_(True))

    provider_id = request.args.get("provider_id")
    if provider_id:
        query = query.filter(model.provider_id == provider_id)
    search = (request.args.get("search") or "").strip()
    if search:
        query = query.filter(model.name.ilike("%{}%".format(search)))

    page = paginate_query(
        query.order_by(model.created_at.desc()),
        safe_int(request.args.get("page"), 1),
        safe_int(request.args.get("per_page"), 20),
    )
    return jsonify({
        "success": True,
        kind: [i.to_dict() for i in page["items"]],
        "total": page["total"],
        "page": page["page"],
        "pages": page["pages"],
    }), 200


@catalog_bp.route(KIND_RULE + "/mine", methods=["GET"])
@require_roles("service_provider", "admin")
def list_my_items(user_id, kind):
    """Every item the caller manages, inactive ones included."""
    model = CATALOG[kind]["model"]
    user = db.session.get(User, user_id)
    query = model.query
    if not user.has_role("admin"):
        profile = user.provider_profile
        if not profile:
            return jsonify({"error": "Provider profile not found"}), 404
        query = query.filter(model.provider_id == profile.id)
    items = query.order_by(model.created_at.desc()).all()
    return jsonify({"success": True, kind: [i.to_dict() for i in items]}), 200


@catalog_bp.route(KIND_RULE + "/<item_id>", methods=["GET"])
@optional_auth
def get_item(user_id, kind, item_id):
    item = db.session.get(CATALOG[kind]["model"], item_id)
    if item and not item.is_active:
        user = db.session.get(User, user_id) if user_id else None
        if not user or not _can_manage(user, item):
            item = None
    if not item:
        return jsonify({"error": "{} not found".format(CATALOG[kind]["label"])}), 404
    return jsonify({"success": True, "item": item.to_dict()}), 200


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------
@catalog_bp.route(KIND_RULE, methods=["POST"])
@accepts_raw_json
@require_roles("service_provider", "admin")
def create_item(user_id, kind):
    """
    Create an item owned by the caller's provider profile.
    Admins may pass provider_id, or omit it for a platform-owned item.
    """
    data = request.get_json(silent=True) or {}
    fields, err = _validate_item(kind, data)
    if err:
        return jsonify({"error": err}), 400

    user = db.session.get(User, user_id)
    if user.has_role("admin"):
        provider_id = data.get("provider_id") or None
        if provider_id and not db.session.get(ServiceProvider, provider_id):
            return jsonify({"error": "Provider not found"}), 404
    else:
        if not user.provider_profile:
            return jsonify({"error": "Provider profile not found"}), 404
        provider_id = user.provider_profile.id

    item = CATALOG[kind]["model"](provider_id=provider_id, **fields)
    db.session.add(item)
    db.session.commit()
    logger.info("%s %s created by %s", CATALOG[kind]["label"], item.id, user_id)
    return jsonify({"success": True, "item": item.to_dict()}), 201


@catalog_bp.route(KIND_RULE + "/<item_id>", methods=["PUT"])
@accepts_raw_json
@require_auth
def update_item(user_id, kind, item_id):
    item, error = _load_managed(kind, item_id, user_id)
    if error:
        return error

    fields, err = _validate_item(kind, request.get_json(silent=True) or {}, partial=True)
    if err:
        return jsonify({"error": err}), 400
    for key, value in fields.items():
        setattr(item, key, value)
    db.session.commit()
    return jsonify({"success": True, "item": item.to_dict()}), 200


@catalog_bp.route(KIND_RULE + "/<item_id>", methods=["DELETE"])
@require_auth
def delete_item(user_id, kind, item_id):
    item, error = _load_managed(kind, item_id, user_id)
    if error:
        return error
    db.session.delete(item)
    db.session.commit()
    logger.info("%s %s deleted by %s", CATALOG[kind]["label"], item_id, user_id)
    return jsonify({"success": True}), 200


# ---------------------------------------------------------------------------
# Image gallery
# ---------------------------------------------------------------------------
@catalog_bp.route(KIND_RULE + "/<item_id>/images", methods=["POST"])
@require_auth
def add_item_image(user_id, kind, item_id):
    """
    Append an image to the item's gallery.
    Either multipart (field: file) or JSON { image_url }.
    """
    item, error = _load_managed(kind, item_id, user_id)
    if error:
        return error

    entry = CATALOG[kind]
    if "file" in request.files:
        try:
            image_url = save_upload(request.files["file"], entry["bucket"], user_id)["url"]
        except StorageError as e:
            return jsonify({"error": e.message}), e.status
    else:
        image_url = ((request.get_json(silent=True) or {}).get("image_url") or "").strip()
        if not image_url or not validate_image_url(image_url):
            return jsonify({"error": "A valid image_url or file is required"}), 400

    image_model = entry["image_model"]
    fk = getattr(image_model, entry["image_fk"])
    next_order = (
        db.session.query(func.coalesce(func.max(image_model.display_order), -1))
        .filter(fk == item.id)
        .scalar()
    ) + 1
    image = image_model(image_url=image_url, display_order=next_order, **{entry["image_fk"]: item.id})
    db.session.add(image)
    if not item.image_url:
        item.image_url = image_url
    db.session.commit()
    return jsonify({"success": True, "image": image.to_dict(), "item": item.to_dict()}), 201


@catalog_bp.route(KIND_RULE + "/<item_id>/images/order", methods=["PUT"])
@require_auth
def reorder_item_images(user_id, kind, item_id):
    """Body: { image_ids: [...] } in the desired display order."""
    item, error = _load_managed(kind, item_id, user_id)
    if error:
        return error

    image_ids = (request.get_json(silent=True) or {}).get("image_ids")
    current = {img.id: img for img in item.images}
    if not isinstance(image_ids, list) or not all(isinstance(i, str) for i in image_ids):
        return jsonify({"error": "image_ids must be a list of image id strings"}), 400
    if set(image_ids) != set(current):
        return jsonify({"error": "image_ids must list every image of this item exactly once"}), 400
    if len(image_ids) != len(current):
        return jsonify({"error": "image_ids must list every image of this item exactly once"}), 400

    for position, image_id in enumerate(image_ids):
        current[image_id].display_order = position
    db.session.commit()
    db.session.refresh(item)
    return jsonify({"success": True, "item": item.to_dict()}), 200


@catalog_bp.route(KIND_RULE + "/<item_id>/images/<image_id>", methods=["DELETE"])
@require_auth
def delete_item_image(user_id, kind, item_id, image_id):
    item, error = _load_managed(kind, item_id, user_id)
    if error:
        return error

    entry = CATALOG[kind]
    image = db.session.get(entry["image_model"], image_id)
    if not image or getattr(image, entry["image_fk"]) != item.id:
        return jsonify({"error": "Image not found"}), 404
    db.session.delete(image)
    db.session.commit()
    db.session.refresh(item)
    return jsonify({"success": True, "item": item.to_dict()}), 200
