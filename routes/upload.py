"""
Bucket storage API routes.
Uploads into named buckets and serves stored objects.
"""

from flask import Blueprint, request, jsonify, send_from_directory

from models import db, User
from auth_routes import require_auth, optional_auth
from storage import BUCKETS, StorageError, can_read, locate, save_upload

upload_bp = Blueprint("upload", __name__)


# ---------------------------------------------------------------------------
# POST /api/storage/<bucket>  (auth required)
# ---------------------------------------------------------------------------
@upload_bp.route("/api/storage/<bucket>", methods=["POST"])
@require_auth
def upload_file(user_id, bucket):
    """
    Upload one file (multipart/form-data, field: file) into a bucket.
    Objects are stored under the uploader's id.
    Returns: { success, file: { bucket, path, url } }
    """
    if "file" not in request.files:
        return jsonify({"error": "No file provided. Use the 'file' form field."}), 400

    try:
        stored = save_upload(request.files["file"], bucket, user_id)
    except StorageError as e:
        return jsonify({"error": e.message}), e.status

    return jsonify({"success": True, "file": stored}), 201


# ---------------------------------------------------------------------------
# GET /storage/<bucket>/<path>  (public buckets open, private owner/admin)
# ---------------------------------------------------------------------------
@upload_bp.route("/storage/<bucket>/<path:object_path>", methods=["GET"])
@optional_auth
def serve_file(user_id, bucket, object_path):
    """Serve a previously uploaded object."""
    user = db.session.get(User, user_id) if user_id else None
    if bucket not in BUCKETS:
        return jsonify({"error": "Unknown bucket"}), 404
    if not can_read(bucket, object_path, user):
        return jsonify({"error": "Access denied"}), 403

    try:
        directory, filename = locate(bucket, object_path)
    except StorageError as e:
        return jsonify({"error": e.message}), e.status

    return send_from_directory(directory, filename)
