"""
Filesystem-backed bucket store for uploaded images and documents.

Objects live under ``STORAGE_ROOT/<bucket>/<owner_id>/<uuid>.<ext>``.
Public buckets are served to anyone; private buckets only to the owning
user or an admin.
"""

import os
import logging

from flask import current_app
from werkzeug.security import safe_join
from werkzeug.utils import secure_filename

from models import generate_uuid

logger = logging.getLogger(__name__)

# bucket name -> is public
BUCKETS = {
    "service-images": True,
    "product-images": True,
    "equipment-images": True,
    "provider-backgrounds": True,
    "valid-ids": False,
}

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif"}
DOCUMENT_EXTENSIONS = IMAGE_EXTENSIONS | {"pdf"}


class StorageError(Exception):
    """Upload or lookup failure carrying the HTTP status to report."""

    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


def is_public(bucket):
    return BUCKETS.get(bucket, False)


def allowed_extensions(bucket):
    return IMAGE_EXTENSIONS if is_public(bucket) else DOCUMENT_EXTENSIONS


def _extension(filename):
    if not filename or "." not in filename:
        return None
    return filename.rsplit(".", 1)[1].lower()


def _bucket_dir(bucket):
    return os.path.join(current_app.config["STORAGE_ROOT"], bucket)


def public_url(bucket, object_path):
    return "/storage/{}/{}".format(bucket, object_path)


def save_upload(file, bucket, owner_id):
    """Validate and store an uploaded file.

    Returns:
        dict: {bucket, path, url}; ``url`` is None for private buckets.
    """
    if bucket not in BUCKETS:
        raise StorageError("Unknown bucket", 404)
    if not file or not file.filename:
        raise StorageError("No file provided")

    ext = _extension(file.filename)
    if ext not in allowed_extensions(bucket):
        raise StorageError(
            "File type not allowed. Accepted: {}".format(", ".join(sorted(allowed_extensions(bucket))))
        )

    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)
    max_bytes = current_app.config["MAX_UPLOAD_BYTES"]
    if size == 0:
        raise StorageError("Empty file")
    if size > max_bytes:
        raise StorageError("File exceeds maximum size of {} MB".format(max_bytes // (1024 * 1024)))

    owner_dir = secure_filename(owner_id)
    filename = secure_filename("{}.{}".format(generate_uuid(), ext))
    directory = os.path.join(_bucket_dir(bucket), owner_dir)
    os.makedirs(directory, exist_ok=True)
    file.save(os.path.join(directory, filename))

    object_path = "{}/{}".format(owner_dir, filename)
    logger.info("Stored %s/%s (%d bytes)", bucket, object_path, size)
    return {
        "bucket": bucket,
        "path": object_path,
        "url": public_url(bucket, object_path) if is_public(bucket) else None,
    }


def object_owner(object_path):
    return object_path.split("/", 1)[0] if object_path else None


def can_read(bucket, object_path, user=None):
    if bucket not in BUCKETS:
        return False
    if is_public(bucket):
        return True
    if user is None:
        return False
    return user.has_role("admin") or object_owner(object_path) == user.id


def locate(bucket, object_path):
    """Return (directory, filename) for an existing object, else raise StorageError."""
    if bucket not in BUCKETS:
        raise StorageError("Unknown bucket", 404)
    full_path = safe_join(_bucket_dir(bucket), object_path)
    if full_path is None or not os.path.isfile(full_path):
        raise StorageError("File not found", 404)
    return os.path.dirname(full_path), os.path.basename(full_path)
