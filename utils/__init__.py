"""Utilities package"""
from .validators import (
    validate_email,
    validate_length,
    validate_string_fields,
    validate_password_strength,
    validate_price,
    validate_int_range,
    validate_image_url,
    normalize_booking_phone,
    parse_iso_date,
)
from .helpers import user_message, is_unique_violation, paginate_query, safe_int

__all__ = [
    'validate_email',
    'validate_length',
    'validate_string_fields',
    'validate_password_strength',
    'validate_price',
    'validate_int_range',
    'validate_image_url',
    'normalize_booking_phone',
    'parse_iso_date',
    'user_message',
    'is_unique_violation',
    'paginate_query',
    'safe_int',
]
