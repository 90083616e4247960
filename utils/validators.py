"""
Validation utilities
"""
import re
from datetime import datetime


EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
BUSINESS_NAME_PATTERN = r"^[a-zA-Z0-9\s\-'&.]+$"
ZIP_CODE_PATTERN = r'^[a-zA-Z0-9\s\-]+$'
PHONE_PATTERN = r'^[\d\s\-+().]+$'
BOOKING_PHONE_PATTERN = r'^(\+63|0)?9\d{9}$'


def validate_email(email):
    """
    Validate email format

    Args:
        email (str): Email address to validate

    Returns:
        bool: True if valid, False otherwise
    """
    if not email:
        return False
    return bool(re.match(EMAIL_PATTERN, email))


def validate_length(value, field, min_length=0, max_length=None, required=True):
    """
    Check a trimmed string against length bounds.

    Returns:
        str or None: error message, or None when the value is acceptable
    """
    if value is None or value == '':
        return f'{field} is required' if required else None
    if not isinstance(value, str):
        return f'{field} must be a string'
    length = len(value.strip())
    if length < min_length:
        return f'{field} must be at least {min_length} characters'
    if max_length is not None and length > max_length:
        return f'{field} must be less than {max_length} characters'
    return None


def validate_string_fields(data, *keys):
    """
    Check that each of ``keys`` present in ``data`` holds a string.

    Returns:
        str or None: error message for the first offending key, or None
    """
    for key in keys:
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            return f'{key} must be a string'
    return None


def validate_password_strength(password):
    """
    Check an admin-set password against the complexity policy.

    Returns:
        list: error messages, empty when the password is acceptable
    """
    if not isinstance(password, str):
        return ['Password is required']

    errors = []
    if len(password) < 12:
        errors.append('Password must be at least 12 characters')
    if len(password) > 128:
        errors.append('Password too long')
    if not re.search(r'[A-Z]', password):
        errors.append('Password must contain uppercase letter')
    if not re.search(r'[a-z]', password):
        errors.append('Password must contain lowercase letter')
    if not re.search(r'[0-9]', password):
        errors.append('Password must contain number')
    if not re.search(r'[^A-Za-z0-9]', password):
        errors.append('Password must contain special character')
    return errors


def validate_price(value, field='price', maximum=999999):
    """
    Parse a positive price no larger than ``maximum``.

    Returns:
        tuple: (float or None, error message or None)
    """
    if isinstance(value, bool):
        return None, f'{field} must be a number'
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None, f'{field} must be a number'
    if price != price or price in (float('inf'), float('-inf')):
        return None, f'{field} must be a finite number'
    if price <= 0:
        return None, 'Price must be positive'
    if price > maximum:
        return None, 'Price too high'
    return round(price, 2), None


def validate_int_range(value, field, minimum, maximum):
    """
    Parse an integer within [minimum, maximum].

    Returns:
        tuple: (int or None, error message or None)
    """
    if isinstance(value, bool):
        return None, f'{field} must be an integer'
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None, f'{field} must be an integer'
    if isinstance(value, float) and not value.is_integer():
        return None, f'{field} must be an integer'
    if number < minimum or number > maximum:
        return None, f'{field} must be between {minimum} and {maximum}'
    return number, None


def validate_image_url(url):
    """Accept http(s) URLs and paths served by the local bucket store."""
    if not url:
        return True
    if len(url) > 500:
        return False
    return url.startswith(('http://', 'https://', '/storage/'))


def normalize_booking_phone(phone):
    """
    Validate and normalise a Philippine mobile number to +639XXXXXXXXX.

    Returns:
        str or None: normalised number, or None if the format is invalid
    """
    if not phone:
        return None
    cleaned = phone.strip()
    if not re.match(BOOKING_PHONE_PATTERN, cleaned):
        return None
    if cleaned.startswith('0'):
        return '+63' + cleaned[1:]
    if cleaned.startswith('9'):
        return '+63' + cleaned
    return cleaned


def parse_iso_date(value):
    """
    Parse YYYY-MM-DD into a date.

    Returns:
        date or None if invalid
    """
    if not isinstance(value, str) or not re.match(r'^\d{4}-\d{2}-\d{2}$', value):
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        return None
