"""
Helper utilities
"""
MAX_USER_MESSAGE_LENGTH = 200


def user_message(error, fallback):
    """
    Turn an exception (or message) into text safe to show an end user.

    The error's own message is used when present and reasonably short;
    otherwise ``fallback`` is returned.
    """
    message = error if isinstance(error, str) else getattr(error, 'message', None) or (
        str(error) if error is not None else ''
    )
    if isinstance(message, str) and 0 < len(message) < MAX_USER_MESSAGE_LENGTH:
        return message
    return fallback


def is_unique_violation(error):
    """
    Check whether a database error is a unique-constraint violation.

    Works for PostgreSQL (SQLSTATE 23505) and SQLite.
    """
    orig = getattr(error, 'orig', error)
    if getattr(orig, 'pgcode', None) == '23505' or getattr(orig, 'sqlstate', None) == '23505':
        return True
    text = str(orig)
    return 'UNIQUE constraint failed' in text or 'duplicate key value' in text


def paginate_query(query, page=1, per_page=20):
    """Helper to paginate SQLAlchemy queries"""
    page = max(1, page)
    per_page = min(100, max(1, per_page))  # Cap at 100 items per page

    paginated = query.paginate(page=page, per_page=per_page, error_out=False)

    return {
        'items': paginated.items,
        'total': paginated.total,
        'page': page,
        'per_page': per_page,
        'pages': paginated.pages,
    }


def safe_int(value, default=0):
    """
    Safely convert value to int

    Args:
        value: Value to convert
        default (int): Default value if conversion fails

    Returns:
        int: Converted value or default
    """
    try:
        return int(value)
    except (ValueError, TypeError):
        return default
