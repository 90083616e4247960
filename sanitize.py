"""Input sanitization utilities to prevent XSS and injection attacks."""

import html

# Keys whose values must reach the handler byte-for-byte.
RAW_KEYS = frozenset({"password", "new_password", "current_password"})


def sanitize_string(value):
    """Escape HTML entities in a string.

    Converts < > & " ' to their HTML entity equivalents so that
    user-supplied strings cannot inject markup or script tags.
    """
    if not isinstance(value, str):
        return value
    return html.escape(value, quote=True)


def sanitize_text(value):
    """Escape a free-text field for storage, also neutralising slashes.

    Used for provider business fields that are rendered inside other
    people's pages. Empty input becomes None.
    """
    if not value:
        return None
    return sanitize_string(value).replace("/", "&#x2F;")


def sanitize_dict(data, raw_keys=RAW_KEYS):
    """Recursively walk a dict/list structure and sanitize all string values.

    Values stored under a key in ``raw_keys`` are left untouched.
    Non-string leaves (int, float, bool, None) are returned unchanged.
    """
    if isinstance(data, dict):
        return {
            key: value if key in raw_keys else sanitize_dict(value, raw_keys)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [sanitize_dict(item, raw_keys) for item in data]
    if isinstance(data, str):
        return sanitize_string(data)
    return data


def accepts_raw_json(f):
    """Mark a view that validates raw JSON input and escapes it on write.

    Must sit directly under the route decorator so the flag lands on the
    registered view function.
    """
    f.accepts_raw_json = True
    return f
