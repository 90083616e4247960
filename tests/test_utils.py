"""
Validation, sanitization and helper tests
"""
from datetime import date

from sanitize import accepts_raw_json, sanitize_dict, sanitize_text
from utils import (
    normalize_booking_phone, parse_iso_date, validate_length, validate_password_strength,
    validate_price, validate_string_fields, user_message, is_unique_violation,
)


class TestSanitize:
    """Test HTML escaping of request bodies"""

    def test_nested_values_escaped(self):
        data = sanitize_dict({'name': '<b>Hi</b>', 'tags': ['a&b'], 'count': 3})
        assert data == {'name': '&lt;b&gt;Hi&lt;/b&gt;', 'tags': ['a&amp;b'], 'count': 3}

    def test_password_fields_untouched(self):
        data = sanitize_dict({'password': 'p<ss&', 'new_password': 'x"y', 'email': 'a<b'})
        assert data['password'] == 'p<ss&'
        assert data['new_password'] == 'x"y'
        assert data['email'] == 'a&lt;b'

    def test_sanitize_text_escapes_slashes(self):
        assert sanitize_text('A/B & C') == 'A&#x2F;B &amp; C'
        assert sanitize_text('') is None

    def test_raw_json_marker(self):
        @accepts_raw_json
        def view():
            pass

        assert view.accepts_raw_json is True


class TestValidators:
    """Test input validators"""

    def test_booking_phone_normalised(self):
        assert normalize_booking_phone('09171234567') == '+639171234567'
        assert normalize_booking_phone('9171234567') == '+639171234567'
        assert normalize_booking_phone('+639171234567') == '+639171234567'
        assert normalize_booking_phone('0917123456') is None
        assert normalize_booking_phone('08171234567') is None

    def test_parse_iso_date(self):
        assert parse_iso_date('2030-02-28') == date(2030, 2, 28)
        assert parse_iso_date('2030-02-30') is None
        assert parse_iso_date('28/02/2030') is None
        assert parse_iso_date(None) is None

    def test_validate_length(self):
        assert validate_length('ab', 'Name', 2, 5) is None
        assert validate_length('a', 'Name', 2, 5) == 'Name must be at least 2 characters'
        assert validate_length('', 'Name', 2, 5) == 'Name is required'
        assert validate_length('', 'Name', 2, 5, required=False) is None

    def test_validate_string_fields(self):
        assert validate_string_fields({'a': 'x', 'b': None}, 'a', 'b', 'c') is None
        assert validate_string_fields({'a': 'x', 'b': 5}, 'a', 'b') == 'b must be a string'
        assert validate_string_fields({'a': ['x']}, 'a') == 'a must be a string'

    def test_password_strength(self):
        assert validate_password_strength('Abcdefgh123!') == []
        assert len(validate_password_strength('abc')) == 4
        assert validate_password_strength(None) == ['Password is required']

    def test_validate_price(self):
        assert validate_price('12.5')[0] == 12.5
        assert validate_price(0)[1] is not None
        assert validate_price('free')[1] is not None


class TestHelpers:
    """Test error helpers"""

    def test_user_message_prefers_short_text(self):
        assert user_message(ValueError('Bad input'), 'Oops') == 'Bad input'
        assert user_message(ValueError('x' * 500), 'Oops') == 'Oops'
        assert user_message(None, 'Oops') == 'Oops'

    def test_unique_violation_detection(self):
        class Orig(Exception):
            pass

        class Wrapped(Exception):
            def __init__(self, orig):
                super().__init__(str(orig))
                self.orig = orig

        assert is_unique_violation(Wrapped(Orig('UNIQUE constraint failed: bookings.provider_id')))
        assert not is_unique_violation(Wrapped(Orig('CHECK constraint failed')))
