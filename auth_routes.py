"""
Authentication Routes for the Marketplace Backend
Handles email registration, login, JWT issuing and the current-user profile.
"""

from flask import Blueprint, request, jsonify, current_app
import jwt
import datetime
import logging
from functools import wraps

from models import db, User, UserRole
from extensions import limiter
from navigation import resolve_display_role
from sanitize import accepts_raw_json, sanitize_string
from utils import validate_email, validate_length, validate_string_fields

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

logger = logging.getLogger(__name__)

SELF_ASSIGNABLE_ROLES = ('customer', 'service_provider')

# MARK: - Token Helpers

def generate_token(user_id):
    """Generate JWT token for user"""
    payload = {
        'user_id': user_id,
        'exp': datetime.datetime.now(datetime.timezone.utc)
        + datetime.timedelta(days=current_app.config.get('JWT_EXPIRES_DAYS', 30)),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET'], algorithm='HS256')


def verify_token(token):
    """Verify JWT token and return user_id"""
    if not token:
        return None
    try:
        payload = jwt.decode(token, current_app.config['JWT_SECRET'], algorithms=['HS256'])
        return payload.get('user_id')
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def _bearer_token():
    return request.headers.get('Authorization', '').replace('Bearer ', '')


def require_auth(f):
    """Decorator to require authentication"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = verify_token(_bearer_token())
        if not user_id or not db.session.get(User, user_id):
            return jsonify({'error': 'Unauthorized'}), 401
        return f(user_id=user_id, *args, **kwargs)
    return decorated_function


def optional_auth(f):
    """Decorator that passes user_id if authenticated, None otherwise."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        user_id = verify_token(token) if token else None
        if user_id and not db.session.get(User, user_id):
            user_id = None
        return f(user_id=user_id, *args, **kwargs)
    return decorated_function


def require_roles(*roles):
    """Decorator factory: authenticated user must hold at least one of ``roles``."""
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated_function(user_id, *args, **kwargs):
            user = db.session.get(User, user_id)
            if not any(user.has_role(r) for r in roles):
                return jsonify({'error': 'Forbidden'}), 403
            return f(user_id=user_id, *args, **kwargs)
        return decorated_function
    return decorator


require_admin = require_roles('admin')


def user_payload(user):
    """Private profile plus role information for the signed-in user."""
    data = user.to_dict(include_private=True)
    data['display_role'] = resolve_display_role(user.role_names)
    data['provider_id'] = user.provider_profile.id if user.provider_profile else None
    return data

# MARK: - Email Authentication Routes

@auth_bp.route('/register', methods=['POST'])
@accepts_raw_json
@limiter.limit("5 per minute")
def register():
    """Create new user account with email/password"""
    data = request.get_json(silent=True) or {}
    err = validate_string_fields(data, 'email', 'password', 'full_name', 'phone', 'role')
    if err:
        return jsonify({'error': err}), 400
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    full_name = (data.get('full_name') or '').strip()
    phone = (data.get('phone') or '').strip() or None
    role = data.get('role') or 'customer'

    if not validate_email(email):
        return jsonify({'error': 'A valid email is required'}), 400
    if len(password) < 6:
        return jsonify({'error': 'Password must be at least 6 characters'}), 400
    err = validate_length(full_name, 'Full name', min_length=2, max_length=100)
    if err:
        return jsonify({'error': err}), 400
    if phone and len(phone) > 20:
        return jsonify({'error': 'phone must be less than 20 characters'}), 400
    if role not in SELF_ASSIGNABLE_ROLES:
        return jsonify({'error': 'Invalid role'}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'Email already registered'}), 409

    user = User(email=email, full_name=sanitize_string(full_name), phone=sanitize_string(phone))
    user.set_password(password)
    user.roles.append(UserRole(role=role))
    db.session.add(user)
    db.session.commit()
    logger.info("New %s account registered: %s", role, user.id)

    return jsonify({
        'success': True,
        'token': generate_token(user.id),
        'user': user_payload(user),
    }), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    """Login with email and password"""
    data = request.get_json(silent=True) or {}
    err = validate_string_fields(data, 'email', 'password')
    if err:
        return jsonify({'error': err}), 400
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')

    if not email or not password:
        return jsonify({'error': 'Email and password required'}), 400

    db_user = User.query.filter_by(email=email).first()
    if not db_user or not db_user.check_password(password):
        return jsonify({'error': 'Invalid email or password'}), 401

    return jsonify({
        'success': True,
        'token': generate_token(db_user.id),
        'user': user_payload(db_user),
    })

# MARK: - Current User

@auth_bp.route('/me', methods=['GET'])
@require_auth
def get_current_user(user_id):
    """Get current authenticated user profile"""
    db_user = db.session.get(User, user_id)
    return jsonify({'success': True, 'user': user_payload(db_user)})


@auth_bp.route('/me', methods=['PUT'])
@accepts_raw_json
@require_auth
def update_profile(user_id):
    """Update current user profile (name, phone, address, zip code)"""
    db_user = db.session.get(User, user_id)
    data = request.get_json(silent=True) or {}
    err = validate_string_fields(data, 'full_name', 'phone', 'address', 'zip_code')
    if err:
        return jsonify({'error': err}), 400

    if 'full_name' in data and data['full_name'] is not None:
        full_name = data['full_name'].strip()
        err = validate_length(full_name, 'Full name', min_length=2, max_length=100)
        if err:
            return jsonify({'error': err}), 400
        db_user.full_name = sanitize_string(full_name)

    for field, max_length in (('phone', 20), ('address', 500), ('zip_code', 20)):
        if field in data:
            value = (data[field] or '').strip()
            if len(value) > max_length:
                return jsonify({'error': f'{field} must be less than {max_length} characters'}), 400
            setattr(db_user, field, sanitize_string(value) or None)

    db.session.commit()
    return jsonify({'success': True, 'user': user_payload(db_user)})


@auth_bp.route('/change-password', methods=['PUT'])
@require_auth
def change_password(user_id):
    """Change the current user's password"""
    db_user = db.session.get(User, user_id)
    data = request.get_json(silent=True) or {}
    err = validate_string_fields(data, 'current_password', 'new_password')
    if err:
        return jsonify({'error': err}), 400
    current_password = data.get('current_password')
    new_password = data.get('new_password')

    if not current_password or not new_password:
        return jsonify({'error': 'Current password and new password are required'}), 400

    if not db_user.check_password(current_password):
        return jsonify({'error': 'Current password is incorrect'}), 401

    if len(new_password) < 6:
        return jsonify({'error': 'New password must be at least 6 characters'}), 400

    db_user.set_password(new_password)
    db.session.commit()

    return jsonify({'success': True, 'message': 'Password changed successfully'})
