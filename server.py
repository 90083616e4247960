from flask import Flask, request, jsonify
from flask_cors import CORS
import os
import logging

import click
from werkzeug.exceptions import HTTPException

from sanitize import sanitize_dict
from extensions import limiter

from app_config import config
from auth_routes import auth_bp
from models import db as sqlalchemy_db, User, UserRole
from socket_events import socketio
from routes import (
    providers_bp, catalog_bp, bookings_bp, cart_bp, orders_bp, rentals_bp, chat_bp,
    reviews_bp, admin_bp, support_bp, upload_bp, navigation_bp,
)
from utils import user_message, validate_email, validate_password_strength

# ---------------------------------------------------------------------------
# Production startup checks
# ---------------------------------------------------------------------------
_startup_logger = logging.getLogger("marketplace.startup")

_CRITICAL_ENV_VARS = [
    "JWT_SECRET",
    "SECRET_KEY",
    "DATABASE_URL",
]

_RECOMMENDED_ENV_VARS = [
    "CORS_ORIGINS",
    "REDIS_URL",
    "AI_API_KEY",
]

# File-upload paths never carry JSON bodies worth sanitizing.
_SANITIZE_SKIP_PREFIXES = (
    "/api/storage/",
    "/storage/",
)


def _check_environment(flask_env, sentry_dsn):
    if flask_env in ("development", "testing"):
        return
    missing_critical = [v for v in _CRITICAL_ENV_VARS if not os.environ.get(v)]
    missing_recommended = [v for v in _RECOMMENDED_ENV_VARS if not os.environ.get(v)]

    if missing_critical:
        _startup_logger.critical(
            "MISSING CRITICAL ENV VARS (app may not work correctly): %s",
            ", ".join(missing_critical),
        )
    if missing_recommended:
        _startup_logger.warning(
            "Missing recommended env vars: %s",
            ", ".join(missing_recommended),
        )
    if not sentry_dsn:
        _startup_logger.warning(
            "SENTRY_DSN is not set -- error monitoring is disabled."
        )


def _init_sentry(dsn):
    """Sentry error monitoring (optional -- only active when SENTRY_DSN is set)."""
    if not dsn:
        return
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.1,
    )


def _allowed_origins(app, is_development):
    cors_env = app.config.get("CORS_ORIGINS") or ""
    origins = [o.strip() for o in cors_env.split(",") if o.strip()]
    if "*" in origins:
        if not is_development and not app.config.get("TESTING"):
            _startup_logger.critical(
                "CORS_ORIGINS is set to '*' in a non-development environment!"
            )
        return "*"
    return origins or "*"


def create_app(config_name=None, test_config=None):
    """Application factory."""
    config_name = config_name or os.environ.get("FLASK_ENV", "development")
    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config["default"]))
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=logging.DEBUG if app.config.get("DEBUG") else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _check_environment(config_name, app.config.get("SENTRY_DSN"))
    _init_sentry(app.config.get("SENTRY_DSN"))

    is_development = config_name == "development"
    origins = _allowed_origins(app, is_development)

    # -----------------------------------------------------------------------
    # Initialize extensions
    # -----------------------------------------------------------------------
    CORS(app, resources={r"/api/*": {"origins": origins}})
    sqlalchemy_db.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=origins,
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE"),
    )
    limiter.init_app(app)

    # -----------------------------------------------------------------------
    # Register blueprints
    # -----------------------------------------------------------------------
    app.register_blueprint(auth_bp)
    app.register_blueprint(providers_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(rentals_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(reviews_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(support_bp)
    app.register_blueprint(upload_bp)
    app.register_blueprint(navigation_bp)

    _register_error_handlers(app)
    _register_middleware(app, is_development)
    _register_cli(app)

    @app.route("/api/health", methods=["GET"])
    @limiter.exempt
    def health_check():
        """Health check endpoint (exempt from rate limiting)"""
        return jsonify({"status": "healthy", "service": "Marketplace API"}), 200

    # -----------------------------------------------------------------------
    # Create all SQLAlchemy tables on startup
    # -----------------------------------------------------------------------
    with app.app_context():
        sqlalchemy_db.create_all()

    return app


def _register_error_handlers(app):
    @app.errorhandler(429)
    def ratelimit_handler(e):
        # Retry-After header is automatically set by Flask-Limiter; read it back.
        retry_after = e.get_headers().get("Retry-After") if hasattr(e, "get_headers") else None
        retry_after_seconds = int(retry_after) if retry_after else 60
        return jsonify({
            "error": "Too many requests. Please try again later.",
            "retry_after": retry_after_seconds,
        }), 429

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"error": "Request body too large"}), 413

    @app.errorhandler(Exception)
    def unhandled_exception(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        sqlalchemy_db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": user_message(e, "Something went wrong. Please try again.")}), 500


def _register_middleware(app, is_development):
    # -----------------------------------------------------------------------
    # Input sanitization middleware (XSS / injection prevention)
    # -----------------------------------------------------------------------
    @app.before_request
    def sanitize_json_input():
        """Sanitize all string values in incoming JSON bodies.

        Skips file uploads and views marked with ``accepts_raw_json``, which
        check lengths on the raw text and escape it on write. Password fields
        are always passed through untouched.
        """
        if request.path.startswith(_SANITIZE_SKIP_PREFIXES):
            return  # skip
        view = app.view_functions.get(request.endpoint)
        if getattr(view, "accepts_raw_json", False):
            return

        if request.is_json:
            raw = request.get_json(silent=True)
            if raw is not None:
                # Replace the parsed JSON cache (strict and silent slots) so
                # downstream calls to request.get_json() return clean values.
                sanitized = sanitize_dict(raw)
                request._cached_json = (sanitized, sanitized)

    # -----------------------------------------------------------------------
    # Security headers middleware
    # -----------------------------------------------------------------------
    @app.after_request
    def set_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
        if not request.path.startswith("/storage/"):
            response.headers["Content-Security-Policy"] = "default-src 'none'"
        if not is_development and not app.config.get("TESTING"):
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


def _register_cli(app):
    # -----------------------------------------------------------------------
    # Flask CLI commands:  flask init-db / flask create-admin
    # -----------------------------------------------------------------------
    @app.cli.command("init-db")
    def cli_init_db():
        """Create any missing tables."""
        sqlalchemy_db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("create-admin")
    @click.option("--email", required=True)
    @click.option("--password", required=True)
    @click.option("--full-name", default="Admin")
    def cli_create_admin(email, password, full_name):
        """Create an admin account, or grant admin to an existing one."""
        email = email.strip().lower()
        if not validate_email(email):
            raise click.BadParameter("invalid email address", param_hint="--email")
        errors = validate_password_strength(password)
        if errors:
            raise click.BadParameter("; ".join(errors), param_hint="--password")

        user = User.query.filter_by(email=email).first()
        if not user:
            user = User(email=email, full_name=full_name)
            sqlalchemy_db.session.add(user)
        user.set_password(password)
        if not user.has_role("admin"):
            user.roles.append(UserRole(role="admin"))
        sqlalchemy_db.session.commit()
        click.echo("{} is now an admin.".format(email))
