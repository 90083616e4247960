import os
import secrets
import logging
import tempfile
from dotenv import load_dotenv

load_dotenv()


def _require_in_production(var_name, default):
    """Return env var value. In production, warn loudly if still using default."""
    value = os.environ.get(var_name, "")
    if value:
        return value
    env = os.environ.get("FLASK_ENV", "development")
    if env != "development" and default:
        logging.getLogger(__name__).warning(
            "%s is using an insecure default. Set it via environment variable!", var_name
        )
    return default


def _database_url():
    url = os.environ.get("DATABASE_URL", "")
    if not url:
        return "sqlite:///marketplace.db"
    # SQLAlchemy 2.x only understands postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


class Config:
    """Base configuration"""

    # Flask
    SECRET_KEY = _require_in_production(
        'SECRET_KEY', 'dev-only-' + secrets.token_hex(16)
    )
    DEBUG = False
    TESTING = False

    # JWT Authentication
    JWT_SECRET = _require_in_production(
        'JWT_SECRET', 'dev-only-' + secrets.token_hex(32)
    )
    JWT_EXPIRES_DAYS = int(os.environ.get('JWT_EXPIRES_DAYS', '30'))

    # Database
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CORS
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')

    # Rate limiting (Redis in production, memory otherwise)
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL') or 'memory://'
    RATELIMIT_ENABLED = True

    # Request / upload limits
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16 MB
    MAX_UPLOAD_BYTES = int(os.environ.get('MAX_UPLOAD_BYTES', str(5 * 1024 * 1024)))
    STORAGE_ROOT = os.environ.get(
        'STORAGE_ROOT',
        os.path.join(os.path.dirname(os.path.abspath(__file__)), 'storage'),
    )

    # Booking slot grid
    BOOKING_OPEN_TIME = os.environ.get('BOOKING_OPEN_TIME', '09:00')
    BOOKING_CLOSE_TIME = os.environ.get('BOOKING_CLOSE_TIME', '18:00')
    BOOKING_SLOT_MINUTES = int(os.environ.get('BOOKING_SLOT_MINUTES', '30'))

    # AI support chat (OpenAI-compatible chat completions endpoint)
    AI_GATEWAY_URL = os.environ.get(
        'AI_GATEWAY_URL', 'https://api.openai.com/v1/chat/completions'
    )
    AI_API_KEY = os.environ.get('AI_API_KEY', '')
    AI_MODEL = os.environ.get('AI_MODEL', 'gpt-4o-mini')
    AI_TIMEOUT_SECONDS = float(os.environ.get('AI_TIMEOUT_SECONDS', '30'))

    # Socket.IO
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'eventlet')

    # Monitoring
    SENTRY_DSN = os.environ.get('SENTRY_DSN', '')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'threading')


class ProductionConfig(Config):
    """Production configuration"""
    SESSION_COOKIE_SECURE = True
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 10,
        'pool_recycle': 3600,
        'pool_pre_ping': True,
    }


class TestingConfig(Config):
    """Testing configuration with isolated database and safe defaults"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///:memory:')
    SECRET_KEY = 'test-secret-key'
    JWT_SECRET = 'test-jwt-secret'
    RATELIMIT_ENABLED = False
    SOCKETIO_ASYNC_MODE = 'threading'
    STORAGE_ROOT = os.path.join(tempfile.gettempdir(), 'marketplace_test_storage')
    AI_API_KEY = 'test-ai-key'
    SENTRY_DSN = ''


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}
