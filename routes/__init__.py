"""
Marketplace API Route Blueprints
"""
from .providers import providers_bp
from .catalog import catalog_bp
from .bookings import bookings_bp
from .cart import cart_bp
from .orders import orders_bp
from .rentals import rentals_bp
from .chat import chat_bp
from .reviews import reviews_bp
from .admin import admin_bp
from .support import support_bp
from .upload import upload_bp
from .navigation import navigation_bp

__all__ = [
    "providers_bp",
    "catalog_bp",
    "bookings_bp",
    "cart_bp",
    "orders_bp",
    "rentals_bp",
    "chat_bp",
    "reviews_bp",
    "admin_bp",
    "support_bp",
    "upload_bp",
    "navigation_bp",
]
