"""
Role-based floating navigation menu.

The client renders whatever menu this module returns; nothing here touches
the database. Roles come from the caller (usually ``User.role_names``).
"""

# Highest precedence first.
ROLE_PRECEDENCE = ("admin", "service_provider", "customer")

PUBLIC_MENU = [
    {"label": "Home", "path": "/"},
    {"label": "Login", "path": "/login"},
    {"label": "Products", "path": "/products"},
    {"label": "Renting", "path": "/renting"},
    {"label": "Admin", "path": "/admin"},
]

PROVIDER_DASHBOARD_MENU = [
    {"label": "Dashboard", "path": "/provider/dashboard"},
    {"label": "My Services", "path": "/provider/services"},
    {"label": "My Products", "path": "/provider/products"},
    {"label": "My Equipment", "path": "/provider/equipment"},
    {"label": "Product Orders", "path": "/provider/orders"},
    {"label": "Service Bookings", "path": "/provider/bookings"},
    {"label": "Equipment Rentals", "path": "/provider/rentals"},
    {"label": "Business Profile", "path": "/provider/settings"},
    {"label": "Logout", "path": "#", "action": "logout"},
]

ROLE_MENUS = {
    "admin": [
        {"label": "Home", "path": "/"},
        {"label": "Products", "path": "/products"},
        {"label": "Renting", "path": "/renting"},
        {"label": "Admin", "path": "/admin"},
    ],
    "service_provider": [
        {"label": "Home", "path": "/"},
        {"label": "Products", "path": "/products"},
        {"label": "Renting", "path": "/renting"},
        {"label": "Dashboard", "path": "/provider/dashboard"},
    ],
    "customer": [
        {"label": "Home", "path": "/"},
        {"label": "Products", "path": "/products"},
        {"label": "Renting", "path": "/renting"},
        {"label": "Me", "path": "/me"},
    ],
}


def resolve_display_role(roles):
    """Pick the single role the UI presents for a set of granted roles.

    admin beats service_provider beats customer. An authenticated user with
    no role rows at all is treated as a customer.
    """
    granted = set(roles or ())
    for role in ROLE_PRECEDENCE:
        if role in granted:
            return role
    return "customer"


def is_admin_route(path):
    return path == "/admin" or path.startswith("/admin/")


def is_provider_route(path):
    return path.startswith("/provider/")


def menu_for(path, roles=None, authenticated=False, auth_checking=False):
    """Return the menu items for ``path``, or None where no floating menu shows.

    Admin pages carry their own sidebar, so they never get one.
    """
    path = path or "/"
    if is_admin_route(path):
        return None

    # An in-flight auth check must not flash role-specific entries.
    if auth_checking:
        return list(PUBLIC_MENU)

    role = resolve_display_role(roles) if authenticated else None

    if is_provider_route(path) and role == "service_provider":
        return list(PROVIDER_DASHBOARD_MENU)

    if not authenticated:
        return list(PUBLIC_MENU)

    return list(ROLE_MENUS[role])
