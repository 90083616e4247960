"""
Role-based navigation menu tests
"""
import json

from navigation import resolve_display_role, menu_for


def _labels(menu):
    return [item['label'] for item in menu]


class TestDisplayRole:
    """Test role precedence"""

    def test_admin_beats_provider(self):
        assert resolve_display_role(['service_provider', 'admin']) == 'admin'

    def test_provider_beats_customer(self):
        assert resolve_display_role(['customer', 'service_provider']) == 'service_provider'

    def test_no_roles_means_customer(self):
        assert resolve_display_role([]) == 'customer'
        assert resolve_display_role(None) == 'customer'


class TestMenuFor:
    """Test menu selection per route and role"""

    def test_logged_out_menu(self):
        assert _labels(menu_for('/')) == ['Home', 'Login', 'Products', 'Renting', 'Admin']

    def test_auth_check_in_flight_shows_logged_out_menu(self):
        menu = menu_for('/', ['admin'], authenticated=True, auth_checking=True)
        assert _labels(menu) == ['Home', 'Login', 'Products', 'Renting', 'Admin']

    def test_admin_routes_have_no_menu(self):
        assert menu_for('/admin', ['admin'], authenticated=True) is None
        assert menu_for('/admin/users', ['admin'], authenticated=True) is None
        assert menu_for('/admin/users', auth_checking=True) is None

    def test_role_menus(self):
        assert _labels(menu_for('/', ['admin'], True)) == ['Home', 'Products', 'Renting', 'Admin']
        assert _labels(menu_for('/', ['service_provider', 'customer'], True)) == [
            'Home', 'Products', 'Renting', 'Dashboard',
        ]
        assert _labels(menu_for('/', ['customer'], True)) == ['Home', 'Products', 'Renting', 'Me']
        assert _labels(menu_for('/', [], True)) == ['Home', 'Products', 'Renting', 'Me']

    def test_provider_routes_get_dashboard_menu(self):
        menu = menu_for('/provider/bookings', ['service_provider'], True)
        assert menu[0] == {'label': 'Dashboard', 'path': '/provider/dashboard'}
        assert menu[-1]['action'] == 'logout'

    def test_provider_route_for_customer_uses_role_menu(self):
        assert _labels(menu_for('/provider/bookings', ['customer'], True))[-1] == 'Me'


class TestNavigationEndpoint:
    """Test GET /api/navigation"""

    def test_anonymous(self, client):
        response = client.get('/api/navigation?path=/products')
        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['authenticated'] is False
        assert data['display_role'] is None
        assert _labels(data['menu'])[1] == 'Login'

    def test_provider(self, client, provider_headers):
        response = client.get('/api/navigation?path=/', headers=provider_headers)
        data = json.loads(response.data)
        assert data['display_role'] == 'service_provider'
        assert _labels(data['menu'])[-1] == 'Dashboard'

    def test_admin_page(self, client, admin_headers):
        response = client.get('/api/navigation?path=/admin', headers=admin_headers)
        assert json.loads(response.data)['menu'] is None
