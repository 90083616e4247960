"""
Pytest configuration and fixtures for marketplace backend tests
"""
import pytest
from datetime import date, timedelta

from server import create_app
from models import db, User, UserRole, ServiceProvider, Service, Product, Equipment
from auth_routes import generate_token


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application instance for testing (fresh in-memory database per test)"""
    app = create_app('testing', {'STORAGE_ROOT': str(tmp_path / 'storage')})

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


def _make_user(email, full_name, roles, password='secret123'):
    user = User(email=email, full_name=full_name, phone='09171234567')
    user.set_password(password)
    for role in roles:
        user.roles.append(UserRole(role=role))
    db.session.add(user)
    db.session.commit()
    return user


def _headers(user):
    return {
        'Authorization': f'Bearer {generate_token(user.id)}',
        'Content-Type': 'application/json',
    }


@pytest.fixture
def customer(app):
    """Create a test customer user"""
    return _make_user('customer@example.com', 'Maria Santos', ['customer'])


@pytest.fixture
def other_customer(app):
    return _make_user('other@example.com', 'Jose Reyes', ['customer'])


@pytest.fixture
def provider_user(app):
    """Create a user holding the service_provider role"""
    return _make_user('provider@example.com', 'Ana Cruz', ['service_provider'])


@pytest.fixture
def provider(provider_user):
    """Create the business profile for provider_user"""
    profile = ServiceProvider(
        user_id=provider_user.id,
        business_name='Glow Studio',
        description='Hair and nail care in the city centre.',
        address='12 Main Street, Makati',
        zip_code='1200',
    )
    db.session.add(profile)
    db.session.commit()
    return profile


@pytest.fixture
def other_provider(app):
    user = _make_user('rival@example.com', 'Ben Lim', ['service_provider'])
    profile = ServiceProvider(
        user_id=user.id,
        business_name='Rival Salon',
        address='99 Side Street, Pasig',
        zip_code='1600',
    )
    db.session.add(profile)
    db.session.commit()
    return profile


@pytest.fixture
def admin(app):
    """Create a test admin user"""
    return _make_user('admin@example.com', 'Site Admin', ['admin'])


@pytest.fixture
def customer_headers(customer):
    """Generate auth headers with JWT token for customer"""
    return _headers(customer)


@pytest.fixture
def other_customer_headers(other_customer):
    return _headers(other_customer)


@pytest.fixture
def provider_headers(provider_user, provider):
    """Generate auth headers with JWT token for the provider"""
    return _headers(provider_user)


@pytest.fixture
def other_provider_headers(other_provider):
    return _headers(other_provider.user)


@pytest.fixture
def admin_headers(admin):
    """Generate auth headers with JWT token for admin"""
    return _headers(admin)


@pytest.fixture
def customer_token(customer):
    return generate_token(customer.id)


@pytest.fixture
def provider_token(provider_user, provider):
    return generate_token(provider_user.id)


@pytest.fixture
def service(provider):
    """Create an active service offered by the provider"""
    svc = Service(
        provider_id=provider.id,
        name='Haircut',
        description='Wash, cut and style',
        duration_minutes=60,
        price=500.0,
    )
    db.session.add(svc)
    db.session.commit()
    return svc


@pytest.fixture
def product(provider):
    """Create an active product with limited stock"""
    item = Product(
        provider_id=provider.id,
        name='Shampoo',
        description='Salon grade shampoo',
        price=250.0,
        stock_quantity=5,
    )
    db.session.add(item)
    db.session.commit()
    return item


@pytest.fixture
def equipment(provider):
    """Create rentable equipment"""
    item = Equipment(
        provider_id=provider.id,
        name='Hair Dryer',
        description='Professional hood dryer',
        price_per_day=300.0,
    )
    db.session.add(item)
    db.session.commit()
    return item


@pytest.fixture
def future_date():
    """A bookable date a few days from now (YYYY-MM-DD)"""
    return (date.today() + timedelta(days=3)).isoformat()
