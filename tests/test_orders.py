"""
Product order lifecycle tests
"""
import json
import pytest

from models import db, ProductOrder


@pytest.fixture
def order(customer, product):
    """A pending order for two bottles of shampoo"""
    record = ProductOrder(
        customer_id=customer.id,
        provider_id=product.provider_id,
        product_id=product.id,
        quantity=2,
        total_price=500.0,
        delivery_address='45 Rizal Avenue, Manila',
    )
    db.session.add(record)
    db.session.commit()
    return record


class TestOrderListings:
    """Test customer and provider order listings"""

    def test_customer_sees_own_orders(self, client, customer_headers, order):
        response = client.get('/api/orders', headers=customer_headers)
        assert response.status_code == 200
        orders = json.loads(response.data)['orders']
        assert [o['id'] for o in orders] == [order.id]

    def test_other_customer_sees_nothing(self, client, other_customer_headers, order):
        orders = json.loads(client.get('/api/orders', headers=other_customer_headers).data)['orders']
        assert orders == []

    def test_provider_listing_with_filter(self, client, provider_headers, order):
        response = client.get('/api/orders/provider?status=pending', headers=provider_headers)
        assert len(json.loads(response.data)['orders']) == 1

        response = client.get('/api/orders/provider?status=shipped', headers=provider_headers)
        assert json.loads(response.data)['orders'] == []

    def test_provider_listing_rejects_unknown_status(self, client, provider_headers, order):
        response = client.get('/api/orders/provider?status=lost', headers=provider_headers)
        assert response.status_code == 400

    def test_customer_cannot_use_provider_listing(self, client, customer_headers):
        response = client.get('/api/orders/provider', headers=customer_headers)
        assert response.status_code == 403


class TestOrderStatus:
    """Test status transitions"""

    def test_provider_walks_order_to_completion(self, client, provider_headers, order):
        for status in ('processing', 'shipped', 'completed'):
            response = client.put(f'/api/orders/{order.id}/status', headers=provider_headers,
                                  json={'status': status})
            assert response.status_code == 200
            assert json.loads(response.data)['order']['status'] == status

    def test_cannot_skip_to_shipped(self, client, provider_headers, order):
        response = client.put(f'/api/orders/{order.id}/status', headers=provider_headers,
                              json={'status': 'shipped'})
        assert response.status_code == 400

    def test_other_provider_forbidden(self, client, other_provider_headers, order):
        response = client.put(f'/api/orders/{order.id}/status', headers=other_provider_headers,
                              json={'status': 'processing'})
        assert response.status_code == 403

    def test_admin_may_update(self, client, admin_headers, order):
        response = client.put(f'/api/orders/{order.id}/status', headers=admin_headers,
                              json={'status': 'cancelled'})
        assert response.status_code == 200


class TestCustomerCancel:
    """Test POST /api/orders/<id>/cancel"""

    def test_cancel_pending(self, client, customer_headers, order):
        response = client.post(f'/api/orders/{order.id}/cancel', headers=customer_headers)
        assert response.status_code == 200
        assert json.loads(response.data)['order']['status'] == 'cancelled'

    def test_cannot_cancel_processing(self, client, customer_headers, provider_headers, order):
        client.put(f'/api/orders/{order.id}/status', headers=provider_headers,
                   json={'status': 'processing'})
        response = client.post(f'/api/orders/{order.id}/cancel', headers=customer_headers)
        assert response.status_code == 400

    def test_cannot_cancel_someone_elses(self, client, other_customer_headers, order):
        response = client.post(f'/api/orders/{order.id}/cancel', headers=other_customer_headers)
        assert response.status_code == 404
