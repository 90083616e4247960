"""
Shopping cart and checkout tests
"""
import json
import pytest

from cart import Cart, CartError
from models import ProductOrder


class TestCartModel:
    """Test cart accumulation and clamping"""

    def test_add_and_totals(self):
        cart = Cart()
        cart.add_item('p1', 'Shampoo', 250.0, stock_quantity=5, quantity=2)
        cart.add_item('p2', 'Comb', 49.5, stock_quantity=10)
        assert cart.total_items == 3
        assert cart.total_price == 549.5

    def test_adding_existing_item_bumps_quantity(self):
        cart = Cart()
        cart.add_item('p1', 'Shampoo', 250.0, stock_quantity=5)
        cart.add_item('p1', 'Shampoo', 250.0, stock_quantity=5, quantity=2)
        assert len(cart) == 1
        assert cart.total_items == 3

    def test_quantity_never_exceeds_stock(self):
        cart = Cart()
        cart.add_item('p1', 'Shampoo', 250.0, stock_quantity=3, quantity=10)
        assert cart.total_items == 3
        cart.adjust_quantity('p1', 5)
        assert cart.items[0]['quantity'] == 3

    def test_quantity_never_below_one(self):
        cart = Cart()
        cart.add_item('p1', 'Shampoo', 250.0, stock_quantity=3, quantity=2)
        cart.update_quantity('p1', 0)
        assert cart.items[0]['quantity'] == 1
        cart.adjust_quantity('p1', -4)
        assert cart.items[0]['quantity'] == 1

    def test_out_of_stock_rejected(self):
        with pytest.raises(CartError):
            Cart().add_item('p1', 'Shampoo', 250.0, stock_quantity=0)

    def test_remove_and_clear(self):
        cart = Cart()
        cart.add_item('p1', 'Shampoo', 250.0, stock_quantity=3)
        cart.add_item('p2', 'Comb', 50.0, stock_quantity=3)
        assert cart.remove_item('p1')
        assert not cart.remove_item('p1')
        cart.clear()
        assert cart.total_items == 0
        assert cart.total_price == 0

    def test_round_trip_through_session_dict(self):
        session = {}
        cart = Cart()
        cart.add_item('p1', 'Shampoo', 250.0, stock_quantity=3, quantity=2)
        session['cart'] = cart.to_list()
        restored = Cart.from_session(session)
        assert restored.to_dict() == cart.to_dict()


class TestCartEndpoints:
    """Test the session-backed cart API"""

    def test_add_item_uses_product_price(self, client, product):
        response = client.post('/api/cart/items', json={'product_id': product.id, 'quantity': 2})
        assert response.status_code == 200
        cart = json.loads(response.data)['cart']
        assert cart['total_items'] == 2
        assert cart['total_price'] == 500.0

    def test_cart_persists_in_session(self, client, product):
        client.post('/api/cart/items', json={'product_id': product.id})
        response = client.get('/api/cart')
        assert json.loads(response.data)['cart']['total_items'] == 1

    def test_patch_clamps_to_stock(self, client, product):
        client.post('/api/cart/items', json={'product_id': product.id})
        response = client.patch(f'/api/cart/items/{product.id}', json={'quantity': 99})
        assert json.loads(response.data)['item']['quantity'] == product.stock_quantity

        response = client.patch(f'/api/cart/items/{product.id}', json={'delta': -50})
        assert json.loads(response.data)['item']['quantity'] == 1

    def test_unknown_product(self, client, app):
        response = client.post('/api/cart/items', json={'product_id': 'missing'})
        assert response.status_code == 404

    def test_non_string_product_id(self, client, app):
        response = client.post('/api/cart/items', json={'product_id': {'id': 1}})
        assert response.status_code == 404

    def test_remove_missing_line(self, client, app):
        response = client.delete('/api/cart/items/nothing-here')
        assert response.status_code == 404


class TestCheckout:
    """Test POST /api/orders/checkout"""

    def test_checkout_creates_one_order_per_line(self, client, customer_headers, customer, product):
        client.post('/api/cart/items', json={'product_id': product.id, 'quantity': 3})
        response = client.post('/api/orders/checkout', headers=customer_headers, json={
            'delivery_address': '45 Rizal Avenue, Manila',
            'notes': 'Leave at the gate',
        })
        assert response.status_code == 201
        orders = json.loads(response.data)['orders']
        assert len(orders) == 1
        assert orders[0]['quantity'] == 3
        assert orders[0]['total_price'] == 750.0
        assert orders[0]['status'] == 'pending'
        assert orders[0]['provider_id'] == product.provider_id

        # Cart is emptied after checkout
        cart = json.loads(client.get('/api/cart').data)['cart']
        assert cart['items'] == []
        assert ProductOrder.query.filter_by(customer_id=customer.id).count() == 1

    def test_empty_cart(self, client, customer_headers):
        response = client.post('/api/orders/checkout', headers=customer_headers, json={
            'delivery_address': '45 Rizal Avenue, Manila',
        })
        assert response.status_code == 400

    def test_short_address_rejected(self, client, customer_headers, product):
        client.post('/api/cart/items', json={'product_id': product.id})
        response = client.post('/api/orders/checkout', headers=customer_headers, json={
            'delivery_address': 'Short',
        })
        assert response.status_code == 400
        # Cart is kept when validation fails
        assert json.loads(client.get('/api/cart').data)['cart']['total_items'] == 1

    def test_limits_apply_before_escaping(self, client, customer_headers, product):
        client.post('/api/cart/items', json={'product_id': product.id})
        address = '12 "A" & B St, Unit <5>'.ljust(500, '&')
        response = client.post('/api/orders/checkout', headers=customer_headers, json={
            'delivery_address': address,
            'notes': "Don't knock" + "!" * 489,
        })
        assert response.status_code == 201
        order = json.loads(response.data)['orders'][0]
        assert order['delivery_address'].startswith('12 &quot;A&quot; &amp; B St, Unit &lt;5&gt;')
        assert order['notes'].startswith('Don&#x27;t knock')

    def test_non_string_address_rejected(self, client, customer_headers, product):
        client.post('/api/cart/items', json={'product_id': product.id})
        response = client.post('/api/orders/checkout', headers=customer_headers, json={
            'delivery_address': {'street': '45 Rizal Avenue'},
        })
        assert response.status_code == 400

    def test_requires_auth(self, client, product):
        client.post('/api/cart/items', json={'product_id': product.id})
        response = client.post('/api/orders/checkout', json={'delivery_address': '45 Rizal Avenue'})
        assert response.status_code == 401
