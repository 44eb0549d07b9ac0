"""
End-to-end tests through the HTTP API.
"""
from storefront.models import CartItem, Order


def signup(client, email='shopper@test.com', password='secret123'):
    return client.post('/api/auth/signup', json={'email': email, 'password': password, 'full_name': 'Shopper'})


def signin(client, email, password='password123'):
    return client.post('/api/auth/signin', json={'email': email, 'password': password})


class TestCheckoutFlow:

    def test_signup_cart_coupon_order(self, client, session, product, make_coupon):
        make_coupon(code='TEN', discount_value='10')

        response = signup(client)
        assert response.status_code == 201
        assert response.get_json()['data']['session']['user']['email'] == 'shopper@test.com'

        response = client.post('/api/cart/items', json={'product_id': product.id, 'quantity': 3})
        assert response.status_code == 201
        assert response.get_json()['data']['subtotal'] == '300.00'

        response = client.post('/api/cart/coupon', json={'code': 'ten'})
        assert response.status_code == 200

        response = client.get('/api/cart')
        cart = response.get_json()['data']
        assert cart['coupon_code'] == 'TEN'
        assert cart['discount'] == '30.00'
        assert cart['total'] == '270.00'

        response = client.post('/api/addresses', json={
            'address_line1': '1 Park Street', 'city': 'Kolkata', 'state': 'West Bengal', 'pincode': '700016'
        })
        assert response.status_code == 201
        address_id = response.get_json()['data']['id']
        assert response.get_json()['data']['is_default'] is True

        response = client.post('/api/orders', json={'address_id': address_id, 'payment_method': 'upi'})
        assert response.status_code == 201
        body = response.get_json()['data']
        assert body['cart_cleared'] is True
        assert body['order']['total'] == '270.00'
        assert body['order']['order_items'][0]['quantity'] == 3

        assert session.query(CartItem).count() == 0
        assert client.get('/api/cart').get_json()['data']['items'] == []

        orders = client.get('/api/orders').get_json()['data']
        assert [o['id'] for o in orders] == [body['order']['id']]

        response = client.post(f"/api/orders/{body['order']['id']}/cancel")
        assert response.get_json()['data']['status'] == 'cancelled'

    def test_empty_cart_checkout(self, client, session):
        signup(client)
        address_id = client.post('/api/addresses', json={
            'address_line1': '1 Park Street', 'city': 'Kolkata', 'state': 'West Bengal', 'pincode': '700016'
        }).get_json()['data']['id']

        response = client.post('/api/orders', json={'address_id': address_id, 'payment_method': 'cod'})

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'empty_cart'
        assert session.query(Order).count() == 0

    def test_quantity_limit_error(self, client, make_product):
        product = make_product(max_order_qty=2)
        signup(client)

        response = client.post('/api/cart/items', json={'product_id': product.id, 'quantity': 5})

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'quantity_exceeds_order_limit'


class TestSessions:

    def test_anonymous_cart_is_empty(self, client):
        response = client.get('/api/cart')
        assert response.status_code == 200
        assert response.get_json()['data']['items'] == []

    def test_login_required(self, client, product):
        response = client.post('/api/cart/items', json={'product_id': product.id})

        assert response.status_code == 401
        assert response.get_json()['error']['code'] == 'unauthenticated'

    def test_session_survives_across_requests(self, client, customer):
        signin(client, 'customer@test.com')

        data = client.get('/api/auth/session').get_json()['data']

        assert data['is_authenticated'] is True
        assert data['profile']['email'] == 'customer@test.com'

    def test_signout_clears_session(self, client, customer):
        signin(client, 'customer@test.com')
        client.post('/api/auth/signout')

        assert client.get('/api/auth/session').get_json()['data']['is_authenticated'] is False
        assert client.get('/api/orders').status_code == 401

    def test_bearer_token(self, app, client, customer):
        token = signin(client, 'customer@test.com').get_json()['data']['session']['access_token']

        other_device = app.test_client()
        response = other_device.get('/api/auth/profile', headers={'Authorization': f'Bearer {token}'})

        assert response.status_code == 200
        assert response.get_json()['data']['id'] == customer.id

    def test_next_user_on_device_gets_a_clean_cart(self, client, customer, other_customer, product, make_coupon):
        make_coupon(code='FLAT100', discount_type='flat', discount_value='100')
        signin(client, 'customer@test.com')
        client.post('/api/cart/items', json={'product_id': product.id, 'quantity': 2})
        assert client.post('/api/cart/coupon', json={'code': 'FLAT100'}).status_code == 200

        signin(client, 'other@test.com')
        cart = client.get('/api/cart').get_json()['data']

        assert cart['items'] == []
        assert cart['coupon_code'] is None
        assert cart['discount'] == '0.00'

    def test_bad_credentials(self, client, customer):
        response = signin(client, 'customer@test.com', 'nope')
        assert response.status_code == 401


class TestCatalogApi:

    def test_products_and_search(self, client, make_product):
        make_product(name='Basmati Rice')
        make_product(name='Brown Bread')

        products = client.get('/api/products?sort_by=name&ascending=true').get_json()['data']
        found = client.get('/api/search?q=rice').get_json()['data']

        assert [p['name'] for p in products] == ['Basmati Rice', 'Brown Bread']
        assert [p['name'] for p in found] == ['Basmati Rice']

    def test_unknown_product(self, client):
        response = client.get('/api/products/missing-slug')
        assert response.status_code == 404

    def test_unknown_route(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json()['success'] is False


class TestAdminApi:

    def test_customer_forbidden(self, client, customer):
        signin(client, 'customer@test.com')

        response = client.post('/api/admin/products', json={'name': 'Kiwi', 'price': '10', 'mrp': '12'})

        assert response.status_code == 403

    def test_admin_fulfils_order(self, app, client, session, customer, admin, address):
        order = Order(
            order_number='OZO-20240601-000001', user_id=customer.id, address_id=address.id,
            subtotal=100, delivery_fee=40, discount=0, total=140,
            payment_method='cod', payment_status='pending', status='pending',
        )
        session.add(order)
        session.commit()
        signin(client, 'admin@test.com')

        response = client.patch(f'/api/admin/orders/{order.id}/status', json={'status': 'confirmed'})
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'confirmed'

        response = client.patch(f'/api/admin/orders/{order.id}/status', json={'status': 'pending'})
        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'invalid_status_transition'
