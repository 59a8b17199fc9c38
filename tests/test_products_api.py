import pytest

import storage

VPN_PANEL = {'name': 'VPN Panel', 'price': '499.00', 'category': 'panels'}


@pytest.fixture
def sellers(make_user, login_as):
    make_user('seller1')
    make_user('seller2')
    return login_as('seller1'), login_as('seller2')


def _codes(response):
    return [p['product_id'] for p in response.get_json()]


def test_vpn_panel_visibility(client, admin_client, sellers):
    seller1, seller2 = sellers

    response = seller1.post('/api/products', json=VPN_PANEL)

    assert response.status_code == 201
    product = response.get_json()
    assert product['product_id'] == 'MCG-001'
    assert product['owner_id'] == 'seller1'
    assert product['is_active'] is True
    assert product['price'] == '499.00'

    assert 'MCG-001' in _codes(client.get('/api/products'))
    assert 'MCG-001' not in _codes(seller2.get('/api/admin/products'))
    assert 'MCG-001' in _codes(admin_client.get('/api/admin/products'))


def test_create_requires_session(client):
    response = client.post('/api/products', json=VPN_PANEL)

    assert response.status_code == 401
    assert response.get_json() == {'message': 'Unauthorized'}


def test_create_validates_input(seller_client):
    response = seller_client.post('/api/products', json={'name': '', 'price': 'abc'})

    assert response.status_code == 400
    body = response.get_json()
    assert body['message'] == 'Validation error'
    assert {'name', 'price', 'category'} <= set(body['errors'])


def test_negative_price_is_rejected(seller_client):
    response = seller_client.post('/api/products', json=dict(VPN_PANEL, price=-5))

    assert response.status_code == 400
    assert 'price' in response.get_json()['errors']


def test_numeric_price_is_accepted(seller_client):
    response = seller_client.post('/api/products', json=dict(VPN_PANEL, price=1250))

    assert response.status_code == 201
    assert response.get_json()['price'] == '1250.00'


def test_client_supplied_owner_and_code_are_ignored(sellers):
    seller1, _ = sellers
    response = seller1.post('/api/products', json=dict(
        VPN_PANEL, category='bots', owner_id='seller2', product_id='ZZZ-999'))

    body = response.get_json()
    assert body['owner_id'] == 'seller1'
    assert body['product_id'] == 'MCB-001'


def test_partial_update_keeps_other_fields(seller_client):
    created = seller_client.post('/api/products', json=VPN_PANEL).get_json()

    response = seller_client.put(f"/api/products/{created['id']}", json={'price': 650})

    assert response.status_code == 200
    body = response.get_json()
    assert body['price'] == '650.00'
    assert body['name'] == 'VPN Panel'
    assert body['product_id'] == 'MCG-001'


def test_partial_update_validates_submitted_fields(seller_client):
    created = seller_client.post('/api/products', json=VPN_PANEL).get_json()

    response = seller_client.put(f"/api/products/{created['id']}", json={'name': ''})

    assert response.status_code == 400
    assert list(response.get_json()['errors']) == ['name']


def test_other_sellers_products_look_missing(sellers):
    seller1, seller2 = sellers
    created = seller1.post('/api/products', json=VPN_PANEL).get_json()
    url = f"/api/products/{created['id']}"

    assert seller2.put(url, json={'name': 'Hijacked'}).status_code == 404
    assert seller2.delete(url).status_code == 404
    assert seller2.get(f"/api/admin/products/{created['id']}").status_code == 404
    assert seller1.get(f"/api/admin/products/{created['id']}").get_json()['name'] == 'VPN Panel'


def test_super_admin_can_edit_any_product(sellers, admin_client):
    seller1, _ = sellers
    created = seller1.post('/api/products', json=VPN_PANEL).get_json()

    response = admin_client.put(f"/api/products/{created['id']}", json={'name': 'VPN Panel Pro'})

    assert response.status_code == 200
    assert response.get_json()['owner_id'] == 'seller1'


def test_soft_delete_lifecycle(client, seller_client):
    created = seller_client.post('/api/products', json=VPN_PANEL).get_json()
    url = f"/api/products/{created['id']}"

    assert seller_client.delete(url).status_code == 204
    assert client.get('/api/products').get_json() == []
    assert client.get(url).status_code == 404
    assert seller_client.get('/api/admin/products').get_json() == []

    inactive = seller_client.get('/api/admin/products?include_inactive=true').get_json()
    assert [(p['product_id'], p['is_active']) for p in inactive] == [('MCG-001', False)]

    # deleting again is a no-op
    assert seller_client.delete(url).status_code == 204

    assert seller_client.put(url, json={'is_active': True}).status_code == 200
    assert _codes(client.get('/api/products')) == ['MCG-001']


def test_public_product_detail(client, seller_client):
    created = seller_client.post('/api/products', json=VPN_PANEL).get_json()

    response = client.get(f"/api/products/{created['id']}")

    assert response.status_code == 200
    assert response.get_json()['name'] == 'VPN Panel'
    assert client.get('/api/products/9999').status_code == 404


def test_public_filters(client, seller_client):
    seller_client.post('/api/products', json=VPN_PANEL)
    seller_client.post('/api/products', json={'name': 'Music Bot', 'price': '99', 'category': 'bots',
                                              'description': 'Plays VPN-free radio'})
    seller_client.post('/api/products', json={'name': 'Shop Site', 'price': '1999', 'category': 'websites'})

    assert _codes(client.get('/api/products?category=bots')) == ['MCB-001']
    assert sorted(_codes(client.get('/api/products?search=vpn'))) == ['MCB-001', 'MCG-001']
    assert _codes(client.get('/api/products?search=MCW')) == ['MCW-001']


def test_search_wildcards_do_not_match_everything(client, seller_client):
    seller_client.post('/api/products', json=VPN_PANEL)

    assert client.get('/api/products?search=_').get_json() == []
    assert client.get('/api/products?search=%25').get_json() == []
    assert _codes(client.get('/api/products?search=VPN%20')) == ['MCG-001']


def test_product_code_collision_is_a_conflict(seller_client, monkeypatch):
    seller_client.post('/api/products', json=VPN_PANEL)
    monkeypatch.setattr(storage, 'next_product_code', lambda category: 'MCG-001')

    response = seller_client.post('/api/products', json=dict(VPN_PANEL, name='VPN Panel Pro'))

    assert response.status_code == 409
    assert _codes(seller_client.get('/api/admin/products')) == ['MCG-001']
