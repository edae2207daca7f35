import io
import json

import pytest

from dairy_pos.app_container import AppContainer, get_container
from dairy_pos.repositories import RepositoryError


def post(client, url, token, payload=None):
    return client.post(url, json=payload or {}, headers={'X-CSRF-Token': token})


def put(client, url, token, payload=None):
    return client.put(url, json=payload or {}, headers={'X-CSRF-Token': token})


@pytest.fixture
def product(client, csrf_token):
    r = post(client, '/api/products', csrf_token, {'name': 'Rasgulla (tin)', 'price': 30, 'qty': 10})
    assert r.status_code == 201
    return r.get_json()['product']


# ==============================================================================
# SESIÓN Y SEGURIDAD
# ==============================================================================

def test_session_in_offline_mode(client):
    r = client.get('/api/session')
    data = r.get_json()
    assert r.status_code == 200
    assert data['backend'] == 'local'
    assert data['owner'] == 'local'
    assert data['csrf_token']
    assert r.headers['X-Frame-Options'] == 'DENY'
    assert r.headers['X-Content-Type-Options'] == 'nosniff'


def test_mutations_require_csrf_token(client, csrf_token):
    r = client.post('/api/products', json={'name': 'Curd', 'price': 40})
    assert r.status_code == 403
    assert r.get_json() == {'ok': False, 'error': 'Invalid CSRF token'}

    r = client.post('/api/products', json={'name': 'Curd', 'price': 40, 'csrf_token': csrf_token})
    assert r.status_code == 201


def test_online_routes_are_rejected_offline(client, csrf_token):
    r = post(client, '/api/auth/login', csrf_token, {'email': 'a@b.com', 'password': 'secret1'})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Only available with the Supabase backend.'


def test_missing_supabase_config_requires_setup(client, data_dir, monkeypatch):
    monkeypatch.delenv('SUPABASE_URL', raising=False)
    monkeypatch.delenv('SUPABASE_ANON_KEY', raising=False)
    AppContainer.reset_instance()
    get_container(data_dir, 'supabase')

    r = client.get('/api/products')
    assert r.status_code == 503
    assert r.get_json()['setup_required'] is True
    assert client.get('/api/session').status_code == 503

    setup = client.get('/api/setup').get_json()
    assert setup['setup_required'] is True
    assert 'SUPABASE_URL' in setup['error']


# ==============================================================================
# CATÁLOGO Y CLIENTES
# ==============================================================================

def test_product_crud(client, csrf_token, product):
    r = client.get('/api/products?q=rasg')
    assert [p['name'] for p in r.get_json()['products']] == ['Rasgulla (tin)']

    r = put(client, f"/api/products/{product['id']}", csrf_token, {'name': 'Rasgulla (tin)', 'price': 35, 'qty': 4})
    assert r.status_code == 200
    assert r.get_json()['product']['price'] == 35
    assert client.get('/api/products').get_json()['low_stock'] == [product['id']]

    r = put(client, '/api/products/missing', csrf_token, {'name': 'X', 'price': 1})
    assert r.status_code == 404

    r = post(client, '/api/products', csrf_token, {'name': 'rasgulla (TIN)', 'price': 1})
    assert r.status_code == 400

    r = client.delete(f"/api/products/{product['id']}", headers={'X-CSRF-Token': csrf_token})
    assert r.status_code == 200
    assert client.get('/api/products').get_json()['products'] == []


def test_customer_routes(client, csrf_token):
    r = post(client, '/api/customers', csrf_token, {'name': 'Ravi', 'phone': '9820000000'})
    assert r.status_code == 201
    r = post(client, '/api/customers', csrf_token, {'name': 'Ravi 2', 'phone': '9820000000'})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Customer with this phone already exists.'
    assert len(client.get('/api/customers').get_json()['customers']) == 1


def test_customer_update_keeps_fields_not_sent(client, csrf_token):
    r = post(client, '/api/customers', csrf_token, {'name': 'Asha', 'phone': '9820000002', 'religion': 'Hindu'})
    customer_id = r.get_json()['customer']['id']

    r = put(client, f'/api/customers/{customer_id}', csrf_token, {'name': 'Asha Devi'})
    assert r.status_code == 200
    customer = r.get_json()['customer']
    assert (customer['name'], customer['phone'], customer['religion']) == ('Asha Devi', '9820000002', 'Hindu')

    r = put(client, '/api/customers/missing', csrf_token, {'name': 'Nobody'})
    assert r.status_code == 404


# ==============================================================================
# CARRITO, CHECKOUT Y FACTURAS
# ==============================================================================

def test_cart_checkout_and_invoice(client, csrf_token, product):
    r = post(client, '/api/cart/add', csrf_token, {'product_id': 'nope'})
    assert r.status_code == 404

    r = post(client, '/api/cart/add', csrf_token, {'product_id': product['id'], 'qty': 3})
    assert r.get_json()['cart']['subtotal'] == 90

    r = post(client, '/api/cart/update', csrf_token, {'product_id': product['id'], 'qty': 50})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Not enough stock. Available: 10'

    r = post(client, '/api/checkout', csrf_token, {'discount': 10, 'customer_phone': '9820000000'})
    data = r.get_json()
    assert r.status_code == 200
    assert data['total'] == 80
    invoice_no = data['invoice_no']
    assert data['pdf_url'] == f'/api/bills/{invoice_no}/pdf'
    assert data['share_link'].startswith('https://wa.me/9820000000?text=')

    assert client.get('/api/cart').get_json()['cart']['items'] == []
    assert client.get('/api/products').get_json()['products'][0]['qty'] == 7

    r = post(client, '/api/checkout', csrf_token)
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Cart is empty.'

    r = client.get(f'/api/bills/{invoice_no}/pdf')
    assert r.status_code == 200
    assert r.mimetype == 'application/pdf'
    assert 'attachment' in r.headers['Content-Disposition']
    assert r.data.startswith(b'%PDF')

    r = client.get(f'/invoice/{invoice_no}')
    assert r.headers['Content-Disposition'].startswith('inline')

    assert client.get('/api/bills/GD-0000-0000/pdf').status_code == 404
    assert client.get(f'/api/bills/{invoice_no}/reminder').status_code == 400
    assert len(client.get('/api/bills?status=Paid').get_json()['bills']) == 1
    assert client.get('/api/bills?status=Pending').get_json()['bills'] == []


def test_unit_product_in_cart(client, csrf_token):
    r = post(client, '/api/products', csrf_token, {'name': 'Fresh Milk', 'unit_type': 'Litre', 'unit_price': 60, 'qty': 80})
    milk = r.get_json()['product']

    r = post(client, '/api/cart/add', csrf_token, {'product_id': milk['id'], 'quantity_text': '500ml'})
    assert r.get_json()['cart']['subtotal'] == 30

    r = post(client, '/api/cart/add', csrf_token, {'product_id': milk['id'], 'value': 2, 'unit': 'l'})
    assert r.get_json()['cart']['items_count'] == 2

    r = post(client, '/api/cart/remove', csrf_token, {'product_id': milk['id'], 'purchase_unit': 'l'})
    assert r.get_json()['cart']['items_count'] == 1

    r = post(client, '/api/cart/clear', csrf_token)
    assert r.get_json()['cart']['items'] == []


def test_pending_bill_reminder_and_dashboard(client, csrf_token, product):
    post(client, '/api/cart/add', csrf_token, {'product_id': product['id'], 'qty': 2})
    r = post(client, '/api/checkout', csrf_token, {
        'customer_name': 'Ravi', 'customer_phone': '9820000000', 'status': 'Pending', 'due_date': '2030-01-01',
    })
    invoice_no = r.get_json()['invoice_no']

    r = client.get(f'/api/bills/{invoice_no}/reminder')
    assert r.status_code == 200
    assert r.get_json()['link'].startswith('https://wa.me/9820000000')

    stats = client.get('/api/dashboard').get_json()
    assert stats['ok']
    assert stats['pending_bills'] == 1
    assert stats['total_sales'] == 60
    assert stats['total_customers'] == 1


# ==============================================================================
# MARKETING, TIENDA Y REPARTOS
# ==============================================================================

def test_marketing(client, csrf_token):
    post(client, '/api/customers', csrf_token, {'name': 'Ravi', 'phone': '9820000000', 'religion': 'Hindu'})

    segment = client.get('/api/marketing/recipients?tag=Hindu').get_json()
    assert [c['name'] for c in segment['recipients']] == ['Ravi']

    r = post(client, '/api/marketing/links', csrf_token, {'tag': 'Hindu', 'message': 'Fresh paneer today'})
    assert r.get_json()['links'][0]['link'] == 'https://wa.me/9820000000?text=Fresh%20paneer%20today'

    r = post(client, '/api/marketing/links', csrf_token, {'tag': 'Hindu', 'message': ''})
    assert r.status_code == 400


def test_shop_profile(client, csrf_token):
    assert client.get('/api/shop').get_json()['shop']['name'] == 'Govinda Dughdalay'
    r = put(client, '/api/shop', csrf_token, {'name': 'My Dairy', 'phone': '1', 'address': 'Main St'})
    assert r.get_json()['shop'] == {'name': 'My Dairy', 'phone': '1', 'addr': 'Main St'}
    assert client.get('/api/shop').get_json()['shop']['addr'] == 'Main St'


def test_deliveries(client, csrf_token, product):
    r = post(client, '/api/deliveries', csrf_token, {'customer_name': '', 'products': []})
    assert r.status_code == 400

    r = post(client, '/api/deliveries', csrf_token, {
        'customer_name': 'Ravi', 'products': [{'id': product['id'], 'quantity': 2}],
    })
    assert r.status_code == 201
    assert r.get_json()['delivery']['total'] == 60
    assert len(client.get('/api/deliveries').get_json()['deliveries']) == 1


# ==============================================================================
# RESPALDO
# ==============================================================================

def test_backup_export_and_import(client, csrf_token, product):
    r = client.get('/api/backup/export')
    assert r.status_code == 200
    assert r.headers['Content-Disposition'].startswith('attachment; filename=govinda-backup-')
    exported = r.get_json()
    assert [p['name'] for p in exported['products']] == ['Rasgulla (tin)']

    post(client, '/api/cart/add', csrf_token, {'product_id': product['id'], 'qty': 1})
    empty = dict(exported, products=[])
    r = client.post('/api/backup/import', data={
        'csrf_token': csrf_token,
        'file': (io.BytesIO(json.dumps(empty).encode('utf-8')), 'backup.json'),
    }, content_type='multipart/form-data')
    assert r.status_code == 200
    assert r.get_json()['counts']['products'] == 0
    assert client.get('/api/products').get_json()['products'] == []
    assert client.get('/api/cart').get_json()['cart']['items'] == []

    r = client.post('/api/backup/import', data=b'{broken', headers={'X-CSRF-Token': csrf_token},
                    content_type='application/json')
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Invalid backup file.'


def test_migrate_requires_online_mode(client, csrf_token):
    r = post(client, '/api/migrate', csrf_token)
    assert r.status_code == 400


# ==============================================================================
# ERRORES
# ==============================================================================

def fail_with(error):
    def _raise(*args, **kwargs):
        raise error
    return _raise


def test_read_failures_answer_502(client, monkeypatch):
    products = get_container().local_repos['products']
    monkeypatch.setattr(products, 'get_products', fail_with(RepositoryError('network down')))

    r = client.get('/api/products')

    assert r.status_code == 502
    assert r.get_json() == {'ok': False, 'error': 'network down', 'error_type': 'persistence'}
    assert client.get('/api/dashboard').status_code == 502


def test_unexpected_cart_errors_answer_json_500(client, csrf_token, monkeypatch):
    cart = get_container().cart_service
    monkeypatch.setattr(cart, 'remove_item', fail_with(RuntimeError('boom')))
    monkeypatch.setattr(cart, 'clear_cart', fail_with(RuntimeError('boom')))

    for url in ('/api/cart/remove', '/api/cart/clear'):
        r = post(client, url, csrf_token, {'product_id': 'x'})
        assert r.status_code == 500
        assert r.get_json() == {'ok': False, 'error': 'Internal error: boom'}


def test_failing_audit_log_still_empties_the_cart(client, csrf_token, product, monkeypatch):
    audit_repo = get_container().audit_repo
    monkeypatch.setattr(audit_repo, 'log', fail_with(RepositoryError('disk full')))
    post(client, '/api/cart/add', csrf_token, {'product_id': product['id'], 'qty': 3})

    r = post(client, '/api/checkout', csrf_token)
    assert r.status_code == 200
    assert client.get('/api/cart').get_json()['cart']['items'] == []

    r = post(client, '/api/checkout', csrf_token)
    assert r.get_json()['error'] == 'Cart is empty.'
    assert len(client.get('/api/bills').get_json()['bills']) == 1
    assert client.get('/api/products').get_json()['products'][0]['qty'] == 7
