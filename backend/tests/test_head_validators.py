from tests.test_utils_seed import ensure_user, create_work_order
from tests.test_lifecycle_helpers import jwt_headers


def test_head_orders_validators(client, app_instance):
    user = ensure_user('head_cord@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {'CORD01': 'r'})
    create_work_order(unit='M-HEAD')
    r = client.head('/CORD01/orders?limit=5', headers=headers)
    assert r.status_code == 200
    etag = r.headers.get('ETag'); lm = r.headers.get('Last-Modified'); iso = r.headers.get('X-Last-Modified-ISO')
    assert etag and lm and iso
    r2 = client.get('/CORD01/orders?limit=5', headers={**headers, 'If-None-Match': etag})
    assert r2.status_code == 304
    r3 = client.head('/CORD01/orders?limit=5', headers={**headers, 'If-None-Match': etag})
    assert r3.status_code == 304
    r4 = client.get('/CORD01/orders?limit=5', headers={**headers, 'If-Modified-Since': lm})
    assert r4.status_code == 304


def test_head_single_order(client, app_instance):
    user = ensure_user('head_cord_single@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {'CORD01': 'r'})
    order = create_work_order(unit='M-HEAD-1')
    r = client.head(f'/CORD01/orders/{order.id}', headers=headers)
    assert r.status_code == 200
    assert r.headers.get('ETag')
    assert r.data == b''
    stale = client.get(f'/CORD01/orders/{order.id}', headers={**headers, 'If-None-Match': 'not-the-tag'})
    assert stale.status_code == 200
    assert stale.get_json()['id'] == order.id


def test_pagination_meta(client, app_instance):
    user = ensure_user('page_cord@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {'CORD01': 'r'})
    for unit in ('M-P1', 'M-P2', 'M-P3'):
        create_work_order(unit=unit)
    body = client.get('/CORD01/orders?limit=2&offset=1', headers=headers).get_json()
    meta = body['pagination']
    assert meta['limit'] == 2 and meta['offset'] == 1
    assert meta['returned'] == 2
    assert meta['total'] >= 3
    # limits are clamped to the maximum page size
    assert client.get('/CORD01/orders?limit=5000', headers=headers).get_json()['pagination']['limit'] == 200
    assert client.get('/CORD01/orders?limit=abc', headers=headers).status_code == 400
