import pytest
from tests.test_utils_seed import ensure_user, ensure_material
from tests.test_lifecycle_helpers import jwt_headers, assert_error


@pytest.fixture()
def cord_headers(app_instance):
    user = ensure_user('cord-user@example.com')
    with app_instance.app_context():
        return jwt_headers(user.id, {'CORD01': 'rw'})


def test_create_workshop_order(client, cord_headers):
    mat = ensure_material('Filtro de aceite WO')
    r = client.post('/CORD01/orders', json={
        'order_type': 'Taller', 'mobile_unit': 'M-12', 'description': 'Cambio de filtro',
        'technicians': ['Ana', ' ', 'Luis'], 'required_materials': {mat.id: 2},
    }, headers=cord_headers)
    assert r.status_code == 201, r.get_json()
    body = r.get_json()
    assert body['state'] == 'open'
    assert body['equipment_label'] == 'M-12'
    assert body['equipment'] is None
    assert body['technicians'] == ['Ana', 'Luis']
    assert body['required_materials'] == {mat.id: 2.0}
    assert body['state_used_audit'] is False


def test_create_general_order_uses_equipment(client, cord_headers):
    r = client.post('/CORD01/orders', json={
        'order_type': 'General', 'equipment': 'Trituradora 2', 'mobile_unit': 'ignored',
        'description': 'Revisión general',
    }, headers=cord_headers)
    assert r.status_code == 201
    body = r.get_json()
    assert body['equipment_label'] == 'Trituradora 2'
    assert body['mobile_unit'] is None


def test_order_validation(client, cord_headers):
    r = client.post('/CORD01/orders', json={}, headers=cord_headers)
    assert r.status_code == 400
    errors = r.get_json()['error']['errors']
    assert errors == {'order_type': 'Debe seleccionar el tipo de orden', 'description': 'La descripción es requerida'}
    r = client.post('/CORD01/orders', json={'order_type': 'Otro', 'description': 'x'}, headers=cord_headers)
    assert r.get_json()['error']['errors'] == {'order_type': 'Tipo de orden inválido'}
    r = client.post('/CORD01/orders', json={'order_type': 'Taller', 'description': 'x'}, headers=cord_headers)
    assert r.get_json()['error']['errors'] == {'mobile_unit': 'Debe seleccionar una unidad móvil'}
    r = client.post('/CORD01/orders', json={'order_type': 'General', 'description': 'x'}, headers=cord_headers)
    assert r.get_json()['error']['errors'] == {'equipment': 'Debe indicar el equipo'}
    r = client.post('/CORD01/orders', json={
        'order_type': 'General', 'equipment': 'E', 'description': 'x',
        'required_materials': {'ZZZZZZ': 1, 'T99999': 0},
    }, headers=cord_headers)
    errors = r.get_json()['error']['errors']
    assert errors['required-ZZZZZZ'] == 'Material no encontrado'
    assert errors['required-T99999'] == 'La cantidad debe ser mayor a 0'


def test_close_order_once(client, cord_headers):
    r = client.post('/CORD01/orders', json={'order_type': 'Taller', 'mobile_unit': 'M-1', 'description': 'Cerrar'},
                    headers=cord_headers)
    order_id = r.get_json()['id']
    r = client.post(f'/CORD01/orders/{order_id}/close', headers=cord_headers)
    assert r.status_code == 200
    assert r.get_json()['state'] == 'closed'
    assert_error(client.post(f'/CORD01/orders/{order_id}/close', headers=cord_headers), 409,
                 f'La orden {order_id} ya está cerrada')
    assert client.post('/CORD01/orders/999999/close', headers=cord_headers).status_code == 404


def test_list_orders_filters_and_sort(client, cord_headers):
    client.post('/CORD01/orders', json={'order_type': 'General', 'equipment': 'Cinta', 'description': 'Listar'},
                headers=cord_headers)
    r = client.get('/CORD01/orders?order_type=General', headers=cord_headers)
    assert r.status_code == 200
    rows = r.get_json()['data']
    assert rows and all(o['order_type'] == 'General' for o in rows)
    ids = [o['id'] for o in rows]
    assert ids == sorted(ids, reverse=True)
    r = client.get('/CORD01/orders?sort=id', headers=cord_headers)
    ids = [o['id'] for o in r.get_json()['data']]
    assert ids == sorted(ids)
    assert client.get('/CORD01/orders?state=done', headers=cord_headers).status_code == 400
    assert client.get('/CORD01/orders?sort=nope', headers=cord_headers).status_code == 400


def test_get_order_detail(client, cord_headers, app_instance):
    r = client.post('/CORD01/orders', json={'order_type': 'Taller', 'mobile_unit': 'M-7', 'description': 'Detalle'},
                    headers=cord_headers)
    order_id = r.get_json()['id']
    reader = ensure_user('cord-reader@example.com')
    with app_instance.app_context():
        ro = jwt_headers(reader.id, {'CORD01': 'r'})
    r = client.get(f'/CORD01/orders/{order_id}', headers=ro)
    assert r.status_code == 200
    assert r.get_json()['description'] == 'Detalle'
    assert 'ETag' in r.headers
    assert client.post('/CORD01/orders', json={}, headers=ro).status_code == 403
    assert_error(client.get('/CORD01/orders/999999', headers=ro), 404, 'no encontrada')
