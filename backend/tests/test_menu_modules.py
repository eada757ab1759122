from erp.services.modules import build_registry, sorted_modules, is_valid_module_code
from tests.test_utils_seed import ensure_user
from tests.test_lifecycle_helpers import jwt_headers


def test_module_code_validation():
    assert is_valid_module_code('CMAT01')
    assert not is_valid_module_code('cmat01')
    assert not is_valid_module_code('INDEX01')
    assert not is_valid_module_code('A1')
    assert not is_valid_module_code('')


def test_registry_statuses(app_instance):
    with app_instance.app_context():
        registry = build_registry(['CMAT01', 'NEW01', 'bad code'], {'CMAT01': 'x', 'SCOM01': 'y'})
    assert registry['CMAT01'].status == 'available'
    assert registry['NEW01'].status == 'file-missing'
    assert registry['SCOM01'].status == 'not-in-registry'
    assert 'bad code' not in registry and 'BAD CODE' not in registry
    assert [m.code for m in sorted_modules(registry)] == ['CMAT01', 'NEW01', 'SCOM01']


def test_user_sees_only_own_modules(client, app_instance):
    user = ensure_user('menu-user@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {'CMAT01': 'r', 'SCOM01': 'rw'})
    r = client.get('/menu/modules', headers=headers)
    assert r.status_code == 200
    body = r.get_json()
    assert body['isAdmin'] is False
    assert [m['code'] for m in body['modules']] == ['CMAT01', 'SCOM01']


def test_admin_sees_configured_modules(client, app_instance):
    user = ensure_user('menu-admin@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, admin=True)
    body = client.get('/menu/modules', headers=headers).get_json()
    codes = [m['code'] for m in body['modules']]
    assert 'ADM01' in codes and 'CMAT01' in codes
    adm = next(m for m in body['modules'] if m['code'] == 'ADM01')
    assert adm['status'] == 'file-missing'
    # available modules sort ahead of configured-only ones
    assert codes[-1] == 'ADM01'


def test_get_module_status_codes(client, app_instance):
    user = ensure_user('menu-detail@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {'CMAT01': 'r'})
        admin = jwt_headers(user.id, admin=True)
    r = client.get('/menu/modules/cmat01', headers=headers)
    assert r.status_code == 200
    assert r.get_json()['title'] == 'Catálogo de materiales'
    assert client.get('/menu/modules/INV01', headers=headers).status_code == 403
    assert client.get('/menu/modules/ADM01', headers=admin).status_code == 404
    assert client.get('/menu/modules/ZZZ99', headers=admin).status_code == 404
    assert client.get('/menu/modules/INDEX01', headers=admin).status_code == 400


def test_user_parameters_round_trip(client, app_instance):
    user = ensure_user('menu-params@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {})
    assert client.get('/menu/parameters', headers=headers).get_json()['parameters'] == {}
    r = client.put('/menu/parameters', json={'theme': 'dark'}, headers=headers)
    assert r.status_code == 200
    assert client.get('/menu/parameters', headers=headers).get_json()['parameters'] == {'theme': 'dark'}
    assert client.put('/menu/parameters', json=['x'], headers=headers).status_code == 400
