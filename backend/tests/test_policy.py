from erp.services.policy import (
    extract_user_permissions, has_module_access, get_user_accessible_modules, get_user_role_display,
    build_role_claims, build_initial_admin_claims, format_role_display, level_rank,
)
from tests.test_utils_seed import ensure_user
from tests.test_lifecycle_helpers import jwt_headers, anonymous_headers


def test_level_ranking_is_ordinal():
    assert level_rank('r') < level_rank('rw') < level_rank('admin')
    assert level_rank(None) == 0
    assert level_rank('bogus') == 0


def test_read_does_not_satisfy_read_write():
    perms = extract_user_permissions(build_role_claims('bodega', 'Bodega', {'CMAT01': 'r'}, 0))
    assert has_module_access(perms, 'CMAT01', 'r')
    assert not has_module_access(perms, 'CMAT01', 'rw')
    assert not has_module_access(perms, 'INV01', 'r')


def test_admin_level_covers_lower_levels():
    perms = extract_user_permissions(build_role_claims('x', 'X', {'INV01': 'admin'}, 0))
    assert has_module_access(perms, 'INV01', 'rw')
    assert has_module_access(perms, 'INV01', 'admin')


def test_admin_flag_bypasses_module_checks():
    perms = extract_user_permissions(build_initial_admin_claims(0))
    assert perms.is_admin
    assert has_module_access(perms, 'ANYTHING', 'admin')
    assert get_user_accessible_modules(perms) == {'*'}
    assert get_user_role_display(perms) == 'Administrador'


def test_legacy_admin_claim_is_honoured():
    perms = extract_user_permissions({'admin': True})
    assert perms.is_admin


def test_missing_claims_yield_no_access():
    perms = extract_user_permissions(None)
    assert not perms.is_admin
    assert perms.modules == {}
    assert get_user_role_display(perms) == 'Sin rol asignado'
    # malformed modules claim is ignored
    assert extract_user_permissions({'modules': ['CMAT01']}).modules == {}


def test_role_display_counts_modules():
    assert format_role_display('Bodega', {'CMAT01': 'r', 'INV01': 'r'}) == 'Bodega (2 módulos)'


def test_guard_denies_read_only_on_write_endpoint(client, app_instance):
    user = ensure_user('guard-ro@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {'CMAT01': 'r'})
    r = client.get('/CMAT01/materials/next-code?zone=A&category=FER&subcategory=TOR', headers=headers)
    assert r.status_code == 403
    assert 'CMAT01' in r.get_json()['error']['detail']
    assert client.get('/CMAT01/materials', headers=headers).status_code == 200


def test_guard_denies_anonymous_sessions(client, app_instance):
    with app_instance.app_context():
        headers = anonymous_headers()
    r = client.get('/CMAT01/materials', headers=headers)
    assert r.status_code == 403
    assert 'Anonymous' in r.get_json()['error']['detail']


def test_guard_requires_token(client):
    r = client.get('/CMAT01/materials')
    assert r.status_code == 401


def test_any_of_modules_check(client, app_instance):
    user = ensure_user('guard-any@example.com')
    with app_instance.app_context():
        emat = jwt_headers(user.id, {'EMAT01': 'r'})
        none = jwt_headers(user.id, {'ECOM01': 'rw'})
    assert client.get('/INV01/storage-defaults', headers=emat).status_code == 200
    r = client.get('/INV01/storage-defaults', headers=none)
    assert r.status_code == 403
    assert r.get_json()['error']['detail'] == 'Access check failed'
