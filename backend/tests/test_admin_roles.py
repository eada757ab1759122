from tests.test_utils_seed import ensure_user, ensure_role, SETUP_KEY
from tests.test_lifecycle_helpers import jwt_headers


def _admin_token(client, email):
    ensure_user(email)
    r = client.post('/api/admin/create-initial-admin', json={'userEmail': email, 'setupKey': SETUP_KEY})
    assert r.status_code == 200, r.get_json()
    return client.post('/iam/auth/login', json={'email': email, 'password': 'pw'}).get_json()['access_token']


def test_create_initial_admin_validations(client):
    r = client.post('/api/admin/create-initial-admin', json={'userEmail': 'x@example.com'})
    assert r.status_code == 400
    r = client.post('/api/admin/create-initial-admin', json={'userEmail': 'x@example.com', 'setupKey': 'wrong'})
    assert r.status_code == 403
    assert r.get_json()['error']['detail'] == 'Invalid setup key'
    r = client.post('/api/admin/create-initial-admin', json={'userEmail': 'ghost@example.com', 'setupKey': SETUP_KEY})
    assert r.status_code == 404


def test_initial_admin_response_and_assignment_record(client, app_instance):
    token = _admin_token(client, 'adm-initial@example.com')
    headers = {'Authorization': f'Bearer {token}'}
    r = client.get('/iam/user-roles?roleId=admin', headers=headers)
    assert r.status_code == 200
    rows = [a for a in r.get_json()['data'] if a['userEmail'] == 'adm-initial@example.com']
    assert rows and rows[0]['assignedBy'] == 'system'
    assert rows[0]['roleLabel'] == 'Administrador'


def test_assign_role_requires_parameters_and_admin(client, app_instance):
    target = ensure_user('adm-target@example.com')
    ensure_role('adm-role', 'Adm Role', {'CMAT01': 'r'})
    r = client.post('/api/admin/assign-role', json={'targetUserId': str(target.id), 'roleId': 'adm-role'})
    assert r.status_code == 400
    r = client.post('/api/admin/assign-role', json={
        'targetUserId': str(target.id), 'roleId': 'adm-role', 'adminToken': 'not-a-jwt'})
    assert r.status_code == 401
    plain = ensure_user('adm-plain@example.com')
    with app_instance.app_context():
        headers = jwt_headers(plain.id, {'CMAT01': 'admin'})
    # Bearer header is accepted in place of adminToken
    r = client.post('/api/admin/assign-role', json={'targetUserId': str(target.id), 'roleId': 'adm-role'},
                    headers=headers)
    assert r.status_code == 403


def test_assign_role_missing_role_or_user(client):
    token = _admin_token(client, 'adm-missing@example.com')
    target = ensure_user('adm-missing-target@example.com')
    r = client.post('/api/admin/assign-role', json={
        'targetUserId': str(target.id), 'roleId': 'no-such-role', 'adminToken': token})
    assert r.status_code == 404
    ensure_role('adm-role-2', 'Adm Role 2', {})
    r = client.post('/api/admin/assign-role', json={
        'targetUserId': '999999', 'roleId': 'adm-role-2', 'adminToken': token})
    assert r.status_code == 404


def test_assign_then_reassign_replaces_claims(client):
    token = _admin_token(client, 'adm-reassign@example.com')
    target = ensure_user('adm-reassign-target@example.com')
    ensure_role('adm-first', 'First', {'CMAT01': 'r'})
    ensure_role('adm-second', 'Second', {'SCOM01': 'rw'})
    for role_id in ('adm-first', 'adm-second'):
        r = client.post('/api/admin/assign-role', json={
            'targetUserId': str(target.id), 'roleId': role_id, 'adminToken': token})
        assert r.status_code == 200
    body = r.get_json()
    assert body['success'] is True
    assert body['assignment']['roleLabel'] == 'Second'
    assert target.custom_claims['modules'] == {'SCOM01': 'rw'}
    assert target.custom_claims['role'] == 'adm-second'


def test_roles_api_crud(client):
    token = _admin_token(client, 'adm-roles@example.com')
    headers = {'Authorization': f'Bearer {token}'}
    r = client.post('/iam/roles', json={'id': 'roles-api', 'label': 'Roles API',
                                        'modules': {'cmat01': 'rw', 'INV01': 'r'}}, headers=headers)
    assert r.status_code == 201, r.get_json()
    body = r.get_json()
    assert body['modules'] == {'CMAT01': 'rw', 'INV01': 'r'}
    assert body['display'] == 'Roles API (2 módulos)'
    assert client.post('/iam/roles', json={'id': 'roles-api', 'label': 'Dup'}, headers=headers).status_code == 409

    r = client.post('/iam/roles', json={'id': 'roles-bad', 'label': 'Bad', 'modules': {'CMAT01': 'write'}},
                    headers=headers)
    assert r.status_code == 400
    r = client.post('/iam/roles', json={'id': 'roles-bad', 'label': 'Bad', 'modules': {'INDEX01': 'r'}},
                    headers=headers)
    assert r.status_code == 400
    r = client.post('/iam/roles', json={'id': 'Bad Id', 'label': 'Bad'}, headers=headers)
    assert r.status_code == 400

    r = client.put('/iam/roles/roles-api', json={'label': 'Renamed', 'modules': {'SCOM01': 'r'}}, headers=headers)
    assert r.status_code == 200
    assert r.get_json()['label'] == 'Renamed'
    r = client.get('/iam/roles/roles-api', headers=headers)
    assert r.get_json()['modules'] == {'SCOM01': 'r'}
    assert client.get('/iam/roles/nope', headers=headers).status_code == 404
    ids = [row['id'] for row in client.get('/iam/roles?limit=200', headers=headers).get_json()['data']]
    assert 'roles-api' in ids


def test_roles_api_requires_admin(client, app_instance):
    user = ensure_user('adm-roles-denied@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {'CMAT01': 'admin'})
    r = client.get('/iam/roles', headers=headers)
    assert r.status_code == 403
    assert r.get_json()['error']['detail'] == 'Admin access required'


def test_remove_role_clears_claims(client):
    token = _admin_token(client, 'adm-remove@example.com')
    target = ensure_user('adm-remove-target@example.com')
    ensure_role('adm-remove-role', 'Remove', {'CMAT01': 'r'})
    client.post('/api/admin/assign-role', json={
        'targetUserId': str(target.id), 'roleId': 'adm-remove-role', 'adminToken': token})
    r = client.post('/api/admin/remove-role', json={'targetUserId': str(target.id), 'adminToken': token})
    assert r.status_code == 200
    assert r.get_json() == {'success': True, 'message': 'Role removed successfully', 'userId': str(target.id)}
    assert target.custom_claims == {}
    assert client.post('/api/admin/remove-role', json={'adminToken': token}).status_code == 400
    r = client.post('/api/admin/remove-role', json={'targetUserId': 'abc', 'adminToken': token})
    assert r.status_code == 404
