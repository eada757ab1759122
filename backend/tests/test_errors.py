from tests.test_utils_seed import ensure_user
from tests.test_lifecycle_helpers import jwt_headers


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert 'error' in body
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_form_errors_are_listed_per_field(client, app_instance):
    user = ensure_user('err-form@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {'CMAT01': 'rw'})
    resp = client.post('/CMAT01/materials', json={'zone': 'A'}, headers=headers)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body['error']['detail'] == 'Revise los campos marcados'
    assert 'zone' not in body['error']['errors']
    assert body['error']['errors']['description'] == 'La descripción es requerida'


def test_internal_error_shape(client, app_instance, monkeypatch):
    user = ensure_user('err-boom@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {'CORD01': 'r'})
    import erp.routes.work_orders as wo_mod

    class BoomSession:
        def query(self, *a, **k):
            raise RuntimeError('explode')

    monkeypatch.setattr(wo_mod, 'get_db', lambda: BoomSession())
    resp = client.get('/CORD01/orders', headers=headers)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    assert body['error']['title'] == 'Internal Server Error'
    assert body['error']['detail'] == 'Unexpected error'


def test_admin_endpoint_static_500(client, monkeypatch):
    import erp.routes.admin as admin_mod
    from tests.test_utils_seed import SETUP_KEY

    def boom(_email):
        raise RuntimeError('explode')

    monkeypatch.setattr(admin_mod, 'find_user_by_email', boom)
    resp = client.post('/api/admin/create-initial-admin', json={'userEmail': 'x@example.com', 'setupKey': SETUP_KEY})
    assert resp.status_code == 500
    assert resp.get_json()['error']['detail'] == 'Internal server error during admin creation'


def test_health(client):
    resp = client.get('/api/health')
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['status'] == 'healthy'
    assert body['checks'] == {'environment': True, 'database': True, 'auth': True}
    assert body['timestamp'].endswith('Z')


def test_error_responses_discard_pending_work(app_instance):
    from werkzeug.exceptions import Conflict
    from erp import get_db
    from erp.models.defaults import DefaultsDocument
    with app_instance.test_request_context():
        session = get_db()
        session.add(DefaultsDocument(key='half-written', data={'x': 1}))
        session.flush()
        body, status = app_instance.handle_user_exception(Conflict(description='rechazado'))
        assert status == 409
        assert body['error']['detail'] == 'rechazado'
        session.commit()
        assert session.get(DefaultsDocument, 'half-written') is None
