import re
import pytest
from erp.services.fuel_entries import generate_doc_id, generate_signature_token
from erp.services.signature import validate_signature, parse_path, render_signature_svg
from tests.test_utils_seed import ensure_user
from tests.test_lifecycle_helpers import jwt_headers, anonymous_headers, assert_error

SIGNATURE = {'width': 300, 'height': 150, 'paths': [
    {'d': 'M 10 10 L 50 60 L 90 20', 'strokeWidth': 2},
    {'d': 'M100,100 L120,110', 'strokeWidth': 3},
]}

COMPLETION = {
    'fecha': '2026-03-15', 'proveedorExterno': 'Petropar', 'nroChapa': 'abc1234', 'chofer': 'Carlos',
    'factura': '001-001-0000123', 'horaDescarga': '14:05',
    'cantidadFacturadaLts': '10000', 'cantidadRecepcionadaLts': '9985.5',
}


@pytest.fixture()
def operator(app_instance):
    user = ensure_user('ecom-operator@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {'ECOM01': 'rw'}, email=user.email)
    return user, headers


def _create(client, headers):
    r = client.post('/ECOM01/entries', headers=headers)
    assert r.status_code == 201, r.get_json()
    return r.get_json()


def test_doc_id_and_token_format():
    from datetime import date
    doc_id = generate_doc_id(date(2026, 3, 15))
    assert re.match(r'^15-03-2026_[a-z0-9]{8}$', doc_id)
    token = generate_signature_token()
    assert re.match(r'^[0-9a-f]{32}$', token)
    assert token != generate_signature_token()


def test_signature_validation():
    assert parse_path('M 1 2 L 3.5 4') == [(1.0, 2.0), (3.5, 4.0)]
    cleaned = validate_signature({'paths': [{'d': 'M 1 1 L 2 2'}]})
    assert cleaned == {'width': 300, 'height': 150, 'paths': [{'d': 'M 1 1 L 2 2', 'strokeWidth': 2.0}]}
    svg = render_signature_svg(cleaned)
    assert svg.startswith('<svg') and 'd="M 1 1 L 2 2"' in svg


@pytest.mark.parametrize('payload,message', [
    (None, 'Firma inválida'),
    ({'paths': []}, 'La firma está vacía'),
    ({'paths': [{'d': 'C 1 2 3 4'}]}, 'Trazo de firma inválido'),
    ({'paths': [{'d': 'M 1 1'}], 'width': -1}, 'Dimensiones de firma inválidas'),
    ({'paths': [{'d': 'M 1 1'}], 'width': float('inf')}, 'Dimensiones de firma inválidas'),
    ({'paths': [{'d': 'M 1 1'}], 'height': 1e6}, 'Dimensiones de firma inválidas'),
    ({'paths': [{'d': 'M 1 1'}], 'width': 'ancho'}, 'Dimensiones de firma inválidas'),
    ({'paths': [{'d': 'M 1 1', 'strokeWidth': float('nan')}]}, 'Trazo de firma inválido'),
    ({'paths': [{'d': 'M 1 1', 'strokeWidth': -3}]}, 'Trazo de firma inválido'),
])
def test_signature_rejections(app_instance, payload, message):
    from werkzeug.exceptions import BadRequest
    with app_instance.test_request_context():
        with pytest.raises(BadRequest) as exc:
            validate_signature(payload)
    assert exc.value.description == message


def test_create_returns_signing_link(client, operator):
    _, headers = operator
    body = _create(client, headers)
    assert body['signingUrl'] == f"https://erp.example.com/sign?doc={body['docId']}&t={body['signatureToken']}"
    polled = client.get(f"/ECOM01/entries/{body['docId']}", headers=headers).get_json()
    assert polled['status'] == 'pending'
    assert polled['signatureToken'] == body['signatureToken']


def test_token_hidden_from_other_users(client, operator, app_instance):
    _, headers = operator
    body = _create(client, headers)
    other = ensure_user('ecom-viewer@example.com')
    with app_instance.app_context():
        viewer = jwt_headers(other.id, {'ECOM01': 'r'})
    polled = client.get(f"/ECOM01/entries/{body['docId']}", headers=viewer).get_json()
    assert 'signatureToken' not in polled


def test_signing_link_errors(client, operator, app_instance):
    _, headers = operator
    body = _create(client, headers)
    with app_instance.app_context():
        anon = anonymous_headers()
    assert_error(client.get('/ECOM01/sign?doc=' + body['docId'], headers=anon), 400, 'faltan parámetros')
    assert_error(client.get('/ECOM01/sign?doc=nope&t=abc', headers=anon), 404, 'Documento no encontrado')
    assert_error(client.get(f"/ECOM01/sign?doc={body['docId']}&t={'0' * 32}", headers=anon), 403,
                 'Token de seguridad inválido')
    ok = client.get(f"/ECOM01/sign?doc={body['docId']}&t={body['signatureToken']}", headers=anon)
    assert ok.status_code == 200
    assert ok.get_json() == {'docId': body['docId'], 'status': 'pending'}


def test_signing_requires_a_session(client, operator):
    _, headers = operator
    body = _create(client, headers)
    r = client.get(f"/ECOM01/sign?doc={body['docId']}&t={body['signatureToken']}")
    assert r.status_code == 401


def test_full_sign_and_complete_flow(client, operator, app_instance):
    user, headers = operator
    body = _create(client, headers)
    doc, token = body['docId'], body['signatureToken']
    with app_instance.app_context():
        anon = anonymous_headers('anon-driver')

    # completing before signature is refused
    assert_error(client.post(f'/ECOM01/entries/{doc}/complete', json=COMPLETION, headers=headers), 409,
                 'no está firmado')

    r = client.post('/ECOM01/sign', json={'doc': doc, 't': token, 'signature': SIGNATURE}, headers=anon)
    assert r.status_code == 200, r.get_json()
    assert r.get_json()['status'] == 'signed'

    # the link is single use
    assert_error(client.post('/ECOM01/sign', json={'doc': doc, 't': token, 'signature': SIGNATURE}, headers=anon),
                 409, 'ya fue utilizado')
    assert_error(client.get(f'/ECOM01/entries/{doc}/qr.png', headers=headers), 409)

    svg = client.get(f'/ECOM01/entries/{doc}/signature.svg', headers=headers)
    assert svg.status_code == 200
    assert svg.headers['Content-Type'].startswith('image/svg+xml')
    assert b'<path' in svg.data

    r = client.post(f'/ECOM01/entries/{doc}/complete', json=COMPLETION, headers=headers)
    assert r.status_code == 200, r.get_json()
    done = r.get_json()
    assert done['status'] == 'completed'
    assert done['nroChapa'] == 'ABC1234'
    assert done['fecha'] == '15-03-2026'
    assert done['diferencia'] == 14.5
    assert done['completedAt'] is not None

    pdf = client.get(f'/ECOM01/entries/{doc}/receipt.pdf', headers=headers)
    assert pdf.status_code == 200
    assert pdf.data[:4] == b'%PDF'


def test_only_creator_completes(client, operator, app_instance):
    _, headers = operator
    body = _create(client, headers)
    with app_instance.app_context():
        anon = anonymous_headers()
        other = jwt_headers(ensure_user('ecom-other@example.com').id, {'ECOM01': 'rw'})
    client.post('/ECOM01/sign', json={'doc': body['docId'], 't': body['signatureToken'], 'signature': SIGNATURE},
                headers=anon)
    assert_error(client.post(f"/ECOM01/entries/{body['docId']}/complete", json=COMPLETION, headers=other), 403,
                 'Solo el creador')
    assert_error(client.get(f"/ECOM01/entries/{body['docId']}/qr.png", headers=other), 403)


def test_completion_form_validation(client, operator, app_instance):
    _, headers = operator
    body = _create(client, headers)
    with app_instance.app_context():
        anon = anonymous_headers()
    client.post('/ECOM01/sign', json={'doc': body['docId'], 't': body['signatureToken'], 'signature': SIGNATURE},
                headers=anon)
    bad = dict(COMPLETION, nroChapa='ab1', horaDescarga='25:00', cantidadFacturadaLts='-3',
               cantidadRecepcionadaLts='1.23456', fecha='mañana')
    r = client.post(f"/ECOM01/entries/{body['docId']}/complete", json=bad, headers=headers)
    assert r.status_code == 400
    errors = r.get_json()['error']['errors']
    assert errors['nroChapa'] == 'Debe tener al menos 6 caracteres'
    assert errors['horaDescarga'] == 'Hora inválida, use el formato HH:MM'
    assert errors['cantidadFacturadaLts'] == 'Debe ser mayor a 0'
    assert errors['cantidadRecepcionadaLts'] == 'Máximo 3 decimales'
    assert errors['fecha'] == 'Fecha inválida'
    r = client.post(f"/ECOM01/entries/{body['docId']}/complete", json={}, headers=headers)
    assert len(r.get_json()['error']['errors']) == 8
    # dd-mm-yyyy is accepted as well
    r = client.post(f"/ECOM01/entries/{body['docId']}/complete", json=dict(COMPLETION, fecha='16-03-2026'),
                    headers=headers)
    assert r.status_code == 200
    assert r.get_json()['fecha'] == '16-03-2026'


def test_invalid_signature_is_rejected_and_entry_stays_pending(client, operator, app_instance):
    _, headers = operator
    body = _create(client, headers)
    with app_instance.app_context():
        anon = anonymous_headers()
    r = client.post('/ECOM01/sign', json={'doc': body['docId'], 't': body['signatureToken'],
                                          'signature': {'paths': []}}, headers=anon)
    assert_error(r, 400, 'La firma está vacía')
    polled = client.get(f"/ECOM01/entries/{body['docId']}", headers=headers).get_json()
    assert polled['status'] == 'pending'
    assert client.get(f"/ECOM01/entries/{body['docId']}/signature.svg", headers=headers).status_code == 404
    assert_error(client.get(f"/ECOM01/entries/{body['docId']}/receipt.pdf", headers=headers), 409)


def test_qr_code_for_pending_entry(client, operator):
    _, headers = operator
    body = _create(client, headers)
    r = client.get(f"/ECOM01/entries/{body['docId']}/qr.png", headers=headers)
    assert r.status_code == 200
    assert r.mimetype == 'image/png'
    assert r.data[:8] == b'\x89PNG\r\n\x1a\n'


def test_delete_pending_entry(client, operator, app_instance):
    _, headers = operator
    body = _create(client, headers)
    with app_instance.app_context():
        other = jwt_headers(ensure_user('ecom-deleter@example.com').id, {'ECOM01': 'rw'})
    assert client.delete(f"/ECOM01/entries/{body['docId']}", headers=other).get_json() == {'deleted': False}
    assert client.delete(f"/ECOM01/entries/{body['docId']}", headers=headers).get_json() == {'deleted': True}
    assert client.get(f"/ECOM01/entries/{body['docId']}", headers=headers).status_code == 404
    assert client.delete(f"/ECOM01/entries/{body['docId']}", headers=headers).get_json() == {'deleted': False}


def test_signed_entry_cannot_be_deleted(client, operator, app_instance):
    _, headers = operator
    body = _create(client, headers)
    with app_instance.app_context():
        anon = anonymous_headers()
    client.post('/ECOM01/sign', json={'doc': body['docId'], 't': body['signatureToken'], 'signature': SIGNATURE},
                headers=anon)
    assert client.delete(f"/ECOM01/entries/{body['docId']}", headers=headers).get_json() == {'deleted': False}


def test_list_entries_and_providers(client, operator):
    _, headers = operator
    _create(client, headers)
    r = client.get('/ECOM01/entries?status=pending', headers=headers)
    assert r.status_code == 200
    assert all(row['status'] == 'pending' for row in r.get_json()['data'])
    assert 'signatureToken' not in r.get_json()['data'][0]
    assert client.get('/ECOM01/entries?status=bogus', headers=headers).status_code == 400
    assert client.get('/ECOM01/providers', headers=headers).get_json() == {'providers': ['Petropar', 'Copetrol']}


def test_sign_rejects_overflowing_dimensions(client, operator, app_instance):
    _, headers = operator
    body = _create(client, headers)
    with app_instance.app_context():
        anon = anonymous_headers('anon-overflow')
    raw = ('{"doc": "%s", "t": "%s", "signature": {"width": 1e400, "paths": [{"d": "M 1 1 L 2 2"}]}}'
           % (body['docId'], body['signatureToken']))
    r = client.post('/ECOM01/sign', data=raw, content_type='application/json', headers=anon)
    assert_error(r, 400, 'Dimensiones de firma inválidas')
    polled = client.get(f"/ECOM01/entries/{body['docId']}", headers=headers).get_json()
    assert polled['status'] == 'pending'
