from __future__ import annotations
from flask import Blueprint, request, abort, send_file, make_response
from erp import get_db
from erp.models.fuel import FuelEntry
from erp.decorators.auth import require_access, require_session
from erp.documents.fuel_receipt import build_fuel_receipt_pdf
from erp.services.defaults import fuel_providers
from erp.services.fuel_entries import (
    create_pending_entry, get_entry, validate_signing_link, sign_entry, complete_entry,
    delete_pending_entry, generate_qr_code_image, build_signing_url, entry_json,
)
from erp.services.policy import current_user_id, current_user_email
from erp.services.signature import render_signature_svg
from erp.utils.listing import apply_filters, apply_pagination, cached_list, cached_item, latest_timestamp
from erp.utils.date_range import as_utc
from erp.utils.validation import validate_status

ecom_bp = Blueprint('fuel_entries', __name__)

MODULE = 'ECOM01'


@ecom_bp.post('/entries')
@require_access(MODULE, 'rw')
def create_entry():
    entry = create_pending_entry(current_user_id(), current_user_email())
    return {
        'docId': entry.id,
        'signatureToken': entry.signature_token,
        'signingUrl': build_signing_url(entry.id, entry.signature_token),
    }, 201


@ecom_bp.route('/entries', methods=['GET', 'HEAD'])
@require_access(MODULE)
def list_entries():
    session = get_db()
    q = session.query(FuelEntry)
    filter_specs = {
        'status': {'validate': lambda v: validate_status(v, FuelEntry.ALL_STATUSES),
                   'op': lambda qu, v: qu.filter(FuelEntry.status == v)},
        'created_by': {'op': lambda qu, v: qu.filter(FuelEntry.created_by == v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    q = q.order_by(FuelEntry.created_at.desc(), FuelEntry.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return cached_list([entry_json(e) for e in rows], total, limit, offset,
                       latest_timestamp(as_utc(e.updated_at) for e in rows))


@ecom_bp.route('/entries/<doc_id>', methods=['GET', 'HEAD'])
@require_access(MODULE)
def poll_entry(doc_id: str):
    """Current state of one entry; clients poll with If-None-Match until it is signed."""
    entry = get_entry(doc_id)
    body = entry_json(entry, include_token=entry.created_by == current_user_id())
    return cached_item(body, as_utc(entry.updated_at))


@ecom_bp.get('/entries/<doc_id>/qr.png')
@require_access(MODULE, 'rw')
def entry_qr(doc_id: str):
    entry = get_entry(doc_id)
    if entry.created_by != current_user_id():
        abort(403, description='Solo el creador puede mostrar el código QR')
    if entry.status != FuelEntry.STATUS_PENDING:
        abort(409, description='El documento ya fue firmado')
    buffer = generate_qr_code_image(build_signing_url(entry.id, entry.signature_token))
    return send_file(buffer, mimetype='image/png', download_name=f'ECOM01_{entry.id}.png')


@ecom_bp.post('/entries/<doc_id>/complete')
@require_access(MODULE, 'rw')
def complete(doc_id: str):
    entry = get_entry(doc_id)
    data = request.get_json(silent=True) or {}
    entry = complete_entry(entry, data, current_user_id())
    return entry_json(entry)


@ecom_bp.delete('/entries/<doc_id>')
@require_access(MODULE, 'rw')
def delete_entry(doc_id: str):
    return {'deleted': delete_pending_entry(doc_id, current_user_id())}


@ecom_bp.get('/entries/<doc_id>/signature.svg')
@require_access(MODULE)
def entry_signature(doc_id: str):
    entry = get_entry(doc_id)
    if not entry.signature:
        abort(404, description='Firma no disponible')
    resp = make_response(render_signature_svg(entry.signature))
    resp.headers['Content-Type'] = 'image/svg+xml'
    return resp


@ecom_bp.get('/entries/<doc_id>/receipt.pdf')
@require_access(MODULE)
def entry_receipt(doc_id: str):
    entry = get_entry(doc_id)
    if entry.status != FuelEntry.STATUS_COMPLETED:
        abort(409, description='El documento aún no fue completado')
    buffer = build_fuel_receipt_pdf(entry)
    return send_file(buffer, mimetype='application/pdf', as_attachment=True,
                     download_name=f'ECOM01_{entry.id}.pdf')


@ecom_bp.get('/providers')
@require_access(MODULE)
def providers():
    return {'providers': fuel_providers()}


# ---------- Signing page (driver's phone, anonymous session allowed) ---------- #

@ecom_bp.get('/sign')
@require_session
def check_signing_link():
    entry = validate_signing_link(request.args.get('doc'), request.args.get('t'))
    return {'docId': entry.id, 'status': entry.status}


@ecom_bp.post('/sign')
@require_session
def submit_signature():
    data = request.get_json(silent=True) or {}
    entry = sign_entry(data.get('doc'), data.get('t'), data.get('signature'))
    return {'docId': entry.id, 'status': entry.status}
