"""ECOM01 fuel entries signed remotely by the delivering driver.

The operator creates a pending document and shows its signing link as a QR code. The
driver opens the link on a phone, signs, and the document moves to ``signed``; the
operator (and only the operator who created it) then completes the delivery form.
"""
from __future__ import annotations
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, Optional
import re
import secrets
import string

import qrcode
from PIL import Image as PILImage
from flask import abort, current_app
from werkzeug.exceptions import Forbidden

from erp import get_db
from erp.models.fuel import FuelEntry
from erp.services.signature import validate_signature
from erp.utils.date_range import utcnow, as_utc, local_today, format_day, parse_day
from erp.utils.fsm import TransitionValidator
from erp.utils.validation import require_fields, raise_if_errors, validate_fuel_quantity

FUEL_FSM = TransitionValidator({
    FuelEntry.STATUS_PENDING: {FuelEntry.STATUS_SIGNED},
    FuelEntry.STATUS_SIGNED: {FuelEntry.STATUS_COMPLETED},
    FuelEntry.STATUS_COMPLETED: set(),
})

DOC_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
MIN_PLATE_LENGTH = 6
_TIME_RE = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')

FORM_MESSAGES = {
    'fecha': 'La fecha es requerida',
    'proveedorExterno': 'El proveedor es requerido',
    'nroChapa': 'El número de chapa es requerido',
    'chofer': 'El nombre del chofer es requerido',
    'factura': 'El número de factura es requerido',
    'horaDescarga': 'La hora de descarga es requerida',
    'cantidadFacturadaLts': 'La cantidad facturada es requerida',
    'cantidadRecepcionadaLts': 'La cantidad recepcionada es requerida',
}


def generate_doc_id(today=None) -> str:
    day = format_day(today or local_today())
    suffix = ''.join(secrets.choice(DOC_SUFFIX_ALPHABET) for _ in range(8))
    return f'{day}_{suffix}'


def generate_signature_token() -> str:
    return secrets.token_hex(16)


def build_signing_url(doc_id: str, token: str) -> str:
    base = str(current_app.config.get('PUBLIC_APP_URL') or '').rstrip('/')
    return f'{base}/sign?doc={doc_id}&t={token}'


def create_pending_entry(user_id: str, user_email: Optional[str]) -> FuelEntry:
    session = get_db()
    doc_id = generate_doc_id()
    while session.get(FuelEntry, doc_id) is not None:
        doc_id = generate_doc_id()
    entry = FuelEntry(
        id=doc_id, status=FuelEntry.STATUS_PENDING, signature_token=generate_signature_token(),
        signature=None, created_by=user_id, created_by_email=user_email, created_at=utcnow(),
    )
    session.add(entry)
    session.commit()
    current_app.logger.info('[ECOM01] pending entry %s created by %s', doc_id, user_id)
    return entry


def get_entry(doc_id: str) -> FuelEntry:
    entry = get_db().get(FuelEntry, doc_id)
    if entry is None:
        abort(404, description='Documento no encontrado')
    return entry


def validate_signing_link(doc_id: Optional[str], token: Optional[str]) -> FuelEntry:
    """Check a signing link: 400 missing params, 404 unknown, 409 used, 403 wrong token."""
    if not doc_id or not token:
        abort(400, description='Enlace inválido: faltan parámetros requeridos')
    entry = get_db().get(FuelEntry, doc_id)
    if entry is None:
        current_app.logger.warning('[ECOM01] signing link for unknown document %s', doc_id)
        abort(404, description='Documento no encontrado')
    if entry.status != FuelEntry.STATUS_PENDING:
        abort(409, description='Este enlace ya fue utilizado o ha expirado')
    if not secrets.compare_digest(entry.signature_token, str(token)):
        current_app.logger.warning('[ECOM01] token mismatch for %s', doc_id)
        abort(403, description='Token de seguridad inválido')
    return entry


def sign_entry(doc_id: Optional[str], token: Optional[str], signature: Any) -> FuelEntry:
    entry = validate_signing_link(doc_id, token)
    cleaned = validate_signature(signature)
    FUEL_FSM.assert_can_transition(entry.status, FuelEntry.STATUS_SIGNED, 'Este enlace ya fue utilizado o ha expirado')
    entry.signature = cleaned
    entry.status = FuelEntry.STATUS_SIGNED
    entry.signed_at = utcnow()
    get_db().commit()
    current_app.logger.info('[ECOM01] entry %s signed (%d strokes)', entry.id, len(cleaned['paths']))
    return entry


def _parse_form_date(raw: Any):
    text = str(raw or '').strip()
    try:
        return datetime.strptime(text, '%Y-%m-%d').date()
    except ValueError:
        return parse_day(text)


def validate_completion(data: Dict[str, Any]) -> Dict[str, Any]:
    errors = require_fields(data, FORM_MESSAGES)
    entry_date = None
    if 'fecha' not in errors:
        entry_date = _parse_form_date(data.get('fecha'))
        if entry_date is None:
            errors['fecha'] = 'Fecha inválida'
    if 'nroChapa' not in errors and len(str(data['nroChapa']).strip()) < MIN_PLATE_LENGTH:
        errors['nroChapa'] = f'Debe tener al menos {MIN_PLATE_LENGTH} caracteres'
    if 'horaDescarga' not in errors and not _TIME_RE.match(str(data['horaDescarga']).strip()):
        errors['horaDescarga'] = 'Hora inválida, use el formato HH:MM'
    for field in ('cantidadFacturadaLts', 'cantidadRecepcionadaLts'):
        if field not in errors:
            message = validate_fuel_quantity(data.get(field))
            if message:
                errors[field] = message
    raise_if_errors(errors)
    return {
        'entry_date': entry_date,
        'provider': str(data['proveedorExterno']).strip(),
        'plate': str(data['nroChapa']).strip().upper(),
        'driver': str(data['chofer']).strip(),
        'invoice': str(data['factura']).strip(),
        'unload_time': str(data['horaDescarga']).strip(),
        'invoiced_litres': float(data['cantidadFacturadaLts']),
        'received_litres': float(data['cantidadRecepcionadaLts']),
    }


def complete_entry(entry: FuelEntry, data: Dict[str, Any], user_id: str) -> FuelEntry:
    if entry.created_by != user_id:
        current_app.logger.warning('[ECOM01] %s tried to complete %s created by %s', user_id, entry.id, entry.created_by)
        raise Forbidden(description='Solo el creador puede completar este documento')
    FUEL_FSM.assert_can_transition(entry.status, FuelEntry.STATUS_COMPLETED,
                                   f'El documento {entry.id} no está firmado (estado: {entry.status})')
    clean = validate_completion(data)
    for key, value in clean.items():
        setattr(entry, key, value)
    entry.status = FuelEntry.STATUS_COMPLETED
    entry.completed_at = utcnow()
    get_db().commit()
    current_app.logger.info('[ECOM01] entry %s completed, difference %s', entry.id, entry.difference)
    return entry


def delete_pending_entry(doc_id: str, user_id: str) -> bool:
    """Remove an unsigned entry created by ``user_id``; False when not allowed or missing."""
    session = get_db()
    entry = session.get(FuelEntry, doc_id)
    if entry is None:
        return False
    if entry.status != FuelEntry.STATUS_PENDING or entry.created_by != user_id:
        current_app.logger.info('[ECOM01] refusing to delete %s (status %s)', doc_id, entry.status)
        return False
    session.delete(entry)
    session.commit()
    current_app.logger.info('[ECOM01] pending entry %s deleted', doc_id)
    return True


def generate_qr_code_image(data: str, size: int = 300) -> BytesIO:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    img = img.resize((size, size), PILImage.Resampling.LANCZOS)

    buffer = BytesIO()
    img.save(buffer, format='PNG')
    buffer.seek(0)
    return buffer


def entry_json(e: FuelEntry, include_token: bool = False) -> Dict[str, Any]:
    body = {
        'id': e.id,
        'status': e.status,
        'signature': e.signature,
        'createdBy': e.created_by,
        'createdAt': _iso(e.created_at),
        'signedAt': _iso(e.signed_at),
        'completedAt': _iso(e.completed_at),
        'fecha': format_day(e.entry_date) if e.entry_date else None,
        'proveedorExterno': e.provider,
        'nroChapa': e.plate,
        'chofer': e.driver,
        'factura': e.invoice,
        'cantidadFacturadaLts': e.invoiced_litres,
        'horaDescarga': e.unload_time,
        'cantidadRecepcionadaLts': e.received_litres,
        'diferencia': e.difference,
    }
    if include_token:
        body['signatureToken'] = e.signature_token
        body['signingUrl'] = build_signing_url(e.id, e.signature_token)
    return body


def _iso(dt) -> Optional[str]:
    return as_utc(dt).isoformat() if dt else None
