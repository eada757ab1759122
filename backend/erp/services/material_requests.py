"""EMAT01 entry and SMAT01 exit request creation."""
from __future__ import annotations
from typing import Any, Dict, Optional
from flask import current_app
from erp import get_db
from erp.models.inventory import MaterialEntry, MaterialExit
from erp.models.material import Material
from erp.models.work_order import WorkOrder
from erp.services.defaults import storage_defaults
from erp.utils.date_range import parse_day, day_bounds, as_utc
from erp.utils.validation import require_fields, raise_if_errors, coerce_positive_number, is_blank

MIN_REASON_LENGTH = 10


def _check_location(location: Any, errors: Dict[str, str]):
    if is_blank(location):
        errors['storage_location'] = 'Debe seleccionar una ubicación de almacenamiento'
        return
    allowed = storage_defaults()['storage_locations']
    if allowed and location not in allowed:
        errors['storage_location'] = f'Ubicación desconocida: {location}'


def _effective_date(raw: Any, errors: Dict[str, str], field: str):
    """Local midnight of a dd-mm-yyyy date, in UTC."""
    day = parse_day(raw) if isinstance(raw, str) else None
    if day is None:
        errors.setdefault(field, 'Fecha inválida, use el formato dd-mm-aaaa')
        return None
    return day_bounds(day)[0]


def create_entry(data: Dict[str, Any], user_id: str, user_email: Optional[str]) -> MaterialEntry:
    errors = require_fields(data, {'material_id': 'Debe seleccionar un material'})
    session = get_db()
    material_id = data.get('material_id')
    if 'material_id' not in errors and session.get(Material, str(material_id)) is None:
        errors['material_id'] = 'Material no encontrado'
    qty = coerce_positive_number(data.get('quantity'))
    if qty is None or qty != int(qty):
        errors['quantity'] = 'La cantidad debe ser un entero mayor a 0'
    _check_location(data.get('storage_location'), errors)
    entry_date = _effective_date(data.get('entry_date'), errors, 'entry_date')
    raise_if_errors(errors)
    entry = MaterialEntry(
        material_id=str(material_id), quantity=qty, storage_location=data['storage_location'],
        entry_date=entry_date, notes=(data.get('notes') or None), created_by=user_id,
        created_by_email=user_email, state=MaterialEntry.STATE_PENDING,
    )
    session.add(entry)
    session.commit()
    current_app.logger.info('[EMAT01] entry %s created for material %s', entry.id, entry.material_id)
    return entry


def _clean_quantities(raw: Any, errors: Dict[str, str]) -> Dict[str, float]:
    session = get_db()
    if not isinstance(raw, dict) or not raw:
        errors['quantities'] = 'Debe agregar al menos un material'
        return {}
    cleaned: Dict[str, float] = {}
    for material_id, value in raw.items():
        if session.get(Material, str(material_id)) is None:
            errors[f'quantity-{material_id}'] = 'Material no encontrado'
            continue
        qty = coerce_positive_number(value)
        if qty is None:
            errors[f'quantity-{material_id}'] = 'La cantidad debe ser mayor a 0'
            continue
        cleaned[str(material_id)] = qty
    return cleaned


def create_exit(data: Dict[str, Any], user_id: str, user_email: Optional[str]) -> MaterialExit:
    errors: Dict[str, str] = {}
    session = get_db()
    entry_type = data.get('entry_type')
    if entry_type not in MaterialExit.ALL_TYPES:
        errors['entry_type'] = 'Tipo de salida inválido'
    _check_location(data.get('storage_location'), errors)
    exit_date = _effective_date(data.get('exit_date'), errors, 'exit_date')
    quantities = _clean_quantities(data.get('quantities'), errors)
    notes = (data.get('notes') or '').strip()
    work_order = None
    mobile_unit = None
    if entry_type == MaterialExit.TYPE_ORDER:
        wo_id = _as_int(data.get('work_order_id'))
        work_order = session.get(WorkOrder, wo_id) if wo_id is not None else None
        if work_order is None:
            errors['work_order_id'] = 'Debe seleccionar una orden de trabajo'
        elif work_order.state != WorkOrder.STATE_OPEN:
            errors['work_order_id'] = f'La orden {work_order.id} está cerrada'
        else:
            required = work_order.required_materials or {}
            for material_id, qty in quantities.items():
                # Materials the order does not list have nothing to withdraw
                limit = float(required.get(material_id) or 0)
                if qty > limit:
                    errors['quantityExceeded'] = (
                        f'La cantidad total de {material_id} ({qty:g}) excede la cantidad requerida '
                        f'en la orden ({limit:g})'
                    )
    elif entry_type in (MaterialExit.TYPE_PRIVATE, MaterialExit.TYPE_ADJUSTMENT):
        if not notes:
            errors['notes'] = ('Debe ingresar una descripción del uso del material'
                               if entry_type == MaterialExit.TYPE_PRIVATE else 'Debe ingresar una descripción del ajuste')
        elif len(notes) < MIN_REASON_LENGTH:
            errors['notes'] = f'La descripción debe tener al menos {MIN_REASON_LENGTH} caracteres'
        if entry_type == MaterialExit.TYPE_PRIVATE and data.get('usage_type') == 'taller':
            mobile_unit = (data.get('mobile_unit') or '').strip() or None
            if not mobile_unit:
                errors['mobile_unit'] = 'Debe seleccionar una unidad móvil'
    raise_if_errors(errors)
    ex = MaterialExit(
        entry_type=entry_type, work_order_id=work_order.id if work_order else None, mobile_unit=mobile_unit,
        storage_location=data['storage_location'], quantities=quantities, exit_date=exit_date,
        notes=notes or None, created_by=user_id, created_by_email=user_email, state=MaterialExit.STATE_PENDING,
    )
    session.add(ex)
    session.commit()
    current_app.logger.info('[SMAT01] exit %s (%s) created with %d materials', ex.id, entry_type, len(quantities))
    return ex


def _as_int(raw) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def entry_json(e: MaterialEntry) -> Dict[str, Any]:
    return {
        'id': e.id,
        'material_id': e.material_id,
        'quantity': e.quantity,
        'storage_location': e.storage_location,
        'entry_date': as_utc(e.entry_date).isoformat() if e.entry_date else None,
        'notes': e.notes,
        'state': e.state,
        'created_by': e.created_by,
        'created_by_email': e.created_by_email,
        'accepted_at': as_utc(e.accepted_at).isoformat() if e.accepted_at else None,
        'accepted_by_email': e.accepted_by_email,
    }


def exit_json(x: MaterialExit) -> Dict[str, Any]:
    return {
        'id': x.id,
        'entry_type': x.entry_type,
        'work_order_id': x.work_order_id,
        'mobile_unit': x.mobile_unit,
        'storage_location': x.storage_location,
        'quantities': x.quantities or {},
        'exit_date': as_utc(x.exit_date).isoformat() if x.exit_date else None,
        'notes': x.notes,
        'state': x.state,
        'created_by': x.created_by,
        'created_by_email': x.created_by_email,
        'accepted_at': as_utc(x.accepted_at).isoformat() if x.accepted_at else None,
        'accepted_by_email': x.accepted_by_email,
    }
