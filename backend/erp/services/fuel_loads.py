"""SCOM01 daily fuel dispensing documents and the composite range view."""
from __future__ import annotations
from collections import OrderedDict
import math
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from flask import current_app
from sqlalchemy import select

from erp import get_db
from erp.models.fuel import FuelLoadDay, FuelLoad
from erp.utils.date_range import DateRange, utcnow, as_utc, format_day, parse_day, local_today
from erp.utils.validation import require_fields, raise_if_errors, validate_fuel_quantity, is_blank

DAY_BATCH_SIZE = 10

FLEET_MESSAGES = {
    'litres': 'La cantidad de litros es requerida',
    'unit_number': 'El número de móvil es requerido',
    'driver': 'El nombre del chofer es requerido',
    'load_time': 'La hora de carga es requerida',
}
EXTERNAL_MESSAGES = {
    'company': 'La empresa es requerida',
    'plate': 'El número de chapa es requerido',
    'litres': 'La cantidad de litros es requerida',
    'driver': 'El nombre del chofer es requerido',
    'load_time': 'La hora de carga es requerida',
}

FILTER_INTERNAL = 'internal'
FILTER_EXTERNAL = 'external'


def get_day(day: date) -> Optional[FuelLoadDay]:
    return get_db().get(FuelLoadDay, format_day(day))


def get_or_create_day(day: date) -> FuelLoadDay:
    session = get_db()
    doc = session.get(FuelLoadDay, format_day(day))
    if doc is None:
        doc = FuelLoadDay(id=format_day(day), day=day)
        session.add(doc)
        session.flush()
    return doc


def list_history(limit: int, offset: int) -> Tuple[List[FuelLoadDay], int]:
    """Day documents newest first; documents with malformed ids are skipped."""
    session = get_db()
    q = session.query(FuelLoadDay).order_by(FuelLoadDay.day.desc())
    total = q.count()
    rows = []
    for doc in q.offset(offset).limit(limit).all():
        if parse_day(doc.id) is None:
            current_app.logger.warning('[SCOM01] skipping day document with invalid id %r', doc.id)
            continue
        rows.append(doc)
    return rows, total


def _optional_number(data: Dict[str, Any], field: str, errors: Dict[str, str]) -> Optional[float]:
    raw = data.get(field)
    if is_blank(raw):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = math.nan
    if not math.isfinite(value):
        errors[field] = 'Debe ser un número válido'
        return None
    if value < 0:
        errors[field] = 'No puede ser negativo'
        return None
    return value


def add_load(data: Dict[str, Any], user_id: str, day: Optional[date] = None) -> FuelLoad:
    kind = data.get('kind')
    errors: Dict[str, str] = {}
    if kind not in FuelLoad.ALL_KINDS:
        errors['kind'] = 'Tipo de carga inválido'
        raise_if_errors(errors)
    require_fields(data, FLEET_MESSAGES if kind == FuelLoad.KIND_FLEET else EXTERNAL_MESSAGES, errors)
    if 'litres' not in errors:
        message = validate_fuel_quantity(data.get('litres'))
        if message:
            errors['litres'] = message
    odometer = _optional_number(data, 'odometer', errors)
    hour_meter = _optional_number(data, 'hour_meter', errors)
    raise_if_errors(errors)
    signature_svg = data.get('signature_svg') or None
    session = get_db()
    doc = get_or_create_day(day or local_today())
    load = FuelLoad(
        kind=kind, litres=float(data['litres']),
        unit_number=str(data['unit_number']).strip() if kind == FuelLoad.KIND_FLEET else None,
        company=str(data['company']).strip() if kind == FuelLoad.KIND_EXTERNAL else None,
        plate=str(data['plate']).strip().upper() if kind == FuelLoad.KIND_EXTERNAL else None,
        driver=str(data['driver']).strip(), load_time=str(data['load_time']).strip(),
        odometer=odometer, hour_meter=hour_meter, seal=(data.get('seal') or None),
        has_signature=bool(signature_svg), signature_svg=signature_svg,
        created_by=user_id, created_at=utcnow(),
    )
    doc.loads.append(load)
    doc.updated_at = utcnow()
    session.commit()
    current_app.logger.info('[SCOM01] %s load of %s L added to %s', kind, load.litres, doc.id)
    return load


def set_totalizers(day: date, data: Dict[str, Any]) -> FuelLoadDay:
    errors: Dict[str, str] = {}
    start = _optional_number(data, 'totalizer_start', errors)
    end = _optional_number(data, 'totalizer_end', errors)
    if 'totalizer_start' in data and start is None and 'totalizer_start' not in errors:
        errors['totalizer_start'] = 'El totalizador inicial es requerido'
    raise_if_errors(errors)
    existing = get_day(day)
    if existing is not None:
        start = start if start is not None else existing.totalizer_start
        end = end if end is not None else existing.totalizer_end
    if start is not None and end is not None and end < start:
        errors['totalizer_end'] = 'El totalizador final no puede ser menor al inicial'
    raise_if_errors(errors)
    doc = existing or get_or_create_day(day)
    doc.totalizer_start = start
    doc.totalizer_end = end
    doc.updated_at = utcnow()
    get_db().commit()
    current_app.logger.info('[SCOM01] totalizers for %s set to %s / %s', doc.id, start, end)
    return doc


def _batched(items: List[Any], size: int) -> Iterable[List[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def fetch_range_days(rng: DateRange) -> List[FuelLoadDay]:
    """Day documents inside the range, fetched ``DAY_BATCH_SIZE`` ids at a time."""
    session = get_db()
    ids = [format_day(d) for d in rng.iter_days()]
    docs: List[FuelLoadDay] = []
    for chunk in _batched(ids, DAY_BATCH_SIZE):
        docs.extend(session.execute(select(FuelLoadDay).where(FuelLoadDay.id.in_(chunk))).scalars().all())
    docs.sort(key=lambda d: d.day)
    return docs


def load_json(load: FuelLoad) -> Dict[str, Any]:
    return {
        'id': load.id,
        'kind': load.kind,
        'day': load.day_id,
        'litres': load.litres,
        'unit_number': load.unit_number,
        'company': load.company,
        'plate': load.plate,
        'driver': load.driver,
        'load_time': load.load_time,
        'odometer': load.odometer,
        'hour_meter': load.hour_meter,
        'seal': load.seal,
        'has_signature': load.has_signature,
        'signature_svg': load.signature_svg,
        'created_at': as_utc(load.created_at).isoformat() if load.created_at else None,
    }


def vehicle_key(load: Dict[str, Any]) -> str:
    if load['kind'] == FuelLoad.KIND_FLEET:
        return f"Móvil {load.get('unit_number') or '-'}"
    return f"{load.get('company') or '-'} ({load.get('plate') or '-'})"


def filter_loads(loads: List[Dict[str, Any]], main: Optional[str] = None, units: Iterable[str] = (),
                 companies: Iterable[str] = (), plates: Iterable[str] = ()) -> List[Dict[str, Any]]:
    """Narrow loads to internal (fleet) or external ones, then by sub filters of that kind."""
    units, companies, plates = set(units), set(companies), set(plates)
    if main == FILTER_INTERNAL:
        loads = [l for l in loads if l['kind'] == FuelLoad.KIND_FLEET]
        if units:
            loads = [l for l in loads if l['unit_number'] in units]
    elif main == FILTER_EXTERNAL:
        loads = [l for l in loads if l['kind'] == FuelLoad.KIND_EXTERNAL]
        if companies:
            loads = [l for l in loads if l['company'] in companies]
        if plates:
            loads = [l for l in loads if l['plate'] in plates]
    return loads


def build_composite(rng: DateRange, main: Optional[str] = None, units: Iterable[str] = (),
                    companies: Iterable[str] = (), plates: Iterable[str] = ()) -> Dict[str, Any]:
    docs = fetch_range_days(rng)
    loads = [load_json(l) for doc in docs for l in doc.loads]
    loads.sort(key=lambda l: l['created_at'] or '', reverse=True)
    options = {
        'unit_numbers': sorted({l['unit_number'] for l in loads if l['kind'] == FuelLoad.KIND_FLEET and l['unit_number']}),
        'companies': sorted({l['company'] for l in loads if l['kind'] == FuelLoad.KIND_EXTERNAL and l['company']}),
        'plates': sorted({l['plate'] for l in loads if l['kind'] == FuelLoad.KIND_EXTERNAL and l['plate']}),
    }
    loads = filter_loads(loads, main, units, companies, plates)
    internal = round(sum(l['litres'] for l in loads if l['kind'] == FuelLoad.KIND_FLEET), 3)
    external = round(sum(l['litres'] for l in loads if l['kind'] == FuelLoad.KIND_EXTERNAL), 3)
    by_vehicle: Dict[str, Dict[str, Any]] = OrderedDict()
    for load in sorted(loads, key=vehicle_key):
        group = by_vehicle.setdefault(vehicle_key(load), {'kind': load['kind'], 'loads': [], 'total': 0.0})
        group['loads'].append(load)
        group['total'] = round(group['total'] + load['litres'], 3)
    body: Dict[str, Any] = {
        'range': rng.label(),
        'start': format_day(rng.start),
        'end': format_day(rng.end),
        'days': [d.id for d in docs],
        'loads': loads,
        'totals': {'internal': internal, 'external': external, 'general': round(internal + external, 3)},
        'byVehicle': by_vehicle,
        'filterOptions': options,
        'totalizers': None,
    }
    if rng.is_single_day and docs:
        body['totalizers'] = {'start': docs[0].totalizer_start, 'end': docs[0].totalizer_end}
    return body


def day_json(doc: FuelLoadDay, include_loads: bool = True) -> Dict[str, Any]:
    loads = list(doc.loads)
    body = {
        'id': doc.id,
        'date': doc.day.isoformat() if doc.day else None,
        'totalizer_start': doc.totalizer_start,
        'totalizer_end': doc.totalizer_end,
        'total_loads': len(loads),
    }
    if include_loads:
        body['fleet'] = [load_json(l) for l in loads if l.kind == FuelLoad.KIND_FLEET]
        body['external'] = [load_json(l) for l in loads if l.kind == FuelLoad.KIND_EXTERNAL]
    return body
