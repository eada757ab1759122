from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from erp import get_db
from erp.constants.modules import INVENTORY_RANGE_MAX_DAYS, LEVEL_READ
from erp.models.inventory import InventoryMove, InventoryStock, MaterialEntry, MaterialExit
from erp.decorators.auth import require_access
from erp.services.inventory import approve_entries, approve_exits, material_stock, material_exists, move_json
from erp.services.material_requests import create_entry, create_exit, entry_json, exit_json
from erp.services.defaults import storage_defaults
from erp.services.policy import current_permissions, has_module_access, current_user_id, current_user_email
from erp.utils.listing import apply_filters, apply_pagination, cached_list, cached_item, latest_timestamp
from erp.utils.date_range import as_utc, date_range_from_args
from erp.utils.validation import validate_status

inv_bp = Blueprint('inventory', __name__)

MODULE = 'INV01'


def _can_read(*modules: str):
    """Callable for ``require_access(check=...)`` accepting any of the given modules."""
    def check() -> bool:
        perms = current_permissions()
        return any(has_module_access(perms, m, LEVEL_READ) for m in modules)
    return check


def _ids_from_body():
    data = request.get_json(silent=True) or {}
    ids = data.get('ids')
    if not isinstance(ids, list) or not ids:
        abort(400, description='ids required')
    try:
        return [int(i) for i in ids]
    except (TypeError, ValueError):
        abort(400, description='ids must be integers')


# ---------- Stock and ledger ---------- #

@inv_bp.route('/stock', methods=['GET', 'HEAD'])
@require_access(MODULE)
def list_stock():
    session = get_db()
    q = session.query(InventoryStock)
    filter_specs = {
        'material_id': {'op': lambda qu, v: qu.filter(InventoryStock.material_id == v)},
        'storage_location': {'op': lambda qu, v: qu.filter(InventoryStock.storage_location == v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    q = q.order_by(InventoryStock.material_id.asc(), InventoryStock.storage_location.asc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    rows_json = [{
        'material_id': r.material_id,
        'storage_location': r.storage_location,
        'quantity': r.quantity,
        'last_modified': as_utc(r.last_modified).isoformat() if r.last_modified else None,
    } for r in rows]
    return cached_list(rows_json, total, limit, offset, latest_timestamp(as_utc(r.last_modified) for r in rows))


@inv_bp.route('/stock/<material_id>', methods=['GET', 'HEAD'])
@require_access(MODULE)
def get_material_stock(material_id: str):
    if not material_exists(material_id):
        abort(404, description='Material no encontrado')
    locations = material_stock(material_id)
    total = sum(float(v['quantity'] or 0) for v in locations.values())
    return cached_item({'material_id': material_id, 'locations': locations, 'total': total})


@inv_bp.route('/moves/<material_id>', methods=['GET', 'HEAD'])
@require_access(MODULE)
def list_material_moves(material_id: str):
    if not material_exists(material_id):
        abort(404, description='Material no encontrado')
    rng = date_range_from_args(request.args, INVENTORY_RANGE_MAX_DAYS)
    start, end = rng.utc_bounds()
    session = get_db()
    moves = session.execute(
        select(InventoryMove)
        .where(InventoryMove.material_id == material_id,
               InventoryMove.deleted.is_(False),
               InventoryMove.effective_at >= start,
               InventoryMove.effective_at <= end)
        .order_by(InventoryMove.effective_at.desc(), InventoryMove.id.desc())
    ).scalars().all()
    body = {'material_id': material_id, 'range': rng.label(), 'moves': [move_json(m) for m in moves]}
    return cached_item(body, latest_timestamp(as_utc(m.recorded_at) for m in moves))


@inv_bp.get('/storage-defaults')
@require_access(check=_can_read(MODULE, 'EMAT01', 'SMAT01'))
def get_storage_defaults():
    return storage_defaults()


# ---------- EMAT01 entries / AEMAT01 approval ---------- #

@inv_bp.post('/entries')
@require_access('EMAT01', 'rw')
def create_entry_endpoint():
    data = request.get_json(silent=True) or {}
    entry = create_entry(data, current_user_id(), current_user_email())
    return entry_json(entry), 201


@inv_bp.route('/entries', methods=['GET', 'HEAD'])
@require_access(check=_can_read('EMAT01', 'AEMAT01'))
def list_entries():
    session = get_db()
    q = session.query(MaterialEntry)
    filter_specs = {
        'state': {'validate': lambda v: validate_status(v, MaterialEntry.ALL_STATES, 'state'),
                  'op': lambda qu, v: qu.filter(MaterialEntry.state == v)},
        'material_id': {'op': lambda qu, v: qu.filter(MaterialEntry.material_id == v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    q = q.order_by(MaterialEntry.entry_date.desc(), MaterialEntry.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return cached_list([entry_json(e) for e in rows], total, limit, offset,
                       latest_timestamp(as_utc(e.updated_at) for e in rows))


@inv_bp.post('/entries/approve')
@require_access('AEMAT01', 'rw')
def approve_entries_endpoint():
    """Approve a batch of entries; nothing is written when any entry is already approved."""
    ids = _ids_from_body()
    session = get_db()
    entries = session.execute(
        select(MaterialEntry).where(MaterialEntry.id.in_(ids)).order_by(MaterialEntry.id.asc())
    ).scalars().all()
    found = {e.id for e in entries}
    missing = [i for i in ids if i not in found]
    if missing:
        abort(404, description=f'Entradas no encontradas: {", ".join(str(i) for i in missing)}')
    approved = approve_entries(entries, current_user_email())
    return {'approved': [e.id for e in approved], 'count': len(approved)}


# ---------- SMAT01 exits / ASMAT01 approval ---------- #

@inv_bp.post('/exits')
@require_access('SMAT01', 'rw')
def create_exit_endpoint():
    data = request.get_json(silent=True) or {}
    ex = create_exit(data, current_user_id(), current_user_email())
    return exit_json(ex), 201


@inv_bp.route('/exits', methods=['GET', 'HEAD'])
@require_access(check=_can_read('SMAT01', 'ASMAT01'))
def list_exits():
    session = get_db()
    q = session.query(MaterialExit)
    filter_specs = {
        'state': {'validate': lambda v: validate_status(v, MaterialExit.ALL_STATES, 'state'),
                  'op': lambda qu, v: qu.filter(MaterialExit.state == v)},
        'entry_type': {'validate': lambda v: validate_status(v, MaterialExit.ALL_TYPES, 'entry_type'),
                       'op': lambda qu, v: qu.filter(MaterialExit.entry_type == v)},
        'work_order_id': {'coerce': int, 'op': lambda qu, v: qu.filter(MaterialExit.work_order_id == v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    q = q.order_by(MaterialExit.exit_date.desc(), MaterialExit.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return cached_list([exit_json(x) for x in rows], total, limit, offset,
                       latest_timestamp(as_utc(x.updated_at) for x in rows))


@inv_bp.post('/exits/approve')
@require_access('ASMAT01', 'rw')
def approve_exits_endpoint():
    """Approve a batch of exits; nothing is written when any exit lacks stock."""
    ids = _ids_from_body()
    session = get_db()
    exits = session.execute(
        select(MaterialExit).where(MaterialExit.id.in_(ids)).order_by(MaterialExit.id.asc())
    ).scalars().all()
    found = {x.id for x in exits}
    missing = [i for i in ids if i not in found]
    if missing:
        abort(404, description=f'Salidas no encontradas: {", ".join(str(i) for i in missing)}')
    already = [x.id for x in exits if x.state != MaterialExit.STATE_PENDING]
    if already:
        abort(409, description=f'La salida {already[0]} ya fue aprobada')
    approved = approve_exits(exits, current_user_email())
    return {'approved': [x.id for x in approved], 'count': len(approved)}
