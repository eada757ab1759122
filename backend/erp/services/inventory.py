"""Inventory ledger: approvals turn EMAT01/SMAT01 requests into moves.

Each approved request writes, in one transaction per request:
  * an immutable move (positive for entries, negative for exits),
  * the live per-location stock cache,
  * today's snapshot, opened from yesterday's closing or by replaying earlier moves.
A move already recorded for the same source document is skipped, so approving twice
is harmless.
"""
from __future__ import annotations
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional
from flask import abort, current_app
from sqlalchemy import select, func
from werkzeug.exceptions import Conflict
from erp import get_db
from erp.models.inventory import InventoryMove, InventoryStock, DailySnapshot, MaterialEntry, MaterialExit
from erp.models.material import Material
from erp.models.work_order import WorkOrder
from erp.utils.date_range import utcnow, as_utc, to_local, day_key, day_bounds
from erp.utils.fsm import TransitionValidator

REQUEST_FSM = TransitionValidator({
    'pending': {'accepted'},
    'accepted': set(),
}, field_name='state')


class StockValidationError(Conflict):
    """409 carrying every stock problem of an approval batch in ``errors``."""
    def __init__(self, messages: List[str]):
        super().__init__(description=messages[0] if messages else 'Inventario insuficiente')
        self.messages = messages
        self.errors = messages


def compute_opening_from_moves(material_id: str, before) -> Dict[str, float]:
    session = get_db()
    rows = session.execute(
        select(InventoryMove.storage_location, func.sum(InventoryMove.qty))
        .where(InventoryMove.material_id == material_id,
               InventoryMove.deleted.is_(False),
               InventoryMove.effective_at < before)
        .group_by(InventoryMove.storage_location)
    ).all()
    return {loc: float(total or 0) for loc, total in rows}


def _get_snapshot(material_id: str, key: str) -> Optional[DailySnapshot]:
    return get_db().execute(
        select(DailySnapshot).where(DailySnapshot.material_id == material_id, DailySnapshot.day_key == key)
    ).scalar_one_or_none()


def _apply_snapshot(material_id: str, effective_at: datetime, location: str, qty: float):
    session = get_db()
    local_day = to_local(effective_at).date()
    key = day_key(local_day)
    snapshot = _get_snapshot(material_id, key)
    if snapshot is None:
        yesterday = _get_snapshot(material_id, day_key(local_day - timedelta(days=1)))
        if yesterday is not None:
            opening = dict(yesterday.closing or {})
        else:
            opening = compute_opening_from_moves(material_id, day_bounds(local_day)[0])
        closing = dict(opening)
        closing[location] = closing.get(location, 0) + qty
        session.add(DailySnapshot(material_id=material_id, day_key=key, opening=opening, closing=closing))
    else:
        closing = dict(snapshot.closing or {})
        closing[location] = closing.get(location, 0) + qty
        snapshot.closing = closing


def _apply_stock(material_id: str, location: str, qty: float, source_id: str, recorded_at: datetime):
    session = get_db()
    stock = session.execute(
        select(InventoryStock).where(InventoryStock.material_id == material_id,
                                     InventoryStock.storage_location == location)
    ).scalar_one_or_none()
    if stock is None:
        stock = InventoryStock(material_id=material_id, storage_location=location, quantity=0)
        session.add(stock)
    stock.quantity = float(stock.quantity or 0) + qty
    if qty >= 0:
        stock.last_entry = recorded_at
    else:
        stock.last_exit = recorded_at
    stock.last_modified = recorded_at


def record_move(material_id: str, qty: float, source: str, source_id: str, effective_at: datetime,
                location: str, reason: Optional[str] = None, approved_by_email: Optional[str] = None) -> Optional[InventoryMove]:
    """Append a move and update caches; returns None when the move already exists."""
    session = get_db()
    existing = session.execute(
        select(InventoryMove).where(InventoryMove.material_id == material_id,
                                    InventoryMove.source == source,
                                    InventoryMove.source_id == source_id)
    ).scalar_one_or_none()
    if existing is not None:
        current_app.logger.info('[INV01] move %s/%s for %s already recorded, skipping', source, source_id, material_id)
        return None
    recorded_at = utcnow()
    _apply_snapshot(material_id, effective_at, location, qty)
    move = InventoryMove(
        material_id=material_id, qty=qty, effective_at=effective_at, recorded_at=recorded_at,
        storage_location=location, source=source, source_id=source_id, reason=reason,
        approved_by_email=approved_by_email, deleted=False,
    )
    session.add(move)
    _apply_stock(material_id, location, qty, source_id, recorded_at)
    session.flush()
    return move


def stock_at(material_id: str, location: str) -> float:
    stock = get_db().execute(
        select(InventoryStock).where(InventoryStock.material_id == material_id,
                                     InventoryStock.storage_location == location)
    ).scalar_one_or_none()
    return float(stock.quantity) if stock else 0.0


def approve_entries(entries: List[MaterialEntry], approved_by_email: Optional[str]) -> List[MaterialEntry]:
    """Approve a batch of entries in one transaction; any invalid entry rejects the whole batch."""
    session = get_db()
    for entry in entries:
        REQUEST_FSM.assert_can_transition(entry.state, MaterialEntry.STATE_ACCEPTED,
                                          f'La entrada {entry.id} ya fue aprobada')
        if float(entry.quantity or 0) <= 0:
            abort(400, description=f'Cantidad inválida para la entrada {entry.id}: {entry.quantity}')
    try:
        for entry in entries:
            record_move(entry.material_id, float(entry.quantity), InventoryMove.SOURCE_ENTRY, str(entry.id),
                        entry.entry_date, entry.storage_location, approved_by_email=approved_by_email)
            entry.state = MaterialEntry.STATE_ACCEPTED
            entry.accepted_at = utcnow()
            entry.accepted_by_email = approved_by_email
        session.commit()
    except Exception:
        session.rollback()
        current_app.logger.exception('[AEMAT01] approval of entries %s failed', [e.id for e in entries])
        raise
    current_app.logger.info('[AEMAT01] entries %s approved by %s', [e.id for e in entries], approved_by_email)
    return entries


def validate_exit_stock(exits: Iterable[MaterialExit]) -> List[str]:
    """Collect every stock problem across the batch before anything is written."""
    errors: List[str] = []
    reserved: Dict[tuple, float] = {}
    session = get_db()
    for ex in exits:
        for material_id, raw_qty in (ex.quantities or {}).items():
            try:
                qty = float(raw_qty)
            except (TypeError, ValueError):
                qty = 0
            if qty <= 0:
                errors.append(f'Salida {ex.id}: Cantidad inválida para material {material_id}: {raw_qty}')
                continue
            has_stock = session.execute(
                select(func.count()).select_from(InventoryStock).where(InventoryStock.material_id == material_id)
            ).scalar_one()
            if not has_stock:
                errors.append(f'Salida {ex.id}: No existe inventario para el material {material_id}. '
                              f'Debe registrar una entrada primero.')
                continue
            # Earlier exits of the same batch draw on the same stock
            key = (material_id, ex.storage_location)
            available = stock_at(material_id, ex.storage_location) - reserved.get(key, 0)
            reserved[key] = reserved.get(key, 0) + qty
            if available < qty:
                errors.append(f'Salida {ex.id}: Inventario insuficiente para {material_id} en {ex.storage_location}. '
                              f'Disponible: {available:g}, Requerido: {qty:g}')
    return errors


def approve_exit(ex: MaterialExit, approved_by_email: Optional[str]) -> MaterialExit:
    session = get_db()
    REQUEST_FSM.assert_can_transition(ex.state, MaterialExit.STATE_ACCEPTED,
                                      f'La salida {ex.id} ya fue aprobada')
    # Only order exits carry a reason: the work order the material is charged to
    reason = str(ex.work_order_id) if ex.entry_type == MaterialExit.TYPE_ORDER and ex.work_order_id else None
    try:
        for material_id, raw_qty in (ex.quantities or {}).items():
            record_move(material_id, -float(raw_qty), InventoryMove.SOURCE_EXIT, str(ex.id), ex.exit_date,
                        ex.storage_location, reason=reason, approved_by_email=approved_by_email)
        ex.state = MaterialExit.STATE_ACCEPTED
        ex.accepted_at = utcnow()
        ex.accepted_by_email = approved_by_email
        if ex.entry_type == MaterialExit.TYPE_ORDER and ex.work_order_id:
            order = session.get(WorkOrder, ex.work_order_id)
            if order is not None:
                order.state_used_audit = True
        session.commit()
    except Exception:
        session.rollback()
        current_app.logger.exception('[ASMAT01] approval of exit %s failed', ex.id)
        raise
    current_app.logger.info('[ASMAT01] exit %s approved by %s', ex.id, approved_by_email)
    return ex


def approve_exits(exits: List[MaterialExit], approved_by_email: Optional[str]) -> List[MaterialExit]:
    errors = validate_exit_stock(exits)
    if errors:
        current_app.logger.warning('[ASMAT01] validation failed: %s', errors)
        raise StockValidationError(errors)
    return [approve_exit(ex, approved_by_email) for ex in exits]


def material_stock(material_id: str) -> Dict[str, Dict[str, object]]:
    rows = get_db().execute(
        select(InventoryStock).where(InventoryStock.material_id == material_id)
        .order_by(InventoryStock.storage_location.asc())
    ).scalars().all()
    return {r.storage_location: {
        'quantity': r.quantity,
        'lastEntry': _iso(r.last_entry),
        'lastExit': _iso(r.last_exit),
        'lastModified': _iso(r.last_modified),
    } for r in rows}


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return as_utc(dt).isoformat() if dt else None


def move_json(m: InventoryMove) -> Dict[str, object]:
    return {
        'id': m.id,
        'material_id': m.material_id,
        'qty': m.qty,
        'effective_at': _iso(m.effective_at),
        'recorded_at': _iso(m.recorded_at),
        'storage_location': m.storage_location,
        'source': m.source,
        'source_id': m.source_id,
        'reason': m.reason,
        'approved_by_email': m.approved_by_email,
    }


def material_exists(material_id: str) -> bool:
    return get_db().get(Material, material_id) is not None
