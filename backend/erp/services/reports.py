"""Inventory report aggregation.

Moves are fetched per material in batches of ``REPORT_BATCH_SIZE`` materials and joined
with the exit requests and work orders they came from, so every row knows which order
type and equipment it was charged to. Output rows are plain dicts shared by the JSON
endpoints and the PDF builders.
"""
from __future__ import annotations
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from erp import get_db
from erp.models.inventory import InventoryMove, InventoryStock, MaterialExit
from erp.models.material import Material
from erp.models.work_order import WorkOrder
from erp.utils.date_range import DateRange, to_local, format_day

STOCK_BATCH_SIZE = 15
UNASSIGNED = 'SIN ASIGNAR'
ORDER_TYPE_PRIVATE = 'Particular'
WORKSHOP_ORDER_TYPES = (WorkOrder.TYPE_WORKSHOP, ORDER_TYPE_PRIVATE)
FILTER_INCLUDE = 'include'
FILTER_EXCLUDE = 'exclude'
FILTER_MODES = (FILTER_INCLUDE, FILTER_EXCLUDE)


def _batched(items: List[Any], size: int) -> Iterable[List[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def fetch_materials(category: Optional[str] = None, zone: Optional[str] = None) -> List[Material]:
    q = select(Material)
    if category:
        q = q.where(Material.category == category.upper())
    if zone:
        q = q.where(Material.zone == zone.upper())
    return list(get_db().execute(q.order_by(Material.code.asc())).scalars().all())


def fetch_moves(material_ids: List[str], rng: DateRange) -> List[InventoryMove]:
    """Non-deleted moves inside the range, newest first. A failing batch is skipped."""
    session = get_db()
    start, end = rng.utc_bounds()
    batch_size = int(current_app.config.get('REPORT_BATCH_SIZE') or 10)
    moves: List[InventoryMove] = []
    for chunk in _batched(material_ids, batch_size):
        try:
            moves.extend(session.execute(
                select(InventoryMove).where(
                    InventoryMove.material_id.in_(chunk),
                    InventoryMove.deleted.is_(False),
                    InventoryMove.effective_at >= start,
                    InventoryMove.effective_at <= end,
                )
            ).scalars().all())
        except SQLAlchemyError:
            current_app.logger.exception('[INV01] move batch %s failed, skipping', chunk)
    moves.sort(key=lambda m: (to_local(m.effective_at), m.id), reverse=True)
    return moves


def _fetch_by_ids(model, ids: List[Any], batch_size: int) -> Dict[Any, Any]:
    session = get_db()
    found: Dict[Any, Any] = {}
    for chunk in _batched(ids, batch_size):
        for row in session.execute(select(model).where(model.id.in_(chunk))).scalars().all():
            found[row.id] = row
    return found


def _as_int(raw) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def enrich_moves(moves: List[InventoryMove], materials: Dict[str, Material]) -> List[Dict[str, Any]]:
    batch_size = int(current_app.config.get('REPORT_BATCH_SIZE') or 10)
    exit_ids = sorted({_as_int(m.source_id) for m in moves if m.source == InventoryMove.SOURCE_EXIT} - {None})
    exits = _fetch_by_ids(MaterialExit, exit_ids, batch_size)
    order_ids = sorted({_as_int(m.reason) for m in moves if m.source == InventoryMove.SOURCE_EXIT} - {None})
    orders = _fetch_by_ids(WorkOrder, order_ids, batch_size)
    rows = []
    for m in moves:
        order_type = None
        equipment = None
        ex = None
        if m.source == InventoryMove.SOURCE_EXIT:
            ex = exits.get(_as_int(m.source_id))
            order = orders.get(_as_int(m.reason))
            if ex is not None and ex.entry_type == MaterialExit.TYPE_PRIVATE and ex.mobile_unit:
                order_type = ORDER_TYPE_PRIVATE
                equipment = ex.mobile_unit
            elif order is not None and (ex is None or ex.entry_type == MaterialExit.TYPE_ORDER):
                order_type = order.order_type
                equipment = order.equipment_label
        material = materials.get(m.material_id)
        local = to_local(m.effective_at)
        rows.append({
            'id': m.id,
            'materialId': m.material_id,
            'materialCode': material.code if material else None,
            'materialDescription': material.description if material else None,
            'unit': material.unit if material else None,
            'qty': m.qty,
            'effectiveAt': local.isoformat(),
            'date': format_day(local.date()),
            'storageLocation': m.storage_location,
            'source': m.source,
            'sourceId': m.source_id,
            'reason': m.reason,
            'notes': ex.notes if ex is not None else None,
            'orderType': order_type,
            'equipmentOrUnit': equipment,
            'approvedBy': m.approved_by_email,
        })
    return rows


def summarize_by_material(rows: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    summary: Dict[str, Dict[str, Any]] = OrderedDict()
    for row in sorted(rows, key=lambda r: r['materialCode'] or ''):
        item = summary.setdefault(row['materialId'], {
            'materialCode': row['materialCode'],
            'materialDescription': row['materialDescription'],
            'entries': 0.0, 'exits': 0.0, 'net': 0.0,
        })
        if row['qty'] >= 0:
            item['entries'] += row['qty']
        else:
            item['exits'] += abs(row['qty'])
        item['net'] += row['qty']
    return summary


def group_by_cost_center(rows: List[Dict[str, Any]], only: Iterable[str] = ()) -> Dict[str, Dict[str, Any]]:
    """Taller exits grouped by equipment or unit, keys sorted; ``only`` narrows the keys."""
    only = set(only)
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for row in rows:
        if row['qty'] >= 0 or row['orderType'] != WorkOrder.TYPE_WORKSHOP:
            continue
        key = row['equipmentOrUnit'] or UNASSIGNED
        if only and key not in only:
            continue
        grouped.setdefault(key, []).append(row)
    return OrderedDict(
        (key, {'moves': grouped[key], 'total': sum(abs(r['qty']) for r in grouped[key])})
        for key in sorted(grouped)
    )


def _code_set(codes: Iterable[str]) -> set:
    return {c.strip().upper() for c in codes if c and c.strip()}


def code_filter_label(codes: Iterable[str], mode: str = FILTER_INCLUDE) -> str:
    codes = _code_set(codes)
    if not codes:
        return ''
    return f"{len(codes)} material(es) {'incluidos' if mode == FILTER_INCLUDE else 'excluidos'}"


def filter_by_codes(rows: List[Dict[str, Any]], codes: Iterable[str], mode: str = FILTER_INCLUDE) -> List[Dict[str, Any]]:
    """Keep (``include``) or drop (``exclude``) rows whose material code is listed; no codes keeps all."""
    wanted = _code_set(codes)
    if not wanted:
        return list(rows)
    include = mode == FILTER_INCLUDE
    return [r for r in rows if r['materialCode'] and (r['materialCode'] in wanted) == include]


def filter_movement_rows(rows: List[Dict[str, Any]], entries: bool = True, exits: bool = True,
                         workshop_only: bool = False, codes: Iterable[str] = (),
                         mode: str = FILTER_INCLUDE) -> List[Dict[str, Any]]:
    if not entries and not exits:
        return []
    if not entries:
        rows = [r for r in rows if r['qty'] < 0]
    if not exits:
        rows = [r for r in rows if r['qty'] > 0]
    if workshop_only:
        rows = [r for r in rows if r['orderType'] in WORKSHOP_ORDER_TYPES]
    return filter_by_codes(rows, codes, mode)


def build_movements_report(rng: DateRange, category: Optional[str] = None, zone: Optional[str] = None,
                           entries: bool = True, exits: bool = True, workshop_only: bool = False,
                           codes: Iterable[str] = (), mode: str = FILTER_INCLUDE) -> Dict[str, Any]:
    materials = fetch_materials(category, zone)
    by_id = {m.id: m for m in materials}
    moves = fetch_moves(list(by_id), rng)
    rows = filter_movement_rows(enrich_moves(moves, by_id), entries, exits, workshop_only, codes, mode)
    current_app.logger.info('[INV01] movements report %s: %d materials, %d moves', rng.label(), len(materials), len(rows))
    return {
        'range': rng.label(),
        'start': format_day(rng.start),
        'end': format_day(rng.end),
        'filter': code_filter_label(codes, mode),
        'moves': rows,
        'byMaterial': summarize_by_material(rows),
    }


def build_current_inventory(category: Optional[str] = None, zone: Optional[str] = None,
                            codes: Iterable[str] = (), mode: str = FILTER_INCLUDE) -> List[Dict[str, Any]]:
    """Stock per material and location, stock rows fetched ``STOCK_BATCH_SIZE`` materials at a time."""
    session = get_db()
    wanted = _code_set(codes)
    materials = [m for m in fetch_materials(category, zone)
                 if not wanted or (m.code in wanted) == (mode == FILTER_INCLUDE)]
    stock: Dict[str, Dict[str, float]] = {}
    for chunk in _batched([m.id for m in materials], STOCK_BATCH_SIZE):
        for row in session.execute(select(InventoryStock).where(InventoryStock.material_id.in_(chunk))).scalars().all():
            stock.setdefault(row.material_id, {})[row.storage_location] = float(row.quantity or 0)
    rows = []
    for m in materials:
        locations = OrderedDict(sorted(stock.get(m.id, {}).items()))
        total = sum(locations.values())
        rows.append({
            'materialId': m.id,
            'materialCode': m.code,
            'materialDescription': m.description,
            'unit': m.unit,
            'minStock': m.min_stock,
            'locations': locations,
            'total': total,
            'belowMinimum': total < (m.min_stock or 0),
        })
    return rows
