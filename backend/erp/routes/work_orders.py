from __future__ import annotations
from flask import Blueprint, request, abort
from erp import get_db
from erp.models.work_order import WorkOrder
from erp.decorators.auth import require_access
from erp.services.work_orders import create_work_order, close_work_order, work_order_json
from erp.services.policy import current_user_id
from erp.utils.listing import apply_filters, apply_multi_sort, apply_pagination, cached_list, cached_item, latest_timestamp
from erp.utils.date_range import as_utc
from erp.utils.validation import validate_status

cord_bp = Blueprint('work_orders', __name__)

MODULE = 'CORD01'


def _get_order(order_id: int) -> WorkOrder:
    order = get_db().get(WorkOrder, order_id)
    if order is None:
        abort(404, description=f'Orden {order_id} no encontrada')
    return order


@cord_bp.route('/orders', methods=['GET', 'HEAD'])
@require_access(MODULE)
def list_orders():
    session = get_db()
    q = session.query(WorkOrder)
    filter_specs = {
        'state': {'validate': lambda v: validate_status(v, WorkOrder.ALL_STATES, 'state'),
                  'op': lambda qu, v: qu.filter(WorkOrder.state == v)},
        'order_type': {'validate': lambda v: validate_status(v, WorkOrder.ALL_TYPES, 'order_type'),
                       'op': lambda qu, v: qu.filter(WorkOrder.order_type == v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'id': WorkOrder.id, 'created_at': WorkOrder.created_at, 'state': WorkOrder.state}
    q = apply_multi_sort(q, request.args.get('sort') or '-id', allowed, WorkOrder.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return cached_list([work_order_json(o) for o in rows], total, limit, offset,
                       latest_timestamp(as_utc(o.updated_at) for o in rows))


@cord_bp.route('/orders/<int:order_id>', methods=['GET', 'HEAD'])
@require_access(MODULE)
def get_order(order_id: int):
    order = _get_order(order_id)
    return cached_item(work_order_json(order), as_utc(order.updated_at))


@cord_bp.post('/orders')
@require_access(MODULE, 'rw')
def create_order():
    data = request.get_json(silent=True) or {}
    order = create_work_order(data, current_user_id())
    return work_order_json(order), 201


@cord_bp.post('/orders/<int:order_id>/close')
@require_access(MODULE, 'rw')
def close_order(order_id: int):
    order = close_work_order(_get_order(order_id))
    return work_order_json(order)
