from __future__ import annotations
from typing import Any, Dict, Optional
from flask import current_app
from erp import get_db
from erp.models.material import Material
from erp.models.work_order import WorkOrder
from erp.utils.date_range import as_utc
from erp.utils.fsm import TransitionValidator
from erp.utils.validation import require_fields, raise_if_errors, coerce_positive_number, is_blank

ORDER_FSM = TransitionValidator({
    WorkOrder.STATE_OPEN: {WorkOrder.STATE_CLOSED},
    WorkOrder.STATE_CLOSED: set(),
}, field_name='state')


def create_work_order(data: Dict[str, Any], user_id: str) -> WorkOrder:
    errors = require_fields(data, {
        'order_type': 'Debe seleccionar el tipo de orden',
        'description': 'La descripción es requerida',
    })
    order_type = data.get('order_type')
    if 'order_type' not in errors and order_type not in WorkOrder.ALL_TYPES:
        errors['order_type'] = 'Tipo de orden inválido'
    if order_type == WorkOrder.TYPE_GENERAL and is_blank(data.get('equipment')):
        errors['equipment'] = 'Debe indicar el equipo'
    if order_type == WorkOrder.TYPE_WORKSHOP and is_blank(data.get('mobile_unit')):
        errors['mobile_unit'] = 'Debe seleccionar una unidad móvil'
    technicians = data.get('technicians') or []
    if not isinstance(technicians, list):
        errors['technicians'] = 'Lista de técnicos inválida'
        technicians = []
    required = data.get('required_materials') or {}
    cleaned: Dict[str, float] = {}
    if not isinstance(required, dict):
        errors['required_materials'] = 'Materiales requeridos inválidos'
    else:
        session = get_db()
        for material_id, raw_qty in required.items():
            qty = coerce_positive_number(raw_qty)
            if qty is None:
                errors[f'required-{material_id}'] = 'La cantidad debe ser mayor a 0'
            elif session.get(Material, str(material_id)) is None:
                errors[f'required-{material_id}'] = 'Material no encontrado'
            else:
                cleaned[str(material_id)] = qty
    raise_if_errors(errors)
    order = WorkOrder(
        order_type=order_type,
        equipment=(data.get('equipment') or None) if order_type == WorkOrder.TYPE_GENERAL else None,
        mobile_unit=(data.get('mobile_unit') or None) if order_type == WorkOrder.TYPE_WORKSHOP else None,
        description=str(data['description']).strip(),
        technicians=[str(t).strip() for t in technicians if str(t).strip()],
        required_materials=cleaned,
        state=WorkOrder.STATE_OPEN,
        created_by=user_id,
    )
    session = get_db()
    session.add(order)
    session.commit()
    current_app.logger.info('[CORD01] work order %s (%s) created', order.id, order.order_type)
    return order


def close_work_order(order: WorkOrder) -> WorkOrder:
    ORDER_FSM.assert_can_transition(order.state, WorkOrder.STATE_CLOSED, f'La orden {order.id} ya está cerrada')
    order.state = WorkOrder.STATE_CLOSED
    get_db().commit()
    current_app.logger.info('[CORD01] work order %s closed', order.id)
    return order


def work_order_json(o: WorkOrder) -> Dict[str, Any]:
    return {
        'id': o.id,
        'order_type': o.order_type,
        'equipment': o.equipment,
        'mobile_unit': o.mobile_unit,
        'equipment_label': o.equipment_label,
        'description': o.description,
        'technicians': o.technicians or [],
        'required_materials': o.required_materials or {},
        'state': o.state,
        'state_used_audit': o.state_used_audit,
        'created_by': o.created_by,
        'created_at': _iso(o.created_at),
    }


def _iso(dt) -> Optional[str]:
    return as_utc(dt).isoformat() if dt else None
