from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from erp import get_db
from erp.models.material import Material
from erp.decorators.auth import require_access
from erp.services.materials import create_material, material_json, next_numbers
from erp.services.defaults import inventory_codes
from erp.services.policy import current_user_id, current_user_email
from erp.utils.listing import apply_filters, apply_multi_sort, apply_pagination, cached_list, cached_item, latest_timestamp
from erp.utils.date_range import as_utc

mat_bp = Blueprint('materials', __name__)

MODULE = 'CMAT01'


@mat_bp.route('/materials', methods=['GET', 'HEAD'])
@require_access(MODULE)
def list_materials():
    session = get_db()
    q = session.query(Material)
    filter_specs = {
        'category': {'coerce': str.upper, 'op': lambda qu, v: qu.filter(Material.category == v)},
        'zone': {'coerce': str.upper, 'op': lambda qu, v: qu.filter(Material.zone == v)},
        'q': {'op': lambda qu, v: qu.filter(Material.description.ilike(f'%{v}%') | Material.code.ilike(f'%{v}%'))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'code': Material.code, 'description': Material.description, 'id': Material.id}
    q = apply_multi_sort(q, request.args.get('sort') or 'code', allowed, Material.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return cached_list([material_json(m) for m in rows], total, limit, offset,
                       latest_timestamp(as_utc(m.updated_at) for m in rows))


@mat_bp.route('/materials/<material_id>', methods=['GET', 'HEAD'])
@require_access(MODULE)
def get_material(material_id: str):
    session = get_db()
    m = session.execute(select(Material).where(Material.id == material_id)).scalar_one_or_none()
    if not m:
        abort(404, description='Material no encontrado')
    return cached_item(material_json(m), as_utc(m.updated_at))


@mat_bp.post('/materials')
@require_access(MODULE, 'rw')
def create_material_endpoint():
    data = request.get_json(silent=True) or {}
    material = create_material(data, current_user_id(), current_user_email())
    return material_json(material), 201


@mat_bp.get('/materials/next-code')
@require_access(MODULE, 'rw')
def preview_next_code():
    zone = (request.args.get('zone') or '').strip().upper()
    category = (request.args.get('category') or '').strip().upper()
    subcategory = (request.args.get('subcategory') or '').strip().upper()
    if not zone or not category or not subcategory:
        abort(400, description='zone, category y subcategory son requeridos')
    doc_id, cat_num, code = next_numbers(zone, category, subcategory)
    return {'id': doc_id, 'category_number': cat_num, 'code': code}


@mat_bp.get('/options')
@require_access(MODULE)
def material_options():
    return inventory_codes()
