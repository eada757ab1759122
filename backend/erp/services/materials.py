from __future__ import annotations
from typing import Any, Dict, Optional, Tuple
from flask import current_app
from sqlalchemy import select, func
from erp import get_db
from erp.models.material import Material
from erp.utils.validation import require_fields, raise_if_errors, is_blank

REQUIRED_MESSAGES = {
    'zone': 'La zona es requerida',
    'category': 'La categoría es requerida',
    'subcategory': 'La subcategoría es requerida',
    'description': 'La descripción es requerida',
    'min_stock': 'El stock mínimo es requerido',
    'unit': 'La unidad de medida es requerida',
}


def code_prefix(zone: str, category: str, subcategory: str) -> str:
    return f"{zone}-{category}-{subcategory}"


def next_numbers(zone: str, category: str, subcategory: str) -> Tuple[str, str, str]:
    """Return (document id, category number, full code) for the next material."""
    session = get_db()
    total = session.execute(select(func.count(Material.id))).scalar_one()
    doc_id = str(total + 1).zfill(6)
    in_prefix = session.execute(
        select(func.count(Material.id)).where(
            Material.zone == zone, Material.category == category, Material.subcategory == subcategory,
        )
    ).scalar_one()
    cat_num = str(in_prefix + 1).zfill(4)
    return doc_id, cat_num, f"{code_prefix(zone, category, subcategory)}-{cat_num}"


def validate_material(data: Dict[str, Any]) -> Dict[str, Any]:
    errors = require_fields(data, REQUIRED_MESSAGES)
    min_stock = data.get('min_stock')
    if 'min_stock' not in errors:
        try:
            min_stock = int(str(min_stock).strip())
            if min_stock < 0:
                raise ValueError
        except ValueError:
            errors['min_stock'] = 'El stock mínimo debe ser un número entero positivo'
    raise_if_errors(errors)
    return {
        'zone': str(data['zone']).strip().upper(),
        'category': str(data['category']).strip().upper(),
        'subcategory': str(data['subcategory']).strip().upper(),
        'description': str(data['description']).strip(),
        'min_stock': min_stock,
        'unit': str(data['unit']).strip(),
        'brand': 'default' if is_blank(data.get('brand')) else str(data['brand']).strip(),
        'supplier': 'default' if is_blank(data.get('supplier')) else str(data['supplier']).strip(),
    }


def create_material(data: Dict[str, Any], user_id: str, user_email: Optional[str]) -> Material:
    clean = validate_material(data)
    doc_id, cat_num, code = next_numbers(clean['zone'], clean['category'], clean['subcategory'])
    session = get_db()
    material = Material(
        id=doc_id, category_number=cat_num, code=code,
        created_by=user_id, created_by_email=user_email, **clean,
    )
    session.add(material)
    session.commit()
    current_app.logger.info('[CMAT01] material %s created as %s', code, doc_id)
    return material


def material_json(m: Material) -> Dict[str, Any]:
    return {
        'id': m.id,
        'code': m.code,
        'zone': m.zone,
        'category': m.category,
        'subcategory': m.subcategory,
        'category_number': m.category_number,
        'description': m.description,
        'min_stock': m.min_stock,
        'unit': m.unit,
        'brand': m.brand,
        'supplier': m.supplier,
        'created_by': m.created_by,
        'created_by_email': m.created_by_email,
    }
