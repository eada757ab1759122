from __future__ import annotations
from typing import Any, Dict, List, Set
from flask import current_app
from sqlalchemy import select
from erp import get_db
from erp.models.defaults import DefaultsDocument


def get_document(key: str) -> Dict[str, Any]:
    session = get_db()
    doc = session.execute(select(DefaultsDocument).where(DefaultsDocument.key == key)).scalar_one_or_none()
    if doc is None:
        return {}
    return dict(doc.data or {})


def put_document(key: str, data: Dict[str, Any], commit: bool = True) -> DefaultsDocument:
    session = get_db()
    doc = session.execute(select(DefaultsDocument).where(DefaultsDocument.key == key)).scalar_one_or_none()
    if doc is None:
        doc = DefaultsDocument(key=key, data=dict(data))
        session.add(doc)
    else:
        # JSON columns only persist on reassignment
        doc.data = dict(data)
    if commit:
        session.commit()
    return doc


def load_module_codes() -> Set[str]:
    """Configured module list, trimmed and uppercased; empty when not configured."""
    data = get_document(DefaultsDocument.KEY_MODULES)
    raw = data.get('modules_list')
    if not isinstance(raw, list):
        current_app.logger.warning('[modules] defaults/modules.modules_list missing, returning empty set')
        return set()
    return {str(code).strip().upper() for code in raw if str(code).strip()}


def get_user_parameters(user_id: str) -> Dict[str, Any]:
    data = get_document(DefaultsDocument.KEY_USERS_PARAMETERS)
    params = data.get(str(user_id))
    return dict(params) if isinstance(params, dict) else {}


def set_user_parameters(user_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    data = get_document(DefaultsDocument.KEY_USERS_PARAMETERS)
    data[str(user_id)] = dict(params)
    put_document(DefaultsDocument.KEY_USERS_PARAMETERS, data)
    return data[str(user_id)]


def fuel_providers() -> List[str]:
    data = get_document(DefaultsDocument.KEY_PROVIDERS)
    providers = data.get('fuel')
    return [str(p) for p in providers] if isinstance(providers, list) else []


def inventory_codes() -> Dict[str, Any]:
    data = get_document(DefaultsDocument.KEY_INVENTORY_CODES)
    return {
        'category': list(data.get('category') or []),
        'subcategories': dict(data.get('subcategories') or {}),
        'zone': list(data.get('zone') or []),
    }


def storage_defaults() -> Dict[str, List[str]]:
    data = get_document(DefaultsDocument.KEY_STORAGE)
    return {
        'storage_locations': list(data.get('storage_locations') or []),
        'movement_types': list(data.get('movement_types') or []),
    }
