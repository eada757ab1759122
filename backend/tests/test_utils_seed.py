"""Test seeding utilities to reduce duplication.

The suite shares one in-memory database, so every helper is idempotent and callers pass
unique emails / ids.
"""
from typing import Dict, Iterable, Optional
from itertools import count
from erp import get_db
from erp.models.authz import User, Role
from erp.models.defaults import DefaultsDocument
from erp.models.material import Material
from erp.models.work_order import WorkOrder
from erp.constants.modules import IMPLEMENTED_MODULES
from erp.services.defaults import put_document

SETUP_KEY = 'test-setup-key'
STORAGE_LOCATIONS = ['BODEGA-1', 'BODEGA-2', 'TALLER']

_material_seq = count(1)


def ensure_defaults(storage_locations: Iterable[str]):
    put_document(DefaultsDocument.KEY_MODULES, {'modules_list': sorted(IMPLEMENTED_MODULES) + ['ADM01']})
    put_document(DefaultsDocument.KEY_STORAGE, {'storage_locations': list(storage_locations),
                                                'movement_types': ['entrada', 'salida']})
    put_document(DefaultsDocument.KEY_PROVIDERS, {'fuel': ['Petropar', 'Copetrol']})
    put_document(DefaultsDocument.KEY_INVENTORY_CODES, {
        'category': ['FER', 'ELE'],
        'subcategories': {'FER': ['TOR', 'CLA'], 'ELE': ['CAB']},
        'zone': ['A', 'B'],
    })


def ensure_user(email: str, name: Optional[str] = None, password: str = 'pw') -> User:
    session = get_db()
    u = session.query(User).filter_by(email=email).one_or_none()
    if not u:
        u = User(name=name or email.split('@')[0], email=email, password_hash='')
        u.set_password(password)
        session.add(u); session.commit(); session.refresh(u)
    return u


def ensure_role(role_id: str, label: Optional[str] = None, modules: Optional[Dict[str, str]] = None) -> Role:
    session = get_db()
    role = session.query(Role).filter_by(id=role_id).one_or_none()
    if not role:
        role = Role(id=role_id, label=label or role_id.title(), modules=modules or {})
        session.add(role); session.commit()
    return role


def ensure_material(description: str, zone: str = 'A', category: str = 'FER', subcategory: str = 'TOR',
                    min_stock: int = 0, unit: str = 'UN') -> Material:
    """Insert a catalog row directly; ids use a T prefix so they never meet generated ones."""
    session = get_db()
    existing = session.query(Material).filter_by(description=description).one_or_none()
    if existing:
        return existing
    n = next(_material_seq)
    m = Material(
        id=f'T{n:05d}', zone=zone, category=category, subcategory=subcategory, category_number=f'{9000 + n:04d}',
        code=f'{zone}-{category}-{subcategory}-T{n:04d}', description=description, min_stock=min_stock,
        unit=unit, brand='default', supplier='default', created_by='seed',
    )
    session.add(m); session.commit()
    return m


def create_work_order(order_type: str = WorkOrder.TYPE_WORKSHOP, unit: Optional[str] = 'M-01',
                      equipment: Optional[str] = None, required: Optional[Dict[str, float]] = None,
                      state: str = WorkOrder.STATE_OPEN) -> WorkOrder:
    session = get_db()
    order = WorkOrder(
        order_type=order_type,
        mobile_unit=unit if order_type == WorkOrder.TYPE_WORKSHOP else None,
        equipment=equipment if order_type == WorkOrder.TYPE_GENERAL else None,
        description='Orden de prueba', technicians=['Tec'], required_materials=required or {},
        state=state, created_by='seed',
    )
    session.add(order); session.commit(); session.refresh(order)
    return order


__all__ = ['ensure_defaults', 'ensure_user', 'ensure_role', 'ensure_material', 'create_work_order']
