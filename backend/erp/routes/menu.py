from __future__ import annotations
from flask import Blueprint, request, abort
from erp.decorators.auth import require_access, require_session
from erp.services.policy import current_permissions, has_module_access, accessible_modules_compat, current_user_id, is_anonymous_session
from erp.services.defaults import load_module_codes, get_user_parameters, set_user_parameters
from erp.services.modules import build_registry, sorted_modules, is_valid_module_code
from erp.utils.listing import cached_item

menu_bp = Blueprint('menu', __name__)


@menu_bp.route('/modules', methods=['GET', 'HEAD'])
@require_access()
def list_modules():
    """Modules the caller may open, with their registry status."""
    perms = current_permissions()
    registry = build_registry(load_module_codes())
    allowed = accessible_modules_compat(perms)
    visible = [m for m in sorted_modules(registry) if m.code in allowed]
    body = {
        'modules': [m.as_dict() for m in visible],
        'isAdmin': perms.is_admin,
    }
    return cached_item(body)


@menu_bp.route('/modules/<code>', methods=['GET', 'HEAD'])
@require_access()
def get_module(code: str):
    code_u = code.strip().upper()
    if not is_valid_module_code(code_u):
        abort(400, description=f'Código de módulo inválido: {code}')
    registry = build_registry(load_module_codes())
    info = registry.get(code_u)
    if info is None or not info.configured:
        abort(404, description=f'Módulo {code_u} no encontrado')
    if not info.implemented:
        abort(404, description=f'Módulo {code_u} no disponible')
    if not has_module_access(current_permissions(), code_u):
        abort(403, description=f'Sin acceso al módulo {code_u}')
    return cached_item(info.as_dict())


@menu_bp.route('/parameters', methods=['GET', 'HEAD'])
@require_session
def get_parameters():
    if is_anonymous_session():
        abort(403, description='Anonymous sessions have no parameters')
    return cached_item({'userId': current_user_id(), 'parameters': get_user_parameters(current_user_id())})


@menu_bp.put('/parameters')
@require_session
def put_parameters():
    if is_anonymous_session():
        abort(403, description='Anonymous sessions have no parameters')
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description='parameters must be a JSON object')
    saved = set_user_parameters(current_user_id(), data)
    return {'userId': current_user_id(), 'parameters': saved}
