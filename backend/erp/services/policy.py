from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Set
from flask import abort, current_app
from flask_jwt_extended import get_jwt, get_jwt_identity
from erp.constants.modules import (
    ACCESS_LEVELS, LEVEL_READ, ADMIN_ROLE_ID, ADMIN_ROLE_LABEL, NO_ROLE_LABEL, WILDCARD_MODULE,
    LEVEL_ADMIN,
)


@dataclass
class UserPermissions:
    role: Optional[str] = None
    role_label: Optional[str] = None
    modules: Dict[str, str] = field(default_factory=dict)
    is_admin: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            'role': self.role,
            'roleLabel': self.role_label,
            'modules': dict(self.modules),
            'isAdmin': self.is_admin,
        }


def level_rank(level: Optional[str]) -> int:
    return ACCESS_LEVELS.get(level or '', 0)


def extract_user_permissions(claims: Optional[Mapping[str, Any]]) -> UserPermissions:
    """Read role data from token claims. Both ``isAdmin`` and ``admin`` flags are honoured."""
    claims = claims or {}
    modules = claims.get('modules') or {}
    if not isinstance(modules, dict):
        modules = {}
    return UserPermissions(
        role=claims.get('role'),
        role_label=claims.get('roleLabel'),
        modules=dict(modules),
        is_admin=claims.get('isAdmin') is True or claims.get('admin') is True,
    )


def has_module_access(perms: UserPermissions, module_code: str, required_level: str = LEVEL_READ) -> bool:
    if perms.is_admin:
        return True
    user_level = perms.modules.get(module_code)
    if not user_level:
        return False
    return level_rank(user_level) >= level_rank(required_level)


def get_user_accessible_modules(perms: UserPermissions) -> Set[str]:
    if perms.is_admin:
        return {WILDCARD_MODULE}
    return set(perms.modules.keys())


def accessible_modules_compat(perms: UserPermissions) -> Set[str]:
    """Admins resolve to the configured module list, everyone else to their own modules."""
    if perms.is_admin:
        from erp.services.defaults import load_module_codes
        return load_module_codes()
    return get_user_accessible_modules(perms)


def format_role_display(label: str, modules: Mapping[str, str]) -> str:
    return f"{label} ({len(modules)} módulos)"


def get_user_role_display(perms: UserPermissions) -> str:
    if perms.is_admin:
        return ADMIN_ROLE_LABEL
    return perms.role_label or perms.role or NO_ROLE_LABEL


def build_role_claims(role_id: str, label: str, modules: Mapping[str, str], assigned_at_ms: int) -> Dict[str, Any]:
    return {
        'role': role_id,
        'roleLabel': label,
        'modules': dict(modules),
        'assignedAt': assigned_at_ms,
        'isAdmin': role_id == ADMIN_ROLE_ID,
    }


def build_initial_admin_claims(assigned_at_ms: int) -> Dict[str, Any]:
    return {
        'isAdmin': True,
        'admin': True,
        'role': ADMIN_ROLE_ID,
        'roleLabel': ADMIN_ROLE_LABEL,
        'modules': {WILDCARD_MODULE: LEVEL_ADMIN},
        'assignedAt': assigned_at_ms,
    }


def validate_role_modules(modules: Any) -> Dict[str, str]:
    """Return the cleaned module map or abort 400 on unknown codes/levels."""
    from erp.services.modules import is_valid_module_code
    if not isinstance(modules, dict):
        abort(400, description='modules must be an object of module code -> level')
    cleaned: Dict[str, str] = {}
    for code, level in modules.items():
        code_u = str(code).strip().upper()
        if code_u != WILDCARD_MODULE and not is_valid_module_code(code_u):
            abort(400, description=f'Código de módulo inválido: {code}')
        if level not in ACCESS_LEVELS:
            abort(400, description=f'Nivel de acceso inválido para {code_u}: {level}')
        cleaned[code_u] = level
    return cleaned


# ---------- Request-scoped helpers (JWT must already be verified) ---------- #

def current_permissions() -> UserPermissions:
    return extract_user_permissions(get_jwt())


def is_anonymous_session() -> bool:
    return get_jwt().get('anonymous') is True


def current_user_id() -> str:
    return str(get_jwt_identity())


def current_user_email() -> Optional[str]:
    return get_jwt().get('email')


def check_access(
    module: Optional[str] = None,
    level: str = LEVEL_READ,
    admin: bool = False,
    any_roles: Iterable[str] = (),
    all_roles: Iterable[str] = (),
) -> Optional[str]:
    """Evaluate guard requirements; returns the denial message or None when allowed."""
    if is_anonymous_session():
        return 'Anonymous session cannot access modules'
    perms = current_permissions()
    if admin and not perms.is_admin:
        return 'Admin access required'
    any_roles = tuple(any_roles)
    if any_roles and not perms.is_admin and perms.role not in any_roles:
        return 'Role not allowed'
    all_roles = tuple(all_roles)
    # A user carries a single role, so "all" only holds when every listed role is that one
    if all_roles and not perms.is_admin and any(r != perms.role for r in all_roles):
        return 'Role not allowed'
    if module and not has_module_access(perms, module, level):
        current_app.logger.info('[Guard] denied %s on %s (level %s)', current_user_id(), module, level)
        return f'Missing {level} access to {module}'
    return None


__all__ = [
    'UserPermissions', 'level_rank', 'extract_user_permissions', 'has_module_access',
    'get_user_accessible_modules', 'accessible_modules_compat', 'format_role_display',
    'get_user_role_display', 'build_role_claims', 'build_initial_admin_claims', 'validate_role_modules',
    'current_permissions', 'is_anonymous_session', 'current_user_id', 'current_user_email', 'check_access',
]
