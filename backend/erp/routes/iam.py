from __future__ import annotations
import re
import secrets
from datetime import timedelta
from flask import Blueprint, request, abort, current_app
from flask_jwt_extended import create_access_token, get_jwt_identity
from sqlalchemy import select
from erp import get_db
from erp.models.authz import User, Role, UserRole
from erp.decorators.auth import require_access, require_session
from erp.services.policy import (
    extract_user_permissions, format_role_display, get_user_role_display, validate_role_modules,
    is_anonymous_session, get_user_accessible_modules,
)
from erp.utils.listing import apply_pagination, cached_list, cached_item, latest_timestamp
from erp.utils.date_range import as_utc

iam_bp = Blueprint('iam', __name__)

ROLE_ID_RE = re.compile(r'^[a-z0-9][a-z0-9_-]{1,63}$')
ANONYMOUS_TOKEN_TTL = timedelta(hours=1)


def _issue_token(user: User) -> str:
    claims = dict(user.custom_claims or {})
    claims['email'] = user.email
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    return create_access_token(identity=str(user.id), additional_claims=claims)


def _role_json(role: Role):
    modules = role.modules or {}
    return {
        'id': role.id,
        'label': role.label,
        'modules': modules,
        'description': role.description,
        'display': format_role_display(role.label, modules),
        'updated_at': as_utc(role.updated_at).isoformat() if role.updated_at else None,
    }


def _assignment_json(a: UserRole):
    return {
        'userId': str(a.user_id),
        'roleId': a.role_id,
        'roleLabel': a.role_label,
        'assignedBy': a.assigned_by,
        'assignedAt': as_utc(a.assigned_at).isoformat() if a.assigned_at else None,
        'userEmail': a.user_email,
        'userName': a.user_name,
    }


@iam_bp.post('/auth/login')
def login():
    data = request.get_json(silent=True) or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not user.is_active or not user.verify_password(password):
        current_app.logger.info('[Auth] failed login for %s', email)
        abort(401, description='invalid credentials')
    return {'access_token': _issue_token(user)}


@iam_bp.post('/auth/anonymous')
def anonymous_session():
    """Short-lived session for the remote signing page; never passes a module check."""
    identity = f"anon-{secrets.token_hex(8)}"
    token = create_access_token(identity=identity, additional_claims={'anonymous': True},
                                expires_delta=ANONYMOUS_TOKEN_TTL)
    return {'access_token': token, 'uid': identity}


@iam_bp.post('/auth/refresh')
@require_session
def refresh():
    """Re-issue the token from the stored claims (picks up role changes)."""
    if is_anonymous_session():
        abort(403, description='Anonymous sessions cannot be refreshed')
    session = get_db()
    user = session.execute(select(User).where(User.id == int(get_jwt_identity()))).scalar_one_or_none()
    if not user or not user.is_active:
        abort(401, description='user no longer active')
    return {'access_token': _issue_token(user)}


@iam_bp.get('/auth/me')
@require_session
def me():
    if is_anonymous_session():
        return {'id': get_jwt_identity(), 'anonymous': True}
    # Identity stored as string, cast back to int for DB lookup
    user_id = int(get_jwt_identity())
    session = get_db()
    user = session.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    perms = extract_user_permissions(user.custom_claims)
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'permissions': perms.as_dict(),
        'roleDisplay': get_user_role_display(perms),
        'modules': sorted(get_user_accessible_modules(perms)),
    }


@iam_bp.route('/roles', methods=['GET', 'HEAD'])
@require_access(admin=True)
def list_roles():
    session = get_db()
    q = session.query(Role).order_by(Role.label.asc(), Role.id.asc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return cached_list([_role_json(r) for r in rows], total, limit, offset,
                       latest_timestamp(r.updated_at for r in rows))


@iam_bp.route('/roles/<role_id>', methods=['GET', 'HEAD'])
@require_access(admin=True)
def get_role(role_id: str):
    session = get_db()
    role = session.execute(select(Role).where(Role.id == role_id)).scalar_one_or_none()
    if not role:
        abort(404, description=f'Role {role_id} does not exist')
    return cached_item(_role_json(role), as_utc(role.updated_at))


@iam_bp.post('/roles')
@require_access(admin=True)
def create_role():
    data = request.get_json(silent=True) or {}
    role_id = (data.get('id') or '').strip().lower()
    label = (data.get('label') or '').strip()
    if not role_id or not label:
        abort(400, description='id and label required')
    if not ROLE_ID_RE.match(role_id):
        abort(400, description='id must be a lowercase slug')
    modules = validate_role_modules(data.get('modules') or {})
    session = get_db()
    if session.execute(select(Role).where(Role.id == role_id)).scalar_one_or_none():
        abort(409, description='role exists')
    role = Role(id=role_id, label=label, modules=modules, description=data.get('description'))
    session.add(role)
    session.commit()
    current_app.logger.info('[Roles] role %s created', role_id)
    return _role_json(role), 201


@iam_bp.put('/roles/<role_id>')
@require_access(admin=True)
def update_role(role_id: str):
    """Users holding the role pick up the change on their next assignment or refresh."""
    session = get_db()
    role = session.execute(select(Role).where(Role.id == role_id)).scalar_one_or_none()
    if not role:
        abort(404, description=f'Role {role_id} does not exist')
    data = request.get_json(silent=True) or {}
    if 'label' in data:
        label = (data.get('label') or '').strip()
        if not label:
            abort(400, description='label cannot be empty')
        role.label = label
    if 'modules' in data:
        role.modules = validate_role_modules(data.get('modules') or {})
    if 'description' in data:
        role.description = data.get('description')
    session.commit()
    return _role_json(role)


@iam_bp.route('/user-roles', methods=['GET', 'HEAD'])
@require_access(admin=True)
def list_user_roles():
    session = get_db()
    q = session.query(UserRole).order_by(UserRole.assigned_at.desc(), UserRole.user_id.asc())
    if request.args.get('roleId'):
        q = q.filter(UserRole.role_id == request.args['roleId'])
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    data = [_assignment_json(a) for a in rows]
    for row in data:
        row['id'] = row['userId']
    return cached_list(data, total, limit, offset, latest_timestamp(as_utc(a.assigned_at) for a in rows))
