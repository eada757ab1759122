"""Administrative role endpoints.

The caller's token may travel in the body as ``adminToken`` or as a Bearer header.
Unexpected failures map to a static 500 message per endpoint.
"""
from __future__ import annotations
import hmac
from functools import wraps
from flask import Blueprint, request, abort, current_app
from flask_jwt_extended import decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from werkzeug.exceptions import HTTPException
from sqlalchemy import select
from erp import get_db
from erp.models.authz import Role
from erp.services.policy import extract_user_permissions
from erp.services.roles import find_user, find_user_by_email, assign_role, remove_role, make_initial_admin

admin_bp = Blueprint('admin', __name__)


def _static_500(message: str):
    """Convert unexpected exceptions into a 500 carrying ``message``."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except HTTPException:
                raise
            except Exception:
                current_app.logger.exception('[API] %s', message)
                get_db().rollback()
                abort(500, description=message)
        return wrapper
    return outer


def _admin_token(data: dict):
    token = data.get('adminToken')
    if token:
        return token
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip() or None
    return None


def _verify_admin(token: str) -> dict:
    try:
        claims = decode_token(token)
    except (PyJWTError, JWTExtendedException):
        current_app.logger.warning('[API] Invalid admin token')
        abort(401, description='Invalid or expired admin token')
    if not extract_user_permissions(claims).is_admin:
        abort(403, description='Insufficient permissions - admin access required')
    return claims


@admin_bp.post('/assign-role')
@_static_500('Internal server error during role assignment')
def assign_role_endpoint():
    data = request.get_json(silent=True) or {}
    target_user_id = data.get('targetUserId')
    role_id = data.get('roleId')
    token = _admin_token(data)
    if not target_user_id or not role_id or not token:
        abort(400, description='Missing required parameters: targetUserId, roleId, or adminToken')
    current_app.logger.info('[API] Processing role assignment: %s -> %s', target_user_id, role_id)
    claims = _verify_admin(token)
    session = get_db()
    role = session.execute(select(Role).where(Role.id == role_id)).scalar_one_or_none()
    if not role:
        abort(404, description=f'Role {role_id} does not exist')
    user = find_user(target_user_id)
    if not user:
        abort(404, description=f'User {target_user_id} does not exist')
    assign_role(user, role, assigned_by=str(claims.get('sub')))
    return {
        'success': True,
        'message': 'Role assigned successfully',
        'assignment': {
            'userId': str(user.id),
            'roleId': role.id,
            'roleLabel': role.label,
            'assignedBy': str(claims.get('sub')),
        },
    }


@admin_bp.post('/remove-role')
@_static_500('Internal server error during role removal')
def remove_role_endpoint():
    data = request.get_json(silent=True) or {}
    target_user_id = data.get('targetUserId')
    token = _admin_token(data)
    if not target_user_id or not token:
        abort(400, description='Missing required parameters: targetUserId or adminToken')
    current_app.logger.info('[API] Processing role removal for user: %s', target_user_id)
    _verify_admin(token)
    user = find_user(target_user_id)
    if not user:
        abort(404, description=f'User {target_user_id} does not exist')
    remove_role(user)
    return {'success': True, 'message': 'Role removed successfully', 'userId': str(user.id)}


@admin_bp.post('/create-initial-admin')
@_static_500('Internal server error during admin creation')
def create_initial_admin_endpoint():
    data = request.get_json(silent=True) or {}
    email = data.get('userEmail')
    setup_key = data.get('setupKey')
    if not email or not setup_key:
        abort(400, description='Missing required parameters: userEmail or setupKey')
    expected = current_app.config.get('INITIAL_ADMIN_SETUP_KEY')
    if not expected or not hmac.compare_digest(str(setup_key), str(expected)):
        current_app.logger.warning('[API] Invalid setup key for initial admin %s', email)
        abort(403, description='Invalid setup key')
    user = find_user_by_email(email)
    if not user:
        abort(404, description=f'User {email} not found')
    make_initial_admin(user)
    return {
        'success': True,
        'message': 'Initial admin created successfully',
        'userId': str(user.id),
        'userEmail': user.email,
    }
