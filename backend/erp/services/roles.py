from __future__ import annotations
from typing import Optional
from flask import current_app
from sqlalchemy import select, delete
from erp import get_db
from erp.models.authz import User, Role, UserRole
from erp.services.policy import build_role_claims, build_initial_admin_claims
from erp.constants.modules import ADMIN_ROLE_ID, ADMIN_ROLE_LABEL
from erp.utils.date_range import utcnow


def epoch_ms(dt) -> int:
    return int(dt.timestamp() * 1000)


def find_user(raw_id) -> Optional[User]:
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError):
        return None
    return get_db().execute(select(User).where(User.id == user_id)).scalar_one_or_none()


def find_user_by_email(email: str) -> Optional[User]:
    return get_db().execute(select(User).where(User.email == email.strip())).scalar_one_or_none()


def _upsert_assignment(user: User, role_id: str, role_label: str, assigned_by: str, assigned_at) -> UserRole:
    session = get_db()
    record = session.execute(select(UserRole).where(UserRole.user_id == user.id)).scalar_one_or_none()
    if record is None:
        record = UserRole(user_id=user.id)
        session.add(record)
    record.role_id = role_id
    record.role_label = role_label
    record.assigned_by = assigned_by
    record.assigned_at = assigned_at
    record.user_email = user.email
    record.user_name = user.name
    return record


def assign_role(user: User, role: Role, assigned_by: str) -> UserRole:
    """Replace the user's claims with the role's and upsert the assignment record."""
    session = get_db()
    now = utcnow()
    user.custom_claims = build_role_claims(role.id, role.label, role.modules or {}, epoch_ms(now))
    record = _upsert_assignment(user, role.id, role.label, assigned_by, now)
    session.commit()
    current_app.logger.info('[Roles] role %s assigned to user %s by %s', role.id, user.id, assigned_by)
    return record


def remove_role(user: User) -> None:
    session = get_db()
    user.custom_claims = {}
    session.execute(delete(UserRole).where(UserRole.user_id == user.id))
    session.commit()
    current_app.logger.info('[Roles] role removed from user %s', user.id)


def make_initial_admin(user: User) -> UserRole:
    session = get_db()
    now = utcnow()
    user.custom_claims = build_initial_admin_claims(epoch_ms(now))
    record = _upsert_assignment(user, ADMIN_ROLE_ID, ADMIN_ROLE_LABEL, 'system', now)
    session.commit()
    current_app.logger.info('[Roles] initial admin granted to %s', user.email)
    return record
