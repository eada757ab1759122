from __future__ import annotations
from flask import Blueprint, current_app
from flask_jwt_extended import create_access_token, decode_token
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from jwt.exceptions import PyJWTError
from erp import get_db
from erp.utils.date_range import utcnow

health_bp = Blueprint('health', __name__)


def _check_environment() -> bool:
    return bool(current_app.config.get('JWT_SECRET_KEY')) and bool(current_app.config.get('DATABASE_URL'))


def _check_database() -> bool:
    session = get_db()
    try:
        session.execute(text('SELECT 1'))
        return True
    except SQLAlchemyError:
        current_app.logger.exception('[HealthCheck] database check failed')
        session.rollback()
        return False


def _check_auth() -> bool:
    try:
        token = create_access_token(identity='health-check', additional_claims={'anonymous': True})
        return decode_token(token).get('sub') == 'health-check'
    except (PyJWTError, RuntimeError):
        current_app.logger.exception('[HealthCheck] token round trip failed')
        return False


@health_bp.get('/health')
def health():
    current_app.logger.info('[HealthCheck] Starting health check')
    checks = {
        'environment': _check_environment(),
        'database': _check_database(),
        'auth': _check_auth(),
    }
    status = 'healthy' if all(checks.values()) else 'unhealthy'
    current_app.logger.info('[HealthCheck] completed: %s', status)
    body = {
        'status': status,
        'timestamp': utcnow().isoformat().replace('+00:00', 'Z'),
        'checks': checks,
    }
    return body, 200 if status == 'healthy' else 503
