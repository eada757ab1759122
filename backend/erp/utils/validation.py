"""Reusable validation helpers for request payloads.

Form endpoints collect per-field messages and fail once with 400, the error body
carrying ``errors: {field: message}`` next to the usual detail.
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, Mapping, Optional
import math
from flask import abort
from werkzeug.exceptions import BadRequest

from erp.constants.modules import FUEL_MAX_LITRES, FUEL_MAX_DECIMALS


class FormValidationError(BadRequest):
    def __init__(self, errors: Dict[str, str], description: str = 'Revise los campos marcados'):
        super().__init__(description=description)
        self.errors = errors


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or aborts with 400.
    """
    if new_status not in allowed:
        abort(400, description=f"{field_name} invalid")
    return new_status


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_fields(data: Mapping[str, Any], messages: Mapping[str, str], errors: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Record ``messages[field]`` for every blank field; returns the errors dict."""
    errors = {} if errors is None else errors
    for field, message in messages.items():
        if is_blank(data.get(field)):
            errors.setdefault(field, message)
    return errors


def raise_if_errors(errors: Dict[str, str]):
    if errors:
        raise FormValidationError(errors)


def validate_fuel_quantity(raw: Any) -> Optional[str]:
    """Return the error message for an invalid litres value, or None."""
    text = str(raw).strip() if raw is not None else ''
    try:
        num = float(text)
    except ValueError:
        return 'Debe ser un número válido'
    if not math.isfinite(num):
        return 'Debe ser un número válido'
    if num <= 0:
        return 'Debe ser mayor a 0'
    if num > FUEL_MAX_LITRES:
        return 'Cantidad demasiado alta'
    if '.' in text and len(text.split('.', 1)[1]) > FUEL_MAX_DECIMALS:
        return f'Máximo {FUEL_MAX_DECIMALS} decimales'
    return None


def coerce_positive_number(raw: Any) -> Optional[float]:
    """Finite number above zero, else None."""
    try:
        num = float(raw)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) and num > 0 else None


__all__ = [
    'FormValidationError', 'validate_status', 'is_blank', 'require_fields', 'raise_if_errors',
    'validate_fuel_quantity', 'coerce_positive_number',
]
