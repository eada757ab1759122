"""Handwritten signatures captured as SVG stroke paths.

A signature is ``{width, height, paths: [{d, strokeWidth}]}`` where each ``d`` holds
only ``M x y`` / ``L x y`` commands recorded from the signing pad.
"""
from __future__ import annotations
from typing import Any, Dict, List, Tuple
from xml.sax.saxutils import quoteattr
import math
import re

from flask import abort

DEFAULT_WIDTH = 300
DEFAULT_HEIGHT = 150
MAX_DIMENSION = 4000
MAX_STROKE_WIDTH = 50

_COMMAND_RE = re.compile(r'([ML])\s*(-?\d+(?:\.\d+)?)[\s,]+(-?\d+(?:\.\d+)?)')


def parse_path(d: str) -> List[Tuple[float, float]]:
    """Points of a single stroke; empty when ``d`` has no move/line commands."""
    return [(float(x), float(y)) for _, x, y in _COMMAND_RE.findall(d or '')]


def _bounded(raw: Any, upper: float):
    """Finite number in (0, upper], else None."""
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0 or value > upper:
        return None
    return value


def validate_signature(data: Any) -> Dict[str, Any]:
    """Normalise a posted signature or abort 400."""
    if not isinstance(data, dict):
        abort(400, description='Firma inválida')
    paths = data.get('paths')
    if not isinstance(paths, list) or not paths:
        abort(400, description='La firma está vacía')
    cleaned = []
    for p in paths:
        if not isinstance(p, dict) or not parse_path(str(p.get('d') or '')):
            abort(400, description='Trazo de firma inválido')
        stroke = _bounded(p.get('strokeWidth') or 2, MAX_STROKE_WIDTH)
        if stroke is None:
            abort(400, description='Trazo de firma inválido')
        cleaned.append({'d': str(p['d']), 'strokeWidth': stroke})
    width = _bounded(data.get('width') or DEFAULT_WIDTH, MAX_DIMENSION)
    height = _bounded(data.get('height') or DEFAULT_HEIGHT, MAX_DIMENSION)
    if width is None or height is None or int(width) <= 0 or int(height) <= 0:
        abort(400, description='Dimensiones de firma inválidas')
    return {'width': int(width), 'height': int(height), 'paths': cleaned}


def render_signature_svg(signature: Dict[str, Any]) -> str:
    width = signature.get('width') or DEFAULT_WIDTH
    height = signature.get('height') or DEFAULT_HEIGHT
    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}">'
    ]
    for p in signature.get('paths') or []:
        parts.append(
            f'<path d={quoteattr(str(p.get("d") or ""))} stroke="black" '
            f'stroke-width="{p.get("strokeWidth") or 2}" fill="none" '
            f'stroke-linecap="round" stroke-linejoin="round"/>'
        )
    parts.append('</svg>')
    return ''.join(parts)
