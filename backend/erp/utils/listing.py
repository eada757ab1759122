"""Shared response plumbing for list/detail endpoints.

Screens that used to hold a live listener now poll: every list and detail
response carries an ``ETag`` and, when the rows expose a modification time,
``Last-Modified`` plus ``X-Last-Modified-ISO``. A poll whose validators still
match answers 304 with an empty body.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, Optional, Tuple
from flask import request, abort, make_response, jsonify
from erp.config.pagination import normalize_pagination
import hashlib
import json
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

# HTTP dates have whole-second resolution
CLOCK_SLACK = timedelta(seconds=1)
ETAG_LENGTH = 32


def _to_utc_second(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0)


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()[:ETAG_LENGTH]


def compute_body_etag(body: Any) -> str:
    return _digest(json.dumps(body, sort_keys=True, separators=(',', ':'), default=str))


def latest_timestamp(values: Iterable[Optional[datetime]]) -> Optional[datetime]:
    """Newest of the given timestamps (naive values are read as UTC), or None."""
    stamps = [_to_utc_second(v) for v in values if isinstance(v, datetime)]
    return max(stamps, default=None)


def apply_pagination(q, default_limit: Optional[int] = None) -> Tuple[Any, int, int, int]:
    """Slice ``q`` by ``limit``/``offset``; returns (query, total, limit, offset)."""
    extra = () if default_limit is None else (default_limit,)
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'), *extra)
    except ValueError as e:
        abort(400, description=str(e))
    return q.offset(offset).limit(limit), q.count(), limit, offset


def apply_filters(query, filters: Dict[str, Dict[str, Callable]], params: Dict[str, Any]):
    """Narrow ``query`` with the optional filters present in ``params``.

    Each filter is ``{'op': fn(query, value), 'coerce': fn(value), 'validate': fn(value)}``;
    only ``op`` is required. Blank values are ignored.
    """
    for name, rule in filters.items():
        value = params.get(name)
        if value in (None, ''):
            continue
        coerce = rule.get('coerce')
        if coerce is not None:
            try:
                value = coerce(value)
            except (TypeError, ValueError):
                abort(400, description=f'Filtro inválido: {name}')
        check = rule.get('validate')
        if check is not None and not check(value):
            abort(400, description=f'Filtro inválido: {name}')
        query = rule['op'](query, value)
    return query


def apply_multi_sort(query, sort_expr: Optional[str], allowed: dict, tie_breaker):
    """``sort=code,-created_at`` style ordering; ``tie_breaker`` always goes last."""
    order = []
    for token in filter(None, (part.strip() for part in (sort_expr or '').split(','))):
        descending = token[0] == '-'
        field = token.lstrip('-')
        column = allowed.get(field)
        if column is None:
            abort(400, description=f'Campo de orden inválido: {field}')
        order.append(column.desc() if descending else column.asc())
    order.append(tie_breaker.asc())
    return query.order_by(*order)


def _stamp(resp, etag: str, modified: Optional[datetime]):
    resp.headers['ETag'] = etag
    if modified is not None:
        modified = _to_utc_second(modified)
        resp.headers['Last-Modified'] = format_datetime(modified, usegmt=True)
        resp.headers['X-Last-Modified-ISO'] = modified.isoformat().replace('+00:00', 'Z')
    return resp


def _client_since(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            return None
    return _to_utc_second(parsed) if parsed else None


def _is_fresh(etag: str, modified: Optional[datetime]) -> bool:
    # If-None-Match wins over If-Modified-Since when both are sent
    client_tag = request.headers.get('If-None-Match')
    if client_tag:
        return client_tag.strip('"') == etag
    since = _client_since(request.headers.get('If-Modified-Since'))
    return bool(since and modified and _to_utc_second(modified) <= since + CLOCK_SLACK)


def _respond(body, etag: str, modified: Optional[datetime]):
    if _is_fresh(etag, modified):
        return _stamp(make_response('', 304), etag, modified)
    resp = _stamp(make_response(jsonify(body)), etag, modified)
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


def cached_list(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    """Paged list envelope ``{data, pagination}`` with validators."""
    modified = latest_ts if isinstance(latest_ts, datetime) else None
    body = {
        'data': rows,
        'pagination': {'total': total, 'limit': limit, 'offset': offset, 'returned': len(rows)},
    }
    return _respond(body, compute_body_etag(body), modified)


def cached_item(body: dict, latest_ts: Optional[datetime] = None):
    return _respond(body, compute_body_etag(body), latest_ts)
