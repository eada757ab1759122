from __future__ import annotations
from flask import Blueprint, request, abort, send_file
from erp.config.pagination import HISTORY_PAGE_SIZE, normalize_pagination
from erp.constants.modules import FUEL_RANGE_MAX_DAYS
from erp.decorators.auth import require_access
from erp.documents.common import EmptyReportError
from erp.documents.fuel_composite import build_fuel_composite_pdf, build_fuel_vehicle_pdf
from erp.services.fuel_loads import (
    get_day, list_history, add_load, set_totalizers, build_composite, day_json, load_json,
    FILTER_INTERNAL, FILTER_EXTERNAL,
)
from erp.services.policy import current_user_id
from erp.utils.listing import cached_list, cached_item, latest_timestamp
from erp.utils.date_range import as_utc, parse_day, local_today, format_day, date_range_from_args

scom_bp = Blueprint('fuel_loads', __name__)

MODULE = 'SCOM01'


def _day_or_400(raw: str):
    day = parse_day(raw)
    if day is None:
        abort(400, description='Fecha inválida, use el formato dd-mm-aaaa')
    return day


def _composite_from_args():
    rng = date_range_from_args(request.args, FUEL_RANGE_MAX_DAYS)
    main = request.args.get('filter') or None
    if main not in (None, FILTER_INTERNAL, FILTER_EXTERNAL):
        abort(400, description='Filtro inválido: filter')
    return build_composite(
        rng, main,
        units=request.args.getlist('unit'),
        companies=request.args.getlist('company'),
        plates=request.args.getlist('plate'),
    )


@scom_bp.route('/today', methods=['GET', 'HEAD'])
@require_access(MODULE)
def today():
    day = local_today()
    doc = get_day(day)
    if doc is None:
        body = {'id': format_day(day), 'date': day.isoformat(), 'totalizer_start': None,
                'totalizer_end': None, 'total_loads': 0, 'fleet': [], 'external': []}
        return cached_item(body)
    return cached_item(day_json(doc), as_utc(doc.updated_at))


@scom_bp.route('/days', methods=['GET', 'HEAD'])
@require_access(MODULE)
def history():
    """Historical day documents, newest first, one page at a time."""
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'), HISTORY_PAGE_SIZE)
    except ValueError as e:
        abort(400, description=str(e))
    rows, total = list_history(limit, offset)
    return cached_list([day_json(d, include_loads=False) for d in rows], total, limit, offset,
                       latest_timestamp(as_utc(d.updated_at) for d in rows))


@scom_bp.route('/days/<day_id>', methods=['GET', 'HEAD'])
@require_access(MODULE)
def get_day_document(day_id: str):
    doc = get_day(_day_or_400(day_id))
    if doc is None:
        abort(404, description=f'No hay registros para {day_id}')
    return cached_item(day_json(doc), as_utc(doc.updated_at))


@scom_bp.post('/loads')
@require_access(MODULE, 'rw')
def create_load():
    data = request.get_json(silent=True) or {}
    day = _day_or_400(data['fecha']) if data.get('fecha') else None
    load = add_load(data, current_user_id(), day)
    return load_json(load), 201


@scom_bp.put('/days/<day_id>/totalizers')
@require_access(MODULE, 'rw')
def put_totalizers(day_id: str):
    data = request.get_json(silent=True) or {}
    doc = set_totalizers(_day_or_400(day_id), data)
    return day_json(doc, include_loads=False)


@scom_bp.route('/composite', methods=['GET', 'HEAD'])
@require_access(MODULE)
def composite():
    return cached_item(_composite_from_args())


@scom_bp.get('/composite.pdf')
@require_access(MODULE)
def composite_pdf():
    body = _composite_from_args()
    if request.args.get('variant') == 'vehicle':
        build, name = build_fuel_vehicle_pdf, f"SCOM01_vehiculos_{body['start']}_{body['end']}.pdf"
    else:
        build, name = build_fuel_composite_pdf, f"SCOM01_compuesto_{body['start']}_{body['end']}.pdf"
    try:
        buffer = build(body)
    except EmptyReportError as e:
        abort(400, description=str(e))
    return send_file(buffer, mimetype='application/pdf', as_attachment=True, download_name=name)
