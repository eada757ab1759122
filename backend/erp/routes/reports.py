from __future__ import annotations
from flask import Blueprint, request, abort, send_file
from erp.constants.modules import INVENTORY_RANGE_MAX_DAYS
from erp.decorators.auth import require_access
from erp.documents.common import EmptyReportError
from erp.documents.inventory_reports import build_movements_pdf, build_cost_center_pdf, build_current_inventory_pdf
from erp.services.reports import (FILTER_INCLUDE, FILTER_MODES, build_movements_report, build_current_inventory,
                                  code_filter_label, group_by_cost_center)
from erp.utils.listing import cached_item
from erp.utils.date_range import date_range_from_args

rpt_bp = Blueprint('reports', __name__)

MODULE = 'INV01'


def _material_filters():
    return request.args.get('category') or None, request.args.get('zone') or None


def _code_filters():
    mode = request.args.get('mode') or FILTER_INCLUDE
    if mode not in FILTER_MODES:
        abort(400, description='Filtro inválido: mode')
    return request.args.getlist('codes'), mode


def _movements_from_args():
    rng = date_range_from_args(request.args, INVENTORY_RANGE_MAX_DAYS)
    category, zone = _material_filters()
    codes, mode = _code_filters()
    return build_movements_report(
        rng, category, zone,
        entries=request.args.get('entries') != 'false',
        exits=request.args.get('exits') != 'false',
        workshop_only=request.args.get('solo_taller') == 'true',
        codes=codes, mode=mode,
    )


def _pdf(build, filename: str, *args):
    try:
        buffer = build(*args)
    except EmptyReportError as e:
        abort(400, description=str(e))
    return send_file(buffer, mimetype='application/pdf', as_attachment=True, download_name=filename)


@rpt_bp.route('/inventory/movements', methods=['GET', 'HEAD'])
@require_access(MODULE)
def movements():
    return cached_item(_movements_from_args())


@rpt_bp.get('/inventory/movements.pdf')
@require_access(MODULE)
def movements_pdf():
    report = _movements_from_args()
    return _pdf(build_movements_pdf, f"INV01_movimientos_{report['start']}_{report['end']}.pdf", report)


@rpt_bp.route('/inventory/cost-centers', methods=['GET', 'HEAD'])
@require_access(MODULE)
def cost_centers():
    report = _movements_from_args()
    groups = group_by_cost_center(report['moves'], request.args.getlist('equipment'))
    return cached_item({'range': report['range'], 'groups': groups})


@rpt_bp.get('/inventory/cost-centers.pdf')
@require_access(MODULE)
def cost_centers_pdf():
    report = _movements_from_args()
    return _pdf(build_cost_center_pdf, f"INV01_taller_{report['start']}_{report['end']}.pdf",
                report, request.args.getlist('equipment'))


@rpt_bp.route('/inventory/current', methods=['GET', 'HEAD'])
@require_access(MODULE)
def current_inventory():
    category, zone = _material_filters()
    codes, mode = _code_filters()
    return cached_item({'materials': build_current_inventory(category, zone, codes, mode)})


@rpt_bp.get('/inventory/current.pdf')
@require_access(MODULE)
def current_inventory_pdf():
    category, zone = _material_filters()
    codes, mode = _code_filters()
    rows = build_current_inventory(category, zone, codes, mode)
    if codes:
        # A filtered listing only shows materials that hold stock
        rows = [r for r in rows if r['total'] != 0]
    parts = [f'Categoría: {category}' if category else '', f'Zona: {zone}' if zone else '',
             code_filter_label(codes, mode)]
    filter_text = ' | '.join(p for p in parts if p)
    return _pdf(build_current_inventory_pdf, 'INV01_inventario_actual.pdf', rows, filter_text)
