"""SCOM01 composite dispatch reports, as a single listing or grouped by vehicle."""
from __future__ import annotations
from io import BytesIO
from typing import Any, Dict, List

from reportlab.lib.units import mm
from reportlab.platypus import PageBreak

from erp.documents.common import (
    EmptyReportError, NO_DATA_MESSAGE, header_block, section_title, data_table, render, fmt_litres, spacer,
)
from erp.models.fuel import FuelLoad

TITLE = 'CONTROL DE DESPACHO DE COMBUSTIBLE'
LOAD_HEADERS = ['FECHA', 'HORA', 'TIPO', 'MÓVIL / EMPRESA', 'CHAPA', 'CHOFER', 'LITROS', 'KM', 'HORÓMETRO', 'PRECINTO']
LOAD_WIDTHS = [18 * mm, 11 * mm, 13 * mm, 30 * mm, 17 * mm, 30 * mm, 15 * mm, 14 * mm, 15 * mm, 17 * mm]


def _load_row(load: Dict[str, Any]) -> List[Any]:
    fleet = load['kind'] == FuelLoad.KIND_FLEET
    return [
        load['day'], load['load_time'], 'Flota' if fleet else 'Externa',
        load['unit_number'] if fleet else load['company'], None if fleet else load['plate'],
        load['driver'], fmt_litres(load['litres']), load['odometer'], load['hour_meter'], load['seal'],
    ]


def _totals_table(body: Dict[str, Any]):
    totals = body['totals']
    rows = [
        ['Total flota (interno)', fmt_litres(totals['internal'])],
        ['Total externo', fmt_litres(totals['external'])],
    ]
    totalizers = body.get('totalizers')
    if totalizers:
        rows.append(['Totalizador inicial', fmt_litres(totalizers.get('start'))])
        rows.append(['Totalizador final', fmt_litres(totalizers.get('end'))])
    return data_table(['CONCEPTO', 'LITROS'], rows, [80 * mm, 40 * mm],
                      total_row=['TOTAL GENERAL', fmt_litres(totals['general'])])


def build_fuel_composite_pdf(body: Dict[str, Any]) -> BytesIO:
    loads = body.get('loads') or []
    if not loads:
        raise EmptyReportError(NO_DATA_MESSAGE)
    story: List[Any] = header_block(TITLE, f"Período: {body['range']}")
    story.append(data_table(LOAD_HEADERS, [_load_row(l) for l in loads], LOAD_WIDTHS))
    story.append(spacer(6))
    story.append(section_title('RESUMEN'))
    story.append(_totals_table(body))
    return render(story, 'Despacho de combustible')


def build_fuel_vehicle_pdf(body: Dict[str, Any]) -> BytesIO:
    loads = body.get('loads') or []
    if not loads:
        raise EmptyReportError(NO_DATA_MESSAGE)
    story: List[Any] = header_block(f'{TITLE} / POR VEHÍCULO', f"Período: {body['range']}")
    groups = body.get('byVehicle') or {}
    for i, (key, group) in enumerate(groups.items()):
        if i:
            story.append(spacer())
        story.append(section_title(key))
        story.append(data_table(
            LOAD_HEADERS, [_load_row(l) for l in group['loads']], LOAD_WIDTHS,
            total_row=['', '', '', '', '', 'TOTAL', fmt_litres(group['total']), '', '', ''],
        ))
    story.append(PageBreak())
    story.append(section_title('RESUMEN GENERAL'))
    story.append(data_table(
        ['VEHÍCULO', 'CARGAS', 'LITROS'],
        [[key, len(g['loads']), fmt_litres(g['total'])] for key, g in groups.items()],
        [90 * mm, 30 * mm, 40 * mm],
    ))
    story.append(spacer(6))
    story.append(_totals_table(body))
    return render(story, 'Despacho de combustible por vehículo')
