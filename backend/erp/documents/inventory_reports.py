"""INV01 printable reports: movements, cost centers (Taller exits) and current stock."""
from __future__ import annotations
from io import BytesIO
from typing import Any, Dict, List

from reportlab.lib.units import mm
from reportlab.platypus import PageBreak

from erp.documents.common import (
    EmptyReportError, NO_DATA_MESSAGE, header_block, section_title, data_table, render, fmt_qty, spacer,
)
from erp.services.reports import group_by_cost_center

NO_WORKSHOP_EXITS = 'No hay salidas de tipo "Taller" en el período seleccionado'

MOVE_HEADERS = ['FECHA', 'CÓDIGO', 'DESCRIPCIÓN', 'CANTIDAD', 'UBICACIÓN', 'MÓVIL/MÁQUINA', 'ID OPERACIÓN']
MOVE_WIDTHS = [20 * mm, 25 * mm, 52 * mm, 18 * mm, 22 * mm, 25 * mm, 18 * mm]


def _move_row(row: Dict[str, Any]) -> List[Any]:
    return [
        row['date'], row['materialCode'], row['materialDescription'], fmt_qty(row['qty']),
        row['storageLocation'], row['equipmentOrUnit'], row['sourceId'],
    ]


def build_movements_pdf(report: Dict[str, Any]) -> BytesIO:
    moves = report.get('moves') or []
    if not moves:
        raise EmptyReportError(NO_DATA_MESSAGE)
    subtitle = ' | '.join(p for p in (f"Período: {report['range']}", report.get('filter')) if p)
    story: List[Any] = header_block('REPORTE DE MOVIMIENTOS DE INVENTARIO', subtitle)
    entries = [m for m in moves if m['qty'] >= 0]
    exits = [m for m in moves if m['qty'] < 0]
    for title, rows in (('ENTRADAS', entries), ('SALIDAS', exits)):
        if not rows:
            continue
        story.append(section_title(f'{title} ({len(rows)})'))
        story.append(data_table(MOVE_HEADERS, [_move_row(r) for r in rows], MOVE_WIDTHS))
    summary = report.get('byMaterial') or {}
    if summary:
        story.append(section_title('RESUMEN POR MATERIAL'))
        story.append(data_table(
            ['CÓDIGO', 'DESCRIPCIÓN', 'ENTRADAS', 'SALIDAS', 'NETO'],
            [[s['materialCode'], s['materialDescription'], f"{s['entries']:g}", f"{s['exits']:g}", fmt_qty(s['net'])]
             for s in summary.values()],
            [28 * mm, 80 * mm, 24 * mm, 24 * mm, 24 * mm],
        ))
    return render(story, 'Movimientos de inventario')


def build_cost_center_pdf(report: Dict[str, Any], only=()) -> BytesIO:
    moves = report.get('moves') or []
    if not moves:
        raise EmptyReportError(NO_DATA_MESSAGE)
    groups = group_by_cost_center(moves, only)
    if not groups:
        raise EmptyReportError(NO_WORKSHOP_EXITS)
    story: List[Any] = header_block('REPORTE DE MOVIMIENTOS DE INVENTARIO - TALLER', f"Período: {report['range']}")
    grand_total = 0.0
    for i, (key, group) in enumerate(groups.items()):
        if i:
            story.append(spacer())
        story.append(section_title(key))
        story.append(data_table(
            MOVE_HEADERS, [_move_row(r) for r in group['moves']], MOVE_WIDTHS,
            total_row=['', '', 'TOTAL', f"{group['total']:g}", '', '', ''],
        ))
        grand_total += group['total']
    story.append(PageBreak())
    story.append(section_title('RESUMEN POR CENTRO DE COSTO'))
    story.append(data_table(
        ['CENTRO DE COSTO', 'MOVIMIENTOS', 'CANTIDAD TOTAL'],
        [[key, len(g['moves']), f"{g['total']:g}"] for key, g in groups.items()],
        [90 * mm, 40 * mm, 40 * mm],
        total_row=['TOTAL GENERAL', str(sum(len(g['moves']) for g in groups.values())), f'{grand_total:g}'],
    ))
    return render(story, 'Centros de costo')


def build_current_inventory_pdf(rows: List[Dict[str, Any]], filter_text: str = '') -> BytesIO:
    if not rows:
        raise EmptyReportError(NO_DATA_MESSAGE)
    title = 'REPORTE INVENTARIO ACTUAL' + (' - FILTRADO' if filter_text else '')
    story: List[Any] = header_block(title, filter_text or None)
    table_rows = []
    for r in rows:
        locations = ', '.join(f'{loc}: {qty:g}' for loc, qty in r['locations'].items()) or '-'
        table_rows.append([
            r['materialCode'], r['materialDescription'], r['unit'], locations,
            f"{r['total']:g}", r['minStock'], 'BAJO' if r['belowMinimum'] else 'OK',
        ])
    story.append(data_table(
        ['CÓDIGO', 'DESCRIPCIÓN', 'UNIDAD', 'UBICACIONES', 'TOTAL', 'MÍNIMO', 'ESTADO'],
        table_rows,
        [25 * mm, 55 * mm, 15 * mm, 40 * mm, 15 * mm, 15 * mm, 15 * mm],
    ))
    return render(story, 'Inventario actual')
