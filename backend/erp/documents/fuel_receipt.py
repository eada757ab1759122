"""ECOM01 delivery receipt with the driver's signature redrawn from its stroke paths."""
from __future__ import annotations
from io import BytesIO
from typing import Any, Dict, List, Optional

from reportlab.graphics.shapes import Drawing, PolyLine
from reportlab.lib import colors
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph

from erp.documents.common import header_block, section_title, data_table, render, fmt_litres, spacer, styles
from erp.models.fuel import FuelEntry
from erp.services.signature import parse_path, DEFAULT_WIDTH, DEFAULT_HEIGHT
from erp.utils.date_range import to_local, format_day

SIGNATURE_BOX_WIDTH = 70 * mm


def signature_drawing(signature: Dict[str, Any], box_width: float = SIGNATURE_BOX_WIDTH) -> Optional[Drawing]:
    """Scale the pad strokes into a Drawing; SVG y grows downwards so it is flipped."""
    paths = (signature or {}).get('paths') or []
    if not paths:
        return None
    width = float(signature.get('width') or DEFAULT_WIDTH)
    height = float(signature.get('height') or DEFAULT_HEIGHT)
    scale = box_width / width
    drawing = Drawing(box_width, height * scale)
    for p in paths:
        points = parse_path(p.get('d') or '')
        if len(points) < 2:
            continue
        flat: List[float] = []
        for x, y in points:
            flat.extend([x * scale, (height - y) * scale])
        drawing.add(PolyLine(flat, strokeColor=colors.black,
                             strokeWidth=float(p.get('strokeWidth') or 2) * scale,
                             strokeLineCap=1, strokeLineJoin=1))
    return drawing


def build_fuel_receipt_pdf(entry: FuelEntry) -> BytesIO:
    story: List[Any] = header_block('ENTRADA DE COMBUSTIBLE', f'Documento {entry.id}')
    completed = to_local(entry.completed_at).strftime('%d/%m/%Y %H:%M') if entry.completed_at else '-'
    rows = [
        ['Fecha', format_day(entry.entry_date) if entry.entry_date else '-'],
        ['Proveedor', entry.provider],
        ['Nro. Chapa', entry.plate],
        ['Chofer', entry.driver],
        ['Factura', entry.invoice],
        ['Hora de descarga', entry.unload_time],
        ['Cantidad facturada (L)', fmt_litres(entry.invoiced_litres)],
        ['Cantidad recepcionada (L)', fmt_litres(entry.received_litres)],
        ['Diferencia (L)', fmt_litres(entry.difference)],
        ['Registrado por', entry.created_by_email or entry.created_by],
        ['Completado', completed],
    ]
    story.append(data_table(['CAMPO', 'VALOR'], rows, [60 * mm, 100 * mm]))
    story.append(spacer(8))
    story.append(section_title('Firma del Responsable'))
    drawing = signature_drawing(entry.signature)
    if drawing is None:
        story.append(Paragraph('Firma no disponible', styles()['body']))
    else:
        story.append(drawing)
    return render(story, f'ECOM01 {entry.id}')
