"""Shared reportlab pieces for the printable reports: styles, header block, tables."""
from __future__ import annotations
from io import BytesIO
from typing import Any, Callable, List, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from erp.utils.date_range import utcnow, to_local

NO_DATA_MESSAGE = 'No hay datos para generar el PDF'
COMPANY_NAME = 'Control de Planta'

HEADER_BG = colors.HexColor('#f0f0f0')


class EmptyReportError(ValueError):
    """Raised when a report has nothing to print; the message is user facing."""


def styles():
    base = getSampleStyleSheet()
    return {
        'title': ParagraphStyle('ReportTitle', parent=base['Heading1'], fontSize=14, alignment=1,
                                spaceAfter=4, fontName='Helvetica-Bold'),
        'subtitle': ParagraphStyle('ReportSubtitle', parent=base['Normal'], fontSize=9, alignment=1,
                                   textColor=colors.HexColor('#333333'), spaceAfter=8),
        'section': ParagraphStyle('ReportSection', parent=base['Heading2'], fontSize=11, alignment=1,
                                  spaceBefore=10, spaceAfter=6, fontName='Helvetica-Bold'),
        'cell': ParagraphStyle('ReportCell', parent=base['Normal'], fontSize=7, leading=8.5),
        'body': ParagraphStyle('ReportBody', parent=base['Normal'], fontSize=9, leading=11),
    }


def header_block(title: str, subtitle: Optional[str] = None) -> List[Any]:
    st = styles()
    generated = to_local(utcnow()).strftime('%d/%m/%Y %H:%M')
    story: List[Any] = [Paragraph(title, st['title'])]
    lines = [subtitle] if subtitle else []
    lines.append(f'{COMPANY_NAME} - Generado el {generated}')
    story.append(Paragraph('<br/>'.join(lines), st['subtitle']))
    return story


def section_title(text: str) -> Paragraph:
    return Paragraph(escape(text), styles()['section'])


def data_table(headers: Sequence[str], rows: Sequence[Sequence[Any]], col_widths: Optional[Sequence[float]] = None,
               total_row: Optional[Sequence[Any]] = None) -> Table:
    """Bordered table with a repeated grey header row; long text cells wrap."""
    cell = styles()['cell']
    data: List[List[Any]] = [list(headers)]
    for row in rows:
        data.append([_cell(v, cell) for v in row])
    if total_row is not None:
        data.append(list(total_row))
    table = Table(data, colWidths=col_widths, repeatRows=1)
    commands = [
        ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
        ('BACKGROUND', (0, 0), (-1, 0), HEADER_BG),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 7),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]
    if total_row is not None:
        commands += [
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('BACKGROUND', (0, -1), (-1, -1), HEADER_BG),
        ]
    table.setStyle(TableStyle(commands))
    return table


def _cell(value: Any, style: ParagraphStyle) -> Any:
    if value is None or value == '':
        return '-'
    text = str(value)
    if len(text) > 18:
        return Paragraph(escape(text), style)
    return text


def _page_number(canvas, doc):
    canvas.saveState()
    canvas.setFont('Helvetica', 7)
    canvas.drawRightString(A4[0] - 15 * mm, 10 * mm, f'Página {doc.page}')
    canvas.restoreState()


def render(story: List[Any], title: str, on_page: Optional[Callable] = None) -> BytesIO:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=15 * mm,
        leftMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=18 * mm,
        title=title,
    )
    callback = on_page or _page_number
    doc.build(story, onFirstPage=callback, onLaterPages=callback)
    buffer.seek(0)
    return buffer


def fmt_qty(value: Any) -> str:
    if value is None:
        return '-'
    num = float(value)
    return f'{num:+g}' if num < 0 else f'{num:g}'


def fmt_litres(value: Any) -> str:
    if value is None:
        return '-'
    return f'{float(value):,.3f}'.rstrip('0').rstrip('.')


def spacer(height_mm: float = 4) -> Spacer:
    return Spacer(1, height_mm * mm)
