"""
Download renderings of a record table.

- xlsx: Office Open XML workbook via openpyxl
- xls:  SpreadsheetML 2003 (XML) workbook, which Excel opens as .xls
- csv:  the backing file layout (UTF-8 with BOM)
"""

from __future__ import annotations

import io
import xml.etree.ElementTree as ET  # nosec B405
from datetime import datetime
from typing import Callable, Dict

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font

from .codec import encode_rows
from .rules import DOWNLOAD_PREFIX, HEADER, SHEET_TITLE
from .store import RecordTable, table_to_rows

SS_NS = "urn:schemas-microsoft-com:office:spreadsheet"
ET.register_namespace("ss", SS_NS)

MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xls": "application/vnd.ms-excel",
    "csv": "text/csv; charset=utf-8",
}


def _ss(tag: str) -> str:
    return f"{{{SS_NS}}}{tag}"


def _sheet_rows(table: RecordTable):
    """Rows with characters XML cannot carry removed; stored files may hold them."""
    return [[ILLEGAL_CHARACTERS_RE.sub("", value) for value in row] for row in table_to_rows(table)]


def to_xlsx(table: RecordTable) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    ws.append(HEADER)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in _sheet_rows(table):
        ws.append(row)
    # openpyxl stores "=..." strings as formulas; submitted text must stay text
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            if cell.data_type == "f":
                cell.data_type = "s"
    ws.freeze_panes = "A2"

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def to_xml_spreadsheet(table: RecordTable) -> bytes:
    root = ET.Element(_ss("Workbook"))
    styles = ET.SubElement(root, _ss("Styles"))
    header_style = ET.SubElement(styles, _ss("Style"), {_ss("ID"): "header"})
    ET.SubElement(header_style, _ss("Font"), {_ss("Bold"): "1"})

    sheet = ET.SubElement(root, _ss("Worksheet"), {_ss("Name"): SHEET_TITLE})
    grid = ET.SubElement(sheet, _ss("Table"))

    def add_row(values, style=None):
        row = ET.SubElement(grid, _ss("Row"))
        for value in values:
            cell = ET.SubElement(row, _ss("Cell"), {_ss("StyleID"): style} if style else {})
            data = ET.SubElement(cell, _ss("Data"), {_ss("Type"): "String"})
            data.text = value

    add_row(HEADER, style="header")
    for values in _sheet_rows(table):
        add_row(values)

    ET.indent(root, space=" ")
    body = ET.tostring(root, encoding="unicode")
    prolog = '<?xml version="1.0" encoding="UTF-8"?>\n<?mso-application progid="Excel.Sheet"?>\n'
    return (prolog + body).encode("utf-8")


def to_csv(table: RecordTable) -> bytes:
    return encode_rows(HEADER, table_to_rows(table))


RENDERERS: Dict[str, Callable[[RecordTable], bytes]] = {
    "xlsx": to_xlsx,
    "xls": to_xml_spreadsheet,
    "csv": to_csv,
}


def render(table: RecordTable, fmt: str) -> bytes:
    try:
        renderer = RENDERERS[fmt]
    except KeyError:
        raise ValueError(f"unsupported export format {fmt!r}")
    return renderer(table)


def download_filename(fmt: str, now: datetime) -> str:
    return f"{DOWNLOAD_PREFIX}-{now.strftime('%Y-%m-%d-%H%M%S')}.{fmt}"
