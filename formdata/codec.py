"""
Byte-level handling of the backing CSV.

Reading is forgiving because the file may have been opened and re-saved by a
spreadsheet program:
- encoding: UTF-8 (BOM optional) first, then charset-normalizer's best guess
- newlines: CRLF/CR -> LF
- delimiter: sniffed among , ; TAB |
- row width: short rows padded to the header width, long rows truncated

Writing is strict: UTF-8 with BOM, comma delimited, LF line endings.
"""

from __future__ import annotations

import csv
import io
from typing import Iterable, List, Sequence, Tuple

from charset_normalizer import from_bytes

from .models import LoadReport
from .rules import NORMALIZED_DELIMITER, TARGET_ENCODING

SNIFF_DELIMITERS = [",", ";", "\t", "|"]


def decode_text(raw: bytes, report: LoadReport) -> str:
    try:
        text = raw.decode(TARGET_ENCODING)
        report.decode_used = TARGET_ENCODING
        return text
    except UnicodeDecodeError:
        pass

    match = from_bytes(raw).best()
    if match is not None:
        report.encoding_detected = match.encoding
    decode_used = report.encoding_detected or "utf-8"

    try:
        text = raw.decode(decode_used)
    except (UnicodeDecodeError, LookupError):
        # Last resort: decode with replacement so a damaged file still loads
        text = raw.decode("utf-8", errors="replace")
        decode_used = "utf-8"
        report.decode_fallback = True

    report.decode_used = decode_used
    return text


def sniff_delimiter(text: str) -> str:
    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=SNIFF_DELIMITERS)
        return dialect.delimiter
    except csv.Error:
        return NORMALIZED_DELIMITER


def decode_rows(raw: bytes) -> Tuple[List[List[str]], LoadReport]:
    """
    Parse stored bytes into rectangular rows; the first row is the header.

    Raises csv.Error when the text is not parseable as delimited rows.
    """
    report = LoadReport()
    text = decode_text(raw, report)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    if not text.strip():
        return [], report

    # the header row decides the delimiter; data rows may hold quoted separators
    delimiter = sniff_delimiter(text.split("\n", 1)[0])
    report.delimiter = delimiter

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if not rows:
        return [], report

    width = len(rows[0])
    for i, row in enumerate(rows):
        if len(row) < width:
            report.short_rows_padded += 1
            rows[i] = row + [""] * (width - len(row))
        elif len(row) > width:
            report.long_rows_truncated += 1
            rows[i] = row[:width]

    return rows, report


def encode_rows(header: Sequence[str], rows: Iterable[Sequence[str]]) -> bytes:
    out = io.StringIO(newline="")
    writer = csv.writer(out, delimiter=NORMALIZED_DELIMITER, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(row)
    return out.getvalue().encode(TARGET_ENCODING)
