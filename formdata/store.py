"""
File-backed record table.

The table is read whole, changed by at most one upsert and written back whole.
Writes go to a temporary file beside the target and are renamed into place, so
a reader sees either the previous version or the new one.
"""

from __future__ import annotations

import csv
import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .codec import decode_rows, encode_rows
from .config import MatchKey
from .errors import InvalidGroupError, ParseError, StoreWriteError
from .models import LoadReport, SubmissionRecord
from .rules import COLUMNS, HEADER, REQUIRED_COLUMNS

logger = logging.getLogger(__name__)

RecordTable = List[SubmissionRecord]

_GROUP_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")
_TITLE_TO_FIELD = {title.lower(): name for name, title in COLUMNS.items()}


@dataclass
class LoadResult:
    table: RecordTable
    error: Optional[ParseError] = None
    report: Optional[LoadReport] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def rows_to_table(rows: List[List[str]], report: LoadReport) -> RecordTable:
    """Map parsed rows to records by header title; the first row is the header."""
    if not rows:
        return []
    header = [cell.strip().lower() for cell in rows[0]]
    missing = [title for title in REQUIRED_COLUMNS if title.lower() not in header]
    if missing:
        raise ValueError(f"missing columns: {', '.join(missing)}")

    positions: Dict[str, int] = {}
    for i, title in enumerate(header):
        name = _TITLE_TO_FIELD.get(title)
        if name is None:
            report.unknown_columns.append(rows[0][i])
        elif name not in positions:
            positions[name] = i

    return [
        SubmissionRecord(**{name: row[i] for name, i in positions.items()})
        for row in rows[1:]
    ]


def table_to_rows(table: RecordTable) -> List[List[str]]:
    return [[getattr(record, name) for name in COLUMNS] for record in table]


def read(path: Path) -> LoadResult:
    """Read the table at ``path``, reporting rather than raising on bad content."""
    path = Path(path)
    if not path.exists():
        return LoadResult(table=[])
    try:
        raw = path.read_bytes()
        rows, report = decode_rows(raw)
        table = rows_to_table(rows, report)
    except (OSError, csv.Error, ValueError) as exc:
        return LoadResult(table=[], error=ParseError(path, str(exc)))
    return LoadResult(table=table, report=report)


def load(path: Path) -> RecordTable:
    """The stored table, or an empty one if the file is absent or unreadable."""
    result = read(path)
    if not result.ok:
        logger.warning("Treating unreadable table as empty: %s", result.error)
    elif result.report is not None and (
        result.report.short_rows_padded or result.report.long_rows_truncated
    ):
        logger.info(
            "Repaired row widths in %s: %d padded, %d truncated",
            path, result.report.short_rows_padded, result.report.long_rows_truncated,
        )
    return result.table


def find_match(table: RecordTable, record: SubmissionRecord, match_key: MatchKey) -> Optional[int]:
    if match_key is MatchKey.ENTRY_ID:
        if not record.entry_id:
            return None
        for i, row in enumerate(table):
            if row.entry_id and row.entry_id == record.entry_id:
                return i
        return None

    key = record.email_key()
    if not key:
        return None
    for i, row in enumerate(table):
        if row.email_key() == key:
            return i
    return None


def upsert(
    table: RecordTable,
    record: SubmissionRecord,
    match_key: MatchKey = MatchKey.EMAIL,
) -> Tuple[RecordTable, bool]:
    """
    Replace the matching row in place or append; returns (new_table, updated).

    The input table is left untouched.
    """
    result = list(table)
    index = find_match(result, record, match_key)
    if index is None:
        result.append(record)
        return result, False
    result[index] = record
    return result, True


def save(table: RecordTable, path: Path) -> None:
    """Rewrite ``path`` with the header and every row, atomically."""
    path = Path(path)
    tmp_name = None
    try:
        data = encode_rows(HEADER, table_to_rows(table))
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except (OSError, UnicodeError) as exc:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        logger.error("Could not write table %s", path, exc_info=True)
        raise StoreWriteError(f"could not write {path}: {exc}") from exc
    logger.info("Saved %d rows to %s", len(table), path)


def clear(path: Path) -> bool:
    """Delete the backing file; True if there was one to delete."""
    path = Path(path)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise StoreWriteError(f"could not delete {path}: {exc}") from exc
    logger.info("Cleared table %s", path)
    return True


def validate_group(group: str) -> str:
    if not _GROUP_RE.match(group or ""):
        raise InvalidGroupError(f"invalid form group {group!r}")
    return group


class RecordStore:
    """One form group's table, bound to ``<data_dir>/<group>.csv``."""

    _locks: Dict[Path, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, data_dir: Path, group: str, match_key: MatchKey = MatchKey.EMAIL):
        self.group = validate_group(group)
        self.path = Path(data_dir) / f"{group}.csv"
        self.match_key = match_key

    @property
    def lock(self) -> threading.Lock:
        key = self.path.resolve()
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def exists(self) -> bool:
        return self.path.exists()

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except FileNotFoundError:
            return 0

    def load(self) -> RecordTable:
        return load(self.path)

    def save(self, table: RecordTable) -> None:
        save(table, self.path)

    def clear(self) -> bool:
        with self.lock:
            return clear(self.path)

    def submit(self, record: SubmissionRecord) -> Tuple[RecordTable, bool]:
        """Load, upsert ``record`` and save; returns the saved table and whether a row was replaced."""
        with self.lock:
            table, updated = upsert(self.load(), record, self.match_key)
            self.save(table)
        logger.info(
            "%s entry %r in %s", "Updated" if updated else "Added", record.entry_id, self.group,
        )
        return table, updated
