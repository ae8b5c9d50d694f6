from __future__ import annotations

from .models import DashboardSummary
from .rules import PREVIEW_ROWS
from .store import RecordStore

_UNITS = ["B", "KB", "MB", "GB", "TB"]


def human_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} B"
    size = float(num_bytes)
    for unit in _UNITS[1:]:
        size /= 1024
        if size < 1024 or unit == _UNITS[-1]:
            break
    return f"{size:.1f} {unit}".replace(".0 ", " ")


def summarize(store: RecordStore) -> DashboardSummary:
    """Counts, latest timestamp, size and the newest rows of one group's table."""
    if not store.exists():
        return DashboardSummary(group=store.group, file_exists=False)

    table = store.load()
    size = store.size()
    return DashboardSummary(
        group=store.group,
        file_exists=True,
        total_submissions=len(table),
        latest_submission=(table[-1].timestamp or "N/A") if table else "N/A",
        file_size=size,
        file_size_human=human_size(size),
        recent=list(reversed(table[-PREVIEW_ROWS:])),
    )
