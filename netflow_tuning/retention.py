"""
Selection of daily NetFlow indices that have aged out of the retention window.

Only the selection lives here; deleting indices is left to the caller.  Two
policies are offered: the fixed retention window, and an escalating sweep
that narrows the window step by step while the disk stays under pressure.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

INDEX_RE = re.compile(r"^netflow-(?P<day>\d{4}\.\d{2}\.\d{2})$")

PRESSURE_THRESHOLD_PCT = 90
# Windows tried in turn, widest first, so the newest data goes last.
PRESSURE_STEPS = (28, 21, 14, 7)


def index_date(name: str) -> Optional[date]:
    """Return the day encoded in ``netflow-YYYY.MM.DD``, or ``None`` for other names."""
    match = INDEX_RE.match(name.strip())
    if not match:
        return None
    try:
        return datetime.strptime(match.group("day"), "%Y.%m.%d").date()
    except ValueError:
        return None


def select_expired_indices(names: Iterable[str], retention_days: int, today: date) -> List[str]:
    """Indices strictly older than ``today - retention_days``, oldest first."""
    if retention_days < 0:
        raise ValueError("retention_days must not be negative")
    cutoff = today - timedelta(days=retention_days)

    expired = []
    for name in names:
        day = index_date(name)
        if day is not None and day < cutoff:
            expired.append((day, name.strip()))
    return [name for _, name in sorted(expired)]


def escalate_pressure_cleanup(
    names: Iterable[str],
    today: date,
    disk_usage_pct: Callable[[], float],
    threshold_pct: float = PRESSURE_THRESHOLD_PCT,
    steps: Sequence[int] = PRESSURE_STEPS,
) -> Iterator[Tuple[int, List[str]]]:
    """
    Yield ``(retention_days, indices)`` batches while disk usage stays high.

    ``disk_usage_pct`` is read before every step, so the caller must delete
    each batch before asking for the next one.  The sweep stops as soon as
    usage drops below ``threshold_pct`` or the narrowest window is reached.
    Indices already yielded are never yielded again.
    """
    remaining = [name.strip() for name in names]
    for days in steps:
        usage = disk_usage_pct()
        if usage < threshold_pct:
            return
        batch = select_expired_indices(remaining, days, today)
        if not batch:
            continue
        selected = set(batch)
        remaining = [name for name in remaining if name not in selected]
        yield days, batch
