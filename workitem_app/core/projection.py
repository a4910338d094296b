"""Projection of comparison records into flat output rows."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pandas as pd
import pytz

from .config import COMPARE_ROW_COLUMNS, TIMEZONE
from .models import ComparisonRecord


def _text(value: Any) -> Any:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return value


def to_row(record: ComparisonRecord) -> dict[str, Any]:
    """Flatten one record into the output schema.

    Absent static fields become ``""`` for export; snapshot fields keep
    ``None`` when unresolved.
    """
    static = record.static_fields
    a = record.snapshot_a
    b = record.snapshot_b
    return {
        "id": record.identity.id,
        "type": _text(static.type),
        "title": _text(static.title),
        "createdDate": _text(static.created_date),
        "areaPath": _text(static.area_path),
        "targetRelease": _text(static.target_release),
        "boardColumn": _text(static.board_column),
        "stateA": a.state,
        "changedByA": a.changed_by,
        "changedDateA": a.changed_date,
        "stateB": b.state,
        "changedByB": b.changed_by,
        "changedDateB": b.changed_date,
        "changed": bool(record.changed),
        "error": record.error or "",
    }


def records_to_dataframe(records: Iterable[ComparisonRecord]) -> pd.DataFrame:
    rows = [to_row(r) for r in records]
    if not rows:
        return pd.DataFrame(columns=list(COMPARE_ROW_COLUMNS))
    return pd.DataFrame(rows, columns=list(COMPARE_ROW_COLUMNS))


def format_date_only(value, tz=TIMEZONE) -> str:
    """Render a timestamp as ``MM/DD/YYYY`` in ``tz``; empty for missing values."""
    if value is None or value == "":
        return ""
    ts = pd.to_datetime(value, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return ""
    zone = pytz.timezone(tz) if isinstance(tz, str) else tz
    return ts.tz_convert(zone).strftime("%m/%d/%Y")
