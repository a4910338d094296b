"""Dual-snapshot comparison of one work item at two instants."""

from __future__ import annotations

from datetime import date, datetime

import pandas as pd
import pytz

from .config import TIMEZONE
from .models import ComparisonRecord, PointInTimeSnapshot, RevisionHistory, StaticFields
from .resolver import resolve

# Snapshot attributes holding dates; compared at day granularity
SNAPSHOT_DATE_FIELDS: tuple[str, ...] = ("changed_date",)


def _local_day(value: datetime | None, tz) -> date | None:
    if value is None or pd.isna(value):
        return None
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize(pytz.UTC)
    return ts.tz_convert(tz).date()


def same_calendar_day(a: datetime | None, b: datetime | None, tz=TIMEZONE) -> bool:
    """True when both values fall on the same day in ``tz`` (or both are empty)."""
    zone = pytz.timezone(tz) if isinstance(tz, str) else tz
    return _local_day(a, zone) == _local_day(b, zone)


def is_changed(a: PointInTimeSnapshot, b: PointInTimeSnapshot, tz=TIMEZONE) -> bool:
    """Change predicate used to flag rows.

    State is compared exactly; date fields only by calendar day. A snapshot
    without history never equals a resolved one.
    """
    if a.resolved != b.resolved:
        return True
    if not a.resolved:
        return False
    if a.state != b.state:
        return True
    return any(
        not same_calendar_day(getattr(a, name), getattr(b, name), tz) for name in SNAPSHOT_DATE_FIELDS
    )


def compare(
    history: RevisionHistory,
    instant_a,
    instant_b,
    *,
    static_fields: StaticFields | None = None,
    tz=TIMEZONE,
) -> ComparisonRecord:
    snapshot_a = resolve(history, instant_a)
    snapshot_b = resolve(history, instant_b)
    return ComparisonRecord(
        identity=history.identity,
        static_fields=static_fields or StaticFields(),
        snapshot_a=snapshot_a,
        snapshot_b=snapshot_b,
        changed=is_changed(snapshot_a, snapshot_b, tz),
    )
