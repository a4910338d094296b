"""Mapping raw Azure DevOps JSON payloads into domain models."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

import pandas as pd
import pytz

from .config import FIELD_IDS
from .models import Revision, RevisionHistory, StaticFields, WorkItemIdentity


def parse_dt(val) -> datetime | None:
    if val is None or val == "":
        return None
    ts = pd.to_datetime(val, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def to_instant(value) -> datetime:
    """Coerce a user-supplied as-of value into a timezone-aware datetime.

    Accepts datetimes, dates (midnight), pandas timestamps and ISO strings.
    Naive values are interpreted as UTC.

    Raises
    ------
    ValueError
        If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return pytz.UTC.localize(value)
        return value
    if isinstance(value, date):
        return pytz.UTC.localize(datetime(value.year, value.month, value.day))
    parsed = parse_dt(value)
    if parsed is None:
        raise ValueError(f"Unparseable as-of instant: {value!r}")
    return parsed


def identity_name(value: Any) -> str | None:
    """Return a display name for an identity field (dict or plain string)."""
    if value is None:
        return None
    if isinstance(value, dict):
        return value.get("displayName") or value.get("uniqueName") or None
    text = str(value).strip()
    return text or None


def map_revision(raw: dict[str, Any]) -> Revision:
    fields = raw.get("fields") or {}
    changed = parse_dt(fields.get(FIELD_IDS["changed_date"]))
    rev = raw.get("rev")
    return Revision(
        effective_from=changed,
        state=fields.get(FIELD_IDS["state"]),
        changed_by=identity_name(fields.get(FIELD_IDS["changed_by"])),
        changed_date=changed,
        rev=int(rev) if rev is not None else None,
    )


def map_history(work_item_id: int, raw_revisions: Iterable[dict[str, Any]]) -> RevisionHistory:
    """Build a RevisionHistory, keeping upstream order as-is."""
    revisions = tuple(map_revision(r) for r in raw_revisions if isinstance(r, dict))
    return RevisionHistory(identity=WorkItemIdentity(int(work_item_id)), revisions=revisions)


def map_static_fields(raw: dict[str, Any] | None) -> StaticFields:
    fields = (raw or {}).get("fields") or {}
    return StaticFields(
        type=fields.get(FIELD_IDS["type"]),
        title=fields.get(FIELD_IDS["title"]),
        created_date=parse_dt(fields.get(FIELD_IDS["created_date"])),
        area_path=fields.get(FIELD_IDS["area_path"]),
        target_release=fields.get(FIELD_IDS["target_release"]),
        board_column=fields.get(FIELD_IDS["board_column"]),
    )


def work_item_id(raw: dict[str, Any]) -> int | None:
    value = raw.get("id")
    if value is None:
        value = (raw.get("fields") or {}).get(FIELD_IDS["id"])
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
