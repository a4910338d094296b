"""Column labels and hover help for the comparison grid."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import streamlit as st

# Mapping of raw column keys to (label, help text, format key)
# format key: "datetime" -> datetime column, "bool" -> checkbox, None -> text
COLUMN_METADATA: dict[str, tuple[str, str, str | None]] = {
    "type": ("Type", "Work item type.", None),
    "title": ("Title", "Work item title.", None),
    "areaPath": ("Area Path", "Area path of the work item.", None),
    "targetRelease": ("Target Release", "Custom target release field.", None),
    "boardColumn": ("Board Column", "Current board column.", None),
    "createdDate": ("Created", "When the work item was created.", "datetime"),
    "stateA": ("As of State", "State effective at the first date.", None),
    "changedByA": ("Changed By (as of)", "Author of the revision effective at the first date.", None),
    "changedDateA": ("Changed Date (as of)", "Timestamp of the revision effective at the first date.", "datetime"),
    "stateB": ("Comparison State", "State effective at the comparison date.", None),
    "changedByB": (
        "Changed By (compare)",
        "Author of the revision effective at the comparison date.",
        None,
    ),
    "changedDateB": (
        "Changed Date",
        "Timestamp of the revision effective at the comparison date.",
        "datetime",
    ),
    "changed": (
        "Changed",
        "State differs, or the effective revision falls on a different day.",
        "bool",
    ),
    "error": ("Error", "History fetch failure for this work item, if any.", None),
}


def apply_column_metadata(
    columns: Iterable[str],
    existing: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Return a column_config dictionary with human labels and hover help."""

    config: dict[str, Any] = dict(existing or {})
    for col in columns:
        if col in config:
            continue
        meta = COLUMN_METADATA.get(col)
        if not meta:
            continue
        label, help_text, fmt = meta
        if fmt == "datetime":
            config[col] = st.column_config.DatetimeColumn(label, help=help_text, format="YYYY-MM-DD HH:mm")
        elif fmt == "bool":
            config[col] = st.column_config.CheckboxColumn(label, help=help_text)
        else:
            config[col] = st.column_config.Column(label, help=help_text)
    return config
