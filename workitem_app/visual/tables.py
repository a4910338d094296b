"""Table helpers for the comparison grid and its CSV export."""

from __future__ import annotations

from urllib.parse import quote

import pandas as pd
import streamlit as st

from workitem_app.core.column_config import get_columns
from workitem_app.core.config import TIMEZONE
from workitem_app.core.projection import format_date_only

DATE_COLUMNS = ("createdDate", "changedDateA", "changedDateB")


def work_item_url(server: str, project: str, work_item_id) -> str:
    return f"{server.rstrip('/')}/{quote(project, safe='')}/_workitems/edit/{work_item_id}"


def add_work_item_link(
    df: pd.DataFrame,
    server: str,
    project: str,
    id_col: str = "id",
    label: str = "Work Item",
):
    """Add a link column pointing each row at its Azure DevOps edit page."""
    if df.empty or id_col not in df.columns:
        return df, {}
    out = df.copy()
    out["url"] = out[id_col].apply(lambda wid: work_item_url(server, project, wid) if pd.notna(wid) else "")
    out[label] = out["url"]
    cfg = {
        label: st.column_config.LinkColumn(
            label,
            display_text=r"edit/(\d+)$",
            help="Open in Azure DevOps",
            width="small",
        )
    }
    return out, cfg


def only_changed(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty or "changed" not in df.columns:
        return df
    return df[df["changed"].astype(bool)]


def prepare_compare_table(
    df: pd.DataFrame,
    server: str,
    project: str,
    *,
    changed_only: bool = False,
) -> tuple[pd.DataFrame, list[str], dict[str, object]]:
    if df.empty:
        return df, [], {}
    table, cfg = add_work_item_link(df, server, project)
    if changed_only:
        table = only_changed(table)
    display_cols = [col for col in get_columns("compare") if col in table.columns]
    if not display_cols:
        display_cols = [col for col in table.columns if col != "url"]
    return table, display_cols, cfg


def to_export_frame(df: pd.DataFrame, server: str, project: str, tz: str = TIMEZONE) -> pd.DataFrame:
    """Export layout: date-only timestamps, ``Y``/blank for the changed flag."""
    if df.empty:
        return pd.DataFrame(columns=get_columns("export"))
    out, _ = add_work_item_link(df, server, project)
    for col in DATE_COLUMNS:
        if col in out.columns:
            out[col] = out[col].apply(lambda v: format_date_only(v, tz))
    if "changed" in out.columns:
        out["changed"] = out["changed"].apply(lambda v: "Y" if v else "")
    cols = [c for c in get_columns("export") if c in out.columns]
    return out[cols].fillna("")
