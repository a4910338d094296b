"""Compare Work Items page.

Pick a project/team/iteration plus two dates, reconstruct each work item's
state as of both dates, and list the differences.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

import pandas as pd
import streamlit as st

from workitem_app.app import register_page
from workitem_app.core.config import SETTINGS, TIMEZONE, RequestContext, detailed_logging_enabled
from workitem_app.core.errors import AuthenticationMissing, TooManyResults, TransportError
from workitem_app.core.models import Selection
from workitem_app.core.projection import records_to_dataframe
from workitem_app.core.service import CompareService
from workitem_app.visual.column_metadata import apply_column_metadata
from workitem_app.visual.progress import ProgressReporter
from workitem_app.visual.tables import prepare_compare_table, to_export_frame

logger = logging.getLogger(__name__)


def _load_options(service: CompareService, key: str, loader, *args) -> list[str]:
    cache_key = (key, *args)
    cache = st.session_state.setdefault("option_cache", {})
    if cache_key not in cache:
        try:
            cache[cache_key] = service.run(loader, *args)
        except TransportError as exc:
            st.error(f"Failed to load {key}: {exc}")
            cache[cache_key] = []
    return cache[cache_key]


@register_page("Compare Work Items")
def compare_page():
    st.title("Compare Work Items")
    st.caption("State of each work item as of two dates, with changed rows flagged.")
    service: CompareService | None = st.session_state.get("compare_service")
    if service is None:
        st.warning("Initialize connection on Setup page first.")
        return

    projects = st.session_state.get("projects") or _load_options(service, "projects", service.get_projects)
    project = st.selectbox("Project", projects, index=None, placeholder="Select a project")
    if not project:
        return
    teams = _load_options(service, "teams", service.get_teams, project)
    team = st.selectbox("Team", teams, index=None, placeholder="Select a team")
    if not team:
        return
    iterations = _load_options(service, "iterations", service.get_iterations, project, team)
    iteration = st.selectbox("Iteration", iterations, index=None, placeholder="Select an iteration")
    types = _load_options(service, "types", service.get_work_item_types, project)
    selected_types = st.multiselect("Work item types", types)

    today = date.today()
    col_a, col_b = st.columns(2)
    as_of = col_a.date_input("As of date", value=today - timedelta(days=14))
    compare_date = col_b.date_input("Comparison date", value=today)
    audit = st.checkbox("Mirror fetched batches to local files", value=detailed_logging_enabled())

    if st.button("Load Work Items", type="primary"):
        if not (iteration and selected_types and as_of and compare_date):
            st.error("Please select all required fields.")
            return
        selection = Selection(
            project=project,
            team=team,
            iteration_path=iteration,
            types=tuple(selected_types),
        )
        context = RequestContext(audit_enabled=audit, timezone=TIMEZONE)
        reporter = ProgressReporter(f"Comparing work items in {iteration}")
        try:
            records = service.run_comparison(
                selection, as_of, compare_date, context=context, progress=reporter.callback
            )
        except TooManyResults as exc:
            reporter.error(exc.hint)
            return
        except AuthenticationMissing as exc:
            reporter.error(str(exc))
            return
        except TransportError as exc:
            logger.warning("Comparison failed: %s", exc)
            reporter.error(f"Failed to fetch work items: {exc}")
            return
        st.session_state["compare_df"] = records_to_dataframe(records)
        st.session_state["compare_project"] = project
        failed = sum(1 for r in records if r.error)
        reporter.complete(f"Compared {len(records)} work item(s); {failed} failed.")

    df = st.session_state.get("compare_df", pd.DataFrame())
    if df.empty:
        st.info("No comparison loaded yet.")
        return

    server = st.session_state.get("azure_server", "")
    df_project = st.session_state.get("compare_project", project)
    changed_only = st.checkbox("Show only changed", value=False)
    table, display_cols, cfg = prepare_compare_table(df, server, df_project, changed_only=changed_only)
    st.markdown("---")
    st.caption(f"{int(df['changed'].sum())} of {len(df)} work item(s) changed.")
    column_config = apply_column_metadata(display_cols, cfg)
    st.dataframe(
        table[display_cols].head(SETTINGS.max_table_rows),
        hide_index=True,
        column_config=column_config,
    )
    export_source = table if changed_only else df
    csv = to_export_frame(export_source, server, df_project).to_csv(index=False)
    st.download_button(
        "Download CSV",
        data=csv.encode(SETTINGS.download_encoding),
        file_name="workitems.csv",
        mime="text/csv",
    )
