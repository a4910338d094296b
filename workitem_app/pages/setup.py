"""Connection setup page: collect organization + PAT and initialize CompareService."""

from __future__ import annotations

import logging
import os

import streamlit as st

from workitem_app.app import register_page
from workitem_app.core.ado_client import AzureDevOpsAPI
from workitem_app.core.config import ORG_ENV_VAR, PAT_ENV_VAR
from workitem_app.core.errors import WorkItemCompareError
from workitem_app.core.service import CompareService

logger = logging.getLogger(__name__)


def secret_credentials() -> tuple[str | None, str | None]:
    """Organization and PAT from ``[azure]`` secrets, falling back to the environment."""
    try:
        azure = st.secrets.get("azure", {})
        org = azure.get("AZURE_DEVOPS_ORG") or st.secrets.get("AZURE_DEVOPS_ORG")
        pat = azure.get("AZURE_DEVOPS_PAT") or st.secrets.get("AZURE_DEVOPS_PAT")
    except FileNotFoundError:
        org = pat = None
    return org or os.environ.get(ORG_ENV_VAR), pat or os.environ.get(PAT_ENV_VAR)


def connect(org: str, pat: str) -> CompareService:
    """Build the service and verify the credentials with a project listing."""
    service = CompareService(AzureDevOpsAPI(org, pat))
    projects = service.run(service.get_projects)
    st.session_state["azure_org"] = org
    st.session_state["azure_server"] = service.api.server
    st.session_state["compare_service"] = service
    st.session_state["projects"] = projects
    return service


@register_page("Setup / Connection")
def setup_page():
    st.title("Azure DevOps Connection Setup")
    st.caption("Enter an organization and a personal access token (use secrets in production).")

    secret_org, secret_pat = secret_credentials()
    org = st.text_input("Organization", value=st.session_state.get("azure_org") or secret_org or "")
    pat = st.text_input("Personal Access Token", type="password", value=secret_pat or "")
    init_btn = st.button("Initialize Connection", type="primary")

    if init_btn:
        if not (org and pat):
            st.error("Organization and PAT are required.")
            return
        try:
            connect(org, pat)
            st.success(f"Connected; {len(st.session_state['projects'])} project(s) visible.")
        except WorkItemCompareError as exc:
            logger.warning("Connection check failed: %s", exc)
            st.error(f"Failed to connect to Azure DevOps: {exc}")

    if "compare_service" in st.session_state:
        st.info("CompareService ready.")
        if st.button("Log out"):
            for key in ("compare_service", "azure_org", "azure_server", "projects", "compare_df"):
                st.session_state.pop(key, None)
            st.rerun()
