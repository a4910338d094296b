"""Convenience launcher for the Streamlit app.

Usage:
  streamlit run run_dashboard.py

Automatically imports every module in ``workitem_app/pages`` so each page
decorated with ``@register_page`` registers itself without manual edits here.
"""

import logging
from importlib import import_module
from pathlib import Path

import streamlit as st

from workitem_app.app import main
from workitem_app.core.config import configure_logging
from workitem_app.core.errors import WorkItemCompareError

st.set_page_config(layout="wide")
configure_logging()
logger = logging.getLogger(__name__)


def _auto_init_compare_service():
    """Initialize the service from secrets/environment if credentials exist."""
    if "compare_service" in st.session_state:
        return
    from workitem_app.pages.setup import connect, secret_credentials

    org, pat = secret_credentials()
    if not (org and pat):
        st.sidebar.warning("Azure DevOps credentials not found. Please use the Setup page.")
        return
    st.sidebar.info("Credentials found, attempting to connect to Azure DevOps...")
    try:
        connect(org, pat)
        st.sidebar.success("Azure DevOps connection successful!")
    except WorkItemCompareError as e:
        st.sidebar.error(f"Azure DevOps connection failed: {e}")
        st.session_state.pop("compare_service", None)


PAGES_DIR = Path(__file__).parent / "workitem_app" / "pages"
for py in sorted(PAGES_DIR.glob("[!_]*.py")):
    mod_name = f"workitem_app.pages.{py.stem}"
    try:
        import_module(mod_name)
    except ImportError as e:  # pragma: no cover
        logger.error("Failed importing page %s: %s", mod_name, e)

_auto_init_compare_service()

if __name__ == "__main__":
    main()
