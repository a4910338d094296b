"""Central configuration, constants, and shared field/column definitions."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

# =============================================================================
# Azure DevOps Connection Settings
# =============================================================================
ADO_BASE_URL = "https://dev.azure.com"
ADO_API_VERSION = "7.0"
HTTP_TIMEOUT_SECONDS = 30.0

# Environment fallbacks when Streamlit secrets are not configured
PAT_ENV_VAR = "AZURE_DEVOPS_PAT"
ORG_ENV_VAR = "AZURE_DEVOPS_ORG"
DETAILED_LOGGING_ENV_VAR = "DETAILED_LOGGING"

# Timezone used when comparing and rendering dates at day granularity
TIMEZONE = "UTC"

# =============================================================================
# Query / Batch Limits
# =============================================================================
# The workitemsbatch endpoint rejects more than 200 ids per call.
MAX_BATCH_SIZE = 200
# Page size for the revisions endpoint ($top)
REVISION_PAGE_SIZE = 200

# Error markers returned by the WIQL endpoint when the result cap is exceeded
TOO_MANY_RESULTS_MARKERS: frozenset[str] = frozenset(
    {
        "VS403474",
        "WorkItemTrackingQueryResultSizeLimitExceededException",
    }
)
TOO_MANY_RESULTS_HINT = (
    "Too many work items. Narrow the selection (e.g. by type, team, or iteration) and try again."
)

# Concurrency tuning. Requests share one event loop; these cap how many are
# in flight at once to stay under upstream rate limits.
BATCH_MAX_CONCURRENCY = 4
REVISION_FETCH_MAX_CONCURRENCY = 16

# =============================================================================
# Field Projection
# =============================================================================
FIELD_IDS = {
    "id": "System.Id",
    "type": "System.WorkItemType",
    "title": "System.Title",
    "state": "System.State",
    "created_date": "System.CreatedDate",
    "area_path": "System.AreaPath",
    "target_release": "Custom.TargetRelease",
    "board_column": "System.BoardColumn",
    "changed_by": "System.ChangedBy",
    "changed_date": "System.ChangedDate",
}

# Fields requested for each batch of work items
WORK_ITEM_FETCH_FIELDS: Sequence[str] = (
    FIELD_IDS["id"],
    FIELD_IDS["type"],
    FIELD_IDS["title"],
    FIELD_IDS["state"],
    FIELD_IDS["created_date"],
    FIELD_IDS["area_path"],
    FIELD_IDS["target_release"],
    FIELD_IDS["board_column"],
)

# Output row schema, in display order
COMPARE_ROW_COLUMNS: Sequence[str] = (
    "id",
    "type",
    "title",
    "createdDate",
    "areaPath",
    "targetRelease",
    "boardColumn",
    "stateA",
    "changedByA",
    "changedDateA",
    "stateB",
    "changedByB",
    "changedDateB",
    "changed",
    "error",
)

DISPLAY_ORDER_COMPARE: Sequence[str] = (
    "Work Item",
    "type",
    "title",
    "areaPath",
    "targetRelease",
    "boardColumn",
    "createdDate",
    "stateA",
    "stateB",
    "changed",
    "changedByB",
    "changedDateB",
)

EXPORT_ORDER_COMPARE: Sequence[str] = (
    "id",
    "url",
    "type",
    "title",
    "areaPath",
    "targetRelease",
    "boardColumn",
    "createdDate",
    "stateA",
    "changedByA",
    "changedDateA",
    "stateB",
    "changedByB",
    "changedDateB",
    "changed",
)

# Default directory for mirrored batch payloads
DEFAULT_MIRROR_DIR = Path.cwd() / "logs"


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Configuration scoped to a single comparison request.

    Each request carries its own copy so concurrent comparisons never share a
    mutable audit toggle.
    """

    audit_enabled: bool = False
    mirror_dir: Path = DEFAULT_MIRROR_DIR
    timezone: str = TIMEZONE
    max_concurrency: int = REVISION_FETCH_MAX_CONCURRENCY


@dataclass(slots=True)
class AppSettings:
    max_table_rows: int = 5000
    download_encoding: str = "utf-8"


SETTINGS = AppSettings()


def detailed_logging_enabled() -> bool:
    return os.environ.get(DETAILED_LOGGING_ENV_VAR, "").strip().lower() == "true"


def configure_logging(level: int | None = None) -> None:
    """Install a basic root handler; DEBUG when detailed logging is requested."""
    if level is None:
        level = logging.DEBUG if detailed_logging_enabled() else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
