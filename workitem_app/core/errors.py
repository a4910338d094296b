"""Error taxonomy for work item comparison."""

from __future__ import annotations

from typing import Any

from .config import TOO_MANY_RESULTS_HINT


class WorkItemCompareError(Exception):
    """Base error for comparison failures."""


class AuthenticationMissing(WorkItemCompareError):
    """No personal access token was supplied; nothing can be fetched."""

    def __init__(self, message: str = "Missing Azure DevOps PAT"):
        super().__init__(message)


class TransportError(WorkItemCompareError):
    """Network failure or non-success response from Azure DevOps.

    Attributes:
        status_code: HTTP status code, when a response was received.
        detail: Parsed error payload (or raw text) returned upstream.
    """

    def __init__(self, message: str, status_code: int | None = None, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class TooManyResults(WorkItemCompareError):
    """The query matched more work items than the upstream cap allows.

    User-correctable by narrowing the selection; ``hint`` holds the
    remediation text shown to the user.
    """

    def __init__(
        self,
        message: str = TOO_MANY_RESULTS_HINT,
        *,
        upstream_message: str = "",
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.hint = TOO_MANY_RESULTS_HINT
        self.status_code = status_code
        self.upstream_message = upstream_message


class MalformedRevision(UserWarning):
    """Warning category for revisions skipped during resolution."""
