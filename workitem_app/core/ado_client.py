"""Azure DevOps REST client (async, httpx).

Covers the handful of endpoints the comparison needs: WIQL queries, the
``workitemsbatch`` field projection, paged revision history, and the
project/team/iteration/type listings used to build a selection.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx

from .config import (
    ADO_API_VERSION,
    ADO_BASE_URL,
    HTTP_TIMEOUT_SECONDS,
    MAX_BATCH_SIZE,
    REVISION_PAGE_SIZE,
    TOO_MANY_RESULTS_MARKERS,
)
from .errors import AuthenticationMissing, TooManyResults, TransportError
from .mappers import map_history
from .models import RevisionHistory, Selection
from .planner import build_wiql

logger = logging.getLogger(__name__)


def _error_detail(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text[:500]


def _upstream_message(detail: Any) -> str:
    if isinstance(detail, dict):
        return str(detail.get("message") or "")
    return str(detail or "")


def _is_too_many_results(detail: Any) -> bool:
    text = _upstream_message(detail)
    if isinstance(detail, dict):
        text = f"{text} {detail.get('typeKey') or ''} {detail.get('typeName') or ''}"
    return any(marker in text for marker in TOO_MANY_RESULTS_MARKERS)


class AzureDevOpsAPI:
    def __init__(
        self,
        org: str,
        pat: str | None,
        *,
        base_url: str = ADO_BASE_URL,
        api_version: str = ADO_API_VERSION,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.org = org.strip("/")
        self.pat = pat or None
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        # Tests inject httpx.MockTransport here
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    # ------------------ Session Lifecycle ------------------
    def require_auth(self) -> None:
        if not self.pat:
            raise AuthenticationMissing()

    async def __aenter__(self) -> AzureDevOpsAPI:
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def open(self) -> None:
        self.require_auth()
        if self._client is None:
            self._client = httpx.AsyncClient(
                auth=httpx.BasicAuth("", self.pat),
                timeout=self._timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def org_url(self, path: str) -> str:
        return f"{self.base_url}/{quote(self.org)}/{path.lstrip('/')}"

    def project_url(self, project: str, path: str, team: str | None = None) -> str:
        scope = quote(project, safe="")
        if team:
            scope = f"{scope}/{quote(team, safe='')}"
        return self.org_url(f"{scope}/_apis/{path.lstrip('/')}")

    @property
    def server(self) -> str:
        """Organization root, used to build browser links."""
        return f"{self.base_url}/{quote(self.org)}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        if self._client is None:
            await self.open()
        query = {"api-version": self.api_version}
        if params:
            query.update(params)
        try:
            resp = await self._client.request(method, url, params=query, json=json)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        if resp.status_code >= 400:
            detail = _error_detail(resp)
            if _is_too_many_results(detail):
                raise TooManyResults(upstream_message=_upstream_message(detail), status_code=resp.status_code)
            raise TransportError(
                f"{method} {url} failed {resp.status_code}: {_upstream_message(detail)[:200]}",
                status_code=resp.status_code,
                detail=detail,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise TransportError(f"{method} {url} returned non-JSON body", status_code=resp.status_code) from exc
        if not isinstance(data, dict):
            raise TransportError(
                f"{method} {url} returned {type(data).__name__}, expected a JSON object",
                status_code=resp.status_code,
            )
        return data

    # ------------------ Query / Fetch ------------------
    async def run_wiql(self, project: str, team: str, query: str) -> list[int]:
        logger.debug("WIQL query: %s", query)
        data = await self._request("POST", self.project_url(project, "wit/wiql", team=team), json={"query": query})
        ids = [int(wi["id"]) for wi in data.get("workItems", []) if wi.get("id") is not None]
        logger.debug("WIQL returned %d ids", len(ids))
        return ids

    async def list_matching_identifiers(
        self,
        project: str,
        team: str,
        iteration_path: str,
        types: Sequence[str] | None = None,
    ) -> list[int]:
        selection = Selection(project=project, team=team, iteration_path=iteration_path, types=tuple(types or ()))
        return await self.run_wiql(project, team, build_wiql(selection))

    async def fetch_fields(
        self,
        ids: Sequence[int],
        fields: Sequence[str],
        *,
        project: str | None = None,
    ) -> list[dict[str, Any]]:
        if len(ids) > MAX_BATCH_SIZE:
            raise ValueError(f"At most {MAX_BATCH_SIZE} ids per batch, got {len(ids)}")
        if not ids:
            return []
        url = (
            self.project_url(project, "wit/workitemsbatch")
            if project
            else self.org_url("_apis/wit/workitemsbatch")
        )
        data = await self._request("POST", url, json={"ids": list(ids), "fields": list(fields)})
        return list(data.get("value", []))

    async def fetch_revision_history(self, work_item_id: int, project: str) -> RevisionHistory:
        """Fetch every revision of a work item, oldest first, following pages."""
        url = self.project_url(project, f"wit/workItems/{int(work_item_id)}/revisions")
        raw: list[dict[str, Any]] = []
        skip = 0
        while True:
            data = await self._request("GET", url, params={"$top": REVISION_PAGE_SIZE, "$skip": skip})
            page = data.get("value", []) or []
            raw.extend(page)
            if len(page) < REVISION_PAGE_SIZE:
                break
            skip += len(page)
        return map_history(work_item_id, raw)

    # ------------------ Selection Metadata ------------------
    async def list_projects(self) -> list[dict[str, Any]]:
        data = await self._request("GET", self.org_url("_apis/projects"))
        return list(data.get("value", []))

    async def list_teams(self, project: str) -> list[dict[str, Any]]:
        data = await self._request("GET", self.org_url(f"_apis/projects/{quote(project, safe='')}/teams"))
        return list(data.get("value", []))

    async def list_iterations(self, project: str, team: str) -> list[dict[str, Any]]:
        data = await self._request("GET", self.project_url(project, "work/teamsettings/iterations", team=team))
        return list(data.get("value", []))

    async def list_work_item_types(self, project: str) -> list[str]:
        data = await self._request("GET", self.project_url(project, "wit/workitemtypes"))
        return [t.get("name") for t in data.get("value", []) if t.get("name")]
