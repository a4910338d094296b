"""CompareService: orchestrates query planning, history fetch, and comparison."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from .ado_client import AzureDevOpsAPI
from .audit import BatchMirror
from .comparator import compare
from .config import BATCH_MAX_CONCURRENCY, WORK_ITEM_FETCH_FIELDS, RequestContext
from .errors import WorkItemCompareError
from .mappers import map_static_fields, to_instant, work_item_id
from .models import ComparisonRecord, PointInTimeSnapshot, Selection, StaticFields, WorkItemIdentity
from .planner import fetch_batches, plan

logger = logging.getLogger(__name__)

DEFAULT_FIELDS: Sequence[str] = tuple(WORK_ITEM_FETCH_FIELDS)
ProgressCallback = Callable[[str, int | None, int | None], None]


class CompareService:
    def __init__(self, api: AzureDevOpsAPI):
        self.api = api

    # ------------------ Selection Metadata ------------------
    async def get_projects(self) -> list[str]:
        return sorted(p.get("name") for p in await self.api.list_projects() if p.get("name"))

    async def get_teams(self, project: str) -> list[str]:
        return sorted(t.get("name") for t in await self.api.list_teams(project) if t.get("name"))

    async def get_iterations(self, project: str, team: str) -> list[str]:
        return [i.get("path") for i in await self.api.list_iterations(project, team) if i.get("path")]

    async def get_work_item_types(self, project: str) -> list[str]:
        return sorted(await self.api.list_work_item_types(project))

    # ------------------ Comparison ------------------
    async def compare_work_items(
        self,
        selection: Selection,
        instant_a,
        instant_b,
        *,
        context: RequestContext | None = None,
        progress: ProgressCallback | None = None,
    ) -> list[ComparisonRecord]:
        """Compare every work item of ``selection`` as of two instants.

        Records come back in the upstream query order. Selection-level
        failures (missing PAT, too many results, query transport errors)
        propagate; a failed per-item history fetch yields a record with
        unresolved snapshots and ``error`` set instead.

        Nothing is returned until every fetch has finished, so cancelling the
        awaiting task discards all partial work.
        """
        ctx = context or RequestContext()
        self.api.require_auth()
        at_a = to_instant(instant_a)
        at_b = to_instant(instant_b)

        if progress:
            progress(f"Querying work items in {selection.iteration_path}", None, None)
        batches = await plan(self.api, selection)
        if not batches:
            if progress:
                progress("No matching work items", 0, 0)
            return []

        ids = [wid for batch in batches for wid in batch.ids]
        mirror = BatchMirror(ctx.mirror_dir) if ctx.audit_enabled else None
        if progress:
            progress("Fetching work item fields", 0, len(batches))
        items = await fetch_batches(
            self.api,
            batches,
            DEFAULT_FIELDS,
            project=selection.project,
            on_batch=mirror,
            max_concurrency=BATCH_MAX_CONCURRENCY,
        )
        raw_by_id: dict[int, dict[str, Any]] = {}
        for item in items:
            wid = work_item_id(item)
            if wid is not None:
                raw_by_id[wid] = item

        gate = asyncio.Semaphore(max(1, ctx.max_concurrency))
        total = len(ids)
        done = 0

        async def _one(wid: int) -> ComparisonRecord:
            nonlocal done
            raw = raw_by_id.get(wid)
            static = map_static_fields(raw)
            try:
                async with gate:
                    history = await self.api.fetch_revision_history(wid, selection.project)
                record = compare(history, at_a, at_b, static_fields=static, tz=ctx.timezone)
                if raw is None:
                    record.error = "Work item missing from batch response"
            except (WorkItemCompareError, ValueError, TypeError, AttributeError) as exc:
                logger.warning("History fetch failed for work item %s: %s", wid, exc)
                record = _failed_record(wid, static, at_a, at_b, str(exc))
            done += 1
            if progress:
                progress("Reconstructing work item states", done, total)
            return record

        if progress:
            progress("Reconstructing work item states", 0, total)
        records = await asyncio.gather(*(_one(wid) for wid in ids))
        logger.info(
            "Compared %d work item(s); %d changed, %d failed",
            len(records),
            sum(1 for r in records if r.changed),
            sum(1 for r in records if r.error),
        )
        return list(records)

    def run_comparison(
        self,
        selection: Selection,
        instant_a,
        instant_b,
        *,
        context: RequestContext | None = None,
        progress: ProgressCallback | None = None,
    ) -> list[ComparisonRecord]:
        """Blocking wrapper for callers without an event loop (Streamlit pages)."""

        async def _run():
            try:
                return await self.compare_work_items(
                    selection, instant_a, instant_b, context=context, progress=progress
                )
            finally:
                await self.api.close()

        return asyncio.run(_run())

    def run(self, coro_fn: Callable[..., Any], *args):
        """Run one of the async metadata getters from synchronous code."""

        async def _run():
            try:
                return await coro_fn(*args)
            finally:
                await self.api.close()

        return asyncio.run(_run())


def _failed_record(wid: int, static: StaticFields, at_a, at_b, message: str) -> ComparisonRecord:
    return ComparisonRecord(
        identity=WorkItemIdentity(wid),
        static_fields=static,
        snapshot_a=PointInTimeSnapshot(instant=at_a),
        snapshot_b=PointInTimeSnapshot(instant=at_b),
        changed=False,
        error=message,
    )
