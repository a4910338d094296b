"""Batch query planning: WIQL construction, id partitioning, ordered batch fetch."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from .config import BATCH_MAX_CONCURRENCY, FIELD_IDS, MAX_BATCH_SIZE, WORK_ITEM_FETCH_FIELDS
from .mappers import work_item_id
from .models import Batch, BatchCompleted, Selection

logger = logging.getLogger(__name__)

BatchCallback = Callable[[BatchCompleted], None]


def _wiql_literal(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def build_wiql(selection: Selection) -> str:
    """Build the WIQL query selecting work items of one iteration.

    ``@project`` is bound by the endpoint URL. The optional type allow-list
    becomes an ``IN`` clause; results are ordered by id.
    """
    fields = ", ".join(f"[{name}]" for name in WORK_ITEM_FETCH_FIELDS)
    query = (
        f"SELECT {fields} FROM WorkItems "
        f"WHERE [System.TeamProject] = @project "
        f"AND [System.IterationPath] = {_wiql_literal(selection.iteration_path)}"
    )
    types = [t for t in selection.types if t]
    if types:
        query += f" AND [System.WorkItemType] IN ({', '.join(_wiql_literal(t) for t in types)})"
    return query + " ORDER BY [System.Id]"


def partition(ids: Sequence[int], size: int = MAX_BATCH_SIZE) -> list[Batch]:
    """Split ids into contiguous batches of at most ``size``, preserving order."""
    if size < 1 or size > MAX_BATCH_SIZE:
        raise ValueError(f"Batch size must be between 1 and {MAX_BATCH_SIZE}, got {size}")
    return [
        Batch(index=n, ids=tuple(ids[start : start + size]))
        for n, start in enumerate(range(0, len(ids), size))
    ]


async def plan(api, selection: Selection) -> list[Batch]:
    """Run the selection query and partition the matching ids.

    Zero matches is a valid outcome and yields no batches.
    """
    ids = await api.list_matching_identifiers(
        selection.project,
        selection.team,
        selection.iteration_path,
        list(selection.types) or None,
    )
    batches = partition(ids)
    logger.info(
        "Selection %s/%s '%s' matched %d work item(s) in %d batch(es)",
        selection.project,
        selection.team,
        selection.iteration_path,
        len(ids),
        len(batches),
    )
    return batches


def _notify(on_batch: BatchCallback | None, event: BatchCompleted) -> None:
    if on_batch is None:
        return
    try:
        on_batch(event)
    except Exception as exc:  # listener failures never fail the query
        logger.warning("Batch %d listener failed: %s", event.batch.index, exc)


async def fetch_batches(
    api,
    batches: Sequence[Batch],
    fields: Sequence[str] = WORK_ITEM_FETCH_FIELDS,
    *,
    project: str | None = None,
    on_batch: BatchCallback | None = None,
    max_concurrency: int = BATCH_MAX_CONCURRENCY,
) -> list[dict[str, Any]]:
    """Fetch field projections for every batch, merged in original id order.

    Batches run concurrently (bounded by ``max_concurrency``); the result is
    re-assembled from the batch ids, not from arrival order. Ids missing from
    an upstream response are simply absent from the returned list.
    """
    if not batches:
        return []
    gate = asyncio.Semaphore(max(1, max_concurrency))

    async def _one(batch: Batch) -> list[dict[str, Any]]:
        async with gate:
            items = await api.fetch_fields(list(batch.ids), list(fields), project=project)
        logger.debug("Batch %d returned %d of %d item(s)", batch.index, len(items), len(batch))
        for item in items:
            if not (item.get("fields") or {}).get(FIELD_IDS["created_date"]):
                logger.warning("%s missing for work item %s", FIELD_IDS["created_date"], work_item_id(item))
        _notify(on_batch, BatchCompleted(batch=batch, items=tuple(items)))
        return items

    results = await asyncio.gather(*(_one(b) for b in batches))

    by_id: dict[int, dict[str, Any]] = {}
    for items in results:
        for item in items:
            wid = work_item_id(item)
            if wid is not None:
                by_id[wid] = item
    ordered: list[dict[str, Any]] = []
    for batch in batches:
        for wid in batch.ids:
            if wid in by_id:
                ordered.append(by_id[wid])
    return ordered
