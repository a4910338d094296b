import asyncio
import logging
import math

import pytest

from workitem_app.core.models import BatchCompleted, Selection
from workitem_app.core.planner import build_wiql, fetch_batches, partition, plan


class FakeQueryAPI:
    def __init__(self, ids, delays=None):
        self.ids = list(ids)
        self.delays = delays or {}
        self.calls: list[list[int]] = []

    async def list_matching_identifiers(self, project, team, iteration_path, types=None):
        return list(self.ids)

    async def fetch_fields(self, ids, fields, project=None):
        self.calls.append(list(ids))
        await asyncio.sleep(self.delays.get(ids[0], 0))
        return [{"id": i, "fields": {"System.Id": i, "System.CreatedDate": "2024-01-01T00:00:00Z"}} for i in ids]


def test_partition_450_ids_gives_three_batches():
    ids = list(range(1, 451))
    batches = partition(ids)
    assert [len(b) for b in batches] == [200, 200, 50]
    assert [b.index for b in batches] == [0, 1, 2]


@pytest.mark.parametrize("n", [0, 1, 199, 200, 201, 400, 1234])
def test_partition_counts_and_order(n):
    ids = [i * 7 for i in range(n)]
    batches = partition(ids)
    assert len(batches) == math.ceil(n / 200)
    assert all(len(b) <= 200 for b in batches)
    assert [i for b in batches for i in b.ids] == ids


def test_partition_rejects_oversized_batches():
    with pytest.raises(ValueError):
        partition([1, 2, 3], size=201)


def test_build_wiql_with_types_and_escaping():
    selection = Selection(
        project="Proj",
        team="Team A",
        iteration_path="Proj\\Sprint 'Q1'",
        types=("Bug", "User Story"),
    )
    query = build_wiql(selection)
    assert "[System.TeamProject] = @project" in query
    assert "[System.IterationPath] = 'Proj\\Sprint ''Q1'''" in query
    assert "[System.WorkItemType] IN ('Bug', 'User Story')" in query
    assert query.endswith("ORDER BY [System.Id]")


def test_build_wiql_without_types():
    query = build_wiql(Selection(project="P", team="T", iteration_path="P\\S1"))
    assert "WorkItemType] IN" not in query


def test_plan_with_no_matches_is_empty():
    api = FakeQueryAPI([])
    assert asyncio.run(plan(api, Selection("P", "T", "P\\S1"))) == []


def test_fetch_batches_preserves_id_order_despite_arrival_order():
    ids = [900 - i for i in range(450)]
    # First batch finishes last
    api = FakeQueryAPI(ids, delays={ids[0]: 0.05, ids[200]: 0.01})
    events: list[BatchCompleted] = []

    async def _run():
        batches = await plan(api, Selection("P", "T", "P\\S1"))
        return await fetch_batches(api, batches, ["System.Id"], on_batch=events.append)

    items = asyncio.run(_run())
    assert [it["id"] for it in items] == ids
    assert sorted(e.batch.index for e in events) == [0, 1, 2]
    assert events[-1].batch.index == 0


def test_failing_listener_does_not_fail_the_fetch():
    api = FakeQueryAPI([1, 2, 3])

    def boom(event):
        raise OSError("disk full")

    items = asyncio.run(fetch_batches(api, partition([1, 2, 3]), ["System.Id"], on_batch=boom))
    assert [it["id"] for it in items] == [1, 2, 3]


def test_missing_created_date_is_logged(caplog):
    class NoCreatedDateAPI(FakeQueryAPI):
        async def fetch_fields(self, ids, fields, project=None):
            return [{"id": i, "fields": {"System.Id": i}} for i in ids]

    api = NoCreatedDateAPI([7])
    with caplog.at_level(logging.WARNING, logger="workitem_app.core.planner"):
        items = asyncio.run(fetch_batches(api, partition([7]), ["System.Id"]))
    assert [it["id"] for it in items] == [7]
    assert any("System.CreatedDate missing for work item 7" in r.getMessage() for r in caplog.records)
