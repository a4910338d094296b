"""Domain data models for work items, revisions, and point-in-time snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class WorkItemIdentity:
    id: int


@dataclass(frozen=True, slots=True)
class Revision:
    effective_from: datetime | None
    state: str | None
    changed_by: str | None
    changed_date: datetime | None
    rev: int | None = None


@dataclass(frozen=True, slots=True)
class RevisionHistory:
    """Revisions of one work item in upstream (chronological) order."""

    identity: WorkItemIdentity
    revisions: tuple[Revision, ...] = ()

    def __len__(self) -> int:
        return len(self.revisions)


@dataclass(frozen=True, slots=True)
class PointInTimeSnapshot:
    instant: datetime
    state: str | None = None
    changed_by: str | None = None
    changed_date: datetime | None = None
    resolved: bool = False
    # Index into RevisionHistory.revisions of the revision that was chosen
    revision_index: int | None = None
    # True when the instant precedes every revision and the earliest one was used
    before_history: bool = False
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Selection:
    project: str
    team: str
    iteration_path: str
    types: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Batch:
    index: int
    ids: tuple[int, ...]

    def __len__(self) -> int:
        return len(self.ids)


@dataclass(frozen=True, slots=True)
class BatchCompleted:
    """Emitted after a batch of field projections has been fetched."""

    batch: Batch
    items: tuple[dict[str, Any], ...]


@dataclass(slots=True)
class StaticFields:
    type: str | None = None
    title: str | None = None
    created_date: datetime | None = None
    area_path: str | None = None
    target_release: str | None = None
    board_column: str | None = None


@dataclass(slots=True)
class ComparisonRecord:
    identity: WorkItemIdentity
    static_fields: StaticFields
    snapshot_a: PointInTimeSnapshot
    snapshot_b: PointInTimeSnapshot
    changed: bool
    error: str | None = None
