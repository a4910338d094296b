"""Point-in-time state resolution over a work item's revision history.

``resolve`` answers "what did this work item look like at instant T?" using
one forward pass over the chronologically ordered revisions:

* the latest revision with ``changed_date <= T`` wins;
* if T precedes every revision, the earliest revision is used instead
  (``before_history=True``) - the item is reported with its first known
  state rather than as missing, which may not match its real pre-creation
  state;
* an empty history yields an unresolved snapshot.

The cutover compares full date-time values. Day-level comparison only
happens later, when two snapshots are diffed.
"""

from __future__ import annotations

import logging
import warnings
from datetime import datetime

from .errors import MalformedRevision
from .mappers import to_instant
from .models import PointInTimeSnapshot, Revision, RevisionHistory

logger = logging.getLogger(__name__)


def _snapshot_from(
    revision: Revision,
    index: int,
    instant: datetime,
    *,
    before_history: bool,
    notes: list[str],
) -> PointInTimeSnapshot:
    return PointInTimeSnapshot(
        instant=instant,
        state=revision.state,
        changed_by=revision.changed_by,
        changed_date=revision.changed_date,
        resolved=True,
        revision_index=index,
        before_history=before_history,
        warnings=tuple(notes),
    )


def resolve(history: RevisionHistory, instant) -> PointInTimeSnapshot:
    """Return the state effective at ``instant``.

    Parameters
    ----------
    history : RevisionHistory
        Revisions in chronological order (upstream order is trusted).
    instant : datetime | date | str
        As-of instant; naive values are treated as UTC.

    Returns
    -------
    PointInTimeSnapshot
        ``resolved`` is False only when no usable revision exists.
    """
    at = to_instant(instant)
    notes: list[str] = []
    chosen: tuple[int, Revision] | None = None
    earliest: tuple[int, Revision] | None = None

    for idx, revision in enumerate(history.revisions):
        if revision.changed_date is None:
            msg = f"Work item {history.identity.id}: revision {revision.rev or idx} has no changed date; skipped"
            logger.warning(msg)
            warnings.warn("Revision without a changed date skipped", MalformedRevision, stacklevel=2)
            notes.append(msg)
            continue
        if earliest is None:
            earliest = (idx, revision)
        if revision.changed_date > at:
            break
        chosen = (idx, revision)

    if chosen is not None:
        return _snapshot_from(chosen[1], chosen[0], at, before_history=False, notes=notes)
    if earliest is not None:
        return _snapshot_from(earliest[1], earliest[0], at, before_history=True, notes=notes)
    return PointInTimeSnapshot(instant=at, resolved=False, warnings=tuple(notes))
