"""Optional mirroring of fetched batches to local JSON Lines files."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path

from .models import BatchCompleted

logger = logging.getLogger(__name__)


class BatchMirror:
    """Append each completed batch as one JSON line to a per-run file.

    Use an instance as the ``on_batch`` callback of ``fetch_batches``. Writes
    happen off the event loop and failures are only logged.
    """

    def __init__(self, directory: str | Path, *, run_label: str | None = None):
        self.directory = Path(directory)
        stamp = run_label or datetime.now(UTC).strftime("%Y-%m-%dT%H-%M-%S-%f")
        self.path = self.directory / f"workitems_{stamp}.jsonl"
        self._lock = threading.Lock()
        self._pending: set[asyncio.Future] = set()

    def __call__(self, event: BatchCompleted) -> None:
        self.submit(event)

    def submit(self, event: BatchCompleted) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._safe_write(event)
            return
        fut = loop.run_in_executor(None, self._safe_write, event)
        self._pending.add(fut)
        fut.add_done_callback(self._pending.discard)

    def write(self, event: BatchCompleted) -> None:
        payload = {
            "batch": event.batch.index,
            "ids": list(event.batch.ids),
            "value": list(event.items),
        }
        line = json.dumps(payload, default=str)
        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")

    def _safe_write(self, event: BatchCompleted) -> None:
        try:
            self.write(event)
        except OSError as exc:
            logger.warning("Failed to mirror batch %d to %s: %s", event.batch.index, self.path, exc)

    async def drain(self) -> None:
        """Wait for writes still in flight (used by tests and shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
