"""
Analysis status poller.

Fetches one analysis, then keeps re-fetching it on a fixed interval while
its status is `processing`. The poll runs as an asyncio task owned by the
consuming view: cancel it (or leave the `async with` block) and polling
stops. There is no retry cap; a record that never leaves `processing` is
polled until its view goes away.
"""

import asyncio
import logging
import os
from typing import AsyncIterator, Awaitable, Callable, Optional

from insightgen.insight_models import AnalysisStatus

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = float(os.getenv("STATUS_POLL_INTERVAL_SECONDS", "2"))

FetchFn = Callable[[str], Awaitable[Optional[dict]]]


class NoAnalysisSelected(Exception):
    def __init__(self):
        super().__init__("No analysis selected")


class AnalysisStatusPoller:
    def __init__(
        self,
        fetch: FetchFn,
        analysis_id: Optional[str],
        interval: float = POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not analysis_id:
            raise NoAnalysisSelected()
        self.fetch = fetch
        self.analysis_id = str(analysis_id)
        self.interval = interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.fetch_count = 0

    async def updates(self) -> AsyncIterator[Optional[dict]]:
        """Yield every fetched record; the last one is not `processing` (or None)."""
        while True:
            record = await self.fetch(self.analysis_id)
            self.fetch_count += 1
            yield record
            if record is None or record.get("status") != AnalysisStatus.PROCESSING.value:
                return
            await self._sleep(self.interval)

    async def wait(self) -> Optional[dict]:
        last = None
        async for record in self.updates():
            last = record
        logger.info(f"Stopped polling analysis {self.analysis_id} after {self.fetch_count} fetches")
        return last

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self.wait())
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def __aenter__(self) -> "AnalysisStatusPoller":
        self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        self.cancel()


def database_fetcher(session_factory) -> FetchFn:
    """Fetch function that opens a short-lived session per poll."""
    from insightgen.entity_store import EntityStore
    from insightgen.helpers import analysis_to_dict
    from insightgen.models import Analysis

    def _load(analysis_id: str) -> Optional[dict]:
        db = session_factory()
        try:
            record = EntityStore(db, Analysis).get(analysis_id)
            return analysis_to_dict(record) if record else None
        finally:
            db.close()

    async def fetch(analysis_id: str) -> Optional[dict]:
        return await asyncio.to_thread(_load, analysis_id)

    return fetch
