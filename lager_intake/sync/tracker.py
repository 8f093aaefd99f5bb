"""
Pending-upload accounting for page images.

A page is pending while ``synced`` is False. ``reconcile`` hands pending
pages to an Uploader and marks synced only the ids the uploader confirms.
The bundled SimulatedUploader stands in for a real transfer: it waits a
fixed delay and confirms everything it was given.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Protocol

from ..inbound.models import ImagePage
from ..storage.schema import IMAGES
from ..storage.store_interface import RecordStore

logger = logging.getLogger(__name__)


class Uploader(Protocol):
    async def upload(self, pages: List[ImagePage]) -> List[str]:
        """Transfer pages, return ids whose remote write is confirmed."""
        ...


class SimulatedUploader:
    """Confirms every page after a fixed delay. No network."""

    def __init__(self, delay_seconds: float = 1.5):
        self.delay_seconds = delay_seconds

    async def upload(self, pages: List[ImagePage]) -> List[str]:
        if pages:
            await asyncio.sleep(self.delay_seconds)
        return [p.id for p in pages]


@dataclass
class SyncReport:
    online: bool
    pending_before: int
    acknowledged: int
    pending_after: int
    started_at: str
    finished_at: str
    failed_ids: List[str] = field(default_factory=list)


class SyncTracker:
    """
    Counts and acknowledges pending page uploads.

    Never creates or deletes records; only flips ImagePage.synced.
    """

    def __init__(self, store: RecordStore, uploader: Optional[Uploader] = None):
        self.store = store
        self.uploader = uploader or SimulatedUploader()

    def pending_count(self) -> int:
        return self.store.count(IMAGES, "synced", equals=False)

    def pending_pages(self) -> List[ImagePage]:
        return [ImagePage.from_dict(r) for r in self.store.query(IMAGES, "synced", equals=False)]

    def acknowledge(self, page_ids: Iterable[str]) -> int:
        """
        Mark confirmed pages as synced in one unit.

        Ids of pages deleted in the meantime are skipped.

        Returns:
            Number of pages marked
        """
        marked = 0
        with self.store.transaction():
            for page_id in page_ids:
                record = self.store.get(IMAGES, page_id)
                if record is None or record.get("synced"):
                    continue
                record["synced"] = True
                self.store.put(IMAGES, record)
                marked += 1
        return marked

    async def reconcile(self, online: bool = True) -> SyncReport:
        """
        Upload pending pages and acknowledge confirmed ones.

        Args:
            online: Connectivity state; offline runs only report the count
        """
        loop = asyncio.get_running_loop()
        started_at = datetime.now(timezone.utc).isoformat()

        pending = await loop.run_in_executor(None, self.pending_pages)
        acknowledged = 0
        failed: List[str] = []

        if online and pending:
            confirmed = await self.uploader.upload(pending)
            confirmed_set = set(confirmed)
            failed = [p.id for p in pending if p.id not in confirmed_set]
            acknowledged = await loop.run_in_executor(None, self.acknowledge, confirmed)
            if failed:
                logger.warning("Upload not confirmed for %d page(s)", len(failed))

        pending_after = await loop.run_in_executor(None, self.pending_count)
        logger.info(
            "Sync online=%s pending_before=%d acknowledged=%d pending_after=%d",
            online, len(pending), acknowledged, pending_after
        )
        return SyncReport(
            online=online,
            pending_before=len(pending),
            acknowledged=acknowledged,
            pending_after=pending_after,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc).isoformat(),
            failed_ids=failed,
        )

    async def acknowledge_all(self) -> SyncReport:
        return await self.reconcile(online=True)
