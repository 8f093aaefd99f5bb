"""
Intake Service

Awaitable facade over the intake core. Store access, image decoding and
hashing run in the default executor so an event loop driving the UI stays
responsive. The acting identity is fixed when the service is built and
passed to every mutating call.
"""

import asyncio
import functools
import logging
from datetime import date, timedelta
from typing import Optional, Union, List

from .authorization.admin_gate import AdminGate, AdminSession
from .config import IntakeConfig, load_config
from .inbound.models import ImagePage, InboundDocument, InboundStatus
from .inbound.registry import DuplicateWarning, InboundRegistry
from .scanner.quality_gate import ImageQualityGate, Rejected
from .scanner.validation import ContentHasher
from .storage.blob_store import LocalBlobStore
from .storage.settings import SettingsStore
from .storage.sqlite_store import SQLiteRecordStore
from .sync.tracker import SimulatedUploader, SyncReport, SyncTracker, Uploader
from .inventory.board import InventoryBoard
from .inventory.cart import PickCart

logger = logging.getLogger(__name__)


class IntakeService:
    """
    Wires store, blob storage, quality gate, registry, sync tracker, board,
    cart and admin gate for one identity.
    """

    def __init__(
        self,
        config: IntakeConfig,
        identity: Optional[str] = None,
        uploader: Optional[Uploader] = None
    ):
        self.config = config
        self.identity = identity or config.identity
        self.hasher = ContentHasher()
        self.store = SQLiteRecordStore(config.db_path)
        self.blobs = LocalBlobStore(config.blob_dir)
        self.gate = ImageQualityGate(config.gate)
        self.settings = SettingsStore(self.store)
        self.admin = AdminGate(
            self.settings,
            self.hasher,
            session_ttl=timedelta(minutes=config.admin_session_minutes) if config.admin_session_minutes else None,
        )
        self.registry = InboundRegistry(self.store, self.blobs, gate=self.gate, hasher=self.hasher)
        self.tracker = SyncTracker(self.store, uploader or SimulatedUploader(config.sync_delay_seconds))
        self.board = InventoryBoard(self.store)
        self.cart = PickCart(self.store)

        logger.info(f"Intake service ready for {self.identity} ({config.db_path})")

    @classmethod
    def from_config_file(cls, path: Optional[str] = None, identity: Optional[str] = None) -> 'IntakeService':
        return cls(load_config(path), identity=identity)

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))

    # ---------------- Documents -----------------
    async def create_document(
        self,
        ls_nr: str,
        supplier: str,
        date_doc: Union[date, str],
        override: bool = False
    ) -> Union[InboundDocument, DuplicateWarning]:
        return await self._run(
            self.registry.create, ls_nr, supplier, date_doc, self.identity, override=override
        )

    async def capture_page(self, inbound_id: str, raw: bytes) -> Union[ImagePage, Rejected]:
        """
        Admit a captured image and attach it as the next page.

        Nothing is stored unless admission succeeds; cancelling before then
        leaves no trace.
        """
        result = await self._run(self.gate.admit, raw)
        if isinstance(result, Rejected):
            return result
        return await self._run(self.registry.attach_page, inbound_id, result, self.identity)

    async def confirm_drawing_attached(self, inbound_id: str) -> InboundDocument:
        return await self._run(self.registry.confirm_drawing_attached, inbound_id, self.identity)

    async def delete_page(self, inbound_id: str, page_id: str) -> List[ImagePage]:
        return await self._run(self.registry.delete_page, inbound_id, page_id, self.identity)

    async def reorder_page(self, inbound_id: str, page_no: int, other_page_no: int) -> List[ImagePage]:
        return await self._run(self.registry.reorder_page, inbound_id, page_no, other_page_no, self.identity)

    async def rotate_page(self, page_id: str, degrees: float) -> ImagePage:
        return await self._run(self.registry.rotate_page, page_id, degrees, self.identity)

    async def prune_pages(self, inbound_id: str, session: AdminSession) -> int:
        return await self._run(self.registry.prune_pages, inbound_id, session)

    async def documents_by_status(self, status: Union[InboundStatus, str]) -> List[InboundDocument]:
        return await self._run(self.registry.find_by_status, status)

    # ---------------- Admin -----------------
    async def admin_login(self, secret: str) -> AdminSession:
        return await self._run(self.admin.login, secret, self.identity)

    # ---------------- Sync -----------------
    async def pending_uploads(self) -> int:
        return await self._run(self.tracker.pending_count)

    async def reconcile(self, online: bool = True) -> SyncReport:
        if not self.settings.flag("sync_enabled", True):
            online = False
        return await self.tracker.reconcile(online=online)

    def close(self):
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
