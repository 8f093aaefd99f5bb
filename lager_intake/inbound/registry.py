"""
Inbound Registry

Lifecycle, duplicate detection and page ordering for delivery documents.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Union

from ..authorization.admin_gate import AdminSession, require_admin
from ..scanner.quality_gate import AdmittedImage, ImageQualityGate
from ..scanner.validation import ContentHasher
from ..storage.blob_store import LocalBlobStore
from ..storage.schema import IMAGES, INBOUND, LOG
from ..storage.store_interface import RecordStore, RecordNotFound, StorageError
from .models import (
    ImagePage,
    InboundDocument,
    InboundStatus,
    LogAction,
    LogEntry,
    as_date_str,
    new_id,
    normalize_ls_nr,
    utc_now,
)


class InvalidTransition(Exception):
    """Raised when the document status machine is misused."""
    pass


@dataclass
class DuplicateWarning:
    """
    Advisory result of create(): a document with the same normalized number,
    supplier and date already exists. Pass override=True to create anyway.
    """
    ls_nr: str
    ls_nr_normalized: str
    supplier: str
    date_doc: str
    matches: List[InboundDocument] = field(default_factory=list)


class InboundRegistry:
    """
    Owns delivery documents and their page images.

    Features:
    - Duplicate warning on (normalized number, supplier, date)
    - Dense 1..N page numbering kept through attach/delete/reorder
    - Forward-only status machine
    - Append-only activity log
    - Per-document serialization of read-modify-write sequences

    Every mutating call takes the acting identity explicitly.
    """

    def __init__(
        self,
        store: RecordStore,
        blobs: LocalBlobStore,
        gate: Optional[ImageQualityGate] = None,
        hasher: Optional[ContentHasher] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize registry.

        Args:
            store: Record store
            blobs: Page image storage
            gate: Quality gate used for rotations
            hasher: Content hasher for page fingerprints
            clock: Source of UTC timestamps
        """
        self.store = store
        self.blobs = blobs
        self.gate = gate or ImageQualityGate()
        self.hasher = hasher or ContentHasher()
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        # key -> [lock, number of holders and waiters]
        self._locks: Dict[str, list] = {}
        self._locks_guard = threading.Lock()

    # ---------------- Serialization -----------------
    @contextmanager
    def _serialized(self, key: str):
        """Run a block exclusively for one document id (or number)."""
        with self._locks_guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def _now(self) -> str:
        return self.clock().isoformat()

    def _log(
        self,
        action: LogAction,
        actor: str,
        inbound_id: Optional[str] = None,
        image_id: Optional[str] = None,
        **details
    ) -> LogEntry:
        entry = LogEntry(
            id=new_id(),
            action=action.value,
            user=actor,
            ts=self._now(),
            inbound_id=inbound_id,
            image_id=image_id,
            details=details,
        )
        self.store.add(LOG, entry.to_dict())
        return entry

    def _invalid(self, message: str):
        self.logger.error(f"Invalid transition: {message}")
        raise InvalidTransition(message)

    def _discard_blob(self, uri: str):
        try:
            self.blobs.delete(uri)
        except StorageError as e:
            self.logger.error(f"Orphaned blob left behind: {uri}: {e}")

    # ---------------- Documents -----------------
    def create(
        self,
        ls_nr: str,
        supplier: str,
        date_doc: Union[date, str],
        actor: str,
        *,
        override: bool = False
    ) -> Union[InboundDocument, DuplicateWarning]:
        """
        Register a delivery document.

        Args:
            ls_nr: Delivery-note number as printed
            supplier: Supplier name
            date_doc: Document date
            actor: Acting identity
            override: Create even if a duplicate is detected

        Returns:
            The new InboundDocument, or DuplicateWarning when a document with
            the same normalized number, supplier and date exists
        """
        if not normalize_ls_nr(ls_nr):
            raise ValueError("Delivery-note number is empty")
        if not supplier or not supplier.strip():
            raise ValueError("Supplier is empty")

        doc = InboundDocument.new(ls_nr, supplier, date_doc, actor, self.clock())

        with self._serialized(f"ls:{doc.ls_nr_normalized}"):
            with self.store.transaction():
                matches = [
                    existing for existing in self.find_by_normalized_number(doc.ls_nr_normalized)
                    if existing.supplier == doc.supplier and existing.date_doc == doc.date_doc
                ]
                if matches and not override:
                    self.logger.info(
                        f"Duplicate delivery note {doc.ls_nr_normalized} from {doc.supplier} "
                        f"on {doc.date_doc} ({len(matches)} existing)"
                    )
                    return DuplicateWarning(
                        ls_nr=doc.ls_nr,
                        ls_nr_normalized=doc.ls_nr_normalized,
                        supplier=doc.supplier,
                        date_doc=doc.date_doc,
                        matches=matches,
                    )

                self.store.add(INBOUND, doc.to_dict())
                self._log(
                    LogAction.CREATE_INBOUND, actor, doc.id,
                    ls_nr=doc.ls_nr, forced_duplicate=bool(matches)
                )

        if matches:
            self.logger.warning(f"Duplicate delivery note {doc.ls_nr_normalized} created by override ({actor})")
        self.logger.info(f"Created inbound {doc.id} ls_nr={doc.ls_nr} supplier={doc.supplier}")
        return doc

    def update(
        self,
        inbound_id: str,
        actor: str,
        *,
        ls_nr: Optional[str] = None,
        supplier: Optional[str] = None,
        date_doc: Optional[Union[date, str]] = None
    ) -> InboundDocument:
        """Correct header fields. The normalized number follows ls_nr."""
        with self._serialized(inbound_id):
            with self.store.transaction():
                doc = self.get(inbound_id)
                changes = {}
                if ls_nr is not None:
                    if not normalize_ls_nr(ls_nr):
                        raise ValueError("Delivery-note number is empty")
                    doc.ls_nr = ls_nr.strip()
                    doc.ls_nr_normalized = normalize_ls_nr(ls_nr)
                    changes['ls_nr'] = doc.ls_nr
                if supplier is not None:
                    if not supplier.strip():
                        raise ValueError("Supplier is empty")
                    doc.supplier = supplier.strip()
                    changes['supplier'] = doc.supplier
                if date_doc is not None:
                    doc.date_doc = as_date_str(date_doc)
                    changes['date_doc'] = doc.date_doc
                if not changes:
                    return doc

                doc.updated_at = self._now()
                doc.updated_by = actor
                self.store.put(INBOUND, doc.to_dict())
                self._log(LogAction.UPDATE_INBOUND, actor, inbound_id, **changes)
        return doc

    def confirm_drawing_attached(self, inbound_id: str, actor: str) -> InboundDocument:
        """
        Mark a document's pages as printed/filed.

        Raises:
            InvalidTransition: Document has no pages or is already confirmed
        """
        with self._serialized(inbound_id):
            with self.store.transaction():
                doc = self.get(inbound_id)
                if doc.status != InboundStatus.AWAITING_DRAWING:
                    self._invalid(f"{inbound_id} is already {doc.status.value}")
                if self.store.count(IMAGES, "inbound_id", inbound_id) == 0:
                    self._invalid(f"{inbound_id} has no pages")

                previous = doc.status
                doc.status = InboundStatus.DRAWING_ATTACHED
                doc.updated_at = self._now()
                doc.updated_by = actor
                self.store.put(INBOUND, doc.to_dict())
                self._log(
                    LogAction.STATUS_CHANGE, actor, inbound_id,
                    from_status=previous.value, to_status=doc.status.value
                )

        self.logger.info(f"Inbound {inbound_id} confirmed by {actor}")
        return doc

    # ---------------- Pages -----------------
    def attach_page(self, inbound_id: str, image: AdmittedImage, actor: str) -> ImagePage:
        """
        Append an admitted image as the next page of a document.

        The blob is written first; if the record cannot be stored the blob
        is removed again.
        """
        with self._serialized(inbound_id):
            self.get(inbound_id)
            page_id = new_id()
            content_hash = self.hasher.digest(image.data)
            uri = self.blobs.put(f"{inbound_id}/{page_id}.jpg", image.data)

            try:
                with self.store.transaction():
                    page = ImagePage(
                        id=page_id,
                        inbound_id=inbound_id,
                        page_no=self._max_page_no(inbound_id) + 1,
                        mime_type=image.mime_type,
                        width_px=image.width,
                        height_px=image.height,
                        size_bytes=image.size_bytes,
                        content_hash=content_hash,
                        storage_uri=uri,
                        created_at=self._now(),
                        created_by=actor,
                        synced=False,
                    )
                    self.store.add(IMAGES, page.to_dict())
                    self._log(LogAction.ADD_IMAGE, actor, inbound_id, page_id, page_no=page.page_no)
            except BaseException:
                self._discard_blob(uri)
                raise

        same_content = [p for p in self.find_pages_by_hash(content_hash) if p.id != page_id]
        if same_content:
            self.logger.warning(
                f"Page {page_id} has identical content to "
                f"{', '.join(f'{p.inbound_id}#{p.page_no}' for p in same_content)}"
            )
        return page

    def delete_page(self, inbound_id: str, page_id: str, actor: str) -> List[ImagePage]:
        """
        Remove a page and close the gap in the page numbering.

        Returns:
            Remaining pages ordered by page_no
        """
        with self._serialized(inbound_id):
            with self.store.transaction():
                page = self._get_page(page_id, inbound_id)
                self.store.delete(IMAGES, page_id)
                remaining = self._renumber(inbound_id)
                self._log(LogAction.DELETE_IMAGE, actor, inbound_id, page_id, page_no=page.page_no)
            self._discard_blob(page.storage_uri)
        return remaining

    def reorder_page(self, inbound_id: str, page_no: int, other_page_no: int, actor: str) -> List[ImagePage]:
        """
        Swap the positions of two pages of one document.

        Returns:
            Pages ordered by page_no
        """
        with self._serialized(inbound_id):
            with self.store.transaction():
                pages = {p.page_no: p for p in self.pages(inbound_id)}
                for number in (page_no, other_page_no):
                    if number not in pages:
                        raise RecordNotFound(f"{IMAGES}/{inbound_id}#{number}")
                if page_no == other_page_no:
                    return self.pages(inbound_id)

                first, second = pages[page_no], pages[other_page_no]
                # 0 is never a valid page number; park there during the swap
                first.page_no = 0
                self.store.put(IMAGES, first.to_dict())
                second.page_no = page_no
                self.store.put(IMAGES, second.to_dict())
                first.page_no = other_page_no
                self.store.put(IMAGES, first.to_dict())

                self._log(
                    LogAction.REORDER_IMAGE, actor, inbound_id, first.id,
                    from_page_no=page_no, to_page_no=other_page_no
                )
                return self.pages(inbound_id)

    def rotate_page(self, page_id: str, degrees: float, actor: str) -> ImagePage:
        """Rotate a stored page clockwise; the page becomes pending upload again."""
        inbound_id = self._get_page(page_id).inbound_id
        with self._serialized(inbound_id):
            page = self._get_page(page_id, inbound_id)
            current = AdmittedImage(
                data=self.blobs.get(page.storage_uri),
                width=page.width_px,
                height=page.height_px,
                mime_type=page.mime_type,
            )
            rotated = self.gate.rotate(current, degrees)
            old_uri = page.storage_uri
            new_uri = self.blobs.put(f"{inbound_id}/{page_id}-{new_id()[:8]}.jpg", rotated.data)

            try:
                with self.store.transaction():
                    page.width_px = rotated.width
                    page.height_px = rotated.height
                    page.size_bytes = rotated.size_bytes
                    page.mime_type = rotated.mime_type
                    page.content_hash = self.hasher.digest(rotated.data)
                    page.storage_uri = new_uri
                    page.synced = False
                    self.store.put(IMAGES, page.to_dict())
                    self._log(LogAction.ROTATE_IMAGE, actor, inbound_id, page_id, degrees=degrees)
            except BaseException:
                self._discard_blob(new_uri)
                raise
            self._discard_blob(old_uri)
        return page

    def prune_pages(self, inbound_id: str, session: AdminSession) -> int:
        """
        Delete every page of a document. Requires an admin session.

        Returns:
            Number of pages removed
        """
        require_admin(session)
        with self._serialized(inbound_id):
            with self.store.transaction():
                self.get(inbound_id)
                pages = self.pages(inbound_id)
                for page in pages:
                    self.store.delete(IMAGES, page.id)
                self._log(LogAction.PRUNE_IMAGES, session.actor, inbound_id, count=len(pages))
            for page in pages:
                self._discard_blob(page.storage_uri)

        self.logger.info(f"Pruned {len(pages)} page(s) of inbound {inbound_id} ({session.actor})")
        return len(pages)

    def verify_page(self, page_id: str) -> bool:
        """Check a stored blob against its recorded content hash."""
        page = self._get_page(page_id)
        try:
            data = self.blobs.get(page.storage_uri)
        except FileNotFoundError:
            self.logger.warning(f"Blob missing for page {page_id}: {page.storage_uri}")
            return False
        return self.hasher.digest(data) == page.content_hash

    def _get_page(self, page_id: str, inbound_id: Optional[str] = None) -> ImagePage:
        page = ImagePage.from_dict(self.store.get_required(IMAGES, page_id))
        if inbound_id is not None and page.inbound_id != inbound_id:
            raise RecordNotFound(f"{IMAGES}/{page_id} does not belong to {inbound_id}")
        return page

    def _max_page_no(self, inbound_id: str) -> int:
        return max((p.page_no for p in self.pages(inbound_id)), default=0)

    def _renumber(self, inbound_id: str) -> List[ImagePage]:
        # Ascending order: every target number is free by the time it is used
        pages = self.pages(inbound_id)
        for number, page in enumerate(pages, start=1):
            if page.page_no != number:
                page.page_no = number
                self.store.put(IMAGES, page.to_dict())
        return pages

    # ---------------- Lookups -----------------
    def get(self, inbound_id: str) -> InboundDocument:
        return InboundDocument.from_dict(self.store.get_required(INBOUND, inbound_id))

    def pages(self, inbound_id: str) -> List[ImagePage]:
        pages = [ImagePage.from_dict(r) for r in self.store.query(IMAGES, "inbound_id", equals=inbound_id)]
        return sorted(pages, key=lambda p: p.page_no)

    def find_by_normalized_number(self, ls_nr: str) -> List[InboundDocument]:
        records = self.store.query(INBOUND, "ls_nr_normalized", equals=normalize_ls_nr(ls_nr))
        return [InboundDocument.from_dict(r) for r in records]

    def find_by_status(self, status: Union[InboundStatus, str]) -> List[InboundDocument]:
        status = InboundStatus(status)
        docs = [InboundDocument.from_dict(r) for r in self.store.query(INBOUND, "status", equals=status.value)]
        return sorted(docs, key=lambda d: d.created_at)

    def find_by_date(self, date_doc: Union[date, str]) -> List[InboundDocument]:
        docs = [
            InboundDocument.from_dict(r)
            for r in self.store.query(INBOUND, "date_doc", equals=as_date_str(date_doc))
        ]
        return sorted(docs, key=lambda d: (d.ls_nr_normalized, d.ls_nr))

    def find_by_date_range(self, start: Union[date, str], end: Union[date, str]) -> List[InboundDocument]:
        records = self.store.query(INBOUND, "date_doc", lower=as_date_str(start), upper=as_date_str(end))
        docs = [InboundDocument.from_dict(r) for r in records]
        return sorted(docs, key=lambda d: (d.date_doc, d.ls_nr_normalized))

    def find_by_supplier(self, supplier: str) -> List[InboundDocument]:
        docs = [InboundDocument.from_dict(r) for r in self.store.query(INBOUND, "supplier", equals=supplier.strip())]
        return sorted(docs, key=lambda d: d.created_at)

    def find_pages_by_hash(self, content_hash: str) -> List[ImagePage]:
        return [ImagePage.from_dict(r) for r in self.store.query(IMAGES, "content_hash", equals=content_hash)]

    def history(self, inbound_id: str) -> List[LogEntry]:
        entries = [LogEntry.from_dict(r) for r in self.store.query(LOG, "inbound_id", equals=inbound_id)]
        return sorted(entries, key=lambda e: e.ts)
