"""
Inbound document records.

Delivery documents, their ordered page images and the append-only
activity log.
"""

import re
import uuid
from dataclasses import dataclass, asdict, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, Union

_LS_NR_NOISE = re.compile(r"[\s\-_.]+")


def normalize_ls_nr(ls_nr: str) -> str:
    """Fold a delivery-note number to its comparable form ("a-100 " -> "A100")."""
    return _LS_NR_NOISE.sub("", (ls_nr or "").upper())


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_date_str(value: Union[date, str]) -> str:
    """Validate a calendar date and return it as YYYY-MM-DD."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return date.fromisoformat(str(value).strip()).isoformat()


class InboundStatus(Enum):
    """Lifecycle of a delivery document. Forward only."""
    AWAITING_DRAWING = "awaiting_drawing"
    DRAWING_ATTACHED = "drawing_attached"


class LogAction(Enum):
    CREATE_INBOUND = "create_inbound"
    UPDATE_INBOUND = "update_inbound"
    STATUS_CHANGE = "status_change"
    ADD_IMAGE = "add_image"
    DELETE_IMAGE = "delete_image"
    REORDER_IMAGE = "reorder_image"
    ROTATE_IMAGE = "rotate_image"
    PRUNE_IMAGES = "prune_images"


@dataclass
class InboundDocument:
    """
    Incoming delivery document.

    Attributes:
        id: UUID
        ls_nr: Delivery-note number as entered
        ls_nr_normalized: normalize_ls_nr(ls_nr), never set by hand
        supplier: Supplier name
        date_doc: Document date (YYYY-MM-DD)
        status: Lifecycle status
        created_at: ISO timestamp
        created_by: Identity that created the record
        updated_at: ISO timestamp of the last change
        updated_by: Identity of the last change
    """
    id: str
    ls_nr: str
    ls_nr_normalized: str
    supplier: str
    date_doc: str
    status: InboundStatus
    created_at: str
    created_by: str
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None

    @classmethod
    def new(cls, ls_nr: str, supplier: str, date_doc: Union[date, str], actor: str, now: datetime) -> 'InboundDocument':
        return cls(
            id=new_id(),
            ls_nr=ls_nr.strip(),
            ls_nr_normalized=normalize_ls_nr(ls_nr),
            supplier=supplier.strip(),
            date_doc=as_date_str(date_doc),
            status=InboundStatus.AWAITING_DRAWING,
            created_at=now.isoformat(),
            created_by=actor,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InboundDocument':
        data = dict(data)
        data['status'] = InboundStatus(data['status'])
        return cls(**data)


@dataclass
class ImagePage:
    """
    One page image of a delivery document.

    page_no is 1-based and dense per inbound_id.
    """
    id: str
    inbound_id: str
    page_no: int
    mime_type: str
    width_px: int
    height_px: int
    size_bytes: int
    content_hash: str
    storage_uri: str
    created_at: str
    created_by: str
    synced: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ImagePage':
        return cls(**data)


@dataclass
class LogEntry:
    """Append-only audit record."""
    id: str
    action: str
    user: str
    ts: str
    inbound_id: Optional[str] = None
    image_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogEntry':
        return cls(**data)
