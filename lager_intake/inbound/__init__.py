"""
Inbound Layer

Delivery documents, page images and their activity log.
"""

from .models import (
    InboundDocument,
    InboundStatus,
    ImagePage,
    LogEntry,
    LogAction,
    normalize_ls_nr,
)
from .registry import InboundRegistry, DuplicateWarning, InvalidTransition

__all__ = [
    'InboundDocument',
    'InboundStatus',
    'ImagePage',
    'LogEntry',
    'LogAction',
    'normalize_ls_nr',
    'InboundRegistry',
    'DuplicateWarning',
    'InvalidTransition',
]
