"""
lager-intake

Offline inventory intake tracker: delivery notes with photographed pages,
an image quality gate, pending-upload accounting, an inventory board and a
pick cart, all on a local indexed record store.
"""

from .inbound import InboundRegistry, DuplicateWarning, InvalidTransition, normalize_ls_nr
from .scanner import ImageQualityGate, GateSettings, AdmittedImage, Rejected, RejectReason, ContentHasher
from .storage import (
    SQLiteRecordStore,
    LocalBlobStore,
    ConflictError,
    ConstraintViolation,
    StorageError,
    RecordNotFound,
)
from .sync import SyncTracker
from .service import IntakeService

__version__ = "0.1.0"

__all__ = [
    'InboundRegistry',
    'DuplicateWarning',
    'InvalidTransition',
    'normalize_ls_nr',
    'ImageQualityGate',
    'GateSettings',
    'AdmittedImage',
    'Rejected',
    'RejectReason',
    'ContentHasher',
    'SQLiteRecordStore',
    'LocalBlobStore',
    'ConflictError',
    'ConstraintViolation',
    'StorageError',
    'RecordNotFound',
    'SyncTracker',
    'IntakeService',
]
