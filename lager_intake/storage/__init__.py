"""
Storage Layer

Indexed, transactional record collections plus file storage for page
images.
"""

from .store_interface import (
    RecordStore,
    CollectionSpec,
    IndexSpec,
    StoreError,
    ConflictError,
    ConstraintViolation,
    StorageError,
    RecordNotFound,
)
from .sqlite_store import SQLiteRecordStore
from .blob_store import LocalBlobStore
from .settings import SettingsStore
from . import schema

__all__ = [
    'RecordStore',
    'CollectionSpec',
    'IndexSpec',
    'StoreError',
    'ConflictError',
    'ConstraintViolation',
    'StorageError',
    'RecordNotFound',
    'SQLiteRecordStore',
    'LocalBlobStore',
    'SettingsStore',
    'schema',
]
