"""
Record Store Interface

Abstract interface for indexed, transactional record collections.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple, Iterator


class StoreError(Exception):
    """Base class for record store failures."""
    pass


class ConflictError(StoreError):
    """Raised when add() targets a key that already exists."""
    pass


class ConstraintViolation(StoreError):
    """Raised when a unique secondary index would be broken."""
    pass


class StorageError(StoreError):
    """Raised when the underlying persistence is unavailable or full."""
    pass


class RecordNotFound(StoreError, KeyError):
    """Raised when a referenced record does not exist."""
    pass


@dataclass(frozen=True)
class IndexSpec:
    """Secondary index over one or more record fields."""
    name: str
    fields: Tuple[str, ...]
    unique: bool = False

    @property
    def is_composite(self) -> bool:
        return len(self.fields) > 1


@dataclass(frozen=True)
class CollectionSpec:
    """Named record collection with its key field and indexes."""
    name: str
    key_field: str = "id"
    indexes: Tuple[IndexSpec, ...] = field(default_factory=tuple)

    def index(self, name: str) -> IndexSpec:
        for idx in self.indexes:
            if idx.name == name:
                return idx
        raise KeyError(f"Unknown index {name!r} on collection {self.name!r}")

    @property
    def indexed_fields(self) -> List[str]:
        seen: List[str] = []
        for idx in self.indexes:
            for f in idx.fields:
                if f not in seen:
                    seen.append(f)
        return seen


_UNSET = object()


class RecordStore(ABC):
    """
    Abstract interface for record store backends.

    Records are plain JSON-serialisable dicts. Each collection is keyed by
    its CollectionSpec.key_field. Single operations are atomic on their own;
    multi-step operations are grouped with transaction().
    """

    @abstractmethod
    def add(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new record.

        Raises:
            ConflictError: Key already exists
            ConstraintViolation: Unique index broken
        """
        pass

    @abstractmethod
    def put(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or replace a record."""
        pass

    @abstractmethod
    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        """Fetch a record by key, None if missing."""
        pass

    @abstractmethod
    def delete(self, collection: str, key: str) -> bool:
        """
        Delete a record.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    def query(
        self,
        collection: str,
        index: str,
        *,
        equals: Any = _UNSET,
        lower: Any = None,
        upper: Any = None
    ) -> List[Dict[str, Any]]:
        """
        Look up records through a secondary index.

        Args:
            collection: Collection name
            index: Index name
            equals: Exact match (tuple for composite indexes)
            lower: Inclusive lower bound (single-field indexes)
            upper: Inclusive upper bound (single-field indexes)

        Returns:
            Matching records in insertion order
        """
        pass

    @abstractmethod
    def all(self, collection: str) -> List[Dict[str, Any]]:
        """All records of a collection in insertion order."""
        pass

    @abstractmethod
    def count(self, collection: str, index: Optional[str] = None, equals: Any = _UNSET) -> int:
        """Count records, optionally restricted to an index equality match."""
        pass

    @abstractmethod
    def clear(self, collection: str) -> int:
        """Delete every record of a collection, returns the number removed."""
        pass

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        """
        Group reads and writes into one all-or-nothing unit.

        Nested transactions join the outermost one. Any exception rolls
        back the whole unit.
        """
        yield self

    def get_required(self, collection: str, key: str) -> Dict[str, Any]:
        """Fetch a record by key or raise RecordNotFound."""
        record = self.get(collection, key)
        if record is None:
            raise RecordNotFound(f"{collection}/{key}")
        return record

    def close(self):
        """Release backend resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
