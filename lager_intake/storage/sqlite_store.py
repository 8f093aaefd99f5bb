"""
SQLite Record Store

File-backed record collections with secondary indexes and transactions.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Dict, Any, List, Iterable, Tuple

from .schema import COLLECTIONS
from .store_interface import (
    RecordStore,
    CollectionSpec,
    ConflictError,
    ConstraintViolation,
    StorageError,
    _UNSET,
)


class SQLiteRecordStore(RecordStore):
    """
    SQLite-backed record store.

    Features:
    - One table per collection, record body kept as JSON
    - Indexed fields mirrored into ix_* columns with real SQLite indexes
    - Unique composite indexes enforced by SQLite
    - Explicit all-or-nothing transactions (BEGIN IMMEDIATE / ROLLBACK)
    - WAL journal so committed data survives crashes and restarts

    Table Structure:
        {collection}(
            pk TEXT PRIMARY KEY,
            ix_{field} ...,     # one column per indexed field
            body TEXT NOT NULL  # full record as JSON
        )

    A single connection is shared behind a re-entrant lock. A transaction
    holds the lock until it commits or rolls back, so readers on other
    threads never observe half-applied units.
    """

    def __init__(
        self,
        db_path: str = "data/lager.db",
        collections: Iterable[CollectionSpec] = COLLECTIONS,
        timeout: float = 5.0
    ):
        """
        Initialize record store.

        Args:
            db_path: Path to SQLite database (":memory:" for a throwaway store)
            collections: Collection declarations
            timeout: Seconds to wait for a locked database file
        """
        self.db_path = db_path
        self.logger = logging.getLogger(__name__)
        self._collections: Dict[str, CollectionSpec] = {c.name: c for c in collections}
        self._lock = threading.RLock()
        self._depth = 0

        try:
            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(
                str(db_path),
                timeout=timeout,
                isolation_level=None,
                check_same_thread=False
            )
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open record store {db_path}: {e}") from e

        self.conn.row_factory = sqlite3.Row
        self._execute("PRAGMA journal_mode=WAL")
        self._execute("PRAGMA synchronous=NORMAL")
        self._create_tables()

        self.logger.info(f"Record store initialized: {db_path}")

    # ---------------- Schema -----------------
    @staticmethod
    def _column(field_name: str) -> str:
        return f"ix_{field_name}"

    def _create_tables(self):
        """Create collection tables and their indexes."""
        with self.transaction():
            for spec in self._collections.values():
                columns = ", ".join(f'"{self._column(f)}"' for f in spec.indexed_fields)
                if columns:
                    columns += ","
                self._execute(f"""
                    CREATE TABLE IF NOT EXISTS "{spec.name}" (
                        pk TEXT PRIMARY KEY,
                        {columns}
                        body TEXT NOT NULL
                    )
                """)
                for idx in spec.indexes:
                    unique = "UNIQUE " if idx.unique else ""
                    cols = ", ".join(f'"{self._column(f)}"' for f in idx.fields)
                    self._execute(
                        f'CREATE {unique}INDEX IF NOT EXISTS "{spec.name}__{idx.name}" '
                        f'ON "{spec.name}" ({cols})'
                    )

    def _spec(self, collection: str) -> CollectionSpec:
        try:
            return self._collections[collection]
        except KeyError:
            raise KeyError(f"Unknown collection: {collection}") from None

    # ---------------- Low level -----------------
    def _execute(self, sql: str, params: Tuple = ()) -> sqlite3.Cursor:
        """Run one statement, mapping sqlite3 errors onto the store taxonomy."""
        try:
            return self.conn.execute(sql, params)
        except sqlite3.IntegrityError as e:
            self.logger.error(f"Constraint violation: {e}")
            raise ConstraintViolation(str(e)) from e
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e

    @staticmethod
    def _index_value(value: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        return value

    def _row_params(self, spec: CollectionSpec, record: Dict[str, Any]) -> Tuple[str, List[Any], str]:
        if spec.key_field not in record or record[spec.key_field] in (None, ""):
            raise ValueError(f"Record for {spec.name} is missing key field {spec.key_field!r}")
        key = str(record[spec.key_field])
        values = [self._index_value(record.get(f)) for f in spec.indexed_fields]
        try:
            body = json.dumps(record, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Record for {spec.name} is not JSON serialisable: {e}") from e
        return key, values, body

    @staticmethod
    def _decode(rows: List[sqlite3.Row]) -> List[Dict[str, Any]]:
        return [json.loads(row["body"]) for row in rows]

    # ---------------- Transactions -----------------
    @contextmanager
    def transaction(self):
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if outermost:
                    self._rollback()
                raise
            else:
                self._depth -= 1
                if outermost:
                    try:
                        self._execute("COMMIT")
                    except StorageError:
                        self._rollback()
                        raise

    def _rollback(self):
        if not self.conn.in_transaction:
            return
        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            self.logger.error(f"Rollback failed on {self.db_path}: {e}")

    # ---------------- Record operations -----------------
    def add(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        spec = self._spec(collection)
        key, values, body = self._row_params(spec, record)
        placeholders = ", ".join("?" for _ in range(len(values) + 2))
        columns = ", ".join(["pk"] + [f'"{self._column(f)}"' for f in spec.indexed_fields] + ["body"])

        with self.transaction():
            existing = self._execute(
                f'SELECT 1 FROM "{spec.name}" WHERE pk = ?', (key,)
            ).fetchone()
            if existing is not None:
                raise ConflictError(f"{collection}/{key} already exists")
            self._execute(
                f'INSERT INTO "{spec.name}" ({columns}) VALUES ({placeholders})',
                tuple([key] + values + [body])
            )
        return record

    def put(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        spec = self._spec(collection)
        key, values, body = self._row_params(spec, record)
        names = [f'"{self._column(f)}"' for f in spec.indexed_fields] + ["body"]
        placeholders = ", ".join("?" for _ in range(len(values) + 2))
        updates = ", ".join(f"{n} = excluded.{n}" for n in names)

        with self.transaction():
            self._execute(
                f'INSERT INTO "{spec.name}" (pk, {", ".join(names)}) VALUES ({placeholders}) '
                f"ON CONFLICT(pk) DO UPDATE SET {updates}",
                tuple([key] + values + [body])
            )
        return record

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        spec = self._spec(collection)
        with self._lock:
            row = self._execute(
                f'SELECT body FROM "{spec.name}" WHERE pk = ?', (str(key),)
            ).fetchone()
        return json.loads(row["body"]) if row else None

    def delete(self, collection: str, key: str) -> bool:
        spec = self._spec(collection)
        with self.transaction():
            cursor = self._execute(f'DELETE FROM "{spec.name}" WHERE pk = ?', (str(key),))
        return cursor.rowcount > 0

    def _where(self, spec: CollectionSpec, index: str, equals: Any, lower: Any, upper: Any):
        idx = spec.index(index)
        clauses: List[str] = []
        params: List[Any] = []

        if equals is not _UNSET:
            values = equals if idx.is_composite else (equals,)
            if not isinstance(values, tuple) or len(values) != len(idx.fields):
                raise ValueError(f"Index {index!r} expects {len(idx.fields)} value(s)")
            for f, v in zip(idx.fields, values):
                clauses.append(f'"{self._column(f)}" IS ?')
                params.append(self._index_value(v))

        if lower is not None or upper is not None:
            if idx.is_composite:
                raise ValueError(f"Range queries need a single-field index, {index!r} is composite")
            column = self._column(idx.fields[0])
            if lower is not None:
                clauses.append(f'"{column}" >= ?')
                params.append(self._index_value(lower))
            if upper is not None:
                clauses.append(f'"{column}" <= ?')
                params.append(self._index_value(upper))

        return (" WHERE " + " AND ".join(clauses)) if clauses else "", tuple(params)

    def query(
        self,
        collection: str,
        index: str,
        *,
        equals: Any = _UNSET,
        lower: Any = None,
        upper: Any = None
    ) -> List[Dict[str, Any]]:
        spec = self._spec(collection)
        where, params = self._where(spec, index, equals, lower, upper)
        with self._lock:
            rows = self._execute(
                f'SELECT body FROM "{spec.name}"{where} ORDER BY rowid', params
            ).fetchall()
        return self._decode(rows)

    def all(self, collection: str) -> List[Dict[str, Any]]:
        spec = self._spec(collection)
        with self._lock:
            rows = self._execute(f'SELECT body FROM "{spec.name}" ORDER BY rowid').fetchall()
        return self._decode(rows)

    def count(self, collection: str, index: Optional[str] = None, equals: Any = _UNSET) -> int:
        spec = self._spec(collection)
        where, params = ("", ())
        if index is not None:
            where, params = self._where(spec, index, equals, None, None)
        with self._lock:
            row = self._execute(f'SELECT COUNT(*) AS n FROM "{spec.name}"{where}', params).fetchone()
        return row["n"]

    def clear(self, collection: str) -> int:
        spec = self._spec(collection)
        with self.transaction():
            cursor = self._execute(f'DELETE FROM "{spec.name}"')
        return cursor.rowcount

    def get_storage_info(self) -> Dict[str, Any]:
        """Record counts per collection."""
        return {
            'backend': 'sqlite',
            'db_path': str(self.db_path),
            'collections': {name: self.count(name) for name in self._collections},
        }

    def close(self):
        """Close database connection."""
        with self._lock:
            self.conn.close()
