"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing),
SQLite (persistence) and PostgreSQL (production). Records are JSON documents
keyed by a string id; all monetary values are stored as Decimal strings.

Every backend supports atomic units via ``atomic()``. Transaction state is kept
per thread, so concurrent requests sharing one storage handle each get their
own unit. ``lock()`` takes row locks for the rest of the unit, always in
sorted id order.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Any, Tuple, Type, Union
from datetime import datetime, timezone
from pathlib import Path
from contextlib import contextmanager
from functools import wraps
import sqlite3
import json
import re
import threading

from .errors import StoreUnavailable
from .logging_config import get_logger


logger = get_logger("bank_ledger.storage")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DuplicateRecordError(KeyError):
    """Raised by insert() when the record id is already taken"""

    def __init__(self, table: str, record_id: str):
        super().__init__(f"{table}:{record_id}")
        self.table = table
        self.record_id = record_id


def _copy(data: Dict[str, Any]) -> Dict[str, Any]:
    """Deep copy through JSON to prevent external mutation"""
    return json.loads(json.dumps(data, default=str))


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid table or field name: {name!r}")
    return name


def _store_call(func):
    """Translate driver errors listed in ``self._driver_errors`` to StoreUnavailable"""
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except self._driver_errors as e:
            logger.error(f"Storage {func.__name__} failed: {e}")
            raise StoreUnavailable(f"Storage {func.__name__} failed: {e}") from e
    return wrapper


class _AtomicUnit:
    """State of the atomic unit open on one thread"""

    def __init__(self):
        self.depth = 0
        self.rollback_only = False
        self.writes: Dict[str, Dict[str, Optional[Dict[str, Any]]]] = {}
        self.inserts: Dict[str, set] = {}
        self.held_locks: Dict[Tuple[str, str], threading.Lock] = {}
        self.connection = None


class RowLockManager:
    """
    Named row locks for backends without native row locking.
    Locks are created on first use and never discarded.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}

    def acquire(self, key: Tuple[str, str]) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock

        timeout = -1 if self.timeout is None else self.timeout
        if not lock.acquire(timeout=timeout):
            raise StoreUnavailable(
                f"Timed out after {self.timeout}s waiting for lock on {key[0]}:{key[1]}"
            )
        return lock


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    _driver_errors: Tuple[Type[BaseException], ...] = ()

    def __init__(self):
        self._local = threading.local()

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save (insert or replace) a record"""
        pass

    @abstractmethod
    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a new record; raises DuplicateRecordError if the id exists"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table in insertion order"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters, in insertion order"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    # Atomic units

    def _unit(self) -> Optional[_AtomicUnit]:
        return getattr(self._local, 'unit', None)

    @property
    def in_transaction(self) -> bool:
        """True when the calling thread has an open atomic unit"""
        return self._unit() is not None

    def _begin(self, unit: _AtomicUnit) -> None:
        pass

    def _commit(self, unit: _AtomicUnit) -> None:
        pass

    def _rollback(self, unit: _AtomicUnit) -> None:
        pass

    def _release(self, unit: _AtomicUnit) -> None:
        for lock in unit.held_locks.values():
            lock.release()
        unit.held_locks.clear()

    def _lock_row(self, unit: _AtomicUnit, table: str, record_id: str) -> None:
        pass

    def begin_transaction(self) -> None:
        """Start an atomic unit, or join the one already open on this thread"""
        unit = self._unit()
        if unit is None:
            unit = _AtomicUnit()
            self._begin(unit)
            self._local.unit = unit
        unit.depth += 1

    def commit(self) -> None:
        """Commit the current atomic unit once the outermost block finishes"""
        unit = self._unit()
        if unit is None:
            return
        unit.depth -= 1
        if unit.depth > 0:
            return

        self._local.unit = None
        try:
            if unit.rollback_only:
                self._rollback(unit)
                raise StoreUnavailable("Atomic unit was rolled back by a nested failure")
            self._commit(unit)
        finally:
            self._release(unit)

    def rollback(self) -> None:
        """Roll back the current atomic unit"""
        unit = self._unit()
        if unit is None:
            return
        unit.depth -= 1
        if unit.depth > 0:
            # The outermost block decides; it can no longer commit
            unit.rollback_only = True
            return

        self._local.unit = None
        try:
            self._rollback(unit)
        finally:
            self._release(unit)

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except BaseException:
            # BaseException too, so an interrupt cannot leave row locks held
            self.rollback()
            raise

    def lock(self, table: str, record_ids: Iterable[str]) -> None:
        """
        Lock rows until the current atomic unit ends.

        Locks are taken in sorted id order so that two units locking the same
        pair of rows cannot deadlock.
        """
        unit = self._unit()
        if unit is None:
            raise RuntimeError("lock() requires an open atomic unit")
        _check_identifier(table)
        for record_id in sorted(set(record_ids)):
            self._lock_row(unit, table, record_id)


class InMemoryStorage(StorageInterface):
    """
    In-memory storage implementation for testing.

    Writes made inside an atomic unit are buffered per thread and applied on
    commit, so other threads only ever see committed data.
    """

    def __init__(self, lock_timeout: Optional[float] = None):
        super().__init__()
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._row_locks = RowLockManager(lock_timeout)

    def _pending(self, table: str) -> Dict[str, Optional[Dict[str, Any]]]:
        unit = self._unit()
        if unit is None:
            return {}
        return unit.writes.get(table, {})

    def _view(self, table: str) -> List[Dict[str, Any]]:
        """Committed rows overlaid with this thread's pending writes"""
        with self._lock:
            committed = self._data.get(table, {})
            pending = self._pending(table)
            rows = []
            for record_id, record in committed.items():
                if record_id in pending:
                    if pending[record_id] is not None:
                        rows.append(pending[record_id])
                else:
                    rows.append(record)
            for record_id, record in pending.items():
                if record_id not in committed and record is not None:
                    rows.append(record)
            return [_copy(row) for row in rows]

    def _write(self, table: str, record_id: str, data: Optional[Dict[str, Any]]) -> None:
        unit = self._unit()
        if unit is not None:
            unit.writes.setdefault(table, {})[record_id] = data
            return
        with self._lock:
            rows = self._data.setdefault(table, {})
            if data is None:
                rows.pop(record_id, None)
            else:
                rows[record_id] = data

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        self._write(table, record_id, _copy(data))

    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a new record"""
        with self._lock:
            if self.exists(table, record_id):
                raise DuplicateRecordError(table, record_id)
            unit = self._unit()
            if unit is not None:
                unit.inserts.setdefault(table, set()).add(record_id)
            self._write(table, record_id, _copy(data))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        pending = self._pending(table)
        if record_id in pending:
            record = pending[record_id]
            return _copy(record) if record is not None else None
        with self._lock:
            record = self._data.get(table, {}).get(record_id)
            if record:
                return _copy(record)
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        return self._view(table)

    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from memory"""
        with self._lock:
            if not self.exists(table, record_id):
                return False
            self._write(table, record_id, None)
            return True

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        return self.load(table, record_id) is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        results = []
        for record in self._view(table):
            if all(key in record and record[key] == value for key, value in filters.items()):
                results.append(record)
        return results

    def count(self, table: str) -> int:
        """Count records in table"""
        return len(self._view(table))

    def clear_table(self, table: str) -> None:
        """Clear all committed records from a table"""
        with self._lock:
            self._data[table] = {}

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass

    def _lock_row(self, unit: _AtomicUnit, table: str, record_id: str) -> None:
        key = (table, record_id)
        if key not in unit.held_locks:
            unit.held_locks[key] = self._row_locks.acquire(key)

    def _commit(self, unit: _AtomicUnit) -> None:
        with self._lock:
            for table, record_ids in unit.inserts.items():
                committed = self._data.get(table, {})
                for record_id in record_ids:
                    if record_id in committed:
                        raise DuplicateRecordError(table, record_id)

            for table, rows in unit.writes.items():
                target = self._data.setdefault(table, {})
                for record_id, record in rows.items():
                    if record is None:
                        target.pop(record_id, None)
                    else:
                        target[record_id] = record


class SQLiteStorage(StorageInterface):
    """
    SQLite storage implementation for persistence.

    SQLite allows a single writer, so an atomic unit runs under
    ``BEGIN IMMEDIATE`` and holds the storage lock until it ends; other
    writers wait for it. Row locks are therefore implied.

    File databases run in WAL mode, and reads outside an atomic unit use a
    per-thread connection that never takes the storage lock, so they see the
    last committed state while a unit is open.
    """

    _driver_errors = (sqlite3.Error,)

    def __init__(self, db_path: Union[str, Path] = ":memory:", timeout: float = 30.0):
        super().__init__()
        self.db_path = str(db_path)
        self.timeout = timeout
        # Every connection to :memory: opens a separate database
        self._file_backed = self.db_path != ":memory:"
        # Autocommit mode; atomic units issue BEGIN/COMMIT explicitly
        self._connection = self._connect()
        self._lock = threading.RLock()
        self._tables: set = set()
        self._readers = threading.local()
        self._reader_connections: List[sqlite3.Connection] = []
        self._readers_lock = threading.Lock()

        # Enable WAL mode for better concurrent access
        if self._file_backed:
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level=None, timeout=self.timeout
        )
        connection.row_factory = sqlite3.Row
        return connection

    def _reader(self) -> sqlite3.Connection:
        """This thread's read connection, opened on first use"""
        connection = getattr(self._readers, 'connection', None)
        if connection is None:
            connection = self._connect()
            self._readers.connection = connection
            with self._readers_lock:
                self._reader_connections.append(connection)
        return connection

    def _query(self, table: str, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        """Run a read; inside a unit it must see the unit's own writes"""
        self._ensure_table(table)
        if self.in_transaction or not self._file_backed:
            with self._lock:
                return self._connection.execute(sql, tuple(params)).fetchall()
        return self._reader().execute(sql, tuple(params)).fetchall()

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        _check_identifier(table)
        if table in self._tables:
            return
        with self._lock:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_created_at
                ON {table}(created_at)
            """)
            # DDL inside a unit is undone by a rollback
            if not self.in_transaction:
                self._tables.add(table)

    @_store_call
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to SQLite"""
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            # Upsert keeps the rowid, and with it the insertion order
            self._connection.execute(f"""
                INSERT INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
            """, (record_id, json.dumps(data, default=str), now, now))

    @_store_call
    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a new record into SQLite"""
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            try:
                self._connection.execute(f"""
                    INSERT INTO {table} (id, data, created_at, updated_at)
                    VALUES (?, ?, ?, ?)
                """, (record_id, json.dumps(data, default=str), now, now))
            except sqlite3.IntegrityError:
                raise DuplicateRecordError(table, record_id)

    @_store_call
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        rows = self._query(table, f"""
            SELECT data FROM {table} WHERE id = ?
        """, (record_id,))
        if rows:
            return json.loads(rows[0]['data'])
        return None

    @_store_call
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        rows = self._query(table, f"""
            SELECT data FROM {table} ORDER BY rowid
        """)
        return [json.loads(row['data']) for row in rows]

    @_store_call
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                DELETE FROM {table} WHERE id = ?
            """, (record_id,))
            return cursor.rowcount > 0

    @_store_call
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        rows = self._query(table, f"""
            SELECT 1 FROM {table} WHERE id = ? LIMIT 1
        """, (record_id,))
        return bool(rows)

    @_store_call
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters using json_extract"""
        conditions = []
        params: List[Any] = []
        for key, value in filters.items():
            path = f"$.{_check_identifier(key)}"
            if value is None:
                conditions.append("json_extract(data, ?) IS NULL")
                params.append(path)
            else:
                conditions.append("json_extract(data, ?) = ?")
                params.extend([path, value])

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self._query(table, f"""
            SELECT data FROM {table} {where_clause} ORDER BY rowid
        """, params)
        return [json.loads(row['data']) for row in rows]

    @_store_call
    def count(self, table: str) -> int:
        """Count records in table"""
        rows = self._query(table, f"""
            SELECT COUNT(*) as count FROM {table}
        """)
        return rows[0]['count']

    @_store_call
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")

    def _begin(self, unit: _AtomicUnit) -> None:
        self._lock.acquire()
        try:
            self._connection.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            self._lock.release()
            raise StoreUnavailable(f"Could not start SQLite transaction: {e}") from e

    def _commit(self, unit: _AtomicUnit) -> None:
        try:
            self._connection.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback(unit)
            raise StoreUnavailable(f"SQLite commit failed: {e}") from e

    def _rollback(self, unit: _AtomicUnit) -> None:
        try:
            if self._connection.in_transaction:
                self._connection.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.error(f"SQLite rollback failed: {e}")

    def _release(self, unit: _AtomicUnit) -> None:
        super()._release(unit)
        self._lock.release()

    def close(self) -> None:
        """Close the writer and every reader connection"""
        with self._readers_lock:
            for connection in self._reader_connections:
                connection.close()
            self._reader_connections.clear()
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


class PostgreSQLStorage(StorageInterface):
    """
    PostgreSQL storage backend with ACID transaction support.

    Each atomic unit borrows one pooled connection for its whole duration;
    ``lock()`` issues ``SELECT ... FOR UPDATE`` per row.
    """

    def __init__(self, connection_string: str, min_connections: int = 1,
                 max_connections: int = 10, lock_timeout: Optional[float] = None):
        super().__init__()
        try:
            import psycopg2
            import psycopg2.extras
            import psycopg2.pool
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError(
                "psycopg2 is required for PostgreSQL storage. "
                "Install with: pip install bank-ledger[postgres]"
            )

        self._driver_errors = (
            psycopg2.OperationalError,
            psycopg2.InterfaceError,
            psycopg2.pool.PoolError,
        )
        self.connection_string = connection_string
        self.lock_timeout = lock_timeout
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            min_connections, max_connections, connection_string,
            cursor_factory=self.extras.RealDictCursor
        )
        self._tables: set = set()
        self._tables_lock = threading.Lock()

    @contextmanager
    def _cursor(self):
        """Cursor on the unit's connection, or on a pooled autocommitted one"""
        unit = self._unit()
        if unit is not None:
            cursor = unit.connection.cursor()
            try:
                yield cursor
            finally:
                cursor.close()
            return

        connection = self._pool.getconn()
        try:
            cursor = connection.cursor()
            try:
                yield cursor
                connection.commit()
            except Exception:
                connection.rollback()
                raise
            finally:
                cursor.close()
        finally:
            self._pool.putconn(connection)

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        _check_identifier(table)
        with self._tables_lock:
            if table in self._tables:
                return
            connection = self._pool.getconn()
            try:
                with connection.cursor() as cursor:
                    cursor.execute(f"""
                        CREATE TABLE IF NOT EXISTS {table} (
                            id TEXT PRIMARY KEY,
                            seq BIGSERIAL,
                            data JSONB NOT NULL,
                            created_at TIMESTAMPTZ DEFAULT NOW(),
                            updated_at TIMESTAMPTZ DEFAULT NOW()
                        )
                    """)
                    cursor.execute(f"""
                        CREATE INDEX IF NOT EXISTS idx_{table}_data
                        ON {table} USING gin(data)
                    """)
                    cursor.execute(f"""
                        CREATE INDEX IF NOT EXISTS idx_{table}_seq
                        ON {table}(seq)
                    """)
                connection.commit()
            except Exception:
                connection.rollback()
                raise
            finally:
                self._pool.putconn(connection)
            self._tables.add(table)

    @_store_call
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to PostgreSQL using UPSERT"""
        self._ensure_table(table)
        now = datetime.now(timezone.utc)
        with self._cursor() as cursor:
            cursor.execute(f"""
                INSERT INTO {table} (id, data, created_at, updated_at)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE SET
                    data = EXCLUDED.data,
                    updated_at = EXCLUDED.updated_at
            """, (record_id, json.dumps(data, default=str), now, now))

    @_store_call
    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a new record into PostgreSQL"""
        self._ensure_table(table)
        now = datetime.now(timezone.utc)
        try:
            with self._cursor() as cursor:
                cursor.execute(f"""
                    INSERT INTO {table} (id, data, created_at, updated_at)
                    VALUES (%s, %s, %s, %s)
                """, (record_id, json.dumps(data, default=str), now, now))
        except self.psycopg2.IntegrityError:
            raise DuplicateRecordError(table, record_id)

    @_store_call
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from PostgreSQL"""
        self._ensure_table(table)
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT data FROM {table} WHERE id = %s
            """, (record_id,))
            row = cursor.fetchone()
            if row:
                return dict(row['data'])
            return None

    @_store_call
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        return self.find(table, {})

    @_store_call
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from PostgreSQL"""
        self._ensure_table(table)
        with self._cursor() as cursor:
            cursor.execute(f"""
                DELETE FROM {table} WHERE id = %s
            """, (record_id,))
            return cursor.rowcount > 0

    @_store_call
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        self._ensure_table(table)
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT 1 FROM {table} WHERE id = %s LIMIT 1
            """, (record_id,))
            return cursor.fetchone() is not None

    @_store_call
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters using JSONB operators"""
        self._ensure_table(table)
        conditions = []
        params: List[Any] = []
        for key, value in filters.items():
            if value is None:
                conditions.append("data ->> %s IS NULL")
                params.append(key)
            else:
                conditions.append("data ->> %s = %s")
                params.extend([key, str(value)])

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT data FROM {table} {where_clause} ORDER BY seq
            """, params)
            return [dict(row['data']) for row in cursor.fetchall()]

    @_store_call
    def count(self, table: str) -> int:
        """Count records in table"""
        self._ensure_table(table)
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT COUNT(*) as count FROM {table}
            """)
            return cursor.fetchone()['count']

    @_store_call
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        self._ensure_table(table)
        with self._cursor() as cursor:
            cursor.execute(f"DELETE FROM {table}")

    def _lock_row(self, unit: _AtomicUnit, table: str, record_id: str) -> None:
        self._ensure_table(table)
        try:
            with unit.connection.cursor() as cursor:
                cursor.execute(f"""
                    SELECT id FROM {table} WHERE id = %s FOR UPDATE
                """, (record_id,))
        except self._driver_errors as e:
            raise StoreUnavailable(f"Could not lock {table}:{record_id}: {e}") from e

    def _begin(self, unit: _AtomicUnit) -> None:
        try:
            unit.connection = self._pool.getconn()
            if self.lock_timeout is not None:
                with unit.connection.cursor() as cursor:
                    cursor.execute(
                        "SET LOCAL lock_timeout = %s",
                        (f"{int(self.lock_timeout * 1000)}ms",)
                    )
        except self._driver_errors as e:
            if unit.connection is not None:
                self._pool.putconn(unit.connection, close=True)
                unit.connection = None
            raise StoreUnavailable(f"Could not start PostgreSQL transaction: {e}") from e

    def _commit(self, unit: _AtomicUnit) -> None:
        try:
            unit.connection.commit()
        except self._driver_errors as e:
            self._rollback(unit)
            raise StoreUnavailable(f"PostgreSQL commit failed: {e}") from e

    def _rollback(self, unit: _AtomicUnit) -> None:
        try:
            unit.connection.rollback()
        except self._driver_errors as e:
            logger.error(f"PostgreSQL rollback failed: {e}")

    def _release(self, unit: _AtomicUnit) -> None:
        super()._release(unit)
        if unit.connection is not None:
            self._pool.putconn(unit.connection, close=bool(unit.connection.closed))
            unit.connection = None

    def close(self) -> None:
        """Close all pooled PostgreSQL connections"""
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None


def create_storage(
    database_url: str,
    pool_min: int = 1,
    pool_max: int = 10,
    sqlite_timeout: float = 30.0,
    lock_timeout: Optional[float] = None
) -> StorageInterface:
    """
    Create a storage backend from a database URL.

    Supported forms: ``memory://``, ``sqlite:///path/to.db``,
    ``sqlite:///:memory:`` and ``postgresql://...``.
    """
    if database_url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLStorage(database_url, pool_min, pool_max, lock_timeout)

    if database_url.startswith("sqlite://"):
        path = database_url[len("sqlite:///"):] if database_url.startswith("sqlite:///") else ""
        return SQLiteStorage(path or ":memory:", timeout=sqlite_timeout)

    if database_url in ("memory://", "memory"):
        return InMemoryStorage(lock_timeout=lock_timeout)

    raise ValueError(f"Unsupported database URL: {database_url}")
