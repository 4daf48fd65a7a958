# =============================================================================
# arwords_core/offline/local_store.py
# Local SQLite Store for the Offline Dictionary
# =============================================================================
"""
LocalStore - SQLite-backed copy of the remote dictionary.

Features:
- Idempotent schema creation with drop-and-recreate recovery
- Batched, transactional entry + variant writes
- Case-insensitive substring search over term and script
- Favorite flags and a per-user entitlement profile tier
- All SQLite work runs on one dedicated worker thread; callers only await

The general handle is opened lazily and kept for the process lifetime.
The bulk download path uses `writer()`, which opens its own handle on the
same file and closes it when the download is done.
"""

from __future__ import annotations
import asyncio
import functools
import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from arwords_core.errors import StorageFault
from arwords_core.logging import get_logger
from arwords_core.models import Entry, EntitlementRecord, Variant

logger = get_logger(__name__)

T = TypeVar("T")

# SQLite's default host-parameter limit is 999 on older builds
_IN_CHUNK = 500


# =============================================================================
# SCHEMA
# =============================================================================

SCHEMA = {
    "entries": """
        CREATE TABLE IF NOT EXISTS entries (
            id TEXT PRIMARY KEY,
            term TEXT NOT NULL,
            script TEXT NOT NULL,
            category TEXT NOT NULL,
            definition TEXT,
            frequency TEXT,
            is_favorite INTEGER NOT NULL DEFAULT 0
        )
    """,
    "variants": """
        CREATE TABLE IF NOT EXISTS variants (
            id TEXT PRIMARY KEY,
            entry_id TEXT NOT NULL REFERENCES entries(id) ON DELETE CASCADE,
            script_variant TEXT,
            transliteration TEXT NOT NULL,
            detail TEXT NOT NULL,
            audio_ref TEXT
        )
    """,
    "profile": """
        CREATE TABLE IF NOT EXISTS profile (
            user_id TEXT PRIMARY KEY,
            has_access INTEGER NOT NULL DEFAULT 0,
            expires_at TEXT,
            last_synced TEXT
        )
    """,
}

INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_entries_term ON entries(term)",
    "CREATE INDEX IF NOT EXISTS idx_entries_script ON entries(script)",
    "CREATE INDEX IF NOT EXISTS idx_variants_entry ON variants(entry_id)",
)

EXPECTED_COLUMNS = {
    "entries": ("id", "term", "script", "category", "definition", "frequency", "is_favorite"),
    "variants": ("id", "entry_id", "script_variant", "transliteration", "detail", "audio_ref"),
    "profile": ("user_id", "has_access", "expires_at", "last_synced"),
}

_UPSERT_ENTRY = """
    INSERT INTO entries (id, term, script, category, definition, frequency, is_favorite)
    VALUES (?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        term = excluded.term,
        script = excluded.script,
        category = excluded.category,
        definition = excluded.definition,
        frequency = excluded.frequency,
        is_favorite = excluded.is_favorite
"""

_INSERT_VARIANT = """
    INSERT OR REPLACE INTO variants
        (id, entry_id, script_variant, transliteration, detail, audio_ref)
    VALUES (?, ?, ?, ?, ?, ?)
"""


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# =============================================================================
# HANDLE-LEVEL OPERATIONS (run on the worker thread)
# =============================================================================

def _connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _verify_schema(conn: sqlite3.Connection) -> bool:
    try:
        for table, columns in EXPECTED_COLUMNS.items():
            conn.execute(f"SELECT {', '.join(columns)} FROM {table} LIMIT 0")
        return True
    except sqlite3.Error as e:
        logger.debug(f"Schema verification failed: {e}")
        return False


def _create_schema(conn: sqlite3.Connection) -> None:
    with conn:
        for statement in SCHEMA.values():
            conn.execute(statement)
        for statement in INDEXES:
            conn.execute(statement)


def _drop_schema(conn: sqlite3.Connection) -> None:
    with conn:
        conn.execute("DROP TABLE IF EXISTS variants")
        conn.execute("DROP TABLE IF EXISTS entries")
        conn.execute("DROP TABLE IF EXISTS profile")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    try:
        _create_schema(conn)
    except sqlite3.Error as e:
        logger.warning(f"Schema creation failed, recreating: {e}")
    if _verify_schema(conn):
        return

    logger.warning("Local schema invalid, dropping and recreating tables")
    try:
        _drop_schema(conn)
        _create_schema(conn)
    except sqlite3.Error as e:
        raise StorageFault(f"Could not recreate local schema: {e}", operation="ensure_schema") from e
    if not _verify_schema(conn):
        raise StorageFault("Local schema invalid after recreation", operation="ensure_schema")


def _load_variants(conn: sqlite3.Connection, entry_ids: Sequence[str]) -> Dict[str, List[Variant]]:
    grouped: Dict[str, List[Variant]] = {entry_id: [] for entry_id in entry_ids}
    for start in range(0, len(entry_ids), _IN_CHUNK):
        chunk = entry_ids[start:start + _IN_CHUNK]
        placeholders = ", ".join("?" for _ in chunk)
        rows = conn.execute(
            f"SELECT * FROM variants WHERE entry_id IN ({placeholders}) ORDER BY rowid",
            list(chunk),
        ).fetchall()
        for row in rows:
            grouped[row["entry_id"]].append(Variant.from_row(row))
    return grouped


def _hydrate(conn: sqlite3.Connection, rows: Sequence[sqlite3.Row]) -> List[Entry]:
    if not rows:
        return []
    variants = _load_variants(conn, [row["id"] for row in rows])
    return [Entry.from_row(row, variants.get(row["id"], ())) for row in rows]


def _upsert_batch(conn: sqlite3.Connection, entries: Sequence[Entry], batch_size: int) -> int:
    if not _verify_schema(conn):
        _ensure_schema(conn)

    written = 0
    for start in range(0, len(entries), batch_size):
        chunk = entries[start:start + batch_size]
        current: Optional[str] = None
        try:
            with conn:
                for entry in chunk:
                    current = entry.id
                    conn.execute(_UPSERT_ENTRY, entry.to_row())
                    conn.execute("DELETE FROM variants WHERE entry_id = ?", (entry.id,))
                    conn.executemany(_INSERT_VARIANT, [v.to_row() for v in entry.variants])
        except sqlite3.Error as e:
            raise StorageFault(
                f"Failed to write entry batch: {e}",
                entry_id=current,
                operation="upsert_batch",
            ) from e
        written += len(chunk)
    return written


def _row_count(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]


def _prune(conn: sqlite3.Connection, keep_ids: Iterable[str]) -> int:
    keep = [(entry_id,) for entry_id in keep_ids]
    try:
        with conn:
            conn.execute("CREATE TEMP TABLE IF NOT EXISTS keep_ids (id TEXT PRIMARY KEY)")
            conn.execute("DELETE FROM keep_ids")
            conn.executemany("INSERT OR IGNORE INTO keep_ids (id) VALUES (?)", keep)
            cursor = conn.execute("DELETE FROM entries WHERE id NOT IN (SELECT id FROM keep_ids)")
            conn.execute("DELETE FROM keep_ids")
        return cursor.rowcount
    except sqlite3.Error as e:
        raise StorageFault(f"Failed to prune stale entries: {e}", operation="prune") from e


# =============================================================================
# STORE
# =============================================================================

class LocalStore:
    """
    Local SQLite dictionary store.

    Usage:
        store = get_local_store()
        await store.ensure_schema()
        entries = await store.search("book")
    """

    DEFAULT_DB_PATH = Path("local_data") / "arwords.db"
    BATCH_SIZE = 100

    _instance: Optional[LocalStore] = None
    _lock = threading.Lock()

    def __init__(self, db_path: Optional[Path] = None, batch_size: int = BATCH_SIZE):
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.batch_size = batch_size
        self._conn: Optional[sqlite3.Connection] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    @classmethod
    def get_instance(cls, db_path: Optional[Path] = None, batch_size: int = BATCH_SIZE) -> LocalStore:
        """Get or create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = LocalStore(db_path, batch_size)
        return cls._instance

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="LocalStore")
        return self._executor

    async def _run(self, func: Callable[..., T], *args) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._get_executor(), functools.partial(func, *args))

    def _open(self) -> sqlite3.Connection:
        conn = _connect(self.db_path)
        try:
            _ensure_schema(conn)
        except Exception:
            conn.close()
            raise
        return conn

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        try:
            self._conn = self._open()
        except (sqlite3.Error, StorageFault, OSError) as e:
            logger.warning(f"Opening local store failed, retrying with a fresh handle: {e}")
            try:
                self._conn = self._open()
            except (sqlite3.Error, StorageFault, OSError) as retry_error:
                raise StorageFault(
                    f"Could not open local store at {self.db_path}: {retry_error}",
                    operation="open",
                ) from retry_error
        logger.info(f"Local store opened at: {self.db_path}")
        return self._conn

    async def _with_connection(self, func: Callable[..., T], *args) -> T:
        def call():
            conn = self._get_connection()
            try:
                return func(conn, *args)
            except sqlite3.Error as e:
                raise StorageFault(f"Local store error: {e}", operation=func.__name__) from e
        return await self._run(call)

    # =========================================================================
    # SCHEMA
    # =========================================================================

    async def ensure_schema(self) -> None:
        """Create tables and indexes; drop and recreate once if verification fails."""
        await self._with_connection(_ensure_schema)

    async def verify_schema(self) -> bool:
        """True when every expected table and column is present."""
        return await self._with_connection(_verify_schema)

    # =========================================================================
    # CONTENT
    # =========================================================================

    async def upsert_batch(self, entries: Sequence[Entry]) -> int:
        """
        Write entries and their variants.

        Each chunk of `batch_size` entries commits in its own transaction;
        a failing row rolls back its chunk and raises StorageFault.

        Returns:
            Number of entries written
        """
        return await self._with_connection(_upsert_batch, list(entries), self.batch_size)

    async def search(self, term: str, category: Optional[str] = None) -> List[Entry]:
        """Case-insensitive substring match on term or script, ordered by term."""
        if not term or not term.strip():
            return []
        pattern = f"%{_escape_like(term.strip())}%"
        category_value = getattr(category, "value", category)

        def query(conn: sqlite3.Connection) -> List[Entry]:
            sql = (
                "SELECT * FROM entries "
                "WHERE (term LIKE ? ESCAPE '\\' OR script LIKE ? ESCAPE '\\')"
            )
            params: List[Any] = [pattern, pattern]
            if category_value:
                sql += " AND category = ?"
                params.append(category_value)
            sql += " ORDER BY term COLLATE NOCASE, id"
            return _hydrate(conn, conn.execute(sql, params).fetchall())

        return await self._with_connection(query)

    async def get_by_id(self, entry_id: str) -> Optional[Entry]:
        def query(conn: sqlite3.Connection) -> Optional[Entry]:
            row = conn.execute("SELECT * FROM entries WHERE id = ?", (entry_id,)).fetchone()
            if row is None:
                return None
            return _hydrate(conn, [row])[0]

        return await self._with_connection(query)

    async def set_favorite(self, entry_id: str, flag: bool) -> bool:
        """Flag an entry; returns False (no error) when the entry is absent."""
        def update(conn: sqlite3.Connection) -> bool:
            with conn:
                cursor = conn.execute(
                    "UPDATE entries SET is_favorite = ? WHERE id = ?",
                    (1 if flag else 0, entry_id),
                )
            return cursor.rowcount > 0

        return await self._with_connection(update)

    async def list_favorites(self) -> List[Entry]:
        def query(conn: sqlite3.Connection) -> List[Entry]:
            rows = conn.execute(
                "SELECT * FROM entries WHERE is_favorite = 1 ORDER BY term COLLATE NOCASE, id"
            ).fetchall()
            return _hydrate(conn, rows)

        return await self._with_connection(query)

    async def row_count(self) -> int:
        return await self._with_connection(_row_count)

    async def has_local_copy(self) -> bool:
        """A valid schema with at least one entry."""
        def check(conn: sqlite3.Connection) -> bool:
            return _verify_schema(conn) and _row_count(conn) > 0

        try:
            return await self._with_connection(check)
        except StorageFault as e:
            logger.warning(f"Local copy unavailable: {e}")
            return False

    async def prune(self, keep_ids: Iterable[str]) -> int:
        """Delete entries whose id is not in `keep_ids`; variants cascade."""
        return await self._with_connection(_prune, list(keep_ids))

    async def clear_content(self) -> None:
        def clear(conn: sqlite3.Connection) -> None:
            with conn:
                conn.execute("DELETE FROM variants")
                conn.execute("DELETE FROM entries")

        await self._with_connection(clear)
        logger.info("Local dictionary content cleared")

    # =========================================================================
    # PROFILE TIER
    # =========================================================================

    async def save_profile(self, record: EntitlementRecord) -> None:
        def save(conn: sqlite3.Connection) -> None:
            with conn:
                conn.execute(
                    """
                    INSERT INTO profile (user_id, has_access, expires_at, last_synced)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        has_access = excluded.has_access,
                        expires_at = excluded.expires_at,
                        last_synced = excluded.last_synced
                    """,
                    record.to_row(),
                )

        await self._with_connection(save)

    async def get_profile(self, user_id: str) -> Optional[EntitlementRecord]:
        def query(conn: sqlite3.Connection) -> Optional[EntitlementRecord]:
            row = conn.execute("SELECT * FROM profile WHERE user_id = ?", (user_id,)).fetchone()
            return EntitlementRecord.from_row(row) if row else None

        return await self._with_connection(query)

    async def clear_profiles(self) -> None:
        def clear(conn: sqlite3.Connection) -> None:
            with conn:
                conn.execute("DELETE FROM profile")

        await self._with_connection(clear)

    # =========================================================================
    # DOWNLOAD HANDLE
    # =========================================================================

    @asynccontextmanager
    async def writer(self):
        """
        Open a separate handle for a bulk download, closed on exit.

        Usage:
            async with store.writer() as writer:
                await writer.upsert_batch(entries)
        """
        try:
            conn = await self._run(self._open)
        except (sqlite3.Error, OSError) as e:
            raise StorageFault(f"Could not open download handle: {e}", operation="writer") from e
        writer = StoreWriter(self, conn)
        try:
            yield writer
        finally:
            await self._run(conn.close)
            logger.debug("Download handle closed")

    async def close(self) -> None:
        """Close the general handle and stop the worker thread."""
        if self._executor is None:
            return
        if self._conn is not None:
            await self._run(self._conn.close)
            self._conn = None
        self._executor.shutdown(wait=True)
        self._executor = None
        logger.info("Local store closed")


class StoreWriter:
    """Write operations bound to a download handle."""

    def __init__(self, store: LocalStore, conn: sqlite3.Connection):
        self._store = store
        self._conn = conn

    async def _call(self, func: Callable[..., T], *args) -> T:
        def call():
            try:
                return func(self._conn, *args)
            except sqlite3.Error as e:
                raise StorageFault(f"Local store error: {e}", operation=func.__name__) from e
        return await self._store._run(call)

    async def verify_schema(self) -> bool:
        return await self._call(_verify_schema)

    async def upsert_batch(self, entries: Sequence[Entry]) -> int:
        return await self._call(_upsert_batch, list(entries), self._store.batch_size)

    async def prune(self, keep_ids: Iterable[str]) -> int:
        return await self._call(_prune, list(keep_ids))

    async def row_count(self) -> int:
        return await self._call(_row_count)


# Singleton accessor
_local_store: Optional[LocalStore] = None


def get_local_store(db_path: Optional[Path] = None, batch_size: int = LocalStore.BATCH_SIZE) -> LocalStore:
    """Get the global LocalStore instance."""
    global _local_store
    if _local_store is None:
        _local_store = LocalStore.get_instance(db_path, batch_size)
    return _local_store
