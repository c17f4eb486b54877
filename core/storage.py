# core/storage.py
import os
import json
import sqlite3
import datetime
import pytz
from typing import Dict, Iterator, Optional, Tuple

from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_DB_PATH = os.path.join(os.path.expanduser("~"), ".cart_sorter", "cart_sorter.sqlite3")
DB_PATH = os.getenv("DB_PATH", DEFAULT_DB_PATH)
CACHE_KEY = os.getenv("CACHE_KEY", "voila_product_categories")


class CacheIOError(Exception):
    """Durable storage could not be read or written."""


def now_utc_iso() -> str:
    return datetime.datetime.now(tz=pytz.UTC).isoformat()


class CacheStore:
    """
    Product display name -> category string, persisted as one JSON object
    under a single key of a SQLite key/value table.

    Entries are never evicted. Storage failures never reach the caller:
    a broken read gives an empty cache, a broken write leaves the entry
    in memory for the rest of the session.
    """

    def __init__(self, db_path: str = DB_PATH, key: str = CACHE_KEY):
        self.db_path = db_path
        self.key = key
        self._entries: Dict[str, str] = {}

    def _connect(self) -> sqlite3.Connection:
        folder = os.path.dirname(self.db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        return sqlite3.connect(self.db_path)

    def _ensure_table(self, con: sqlite3.Connection) -> None:
        con.execute(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT
            )
        """
        )

    def _read_raw(self) -> Optional[str]:
        try:
            with self._connect() as con:
                self._ensure_table(con)
                row = con.execute("SELECT value FROM kv WHERE key=?", (self.key,)).fetchone()
        except (sqlite3.Error, OSError) as exc:
            raise CacheIOError(f"read of {self.key!r} from {self.db_path} failed: {exc}") from exc
        return row[0] if row else None

    def _write_raw(self, value: str) -> None:
        try:
            with self._connect() as con:
                self._ensure_table(con)
                con.execute(
                    """
                    INSERT INTO kv (key, value, updated_at) VALUES (?,?,?)
                    ON CONFLICT(key) DO UPDATE SET
                        value=excluded.value,
                        updated_at=excluded.updated_at
                """,
                    (self.key, value, now_utc_iso()),
                )
                con.commit()
        except (sqlite3.Error, OSError) as exc:
            raise CacheIOError(f"write of {self.key!r} to {self.db_path} failed: {exc}") from exc

    def load(self) -> "CacheStore":
        """Replace the in-memory entries with what is on disk."""
        self._entries = {}
        try:
            raw = self._read_raw()
        except CacheIOError as exc:
            logger.error("Failed to load category cache: %s", exc)
            return self

        if raw is None:
            logger.debug("No category cache stored under %r yet.", self.key)
            return self

        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.error("Category cache under %r is not valid JSON (%s); starting empty.", self.key, exc)
            return self

        if not isinstance(data, dict):
            logger.error("Category cache under %r is a %s, not an object; starting empty.", self.key, type(data).__name__)
            return self

        self._entries = {str(k): v for k, v in data.items() if isinstance(v, str)}
        logger.info("Loaded %d cached categories from %s", len(self._entries), self.db_path)
        return self

    def save(self) -> bool:
        try:
            self._write_raw(json.dumps(self._entries, ensure_ascii=False))
        except CacheIOError as exc:
            logger.error("Failed to save category cache: %s", exc)
            return False
        return True

    def get(self, name: str) -> Optional[str]:
        # empty strings are never stored, so a falsy value is a miss
        return self._entries.get(name) or None

    def put(self, name: str, category: str) -> None:
        self._entries[name] = category
        self.save()

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(sorted(self._entries.items()))

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)
