"""Per-domain result cache for SubScout."""

import hashlib
import json
import os
import sqlite3
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from .domain import CacheEntry
from .errors import CacheIOError, ConfigError, ErrorCodes
from .logger import get_logger


def cache_key(domain: str) -> str:
    """Opaque, filesystem-safe key for a domain."""
    return hashlib.md5(domain.encode("utf-8")).hexdigest()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CacheBackend(ABC):
    """Key-value persistence for cache records."""

    name: str = "base"

    @abstractmethod
    def read(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored record, or None if there is none."""

    @abstractmethod
    def write(self, key: str, record: Dict[str, Any]) -> None:
        """Store a record, replacing any previous one."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a record if present."""


class MemoryCacheBackend(CacheBackend):
    """Process-local backend, mainly for tests and one-shot runs."""

    name = "memory"

    def __init__(self):
        self._records: Dict[str, str] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            raw = self._records.get(key)
        return json.loads(raw) if raw is not None else None

    def write(self, key: str, record: Dict[str, Any]) -> None:
        raw = json.dumps(record)
        with self._lock:
            self._records[key] = raw

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def __len__(self) -> int:
        return len(self._records)


class FileCacheBackend(CacheBackend):
    """One JSON file per key inside a directory."""

    name = "file"

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise CacheIOError(ErrorCodes.CACHE_READ_FAILED, details=f"{path}: {e}") from e

    def write(self, key: str, record: Dict[str, Any]) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Write beside the target then rename, so readers never see a partial file
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(record, f)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise CacheIOError(ErrorCodes.CACHE_WRITE_FAILED, details=f"{path}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CacheIOError(ErrorCodes.CACHE_WRITE_FAILED, details=str(e)) from e


class SQLiteCacheBackend(CacheBackend):
    """Single-table SQLite backend."""

    name = "sqlite"

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_database()
        except (OSError, sqlite3.Error) as e:
            raise CacheIOError(ErrorCodes.CACHE_WRITE_FAILED, details=f"{self.db_path}: {e}") from e

    @contextmanager
    def get_connection(self):
        """Get database connection with context manager."""
        conn = sqlite3.connect(str(self.db_path), timeout=10)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self) -> None:
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS subdomain_cache (
                    key TEXT PRIMARY KEY,
                    record TEXT NOT NULL
                )
            """)

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            with self.get_connection() as conn:
                row = conn.execute(
                    "SELECT record FROM subdomain_cache WHERE key = ?", (key,)
                ).fetchone()
            return json.loads(row[0]) if row else None
        except (sqlite3.Error, ValueError) as e:
            raise CacheIOError(ErrorCodes.CACHE_READ_FAILED, details=str(e)) from e

    def write(self, key: str, record: Dict[str, Any]) -> None:
        try:
            with self.get_connection() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO subdomain_cache (key, record) VALUES (?, ?)",
                    (key, json.dumps(record)),
                )
        except sqlite3.Error as e:
            raise CacheIOError(ErrorCodes.CACHE_WRITE_FAILED, details=str(e)) from e

    def delete(self, key: str) -> None:
        try:
            with self.get_connection() as conn:
                conn.execute("DELETE FROM subdomain_cache WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise CacheIOError(ErrorCodes.CACHE_WRITE_FAILED, details=str(e)) from e


class CacheStore:
    """
    Freshness-bounded cache of aggregation results, one entry per domain.

    Entries are addressed by ``cache_key(domain)``. An entry older than the
    freshness window reads as absent but stays in the backend until the next
    ``put`` for that domain overwrites it. Backend failures are logged and
    never raised: a failed read is a miss and a failed write is skipped.
    """

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        freshness_ms: int = 86_400_000,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.backend = backend or MemoryCacheBackend()
        self.freshness_ms = freshness_ms
        self.clock = clock or utc_now
        # key -> [lock, holders]; dropped when the last holder leaves
        self._key_locks: Dict[str, List[Any]] = {}
        self._lock = threading.Lock()
        self.logger = get_logger("cache")

    @contextmanager
    def _key_lock(self, key: str):
        with self._lock:
            slot = self._key_locks.get(key)
            if slot is None:
                slot = self._key_locks[key] = [threading.Lock(), 0]
            slot[1] += 1
        try:
            with slot[0]:
                yield
        finally:
            with self._lock:
                slot[1] -= 1
                if slot[1] == 0:
                    del self._key_locks[key]

    def get(self, domain: str) -> Optional[CacheEntry]:
        """
        Get the fresh entry for a domain.

        Returns:
            CacheEntry, or None when missing, unreadable or expired
        """
        key = cache_key(domain)
        with self._key_lock(key):
            try:
                record = self.backend.read(key)
            except CacheIOError as e:
                self.logger.warning(f"Cache read failed for {domain}: {e}")
                return None

        if record is None:
            return None

        try:
            entry = CacheEntry.from_dict(record)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Ignoring malformed cache entry for {domain}: {e}")
            return None

        if entry.domain != domain:
            self.logger.warning(f"Cache key collision for {domain} (entry is {entry.domain})")
            return None

        age_ms = entry.age_ms(self.clock())
        if age_ms >= self.freshness_ms:
            self.logger.debug(f"Cache entry for {domain} expired ({age_ms / 1000:.0f}s old)")
            return None

        return entry

    def put(self, domain: str, subdomains: Iterable[str]) -> bool:
        """
        Store a fresh aggregation result, replacing any previous entry.

        Returns:
            True if the entry was persisted
        """
        entry = CacheEntry(domain=domain, subdomains=sorted(set(subdomains)), timestamp=self.clock())
        key = cache_key(domain)
        with self._key_lock(key):
            try:
                self.backend.write(key, entry.to_dict())
            except CacheIOError as e:
                self.logger.error(f"Cache write failed for {domain}: {e}")
                return False

        self.logger.debug(f"Cached {len(entry.subdomains)} subdomains for {domain}")
        return True

    def invalidate(self, domain: str) -> None:
        """Remove the entry for a domain."""
        key = cache_key(domain)
        with self._key_lock(key):
            try:
                self.backend.delete(key)
            except CacheIOError as e:
                self.logger.warning(f"Cache delete failed for {domain}: {e}")


def create_backend(kind: str, directory: Path) -> CacheBackend:
    """Build the backend named in configuration."""
    if kind == "memory":
        return MemoryCacheBackend()
    if kind == "sqlite":
        return SQLiteCacheBackend(Path(directory) / "cache.db")
    if kind == "file":
        return FileCacheBackend(directory)
    raise ConfigError(
        ErrorCodes.CONFIG_INVALID,
        details=f"unknown cache backend {kind!r} (expected file, sqlite or memory)",
    )
