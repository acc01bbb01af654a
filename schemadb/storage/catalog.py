"""
Catalog - The set of databases in a data directory

Owns the per-database locks. Every read-mutate-write cycle on a database
runs while holding that database's lock, so two requests can never both
compute the same next primary key or overwrite each other's changes.
"""

import logging
import os
import re
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List

from ..core.errors import CatalogClosedError, SchemaError
from ..core.schema import is_valid_identifier
from .engine import StorageEngine

logger = logging.getLogger(__name__)


def sanitize_name(file_name: str) -> str:
    """Turn a file name into a database identifier"""
    base = os.path.basename(str(file_name or '').replace('\\', '/'))
    base = re.sub(r'\.json$', '', base, flags=re.IGNORECASE)
    if not is_valid_identifier(base):
        base = re.sub(r'[^A-Za-z0-9_]', '_', base)
        if not re.match(r'^[A-Za-z_]', base):
            base = '_' + base
    return base


class Catalog:
    """
    Catalog of databases stored by a StorageEngine.

    Usage:
        with Catalog(StorageEngine("./data")) as catalog:
            with catalog.lock("shop"):
                ...
    """

    def __init__(self, storage: StorageEngine):
        self.storage = storage
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()
        # Threads currently holding or waiting on each lock.
        self._users: Dict[str, int] = {}
        self._open = False

    def open(self) -> 'Catalog':
        self._open = True
        logger.debug("Catalog opened on %s", self.storage.data_dir)
        return self

    def close(self) -> None:
        self._open = False
        logger.debug("Catalog closed on %s", self.storage.data_dir)

    @property
    def is_open(self) -> bool:
        return self._open

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _ensure_open(self) -> None:
        if not self._open:
            raise CatalogClosedError("Catalog is closed")

    def list(self) -> List[str]:
        self._ensure_open()
        return self.storage.list()

    def exists(self, name: str) -> bool:
        self._ensure_open()
        return self.storage.exists(name)

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        """
        Hold the lock for one database for the duration of the block.

        A lock lives only while some thread holds or waits on it, so deleted
        or never-created databases leave nothing behind.
        """
        self._ensure_open()
        if not is_valid_identifier(name):
            raise SchemaError(f"Invalid database name '{name}'")
        with self._guard:
            lock = self._locks.setdefault(name, threading.RLock())
            self._users[name] = self._users.get(name, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[name] -= 1
                if not self._users[name]:
                    del self._users[name]
                    del self._locks[name]

    def lock_count(self) -> int:
        """Number of per-database locks currently in use"""
        with self._guard:
            return len(self._locks)

    def unique_name(self, base: str) -> str:
        """base, or base_1, base_2, ... whichever is free"""
        existing = set(self.list())
        target = base
        idx = 1
        while target in existing:
            target = f"{base}_{idx}"
            idx += 1
        return target
