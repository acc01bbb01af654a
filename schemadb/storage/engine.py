"""
Storage Engine - Handles persistence of database documents to disk

Features:
- File-per-database storage model (<data_dir>/<name>.json)
- Whole-document JSON serialization
- Database names derived from the files present

Every write replaces the whole file. There is no partial-write recovery:
a crash in the middle of a write can leave a database file corrupt.
"""

import json
import logging
import os
from typing import List

from ..core.errors import NotFoundError, SchemaError
from ..core.schema import is_valid_identifier

logger = logging.getLogger(__name__)

EXTENSION = '.json'


def empty_document() -> dict:
    return {'tables': {}}


class StorageEngine:
    """Reads and writes whole database documents"""

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)

    def _path(self, name: str) -> str:
        # Names are identifiers, so they can never point outside data_dir.
        if not is_valid_identifier(name):
            raise SchemaError(f"Invalid database name '{name}'")
        return os.path.join(self.data_dir, name + EXTENSION)

    def list(self) -> List[str]:
        """Names of all stored databases"""
        os.makedirs(self.data_dir, exist_ok=True)
        names = []
        for entry in os.listdir(self.data_dir):
            base, ext = os.path.splitext(entry)
            if ext == EXTENSION and is_valid_identifier(base):
                names.append(base)
        return sorted(names)

    def exists(self, name: str) -> bool:
        return os.path.exists(self._path(name))

    def read(self, name: str) -> dict:
        """Load a document; a database that does not exist reads as empty"""
        path = self._path(name)
        if not os.path.exists(path):
            return empty_document()
        with open(path, 'r', encoding='utf-8') as f:
            document = json.load(f)
        logger.debug("Read database %s from %s", name, path)
        return document

    def write(self, name: str, document: dict) -> None:
        """Persist a document, replacing whatever was stored"""
        path = self._path(name)
        os.makedirs(self.data_dir, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        logger.debug("Wrote database %s to %s", name, path)

    def delete(self, name: str) -> None:
        path = self._path(name)
        if not os.path.exists(path):
            raise NotFoundError(f"Database '{name}' not found")
        os.remove(path)
