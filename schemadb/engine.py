"""
Engine - Main entry point for SchemaDB

This is the primary interface for interacting with SchemaDB.
Every mutating operation is one cycle of
lock database -> read whole document -> mutate in memory -> write whole document.
Validation happens entirely on the in-memory copy, so a failed operation
leaves the stored document untouched.
"""

import json
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from .core.database import Database
from .core.errors import DuplicateError, NotFoundError, SchemaError
from .core.table import Table
from .storage.catalog import Catalog, sanitize_name
from .storage.engine import StorageEngine, empty_document

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = './schemadb_data'


class Engine:
    """
    SchemaDB engine over one data directory.

    Usage:
        engine = Engine("./mydata")
        engine.create_database("shop")
        engine.create_table("shop", "Customers", ["name"])
        engine.insert_row("shop", "Customers", {"name": "Alice"})
        rows = engine.query_rows("shop", "Customers")
    """

    def __init__(self, data_dir: str = DEFAULT_DATA_DIR):
        """
        Initialize the engine.

        Args:
            data_dir: Directory holding one JSON file per database
        """
        self.data_dir = data_dir
        self.storage = StorageEngine(data_dir)
        self.catalog = Catalog(self.storage).open()
        # Serializes name allocation for create/import.
        self._naming_lock = threading.Lock()

    @contextmanager
    def _mutate(self, db_name: str) -> Iterator[Database]:
        """Yield the database for modification and write it back if the block succeeds"""
        with self.catalog.lock(db_name):
            database = self._load(db_name)
            yield database
            self.storage.write(db_name, database.to_document())

    def _load(self, db_name: str) -> Database:
        if not self.storage.exists(db_name):
            raise NotFoundError(f"Database '{db_name}' not found")
        return Database.from_document(db_name, self.storage.read(db_name))

    def _read(self, db_name: str) -> Database:
        with self.catalog.lock(db_name):
            return self._load(db_name)

    # Databases

    def list_databases(self) -> List[str]:
        return self.catalog.list()

    def create_database(self, name: str) -> None:
        with self._naming_lock, self.catalog.lock(name):
            if self.storage.exists(name):
                raise DuplicateError(f"Database '{name}' already exists")
            self.storage.write(name, empty_document())
        logger.info("Created database %s", name)

    def get_database(self, name: str) -> dict:
        """The stored document; an unknown database reads as empty"""
        with self.catalog.lock(name):
            return self.storage.read(name)

    def delete_database(self, name: str) -> None:
        with self.catalog.lock(name):
            self.storage.delete(name)
        logger.info("Deleted database %s", name)

    def export_database(self, name: str) -> dict:
        with self.catalog.lock(name):
            if not self.storage.exists(name):
                raise NotFoundError(f"Database '{name}' not found")
            return self.storage.read(name)

    def import_database(self, document: Any, suggested_name: str) -> str:
        """
        Store an external document under a fresh name.

        Args:
            document: Database document, as a mapping or JSON text
            suggested_name: Usually the source file name; sanitized and
                suffixed with _1, _2, ... if already taken

        Returns:
            The name the database was stored under
        """
        if isinstance(document, (str, bytes)):
            try:
                document = json.loads(document)
            except ValueError:
                raise SchemaError("Invalid JSON file") from None
        if not isinstance(document, dict) or not isinstance(document.get('tables'), dict):
            raise SchemaError("Invalid database file")

        tables = {name: Table.from_import(name, data)
                  for name, data in document['tables'].items()}
        extra = {key: value for key, value in document.items() if key != 'tables'}

        with self._naming_lock:
            target = self.catalog.unique_name(sanitize_name(suggested_name))
            with self.catalog.lock(target):
                self.storage.write(target, Database(target, tables, extra).to_document())

        logger.info("Imported database %s (%d tables)", target, len(tables))
        return target

    def save_positions(self, db_name: str, positions: Dict[str, Any]) -> None:
        """Merge diagram coordinates into the opaque positions map"""
        with self._mutate(db_name) as database:
            database.save_positions(positions)

    # Tables

    def create_table(self, db_name: str, table_name: str,
                     columns: Optional[List[Any]] = None) -> None:
        with self._mutate(db_name) as database:
            database.create_table(table_name, columns)
        logger.info("Created table %s.%s", db_name, table_name)

    def delete_table(self, db_name: str, table_name: str) -> None:
        with self._mutate(db_name) as database:
            database.drop_table(table_name)
        logger.info("Dropped table %s.%s", db_name, table_name)

    def describe_table(self, db_name: str, table_name: str) -> Dict[str, Any]:
        table = self._read(db_name).get_table(table_name)
        return {
            'name': table.name,
            'primary_key': table.primary_key,
            'columns': table.schema.to_dict(),
            'row_count': table.count(),
        }

    # Rows

    def query_rows(self, db_name: str, table_name: str) -> List[Dict[str, Any]]:
        return self._read(db_name).get_table(table_name).rows

    def insert_row(self, db_name: str, table_name: str, row: Dict[str, Any]) -> Dict[str, Any]:
        with self._mutate(db_name) as database:
            stored = database.insert_row(table_name, row)
        logger.info("Inserted row into %s.%s", db_name, table_name)
        return dict(stored)

    def update_row(self, db_name: str, table_name: str, index: Any,
                   row: Dict[str, Any]) -> Dict[str, Any]:
        with self._mutate(db_name) as database:
            stored = database.update_row(table_name, index, row)
        logger.info("Updated row %s of %s.%s", index, db_name, table_name)
        return dict(stored)

    def delete_row(self, db_name: str, table_name: str, index: Any) -> int:
        """Delete a row; returns the number of rows removed including cascades"""
        with self._mutate(db_name) as database:
            removed = database.delete_row(table_name, index)
        logger.info("Deleted row %s of %s.%s (%d rows removed)", index, db_name, table_name, removed)
        return removed

    # Columns

    def add_column(self, db_name: str, table_name: str, spec: Any) -> None:
        with self._mutate(db_name) as database:
            column = database.add_column(table_name, spec)
        logger.info("Added column %s.%s.%s", db_name, table_name, column.name)

    def update_column(self, db_name: str, table_name: str, column_name: str,
                      patch: Dict[str, Any]) -> None:
        with self._mutate(db_name) as database:
            database.update_column(table_name, column_name, patch)
        logger.info("Updated column %s.%s.%s", db_name, table_name, column_name)

    def rename_column(self, db_name: str, table_name: str, old_name: str, new_name: str) -> None:
        with self._mutate(db_name) as database:
            database.rename_column(table_name, old_name, new_name)
        logger.info("Renamed column %s.%s.%s to %s", db_name, table_name, old_name, new_name)

    def remove_column(self, db_name: str, table_name: str, column_name: str) -> None:
        with self._mutate(db_name) as database:
            database.remove_column(table_name, column_name)
        logger.info("Removed column %s.%s.%s", db_name, table_name, column_name)

    def close(self) -> None:
        self.catalog.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
