"""
Database - In-memory form of one stored database document

Holds the tables and sequences the table store and the referential
integrity checks for every operation. The `positions` map and any other
top-level keys of the document are carried through untouched.
"""

from typing import Any, Dict, List, Optional

from .errors import DuplicateError, NotFoundError, SchemaError
from .integrity import ReferentialIntegrity
from .schema import Column
from .table import Table

POSITIONS_KEY = 'positions'


class Database:
    """
    A named collection of tables.

    Usage:
        database = Database.from_document("shop", {"tables": {}})
        database.create_table("Customers", ["name"])
        database.insert_row("Customers", {"name": "Alice"})
        document = database.to_document()
    """

    integrity = ReferentialIntegrity()

    def __init__(self, name: str, tables: Optional[Dict[str, Table]] = None,
                 extra: Optional[Dict[str, Any]] = None):
        self.name = name
        self.tables: Dict[str, Table] = tables if tables is not None else {}
        self.extra: Dict[str, Any] = extra if extra is not None else {}

    @classmethod
    def from_document(cls, name: str, document: dict) -> 'Database':
        tables = {
            table_name: Table.from_dict(table_name, data)
            for table_name, data in (document.get('tables') or {}).items()
        }
        extra = {key: value for key, value in document.items() if key != 'tables'}
        return cls(name, tables, extra)

    def to_document(self) -> dict:
        document = {'tables': {name: table.to_dict() for name, table in self.tables.items()}}
        document.update(self.extra)
        return document

    def get_table(self, name: str) -> Table:
        table = self.tables.get(name)
        if table is None:
            raise NotFoundError(f"Table '{name}' not found in database '{self.name}'")
        return table

    def _check_fk_targets(self, table: Table, columns: List[Column]) -> None:
        """Foreign key targets are validated once, when the key is declared"""
        for col in columns:
            if col.fk is None:
                continue
            target = table if col.fk.table == table.name else self.tables.get(col.fk.table)
            if target is None:
                raise SchemaError(
                    f"Referenced table {col.fk.table} not found for FK {col.name}")
            if target.schema.get_column(col.fk.column) is None:
                raise SchemaError(
                    f"Referenced column {col.fk.table}.{col.fk.column} not found for FK {col.name}")

    # Tables

    def create_table(self, name: str, column_specs: Optional[List[Any]] = None) -> Table:
        if name in self.tables:
            raise DuplicateError(f"Table '{name}' already exists")
        table = Table.create(name, column_specs)
        self._check_fk_targets(table, table.schema.columns)
        self.tables[name] = table
        return table

    def drop_table(self, name: str) -> None:
        self.get_table(name)
        del self.tables[name]

    # Rows

    def insert_row(self, table_name: str, raw_row: Dict[str, Any]) -> Dict[str, Any]:
        table = self.get_table(table_name)
        row = table.prepare_insert(raw_row)
        self.integrity.check_references(self, table, row)
        table.append(row)
        return row

    def update_row(self, table_name: str, index: Any, raw_row: Dict[str, Any]) -> Dict[str, Any]:
        table = self.get_table(table_name)
        position, row = table.prepare_update(index, raw_row)
        self.integrity.check_references(self, table, row)
        self.integrity.check_key_change(self, table, table.rows[position], row)
        table.replace(position, row)
        return row

    def delete_row(self, table_name: str, index: Any) -> int:
        """Delete one row plus any cascaded dependents; returns rows removed"""
        table = self.get_table(table_name)
        plan = self.integrity.plan_delete(self, table, table.position_of(index))
        return self.integrity.apply_delete(self, plan)

    # Columns

    def add_column(self, table_name: str, spec: Any) -> Column:
        table = self.get_table(table_name)
        column = Column.from_spec(spec)
        self._check_fk_targets(table, [column])
        return table.add_column(column)

    def update_column(self, table_name: str, column_name: str, patch: Dict[str, Any]) -> Column:
        table = self.get_table(table_name)
        before = table.schema.get_column(column_name)
        if before is None:
            raise NotFoundError(f"Column '{column_name}' not found in table '{table_name}'")
        if isinstance(patch, dict) and patch.get('fk'):
            # Validate the declared target before anything is rewritten.
            self._check_fk_targets(table, [Column.from_spec({**before.to_dict(), **patch})])
        return table.update_column(column_name, patch)

    def rename_column(self, table_name: str, old_name: str, new_name: str) -> None:
        self.get_table(table_name).rename_column(old_name, new_name)

    def remove_column(self, table_name: str, column_name: str) -> None:
        self.get_table(table_name).remove_column(column_name)

    # Diagram positions

    def save_positions(self, positions: Dict[str, Any]) -> None:
        if not isinstance(positions, dict):
            raise SchemaError("Positions must be an object")
        stored = self.extra.get(POSITIONS_KEY)
        if not isinstance(stored, dict):
            stored = {}
        stored.update(positions)
        self.extra[POSITIONS_KEY] = stored
