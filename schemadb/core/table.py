"""
Table Store - One table's columns and rows

Handles:
- Primary key synthesis and assignment (max existing + 1; gaps are not filled)
- Primary key uniqueness
- Row preparation and validation for insert/update
- Column mutations that keep stored rows in step with the schema

Foreign key checks are not done here; Database sequences them around
the prepare/commit steps below.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import NotFoundError, RowValidationError, SchemaError, UniquenessError
from .schema import (
    Column, TableSchema, is_valid_identifier, primary_key_name, validate_columns,
)
from .types import ColumnType, as_number, parse_int


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == '')


def _force_primary_key(column: Column, name: str) -> None:
    column.name = name
    column.col_type = ColumnType.INTEGER
    column.pk = True
    column.nullable = False


class Table:
    """
    Storage for a single table.
    Rows are addressed by their position in the row list.
    """

    def __init__(self, schema: TableSchema, rows: Optional[List[Dict[str, Any]]] = None):
        self.schema = schema
        self.rows: List[Dict[str, Any]] = rows if rows is not None else []

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def primary_key(self) -> str:
        return self.schema.primary_key

    @classmethod
    def create(cls, name: str, column_specs: Optional[List[Any]] = None) -> 'Table':
        """Build a new empty table, synthesizing or normalizing its primary key"""
        if not is_valid_identifier(name):
            raise SchemaError(f"Invalid table name '{name}'")

        pk_name = primary_key_name(name)
        columns = [Column.from_spec(spec) for spec in column_specs or []]
        existing = next(
            (col for col in columns if col.pk or col.name in (pk_name, 'Id')), None)

        if existing is None:
            columns.insert(0, Column(pk_name, ColumnType.INTEGER, pk=True))
        else:
            _force_primary_key(existing, pk_name)

        return cls(TableSchema(name, validate_columns(columns), pk_name))

    @classmethod
    def from_import(cls, name: str, data: Any) -> 'Table':
        """
        Normalize a table coming from an external document.

        Any column called `Id` and any pk-flagged column is renamed to the
        conventional <name>Id, and row keys follow the rename.
        """
        if not is_valid_identifier(name):
            raise SchemaError(f"Invalid table name '{name}'")
        if not isinstance(data, dict):
            raise SchemaError(f"Invalid table definition for '{name}'")

        pk_name = primary_key_name(name)
        columns = [Column.from_spec(spec) for spec in data.get('columns') or []]
        renamed = set()
        for col in columns:
            if col.name == 'Id' or col.pk:
                renamed.add(col.name)
                col.name = pk_name

        pk_col = next((col for col in columns if col.name == pk_name), None)
        if pk_col is None:
            columns.insert(0, Column(pk_name, ColumnType.INTEGER, pk=True))
        else:
            _force_primary_key(pk_col, pk_name)

        schema = TableSchema(name, validate_columns(columns), pk_name)

        rows = []
        for row in data.get('rows') or []:
            if not isinstance(row, dict):
                raise SchemaError(f"Invalid row in table '{name}'")
            rows.append({(pk_name if key in renamed else key): value
                         for key, value in row.items()})
        return cls(schema, rows)

    @classmethod
    def from_dict(cls, name: str, data: dict) -> 'Table':
        """Load a table as stored by the engine"""
        columns = validate_columns(data.get('columns') or [])
        pk_name = data.get('_pk')
        if not pk_name:
            flagged = next((col for col in columns if col.pk), None)
            if flagged is not None:
                pk_name = flagged.name
            elif any(col.name == 'Id' for col in columns):
                pk_name = 'Id'
            else:
                pk_name = primary_key_name(name)
        return cls(TableSchema(name, columns, pk_name), list(data.get('rows') or []))

    def to_dict(self) -> dict:
        return {
            'columns': self.schema.to_dict(),
            'rows': self.rows,
            '_pk': self.primary_key,
        }

    # Rows

    def next_id(self) -> int:
        """Next primary key value: max existing integer key + 1"""
        highest = 0
        for row in self.rows:
            value = parse_int(row.get(self.primary_key))
            if value is not None and value > highest:
                highest = value
        return highest + 1

    def _check_unique_pk(self, value: int, exclude_index: Optional[int] = None) -> None:
        for idx, row in enumerate(self.rows):
            if idx == exclude_index:
                continue
            if as_number(row.get(self.primary_key)) == value:
                raise UniquenessError(f"{self.primary_key} must be unique (duplicate value {value})")

    def _coerce_pk(self, value: Any) -> int:
        converted = parse_int(value)
        if converted is None:
            raise RowValidationError(f"{self.primary_key} must be integer", self.primary_key)
        return converted

    def position_of(self, index: Any) -> int:
        """Validate a row index and return it as an int"""
        position = parse_int(index)
        if position is None or position < 0 or position >= len(self.rows):
            raise NotFoundError(f"Row index {index} out of range for table '{self.name}'")
        return position

    def row_at(self, index: Any) -> Dict[str, Any]:
        return self.rows[self.position_of(index)]

    def prepare_insert(self, raw_row: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply defaults, assign the primary key and validate.
        Nothing is stored; call append() once every other check passed.
        """
        if not isinstance(raw_row, dict):
            raise RowValidationError("Row must be an object")

        prepared = {}
        for col in self.schema.columns:
            value = raw_row.get(col.name)
            if not _is_blank(value):
                prepared[col.name] = value
            else:
                prepared[col.name] = col.default if col.default is not None else ''
        # Unknown keys are kept so validation can reject them.
        for key, value in raw_row.items():
            prepared.setdefault(key, value)

        pk = self.primary_key
        if _is_blank(prepared.get(pk)):
            prepared[pk] = self.next_id()
        else:
            prepared[pk] = self._coerce_pk(prepared[pk])
            self._check_unique_pk(prepared[pk])

        return self.schema.validate_row(prepared)

    def append(self, row: Dict[str, Any]) -> None:
        self.rows.append(row)

    def prepare_update(self, index: Any, raw_row: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        """Validate a wholesale replacement for the row at index"""
        position = self.position_of(index)
        if not isinstance(raw_row, dict):
            raise RowValidationError("Row must be an object")

        candidate = dict(raw_row)
        pk = self.primary_key
        if pk in candidate:
            candidate[pk] = self._coerce_pk(candidate[pk])
            self._check_unique_pk(candidate[pk], exclude_index=position)

        return position, self.schema.validate_row(candidate)

    def replace(self, position: int, row: Dict[str, Any]) -> None:
        self.rows[position] = row

    def scan(self) -> Iterator[Tuple[int, Dict[str, Any]]]:
        """Iterate over (index, row) pairs"""
        for idx, row in enumerate(self.rows):
            yield idx, row

    def count(self) -> int:
        return len(self.rows)

    # Columns

    def add_column(self, spec: Any) -> Column:
        """Append a column; existing rows are not back-filled"""
        column = Column.from_spec(spec)
        if column.name == self.primary_key:
            raise SchemaError(
                f"{self.primary_key} is reserved as primary key and cannot be added")
        if self.schema.get_column(column.name) is not None:
            raise SchemaError(f"Column '{column.name}' already exists")

        self.schema.columns = validate_columns(self.schema.columns + [column])
        return self.schema.get_column(column.name)

    def update_column(self, name: str, patch: Dict[str, Any]) -> Column:
        """Merge patch over a column descriptor"""
        idx = self.schema.get_column_index(name)
        if idx is None:
            raise NotFoundError(f"Column '{name}' not found in table '{self.name}'")
        if not isinstance(patch, dict):
            raise SchemaError("Column update must be an object")

        merged = dict(self.schema.columns[idx].to_dict())
        merged.update(patch)
        new_name = merged.get('name')

        if name == self.primary_key:
            if new_name != self.primary_key:
                raise SchemaError("Cannot rename primary key column")
            if str(merged.get('type') or '').lower() != ColumnType.INTEGER.value:
                raise SchemaError("Primary key column must remain integer")
            if merged.get('pk') is not True or merged.get('nullable'):
                raise SchemaError("Primary key column must stay a non-nullable primary key")
        elif new_name != name:
            self._check_rename(name, new_name)

        columns = list(self.schema.columns)
        columns[idx] = Column.from_spec(merged)
        columns = validate_columns(columns)
        updated = columns[idx]

        rows = self.rows
        if updated.name != name:
            rows = self._renamed_rows(name, updated.name)
        if not updated.nullable:
            fill = updated.default if updated.default is not None else ''
            for row in rows:
                if _is_blank(row.get(updated.name)):
                    row[updated.name] = fill

        self.schema.columns = columns
        self.rows = rows
        return updated

    def _check_rename(self, old_name: str, new_name: Any) -> None:
        if not is_valid_identifier(new_name):
            raise SchemaError(f"Invalid column name '{new_name}'")
        if self.primary_key in (old_name, new_name):
            raise SchemaError("Cannot rename primary key column")
        if self.schema.get_column(new_name) is not None:
            raise SchemaError(f"Column already exists with name '{new_name}'")

    def _renamed_rows(self, old_name: str, new_name: str) -> List[Dict[str, Any]]:
        rows = []
        for row in self.rows:
            if old_name in row:
                row = {(new_name if key == old_name else key): value
                       for key, value in row.items()}
            rows.append(row)
        return rows

    def rename_column(self, old_name: str, new_name: str) -> None:
        """Rename a column and the matching key in every row"""
        self._check_rename(old_name, new_name)
        idx = self.schema.get_column_index(old_name)
        if idx is None:
            raise NotFoundError(f"Column '{old_name}' not found in table '{self.name}'")

        columns = list(self.schema.columns)
        renamed = Column.from_spec(columns[idx])
        renamed.name = new_name
        columns[idx] = renamed

        self.schema.columns = validate_columns(columns)
        self.rows = self._renamed_rows(old_name, new_name)

    def remove_column(self, name: str) -> None:
        """Drop a column and its key from every row"""
        if name == self.primary_key:
            raise SchemaError("Cannot remove primary key column")
        if self.schema.get_column(name) is None:
            raise NotFoundError(f"Column '{name}' not found in table '{self.name}'")

        self.schema.columns = validate_columns(
            [col for col in self.schema.columns if col.name != name])
        self.rows = [{key: value for key, value in row.items() if key != name}
                     for row in self.rows]
