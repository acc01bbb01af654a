"""
Schema Module - Defines table structure, columns, and constraints

Supports:
- Column definitions with types and defaults
- A single integer PRIMARY KEY per table, named <Table>Id
- Nullable columns
- Foreign key references with ON DELETE restrict/cascade
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional
import re

from .errors import RowValidationError, SchemaError
from .types import ColumnType, TypeValidator

IDENTIFIER_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

RESTRICT = 'restrict'
CASCADE = 'cascade'
ON_DELETE_ACTIONS = (RESTRICT, CASCADE)

# Keys a column descriptor understands; anything else is carried along verbatim.
COLUMN_KEYS = ('name', 'type', 'default', 'nullable', 'pk', 'fk')


def is_valid_identifier(name: Any) -> bool:
    return isinstance(name, str) and bool(IDENTIFIER_RE.match(name))


def primary_key_name(table_name: str) -> str:
    """Conventional primary key column name for a table"""
    return f"{table_name}Id"


@dataclass
class ForeignKey:
    """Reference to another table's column, by name"""
    table: str
    column: str
    on_delete: str = RESTRICT

    @classmethod
    def from_dict(cls, data: Any, column: str) -> 'ForeignKey':
        if not isinstance(data, dict):
            raise SchemaError(f"Invalid foreign key for '{column}'")
        table, target = data.get('table'), data.get('column')
        if not is_valid_identifier(table) or not is_valid_identifier(target):
            raise SchemaError(f"Foreign key for '{column}' needs a table and a column")
        on_delete = data.get('onDelete') or RESTRICT
        if not isinstance(on_delete, str) or on_delete.lower() not in ON_DELETE_ACTIONS:
            raise SchemaError(f"Invalid onDelete action '{on_delete}' for '{column}'")
        return cls(table, target, on_delete.lower())

    def to_dict(self) -> dict:
        return {'table': self.table, 'column': self.column, 'onDelete': self.on_delete}


@dataclass
class Column:
    """Represents a column in a table"""
    name: str
    col_type: ColumnType = ColumnType.STRING
    default: Any = None
    nullable: bool = False
    pk: bool = False
    fk: Optional[ForeignKey] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_spec(cls, spec: Any) -> 'Column':
        """Normalize a bare name, a descriptor mapping or a Column"""
        if isinstance(spec, Column):
            return replace(spec, extra=dict(spec.extra))
        if isinstance(spec, str):
            return cls(name=spec, default='')
        if not isinstance(spec, dict):
            raise SchemaError(f"Invalid column definition {spec!r}")

        name = spec.get('name')
        try:
            col_type = TypeValidator.parse_type(spec.get('type'))
        except SchemaError:
            raise SchemaError(
                f"Unsupported column type '{spec.get('type')}' for '{name}'") from None

        flags = {}
        for flag in ('nullable', 'pk'):
            value = spec.get(flag)
            # Falsy non-booleans are treated as unset.
            if value and not isinstance(value, bool):
                raise SchemaError(f"Invalid {flag} flag for '{name}'")
            flags[flag] = bool(value)

        fk = ForeignKey.from_dict(spec['fk'], name) if spec.get('fk') else None
        extra = {k: v for k, v in spec.items() if k not in COLUMN_KEYS}
        return cls(name=name, col_type=col_type, default=spec.get('default'),
                   fk=fk, extra=extra, **flags)

    def to_dict(self) -> dict:
        """Descriptor as stored; only keys that are set are written"""
        data = {'name': self.name, 'type': self.col_type.value}
        if self.default is not None:
            data['default'] = self.default
        if self.nullable:
            data['nullable'] = True
        if self.pk:
            data['pk'] = True
            data['nullable'] = False
        if self.fk is not None:
            data['fk'] = self.fk.to_dict()
        data.update(self.extra)
        return data


def validate_columns(specs: Iterable[Any]) -> List[Column]:
    """
    Normalize and validate a full column list.

    Must run against the complete resulting list after every schema change,
    not just the delta, so that collisions and second primary keys are caught.
    """
    columns = [Column.from_spec(spec) for spec in specs]
    seen = set()
    pk_columns = []

    for col in columns:
        if not is_valid_identifier(col.name):
            raise SchemaError(f"Invalid column name '{col.name}'")
        if col.name in seen:
            raise SchemaError(f"Duplicate column name '{col.name}'")
        seen.add(col.name)
        if col.pk:
            pk_columns.append(col)

    if len(pk_columns) > 1:
        raise SchemaError("Multiple primary keys defined; only a single primary key is supported")
    if pk_columns and pk_columns[0].col_type != ColumnType.INTEGER:
        raise SchemaError("Primary key must be of type integer")

    return columns


@dataclass
class TableSchema:
    """Represents the schema of a table"""
    name: str
    columns: List[Column] = field(default_factory=list)
    primary_key: Optional[str] = None

    def __post_init__(self):
        if self.primary_key is None:
            self.primary_key = primary_key_name(self.name)

    def get_column(self, name: str) -> Optional[Column]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def get_column_index(self, name: str) -> Optional[int]:
        for idx, col in enumerate(self.columns):
            if col.name == name:
                return idx
        return None

    def get_column_names(self) -> List[str]:
        return [col.name for col in self.columns]

    def foreign_key_columns(self) -> List[Column]:
        return [col for col in self.columns if col.fk is not None]

    def validate_row(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and convert a row of data into its canonical form"""
        validated = {}

        for col in self.columns:
            present = col.name in row
            value = row.get(col.name)

            if (not present or value is None or value == '') and col.nullable:
                validated[col.name] = None
                continue
            if not present or value is None:
                raise RowValidationError(f"Missing column '{col.name}' in row", col.name)

            validated[col.name] = TypeValidator.validate_and_convert(value, col.col_type, col.name)

        for key in row:
            if self.get_column(key) is None:
                raise RowValidationError(f"Unknown column '{key}' in row", key)

        return validated

    def to_dict(self) -> List[dict]:
        return [col.to_dict() for col in self.columns]
