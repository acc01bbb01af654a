"""Core module - Types, Schema, Table store, Referential integrity, Database model"""

from .errors import (
    SchemaDBError, SchemaError, RowValidationError, UniquenessError,
    ForeignKeyError, NotFoundError, DuplicateError, CatalogClosedError,
)
from .types import ColumnType, TypeValidator
from .schema import Column, ForeignKey, TableSchema, validate_columns
from .table import Table
from .integrity import ReferentialIntegrity
from .database import Database

__all__ = [
    'SchemaDBError', 'SchemaError', 'RowValidationError', 'UniquenessError',
    'ForeignKeyError', 'NotFoundError', 'DuplicateError', 'CatalogClosedError',
    'ColumnType', 'TypeValidator',
    'Column', 'ForeignKey', 'TableSchema', 'validate_columns',
    'Table', 'ReferentialIntegrity', 'Database',
]
