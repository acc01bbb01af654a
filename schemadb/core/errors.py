"""
Errors - Exception hierarchy for SchemaDB

Every engine failure derives from SchemaDBError, which is a ValueError so
callers that only know the plain ValueError convention keep working.
"""

from typing import Optional


class SchemaDBError(ValueError):
    """Base class for all engine errors"""


class SchemaError(SchemaDBError):
    """Invalid table or column definition"""


class RowValidationError(SchemaDBError):
    """A row failed validation; `column` names the offending column"""

    def __init__(self, message: str, column: Optional[str] = None):
        super().__init__(message)
        self.column = column


class UniquenessError(SchemaDBError):
    """Primary key collision"""


class ForeignKeyError(SchemaDBError):
    """Referential integrity violation"""


class NotFoundError(SchemaDBError):
    """Database, table, column or row index does not exist"""


class DuplicateError(SchemaDBError):
    """Database or table already exists"""


class CatalogClosedError(SchemaDBError):
    """Catalog used after close()"""
