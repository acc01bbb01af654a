"""
SchemaDB - JSON-backed databases with typed columns, integer primary keys
and foreign keys
"""

__version__ = "1.0.0"

from .engine import Engine
from .core.database import Database
from .core.errors import SchemaDBError
from .repl import REPL

__all__ = ["Engine", "Database", "SchemaDBError", "REPL"]
