"""Storage module - Persistence layer"""

from .engine import StorageEngine
from .catalog import Catalog, sanitize_name

__all__ = ['StorageEngine', 'Catalog', 'sanitize_name']
