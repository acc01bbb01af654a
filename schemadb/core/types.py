"""
Data Types Module - Defines supported column data types for SchemaDB

Supports: INTEGER, REAL, CHAR, STRING, TIME, TIMEINVL
"""

from enum import Enum
from typing import Any, Optional
import json
import math
import re

from .errors import RowValidationError, SchemaError


class ColumnType(Enum):
    """Supported column types. Values are the names used in stored documents."""
    INTEGER = 'integer'
    REAL = 'real'
    CHAR = 'char'
    STRING = 'string'
    TIME = 'time'
    TIMEINVL = 'timeinvl'

    def __str__(self) -> str:
        return self.value


INTEGER_RE = re.compile(r'^[-+]?[0-9]+$')
TIME_RE = re.compile(r'^(?:[01][0-9]|2[0-3]):[0-5][0-9](?::[0-5][0-9](?:\.[0-9]+)?)?$')
# At least one component after P; the T part needs at least one component too.
ISO_DURATION_RE = re.compile(
    r'^P(?=[0-9]|T[0-9])(?:[0-9]+Y)?(?:[0-9]+M)?(?:[0-9]+D)?'
    r'(?:T(?=[0-9])(?:[0-9]+H)?(?:[0-9]+M)?(?:[0-9]+(?:\.[0-9]+)?S)?)?$',
    re.IGNORECASE,
)
CLOCK_INTERVAL_RE = re.compile(r'^[-+]?[0-9]+:[0-5][0-9]:[0-5][0-9](?:\.[0-9]+)?$')


def to_text(value: Any) -> str:
    """String form of a value, following the JSON spelling of the documents"""
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def parse_int(value: Any) -> Optional[int]:
    """Return value as int if it is an integer or an integer-looking string, else None"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return None
    if isinstance(value, str) and INTEGER_RE.match(value.strip()):
        return int(value.strip())
    return None


def as_number(value: Any) -> Optional[float]:
    """Numeric view of a value for foreign-key comparison; None if not numeric"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


class TypeValidator:
    """Validates and converts values to their canonical stored form"""

    @staticmethod
    def parse_type(type_str: Any) -> ColumnType:
        """Parse a type name (case-insensitive, defaults to string)"""
        if isinstance(type_str, ColumnType):
            return type_str
        if type_str is None or type_str == '':
            return ColumnType.STRING
        if not isinstance(type_str, str):
            raise SchemaError(f"Unsupported column type '{type_str}'")
        try:
            return ColumnType(type_str.strip().lower())
        except ValueError:
            raise SchemaError(f"Unsupported column type '{type_str}'") from None

    @staticmethod
    def validate_and_convert(value: Any, dtype: ColumnType, column: str) -> Any:
        """Validate and convert a value for one column"""
        if dtype == ColumnType.INTEGER:
            converted = parse_int(value)
            if converted is None:
                raise RowValidationError(f"Column '{column}' expects integer", column)
            return converted

        elif dtype == ColumnType.REAL:
            number = as_number(value)
            if number is None:
                raise RowValidationError(f"Column '{column}' expects real number", column)
            return float(number)

        elif dtype == ColumnType.CHAR:
            text = to_text(value)
            if len(text) != 1:
                raise RowValidationError(f"Column '{column}' expects single character", column)
            return text

        elif dtype == ColumnType.TIME:
            text = to_text(value).strip()
            if not TIME_RE.match(text):
                raise RowValidationError(
                    f"Column '{column}' expects time in HH:MM[:SS] format", column)
            return text

        elif dtype == ColumnType.TIMEINVL:
            text = to_text(value).strip()
            if not ISO_DURATION_RE.match(text) and not CLOCK_INTERVAL_RE.match(text):
                raise RowValidationError(
                    f"Column '{column}' expects interval (ISO8601 duration or HH:MM:SS)", column)
            return text

        return to_text(value)
