"""
Referential Integrity - Foreign key checks across the tables of one database

Foreign keys are references by name and are resolved on every check, so a
renamed or dropped target is noticed the next time it matters.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Set, Tuple

from .errors import ForeignKeyError
from .schema import CASCADE, Column
from .types import as_number

if TYPE_CHECKING:
    from .database import Database
    from .table import Table

logger = logging.getLogger(__name__)


def numbers_equal(left: Any, right: Any) -> bool:
    """Numeric equality; non-numeric values never match"""
    a, b = as_number(left), as_number(right)
    return a is not None and b is not None and a == b


class ReferentialIntegrity:
    """Enforces foreign keys on insert/update (child side) and delete (parent side)"""

    def check_references(self, database: 'Database', table: 'Table', row: Dict[str, Any]) -> None:
        """Every non-null foreign key value in row must exist in its target"""
        for col in table.schema.foreign_key_columns():
            value = row.get(col.name)
            if value is None:
                continue

            fk = col.fk
            target = database.tables.get(fk.table)
            if target is None:
                raise ForeignKeyError(
                    f"Referenced table {fk.table} not found for FK {col.name}")
            if target.schema.get_column(fk.column) is None:
                raise ForeignKeyError(
                    f"Referenced column {fk.table}.{fk.column} not found for FK {col.name}")

            if not any(numbers_equal(ref.get(fk.column), value) for ref in target.rows):
                raise ForeignKeyError(
                    f"Foreign key constraint failed: {col.name} references {fk.table}.{fk.column}")

    def referencing_columns(self, database: 'Database', parent: 'Table') -> Iterator[Tuple['Table', Column]]:
        """(table, column) pairs whose foreign key targets parent's primary key"""
        for other in database.tables.values():
            for col in other.schema.foreign_key_columns():
                if col.fk.table == parent.name and col.fk.column == parent.primary_key:
                    yield other, col

    def check_key_change(self, database: 'Database', table: 'Table',
                         old_row: Dict[str, Any], new_row: Dict[str, Any]) -> None:
        """Refuse changing a primary key value that other rows still reference"""
        old_value = old_row.get(table.primary_key)
        if numbers_equal(old_value, new_row.get(table.primary_key)):
            return
        for other, col in self.referencing_columns(database, table):
            if any(numbers_equal(row.get(col.name), old_value) for row in other.rows):
                raise ForeignKeyError(
                    f"Cannot change {table.primary_key}: referenced by {other.name}.{col.name}")

    def plan_delete(self, database: 'Database', table: 'Table', position: int) -> Dict[str, Set[int]]:
        """
        Work out every row a delete removes, following cascades transitively.

        Returns row indexes per table name. Raises ForeignKeyError if any row
        in the plan is referenced through a restrict foreign key from a row
        that is not itself in the plan. Nothing is modified.
        """
        pending = self._cascade_closure(database, table, position)

        for name, indexes in pending.items():
            parent = database.tables[name]
            for idx in indexes:
                value = parent.rows[idx].get(parent.primary_key)
                for child, col in self.referencing_columns(database, parent):
                    if col.fk.on_delete == CASCADE:
                        continue
                    removed = pending.get(child.name, set())
                    for child_idx, child_row in child.scan():
                        if child_idx in removed or not numbers_equal(child_row.get(col.name), value):
                            continue
                        logger.warning("Delete from %s refused: %s=%s referenced by %s.%s",
                                       table.name, parent.primary_key, value,
                                       child.name, col.name)
                        raise ForeignKeyError(
                            f"Cannot delete row: referenced by {child.name}.{col.name}")

        logger.debug("Delete plan for %s[%d]: %s", table.name, position,
                     {name: sorted(idxs) for name, idxs in pending.items() if idxs})
        return pending

    def _cascade_closure(self, database: 'Database', table: 'Table',
                         position: int) -> Dict[str, Set[int]]:
        """Every row reachable from the deleted row through cascade foreign keys"""
        pending: Dict[str, Set[int]] = {table.name: {position}}
        queue: List[Tuple['Table', Dict[str, Any]]] = [(table, table.rows[position])]

        while queue:
            parent, parent_row = queue.pop()
            value = parent_row.get(parent.primary_key)

            for child, col in self.referencing_columns(database, parent):
                if col.fk.on_delete != CASCADE:
                    continue
                removed = pending.setdefault(child.name, set())
                for idx, child_row in child.scan():
                    if idx in removed or not numbers_equal(child_row.get(col.name), value):
                        continue
                    removed.add(idx)
                    queue.append((child, child_row))
        return pending

    def apply_delete(self, database: 'Database', plan: Dict[str, Set[int]]) -> int:
        """Remove the planned rows; returns the number of rows removed"""
        removed = 0
        for name, indexes in plan.items():
            if not indexes:
                continue
            target = database.tables[name]
            target.rows = [row for idx, row in target.scan() if idx not in indexes]
            removed += len(indexes)
        return removed
