"""
Facet Index

Durable, denormalized storage of facet rows in a SQLite table. Every row is
one (object, dimension, value) tuple; aggregation queries group over it.
"""

import re
import sqlite3
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Sequence, Union

from .exceptions import IndexMissingError, IndexSchemaError
from .models import DEFAULT_OBJECT_TYPE, FacetRow
from .utils import DatabaseOperationMixin


COLUMNS = ('id', 'object_id', 'object_type', 'type', 'facet', 'value', 'label', 'parent')

# Columns a term edit may patch in place
UPDATABLE_COLUMNS = ('value', 'label', 'parent')

# Column definitions used for both creation and additive migration
COLUMN_DEFINITIONS = {
    'object_id': 'INTEGER NOT NULL',
    'object_type': "TEXT NOT NULL DEFAULT 'object'",
    'type': 'TEXT',
    'facet': 'TEXT',
    'value': 'TEXT',
    'label': 'TEXT',
    'parent': "TEXT DEFAULT ''",
}

_TABLE_NAME = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


class FacetIndex(DatabaseOperationMixin):
    """SQLite-backed facet row storage."""

    def __init__(self, db_path: str = "./data/facetkit.db", table: str = "facets"):
        if not _TABLE_NAME.match(table):
            raise ValueError(f"Invalid facet table name: {table!r}")

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.table = table
        self.logger = logging.getLogger(__name__)

    # ===== SCHEMA =====

    def exists(self) -> bool:
        """Does the index table exist."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
                (self.table,)
            )
            return cursor.fetchone() is not None

    def create(self, force: bool = False) -> bool:
        """
        Create the table if it doesn't exist.

        With force=True the schema statements run even when the table is
        already there, adding any missing columns and indices. Existing rows
        are never touched.

        Raises:
            IndexSchemaError: if the table cannot be created or migrated
        """
        if not force and self.exists():
            return True

        columns_sql = ',\n'.join(f"{name} {definition}" for name, definition in COLUMN_DEFINITIONS.items())

        try:
            with self._connect() as conn:
                conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS {self.table} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        {columns_sql}
                    )
                """)
                self._migrate_table(conn)
                conn.execute(f"""
                    CREATE INDEX IF NOT EXISTS idx_{self.table}_lookup
                    ON {self.table} (object_id, object_type, type, facet, value, label, parent)
                """)
                conn.execute(f"""
                    CREATE INDEX IF NOT EXISTS idx_{self.table}_facet_value
                    ON {self.table} (facet, value)
                """)
                conn.commit()
        except sqlite3.Error as e:
            raise IndexSchemaError(f"Error creating index table {self.table}: {e}") from e

        created = self.exists()
        if created:
            self.logger.info(f"Facet index table ready: {self.table}")
        return created

    def _migrate_table(self, conn: sqlite3.Connection):
        """Add columns missing from an older table layout."""
        cursor = conn.execute(f"PRAGMA table_info({self.table})")
        existing_columns = [column[1] for column in cursor.fetchall()]

        for name, definition in COLUMN_DEFINITIONS.items():
            if name not in existing_columns:
                # NOT NULL without a default cannot be added to a populated table
                definition = definition.replace('NOT NULL', '').strip() or 'TEXT'
                conn.execute(f"ALTER TABLE {self.table} ADD COLUMN {name} {definition}")
                self.logger.info(f"Added {name} column to {self.table}")

    def drop(self) -> bool:
        """Drop the index. Returns True when a table was dropped."""
        if not self.exists():
            return False

        with self._connect() as conn:
            conn.execute(f"DROP TABLE {self.table}")
            conn.commit()

        return not self.exists()

    def truncate(self) -> bool:
        """Remove every row while keeping the table."""
        if not self.exists():
            return False

        with self._connect() as conn:
            conn.execute(f"DELETE FROM {self.table}")
            conn.commit()

        return True

    # ===== ERROR HANDLING =====

    def _missing_table(self, error: sqlite3.Error) -> bool:
        return 'no such table' in str(error).lower()

    def _guarded(self, action: str, func: Callable[..., int], *args) -> int:
        """
        Run a write, turning storage errors into a zero result.

        A missing table is a schema problem and is raised instead.
        """
        try:
            return func(*args)
        except sqlite3.Error as e:
            if self._missing_table(e):
                raise IndexMissingError(self.table) from e
            self.logger.warning(f"Failed to {action} in {self.table}: {e}")
            return 0

    # ===== READS =====

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        """
        Run a read query against the index database.

        Raises:
            IndexMissingError: if the index table does not exist
            sqlite3.Error: for any other database failure
        """
        try:
            with self._connect() as conn:
                return conn.execute(sql, list(params)).fetchall()
        except sqlite3.OperationalError as e:
            if self._missing_table(e):
                raise IndexMissingError(self.table) from e
            raise

    def get_object(self, object_id: int, object_type: str = DEFAULT_OBJECT_TYPE) -> List[FacetRow]:
        """Get the stored rows of one object, oldest first."""
        rows = self.fetch_all(
            f"""
            SELECT id, object_id, object_type, type, facet, value, label, parent
            FROM {self.table}
            WHERE object_id = ? AND object_type = ?
            ORDER BY id
            """,
            (int(object_id), object_type)
        )
        return [FacetRow.from_db_row(row) for row in rows]

    def get_facet_values(self, facet: str, exclude: Iterable[str] = ()) -> Dict[str, str]:
        """Distinct value -> label pairs stored for a facet, minus the excluded values."""
        exclude = list(exclude)
        sql = f"SELECT value, MAX(label) AS label FROM {self.table} WHERE facet = ?"
        params: List[Any] = [facet]

        if exclude:
            sql += f" AND value NOT IN ({self._placeholders(exclude)})"
            params.extend(exclude)

        sql += " GROUP BY value ORDER BY value"

        return {row['value']: row['label'] for row in self.fetch_all(sql, params)}

    # ===== WRITES =====

    def insert(self, rows: Iterable[Union[FacetRow, Dict[str, Any]]]) -> int:
        """
        Insert rows into the facets table.

        Insertion is best-effort per row: a failing row is logged and skipped.

        Returns:
            The number of rows inserted
        """
        inserted = 0
        columns = COLUMNS[1:]
        sql = f"""
            INSERT INTO {self.table} ({', '.join(columns)})
            VALUES ({self._placeholders(columns)})
        """

        with self._connect() as conn:
            for row in rows:
                data = row.to_dict() if isinstance(row, FacetRow) else dict(row)
                try:
                    conn.execute(sql, [data.get(column, '') for column in columns])
                    inserted += 1
                except sqlite3.Error as e:
                    if self._missing_table(e):
                        raise IndexMissingError(self.table) from e
                    self.logger.warning(
                        f"Failed to insert facet row {data.get('facet')}={data.get('value')} "
                        f"for object {data.get('object_id')}: {e}"
                    )

            conn.commit()

        return inserted

    def _execute(self, sql: str, params: Sequence[Any]) -> int:
        with self._connect() as conn:
            cursor = conn.execute(sql, list(params))
            conn.commit()
            return cursor.rowcount

    def delete(self, row_id: int) -> int:
        """Delete a row by its row id."""
        return self._guarded(
            'delete row', self._execute,
            f"DELETE FROM {self.table} WHERE id = ?", (int(row_id),)
        )

    def delete_multi(self, row_ids: Iterable[int]) -> int:
        """Delete multiple row ids in one statement."""
        ids = [int(row_id) for row_id in row_ids if row_id]
        return self._guarded('delete rows', self._delete_where_in, self.table, 'id', ids)

    def delete_object(self, object_id: int) -> int:
        """Delete every row of one object."""
        return self._guarded(
            'delete object rows', self._execute,
            f"DELETE FROM {self.table} WHERE object_id = ?", (int(object_id),)
        )

    def delete_object_multi(self, object_ids: Iterable[int]) -> int:
        """Delete the rows of several objects."""
        ids = [int(object_id) for object_id in object_ids if object_id]
        return self._guarded('delete object rows', self._delete_where_in, self.table, 'object_id', ids)

    def delete_facet_value(self, facet: str, value: str) -> int:
        """Delete every row carrying a value of a facet, across all objects."""
        return self._guarded(
            'delete facet value', self._execute,
            f"DELETE FROM {self.table} WHERE facet = ? AND value = ?", (facet, value)
        )

    def update_label(self, where: Dict[str, Any], label: str) -> int:
        """Set the label on every row matching where."""
        if not where:
            self.logger.warning("Refusing to update labels without a where clause")
            return 0

        return self._guarded(
            'update labels', self._build_dynamic_update,
            self.table, {'label': label}, where, COLUMNS
        )

    def update(self, data: Dict[str, Any], where: Dict[str, Any]) -> int:
        """
        Patch value/label/parent on every row matching where.

        Raises:
            ValueError: if data names a column other than value, label or parent
        """
        unknown = set(data) - set(UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update index columns: {', '.join(sorted(unknown))}")

        if not where:
            self.logger.warning("Refusing to update rows without a where clause")
            return 0

        return self._guarded(
            'update rows', self._build_dynamic_update,
            self.table, data, where, COLUMNS
        )

    # ===== STATISTICS =====

    def stats(self) -> Dict[str, Any]:
        """Get statistics for the current index."""
        if not self.exists():
            return {'total': 0, 'facets': [], 'exists': False}

        with self._connect() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM {self.table}").fetchone()[0]
            facets = [
                row[0] for row in conn.execute(
                    f"SELECT DISTINCT facet FROM {self.table} ORDER BY facet"
                ).fetchall()
            ]

        return {'total': total, 'facets': facets, 'exists': True}
