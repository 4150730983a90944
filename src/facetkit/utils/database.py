"""
Database operation mixins and helpers for common patterns.
"""
import sqlite3
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple


class DatabaseOperationMixin:
    """
    Mixin class that provides common database operation patterns.

    Classes that inherit from this mixin should have a 'db_path' attribute
    that points to the SQLite database file.
    """

    def _connect(self) -> sqlite3.Connection:
        """Open a connection that returns rows addressable by column name."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _placeholders(values: Sequence[Any]) -> str:
        """Build a '?,?,?' placeholder list for an IN clause."""
        return ','.join('?' for _ in values)

    @staticmethod
    def _build_where(where: Dict[str, Any],
                     allowed_columns: Optional[Iterable[str]] = None) -> Tuple[str, List[Any]]:
        """
        Build an AND-ed equality WHERE clause from a column -> value mapping.

        Column names are interpolated into the SQL, so they are checked against
        allowed_columns when given. Values are always bound.

        Raises:
            ValueError: if a column is not in allowed_columns
        """
        allowed = set(allowed_columns) if allowed_columns is not None else None
        clauses = []
        params = []

        for column, value in where.items():
            if allowed is not None and column not in allowed:
                raise ValueError(f"Unknown column in where clause: {column}")
            clauses.append(f"{column} = ?")
            params.append(value)

        return ' AND '.join(clauses), params

    def _build_dynamic_update(self, table_name: str, updates: Dict[str, Any],
                              where: Dict[str, Any],
                              allowed_columns: Optional[Iterable[str]] = None) -> int:
        """
        Build and execute a dynamic UPDATE statement with optional fields.

        Args:
            table_name: Name of the table to update
            updates: Field name -> value pairs to update (None values are ignored)
            where: Column -> value equality conditions, AND-ed together
            allowed_columns: Column allow-list for both updates and where

        Returns:
            Number of rows updated. An empty update set or an empty where
            clause is a no-op returning 0.

        Example:
            self._build_dynamic_update(
                'facets',
                {'label': 'Updates', 'parent': None},  # parent is ignored
                {'facet': 'category', 'value': 'news'}
            )
        """
        allowed = set(allowed_columns) if allowed_columns is not None else None
        update_clauses = []
        params = []

        for field_name, value in updates.items():
            if value is None:
                continue
            if allowed is not None and field_name not in allowed:
                raise ValueError(f"Unknown column in update: {field_name}")
            update_clauses.append(f"{field_name} = ?")
            params.append(value)

        # Never issue an unconstrained update
        if not update_clauses or not where:
            return 0

        where_sql, where_params = self._build_where(where, allowed_columns)
        params.extend(where_params)

        sql = f"""
            UPDATE {table_name}
            SET {', '.join(update_clauses)}
            WHERE {where_sql}
        """

        with self._connect() as conn:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.rowcount

    def _delete_where_in(self, table_name: str, column: str, values: Sequence[Any]) -> int:
        """Delete rows whose column is in values; an empty list deletes nothing."""
        if not values:
            return 0

        sql = f"DELETE FROM {table_name} WHERE {column} IN ({self._placeholders(values)})"

        with self._connect() as conn:
            cursor = conn.execute(sql, list(values))
            conn.commit()
            return cursor.rowcount
