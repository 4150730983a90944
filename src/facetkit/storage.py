"""
Option Storage

Key/value storage for engine state that must survive across processes:
batch indexer progress, the "index required" flag and the settings
fingerprint of the last completed rebuild.
"""

import json
import sqlite3
import logging
from pathlib import Path
from typing import Any, Optional

from .utils import DatabaseOperationMixin


INDEX_REQUIRED_OPTION = 'facets_index_required'
SETTINGS_FINGERPRINT_OPTION = 'facets_settings_fingerprint'


class OptionStore(DatabaseOperationMixin):
    """SQLite-based JSON option storage."""

    def __init__(self, db_path: str = "./data/facetkit.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger(__name__)
        self._init_database()

    def _init_database(self):
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS facet_options (
                    name TEXT PRIMARY KEY,
                    value TEXT,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

    def get(self, name: str, default: Any = None) -> Any:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM facet_options WHERE name = ?", (name,)).fetchone()

        if row is None:
            return default

        try:
            return json.loads(row['value'])
        except (TypeError, ValueError):
            self.logger.warning(f"Discarding unreadable option {name}")
            return default

    def set(self, name: str, value: Any) -> bool:
        try:
            with self._connect() as conn:
                conn.execute("""
                    INSERT OR REPLACE INTO facet_options (name, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                """, (name, json.dumps(value)))
                conn.commit()
            return True
        except sqlite3.Error as e:
            self.logger.warning(f"Failed to save option {name}: {e}")
            return False

    def delete(self, name: str) -> bool:
        """Remove an option. Returns True when something was deleted."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM facet_options WHERE name = ?", (name,))
            conn.commit()
            return cursor.rowcount > 0

    def exists(self, name: str) -> bool:
        return self.get(name) is not None

    def updated_at(self, name: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT updated_at FROM facet_options WHERE name = ?", (name,)).fetchone()
            return row['updated_at'] if row else None
