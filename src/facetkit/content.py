"""
Content Store

A small SQLite content store holding objects, object kinds, authors,
taxonomies/terms and metadata. The facet index lives in the same database
file so the native provider can scope aggregation with a sub-query on
content_objects.
"""

import json
import math
import sqlite3
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .utils import DatabaseOperationMixin


OBJECT_TABLE = 'content_objects'


@dataclass
class ContentKind:
    """A kind of content object (article, page, ...)."""
    name: str
    label: str
    public: bool = True


@dataclass
class Author:
    """A user who authors content."""
    id: int
    login: str
    display_name: str


@dataclass
class Taxonomy:
    """A classification scheme such as category or tag."""
    name: str
    label: str
    hierarchical: bool = False


@dataclass
class Term:
    """A term within a taxonomy; parent is the parent term id or 0."""
    id: int
    taxonomy: str
    slug: str
    name: str
    parent: int = 0


@dataclass
class ContentObject:
    """A content object as the facet extractor sees it."""
    id: int
    kind: str
    author_id: Optional[int] = None
    title: str = ''
    status: str = 'published'


class ContentStore(DatabaseOperationMixin):
    """SQLite-based reference content store."""

    def __init__(self, db_path: str = "./data/facetkit.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger(__name__)
        self._init_database()

    def _init_database(self):
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript(f"""
                CREATE TABLE IF NOT EXISTS content_kinds (
                    name TEXT PRIMARY KEY,
                    label TEXT NOT NULL,
                    public BOOLEAN DEFAULT TRUE
                );

                CREATE TABLE IF NOT EXISTS authors (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    login TEXT UNIQUE NOT NULL,
                    display_name TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS {OBJECT_TABLE} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    kind TEXT NOT NULL,
                    author_id INTEGER,
                    title TEXT,
                    status TEXT DEFAULT 'published',
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS taxonomies (
                    name TEXT PRIMARY KEY,
                    label TEXT NOT NULL,
                    hierarchical BOOLEAN DEFAULT FALSE
                );

                CREATE TABLE IF NOT EXISTS terms (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    taxonomy TEXT NOT NULL,
                    slug TEXT NOT NULL,
                    name TEXT NOT NULL,
                    parent INTEGER DEFAULT 0,
                    UNIQUE(taxonomy, slug)
                );

                CREATE TABLE IF NOT EXISTS object_terms (
                    object_id INTEGER NOT NULL,
                    term_id INTEGER NOT NULL,
                    PRIMARY KEY (object_id, term_id)
                );

                CREATE TABLE IF NOT EXISTS object_meta (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    object_id INTEGER NOT NULL,
                    meta_key TEXT NOT NULL,
                    meta_value TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_objects_kind ON {OBJECT_TABLE}(kind);
                CREATE INDEX IF NOT EXISTS idx_terms_taxonomy ON terms(taxonomy);
                CREATE INDEX IF NOT EXISTS idx_object_terms_term ON object_terms(term_id);
                CREATE INDEX IF NOT EXISTS idx_object_meta_key ON object_meta(object_id, meta_key);
            """)

    # ===== KINDS AND AUTHORS =====

    def add_kind(self, name: str, label: str, public: bool = True):
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO content_kinds (name, label, public) VALUES (?, ?, ?)",
                (name, label, public)
            )
            conn.commit()

    def get_kind(self, name: str) -> Optional[ContentKind]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM content_kinds WHERE name = ?", (name,)).fetchone()
            return ContentKind(row['name'], row['label'], bool(row['public'])) if row else None

    def get_kinds(self, public_only: bool = True) -> List[ContentKind]:
        query = "SELECT * FROM content_kinds"
        if public_only:
            query += " WHERE public = TRUE"
        query += " ORDER BY name"

        with self._connect() as conn:
            return [ContentKind(row['name'], row['label'], bool(row['public']))
                    for row in conn.execute(query).fetchall()]

    def add_author(self, login: str, display_name: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO authors (login, display_name) VALUES (?, ?)",
                (login, display_name)
            )
            conn.commit()
            return cursor.lastrowid

    def rename_author(self, author_id: int, display_name: str):
        self._build_dynamic_update('authors', {'display_name': display_name}, {'id': author_id})

    def get_author(self, author_id: int) -> Optional[Author]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM authors WHERE id = ?", (author_id,)).fetchone()
            return Author(row['id'], row['login'], row['display_name']) if row else None

    def get_authors(self) -> List[Author]:
        with self._connect() as conn:
            return [Author(row['id'], row['login'], row['display_name'])
                    for row in conn.execute("SELECT * FROM authors ORDER BY login").fetchall()]

    def get_authors_by_display_name(self, display_names: Iterable[str]) -> List[Author]:
        names = list(display_names)
        if not names:
            return []

        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM authors WHERE display_name IN ({self._placeholders(names)})",
                names
            ).fetchall()
            return [Author(row['id'], row['login'], row['display_name']) for row in rows]

    # ===== TAXONOMIES AND TERMS =====

    def add_taxonomy(self, name: str, label: str, hierarchical: bool = False):
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO taxonomies (name, label, hierarchical) VALUES (?, ?, ?)",
                (name, label, hierarchical)
            )
            conn.commit()

    def get_taxonomy(self, name: str) -> Optional[Taxonomy]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM taxonomies WHERE name = ?", (name,)).fetchone()
            return Taxonomy(row['name'], row['label'], bool(row['hierarchical'])) if row else None

    def add_term(self, taxonomy: str, slug: str, name: str, parent: int = 0) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO terms (taxonomy, slug, name, parent) VALUES (?, ?, ?, ?)",
                (taxonomy, slug, name, parent or 0)
            )
            conn.commit()
            return cursor.lastrowid

    def update_term(self, term_id: int, slug: str = None, name: str = None, parent: int = None):
        self._build_dynamic_update(
            'terms', {'slug': slug, 'name': name, 'parent': parent}, {'id': term_id}
        )

    def delete_term(self, term_id: int):
        with self._connect() as conn:
            conn.execute("DELETE FROM object_terms WHERE term_id = ?", (term_id,))
            conn.execute("DELETE FROM terms WHERE id = ?", (term_id,))
            conn.commit()

    @staticmethod
    def _term(row) -> Term:
        return Term(row['id'], row['taxonomy'], row['slug'], row['name'], row['parent'] or 0)

    def get_term(self, term_id: int) -> Optional[Term]:
        if not term_id:
            return None

        with self._connect() as conn:
            row = conn.execute("SELECT * FROM terms WHERE id = ?", (term_id,)).fetchone()
            return self._term(row) if row else None

    def get_terms(self, taxonomy: str, exclude_slugs: Iterable[str] = ()) -> List[Term]:
        exclude = list(exclude_slugs)
        query = "SELECT * FROM terms WHERE taxonomy = ?"
        params: List[Any] = [taxonomy]

        if exclude:
            query += f" AND slug NOT IN ({self._placeholders(exclude)})"
            params.extend(exclude)

        query += " ORDER BY name"

        with self._connect() as conn:
            return [self._term(row) for row in conn.execute(query, params).fetchall()]

    def _get_terms_by(self, column: str, taxonomy: str, values: Iterable[str]) -> List[Term]:
        values = list(values)
        if not values:
            return []

        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM terms WHERE taxonomy = ? AND {column} IN ({self._placeholders(values)})",
                [taxonomy] + values
            ).fetchall()
            return [self._term(row) for row in rows]

    def get_terms_by_name(self, taxonomy: str, names: Iterable[str]) -> List[Term]:
        return self._get_terms_by('name', taxonomy, names)

    def get_terms_by_slug(self, taxonomy: str, slugs: Iterable[str]) -> List[Term]:
        return self._get_terms_by('slug', taxonomy, slugs)

    def set_object_terms(self, object_id: int, taxonomy: str, term_ids: Iterable[int]):
        """Replace an object's terms within one taxonomy."""
        with self._connect() as conn:
            conn.execute("""
                DELETE FROM object_terms
                WHERE object_id = ?
                AND term_id IN (SELECT id FROM terms WHERE taxonomy = ?)
            """, (object_id, taxonomy))
            conn.executemany(
                "INSERT OR IGNORE INTO object_terms (object_id, term_id) VALUES (?, ?)",
                [(object_id, term_id) for term_id in term_ids]
            )
            conn.commit()

    def get_object_terms(self, object_id: int, taxonomy: str) -> List[Term]:
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT t.* FROM terms t
                JOIN object_terms ot ON ot.term_id = t.id
                WHERE ot.object_id = ? AND t.taxonomy = ?
                ORDER BY t.name
            """, (object_id, taxonomy)).fetchall()
            return [self._term(row) for row in rows]

    # ===== OBJECTS =====

    def add_object(self, kind: str, author_id: int = None, title: str = '',
                   status: str = 'published', object_id: int = None) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                f"INSERT INTO {OBJECT_TABLE} (id, kind, author_id, title, status) VALUES (?, ?, ?, ?, ?)",
                (object_id, kind, author_id, title, status)
            )
            conn.commit()
            return cursor.lastrowid

    def update_object(self, object_id: int, kind: str = None, author_id: int = None,
                      title: str = None, status: str = None):
        self._build_dynamic_update(
            OBJECT_TABLE,
            {'kind': kind, 'author_id': author_id, 'title': title, 'status': status},
            {'id': object_id}
        )

    def delete_object(self, object_id: int):
        with self._connect() as conn:
            conn.execute("DELETE FROM object_terms WHERE object_id = ?", (object_id,))
            conn.execute("DELETE FROM object_meta WHERE object_id = ?", (object_id,))
            conn.execute(f"DELETE FROM {OBJECT_TABLE} WHERE id = ?", (object_id,))
            conn.commit()

    def get_object(self, object_id: int) -> Optional[ContentObject]:
        with self._connect() as conn:
            row = conn.execute(f"SELECT * FROM {OBJECT_TABLE} WHERE id = ?", (object_id,)).fetchone()
            if not row:
                return None
            return ContentObject(row['id'], row['kind'], row['author_id'], row['title'] or '', row['status'])

    def page_object_ids(self, kinds: Iterable[str] = (), page: int = 1, per_page: int = 100,
                        object_ids: Iterable[int] = None) -> Tuple[List[int], int, int]:
        """
        Fetch one page of object ids ordered by id ascending.

        Args:
            kinds: Restrict to these kinds (empty means any kind)
            page: 1-based page number
            per_page: Page size
            object_ids: Optional explicit id filter

        Returns:
            (ids on the page, total matching objects, number of pages)
        """
        conditions = []
        params: List[Any] = []

        kinds = list(kinds or [])
        if kinds:
            conditions.append(f"kind IN ({self._placeholders(kinds)})")
            params.extend(kinds)

        if object_ids is not None:
            ids = [int(object_id) for object_id in object_ids]
            if not ids:
                return [], 0, 0
            conditions.append(f"id IN ({self._placeholders(ids)})")
            params.extend(ids)

        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        per_page = max(int(per_page), 1)
        offset = (max(int(page), 1) - 1) * per_page

        with self._connect() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM {OBJECT_TABLE}{where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT id FROM {OBJECT_TABLE}{where} ORDER BY id ASC LIMIT ? OFFSET ?",
                params + [per_page, offset]
            ).fetchall()

        return [row['id'] for row in rows], total, math.ceil(total / per_page)

    # ===== METADATA =====

    def add_meta(self, object_id: int, key: str, value: Any):
        """Store one metadata value; values are JSON encoded."""
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO object_meta (object_id, meta_key, meta_value) VALUES (?, ?, ?)",
                (object_id, key, json.dumps(value))
            )
            conn.commit()

    def delete_meta(self, object_id: int, key: str):
        with self._connect() as conn:
            conn.execute("DELETE FROM object_meta WHERE object_id = ? AND meta_key = ?", (object_id, key))
            conn.commit()

    @staticmethod
    def _decode(raw: Optional[str]) -> Any:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return raw

    def get_meta(self, object_id: int, key: str) -> List[Any]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT meta_value FROM object_meta WHERE object_id = ? AND meta_key = ? ORDER BY id",
                (object_id, key)
            ).fetchall()
            return [self._decode(row['meta_value']) for row in rows]

    def get_meta_values(self, key: str) -> List[Any]:
        """Distinct decoded values stored under a metadata key."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT meta_value FROM object_meta WHERE meta_key = ? ORDER BY meta_value",
                (key,)
            ).fetchall()
            return [self._decode(row['meta_value']) for row in rows]

    def get_meta_keys(self) -> List[str]:
        """Distinct metadata keys, skipping private keys that start with an underscore."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT meta_key FROM object_meta WHERE meta_key NOT LIKE '\\_%' ESCAPE '\\' ORDER BY meta_key"
            ).fetchall()
            return [row['meta_key'] for row in rows]
