"""
Incremental Indexer

Keeps the facet index in step with the content store by reacting to change
notifications. Every handler touches one object or one facet value.
"""

import logging
from typing import Iterable, Optional

from .content import ContentStore
from .extractor import FacetDiff, FacetExtractor
from .index import FacetIndex
from .models import AUTHOR, TAXONOMY, TermSnapshot


class IncrementalIndexer:
    """Notification handlers that apply minimal index changes."""

    def __init__(self, extractor: FacetExtractor, index: FacetIndex, content: ContentStore,
                 ignored_kinds: Iterable[str] = ()):
        self.extractor = extractor
        self.index = index
        self.content = content
        self.ignored_kinds = set(ignored_kinds)
        self.logger = logging.getLogger(__name__)

    def _should_index(self, object_id: int) -> bool:
        obj = self.content.get_object(object_id)
        if obj is not None and obj.kind in self.ignored_kinds:
            self.logger.debug(f"Skipping object {object_id} of ignored kind {obj.kind}")
            return False
        return True

    def on_object_saved(self, object_id: int) -> Optional[FacetDiff]:
        """An object was created or updated."""
        if not self._should_index(object_id):
            return None
        return self.extractor.index_object(object_id)

    def on_object_deleted(self, object_id: int) -> int:
        """An object was permanently deleted."""
        deleted = self.index.delete_object(object_id)
        self.logger.debug(f"Removed {deleted} facet rows of deleted object {object_id}")
        return deleted

    def on_object_terms_set(self, object_id: int, taxonomy: str = None) -> Optional[FacetDiff]:
        """The terms of an object changed in some taxonomy."""
        if not self._should_index(object_id):
            return None
        return self.extractor.index_object(object_id)

    def on_term_deleted(self, taxonomy: str, slug: str) -> int:
        """A term was deleted; drop its value from every object at once."""
        deleted = self.index.delete_facet_value(taxonomy, slug)
        self.logger.info(f"Removed {deleted} rows for deleted term {taxonomy}/{slug}")
        return deleted

    def on_term_edited(self, taxonomy: str, old: TermSnapshot, new: TermSnapshot) -> int:
        """
        A term changed its slug, name or parent.

        Rows are patched in place where they match the old slug and parent.
        Rows not indexed yet are left for the next reindex of their object.

        Returns:
            Number of rows updated
        """
        old_values = old.as_index_values()
        new_values = new.as_index_values()
        changes = {key: value for key, value in new_values.items() if old_values[key] != value}

        if not changes:
            return 0

        updated = self.index.update(changes, {
            'type': TAXONOMY,
            'facet': taxonomy,
            'value': old.slug,
            'parent': old.parent,
        })

        self.logger.info(f"Updated {updated} rows for edited term {taxonomy}/{old.slug}")
        return updated

    def _parent_slug(self, parent_id: Optional[int]) -> str:
        parent = self.content.get_term(parent_id) if parent_id else None
        return parent.slug if parent else ''

    def before_term_update(self, taxonomy: str, term_id: int, slug: str = None,
                           name: str = None, parent_id: int = None) -> int:
        """
        Call before the content store applies a term edit.

        The old snapshot is read from the store while it still holds the
        previous values. Arguments left as None keep their current value.
        """
        term = self.content.get_term(term_id)
        if term is None or term.taxonomy != taxonomy:
            return 0

        old = TermSnapshot(term.slug, term.name, self._parent_slug(term.parent))
        new = TermSnapshot(
            slug if slug is not None else term.slug,
            name if name is not None else term.name,
            self._parent_slug(parent_id) if parent_id is not None else old.parent,
        )
        return self.on_term_edited(taxonomy, old, new)

    def on_author_renamed(self, login: str, display_name: str) -> int:
        """An author's display name changed."""
        updated = self.index.update_label({'type': AUTHOR, 'value': login}, display_name)
        self.logger.info(f"Relabelled {updated} rows for author {login}")
        return updated
