"""
Facet Extractor

Computes the complete current set of facet rows for one content object and
diffs it against what the index holds.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from .config import FacetSettings
from .content import ContentStore
from .index import FacetIndex
from .models import (
    AUTHOR, AUTHOR_FACET, DEFAULT_OBJECT_TYPE, METADATA, OBJECT_KIND,
    OBJECT_KIND_FACET, TAXONOMY, FacetRow
)


SCALAR_TYPES = (str, int, float, bool)


def diff_rows(stored: Iterable[FacetRow],
              candidates: Iterable[FacetRow]) -> Tuple[List[FacetRow], List[FacetRow]]:
    """
    Reconcile stored rows with freshly computed candidates.

    Rows compare by every column except the storage id. Both results keep the
    order of their source sequence; duplicate candidates are collapsed.

    Returns:
        (unindexed, deleted): candidates missing from storage, and stored
        rows no longer among the candidates
    """
    stored = list(stored)
    unique_candidates = list(dict.fromkeys(candidates))

    stored_set = set(stored)
    candidate_set = set(unique_candidates)

    unindexed = [row for row in unique_candidates if row not in stored_set]
    deleted = [row for row in stored if row not in candidate_set]
    return unindexed, deleted


@dataclass
class FacetDiff:
    """The outcome of extracting one object."""
    object_id: int
    stored: List[FacetRow] = field(default_factory=list)
    candidates: List[FacetRow] = field(default_factory=list)
    unindexed: List[FacetRow] = field(default_factory=list)
    deleted: List[FacetRow] = field(default_factory=list)
    inserted_count: int = 0
    deleted_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.unindexed and not self.deleted


class FacetExtractor:
    """Builds facet rows for content objects and keeps the index in step."""

    def __init__(self, settings: FacetSettings, content: ContentStore, index: FacetIndex,
                 object_type: str = DEFAULT_OBJECT_TYPE):
        self.settings = settings
        self.content = content
        self.index = index
        self.object_type = object_type
        self.logger = logging.getLogger(__name__)

    def _row(self, object_id: int, row_type: str, facet: str, value, label, parent: str = '') -> FacetRow:
        return FacetRow(
            object_id=int(object_id),
            object_type=self.object_type,
            type=row_type,
            facet=facet,
            value=str(value),
            label=str(label),
            parent=parent or '',
        )

    def candidate_rows(self, object_id: int) -> List[FacetRow]:
        """Compute the rows the object should have right now."""
        obj = self.content.get_object(object_id)
        if obj is None:
            self.logger.debug(f"Object {object_id} not found, no facet rows")
            return []

        rows: List[FacetRow] = []

        if self.settings.object_kind and obj.kind:
            kind = self.content.get_kind(obj.kind)
            label = kind.label if kind and kind.label else obj.kind
            rows.append(self._row(obj.id, OBJECT_KIND, OBJECT_KIND_FACET, obj.kind, label))

        if self.settings.author and obj.author_id:
            author = self.content.get_author(obj.author_id)
            if author:
                rows.append(self._row(obj.id, AUTHOR, AUTHOR_FACET, author.login, author.display_name))

        for taxonomy in self.settings.taxonomies:
            for term in self.content.get_object_terms(obj.id, taxonomy):
                parent = self.content.get_term(term.parent) if term.parent else None
                rows.append(self._row(
                    obj.id, TAXONOMY, taxonomy, term.slug, term.name,
                    parent.slug if parent else ''
                ))

        for key in self.settings.meta_keys:
            for value in self.content.get_meta(obj.id, key):
                if not isinstance(value, SCALAR_TYPES):
                    continue
                rows.append(self._row(obj.id, METADATA, key, value, value))

        return rows

    def extract(self, object_id: int) -> FacetDiff:
        """Compare stored rows with freshly computed ones without writing."""
        stored = self.index.get_object(object_id, self.object_type)
        candidates = self.candidate_rows(object_id)
        unindexed, deleted = diff_rows(stored, candidates)

        return FacetDiff(
            object_id=int(object_id),
            stored=stored,
            candidates=candidates,
            unindexed=unindexed,
            deleted=deleted,
        )

    def apply(self, diff: FacetDiff) -> FacetDiff:
        """Insert and delete the rows of a diff. An empty diff touches nothing."""
        if diff.is_empty:
            return diff

        if diff.unindexed:
            diff.inserted_count = self.index.insert(diff.unindexed)
        if diff.deleted:
            diff.deleted_count = self.index.delete_multi(row.id for row in diff.deleted)

        self.logger.debug(
            f"Object {diff.object_id}: inserted {diff.inserted_count}, "
            f"deleted {diff.deleted_count} facet rows"
        )
        return diff

    def index_object(self, object_id: int) -> FacetDiff:
        """Extract one object and apply the resulting diff."""
        return self.apply(self.extract(object_id))
