"""
Provider base class.

A provider computes facet aggregations for a query. Every provider returns
rows of the same shape: id, type, facet, value, label, parent and count,
where id is ``facet-<facet>-<value>``.
"""

import re
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..config import FacetSettings
from ..content import Author, ContentStore, Term
from ..facets import ORDER_ENUM, ORDERBY_ENUM, Facet, FacetSet, FacetValue
from ..models import (
    AUTHOR, AUTHOR_FACET, METADATA, OBJECT_KIND, OBJECT_KIND_FACET, TAXONOMY, FacetDefinition
)
from ..query import FacetQuery


def humanize(text: str) -> str:
    """Turn a machine key like ``release_year`` into ``Release Year``."""
    text = str(text).strip().lower()
    text = re.sub(r'[\-_.+]', ' ', text)
    text = re.sub(r'[^a-z0-9\s]', '', text)
    text = re.sub(r'\s+', ' ', text).strip()
    return ' '.join(word.capitalize() for word in text.split(' ')) if text else ''


def make_row(facet: str, row_type: str, value: Any, label: Any, parent: str = '',
             count: int = 0) -> Dict[str, Any]:
    value = str(value)
    return {
        'id': f"facet-{facet}-{value}",
        'type': row_type,
        'facet': facet,
        'value': value,
        'label': str(label),
        'parent': parent or '',
        'count': int(count),
    }


class AbstractProvider(ABC):
    """Shared facet configuration, lookups and FacetSet assembly."""

    name = 'abstract'

    def __init__(self, settings: FacetSettings, content: ContentStore):
        self.settings = settings
        self.content = content
        self.logger = logging.getLogger(__name__)
        self._lookup_cache: Dict[Tuple, Any] = {}

    # ===== CONFIGURATION =====

    def can_facet_object_kind(self) -> bool:
        return self.settings.object_kind

    def can_facet_author(self) -> bool:
        return self.settings.author

    def get_taxonomies(self) -> List[str]:
        return list(self.settings.taxonomies)

    def get_meta_keys(self) -> List[str]:
        return list(self.settings.meta_keys)

    def get_facets(self) -> Dict[str, str]:
        """Enabled facet keys mapped to their labels, in display order."""
        facets: Dict[str, str] = {}

        if self.can_facet_object_kind():
            facets[OBJECT_KIND_FACET] = 'Type'

        if self.can_facet_author():
            facets[AUTHOR_FACET] = 'Author'

        for name in self.get_taxonomies():
            taxonomy = self.content.get_taxonomy(name)
            if taxonomy:
                facets[name] = taxonomy.label

        for key in self.get_meta_keys():
            facets.setdefault(key, humanize(key))

        return facets

    def get_facet_definitions(self) -> List[FacetDefinition]:
        return [FacetDefinition(key, label, self.get_facet_type(key))
                for key, label in self.get_facets().items()]

    def get_facet_type(self, facet: str) -> str:
        """Row type stored for a facet key."""
        if facet == OBJECT_KIND_FACET and self.can_facet_object_kind():
            return OBJECT_KIND
        if facet == AUTHOR_FACET and self.can_facet_author():
            return AUTHOR
        if facet in self.get_taxonomies():
            return TAXONOMY
        return METADATA

    def is_hierarchical(self, facet: str) -> bool:
        if facet not in self.get_taxonomies():
            return False
        taxonomy = self.content.get_taxonomy(facet)
        return bool(taxonomy and taxonomy.hierarchical)

    def get_value_parent(self, facet: str, value: str) -> str:
        """Parent slug of a taxonomy term value, or an empty string."""
        if self.get_facet_type(facet) != TAXONOMY:
            return ''
        terms = self._get_terms_by_slug(facet, [value])
        return self._parent_slug(terms[value]) if value in terms else ''

    # ===== ORDERING =====

    @staticmethod
    def normalize_orderby(orderby: Optional[str]) -> str:
        orderby = (orderby or '').lower()
        return orderby if orderby in ORDERBY_ENUM else ORDERBY_ENUM[0]

    @staticmethod
    def normalize_order(order: Optional[str]) -> str:
        order = (order or '').upper()
        return order if order in ORDER_ENUM else ORDER_ENUM[0]

    def resolve_ordering(self, query: FacetQuery) -> Tuple[str, str]:
        """The query's ordering if given, else the configured one, validated."""
        orderby = query.facet_orderby or self.settings.orderby
        order = query.facet_order or self.settings.order
        return self.normalize_orderby(orderby), self.normalize_order(order)

    @staticmethod
    def sort_rows(rows: List[Dict[str, Any]], orderby: str, order: str) -> List[Dict[str, Any]]:
        """Order rows the way the native aggregation query does."""
        rows = sorted(rows, key=lambda row: row['value'])
        return sorted(rows, key=lambda row: row[orderby], reverse=order == 'DESC')

    # ===== AGGREGATION =====

    @abstractmethod
    def get_query_facets(self, query: FacetQuery,
                         facets: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Aggregated facet rows for the objects matching the query."""

    def get_other_filters(self, facet: Union[Facet, str]) -> Dict[str, str]:
        """
        Values of a facet that exist in the content store but are absent
        from the current result, mapped to their labels.
        """
        name = facet.name if isinstance(facet, Facet) else facet
        present = facet.values() if isinstance(facet, Facet) else []
        facet_type = self.get_facet_type(name)

        if facet_type == OBJECT_KIND:
            return {kind.name: kind.label for kind in self.content.get_kinds()
                    if kind.name not in present}

        if facet_type == AUTHOR:
            return {author.login: author.display_name for author in self.content.get_authors()
                    if author.login not in present}

        if facet_type == TAXONOMY:
            return {term.slug: term.name for term in self.content.get_terms(name, exclude_slugs=present)}

        missing = {}
        for value in self.content.get_meta_values(name):
            if isinstance(value, (str, int, float, bool)) and str(value) not in present:
                missing[str(value)] = str(value)
        return missing

    # ===== LOOKUPS =====

    def reset_lookups(self):
        """Forget memoized lookups; each request starts from the current content store."""
        self._lookup_cache.clear()

    def _memoized(self, key: Tuple, loader):
        if key not in self._lookup_cache:
            self._lookup_cache[key] = loader()
        return self._lookup_cache[key]

    def _get_terms_by_slug(self, taxonomy: str, slugs: Iterable[str]) -> Dict[str, Term]:
        slugs = tuple(sorted(set(slugs)))
        return self._memoized(
            ('terms_by_slug', taxonomy, slugs),
            lambda: {term.slug: term for term in self.content.get_terms_by_slug(taxonomy, slugs)}
        )

    def _get_terms_by_name(self, taxonomy: str, names: Iterable[str]) -> Dict[str, Term]:
        names = tuple(sorted(set(names)))
        return self._memoized(
            ('terms_by_name', taxonomy, names),
            lambda: {term.name: term for term in self.content.get_terms_by_name(taxonomy, names)}
        )

    def _get_authors_by_display_name(self, display_names: Iterable[str]) -> Dict[str, Author]:
        display_names = tuple(sorted(set(display_names)))
        return self._memoized(
            ('authors', display_names),
            lambda: {author.display_name: author
                     for author in self.content.get_authors_by_display_name(display_names)}
        )

    def _parent_slug(self, term: Term) -> str:
        if not term.parent:
            return ''
        parent = self._memoized(('term', term.parent), lambda: self.content.get_term(term.parent))
        return parent.slug if parent else ''

    def _bucket_rows(self, facet: str, buckets: List[Tuple[str, int]],
                     terms_by: str = 'slug') -> List[Dict[str, Any]]:
        """
        Reshape (key, count) buckets of an external engine into facet rows.

        Author buckets carry display names and become login values. Taxonomy
        buckets carry slugs or names, depending on the engine, and are
        resolved to slug values with the term name as label. Metadata values
        are their own label, as in the native index.
        """
        if not buckets:
            return []

        facet_type = self.get_facet_type(facet)
        keys = [key for key, _ in buckets]
        rows = []

        if facet_type == AUTHOR:
            authors = self._get_authors_by_display_name(keys)
        elif facet_type == TAXONOMY:
            if terms_by == 'name':
                terms = self._get_terms_by_name(facet, keys)
            else:
                terms = self._get_terms_by_slug(facet, keys)

        for key, count in buckets:
            if facet_type == OBJECT_KIND:
                kind = self._memoized(('kind', key), lambda: self.content.get_kind(key))
                rows.append(make_row(facet, facet_type, key, kind.label if kind else key, count=count))
            elif facet_type == AUTHOR:
                author = authors.get(key)
                rows.append(make_row(facet, facet_type, author.login if author else key, key, count=count))
            elif facet_type == TAXONOMY:
                term = terms.get(key)
                if term:
                    rows.append(make_row(facet, facet_type, term.slug, term.name,
                                         self._parent_slug(term), count))
                else:
                    rows.append(make_row(facet, facet_type, key, key, count=count))
            else:
                rows.append(make_row(facet, facet_type, key, key, count=count))

        return rows

    # ===== FACET SET =====

    def build_facet_set(self, query: FacetQuery, rows: List[Dict[str, Any]],
                        facets: List[str]) -> FacetSet:
        """Group rows into Facets, nest hierarchies and mark active filters."""
        labels = self.get_facets()
        orderby, order = self.resolve_ordering(query)
        facet_set = FacetSet()

        def facet_for(name: str) -> Facet:
            if name not in facet_set:
                facet_set[name] = Facet(
                    name=name,
                    label=labels.get(name, name),
                    hierarchical=self.is_hierarchical(name),
                    orderby=orderby,
                    order=order,
                )
            return facet_set[name]

        for row in rows:
            if row.get('facet'):
                facet_for(row['facet']).add(FacetValue.from_row(row))

        if self.settings.show_all:
            for name in facets:
                facet_for(name)

        for name, facet in facet_set.items():
            if facet.hierarchical:
                facet.build_tree()
            if self.settings.show_all:
                facet.show_all(self)
            facet.mark_active(query.get_filters(name))
            facet.get_active_filters()

        return facet_set

    def apply(self, query: FacetQuery) -> Optional[FacetSet]:
        """
        Compute facets for a query and attach them as ``query.facet_set``.

        Faceting never fails the query it decorates: any error is logged and
        the query is left without facets.
        """
        self.reset_lookups()
        try:
            enabled = self.get_facets()
            requested = [name for name in (query.facets or list(enabled)) if name in enabled]
            if not requested:
                return None

            rows = self.get_query_facets(query, requested)
            if not rows and not self.settings.show_all:
                return None

            query.facet_set = self.build_facet_set(query, rows, requested)
            return query.facet_set
        except Exception:
            self.logger.exception(f"Failed to compute facets with the {self.name} provider")
            return None
