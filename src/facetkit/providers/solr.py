"""
Solr provider: reads facet counts from facet_fields.
"""

from typing import Any, Dict, List, Optional, Tuple

from ..config import FacetSettings
from ..content import ContentStore
from ..models import AUTHOR, METADATA, OBJECT_KIND, TAXONOMY
from ..query import FacetQuery
from ..search_client import SolrClient
from .base import AbstractProvider


# Field names for the two built-in taxonomies; others use <taxonomy>_taxonomy_str
TAXONOMY_FIELDS = {
    'category': 'categories',
    'tag': 'tags',
}


class SolrProvider(AbstractProvider):
    """Facets from a Solr select response. Taxonomy values arrive as term names."""

    name = 'solr'

    def __init__(self, settings: FacetSettings, content: ContentStore,
                 client: Optional[SolrClient] = None):
        super().__init__(settings, content)
        self.client = client

    def field_for(self, facet: str) -> Optional[str]:
        facet_type = self.get_facet_type(facet)

        if facet_type == OBJECT_KIND:
            return 'kind'
        if facet_type == AUTHOR:
            return 'author'
        if facet_type == TAXONOMY:
            return TAXONOMY_FIELDS.get(facet, f"{facet}_taxonomy_str")
        if facet_type == METADATA and facet in self.get_meta_keys():
            return f"{facet}_str"
        return None

    def build_facet_params(self, facets: Optional[List[str]] = None) -> Dict[str, Any]:
        fields = [field for field in map(self.field_for, facets or list(self.get_facets())) if field]
        return {
            'facet': 'true',
            'facet.field': fields,
            'facet.mincount': 1,
            'facet.limit': -1,
        }

    def search(self, query: FacetQuery, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run the primary select with facet parameters and keep the response on
        the query.

        Raises:
            SearchClientError: if the request fails
        """
        if self.client is None:
            raise ValueError("SolrProvider.search needs a client")

        enabled = self.get_facets()
        requested = [name for name in (query.facets or list(enabled)) if name in enabled]

        select_params = dict(params or {})
        select_params.update(self.build_facet_params(requested))

        query.search_response = self.client.select(select_params)
        return query.search_response

    @staticmethod
    def parse_field_values(values: Any) -> List[Tuple[str, int]]:
        """
        Read one facet field: either Solr's flat [value, count, ...] list or
        a value -> count mapping. Trailing boost markers (^) are removed.
        """
        if isinstance(values, dict):
            items = list(values.items())
        elif isinstance(values, list):
            items = list(zip(values[0::2], values[1::2]))
        else:
            return []

        pairs = []
        for value, count in items:
            if value is None:
                continue
            try:
                count = int(count)
            except (TypeError, ValueError):
                continue
            if count < 1:
                continue
            pairs.append((str(value).rstrip('^'), count))
        return pairs

    def get_query_facets(self, query: FacetQuery,
                         facets: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        self.reset_lookups()
        response = query.search_response
        if not isinstance(response, dict):
            return []

        facet_counts = response.get('facet_counts')
        fields = facet_counts.get('facet_fields') if isinstance(facet_counts, dict) else None
        if not isinstance(fields, dict):
            return []

        rows = []
        for facet in facets or list(self.get_facets()):
            field = self.field_for(facet)
            if not field or field not in fields:
                continue
            rows.extend(self._bucket_rows(facet, self.parse_field_values(fields[field]), terms_by='name'))

        orderby, order = self.resolve_ordering(query)
        return self.sort_rows(rows, orderby, order)
