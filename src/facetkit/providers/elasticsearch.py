"""
Elasticsearch provider: reads facet counts from terms aggregations.
"""

import copy
from typing import Any, Dict, List, Optional

from ..config import FacetSettings
from ..content import ContentStore
from ..models import AUTHOR, METADATA, OBJECT_KIND, TAXONOMY
from ..query import FacetQuery
from ..search_client import ElasticsearchClient
from .base import AbstractProvider


AGGREGATION_SIZE = 10000


class ElasticsearchProvider(AbstractProvider):
    """
    Facets from an Elasticsearch search response.

    The aggregations are added to the search body before the search runs;
    afterwards the buckets are read back from the response stored on the
    query. Taxonomy buckets are keyed by term slug, author buckets by display
    name.
    """

    name = 'elasticsearch'

    def __init__(self, settings: FacetSettings, content: ContentStore,
                 client: Optional[ElasticsearchClient] = None):
        super().__init__(settings, content)
        self.client = client

    def field_for(self, facet: str) -> Optional[str]:
        facet_type = self.get_facet_type(facet)

        if facet_type == OBJECT_KIND:
            return 'kind.raw'
        if facet_type == AUTHOR:
            return 'author.display_name.raw'
        if facet_type == TAXONOMY:
            return f"terms.{facet}.slug"
        if facet_type == METADATA and facet in self.get_meta_keys():
            return f"meta.{facet}.raw"
        return None

    def build_aggregations(self, facets: Optional[List[str]] = None) -> Dict[str, Any]:
        """Terms aggregations named after the facet keys."""
        aggregations = {}

        for facet in facets or list(self.get_facets()):
            field = self.field_for(facet)
            if field:
                aggregations[facet] = {'terms': {'field': field, 'size': AGGREGATION_SIZE}}

        return aggregations

    def apply_to_request(self, body: Dict[str, Any],
                         facets: Optional[List[str]] = None) -> Dict[str, Any]:
        """Return a copy of a search body with the facet aggregations added."""
        body = copy.deepcopy(body) if body else {}
        aggregations = body.setdefault('aggs', {})
        aggregations.update(self.build_aggregations(facets))
        return body

    def search(self, query: FacetQuery, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run the primary search with facet aggregations and keep the response
        on the query for get_query_facets.

        Raises:
            SearchClientError: if the search request fails
        """
        if self.client is None:
            raise ValueError("ElasticsearchProvider.search needs a client")

        enabled = self.get_facets()
        requested = [name for name in (query.facets or list(enabled)) if name in enabled]

        query.search_response = self.client.search(self.apply_to_request(body, requested))
        return query.search_response

    def get_query_facets(self, query: FacetQuery,
                         facets: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        self.reset_lookups()
        response = query.search_response
        if not isinstance(response, dict):
            return []

        aggregations = response.get('aggregations')
        if not isinstance(aggregations, dict):
            return []

        rows = []
        for facet in facets or list(self.get_facets()):
            aggregation = aggregations.get(facet)
            buckets = aggregation.get('buckets') if isinstance(aggregation, dict) else None
            if not isinstance(buckets, list):
                continue

            pairs = []
            for bucket in buckets:
                if not isinstance(bucket, dict) or bucket.get('key') is None:
                    continue
                try:
                    count = int(bucket.get('doc_count', 0))
                except (TypeError, ValueError):
                    continue
                pairs.append((str(bucket['key']), count))

            rows.extend(self._bucket_rows(facet, pairs, terms_by='slug'))

        orderby, order = self.resolve_ordering(query)
        return self.sort_rows(rows, orderby, order)
