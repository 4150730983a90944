"""
Facet providers.

Native aggregates from the local facet index; the Elasticsearch and Solr
providers reshape an external engine's aggregations into the same rows.
"""

from .base import AbstractProvider, humanize, make_row
from .native import NativeProvider
from .elasticsearch import ElasticsearchProvider
from .solr import SolrProvider

__all__ = [
    'AbstractProvider',
    'NativeProvider',
    'ElasticsearchProvider',
    'SolrProvider',
    'humanize',
    'make_row',
]
