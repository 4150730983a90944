"""
Facet Engine

Builds the stores, indexers and the configured provider from a Config.
"""

import logging
from typing import List, Optional

from .batch_indexer import DEFAULT_JOB_ID, BatchIndexer
from .config import Config
from .content import ContentStore
from .extractor import FacetExtractor
from .index import FacetIndex
from .indexer import IncrementalIndexer
from .providers import ElasticsearchProvider, NativeProvider, SolrProvider
from .providers.base import AbstractProvider
from .query import FacetQuery
from .search_client import ElasticsearchClient, SolrClient
from .storage import OptionStore


class FacetEngine:
    """Composition root for one database and one provider."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.logger = logging.getLogger(__name__)

        storage_config = self.config.get_storage_config()
        self.settings = self.config.get_facet_settings()
        self.content = ContentStore(storage_config['db_path'])
        self.index = FacetIndex(storage_config['db_path'], storage_config['table'])
        self.options = OptionStore(storage_config['db_path'])
        self.extractor = FacetExtractor(self.settings, self.content, self.index)
        self.indexer = IncrementalIndexer(
            self.extractor, self.index, self.content, ignored_kinds=self.settings.ignored_kinds
        )
        self.provider = self._create_provider()

    def _create_provider(self) -> AbstractProvider:
        search_config = self.config.get_search_config()
        client_kwargs = {
            'timeout': search_config['timeout'],
            'max_retries': search_config['max_retries'],
        }

        if self.config.provider == ElasticsearchProvider.name:
            client = ElasticsearchClient(search_config['base_url'], search_config['index'], **client_kwargs)
            return ElasticsearchProvider(self.settings, self.content, client)

        if self.config.provider == SolrProvider.name:
            client = SolrClient(search_config['base_url'], search_config['index'], **client_kwargs)
            return SolrProvider(self.settings, self.content, client)

        return NativeProvider(self.settings, self.content, self.index)

    def batch_indexer(self, job_id: str = DEFAULT_JOB_ID, per_page: int = None,
                      kinds: List[str] = None, object_ids: List[int] = None) -> BatchIndexer:
        """A batch indexer for job_id; a parked job keeps its page size unless per_page is given."""
        return BatchIndexer(
            self.extractor, self.index, self.content, self.options,
            settings=self.settings,
            job_id=job_id,
            per_page=per_page,
            kinds=kinds,
            object_ids=object_ids,
            default_per_page=self.config.batch_size,
        )

    def apply(self, query: FacetQuery):
        """Compute and attach the FacetSet for a query."""
        return self.provider.apply(query)
