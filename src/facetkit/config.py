"""
Configuration Management

Handles environment variables and configuration settings for the facet engine.
"""

import os
import json
import hashlib
import logging
from dataclasses import dataclass, field, asdict
from typing import List, Optional, Tuple
from pathlib import Path
from dotenv import load_dotenv


ORDERBY_OPTIONS = ('count', 'value')
ORDER_OPTIONS = ('DESC', 'ASC')

DEFAULT_IGNORED_KINDS = ('revision', 'menu_item', 'attachment', 'custom_css', 'changeset')

PROVIDER_OPTIONS = ('native', 'elasticsearch', 'solr')


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _parse_list(value: Optional[str], default: Tuple[str, ...] = ()) -> List[str]:
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(',') if item.strip()]


@dataclass(frozen=True)
class FacetSettings:
    """Which dimensions are faceted and how facet values are ordered."""
    object_kind: bool = True
    author: bool = False
    taxonomies: Tuple[str, ...] = ('category', 'tag')
    meta_keys: Tuple[str, ...] = ()
    orderby: str = 'count'
    order: str = 'DESC'
    show_all: bool = False
    ignored_kinds: Tuple[str, ...] = field(default=DEFAULT_IGNORED_KINDS)

    def fingerprint(self) -> str:
        """
        Stable digest of the settings that shape the index.

        Ordering and show-all only affect queries, so changing them does not
        call for a reindex.
        """
        indexed = asdict(self)
        for key in ('orderby', 'order', 'show_all'):
            indexed.pop(key)
        payload = json.dumps(indexed, sort_keys=True, default=list)
        return hashlib.sha1(payload.encode('utf-8')).hexdigest()


class Config:
    """Configuration management class."""

    def __init__(self, env_file: Optional[str] = None):
        """Initialize configuration from environment variables."""
        # Load .env file if it exists
        if env_file:
            load_dotenv(env_file)
        else:
            env_path = Path('.env')
            if env_path.exists():
                load_dotenv(env_path)

        # Data Storage
        self.database_path = os.getenv('DATABASE_PATH', './data/facetkit.db')
        self.facets_table = os.getenv('FACETS_TABLE', 'facets')

        # Facet provider
        self.provider = os.getenv('FACETS_PROVIDER', 'native').lower()
        if self.provider not in PROVIDER_OPTIONS:
            logging.warning(f"Unknown FACETS_PROVIDER {self.provider!r}, using native")
            self.provider = 'native'

        # Facet dimensions
        self.facet_object_kind = _parse_bool(os.getenv('FACETS_OBJECT_KIND'), True)
        self.facet_author = _parse_bool(os.getenv('FACETS_AUTHOR'), False)
        self.facet_taxonomies = _parse_list(os.getenv('FACETS_TAXONOMIES'), ('category', 'tag'))
        self.facet_meta_keys = _parse_list(os.getenv('FACETS_META_KEYS'))
        self.ignored_kinds = _parse_list(os.getenv('FACETS_IGNORED_KINDS'), DEFAULT_IGNORED_KINDS)
        self.show_all = _parse_bool(os.getenv('FACETS_SHOW_ALL'), False)

        # Facet ordering
        self.facet_orderby = os.getenv('FACETS_ORDERBY', 'count').lower()
        if self.facet_orderby not in ORDERBY_OPTIONS:
            logging.warning(f"Invalid FACETS_ORDERBY {self.facet_orderby!r}, using count")
            self.facet_orderby = 'count'

        self.facet_order = os.getenv('FACETS_ORDER', 'DESC').upper()
        if self.facet_order not in ORDER_OPTIONS:
            logging.warning(f"Invalid FACETS_ORDER {self.facet_order!r}, using DESC")
            self.facet_order = 'DESC'

        # Parse batch size with fallback to default
        try:
            self.batch_size = int(os.getenv('BATCH_SIZE', '100'))
        except ValueError:
            self.batch_size = 100
        if self.batch_size < 1:
            self.batch_size = 100

        # External search engine
        self.search_url = os.getenv('SEARCH_URL', 'http://localhost:9200/')
        self.search_index = os.getenv('SEARCH_INDEX', 'content')

        try:
            self.request_timeout = float(os.getenv('REQUEST_TIMEOUT', '30'))
        except ValueError:
            self.request_timeout = 30.0

        try:
            self.max_retries = int(os.getenv('MAX_RETRIES', '3'))
        except ValueError:
            self.max_retries = 3

        # Logging
        self.log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
        self.log_file = os.getenv('LOG_FILE', '')

        # Ensure directories exist
        Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)

    def setup_logging(self):
        """Configure logging based on settings."""
        handlers = [logging.StreamHandler()]
        if self.log_file:
            handlers.append(logging.FileHandler(self.log_file))

        logging.basicConfig(
            level=getattr(logging, self.log_level, logging.INFO),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=handlers
        )

    def get_facet_settings(self) -> FacetSettings:
        """Get the facet settings snapshot passed to extractor and providers."""
        return FacetSettings(
            object_kind=self.facet_object_kind,
            author=self.facet_author,
            taxonomies=tuple(self.facet_taxonomies),
            meta_keys=tuple(self.facet_meta_keys),
            orderby=self.facet_orderby,
            order=self.facet_order,
            show_all=self.show_all,
            ignored_kinds=tuple(self.ignored_kinds),
        )

    def get_storage_config(self) -> dict:
        """Get storage configuration."""
        return {
            'db_path': self.database_path,
            'table': self.facets_table,
            'batch_size': self.batch_size
        }

    def get_search_config(self) -> dict:
        """Get search engine client configuration."""
        return {
            'base_url': self.search_url,
            'index': self.search_index,
            'timeout': self.request_timeout,
            'max_retries': self.max_retries
        }
