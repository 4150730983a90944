"""
Search Engine Clients

Minimal HTTP clients for the external search engines the adapter providers
read aggregations from: Elasticsearch ``_search`` and Solr ``select``.
"""

import logging
import requests
from typing import Any, Dict, Optional
from urllib.parse import urljoin

from .exceptions import SearchClientError
from .utils import retry_on_search_failure


class SearchClient:
    """Shared session, timeout and retry handling."""

    def __init__(self, base_url: str, timeout: float = 30.0, max_retries: int = 3,
                 base_delay: float = 0.5):
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': 'facetkit/0.1.0',
            'Accept': 'application/json'
        })
        self.logger = logging.getLogger(__name__)
        self.retry = retry_on_search_failure(
            max_attempts=max_retries, base_delay=base_delay, logger=self.logger
        )

    def _request(self, method: str, endpoint: str, params: Optional[Dict] = None,
                 json_body: Optional[Dict] = None) -> Dict[str, Any]:
        """
        Send a request and decode the JSON response.

        Raises:
            SearchClientError: when the request still fails after all retries
                or the response is not JSON
        """
        url = urljoin(self.base_url, endpoint)

        @self.retry
        def send() -> requests.Response:
            response = self.session.request(
                method, url, params=params, json=json_body, timeout=self.timeout
            )
            response.raise_for_status()
            return response

        try:
            response = send()
        except requests.exceptions.RequestException as e:
            status_code = e.response.status_code if getattr(e, 'response', None) is not None else None
            raise SearchClientError(f"{method} {url} failed: {e}", status_code=status_code) from e

        try:
            return response.json()
        except ValueError as e:
            raise SearchClientError(f"{method} {url} returned invalid JSON",
                                    status_code=response.status_code) from e


class ElasticsearchClient(SearchClient):
    """Client for one Elasticsearch index."""

    def __init__(self, base_url: str = "http://localhost:9200/", index: str = "content", **kwargs):
        super().__init__(base_url, **kwargs)
        self.index = index

    def search(self, body: Dict[str, Any]) -> Dict[str, Any]:
        self.logger.debug(f"Searching {self.index} with aggregations {list(body.get('aggs', {}))}")
        return self._request('POST', f"{self.index}/_search", json_body=body)


class SolrClient(SearchClient):
    """Client for one Solr core."""

    def __init__(self, base_url: str = "http://localhost:8983/solr/", core: str = "content", **kwargs):
        super().__init__(base_url, **kwargs)
        self.core = core

    def select(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = dict(params)
        params.setdefault('wt', 'json')
        return self._request('GET', f"{self.core}/select", params=params)
