"""
Facet Query

The result-defining query a provider computes facets for. The query-building
layer fills in the compiled predicate and join fragments; the provider
attaches the resulting FacetSet after execution.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


_LIMIT = re.compile(r'\s+LIMIT\s+\d+(\s*,\s*\d+)?(\s+OFFSET\s+\d+)?\s*;?\s*$', re.IGNORECASE)
_CALC_FOUND_ROWS = re.compile(r'\bSQL_CALC_FOUND_ROWS\b', re.IGNORECASE)
_COLUMN = re.compile(r'^[A-Za-z_][A-Za-z0-9_.]*$')


@dataclass
class FacetQuery:
    """
    A query to compute facets for.

    Attributes:
        where: Compiled predicate fragment, e.g. "AND content_objects.kind = ?"
        join: Compiled join fragment
        params: Values bound to the placeholders of join and where, in order
        facets: Requested facet keys; empty means every enabled facet
        filters: Active filter values per facet key
        facet_orderby: Per-query ordering override (count or value)
        facet_order: Per-query direction override (ASC or DESC)
        sub_query: Replacement id sub-query from an external ranking source
        sub_query_params: Values bound to sub_query
        search_response: Raw response of an external search engine
        facet_set: The computed FacetSet, set by the provider
    """
    where: str = ''
    join: str = ''
    params: List[Any] = field(default_factory=list)
    facets: List[str] = field(default_factory=list)
    filters: Dict[str, List[str]] = field(default_factory=dict)
    facet_orderby: Optional[str] = None
    facet_order: Optional[str] = None
    sub_query: Optional[str] = None
    sub_query_params: List[Any] = field(default_factory=list)
    search_response: Optional[Dict[str, Any]] = None
    facet_set: Any = None

    def get_filters(self, facet: str) -> List[str]:
        """Active filter values of one facet, always as a list of strings."""
        values = self.filters.get(facet) or []
        if isinstance(values, (str, int)):
            values = [values]
        return [str(value) for value in values]

    @classmethod
    def from_search_sql(cls, sql: str, id_column: str = 'id', params: List[Any] = None,
                        **kwargs) -> 'FacetQuery':
        """
        Build a query whose result set comes from an external engine's SQL.

        Pagination and found-rows hints are removed so the facets cover the
        whole result set, not one page of it.
        """
        if not _COLUMN.match(id_column):
            raise ValueError(f"Invalid id column: {id_column!r}")

        sql = _CALC_FOUND_ROWS.sub('', sql.strip())
        sql = _LIMIT.sub('', sql).strip().rstrip(';')

        return cls(
            sub_query=f"SELECT src.{id_column.split('.')[-1]} FROM ({sql}) AS src",
            sub_query_params=list(params or []),
            **kwargs
        )
