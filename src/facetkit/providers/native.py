"""
Native provider: aggregates facets from the local facet index.
"""

import re
import sqlite3
from typing import Any, Dict, List, Optional, Tuple, Union

from ..config import FacetSettings
from ..content import OBJECT_TABLE, ContentStore
from ..facets import Facet
from ..index import FacetIndex
from ..models import DEFAULT_OBJECT_TYPE
from ..query import FacetQuery
from .base import AbstractProvider


# ORDER BY cannot take bound parameters; only these expressions are interpolated
ORDER_EXPRESSIONS = {
    'count': 'COUNT(*)',
    'value': 'value',
}

_LEADING_AND = re.compile(r'^AND\s+', re.IGNORECASE)


class NativeProvider(AbstractProvider):
    """Facet aggregation over the SQLite facet index."""

    name = 'native'

    def __init__(self, settings: FacetSettings, content: ContentStore, index: FacetIndex,
                 object_type: str = DEFAULT_OBJECT_TYPE):
        super().__init__(settings, content)
        self.index = index
        self.object_type = object_type

    def build_sub_query(self, query: FacetQuery) -> Tuple[str, List[Any]]:
        """
        The id sub-query selecting the objects the query matches.

        A replacement sub-query from an external ranking source wins over the
        compiled predicate.
        """
        if query.sub_query:
            return query.sub_query, list(query.sub_query_params)

        where = _LEADING_AND.sub('', (query.where or '').strip())
        # An empty predicate means the query is unrestricted: count every object.
        where_sql = f"1 = 1 AND {where}" if where else "1 = 1"
        join = (query.join or '').strip()

        sql = f"SELECT {OBJECT_TABLE}.id FROM {OBJECT_TABLE} {join} WHERE {where_sql}"
        return re.sub(r'\s+', ' ', sql), list(query.params)

    def build_facet_sql(self, query: FacetQuery, facets: List[str]) -> Tuple[str, List[Any]]:
        orderby, order = self.resolve_ordering(query)
        sub_query, sub_params = self.build_sub_query(query)

        sql = f"""
            SELECT
                'facet-' || facet || '-' || value AS id,
                type,
                facet,
                value,
                MAX(label) AS label,
                MAX(parent) AS parent,
                COUNT(*) AS count
            FROM {self.index.table}
            WHERE object_type = ?
            AND object_id IN ({sub_query})
            AND facet IN ({self.index._placeholders(facets)})
            GROUP BY type, facet, value
            ORDER BY {ORDER_EXPRESSIONS[orderby]} {order}, value ASC
        """
        return sql, [self.object_type] + sub_params + list(facets)

    def get_query_facets(self, query: FacetQuery,
                         facets: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """
        Count facet values over the objects matching the query.

        Raises:
            IndexMissingError: if the facet index has not been created
        """
        facets = list(facets or self.get_facets())
        if not facets:
            return []

        sql, params = self.build_facet_sql(query, facets)

        try:
            rows = self.index.fetch_all(sql, params)
        except sqlite3.Error as e:
            self.logger.warning(f"Facet query failed: {e}")
            return []

        return [
            {
                'id': row['id'],
                'type': row['type'],
                'facet': row['facet'],
                'value': row['value'],
                'label': row['label'] or '',
                'parent': '' if row['parent'] is None else str(row['parent']),
                'count': int(row['count']),
            }
            for row in rows
        ]

    def get_other_filters(self, facet: Union[Facet, str]) -> Dict[str, str]:
        """Indexed values of the facet that the current result does not contain."""
        if isinstance(facet, Facet):
            return self.index.get_facet_values(facet.name, exclude=facet.values())
        return self.index.get_facet_values(facet)
