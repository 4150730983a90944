"""
facetkit - faceted index and query engine for content stores.
"""

from .engine import FacetEngine
from .facets import Facet, FacetSet, FacetValue
from .models import FacetRow, TermSnapshot
from .query import FacetQuery

__version__ = "0.1.0"

__all__ = [
    'FacetEngine',
    'Facet',
    'FacetSet',
    'FacetValue',
    'FacetRow',
    'TermSnapshot',
    'FacetQuery',
]
