"""
Exception types raised by the facet engine.
"""


class FacetError(Exception):
    """Base class for facetkit errors."""


class IndexSchemaError(FacetError):
    """The facet index table could not be created or migrated."""


class IndexMissingError(IndexSchemaError):
    """An index-dependent operation ran while the facet table does not exist."""

    def __init__(self, table: str):
        super().__init__(f"Facet index table '{table}' does not exist")
        self.table = table


class SearchClientError(FacetError):
    """A request to an external search engine failed after all retries."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
