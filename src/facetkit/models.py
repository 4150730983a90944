"""
Facet Data Model

Value types shared by the index, the extractor and the providers.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Mapping, Optional


# Row types stored in the ``type`` column
OBJECT_KIND = 'object_kind'
AUTHOR = 'author'
TAXONOMY = 'taxonomy'
METADATA = 'metadata'

ROW_TYPES = (OBJECT_KIND, AUTHOR, TAXONOMY, METADATA)

# Facet keys for the two built-in dimensions
OBJECT_KIND_FACET = 'object_kind'
AUTHOR_FACET = 'author'

DEFAULT_OBJECT_TYPE = 'object'


@dataclass(frozen=True)
class FacetRow:
    """One (object, dimension, value) tuple of the denormalized index.

    Equality and hashing cover every column except the storage ``id``, so a
    row read back from the index compares equal to the freshly computed row
    it was inserted from.
    """
    object_id: int
    object_type: str
    type: str
    facet: str
    value: str
    label: str
    parent: str = ''
    id: Optional[int] = field(default=None, compare=False)

    @classmethod
    def from_db_row(cls, row: Mapping[str, Any]) -> 'FacetRow':
        """Create a FacetRow from a sqlite3.Row or dict read from the index."""
        return cls(
            object_id=int(row['object_id']),
            object_type=row['object_type'] or DEFAULT_OBJECT_TYPE,
            type=row['type'] or '',
            facet=row['facet'] or '',
            value='' if row['value'] is None else str(row['value']),
            label='' if row['label'] is None else str(row['label']),
            parent='' if row['parent'] is None else str(row['parent']),
            id=row['id'],
        )

    def to_dict(self, include_id: bool = False) -> Dict[str, Any]:
        """Column mapping for storage; the id is left out unless asked for."""
        data = asdict(self)
        if not include_id:
            data.pop('id')
        return data


@dataclass(frozen=True)
class FacetDefinition:
    """A configured, enabled facet dimension."""
    key: str
    label: str
    kind: str


@dataclass(frozen=True)
class TermSnapshot:
    """The indexed view of a term: slug, display name and parent slug."""
    slug: str
    name: str
    parent: str = ''

    def as_index_values(self) -> Dict[str, str]:
        return {'value': self.slug, 'label': self.name, 'parent': self.parent}
