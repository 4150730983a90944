"""
Facet Result Model

Groups flat aggregation rows into per-facet value lists, optionally nested
into a tree for hierarchical taxonomies.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional


ORDERBY_ENUM = ('count', 'value')
ORDER_ENUM = ('DESC', 'ASC')


def _natural_key(value: str) -> List[Any]:
    return [(0, int(part), '') if part.isdigit() else (1, 0, part.lower())
            for part in re.split(r'(\d+)', str(value)) if part]


@dataclass
class FacetValue:
    """One value of a facet with its count in the current result set."""
    id: str
    type: str
    facet: str
    value: str
    label: str
    parent: str = ''
    count: int = 0
    active: bool = False
    children: List['FacetValue'] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'FacetValue':
        facet = row.get('facet') or ''
        value = '' if row.get('value') is None else str(row.get('value'))
        return cls(
            id=row.get('id') or f"facet-{facet}-{value}",
            type=row.get('type') or '',
            facet=facet,
            value=value,
            label='' if row.get('label') is None else str(row.get('label')),
            parent=row.get('parent') or '',
            count=int(row.get('count') or 0),
            active=bool(row.get('active', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'facet': self.facet,
            'value': self.value,
            'label': self.label,
            'parent': self.parent,
            'count': self.count,
            'active': self.active,
            'children': [child.to_dict() for child in self.children],
        }


class Facet:
    """A facet and its values."""

    def __init__(self, name: str, label: str = '', hierarchical: bool = False,
                 orderby: str = 'count', order: str = 'DESC'):
        self.name = name
        self.label = label or name
        self.hierarchical = hierarchical
        self.orderby = orderby if orderby in ORDERBY_ENUM else ORDERBY_ENUM[0]
        order = (order or '').upper()
        self.order = order if order in ORDER_ENUM else ORDER_ENUM[0]
        self.filters: List[FacetValue] = []
        self.active_filters: List[FacetValue] = []
        self.active = False

    def add(self, value: FacetValue) -> List[FacetValue]:
        if value.active:
            self.active = True
        self.filters.append(value)
        return self.filters

    def _walk(self, values: List[FacetValue] = None) -> Iterator[FacetValue]:
        for value in self.filters if values is None else values:
            yield value
            yield from self._walk(value.children)

    def _flatten(self) -> List[FacetValue]:
        flat = list(self._walk())
        for value in flat:
            value.children = []
        return flat

    def build_tree(self) -> List[FacetValue]:
        """
        Nest values under the sibling whose value equals their parent.

        Values without a matching parent become roots. A value whose parent
        link would close a cycle is promoted to a root, so every value stays
        in the tree.
        """
        if not self.hierarchical:
            return self.filters

        flat = self._flatten()
        by_value: Dict[str, FacetValue] = {}
        for item in flat:
            by_value.setdefault(item.value, item)

        attached_to: Dict[int, FacetValue] = {}
        roots = []

        for item in flat:
            parent = by_value.get(item.parent) if item.parent else None
            linkable = parent is not None

            node = parent
            while linkable and node is not None:
                if node is item:
                    linkable = False
                node = attached_to.get(id(node))

            if linkable:
                attached_to[id(item)] = parent
                parent.children.append(item)
            else:
                roots.append(item)

        self.filters = roots
        return self.filters

    def sort(self, orderby: str = None, order: str = None):
        """Re-sort values, recursively, by count (numeric) or value (natural)."""
        if orderby in ORDERBY_ENUM:
            self.orderby = orderby
        if order and order.upper() in ORDER_ENUM:
            self.order = order.upper()

        reverse = self.order == 'DESC'
        if self.orderby == 'count':
            key = lambda item: item.count
        else:
            key = lambda item: _natural_key(item.value)

        def sort_level(values: List[FacetValue]):
            values.sort(key=key, reverse=reverse)
            for item in values:
                if item.children:
                    sort_level(item.children)

        sort_level(self.filters)

    def show_all(self, provider) -> int:
        """
        Backfill values missing from the current result set as zero counts.

        Returns:
            Number of values added
        """
        missing = provider.get_other_filters(self) or {}
        row_type = self.filters[0].type if self.filters else provider.get_facet_type(self.name)

        for value, label in missing.items():
            self.filters.append(FacetValue(
                id=f"facet-{self.name}-{value}",
                type=row_type,
                facet=self.name,
                value=str(value),
                label=str(label),
                parent=provider.get_value_parent(self.name, value) if self.hierarchical else '',
                count=0,
            ))

        if missing:
            if self.hierarchical:
                self.build_tree()
            self.sort()

        return len(missing)

    def values(self) -> List[str]:
        """Unique values of every entry, children included."""
        return list(dict.fromkeys(item.value for item in self._walk()))

    def mark_active(self, active_values: List[str]):
        wanted = set(active_values)
        for item in self._walk():
            item.active = item.value in wanted
        self.active = any(item.active for item in self._walk())

    def get_active_filters(self) -> List[FacetValue]:
        """Flat list of active values, children included."""
        self.active_filters = [item for item in self._walk() if item.active]
        return self.active_filters

    def active_count(self) -> int:
        return len(self.get_active_filters())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'label': self.label,
            'hierarchical': self.hierarchical,
            'active': self.active,
            'filters': [item.to_dict() for item in self.filters],
        }

    def __iter__(self) -> Iterator[FacetValue]:
        return iter(self.filters)

    def __len__(self) -> int:
        return len(self.filters)

    def __repr__(self) -> str:
        return f"Facet(name={self.name!r}, values={len(self.filters)})"


class FacetSet:
    """Ordered mapping of facet name to Facet, built per query."""

    def __init__(self):
        self._data: Dict[str, Facet] = {}

    def get(self, name: str, default: Optional[Facet] = None) -> Optional[Facet]:
        return self._data.get(name, default)

    def set(self, name: str, facet: Facet):
        self._data[name] = facet

    def remove(self, name: str) -> bool:
        return self._data.pop(name, None) is not None

    def keys(self):
        return self._data.keys()

    def values(self):
        return self._data.values()

    def items(self):
        return self._data.items()

    def __getitem__(self, name: str) -> Facet:
        return self._data[name]

    def __setitem__(self, name: str, facet: Facet):
        self.set(name, facet)

    def __delitem__(self, name: str):
        del self._data[name]

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def get_active_filters(self) -> List[FacetValue]:
        active = []
        for facet in self._data.values():
            active.extend(facet.get_active_filters())
        return active

    def get_active_filters_count(self) -> int:
        return len(self.get_active_filters())

    def to_dict(self) -> Dict[str, Any]:
        return {name: facet.to_dict() for name, facet in self._data.items()}
