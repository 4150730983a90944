"""
Pytest configuration and shared fixtures.
"""

import pytest
import tempfile
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from facetkit.config import FacetSettings
from facetkit.content import ContentStore
from facetkit.extractor import FacetExtractor
from facetkit.index import FacetIndex
from facetkit.indexer import IncrementalIndexer
from facetkit.providers import NativeProvider
from facetkit.storage import OptionStore


def seed_content(store: ContentStore) -> dict:
    """
    Populate a small corpus.

    10: article by jdoe, category news, tag python, year 2020
    11: article by rroe, category sports + local (child of news), tags python + sqlite, year 2021
    12: page by jdoe, category news, year 2020
    13: revision (ignored kind)
    """
    store.add_kind('article', 'Articles')
    store.add_kind('page', 'Pages')
    store.add_kind('revision', 'Revisions', public=False)

    ids = {
        'jdoe': store.add_author('jdoe', 'Jane Doe'),
        'rroe': store.add_author('rroe', 'Rick Roe'),
    }

    store.add_taxonomy('category', 'Categories', hierarchical=True)
    store.add_taxonomy('tag', 'Tags')

    ids['news'] = store.add_term('category', 'news', 'News')
    ids['sports'] = store.add_term('category', 'sports', 'Sports')
    ids['local'] = store.add_term('category', 'local', 'Local', parent=ids['news'])
    ids['python'] = store.add_term('tag', 'python', 'Python')
    ids['sqlite'] = store.add_term('tag', 'sqlite', 'SQLite')

    store.add_object('article', ids['jdoe'], 'Hello', object_id=10)
    store.add_object('article', ids['rroe'], 'Match report', object_id=11)
    store.add_object('page', ids['jdoe'], 'About', object_id=12)
    store.add_object('revision', ids['jdoe'], 'Hello (draft)', object_id=13)

    store.set_object_terms(10, 'category', [ids['news']])
    store.set_object_terms(10, 'tag', [ids['python']])
    store.set_object_terms(11, 'category', [ids['sports'], ids['local']])
    store.set_object_terms(11, 'tag', [ids['python'], ids['sqlite']])
    store.set_object_terms(12, 'category', [ids['news']])

    store.add_meta(10, 'year', 2020)
    store.add_meta(11, 'year', 2021)
    store.add_meta(12, 'year', 2020)
    store.add_meta(12, 'extra', {'nested': True})

    return ids


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup
    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def content(temp_db):
    """A seeded ContentStore; term and author ids are available as content.ids."""
    store = ContentStore(temp_db)
    store.ids = seed_content(store)
    return store


@pytest.fixture
def index(temp_db):
    """A created facet index."""
    facet_index = FacetIndex(temp_db)
    facet_index.create()
    return facet_index


@pytest.fixture
def options(temp_db):
    return OptionStore(temp_db)


@pytest.fixture
def settings():
    """Every dimension enabled."""
    return FacetSettings(
        object_kind=True,
        author=True,
        taxonomies=('category', 'tag'),
        meta_keys=('year',),
    )


@pytest.fixture
def extractor(settings, content, index):
    return FacetExtractor(settings, content, index)


@pytest.fixture
def incremental(extractor, index, content, settings):
    return IncrementalIndexer(extractor, index, content, ignored_kinds=settings.ignored_kinds)


@pytest.fixture
def indexed(extractor):
    """Index every non-ignored seeded object."""
    for object_id in (10, 11, 12):
        extractor.index_object(object_id)
    return extractor


@pytest.fixture
def native(settings, content, index):
    return NativeProvider(settings, content, index)
