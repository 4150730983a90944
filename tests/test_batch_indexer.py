"""
Tests for the resumable batch indexer.
"""

import sqlite3
from unittest.mock import patch

import pytest

from facetkit.batch_indexer import BatchIndexer, IndexerProgress
from facetkit.config import FacetSettings
from facetkit.exceptions import IndexMissingError
from facetkit.extractor import FacetExtractor
from facetkit.index import FacetIndex
from facetkit.storage import INDEX_REQUIRED_OPTION


@pytest.fixture
def make_batch(extractor, index, content, options, settings):
    def factory(**kwargs):
        kwargs.setdefault('settings', settings)
        return BatchIndexer(extractor, index, content, options, **kwargs)
    return factory


class TestIndexerProgress:

    def test_round_trip(self):
        progress = IndexerProgress(page=3, per_page=50, kinds=['article'], object_ids=[1, 2])

        assert IndexerProgress.from_dict(progress.to_dict()) == progress

    def test_defaults_from_partial_dict(self):
        progress = IndexerProgress.from_dict({'page': '2'})

        assert progress.page == 2
        assert progress.per_page == 100
        assert progress.object_ids is None


class TestBatchIndexer:

    def test_defaults_to_public_kinds(self, make_batch):
        batch = make_batch()

        assert sorted(batch.get_progress().kinds) == ['article', 'page']

    def test_single_page_run(self, make_batch, index):
        result = make_batch().start()

        assert result['page'] == 1
        assert result['max_page'] == 1
        assert result['complete'] is True
        assert result['total'] == 3
        assert result['indexed'] == 3
        assert result['errors'] == 0
        assert result['duration'] >= 0
        assert result['rows'] == index.stats()['total'] == 16
        assert index.get_object(13) == []

    def test_resumes_from_persisted_progress(self, make_batch, options):
        first = make_batch(per_page=1)
        result = first.start()

        assert (result['page'], result['max_page'], result['complete']) == (1, 3, False)
        assert first.active()
        assert options.get('facets_batch_indexer')['page'] == 1

        # a fresh instance picks up where the last one stopped
        second = make_batch()
        assert second.get_progress().per_page == 1
        assert second.active()

        result = second.next()
        assert result['page'] == 2

        result = second.next()
        assert (result['page'], result['complete']) == (3, True)
        assert not second.active()
        assert options.get('facets_batch_indexer') is None

    def test_pages_follow_object_id_order(self, make_batch, index):
        batch = make_batch(per_page=1)

        batch.start()
        assert index.get_object(10) and not index.get_object(11)

        batch.next()
        assert index.get_object(11) and not index.get_object(12)

    def test_start_discards_progress(self, make_batch):
        batch = make_batch(per_page=1)
        batch.start()
        batch.next()

        result = make_batch().start()

        assert result['page'] == 1

    def test_start_discards_parked_filters(self, make_batch, options):
        parked = make_batch(job_id='job', per_page=1, object_ids=[10, 11])
        assert parked.start()['complete'] is False
        assert options.get('job')['object_ids'] == [10, 11]

        result = make_batch(job_id='job', per_page=10).start()

        assert result['total'] == 3
        assert result['complete'] is True

    def test_start_discards_parked_page_size(self, make_batch):
        make_batch(job_id='job', per_page=1).start()

        result = make_batch(job_id='job').start()

        assert (result['page'], result['max_page'], result['complete']) == (1, 1, True)

    def test_next_resumes_parked_filters(self, make_batch):
        make_batch(job_id='job', per_page=1, kinds=['article']).start()

        resumed = make_batch(job_id='job')

        assert resumed.get_progress().kinds == ['article']
        assert resumed.next()['total'] == 2

    def test_zero_matches_completes_immediately(self, make_batch, options):
        options.set('empty_job', {'page': 4, 'per_page': 10, 'kinds': ['nothing']})
        batch = make_batch(job_id='empty_job', kinds=['nothing'])

        result = batch.next()

        assert result['complete'] is True
        assert result['page'] == 0
        assert result['total'] == 0
        assert options.get('empty_job') is None
        assert not batch.active()

    def test_explicit_object_ids(self, make_batch, index):
        result = make_batch(object_ids=[12]).start()

        assert result['total'] == 1
        assert index.get_object(10) == []
        assert len(index.get_object(12)) == 4

    def test_completion_clears_index_required(self, make_batch, options):
        batch = make_batch()
        batch.mark_index_required()
        assert batch.index_required()

        batch.start()

        assert options.get(INDEX_REQUIRED_OPTION) is None
        assert not batch.index_required()

    def test_settings_change_requires_reindex(self, make_batch, extractor, index, content, options):
        make_batch().start()

        changed = FacetSettings(object_kind=True, taxonomies=('category',))
        batch = BatchIndexer(extractor, index, content, options, settings=changed)

        assert batch.index_required()

        batch.start()
        assert not batch.index_required()

    def test_ordering_change_does_not_require_reindex(self, make_batch, extractor, index, content, options, settings):
        make_batch().start()

        reordered = FacetSettings(
            object_kind=settings.object_kind, author=settings.author,
            taxonomies=settings.taxonomies, meta_keys=settings.meta_keys,
            orderby='value', order='ASC', show_all=True,
        )

        assert not BatchIndexer(extractor, index, content, options, settings=reordered).index_required()

    def test_failing_object_does_not_abort_page(self, make_batch, extractor, index):
        original = extractor.index_object

        def flaky(object_id):
            if object_id == 11:
                raise sqlite3.OperationalError("database is locked")
            return original(object_id)

        with patch.object(extractor, 'index_object', side_effect=flaky):
            result = make_batch().start()

        assert result['indexed'] == 2
        assert result['errors'] == 1
        assert result['complete'] is True
        assert index.get_object(12)

    def test_independent_jobs(self, make_batch, options):
        make_batch(job_id='job_a', per_page=1).start()
        make_batch(job_id='job_b', per_page=2).start()

        assert options.get('job_a')['page'] == 1
        assert options.get('job_b')['per_page'] == 2

    def test_missing_index_is_fatal(self, settings, content, options, temp_db):
        index = FacetIndex(temp_db, table='never_created')
        extractor = FacetExtractor(settings, content, index)
        batch = BatchIndexer(extractor, index, content, options)

        with pytest.raises(IndexMissingError):
            batch.start()
