"""
Tests for the incremental indexer notification handlers.
"""

import pytest

from facetkit.models import TermSnapshot
from facetkit.query import FacetQuery


def values(index, object_id, facet):
    return sorted(r.value for r in index.get_object(object_id) if r.facet == facet)


class TestObjectHandlers:

    def test_object_saved_indexes_object(self, incremental, index):
        diff = incremental.on_object_saved(10)

        assert diff.inserted_count == 5
        assert len(index.get_object(10)) == 5

    def test_ignored_kind_is_skipped(self, incremental, index):
        assert incremental.on_object_saved(13) is None
        assert incremental.on_object_terms_set(13, 'category') is None
        assert index.get_object(13) == []

    def test_object_terms_set_reindexes(self, incremental, content, index, indexed):
        content.set_object_terms(12, 'tag', [content.ids['sqlite']])

        diff = incremental.on_object_terms_set(12, 'tag')

        assert [r.value for r in diff.unindexed] == ['sqlite']
        assert values(index, 12, 'tag') == ['sqlite']

    def test_object_deleted_removes_rows(self, incremental, index, indexed):
        assert incremental.on_object_deleted(11) == 7
        assert index.get_object(11) == []
        assert len(index.get_object(10)) == 5


class TestTermHandlers:

    def test_term_rename_updates_matching_rows_only(self, incremental, content, index, indexed, native):
        # a tag sharing the category slug must not be touched
        tag_news = content.add_term('tag', 'news', 'News tag')
        content.set_object_terms(11, 'tag', [tag_news])
        incremental.on_object_terms_set(11, 'tag')
        total_before = index.stats()['total']

        updated = incremental.before_term_update('category', content.ids['news'], slug='updates', name='Updates')
        content.update_term(content.ids['news'], slug='updates', name='Updates')

        assert updated == 2
        assert values(index, 10, 'category') == ['updates']
        assert values(index, 12, 'category') == ['updates']
        assert values(index, 11, 'tag') == ['news']
        assert index.stats()['total'] == total_before

        # rows of the child term keep the parent slug they were indexed with
        local = [r for r in index.get_object(11) if r.value == 'local']
        assert local[0].parent == 'news'

        counts = {r['value']: r['count'] for r in native.get_query_facets(FacetQuery(), ['category'])}
        assert counts['updates'] == 2
        assert 'news' not in counts

    def test_term_edit_with_label_only(self, incremental, index, indexed):
        updated = incremental.on_term_edited(
            'category', TermSnapshot('news', 'News'), TermSnapshot('news', 'Headlines')
        )

        assert updated == 2
        labels = {r.label for r in index.get_object(10) if r.facet == 'category'}
        assert labels == {'Headlines'}

    def test_term_parent_change(self, incremental, content, index, indexed):
        updated = incremental.before_term_update('category', content.ids['local'], parent_id=content.ids['sports'])

        assert updated == 1
        local = [r for r in index.get_object(11) if r.value == 'local']
        assert local[0].parent == 'sports'

    def test_unchanged_term_is_a_no_op(self, incremental, index, indexed):
        assert incremental.on_term_edited('category', TermSnapshot('news', 'News'), TermSnapshot('news', 'News')) == 0

    def test_rename_of_unindexed_term_matches_nothing(self, incremental, content, index):
        assert incremental.before_term_update('category', content.ids['news'], slug='updates') == 0

    def test_unknown_term_is_ignored(self, incremental, content):
        assert incremental.before_term_update('category', 9999, slug='x') == 0
        assert incremental.before_term_update('tag', content.ids['news'], slug='x') == 0

    def test_term_deleted_removes_value_everywhere(self, incremental, content, index, indexed):
        tag_news = content.add_term('tag', 'news', 'News tag')
        content.set_object_terms(11, 'tag', [tag_news])
        incremental.on_object_terms_set(11, 'tag')

        removed = incremental.on_term_deleted('category', 'news')

        assert removed == 2
        assert values(index, 10, 'category') == []
        assert values(index, 12, 'category') == []
        assert values(index, 11, 'tag') == ['news']
        assert values(index, 11, 'category') == ['local', 'sports']


class TestAuthorHandlers:

    def test_author_rename_relabels_rows(self, incremental, index, indexed):
        assert incremental.on_author_renamed('jdoe', 'Janet Doe') == 2

        labels = {r.label for oid in (10, 12) for r in index.get_object(oid) if r.facet == 'author'}
        assert labels == {'Janet Doe'}
        rroe = [r for r in index.get_object(11) if r.facet == 'author']
        assert rroe[0].label == 'Rick Roe'
