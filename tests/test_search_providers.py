"""
Tests for the Elasticsearch and Solr providers.

Both are fed engine responses describing the same corpus the native
provider sees, so their rows must match the native rows exactly.
"""

from unittest.mock import Mock

import pytest

from facetkit.config import FacetSettings
from facetkit.content import Term
from facetkit.providers import ElasticsearchProvider, SolrProvider
from facetkit.query import FacetQuery


ES_RESPONSE = {
    'hits': {'total': {'value': 3}, 'hits': []},
    'aggregations': {
        'object_kind': {'buckets': [{'key': 'article', 'doc_count': 2}, {'key': 'page', 'doc_count': 1}]},
        'author': {'buckets': [{'key': 'Jane Doe', 'doc_count': 2}, {'key': 'Rick Roe', 'doc_count': 1}]},
        'category': {'buckets': [
            {'key': 'news', 'doc_count': 2},
            {'key': 'local', 'doc_count': 1},
            {'key': 'sports', 'doc_count': 1},
        ]},
        'tag': {'buckets': [{'key': 'python', 'doc_count': 2}, {'key': 'sqlite', 'doc_count': 1}]},
        'year': {'buckets': [{'key': 2020, 'doc_count': 2}, {'key': 2021, 'doc_count': 1}]},
    },
}

SOLR_RESPONSE = {
    'response': {'numFound': 3, 'docs': []},
    'facet_counts': {
        'facet_fields': {
            'kind': ['article', 2, 'page', 1],
            'author': ['Jane Doe', 2, 'Rick Roe', 1],
            'categories': ['News', 2, 'Local', 1, 'Sports', 1],
            'tags': ['Python', 2, 'SQLite^', 1],
            'year_str': {'2020': 2, '2021': 1},
        }
    },
}


@pytest.fixture
def elasticsearch(settings, content):
    return ElasticsearchProvider(settings, content)


@pytest.fixture
def solr(settings, content):
    return SolrProvider(settings, content)


class TestParityWithNative:

    def test_elasticsearch_matches_native(self, elasticsearch, native, indexed):
        es_rows = elasticsearch.get_query_facets(FacetQuery(search_response=ES_RESPONSE))
        native_rows = native.get_query_facets(FacetQuery())

        assert es_rows == native_rows

    def test_solr_matches_native(self, solr, native, indexed):
        solr_rows = solr.get_query_facets(FacetQuery(search_response=SOLR_RESPONSE))
        native_rows = native.get_query_facets(FacetQuery())

        assert solr_rows == native_rows

    def test_ordering_override_applies(self, elasticsearch):
        query = FacetQuery(search_response=ES_RESPONSE, facet_orderby='value', facet_order='ASC')

        rows = elasticsearch.get_query_facets(query, ['category'])

        assert [r['value'] for r in rows] == ['local', 'news', 'sports']

    def test_facet_set_from_external_rows(self, elasticsearch):
        facet_set = elasticsearch.apply(FacetQuery(search_response=ES_RESPONSE, filters={'author': ['jdoe']}))

        assert [v.value for v in facet_set['category']] == ['news', 'sports']
        assert [v.label for v in facet_set.get_active_filters()] == ['Jane Doe']


class TestElasticsearchProvider:

    def test_build_aggregations(self, elasticsearch):
        aggregations = elasticsearch.build_aggregations()

        assert aggregations == {
            'object_kind': {'terms': {'field': 'kind.raw', 'size': 10000}},
            'author': {'terms': {'field': 'author.display_name.raw', 'size': 10000}},
            'category': {'terms': {'field': 'terms.category.slug', 'size': 10000}},
            'tag': {'terms': {'field': 'terms.tag.slug', 'size': 10000}},
            'year': {'terms': {'field': 'meta.year.raw', 'size': 10000}},
        }

    def test_apply_to_request_keeps_existing_body(self, elasticsearch):
        body = {'query': {'match_all': {}}, 'aggs': {'custom': {'terms': {'field': 'x'}}}}

        request = elasticsearch.apply_to_request(body, ['tag'])

        assert set(request['aggs']) == {'custom', 'tag'}
        assert request['query'] == {'match_all': {}}
        assert body['aggs'] == {'custom': {'terms': {'field': 'x'}}}

    def test_search_stores_response_on_query(self, settings, content):
        client = Mock()
        client.search.return_value = ES_RESPONSE
        provider = ElasticsearchProvider(settings, content, client)
        query = FacetQuery(facets=['category', 'genre'])

        provider.search(query, {'query': {'match_all': {}}})

        sent = client.search.call_args[0][0]
        assert list(sent['aggs']) == ['category']
        assert query.search_response is ES_RESPONSE

    def test_search_requires_client(self, elasticsearch):
        with pytest.raises(ValueError):
            elasticsearch.search(FacetQuery(), {})

    @pytest.mark.parametrize('response', [
        None,
        'not a dict',
        {},
        {'aggregations': None},
        {'aggregations': {'category': 'bad'}},
        {'aggregations': {'category': {'buckets': 'bad'}}},
        {'aggregations': {'category': {'buckets': [{'doc_count': 3}, 'junk', {'key': 'x', 'doc_count': 'many'}]}}},
        {'aggregations': {'category': {'buckets': []}}},
    ])
    def test_malformed_payload_yields_empty_result(self, elasticsearch, response):
        assert elasticsearch.get_query_facets(FacetQuery(search_response=response)) == []

    def test_unknown_bucket_values_fall_back_to_key(self, elasticsearch):
        response = {'aggregations': {
            'category': {'buckets': [{'key': 'ghost', 'doc_count': 1}]},
            'author': {'buckets': [{'key': 'Nobody', 'doc_count': 1}]},
        }}

        rows = elasticsearch.get_query_facets(FacetQuery(search_response=response))

        assert {(r['facet'], r['value'], r['label']) for r in rows} == {
            ('category', 'ghost', 'ghost'),
            ('author', 'Nobody', 'Nobody'),
        }

    def test_lookups_are_memoized_per_request(self, settings):
        content = Mock()
        content.get_terms_by_slug.return_value = [
            Term(2, 'category', 'local', 'Local', 1),
            Term(3, 'category', 'city', 'City', 1),
        ]
        content.get_term.return_value = Term(1, 'category', 'news', 'News', 0)
        provider = ElasticsearchProvider(settings, content)
        response = {'aggregations': {'category': {'buckets': [
            {'key': 'local', 'doc_count': 2},
            {'key': 'city', 'doc_count': 1},
        ]}}}

        rows = provider.get_query_facets(FacetQuery(search_response=response), ['category'])

        assert [r['parent'] for r in rows] == ['news', 'news']
        assert content.get_term.call_count == 1

        provider.get_query_facets(FacetQuery(search_response=response), ['category'])

        assert content.get_terms_by_slug.call_count == 2
        assert content.get_term.call_count == 2

    def test_renames_show_up_on_the_next_request(self, elasticsearch, content):
        response = {'aggregations': {
            'category': {'buckets': [{'key': 'news', 'doc_count': 1}]},
            'author': {'buckets': [{'key': 'Jane Doe', 'doc_count': 1}]},
        }}

        first = elasticsearch.get_query_facets(FacetQuery(search_response=response), ['category'])
        content.update_term(content.ids['news'], name='Headlines')
        second = elasticsearch.get_query_facets(FacetQuery(search_response=response), ['category'])

        assert first[0]['label'] == 'News'
        assert second[0]['label'] == 'Headlines'

        content.rename_author(content.ids['jdoe'], 'Janet Doe')
        renamed = {'aggregations': {'author': {'buckets': [{'key': 'Janet Doe', 'doc_count': 1}]}}}
        facet_set = elasticsearch.apply(FacetQuery(search_response=renamed, facets=['author']))

        assert [(v.value, v.label) for v in facet_set['author']] == [('jdoe', 'Janet Doe')]

    def test_metadata_values_are_their_own_label(self, elasticsearch):
        response = {'aggregations': {'year': {'buckets': [{'key': 'blue-sky', 'doc_count': 1}]}}}

        rows = elasticsearch.get_query_facets(FacetQuery(search_response=response), ['year'])

        assert (rows[0]['value'], rows[0]['label']) == ('blue-sky', 'blue-sky')


class TestSolrProvider:

    def test_build_facet_params(self, solr):
        params = solr.build_facet_params()

        assert params == {
            'facet': 'true',
            'facet.field': ['kind', 'author', 'categories', 'tags', 'year_str'],
            'facet.mincount': 1,
            'facet.limit': -1,
        }

    def test_custom_taxonomy_field(self, settings, content):
        content.add_taxonomy('genre', 'Genres')
        provider = SolrProvider(FacetSettings(taxonomies=('genre',)), content)

        assert provider.field_for('genre') == 'genre_taxonomy_str'

    def test_parse_field_values(self):
        assert SolrProvider.parse_field_values(['a', 2, 'b^', 1, 'c', 0]) == [('a', 2), ('b', 1)]
        assert SolrProvider.parse_field_values({'x': '3'}) == [('x', 3)]
        assert SolrProvider.parse_field_values('junk') == []

    def test_search_merges_facet_params(self, settings, content):
        client = Mock()
        client.select.return_value = SOLR_RESPONSE
        provider = SolrProvider(settings, content, client)
        query = FacetQuery(facets=['tag'])

        provider.search(query, {'q': 'python'})

        sent = client.select.call_args[0][0]
        assert sent['q'] == 'python'
        assert sent['facet.field'] == ['tags']
        assert query.search_response is SOLR_RESPONSE

    @pytest.mark.parametrize('response', [
        None,
        {},
        {'facet_counts': []},
        {'facet_counts': {'facet_fields': []}},
        {'facet_counts': {'facet_fields': {'categories': 'junk'}}},
    ])
    def test_malformed_payload_yields_empty_result(self, solr, response):
        assert solr.get_query_facets(FacetQuery(search_response=response)) == []
