"""
Integration tests for QueryFacade wired to real primitives and a mock client.
"""

import pytest
from elasticsearch import ConnectionError as ESConnectionError

from conftest import mapping_response, search_page
from query_types.primitives import FieldRecord, IndexDescriptor
from tools.flows.query_facade import QueryFacade
from tools.primitives.scroll import CancellationToken
from utils.errors import BadRequest, MappingUnavailable, ScrollCancelled


class TestCount:
    """Test cases for get_count."""

    def test_count_resolves_index_from_type(self, facade, mock_elasticsearch):
        assert facade.get_count("subject") == 100

        mock_elasticsearch.search.assert_called_once_with(
            index="subjects",
            body={"size": 0, "track_total_hits": True},
        )

    def test_count_with_filter(self, facade, mock_elasticsearch, sample_filter):
        facade.get_count("subject", index="subjects", filter=sample_filter)

        body = mock_elasticsearch.search.call_args[1]["body"]
        assert body["query"] == {
            "bool": {
                "must": [
                    {"term": {"gender": "female"}},
                    {"range": {"age": {"gte": 18}}},
                ]
            }
        }

    def test_unknown_type(self, facade, mock_elasticsearch):
        with pytest.raises(BadRequest, match='Invalid es type: "case"'):
            facade.get_count("case")

        mock_elasticsearch.search.assert_not_called()

    def test_mismatched_pair(self, facade, mock_elasticsearch):
        with pytest.raises(BadRequest) as excinfo:
            facade.get_count("file", index="subjects")

        assert excinfo.value.details == {"index": "subjects", "type": "file"}
        mock_elasticsearch.search.assert_not_called()

    def test_missing_type(self, facade):
        with pytest.raises(BadRequest, match="Invalid es index or es type name"):
            facade.get_count("", index="subjects")

    def test_filter_on_unknown_field(self, facade, mock_elasticsearch):
        with pytest.raises(BadRequest, match="Invalid filter fields"):
            facade.get_count("file", filter={"=": {"gender": "female"}})

        mock_elasticsearch.search.assert_not_called()


class TestGetData:
    """Test cases for get_data."""

    def test_default_page(self, facade, mock_elasticsearch):
        documents = facade.get_data("subject")

        assert documents == [{"subject_id": "s1", "gender": "female", "age": 34}]
        mock_elasticsearch.search.assert_called_once_with(
            index="subjects",
            body={"size": 10, "from": 0},
        )

    def test_projection_sort_and_paging(self, facade, mock_elasticsearch):
        sort = [{"age": {"order": "desc"}}]

        facade.get_data("subject", fields=["subject_id", "age"], sort=sort, offset=20, size=5)

        body = mock_elasticsearch.search.call_args[1]["body"]
        assert body == {
            "size": 5,
            "from": 20,
            "sort": sort,
            "_source": ["subject_id", "age"],
        }

    def test_unknown_fields(self, facade, mock_elasticsearch):
        with pytest.raises(BadRequest, match='Invalid fields: "height"'):
            facade.get_data("subject", fields=["age", "height"])

        mock_elasticsearch.search.assert_not_called()

    def test_past_result_window(self, facade, mock_elasticsearch):
        with pytest.raises(BadRequest, match="download_data"):
            facade.get_data("subject", offset=9999, size=10)

        mock_elasticsearch.search.assert_not_called()


class TestDownload:
    """Test cases for scroll-backed exports through the facade."""

    @pytest.fixture
    def scroll_pages(self, mock_elasticsearch):
        mock_elasticsearch.search.return_value = search_page(
            [{"subject_id": "s1"}, {"subject_id": "s2"}], scroll_id="c1", total=3
        )
        mock_elasticsearch.scroll.side_effect = [
            search_page([{"subject_id": "s3"}], scroll_id="c2", total=3),
            search_page([], scroll_id="c2", total=3),
        ]

    def test_download_all_pages(self, facade, mock_elasticsearch, scroll_pages, sample_filter):
        documents = facade.download_data("subject", filter=sample_filter, fields=["subject_id"])

        assert [doc["subject_id"] for doc in documents] == ["s1", "s2", "s3"]
        call_kwargs = mock_elasticsearch.search.call_args[1]
        assert call_kwargs["index"] == "subjects"
        assert call_kwargs["scroll"] == "30s"
        assert call_kwargs["body"]["_source"] == ["subject_id"]
        assert call_kwargs["body"]["sort"] == ["_doc"]
        mock_elasticsearch.clear_scroll.assert_called_once_with(scroll_id="c2")

    def test_stream_abandoned_early(self, facade, mock_elasticsearch, scroll_pages):
        stream = facade.stream_data("subject")

        assert next(stream) == {"subject_id": "s1"}
        stream.close()

        mock_elasticsearch.scroll.assert_not_called()
        mock_elasticsearch.clear_scroll.assert_called_once_with(scroll_id="c1")

    def test_cancelled_before_start(self, facade, mock_elasticsearch, scroll_pages):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ScrollCancelled):
            facade.download_data("subject", cancel_token=token)

        mock_elasticsearch.search.assert_not_called()
        mock_elasticsearch.clear_scroll.assert_not_called()


class TestAggregations:
    """Test cases for the aggregation operations."""

    def test_numeric_ignores_own_field_in_filter(self, facade, mock_elasticsearch, sample_filter):
        mock_elasticsearch.search.return_value = {
            "aggregations": {"numeric_stats": {"count": 3, "min": 1, "max": 9, "avg": 5, "sum": 15}}
        }

        result = facade.numeric_aggregation("subject", "age", filter=sample_filter)

        assert result["stats"]["max"] == 9
        body = mock_elasticsearch.search.call_args[1]["body"]
        assert body["query"] == {"bool": {"must": [{"term": {"gender": "female"}}]}}

    def test_numeric_filter_self(self, facade, mock_elasticsearch, sample_filter):
        mock_elasticsearch.search.return_value = {"aggregations": {"numeric_stats": {"count": 0}}}

        facade.numeric_aggregation("subject", "age", filter=sample_filter, filter_self=True)

        body = mock_elasticsearch.search.call_args[1]["body"]
        assert {"range": {"age": {"gte": 18}}} in body["query"]["bool"]["must"]

    def test_text_aggregation(self, facade, mock_elasticsearch):
        mock_elasticsearch.search.return_value = {
            "aggregations": {
                "text_terms": {"buckets": [{"key": "CA", "doc_count": 7}]},
                "text_missing": {"doc_count": 1},
            }
        }

        buckets = facade.text_aggregation("subject", "state", filter={"IN": {"state": ["CA", "NY"]}})

        assert buckets == [{"key": "CA", "count": 7}, {"key": "no data", "count": 1}]
        body = mock_elasticsearch.search.call_args[1]["body"]
        assert "query" not in body

    def test_unknown_aggregation_field(self, facade, mock_elasticsearch):
        with pytest.raises(BadRequest, match='Invalid fields: "height"'):
            facade.text_aggregation("subject", "height")

        mock_elasticsearch.search.assert_not_called()


class TestLifecycle:
    """Test cases for construction, field listing and health."""

    def test_get_fields(self, facade):
        assert facade.get_fields("files") == FieldRecord(
            index="files", type="file", fields=["file_id", "file_size"]
        )
        assert set(facade.get_fields()) == {"subjects", "files"}

    def test_health(self, facade):
        assert facade.health() == {
            "connected": False,
            "host": "http://localhost:9200",
            "mapping_initialized": True,
            "indices": {"subjects": True, "files": True},
        }

    def test_from_config_with_injected_client(self, mock_elasticsearch):
        facade = QueryFacade.from_config(
            indices=[IndexDescriptor(index="subjects", type="subject")],
            es_config={"url": "http://es:9200", "timeout_ms": 1000},
            client=mock_elasticsearch,
        )
        assert facade.connection.wait_for_probe(timeout=5) is True

        with pytest.raises(MappingUnavailable):
            facade.get_count("subject", filter={"=": {"gender": "female"}})

        facade.initialize()
        assert facade.get_count("subject", filter={"=": {"gender": "female"}}) == 100

        facade.close()
        mock_elasticsearch.close.assert_called_once()


    def test_partially_loaded_mapping(self, mock_elasticsearch, index_descriptors):
        def get_mapping(index):
            if index == "files":
                raise ESConnectionError("unreachable")
            return mapping_response(index)

        mock_elasticsearch.indices.get_mapping.side_effect = get_mapping
        facade = QueryFacade.from_config(
            indices=index_descriptors,
            es_config={"url": "http://es:9200", "timeout_ms": 1000},
            client=mock_elasticsearch,
        )
        facade.initialize()

        assert facade.get_fields("files").fields is None
        assert facade.health()["indices"] == {"subjects": True, "files": False}
        with pytest.raises(MappingUnavailable):
            facade.get_data("file", fields=["file_id"])
