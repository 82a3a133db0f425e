"""
Unit tests for primitive aggregation operations.
"""

import pytest

from tools.primitives.aggregate import ElasticAggregationEngine
from utils.errors import BadRequest


def _stats_response(min_value, max_value):
    return {
        "took": 3,
        "timed_out": False,
        "hits": {"total": {"value": 10}, "hits": []},
        "aggregations": {
            "numeric_stats": {
                "count": 10,
                "min": min_value,
                "max": max_value,
                "avg": (min_value + max_value) / 2,
                "sum": 500.0,
            }
        },
    }


def _range_response(buckets):
    return {
        "took": 3,
        "timed_out": False,
        "hits": {"total": {"value": 10}, "hits": []},
        "aggregations": {"numeric_histogram": {"buckets": buckets}},
    }


@pytest.fixture
def engine(executor):
    return ElasticAggregationEngine(executor)


class TestNumericAggregation:
    """Test cases for numeric_aggregation."""

    def test_stats_only(self, engine, mock_elasticsearch):
        mock_elasticsearch.search.return_value = _stats_response(0, 100)

        result = engine.numeric_aggregation("subjects", "subject", None, "age")

        assert result == {"stats": {"min": 0, "max": 100, "avg": 50.0, "sum": 500.0, "count": 10}}
        body = mock_elasticsearch.search.call_args[1]["body"]
        assert body == {"size": 0, "aggs": {"numeric_stats": {"stats": {"field": "age"}}}}

    def test_histogram_by_bin_count(self, engine, mock_elasticsearch):
        mock_elasticsearch.search.side_effect = [
            _stats_response(0, 100),
            _range_response([
                {"from": 0, "to": 50, "doc_count": 6},
                {"from": 50, "doc_count": 4},
            ]),
        ]

        result = engine.numeric_aggregation("subjects", "subject", None, "age", bin_count=2)

        assert result["histogram"] == [
            {"key": [0, 50], "count": 6},
            {"key": [50, 100], "count": 4},
        ]
        body = mock_elasticsearch.search.call_args[1]["body"]
        assert body["aggs"]["numeric_histogram"]["range"]["ranges"] == [
            {"from": 0, "to": 50.0},
            {"from": 50.0},
        ]
        assert body["query"] == {"range": {"age": {"gte": 0, "lte": 100}}}

    def test_histogram_by_step_within_bounds(self, engine, mock_elasticsearch):
        mock_elasticsearch.search.side_effect = [
            _stats_response(20, 40),
            _range_response([]),
        ]
        query = {"term": {"gender": "female"}}

        engine.numeric_aggregation(
            "subjects", "subject", query, "age", range_start=10, range_end=40, range_step=10
        )

        body = mock_elasticsearch.search.call_args[1]["body"]
        assert body["aggs"]["numeric_histogram"]["range"]["ranges"] == [
            {"from": 10, "to": 20},
            {"from": 20, "to": 30},
            {"from": 30},
        ]
        assert body["query"] == {
            "bool": {"must": [query, {"range": {"age": {"gte": 10, "lte": 40}}}]}
        }

    def test_histogram_without_values(self, engine, mock_elasticsearch):
        mock_elasticsearch.search.return_value = {
            "aggregations": {"numeric_stats": {"count": 0, "min": None, "max": None}}
        }

        result = engine.numeric_aggregation("subjects", "subject", None, "age", bin_count=4)

        assert result["histogram"] == []
        assert mock_elasticsearch.search.call_count == 1

    @pytest.mark.parametrize("kwargs", [
        {"range_step": 5, "bin_count": 3},
        {"range_step": 0},
        {"bin_count": -1},
    ])
    def test_invalid_histogram_arguments(self, engine, mock_elasticsearch, kwargs):
        with pytest.raises(BadRequest):
            engine.numeric_aggregation("subjects", "subject", None, "age", **kwargs)

        mock_elasticsearch.search.assert_not_called()


class TestTextAggregation:
    """Test cases for text_aggregation."""

    def test_terms_with_missing_bucket(self, engine, mock_elasticsearch):
        mock_elasticsearch.search.return_value = {
            "aggregations": {
                "text_terms": {
                    "buckets": [
                        {"key": "female", "doc_count": 60},
                        {"key": "male", "doc_count": 35},
                    ]
                },
                "text_missing": {"doc_count": 5},
            }
        }

        result = engine.text_aggregation("subjects", "subject", None, "gender")

        assert result == [
            {"key": "female", "count": 60},
            {"key": "male", "count": 35},
            {"key": "no data", "count": 5},
        ]
        body = mock_elasticsearch.search.call_args[1]["body"]
        assert body["aggs"]["text_terms"] == {"terms": {"field": "gender", "size": 1000}}

    def test_no_missing_bucket_when_all_present(self, engine, mock_elasticsearch):
        mock_elasticsearch.search.return_value = {
            "aggregations": {
                "text_terms": {"buckets": [{"key": "CA", "doc_count": 2}]},
                "text_missing": {"doc_count": 0},
            }
        }

        assert engine.text_aggregation("subjects", "subject", None, "state", size=5) == [
            {"key": "CA", "count": 2}
        ]
