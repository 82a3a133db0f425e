"""
Primitive aggregation operations for Elasticsearch.
"""

import math
from typing import Any, Dict, List, Optional, Protocol

from query_types.primitives import ElasticQuery
from tools.primitives.search import QueryExecutor
from utils.errors import BadRequest
from utils.query_builder import build_bool_query, build_range_query
from utils.response_parser import parse_aggregations


MISSING_BUCKET_KEY = "no data"


class AggregationEngine(Protocol):
    """Turns a query predicate into numeric or categorical summaries."""

    def numeric_aggregation(
        self,
        index: str,
        doc_type: str,
        query: Optional[Dict[str, Any]],
        field: str,
        range_start: Optional[float] = None,
        range_end: Optional[float] = None,
        range_step: Optional[float] = None,
        bin_count: Optional[int] = None,
    ) -> Dict[str, Any]:
        ...

    def text_aggregation(
        self,
        index: str,
        doc_type: str,
        query: Optional[Dict[str, Any]],
        field: str,
        size: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        ...


def _with_range(query: Optional[Dict[str, Any]], field: str, start: Any, end: Any) -> Optional[Dict[str, Any]]:
    if start is None and end is None:
        return query
    range_query = build_range_query(field, gte=start, lte=end)
    if query is None:
        return range_query
    return build_bool_query(must=[query, range_query])


class ElasticAggregationEngine:
    """Default AggregationEngine backed by stats, range and terms aggregations."""

    def __init__(self, executor: QueryExecutor, default_terms_size: int = 1000):
        self._executor = executor
        self.default_terms_size = default_terms_size

    def _aggregate(
        self,
        index: str,
        doc_type: str,
        query: Optional[Dict[str, Any]],
        aggregations: Dict[str, Any],
    ) -> Dict[str, Any]:
        response = self._executor.query(
            index,
            doc_type,
            ElasticQuery(query=query, size=0, aggs=aggregations),
        )
        return parse_aggregations(response)

    def numeric_aggregation(
        self,
        index: str,
        doc_type: str,
        query: Optional[Dict[str, Any]],
        field: str,
        range_start: Optional[float] = None,
        range_end: Optional[float] = None,
        range_step: Optional[float] = None,
        bin_count: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Summarize a numeric field.

        Without range_step or bin_count, returns the field's stats. With
        either, also returns histogram buckets over [range_start, range_end];
        missing bounds default to the field's min and max.

        Args:
            index: Index to aggregate
            doc_type: Document type of the index
            query: Query predicate (all documents if not specified)
            field: Numeric field name
            range_start: Lower bound (inclusive)
            range_end: Upper bound (inclusive)
            range_step: Bucket width
            bin_count: Number of equal-width buckets

        Returns:
            {"stats": {...}} and, for histograms, {"histogram": [{"key": [from, to], "count": n}]}

        Raises:
            BadRequest: If range_step and bin_count are both given, or one is not positive
        """
        if range_step is not None and bin_count is not None:
            raise BadRequest("Specify either range_step or bin_count, not both")
        if range_step is not None and range_step <= 0:
            raise BadRequest("range_step must be positive", {"range_step": range_step})
        if bin_count is not None and bin_count <= 0:
            raise BadRequest("bin_count must be positive", {"bin_count": bin_count})

        ranged_query = _with_range(query, field, range_start, range_end)
        aggregations = self._aggregate(
            index, doc_type, ranged_query, {"numeric_stats": {"stats": {"field": field}}}
        )
        stats = aggregations.get("numeric_stats", {})
        result: Dict[str, Any] = {
            "stats": {key: stats.get(key) for key in ("min", "max", "avg", "sum", "count")}
        }
        if range_step is None and bin_count is None:
            return result

        start = range_start if range_start is not None else stats.get("min")
        end = range_end if range_end is not None else stats.get("max")
        if start is None or end is None:
            # no documents carry this field
            result["histogram"] = []
            return result
        if end < start:
            raise BadRequest("range_end must not be below range_start", {"range_start": start, "range_end": end})

        if bin_count is not None:
            step = (end - start) / bin_count
        else:
            step = range_step
            bin_count = max(1, math.ceil((end - start) / step))
        edges = [start + position * step for position in range(bin_count)]

        # The query already bounds values to [start, end]; the last bucket
        # is open-ended so that end itself is counted.
        ranges = [{"from": lower, "to": upper} for lower, upper in zip(edges, edges[1:])]
        ranges.append({"from": edges[-1]})
        aggregations = self._aggregate(
            index,
            doc_type,
            _with_range(query, field, start, end),
            {"numeric_histogram": {"range": {"field": field, "ranges": ranges}}},
        )
        buckets = aggregations.get("numeric_histogram", {}).get("buckets", [])
        result["histogram"] = [
            {
                "key": [bucket.get("from"), bucket.get("to", end)],
                "count": bucket.get("doc_count", 0),
            }
            for bucket in buckets
        ]
        return result

    def text_aggregation(
        self,
        index: str,
        doc_type: str,
        query: Optional[Dict[str, Any]],
        field: str,
        size: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Count documents per distinct value of a field.

        Returns:
            Buckets [{"key": value, "count": n}] by descending count, plus a
            "no data" bucket for documents without the field
        """
        aggregations = self._aggregate(
            index,
            doc_type,
            query,
            {
                "text_terms": {"terms": {"field": field, "size": size or self.default_terms_size}},
                "text_missing": {"missing": {"field": field}},
            },
        )
        buckets = [
            {"key": bucket.get("key"), "count": bucket.get("doc_count", 0)}
            for bucket in aggregations.get("text_terms", {}).get("buckets", [])
        ]
        missing = aggregations.get("text_missing", {}).get("doc_count", 0)
        if missing:
            buckets.append({"key": MISSING_BUCKET_KEY, "count": missing})
        return buckets
