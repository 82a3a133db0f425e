"""
Primitive operations for the Elasticsearch query layer.
"""

from .mapping import MappingCache
from .search import QueryExecutor
from .scroll import ScrollExporter, CancellationToken
from .aggregate import AggregationEngine, ElasticAggregationEngine

__all__ = [
    # Mapping cache
    "MappingCache",
    # Single-page search
    "QueryExecutor",
    # Scroll export
    "ScrollExporter",
    "CancellationToken",
    # Aggregation
    "AggregationEngine",
    "ElasticAggregationEngine",
]
