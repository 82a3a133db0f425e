"""
Utility functions for the Elasticsearch query layer.
"""

from .connection import get_elasticsearch_client, ConnectionManager
from .errors import (
    QueryLayerError,
    BadRequest,
    UpstreamUnavailable,
    MappingUnavailable,
    CursorExpired,
    ScrollCancelled,
)
from .validation import (
    strip_empty_values,
    validate_index_and_type,
    find_unknown_fields,
    validate_fields,
    validate_page_window,
)
from .query_builder import (
    FilterBuilder,
    ElasticFilterBuilder,
    build_range_query,
    build_term_query,
    build_terms_query,
    build_search_query,
    build_bool_query,
)
from .response_parser import (
    response_body,
    parse_hits,
    parse_sources,
    parse_total,
    parse_aggregations,
    extract_properties,
)

__all__ = [
    # Connection
    "get_elasticsearch_client",
    "ConnectionManager",
    # Errors
    "QueryLayerError",
    "BadRequest",
    "UpstreamUnavailable",
    "MappingUnavailable",
    "CursorExpired",
    "ScrollCancelled",
    # Validation
    "strip_empty_values",
    "validate_index_and_type",
    "find_unknown_fields",
    "validate_fields",
    "validate_page_window",
    # Query building
    "FilterBuilder",
    "ElasticFilterBuilder",
    "build_range_query",
    "build_term_query",
    "build_terms_query",
    "build_search_query",
    "build_bool_query",
    # Response parsing
    "response_body",
    "parse_hits",
    "parse_sources",
    "parse_total",
    "parse_aggregations",
    "extract_properties",
]
