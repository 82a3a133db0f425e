"""
Pytest configuration and fixtures for the Elasticsearch query layer tests.
"""

import pytest
import os
import sys
from unittest.mock import Mock
from typing import Dict, Any, List

# Add the project root to the Python path
project_root = os.path.dirname(os.path.dirname(__file__))
sys.path.insert(0, project_root)

from elasticsearch import NotFoundError  # noqa: E402

from query_types.primitives import IndexDescriptor  # noqa: E402
from utils.connection import ConnectionManager  # noqa: E402
from tools.primitives.mapping import MappingCache  # noqa: E402
from tools.primitives.search import QueryExecutor  # noqa: E402
from tools.primitives.scroll import ScrollExporter  # noqa: E402
from tools.flows.query_facade import QueryFacade  # noqa: E402


FIELD_TYPES = {
    "subjects": {
        "subject_id": "keyword",
        "gender": "keyword",
        "age": "long",
        "state": "keyword",
        "visit_date": "date",
    },
    "files": {
        "file_id": "keyword",
        "file_size": "long",
    },
}


def mapping_response(index: str) -> Dict[str, Any]:
    """get_mapping response in the typeless (7.x+) layout."""
    return {
        index: {
            "mappings": {
                "properties": {
                    name: {"type": field_type}
                    for name, field_type in FIELD_TYPES[index].items()
                }
            }
        }
    }


def search_page(documents: List[Dict[str, Any]], scroll_id: str = None, total: int = None) -> Dict[str, Any]:
    """Search or scroll response holding the given documents."""
    page = {
        "took": 2,
        "timed_out": False,
        "hits": {
            "total": {"value": len(documents) if total is None else total},
            "hits": [{"_index": "subjects", "_source": doc} for doc in documents],
        },
    }
    if scroll_id is not None:
        page["_scroll_id"] = scroll_id
    return page


@pytest.fixture
def index_descriptors():
    """Configured indices."""
    return [
        IndexDescriptor(index="subjects", type="subject"),
        IndexDescriptor(index="files", type="file"),
    ]


@pytest.fixture
def mock_elasticsearch():
    """Mock Elasticsearch client for testing."""
    mock_es = Mock()

    mock_es.ping.return_value = True
    mock_es.indices.get_mapping.side_effect = lambda index: mapping_response(index)
    mock_es.search.return_value = search_page(
        [{"subject_id": "s1", "gender": "female", "age": 34}],
        total=100,
    )
    mock_es.clear_scroll.return_value = {"succeeded": True, "num_freed": 1}

    return mock_es


@pytest.fixture
def connection(mock_elasticsearch):
    """ConnectionManager around the mock client, without the startup probe."""
    return ConnectionManager(
        config={"url": "http://localhost:9200", "timeout_ms": 5000},
        client=mock_elasticsearch,
        probe=False,
    )


@pytest.fixture
def mapping_cache(connection, index_descriptors):
    """Initialized mapping cache."""
    cache = MappingCache(connection, index_descriptors)
    cache.initialize()
    return cache


@pytest.fixture
def executor(connection):
    return QueryExecutor(connection)


@pytest.fixture
def exporter(connection, mapping_cache, mock_elasticsearch):
    """ScrollExporter with small pages; mock call history starts empty."""
    mock_elasticsearch.reset_mock()
    return ScrollExporter(connection, mapping_cache, page_size=2, keep_alive="30s")


@pytest.fixture
def facade(connection, mapping_cache, executor, exporter):
    return QueryFacade(
        connection,
        mapping_cache,
        executor,
        exporter,
        default_page_size=10,
        max_result_window=10000,
    )


@pytest.fixture
def not_found_error():
    """Factory for the error Elasticsearch raises on an expired scroll context."""
    def _make(message: str = "search_context_missing_exception") -> NotFoundError:
        return NotFoundError(message, meta=Mock(status=404), body={"error": message})
    return _make


@pytest.fixture
def sample_filter():
    """Sample caller filter."""
    return {
        "AND": [
            {"=": {"gender": "female"}},
            {">=": {"age": 18}},
        ]
    }
