"""
Public query surface composing the primitives.

QueryFacade resolves and checks the index/type pair, turns caller filters
into query predicates through a FilterBuilder and forwards to the
executor, the scroll exporter or an AggregationEngine.
"""

import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from elasticsearch import Elasticsearch

from config.environments import get_mapping_config, get_query_defaults
from config.indices import load_index_descriptors
from query_types.primitives import ElasticQuery, FieldRecord, FieldTypeMap, IndexDescriptor
from tools.primitives.aggregate import AggregationEngine, ElasticAggregationEngine
from tools.primitives.mapping import MappingCache
from tools.primitives.scroll import CancellationToken, ScrollExporter
from tools.primitives.search import QueryExecutor
from utils.connection import ConnectionManager
from utils.errors import BadRequest
from utils.query_builder import ElasticFilterBuilder, FilterBuilder
from utils.response_parser import parse_sources
from utils.validation import validate_fields, validate_page_window


logger = logging.getLogger(__name__)


class QueryFacade:
    """Entry point for counting, paging, exporting and aggregating documents."""

    def __init__(
        self,
        connection: ConnectionManager,
        mapping_cache: MappingCache,
        executor: QueryExecutor,
        exporter: ScrollExporter,
        filter_builder: Optional[FilterBuilder] = None,
        aggregation_engine: Optional[AggregationEngine] = None,
        default_page_size: Optional[int] = None,
        max_result_window: Optional[int] = None,
    ):
        defaults = get_query_defaults()
        self.connection = connection
        self.mapping_cache = mapping_cache
        self.executor = executor
        self.exporter = exporter
        self.filter_builder = filter_builder or ElasticFilterBuilder()
        self.aggregation_engine = aggregation_engine or ElasticAggregationEngine(executor)
        self.default_page_size = default_page_size or defaults["page_size"]
        self.max_result_window = max_result_window or defaults["max_result_window"]

    @classmethod
    def from_config(
        cls,
        indices: Optional[Sequence[IndexDescriptor]] = None,
        es_config: Optional[Dict[str, Any]] = None,
        client: Optional[Elasticsearch] = None,
    ) -> "QueryFacade":
        """
        Build the full service graph from configuration.

        Called once by the process entry point; the result is passed to
        everything that needs it.

        Args:
            indices: Index registry (loaded from the environment if not specified)
            es_config: Connection settings (environment config if not specified)
            client: Pre-built Elasticsearch client

        Returns:
            QueryFacade whose mapping cache still needs initialize()
        """
        if indices is None:
            indices = load_index_descriptors()
        connection = ConnectionManager(es_config, client=client)
        mapping_cache = MappingCache(
            connection,
            indices,
            max_workers=get_mapping_config()["max_workers"],
        )
        executor = QueryExecutor(connection)
        exporter = ScrollExporter(connection, mapping_cache)
        return cls(connection, mapping_cache, executor, exporter)

    def initialize(self) -> Mapping[str, FieldTypeMap]:
        return self.mapping_cache.initialize()

    def close(self) -> None:
        self.connection.close()

    def health(self) -> Dict[str, Any]:
        """Connection and mapping cache status."""
        loaded = {
            descriptor.index: self.mapping_cache.get_field_types(descriptor.index) is not None
            for descriptor in self.mapping_cache.indices
        }
        return {
            "connected": self.connection.is_connected(),
            "host": self.connection.host,
            "mapping_initialized": self.mapping_cache.initialized,
            "indices": loaded,
        }

    def get_fields(self, index: Optional[str] = None) -> Union[FieldRecord, Dict[str, FieldRecord]]:
        return self.mapping_cache.get_fields(index)

    def get_index_by_type(self, doc_type: str) -> str:
        return self.mapping_cache.get_index_by_type(doc_type)

    def _resolve(self, index: Optional[str], doc_type: Optional[str]) -> Tuple[str, str]:
        if not doc_type:
            raise BadRequest("Invalid es index or es type name", {"index": index, "type": doc_type})
        if not index:
            index = self.mapping_cache.get_index_by_type(doc_type)
        self.mapping_cache.check_index(index, doc_type)
        return index, doc_type

    def _build_query(
        self,
        index: str,
        filter: Optional[Dict[str, Any]],
        exclude_field: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        if not filter:
            return None
        field_types = self.mapping_cache.require_field_types(index)
        return self.filter_builder.build(filter, field_types, exclude_field=exclude_field)

    def get_count(
        self,
        doc_type: str,
        index: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Count documents matching a filter."""
        index, doc_type = self._resolve(index, doc_type)
        return self.executor.count(index, doc_type, self._build_query(index, filter))

    def get_data(
        self,
        doc_type: str,
        index: Optional[str] = None,
        fields: Optional[List[str]] = None,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Any]] = None,
        offset: int = 0,
        size: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of documents.

        Args:
            doc_type: Document type (resolves the index when index is omitted)
            index: Index name
            fields: Fields to return (all fields if not specified)
            filter: Filter object for the FilterBuilder
            sort: Sort criteria
            offset: Number of documents to skip
            size: Page size (DEFAULT_PAGE_SIZE if not specified)

        Returns:
            Document sources of the page

        Raises:
            BadRequest: On unknown index/type/fields or when offset + size
                exceeds the result window
        """
        index, doc_type = self._resolve(index, doc_type)
        size = self.default_page_size if size is None else size
        validate_page_window(offset, size, self.max_result_window)
        if fields:
            validate_fields(fields, self.mapping_cache.require_fields(index))

        response = self.executor.query(
            index,
            doc_type,
            ElasticQuery(
                query=self._build_query(index, filter),
                from_=offset,
                size=size,
                sort=sort,
                _source=list(fields) if fields else None,
            ),
        )
        return parse_sources(response)

    def download_data(
        self,
        doc_type: str,
        index: Optional[str] = None,
        fields: Optional[List[str]] = None,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Dict[str, Any]]:
        """Export every matching document with the scroll API."""
        index, doc_type = self._resolve(index, doc_type)
        logger.info("Downloading %s/%s", index, doc_type)
        return self.exporter.scroll_query(
            index,
            doc_type,
            filter=self._build_query(index, filter),
            fields=fields,
            sort=sort,
            cancel_token=cancel_token,
        )

    def stream_data(
        self,
        doc_type: str,
        index: Optional[str] = None,
        fields: Optional[List[str]] = None,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Like download_data, but yields documents as pages arrive."""
        index, doc_type = self._resolve(index, doc_type)
        return self.exporter.iter_documents(
            index,
            doc_type,
            filter=self._build_query(index, filter),
            fields=fields,
            sort=sort,
            cancel_token=cancel_token,
        )

    def numeric_aggregation(
        self,
        doc_type: str,
        field: str,
        index: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None,
        range_start: Optional[float] = None,
        range_end: Optional[float] = None,
        range_step: Optional[float] = None,
        bin_count: Optional[int] = None,
        filter_self: bool = False,
    ) -> Dict[str, Any]:
        """
        Stats or histogram of a numeric field.

        With filter_self False, clauses of the filter on the aggregated
        field itself are ignored.
        """
        index, doc_type = self._resolve(index, doc_type)
        validate_fields([field], self.mapping_cache.require_fields(index))
        query = self._build_query(index, filter, exclude_field=None if filter_self else field)
        return self.aggregation_engine.numeric_aggregation(
            index,
            doc_type,
            query,
            field,
            range_start=range_start,
            range_end=range_end,
            range_step=range_step,
            bin_count=bin_count,
        )

    def text_aggregation(
        self,
        doc_type: str,
        field: str,
        index: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None,
        filter_self: bool = False,
        size: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Document counts per value of a field."""
        index, doc_type = self._resolve(index, doc_type)
        validate_fields([field], self.mapping_cache.require_fields(index))
        query = self._build_query(index, filter, exclude_field=None if filter_self else field)
        return self.aggregation_engine.text_aggregation(index, doc_type, query, field, size=size)
