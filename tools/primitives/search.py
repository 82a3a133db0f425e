"""
Primitive search operations for Elasticsearch.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional, Union

from elasticsearch import ApiError, TransportError

from query_types.primitives import ElasticQuery
from utils.connection import ConnectionManager
from utils.errors import UpstreamUnavailable
from utils.response_parser import parse_total, response_body
from utils.validation import strip_empty_values


logger = logging.getLogger(__name__)


class QueryExecutor:
    """Executes one bounded search request (a single page of results)."""

    def __init__(self, connection: ConnectionManager):
        self._connection = connection

    def query(
        self,
        index: str,
        doc_type: str,
        body: Union[ElasticQuery, Mapping[str, Any]],
    ) -> Dict[str, Any]:
        """
        Execute a search request.

        Keys whose value is None are dropped from the body before it is
        sent; all other keys are passed through unchanged. No field name
        validation happens here.

        Args:
            index: Index to search
            doc_type: Document type of the index (used for logging only;
                Elasticsearch 7+ has no mapping types)
            body: Query body

        Returns:
            Raw Elasticsearch response body

        Raises:
            UpstreamUnavailable: If the request fails at the transport or engine level
        """
        if isinstance(body, ElasticQuery):
            validated_body = body.to_dict()
        else:
            validated_body = strip_empty_values(body)
        logger.debug("Query body for %s/%s: %s", index, doc_type, json.dumps(validated_body, default=str))

        try:
            response = self._connection.client.search(index=index, body=validated_body)
        except (ApiError, TransportError) as e:
            logger.error("Search on %s/%s failed: %s", index, doc_type, e)
            raise UpstreamUnavailable(
                f"Elasticsearch query failed: {e}",
                {"index": index, "type": doc_type},
            ) from e

        return response_body(response)

    def count(
        self,
        index: str,
        doc_type: str,
        query: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Count documents matching a query predicate.

        Args:
            index: Index to search
            doc_type: Document type of the index
            query: Query predicate (all documents if not specified)

        Returns:
            Exact number of matching documents
        """
        response = self.query(
            index,
            doc_type,
            ElasticQuery(query=query, size=0, track_total_hits=True),
        )
        return parse_total(response)
