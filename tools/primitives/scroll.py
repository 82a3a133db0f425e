"""
Scroll-based export of result sets larger than one page.

The export walks a server-side scroll cursor page by page:

    INIT      no cursor yet; the first search opens one
    FETCHING  the last page was non-empty; continue with the cursor only
    DONE      a page came back empty; no further requests
    CLEANED   the cursor was released with clear_scroll

The cursor is released on every exit path, including errors,
cancellation and the consumer abandoning the iterator early.
"""

import json
import logging
import threading
import time
from contextlib import closing
from typing import Any, Dict, Iterator, List, Optional

from elasticsearch import ApiError, NotFoundError, TransportError

from config.environments import get_scroll_config
from query_types.primitives import ElasticQuery, ScrollBatch, ScrollCursor
from tools.primitives.mapping import MappingCache
from utils.connection import ConnectionManager
from utils.errors import CursorExpired, ScrollCancelled, UpstreamUnavailable
from utils.response_parser import response_body
from utils.validation import validate_fields, validate_index_and_type


logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cooperative cancellation for an export.

    Cancelled once cancel() is called or, if a timeout was given, once
    that many seconds have passed since construction.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ScrollCancelled("Export cancelled or deadline exceeded")


class ScrollExporter:
    """Exports every document matching a filter using the scroll API."""

    def __init__(
        self,
        connection: ConnectionManager,
        mapping_cache: MappingCache,
        page_size: Optional[int] = None,
        keep_alive: Optional[str] = None,
    ):
        scroll_config = get_scroll_config()
        self._connection = connection
        self._mapping_cache = mapping_cache
        self.page_size = page_size or scroll_config["page_size"]
        self.keep_alive = keep_alive or scroll_config["keep_alive"]

    def iter_batches(
        self,
        index: str,
        doc_type: str,
        filter: Optional[Dict[str, Any]] = None,
        fields: Optional[List[str]] = None,
        sort: Optional[List[Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Iterator[ScrollBatch]:
        """
        Validate the request and return a lazy iterator of result pages.

        Validation runs immediately, before any request is sent. The
        returned iterator is forward-only and cannot be restarted.

        Args:
            index: Index to export from
            doc_type: Document type of the index
            filter: Query predicate (all documents if not specified)
            fields: Fields to return (all fields if not specified)
            sort: Sort criteria (index order if not specified)
            cancel_token: Checked before every page request

        Returns:
            Iterator of non-empty ScrollBatch pages

        Raises:
            BadRequest: If index/type are missing or not configured, or a field is unknown
            MappingUnavailable: If the index's mapping is not loaded
        """
        validate_index_and_type(index, doc_type)
        self._mapping_cache.check_index(index, doc_type)
        validate_fields(fields, self._mapping_cache.require_fields(index))

        body = ElasticQuery(
            query=filter or {"match_all": {}},
            size=self.page_size,
            # _doc is the cheapest order for a scroll
            sort=sort or ["_doc"],
            _source=list(fields) if fields else None,
        ).to_dict()
        logger.debug("Scroll query body for %s/%s: %s", index, doc_type, json.dumps(body, default=str))

        return self._scroll(index, doc_type, body, cancel_token)

    def iter_documents(self, index: str, doc_type: str, **kwargs: Any) -> Iterator[Dict[str, Any]]:
        """Like iter_batches, flattened to documents in page order."""
        return self._flatten(self.iter_batches(index, doc_type, **kwargs))

    def scroll_query(
        self,
        index: str,
        doc_type: str,
        filter: Optional[Dict[str, Any]] = None,
        fields: Optional[List[str]] = None,
        sort: Optional[List[Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Dict[str, Any]]:
        """
        Export all matching documents into one list.

        Every page is buffered in memory; prefer iter_documents for large
        exports.

        Returns:
            Documents, first page first, in the order Elasticsearch returned them
        """
        documents: List[Dict[str, Any]] = []
        for batch in self.iter_batches(index, doc_type, filter, fields, sort, cancel_token):
            documents.extend(batch.documents)
        return documents

    @staticmethod
    def _flatten(batches: Iterator[ScrollBatch]) -> Iterator[Dict[str, Any]]:
        with closing(batches):
            for batch in batches:
                yield from batch.documents

    def _scroll(
        self,
        index: str,
        doc_type: str,
        body: Dict[str, Any],
        cancel_token: Optional[CancellationToken],
    ) -> Iterator[ScrollBatch]:
        cursor: Optional[ScrollCursor] = None
        try:
            self._check_cancelled(cancel_token)
            batch = self._first_page(index, doc_type, body)
            cursor = ScrollCursor(scroll_id=batch.scroll_id, keep_alive=self.keep_alive)
            logger.debug("Created scroll on %s/%s, %d hit(s) in total", index, doc_type, batch.total)

            while batch.size > 0:
                logger.debug("Got batch of %d document(s) from %s", batch.size, index)
                yield batch
                self._check_cancelled(cancel_token)
                batch = self._next_page(cursor)
                cursor.rotate(batch.scroll_id)

            logger.debug("End scrolling %s/%s", index, doc_type)
        finally:
            if cursor is not None:
                self.release(cursor)

    @staticmethod
    def _check_cancelled(cancel_token: Optional[CancellationToken]) -> None:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

    def _first_page(self, index: str, doc_type: str, body: Dict[str, Any]) -> ScrollBatch:
        try:
            response = self._connection.client.search(
                index=index,
                body=body,
                scroll=self.keep_alive,
            )
        except (ApiError, TransportError) as e:
            logger.error("Scroll search on %s/%s failed: %s", index, doc_type, e)
            raise UpstreamUnavailable(
                f"Elasticsearch scroll query failed: {e}",
                {"index": index, "type": doc_type},
            ) from e

        batch = ScrollBatch.from_dict(response_body(response))
        if not batch.scroll_id:
            raise UpstreamUnavailable(
                "Elasticsearch returned no scroll id",
                {"index": index, "type": doc_type},
            )
        return batch

    def _next_page(self, cursor: ScrollCursor) -> ScrollBatch:
        if cursor.released:
            raise CursorExpired(cursor.scroll_id)

        try:
            response = self._connection.client.scroll(
                scroll_id=cursor.scroll_id,
                scroll=cursor.keep_alive,
            )
        except NotFoundError as e:
            # search_context_missing_exception: the keep-alive lapsed
            logger.error("Scroll cursor expired: %s", e)
            raise CursorExpired(cursor.scroll_id, f"Scroll cursor expired: {e}") from e
        except (ApiError, TransportError) as e:
            logger.error("Scroll continuation failed: %s", e)
            raise UpstreamUnavailable(f"Elasticsearch scroll failed: {e}") from e

        return ScrollBatch.from_dict(response_body(response))

    def release(self, cursor: ScrollCursor) -> None:
        """
        Clear a scroll context to free server resources.

        Best effort: failures are logged, never raised. Releasing the same
        cursor twice sends a single request.
        """
        if cursor.released:
            return
        cursor.released = True

        try:
            self._connection.client.clear_scroll(scroll_id=cursor.scroll_id)
            logger.debug("Scroll cleaned")
        except (ApiError, TransportError) as e:
            logger.warning("Failed to clear scroll cursor: %s", e)
