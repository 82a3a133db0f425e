"""
Primitive layer type definitions.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union


# Field name -> Elasticsearch type tag (text, keyword, long, date, ...)
FieldTypeMap = Mapping[str, str]


def freeze_field_types(field_types: Dict[str, str]) -> FieldTypeMap:
    """Wrap a field type dict in a read-only view over a private copy."""
    return MappingProxyType(dict(field_types))


@dataclass(frozen=True)
class IndexDescriptor:
    """A configured (index, document type) pair."""
    index: str
    type: str


@dataclass(frozen=True)
class FieldRecord:
    """Field listing for one configured index.

    ``fields`` is None when the index's mapping could not be loaded.
    """
    index: str
    type: str
    fields: Optional[List[str]]

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "type": self.type, "fields": self.fields}


@dataclass
class ElasticQuery:
    """Search request body with optional parts.

    Every part left as None is omitted from the body sent to Elasticsearch.
    """
    query: Optional[Dict[str, Any]] = None
    size: Optional[int] = None
    from_: Optional[int] = None
    sort: Optional[Union[List[Any], Dict[str, Any]]] = None
    _source: Optional[Union[bool, List[str]]] = None
    aggs: Optional[Dict[str, Any]] = None
    track_total_hits: Optional[Union[bool, int]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to Elasticsearch query dict."""
        body: Dict[str, Any] = {}

        if self.query is not None:
            body["query"] = self.query
        if self.size is not None:
            body["size"] = self.size
        if self.from_ is not None:
            body["from"] = self.from_
        if self.sort is not None:
            body["sort"] = self.sort
        if self._source is not None:
            body["_source"] = self._source
        if self.aggs is not None:
            body["aggs"] = self.aggs
        if self.track_total_hits is not None:
            body["track_total_hits"] = self.track_total_hits

        return body


@dataclass
class ElasticResponse:
    """Elasticsearch search response."""
    took: int
    timed_out: bool
    total: int
    hits: List[Dict[str, Any]]
    aggregations: Optional[Dict[str, Any]] = None
    _scroll_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElasticResponse":
        """Create from Elasticsearch response dict."""
        hits_data = data.get("hits", {})
        total = hits_data.get("total", 0)
        if isinstance(total, dict):
            total = total.get("value", 0)

        return cls(
            took=data.get("took", 0),
            timed_out=data.get("timed_out", False),
            total=total,
            hits=list(hits_data.get("hits", [])),
            aggregations=data.get("aggregations"),
            _scroll_id=data.get("_scroll_id"),
        )

    @property
    def sources(self) -> List[Dict[str, Any]]:
        return [hit.get("_source", {}) for hit in self.hits]


@dataclass
class ScrollCursor:
    """Server-side scroll context handle.

    The id may rotate on every continuation. A released cursor must not be
    presented to Elasticsearch again.
    """
    scroll_id: str
    keep_alive: str = "1m"
    released: bool = False

    def rotate(self, scroll_id: Optional[str]) -> None:
        if scroll_id:
            self.scroll_id = scroll_id


@dataclass
class ScrollBatch:
    """One page of a scroll export."""
    documents: List[Dict[str, Any]] = field(default_factory=list)
    scroll_id: Optional[str] = None
    total: int = 0

    @property
    def size(self) -> int:
        return len(self.documents)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScrollBatch":
        response = ElasticResponse.from_dict(data)
        return cls(
            documents=response.sources,
            scroll_id=response._scroll_id,
            total=response.total,
        )
