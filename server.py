"""
FastMCP server for the Elasticsearch query layer.

Tools:
- health: Elasticsearch connectivity and mapping cache status
- get_fields: Fields per configured index
- get_count: Count documents matching a filter
- get_data: One page of documents
- download_data: Every matching document, exported with the scroll API
- numeric_aggregation / text_aggregation: Field summaries
"""

import json
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from dotenv import load_dotenv

# Configuration modules read the environment at import time
load_dotenv()

from config.environments import configure_logging  # noqa: E402
from tools.flows.query_facade import QueryFacade  # noqa: E402
from utils.errors import QueryLayerError  # noqa: E402


@contextmanager
def tool_errors():
    """Re-raise query layer errors as tool errors carrying status and details."""
    try:
        yield
    except QueryLayerError as e:
        raise ToolError(json.dumps(e.to_dict(), default=str)) from e


def create_server(facade: QueryFacade) -> FastMCP:
    """
    Build the MCP server around an already constructed facade.

    Args:
        facade: Query facade shared by all tools

    Returns:
        FastMCP server with the query tools registered
    """
    mcp = FastMCP("es-query-layer")

    # ========== STATUS TOOLS ==========

    @mcp.tool()
    def health() -> Dict[str, Any]:
        """
        Check Elasticsearch connectivity and which index mappings are loaded.
        """
        status = facade.health()
        healthy = status["connected"] and all(status["indices"].values())
        return {
            "overall_status": "healthy" if healthy else "degraded",
            **status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @mcp.tool()
    def get_fields(index: Optional[str] = None) -> Dict[str, Any]:
        """
        List queryable fields.

        Args:
            index: Index name (all configured indices if not specified)
        """
        with tool_errors():
            records = facade.get_fields(index)
        if index is not None:
            return records.to_dict()
        return {name: record.to_dict() for name, record in records.items()}

    # ========== QUERY TOOLS ==========

    @mcp.tool()
    def get_count(
        doc_type: str,
        index: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Count documents matching a filter.

        Args:
            doc_type: Document type (resolves the index when index is omitted)
            index: Index name
            filter: Filter object, e.g. {"AND": [{"=": {"state": "CA"}}, {">=": {"age": 18}}]}
        """
        with tool_errors():
            return {"count": facade.get_count(doc_type, index=index, filter=filter)}

    @mcp.tool()
    def get_data(
        doc_type: str,
        index: Optional[str] = None,
        fields: Optional[List[str]] = None,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Any]] = None,
        offset: int = 0,
        size: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Fetch one page of documents (offset + size up to the result window).

        Args:
            doc_type: Document type
            index: Index name
            fields: Fields to return
            filter: Filter object
            sort: Sort criteria, e.g. [{"age": {"order": "desc"}}]
            offset: Documents to skip
            size: Page size
        """
        with tool_errors():
            documents = facade.get_data(
                doc_type,
                index=index,
                fields=fields,
                filter=filter,
                sort=sort,
                offset=offset,
                size=size,
            )
        return {"count": len(documents), "data": documents}

    @mcp.tool()
    def download_data(
        doc_type: str,
        index: Optional[str] = None,
        fields: Optional[List[str]] = None,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Any]] = None,
    ) -> Dict[str, Any]:
        """
        Export every document matching a filter.

        Args:
            doc_type: Document type
            index: Index name
            fields: Fields to return
            filter: Filter object
            sort: Sort criteria
        """
        with tool_errors():
            documents = facade.download_data(doc_type, index=index, fields=fields, filter=filter, sort=sort)
        return {"count": len(documents), "data": documents}

    # ========== AGGREGATION TOOLS ==========

    @mcp.tool()
    def numeric_aggregation(
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
        Stats of a numeric field, or a histogram when range_step or bin_count is set.
        """
        with tool_errors():
            return facade.numeric_aggregation(
                doc_type,
                field,
                index=index,
                filter=filter,
                range_start=range_start,
                range_end=range_end,
                range_step=range_step,
                bin_count=bin_count,
                filter_self=filter_self,
            )

    @mcp.tool()
    def text_aggregation(
        doc_type: str,
        field: str,
        index: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None,
        filter_self: bool = False,
        size: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Document counts per distinct value of a field.
        """
        with tool_errors():
            buckets = facade.text_aggregation(
                doc_type,
                field,
                index=index,
                filter=filter,
                filter_self=filter_self,
                size=size,
            )
        return {"buckets": buckets}

    return mcp


def main() -> None:
    configure_logging()
    facade = QueryFacade.from_config()
    facade.initialize()
    create_server(facade).run()


if __name__ == "__main__":
    main()
