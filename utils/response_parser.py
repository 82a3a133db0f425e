"""
Response parsing utilities for Elasticsearch.
"""

from typing import Dict, Any, List


def response_body(response: Any) -> Dict[str, Any]:
    """
    Unwrap a client response into a plain dict.

    elasticsearch-py 8 returns ObjectApiResponse objects that expose the
    decoded JSON on ``.body``; plain dicts pass through.
    """
    return getattr(response, "body", response)


def parse_hits(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Extract hits from search response.

    Args:
        response: Elasticsearch response

    Returns:
        List of hit documents
    """
    return response.get("hits", {}).get("hits", [])


def parse_sources(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Extract the ``_source`` of every hit, in hit order."""
    return [hit.get("_source", {}) for hit in parse_hits(response)]


def parse_total(response: Dict[str, Any]) -> int:
    """Total hit count, for both the 6.x int and 7.x+ object forms."""
    total = response.get("hits", {}).get("total", 0)
    if isinstance(total, dict):
        return total.get("value", 0)
    return total


def parse_aggregations(response: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract aggregations from response.

    Args:
        response: Elasticsearch response

    Returns:
        Aggregations dict
    """
    return response.get("aggregations", {})


def extract_properties(mapping_response: Dict[str, Any], doc_type: str) -> Dict[str, Any]:
    """
    Pull the field properties out of a get_mapping response.

    The first key is the concrete index (the requested name may be an
    alias). Both typeless (7.x+) and typed (6.x) layouts are accepted.
    """
    if not mapping_response:
        return {}
    concrete_index = next(iter(mapping_response))
    mappings = mapping_response[concrete_index].get("mappings", {})
    if "properties" in mappings:
        return mappings["properties"]
    return mappings.get(doc_type, {}).get("properties", {})
