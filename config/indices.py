"""
Index registry: the (index, type) pairs this service is allowed to query.
"""

import json
import os
from typing import Any, Dict, List, Optional, Sequence

from query_types.primitives import IndexDescriptor


def _read_raw_indices() -> List[Dict[str, Any]]:
    raw = os.getenv("ES_INDICES")
    if raw:
        return json.loads(raw)

    config_path = os.getenv("ES_CONFIG_FILEPATH")
    if config_path:
        with open(config_path, "r", encoding="utf-8") as f:
            return json.load(f).get("indices", [])

    return []


def load_index_descriptors(
    raw_indices: Optional[List[Dict[str, Any]]] = None,
) -> List[IndexDescriptor]:
    """
    Build the index registry.

    Reads ES_INDICES (JSON list of {"index", "type"} objects) or the
    "indices" list of the JSON file named by ES_CONFIG_FILEPATH, unless
    raw_indices is given.

    Args:
        raw_indices: Optional explicit list of {"index", "type"} dicts

    Returns:
        List of IndexDescriptor in configuration order

    Raises:
        ValueError: If an entry is incomplete or an index is listed twice
    """
    if raw_indices is None:
        raw_indices = _read_raw_indices()

    descriptors: List[IndexDescriptor] = []
    seen = set()
    for position, entry in enumerate(raw_indices):
        index = (entry.get("index") or "").strip()
        doc_type = (entry.get("type") or "").strip()
        if not index or not doc_type:
            raise ValueError(f"Index entry #{position} needs both 'index' and 'type': {entry}")
        if index in seen:
            raise ValueError(f"Index configured more than once: {index}")
        seen.add(index)
        descriptors.append(IndexDescriptor(index=index, type=doc_type))

    return descriptors


def get_index_config(
    descriptors: Sequence[IndexDescriptor],
    index: str,
) -> Optional[IndexDescriptor]:
    """
    Find the configured descriptor for an index name.

    Args:
        descriptors: Index registry
        index: Index name

    Returns:
        IndexDescriptor or None if the index is not configured
    """
    for descriptor in descriptors:
        if descriptor.index == index:
            return descriptor
    return None
