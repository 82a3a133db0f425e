"""
Configuration management for the Elasticsearch query layer.
"""

from .indices import load_index_descriptors, get_index_config
from .environments import (
    get_elasticsearch_config,
    get_scroll_config,
    get_mapping_config,
    get_query_defaults,
    configure_logging,
)

__all__ = [
    "load_index_descriptors",
    "get_index_config",
    "get_elasticsearch_config",
    "get_scroll_config",
    "get_mapping_config",
    "get_query_defaults",
    "configure_logging",
]
