"""
Environment configuration management.
"""

import logging
import os
from typing import Dict, Any, Optional


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value else None


# Single environment configuration - reads directly from env vars
DEFAULT_CONFIG = {
    "name": "default",
    "elasticsearch": {
        "url": os.getenv("ELASTIC_URL", os.getenv("ELASTICSEARCH_URL", "http://localhost:9200")),
        "username": os.getenv("ELASTIC_USERNAME", os.getenv("ELASTICSEARCH_USERNAME")),
        "password": os.getenv("ELASTIC_PASSWORD", os.getenv("ELASTICSEARCH_PASSWORD")),
        "api_key": os.getenv("ELASTIC_API_KEY", os.getenv("ELASTICSEARCH_API_KEY")),
        "timeout_ms": int(os.getenv("ELASTIC_TIMEOUT", os.getenv("ELASTICSEARCH_TIMEOUT", "30000"))),
        "verify_certs": os.getenv("ELASTIC_VERIFY_CERTS", "true").lower() in ("true", "1", "yes"),
        "ca_certs": os.getenv("ELASTIC_CA_CERTS"),
    },
    "scroll": {
        "page_size": int(os.getenv("SCROLL_PAGE_SIZE", "10000")),
        "keep_alive": os.getenv("SCROLL_KEEP_ALIVE", "1m"),
    },
    "mapping": {
        # None means one worker per configured index
        "max_workers": _optional_int("MAPPING_MAX_WORKERS"),
    },
    "defaults": {
        "page_size": int(os.getenv("DEFAULT_PAGE_SIZE", "10")),
        "max_result_window": int(os.getenv("MAX_RESULT_WINDOW", "10000")),
    },
    "logging": {
        "level": os.getenv("LOG_LEVEL", "INFO"),
    },
}


def get_elasticsearch_config() -> Dict[str, Any]:
    """
    Get Elasticsearch connection configuration.

    Returns:
        Elasticsearch configuration dictionary
    """
    return DEFAULT_CONFIG["elasticsearch"]


def get_scroll_config() -> Dict[str, Any]:
    """Get scroll page size and cursor keep-alive."""
    return DEFAULT_CONFIG["scroll"]


def get_mapping_config() -> Dict[str, Any]:
    return DEFAULT_CONFIG["mapping"]


def get_query_defaults() -> Dict[str, Any]:
    return DEFAULT_CONFIG["defaults"]


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging once for the process.

    Args:
        level: Log level name (uses LOG_LEVEL if not specified)
    """
    level_name = (level or DEFAULT_CONFIG["logging"]["level"]).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # elastic_transport logs every request at INFO
    logging.getLogger("elastic_transport").setLevel(logging.WARNING)
