"""
Elasticsearch connection management.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional

from elasticsearch import Elasticsearch

from config.environments import get_elasticsearch_config


logger = logging.getLogger(__name__)


def get_elasticsearch_client(config: Optional[Dict[str, Any]] = None) -> Elasticsearch:
    """
    Create an Elasticsearch client from connection settings.

    Args:
        config: Connection settings (uses environment config if not specified)

    Returns:
        Configured Elasticsearch client
    """
    if config is None:
        config = get_elasticsearch_config()

    # Build connection parameters
    params = {
        "hosts": [config["url"]],
        "request_timeout": config["timeout_ms"] / 1000.0,
        "verify_certs": config.get("verify_certs", True),
    }

    # Add CA certificates if provided
    if config.get("ca_certs"):
        params["ca_certs"] = config["ca_certs"]

    # Add authentication
    if config.get("api_key"):
        params["api_key"] = config["api_key"]
    elif config.get("username") and config.get("password"):
        params["basic_auth"] = (config["username"], config["password"])

    return Elasticsearch(**params)


class ConnectionManager:
    """
    Owns the Elasticsearch client for the lifetime of the process.

    A health probe is started in the background on construction. A failed
    probe is logged and leaves the manager disconnected; it never aborts
    construction. There is no automatic retry, call probe() again instead.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        client: Optional[Elasticsearch] = None,
        probe: bool = True,
    ):
        self.config = config or get_elasticsearch_config()
        self.client = client if client is not None else get_elasticsearch_client(self.config)
        self._connected = False
        self._probe_future: Optional[Future] = None
        if probe:
            self.start_probe()

    @property
    def host(self) -> str:
        return self.config.get("url", "")

    def start_probe(self) -> Future:
        """Run probe() on a background thread and return its future."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="es-probe")
        try:
            self._probe_future = executor.submit(self.probe)
        finally:
            # Lets the submitted probe finish without blocking the caller
            executor.shutdown(wait=False)
        return self._probe_future

    def probe(self) -> bool:
        """
        Ping the cluster and record the outcome.

        Returns:
            True if the cluster answered
        """
        try:
            reachable = bool(self.client.ping())
        except Exception as e:
            logger.warning("Elasticsearch cluster at %s is down: %s", self.host, e)
            self._connected = False
            return False

        if reachable:
            logger.info("Connected to Elasticsearch at %s", self.host)
        else:
            logger.warning("Elasticsearch cluster at %s is down", self.host)
        self._connected = reachable
        return reachable

    def wait_for_probe(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the pending probe finishes.

        Returns:
            Connection status after the probe
        """
        if self._probe_future is not None:
            self._probe_future.result(timeout=timeout)
        return self._connected

    def is_connected(self) -> bool:
        return self._connected

    def close(self) -> None:
        self.client.close()
        self._connected = False
