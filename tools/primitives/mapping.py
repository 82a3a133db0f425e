"""
Field mapping cache for the configured indices.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Union

from elasticsearch import ApiError, TransportError

from config.indices import get_index_config
from query_types.primitives import FieldRecord, FieldTypeMap, IndexDescriptor, freeze_field_types
from utils.connection import ConnectionManager
from utils.errors import BadRequest, MappingUnavailable
from utils.response_parser import extract_properties, response_body


logger = logging.getLogger(__name__)


class MappingCache:
    """
    Per-index field name -> field type maps, loaded from Elasticsearch.

    initialize() builds a complete replacement map and installs it with a
    single assignment, so readers see either the previous map or the new
    one. Writers are serialized by a lock; readers take no lock.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        indices: Sequence[IndexDescriptor],
        max_workers: Optional[int] = None,
    ):
        self._connection = connection
        self._indices = tuple(indices)
        self._max_workers = max_workers
        self._field_types: Optional[Mapping[str, FieldTypeMap]] = None
        self._write_lock = threading.Lock()

    @property
    def indices(self) -> Sequence[IndexDescriptor]:
        return self._indices

    @property
    def initialized(self) -> bool:
        return self._field_types is not None

    def fetch_field_types(self, descriptor: IndexDescriptor) -> FieldTypeMap:
        """
        Fetch the field types of one index from Elasticsearch.

        Args:
            descriptor: Index and document type to look up

        Returns:
            Read-only field name -> type mapping

        Raises:
            ApiError, TransportError: If the mapping request fails
        """
        response = response_body(
            self._connection.client.indices.get_mapping(index=descriptor.index)
        )
        properties = extract_properties(response, descriptor.type)
        # object fields carry "properties" instead of "type"
        return freeze_field_types(
            {name: spec.get("type", "object") for name, spec in properties.items()}
        )

    def _fetch_or_none(self, descriptor: IndexDescriptor) -> Optional[FieldTypeMap]:
        try:
            return self.fetch_field_types(descriptor)
        except (ApiError, TransportError) as e:
            logger.warning(
                "Failed to load mapping for index %s (type %s): %s",
                descriptor.index, descriptor.type, e,
            )
            return None

    def initialize(self) -> Mapping[str, FieldTypeMap]:
        """
        Load the mappings of every configured index concurrently.

        An index whose fetch fails is logged and left out of the result.

        Returns:
            Read-only index -> field type mapping now installed in the cache
        """
        with self._write_lock:
            logger.info("Loading mappings for %d index(es) from Elasticsearch", len(self._indices))
            loaded: Dict[str, FieldTypeMap] = {}
            if self._indices:
                workers = self._max_workers or len(self._indices)
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="es-mapping") as executor:
                    results = list(executor.map(self._fetch_or_none, self._indices))
                for descriptor, field_types in zip(self._indices, results):
                    if field_types is not None:
                        loaded[descriptor.index] = field_types

            self._field_types = MappingProxyType(loaded)
            logger.info("Loaded mappings for %d of %d index(es)", len(loaded), len(self._indices))
            logger.debug("Field types: %s", {index: dict(types) for index, types in loaded.items()})
            return self._field_types

    def get_field_types(self, index: str) -> Optional[FieldTypeMap]:
        """
        Get cached field types of an index.

        Returns:
            Field name -> type mapping, or None if not loaded
        """
        field_types = self._field_types
        if field_types is None:
            return None
        return field_types.get(index)

    def require_field_types(self, index: str) -> FieldTypeMap:
        """
        Get field types for validation.

        Raises:
            MappingUnavailable: If the cache is not initialized or the index mapping is absent
        """
        field_types = self._field_types
        if field_types is None:
            raise MappingUnavailable("Mapping cache is not initialized")
        if index not in field_types:
            raise MappingUnavailable(f'Mapping for index "{index}" is not loaded', {"index": index})
        return field_types[index]

    def require_fields(self, index: str) -> List[str]:
        return list(self.require_field_types(index))

    def get_fields(self, index: Optional[str] = None) -> Union[FieldRecord, Dict[str, FieldRecord]]:
        """
        List the fields of one configured index, or of all of them.

        Field order follows the cached mapping and is not guaranteed.

        Args:
            index: Index name (all configured indices if not specified)

        Returns:
            FieldRecord for the index, or dict of index -> FieldRecord

        Raises:
            MappingUnavailable: If the cache is not initialized
            BadRequest: If the index is not configured
        """
        field_types = self._field_types
        if field_types is None:
            raise MappingUnavailable("Mapping cache is not initialized")

        records = {}
        for descriptor in self._indices:
            types = field_types.get(descriptor.index)
            records[descriptor.index] = FieldRecord(
                index=descriptor.index,
                type=descriptor.type,
                fields=list(types) if types is not None else None,
            )

        if index is None:
            return records
        if index not in records:
            raise BadRequest(f'Invalid es index: "{index}"', {"index": index})
        return records[index]

    def get_index_by_type(self, doc_type: str) -> str:
        """
        Find the configured index for a document type.

        Raises:
            BadRequest: If no configured index has this type
        """
        for descriptor in self._indices:
            if descriptor.type == doc_type:
                return descriptor.index
        raise BadRequest(f'Invalid es type: "{doc_type}"', {"type": doc_type})

    def check_index(self, index: str, doc_type: str) -> None:
        """
        Raises:
            BadRequest: If the (index, type) pair is not configured
        """
        descriptor = get_index_config(self._indices, index)
        if descriptor is None or descriptor.type != doc_type:
            raise BadRequest(
                f'Invalid es index or es type: "{index}", "{doc_type}"',
                {"index": index, "type": doc_type},
            )
