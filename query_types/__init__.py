"""
Type definitions for the Elasticsearch query layer.
"""

from .primitives import (
    FieldTypeMap,
    freeze_field_types,
    IndexDescriptor,
    FieldRecord,
    ElasticQuery,
    ElasticResponse,
    ScrollCursor,
    ScrollBatch,
)

__all__ = [
    "FieldTypeMap",
    "freeze_field_types",
    "IndexDescriptor",
    "FieldRecord",
    "ElasticQuery",
    "ElasticResponse",
    "ScrollCursor",
    "ScrollBatch",
]
