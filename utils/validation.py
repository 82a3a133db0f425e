"""
Input validation utilities.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from utils.errors import BadRequest


def strip_empty_values(body: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Drop top-level keys whose value is None.

    Every other key is kept with its value untouched, including falsy
    values such as 0, False, "" and empty containers.

    Args:
        body: Request body

    Returns:
        New dict without the None-valued keys
    """
    return {key: value for key, value in body.items() if value is not None}


def validate_index_and_type(index: Optional[str], doc_type: Optional[str]) -> None:
    """
    Require both an index and a document type name.

    Raises:
        BadRequest: If either is empty
    """
    if not index or not doc_type:
        raise BadRequest(
            "Invalid es index or es type name",
            {"index": index, "type": doc_type},
        )


def find_unknown_fields(fields: Optional[Iterable[str]], known_fields: Iterable[str]) -> List[str]:
    """
    List requested fields missing from the known field list.

    Args:
        fields: Requested field names (None means no projection)
        known_fields: Field names available on the index

    Returns:
        Unknown field names in request order
    """
    if not fields:
        return []
    known = set(known_fields)
    return [name for name in fields if name not in known]


def validate_fields(fields: Optional[Iterable[str]], known_fields: Iterable[str]) -> None:
    """
    Raises:
        BadRequest: Naming every requested field that is not known
    """
    unknown = find_unknown_fields(fields, known_fields)
    if unknown:
        quoted = '", "'.join(unknown)
        raise BadRequest(f'Invalid fields: "{quoted}"', {"fields": unknown})


def validate_page_window(offset: int, size: int, max_result_window: int) -> None:
    """
    Reject pages that reach past the engine's result window.

    Raises:
        BadRequest: If offset or size is negative, or offset + size is too large
    """
    if offset < 0 or size < 0:
        raise BadRequest("Offset and size must not be negative", {"offset": offset, "size": size})
    if offset + size > max_result_window:
        raise BadRequest(
            f"offset + size must not exceed {max_result_window}; "
            "use download_data for larger result sets",
            {"offset": offset, "size": size},
        )

