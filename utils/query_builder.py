"""
Query building utilities for Elasticsearch.

ElasticFilterBuilder turns the caller-facing filter objects into
Elasticsearch query predicates, for example::

    {"AND": [
        {"=": {"gender": "female"}},
        {">=": {"age": 18}},
        {"IN": {"state": ["CA", "NY"]}},
    ]}
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

from utils.errors import BadRequest


def build_range_query(
    field: str,
    gt: Any = None,
    gte: Any = None,
    lt: Any = None,
    lte: Any = None,
) -> Dict[str, Any]:
    """
    Build a range query.

    Args:
        field: Field name
        gt: Exclusive lower bound
        gte: Inclusive lower bound
        lt: Exclusive upper bound
        lte: Inclusive upper bound

    Returns:
        Range query dict
    """
    range_query = {}
    if gt is not None:
        range_query["gt"] = gt
    if gte is not None:
        range_query["gte"] = gte
    if lt is not None:
        range_query["lt"] = lt
    if lte is not None:
        range_query["lte"] = lte

    return {"range": {field: range_query}}


def build_term_query(
    field: str,
    value: Union[str, int, float, bool],
) -> Dict[str, Any]:
    """
    Build a term query for exact matching.

    Args:
        field: Field name
        value: Value to match

    Returns:
        Term query dict
    """
    return {"term": {field: value}}


def build_terms_query(field: str, values: List[Any]) -> Dict[str, Any]:
    """Build a terms query matching any of the values."""
    return {"terms": {field: list(values)}}


def build_search_query(keyword: str, fields: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Build a free-text query across several fields.

    Args:
        keyword: Text to search
        fields: Fields to search (all fields if not specified)

    Returns:
        multi_match query dict
    """
    query: Dict[str, Any] = {"query": keyword}
    if fields:
        query["fields"] = list(fields)
    return {"multi_match": query}


def build_bool_query(
    must: Optional[List[Dict[str, Any]]] = None,
    must_not: Optional[List[Dict[str, Any]]] = None,
    should: Optional[List[Dict[str, Any]]] = None,
    filter: Optional[List[Dict[str, Any]]] = None,
    minimum_should_match: Optional[Union[int, str]] = None,
) -> Dict[str, Any]:
    """
    Build a bool query combining multiple conditions.

    Args:
        must: Queries that must match
        must_not: Queries that must not match
        should: Optional queries (OR logic)
        filter: Filter context queries (no scoring)
        minimum_should_match: Minimum number of should clauses

    Returns:
        Bool query dict
    """
    bool_query = {}

    if must:
        bool_query["must"] = must
    if must_not:
        bool_query["must_not"] = must_not
    if should:
        bool_query["should"] = should
    if filter:
        bool_query["filter"] = filter
    if minimum_should_match is not None:
        bool_query["minimum_should_match"] = minimum_should_match

    return {"bool": bool_query}


class FilterBuilder(Protocol):
    """Turns a caller filter object into an Elasticsearch query predicate."""

    def build(
        self,
        filter: Optional[Dict[str, Any]],
        field_types: Mapping[str, str],
        exclude_field: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        ...


_RANGE_OPERATORS = {">": "gt", ">=": "gte", "<": "lt", "<=": "lte"}


class ElasticFilterBuilder:
    """Default FilterBuilder for the AND/OR/comparison filter syntax."""

    def build(
        self,
        filter: Optional[Dict[str, Any]],
        field_types: Mapping[str, str],
        exclude_field: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Build a query predicate from a filter object.

        Args:
            filter: Filter object (None or empty means no predicate)
            field_types: Field types of the target index, for validation
            exclude_field: Drop every clause on this field

        Returns:
            Query dict, or None when nothing is left to filter on

        Raises:
            BadRequest: On unknown operators, fields or malformed clauses
        """
        if not filter:
            return None
        return self._build_clause(filter, field_types, exclude_field)

    def _build_clause(
        self,
        clause: Dict[str, Any],
        field_types: Mapping[str, str],
        exclude_field: Optional[str],
    ) -> Optional[Dict[str, Any]]:
        if not isinstance(clause, dict) or len(clause) != 1:
            raise BadRequest(f"Filter clause must have exactly one operator: {clause}")

        operator, operand = next(iter(clause.items()))
        op = operator.upper()

        if op in ("AND", "OR"):
            if not isinstance(operand, list):
                raise BadRequest(f'"{operator}" expects a list of clauses')
            children = [self._build_clause(child, field_types, exclude_field) for child in operand]
            children = [child for child in children if child is not None]
            if not children:
                return None
            if op == "AND":
                return build_bool_query(must=children)
            return build_bool_query(should=children, minimum_should_match=1)

        if op == "SEARCH":
            keyword = operand.get("keyword") if isinstance(operand, dict) else None
            if not keyword:
                raise BadRequest('"search" expects a "keyword"')
            search_fields = operand.get("fields")
            self._check_fields(search_fields or [], field_types)
            return build_search_query(keyword, search_fields)

        if not isinstance(operand, dict) or len(operand) != 1:
            raise BadRequest(f'"{operator}" expects a single {{field: value}} pair')
        field, value = next(iter(operand.items()))
        self._check_fields([field], field_types)
        if field == exclude_field:
            return None

        if op in ("=", "EQ"):
            return build_term_query(field, value)
        if op in ("!=", "NE"):
            return build_bool_query(must_not=[build_term_query(field, value)])
        if op == "IN":
            if not isinstance(value, list):
                raise BadRequest(f'"{operator}" expects a list of values for "{field}"')
            return build_terms_query(field, value)
        if op in _RANGE_OPERATORS:
            return build_range_query(field, **{_RANGE_OPERATORS[op]: value})

        raise BadRequest(f'Invalid filter operator: "{operator}"')

    @staticmethod
    def _check_fields(fields: List[str], field_types: Mapping[str, str]) -> None:
        unknown = [name for name in fields if name not in field_types]
        if unknown:
            quoted = '", "'.join(unknown)
            raise BadRequest(f'Invalid filter fields: "{quoted}"', {"fields": unknown})
