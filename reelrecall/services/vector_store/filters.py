"""
Metadata filter evaluation for the in-memory vector store.

Implements the operator set the retriever emits, with Pinecone semantics:

- ``{"field": value}`` is shorthand for ``{"field": {"$eq": value}}``
- several keys in one object are ANDed
- ``$and`` / ``$or`` take lists of filter objects
- on a list-valued field, ``$eq`` and ``$in`` match when any element
  matches, ``$ne`` and ``$nin`` when no element does
"""

from typing import Any, Dict

_MISSING = object()

LOGICAL_OPERATORS = ("$and", "$or")
FIELD_OPERATORS = ("$eq", "$ne", "$in", "$nin", "$exists", "$gt", "$gte", "$lt", "$lte")


def _as_values(field_value: Any) -> list:
    if isinstance(field_value, (list, tuple, set)):
        return list(field_value)
    return [field_value]


def _compare(field_value: Any, operator: str, operand: Any) -> bool:
    if operator == "$exists":
        return (field_value is not _MISSING) == bool(operand)

    if field_value is _MISSING:
        # Absent fields only satisfy negative operators
        return operator in ("$ne", "$nin")

    values = _as_values(field_value)

    if operator == "$eq":
        return operand in values
    if operator == "$ne":
        return operand not in values
    if operator == "$in":
        return any(v in operand for v in values)
    if operator == "$nin":
        return not any(v in operand for v in values)

    try:
        if operator == "$gt":
            return any(v > operand for v in values)
        if operator == "$gte":
            return any(v >= operand for v in values)
        if operator == "$lt":
            return any(v < operand for v in values)
        if operator == "$lte":
            return any(v <= operand for v in values)
    except TypeError:
        return False

    raise ValueError(f"Unsupported filter operator: {operator}")


def matches_filter(metadata: Dict[str, Any], filter: Dict[str, Any]) -> bool:
    """Return True when ``metadata`` satisfies ``filter``. An empty filter matches everything."""
    if not filter:
        return True

    for key, condition in filter.items():
        if key == "$and":
            if not all(matches_filter(metadata, sub) for sub in condition):
                return False
        elif key == "$or":
            if not any(matches_filter(metadata, sub) for sub in condition):
                return False
        elif key.startswith("$"):
            raise ValueError(f"Unsupported logical operator: {key}")
        else:
            field_value = metadata.get(key, _MISSING)
            if isinstance(condition, dict):
                for operator, operand in condition.items():
                    if operator not in FIELD_OPERATORS:
                        raise ValueError(f"Unsupported filter operator: {operator}")
                    if not _compare(field_value, operator, operand):
                        return False
            elif not _compare(field_value, "$eq", condition):
                return False

    return True
