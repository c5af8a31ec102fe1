"""Expansion of query parameter (and form body) sources into key/value pairs.

Query strings allow repeated keys, so everything here produces an ordered
list of pairs and never deduplicates.

Accepted sources for expand_query_params():
    - a sequence of (key, value) pairs: used verbatim
    - a Mapping: one pair per key
    - a pydantic BaseModel: one pair per field of model_dump(mode="json")
    - a dataclass instance: one pair per field

Field values are rendered with query_value_to_str(); None is skipped and
lists/tuples expand to one pair per item.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from asgi_test.errors import ConstructionError

QueryPairs = list[tuple[str, str]]


def query_value_to_str(value: Any) -> str:
    """Render a scalar query value the way form encoders do.

    Booleans become ``true``/``false``; everything else goes through str().
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def expand_query_value(key: str, value: Any) -> QueryPairs:
    """Expand a single key and value into pairs.

    Args:
        key: Query parameter name
        value: Scalar, None (no pairs) or a list/tuple (one pair per item)

    Raises:
        ConstructionError: If value is a mapping or model, which cannot be
            flattened under a single key.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        pairs: QueryPairs = []
        for item in value:
            pairs.extend(expand_query_value(key, item))
        return pairs
    if isinstance(value, (Mapping, BaseModel)) or dataclasses.is_dataclass(value):
        raise ConstructionError(
            f"Query parameter {key!r} has a nested value of type {type(value).__name__}; "
            "only scalars and lists of scalars are supported",
            details={"key": key, "value_type": type(value).__name__},
        )
    return [(str(key), query_value_to_str(value))]


def _is_pair(item: Any) -> bool:
    return isinstance(item, (tuple, list)) and len(item) == 2


def expand_query_params(source: Any) -> QueryPairs:
    """Expand a query parameter source into an ordered list of pairs.

    Args:
        source: Pairs, a mapping, a pydantic model or a dataclass instance

    Returns:
        Ordered (key, value) pairs, duplicates preserved.

    Raises:
        ConstructionError: If the source cannot be expanded into pairs.

    Example:
        >>> expand_query_params({"page": 2, "tags": ["a", "b"], "q": None})
        [('page', '2'), ('tags', 'a'), ('tags', 'b')]
        >>> expand_query_params([("a", "1"), ("a", "1")])
        [('a', '1'), ('a', '1')]
    """
    if isinstance(source, BaseModel):
        return _expand_mapping(source.model_dump(mode="json"))
    if dataclasses.is_dataclass(source) and not isinstance(source, type):
        return _expand_mapping(dataclasses.asdict(source))
    if isinstance(source, Mapping):
        return _expand_mapping(source)
    if isinstance(source, Sequence) and not isinstance(source, (str, bytes)):
        pairs: QueryPairs = []
        for item in source:
            if not _is_pair(item):
                raise ConstructionError(
                    f"Query parameter sequences must contain (key, value) pairs, got {item!r}",
                    details={"item": repr(item)},
                )
            key, value = item
            pairs.extend(expand_query_value(key, value))
        return pairs
    raise ConstructionError(
        f"Cannot expand {type(source).__name__} into query parameters",
        details={"source_type": type(source).__name__},
    )


def _expand_mapping(mapping: Mapping[Any, Any]) -> QueryPairs:
    pairs: QueryPairs = []
    for key, value in mapping.items():
        pairs.extend(expand_query_value(str(key), value))
    return pairs
