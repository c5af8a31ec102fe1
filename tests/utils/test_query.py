"""Tests for query parameter expansion."""

from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from asgi_test.errors import ConstructionError
from asgi_test.utils.query import expand_query_params, expand_query_value, query_value_to_str


class Filters(BaseModel):
    name: str
    page: int = 1
    active: bool = True
    tags: list[str] = []
    cursor: str | None = None


@dataclass
class Paging:
    limit: int
    offset: int


class TestQueryValueToStr:
    """Tests for scalar rendering."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (True, "true"),
            (False, "false"),
            (42, "42"),
            (1.5, "1.5"),
            (b"raw", "raw"),
            ("text", "text"),
        ],
    )
    def test_scalars(self, value: object, expected: str) -> None:
        """Scalars render the way form encoders do."""
        assert query_value_to_str(value) == expected


class TestExpandQueryValue:
    """Tests for expanding a single key."""

    def test_none_is_skipped(self) -> None:
        assert expand_query_value("q", None) == []

    def test_list_expands_per_item(self) -> None:
        """Each item becomes its own pair under the same key."""
        assert expand_query_value("tag", ["a", "b", None, 3]) == [
            ("tag", "a"),
            ("tag", "b"),
            ("tag", "3"),
        ]

    def test_nested_mapping_is_rejected(self) -> None:
        """A mapping cannot be flattened under one key."""
        with pytest.raises(ConstructionError, match="nested value"):
            expand_query_value("filter", {"a": 1})


class TestExpandQueryParams:
    """Tests for expanding whole sources."""

    def test_pairs_keep_duplicates(self) -> None:
        assert expand_query_params([("a", "1"), ("a", "1")]) == [("a", "1"), ("a", "1")]

    def test_mapping(self) -> None:
        """Mappings expand in insertion order."""
        assert expand_query_params({"page": 2, "tags": ["x", "y"], "q": None}) == [
            ("page", "2"),
            ("tags", "x"),
            ("tags", "y"),
        ]

    def test_pydantic_model(self) -> None:
        """Models expand through model_dump(mode="json")."""
        assert expand_query_params(Filters(name="alice", tags=["a"])) == [
            ("name", "alice"),
            ("page", "1"),
            ("active", "true"),
            ("tags", "a"),
        ]

    def test_dataclass(self) -> None:
        assert expand_query_params(Paging(limit=10, offset=20)) == [
            ("limit", "10"),
            ("offset", "20"),
        ]

    def test_empty_sources(self) -> None:
        assert expand_query_params({}) == []
        assert expand_query_params([]) == []

    @pytest.mark.parametrize("source", ["a=1", 42, object()])
    def test_unsupported_source(self, source: object) -> None:
        """Strings and scalars are not query parameter sources."""
        with pytest.raises(ConstructionError, match="Cannot expand"):
            expand_query_params(source)

    def test_sequence_of_non_pairs(self) -> None:
        with pytest.raises(ConstructionError, match="pairs"):
            expand_query_params([("a", "1", "extra")])
