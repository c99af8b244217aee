"""Result extraction service."""

from typing import Any

from honeycomb_metrics.domain.entities import ExtractedSeries
from honeycomb_metrics.domain.errors import (
    NoCalculationsError,
    NoResultsError,
    TypeMismatchError,
)
from honeycomb_metrics.domain.query import QueryResult


def extract_series(result: QueryResult) -> ExtractedSeries:
    """Extract the first calculation's value from every result row.

    Only the first calculation of the query is used; further calculations are
    ignored.
    """
    rows = result.data.results
    if not rows:
        raise NoResultsError("no results returned")

    calculations = result.query.calculations
    if not calculations:
        raise NoCalculationsError("no calculations specified in query")

    key = calculations[0].result_key
    values = tuple(_as_int(row.data.get(key), key, index) for index, row in enumerate(rows))
    return ExtractedSeries(values=values)


def _as_int(value: Any, key: str, index: int) -> int:
    """Convert a result value to int, rejecting anything that is not integral."""
    if isinstance(value, bool):
        raise TypeMismatchError(f"expected int for {key} in row {index}, but got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise TypeMismatchError(
        f"expected int for {key} in row {index}, but got {type(value).__name__} ({value!r})"
    )
