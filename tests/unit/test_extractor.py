"""Unit tests for result extraction."""

import pytest

from honeycomb_metrics.application.services.extractor import extract_series
from honeycomb_metrics.domain.errors import (
    NoCalculationsError,
    NoResultsError,
    TypeMismatchError,
)
from honeycomb_metrics.domain.query import QueryResult


def make_result(rows, calculations=None) -> QueryResult:
    """Create a complete query result with the given result rows."""
    if calculations is None:
        calculations = [{"op": "P99", "column": "duration_ms"}]
    return QueryResult.model_validate(
        {
            "id": "sGUnkBHgRFN",
            "complete": True,
            "query": {"id": "q-123", "breakdowns": ["user_agent"], "calculations": calculations},
            "data": {"results": [{"data": row} for row in rows]},
        }
    )


def test_extract_single_row():
    """Test a single row renders as a one-element list."""
    series = extract_series(make_result([{"P99(duration_ms)": 210}]))

    assert series.values == (210,)
    assert series.rendered == "[210]"


def test_extract_keeps_row_order():
    """Test values follow result row order."""
    series = extract_series(
        make_result(
            [
                {"P99(duration_ms)": 210, "name": "TestGoogleCallbackLogin"},
                {"P99(duration_ms)": 250, "name": "TestGoogleCallbackLogin"},
                {"P99(duration_ms)": 5, "name": "TestLogout"},
            ]
        )
    )

    assert series.values == (210, 250, 5)
    assert series.rendered == "[210, 250, 5]"


def test_extract_calculation_without_column():
    """Test calculations without a column are keyed by the op alone."""
    series = extract_series(make_result([{"COUNT": 42}], calculations=[{"op": "COUNT"}]))

    assert series.values == (42,)


def test_extract_uses_first_calculation_only():
    """Test later calculations are ignored."""
    result = make_result(
        [{"COUNT": 42, "AVG(duration_ms)": 12}],
        calculations=[{"op": "COUNT"}, {"op": "AVG", "column": "duration_ms"}],
    )

    assert extract_series(result).values == (42,)


def test_extract_integral_float():
    """Test floats without a fractional part are accepted."""
    series = extract_series(make_result([{"P99(duration_ms)": 210.0}]))

    assert series.values == (210,)
    assert series.rendered == "[210]"


def test_extract_no_results():
    """Test empty result rows raise NoResultsError."""
    with pytest.raises(NoResultsError, match="no results returned"):
        extract_series(make_result([]))


def test_extract_no_calculations():
    """Test queries without calculations raise NoCalculationsError."""
    with pytest.raises(NoCalculationsError):
        extract_series(make_result([{"COUNT": 1}], calculations=[]))


@pytest.mark.parametrize("value", [210.5, "210", None, True, [210]])
def test_extract_non_integer_value(value):
    """Test non-integer values raise TypeMismatchError."""
    with pytest.raises(TypeMismatchError, match="expected int for P99\\(duration_ms\\)"):
        extract_series(make_result([{"P99(duration_ms)": value}]))


def test_extract_missing_key():
    """Test rows without the calculation key raise TypeMismatchError."""
    with pytest.raises(TypeMismatchError, match="row 1"):
        extract_series(make_result([{"P99(duration_ms)": 1}, {"name": "no value"}]))
