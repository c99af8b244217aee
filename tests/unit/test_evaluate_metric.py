"""Unit tests for evaluate_metric use case."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from honeycomb_metrics.application.dto.metric import MetricConfig
from honeycomb_metrics.application.use_cases.evaluate_metric import MetricProvider
from honeycomb_metrics.domain.entities import QueryHandle, QuerySpec
from honeycomb_metrics.domain.enums import AnalysisPhase
from honeycomb_metrics.domain.errors import (
    BackendError,
    NoResultsError,
    PredicateCompileError,
    PredicateTypeError,
    QueryTimeoutError,
    TransportError,
    TypeMismatchError,
)
from honeycomb_metrics.domain.ports import ClockPort, QueryBackendPort
from honeycomb_metrics.domain.query import QueryResult

QUERY = '{"calculations": [{"op": "P99", "column": "duration_ms"}]}'
STARTED_AT = datetime(2025, 1, 15, 10, 30, 0, tzinfo=timezone.utc)
FINISHED_AT = STARTED_AT + timedelta(seconds=2)


def make_result(values) -> QueryResult:
    """Create a complete query result with one P99(duration_ms) row per value."""
    return QueryResult.model_validate(
        {
            "id": "sGUnkBHgRFN",
            "complete": True,
            "query": {
                "id": "q-123",
                "breakdowns": ["user_agent"],
                "calculations": [{"op": "P99", "column": "duration_ms"}],
            },
            "data": {
                "results": [
                    {"data": {"P99(duration_ms)": value, "name": "TestGoogleCallbackLogin"}}
                    for value in values
                ]
            },
        }
    )


@pytest.fixture
def mock_backend():
    """Create mock query backend."""
    backend = MagicMock(spec=QueryBackendPort)
    backend.submit = AsyncMock(return_value=QueryHandle(id="q-123"))
    backend.resolve = AsyncMock(return_value=make_result([210, 250]))
    return backend


@pytest.fixture
def mock_clock():
    """Create mock clock returning start then finish time."""
    clock = MagicMock(spec=ClockPort)
    clock.now.side_effect = [STARTED_AT, FINISHED_AT] * 10
    return clock


def make_provider(backend, clock, **config) -> MetricProvider:
    """Create provider for the given condition config."""
    config.setdefault("query", QUERY)
    config.setdefault("dataset", "api")
    return MetricProvider(MetricConfig(**config), backend, clock)


@pytest.mark.asyncio
async def test_evaluate_successful(mock_backend, mock_clock):
    """Test both conditions with a passing series."""
    provider = make_provider(
        mock_backend,
        mock_clock,
        successCondition="result < 300",
        failureCondition="result > 310",
    )

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.SUCCESSFUL
    assert outcome.value == "[210, 250]"
    assert outcome.error is None
    assert outcome.message == ""
    assert outcome.started_at == STARTED_AT
    assert outcome.finished_at == FINISHED_AT
    mock_backend.submit.assert_awaited_once_with(QuerySpec(query=QUERY, dataset="api"))
    mock_backend.resolve.assert_awaited_once_with(
        QueryHandle(id="q-123"), QuerySpec(query=QUERY, dataset="api")
    )


@pytest.mark.asyncio
async def test_evaluate_failure_condition_only(mock_backend, mock_clock):
    """Test failure condition met by the last value."""
    provider = make_provider(mock_backend, mock_clock, failureCondition="result > 240")

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.FAILED
    assert outcome.value == "[210, 250]"
    assert outcome.error is None


@pytest.mark.asyncio
async def test_evaluate_without_conditions(mock_backend, mock_clock):
    """Test data without conditions is successful."""
    provider = make_provider(mock_backend, mock_clock)

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.SUCCESSFUL
    assert outcome.value == "[210, 250]"


@pytest.mark.asyncio
async def test_evaluate_inconclusive(mock_backend, mock_clock):
    """Test neither condition met."""
    provider = make_provider(
        mock_backend,
        mock_clock,
        success_condition="result < 200",
        failure_condition="result > 300",
    )

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.INCONCLUSIVE


@pytest.mark.asyncio
async def test_evaluate_reuses_query_handle(mock_backend, mock_clock):
    """Test the query is only created once per provider."""
    provider = make_provider(mock_backend, mock_clock, successCondition="result < 300")

    first = await provider.evaluate()
    second = await provider.evaluate()

    assert first.phase == AnalysisPhase.SUCCESSFUL
    assert second.phase == AnalysisPhase.SUCCESSFUL
    assert mock_backend.submit.await_count == 1
    assert mock_backend.resolve.await_count == 2
    assert provider.query_handle == QueryHandle(id="q-123")


@pytest.mark.asyncio
async def test_concurrent_evaluations_submit_once(mock_backend, mock_clock):
    """Test concurrent evaluations share a single submission."""

    async def slow_submit(spec):
        await asyncio.sleep(0.01)
        return QueryHandle(id="q-123")

    mock_backend.submit.side_effect = slow_submit
    provider = make_provider(mock_backend, mock_clock)

    outcomes = await asyncio.gather(provider.evaluate(), provider.evaluate())

    assert [o.phase for o in outcomes] == [AnalysisPhase.SUCCESSFUL] * 2
    assert mock_backend.submit.await_count == 1


@pytest.mark.asyncio
async def test_evaluate_submit_error(mock_backend, mock_clock):
    """Test a rejected query becomes an Error outcome and nothing is cached."""
    mock_backend.submit.side_effect = BackendError("failed to create query: bad op")
    provider = make_provider(mock_backend, mock_clock)

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.ERROR
    assert outcome.value == ""
    assert isinstance(outcome.error, BackendError)
    assert outcome.message == "failed to create query: bad op"
    assert outcome.finished_at == FINISHED_AT
    assert provider.query_handle is None
    mock_backend.resolve.assert_not_called()


@pytest.mark.asyncio
async def test_evaluate_resolve_error_keeps_handle(mock_backend, mock_clock):
    """Test transport errors while resolving keep the cached handle."""
    mock_backend.resolve.side_effect = TransportError("failed to execute request: reset")
    provider = make_provider(mock_backend, mock_clock)

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.ERROR
    assert outcome.value == ""
    assert provider.query_handle == QueryHandle(id="q-123")


@pytest.mark.asyncio
async def test_evaluate_poll_timeout(mock_backend, mock_clock):
    """Test a query that never completes ends in Error with no value."""
    mock_backend.resolve.side_effect = QueryTimeoutError("timed out waiting for query result")
    provider = make_provider(mock_backend, mock_clock, successCondition="result < 300")

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.ERROR
    assert outcome.value == ""
    assert isinstance(outcome.error, QueryTimeoutError)


@pytest.mark.asyncio
async def test_evaluate_deadline_cancels_resolve(mock_backend, mock_clock):
    """Test the evaluation deadline interrupts a hanging resolve."""

    async def hang(handle, spec):
        await asyncio.sleep(10)

    mock_backend.resolve.side_effect = hang
    provider = MetricProvider(
        MetricConfig(query=QUERY, dataset="api"),
        mock_backend,
        mock_clock,
        evaluation_timeout=0.05,
    )

    outcome = await asyncio.wait_for(provider.evaluate(), timeout=1)

    assert outcome.phase == AnalysisPhase.ERROR
    assert isinstance(outcome.error, QueryTimeoutError)
    assert "did not finish within 0.05s" in outcome.message


@pytest.mark.asyncio
async def test_evaluate_no_results(mock_backend, mock_clock):
    """Test empty results end in Error with no value."""
    mock_backend.resolve.return_value = make_result([])
    provider = make_provider(mock_backend, mock_clock, successCondition="result < 300")

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.ERROR
    assert outcome.value == ""
    assert isinstance(outcome.error, NoResultsError)
    assert outcome.message == "no results returned"


@pytest.mark.asyncio
async def test_evaluate_type_mismatch(mock_backend, mock_clock):
    """Test non-integer values end in Error."""
    mock_backend.resolve.return_value = make_result([210.5])
    provider = make_provider(mock_backend, mock_clock)

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.ERROR
    assert isinstance(outcome.error, TypeMismatchError)


@pytest.mark.asyncio
async def test_evaluate_compile_error_is_failed_with_value(mock_backend, mock_clock):
    """Test an invalid condition fails the measurement but keeps the value."""
    provider = make_provider(mock_backend, mock_clock, successCondition="result <")

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.FAILED
    assert outcome.value == "[210, 250]"
    assert isinstance(outcome.error, PredicateCompileError)


@pytest.mark.asyncio
async def test_evaluate_deeply_nested_condition_is_failed(mock_backend, mock_clock):
    """Test a condition nested past the stack limit fails instead of raising."""
    condition = "(" * 2000 + "result" + ")" * 2000 + " < 300"
    provider = make_provider(mock_backend, mock_clock, successCondition=condition)

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.FAILED
    assert outcome.value == "[210, 250]"
    assert isinstance(outcome.error, PredicateCompileError)
    assert "nested too deeply" in outcome.message


@pytest.mark.asyncio
async def test_evaluate_mistyped_condition_is_failed(mock_backend, mock_clock):
    """Test operand kind mismatches are caught before evaluation."""
    provider = make_provider(mock_backend, mock_clock, successCondition="result < 'slow'")

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.FAILED
    assert isinstance(outcome.error, PredicateCompileError)


@pytest.mark.asyncio
async def test_evaluate_non_boolean_condition_is_error_with_value(mock_backend, mock_clock):
    """Test a non-boolean condition errors but keeps the value."""
    provider = make_provider(mock_backend, mock_clock, failureCondition="result * 2")

    outcome = await provider.evaluate()

    assert outcome.phase == AnalysisPhase.ERROR
    assert outcome.value == "[210, 250]"
    assert isinstance(outcome.error, PredicateTypeError)


def test_metadata_contains_resolved_query(mock_backend, mock_clock):
    """Test metadata exposes the raw query."""
    provider = make_provider(mock_backend, mock_clock)

    assert provider.metadata() == {"ResolvedHoneycombQuery": QUERY}


def test_metadata_empty_without_query(mock_backend, mock_clock):
    """Test metadata is empty when no query is configured."""
    provider = make_provider(mock_backend, mock_clock, query="")

    assert provider.metadata() == {}
