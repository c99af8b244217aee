"""Evaluate a Honeycomb metric - main orchestration."""

import asyncio

import structlog

from honeycomb_metrics.application.dto.metric import MetricConfig
from honeycomb_metrics.application.services.extractor import extract_series
from honeycomb_metrics.application.services.outcome_eval import evaluate_outcome
from honeycomb_metrics.application.services.predicate_lang import ExprPredicateEngine
from honeycomb_metrics.domain.entities import Outcome, QueryHandle
from honeycomb_metrics.domain.enums import AnalysisPhase
from honeycomb_metrics.domain.errors import DomainError, QueryTimeoutError
from honeycomb_metrics.domain.ports import ClockPort, PredicateEnginePort, QueryBackendPort
from honeycomb_metrics.infrastructure.observability.metrics import (
    evaluation_duration_seconds,
    evaluations_total,
    query_submissions_total,
)

logger = structlog.get_logger()

RESOLVED_QUERY_METADATA_KEY = "ResolvedHoneycombQuery"
EVALUATION_TIMEOUT_SECONDS = 10.0


class MetricProvider:
    """Evaluates one analysis metric against Honeycomb.

    The query is created on the first evaluation and its handle is reused by
    every later evaluation of the same provider.
    """

    def __init__(
        self,
        config: MetricConfig,
        backend: QueryBackendPort,
        clock: ClockPort,
        engine: PredicateEnginePort | None = None,
        evaluation_timeout: float = EVALUATION_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize provider."""
        self.config = config
        self.spec = config.query_spec()
        self.backend = backend
        self.clock = clock
        self.engine = engine or ExprPredicateEngine()
        self.evaluation_timeout = evaluation_timeout
        self.query_handle: QueryHandle | None = None
        self._handle_lock = asyncio.Lock()

    def metadata(self) -> dict[str, str]:
        """Metadata stored alongside measurements."""
        if not self.config.query:
            return {}
        return {RESOLVED_QUERY_METADATA_KEY: self.config.query}

    async def evaluate(self) -> Outcome:
        """Run the query and evaluate the conditions against its result."""
        started_at = self.clock.now()
        value = ""
        error: DomainError | None = None

        try:
            async with asyncio.timeout(self.evaluation_timeout):
                handle = await self._get_or_submit()
                result = await self.backend.resolve(handle, self.spec)

            series = extract_series(result)
            value = series.rendered
            phase = evaluate_outcome(
                series.values,
                self.config.success_condition,
                self.config.failure_condition,
                self.engine,
            )
        except TimeoutError:
            error = QueryTimeoutError(
                f"evaluation did not finish within {self.evaluation_timeout}s"
            )
            phase = error.phase
        except DomainError as e:
            error = e
            phase = e.phase

        finished_at = self.clock.now()
        outcome = Outcome(
            phase=phase,
            started_at=started_at,
            finished_at=finished_at,
            value=value,
            error=error,
        )
        self._record(outcome)
        return outcome

    async def _get_or_submit(self) -> QueryHandle:
        """Return the cached query handle, creating the query if needed."""
        async with self._handle_lock:
            if self.query_handle is None:
                handle = await self.backend.submit(self.spec)
                query_submissions_total.inc()
                logger.info("query_submitted", query_id=handle.id, dataset=self.spec.dataset_slug)
                self.query_handle = handle
            return self.query_handle

    def _record(self, outcome: Outcome) -> None:
        evaluations_total.labels(phase=outcome.phase.value).inc()
        evaluation_duration_seconds.observe(
            (outcome.finished_at - outcome.started_at).total_seconds()
        )

        if outcome.phase == AnalysisPhase.ERROR:
            logger.error(
                "metric_evaluation_failed",
                query_id=self.query_handle.id if self.query_handle else None,
                error_type=type(outcome.error).__name__,
                error=outcome.message,
            )
            return

        logger.info(
            "metric_evaluated",
            query_id=self.query_handle.id if self.query_handle else None,
            phase=outcome.phase.value,
            value=outcome.value,
            error=outcome.message or None,
        )
