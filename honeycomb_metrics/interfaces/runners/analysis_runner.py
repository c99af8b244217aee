"""Analysis run adapter."""

import asyncio

import structlog

from honeycomb_metrics.application.use_cases.evaluate_metric import MetricProvider
from honeycomb_metrics.domain.entities import Outcome
from honeycomb_metrics.domain.enums import AnalysisPhase

logger = structlog.get_logger()

_TERMINAL_PHASES = {AnalysisPhase.FAILED, AnalysisPhase.ERROR}


class AnalysisRunner:
    """Takes repeated measurements of one metric, like an analysis run does."""

    def __init__(
        self,
        provider: MetricProvider,
        count: int = 1,
        interval: float = 60.0,
        fail_fast: bool = True,
    ) -> None:
        """Initialize analysis runner."""
        if count < 1:
            raise ValueError(f"count must be at least 1, got {count}")
        self.provider = provider
        self.count = count
        self.interval = interval
        self.fail_fast = fail_fast

    async def run(self) -> list[Outcome]:
        """Evaluate the metric `count` times, `interval` seconds apart."""
        outcomes: list[Outcome] = []
        for index in range(self.count):
            if index:
                await asyncio.sleep(self.interval)

            outcome = await self.provider.evaluate()
            outcomes.append(outcome)
            logger.info(
                "measurement_taken",
                measurement=index + 1,
                count=self.count,
                phase=outcome.phase.value,
                value=outcome.value,
            )

            if self.fail_fast and outcome.phase in _TERMINAL_PHASES:
                logger.warning("analysis_stopped_early", phase=outcome.phase.value)
                break
        return outcomes
