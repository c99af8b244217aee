"""Main entrypoint."""

import asyncio
import signal
import sys
from pathlib import Path

import structlog
from pydantic import ValidationError

from honeycomb_metrics.application.dto.metric import MetricConfig
from honeycomb_metrics.application.use_cases.evaluate_metric import MetricProvider
from honeycomb_metrics.domain.enums import AnalysisPhase
from honeycomb_metrics.domain.errors import InvalidQueryError
from honeycomb_metrics.infrastructure.config.settings import Settings
from honeycomb_metrics.infrastructure.honeycomb.client import HoneycombClient
from honeycomb_metrics.infrastructure.observability.logging import configure_logging
from honeycomb_metrics.infrastructure.runtime.clock import SystemClock
from honeycomb_metrics.infrastructure.runtime.health import start_metrics_server
from honeycomb_metrics.interfaces.runners.analysis_runner import AnalysisRunner

logger = structlog.get_logger()


def load_metric_config(path: str | None) -> MetricConfig:
    """Load the metric provider configuration from a JSON file."""
    if not path:
        raise InvalidQueryError("METRIC_CONFIG_PATH is not set")
    try:
        return MetricConfig.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise InvalidQueryError(f"failed to read metric config {path}: {e}") from e
    except ValidationError as e:
        raise InvalidQueryError(f"invalid metric config {path}: {e}") from e


async def run_analysis(settings: Settings) -> AnalysisPhase:
    """Run the configured analysis and return the phase of the last measurement."""
    config = load_metric_config(settings.metric_config_path)

    async with HoneycombClient.from_settings(settings) as client:
        provider = MetricProvider(
            config,
            client,
            SystemClock(),
            evaluation_timeout=settings.evaluation_timeout_seconds,
        )
        logger.info("analysis_starting", dataset=config.dataset, **provider.metadata())

        runner = AnalysisRunner(
            provider,
            count=settings.analysis_count,
            interval=settings.analysis_interval_seconds,
            fail_fast=settings.analysis_fail_fast,
        )
        outcomes = await runner.run()

    final = outcomes[-1]
    logger.info(
        "analysis_completed",
        phase=final.phase.value,
        value=final.value,
        measurements=len(outcomes),
        error=final.message or None,
    )
    return final.phase


def main() -> None:
    """Entrypoint."""
    settings = Settings()
    configure_logging(settings.log_level, settings.log_json)

    if settings.metrics_server_enabled:
        start_metrics_server(settings)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    task = loop.create_task(run_analysis(settings))

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, task.cancel)

    try:
        phase = loop.run_until_complete(task)
    except asyncio.CancelledError:
        logger.info("analysis_cancelled")
        sys.exit(130)
    except InvalidQueryError as e:
        logger.error("analysis_config_error", error=str(e))
        sys.exit(2)
    finally:
        loop.close()

    sys.exit(0 if phase == AnalysisPhase.SUCCESSFUL else 1)


if __name__ == "__main__":
    main()
