"""Outcome evaluation service."""

from collections.abc import Sequence

from honeycomb_metrics.domain.enums import AnalysisPhase
from honeycomb_metrics.domain.errors import PredicateTypeError
from honeycomb_metrics.domain.ports import PredicateEnginePort
from honeycomb_metrics.domain.types import Predicate


def evaluate_outcome(
    values: Sequence[int],
    success_condition: str,
    failure_condition: str,
    engine: PredicateEnginePort,
) -> AnalysisPhase:
    """Reduce per-value predicate results to one analysis phase.

    Every value is evaluated; the last value's result is the one that counts
    for each condition. With only one condition given, the other is its
    negation.

    Raises:
        PredicateCompileError: if a condition does not compile.
        PredicateEvaluationError: if a condition fails or is not boolean.
    """
    if not success_condition and not failure_condition:
        return AnalysisPhase.SUCCESSFUL

    success_predicate = engine.compile(success_condition) if success_condition else None
    failure_predicate = engine.compile(failure_condition) if failure_condition else None

    success = False
    failure = False
    for value in values:
        if success_predicate is not None:
            success = _run(success_predicate, value, success_condition)
        if failure_predicate is not None:
            failure = _run(failure_predicate, value, failure_condition)

    if success_predicate is not None and failure_predicate is None:
        failure = not success
    elif success_predicate is None and failure_predicate is not None:
        success = not failure

    if failure:
        return AnalysisPhase.FAILED
    if not success:
        return AnalysisPhase.INCONCLUSIVE
    return AnalysisPhase.SUCCESSFUL


def _run(predicate: Predicate, value: int, source: str) -> bool:
    output = predicate(value)
    if not isinstance(output, bool):
        raise PredicateTypeError(
            f"expected bool from {source!r}, but got {type(output).__name__}"
        )
    return output
