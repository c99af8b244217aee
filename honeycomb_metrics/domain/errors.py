"""Domain errors."""

from honeycomb_metrics.domain.enums import AnalysisPhase


class DomainError(Exception):
    """Base domain error.

    Each error declares the analysis phase an evaluation ends in when the
    error reaches the provider.
    """

    phase: AnalysisPhase = AnalysisPhase.ERROR


class InvalidQueryError(DomainError):
    """Query or provider configuration is malformed."""


class TransportError(DomainError):
    """Network or protocol failure talking to the backend."""


class BackendError(DomainError):
    """Backend explicitly rejected the request."""


class QueryTimeoutError(DomainError):
    """Query result did not complete in time."""


class NoResultsError(DomainError):
    """Query result has no rows."""


class NoCalculationsError(DomainError):
    """Query has no calculations to extract."""


class TypeMismatchError(DomainError):
    """Result value is not an integer."""


class PredicateCompileError(DomainError):
    """Predicate source could not be compiled."""

    phase = AnalysisPhase.FAILED


class PredicateEvaluationError(DomainError):
    """Predicate failed while running."""


class PredicateTypeError(PredicateEvaluationError):
    """Predicate did not evaluate to a boolean."""
