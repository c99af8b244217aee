"""Domain entities."""

from dataclasses import dataclass

from honeycomb_metrics.domain.enums import AnalysisPhase
from honeycomb_metrics.domain.errors import DomainError
from honeycomb_metrics.domain.types import Timestamp

ALL_DATASETS = "__all__"


@dataclass(frozen=True)
class QuerySpec:
    """Serialized query definition and the dataset it targets."""

    query: str
    dataset: str = ""

    @property
    def dataset_slug(self) -> str:
        """Dataset name used in API paths."""
        return self.dataset or ALL_DATASETS


@dataclass(frozen=True)
class QueryHandle:
    """Handle of a query created on the backend."""

    id: str


@dataclass(frozen=True)
class ExtractedSeries:
    """Per-row values of the first calculation and their rendering."""

    values: tuple[int, ...]

    @property
    def rendered(self) -> str:
        """Render values as "[v1, v2, ...]"."""
        return "[" + ", ".join(str(value) for value in self.values) + "]"


@dataclass(frozen=True)
class Outcome:
    """Result of one metric evaluation."""

    phase: AnalysisPhase
    started_at: Timestamp
    finished_at: Timestamp
    value: str = ""
    error: DomainError | None = None

    @property
    def message(self) -> str:
        """Error message, empty when the evaluation did not fail."""
        return str(self.error) if self.error is not None else ""
