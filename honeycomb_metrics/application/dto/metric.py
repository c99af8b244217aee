"""Metric provider configuration DTOs."""

from pydantic import BaseModel, ConfigDict, Field

from honeycomb_metrics.domain.entities import QuerySpec


class MetricConfig(BaseModel):
    """Provider configuration of one analysis metric."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    query: str
    dataset: str = ""
    success_condition: str = Field("", alias="successCondition")
    failure_condition: str = Field("", alias="failureCondition")

    def query_spec(self) -> QuerySpec:
        """Build the query spec submitted to the backend."""
        return QuerySpec(query=self.query, dataset=self.dataset)
