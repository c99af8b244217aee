"""Honeycomb query and query result models."""

from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator


class NullTolerantModel(BaseModel):
    """Model that reads JSON null as the field's empty default."""

    @field_validator("*", mode="before")
    @classmethod
    def null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        field = cls.model_fields[info.field_name]
        if value is not None or field.is_required():
            return value
        if field.default_factory is not None:
            return field.default_factory()
        return field.default


class Calculation(BaseModel):
    """Calculation of a query (e.g. P99 over duration_ms)."""

    op: str
    column: str | None = None

    @property
    def result_key(self) -> str:
        """Key of the calculation in result rows: "OP" or "OP(column)"."""
        if self.column is not None:
            return f"{self.op}({self.column})"
        return self.op


class Filter(BaseModel):
    """Query filter."""

    op: str
    column: str | None = None
    value: Any = None


class Order(BaseModel):
    """Query ordering."""

    op: str | None = None
    column: str | None = None
    order: str | None = None


class Having(BaseModel):
    """Post-aggregation filter."""

    calculate_op: str
    column: str | None = None
    op: str
    value: float


class Query(NullTolerantModel):
    """Query object as returned by the backend."""

    id: str = ""
    breakdowns: list[str] = Field(default_factory=list)
    calculations: list[Calculation] = Field(default_factory=list)
    filters: list[Filter] = Field(default_factory=list)
    filter_combination: str | None = None
    granularity: int | None = None
    orders: list[Order] = Field(default_factory=list)
    limit: int | None = None
    end_time: int | None = None
    time_range: int | None = None
    havings: list[Having] = Field(default_factory=list)


class SeriesDatum(NullTolerantModel):
    """Time series bucket of a query result."""

    time: str
    data: dict[str, Any] = Field(default_factory=dict)


class ResultsDatum(NullTolerantModel):
    """Aggregated row of a query result."""

    data: dict[str, Any] = Field(default_factory=dict)


class QueryResultData(NullTolerantModel):
    """Data section of a query result."""

    series: list[SeriesDatum] = Field(default_factory=list)
    results: list[ResultsDatum] = Field(default_factory=list)


class QueryResultLinks(NullTolerantModel):
    """UI links for a query result."""

    query_url: str | None = None
    graph_image_url: str | None = None


class QueryResult(NullTolerantModel):
    """Query result as returned by the backend."""

    query: Query = Field(default_factory=Query)
    id: str = ""
    complete: bool = False
    data: QueryResultData = Field(default_factory=QueryResultData)
    links: QueryResultLinks = Field(default_factory=QueryResultLinks)
