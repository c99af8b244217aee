"""Honeycomb request and error payloads."""

from pydantic import BaseModel


class CreateQueryResultRequest(BaseModel):
    """Request body that materializes a query result."""

    query_id: str
    disable_series: bool = False
    limit: int = 10000


class ErrorResponse(BaseModel):
    """Error body returned by the backend."""

    error: str | None = ""
