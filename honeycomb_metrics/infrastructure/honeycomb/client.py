"""Honeycomb query API client."""

import asyncio
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_result, wait_fixed

from honeycomb_metrics.domain.entities import QueryHandle, QuerySpec
from honeycomb_metrics.domain.errors import (
    BackendError,
    InvalidQueryError,
    QueryTimeoutError,
    TransportError,
)
from honeycomb_metrics.domain.ports import QueryBackendPort
from honeycomb_metrics.domain.query import Query, QueryResult
from honeycomb_metrics.infrastructure.config.settings import Settings
from honeycomb_metrics.infrastructure.honeycomb.payloads import CreateQueryResultRequest, ErrorResponse
from honeycomb_metrics.infrastructure.observability.metrics import query_polls_total

logger = structlog.get_logger()

TEAM_HEADER = "X-Honeycomb-Team"

ModelT = TypeVar("ModelT", bound=BaseModel)


class HoneycombClient(QueryBackendPort):
    """Honeycomb query API client.

    Creates queries, materializes their results and polls until the result is
    complete. Query results cannot take longer than 10 seconds to compute, so
    polling gives up after `poll_timeout` seconds.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        *,
        poll_interval: float = 1.0,
        poll_timeout: float = 10.0,
        result_limit: int = 10000,
        request_timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize HTTP client."""
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.result_limit = result_limit
        self.http_client = httpx.AsyncClient(
            base_url=base_url,
            headers={TEAM_HEADER: api_key, "Content-Type": "application/json"},
            timeout=request_timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "HoneycombClient":
        """Build client from application settings."""
        return cls(
            settings.honeycomb_api_key,
            settings.honeycomb_api_url,
            poll_interval=settings.query_poll_interval_seconds,
            poll_timeout=settings.query_poll_timeout_seconds,
            result_limit=settings.query_result_limit,
            request_timeout=settings.honeycomb_request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "HoneycombClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.http_client.aclose()

    async def submit(self, spec: QuerySpec) -> QueryHandle:
        """Create the query in the spec's dataset."""
        response = await self._send(
            "POST",
            f"/1/queries/{spec.dataset_slug}",
            content=spec.query.encode("utf-8"),
        )

        if response.status_code != httpx.codes.OK:
            raise BackendError(f"failed to create query: {self._error_message(response)}")

        query = self._decode(response, Query)
        if not query.id:
            raise BackendError("failed to create query: response has no query id")
        return QueryHandle(id=query.id)

    async def resolve(self, handle: QueryHandle, spec: QuerySpec) -> QueryResult:
        """Materialize the query result and poll until it is complete."""
        if not handle.id:
            raise InvalidQueryError("query ID cannot be empty")

        request = CreateQueryResultRequest(
            query_id=handle.id,
            disable_series=False,
            limit=self.result_limit,
        )
        response = await self._send(
            "POST",
            f"/1/query_results/{spec.dataset_slug}",
            json=request.model_dump(),
        )

        location = response.headers.get("Location")
        if not location:
            raise BackendError(
                f"failed to create query result: {self._error_message(response)}"
            )

        result = await self._poll(location)
        logger.info(
            "query_result_ready",
            query_id=handle.id,
            result_id=result.id,
            rows=len(result.data.results),
            query_url=result.links.query_url,
        )
        return result

    async def _poll(self, location: str) -> QueryResult:
        """Poll `location` until the result is complete or the timeout fires."""
        result: QueryResult | None = None
        try:
            async with asyncio.timeout(self.poll_timeout):
                async for attempt in AsyncRetrying(
                    wait=wait_fixed(self.poll_interval),
                    retry=retry_if_result(lambda polled: polled is None),
                ):
                    with attempt:
                        result = await self._fetch_result(location)
                    if not attempt.retry_state.outcome.failed:
                        attempt.retry_state.set_result(result)
        except TimeoutError as e:
            raise QueryTimeoutError("timed out waiting for query result") from e
        return result

    async def _fetch_result(self, location: str) -> QueryResult | None:
        """Fetch the query result once; None means not ready yet."""
        response = await self._send("GET", location)
        query_polls_total.labels(status=str(response.status_code)).inc()

        if response.status_code != httpx.codes.OK:
            logger.debug(
                "query_result_not_ready",
                location=location,
                status=response.status_code,
            )
            return None

        result = self._decode(response, QueryResult)
        return result if result.complete else None

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self.http_client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"failed to execute request: {e}") from e

    @staticmethod
    def _decode(response: httpx.Response, model: type[ModelT]) -> ModelT:
        try:
            return model.model_validate_json(response.content)
        except ValidationError as e:
            raise TransportError(f"failed to decode response body: {e}") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Error message of a failed response, falling back to its status."""
        try:
            message = ErrorResponse.model_validate_json(response.content).error
        except ValidationError:
            message = ""
        return message or f"unexpected status {response.status_code}"
