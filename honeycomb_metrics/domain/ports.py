"""Ports (interfaces) for infrastructure adapters."""

from abc import ABC, abstractmethod

from honeycomb_metrics.domain.entities import QueryHandle, QuerySpec
from honeycomb_metrics.domain.query import QueryResult
from honeycomb_metrics.domain.types import Predicate, Timestamp


class QueryBackendPort(ABC):
    """Port for running queries on the analytics backend."""

    @abstractmethod
    async def submit(self, spec: QuerySpec) -> QueryHandle:
        """Create the query and return its handle."""

    @abstractmethod
    async def resolve(self, handle: QueryHandle, spec: QuerySpec) -> QueryResult:
        """Wait for the query result to complete and return it."""


class PredicateEnginePort(ABC):
    """Port for compiling predicate expressions."""

    @abstractmethod
    def compile(self, source: str) -> Predicate:
        """Compile predicate source into a callable of `result`."""


class ClockPort(ABC):
    """Port for time operations."""

    @abstractmethod
    def now(self) -> Timestamp:
        """Get current timestamp."""
