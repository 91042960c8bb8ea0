"""Registry of asynchronous omnibar result providers."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Dict, Literal, Mapping, Optional, Sequence

from hotkey_engine.runtime.telemetry import record_event, span

PaginationMode = Literal["scroll", "buttons", "none"]

DEFAULT_MIN_QUERY_LENGTH = 2
DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True, slots=True)
class OmnibarEntry:
    """A remote result; selecting it follows ``href`` or calls ``handler``."""

    id: str
    label: str
    description: Optional[str] = None
    group: Optional[str] = None
    keywords: tuple[str, ...] = ()
    href: Optional[str] = None
    handler: Optional[Callable[[], object]] = None

    def __post_init__(self) -> None:
        if (self.href is None) == (self.handler is None):
            raise ValueError(
                f"Omnibar entry '{self.id}' needs exactly one of href or handler"
            )


@dataclass(frozen=True, slots=True)
class EndpointPagination:
    offset: int = 0
    limit: int = DEFAULT_PAGE_SIZE


@dataclass(frozen=True, slots=True)
class EndpointResponse:
    entries: tuple[OmnibarEntry, ...] = ()
    total: Optional[int] = None
    has_more: Optional[bool] = None


FetchFn = Callable[[str, EndpointPagination], Awaitable[EndpointResponse]]


@dataclass(frozen=True, slots=True)
class EndpointConfig:
    fetch: FetchFn
    group: Optional[str] = None
    priority: int = 0
    min_query_length: int = DEFAULT_MIN_QUERY_LENGTH
    enabled: bool = True
    page_size: int = DEFAULT_PAGE_SIZE
    pagination: PaginationMode = "none"

    def __post_init__(self) -> None:
        if self.min_query_length < 0:
            raise ValueError("min_query_length cannot be negative")
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")


@dataclass(frozen=True, slots=True)
class RegisteredEndpoint:
    id: str
    config: EndpointConfig
    registered_at: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class EndpointQueryResult:
    """Entries from one endpoint; ``error`` is set when its fetch raised."""

    endpoint_id: str
    entries: tuple[OmnibarEntry, ...] = ()
    total: Optional[int] = None
    has_more: Optional[bool] = None
    error: Optional[BaseException] = None


class EndpointRegistry:
    """Holds endpoints and fans a query out to all of them concurrently."""

    def __init__(self, *, logger_name: str | None = None) -> None:
        self._endpoints: Dict[str, RegisteredEndpoint] = {}
        self._logger_name = logger_name

    @property
    def endpoints(self) -> Mapping[str, RegisteredEndpoint]:
        return dict(self._endpoints)

    def register(self, endpoint_id: str, config: EndpointConfig) -> RegisteredEndpoint:
        with span(
            "search::register_endpoint",
            logger_name=self._logger_name,
            component="search",
            metadata={"endpoint_id": endpoint_id},
        ):
            endpoint = RegisteredEndpoint(id=endpoint_id, config=config)
            self._endpoints[endpoint_id] = endpoint
            return endpoint

    def unregister(self, endpoint_id: str) -> Optional[RegisteredEndpoint]:
        return self._endpoints.pop(endpoint_id, None)

    def eligible(self, query: str) -> list[RegisteredEndpoint]:
        """Enabled endpoints whose minimum query length ``query`` satisfies."""

        return [
            endpoint
            for endpoint in self._endpoints.values()
            if endpoint.config.enabled
            and len(query) >= endpoint.config.min_query_length
        ]

    async def query_all(
        self, query: str, *, offset: int = 0
    ) -> list[EndpointQueryResult]:
        targets = self.eligible(query)
        if not targets:
            return []
        with span(
            "search::query_all",
            logger_name=self._logger_name,
            component="search",
            metadata={"query": query, "endpoints": len(targets)},
        ):
            results = await asyncio.gather(
                *(self._query_one(endpoint, query, offset) for endpoint in targets)
            )
        priority = {endpoint.id: endpoint.config.priority for endpoint in targets}
        return sorted(results, key=lambda result: -priority[result.endpoint_id])

    async def _query_one(
        self, endpoint: RegisteredEndpoint, query: str, offset: int
    ) -> EndpointQueryResult:
        config = endpoint.config
        pagination = EndpointPagination(offset=offset, limit=config.page_size)
        try:
            response = await config.fetch(query, pagination)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            record_event(
                "search.endpoint_error",
                level="warning",
                data={"endpoint_id": endpoint.id, "error": repr(exc)},
                logger_name=self._logger_name,
            )
            return EndpointQueryResult(endpoint_id=endpoint.id, error=exc)

        entries = tuple(
            entry if entry.group is not None else replace(entry, group=config.group)
            for entry in response.entries
        )
        return EndpointQueryResult(
            endpoint_id=endpoint.id,
            entries=entries,
            total=response.total,
            has_more=response.has_more,
        )


def merge_entries(results: Sequence[EndpointQueryResult]) -> list[OmnibarEntry]:
    """Flatten results in order, skipping later duplicates of an entry id."""

    merged: Dict[str, OmnibarEntry] = {}
    for result in results:
        for entry in result.entries:
            merged.setdefault(entry.id, entry)
    return list(merged.values())


__all__ = [
    "EndpointConfig",
    "EndpointPagination",
    "EndpointQueryResult",
    "EndpointRegistry",
    "EndpointResponse",
    "OmnibarEntry",
    "PaginationMode",
    "RegisteredEndpoint",
    "merge_entries",
]
