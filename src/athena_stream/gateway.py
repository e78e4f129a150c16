from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from athena_stream.config import ClientConfig


@dataclass(frozen=True)
class ResultPage:
    """One page of query output plus its continuation token."""

    payload: Mapping[str, Any]
    next_token: Optional[str] = None

    @classmethod
    def from_response(cls, response: Mapping[str, Any]) -> "ResultPage":
        """Build a page from a GetQueryResults-shaped response."""
        payload = {key: value for key, value in response.items() if key != "ResponseMetadata"}
        return cls(payload=payload, next_token=response.get("NextToken") or None)


@runtime_checkable
class QueryGateway(Protocol):
    """Protocol for the remote submit/poll/fetch/cancel query service."""

    async def submit(self, query: str, config: ClientConfig) -> str:
        """Submit a query and return its handle."""
        ...

    async def poll_status(self, handle: str, config: ClientConfig) -> bool:
        """Return True once the query has reached a terminal state."""
        ...

    async def fetch_page(
        self, handle: str, config: ClientConfig, next_token: Optional[str] = None
    ) -> ResultPage:
        """Fetch one page of results for a completed query."""
        ...

    async def cancel(self, handle: str, config: ClientConfig) -> None:
        """Cancel a running query."""
        ...
