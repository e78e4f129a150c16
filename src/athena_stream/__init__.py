"""Concurrency-bounded submit/poll/paginate client for asynchronous query services.

This package exposes the query client, its configuration and the error
taxonomy. Gateway adapters live in subpackages (``athena_stream.athena``).
"""

from athena_stream.client import QueryClient, QueryResult, ResultStream, create_client
from athena_stream.config import ClientConfig, QueryOptions
from athena_stream.errors import (
    ConfigError,
    FormatError,
    GatewayError,
    QueryStreamError,
    QueryTimeoutError,
)
from athena_stream.formats import OutputFormat
from athena_stream.gateway import QueryGateway, ResultPage

__all__ = [
    "ClientConfig",
    "ConfigError",
    "FormatError",
    "GatewayError",
    "OutputFormat",
    "QueryClient",
    "QueryGateway",
    "QueryOptions",
    "QueryResult",
    "QueryStreamError",
    "QueryTimeoutError",
    "ResultPage",
    "ResultStream",
    "create_client",
]
