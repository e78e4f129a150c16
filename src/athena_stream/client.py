import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from athena_stream.buffer import ResultBuffer
from athena_stream.config import ClientConfig, QueryOptions
from athena_stream.execution import ExecutionContext, ExecutionState, QueryExecution
from athena_stream.formats import ResultAggregator
from athena_stream.gateway import QueryGateway
from athena_stream.slots import ExecutionSlotPool

logger = logging.getLogger(__name__)

Callback = Callable[[Optional[BaseException], Any], None]


@dataclass(frozen=True)
class QueryResult:
    """Outcome of a drained query: either a value or the error that ended it."""

    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the value, raising the stored error instead when present."""
        if self.error is not None:
            raise self.error
        return self.value


class ResultStream:
    """Async iterator over the decoded chunks of one query.

    The producer starts as soon as the stream is created inside a running
    event loop, or on the first pull otherwise. Producer errors are raised
    from the iterator in place of further chunks.
    """

    def __init__(self, execution: QueryExecution) -> None:
        self._execution = execution
        self._buffer = execution.context.buffer
        self._task: Optional[asyncio.Task] = None
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._start()

    def _start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._execution.run())

    @property
    def handle(self) -> Optional[str]:
        return self._execution.context.handle

    @property
    def state(self) -> ExecutionState:
        return self._execution.state

    @property
    def output_format(self) -> Any:
        return self._execution.context.output_format

    @property
    def error(self) -> Optional[BaseException]:
        """Return the error that ended the stream, if any."""
        return self._buffer.error

    def __aiter__(self) -> "ResultStream":
        return self

    async def __anext__(self) -> Any:
        if self._task is None:
            self._start()
        return await self._buffer.__anext__()


class QueryClient:
    """Run queries through a gateway with bounded concurrency.

    Example:
        >>> client = QueryClient(gateway, ClientConfig(bucket_uri="s3://bucket/out/"))
        >>> rows = await client.execute("SELECT 1")
        >>> async for chunk in client.create_stream("SELECT * FROM events"):
        ...     handle(chunk)
    """

    def __init__(self, gateway: QueryGateway, config: ClientConfig) -> None:
        self._config = config.validated()
        self._gateway = gateway
        self._pool = ExecutionSlotPool(self._config.concurrent_exec_max)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def pool(self) -> ExecutionSlotPool:
        return self._pool

    def create_stream(self, query: str, options: Optional[QueryOptions] = None) -> ResultStream:
        """Start a query and return the lazy sequence of its decoded chunks."""
        options = options or QueryOptions()
        config = self._config
        context = ExecutionContext(
            query=query,
            config=config,
            output_format=options.resolve_format(config),
            timeout_seconds=options.resolve_timeout(config),
            buffer=ResultBuffer(config.stream_check_interval_seconds),
        )
        return ResultStream(QueryExecution(self._gateway, self._pool, context))

    async def collect(self, query: str, options: Optional[QueryOptions] = None) -> QueryResult:
        """Drain a query into one aggregated result without raising stream errors."""
        stream = self.create_stream(query, options)
        aggregator: Optional[ResultAggregator] = None
        try:
            async for chunk in stream:
                if aggregator is None:
                    aggregator = ResultAggregator(stream.output_format)
                aggregator.add(chunk)
        except Exception as exc:
            return QueryResult(error=exc)
        return QueryResult(value=aggregator.result() if aggregator is not None else None)

    async def execute(
        self,
        query: str,
        options: Union[QueryOptions, Callback, None] = None,
        callback: Optional[Callback] = None,
    ) -> Any:
        """Run a query and return the aggregated result.

        Without a callback, stream errors are raised. With one, it is invoked
        error-first (``callback(err, data)``) and nothing is raised; the
        return value is then ``None`` on failure.
        """
        if callable(options) and callback is None:
            options, callback = None, options
        result = await self.collect(query, options)
        if callback is None:
            return result.unwrap()
        callback(result.error, result.value)
        return result.value


def create_client(gateway: QueryGateway, config: Optional[ClientConfig] = None) -> QueryClient:
    """Build a client, loading config from the environment when none is given."""
    if config is None:
        config = ClientConfig.from_env()
    logger.info(
        "Initializing QueryClient with concurrent_exec_max=%s", config.concurrent_exec_max
    )
    return QueryClient(gateway, config)
