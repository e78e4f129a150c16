"""State machine driving one query from slot acquisition to end-of-stream.

::

    AWAITING_SLOT -> SUBMITTED -> POLLING -> FETCHING -> DONE
    POLLING -> TIMED_OUT -> CANCELLING -> FAILED
    (any non-terminal state) -> FAILED

Gateway failures and timeouts are never raised out of ``QueryExecution.run``;
they are handed to the result buffer so the consumer sees them in place of
further chunks.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Dict, FrozenSet, Optional

from athena_stream.buffer import ResultBuffer
from athena_stream.config import ClientConfig
from athena_stream.errors import (
    GatewayError,
    InvalidTransitionError,
    QueryStreamError,
    QueryTimeoutError,
)
from athena_stream.formats import PageDecoder
from athena_stream.gateway import QueryGateway, ResultPage
from athena_stream.slots import ExecutionSlotPool, Slot
from athena_stream.tracing import trace_query_operation

logger = logging.getLogger(__name__)


class ExecutionState(str, Enum):
    """Lifecycle states of a single query execution."""

    AWAITING_SLOT = "awaiting_slot"
    SUBMITTED = "submitted"
    POLLING = "polling"
    TIMED_OUT = "timed_out"
    CANCELLING = "cancelling"
    FETCHING = "fetching"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: FrozenSet[ExecutionState] = frozenset(
    {ExecutionState.DONE, ExecutionState.FAILED}
)

_TRANSITIONS: Dict[ExecutionState, FrozenSet[ExecutionState]] = {
    ExecutionState.AWAITING_SLOT: frozenset({ExecutionState.SUBMITTED, ExecutionState.FAILED}),
    ExecutionState.SUBMITTED: frozenset({ExecutionState.POLLING, ExecutionState.FAILED}),
    ExecutionState.POLLING: frozenset(
        {ExecutionState.FETCHING, ExecutionState.TIMED_OUT, ExecutionState.FAILED}
    ),
    ExecutionState.TIMED_OUT: frozenset({ExecutionState.CANCELLING, ExecutionState.FAILED}),
    ExecutionState.CANCELLING: frozenset({ExecutionState.FAILED}),
    ExecutionState.FETCHING: frozenset({ExecutionState.DONE, ExecutionState.FAILED}),
    ExecutionState.DONE: frozenset(),
    ExecutionState.FAILED: frozenset(),
}


def next_state(current: ExecutionState, target: ExecutionState) -> ExecutionState:
    """Validate a transition and return the new state."""
    if target not in _TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"illegal execution transition {current.value} -> {target.value}"
        )
    return target


@dataclass
class ExecutionContext:
    """Mutable per-query state, owned by exactly one QueryExecution."""

    query: str
    config: ClientConfig
    output_format: Any
    timeout_seconds: float
    buffer: ResultBuffer
    state: ExecutionState = ExecutionState.AWAITING_SLOT
    slot: Optional[Slot] = None
    handle: Optional[str] = None
    deadline: Optional[float] = None
    pages_fetched: int = 0
    error: Optional[BaseException] = None


class QueryExecution:
    """Drive one query through the gateway, feeding decoded pages to a buffer."""

    def __init__(
        self, gateway: QueryGateway, pool: ExecutionSlotPool, context: ExecutionContext
    ) -> None:
        self._gateway = gateway
        self._pool = pool
        self._context = context
        self._provider = getattr(gateway, "provider", type(gateway).__name__)

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def state(self) -> ExecutionState:
        return self._context.state

    def transition(self, target: ExecutionState) -> None:
        """Move to ``target``, raising InvalidTransitionError on an illegal edge."""
        self._context.state = next_state(self._context.state, target)

    async def run(self) -> None:
        """Run the query to exactly one terminal outcome."""
        try:
            await self._drive()
        except asyncio.CancelledError:
            self._settle_failure(QueryStreamError("query execution was cancelled"))
            raise
        except Exception as exc:
            self._settle_failure(exc)
        else:
            self._settle_success()

    async def _drive(self) -> None:
        ctx = self._context
        ctx.slot = await self._pool.acquire(ctx.config.slot_check_interval_seconds)
        ctx.handle = await self._call("submit", self._gateway.submit(ctx.query, ctx.config))
        self.transition(ExecutionState.SUBMITTED)
        logger.info("Submitted query %s", ctx.handle)

        await self._await_completion()
        self.transition(ExecutionState.FETCHING)
        await self._fetch_pages()

    async def _await_completion(self) -> None:
        ctx = self._context
        self.transition(ExecutionState.POLLING)
        if not ctx.timeout_seconds:
            await self._poll_until_done()
            return

        ctx.deadline = asyncio.get_running_loop().time() + ctx.timeout_seconds
        try:
            await asyncio.wait_for(self._poll_until_done(), timeout=ctx.timeout_seconds)
        except asyncio.TimeoutError:
            self.transition(ExecutionState.TIMED_OUT)
            logger.warning(
                "Query %s exceeded %gs timeout; cancelling.", ctx.handle, ctx.timeout_seconds
            )
            self.transition(ExecutionState.CANCELLING)
            await self._call("cancel", self._gateway.cancel(ctx.handle, ctx.config))
            raise QueryTimeoutError(ctx.handle, ctx.timeout_seconds) from None
        ctx.deadline = None

    async def _poll_until_done(self) -> None:
        ctx = self._context
        while True:
            await asyncio.sleep(ctx.config.poll_interval_seconds)
            done = await self._call(
                "poll_status", self._gateway.poll_status(ctx.handle, ctx.config)
            )
            if done:
                return
            logger.debug("Query %s still running", ctx.handle)

    async def _fetch_pages(self) -> None:
        decoder = PageDecoder(self._context.output_format)
        page = await self._fetch(None)
        self._deliver(decoder, page)

        requested: Optional[str] = None
        token = page.next_token
        while token and token != requested:
            requested = token
            page = await self._fetch(token)
            self._deliver(decoder, page)
            token = page.next_token

    async def _fetch(self, next_token: Optional[str]) -> ResultPage:
        ctx = self._context
        page = await self._call(
            "fetch_page", self._gateway.fetch_page(ctx.handle, ctx.config, next_token)
        )
        ctx.pages_fetched += 1
        return page

    def _deliver(self, decoder: PageDecoder, page: ResultPage) -> None:
        ctx = self._context
        ctx.buffer.push(decoder.decode(page))
        logger.debug("Query %s buffered page %d", ctx.handle, decoder.pages_decoded)

    async def _call(self, operation: str, awaitable: Awaitable) -> Any:
        ctx = self._context
        try:
            return await trace_query_operation(
                f"athena_stream.gateway.{operation}",
                provider=self._provider,
                operation=awaitable,
                handle=ctx.handle,
                query=ctx.query if operation == "submit" else None,
            )
        except QueryStreamError:
            raise
        except Exception as exc:
            raise GatewayError(operation, str(exc) or type(exc).__name__, ctx.handle) from exc

    def _release_slot(self) -> None:
        ctx = self._context
        if ctx.slot is not None:
            self._pool.release(ctx.slot)
            ctx.slot = None

    def _settle_success(self) -> None:
        ctx = self._context
        self.transition(ExecutionState.DONE)
        self._release_slot()
        ctx.buffer.finish()
        logger.info("Query %s finished after %d page(s)", ctx.handle, ctx.pages_fetched)

    def _settle_failure(self, error: BaseException) -> None:
        ctx = self._context
        if not ctx.state.is_terminal:
            self.transition(ExecutionState.FAILED)
        ctx.error = error
        self._release_slot()
        ctx.buffer.fail(error)
        logger.warning("Query %s failed: %s", ctx.handle, error)
