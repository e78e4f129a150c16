import asyncio
import logging
from collections import deque
from typing import Any, Deque, Optional

logger = logging.getLogger(__name__)


class ResultBuffer:
    """Unbounded single-producer/single-consumer queue of decoded chunks.

    The consumer side is an async iterator. Empty pulls sleep for
    ``check_interval_seconds`` and re-check instead of waiting on the
    producer. ``finish`` and ``fail`` are first-wins; once one of them has
    been called the other, and any further ``push``, is ignored.
    """

    def __init__(self, check_interval_seconds: float) -> None:
        self._check_interval_seconds = check_interval_seconds
        self._chunks: Deque[Any] = deque()
        self._finished = False
        self._error: Optional[BaseException] = None
        self._closed = False

    @property
    def finished(self) -> bool:
        """Return True once the producer has signalled end-of-stream or an error."""
        return self._finished

    @property
    def error(self) -> Optional[BaseException]:
        """Return the producer error, if one was signalled."""
        return self._error

    @property
    def pending(self) -> int:
        """Return the number of chunks awaiting consumption."""
        return len(self._chunks)

    def push(self, chunk: Any) -> None:
        if self._finished:
            logger.debug("Ignoring chunk pushed after end-of-stream.")
            return
        self._chunks.append(chunk)

    def finish(self) -> None:
        """Mark end-of-stream."""
        self._finished = True

    def fail(self, error: BaseException) -> bool:
        """Signal a producer error; returns False when the stream already ended."""
        if self._finished:
            logger.debug("Ignoring error after end-of-stream: %s", error)
            return False
        self._error = error
        self._finished = True
        return True

    def __aiter__(self) -> "ResultBuffer":
        return self

    async def __anext__(self) -> Any:
        while True:
            if self._closed:
                raise StopAsyncIteration
            if self._error is not None:
                self._closed = True
                self._chunks.clear()
                raise self._error
            if self._chunks:
                return self._chunks.popleft()
            if self._finished:
                self._closed = True
                raise StopAsyncIteration
            await asyncio.sleep(self._check_interval_seconds)
