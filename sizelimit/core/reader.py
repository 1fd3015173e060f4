"""
Bounded readers for HTTP request bodies.

A reader wraps the raw body stream and counts bytes as the handler consumes
them. The first read that would go past the limit fires the abort sequence
once (error recorded, Connection: close, 413 written) and every read after
that raises RequestTooLargeError.

Python's read(0) returns b"" whether or not the stream is exhausted, so a
body sitting exactly at the limit can't be told apart from one with an extra
byte by asking for zero bytes. The readers probe with a 1-byte read instead.
"""

import io
from enum import Enum
from typing import Any, Optional, Protocol

from sizelimit.core.errors import RequestTooLargeError, too_large_payload
from sizelimit.core.logging import get_logger

logger = get_logger(__name__)

STATUS_REQUEST_TOO_LARGE = 413


class RequestContext(Protocol):
    """The parts of a request the blocking reader needs on overflow."""

    def add_error(self, error: Exception) -> None: ...

    def set_header(self, name: str, value: str) -> None: ...

    def abort_with_json(self, status_code: int, payload: dict) -> None: ...


class AsyncRequestContext(Protocol):
    """Same as RequestContext, with an awaitable response write."""

    def add_error(self, error: Exception) -> None: ...

    def set_header(self, name: str, value: str) -> None: ...

    async def abort_with_json(self, status_code: int, payload: dict) -> None: ...


class GateState(str, Enum):
    OPEN = "open"
    EXHAUSTED = "exhausted"  # end of body seen with nothing left to spare
    ABORTED = "aborted"


class ByteGate:
    """
    Byte accounting for one request body.

    Shared by the blocking and async readers so both follow the same rules:
    - remaining never goes below 0 and only drops by bytes handed back
    - saw_end is sticky
    - ABORTED is terminal
    """

    def __init__(self, limit: int):
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        self.limit = limit
        self.remaining = limit
        self.saw_end = False
        self.state = GateState.OPEN

    @property
    def aborted(self) -> bool:
        return self.state is GateState.ABORTED

    @property
    def exhausted(self) -> bool:
        return self.state is GateState.EXHAUSTED

    def next_read_size(self, capacity: Optional[int]) -> Optional[int]:
        """
        How many bytes to ask the underlying stream for.

        capacity is the caller's buffer size, None for unbounded. Returns
        None when the read is already known to overflow.
        """
        if self.remaining > 0:
            to_read = self.remaining
        elif self.saw_end:
            return None
        else:
            to_read = 1

        if capacity is not None and capacity < to_read:
            to_read = max(capacity, 0)
        return to_read

    def record(self, n: int, requested: int) -> bool:
        """Account for a finished read. Returns True if it overflowed."""
        at_ceiling = self.remaining == 0

        if n == 0 and requested > 0:
            self.saw_end = True
            if at_ceiling:
                self.state = GateState.EXHAUSTED

        if at_ceiling:
            return n > 0

        self.remaining = max(self.remaining - n, 0)
        return False

    def trip(self) -> bool:
        """Move to ABORTED. Only the first caller gets True."""
        if self.state is GateState.ABORTED:
            return False
        self.state = GateState.ABORTED
        return True


def _log_overflow(gate: ByteGate) -> None:
    logger.warning("request_too_large", limit=gate.limit)


class MaxBytesReader(io.RawIOBase):
    """
    Blocking bounded reader.

    Wraps any object with read(size) and close(). readinto() does the
    bounded read; read(), readall(), readline() and iteration come from
    io.RawIOBase. The reader owns the wrapped stream and closes it on close().
    """

    def __init__(self, raw: Any, limit: int, context: RequestContext):
        super().__init__()
        self._raw = raw
        self._context = context
        self._gate = ByteGate(limit)
        self._pending = b""

    @property
    def gate(self) -> ByteGate:
        return self._gate

    @property
    def aborted(self) -> bool:
        return self._gate.aborted

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> Optional[int]:
        if self._gate.aborted:
            raise RequestTooLargeError(self._gate.limit)
        if self._gate.exhausted:
            return 0

        view = memoryview(buffer).cast("B")
        to_read = self._gate.next_read_size(len(view))
        if to_read is None:
            self._too_large()

        data = self._take(to_read)
        if data is None:
            # Non-blocking stream with nothing ready
            return None

        n = len(data)
        if self._gate.record(n, to_read):
            self._too_large()

        view[:n] = data
        return n

    def _take(self, size: int) -> Optional[bytes]:
        if self._pending:
            data, self._pending = self._pending[:size], self._pending[size:]
            return data
        data = self._raw.read(size)
        if data is not None and len(data) > size:
            # Stream handed back more than asked for; keep the rest for later reads
            data, self._pending = data[:size], data[size:]
        return data

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._raw.close()
        finally:
            super().close()

    def _too_large(self):
        if self._gate.trip():
            _log_overflow(self._gate)
            self._context.add_error(RequestTooLargeError(self._gate.limit))
            self._context.set_header("Connection", "close")
            self._context.abort_with_json(STATUS_REQUEST_TOO_LARGE, too_large_payload())
        raise RequestTooLargeError(self._gate.limit)


class AsyncMaxBytesReader:
    """
    Async bounded reader, installed by RequestSizeLimitMiddleware.

    Wraps any object with async read(size) and async close().
    """

    def __init__(self, stream: Any, limit: int, context: AsyncRequestContext):
        self._stream = stream
        self._context = context
        self._gate = ByteGate(limit)
        self._pending = b""

    @property
    def gate(self) -> ByteGate:
        return self._gate

    @property
    def aborted(self) -> bool:
        return self._gate.aborted

    async def read(self, size: int = -1) -> bytes:
        """
        Read up to size bytes. A negative size means "as much as allowed".
        Returns b"" at the end of the body.
        """
        if self._gate.aborted:
            raise RequestTooLargeError(self._gate.limit)
        if self._gate.exhausted:
            return b""

        to_read = self._gate.next_read_size(None if size < 0 else size)
        if to_read is None:
            await self._too_large()

        data = await self._take(to_read)
        if self._gate.record(len(data), to_read):
            await self._too_large()
        return data

    async def _take(self, size: int) -> bytes:
        if self._pending:
            data, self._pending = self._pending[:size], self._pending[size:]
            return data
        data = await self._stream.read(size)
        if len(data) > size:
            data, self._pending = data[:size], data[size:]
        return data

    async def close(self) -> None:
        await self._stream.close()

    async def _too_large(self):
        if self._gate.trip():
            _log_overflow(self._gate)
            self._context.add_error(RequestTooLargeError(self._gate.limit))
            self._context.set_header("Connection", "close")
            await self._context.abort_with_json(STATUS_REQUEST_TOO_LARGE, too_large_payload())
        raise RequestTooLargeError(self._gate.limit)
