"""
Custom Middleware for request processing.
"""

from typing import Optional

import anyio.lowlevel

from starlette.requests import ClientDisconnect
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from sizelimit.core.config import get_settings
from sizelimit.core.context import BODY_READER_KEY, ASGIRequestContext
from sizelimit.core.errors import RequestTooLargeError
from sizelimit.core.logging import get_logger
from sizelimit.core.reader import AsyncMaxBytesReader

logger = get_logger(__name__)


class ReceiveStream:
    """
    Byte stream view over an ASGI receive channel.

    read(size) returns up to size bytes and b"" once the last
    http.request message has been drained. Like any Python stream,
    read(0) returns b"" without saying anything about the end of the body.
    """

    def __init__(self, receive: Receive):
        self._receive = receive
        self._buffer = b""
        self._more_body = True
        self._closed = False

    async def read(self, size: int = -1) -> bytes:
        if self._closed:
            raise ValueError("I/O operation on closed stream")
        if size == 0:
            return b""

        while not self._buffer and self._more_body:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                raise ClientDisconnect()
            self._buffer = message.get("body", b"")
            self._more_body = message.get("more_body", False)

        if size < 0 or size >= len(self._buffer):
            chunk, self._buffer = self._buffer, b""
        else:
            chunk, self._buffer = self._buffer[:size], self._buffer[size:]
        return chunk

    async def close(self) -> None:
        self._closed = True
        self._buffer = b""


def gated_receive(
    reader: AsyncMaxBytesReader,
    receive: Receive,
    context: ASGIRequestContext,
    chunk_size: int,
) -> Receive:
    """
    Receive callable that serves the body through reader.

    After the last body message it hands over to the original channel so
    the app can still wait for http.disconnect. The same goes for calls made
    once the app has started its response: at that point receive() is only
    used to watch for a disconnect (StreamingResponse does this on ASGI < 2.4)
    and whatever body is left is never read by the handler.
    Reading through request.state.body_reader stays limited either way.
    """
    body_done = False

    async def _receive() -> Message:
        nonlocal body_done
        if not body_done and not context.response_started:
            # Let a response task started alongside this call send its start first
            await anyio.lowlevel.checkpoint()
        if body_done or context.response_started:
            return await receive()

        chunk = await reader.read(chunk_size)
        if not chunk:
            body_done = True
            return {"type": "http.request", "body": b"", "more_body": False}
        return {"type": "http.request", "body": chunk, "more_body": True}

    return _receive


class RequestSizeLimitMiddleware:
    """
    Middleware to enforce a maximum request body size while it streams.

    The body is never buffered up front and Content-Length is not trusted.
    Bytes are counted as the handler reads them; on the first byte past
    the limit the following happens:
    * RequestTooLargeError is added to request.state.errors
    * Connection: close header is set
    * 413 {"error": "request too large"} is sent to the client
    * Anything else the app tries to send is dropped

    Handlers that never read the body are not affected, including ones that
    return a StreamingResponse while Starlette listens for a disconnect.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_body_bytes: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ):
        settings = get_settings()
        self.app = app
        self.max_body_bytes = settings.max_body_bytes if max_body_bytes is None else max_body_bytes
        self.chunk_size = settings.read_chunk_size if chunk_size is None else chunk_size

        if self.max_body_bytes < 0:
            raise ValueError(f"max_body_bytes must be >= 0, got {self.max_body_bytes}")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {self.chunk_size}")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        context = ASGIRequestContext(scope, send)
        reader = AsyncMaxBytesReader(ReceiveStream(receive), self.max_body_bytes, context)
        scope["state"][BODY_READER_KEY] = reader

        try:
            await self.app(scope, gated_receive(reader, receive, context, self.chunk_size), context.send)
        except RequestTooLargeError:
            if not reader.aborted:
                raise
            # 413 already written by the reader
            logger.debug("request_too_large_unwound", path=scope.get("path"), limit=self.max_body_bytes)
