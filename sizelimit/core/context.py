"""
Per-request context used by the size limit middleware.

The bounded reader only needs three things from a request: somewhere to
record errors, a way to set response headers, and a way to write a final
JSON response. ASGIRequestContext provides those on top of the ASGI send
channel and also guards that channel, so once the request is finished
nothing the app sends afterwards reaches the server.
"""

from typing import TYPE_CHECKING, Optional

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import Message, Scope, Send

from sizelimit.core.errors import RequestTooLargeError
from sizelimit.core.logging import get_logger

if TYPE_CHECKING:
    from sizelimit.core.reader import AsyncMaxBytesReader

logger = get_logger(__name__)

# Keys under scope["state"], i.e. request.state.errors / request.state.body_reader
ERRORS_KEY = "errors"
BODY_READER_KEY = "body_reader"


def _state(scope: Scope) -> dict:
    return scope.setdefault("state", {})


class ASGIRequestContext:
    """
    Error list, pending headers and a guarded send for one HTTP request.
    """

    def __init__(self, scope: Scope, send: Send):
        self.scope = scope
        self._send = send
        self._headers: dict[str, str] = {}
        self.response_started = False
        self.finished = False
        _state(scope)[ERRORS_KEY] = []

    @property
    def errors(self) -> list:
        return _state(self.scope).setdefault(ERRORS_KEY, [])

    def add_error(self, error: Exception) -> None:
        self.errors.append(error)

    def set_header(self, name: str, value: str) -> None:
        self._headers[name] = value

    async def abort_with_json(self, status_code: int, payload: dict) -> None:
        """
        Write status_code with a JSON body and finish the request.

        Headers set through set_header() go out with it.
        """
        if self.finished:
            return

        if self.response_started:
            # Too late for a status line; cut the app's response short instead
            logger.warning(
                "abort_after_response_started",
                status_code=status_code,
                path=self.scope.get("path"),
            )
            self.finished = True
            return

        self.finished = True
        response = JSONResponse(payload, status_code=status_code, headers=self._headers)
        await self._send(
            {
                "type": "http.response.start",
                "status": response.status_code,
                "headers": response.raw_headers,
            }
        )
        await self._send({"type": "http.response.body", "body": response.body})

    async def send(self, message: Message) -> None:
        """The send callable handed to the app."""
        if self.finished:
            logger.debug("send_suppressed", message_type=message["type"], path=self.scope.get("path"))
            return

        if message["type"] == "http.response.start":
            self.response_started = True
            if self._headers:
                headers = list(message.get("headers", []))
                headers.extend((k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in self._headers.items())
                message = {**message, "headers": headers}
        elif message["type"] == "http.response.body" and not message.get("more_body", False):
            self.finished = True

        await self._send(message)


def request_errors(request: Request) -> list:
    """
    Errors recorded for this request by the size limit middleware.

    Handlers that catch read errors should check this before responding;
    if it is not empty the 413 has already gone out.
    """
    return _state(request.scope).setdefault(ERRORS_KEY, [])


def request_too_large(request: Request) -> bool:
    """True if the body limit was hit for this request."""
    return any(isinstance(err, RequestTooLargeError) for err in request_errors(request))


def body_reader(request: Request) -> Optional["AsyncMaxBytesReader"]:
    """The bounded reader installed for this request, if any."""
    return _state(request.scope).get(BODY_READER_KEY)
