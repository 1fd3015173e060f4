"""
Pytest configuration and fixtures.

HTTP tests run against ASGI apps in-process through httpx's ASGITransport.
"""

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

# Import the FastAPI app
from sizelimit.main import app
from sizelimit.core.middleware import RequestSizeLimitMiddleware


@pytest.fixture
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture
async def client():
    """
    Async HTTP client for the example service.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


@pytest.fixture
def limited_app():
    """
    Factory for a bare FastAPI app with the size limit installed.

    Tests add their own routes to it.
    """
    def _build(limit: int, chunk_size: int = 65_536) -> FastAPI:
        limited = FastAPI()
        limited.add_middleware(RequestSizeLimitMiddleware, max_body_bytes=limit, chunk_size=chunk_size)
        return limited

    return _build


@pytest.fixture
def perform_request():
    """POST a raw body to an app and return the response."""
    async def _perform(target_app: FastAPI, path: str, body: bytes, **kwargs):
        async with AsyncClient(
            transport=ASGITransport(app=target_app),
            base_url="http://test"
        ) as test_client:
            return await test_client.post(path, content=body, **kwargs)

    return _perform


class FakeContext:
    """
    Records what a bounded reader does to its request on overflow.
    """

    def __init__(self):
        self.errors = []
        self.headers = {}
        self.responses = []
        self.header_calls = 0

    def add_error(self, error):
        self.errors.append(error)

    def set_header(self, name, value):
        self.header_calls += 1
        self.headers[name] = value

    def abort_with_json(self, status_code, payload):
        self.responses.append((status_code, payload))


class AsyncFakeContext(FakeContext):
    async def abort_with_json(self, status_code, payload):
        self.responses.append((status_code, payload))


@pytest.fixture
def fake_context():
    return FakeContext()


@pytest.fixture
def async_fake_context():
    return AsyncFakeContext()
