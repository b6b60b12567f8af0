"""Helpers for mocking the Parcel API and token endpoint with ``httpx.MockTransport``."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx

from parcel_sdk.config import ParcelConfig
from parcel_sdk.http import HttpClient
from parcel_sdk.token import StaticTokenProvider

API_URL = "https://api.example.com/parcel/v1"
STORAGE_URL = "https://storage.example.com/v1/parcel"
TOKEN_ENDPOINT = "https://auth.example.com/oauth/token"

Handler = Callable[[httpx.Request], httpx.Response]


def json_response(status_code: int, body: Any = None, **kwargs: Any) -> httpx.Response:
    """Build a JSON response with the exact content type the SDK checks for."""
    return httpx.Response(
        status_code,
        content=json.dumps(body).encode() if body is not None else b"",
        headers={"content-type": "application/json"},
        **kwargs,
    )


def token_response(
    access_token: str = "access-token", expires_in: float = 3600, **extra: Any
) -> httpx.Response:
    """A successful token endpoint response."""
    return json_response(
        200,
        {
            "access_token": access_token,
            "token_type": "Bearer",
            "expires_in": expires_in,
            **extra,
        },
    )


class ChunkedStream(httpx.AsyncByteStream):
    """Response body served in fixed chunks, optionally waiting between them."""

    def __init__(
        self,
        chunks: list[bytes],
        *,
        delay: float = 0.0,
        fail_after: int | None = None,
    ) -> None:
        self.chunks = chunks
        self.delay = delay
        self.fail_after = fail_after
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i >= self.fail_after:
                raise httpx.ReadError("connection reset")
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def make_config() -> ParcelConfig:
    return ParcelConfig(api_url=API_URL, storage_url=STORAGE_URL)


def make_http_client(
    handler: Handler,
    *,
    token: str = "test-token",
    config: ParcelConfig | None = None,
) -> HttpClient:
    """An HttpClient that talks to ``handler`` instead of the network."""
    return HttpClient(
        StaticTokenProvider(token),
        config or make_config(),
        transport=httpx.MockTransport(handler),
    )


def parse_multipart(request: httpx.Request) -> dict[str, tuple[dict[str, str], bytes]]:
    """Split a multipart/form-data request into ``{name: (headers, content)}``."""
    content_type = request.headers["content-type"]
    boundary = content_type.split("boundary=", 1)[1].encode()
    parts: dict[str, tuple[dict[str, str], bytes]] = {}
    for raw in request.content.split(b"--" + boundary)[1:-1]:
        head, _, content = raw[2:].partition(b"\r\n\r\n")
        headers = {}
        for line in head.decode().split("\r\n"):
            key, _, value = line.partition(": ")
            headers[key.lower()] = value
        name = headers["content-disposition"].split('name="', 1)[1].split('"', 1)[0]
        parts[name] = (headers, content.removesuffix(b"\r\n"))
    return parts
