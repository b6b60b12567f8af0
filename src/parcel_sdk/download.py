"""Streaming downloads of document data."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterator, Awaitable
from contextlib import aclosing
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

import httpx

from .core.errors import ErrorFactory
from .core.http_executor import attach_context
from .errors import DownloadAbortedError
from .telemetry import get_logger

if TYPE_CHECKING:
    from .http import HttpClient

T = TypeVar("T")

DOWNLOAD_CONTEXT = "document download"


class Sink(Protocol):
    """Anything with a ``write(bytes)`` method, sync or async.

    An async sink may also provide ``drain()``, which is awaited after each
    write (e.g. ``asyncio.StreamWriter``).
    """

    def write(self, data: bytes, /) -> Any: ...


async def _next_chunk(chunks: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await anext(chunks)
    except StopAsyncIteration:
        return None


class Download:
    """A single-use stream over the body of a GET request.

    Nothing is sent until the download is consumed, either by iterating it
    with ``async for`` or by calling ``pipe_to``. Only one of the two may be
    used, once. ``abort()`` cancels the request at any point; consumers then
    see ``DownloadAbortedError``.

    A failed download may have written part of the data to a sink already;
    that partial output should be discarded.

    Example:
        >>> download = parcel.download_document(document_id)
        >>> with open("data.bin", "wb") as f:
        ...     await download.pipe_to(f)
    """

    def __init__(
        self,
        client: HttpClient,
        endpoint: str,
        *,
        chunk_size: int | None = None,
    ) -> None:
        self._client = client
        self.endpoint = endpoint
        self.chunk_size = chunk_size
        self._abort_event = asyncio.Event()
        self._consumed = False
        self._logger = get_logger()

    @property
    def aborted(self) -> bool:
        return self._abort_event.is_set()

    def abort(self) -> None:
        """Cancel the download. Safe to call repeatedly and before it starts."""
        if self._abort_event.is_set():
            return
        self._abort_event.set()
        self._logger.info("Download aborted", endpoint=self.endpoint)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        response = await self._open()
        try:
            chunks = response.aiter_bytes(self.chunk_size)
            while True:
                chunk = await self._race(_next_chunk(chunks))
                if chunk is None:
                    break
                if chunk:
                    yield chunk
        except httpx.HTTPError as e:
            raise ErrorFactory.from_exception(e) from e
        finally:
            await response.aclose()

    async def pipe_to(self, sink: Sink) -> int:
        """Write the whole body to ``sink``.

        Args:
            sink: A binary writer. ``write`` may return an awaitable.

        Returns:
            Number of bytes written.

        Raises:
            DownloadAbortedError: If ``abort()`` was called.
            ApiError: If the server refused the download.
            NetworkError: If the connection failed mid-stream.
        """
        drain = getattr(sink, "drain", None)
        written = 0
        async with aclosing(self.__aiter__()) as chunks:
            async for chunk in chunks:
                result = sink.write(chunk)
                if inspect.isawaitable(result):
                    await result
                if drain is not None:
                    drained = drain()
                    if inspect.isawaitable(drained):
                        await drained
                written += len(chunk)
        return written

    async def _open(self) -> httpx.Response:
        if self._consumed:
            raise RuntimeError("download already consumed")
        self._consumed = True
        if self.aborted:
            raise DownloadAbortedError()

        request = self._client.build_request("GET", self.endpoint, timeout=None)
        return await self._race(
            self._client.send(
                request,
                hooks=[attach_context(DOWNLOAD_CONTEXT)],
                stream=True,
            )
        )

    async def _race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the download is aborted first."""
        if self.aborted:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise DownloadAbortedError()

        task = asyncio.ensure_future(awaitable)
        abort_wait = asyncio.ensure_future(self._abort_event.wait())
        try:
            await asyncio.wait({task, abort_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            abort_wait.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if task.cancelled():
            raise DownloadAbortedError()
        return task.result()
