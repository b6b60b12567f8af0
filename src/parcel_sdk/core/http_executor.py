"""Request hook pipeline shared by every Parcel API call.

Each request goes through the same stages:

1. ``before_request`` hooks, in registration order. They may edit headers
   and ``request.extensions`` (allowed status codes, error context).
2. Auth injection, always last so earlier hooks see the request without
   credentials.
3. The network round trip, with the body left unread (streamed).
4. ``after_response`` hooks, in registration order, all on the *same*
   response object. A hook may return a replacement response, which the
   following hooks then receive. The body can be consumed only once across
   all hooks, and changes one hook makes to the response are visible to the
   rest.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

import httpx

from ..telemetry import trace_operation
from .errors import CONTEXT_EXTENSION, ErrorFactory

if TYPE_CHECKING:
    from ..token import TokenProvider

BeforeRequestHook = Callable[[httpx.Request], Awaitable[None] | None]
AfterResponseHook = Callable[
    [httpx.Response], Awaitable[httpx.Response | None] | httpx.Response | None
]


ALLOWED_STATUS_EXTENSION = "parcel.allowed_status_codes"


def add_allowed_status_code(status_code: int) -> BeforeRequestHook:
    """A before-request hook that also accepts ``status_code`` as success."""

    def hook(request: httpx.Request) -> None:
        allowed = request.extensions.setdefault(ALLOWED_STATUS_EXTENSION, [])
        if status_code not in allowed:
            allowed.append(status_code)

    return hook


def attach_context(context: str) -> BeforeRequestHook:
    """A before-request hook naming the operation in error messages."""

    def hook(request: httpx.Request) -> None:
        request.extensions[CONTEXT_EXTENSION] = context

    return hook


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class HookPipeline:
    """Runs requests through before/after hooks around an ``httpx.AsyncClient``."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_provider: TokenProvider,
        *,
        before_request: Sequence[BeforeRequestHook] = (),
        after_response: Sequence[AfterResponseHook] = (),
    ) -> None:
        self._client = client
        self._token_provider = token_provider
        self.before_request = list(before_request)
        self.after_response = list(after_response)

    async def authorize(self, request: httpx.Request) -> None:
        """Attach a bearer token from the token provider."""
        token = await self._token_provider.get_token()
        request.headers["Authorization"] = f"Bearer {token}"

    async def dispatch(self, request: httpx.Request) -> httpx.Response:
        """Authorize and send ``request`` without running any hooks.

        The response body is not read.

        Raises:
            TokenError: If no token could be obtained.
            NetworkError: On transport failure.
        """
        await self.authorize(request)
        try:
            return await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise ErrorFactory.from_exception(e) from e

    async def send(
        self,
        request: httpx.Request,
        *,
        hooks: Sequence[BeforeRequestHook] = (),
        stream: bool = False,
    ) -> httpx.Response:
        """Send ``request`` through the full pipeline.

        Args:
            request: The unauthenticated request.
            hooks: Per-request ``before_request`` hooks, run after the
                pipeline's own.
            stream: Leave the body unread. The caller must close the response.

        Returns:
            The response left by the last ``after_response`` hook.
        """
        for hook in (*self.before_request, *hooks):
            await _maybe_await(hook(request))

        with trace_operation(
            "http_request",
            attributes={"http.method": request.method, "http.url": str(request.url)},
        ) as span:
            response = await self.dispatch(request)
            try:
                for hook in self.after_response:
                    replaced = await _maybe_await(hook(response))
                    if replaced is not None:
                        response = replaced
                span.set_attribute("http.status_code", response.status_code)
                if not stream:
                    await response.aread()
            except httpx.HTTPError as e:
                await response.aclose()
                raise ErrorFactory.from_exception(e) from e
            except BaseException:
                await response.aclose()
                raise

        return response
