"""HTTP client for the Parcel API.

Wraps ``httpx.AsyncClient`` with bearer authentication, error
classification and per-verb status expectations.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import httpx

from .config import ParcelConfig
from .core.errors import ErrorFactory
from .core.http_executor import (
    ALLOWED_STATUS_EXTENSION,
    AfterResponseHook,
    BeforeRequestHook,
    HookPipeline,
    add_allowed_status_code,
    attach_context,
)
from .download import Download
from .telemetry import get_logger

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Self

    from .token import TokenProvider

USER_AGENT = "parcel-sdk-python"

# Success status each verb must answer with unless the request widens it.
DEFAULT_STATUS_CODES: dict[str, int] = {
    "POST": 200,
    "PUT": 200,
    "PATCH": 200,
    "DELETE": 204,
}

ENDPOINT_EXTENSION = "parcel.endpoint"
REDIRECT_RETRIED_EXTENSION = "parcel.redirect_retried"

QueryParams = Mapping[str, Any]

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def kebab_case(key: str) -> str:
    """``pageToken`` and ``page_token`` both become ``page-token``."""
    return _CAMEL_BOUNDARY.sub("-", key).replace("_", "-").lower()


_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _query_value(value: Any) -> Any:
    if isinstance(value, datetime):
        # Naive datetimes are local time.
        if value.tzinfo is None:
            value = value.astimezone()
        return (value - _EPOCH) // timedelta(milliseconds=1)
    return value


def to_query_params(params: QueryParams | None) -> dict[str, Any] | None:
    """Kebab-case the keys and drop ``None`` values.

    Datetimes are sent as epoch milliseconds.
    """
    if not params:
        return None
    query = {
        kebab_case(key): _query_value(value)
        for key, value in params.items()
        if value is not None
    }
    return query or None


class HttpClient:
    """Authenticated client for the Parcel API and storage endpoints.

    Every call runs through the same pipeline: bearer auth, a single retry
    with fresh credentials when a redirect lands on a 401/403 inside the
    Parcel origins, error classification, and a check that a successful
    response has the status the verb promises.

    Example:
        >>> async with HttpClient(TokenProvider.from_source(token)) as http:
        ...     identity = await http.get("identities/me")
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        config: ParcelConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        before_request: Sequence[BeforeRequestHook] = (),
        after_response: Sequence[AfterResponseHook] = (),
    ) -> None:
        """Initialize the client.

        Args:
            token_provider: Source of bearer tokens.
            config: SDK configuration. Defaults are read from the environment.
            transport: Optional transport, e.g. ``httpx.MockTransport`` in tests.
            before_request: Extra hooks run before auth injection on every call.
            after_response: Extra hooks run after the built-in ones.
        """
        self.config = config or ParcelConfig()
        self.token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout),
            headers={"x-requested-with": USER_AGENT, **self.config.headers},
            follow_redirects=True,
            transport=transport,
        )
        self._pipeline = HookPipeline(
            self._client,
            token_provider,
            before_request=before_request,
            after_response=[
                self._retry_redirect_with_auth,
                self._raise_for_error,
                self._check_expected_status,
                *after_response,
            ],
        )
        self._logger = get_logger()

    @property
    def api_url(self) -> str:
        return self.config.api_url

    @property
    def storage_url(self) -> str:
        return self.config.storage_url_str

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def get(
        self,
        endpoint: str,
        params: QueryParams | None = None,
        *,
        hooks: Sequence[BeforeRequestHook] = (),
    ) -> Any:
        """GET ``endpoint`` and return the decoded JSON body."""
        return await self._request("GET", endpoint, params=params, hooks=hooks)

    async def post(
        self,
        endpoint: str,
        data: Any = None,
        *,
        hooks: Sequence[BeforeRequestHook] = (),
    ) -> Any:
        return await self._request("POST", endpoint, json=data, hooks=hooks)

    async def create(
        self,
        endpoint: str,
        data: Any = None,
        *,
        hooks: Sequence[BeforeRequestHook] = (),
    ) -> Any:
        """POST that expects ``201 Created``."""
        return await self.post(
            endpoint, data, hooks=[add_allowed_status_code(201), *hooks]
        )

    async def put(
        self,
        endpoint: str,
        data: Any,
        *,
        hooks: Sequence[BeforeRequestHook] = (),
    ) -> Any:
        return await self._request("PUT", endpoint, json=data, hooks=hooks)

    async def update(
        self,
        endpoint: str,
        data: Any,
        *,
        hooks: Sequence[BeforeRequestHook] = (),
    ) -> Any:
        """Replace a resource; same as ``put``."""
        return await self.put(endpoint, data, hooks=hooks)

    async def patch(
        self,
        endpoint: str,
        data: Any,
        *,
        hooks: Sequence[BeforeRequestHook] = (),
    ) -> Any:
        return await self._request("PATCH", endpoint, json=data, hooks=hooks)

    async def delete(
        self,
        endpoint: str,
        *,
        hooks: Sequence[BeforeRequestHook] = (),
    ) -> None:
        await self._request("DELETE", endpoint, hooks=hooks)

    async def search(
        self,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        *,
        hooks: Sequence[BeforeRequestHook] = (),
    ) -> Any:
        """POST search ``params`` to ``<endpoint>/search``."""
        return await self.post(f"{endpoint}/search", dict(params or {}), hooks=hooks)

    async def upload(
        self,
        files: Mapping[str, Any],
        *,
        hooks: Sequence[BeforeRequestHook] = (),
    ) -> Any:
        """POST a multipart form to the storage endpoint.

        Uploads expect ``201 Created`` and have no timeout.
        """
        return await self._request(
            "POST",
            self.storage_url,
            files=files,
            timeout=None,
            hooks=[add_allowed_status_code(201), *hooks],
        )

    def download(self, endpoint: str, *, chunk_size: int | None = None) -> Download:
        """Return a lazy handle on the body at ``endpoint``; nothing is sent yet."""
        return Download(self, endpoint, chunk_size=chunk_size)

    def build_request(
        self,
        method: str,
        endpoint: str,
        *,
        params: QueryParams | None = None,
        json: Any = None,
        files: Mapping[str, Any] | None = None,
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
    ) -> httpx.Request:
        """Build an unauthenticated request carrying its status expectations."""
        allowed = [DEFAULT_STATUS_CODES.get(method, 200)]
        return self._client.build_request(
            method,
            endpoint,
            params=to_query_params(params),
            json=json,
            files=files,
            timeout=timeout,
            extensions={ALLOWED_STATUS_EXTENSION: allowed, ENDPOINT_EXTENSION: endpoint},
        )

    async def send(
        self,
        request: httpx.Request,
        *,
        hooks: Sequence[BeforeRequestHook] = (),
        stream: bool = False,
    ) -> httpx.Response:
        """Send a request built by ``build_request`` through the pipeline."""
        return await self._pipeline.send(request, hooks=hooks, stream=stream)

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        hooks: Sequence[BeforeRequestHook] = (),
        **kwargs: Any,
    ) -> Any:
        request = self.build_request(method, endpoint, **kwargs)
        response = await self.send(request, hooks=hooks)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def _retry_redirect_with_auth(
        self, response: httpx.Response
    ) -> httpx.Response | None:
        """Resend once to the redirect target when auth was lost on the way.

        httpx drops ``Authorization`` when a redirect crosses origins (e.g.
        API to storage), so the final hop may answer 401/403.
        """
        request = response.request
        if (
            not response.history
            or response.status_code not in (401, 403)
            or request.extensions.get(REDIRECT_RETRIED_EXTENSION)
        ):
            return None
        target = str(response.url)
        if not target.startswith((self.api_url, self.storage_url)):
            return None

        self._logger.info(
            "Retrying redirected request with credentials",
            method=request.method,
            status_code=response.status_code,
        )
        await response.aclose()

        headers = {
            k: v
            for k, v in request.headers.items()
            if k.lower() not in ("authorization", "content-length", "content-type")
        }
        retry = self._client.build_request(
            request.method,
            target,
            headers=headers,
            extensions={**request.extensions, REDIRECT_RETRIED_EXTENSION: True},
        )
        return await self._pipeline.dispatch(retry)

    async def _raise_for_error(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        error = await ErrorFactory.api_error_from_response(response)
        self._logger.debug(
            "API request failed",
            method=response.request.method,
            status_code=response.status_code,
            context=error.context,
        )
        raise error

    def _check_expected_status(self, response: httpx.Response) -> None:
        request = response.request
        allowed = request.extensions.get(ALLOWED_STATUS_EXTENSION)
        if not allowed or response.status_code in allowed:
            return
        endpoint = request.extensions.get(ENDPOINT_EXTENSION, request.url.path)
        raise ErrorFactory.unexpected_status(response, endpoint=endpoint, expected=allowed)
