"""Token providers hand out bearer tokens for the Parcel API.

A provider either wraps a fixed token or obtains short-lived access tokens
and caches them until they expire:

* ``StaticTokenProvider`` - a fixed token.
* ``RenewingTokenProvider`` - OAuth client credentials grant, authenticated
  with a client assertion signed by the client's private key.
* ``RefreshingTokenProvider`` - OAuth refresh token grant, following
  refresh token rotation.
* ``SelfIssuedTokenProvider`` - access tokens signed locally by the principal.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

import httpx
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .core.token_ops import (
    build_client_credentials_request,
    build_refresh_token_request,
    request_token,
    token_from_response,
)
from .errors import ConfigurationError, ErrorCode
from .jwk import PrivateJWK
from .models import Token
from .signing import make_jti, make_jwt
from .telemetry import get_logger, trace_operation

PARCEL_RUNTIME_AUD = "https://api.oasislabs.com/parcel"
DEFAULT_TOKEN_ENDPOINT = "https://auth.oasislabs.com/oauth/token"

CLIENT_ASSERTION_LIFETIME = 60 * 60
DEFAULT_TOKEN_LIFETIME = 60 * 60
TOKEN_ENDPOINT_TIMEOUT = 30.0


class Scope(StrEnum):
    """Well-known Parcel scopes."""

    FULL = "parcel.full"
    FULL_READ = "parcel.full.read"
    PUBLIC = "parcel.public"
    JOB_ALL = "parcel.job.*"


class TokenProvider(ABC):
    """Hands out bearer tokens to be presented to the Parcel gateway."""

    @abstractmethod
    async def get_token(self) -> str:
        """Return a valid bearer token."""

    async def aclose(self) -> None:
        """Release any resources held by the provider."""

    @classmethod
    def from_source(
        cls,
        source: TokenSourceLike,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> TokenProvider:
        """Build the provider described by ``source``.

        Args:
            source: A token string, a ``TokenSource`` params model, a mapping
                of params, or an existing provider. A mapping selects its
                provider by ``kind`` or, failing that, by which of
                ``refresh_token``, ``client_id`` or ``principal`` it holds.
            http_client: Client used for token endpoint requests.
            transport: Transport for a token endpoint client the provider
                creates itself when ``http_client`` is not given.

        Raises:
            ConfigurationError: If the source cannot be interpreted.
        """
        if isinstance(source, TokenProvider):
            return source
        if isinstance(source, str):
            return StaticTokenProvider(source)
        if isinstance(source, Mapping):
            data = dict(source)
            data.setdefault("kind", _infer_kind(data))
            try:
                source = _TOKEN_SOURCE_ADAPTER.validate_python(data)
            except ValidationError as e:
                raise ConfigurationError(
                    f"Unrecognized token source: {e}", ErrorCode.INVALID_TOKEN_SOURCE
                ) from e

        if isinstance(source, StaticTokenProviderParams):
            return StaticTokenProvider(source.token)
        if isinstance(source, RenewingTokenProviderParams):
            return RenewingTokenProvider(
                client_id=source.client_id,
                private_key=source.private_key,
                token_endpoint=source.token_endpoint,
                audience=source.audience,
                scopes=source.scopes,
                http_client=http_client,
                transport=transport,
            )
        if isinstance(source, RefreshingTokenProviderParams):
            return RefreshingTokenProvider(
                refresh_token=source.refresh_token,
                token_endpoint=source.token_endpoint,
                audience=source.audience,
                http_client=http_client,
                transport=transport,
            )
        if isinstance(source, SelfIssuedTokenProviderParams):
            return SelfIssuedTokenProvider(
                principal=source.principal,
                private_key=source.private_key,
                scopes=source.scopes,
                token_lifetime=source.token_lifetime,
            )

        raise ConfigurationError(
            f"Unrecognized token source of type {type(source).__name__}",
            ErrorCode.INVALID_TOKEN_SOURCE,
        )


class StaticTokenProvider(TokenProvider):
    """Always returns the same, initially provided token."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def get_token(self) -> str:
        return self._token


class ExpiringTokenProvider(TokenProvider):
    """Caches one token and renews it once it has expired.

    Renewal is single-flight: concurrent callers that find the cache stale
    wait for one renewal instead of each starting their own. A failed renewal
    leaves the cache empty, so the next call tries again.
    """

    def __init__(self) -> None:
        self._token: Token | None = None
        self._lock = asyncio.Lock()
        self._logger = get_logger()

    @property
    def cached_token(self) -> Token | None:
        return self._token

    async def get_token(self) -> str:
        async with self._lock:
            if self._token is None or self._token.is_expired():
                self._token = None
                with trace_operation(
                    "renew_token", attributes={"provider": type(self).__name__}
                ):
                    self._token = await self.renew_token()
                self._logger.debug(
                    "Renewed access token",
                    provider=type(self).__name__,
                    expiry=self._token.expiry.isoformat(),
                )
            return str(self._token)

    def invalidate(self) -> None:
        """Drop the cached token so the next call renews it."""
        self._token = None

    @abstractmethod
    async def renew_token(self) -> Token:
        """Obtain a fresh token."""


class _TokenEndpointProvider(ExpiringTokenProvider):
    """An expiring provider that renews against an OAuth token endpoint."""

    def __init__(
        self,
        token_endpoint: str,
        http_client: httpx.AsyncClient | None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self.token_endpoint = token_endpoint
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=TOKEN_ENDPOINT_TIMEOUT, transport=transport
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()


class RenewingTokenProvider(_TokenEndpointProvider):
    """Obtains access tokens with the client credentials grant.

    The client authenticates with a short-lived assertion signed by its
    private key instead of a client secret.
    """

    def __init__(
        self,
        *,
        client_id: str,
        private_key: PrivateJWK | dict[str, Any] | str,
        token_endpoint: str = DEFAULT_TOKEN_ENDPOINT,
        audience: str = PARCEL_RUNTIME_AUD,
        scopes: list[str] | None = None,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        jwk = PrivateJWK.parse(private_key)
        jwk.ensure_es256()
        signing_key = jwk.to_private_key()
        super().__init__(token_endpoint, http_client, transport)
        self.client_id = client_id
        self.audience = audience
        self.scopes = list(scopes) if scopes is not None else [Scope.FULL.value]
        self._key_id = jwk.kid
        self._signing_key = signing_key

    def make_client_assertion(self) -> str:
        claims = {
            "sub": self.client_id,
            "iss": self.client_id,
            "aud": self.token_endpoint,
            "jti": make_jti(),
        }
        return make_jwt(
            self._signing_key,
            payload=claims,
            lifetime_seconds=CLIENT_ASSERTION_LIFETIME,
            key_id=self._key_id,
        )

    async def renew_token(self) -> Token:
        data = build_client_credentials_request(
            self.make_client_assertion(),
            scopes=self.scopes,
            audience=self.audience,
        )
        requested_at = datetime.now(UTC)
        response, _ = await request_token(self._http, self.token_endpoint, data)
        return token_from_response(response, requested_at)


class RefreshingTokenProvider(_TokenEndpointProvider):
    """Obtains access tokens by presenting a refresh token.

    When the token endpoint rotates the refresh token, the new one is used
    for the next renewal.
    """

    def __init__(
        self,
        *,
        refresh_token: str,
        token_endpoint: str = DEFAULT_TOKEN_ENDPOINT,
        audience: str = PARCEL_RUNTIME_AUD,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(token_endpoint, http_client, transport)
        self.audience = audience
        self._refresh_token = refresh_token

    async def renew_token(self) -> Token:
        data = build_refresh_token_request(self._refresh_token, audience=self.audience)
        requested_at = datetime.now(UTC)
        response, body = await request_token(self._http, self.token_endpoint, data)
        self._rotate_refresh_token(body)
        return token_from_response(response, requested_at)

    def _rotate_refresh_token(self, body: dict[str, Any]) -> None:
        # The access token is already valid; a bad rotation must not fail it.
        rotated = body.get("refresh_token")
        if rotated is None:
            return
        if not isinstance(rotated, str) or not rotated:
            self._logger.debug("Ignoring malformed rotated refresh token")
            return
        self._refresh_token = rotated
        self._logger.debug("Rotated refresh token")


class SelfIssuedTokenProvider(ExpiringTokenProvider):
    """Signs its own access tokens; no network round trip."""

    def __init__(
        self,
        *,
        principal: str,
        private_key: PrivateJWK | dict[str, Any] | str,
        scopes: list[str] | None = None,
        token_lifetime: float = DEFAULT_TOKEN_LIFETIME,
    ) -> None:
        if token_lifetime < 0:
            raise ConfigurationError(
                "token_lifetime must not be negative", field="token_lifetime"
            )
        jwk = PrivateJWK.parse(private_key)
        jwk.ensure_es256()
        super().__init__()
        self.principal = principal
        self.scopes = list(scopes) if scopes is not None else [Scope.FULL.value]
        self.token_lifetime = token_lifetime
        self._key_id = jwk.kid
        self._signing_key = jwk.to_private_key()

    async def renew_token(self) -> Token:
        now = time.time()
        claims = {
            "sub": self.principal,
            "iss": self.principal,
            "aud": PARCEL_RUNTIME_AUD,
            "scope": " ".join(self.scopes),
            "jti": make_jti(),
        }
        value = make_jwt(
            self._signing_key,
            payload=claims,
            lifetime_seconds=self.token_lifetime,
            key_id=self._key_id,
            now=now,
        )
        # Same whole-second arithmetic as the signed exp claim.
        expiry = datetime.fromtimestamp(int(now) + int(self.token_lifetime), UTC)
        return Token(value=value, expiry=expiry)


_PARAMS_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

# Mappings without a "kind" are recognized by their distinguishing key.
_KIND_BY_KEY = (
    ("refresh_token", "refreshing"),
    ("refreshToken", "refreshing"),
    ("client_id", "renewing"),
    ("clientId", "renewing"),
    ("principal", "self_issued"),
    ("token", "static"),
)


def _infer_kind(data: Mapping[str, Any]) -> str | None:
    for key, kind in _KIND_BY_KEY:
        if key in data:
            return kind
    return None


def _parse_private_key(value: Any) -> PrivateJWK:
    try:
        return PrivateJWK.parse(value)
    except ConfigurationError as e:
        raise ValueError(e.message) from e


class StaticTokenProviderParams(BaseModel):
    model_config = _PARAMS_CONFIG

    kind: Literal["static"] = "static"
    token: str


class RenewingTokenProviderParams(BaseModel):
    model_config = _PARAMS_CONFIG

    kind: Literal["renewing"] = "renewing"
    client_id: str = Field(..., min_length=1)
    private_key: PrivateJWK
    token_endpoint: str = DEFAULT_TOKEN_ENDPOINT
    audience: str = PARCEL_RUNTIME_AUD
    scopes: list[str] = Field(default_factory=lambda: [Scope.FULL.value])

    @field_validator("private_key", mode="before")
    @classmethod
    def parse_private_key(cls, v: Any) -> PrivateJWK:
        """Accept the key as a model, a dict, or a JSON string."""
        return _parse_private_key(v)


class RefreshingTokenProviderParams(BaseModel):
    model_config = _PARAMS_CONFIG

    kind: Literal["refreshing"] = "refreshing"
    refresh_token: str = Field(..., min_length=1)
    token_endpoint: str = DEFAULT_TOKEN_ENDPOINT
    audience: str = PARCEL_RUNTIME_AUD


class SelfIssuedTokenProviderParams(BaseModel):
    model_config = _PARAMS_CONFIG

    kind: Literal["self_issued"] = "self_issued"
    principal: str = Field(..., min_length=1)
    private_key: PrivateJWK
    scopes: list[str] = Field(default_factory=lambda: [Scope.FULL.value])
    token_lifetime: float = Field(default=DEFAULT_TOKEN_LIFETIME, ge=0)

    @field_validator("private_key", mode="before")
    @classmethod
    def parse_private_key(cls, v: Any) -> PrivateJWK:
        return _parse_private_key(v)


TokenSource = Annotated[
    StaticTokenProviderParams
    | RenewingTokenProviderParams
    | RefreshingTokenProviderParams
    | SelfIssuedTokenProviderParams,
    Field(discriminator="kind"),
]

TokenSourceLike = str | TokenSource | Mapping[str, Any] | TokenProvider

_TOKEN_SOURCE_ADAPTER: TypeAdapter[TokenSource] = TypeAdapter(TokenSource)
