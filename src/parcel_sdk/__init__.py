"""Parcel Python SDK."""

from .client import Parcel
from .config import ParcelConfig, TelemetryConfig
from .documents import (
    AccessEvent,
    Document,
    DocumentDetails,
    DocumentUpdateParams,
    DocumentUploadParams,
    Upload,
)
from .download import Download
from .errors import (
    ApiError,
    ConfigurationError,
    DownloadAbortedError,
    ErrorCode,
    NetworkError,
    ParcelError,
    TokenError,
    UnexpectedStatusError,
    UploadAbortedError,
)
from .http import HttpClient, add_allowed_status_code, attach_context
from .identity import Identity
from .jwk import PrivateJWK, PublicJWK
from .models import Page, Token, UploadProgress
from .signing import make_jwt
from .telemetry import configure_telemetry
from .token import (
    PARCEL_RUNTIME_AUD,
    ExpiringTokenProvider,
    RefreshingTokenProvider,
    RefreshingTokenProviderParams,
    RenewingTokenProvider,
    RenewingTokenProviderParams,
    Scope,
    SelfIssuedTokenProvider,
    SelfIssuedTokenProviderParams,
    StaticTokenProvider,
    StaticTokenProviderParams,
    TokenProvider,
    TokenSource,
)

__all__ = [
    "PARCEL_RUNTIME_AUD",
    "AccessEvent",
    "ApiError",
    "ConfigurationError",
    "Document",
    "DocumentDetails",
    "DocumentUpdateParams",
    "DocumentUploadParams",
    "Download",
    "DownloadAbortedError",
    "ErrorCode",
    "ExpiringTokenProvider",
    "HttpClient",
    "Identity",
    "NetworkError",
    "Page",
    "Parcel",
    "ParcelConfig",
    "ParcelError",
    "PrivateJWK",
    "PublicJWK",
    "RefreshingTokenProvider",
    "RefreshingTokenProviderParams",
    "RenewingTokenProvider",
    "RenewingTokenProviderParams",
    "Scope",
    "SelfIssuedTokenProvider",
    "SelfIssuedTokenProviderParams",
    "StaticTokenProvider",
    "StaticTokenProviderParams",
    "TelemetryConfig",
    "Token",
    "TokenError",
    "TokenProvider",
    "TokenSource",
    "UnexpectedStatusError",
    "Upload",
    "UploadAbortedError",
    "UploadProgress",
    "add_allowed_status_code",
    "attach_context",
    "configure_telemetry",
    "make_jwt",
]

__version__ = "0.1.0"
