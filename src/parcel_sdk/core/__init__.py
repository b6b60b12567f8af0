"""Core components of the Parcel SDK.

Token endpoint operations, the request hook pipeline and error creation,
shared by the token providers and the HTTP client.
"""

from __future__ import annotations

from .errors import ErrorFactory
from .http_executor import HookPipeline, add_allowed_status_code, attach_context
from .token_ops import (
    build_client_credentials_request,
    build_refresh_token_request,
    request_token,
)

__all__ = [
    "ErrorFactory",
    "HookPipeline",
    "add_allowed_status_code",
    "attach_context",
    "build_client_credentials_request",
    "build_refresh_token_request",
    "request_token",
]
