"""Error classes for the Parcel SDK.

Structured error hierarchy with stable error codes so callers can log or
display failures without digging through raw HTTP internals.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx


class ErrorCode(StrEnum):
    """Standardized error codes for the Parcel SDK."""

    # Configuration errors (1xxx)
    INVALID_CONFIG = "CFG_1001"
    INVALID_KEY = "CFG_1002"
    INVALID_TOKEN_SOURCE = "CFG_1003"

    # Token errors (2xxx)
    TOKEN_REQUEST_FAILED = "TOK_2001"
    TOKEN_RESPONSE_INVALID = "TOK_2002"

    # API errors (3xxx)
    API_ERROR = "API_3001"
    UNEXPECTED_STATUS = "API_3002"

    # Transport errors (4xxx)
    NETWORK_ERROR = "NET_4001"

    # Stream errors (5xxx)
    DOWNLOAD_ABORTED = "STR_5001"
    UPLOAD_ABORTED = "STR_5002"


class ParcelError(Exception):
    """Base error for the Parcel SDK with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = str(code)
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ConfigurationError(ParcelError):
    """Invalid SDK configuration. Raised at construction time and never retried."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_CONFIG,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code,
            details={"field": field} if field else None,
        )
        self.field = field


class TokenError(ParcelError):
    """The token endpoint refused or failed to issue an access token."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error: str | None = None,
        error_description: str | None = None,
        response: httpx.Response | None = None,
        cause: Exception | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if error:
            details["error"] = error
        if error_description:
            details["error_description"] = error_description
        if cause:
            details["cause"] = str(cause)
        super().__init__(
            message,
            ErrorCode.TOKEN_REQUEST_FAILED,
            status_code=status_code,
            details=details,
        )
        self.error = error
        self.error_description = error_description
        self.response = response
        if cause is not None:
            self.__cause__ = cause


class ApiError(ParcelError):
    """The Parcel API answered with an error (or otherwise unacceptable) response."""

    def __init__(
        self,
        message: str,
        *,
        request: httpx.Request | None = None,
        response: httpx.Response | None = None,
        context: str | None = None,
        code: ErrorCode = ErrorCode.API_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        if context:
            message = f"error in {context}: {message}"
        super().__init__(
            message,
            code,
            status_code=response.status_code if response is not None else None,
            details=details,
        )
        self.request = request
        self.response = response
        self.context = context


class UnexpectedStatusError(ApiError):
    """A successful (2xx) response whose status is not one the endpoint promises."""

    def __init__(
        self,
        message: str,
        *,
        expected: list[int],
        actual: int,
        request: httpx.Request | None = None,
        response: httpx.Response | None = None,
        context: str | None = None,
    ) -> None:
        super().__init__(
            message,
            request=request,
            response=response,
            context=context,
            code=ErrorCode.UNEXPECTED_STATUS,
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class NetworkError(ParcelError):
    """Network request failed."""

    def __init__(
        self,
        message: str = "Network request failed",
        *,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.NETWORK_ERROR,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause


class DownloadAbortedError(ParcelError):
    """The download was cancelled by the caller."""

    def __init__(self, message: str = "Download was aborted") -> None:
        super().__init__(message, ErrorCode.DOWNLOAD_ABORTED)


class UploadAbortedError(ParcelError):
    """The upload was cancelled by the caller."""

    def __init__(self, message: str = "Upload was aborted") -> None:
        super().__init__(message, ErrorCode.UPLOAD_ABORTED)
