"""Centralized error factory for the Parcel SDK.

Turns HTTP responses and transport exceptions into SDK errors with a
consistent structure.
"""

from __future__ import annotations

from typing import Any

import httpx

from ..errors import (
    ApiError,
    NetworkError,
    ParcelError,
    TokenError,
    UnexpectedStatusError,
)

CONTEXT_EXTENSION = "parcel.context"


def is_json_response(response: httpx.Response) -> bool:
    return response.headers.get("content-type", "").startswith("application/json")


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class ErrorFactory:
    """Centralized error creation with consistent structure."""

    @staticmethod
    def token_error_from_response(response: httpx.Response) -> TokenError:
        """Create a TokenError from a failed token endpoint response.

        The message comes from the OAuth ``error`` and ``error_description``
        fields when the endpoint answered with JSON.
        """
        status = response.status_code
        body = _json_body(response) if is_json_response(response) else {}
        error = body.get("error")
        description = body.get("error_description")

        if error and description:
            message = f"{error}: {description}"
        elif error or description:
            message = str(error or description)
        else:
            message = f"auth token fetch failed with status {status}"

        return TokenError(
            message,
            status_code=status,
            error=error,
            error_description=description,
            response=response,
        )

    @staticmethod
    async def api_error_from_response(response: httpx.Response) -> ApiError:
        """Create an ApiError from a non-2xx API response.

        Reads the body if it has not been read yet; the response is expected
        to be discarded afterwards.
        """
        request = response.request
        context = request.extensions.get(CONTEXT_EXTENSION)

        if is_json_response(response):
            await response.aread()
            body = _json_body(response)
            message = f"Error from {request.url}: {body.get('error')}"
            details = {"error": body.get("error")}
        else:
            message = (
                f"Request failed with status code {response.status_code} "
                f"{response.reason_phrase}"
            ).rstrip()
            details = {}

        return ApiError(
            message,
            request=request,
            response=response,
            context=context,
            details=details,
        )

    @staticmethod
    def unexpected_status(
        response: httpx.Response,
        *,
        endpoint: str,
        expected: list[int],
    ) -> UnexpectedStatusError:
        """Create an error for a 2xx status the endpoint does not promise."""
        request = response.request
        expected_str = " | ".join(str(code) for code in expected)
        message = (
            f"{request.method} {endpoint} returned unexpected status "
            f"{response.status_code}. expected: {expected_str}."
        )
        return UnexpectedStatusError(
            message,
            expected=expected,
            actual=response.status_code,
            request=request,
            response=response,
            context=request.extensions.get(CONTEXT_EXTENSION),
        )

    @staticmethod
    def from_exception(exc: Exception) -> ParcelError:
        """Create SDK error from a transport exception.

        Args:
            exc: Original exception.

        Returns:
            The exception itself if it already is an SDK error, otherwise a
            ``NetworkError`` wrapping it.
        """
        if isinstance(exc, ParcelError):
            return exc

        if isinstance(exc, httpx.TimeoutException):
            return NetworkError(f"Request timed out: {exc}", cause=exc)

        if isinstance(exc, httpx.ConnectError):
            return NetworkError(f"Connection failed: {exc}", cause=exc)

        return NetworkError(f"HTTP error: {exc}", cause=exc)
