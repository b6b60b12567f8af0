"""OAuth token endpoint request building and response handling.

Shared by the token providers that talk to a token endpoint.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from ..errors import TokenError
from ..models import Token, TokenResponse
from .errors import ErrorFactory

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


def build_client_credentials_request(
    client_assertion: str,
    *,
    scopes: list[str],
    audience: str,
) -> dict[str, str]:
    """Build a client credentials grant authenticated by a signed assertion.

    Args:
        client_assertion: Signed JWT proving possession of the client key.
        scopes: Scopes to request.
        audience: Audience the access token is for.

    Returns:
        Form fields for the token request.
    """
    return {
        "grant_type": "client_credentials",
        "client_assertion": client_assertion,
        "client_assertion_type": CLIENT_ASSERTION_TYPE,
        "scope": " ".join(scopes),
        "audience": audience,
    }


def build_refresh_token_request(refresh_token: str, *, audience: str) -> dict[str, str]:
    """Build a refresh token grant request payload."""
    return {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "audience": audience,
    }


async def request_token(
    http: httpx.AsyncClient,
    token_endpoint: str,
    data: dict[str, str],
) -> tuple[TokenResponse, dict[str, Any]]:
    """POST a grant to the token endpoint.

    Args:
        http: Client used for the token endpoint.
        token_endpoint: Absolute URL of the token endpoint.
        data: Form fields.

    Returns:
        The parsed token response and the raw JSON body.

    Raises:
        TokenError: On network failure, error response, or malformed body.
    """
    try:
        response = await http.post(token_endpoint, data=data, headers=FORM_HEADERS)
    except httpx.HTTPError as e:
        raise TokenError(f"auth token fetch failed: {e}", cause=e) from e

    if not response.is_success:
        raise ErrorFactory.token_error_from_response(response)

    try:
        body = response.json()
        return TokenResponse.model_validate(body), body
    except ValueError as e:
        raise TokenError(
            f"auth token response was malformed: {e}",
            status_code=response.status_code,
            response=response,
            cause=e,
        ) from e


def token_from_response(response: TokenResponse, requested_at: datetime) -> Token:
    """Turn a token response into a cached ``Token``."""
    return Token.from_response(response, requested_at=requested_at)
