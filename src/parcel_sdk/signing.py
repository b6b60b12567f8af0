"""ES256 JWT signing."""

from __future__ import annotations

import secrets
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import jwt

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey

ALGORITHM = "ES256"

# Backdate iat so that servers with a slow clock still accept the token.
CLOCK_SKEW_SECONDS = 120


def make_jti() -> str:
    """Random 8-byte hex token ID."""
    return secrets.token_hex(8)


def make_claims(
    payload: Mapping[str, Any],
    lifetime_seconds: float,
    *,
    now: float | None = None,
) -> dict[str, Any]:
    """Return a copy of ``payload`` with ``iat`` and ``exp`` filled in."""
    issued = int(now if now is not None else time.time())
    return {
        **payload,
        "iat": issued - CLOCK_SKEW_SECONDS,
        "exp": issued + int(lifetime_seconds),
    }


def make_jwt(
    private_key: EllipticCurvePrivateKey | bytes | str,
    *,
    payload: Mapping[str, Any],
    lifetime_seconds: float,
    key_id: str | None = None,
    now: float | None = None,
) -> str:
    """Sign a compact JWS with ES256.

    Args:
        private_key: EC P-256 private key, or its PKCS#8 PEM encoding.
        payload: Claims to sign. Not modified.
        lifetime_seconds: Seconds from now until ``exp``.
        key_id: Optional ``kid`` header.
        now: Override for the current Unix time.

    Returns:
        The signed token.
    """
    headers: dict[str, Any] = {"typ": "JWT"}
    if key_id:
        headers["kid"] = key_id
    claims = make_claims(payload, lifetime_seconds, now=now)
    return jwt.encode(claims, private_key, algorithm=ALGORITHM, headers=headers)
