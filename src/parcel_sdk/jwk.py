"""EC P-256 JSON Web Keys used to sign client assertions and self-issued tokens."""

from __future__ import annotations

import base64
import json
from typing import TYPE_CHECKING, Any, Literal, Self

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError, ErrorCode

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.ec import (
        EllipticCurvePrivateKey,
        EllipticCurvePublicKey,
    )

_COORD_BYTES = 32  # P-256


def _b64url_encode(value: int) -> str:
    raw = value.to_bytes(_COORD_BYTES, "big")
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _b64url_decode(value: str) -> int:
    raw = base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))
    return int.from_bytes(raw, "big")


class PublicJWK(BaseModel):
    """Public half of an ES256 signing key."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    kty: Literal["EC"] = "EC"
    crv: Literal["P-256"] = "P-256"
    alg: Literal["ES256"] = "ES256"
    x: str
    y: str
    use: str | None = "sig"
    kid: str | None = None

    def to_public_key(self) -> EllipticCurvePublicKey:
        """Build a cryptography public key for signature verification."""
        numbers = ec.EllipticCurvePublicNumbers(
            _b64url_decode(self.x), _b64url_decode(self.y), ec.SECP256R1()
        )
        return numbers.public_key()

    def to_pem(self) -> bytes:
        return self.to_public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )


class PrivateJWK(BaseModel):
    """A private signing key in JWK form.

    Fields are deliberately loose so that a wrong key type can be reported as
    a ``ConfigurationError`` by the token provider that receives it.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    kty: str
    crv: str | None = None
    alg: str | None = None
    x: str | None = None
    y: str | None = None
    d: str = Field(..., min_length=1, repr=False)
    use: str | None = "sig"
    kid: str | None = None

    @classmethod
    def generate(cls, *, kid: str | None = None) -> Self:
        """Generate a new P-256 signing key."""
        private_key = ec.generate_private_key(ec.SECP256R1())
        return cls.from_private_key(private_key, kid=kid)

    @classmethod
    def from_private_key(
        cls, private_key: EllipticCurvePrivateKey, *, kid: str | None = None
    ) -> Self:
        numbers = private_key.private_numbers()
        public_numbers = numbers.public_numbers
        return cls(
            kty="EC",
            crv="P-256",
            alg="ES256",
            x=_b64url_encode(public_numbers.x),
            y=_b64url_encode(public_numbers.y),
            d=_b64url_encode(numbers.private_value),
            kid=kid,
        )

    @classmethod
    def parse(cls, value: PrivateJWK | dict[str, Any] | str) -> Self:
        """Accept a key as a model, a dict, or a JSON string."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise ConfigurationError(
                    "Private key is not valid JSON", ErrorCode.INVALID_KEY
                ) from e
        if not isinstance(value, dict):
            raise ConfigurationError(
                "Private key must be a JWK object", ErrorCode.INVALID_KEY
            )
        try:
            return cls.model_validate(value)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid private JWK: {e}", ErrorCode.INVALID_KEY
            ) from e

    def ensure_es256(self) -> None:
        """Reject anything but an EC key meant for ES256 signing.

        Raises:
            ConfigurationError: If the key type or algorithm is unsupported.
        """
        if self.kty != "EC" or self.alg != "ES256":
            msg = (
                "Private key should be an ES256 JWK "
                f"(got kty={self.kty!r}, alg={self.alg!r})"
            )
            raise ConfigurationError(msg, ErrorCode.INVALID_KEY)
        if self.crv not in (None, "P-256") or not self.x or not self.y:
            raise ConfigurationError(
                "Private key should be a P-256 key with x and y coordinates",
                ErrorCode.INVALID_KEY,
            )

    def public_jwk(self) -> PublicJWK:
        """Return the public half of this key (without ``d``)."""
        return PublicJWK(x=self.x or "", y=self.y or "", use=self.use, kid=self.kid)

    def to_private_key(self) -> EllipticCurvePrivateKey:
        """Build a cryptography private key for signing."""
        self.ensure_es256()
        try:
            public_numbers = ec.EllipticCurvePublicNumbers(
                _b64url_decode(self.x or ""), _b64url_decode(self.y or ""), ec.SECP256R1()
            )
            return ec.EllipticCurvePrivateNumbers(
                _b64url_decode(self.d), public_numbers
            ).private_key()
        except ValueError as e:
            raise ConfigurationError(
                f"Private key is not a valid P-256 key: {e}", ErrorCode.INVALID_KEY
            ) from e

    def to_pem(self) -> bytes:
        """PKCS#8 PEM encoding of the private key."""
        return self.to_private_key().private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
