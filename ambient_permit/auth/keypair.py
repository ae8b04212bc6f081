"""
Ed25519 key handling.

PublicKey is the 32-byte on-chain address type used throughout the models;
Keypair wraps a `cryptography` Ed25519 private key and is always passed
explicitly to signing functions.
"""

import base64
import logging
from typing import Any, Iterable, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from pydantic_core import core_schema

from ..exceptions import SigningError, ValidationError
from ..utils.encoding import b58decode, b58encode

logger = logging.getLogger(__name__)

PUBLIC_KEY_LENGTH = 32
SEED_LENGTH = 32
SECRET_KEY_LENGTH = 64
SIGNATURE_LENGTH = 64


class PublicKey:
    """
    32-byte account address.

    Accepts raw bytes, a base58 string, a list of ints or another PublicKey.
    Renders as base58.
    """

    __slots__ = ("_bytes",)

    def __init__(self, value: Union["PublicKey", bytes, bytearray, str, Iterable[int]]):
        if isinstance(value, PublicKey):
            raw = value._bytes
        elif isinstance(value, (bytes, bytearray)):
            raw = bytes(value)
        elif isinstance(value, str):
            raw = b58decode(value)
        else:
            try:
                raw = bytes(value)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Cannot build PublicKey from {type(value).__name__}") from e

        if len(raw) != PUBLIC_KEY_LENGTH:
            raise ValidationError(
                f"PublicKey must be {PUBLIC_KEY_LENGTH} bytes, got {len(raw)}"
            )
        self._bytes = raw

    @classmethod
    def from_string(cls, value: str) -> "PublicKey":
        return cls(value)

    def to_bytes(self) -> bytes:
        return self._bytes

    def __bytes__(self) -> bytes:
        return self._bytes

    def __str__(self) -> str:
        return b58encode(self._bytes)

    def __repr__(self) -> str:
        return f"PublicKey({str(self)})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PublicKey):
            return self._bytes == other._bytes
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._bytes)

    @classmethod
    def _validate(cls, value: Any) -> "PublicKey":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValidationError as e:
            # pydantic only wraps ValueError/AssertionError
            raise ValueError(e.message) from e

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


class Keypair:
    """
    Ed25519 signing keypair.

    SECURITY: the private key never appears in repr().

    Usage:
        keypair = Keypair.from_seed(bytes(32))
        signature = keypair.sign(b"message")
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_key = PublicKey(
            private_key.public_key().public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
        )

    @classmethod
    def generate(cls) -> "Keypair":
        """Create a fresh random keypair."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "Keypair":
        """
        Load from a 32-byte private seed.

        Raises:
            SigningError: If seed has the wrong length
        """
        seed = bytes(seed)
        if len(seed) != SEED_LENGTH:
            raise SigningError(f"Ed25519 seed must be {SEED_LENGTH} bytes, got {len(seed)}")
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @classmethod
    def from_secret_key(cls, secret_key: Union[bytes, Iterable[int]]) -> "Keypair":
        """
        Load from the 64-byte seed||public layout used by wallet key files.

        Args:
            secret_key: 64 bytes, or a JSON array of 64 ints

        Raises:
            SigningError: If length is wrong or the public half does not match the seed
        """
        raw = bytes(secret_key)
        if len(raw) != SECRET_KEY_LENGTH:
            raise SigningError(
                f"Secret key must be {SECRET_KEY_LENGTH} bytes, got {len(raw)}"
            )
        keypair = cls.from_seed(raw[:SEED_LENGTH])
        if keypair.public_key.to_bytes() != raw[SEED_LENGTH:]:
            raise SigningError("Secret key public half does not match its seed")
        return keypair

    @classmethod
    def from_jwk(cls, jwk: dict[str, Any]) -> "Keypair":
        """
        Load from an OKP/Ed25519 JWK (WebCrypto export).

        `d` may hold the 32-byte seed or the full 64-byte secret key. When
        `x` is present it must match the derived public key.
        """
        if jwk.get("kty") != "OKP" or jwk.get("crv") != "Ed25519":
            raise SigningError("Only OKP/Ed25519 JWK is supported")
        d = jwk.get("d")
        if not d:
            raise SigningError('JWK missing private component "d" for Ed25519')

        d_bytes = _b64url_decode(d)
        if len(d_bytes) == SECRET_KEY_LENGTH:
            keypair = cls.from_secret_key(d_bytes)
        elif len(d_bytes) == SEED_LENGTH:
            keypair = cls.from_seed(d_bytes)
        else:
            raise SigningError(
                f"Unexpected private seed length: {len(d_bytes)} (expected {SEED_LENGTH})"
            )

        x = jwk.get("x")
        if x and _b64url_decode(x) != keypair.public_key.to_bytes():
            raise SigningError('JWK "x" does not match the private key')
        return keypair

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    @property
    def secret_key(self) -> bytes:
        """64-byte seed||public layout."""
        seed = self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return seed + self._public_key.to_bytes()

    def sign(self, message: bytes) -> bytes:
        """Detached Ed25519 signature over message."""
        return self._private_key.sign(bytes(message))

    def __repr__(self) -> str:
        return f"Keypair(public_key={self._public_key})"


def verify_signature(public_key: Union[PublicKey, bytes], message: bytes, signature: bytes) -> bool:
    """
    Check a detached Ed25519 signature.

    Returns:
        True if valid, False on a bad signature or malformed key/signature
    """
    if len(signature) != SIGNATURE_LENGTH:
        return False
    try:
        Ed25519PublicKey.from_public_bytes(bytes(public_key)).verify(bytes(signature), bytes(message))
        return True
    except InvalidSignature:
        return False
    except ValueError as e:
        logger.debug(f"Signature verification rejected key: {e}")
        return False
