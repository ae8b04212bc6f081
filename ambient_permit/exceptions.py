"""
Custom exceptions for the permit library.

Provides typed exceptions so callers can tell structural decode failures,
input validation problems and signing failures apart.
"""

from typing import Optional, Any


class PermitError(Exception):
    """Base exception for all permit errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class MalformedEnvelopeError(PermitError):
    """Permit bytes could not be decoded."""

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message, {"offset": offset})
        self.offset = offset


class ValidationError(PermitError):
    """Input validation failed."""
    pass


class FieldOverflowError(ValidationError):
    """Numeric field does not fit its declared wire width."""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Optional[int] = None, bits: Optional[int] = None):
        super().__init__(message, {"field": field, "value": value, "bits": bits})
        self.field = field
        self.value = value
        self.bits = bits


class UnknownMarketError(ValidationError):
    """Market symbol or index is not in the registry."""

    def __init__(self, message: str, market: Optional[Any] = None):
        super().__init__(message, {"market": market})
        self.market = market


class UnsupportedTimeInForceError(ValidationError):
    """Exchange time-in-force string has no permit equivalent."""

    def __init__(self, message: str, tif: Optional[str] = None):
        super().__init__(message, {"tif": tif})
        self.tif = tif


class InvalidFaucetRequestError(ValidationError):
    """Faucet request could not be translated."""
    pass


class SigningError(PermitError):
    """Signing or key loading failed."""
    pass


class DerivationExhaustedError(PermitError):
    """No bump seed produced an off-curve program address."""

    def __init__(self, message: str, program_id: Optional[str] = None):
        super().__init__(message, {"program_id": program_id})
        self.program_id = program_id
