"""Utility modules for the permit library."""

from .clock import Clock, FixedClock, SystemClock
from .encoding import b58decode, b58encode, decode_bytes, encode_bytes
from .numeric import decimal_to_fixed, fixed_to_decimal, to_decimal

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "b58decode",
    "b58encode",
    "decode_bytes",
    "encode_bytes",
    "decimal_to_fixed",
    "fixed_to_decimal",
    "to_decimal",
]
