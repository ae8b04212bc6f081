"""
Byte/string encoding helpers.

Base58 (bitcoin alphabet) is the address format used on chain; hex and
base64 are the signature encodings the exchange accepts.
"""

import base64
from typing import Union

from ..exceptions import ValidationError


B58_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
B58_MAP = {c: i for i, c in enumerate(B58_ALPHABET)}

SIGNATURE_ENCODINGS = ("hex", "base64")


def b58decode(s: Union[str, bytes]) -> bytes:
    """
    Decode a base58 string.

    Args:
        s: Base58 text

    Returns:
        Decoded bytes (leading '1' characters become zero bytes)

    Raises:
        ValidationError: If the string contains a non-alphabet character
    """
    if isinstance(s, str):
        s_bytes = s.encode("ascii", errors="replace")
    else:
        s_bytes = s
    num = 0
    for c in s_bytes:
        if c not in B58_MAP:
            raise ValidationError(f"Invalid base58 character in {s!r}")
        num = num * 58 + B58_MAP[c]
    n_pad = 0
    for c in s_bytes:
        if c == B58_ALPHABET[0]:
            n_pad += 1
        else:
            break
    full = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    return b"\x00" * n_pad + full


def b58encode(b: bytes) -> str:
    """Encode bytes as base58."""
    n_pad = 0
    for c in b:
        if c == 0:
            n_pad += 1
        else:
            break
    num = int.from_bytes(b, "big")
    out = bytearray()
    while num > 0:
        num, rem = divmod(num, 58)
        out.append(B58_ALPHABET[rem])
    out.extend(B58_ALPHABET[0] for _ in range(n_pad))
    out.reverse()
    return out.decode("ascii")


def encode_bytes(data: bytes, encoding: str = "hex") -> str:
    """
    Encode raw bytes for an API payload.

    Args:
        data: Raw bytes
        encoding: "hex" or "base64"

    Returns:
        Encoded string (hex is lowercase, no 0x prefix)

    Raises:
        ValidationError: If encoding is not supported
    """
    if encoding == "hex":
        return data.hex()
    if encoding == "base64":
        return base64.b64encode(data).decode("ascii")
    raise ValidationError(
        f"Unsupported signature encoding {encoding!r}, expected one of {SIGNATURE_ENCODINGS}"
    )


def decode_bytes(text: str, encoding: str = "hex") -> bytes:
    """Inverse of encode_bytes()."""
    try:
        if encoding == "hex":
            return bytes.fromhex(text[2:] if text.startswith("0x") else text)
        if encoding == "base64":
            return base64.b64decode(text, validate=True)
    except ValueError as e:
        raise ValidationError(f"Invalid {encoding} data: {e}") from e
    raise ValidationError(
        f"Unsupported signature encoding {encoding!r}, expected one of {SIGNATURE_ENCODINGS}"
    )
