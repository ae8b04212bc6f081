"""Permit envelope encoding, building and signing."""

from .codec import decode_permit_envelope, encode_permit_envelope
from .builder import PermitBuilder
from .signer import (
    PermitSignature,
    PermitSigner,
    PermitSignResult,
    SignedPermit,
    generate_permit_signature,
    sign_permits,
    sign_permits_base64,
    sign_permits_hex,
)
from .ed25519_program import (
    build_ed25519_instruction_data,
    create_ed25519_instruction,
    parse_ed25519_instruction_data,
)

__all__ = [
    "decode_permit_envelope",
    "encode_permit_envelope",
    "PermitBuilder",
    "PermitSignature",
    "PermitSigner",
    "PermitSignResult",
    "SignedPermit",
    "generate_permit_signature",
    "sign_permits",
    "sign_permits_base64",
    "sign_permits_hex",
    "build_ed25519_instruction_data",
    "create_ed25519_instruction",
    "parse_ed25519_instruction_data",
]
