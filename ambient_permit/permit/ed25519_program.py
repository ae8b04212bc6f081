"""
Ed25519 signature-verification precompile instruction.

Instruction data layout (offsets relative to the start of this
instruction's data, all integers little-endian):

    0   u8   number of signatures (always 1 here)
    1   u16  signature offset
    3   u16  signature instruction index
    5   u16  public key offset
    7   u16  public key instruction index
    9   u16  message offset
    11  u16  message length
    13  u16  message instruction index
    15  u8   padding
    16  [64] signature
    80  [32] public key
    112 [n]  message

Instruction indexes of 0 point at the transaction's first instruction, which
is where this instruction is placed.
"""

import struct
from typing import Tuple

from ..auth.keypair import PublicKey, PUBLIC_KEY_LENGTH, SIGNATURE_LENGTH
from ..chain.addresses import ED25519_PROGRAM_ID
from ..chain.transaction import TransactionInstruction
from ..exceptions import MalformedEnvelopeError, ValidationError
from ..utils.validators import validate_uint

HEADER_LENGTH = 16
SIGNATURE_OFFSET = HEADER_LENGTH
PUBKEY_OFFSET = SIGNATURE_OFFSET + SIGNATURE_LENGTH
MESSAGE_OFFSET = PUBKEY_OFFSET + PUBLIC_KEY_LENGTH
VERIFY_INSTRUCTION_INDEX = 0

_HEADER = struct.Struct("<BHHHHHHHx")


def build_ed25519_instruction_data(signature: bytes, public_key: PublicKey, message: bytes) -> bytes:
    """
    Build precompile data for one signature.

    Raises:
        ValidationError: If signature is not 64 bytes
        FieldOverflowError: If the message is longer than a u16 can describe
    """
    if len(signature) != SIGNATURE_LENGTH:
        raise ValidationError(f"Ed25519 signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}")
    validate_uint(len(message), 16, "message_length")

    header = _HEADER.pack(
        1,
        SIGNATURE_OFFSET,
        VERIFY_INSTRUCTION_INDEX,
        PUBKEY_OFFSET,
        VERIFY_INSTRUCTION_INDEX,
        MESSAGE_OFFSET,
        len(message),
        VERIFY_INSTRUCTION_INDEX,
    )
    return header + bytes(signature) + public_key.to_bytes() + bytes(message)


def create_ed25519_instruction(signature: bytes, public_key: PublicKey, message: bytes) -> TransactionInstruction:
    """Wrap build_ed25519_instruction_data() in an instruction for the precompile."""
    return TransactionInstruction(
        program_id=ED25519_PROGRAM_ID,
        data=build_ed25519_instruction_data(signature, public_key, message),
        keys=[],
    )


def parse_ed25519_instruction_data(data: bytes) -> Tuple[bytes, PublicKey, bytes]:
    """
    Extract (signature, public key, message) from single-signature precompile data.

    Only self-contained data (all three parts inside this instruction) is
    supported.

    Raises:
        MalformedEnvelopeError: If the header is inconsistent with the data
    """
    if len(data) < HEADER_LENGTH:
        raise MalformedEnvelopeError(
            f"Ed25519 instruction data too short: {len(data)} bytes", offset=0
        )
    (count, sig_off, _sig_ix, pk_off, _pk_ix, msg_off, msg_len, _msg_ix) = _HEADER.unpack_from(data)
    if count != 1:
        raise MalformedEnvelopeError(f"Expected 1 signature, header declares {count}", offset=0)

    spans = (
        ("signature", sig_off, SIGNATURE_LENGTH),
        ("public key", pk_off, PUBLIC_KEY_LENGTH),
        ("message", msg_off, msg_len),
    )
    for what, offset, length in spans:
        if offset + length > len(data):
            raise MalformedEnvelopeError(
                f"Ed25519 {what} span [{offset}, {offset + length}) exceeds data length {len(data)}",
                offset=offset,
            )

    signature = bytes(data[sig_off:sig_off + SIGNATURE_LENGTH])
    public_key = PublicKey(data[pk_off:pk_off + PUBLIC_KEY_LENGTH])
    message = bytes(data[msg_off:msg_off + msg_len])
    return signature, public_key, message
