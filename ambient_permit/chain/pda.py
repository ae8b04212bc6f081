"""
Program-derived record addresses.

A record address is sha256(seeds || bump || program_id || marker) where the
result must NOT be a valid Ed25519 point (so no private key can exist for
it). Bumps are searched from 255 downward and the first hit is canonical;
the on-chain program derives the same way and rejects any other bump.
"""

import hashlib
import logging
from typing import Sequence, Tuple, Union

from ..auth.keypair import PublicKey
from ..exceptions import DerivationExhaustedError, ValidationError
from ..utils.validators import validate_uint

logger = logging.getLogger(__name__)

PDA_MARKER = b"ProgramDerivedAddress"
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16

# Seed labels (domain separation between record kinds)
SESSION_SEED = b"session_v1.0"
NONCE_WINDOW_SEED = b"nonce_window_v1.0"
ALLOWANCE_SEED = b"allowance_v1.0"
USED_NONCE_SEED = b"used_nonce_v1.0"
ORDER_SEED = b"order_v1.0"

# Edwards25519: -x^2 + y^2 = 1 + d*x^2*y^2 over GF(2^255 - 19)
_P = 2 ** 255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P

Seed = Union[bytes, bytearray, PublicKey]


def is_on_curve(data: Union[bytes, PublicKey]) -> bool:
    """
    Check whether 32 bytes decompress to an Ed25519 curve point.

    Mirrors compressed-Edwards decompression: the y coordinate is the low
    255 bits (reduced mod p), and the point exists iff (y^2 - 1)/(d*y^2 + 1)
    is a square mod p.
    """
    raw = bytes(data)
    if len(raw) != 32:
        raise ValidationError(f"Curve point must be 32 bytes, got {len(raw)}")

    y = (int.from_bytes(raw, "little") & ((1 << 255) - 1)) % _P
    yy = y * y % _P
    u = (yy - 1) % _P
    v = (_D * yy + 1) % _P
    if u == 0:
        return True
    ratio = u * pow(v, _P - 2, _P) % _P
    return pow(ratio, (_P - 1) // 2, _P) == 1


def _seed_bytes(seeds: Sequence[Seed]) -> list:
    if len(seeds) > MAX_SEEDS:
        raise ValidationError(f"At most {MAX_SEEDS} seeds allowed, got {len(seeds)}")
    out = []
    for i, seed in enumerate(seeds):
        raw = bytes(seed)
        if len(raw) > MAX_SEED_LENGTH:
            raise ValidationError(
                f"Seed {i} is {len(raw)} bytes, max is {MAX_SEED_LENGTH}"
            )
        out.append(raw)
    return out


def _hash_seeds(seeds: Sequence[bytes], program_id: PublicKey) -> bytes:
    h = hashlib.sha256()
    for seed in seeds:
        h.update(seed)
    h.update(program_id.to_bytes())
    h.update(PDA_MARKER)
    return h.digest()


def create_program_address(seeds: Sequence[Seed], program_id: PublicKey) -> PublicKey:
    """
    Derive an address from complete seeds (bump included).

    Raises:
        ValidationError: If seeds are too long/many or the hash lands on the curve
    """
    digest = _hash_seeds(_seed_bytes(seeds), program_id)
    if is_on_curve(digest):
        raise ValidationError("Invalid seeds: derived address lies on the Ed25519 curve")
    return PublicKey(digest)


def find_program_address(seeds: Sequence[Seed], program_id: PublicKey) -> Tuple[PublicKey, int]:
    """
    Find the canonical (address, bump) for seeds.

    Args:
        seeds: Ordered seed components (bump excluded)
        program_id: Owning program

    Returns:
        (address, bump)

    Raises:
        DerivationExhaustedError: If every bump from 255 to 0 lands on the curve
    """
    base = _seed_bytes(seeds)
    if len(base) >= MAX_SEEDS:
        raise ValidationError(f"At most {MAX_SEEDS - 1} seeds allowed before the bump")

    for bump in range(255, -1, -1):
        digest = _hash_seeds([*base, bytes([bump])], program_id)
        if not is_on_curve(digest):
            return PublicKey(digest), bump

    logger.error(f"No off-curve bump for program {program_id}")
    raise DerivationExhaustedError(
        f"Unable to find a valid program address for program {program_id}",
        program_id=str(program_id),
    )


def _u64_le(value: int, field: str) -> bytes:
    return validate_uint(value, 64, field).to_bytes(8, "little")


class PermitPdas:
    """Record addresses used when consuming permits."""

    @staticmethod
    def session_pda(program_id: PublicKey, owner: PublicKey, session: PublicKey) -> Tuple[PublicKey, int]:
        """Delegated session record for (owner, session key)."""
        return find_program_address([SESSION_SEED, owner, session], program_id)

    @staticmethod
    def nonce_window_pda(program_id: PublicKey, signer: PublicKey) -> Tuple[PublicKey, int]:
        """Sliding nonce window of a signer."""
        return find_program_address([NONCE_WINDOW_SEED, signer], program_id)

    @staticmethod
    def allowance_pda(
        program_id: PublicKey,
        owner: PublicKey,
        authorizer: PublicKey,
        allowance_id: int,
    ) -> Tuple[PublicKey, int]:
        """Counted allowance granted by owner to authorizer."""
        return find_program_address(
            [ALLOWANCE_SEED, owner, authorizer, _u64_le(allowance_id, "allowance_id")],
            program_id,
        )

    @staticmethod
    def used_nonce_pda(program_id: PublicKey, owner: PublicKey, salt: bytes) -> Tuple[PublicKey, int]:
        """Marker that a one-time nonce salt was consumed."""
        return find_program_address([USED_NONCE_SEED, owner, salt], program_id)

    @staticmethod
    def per_order_pda(
        program_id: PublicKey,
        market_id: int,
        user: PublicKey,
        order_id: int,
    ) -> Tuple[PublicKey, int]:
        """Per-order record keyed by market, user and order id."""
        return find_program_address(
            [ORDER_SEED, _u64_le(market_id, "market_id"), user, _u64_le(order_id, "order_id")],
            program_id,
        )


__all__ = [
    "PermitPdas",
    "create_program_address",
    "find_program_address",
    "is_on_curve",
]
