"""
Well-known program and sysvar addresses.

Source: Solana runtime native programs.
"""

from typing import Dict

from ..auth.keypair import PublicKey

# Native programs
SYSTEM_PROGRAM_ID = PublicKey("11111111111111111111111111111111")
ED25519_PROGRAM_ID = PublicKey("Ed25519SigVerify111111111111111111111111111")

# Sysvars
SYSVAR_INSTRUCTIONS_ID = PublicKey("Sysvar1nstructions1111111111111111111111111")

# Perps program deployed on the test cluster
DEFAULT_PERMIT_PROGRAM_ID = "6egfvA3boGA8BLTgCzwPfKZMv3W9QS5V61Ewqa6VWq2g"

ALL_PROGRAMS: Dict[str, PublicKey] = {
    "system": SYSTEM_PROGRAM_ID,
    "ed25519": ED25519_PROGRAM_ID,
    "sysvar_instructions": SYSVAR_INSTRUCTIONS_ID,
}


def get_program_address(name: str) -> PublicKey:
    """
    Get a well-known address by name.

    Args:
        name: "system", "ed25519" or "sysvar_instructions"

    Raises:
        KeyError: If name not found
    """
    return ALL_PROGRAMS[name]
