"""Key handling for permit signing."""

from .keypair import Keypair, PublicKey, verify_signature

__all__ = ["Keypair", "PublicKey", "verify_signature"]
