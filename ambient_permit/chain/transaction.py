"""
Minimal instruction containers.

Only what is needed to hand instructions to a transaction builder; message
compilation and submission belong to the transport layer.
"""

from dataclasses import dataclass, field
from typing import List

from ..auth.keypair import PublicKey


@dataclass(frozen=True)
class AccountMeta:
    """Account reference inside an instruction."""
    pubkey: PublicKey
    is_signer: bool
    is_writable: bool


@dataclass(frozen=True)
class TransactionInstruction:
    """Program id, ordered accounts and opaque data."""
    program_id: PublicKey
    data: bytes
    keys: List[AccountMeta] = field(default_factory=list)

    def account_pubkeys(self) -> List[PublicKey]:
        return [meta.pubkey for meta in self.keys]
