"""On-chain addresses, record derivation and permit program instructions."""

from .addresses import (
    ED25519_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    SYSVAR_INSTRUCTIONS_ID,
    DEFAULT_PERMIT_PROGRAM_ID,
    get_program_address,
)
from .transaction import AccountMeta, TransactionInstruction
from .pda import PermitPdas, create_program_address, find_program_address, is_on_curve
from .instructions import (
    ConsumePermitAccounts,
    PermitInstructionType,
    ReplayAccounts,
    SessionScope,
    accounts_for_replay_mode,
    create_allowance_instruction,
    create_consume_permit_instruction,
    create_delegate_session_instruction,
    create_revoke_allowance_instruction,
    create_revoke_session_instruction,
    required_scope,
)

__all__ = [
    "ED25519_PROGRAM_ID",
    "SYSTEM_PROGRAM_ID",
    "SYSVAR_INSTRUCTIONS_ID",
    "DEFAULT_PERMIT_PROGRAM_ID",
    "get_program_address",
    "AccountMeta",
    "TransactionInstruction",
    "PermitPdas",
    "create_program_address",
    "find_program_address",
    "is_on_curve",
    "ConsumePermitAccounts",
    "PermitInstructionType",
    "ReplayAccounts",
    "SessionScope",
    "accounts_for_replay_mode",
    "create_allowance_instruction",
    "create_consume_permit_instruction",
    "create_delegate_session_instruction",
    "create_revoke_allowance_instruction",
    "create_revoke_session_instruction",
    "required_scope",
]
