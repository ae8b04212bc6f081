"""
Permit program instructions.

Builders for consuming a signed permit and for managing session delegations
and allowances. Discriminants and data layouts must match the deployed
program.
"""

import struct
import logging
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from typing import TYPE_CHECKING, List, Optional

from ..auth.keypair import PublicKey
from ..models import (
    CancelAllAction,
    CancelByClientIdAction,
    CancelByIdAction,
    FaucetAction,
    ModifyAction,
    NoopAction,
    PermitEnvelopeV1,
    PlaceAction,
    ReplayModeType,
    SetLeverageAction,
    WithdrawAction,
)
from ..exceptions import ValidationError
from ..utils.validators import validate_int, validate_uint
from .addresses import SYSTEM_PROGRAM_ID, SYSVAR_INSTRUCTIONS_ID
from .pda import PermitPdas
from .transaction import AccountMeta, TransactionInstruction

if TYPE_CHECKING:
    from ..permit.signer import SignedPermit

logger = logging.getLogger(__name__)


class PermitInstructionType(IntEnum):
    """Instruction discriminants of the permit program."""
    CONSUME_PERMIT = 50
    DELEGATE_SESSION = 51
    REVOKE_SESSION = 52
    CREATE_ALLOWANCE = 53
    REVOKE_ALLOWANCE = 54


class SessionScope(IntFlag):
    """Actions a delegated session key may authorize."""
    NONE = 0
    PLACE = 1 << 0
    CANCEL = 1 << 1
    WITHDRAW = 1 << 2
    SET_LEVERAGE = 1 << 3
    FAUCET = 1 << 4
    ALL = 0xFFFFFFFF


# Index of the Ed25519 verification instruction in the transaction
VERIFY_IX_INDEX = 0

_DELEGATE_LAYOUT = struct.Struct("<B32sqI")
_REVOKE_SESSION_LAYOUT = struct.Struct("<B32s")
_ALLOWANCE_LAYOUT = struct.Struct("<B32sqH")


@dataclass(frozen=True)
class ConsumePermitAccounts:
    """
    Accounts referenced by a ConsumePermit instruction.

    The four trailing records are optional and appended in declaration order
    when present; which ones are needed depends on the replay mode and on
    whether a session key signed (see accounts_for_replay_mode()).
    """
    submitter: PublicKey
    global_state: PublicKey
    cma: PublicKey
    market: PublicKey
    per_order_pda: PublicKey
    market_order_log: PublicKey
    rent_payer: PublicKey
    session_pda: Optional[PublicKey] = None
    nonce_window_pda: Optional[PublicKey] = None
    allowance_pda: Optional[PublicKey] = None
    used_nonce_pda: Optional[PublicKey] = None


@dataclass(frozen=True)
class ReplayAccounts:
    """Optional replay-protection records for one envelope."""
    session_pda: Optional[PublicKey] = None
    nonce_window_pda: Optional[PublicKey] = None
    allowance_pda: Optional[PublicKey] = None
    used_nonce_pda: Optional[PublicKey] = None


def create_consume_permit_instruction(
    program_id: PublicKey,
    signed_permit: "SignedPermit",
    accounts: ConsumePermitAccounts,
) -> List[TransactionInstruction]:
    """
    Build the instruction pair that consumes a signed permit.

    The Ed25519 verification instruction comes first (index 0) and the
    ConsumePermit instruction references it by that index.

    Args:
        program_id: Permit program
        signed_permit: Output of PermitSigner.sign()
        accounts: Accounts to reference

    Returns:
        [verify_instruction, consume_instruction]
    """
    keys = [
        AccountMeta(accounts.submitter, is_signer=True, is_writable=False),
        AccountMeta(SYSVAR_INSTRUCTIONS_ID, is_signer=False, is_writable=False),
        AccountMeta(accounts.global_state, is_signer=False, is_writable=True),
        AccountMeta(accounts.cma, is_signer=False, is_writable=True),
        AccountMeta(accounts.market, is_signer=False, is_writable=True),
        AccountMeta(accounts.per_order_pda, is_signer=False, is_writable=True),
        AccountMeta(accounts.market_order_log, is_signer=False, is_writable=True),
        AccountMeta(accounts.rent_payer, is_signer=True, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]

    # Session record is only read; the others are updated by the program
    if accounts.session_pda is not None:
        keys.append(AccountMeta(accounts.session_pda, is_signer=False, is_writable=False))
    if accounts.nonce_window_pda is not None:
        keys.append(AccountMeta(accounts.nonce_window_pda, is_signer=False, is_writable=True))
    if accounts.allowance_pda is not None:
        keys.append(AccountMeta(accounts.allowance_pda, is_signer=False, is_writable=True))
    if accounts.used_nonce_pda is not None:
        keys.append(AccountMeta(accounts.used_nonce_pda, is_signer=False, is_writable=True))

    data = bytes([PermitInstructionType.CONSUME_PERMIT, VERIFY_IX_INDEX]) + signed_permit.signature

    logger.debug(
        f"ConsumePermit: {len(keys)} accounts, nonce={signed_permit.envelope.nonce}"
    )

    return [
        signed_permit.verify_instruction,
        TransactionInstruction(program_id=PublicKey(program_id), data=data, keys=keys),
    ]


def create_delegate_session_instruction(
    program_id: PublicKey,
    owner: PublicKey,
    session: PublicKey,
    expires_unix: int,
    scopes: int,
    session_pda: PublicKey,
    rent_payer: PublicKey,
) -> TransactionInstruction:
    """
    Authorize a session key to sign permits for owner.

    Data: discriminant u8, session pubkey [32], expires_unix i64, scopes u32.
    """
    validate_int(expires_unix, 64, "expires_unix")
    validate_uint(int(scopes), 32, "scopes")
    data = _DELEGATE_LAYOUT.pack(
        PermitInstructionType.DELEGATE_SESSION,
        PublicKey(session).to_bytes(),
        expires_unix,
        int(scopes),
    )
    keys = [
        AccountMeta(PublicKey(owner), is_signer=True, is_writable=False),
        AccountMeta(PublicKey(session_pda), is_signer=False, is_writable=True),
        AccountMeta(PublicKey(rent_payer), is_signer=True, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    logger.info(f"Delegating session {session} for owner {owner} (scopes={int(scopes):#x})")
    return TransactionInstruction(program_id=PublicKey(program_id), data=data, keys=keys)


def create_revoke_session_instruction(
    program_id: PublicKey,
    owner: PublicKey,
    session: PublicKey,
    session_pda: PublicKey,
) -> TransactionInstruction:
    """Revoke a delegated session key."""
    data = _REVOKE_SESSION_LAYOUT.pack(
        PermitInstructionType.REVOKE_SESSION,
        PublicKey(session).to_bytes(),
    )
    keys = [
        AccountMeta(PublicKey(owner), is_signer=True, is_writable=False),
        AccountMeta(PublicKey(session_pda), is_signer=False, is_writable=True),
    ]
    logger.info(f"Revoking session {session} for owner {owner}")
    return TransactionInstruction(program_id=PublicKey(program_id), data=data, keys=keys)


def create_allowance_instruction(
    program_id: PublicKey,
    owner: PublicKey,
    authorizer: PublicKey,
    allowance_id: int,
    max_uses: int,
    allowance_pda: PublicKey,
    rent_payer: PublicKey,
) -> TransactionInstruction:
    """
    Grant authorizer a counted allowance.

    Data: discriminant u8, authorizer [32], id i64, max_uses u16.
    """
    validate_int(allowance_id, 64, "allowance_id")
    validate_uint(max_uses, 16, "max_uses")
    data = _ALLOWANCE_LAYOUT.pack(
        PermitInstructionType.CREATE_ALLOWANCE,
        PublicKey(authorizer).to_bytes(),
        allowance_id,
        max_uses,
    )
    keys = [
        AccountMeta(PublicKey(owner), is_signer=True, is_writable=False),
        AccountMeta(PublicKey(allowance_pda), is_signer=False, is_writable=True),
        AccountMeta(PublicKey(rent_payer), is_signer=True, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    logger.info(f"Creating allowance {allowance_id} for {authorizer} ({max_uses} uses)")
    return TransactionInstruction(program_id=PublicKey(program_id), data=data, keys=keys)


def create_revoke_allowance_instruction(
    program_id: PublicKey,
    owner: PublicKey,
    allowance_pda: PublicKey,
) -> TransactionInstruction:
    """Revoke an allowance. Data is the discriminant alone."""
    keys = [
        AccountMeta(PublicKey(owner), is_signer=True, is_writable=False),
        AccountMeta(PublicKey(allowance_pda), is_signer=False, is_writable=True),
    ]
    return TransactionInstruction(
        program_id=PublicKey(program_id),
        data=bytes([PermitInstructionType.REVOKE_ALLOWANCE]),
        keys=keys,
    )


_ACTION_SCOPES = {
    PlaceAction: SessionScope.PLACE,
    ModifyAction: SessionScope.PLACE,
    CancelByIdAction: SessionScope.CANCEL,
    CancelByClientIdAction: SessionScope.CANCEL,
    CancelAllAction: SessionScope.CANCEL,
    WithdrawAction: SessionScope.WITHDRAW,
    SetLeverageAction: SessionScope.SET_LEVERAGE,
    FaucetAction: SessionScope.FAUCET,
    NoopAction: SessionScope.NONE,
}


def required_scope(action) -> SessionScope:
    """
    Scope a session key needs to authorize action.

    Raises:
        ValidationError: If action is not a permit action
    """
    try:
        return _ACTION_SCOPES[type(action)]
    except KeyError:
        raise ValidationError(f"Unknown permit action {type(action).__name__}") from None


def accounts_for_replay_mode(
    program_id: PublicKey,
    envelope: PermitEnvelopeV1,
    owner: Optional[PublicKey] = None,
    allowance_id: Optional[int] = None,
) -> ReplayAccounts:
    """
    Derive the optional records a consumer must pass for envelope.

    Args:
        program_id: Permit program
        envelope: Envelope being consumed
        owner: Account owner when a delegate signed. Defaults to the
            authorizer; when it differs, the session record is included.
        allowance_id: Numeric allowance id (required for Allowance mode)

    Returns:
        ReplayAccounts with the needed records set

    Raises:
        ValidationError: If Allowance mode is used without allowance_id
    """
    program_id = PublicKey(program_id)
    authorizer = envelope.authorizer
    owner = PublicKey(owner) if owner is not None else authorizer
    mode = envelope.mode

    session_pda = None
    if owner != authorizer:
        session_pda = PermitPdas.session_pda(program_id, owner, authorizer)[0]

    nonce_window_pda = allowance_pda = used_nonce_pda = None
    if mode.type in (ReplayModeType.HL_WINDOW, ReplayModeType.SEQUENCE):
        nonce_window_pda = PermitPdas.nonce_window_pda(program_id, authorizer)[0]
    elif mode.type == ReplayModeType.ALLOWANCE:
        if allowance_id is None:
            raise ValidationError("allowance_id is required for Allowance replay mode")
        allowance_pda = PermitPdas.allowance_pda(program_id, owner, authorizer, allowance_id)[0]
    elif mode.type == ReplayModeType.NONCE:
        used_nonce_pda = PermitPdas.used_nonce_pda(program_id, owner, mode.salt)[0]

    return ReplayAccounts(
        session_pda=session_pda,
        nonce_window_pda=nonce_window_pda,
        allowance_pda=allowance_pda,
        used_nonce_pda=used_nonce_pda,
    )
