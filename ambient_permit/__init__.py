"""
Ambient permit library

Canonical encoding, signing and submission helpers for replay-protected
permits that let a delegated session or allowance key act for an owner on
the perps program, plus an adapter from the exchange order language.
"""

__version__ = "0.1.0"

from .models import (
    PERMIT_VERSION,
    ClusterType,
    KeyType,
    HealthMetric,
    Side,
    TimeInForceCode,
    ReplayModeType,
    PermitActionType,
    PermitDomain,
    HealthFloor,
    TimeInForce,
    SequenceMode,
    NonceMode,
    AllowanceMode,
    HlWindowMode,
    PlaceAction,
    CancelByIdAction,
    CancelByClientIdAction,
    CancelAllAction,
    ModifyAction,
    WithdrawAction,
    SetLeverageAction,
    NoopAction,
    FaucetAction,
    PermitEnvelopeV1,
    MarketConfig,
)
from .exceptions import (
    PermitError,
    MalformedEnvelopeError,
    ValidationError,
    FieldOverflowError,
    UnknownMarketError,
    UnsupportedTimeInForceError,
    InvalidFaucetRequestError,
    SigningError,
    DerivationExhaustedError,
)
from .auth import Keypair, PublicKey, verify_signature
from .config import PermitSettings, get_settings

from .permit import (
    PermitBuilder,
    PermitSigner,
    PermitSignature,
    PermitSignResult,
    SignedPermit,
    decode_permit_envelope,
    encode_permit_envelope,
    generate_permit_signature,
    sign_permits,
    sign_permits_base64,
    sign_permits_hex,
)
from .chain import (
    ConsumePermitAccounts,
    PermitInstructionType,
    PermitPdas,
    SessionScope,
    accounts_for_replay_mode,
    create_allowance_instruction,
    create_consume_permit_instruction,
    create_delegate_session_instruction,
    create_revoke_allowance_instruction,
    create_revoke_session_instruction,
    find_program_address,
    required_scope,
)
from .exchange import (
    ExchangeRequest,
    SignedExchangeRequest,
    build_envelopes_from_exchange_request,
    create_exchange_context,
    create_exchange_context_from_settings,
    normalize_exchange_request,
    sign_exchange_request,
)
from .utils.clock import FixedClock, SystemClock
from .utils.numeric import decimal_to_fixed

__all__ = [
    "__version__",
    # Models
    "PERMIT_VERSION",
    "ClusterType",
    "KeyType",
    "HealthMetric",
    "Side",
    "TimeInForceCode",
    "ReplayModeType",
    "PermitActionType",
    "PermitDomain",
    "HealthFloor",
    "TimeInForce",
    "SequenceMode",
    "NonceMode",
    "AllowanceMode",
    "HlWindowMode",
    "PlaceAction",
    "CancelByIdAction",
    "CancelByClientIdAction",
    "CancelAllAction",
    "ModifyAction",
    "WithdrawAction",
    "SetLeverageAction",
    "NoopAction",
    "FaucetAction",
    "PermitEnvelopeV1",
    "MarketConfig",
    # Exceptions
    "PermitError",
    "MalformedEnvelopeError",
    "ValidationError",
    "FieldOverflowError",
    "UnknownMarketError",
    "UnsupportedTimeInForceError",
    "InvalidFaucetRequestError",
    "SigningError",
    "DerivationExhaustedError",
    # Keys and config
    "Keypair",
    "PublicKey",
    "verify_signature",
    "PermitSettings",
    "get_settings",
    # Permits
    "PermitBuilder",
    "PermitSigner",
    "PermitSignature",
    "PermitSignResult",
    "SignedPermit",
    "decode_permit_envelope",
    "encode_permit_envelope",
    "generate_permit_signature",
    "sign_permits",
    "sign_permits_base64",
    "sign_permits_hex",
    # Chain
    "ConsumePermitAccounts",
    "PermitInstructionType",
    "PermitPdas",
    "SessionScope",
    "accounts_for_replay_mode",
    "create_allowance_instruction",
    "create_consume_permit_instruction",
    "create_delegate_session_instruction",
    "create_revoke_allowance_instruction",
    "create_revoke_session_instruction",
    "find_program_address",
    "required_scope",
    # Exchange adapter
    "ExchangeRequest",
    "SignedExchangeRequest",
    "build_envelopes_from_exchange_request",
    "create_exchange_context",
    "create_exchange_context_from_settings",
    "normalize_exchange_request",
    "sign_exchange_request",
    # Utilities
    "FixedClock",
    "SystemClock",
    "decimal_to_fixed",
]
