"""
Type definitions for permit envelopes.

Uses Pydantic for runtime validation. Every tagged union (time-in-force,
replay mode, permit action) is a closed set of frozen models discriminated on
`type`, so envelopes compare by value and decode(encode(e)) == e holds.
"""

from enum import IntEnum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .auth.keypair import PublicKey


PERMIT_VERSION = 1


class ClusterType(IntEnum):
    """Network the permit is bound to."""
    MAINNET = 0
    TESTNET = 1
    DEVNET = 2
    LOCALNET = 3


class KeyType(IntEnum):
    """Signature scheme of the authorizer key."""
    ED25519 = 0
    SECP256K1 = 1


class HealthMetric(IntEnum):
    """Account health measure a health floor is expressed in."""
    INITIAL = 0
    MAINTENANCE = 1
    RATIO_BPS = 2


class Side(IntEnum):
    """Order side."""
    BID = 0
    ASK = 1

    @classmethod
    def parse(cls, value: Any) -> "Side":
        """Accept a Side, its wire value, or "bid"/"ask" (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Invalid side {value!r}, expected 'bid' or 'ask'") from None
        return cls(value)


class TimeInForceCode(IntEnum):
    """Time-in-force discriminant."""
    IOC = 0  # Immediate-or-cancel
    FOK = 1  # Fill-or-kill
    GTC = 2  # Good-til-cancelled
    ALO = 3  # Add-liquidity-only (post only)
    GTT = 4  # Good-til-time


class ReplayModeType(IntEnum):
    """Replay protection scheme discriminant."""
    SEQUENCE = 0
    NONCE = 1
    ALLOWANCE = 2
    HL_WINDOW = 3


class PermitActionType(IntEnum):
    """Permit action discriminant."""
    PLACE = 0
    CANCEL_BY_ID = 1
    CANCEL_BY_CLIENT_ID = 2
    CANCEL_ALL = 3
    MODIFY = 4
    WITHDRAW = 5
    SET_LEVERAGE = 6
    NOOP = 7
    FAUCET = 8


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class PermitDomain(_FrozenModel):
    """Binds an envelope to one program deployment and network."""
    program_id: PublicKey
    cluster: ClusterType = ClusterType.TESTNET
    version: int = PERMIT_VERSION


class HealthFloor(_FrozenModel):
    """Minimum account health the action must leave behind."""
    metric: HealthMetric
    min: int


class TimeInForce(_FrozenModel):
    """Time-in-force; only GTT carries a timestamp."""
    code: TimeInForceCode
    timestamp: Optional[int] = None

    @model_validator(mode="after")
    def _check_payload(self) -> "TimeInForce":
        if self.code == TimeInForceCode.GTT and self.timestamp is None:
            raise ValueError("GTT time-in-force requires a timestamp")
        if self.code != TimeInForceCode.GTT and self.timestamp is not None:
            raise ValueError(f"{self.code.name} time-in-force takes no timestamp")
        return self

    @classmethod
    def ioc(cls) -> "TimeInForce":
        return cls(code=TimeInForceCode.IOC)

    @classmethod
    def fok(cls) -> "TimeInForce":
        return cls(code=TimeInForceCode.FOK)

    @classmethod
    def gtc(cls) -> "TimeInForce":
        return cls(code=TimeInForceCode.GTC)

    @classmethod
    def alo(cls) -> "TimeInForce":
        return cls(code=TimeInForceCode.ALO)

    @classmethod
    def gtt(cls, timestamp: int) -> "TimeInForce":
        return cls(code=TimeInForceCode.GTT, timestamp=timestamp)


# Replay modes
class SequenceMode(_FrozenModel):
    """Strict per-signer sequence counter."""
    type: Literal[ReplayModeType.SEQUENCE] = ReplayModeType.SEQUENCE
    expected: int


class NonceMode(_FrozenModel):
    """One-time nonce; the salt keys a used-nonce record."""
    type: Literal[ReplayModeType.NONCE] = ReplayModeType.NONCE
    salt: bytes = Field(..., min_length=32, max_length=32)


class AllowanceMode(_FrozenModel):
    """Counted allowance granted by the owner."""
    type: Literal[ReplayModeType.ALLOWANCE] = ReplayModeType.ALLOWANCE
    id: bytes = Field(..., min_length=32, max_length=32)


class HlWindowMode(_FrozenModel):
    """Sliding window over the last k nonces."""
    type: Literal[ReplayModeType.HL_WINDOW] = ReplayModeType.HL_WINDOW
    k: int = 128


ReplayMode = Annotated[
    Union[SequenceMode, NonceMode, AllowanceMode, HlWindowMode],
    Field(discriminator="type"),
]


# Permit actions
class PlaceAction(_FrozenModel):
    type: Literal[PermitActionType.PLACE] = PermitActionType.PLACE
    market_id: int
    client_id: int
    side: Side
    qty: int
    price: Optional[int] = None
    tif: TimeInForce = Field(default_factory=TimeInForce.gtc)
    reduce_only: bool = False
    trigger_price: Optional[int] = None
    trigger_type: int = 0
    health_floor: Optional[HealthFloor] = None


class CancelByIdAction(_FrozenModel):
    type: Literal[PermitActionType.CANCEL_BY_ID] = PermitActionType.CANCEL_BY_ID
    market_id: int
    order_id: int


class CancelByClientIdAction(_FrozenModel):
    type: Literal[PermitActionType.CANCEL_BY_CLIENT_ID] = PermitActionType.CANCEL_BY_CLIENT_ID
    market_id: int
    client_id: int


class CancelAllAction(_FrozenModel):
    """Cancel every order, optionally restricted to one market."""
    type: Literal[PermitActionType.CANCEL_ALL] = PermitActionType.CANCEL_ALL
    market_id: Optional[int] = None


class ModifyAction(_FrozenModel):
    """Cancel `cancel_order_id` and place a replacement atomically."""
    type: Literal[PermitActionType.MODIFY] = PermitActionType.MODIFY
    market_id: int
    cancel_order_id: int
    new_client_id: int
    side: Side
    qty: int
    price: Optional[int] = None
    tif: TimeInForce = Field(default_factory=TimeInForce.gtc)
    reduce_only: bool = False
    trigger_price: Optional[int] = None
    trigger_type: int = 0
    health_floor: Optional[HealthFloor] = None


class WithdrawAction(_FrozenModel):
    type: Literal[PermitActionType.WITHDRAW] = PermitActionType.WITHDRAW
    amount: int
    to_owner: PublicKey
    health_floor: Optional[HealthFloor] = None


class SetLeverageAction(_FrozenModel):
    type: Literal[PermitActionType.SET_LEVERAGE] = PermitActionType.SET_LEVERAGE
    market_id: int
    target_leverage_bps: int
    health_floor: Optional[HealthFloor] = None


class NoopAction(_FrozenModel):
    type: Literal[PermitActionType.NOOP] = PermitActionType.NOOP


class FaucetAction(_FrozenModel):
    """Test-network token drip."""
    type: Literal[PermitActionType.FAUCET] = PermitActionType.FAUCET
    market_id: int
    amount: int
    recipient: PublicKey


PermitAction = Annotated[
    Union[
        PlaceAction,
        CancelByIdAction,
        CancelByClientIdAction,
        CancelAllAction,
        ModifyAction,
        WithdrawAction,
        SetLeverageAction,
        NoopAction,
        FaucetAction,
    ],
    Field(discriminator="type"),
]


class PermitEnvelopeV1(_FrozenModel):
    """
    The signed unit.

    Immutable: any change (including re-targeting the authorizer) produces a
    new envelope that must be signed again.
    """
    domain: PermitDomain
    authorizer: PublicKey
    key_type: KeyType = KeyType.ED25519
    action: PermitAction
    mode: ReplayMode
    expires_unix: int
    max_fee_quote: int
    relayer: Optional[PublicKey] = None
    nonce: int

    def with_authorizer(self, authorizer: PublicKey) -> "PermitEnvelopeV1":
        """Copy of this envelope authorized by another key."""
        return self.model_copy(update={"authorizer": PublicKey(authorizer)})


class MarketConfig(_FrozenModel):
    """Exchange market as seen by the permit adapter."""
    index: int = Field(..., ge=0, description="Exchange asset index")
    symbol: str = Field(..., min_length=1, description="Exchange symbol, e.g. BTC-PERP")
    market_id: int = Field(..., ge=0, description="On-chain market id")
    base_decimals: int = Field(..., ge=0, le=38, description="Size fixed-point decimals")
    quote_decimals: int = Field(..., ge=0, le=38, description="Price fixed-point decimals")
