"""
Permit envelope builder.

Turns ergonomic action parameters into complete envelopes, filling in the
domain, fee cap, expiry, nonce and replay mode from builder configuration.
"""

import logging
from typing import Any, Optional, Union

from ..auth.keypair import PublicKey
from ..exceptions import PermitError
from ..metrics import configure_metrics_from_settings, get_metrics
from ..models import (
    CancelAllAction,
    CancelByClientIdAction,
    CancelByIdAction,
    ClusterType,
    FaucetAction,
    HealthFloor,
    HlWindowMode,
    KeyType,
    ModifyAction,
    NoopAction,
    PermitDomain,
    PermitEnvelopeV1,
    PlaceAction,
    SetLeverageAction,
    Side,
    TimeInForce,
    WithdrawAction,
)
from ..utils.clock import Clock, SystemClock, now_seconds
from ..utils.validators import validate_envelope
from .codec import encode_permit_envelope

logger = logging.getLogger(__name__)


# Builder defaults
DEFAULT_EXPIRY_SECONDS = 60
DEFAULT_MAX_FEE_QUOTE = 1_000_000
DEFAULT_WINDOW_K = 128


class PermitBuilder:
    """
    Builds permit envelopes for one program deployment.

    Handles:
    - Domain binding (program id, cluster, version)
    - Nonce defaults (clock milliseconds)
    - Expiry defaults (clock seconds + lifetime)
    - Replay mode defaults (HlWindow)
    - Field width validation

    The builder holds only read-only configuration, so one instance can be
    shared between callers.
    """

    def __init__(
        self,
        program_id: Union[PublicKey, str, bytes],
        cluster: ClusterType = ClusterType.TESTNET,
        default_expiry: int = DEFAULT_EXPIRY_SECONDS,
        default_max_fee: int = DEFAULT_MAX_FEE_QUOTE,
        default_window_k: int = DEFAULT_WINDOW_K,
        clock: Optional[Clock] = None
    ):
        """
        Initialize builder.

        Args:
            program_id: Permit program address
            cluster: Network the permits are bound to
            default_expiry: Permit lifetime in seconds
            default_max_fee: Fee cap in quote units
            default_window_k: Window size of the default replay mode
            clock: Time source (wall clock if not provided)
        """
        self.domain = PermitDomain(program_id=PublicKey(program_id), cluster=cluster)
        self.default_expiry = default_expiry
        self.default_max_fee = default_max_fee
        self.default_window_k = default_window_k
        self.clock = clock or SystemClock()

    @classmethod
    def from_settings(cls, settings, clock: Optional[Clock] = None) -> "PermitBuilder":
        """
        Create a builder from PermitSettings.

        Also applies the metrics settings to the global metrics instance.
        """
        configure_metrics_from_settings(settings)
        return cls(
            program_id=settings.program_id,
            cluster=settings.cluster,
            default_expiry=settings.default_expiry_seconds,
            default_max_fee=settings.default_max_fee_quote,
            default_window_k=settings.hl_window_k,
            clock=clock,
        )

    @property
    def program_id(self) -> PublicKey:
        return self.domain.program_id

    def generate_nonce(self) -> int:
        """
        Default nonce: current time in milliseconds.

        Not unique: two permits built within the same millisecond get the
        same nonce. Pass explicit nonces when that matters.
        """
        return self.clock.now_millis()

    def build_envelope(
        self,
        authorizer: Union[PublicKey, str, bytes],
        action: Any,
        nonce: Optional[int] = None,
        expires_in: Optional[int] = None,
        relayer: Optional[Union[PublicKey, str, bytes]] = None,
        replay_mode: Optional[Any] = None,
        expires_unix: Optional[int] = None
    ) -> PermitEnvelopeV1:
        """
        Wrap an action in an envelope using builder defaults.

        Args:
            authorizer: Key that will sign the permit
            action: Any permit action model
            nonce: Envelope nonce (clock milliseconds if not provided)
            expires_in: Lifetime in seconds from now
            relayer: Optional relayer allowed to submit
            replay_mode: Replay mode (HlWindow if not provided)
            expires_unix: Absolute expiry, overrides expires_in

        Raises:
            FieldOverflowError: If a numeric field exceeds its width
        """
        if nonce is None:
            nonce = self.generate_nonce()
        if expires_in is None:
            expires_in = self.default_expiry
        if expires_unix is None:
            expires_unix = now_seconds(self.clock) + expires_in
        if replay_mode is None:
            replay_mode = HlWindowMode(k=self.default_window_k)

        try:
            envelope = PermitEnvelopeV1(
                domain=self.domain,
                authorizer=PublicKey(authorizer),
                key_type=KeyType.ED25519,
                action=action,
                mode=replay_mode,
                expires_unix=expires_unix,
                max_fee_quote=self.default_max_fee,
                relayer=PublicKey(relayer) if relayer is not None else None,
                nonce=nonce,
            )
            validate_envelope(envelope)
        except PermitError as e:
            logger.error(f"Failed to build {action.type.name} permit: {e.message}")
            raise

        get_metrics().track_envelope(action.type.name.lower())
        logger.debug(
            f"Built {action.type.name} permit (authorizer={envelope.authorizer}, "
            f"nonce={envelope.nonce}, expires={envelope.expires_unix})"
        )
        return envelope

    def place_order(
        self,
        authorizer: Union[PublicKey, str, bytes],
        market_id: int,
        client_id: int,
        side: Union[Side, str, int],
        qty: int,
        price: Optional[int] = None,
        tif: Optional[TimeInForce] = None,
        reduce_only: bool = False,
        trigger_price: Optional[int] = None,
        trigger_type: int = 0,
        health_floor: Optional[HealthFloor] = None,
        **options: Any
    ) -> PermitEnvelopeV1:
        """
        Build a Place permit.

        Args:
            authorizer: Key that will sign the permit
            market_id: On-chain market id
            client_id: Caller-chosen order id (u128)
            side: Side.BID/Side.ASK or "bid"/"ask"
            qty: Size in base fixed-point units
            price: Limit price in quote fixed-point units (None for market)
            tif: Time in force (GTC if not provided)
            reduce_only: Only reduce an existing position
            trigger_price: Trigger price for conditional orders
            trigger_type: Trigger kind
            health_floor: Minimum health after the fill
            **options: nonce, expires_in, relayer, replay_mode, expires_unix

        Returns:
            Unsigned envelope

        Raises:
            FieldOverflowError: If a numeric field exceeds its width
        """
        action = PlaceAction(
            market_id=market_id,
            client_id=client_id,
            side=Side.parse(side),
            qty=qty,
            price=price,
            tif=tif or TimeInForce.gtc(),
            reduce_only=reduce_only,
            trigger_price=trigger_price,
            trigger_type=trigger_type,
            health_floor=health_floor,
        )
        return self.build_envelope(authorizer, action, **options)

    def modify(
        self,
        authorizer: Union[PublicKey, str, bytes],
        market_id: int,
        cancel_order_id: int,
        new_client_id: int,
        side: Union[Side, str, int],
        qty: int,
        price: Optional[int] = None,
        tif: Optional[TimeInForce] = None,
        reduce_only: bool = False,
        trigger_price: Optional[int] = None,
        trigger_type: int = 0,
        health_floor: Optional[HealthFloor] = None,
        **options: Any
    ) -> PermitEnvelopeV1:
        """Build a Modify permit (cancel cancel_order_id, place a replacement)."""
        action = ModifyAction(
            market_id=market_id,
            cancel_order_id=cancel_order_id,
            new_client_id=new_client_id,
            side=Side.parse(side),
            qty=qty,
            price=price,
            tif=tif or TimeInForce.gtc(),
            reduce_only=reduce_only,
            trigger_price=trigger_price,
            trigger_type=trigger_type,
            health_floor=health_floor,
        )
        return self.build_envelope(authorizer, action, **options)

    def cancel_by_id(
        self,
        authorizer: Union[PublicKey, str, bytes],
        market_id: int,
        order_id: int,
        **options: Any
    ) -> PermitEnvelopeV1:
        """Build a CancelById permit."""
        action = CancelByIdAction(market_id=market_id, order_id=order_id)
        return self.build_envelope(authorizer, action, **options)

    def cancel_by_client_id(
        self,
        authorizer: Union[PublicKey, str, bytes],
        market_id: int,
        client_id: int,
        **options: Any
    ) -> PermitEnvelopeV1:
        """Build a CancelByClientId permit."""
        action = CancelByClientIdAction(market_id=market_id, client_id=client_id)
        return self.build_envelope(authorizer, action, **options)

    def cancel_all(
        self,
        authorizer: Union[PublicKey, str, bytes],
        market_id: Optional[int] = None,
        **options: Any
    ) -> PermitEnvelopeV1:
        """Build a CancelAll permit, for one market or all of them."""
        action = CancelAllAction(market_id=market_id)
        return self.build_envelope(authorizer, action, **options)

    def withdraw(
        self,
        authorizer: Union[PublicKey, str, bytes],
        amount: int,
        to_owner: Union[PublicKey, str, bytes],
        health_floor: Optional[HealthFloor] = None,
        **options: Any
    ) -> PermitEnvelopeV1:
        """
        Build a Withdraw permit.

        Args:
            authorizer: Key that will sign the permit
            amount: Collateral amount in fixed-point units
            to_owner: Destination owner account
            health_floor: Minimum health after the withdrawal
        """
        action = WithdrawAction(
            amount=amount,
            to_owner=PublicKey(to_owner),
            health_floor=health_floor,
        )
        return self.build_envelope(authorizer, action, **options)

    def set_leverage(
        self,
        authorizer: Union[PublicKey, str, bytes],
        market_id: int,
        target_leverage_bps: int,
        health_floor: Optional[HealthFloor] = None,
        **options: Any
    ) -> PermitEnvelopeV1:
        """Build a SetLeverage permit (leverage in basis points, u16)."""
        action = SetLeverageAction(
            market_id=market_id,
            target_leverage_bps=target_leverage_bps,
            health_floor=health_floor,
        )
        return self.build_envelope(authorizer, action, **options)

    def faucet(
        self,
        authorizer: Union[PublicKey, str, bytes],
        market_id: int,
        amount: int,
        recipient: Union[PublicKey, str, bytes],
        **options: Any
    ) -> PermitEnvelopeV1:
        """Build a Faucet permit (test networks only)."""
        action = FaucetAction(
            market_id=market_id,
            amount=amount,
            recipient=PublicKey(recipient),
        )
        return self.build_envelope(authorizer, action, **options)

    def noop(self, authorizer: Union[PublicKey, str, bytes], **options: Any) -> PermitEnvelopeV1:
        """Build a Noop permit (useful for advancing a nonce)."""
        return self.build_envelope(authorizer, NoopAction(), **options)

    def serialize(self, envelope: PermitEnvelopeV1) -> bytes:
        """Canonical bytes of envelope."""
        return encode_permit_envelope(envelope)
