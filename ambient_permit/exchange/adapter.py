"""
Exchange request adapter.

Translates exchange JSON actions (decimal strings, symbol/index markets,
string client ids) into fixed-point permit envelopes. Each sub-item of a
batch becomes its own envelope with nonce `base_nonce + position`.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from ..auth.keypair import Keypair, PublicKey
from ..exceptions import (
    InvalidFaucetRequestError,
    PermitError,
    UnknownMarketError,
    UnsupportedTimeInForceError,
    ValidationError,
)
from ..metrics import configure_metrics_from_settings, get_metrics
from ..models import (
    CancelByClientIdAction,
    CancelByIdAction,
    ClusterType,
    FaucetAction,
    HlWindowMode,
    MarketConfig,
    ModifyAction,
    NoopAction,
    PermitEnvelopeV1,
    PlaceAction,
    SetLeverageAction,
    Side,
    TimeInForce,
    WithdrawAction,
)
from ..permit.builder import (
    DEFAULT_EXPIRY_SECONDS,
    DEFAULT_MAX_FEE_QUOTE,
    DEFAULT_WINDOW_K,
    PermitBuilder,
)
from ..permit.signer import PermitSignResult, sign_permits
from ..utils.clock import Clock, SystemClock
from ..utils.numeric import decimal_to_fixed, parse_integer_literal, to_decimal
from ..utils.structured_logging import correlation_scope
from ..utils.validators import U16_MAX, validate_uint
from .models import (
    ExchangeAction,
    ExchangeCancel,
    ExchangeCancelByCloid,
    ExchangeModify,
    ExchangeOrder,
    ExchangeRequest,
    SignedExchangeRequest,
)

logger = logging.getLogger(__name__)


# Collateral (withdraw/faucet amounts) uses 6 decimals
COLLATERAL_DECIMALS = 6
DEFAULT_FAUCET_MARKET_ID = 64

_TIME_IN_FORCE = {
    "gtc": TimeInForce.gtc,
    "ioc": TimeInForce.ioc,
    "alo": TimeInForce.alo,
}


@dataclass(frozen=True)
class ExchangePermitContext:
    """
    Read-only configuration for translating exchange requests.

    Safe to share between callers; nothing here is mutated after
    create_exchange_context().
    """
    program_id: PublicKey
    authorizer: PublicKey
    cluster: ClusterType
    relayer: Optional[PublicKey]
    expiry_seconds: int
    window_k: int
    max_fee_quote: int
    align_expiry_to_nonce: bool
    markets_by_symbol: Mapping[str, MarketConfig]
    markets_by_index: Mapping[int, MarketConfig]
    clock: Clock = field(repr=False, compare=False)
    builder: PermitBuilder = field(repr=False, compare=False)

    def market_by_symbol(self, symbol: str) -> MarketConfig:
        market = self.markets_by_symbol.get(symbol)
        if market is None:
            raise UnknownMarketError(f"Unknown market symbol {symbol}", market=symbol)
        return market

    def market_by_index(self, index: int) -> MarketConfig:
        market = self.markets_by_index.get(index)
        if market is None:
            raise UnknownMarketError(f"Unknown market index {index}", market=index)
        return market


def create_exchange_context(
    markets: Iterable[Union[MarketConfig, Dict[str, Any]]],
    program_id: Union[PublicKey, str, bytes],
    authorizer: Union[PublicKey, str, bytes],
    cluster: ClusterType = ClusterType.TESTNET,
    relayer: Optional[Union[PublicKey, str, bytes]] = None,
    expiry_seconds: int = DEFAULT_EXPIRY_SECONDS,
    window_k: int = DEFAULT_WINDOW_K,
    max_fee_quote: int = DEFAULT_MAX_FEE_QUOTE,
    clock: Optional[Clock] = None,
    align_expiry_to_nonce: bool = False
) -> ExchangePermitContext:
    """
    Create an adapter context.

    Args:
        markets: Market registry (MarketConfig or dicts with the same fields)
        program_id: Permit program address
        authorizer: Key the permits are issued for
        cluster: Target cluster
        relayer: Optional relayer written into every envelope
        expiry_seconds: Permit lifetime
        window_k: HlWindow replay window size
        max_fee_quote: Fee cap
        clock: Time source for expiry and generated client ids
        align_expiry_to_nonce: Derive expiry from the request nonce
            (nonce // 1000 + expiry_seconds) instead of the clock

    Returns:
        Immutable ExchangePermitContext
    """
    clock = clock or SystemClock()
    by_symbol: Dict[str, MarketConfig] = {}
    by_index: Dict[int, MarketConfig] = {}
    for entry in markets:
        market = entry if isinstance(entry, MarketConfig) else MarketConfig.model_validate(entry)
        by_symbol[market.symbol] = market
        by_index[market.index] = market

    program_key = PublicKey(program_id)
    builder = PermitBuilder(
        program_id=program_key,
        cluster=cluster,
        default_expiry=expiry_seconds,
        default_max_fee=max_fee_quote,
        default_window_k=window_k,
        clock=clock,
    )

    logger.debug(f"Exchange context for {PublicKey(authorizer)} with {len(by_symbol)} markets")

    return ExchangePermitContext(
        program_id=program_key,
        authorizer=PublicKey(authorizer),
        cluster=cluster,
        relayer=PublicKey(relayer) if relayer is not None else None,
        expiry_seconds=expiry_seconds,
        window_k=window_k,
        max_fee_quote=max_fee_quote,
        align_expiry_to_nonce=align_expiry_to_nonce,
        markets_by_symbol=MappingProxyType(by_symbol),
        markets_by_index=MappingProxyType(by_index),
        clock=clock,
        builder=builder,
    )


def create_exchange_context_from_settings(
    markets: Iterable[Union[MarketConfig, Dict[str, Any]]],
    authorizer: Union[PublicKey, str, bytes],
    settings,
    relayer: Optional[Union[PublicKey, str, bytes]] = None,
    clock: Optional[Clock] = None
) -> ExchangePermitContext:
    """
    Create an adapter context from PermitSettings.

    Program, cluster, expiry, fee cap and window size come from settings,
    and the metrics settings are applied to the global metrics instance.
    """
    configure_metrics_from_settings(settings)
    return create_exchange_context(
        markets,
        program_id=settings.program_id,
        authorizer=authorizer,
        cluster=settings.cluster,
        relayer=relayer,
        expiry_seconds=settings.default_expiry_seconds,
        window_k=settings.hl_window_k,
        max_fee_quote=settings.default_max_fee_quote,
        clock=clock,
    )

def resolve_market(identifier: Union[int, str], context: ExchangePermitContext) -> MarketConfig:
    """
    Look a market up by numeric index or symbol.

    Raises:
        UnknownMarketError: If the market is not registered
    """
    if isinstance(identifier, int) and not isinstance(identifier, bool):
        return context.market_by_index(identifier)
    return context.market_by_symbol(str(identifier))


def client_id_from_string(cloid: Optional[str], clock: Clock) -> int:
    """
    Map an exchange client order id to a permit client id.

    Missing ids become the current time in milliseconds. Integer literals
    (decimal, 0x, 0o, 0b) are used as-is. Anything else is read as the
    big-endian unsigned integer of its UTF-8 bytes, so the same string
    always maps to the same id.
    """
    if not cloid:
        return clock.now_millis()
    parsed = parse_integer_literal(cloid)
    if parsed is not None:
        return parsed
    return int.from_bytes(cloid.encode("utf-8"), "big")


def to_time_in_force(tif: Optional[str]) -> TimeInForce:
    """
    Map an exchange TIF string ("Gtc", "Ioc", "Alo"; any case).

    Raises:
        UnsupportedTimeInForceError: For anything else
    """
    if tif is None:
        return TimeInForce.gtc()
    factory = _TIME_IN_FORCE.get(tif.strip().lower())
    if factory is None:
        raise UnsupportedTimeInForceError(f"Unsupported time-in-force {tif}", tif=tif)
    return factory()


def _parse_id(value: Union[int, str], field_name: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    parsed = parse_integer_literal(str(value))
    if parsed is None:
        raise ValidationError(f"{field_name} must be an integer, got {value!r}")
    return parsed


def _order_terms(order: ExchangeOrder, market: MarketConfig) -> Dict[str, Any]:
    # Trigger parameters have no permit equivalent yet and are dropped
    return {
        "side": Side.BID if order.is_buy else Side.ASK,
        "qty": decimal_to_fixed(order.size, market.base_decimals),
        "price": decimal_to_fixed(order.price, market.quote_decimals),
        "tif": to_time_in_force(order.tif),
        "reduce_only": order.reduce_only,
        "trigger_price": None,
        "trigger_type": 0,
        "health_floor": None,
    }


def _place(order: ExchangeOrder, context: ExchangePermitContext) -> PlaceAction:
    market = resolve_market(order.asset, context)
    return PlaceAction(
        market_id=market.market_id,
        client_id=client_id_from_string(order.cloid, context.clock),
        **_order_terms(order, market),
    )


def _modify(modify: ExchangeModify, context: ExchangePermitContext) -> ModifyAction:
    order = modify.order
    market = resolve_market(order.asset, context)
    return ModifyAction(
        market_id=market.market_id,
        cancel_order_id=_parse_id(modify.oid, "oid"),
        new_client_id=client_id_from_string(order.cloid, context.clock),
        **_order_terms(order, market),
    )


# Handlers: one per exchange action type, returning actions in nonce order

def _handle_order(action: ExchangeAction, context: ExchangePermitContext) -> List[Any]:
    order = action.order or action.inline_order()
    if order is None:
        logger.warning("order action without an order, skipping")
        return []
    return [_place(order, context)]


def _handle_batch_order(action: ExchangeAction, context: ExchangePermitContext) -> List[Any]:
    return [_place(order, context) for order in action.orders or []]


def _handle_cancel(action: ExchangeAction, context: ExchangePermitContext) -> List[Any]:
    out = []
    for cancel in action.cancels or []:
        if not isinstance(cancel, ExchangeCancel):
            raise ValidationError("cancel requires a and o fields")
        market = resolve_market(cancel.asset, context)
        out.append(CancelByIdAction(market_id=market.market_id, order_id=_parse_id(cancel.oid, "o")))
    return out


def _handle_cancel_by_cloid(action: ExchangeAction, context: ExchangePermitContext) -> List[Any]:
    out = []
    for cancel in action.cancels or []:
        if not isinstance(cancel, ExchangeCancelByCloid) or not cancel.cloid:
            raise ValidationError("cancelByCloid requires asset and cloid fields")
        market = resolve_market(cancel.asset, context)
        out.append(CancelByClientIdAction(
            market_id=market.market_id,
            client_id=client_id_from_string(cancel.cloid, context.clock),
        ))
    return out


def _handle_modify(action: ExchangeAction, context: ExchangePermitContext) -> List[Any]:
    if action.order is None:
        logger.warning("modify action without an order, skipping")
        return []
    oid = action.oid if action.oid is not None else 0
    return [_modify(ExchangeModify(oid=oid, order=action.order), context)]


def _handle_modify_batch(action: ExchangeAction, context: ExchangePermitContext) -> List[Any]:
    return [_modify(modify, context) for modify in action.modifies or []]


def _handle_update_leverage(action: ExchangeAction, context: ExchangePermitContext) -> List[Any]:
    if action.asset is None:
        logger.warning("updateLeverage action without an asset, skipping")
        return []
    market = resolve_market(action.asset, context)
    leverage = to_decimal(action.leverage if action.leverage is not None else 0)
    if leverage is None or not leverage.is_finite():
        raise ValidationError(f"Invalid leverage {action.leverage!r}")
    bps = max(0, min(int(leverage * 100), U16_MAX))
    return [SetLeverageAction(market_id=market.market_id, target_leverage_bps=bps)]


def _handle_withdraw(action: ExchangeAction, context: ExchangePermitContext) -> List[Any]:
    if action.amount is None:
        logger.warning("withdraw action without an amount, skipping")
        return []
    return [WithdrawAction(
        amount=decimal_to_fixed(action.amount, COLLATERAL_DECIMALS),
        to_owner=context.authorizer,
    )]


def _handle_faucet(action: ExchangeAction, context: ExchangePermitContext) -> List[Any]:
    try:
        market_id = (
            DEFAULT_FAUCET_MARKET_ID if action.market_id is None
            else validate_uint(_parse_id(action.market_id, "marketId"), 64, "marketId")
        )
        amount = decimal_to_fixed(
            action.amount if action.amount is not None else "0", COLLATERAL_DECIMALS
        )
        validate_uint(amount, 64, "amount")
        recipient = PublicKey(action.recipient) if action.recipient else context.authorizer
    except PermitError as e:
        raise InvalidFaucetRequestError(f"Invalid faucet request: {e.message}") from e
    return [FaucetAction(market_id=market_id, amount=amount, recipient=recipient)]


def _handle_noop(action: ExchangeAction, context: ExchangePermitContext) -> List[Any]:
    return [NoopAction()]


ACTION_HANDLERS: Dict[str, Callable[[ExchangeAction, ExchangePermitContext], List[Any]]] = {
    "order": _handle_order,
    "batchOrder": _handle_batch_order,
    "cancel": _handle_cancel,
    "cancelByCloid": _handle_cancel_by_cloid,
    "modify": _handle_modify,
    "modifyBatch": _handle_modify_batch,
    "updateLeverage": _handle_update_leverage,
    "withdraw": _handle_withdraw,
    "faucet": _handle_faucet,
    "noop": _handle_noop,
}


def _as_request(request: Union[ExchangeRequest, Dict[str, Any]]) -> ExchangeRequest:
    if isinstance(request, ExchangeRequest):
        return request
    return ExchangeRequest.model_validate(request)


def build_envelopes_from_exchange_request(
    request: Union[ExchangeRequest, Dict[str, Any]],
    context: ExchangePermitContext
) -> List[PermitEnvelopeV1]:
    """
    Translate an exchange request into permit envelopes.

    Args:
        request: ExchangeRequest or its JSON dict
        context: Adapter context

    Returns:
        One envelope per sub-item, nonces base, base+1, ... in input order.
        Empty for unknown action types and skipped items.

    Raises:
        UnknownMarketError: If a referenced market is not registered
        UnsupportedTimeInForceError: For an unknown TIF string
        InvalidFaucetRequestError: If a faucet request cannot be parsed
        ValidationError: If a decimal amount is malformed or out of range
        FieldOverflowError: If a converted value exceeds its width
    """
    with correlation_scope():
        return _build_envelopes(_as_request(request), context)


def _build_envelopes(request: ExchangeRequest, context: ExchangePermitContext) -> List[PermitEnvelopeV1]:
    action_type = request.action.type
    metrics = get_metrics()

    handler = ACTION_HANDLERS.get(action_type)
    if handler is None:
        logger.warning(f"Unsupported exchange action type {action_type!r}, no permits built")
        metrics.track_adapter_request(action_type, "skipped")
        return []

    try:
        actions = handler(request.action, context)
        envelopes = []
        for offset, action in enumerate(actions):
            nonce = request.nonce + offset
            expires_unix = None
            if context.align_expiry_to_nonce:
                expires_unix = nonce // 1000 + context.expiry_seconds
            envelopes.append(context.builder.build_envelope(
                context.authorizer,
                action,
                nonce=nonce,
                expires_in=context.expiry_seconds,
                relayer=context.relayer,
                replay_mode=HlWindowMode(k=context.window_k),
                expires_unix=expires_unix,
            ))
    except PermitError as e:
        logger.error(f"Failed to translate {action_type} request: {e.message}")
        metrics.track_adapter_request(action_type, "error")
        raise

    metrics.track_adapter_request(action_type, "ok" if envelopes else "skipped")
    logger.info(f"Translated {action_type} request into {len(envelopes)} permit(s) (nonce={request.nonce})")
    return envelopes


def _normalize_order(order: Dict[str, Any], clock: Clock) -> None:
    order["c"] = str(client_id_from_string(order.get("c"), clock))


def normalize_exchange_request(
    request: Union[ExchangeRequest, Dict[str, Any]],
    clock: Optional[Clock] = None
) -> ExchangeRequest:
    """
    Copy of request with every order's client id filled in and normalized.

    The submitted JSON must carry the same client id that was signed, so
    generated and hashed ids are written back as decimal strings. The input
    is not modified.
    """
    request = _as_request(request)
    clock = clock or SystemClock()
    wire = request.to_wire()
    action = wire["action"]
    action_type = action.get("type")

    if action_type == "order":
        if isinstance(action.get("order"), dict):
            _normalize_order(action["order"], clock)
        elif "a" in action:
            _normalize_order(action, clock)
    elif action_type == "batchOrder":
        for order in action.get("orders", []):
            _normalize_order(order, clock)
    elif action_type == "modify":
        if isinstance(action.get("order"), dict):
            _normalize_order(action["order"], clock)
    elif action_type == "modifyBatch":
        for modify in action.get("modifies", []):
            _normalize_order(modify["order"], clock)

    return ExchangeRequest.model_validate(wire)


@dataclass(frozen=True)
class ExchangeSignResult:
    """Signatures for a request plus the envelopes and the request to submit."""
    sign_result: PermitSignResult
    envelopes: List[PermitEnvelopeV1]
    signed_request: SignedExchangeRequest

    @property
    def signatures(self) -> Union[str, List[str]]:
        return self.sign_result.signatures

    @property
    def messages(self) -> Union[str, List[str]]:
        return self.sign_result.messages


def sign_exchange_request(
    request: Union[ExchangeRequest, Dict[str, Any]],
    context: ExchangePermitContext,
    keypair: Keypair,
    encoding: str = "hex"
) -> ExchangeSignResult:
    """
    Normalize, translate and sign an exchange request.

    Args:
        request: ExchangeRequest or its JSON dict
        context: Adapter context
        keypair: Key matching context.authorizer
        encoding: "hex" or "base64"

    Returns:
        ExchangeSignResult whose signed_request is ready to submit
    """
    if keypair.public_key != context.authorizer:
        logger.warning(
            f"Signing key {keypair.public_key} differs from context authorizer {context.authorizer}"
        )

    with correlation_scope():
        normalized = normalize_exchange_request(request, context.clock)
        envelopes = build_envelopes_from_exchange_request(normalized, context)
        result = sign_permits(envelopes, keypair, encoding=encoding)

    signed_request = SignedExchangeRequest(
        action=normalized.action,
        nonce=normalized.nonce,
        signature=result.signature_list,
        pubkey=str(keypair.public_key),
    )
    return ExchangeSignResult(sign_result=result, envelopes=envelopes, signed_request=signed_request)
