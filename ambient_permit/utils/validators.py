"""
Input validation utilities.

Checks that numeric envelope fields fit their wire widths before anything
is encoded or signed.
"""

from typing import Optional

from ..exceptions import FieldOverflowError, ValidationError
from ..models import (
    AllowanceMode,
    CancelAllAction,
    CancelByClientIdAction,
    CancelByIdAction,
    FaucetAction,
    HealthFloor,
    HlWindowMode,
    ModifyAction,
    NoopAction,
    NonceMode,
    PermitEnvelopeV1,
    PlaceAction,
    SequenceMode,
    SetLeverageAction,
    WithdrawAction,
)


U8_MAX = 2 ** 8 - 1
U16_MAX = 2 ** 16 - 1
U32_MAX = 2 ** 32 - 1
U64_MAX = 2 ** 64 - 1
U128_MAX = 2 ** 128 - 1
I64_MIN = -(2 ** 63)
I64_MAX = 2 ** 63 - 1


def validate_uint(value: int, bits: int, field: str) -> int:
    """
    Validate an unsigned integer field.

    Args:
        value: Field value
        bits: Declared width (8, 16, 32, 64 or 128)
        field: Field name for error messages

    Returns:
        The value

    Raises:
        FieldOverflowError: If value is negative or wider than bits
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer, got {type(value).__name__}")
    if value < 0 or value >= (1 << bits):
        raise FieldOverflowError(
            f"{field}={value} does not fit in u{bits}",
            field=field, value=value, bits=bits,
        )
    return value


def validate_int(value: int, bits: int, field: str) -> int:
    """Validate a two's-complement signed integer field."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer, got {type(value).__name__}")
    bound = 1 << (bits - 1)
    if value < -bound or value >= bound:
        raise FieldOverflowError(
            f"{field}={value} does not fit in i{bits}",
            field=field, value=value, bits=bits,
        )
    return value


def validate_optional_uint(value: Optional[int], bits: int, field: str) -> Optional[int]:
    if value is None:
        return None
    return validate_uint(value, bits, field)


def validate_health_floor(floor: Optional[HealthFloor], field: str = "health_floor") -> None:
    if floor is not None:
        validate_int(floor.min, 64, f"{field}.min")


def _validate_order_fields(action, prefix: str) -> None:
    validate_uint(action.qty, 64, f"{prefix}.qty")
    validate_optional_uint(action.price, 64, f"{prefix}.price")
    if action.tif.timestamp is not None:
        validate_uint(action.tif.timestamp, 64, f"{prefix}.tif.timestamp")
    validate_optional_uint(action.trigger_price, 64, f"{prefix}.trigger_price")
    validate_uint(action.trigger_type, 8, f"{prefix}.trigger_type")
    validate_health_floor(action.health_floor, f"{prefix}.health_floor")


def validate_action(action) -> None:
    """
    Validate widths of every numeric field in a permit action.

    Raises:
        FieldOverflowError: On the first field that does not fit
    """
    if isinstance(action, PlaceAction):
        validate_uint(action.market_id, 64, "place.market_id")
        validate_uint(action.client_id, 128, "place.client_id")
        _validate_order_fields(action, "place")
    elif isinstance(action, ModifyAction):
        validate_uint(action.market_id, 64, "modify.market_id")
        validate_uint(action.cancel_order_id, 64, "modify.cancel_order_id")
        validate_uint(action.new_client_id, 128, "modify.new_client_id")
        _validate_order_fields(action, "modify")
    elif isinstance(action, CancelByIdAction):
        validate_uint(action.market_id, 64, "cancel_by_id.market_id")
        validate_uint(action.order_id, 64, "cancel_by_id.order_id")
    elif isinstance(action, CancelByClientIdAction):
        validate_uint(action.market_id, 64, "cancel_by_client_id.market_id")
        validate_uint(action.client_id, 128, "cancel_by_client_id.client_id")
    elif isinstance(action, CancelAllAction):
        validate_optional_uint(action.market_id, 64, "cancel_all.market_id")
    elif isinstance(action, WithdrawAction):
        validate_uint(action.amount, 64, "withdraw.amount")
        validate_health_floor(action.health_floor, "withdraw.health_floor")
    elif isinstance(action, SetLeverageAction):
        validate_uint(action.market_id, 64, "set_leverage.market_id")
        validate_uint(action.target_leverage_bps, 16, "set_leverage.target_leverage_bps")
        validate_health_floor(action.health_floor, "set_leverage.health_floor")
    elif isinstance(action, FaucetAction):
        validate_uint(action.market_id, 64, "faucet.market_id")
        validate_uint(action.amount, 64, "faucet.amount")
    elif isinstance(action, NoopAction):
        pass
    else:
        raise ValidationError(f"Unknown permit action {type(action).__name__}")


def validate_replay_mode(mode) -> None:
    if isinstance(mode, SequenceMode):
        validate_uint(mode.expected, 64, "mode.expected")
    elif isinstance(mode, HlWindowMode):
        validate_uint(mode.k, 8, "mode.k")
    elif isinstance(mode, (NonceMode, AllowanceMode)):
        pass
    else:
        raise ValidationError(f"Unknown replay mode {type(mode).__name__}")


def validate_envelope(envelope: PermitEnvelopeV1) -> PermitEnvelopeV1:
    """
    Validate that an envelope can be encoded.

    Returns:
        The envelope, unchanged

    Raises:
        FieldOverflowError: If any numeric field exceeds its declared width
    """
    validate_uint(envelope.domain.version, 8, "domain.version")
    validate_action(envelope.action)
    validate_replay_mode(envelope.mode)
    validate_int(envelope.expires_unix, 64, "expires_unix")
    validate_uint(envelope.max_fee_quote, 64, "max_fee_quote")
    validate_uint(envelope.nonce, 64, "nonce")
    return envelope
