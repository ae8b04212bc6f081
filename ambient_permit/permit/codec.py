"""
Canonical permit envelope codec (protocol version 1).

Layout is Borsh-compatible: fixed-width little-endian integers, a one-byte
discriminant before every tagged union, Option<T> as a 0/1 flag followed by
T when present, bool as a single 0/1 byte, no padding and no length
prefixes. The on-chain verifier rebuilds these exact bytes and checks the
Ed25519 signature over them, so any deviation breaks verification.
"""

import logging
import struct
from typing import Callable, Optional

from ..auth.keypair import PublicKey, PUBLIC_KEY_LENGTH
from ..exceptions import MalformedEnvelopeError, ValidationError
from ..models import (
    AllowanceMode,
    CancelAllAction,
    CancelByClientIdAction,
    CancelByIdAction,
    ClusterType,
    FaucetAction,
    HealthFloor,
    HealthMetric,
    HlWindowMode,
    KeyType,
    ModifyAction,
    NoopAction,
    NonceMode,
    PermitActionType,
    PermitDomain,
    PermitEnvelopeV1,
    PlaceAction,
    ReplayModeType,
    SequenceMode,
    SetLeverageAction,
    Side,
    TimeInForce,
    TimeInForceCode,
    WithdrawAction,
)
from ..utils.validators import validate_int, validate_uint

logger = logging.getLogger(__name__)

BYTES32_LENGTH = 32


class _Writer:
    """Append-only little-endian buffer."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def u8(self, value: int, field: str) -> None:
        self._buf += struct.pack("<B", validate_uint(int(value), 8, field))

    def u16(self, value: int, field: str) -> None:
        self._buf += struct.pack("<H", validate_uint(int(value), 16, field))

    def u64(self, value: int, field: str) -> None:
        self._buf += struct.pack("<Q", validate_uint(int(value), 64, field))

    def i64(self, value: int, field: str) -> None:
        self._buf += struct.pack("<q", validate_int(int(value), 64, field))

    def u128(self, value: int, field: str) -> None:
        self._buf += validate_uint(int(value), 128, field).to_bytes(16, "little")

    def boolean(self, value: bool) -> None:
        self._buf.append(1 if value else 0)

    def pubkey(self, value: PublicKey) -> None:
        self._buf += value.to_bytes()

    def bytes32(self, value: bytes) -> None:
        if len(value) != BYTES32_LENGTH:
            raise ValidationError(f"Expected 32 bytes, got {len(value)}")
        self._buf += value

    def option(self, value, write: Callable[[object], None]) -> None:
        if value is None:
            self._buf.append(0)
        else:
            self._buf.append(1)
            write(value)

    def getvalue(self) -> bytes:
        return bytes(self._buf)


class _Reader:
    """Cursor over permit bytes; every short read is a MalformedEnvelopeError."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self.offset = 0

    def _take(self, n: int, what: str) -> bytes:
        end = self.offset + n
        if end > len(self._data):
            raise MalformedEnvelopeError(
                f"Truncated permit: need {n} bytes for {what} at offset {self.offset}, "
                f"have {len(self._data) - self.offset}",
                offset=self.offset,
            )
        chunk = self._data[self.offset:end]
        self.offset = end
        return chunk

    def u8(self, what: str) -> int:
        return self._take(1, what)[0]

    def u16(self, what: str) -> int:
        return struct.unpack("<H", self._take(2, what))[0]

    def u64(self, what: str) -> int:
        return struct.unpack("<Q", self._take(8, what))[0]

    def i64(self, what: str) -> int:
        return struct.unpack("<q", self._take(8, what))[0]

    def u128(self, what: str) -> int:
        return int.from_bytes(self._take(16, what), "little")

    def boolean(self, what: str) -> bool:
        start = self.offset
        flag = self.u8(what)
        if flag not in (0, 1):
            raise MalformedEnvelopeError(
                f"Invalid bool byte {flag} for {what}", offset=start
            )
        return flag == 1

    def pubkey(self, what: str) -> PublicKey:
        return PublicKey(self._take(PUBLIC_KEY_LENGTH, what))

    def bytes32(self, what: str) -> bytes:
        return self._take(BYTES32_LENGTH, what)

    def option(self, read: Callable[[], object], what: str) -> Optional[object]:
        start = self.offset
        flag = self.u8(f"{what} option flag")
        if flag == 0:
            return None
        if flag == 1:
            return read()
        raise MalformedEnvelopeError(
            f"Invalid option flag {flag} for {what}", offset=start
        )

    def enum(self, enum_cls, what: str):
        start = self.offset
        raw = self.u8(what)
        try:
            return enum_cls(raw)
        except ValueError:
            raise MalformedEnvelopeError(
                f"Unknown {what} discriminant {raw}", offset=start
            ) from None

    def remaining(self) -> int:
        return len(self._data) - self.offset


# ---------------------------------------------------------------------------
# Shared sub-structures
# ---------------------------------------------------------------------------

def _write_health_floor(w: _Writer, floor: Optional[HealthFloor]) -> None:
    def write(f: HealthFloor) -> None:
        w.u8(f.metric, "health_floor.metric")
        w.i64(f.min, "health_floor.min")
    w.option(floor, write)


def _read_health_floor(r: _Reader) -> Optional[HealthFloor]:
    def read() -> HealthFloor:
        metric = r.enum(HealthMetric, "health_floor.metric")
        return HealthFloor(metric=metric, min=r.i64("health_floor.min"))
    return r.option(read, "health_floor")


def _write_tif(w: _Writer, tif: TimeInForce) -> None:
    w.u8(tif.code, "tif")
    if tif.code == TimeInForceCode.GTT:
        w.u64(tif.timestamp, "tif.timestamp")


def _read_tif(r: _Reader) -> TimeInForce:
    code = r.enum(TimeInForceCode, "time-in-force")
    if code == TimeInForceCode.GTT:
        return TimeInForce.gtt(r.u64("tif.timestamp"))
    return TimeInForce(code=code)


def _write_order_tail(w: _Writer, action, prefix: str) -> None:
    # Shared by Place and Modify from `side` onward
    w.u8(action.side, f"{prefix}.side")
    w.u64(action.qty, f"{prefix}.qty")
    w.option(action.price, lambda v: w.u64(v, f"{prefix}.price"))
    _write_tif(w, action.tif)
    w.boolean(action.reduce_only)
    w.option(action.trigger_price, lambda v: w.u64(v, f"{prefix}.trigger_price"))
    w.u8(action.trigger_type, f"{prefix}.trigger_type")
    _write_health_floor(w, action.health_floor)


def _read_order_tail(r: _Reader) -> dict:
    return {
        "side": r.enum(Side, "side"),
        "qty": r.u64("qty"),
        "price": r.option(lambda: r.u64("price"), "price"),
        "tif": _read_tif(r),
        "reduce_only": r.boolean("reduce_only"),
        "trigger_price": r.option(lambda: r.u64("trigger_price"), "trigger_price"),
        "trigger_type": r.u8("trigger_type"),
        "health_floor": _read_health_floor(r),
    }


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

def _enc_place(w: _Writer, a: PlaceAction) -> None:
    w.u64(a.market_id, "place.market_id")
    w.u128(a.client_id, "place.client_id")
    _write_order_tail(w, a, "place")


def _enc_cancel_by_id(w: _Writer, a: CancelByIdAction) -> None:
    w.u64(a.market_id, "cancel_by_id.market_id")
    w.u64(a.order_id, "cancel_by_id.order_id")


def _enc_cancel_by_client_id(w: _Writer, a: CancelByClientIdAction) -> None:
    w.u64(a.market_id, "cancel_by_client_id.market_id")
    w.u128(a.client_id, "cancel_by_client_id.client_id")


def _enc_cancel_all(w: _Writer, a: CancelAllAction) -> None:
    w.option(a.market_id, lambda v: w.u64(v, "cancel_all.market_id"))


def _enc_modify(w: _Writer, a: ModifyAction) -> None:
    w.u64(a.market_id, "modify.market_id")
    w.u64(a.cancel_order_id, "modify.cancel_order_id")
    w.u128(a.new_client_id, "modify.new_client_id")
    _write_order_tail(w, a, "modify")


def _enc_withdraw(w: _Writer, a: WithdrawAction) -> None:
    w.u64(a.amount, "withdraw.amount")
    w.pubkey(a.to_owner)
    _write_health_floor(w, a.health_floor)


def _enc_set_leverage(w: _Writer, a: SetLeverageAction) -> None:
    w.u64(a.market_id, "set_leverage.market_id")
    w.u16(a.target_leverage_bps, "set_leverage.target_leverage_bps")
    _write_health_floor(w, a.health_floor)


def _enc_noop(w: _Writer, a: NoopAction) -> None:
    pass


def _enc_faucet(w: _Writer, a: FaucetAction) -> None:
    w.u64(a.market_id, "faucet.market_id")
    w.u64(a.amount, "faucet.amount")
    w.pubkey(a.recipient)


def _dec_place(r: _Reader) -> PlaceAction:
    market_id = r.u64("market_id")
    client_id = r.u128("client_id")
    return PlaceAction(market_id=market_id, client_id=client_id, **_read_order_tail(r))


def _dec_cancel_by_id(r: _Reader) -> CancelByIdAction:
    return CancelByIdAction(market_id=r.u64("market_id"), order_id=r.u64("order_id"))


def _dec_cancel_by_client_id(r: _Reader) -> CancelByClientIdAction:
    return CancelByClientIdAction(market_id=r.u64("market_id"), client_id=r.u128("client_id"))


def _dec_cancel_all(r: _Reader) -> CancelAllAction:
    return CancelAllAction(market_id=r.option(lambda: r.u64("market_id"), "market_id"))


def _dec_modify(r: _Reader) -> ModifyAction:
    market_id = r.u64("market_id")
    cancel_order_id = r.u64("cancel_order_id")
    new_client_id = r.u128("new_client_id")
    return ModifyAction(
        market_id=market_id,
        cancel_order_id=cancel_order_id,
        new_client_id=new_client_id,
        **_read_order_tail(r),
    )


def _dec_withdraw(r: _Reader) -> WithdrawAction:
    amount = r.u64("amount")
    to_owner = r.pubkey("to_owner")
    return WithdrawAction(amount=amount, to_owner=to_owner, health_floor=_read_health_floor(r))


def _dec_set_leverage(r: _Reader) -> SetLeverageAction:
    market_id = r.u64("market_id")
    bps = r.u16("target_leverage_bps")
    return SetLeverageAction(
        market_id=market_id, target_leverage_bps=bps, health_floor=_read_health_floor(r)
    )


def _dec_noop(r: _Reader) -> NoopAction:
    return NoopAction()


def _dec_faucet(r: _Reader) -> FaucetAction:
    market_id = r.u64("market_id")
    amount = r.u64("amount")
    return FaucetAction(market_id=market_id, amount=amount, recipient=r.pubkey("recipient"))


ACTION_ENCODERS = {
    PermitActionType.PLACE: _enc_place,
    PermitActionType.CANCEL_BY_ID: _enc_cancel_by_id,
    PermitActionType.CANCEL_BY_CLIENT_ID: _enc_cancel_by_client_id,
    PermitActionType.CANCEL_ALL: _enc_cancel_all,
    PermitActionType.MODIFY: _enc_modify,
    PermitActionType.WITHDRAW: _enc_withdraw,
    PermitActionType.SET_LEVERAGE: _enc_set_leverage,
    PermitActionType.NOOP: _enc_noop,
    PermitActionType.FAUCET: _enc_faucet,
}

ACTION_DECODERS = {
    PermitActionType.PLACE: _dec_place,
    PermitActionType.CANCEL_BY_ID: _dec_cancel_by_id,
    PermitActionType.CANCEL_BY_CLIENT_ID: _dec_cancel_by_client_id,
    PermitActionType.CANCEL_ALL: _dec_cancel_all,
    PermitActionType.MODIFY: _dec_modify,
    PermitActionType.WITHDRAW: _dec_withdraw,
    PermitActionType.SET_LEVERAGE: _dec_set_leverage,
    PermitActionType.NOOP: _dec_noop,
    PermitActionType.FAUCET: _dec_faucet,
}


# ---------------------------------------------------------------------------
# Replay modes
# ---------------------------------------------------------------------------

def _enc_sequence(w: _Writer, m: SequenceMode) -> None:
    w.u64(m.expected, "mode.expected")


def _enc_nonce(w: _Writer, m: NonceMode) -> None:
    w.bytes32(m.salt)


def _enc_allowance(w: _Writer, m: AllowanceMode) -> None:
    w.bytes32(m.id)


def _enc_hl_window(w: _Writer, m: HlWindowMode) -> None:
    w.u8(m.k, "mode.k")


REPLAY_MODE_ENCODERS = {
    ReplayModeType.SEQUENCE: _enc_sequence,
    ReplayModeType.NONCE: _enc_nonce,
    ReplayModeType.ALLOWANCE: _enc_allowance,
    ReplayModeType.HL_WINDOW: _enc_hl_window,
}

REPLAY_MODE_DECODERS = {
    ReplayModeType.SEQUENCE: lambda r: SequenceMode(expected=r.u64("expected")),
    ReplayModeType.NONCE: lambda r: NonceMode(salt=r.bytes32("salt")),
    ReplayModeType.ALLOWANCE: lambda r: AllowanceMode(id=r.bytes32("allowance id")),
    ReplayModeType.HL_WINDOW: lambda r: HlWindowMode(k=r.u8("k")),
}


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

def encode_permit_envelope(envelope: PermitEnvelopeV1) -> bytes:
    """
    Serialize an envelope to its canonical bytes.

    Pure and total for well-formed envelopes: equal envelopes always give
    equal bytes.

    Args:
        envelope: Envelope to encode

    Returns:
        Canonical permit bytes (the exact message that gets signed)

    Raises:
        FieldOverflowError: If a numeric field exceeds its declared width
    """
    w = _Writer()

    w.pubkey(envelope.domain.program_id)
    w.u8(envelope.domain.cluster, "domain.cluster")
    w.u8(envelope.domain.version, "domain.version")

    w.pubkey(envelope.authorizer)
    w.u8(envelope.key_type, "key_type")

    action = envelope.action
    w.u8(action.type, "action.type")
    ACTION_ENCODERS[action.type](w, action)

    mode = envelope.mode
    w.u8(mode.type, "mode.type")
    REPLAY_MODE_ENCODERS[mode.type](w, mode)

    w.i64(envelope.expires_unix, "expires_unix")
    w.u64(envelope.max_fee_quote, "max_fee_quote")
    w.option(envelope.relayer, w.pubkey)
    w.u64(envelope.nonce, "nonce")

    return w.getvalue()


def decode_permit_envelope(data: bytes) -> PermitEnvelopeV1:
    """
    Parse canonical permit bytes.

    Args:
        data: Bytes produced by encode_permit_envelope()

    Returns:
        The envelope

    Raises:
        MalformedEnvelopeError: On truncation, unknown discriminants,
            invalid option/bool bytes or trailing data
    """
    r = _Reader(data)

    program_id = r.pubkey("domain.program_id")
    cluster = r.enum(ClusterType, "cluster")
    version = r.u8("domain.version")
    domain = PermitDomain(program_id=program_id, cluster=cluster, version=version)

    authorizer = r.pubkey("authorizer")
    key_type = r.enum(KeyType, "key type")

    action_type = r.enum(PermitActionType, "permit action")
    action = ACTION_DECODERS[action_type](r)

    mode_type = r.enum(ReplayModeType, "replay mode")
    mode = REPLAY_MODE_DECODERS[mode_type](r)

    expires_unix = r.i64("expires_unix")
    max_fee_quote = r.u64("max_fee_quote")
    relayer = r.option(lambda: r.pubkey("relayer"), "relayer")
    nonce = r.u64("nonce")

    if r.remaining():
        raise MalformedEnvelopeError(
            f"{r.remaining()} trailing bytes after permit envelope", offset=r.offset
        )

    envelope = PermitEnvelopeV1(
        domain=domain,
        authorizer=authorizer,
        key_type=key_type,
        action=action,
        mode=mode,
        expires_unix=expires_unix,
        max_fee_quote=max_fee_quote,
        relayer=relayer,
        nonce=nonce,
    )
    logger.debug(f"Decoded {action_type.name} permit (nonce={nonce}, {len(data)} bytes)")
    return envelope
