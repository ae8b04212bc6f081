"""Shared fixtures for permit tests."""

import pytest

from ambient_permit.auth.keypair import Keypair, PublicKey
from ambient_permit.chain.addresses import DEFAULT_PERMIT_PROGRAM_ID
from ambient_permit.models import (
    AllowanceMode,
    CancelAllAction,
    CancelByClientIdAction,
    CancelByIdAction,
    ClusterType,
    FaucetAction,
    HealthFloor,
    HealthMetric,
    HlWindowMode,
    MarketConfig,
    ModifyAction,
    NoopAction,
    NonceMode,
    PermitDomain,
    PermitEnvelopeV1,
    PlaceAction,
    SequenceMode,
    SetLeverageAction,
    Side,
    TimeInForce,
    WithdrawAction,
)
from ambient_permit.permit.builder import PermitBuilder
from ambient_permit.utils.clock import FixedClock

from .factories import NOW_MILLIS, NOW_SECONDS, make_envelope


@pytest.fixture
def clock():
    return FixedClock(NOW_MILLIS)


@pytest.fixture
def program_id():
    return PublicKey(DEFAULT_PERMIT_PROGRAM_ID)


@pytest.fixture
def keypair():
    """Deterministic test keypair."""
    return Keypair.from_seed(bytes(range(32)))


@pytest.fixture
def session_keypair():
    return Keypair.from_seed(bytes([7] * 32))


@pytest.fixture
def builder(program_id, clock):
    return PermitBuilder(program_id, clock=clock)


@pytest.fixture
def markets():
    return [
        MarketConfig(index=0, symbol="BTC-PERP", market_id=1, base_decimals=8, quote_decimals=6),
        MarketConfig(index=1, symbol="ETH-PERP", market_id=2, base_decimals=6, quote_decimals=6),
    ]


@pytest.fixture
def sample_envelopes(program_id, keypair, session_keypair):
    """One envelope per action variant and replay mode, with optional fields set."""
    owner = keypair.public_key
    floor = HealthFloor(metric=HealthMetric.MAINTENANCE, min=-5_000)
    actions = [
        PlaceAction(
            market_id=1, client_id=2 ** 100 + 7, side=Side.BID, qty=21_000,
            price=131_425_000_000, tif=TimeInForce.ioc(),
        ),
        PlaceAction(
            market_id=2, client_id=9, side=Side.ASK, qty=5, price=None,
            tif=TimeInForce.gtt(NOW_SECONDS + 3600), reduce_only=True,
            trigger_price=123, trigger_type=2, health_floor=floor,
        ),
        CancelByIdAction(market_id=1, order_id=2 ** 64 - 1),
        CancelByClientIdAction(market_id=1, client_id=2 ** 128 - 1),
        CancelAllAction(),
        CancelAllAction(market_id=3),
        ModifyAction(
            market_id=1, cancel_order_id=77, new_client_id=78, side=Side.ASK,
            qty=10, price=99, tif=TimeInForce.alo(), health_floor=floor,
        ),
        WithdrawAction(amount=1_500_000, to_owner=owner, health_floor=floor),
        SetLeverageAction(market_id=1, target_leverage_bps=65_535),
        NoopAction(),
        FaucetAction(market_id=64, amount=10_000_000, recipient=owner),
    ]
    modes = [
        HlWindowMode(k=128),
        SequenceMode(expected=12),
        NonceMode(salt=bytes(range(32))),
        AllowanceMode(id=bytes([0xAB] * 32)),
    ]
    envelopes = [make_envelope(program_id, owner, action) for action in actions]
    envelopes += [
        make_envelope(program_id, owner, NoopAction(), mode=mode, relayer=session_keypair.public_key)
        for mode in modes
    ]
    return envelopes
