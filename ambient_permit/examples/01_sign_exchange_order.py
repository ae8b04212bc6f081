"""
Example 1: Sign an Exchange Order as a Permit

Translates an exchange order (decimal strings, symbol markets) into a permit
envelope, signs it and prints the request body a relayer would accept.

Set AMBIENT_PERMIT_KEYFILE to a wallet key file (JSON array of 64 ints) to
sign with a real key; a throwaway key is generated otherwise.
"""

import json
import os

from ambient_permit import (
    Keypair,
    MarketConfig,
    create_exchange_context_from_settings,
    get_settings,
    sign_exchange_request,
)
from ambient_permit.logging_config import setup_logging_from_settings
from ambient_permit.metrics import get_metrics


def load_keypair() -> Keypair:
    keyfile = os.getenv("AMBIENT_PERMIT_KEYFILE")
    if not keyfile:
        print("AMBIENT_PERMIT_KEYFILE not set, using a generated key")
        return Keypair.generate()
    with open(keyfile) as f:
        return Keypair.from_secret_key(json.load(f))


def main():
    """Exchange order signing example."""
    settings = get_settings()
    setup_logging_from_settings(settings)

    keypair = load_keypair()
    print(f"Authorizer: {keypair.public_key}")

    # 1. Market registry (exchange index/symbol -> on-chain market)
    markets = [
        MarketConfig(index=0, symbol="BTC-PERP", market_id=1, base_decimals=8, quote_decimals=6),
        MarketConfig(index=1, symbol="ETH-PERP", market_id=2, base_decimals=6, quote_decimals=6),
    ]

    # 2. Adapter context bound to this program and key (also applies metrics settings)
    context = create_exchange_context_from_settings(markets, keypair.public_key, settings)
    if settings.enable_metrics and get_metrics().start_server():
        print(f"✓ Metrics on :{settings.metrics_port}/metrics")

    # 3. Exchange-style request: two orders, one signature each
    request = {
        "action": {
            "type": "batchOrder",
            "orders": [
                {"a": "BTC-PERP", "b": True, "p": "131425", "s": "0.00021",
                 "r": False, "t": {"limit": {"tif": "Ioc"}}},
                {"a": 1, "b": False, "p": "3550.5", "s": "1.25",
                 "r": False, "t": {"limit": {"tif": "Alo"}}, "c": "my-order-1"},
            ],
        },
        "nonce": context.clock.now_millis(),
    }

    # 4. Translate + sign
    result = sign_exchange_request(request, context, keypair, encoding=settings.signature_encoding)

    for envelope in result.envelopes:
        action = envelope.action
        print(f"✓ nonce={envelope.nonce} market={action.market_id} "
              f"qty={action.qty} price={action.price} tif={action.tif.code.name}")

    # 5. Body to submit (client ids written back as decimal strings)
    print(json.dumps(result.signed_request.to_wire(), indent=2))


if __name__ == "__main__":
    main()
