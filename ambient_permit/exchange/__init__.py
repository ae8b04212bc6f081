"""Exchange order-language adapter."""

from .models import (
    ExchangeAction,
    ExchangeCancel,
    ExchangeCancelByCloid,
    ExchangeLimit,
    ExchangeModify,
    ExchangeOrder,
    ExchangeOrderType,
    ExchangeRequest,
    ExchangeTrigger,
    SignedExchangeRequest,
)
from .adapter import (
    ExchangePermitContext,
    ExchangeSignResult,
    build_envelopes_from_exchange_request,
    client_id_from_string,
    create_exchange_context,
    create_exchange_context_from_settings,
    normalize_exchange_request,
    resolve_market,
    sign_exchange_request,
    to_time_in_force,
)

__all__ = [
    "ExchangeAction",
    "ExchangeCancel",
    "ExchangeCancelByCloid",
    "ExchangeLimit",
    "ExchangeModify",
    "ExchangeOrder",
    "ExchangeOrderType",
    "ExchangeRequest",
    "ExchangeTrigger",
    "SignedExchangeRequest",
    "ExchangePermitContext",
    "ExchangeSignResult",
    "build_envelopes_from_exchange_request",
    "client_id_from_string",
    "create_exchange_context",
    "create_exchange_context_from_settings",
    "normalize_exchange_request",
    "resolve_market",
    "sign_exchange_request",
    "to_time_in_force",
]
