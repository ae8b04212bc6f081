"""
Exchange request models.

Mirror the external exchange's JSON action language. Field names follow
Python conventions and carry the exchange's short keys as aliases, so
`model_validate(json)` and `model_dump(by_alias=True)` speak the wire form.
"""

from decimal import Decimal
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _number_to_str(value: Any) -> Any:
    # Decimal fields arrive as strings, but numbers are tolerated
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    return value


class _ExchangeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ExchangeLimit(_ExchangeModel):
    tif: str = "Gtc"


class ExchangeTrigger(_ExchangeModel):
    """Trigger parameters. Accepted for shape compatibility, not translated."""
    is_market: bool = Field(False, alias="isMarket")
    trigger_px: str = Field("0", alias="triggerPx")
    tpsl: str = "tp"

    @field_validator("trigger_px", mode="before")
    @classmethod
    def _coerce_px(cls, value: Any) -> Any:
        return _number_to_str(value)


class ExchangeOrderType(_ExchangeModel):
    limit: Optional[ExchangeLimit] = None
    trigger: Optional[ExchangeTrigger] = None


class ExchangeOrder(_ExchangeModel):
    """
    One order.

    Attributes:
        asset: Market symbol or numeric index ("a")
        is_buy: True for a bid ("b")
        price: Decimal price string ("p")
        size: Decimal size string ("s")
        reduce_only: Reduce-only flag ("r")
        order_type: Limit/trigger parameters ("t")
        cloid: Client order id ("c"); generated when missing
    """
    asset: Union[int, str] = Field(..., alias="a")
    is_buy: bool = Field(..., alias="b")
    price: str = Field(..., alias="p")
    size: str = Field(..., alias="s")
    reduce_only: bool = Field(False, alias="r")
    order_type: Optional[ExchangeOrderType] = Field(None, alias="t")
    cloid: Optional[str] = Field(None, alias="c")

    @field_validator("price", "size", "cloid", mode="before")
    @classmethod
    def _coerce_decimals(cls, value: Any) -> Any:
        return _number_to_str(value)

    @property
    def tif(self) -> Optional[str]:
        if self.order_type is None or self.order_type.limit is None:
            return None
        return self.order_type.limit.tif


class ExchangeCancel(_ExchangeModel):
    asset: Union[int, str] = Field(..., alias="a")
    oid: Union[int, str] = Field(..., alias="o")


class ExchangeCancelByCloid(_ExchangeModel):
    asset: Union[int, str]
    cloid: str

    @field_validator("cloid", mode="before")
    @classmethod
    def _coerce_cloid(cls, value: Any) -> Any:
        return _number_to_str(value)


class ExchangeModify(_ExchangeModel):
    oid: Union[int, str]
    order: ExchangeOrder


class ExchangeAction(_ExchangeModel):
    """
    Exchange action.

    Which fields apply depends on `type`. A single `order` action may carry
    its order under `order` or inline (extra keys a/b/p/s/r/t/c), so unknown
    keys are kept.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str
    order: Optional[ExchangeOrder] = None
    orders: Optional[List[ExchangeOrder]] = None
    cancels: Optional[List[Union[ExchangeCancel, ExchangeCancelByCloid]]] = None
    modifies: Optional[List[ExchangeModify]] = None
    oid: Optional[Union[int, str]] = None
    asset: Optional[Union[int, str]] = None
    leverage: Optional[Union[int, float, str]] = None
    amount: Optional[Union[int, float, str]] = None
    market_id: Optional[Union[int, str]] = Field(None, alias="marketId")
    recipient: Optional[str] = None

    def inline_order(self) -> Optional[ExchangeOrder]:
        """Order given inline on the action, or None."""
        extra = self.model_extra or {}
        if "a" not in extra:
            return None
        return ExchangeOrder.model_validate(extra)


class ExchangeRequest(_ExchangeModel):
    action: ExchangeAction
    nonce: int

    def to_wire(self) -> dict:
        """JSON-ready dict using exchange keys."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SignedExchangeRequest(_ExchangeModel):
    """Request as submitted: one signature per produced permit, base58 pubkey."""
    action: ExchangeAction
    nonce: int
    signature: List[str]
    pubkey: str

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
