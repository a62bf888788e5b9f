"""Trade record schema."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

SELL_ID_PREFIX = "sell_"


class TradeAction(str, Enum):
    """Side of a virtual trade."""

    BUY = "buy"
    SELL = "sell"


def sell_id_for(buy_id: str) -> str:
    """Derive the settling sell id for a buy id."""
    return f"{SELL_ID_PREFIX}{buy_id}"


class TradeRecordV1(BaseModel):
    """
    Immutable trade record in the trade ledger.

    The trade ledger is the single source of truth for realized PnL. A buy with
    no matching ``sell_<buy id>`` record is an open position.
    """

    # Identity
    trade_id: str = Field(..., description="Unique trade identifier")
    action: TradeAction = Field(..., description="buy | sell")

    # Asset
    asset_id: str = Field(..., description="Asset identifier")
    display_symbol: str = Field(..., description="Asset display symbol")

    # Amounts
    quote_amount: float = Field(..., description="Quote spent (buy) or received net of slippage (sell)")
    asset_amount: float = Field(..., description="Asset quantity bought or sold")
    price: float = Field(..., description="Price in quote per asset unit")
    timestamp: datetime = Field(..., description="Trade timestamp")

    # PnL (sells only)
    profit: Optional[float] = Field(None, description="Realized profit in quote (sell only)")
    profit_percent: Optional[float] = Field(None, description="Realized profit as % of buy cost (sell only)")

    @model_validator(mode="after")
    def validate_profit_fields(self) -> "TradeRecordV1":
        if self.action == TradeAction.BUY:
            if self.profit is not None or self.profit_percent is not None:
                raise ValueError("buy records must not carry profit fields")
        elif self.profit is None or self.profit_percent is None:
            raise ValueError("sell records require profit and profit_percent")
        return self

    @property
    def is_buy(self) -> bool:
        return self.action == TradeAction.BUY

    @property
    def is_sell(self) -> bool:
        return self.action == TradeAction.SELL

    class Config:
        frozen = True
        use_enum_values = True
        json_encoders = {datetime: lambda v: v.isoformat()}
