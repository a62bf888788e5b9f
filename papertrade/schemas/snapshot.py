"""Reporting snapshot schema."""

from typing import List

from pydantic import BaseModel, Field

from papertrade.schemas.balance import BalanceV1
from papertrade.schemas.trade import TradeRecordV1


class SnapshotV1(BaseModel):
    """Point-in-time summary of a paper trading session."""

    quote_symbol: str = Field(..., description="Quote asset display symbol")
    initial_quote_balance: float = Field(..., description="Starting quote balance")
    current_quote_balance: float = Field(..., description="Current quote balance")
    total_return_percent: float = Field(..., description="(current - initial) / initial * 100")
    total_opportunities: int = Field(..., description="Number of buy trades")
    completed_trades: int = Field(..., description="Number of sell trades")
    winning_trades: int = Field(..., description="Number of sells with profit > 0")
    win_rate: float = Field(..., description="Winning sells / completed trades * 100")
    total_profit: float = Field(..., description="Cached running total of realized profit")
    open_positions: List[BalanceV1] = Field(default_factory=list, description="Non-quote balances")
    recent_activity: List[TradeRecordV1] = Field(default_factory=list, description="Most recent trades")
