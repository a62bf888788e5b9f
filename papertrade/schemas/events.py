"""Inbound event schemas consumed from the chain listeners."""

from typing import Optional

from pydantic import BaseModel, Field


class PoolOpportunityEventV1(BaseModel):
    """A newly observed liquidity pool. Triggers an Open attempt."""

    pool_account_id: str = Field(..., description="Pool account address")
    asset_id: str = Field(..., description="Base asset mint of the pool")
    quote_asset_id: str = Field(..., description="Quote asset mint of the pool")
    pool_open_time: int = Field(default=0, description="Pool open time (unix seconds)")


class BalanceObservedEventV1(BaseModel):
    """A token balance change seen on the wallet. Triggers a Close attempt."""

    asset_id: str = Field(..., description="Asset mint whose balance was observed")
    owner_account_ref: Optional[str] = Field(None, description="Token account that changed")
