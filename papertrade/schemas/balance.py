"""Virtual balance schema."""

from pydantic import BaseModel, Field, field_validator


class BalanceV1(BaseModel):
    """
    Virtual holding of one asset.

    The quote asset always has exactly one entry. Every other entry exists only
    while its quantity is positive.
    """

    asset_id: str = Field(..., description="Asset identifier (mint address)")
    display_symbol: str = Field(..., description="Human-readable symbol")
    quantity: float = Field(..., description="Virtual quantity held")

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("quantity must be >= 0")
        return v
