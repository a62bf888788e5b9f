"""Engine configuration schema with validation."""

import math
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

WSOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

# Probabilities may drift by float rounding when written by hand
SCENARIO_SUM_TOLERANCE = 1e-6


class ScenarioBucketV1(BaseModel):
    """One row of the price scenario table."""

    probability: float = Field(..., description="Probability mass of this bucket")
    min_multiplier: float = Field(..., description="Lower bound of the exit/entry price multiplier")
    max_multiplier: float = Field(..., description="Upper bound of the exit/entry price multiplier")
    label: str = Field(default="", description="Human-readable bucket label")

    @field_validator("probability")
    @classmethod
    def probability_must_be_valid(cls, v: float) -> float:
        if v < 0 or v > 1:
            raise ValueError("probability must be between 0 and 1")
        return v

    @field_validator("min_multiplier", "max_multiplier")
    @classmethod
    def multiplier_must_be_non_negative(cls, v: float) -> float:
        if v < 0 or not math.isfinite(v):
            raise ValueError("multipliers must be finite and >= 0")
        return v

    @model_validator(mode="after")
    def validate_range(self) -> "ScenarioBucketV1":
        if self.max_multiplier < self.min_multiplier:
            raise ValueError(
                f"max_multiplier ({self.max_multiplier}) must be >= min_multiplier ({self.min_multiplier})"
            )
        return self


# Loss-heavy, right-skewed table used by the mainnet paper trader
AGGRESSIVE_SCENARIOS: List[ScenarioBucketV1] = [
    ScenarioBucketV1(probability=0.4, min_multiplier=0.1, max_multiplier=0.5, label="lose 50-90%"),
    ScenarioBucketV1(probability=0.3, min_multiplier=0.7, max_multiplier=1.3, label="-30% to +30%"),
    ScenarioBucketV1(probability=0.2, min_multiplier=1.3, max_multiplier=3.0, label="gain 30-200%"),
    ScenarioBucketV1(probability=0.1, min_multiplier=3.0, max_multiplier=15.0, label="gain 200-1400%"),
]

MODERATE_SCENARIOS: List[ScenarioBucketV1] = [
    ScenarioBucketV1(probability=0.4, min_multiplier=0.3, max_multiplier=0.7, label="lose 30-70%"),
    ScenarioBucketV1(probability=0.3, min_multiplier=0.8, max_multiplier=1.2, label="-20% to +20%"),
    ScenarioBucketV1(probability=0.2, min_multiplier=1.2, max_multiplier=2.0, label="gain 20-100%"),
    ScenarioBucketV1(probability=0.1, min_multiplier=2.0, max_multiplier=10.0, label="gain 100-900%"),
]

SCENARIO_PRESETS: Dict[str, List[ScenarioBucketV1]] = {
    "aggressive": AGGRESSIVE_SCENARIOS,
    "moderate": MODERATE_SCENARIOS,
}


def scenario_preset(name: str) -> List[ScenarioBucketV1]:
    """Return a copy of a named scenario table."""
    try:
        preset = SCENARIO_PRESETS[name]
    except KeyError:
        raise ValueError(
            f"Unknown scenario preset: {name}. Must be one of {sorted(SCENARIO_PRESETS)}"
        ) from None
    return [bucket.model_copy() for bucket in preset]


class EngineConfigV1(BaseModel):
    """
    Paper trading engine configuration.

    Immutable for the lifetime of an engine:
    - Validated before the engine starts
    - Never mutated after start
    """

    # Quote asset
    quote_asset_id: str = Field(default=WSOL_MINT, description="Quote asset mint")
    quote_asset_symbol: str = Field(default="SOL", description="Quote asset display symbol")
    initial_quote_balance: float = Field(
        default=1.0, description="Starting virtual quote balance (default: 100 for USDC, else 1)"
    )

    # Buying
    fixed_buy_quote_amount: float = Field(default=0.05, description="Quote spent per buy")
    use_snipe_list: bool = Field(default=False, description="Only buy assets on the snipe list")
    auto_buy_delay_seconds: float = Field(default=0.0, description="Delay before each buy")
    acquisition_price_range: Tuple[float, float] = Field(
        default=(0.0001, 0.0011), description="Uniform range of the synthetic acquisition price"
    )

    # Selling
    auto_sell_enabled: bool = Field(default=True, description="Schedule a sell after each buy")
    auto_sell_delay_seconds: float = Field(default=20.0, description="Base delay before auto-sell")
    auto_sell_jitter_seconds: float = Field(default=10.0, description="Upper bound of uniform jitter added to the delay")
    sell_slippage_percent: float = Field(default=20.0, description="Haircut applied to sell proceeds (%)")

    # Price model
    scenario_table: List[ScenarioBucketV1] = Field(
        default_factory=lambda: scenario_preset("aggressive"),
        description="Probability-weighted price multiplier table",
    )

    # Reporting
    summary_interval_seconds: float = Field(default=30.0, description="Interval of the periodic summary")
    recent_activity_limit: int = Field(default=5, description="Trades shown in recent activity")

    @field_validator("fixed_buy_quote_amount")
    @classmethod
    def buy_amount_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("fixed_buy_quote_amount must be > 0")
        return v

    @field_validator("initial_quote_balance")
    @classmethod
    def initial_balance_must_be_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("initial_quote_balance must be >= 0")
        return v

    @field_validator("auto_buy_delay_seconds", "auto_sell_delay_seconds", "auto_sell_jitter_seconds")
    @classmethod
    def delays_must_be_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("delays must be >= 0")
        return v

    @field_validator("sell_slippage_percent")
    @classmethod
    def slippage_must_be_valid(cls, v: float) -> float:
        if v < 0 or v > 100:
            raise ValueError("sell_slippage_percent must be between 0 and 100")
        return v

    @field_validator("summary_interval_seconds")
    @classmethod
    def summary_interval_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("summary_interval_seconds must be > 0")
        return v

    @field_validator("recent_activity_limit")
    @classmethod
    def recent_limit_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("recent_activity_limit must be >= 0")
        return v

    @field_validator("acquisition_price_range")
    @classmethod
    def price_range_must_be_positive(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        low, high = v
        if low <= 0 or high < low:
            raise ValueError("acquisition_price_range must satisfy 0 < low <= high")
        return v

    @field_validator("scenario_table")
    @classmethod
    def scenario_table_must_sum_to_one(cls, v: List[ScenarioBucketV1]) -> List[ScenarioBucketV1]:
        if not v:
            raise ValueError("scenario_table must not be empty")
        total = sum(bucket.probability for bucket in v)
        if abs(total - 1.0) > SCENARIO_SUM_TOLERANCE:
            raise ValueError(f"scenario_table probabilities must sum to 1.0 (got {total})")
        return v

    @model_validator(mode="before")
    @classmethod
    def default_initial_balance(cls, data: Any) -> Any:
        """Fill the starting balance the way the paper bot seeds its wallet."""
        if isinstance(data, dict) and data.get("initial_quote_balance") is None:
            data = dict(data)
            symbol = data.get("quote_asset_symbol", "SOL")
            data["initial_quote_balance"] = 100.0 if symbol == "USDC" else 1.0
        return data

    class Config:
        frozen = True
