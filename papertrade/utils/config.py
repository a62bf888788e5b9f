"""Engine configuration loading from JSON files and environment variables."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from papertrade.schemas.engine_config import USDC_MINT, EngineConfigV1, scenario_preset
from papertrade.utils.helpers import parse_bool

logger = logging.getLogger(__name__)

# Environment variables whose values are milliseconds, mapped to seconds fields
_MS_FIELDS = {
    "AUTO_SELL_DELAY": "auto_sell_delay_seconds",
    "AUTO_SELL_JITTER": "auto_sell_jitter_seconds",
    "AUTO_BUY_DELAY": "auto_buy_delay_seconds",
}

_FLOAT_FIELDS = {
    "QUOTE_AMOUNT": "fixed_buy_quote_amount",
    "INITIAL_QUOTE_BALANCE": "initial_quote_balance",
    "SELL_SLIPPAGE": "sell_slippage_percent",
    "SUMMARY_INTERVAL": "summary_interval_seconds",
}

_BOOL_FIELDS = {
    "AUTO_SELL": "auto_sell_enabled",
    "USE_SNIPE_LIST": "use_snipe_list",
}


def load_engine_config(config_path: Path) -> EngineConfigV1:
    """
    Load and validate an engine configuration JSON file.

    A ``scenario_preset`` key may be given instead of an explicit
    ``scenario_table``.

    Raises:
        FileNotFoundError: If the file does not exist
        pydantic.ValidationError: If the configuration is invalid
    """
    with open(config_path, "r") as f:
        data = json.load(f)

    preset = data.pop("scenario_preset", None)
    if preset is not None and "scenario_table" not in data:
        data["scenario_table"] = scenario_preset(preset)

    config = EngineConfigV1(**data)
    logger.info(f"Loaded engine config from {config_path}")
    return config


def engine_config_from_env(
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> EngineConfigV1:
    """
    Build an engine configuration from bot environment variables.

    Unset variables fall back to the schema defaults. Delays are given in
    milliseconds, as in the bot's ``.env`` file.

    Args:
        environ: Variable mapping (default: os.environ)
        overrides: Field values applied after the environment

    Returns:
        Validated EngineConfigV1
    """
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    symbol = env.get("QUOTE_SYMBOL")
    if symbol:
        data["quote_asset_symbol"] = symbol.strip().upper()
    mint = env.get("QUOTE_MINT")
    if mint:
        data["quote_asset_id"] = mint.strip()
        if not symbol and mint.strip() == USDC_MINT:
            data["quote_asset_symbol"] = "USDC"

    for var, field_name in _FLOAT_FIELDS.items():
        if env.get(var):
            data[field_name] = float(env[var])

    for var, field_name in _MS_FIELDS.items():
        if env.get(var):
            data[field_name] = float(env[var]) / 1000.0

    for var, field_name in _BOOL_FIELDS.items():
        if env.get(var):
            data[field_name] = parse_bool(env[var])

    if env.get("SCENARIO_PRESET"):
        data["scenario_table"] = scenario_preset(env["SCENARIO_PRESET"].strip().lower())

    if overrides:
        data.update(overrides)

    return EngineConfigV1(**data)
