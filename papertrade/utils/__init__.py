"""papertrade utilities."""

from papertrade.utils.config import engine_config_from_env, load_engine_config
from papertrade.utils.helpers import parse_bool, random_base36, safe_div
from papertrade.utils.logging import configure_logging

__all__ = [
    "configure_logging",
    "load_engine_config",
    "engine_config_from_env",
    "safe_div",
    "random_base36",
    "parse_bool",
]
