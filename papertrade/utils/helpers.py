"""Helper utilities for papertrade."""

import string

import numpy as np


def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, returning default if denominator is near zero.

    Args:
        numerator: Numerator
        denominator: Denominator
        default: Value to return if division is unsafe (default: 0.0)

    Returns:
        numerator / denominator if safe, else default

    Example:
        >>> safe_div(10, 2)
        5.0
        >>> safe_div(10, 0)
        0.0
    """
    if abs(denominator) > 1e-12:
        return numerator / denominator
    return default


def parse_bool(value: str) -> bool:
    """Interpret an environment flag ("true", "1", "yes", "on")."""
    return value.strip().lower() in {"1", "true", "yes", "on"}


def random_base36(rng: np.random.Generator, length: int = 13) -> str:
    """Random lowercase base-36 string drawn from ``rng``."""
    alphabet = string.digits + string.ascii_lowercase
    indices = rng.integers(0, len(alphabet), size=length)
    return "".join(alphabet[i] for i in indices)
