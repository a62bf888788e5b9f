"""Probability-weighted price movement simulator."""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from papertrade.schemas.engine_config import ScenarioBucketV1

logger = logging.getLogger(__name__)

FALLBACK_MULTIPLIER = 1.0


class PriceMovementSimulator:
    """
    Samples an exit price multiplier from a scenario table.

    One uniform draw in [0, 1) selects the bucket whose cumulative probability
    bound it falls under; a second uniform draw picks the multiplier inside that
    bucket's range. Deterministic for a seeded generator.

    Example:
        >>> sim = PriceMovementSimulator(scenario_preset("aggressive"), np.random.default_rng(7))
        >>> multiplier = sim.sample()
    """

    def __init__(
        self,
        scenarios: Sequence[ScenarioBucketV1],
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Initialize simulator.

        Args:
            scenarios: Ordered scenario buckets (probabilities should sum to 1.0)
            rng: Pseudorandom source (default: unseeded numpy generator)
        """
        if not scenarios:
            raise ValueError("scenarios must not be empty")

        self.scenarios: List[ScenarioBucketV1] = list(scenarios)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.cumulative_bounds: List[float] = np.cumsum(
            [bucket.probability for bucket in self.scenarios]
        ).tolist()

    def sample(self) -> float:
        """Sample one price multiplier."""
        _, multiplier = self.sample_with_bucket()
        return multiplier

    def sample_with_bucket(self) -> Tuple[Optional[int], float]:
        """
        Sample one price multiplier and report which bucket produced it.

        Returns:
            (bucket index, multiplier). The index is None when float drift in
            the table left the draw unmatched, in which case the multiplier is
            the 1.0 fallback.
        """
        draw = float(self.rng.random())

        for index, upper_bound in enumerate(self.cumulative_bounds):
            if draw < upper_bound:
                bucket = self.scenarios[index]
                multiplier = float(self.rng.uniform(bucket.min_multiplier, bucket.max_multiplier))
                return index, multiplier

        logger.debug(f"Draw {draw:.6f} matched no scenario bucket, using fallback multiplier")
        return None, FALLBACK_MULTIPLIER

    def expected_multiplier(self) -> float:
        """Mean multiplier implied by the table (uniform within each bucket)."""
        return float(
            sum(
                bucket.probability * (bucket.min_multiplier + bucket.max_multiplier) / 2.0
                for bucket in self.scenarios
            )
        )
