"""Synthetic pool-launch feed for offline sessions."""

import logging
from typing import Optional

import numpy as np

from papertrade.schemas.events import PoolOpportunityEventV1
from papertrade.utils.helpers import random_base36

logger = logging.getLogger(__name__)


class SyntheticOpportunityFeed:
    """
    Generates fake token launches at a fixed cadence.

    Each tick produces a launch with probability ``launch_probability``. Asset
    ids look like ``FAKE<13 base-36 chars>`` so they are never mistaken for real
    mints.
    """

    def __init__(
        self,
        quote_asset_id: str,
        rng: Optional[np.random.Generator] = None,
        interval_seconds: float = 15.0,
        launch_probability: float = 0.3,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if launch_probability < 0 or launch_probability > 1:
            raise ValueError("launch_probability must be between 0 and 1")

        self.quote_asset_id = quote_asset_id
        self.rng = rng if rng is not None else np.random.default_rng()
        self.interval_seconds = interval_seconds
        self.launch_probability = launch_probability
        self.launches = 0

    def tick(self, pool_open_time: int = 0) -> Optional[PoolOpportunityEventV1]:
        """Advance one interval; return a launch event or None."""
        if self.rng.random() >= self.launch_probability:
            return None

        self.launches += 1
        asset_id = f"FAKE{random_base36(self.rng)}"
        logger.debug(f"Synthetic launch #{self.launches}: {asset_id}")
        return PoolOpportunityEventV1(
            pool_account_id=f"POOL{random_base36(self.rng)}",
            asset_id=asset_id,
            quote_asset_id=self.quote_asset_id,
            pool_open_time=pool_open_time,
        )
