"""Runners that feed events into the paper trading engine."""

from papertrade.runner.live import LiveRunner, PoolCache, parse_event
from papertrade.runner.progress import SessionProgress, SessionStats
from papertrade.runner.session import OfflineSession, SessionResult
from papertrade.runner.synthetic_feed import SyntheticOpportunityFeed

__all__ = [
    "OfflineSession",
    "SessionResult",
    "LiveRunner",
    "PoolCache",
    "parse_event",
    "SyntheticOpportunityFeed",
    "SessionProgress",
    "SessionStats",
]
