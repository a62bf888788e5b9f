"""Live event consumer feeding chain events into the engine."""

import json
import logging
import threading
import time
from typing import Any, Dict, Iterable, Optional, Set, Union

from papertrade.evaluation.reporting import log_summary
from papertrade.schemas.events import BalanceObservedEventV1, PoolOpportunityEventV1
from papertrade.schemas.trade import TradeRecordV1
from papertrade.simulator.engine import PaperTradingEngine
from papertrade.simulator.scheduler import ThreadingScheduler

logger = logging.getLogger(__name__)

Event = Union[PoolOpportunityEventV1, BalanceObservedEventV1]


def parse_event(raw: Union[str, Dict[str, Any]]) -> Event:
    """
    Parse one listener event.

    Accepts a JSON string or dict with a ``type`` of ``pool`` or ``balance``;
    the remaining keys are the event fields.

    Raises:
        ValueError: On malformed JSON, unknown type, or invalid fields
    """
    data = json.loads(raw) if isinstance(raw, str) else dict(raw)
    if not isinstance(data, dict):
        raise ValueError("event must be a JSON object")

    kind = data.pop("type", None)
    if kind == "pool":
        return PoolOpportunityEventV1(**data)
    if kind == "balance":
        return BalanceObservedEventV1(**data)
    raise ValueError(f"Unknown event type: {kind!r}. Must be 'pool' or 'balance'")


class PoolCache:
    """Remembers which base assets already had a pool, so each is bought once."""

    def __init__(self):
        self._seen: Set[str] = set()
        self._lock = threading.Lock()

    def add(self, asset_id: str) -> bool:
        """Record an asset. Returns False if it was already known."""
        with self._lock:
            if asset_id in self._seen:
                return False
            self._seen.add(asset_id)
            return True

    def __contains__(self, asset_id: str) -> bool:
        return asset_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)


class LiveRunner:
    """
    Dispatches listener events to the engine and logs periodic summaries.

    Example:
        >>> runner = LiveRunner(engine)
        >>> runner.run(sys.stdin)
    """

    def __init__(self, engine: PaperTradingEngine, summary_interval_seconds: Optional[float] = None):
        self.engine = engine
        self.summary_interval_seconds = (
            summary_interval_seconds
            if summary_interval_seconds is not None
            else engine.config.summary_interval_seconds
        )
        self.pool_cache = PoolCache()
        self.events_processed = 0
        self.events_rejected = 0

        self._stop_event = threading.Event()
        self._summary_thread: Optional[threading.Thread] = None

    def dispatch(self, event: Event) -> Optional[TradeRecordV1]:
        """Route one event to the engine."""
        self.events_processed += 1

        if isinstance(event, PoolOpportunityEventV1):
            if not self.pool_cache.add(event.asset_id):
                logger.info(f"Pool skipped, token already seen: {event.asset_id}")
                return None
            logger.info(f"Token detected: {event.asset_id} (pool {event.pool_account_id})")
            return self.engine.on_pool_opportunity(event)

        return self.engine.on_balance_observed(event)

    def run(self, lines: Iterable[str], wait_for_pending: Optional[float] = None) -> int:
        """
        Consume JSON-lines events until the iterable is exhausted.

        Args:
            lines: Event source (e.g. sys.stdin)
            wait_for_pending: Seconds to wait for pending auto-sells before
                shutting down (None: do not wait)

        Returns:
            Number of events dispatched.
        """
        self.start()
        try:
            for line in lines:
                line = line.strip()
                if not line:
                    continue
                try:
                    event = parse_event(line)
                except ValueError as e:
                    self.events_rejected += 1
                    logger.warning(f"Skipping malformed event: {e}")
                    continue
                self.dispatch(event)

            if wait_for_pending:
                self.wait_for_pending(wait_for_pending)
        finally:
            self.stop()
        return self.events_processed

    def wait_for_pending(self, timeout: float, poll_interval: float = 0.1) -> bool:
        """Block until the scheduler is idle or ``timeout`` elapses."""
        deadline = time.monotonic() + timeout
        while self.engine.scheduler.pending() > 0:
            if time.monotonic() >= deadline:
                return False
            time.sleep(poll_interval)
        return True

    def start(self) -> None:
        """Start the periodic summary thread."""
        if self._summary_thread is not None:
            logger.warning("Live runner already started")
            return
        self._stop_event.clear()
        self._summary_thread = threading.Thread(
            target=self._summary_loop, name="papertrade-summary", daemon=True
        )
        self._summary_thread.start()
        logger.info("PAPER TRADING runner started: virtual wallet only, no real transactions")

    def stop(self) -> None:
        """Stop the summary thread, cancel pending timers and log a final summary."""
        self._stop_event.set()
        if self._summary_thread is not None:
            self._summary_thread.join(timeout=5.0)
            self._summary_thread = None

        if isinstance(self.engine.scheduler, ThreadingScheduler):
            self.engine.scheduler.shutdown()

        log_summary(self.engine.snapshot())

    def _summary_loop(self) -> None:
        while not self._stop_event.wait(self.summary_interval_seconds):
            try:
                log_summary(self.engine.snapshot())
            except Exception as e:
                logger.error(f"Summary failed: {e}", exc_info=True)
