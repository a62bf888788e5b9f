"""Progress tracking for offline sessions."""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from tqdm import tqdm

logger = logging.getLogger(__name__)


@dataclass
class SessionStats:
    """Statistics tracked during a session."""

    ticks_processed: int = 0
    opportunities_seen: int = 0
    positions_opened: int = 0
    positions_closed: int = 0
    start_time: float = field(default_factory=time.time)

    def elapsed_seconds(self) -> float:
        """Get elapsed wall time in seconds."""
        return time.time() - self.start_time

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "ticks_processed": self.ticks_processed,
            "opportunities_seen": self.opportunities_seen,
            "positions_opened": self.positions_opened,
            "positions_closed": self.positions_closed,
            "elapsed_seconds": self.elapsed_seconds(),
        }


class SessionProgress:
    """
    Thread-safe progress tracker for a simulated session.

    Displays a tqdm bar over feed ticks and logs a summary on completion.

    Example:
        >>> with SessionProgress(total_ticks=240, description="Session 42") as progress:
        ...     for _ in range(240):
        ...         progress.update_tick()
    """

    def __init__(
        self,
        total_ticks: int,
        description: str = "Simulating",
        show_progress_bar: bool = True,
    ):
        self.total_ticks = total_ticks
        self.description = description
        self.show_progress_bar = show_progress_bar

        self.stats = SessionStats()
        self.pbar: Optional[tqdm] = None
        self.lock = threading.Lock()
        self.started = False
        self.finished = False

    def start(self) -> None:
        """Start progress tracking."""
        with self.lock:
            if self.started:
                logger.warning("Progress tracker already started")
                return

            self.started = True
            self.stats.start_time = time.time()

            if self.show_progress_bar:
                self.pbar = tqdm(
                    total=self.total_ticks,
                    desc=self.description,
                    unit="tick",
                    ncols=100,
                    bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]",
                )

    def update_tick(self, n: int = 1) -> None:
        with self.lock:
            self.stats.ticks_processed += n
            if self.pbar:
                self.pbar.update(n)

    def increment_opportunity(self) -> None:
        with self.lock:
            self.stats.opportunities_seen += 1
            self._update_postfix()

    def increment_opened(self) -> None:
        with self.lock:
            self.stats.positions_opened += 1
            self._update_postfix()

    def increment_closed(self, n: int = 1) -> None:
        with self.lock:
            self.stats.positions_closed += n
            self._update_postfix()

    def _update_postfix(self) -> None:
        if self.pbar:
            self.pbar.set_postfix_str(
                f"seen={self.stats.opportunities_seen} "
                f"opened={self.stats.positions_opened} "
                f"closed={self.stats.positions_closed}"
            )

    def finish(self) -> None:
        """Finish progress tracking and log summary."""
        with self.lock:
            if self.finished:
                logger.warning("Progress tracker already finished")
                return

            self.finished = True

            if self.pbar:
                self.pbar.close()

            logger.info(f"Session completed: {self.description}")
            logger.info(f"  Ticks processed:    {self.stats.ticks_processed:,}")
            logger.info(f"  Opportunities seen: {self.stats.opportunities_seen:,}")
            logger.info(f"  Positions opened:   {self.stats.positions_opened:,}")
            logger.info(f"  Positions closed:   {self.stats.positions_closed:,}")
            logger.info(f"  Elapsed time:       {self.stats.elapsed_seconds():.1f}s")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
