"""
Crawl loop: walk the ID space, scrape unrecorded IDs, checkpoint results.

The crawl is strictly sequential. Each ID is checked against the checkpoint
store first; recorded IDs (items and tombstones alike) are skipped without a
request. Anything else is fetched, and the result is recorded unless the
fetch or extraction failed, in which case the ID stays unrecorded and a
later run tries it again.
"""

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional, Tuple

from tqdm import tqdm

from .checkpoint import ChunkStore
from .config import MinerConfig
from .exceptions import ExtractionError, TransportError
from .scraper import ItemScraper

logger = logging.getLogger(__name__)


@dataclass
class CrawlStats:
    """Counters for one run."""
    fetched: int = 0
    items: int = 0
    tombstones: int = 0
    failed: int = 0
    skipped: int = 0

    def get_summary(self) -> str:
        return (
            f"Fetched: {self.fetched} "
            f"(items: {self.items}, not found: {self.tombstones}, failed: {self.failed}), "
            f"skipped: {self.skipped}"
        )


class ProgressTracker:
    """
    Estimates crawl progress against the catalog size.

    The time per ID is the mean over the IDs fetched in this run, so the
    estimate follows the real request rate including pacing.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.started_at = clock()
        self.processed = 0

    def record(self):
        self.processed += 1

    @property
    def seconds_per_id(self) -> Optional[float]:
        if self.processed == 0:
            return None
        return (self.clock() - self.started_at) / self.processed

    def estimate(self, cursor: int, catalog_size: int) -> Tuple[float, Optional[float]]:
        """
        Args:
            cursor: Highest ID visited so far
            catalog_size: Known (approximate) number of IDs in the catalog

        Returns:
            ``(fraction visited, estimated seconds remaining)``; the estimate
            is None before any ID has been fetched.
        """
        fraction = min(1.0, cursor / catalog_size) if catalog_size > 0 else 0.0
        per_id = self.seconds_per_id
        if per_id is None:
            return fraction, None
        remaining = max(0, catalog_size - cursor)
        return fraction, per_id * remaining


def format_eta(seconds: Optional[float]) -> str:
    if seconds is None:
        return "unknown"
    return str(timedelta(seconds=int(seconds)))


class CrawlDriver:
    """
    Sequential crawler over the catalog's numeric IDs.

    Usage:
        config = MinerConfig()
        with ItemScraper(config) as scraper, ChunkStore(config.data_dir) as store:
            CrawlDriver(scraper, store, config).run()
    """

    def __init__(
        self,
        scraper: ItemScraper,
        store: ChunkStore,
        config: Optional[MinerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.scraper = scraper
        self.store = store
        self.config = config or MinerConfig()
        self.clock = clock
        self.sleep = sleep
        self.stats = CrawlStats()
        self.progress = ProgressTracker(clock)
        # Duration of the most recent fetch, used for pacing
        self.last_fetch_seconds = 0.0

    def pace(self, elapsed: float):
        """Sleep out the rest of the minimum interval after a request."""
        delay = self.config.min_interval - elapsed
        if delay > 0:
            self.sleep(delay)

    def process(self, item_id: int) -> bool:
        """Fetch, extract and record one ID.

        Returns:
            True if a record (item or tombstone) was stored
        """
        self.stats.fetched += 1
        started = self.clock()
        try:
            record = self.scraper.fetch_item(item_id)
        except (ExtractionError, TransportError) as e:
            self.last_fetch_seconds = self.clock() - started
            logger.error("Failed to scrape item %d: %s", item_id, e)
            self.stats.failed += 1
            return False
        self.last_fetch_seconds = self.clock() - started

        self.store.put(item_id, record)
        if record is None:
            self.stats.tombstones += 1
            logger.info("Item %d: not found", item_id)
        else:
            self.stats.items += 1
            logger.info("Scraped item %d: %s", item_id, record.name)
        return True

    def checkpoint(self, cursor: int):
        """Flush the store and log a progress estimate."""
        self.store.flush()
        catalog_size = self.config.refresh_catalog_size()
        fraction, eta = self.progress.estimate(cursor, catalog_size)
        logger.info(
            "Progress: ID %d of ~%d (%.2f%%), ETA %s. %s",
            cursor, catalog_size, fraction * 100, format_eta(eta),
            self.stats.get_summary(),
        )

    def run(self, start: Optional[int] = None, max_id: Optional[int] = None) -> CrawlStats:
        """
        Crawl from ``start`` (default: just above the configured floor).

        Runs until interrupted, or until ``max_id`` has been visited when it
        is given. Unsaved records are flushed on the way out, including on
        errors and KeyboardInterrupt.
        """
        cursor = self.config.floor + 1 if start is None else start
        logger.info("Starting crawl at ID %d", cursor)

        bar = tqdm(
            total=self.config.catalog_size,
            initial=min(cursor - 1, self.config.catalog_size),
            unit="id",
            desc="Crawling",
            disable=not self.config.progress_bar,
        )
        try:
            while max_id is None or cursor <= max_id:
                item_id = cursor
                cursor += 1
                bar.update(1)

                if self.store.contains(item_id):
                    self.stats.skipped += 1
                    continue

                self.process(item_id)
                self.progress.record()
                self.pace(self.last_fetch_seconds)

                if self.stats.fetched % self.config.flush_every == 0:
                    self.checkpoint(item_id)
                    bar.total = max(self.config.catalog_size, bar.n)
        finally:
            bar.close()
            self.store.close()

        logger.info("Crawl finished at ID %d. %s", cursor - 1, self.stats.get_summary())
        return self.stats
