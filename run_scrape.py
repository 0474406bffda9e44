#!/usr/bin/env python3
"""
Entry point for the catalog miner crawl.

Usage:
    python run_scrape.py

Runs the crawl with the default settings from catalog_miner.config:
    - Resumes from the chunk files in data/, skipping recorded IDs
    - Fetches each unrecorded ID at most once per second
    - Flushes the current chunk every 60 fetched IDs

Use the ``catalog-miner`` command for the configurable version.
"""

import logging
import sys
from pathlib import Path

# Add src to path to import the package
# This allows running the script from repository root
sys.path.insert(0, str(Path(__file__).parent / "src"))

from catalog_miner import ChunkStore, CrawlDriver, ItemScraper, MinerConfig


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    config = MinerConfig()
    config.refresh_catalog_size()
    with ItemScraper(config) as scraper:
        store = ChunkStore(config.data_dir, config.chunk_size)
        CrawlDriver(scraper, store, config).run()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n\nCrawl interrupted by user")
        print("   Progress has been saved - run again to continue.")
        sys.exit(0)
