"""
Catalog Miner

Resumable scraper for a catalog of numbered detail pages. Each ID is fetched
once, turned into a typed record (or a "not found" tombstone) and stored in
chunked JSON checkpoint files, so an interrupted crawl picks up where it
stopped.

Main components:
- ItemScraper: fetches a detail page and its comment feed, builds the record
- ChunkStore: chunked on-disk store of ID -> record
- CrawlDriver: sequential, paced crawl loop with progress reporting
- Scalar parsers for relative times, sizes and file listings

Usage:
    from catalog_miner import ChunkStore, CrawlDriver, ItemScraper, MinerConfig

    config = MinerConfig()
    with ItemScraper(config) as scraper, ChunkStore(config.data_dir) as store:
        CrawlDriver(scraper, store, config).run()
"""

from .checkpoint import ChunkStore
from .config import MinerConfig
from .crawler import CrawlDriver, CrawlStats
from .exceptions import (
    ExtractionError,
    MinerError,
    StorageError,
    StructuralError,
    TransportError,
)
from .models import Comment, FileEntry, Item, Record
from .scraper import ItemScraper
from .utils import parse_file_entry, parse_relative_time, parse_size

__all__ = [
    'ChunkStore',
    'CrawlDriver',
    'CrawlStats',
    'ItemScraper',
    'MinerConfig',
    'Item',
    'FileEntry',
    'Comment',
    'Record',
    'MinerError',
    'ExtractionError',
    'StructuralError',
    'TransportError',
    'StorageError',
    'parse_relative_time',
    'parse_size',
    'parse_file_entry',
]

__version__ = '1.0.0'
