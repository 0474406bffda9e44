"""
Runtime configuration for the catalog miner.

Defaults live in module-level constants so they are documented in one place;
``MinerConfig`` bundles them for a run and the CLI overrides individual
values.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


# -------------------------------------------------------
# CONSTANTS
# -------------------------------------------------------

# Catalog endpoints
BASE_URL = "https://1337x.torrentbay.to"
DETAIL_PATH = "/torrent/{id}/catalog-miner/"
COMMENTS_PATH = "/comments.php?torrentid={id}"

# Where chunk files are written
DATA_DIR = Path("data")

# IDs per chunk file
CHUNK_SIZE = 1000

# Crawling starts at FLOOR + 1
FLOOR = 99

# Minimum seconds between two detail requests
MIN_INTERVAL = 1.0

# Flush and report progress every N fetched IDs
FLUSH_EVERY = 60

# Approximate number of IDs in the catalog, for the progress estimate.
# Refresh it with --catalog-size, CATALOG_MINER_CATALOG_SIZE or a
# catalog_size.txt file in the data directory.
CATALOG_SIZE = 6_000_000
CATALOG_SIZE_FILE = "catalog_size.txt"

REQUEST_TIMEOUT = 30.0
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"


@dataclass
class MinerConfig:
    """Settings for one crawl run."""
    base_url: str = BASE_URL
    detail_path: str = DETAIL_PATH
    comments_path: str = COMMENTS_PATH
    data_dir: Path = DATA_DIR
    chunk_size: int = CHUNK_SIZE
    floor: int = FLOOR
    min_interval: float = MIN_INTERVAL
    flush_every: int = FLUSH_EVERY
    catalog_size: int = CATALOG_SIZE
    request_timeout: float = REQUEST_TIMEOUT
    user_agent: str = USER_AGENT
    progress_bar: bool = True

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.flush_every <= 0:
            raise ValueError(f"flush_every must be positive, got {self.flush_every}")
        if self.min_interval < 0:
            raise ValueError(f"min_interval cannot be negative, got {self.min_interval}")
        if self.floor < 0:
            raise ValueError(f"floor cannot be negative, got {self.floor}")

    @property
    def catalog_size_file(self) -> Path:
        return self.data_dir / CATALOG_SIZE_FILE

    def refresh_catalog_size(self) -> int:
        """Re-read the catalog size override file, if present.

        The file holds a single integer. An unreadable or malformed file is
        logged and the current value is kept.
        """
        value = _read_catalog_size(self.catalog_size_file)
        if value is not None and value != self.catalog_size:
            logger.info("Catalog size updated: %d -> %d", self.catalog_size, value)
            self.catalog_size = value
        return self.catalog_size


def _read_catalog_size(path: Path) -> Optional[int]:
    if not path.exists():
        return None
    try:
        value = int(path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError) as e:
        logger.warning("Could not read catalog size from %s: %s", path, e)
        return None
    if value <= 0:
        logger.warning("Ignoring non-positive catalog size in %s: %d", path, value)
        return None
    return value
