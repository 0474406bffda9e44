"""
Chunked, resumable checkpoint store.

The ID space is split into fixed-size contiguous ranges ("chunks"); each
chunk is one JSON file mapping the string form of an ID to either ``null``
(tombstone) or a serialized item. Only one chunk is held in memory at a time.

Moving to an ID in a different chunk flushes the resident chunk first when it
holds unsaved changes, then loads the new one. A crash therefore loses at
most the records put since the last flush, and those IDs are simply crawled
again on the next run.

Any failure to read or write a chunk raises ``StorageError``: silently
starting a chunk from scratch would overwrite good data on the next flush.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import orjson

from .exceptions import StorageError
from .models import Record, record_from_json, record_to_json

logger = logging.getLogger(__name__)

CHUNK_FILE_PATTERN = re.compile(r"^chunk_(\d+)\.json$")


class ChunkStore:
    """
    Key/value store of ``id -> Record`` persisted as chunk files.

    Usage:
        with ChunkStore(Path("data"), chunk_size=1000) as store:
            if not store.contains(1234):
                store.put(1234, record)
        # leaving the block flushes
    """

    def __init__(self, directory: Path, chunk_size: int = 1000):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.directory = Path(directory)
        self.chunk_size = chunk_size
        self._index: Optional[int] = None
        self._records: Dict[int, Record] = {}
        self._dirty = False

    # -------------------------------------------------------
    # Paths and chunk arithmetic
    # -------------------------------------------------------

    def chunk_index(self, item_id: int) -> int:
        return item_id // self.chunk_size

    def chunk_range(self, index: int) -> Tuple[int, int]:
        """First and last ID (inclusive) covered by chunk ``index``."""
        start = index * self.chunk_size
        return start, start + self.chunk_size - 1

    def chunk_path(self, index: int) -> Path:
        return self.directory / f"chunk_{index}.json"

    def chunk_indexes(self) -> List[int]:
        """Indexes of every chunk persisted on disk, ascending."""
        if not self.directory.exists():
            return []
        indexes = []
        for path in self.directory.iterdir():
            match = CHUNK_FILE_PATTERN.match(path.name)
            if match:
                indexes.append(int(match.group(1)))
        return sorted(indexes)

    @property
    def resident_index(self) -> Optional[int]:
        return self._index

    # -------------------------------------------------------
    # Loading and saving
    # -------------------------------------------------------

    def _read_chunk(self, index: int) -> Dict[int, Record]:
        path = self.chunk_path(index)
        if not path.exists():
            return {}
        try:
            data = orjson.loads(path.read_bytes())
            return {int(key): record_from_json(value) for key, value in data.items()}
        except (OSError, orjson.JSONDecodeError, AttributeError, KeyError,
                TypeError, ValueError) as e:
            raise StorageError(f"Could not load chunk {path}: {e}") from e

    def _write_chunk(self, index: int, records: Dict[int, Record]):
        path = self.chunk_path(index)
        payload = {str(key): record_to_json(records[key]) for key in sorted(records)}
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_bytes(orjson.dumps(payload))
            tmp.replace(path)
        except OSError as e:
            raise StorageError(f"Could not save chunk {path}: {e}") from e

    def _ensure_resident(self, item_id: int):
        index = self.chunk_index(item_id)
        if index == self._index:
            return

        if self._index is not None:
            if self._dirty:
                self.flush()
            logger.debug("Releasing chunk %d", self._index)

        self._records = self._read_chunk(index)
        self._index = index
        self._dirty = False
        logger.debug("Loaded chunk %d (%d records)", index, len(self._records))

    def flush(self):
        """Write the resident chunk to disk, replacing the previous file."""
        if self._index is None:
            return
        logger.debug("Saving chunk %d (%d records)", self._index, len(self._records))
        self._write_chunk(self._index, self._records)
        self._dirty = False

    def close(self):
        if self._dirty:
            self.flush()

    def __enter__(self) -> "ChunkStore":
        return self

    def __exit__(self, *exc_info):
        self.close()

    # -------------------------------------------------------
    # Record access
    # -------------------------------------------------------

    def contains(self, item_id: int) -> bool:
        """True if ``item_id`` has a record (item or tombstone)."""
        self._ensure_resident(item_id)
        return item_id in self._records

    def __contains__(self, item_id: int) -> bool:
        return self.contains(item_id)

    def get(self, item_id: int) -> Record:
        """Return the stored record.

        Raises:
            KeyError: ``item_id`` has never been recorded
        """
        self._ensure_resident(item_id)
        return self._records[item_id]

    def put(self, item_id: int, record: Record):
        """Record ``item_id`` in memory. Call ``flush`` to persist it."""
        if item_id < 0:
            raise ValueError(f"IDs must be non-negative, got {item_id}")
        self._ensure_resident(item_id)
        self._records[item_id] = record
        self._dirty = True

    # -------------------------------------------------------
    # Whole-store iteration
    # -------------------------------------------------------

    def iter_chunks(self) -> Iterator[Tuple[int, Dict[int, Record]]]:
        """Yield ``(index, records)`` for every chunk, in ID order.

        The resident chunk is served from memory so unflushed records are
        included. Other chunks are read without changing residency.
        """
        indexes = set(self.chunk_indexes())
        if self._index is not None:
            indexes.add(self._index)
        for index in sorted(indexes):
            if index == self._index:
                yield index, dict(self._records)
            else:
                yield index, self._read_chunk(index)

    def iter_records(self) -> Iterator[Tuple[int, Record]]:
        for _, records in self.iter_chunks():
            for item_id in sorted(records):
                yield item_id, records[item_id]

    def stats(self) -> Dict[str, int]:
        """Count items, tombstones and chunks across the whole store."""
        items = 0
        tombstones = 0
        chunks = 0
        for _, records in self.iter_chunks():
            chunks += 1
            for record in records.values():
                if record is None:
                    tombstones += 1
                else:
                    items += 1
        return {
            "items": items,
            "tombstones": tombstones,
            "total": items + tombstones,
            "chunks": chunks,
        }
