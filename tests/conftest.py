"""Configure test paths and shared fixtures."""
import sys
from pathlib import Path

import pytest

# Add src/ to path so tests can import the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from catalog_miner.models import Comment, FileEntry, Item  # noqa: E402

NOW = 1_700_000_000


@pytest.fixture
def minimal_item():
    """Item with every optional field left at its default."""
    return Item(
        name="Minimal",
        infohash="0000000000000000000000000000000000000000",
        category="Other",
        type="Other",
        language="English",
        uploader="someone",
        last_checked_at=NOW - 60,
        uploaded_at=NOW - 3600,
        scraped_at=NOW,
    )


@pytest.fixture
def full_item():
    """Item with every optional field populated."""
    return Item(
        name="Some Movie 2020 1080p",
        description="Line one\nLine two",
        infohash="ABCDEF0123456789ABCDEF0123456789ABCDEF01",
        category="Movies",
        type="HD",
        language="English",
        total_size=1572864,
        uploader="bob",
        download_count=1234,
        last_checked_at=NOW - 3 * 3600,
        uploaded_at=NOW - 2 * 365 * 86400,
        seeder_count=42,
        leecher_count=7,
        scraped_at=NOW,
        external_movie_id=603,
        images=["https://img.example/1.jpg", "https://img.example/1.jpg"],
        trackers=["udp://tracker.one:80/announce"],
        files=[FileEntry(name="Movie (Part 1)", size_bytes=1024)],
        comments=[
            Comment(
                avatar="https://img.example/a.png",
                class_="Uploader",
                body="thanks",
                comment_id=5,
                posted_at=NOW - 86400,
                username="alice",
            ),
        ],
    )
