"""
Data models for the catalog miner.

A crawled ID maps to a ``Record``: either a fully extracted ``Item`` or
``None``, the tombstone written when the catalog reports that the ID holds
no content. Tombstones are permanent; the crawler never revisits them.

Serialization keeps chunk files compact: every field listed in an omission
table is left out when it equals its constant, and restored to that constant
when the record is loaded again.
"""

import copy
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import orjson


# Substituted by the comment feed for deleted accounts
DELETED = "[deleted]"
DEFAULT_AVATAR = ""


# -------------------------------------------------------
# Omission tables: serialized key -> value that is not written
# -------------------------------------------------------
ITEM_OMIT_IF: Dict[str, Any] = {
    "description": "",
    "total_size": 0,
    "download_count": 0,
    "seeder_count": 0,
    "leecher_count": 0,
    "external_movie_id": None,
    "external_series_id": None,
    "images": [],
    "trackers": [],
    "files": [],
    "comments": [],
}

FILE_OMIT_IF: Dict[str, Any] = {
    "size_bytes": 0,
}

COMMENT_OMIT_IF: Dict[str, Any] = {
    "avatar": DEFAULT_AVATAR,
    "class": DELETED,
    "username": DELETED,
}


def _compact(data: Dict[str, Any], omit_if: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value for key, value in data.items()
        if not (key in omit_if and value == omit_if[key])
    }


def _restore(data: Dict[str, Any], omit_if: Dict[str, Any]) -> Dict[str, Any]:
    restored = {key: copy.copy(value) for key, value in omit_if.items()}
    restored.update(data)
    return restored


@dataclass
class FileEntry:
    """A single file listed in an item's file tab."""
    name: str
    size_bytes: int

    def to_dict(self) -> dict:
        return _compact({"name": self.name, "size_bytes": self.size_bytes}, FILE_OMIT_IF)

    @classmethod
    def from_dict(cls, data: dict) -> "FileEntry":
        data = _restore(data, FILE_OMIT_IF)
        return cls(name=data["name"], size_bytes=data["size_bytes"])


@dataclass
class RawComment:
    """
    A comment as delivered by the comment feed, before time conversion.

    Attributes:
        avatar: Avatar URL (may be missing in the feed)
        class_: User class label, ``"[deleted]"`` when absent
        comment: Comment body (HTML fragment as served)
        commentid: Feed-assigned comment identifier
        posted: Relative time text, e.g. ``"2 days ago"``
        username: Author, ``"[deleted]"`` when absent
    """
    avatar: str
    class_: str
    comment: str
    commentid: int
    posted: str
    username: str

    @classmethod
    def from_json(cls, data: dict) -> "RawComment":
        """Build from one feed object, defaulting the optional keys."""
        return cls(
            avatar=data.get("avatar") or DEFAULT_AVATAR,
            class_=data.get("class") or DELETED,
            comment=data.get("comment", ""),
            commentid=int(data["commentid"]),
            posted=str(data.get("posted", "")),
            username=data.get("username") or DELETED,
        )


@dataclass
class Comment:
    """A user comment with its posting time resolved to a Unix timestamp."""
    body: str
    comment_id: int
    posted_at: int
    avatar: str = DEFAULT_AVATAR
    class_: str = DELETED
    username: str = DELETED

    def to_dict(self) -> dict:
        return _compact({
            "avatar": self.avatar,
            "class": self.class_,
            "body": self.body,
            "comment_id": self.comment_id,
            "posted_at": self.posted_at,
            "username": self.username,
        }, COMMENT_OMIT_IF)

    @classmethod
    def from_dict(cls, data: dict) -> "Comment":
        data = _restore(data, COMMENT_OMIT_IF)
        return cls(
            body=data["body"],
            comment_id=data["comment_id"],
            posted_at=data["posted_at"],
            avatar=data["avatar"],
            class_=data["class"],
            username=data["username"],
        )


@dataclass
class Item:
    """
    Complete structured payload for one catalog entry.

    Attributes:
        name: Full title (recovered from the description when the heading
              was truncated)
        description: Description text, lines joined with newlines; empty
                     when the page says no description was given
        infohash: Content identifier shown on the page
        category, type, language: Labels from the info lists
        total_size: Total size in bytes
        uploader: Uploader username
        download_count, seeder_count, leecher_count: Counters
        last_checked_at, uploaded_at: Unix timestamps resolved against
                                      ``scraped_at``
        scraped_at: Capture instant (Unix seconds)
        external_movie_id: Numeric movie database id, if linked
        external_series_id: Series slug, if linked (never together with
                            ``external_movie_id``)
        images: Image URLs from the description, in page order
        trackers: Announce URLs, in page order
        files: Parsed file listing
        comments: Comments with a resolvable posting time

    Example:
        item = Item(
            name="Some.Show.S01E01.1080p",
            infohash="0123456789ABCDEF0123456789ABCDEF01234567",
            category="TV", type="HD", language="English",
            uploader="someone", last_checked_at=1700000000,
            uploaded_at=1690000000, scraped_at=1700003600,
            external_series_id="some-show",
        )
    """
    name: str
    infohash: str
    category: str
    type: str
    language: str
    uploader: str
    last_checked_at: int
    uploaded_at: int
    scraped_at: int
    description: str = ""
    total_size: int = 0
    download_count: int = 0
    seeder_count: int = 0
    leecher_count: int = 0
    external_movie_id: Optional[int] = None
    external_series_id: Optional[str] = None
    images: List[str] = field(default_factory=list)
    trackers: List[str] = field(default_factory=list)
    files: List[FileEntry] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)

    def __post_init__(self):
        if self.external_movie_id is not None and self.external_series_id is not None:
            raise ValueError("An item cannot link both a movie and a series")

    def to_dict(self) -> dict:
        """Convert to a compact dictionary for JSON serialization."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["files"] = [f.to_dict() for f in self.files]
        data["comments"] = [c.to_dict() for c in self.comments]
        return _compact(data, ITEM_OMIT_IF)

    @classmethod
    def from_dict(cls, data: dict) -> "Item":
        """Rebuild an item from ``to_dict`` output (omitted keys restored)."""
        data = _restore(data, ITEM_OMIT_IF)
        known = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in known}
        kwargs["files"] = [FileEntry.from_dict(f) for f in data["files"]]
        kwargs["comments"] = [Comment.from_dict(c) for c in data["comments"]]
        return cls(**kwargs)


# A tombstone is stored as None
Record = Optional[Item]


def record_to_json(record: Record) -> Optional[dict]:
    """Serializable form of a record: ``None`` for a tombstone."""
    return None if record is None else record.to_dict()


def record_from_json(value: Optional[dict]) -> Record:
    return None if value is None else Item.from_dict(value)


def dumps_record(record: Record) -> bytes:
    """Pretty JSON bytes for a single record."""
    return orjson.dumps(record_to_json(record), option=orjson.OPT_INDENT_2)
