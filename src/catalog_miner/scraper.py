"""
Detail page scraper for the catalog.

Turns one catalog detail page (plus, when the page advertises comments, the
JSON comment feed for the same ID) into an ``Item``, or into a tombstone when
the catalog says the ID holds nothing.

Failures come in two strengths:
- Mandatory data missing or a page layout we do not recognise raises
  ``ExtractionError`` / ``StructuralError``; the caller leaves the ID
  unrecorded.
- Optional data that cannot be read (identity link, a file line, a comment,
  the comment feed itself) is logged and left out; the item is still
  produced.
"""

import logging
import time
from typing import Callable, List, Optional, Tuple

import httpx
import orjson
from bs4 import BeautifulSoup, Tag

from .config import MinerConfig
from .exceptions import ExtractionError, StructuralError, TransportError
from .models import Comment, FileEntry, Item, RawComment, Record
from .utils import (
    first_non_blank_text,
    first_text,
    joined_text,
    parse_file_entry,
    parse_relative_time,
    parse_size,
)

logger = logging.getLogger(__name__)


# Body text the catalog serves for IDs that hold no content
NOT_FOUND_MARKERS = (
    "Bad Torrent ID.",
    "This torrent is pending moderation",
    "Torrent not found",
)

NO_DESCRIPTION = "No description given."
ELLIPSIS = "..."

MOVIE_PREFIX = "/movie/"
SERIES_PREFIX = "/series/"

# CSS selectors
LIST_SELECTOR = ".list"
IDENTITY_LINK_SELECTOR = ".torrent-detail-info h3>a"
INFOHASH_SELECTOR = ".infohash-box>p>span"
TITLE_SELECTOR = "h1"
DESCRIPTION_SELECTOR = ".torrent-tabs #description"
IMAGE_SELECTOR = ".torrent-tabs #description img"
IMAGE_ATTRIBUTE = "data-original"
TRACKER_SELECTOR = ".torrent-tabs #tracker-list li"
FILE_SELECTOR = ".torrent-tabs #files li"
COMMENT_COUNT_SELECTOR = '.torrent-tabs .tab-nav a[href="#comments"]>span'

EXPECTED_LISTS = 3


# -------------------------------------------------------
# Info list span readers
# -------------------------------------------------------
# Each reader gets the field name, the span and the capture instant and
# either returns the value or raises ExtractionError.

def _read_label(name: str, span: Tag, now: int) -> str:
    return first_text(span).strip()


def _read_uploader(name: str, span: Tag, now: int) -> str:
    return first_non_blank_text(span)


def _read_size(name: str, span: Tag, now: int) -> int:
    text = first_text(span)
    size = parse_size(text)
    if size is None:
        raise ExtractionError(f"Invalid {name}: {text!r}")
    return size


def _read_count(name: str, span: Tag, now: int) -> int:
    text = first_text(span).strip()
    if not (text.isascii() and text.isdigit()):
        raise ExtractionError(f"Invalid {name}: {text!r}")
    return int(text)


def _read_time(name: str, span: Tag, now: int) -> int:
    text = first_text(span)
    timestamp = parse_relative_time(now, text)
    if timestamp is None:
        raise ExtractionError(f"Invalid {name}: {text!r}")
    return timestamp


# Position of each span (second list followed by third list) -> field.
# A layout change on the catalog side should only ever touch this table.
SPAN_FIELDS: Tuple[Tuple[str, Callable[[str, Tag, int], object]], ...] = (
    ("category", _read_label),
    ("type", _read_label),
    ("language", _read_label),
    ("total_size", _read_size),
    ("uploader", _read_uploader),
    ("download_count", _read_count),
    ("last_checked_at", _read_time),
    ("uploaded_at", _read_time),
    ("seeder_count", _read_count),
    ("leecher_count", _read_count),
)

EXPECTED_SPANS = len(SPAN_FIELDS)


def has_not_found_marker(html: str) -> bool:
    """True if the body carries one of the catalog's "no such item" texts."""
    return any(marker in html for marker in NOT_FOUND_MARKERS)


def parse_identity_link(href: str) -> Tuple[Optional[int], Optional[str]]:
    """
    Decode the movie/series link in the detail heading.

    ``/movie/<numeric id>/<slug>/`` yields a movie id and
    ``/series/<slug>/`` yields a series id. Anything else is logged and
    yields ``(None, None)``; the item is still scraped without a link.

    Returns:
        ``(external_movie_id, external_series_id)``, at most one of them set
    """
    parts = [part for part in href.split("/") if part]

    if href.startswith(MOVIE_PREFIX):
        if len(parts) != 3:
            logger.warning("Unexpected movie link: %s", href)
            return None, None
        try:
            return int(parts[1]), None
        except ValueError as e:
            logger.warning("Unexpected movie link: %s (%s)", href, e)
            return None, None

    if href.startswith(SERIES_PREFIX):
        if len(parts) != 2:
            logger.warning("Unexpected series link: %s", href)
            return None, None
        return None, parts[1]

    logger.warning("Unexpected identity link: %s", href)
    return None, None


def dedupe_title(title: str, truncated: bool, description: str) -> Tuple[str, str]:
    """
    Recover the full title when the description repeats it.

    The heading is cut off with ``...`` for long titles, while many uploads
    start their description with the full title on its own line. When that
    line is present it becomes the title and is removed from the description.

    Example:
        dedupe_title("Foo Ba", True, "Foo Bar\\nmore text")
        # Returns: ("Foo Bar", "more text")
    """
    if (truncated and description.startswith(title)) or (
        not truncated and description.startswith(f"{title}\n")
    ):
        lines = description.split("\n")
        return lines[0], "\n".join(lines[1:])
    return title, description


class ItemScraper:
    """
    Blocking scraper for catalog detail pages.

    Usage:
        with ItemScraper(MinerConfig()) as scraper:
            record = scraper.fetch_item(4321)
    """

    def __init__(
        self,
        config: Optional[MinerConfig] = None,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or MinerConfig()
        self.clock = clock
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=self.config.request_timeout,
            follow_redirects=True,
            headers={
                "User-Agent": self.config.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
            },
        )

    def close(self):
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "ItemScraper":
        return self

    def __exit__(self, *exc_info):
        self.close()

    def detail_url(self, item_id: int) -> str:
        return self.config.base_url.rstrip("/") + self.config.detail_path.format(id=item_id)

    def comments_url(self, item_id: int) -> str:
        return self.config.base_url.rstrip("/") + self.config.comments_path.format(id=item_id)

    def _get(self, url: str) -> httpx.Response:
        try:
            return self.client.get(url)
        except httpx.RequestError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

    def fetch_item(self, item_id: int) -> Record:
        """Fetch and extract one ID.

        Raises:
            TransportError: connection problem or non-200 detail page
            ExtractionError: the page could not be turned into an item
        """
        now = int(self.clock())
        response = self._get(self.detail_url(item_id))
        html = response.text

        if response.status_code != 200:
            if has_not_found_marker(html):
                return None
            raise TransportError(
                f"Unexpected status code for {item_id}: {response.status_code}"
            )

        return self.extract(item_id, html, now)

    def extract(self, item_id: int, html: str, now: int) -> Record:
        """Build the record for ``item_id`` from its detail page.

        ``now`` is the capture instant; every relative time on the page and
        in the comment feed is resolved against it.
        """
        soup = BeautifulSoup(html, "lxml")

        if has_not_found_marker(html):
            return None

        lists = soup.select(LIST_SELECTOR)
        if len(lists) != EXPECTED_LISTS:
            raise StructuralError(f"Unexpected number of lists: {len(lists)}")

        spans = lists[1].select("span") + lists[2].select("span")
        if len(spans) != EXPECTED_SPANS:
            raise StructuralError(f"Unexpected number of spans: {len(spans)}")

        values = {
            name: reader(name, span, now)
            for (name, reader), span in zip(SPAN_FIELDS, spans)
        }

        movie_id, series_id = self.extract_identity(soup)

        infohash_el = soup.select_one(INFOHASH_SELECTOR)
        if infohash_el is None:
            raise ExtractionError("No infohash found")
        infohash = joined_text(infohash_el)

        name, description = self.extract_title_and_description(soup)

        comments: List[Comment] = []
        if self.extract_comment_count(soup) > 0:
            comments = self.fetch_comments(item_id, now)

        return Item(
            name=name,
            description=description,
            infohash=infohash,
            external_movie_id=movie_id,
            external_series_id=series_id,
            images=self.extract_images(soup),
            trackers=self.extract_trackers(soup),
            files=self.extract_files(soup),
            comments=comments,
            scraped_at=now,
            **values,
        )

    def extract_identity(self, soup: BeautifulSoup) -> Tuple[Optional[int], Optional[str]]:
        link = soup.select_one(IDENTITY_LINK_SELECTOR)
        if link is None or not link.get("href"):
            return None, None
        return parse_identity_link(link["href"])

    def extract_title_and_description(self, soup: BeautifulSoup) -> Tuple[str, str]:
        """Read the heading and description, then de-duplicate the title."""
        heading = soup.select_one(TITLE_SELECTOR)
        if heading is None:
            raise ExtractionError("No title found")
        title = joined_text(heading)
        truncated = title.endswith(ELLIPSIS)
        if truncated:
            title = title[:-len(ELLIPSIS)]

        description_el = soup.select_one(DESCRIPTION_SELECTOR)
        if description_el is None:
            raise ExtractionError("No description found")
        lines = [text.strip() for text in description_el.strings if text.strip()]
        if lines == [NO_DESCRIPTION]:
            lines = []

        return dedupe_title(title, truncated, "\n".join(lines))

    def extract_images(self, soup: BeautifulSoup) -> List[str]:
        return [
            img[IMAGE_ATTRIBUTE]
            for img in soup.select(IMAGE_SELECTOR)
            if img.get(IMAGE_ATTRIBUTE)
        ]

    def extract_trackers(self, soup: BeautifulSoup) -> List[str]:
        return [joined_text(li) for li in soup.select(TRACKER_SELECTOR)]

    def extract_files(self, soup: BeautifulSoup) -> List[FileEntry]:
        files = []
        for li in soup.select(FILE_SELECTOR):
            raw = joined_text(li)
            entry = parse_file_entry(raw)
            if entry is None:
                logger.warning("Failed to parse file: %s", raw)
                continue
            files.append(entry)
        return files

    def extract_comment_count(self, soup: BeautifulSoup) -> int:
        badge = soup.select_one(COMMENT_COUNT_SELECTOR)
        if badge is None:
            return 0
        try:
            return int(first_text(badge).strip())
        except ValueError:
            return 0

    def fetch_comments(self, item_id: int, now: int) -> List[Comment]:
        """
        Download and convert the comment feed for ``item_id``.

        A failed feed request or an unreadable body only costs the comments:
        the problem is logged and an empty list is returned. Comments whose
        posting time cannot be resolved are dropped.
        """
        response = self._get(self.comments_url(item_id))
        if response.status_code != 200:
            logger.warning("Unexpected status code for comments %d: %d",
                           item_id, response.status_code)
            return []

        try:
            raw_entries = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            logger.warning("Could not decode comments for %d: %s", item_id, e)
            return []
        if not isinstance(raw_entries, list):
            logger.warning("Comments for %d are not a list", item_id)
            return []

        comments = []
        for entry in raw_entries:
            try:
                raw = RawComment.from_json(entry)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning("Skipping malformed comment for %d: %s", item_id, e)
                continue

            posted_at = parse_relative_time(now, raw.posted)
            if posted_at is None:
                logger.warning("Failed to parse comment posted time: %s", raw.posted)
                continue

            comments.append(Comment(
                avatar=raw.avatar,
                class_=raw.class_,
                body=raw.comment,
                comment_id=raw.commentid,
                posted_at=posted_at,
                username=raw.username,
            ))

        if not comments:
            logger.warning("No comments found for %d", item_id)
        return comments
