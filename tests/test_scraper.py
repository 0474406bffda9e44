"""Tests for detail page extraction (no network access required)."""

import httpx
import pytest

from catalog_miner.config import MinerConfig
from catalog_miner.exceptions import ExtractionError, StructuralError, TransportError
from catalog_miner.models import DELETED, FileEntry
from catalog_miner.scraper import (
    NOT_FOUND_MARKERS,
    ItemScraper,
    dedupe_title,
    parse_identity_link,
)

NOW = 1_700_000_000
BASE_URL = "https://catalog.test"


def detail_page(
    heading="Foo Ba...",
    identity='<a href="/movie/603/the-matrix/">The Matrix</a>',
    size="1.5 GB",
    uploaded="2 years ago",
    description="<p>Foo Bar</p><p>more text</p>",
    comment_count="2",
    extra_span="",
    seeders="42",
):
    return f"""
<html>
<body>
<div class="box-info-heading"><h1>{heading}</h1></div>
<div class="torrent-detail-info"><h3>{identity}</h3></div>
<ul class="list"><li><a href="magnet:?xt=1">Magnet Download</a></li></ul>
<ul class="list">
  <li><strong>Category</strong> <span>Movies</span></li>
  <li><strong>Type</strong> <span>HD</span></li>
  <li><strong>Language</strong> <span>English</span></li>
  <li><strong>Total size</strong> <span>{size}</span></li>
  <li><strong>Uploaded By</strong> <span> <a href="/user/bob/"> bob </a></span></li>
</ul>
<ul class="list">
  <li><strong>Downloads</strong> <span>1234</span></li>
  <li><strong>Last checked</strong> <span>3 hours ago</span></li>
  <li><strong>Date uploaded</strong> <span>{uploaded}</span></li>
  <li><strong>Seeders</strong> <span class="seeds">{seeders}</span></li>
  <li><strong>Leechers</strong> <span class="leeches">7</span></li>
  {extra_span}
</ul>
<div class="infohash-box"><p><strong>Infohash :</strong> <span> ABCDEF0123 </span></p></div>
<div class="torrent-tabs">
  <div class="tab-nav"><ul>
    <li><a href="#description">Description</a></li>
    <li><a href="#comments">Comments<span>{comment_count}</span></a></li>
  </ul></div>
  <div id="description">{description}
    <img data-original="https://img.example/1.jpg">
    <img src="https://img.example/no-lazy.jpg">
    <img data-original="https://img.example/1.jpg">
  </div>
  <div id="files"><ul>
    <li>Movie (Part 1) (1.2 GB)</li>
    <li>broken</li>
    <li>readme.txt (12 B)</li>
  </ul></div>
  <div id="tracker-list"><ul>
    <li>udp://tracker.one:80/announce</li>
    <li> udp://tracker.two:1337/announce </li>
  </ul></div>
</div>
</body>
</html>
"""


COMMENTS = [
    {"avatar": "https://img.example/a.png", "class": "Uploader", "comment": "thanks",
     "commentid": 5, "posted": "1 day ago", "username": "alice"},
    {"avatar": "", "comment": "hi", "commentid": 6, "posted": "2 weeks ago"},
    {"avatar": "", "class": "User", "comment": "bad time", "commentid": 7,
     "posted": "yesterday", "username": "carol"},
]

NOT_FOUND_PAGE = "<html><body><h1>Error</h1><p>Bad Torrent ID.</p></body></html>"


class Site:
    """Mock catalog serving one detail page and one comment feed."""

    def __init__(self, page=None, page_status=200, comments=None, comments_status=200):
        self.page = detail_page() if page is None else page
        self.page_status = page_status
        self.comments = COMMENTS if comments is None else comments
        self.comments_status = comments_status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/comments.php":
            if isinstance(self.comments, str):
                return httpx.Response(self.comments_status, text=self.comments)
            return httpx.Response(self.comments_status, json=self.comments)
        return httpx.Response(self.page_status, text=self.page)

    @property
    def comment_requests(self):
        return [r for r in self.requests if r.url.path == "/comments.php"]


def make_scraper(site):
    client = httpx.Client(transport=httpx.MockTransport(site))
    return ItemScraper(MinerConfig(base_url=BASE_URL), client=client, clock=lambda: NOW)


class TestFetchItem:
    def test_full_page(self):
        site = Site()
        item = make_scraper(site).fetch_item(4321)

        assert item.name == "Foo Bar"
        assert item.description == "more text"
        assert item.infohash == "ABCDEF0123"
        assert item.category == "Movies"
        assert item.type == "HD"
        assert item.language == "English"
        assert item.total_size == int(1.5 * 1024 ** 3)
        assert item.uploader == "bob"
        assert item.download_count == 1234
        assert item.last_checked_at == NOW - 3 * 3600
        assert item.uploaded_at == NOW - 2 * 365 * 86400
        assert item.seeder_count == 42
        assert item.leecher_count == 7
        assert item.scraped_at == NOW
        assert item.external_movie_id == 603
        assert item.external_series_id is None

    def test_requested_urls(self):
        site = Site()
        make_scraper(site).fetch_item(4321)
        assert site.requests[0].url.path == "/torrent/4321/catalog-miner/"
        assert site.comment_requests[0].url.params["torrentid"] == "4321"

    def test_images_keep_order_and_duplicates(self):
        item = make_scraper(Site()).fetch_item(1)
        assert item.images == ["https://img.example/1.jpg", "https://img.example/1.jpg"]

    def test_trackers(self):
        item = make_scraper(Site()).fetch_item(1)
        assert item.trackers == [
            "udp://tracker.one:80/announce",
            "udp://tracker.two:1337/announce",
        ]

    def test_malformed_files_are_dropped(self):
        item = make_scraper(Site()).fetch_item(1)
        assert item.files == [
            FileEntry(name="Movie (Part 1)", size_bytes=int(1.2 * 1024 ** 3)),
            FileEntry(name="readme.txt", size_bytes=12),
        ]

    def test_comments(self):
        item = make_scraper(Site()).fetch_item(1)
        assert [c.comment_id for c in item.comments] == [5, 6]
        first, second = item.comments
        assert first.posted_at == NOW - 86400
        assert first.username == "alice"
        assert first.class_ == "Uploader"
        assert second.posted_at == NOW - 14 * 86400
        assert second.username == DELETED
        assert second.class_ == DELETED

    def test_no_comment_request_without_comments(self):
        site = Site(page=detail_page(comment_count="0"))
        item = make_scraper(site).fetch_item(1)
        assert item.comments == []
        assert site.comment_requests == []

    def test_comment_feed_failure_is_soft(self):
        site = Site(comments_status=500, comments=[])
        item = make_scraper(site).fetch_item(1)
        assert item.comments == []
        assert item.name == "Foo Bar"

    def test_undecodable_comment_feed_is_soft(self):
        site = Site(comments="<html>oops</html>")
        item = make_scraper(site).fetch_item(1)
        assert item.comments == []

    def test_not_found_marker(self):
        site = Site(page=NOT_FOUND_PAGE)
        assert make_scraper(site).fetch_item(1) is None
        assert site.comment_requests == []

    @pytest.mark.parametrize("marker", NOT_FOUND_MARKERS)
    def test_each_not_found_marker(self, marker):
        site = Site(page=f"<html><body><p>{marker}</p></body></html>")
        assert make_scraper(site).fetch_item(1) is None

    @pytest.mark.parametrize("marker", NOT_FOUND_MARKERS)
    def test_marker_wins_over_complete_layout(self, marker):
        page = detail_page().replace("</body>", f"<p>{marker}</p></body>")
        site = Site(page=page)
        assert make_scraper(site).fetch_item(1) is None
        assert site.comment_requests == []

    def test_marker_wins_over_span_count(self):
        page = detail_page(extra_span="<li><span>extra</span></li>").replace(
            "</body>", "<p>This torrent is pending moderation</p></body>")
        assert make_scraper(Site(page=page)).fetch_item(1) is None

    def test_not_found_marker_with_error_status(self):
        site = Site(page=NOT_FOUND_PAGE, page_status=404)
        assert make_scraper(site).fetch_item(1) is None

    def test_error_status(self):
        site = Site(page="<html>Service Unavailable</html>", page_status=503)
        with pytest.raises(TransportError):
            make_scraper(site).fetch_item(1)

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        scraper = ItemScraper(MinerConfig(base_url=BASE_URL), client=client)
        with pytest.raises(TransportError):
            scraper.fetch_item(1)


class TestStructure:
    def _extract(self, html):
        return make_scraper(Site()).extract(1, html, NOW)

    def test_wrong_list_count(self):
        with pytest.raises(StructuralError):
            self._extract("<html><body><ul class='list'></ul></body></html>")

    def test_wrong_span_count(self):
        with pytest.raises(StructuralError):
            self._extract(detail_page(extra_span="<li><span>extra</span></li>"))

    def test_bad_size_is_fatal(self):
        with pytest.raises(ExtractionError):
            self._extract(detail_page(size="huge"))

    def test_bad_time_is_fatal(self):
        with pytest.raises(ExtractionError):
            self._extract(detail_page(uploaded="long ago"))

    def test_missing_infohash_is_fatal(self):
        html = detail_page().replace('class="infohash-box"', 'class="other-box"')
        with pytest.raises(ExtractionError):
            self._extract(html)

    def test_missing_description_is_fatal(self):
        html = detail_page().replace('id="description"', 'id="summary"')
        with pytest.raises(ExtractionError):
            self._extract(html)

    @pytest.mark.parametrize("seeders", ["-42", "+5", "1_000", "4.0", ""])
    def test_signed_or_malformed_count_is_fatal(self, seeders):
        with pytest.raises(ExtractionError):
            self._extract(detail_page(seeders=seeders))

    def test_no_description_sentinel(self):
        item = self._extract(detail_page(
            heading="Plain Title", description="<p>No description given.</p>",
            comment_count="0",
        ))
        assert item.name == "Plain Title"
        assert item.description == ""

    def test_series_link(self):
        item = self._extract(detail_page(
            identity='<a href="/series/some-show/">Some Show</a>', comment_count="0",
        ))
        assert item.external_series_id == "some-show"
        assert item.external_movie_id is None

    def test_unexpected_link_is_soft(self):
        item = self._extract(detail_page(
            identity='<a href="/movie/not-a-number/x/">?</a>', comment_count="0",
        ))
        assert item.external_movie_id is None
        assert item.external_series_id is None

    def test_missing_link(self):
        item = self._extract(detail_page(identity="No link", comment_count="0"))
        assert item.external_movie_id is None
        assert item.external_series_id is None


class TestParseIdentityLink:
    def test_movie(self):
        assert parse_identity_link("/movie/603/the-matrix/") == (603, None)

    def test_series(self):
        assert parse_identity_link("/series/some-show/") == (None, "some-show")

    @pytest.mark.parametrize("href", [
        "/movie/603/",
        "/movie/603/a/b/",
        "/movie/abc/slug/",
        "/series/",
        "/series/a/b/",
        "/user/bob/",
    ])
    def test_soft_failures(self, href):
        assert parse_identity_link(href) == (None, None)


class TestDedupeTitle:
    def test_truncated_title_recovered(self):
        assert dedupe_title("Foo Ba", True, "Foo Bar\nmore text") == ("Foo Bar", "more text")

    def test_full_title_repeated(self):
        assert dedupe_title("Foo", False, "Foo\nBar") == ("Foo", "Bar")

    def test_full_title_prefix_only(self):
        assert dedupe_title("Foo", False, "Foobar\nBaz") == ("Foo", "Foobar\nBaz")

    def test_truncated_title_not_repeated(self):
        assert dedupe_title("Foo Ba", True, "Other text") == ("Foo Ba", "Other text")

    def test_single_line_description(self):
        assert dedupe_title("Foo Ba", True, "Foo Bar") == ("Foo Bar", "")
