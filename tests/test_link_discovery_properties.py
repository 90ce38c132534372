"""Property-based tests for article link discovery.

Feature: gaming-news-crawler
Covers pagination limits, link filtering and partial results.
"""

from unittest.mock import Mock

from hypothesis import given, settings, strategies as st

from src.config.settings import Settings, SourceRule, SourceSelectors
from src.engines.fetcher import FetchError
from src.engines.link_discovery import (
    LinkDiscoverer,
    finalize_links,
    is_valid_article_link,
    resolve_link,
)


LINK_SELECTOR = "div.archivefit .post h2 a"
NEXT_SELECTOR = "div.pagination-center > span"


class FakeListingPage:
    """Listing page that serves a fixed sequence of link pages."""

    def __init__(self, pages: list[list[str]], next_always: bool = False,
                 fail_on_click: int | None = None):
        self.pages = pages
        self.index = 0
        self.next_always = next_always
        self.fail_on_click = fail_on_click
        self.clicks = 0
        self.closed = False

    def wait_for(self, selector: str, timeout: float) -> bool:
        if selector == NEXT_SELECTOR:
            return self.next_always or self.index + 1 < len(self.pages)
        return True

    def hrefs(self, selector: str) -> list[str]:
        return list(self.pages[min(self.index, len(self.pages) - 1)])

    def _advance(self) -> None:
        self.clicks += 1
        if self.fail_on_click is not None and self.clicks >= self.fail_on_click:
            raise RuntimeError("page crashed")
        self.index += 1

    def click_in_place(self, selector: str) -> None:
        self._advance()

    def click_and_navigate(self, selector: str) -> None:
        self._advance()

    def close(self) -> None:
        self.closed = True


def _rule(next_selector: str | None = NEXT_SELECTOR, same_page: bool = False) -> SourceRule:
    return SourceRule(
        name="Test",
        base_url="https://site.example",
        listing_path="/news",
        selectors=SourceSelectors(
            article_links=LINK_SELECTOR,
            title="h1",
            author=".author",
            content=".body",
            date=".date",
            entry_id=".post",
        ),
        next_page_selector=next_selector,
        next_page_loads_in_same_page=same_page,
    )


def _discoverer(page, **overrides) -> tuple[LinkDiscoverer, Mock, Mock]:
    fetcher = Mock()
    fetcher.open_listing.return_value = page
    sleep = Mock()
    return LinkDiscoverer(fetcher, Settings(**overrides), sleep=sleep), fetcher, sleep


link_strategy = st.one_of(
    st.from_regex(r"https://site\.example/noticia/[a-z]{1,8}", fullmatch=True),
    st.sampled_from([
        "https://site.example/noticia/a#comments",
        "javascript:void(0)",
        "mailto:editor@site.example",
        "/relative/only",
    ]),
)


class TestLinkDiscovery:
    """Tests for LinkDiscoverer.discover."""

    def test_single_page_returns_all_links(self):
        """A listing with three anchors and no next page SHALL yield three links."""
        page = FakeListingPage([["/a", "/b", "https://site.example/c"]])
        discoverer, fetcher, _ = _discoverer(page)

        links = discoverer.discover(_rule(next_selector=None))

        assert links == [
            "https://site.example/a",
            "https://site.example/b",
            "https://site.example/c",
        ]
        fetcher.open_listing.assert_called_once_with("https://site.example/news", rendered=True)
        assert page.closed

    @given(max_pages=st.integers(min_value=1, max_value=8))
    @settings(max_examples=30)
    def test_pagination_stops_at_max_pages(self, max_pages: int):
        """With an endless next control, discovery SHALL visit at most max_pages pages."""
        pages = [[f"/p{n}"] for n in range(20)]
        page = FakeListingPage(pages, next_always=True)
        discoverer, _, _ = _discoverer(page, max_pages=max_pages)

        links = discoverer.discover(_rule())

        assert len(links) == max_pages
        assert page.clicks == max_pages

    def test_missing_next_control_ends_discovery(self):
        page = FakeListingPage([["/a"], ["/b"]])
        discoverer, _, _ = _discoverer(page)

        links = discoverer.discover(_rule())

        assert links == ["https://site.example/a", "https://site.example/b"]
        assert page.clicks == 1

    def test_same_page_mode_waits_for_settle(self):
        page = FakeListingPage([["/a"], ["/b"]])
        discoverer, _, sleep = _discoverer(page, pagination_settle_seconds=4.0)

        discoverer.discover(_rule(same_page=True))

        sleep.assert_called_once_with(4.0)

    def test_error_mid_pagination_keeps_partial_links(self):
        """A failure on a later page SHALL keep links from earlier pages."""
        page = FakeListingPage([["/a", "/b"], ["/c"]], next_always=True, fail_on_click=1)
        discoverer, _, _ = _discoverer(page)

        links = discoverer.discover(_rule())

        assert links == ["https://site.example/a", "https://site.example/b"]
        assert page.closed

    def test_listing_fetch_failure_returns_empty(self):
        fetcher = Mock()
        fetcher.open_listing.side_effect = FetchError(
            "https://site.example/news", 3, RuntimeError("down")
        )
        discoverer = LinkDiscoverer(fetcher, Settings(), sleep=Mock())

        assert discoverer.discover(_rule()) == []

    def test_missing_link_selector_returns_empty(self):
        page = FakeListingPage([["/a"]])
        page.wait_for = Mock(return_value=False)
        discoverer, _, _ = _discoverer(page)

        assert discoverer.discover(_rule()) == []

    def test_duplicate_links_across_pages_are_merged(self):
        page = FakeListingPage([["/a", "/b"], ["/b", "/c"]])
        discoverer, _, _ = _discoverer(page)

        links = discoverer.discover(_rule())

        assert links == [
            "https://site.example/a",
            "https://site.example/b",
            "https://site.example/c",
        ]

    def test_result_is_capped(self):
        page = FakeListingPage([[f"/p{n}" for n in range(30)]])
        discoverer, _, _ = _discoverer(page, max_articles_per_run=5)

        links = discoverer.discover(_rule(next_selector=None))

        assert links == [f"https://site.example/p{n}" for n in range(5)]


class TestLinkFiltering:
    """Property tests for link resolution and filtering."""

    @given(links=st.lists(link_strategy, max_size=40), limit=st.integers(min_value=1, max_value=50))
    @settings(max_examples=100)
    def test_finalize_links_properties(self, links: list[str], limit: int):
        """Output SHALL be unique, valid, capped and in first-seen order."""
        result = finalize_links(links, limit)

        assert len(result) <= limit
        assert len(result) == len(set(result))
        for link in result:
            assert "#" not in link
            assert "javascript:" not in link
            assert link.startswith("https://")
        expected_order = [link for link in dict.fromkeys(links) if link in result]
        assert result == expected_order

    def test_resolve_link_handles_relative_and_absolute(self):
        assert resolve_link("https://atomix.vg", "/noticia/uno") == "https://atomix.vg/noticia/uno"
        assert resolve_link("https://atomix.vg/", "noticia/dos") == "https://atomix.vg/noticia/dos"
        assert resolve_link("https://atomix.vg", "https://other.example/x") == "https://other.example/x"

    def test_is_valid_article_link(self):
        assert is_valid_article_link("https://atomix.vg/noticia/uno")
        assert not is_valid_article_link("https://atomix.vg/noticia/uno#respond")
        assert not is_valid_article_link("javascript:void(0)")
        assert not is_valid_article_link("ftp://atomix.vg/file")
