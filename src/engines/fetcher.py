"""Retrying page retrieval with static and browser-rendered strategies.

Both strategies hand callers the same queryable tree (BeautifulSoup backed by
lxml), so extraction never needs to know which one produced the markup.
Listing pages that paginate through script need a live page instead; those
are wrapped in a small ``ListingPage`` interface with one implementation per
strategy.
"""

import logging
import time
from typing import Any, Callable, Protocol, TypeVar, runtime_checkable
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from src.config.settings import Settings


logger = logging.getLogger(__name__)

T = TypeVar("T")

VIEWPORT = {"width": 1366, "height": 768}


class FetchError(Exception):
    """Raised when a page cannot be retrieved after all retry attempts."""

    def __init__(self, url: str, attempts: int, cause: BaseException):
        super().__init__(f"Failed to fetch {url} after {attempts} attempts: {cause}")
        self.url = url
        self.attempts = attempts


def parse_html(markup: str) -> BeautifulSoup:
    """Parse markup into the tree type every extraction stage works on."""
    return BeautifulSoup(markup, "lxml")


@runtime_checkable
class ListingPage(Protocol):
    """A listing page that link discovery can query and paginate."""

    def wait_for(self, selector: str, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for ``selector``; False if it never appears."""
        ...

    def hrefs(self, selector: str) -> list[str]:
        """Return the raw href of every element matching ``selector``."""
        ...

    def click_in_place(self, selector: str) -> None:
        """Trigger the control so the page re-renders its content in place."""
        ...

    def click_and_navigate(self, selector: str) -> None:
        """Trigger the control and wait for the resulting page load."""
        ...

    def close(self) -> None:
        ...


class BrowserSession:
    """One headless browser, launched lazily and reused for a whole run.

    Every fetch gets a fresh page (and with it a fresh browsing context), so
    navigation and DOM state from an earlier URL never leaks into a later one.
    The session must be closed by its owner; it is a context manager so the
    release happens on every exit path.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._playwright: Any = None
        self._browser: Any = None

    def __enter__(self) -> "BrowserSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _ensure_browser(self) -> Any:
        if self._browser is None:
            logger.debug("Launching headless browser")
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.settings.headless,
                args=[
                    "--no-sandbox",
                    "--disable-setuid-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-gpu",
                ],
            )
        return self._browser

    def open(self, url: str) -> Any:
        """Open ``url`` in a new page and wait for the network to settle.

        The page is closed again if navigation fails.
        """
        browser = self._ensure_browser()
        page = browser.new_page(user_agent=self.settings.user_agent, viewport=VIEWPORT)
        timeout_ms = self.settings.request_timeout_seconds * 1000
        page.set_default_timeout(timeout_ms)
        try:
            page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        except Exception:
            page.close()
            raise
        return page

    def close(self) -> None:
        """Release the browser and the Playwright driver. Safe to call twice."""
        browser, driver = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        try:
            if browser is not None:
                browser.close()
        finally:
            if driver is not None:
                driver.stop()
                logger.debug("Headless browser released")


class PlaywrightListingPage:
    """ListingPage backed by a live browser page."""

    def __init__(self, page: Any):
        self._page = page

    def wait_for(self, selector: str, timeout: float) -> bool:
        try:
            self._page.wait_for_selector(selector, timeout=timeout * 1000, state="attached")
        except PlaywrightError:
            return False
        return True

    def hrefs(self, selector: str) -> list[str]:
        values = self._page.eval_on_selector_all(
            selector, "elements => elements.map(el => el.getAttribute('href'))"
        )
        return [value for value in values if value]

    def click_in_place(self, selector: str) -> None:
        self._page.evaluate(
            "selector => { const el = document.querySelector(selector); if (el) el.click(); }",
            selector,
        )

    def click_and_navigate(self, selector: str) -> None:
        with self._page.expect_navigation(wait_until="networkidle"):
            self._page.click(selector)

    def content(self) -> str:
        return self._page.content()

    def close(self) -> None:
        self._page.close()


class StaticListingPage:
    """ListingPage backed by a parsed HTML document.

    Navigation follows the pagination control's href through the fetcher.
    In-place reloads need script execution and are not supported.
    """

    def __init__(self, url: str, tree: BeautifulSoup, fetcher: "RetryingFetcher"):
        self.url = url
        self.tree = tree
        self._fetcher = fetcher

    def wait_for(self, selector: str, timeout: float) -> bool:
        return self.tree.select_one(selector) is not None

    def hrefs(self, selector: str) -> list[str]:
        return [el.get("href") for el in self.tree.select(selector) if el.get("href")]

    def click_in_place(self, selector: str) -> None:
        raise NotImplementedError(
            "In-place pagination requires a rendered listing page"
        )

    def click_and_navigate(self, selector: str) -> None:
        control = self.tree.select_one(selector)
        if control is None:
            raise ValueError(f"Pagination control {selector} not found")
        anchor = control if control.name == "a" else (
            control.find_parent("a") or control.find("a")
        )
        href = anchor.get("href") if anchor is not None else None
        if not href:
            raise ValueError(f"Pagination control {selector} has no href")
        next_url = urljoin(self.url, href)
        self.tree = self._fetcher.fetch_document(next_url)
        self.url = next_url

    def close(self) -> None:
        pass


class RetryingFetcher:
    """Retrieves pages with bounded, linearly backed-off retries.

    Attributes:
        settings: Retry, timeout and user agent configuration
        session: Browser session used for rendered fetches, owned by the caller
    """

    def __init__(
        self,
        settings: Settings,
        session: BrowserSession | None = None,
        sleep: Callable[[float], None] = time.sleep,
        http: requests.Session | None = None,
    ):
        self.settings = settings
        self.session = session
        self._sleep = sleep
        self._http = http or requests.Session()
        self._http.headers.update({
            "User-Agent": settings.user_agent,
            "Accept": "text/html,application/xhtml+xml",
        })

    def retry(self, operation: Callable[[], T], url: str) -> T:
        """Run ``operation`` until it succeeds or the attempt budget is spent.

        Waits ``retry_delay_seconds * attempt`` between attempts.

        Raises:
            FetchError: Chained to the final attempt's exception.
        """
        attempts = self.settings.max_retries
        delay = self.settings.retry_delay_seconds

        def log_failure(state: RetryCallState) -> None:
            logger.warning(
                f"Failed to fetch {url} on attempt {state.attempt_number}: "
                f"{state.outcome.exception()}"
            )

        retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_incrementing(start=delay, increment=delay),
            retry=retry_if_exception_type(Exception),
            before_sleep=log_failure,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            return retrying(operation)
        except Exception as e:
            logger.warning(f"Giving up on {url} after {attempts} attempts: {e}")
            raise FetchError(url, attempts, e) from e

    def fetch_document(self, url: str) -> BeautifulSoup:
        """Fetch ``url`` over plain HTTP and parse it. No script execution."""
        return self.retry(lambda: parse_html(self._get(url)), url)

    def fetch_rendered_document(self, url: str) -> BeautifulSoup:
        """Render ``url`` in the browser and parse the resulting DOM."""
        session = self._require_session()

        def render() -> BeautifulSoup:
            page = session.open(url)
            try:
                return parse_html(page.content())
            finally:
                page.close()

        return self.retry(render, url)

    def fetch_tree(self, url: str, rendered: bool = False) -> BeautifulSoup:
        if rendered:
            return self.fetch_rendered_document(url)
        return self.fetch_document(url)

    def open_listing(self, url: str, rendered: bool = True) -> ListingPage:
        """Open a listing page that can be queried and paginated."""
        if rendered:
            session = self._require_session()
            return PlaywrightListingPage(self.retry(lambda: session.open(url), url))
        return StaticListingPage(url, self.fetch_document(url), self)

    def _get(self, url: str) -> str:
        logger.debug(f"Fetching URL: {url}")
        response = self._http.get(url, timeout=self.settings.request_timeout_seconds)
        response.raise_for_status()
        return response.text

    def _require_session(self) -> BrowserSession:
        if self.session is None:
            raise RuntimeError("Rendered fetches need a BrowserSession")
        return self.session
