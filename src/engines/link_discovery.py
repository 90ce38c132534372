"""Paginated article link discovery for configured sources."""

import logging
import time
from typing import Callable, Iterator
from urllib.parse import urljoin, urlparse

from src.config.settings import Settings, SourceRule
from src.engines.fetcher import FetchError, ListingPage, RetryingFetcher


logger = logging.getLogger(__name__)


def resolve_link(base_url: str, href: str) -> str:
    """Resolve an href found on a listing page against the source's base URL.

    Example:
        >>> resolve_link("https://atomix.vg", "/noticia/uno")
        'https://atomix.vg/noticia/uno'
    """
    return urljoin(base_url.rstrip("/") + "/", href.strip())


def is_valid_article_link(link: str) -> bool:
    """Return True for absolute http(s) links without fragments or script URLs."""
    if "#" in link or "javascript:" in link.lower():
        return False
    parsed = urlparse(link)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def finalize_links(links: list[str], limit: int) -> list[str]:
    """Deduplicate by exact string, drop invalid links, and cap at ``limit``.

    First-seen order is kept so the cap favours links from earlier pages.
    """
    unique = dict.fromkeys(link for link in links if is_valid_article_link(link))
    return list(unique)[:limit]


class LinkDiscoverer:
    """Walks a source's listing pages and collects article URLs.

    Attributes:
        fetcher: Retrying fetcher used to open the listing page
        settings: Page, result-count and wait limits
    """

    def __init__(
        self,
        fetcher: RetryingFetcher,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetcher = fetcher
        self.settings = settings
        self._sleep = sleep

    def discover(self, rule: SourceRule) -> list[str]:
        """Collect article links for ``rule``.

        Errors part-way through pagination keep the links gathered so far.

        Args:
            rule: Source whose listing should be walked

        Returns:
            Deduplicated, filtered links, at most ``max_articles_per_run``
        """
        try:
            page = self.fetcher.open_listing(rule.listing_url, rendered=rule.render_listing)
        except FetchError as e:
            logger.error(f"Failed to get article links from {rule.base_url}: {e}")
            return []

        links: list[str] = []
        try:
            for page_links in self._iter_pages(page, rule):
                links.extend(page_links)
        except Exception as e:
            logger.error(
                f"Link discovery for {rule.name} stopped early after "
                f"{len(links)} links: {e}"
            )
        finally:
            page.close()

        result = finalize_links(links, self.settings.max_articles_per_run)
        logger.info(f"Found {len(result)} article links from {rule.base_url}")
        return result

    def _iter_pages(self, page: ListingPage, rule: SourceRule) -> Iterator[list[str]]:
        """Yield the resolved links of each listing page in turn."""
        link_selector = rule.selectors.article_links
        current_page = 1

        while current_page <= self.settings.max_pages:
            if not page.wait_for(link_selector, self.settings.selector_timeout_seconds):
                logger.warning(f"Selector {link_selector} not found on page {current_page}")
                return

            page_links = [resolve_link(rule.base_url, href) for href in page.hrefs(link_selector)]
            logger.info(f"Found {len(page_links)} links on page {current_page}")
            yield page_links

            if not rule.next_page_selector:
                return

            if not page.wait_for(rule.next_page_selector, self.settings.pagination_timeout_seconds):
                logger.info("No more pages found")
                return

            try:
                if rule.next_page_loads_in_same_page:
                    page.click_in_place(rule.next_page_selector)
                    self._sleep(self.settings.pagination_settle_seconds)
                    if not page.wait_for(link_selector, self.settings.pagination_timeout_seconds):
                        logger.warning(f"Content did not reload after page {current_page}")
                        return
                else:
                    page.click_and_navigate(rule.next_page_selector)
            except Exception as e:
                logger.warning(f"Failed to navigate to next page: {e}")
                return

            current_page += 1
