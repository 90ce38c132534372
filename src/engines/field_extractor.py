"""Selector-driven article field extraction.

Every textual field is read through a selector fallback chain: the rule's
comma-separated alternatives are tried in order and the first non-empty result
wins. Field-level misses degrade to empty values; only a failed page fetch
skips the article.

Site quirks live in two explicit tables keyed by source name rather than in
the extraction logic itself:

- ``ENTRY_ID_OVERRIDES`` formats the numeric ``post-<id>`` class token
- ``DATE_TEXT_OVERRIDES`` cleans date text before ``strptime``
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from bs4 import BeautifulSoup
from dateutil import parser as date_parser
from dateutil.parser import ParserError
from soupsieve import SelectorSyntaxError

from src.config.settings import Settings, SourceRule
from src.engines.fetcher import FetchError, RetryingFetcher


logger = logging.getLogger(__name__)

POST_CLASS_PREFIX = "post-"


def _atomix_entry_id(rule: SourceRule, post_id: str) -> str:
    return f"{rule.base_url}/?p={post_id}"


def _atomix_date_text(text: str) -> str:
    # Abbreviated months carry a period ("12 sept. 2024"); only the first is dropped
    return text.replace(".", "", 1).strip()


ENTRY_ID_OVERRIDES: dict[str, Callable[[SourceRule, str], str]] = {
    "Atomix": _atomix_entry_id,
}

DATE_TEXT_OVERRIDES: dict[str, Callable[[str], str]] = {
    "Atomix": _atomix_date_text,
}


@dataclass(frozen=True)
class ExtractedArticle:
    """One article as read from its page, before persistence.

    Attributes:
        entry_id: Stable identity derived from markup or URL
        title: Article headline
        author: Byline text
        summary: Standfirst/summary text
        content: Raw HTML of the content elements
        link: Article URL
        date: Publication time, or extraction time when unparsable
        source: Name of the source rule that produced it
    """
    entry_id: str
    title: str
    author: str
    summary: str
    content: str
    link: str
    date: datetime
    source: str = ""


def split_selectors(chain: str | None) -> list[str]:
    """Split a comma-separated selector chain into its ordered alternatives."""
    if not chain:
        return []
    return [selector.strip() for selector in chain.split(",") if selector.strip()]


def _select(tree: BeautifulSoup, selector: str) -> list:
    try:
        return tree.select(selector)
    except SelectorSyntaxError as e:
        logger.debug(f"Ignoring invalid selector {selector!r}: {e}")
        return []


def select_text(tree: BeautifulSoup, chain: str | None) -> str:
    """Return the trimmed text of the first element matched by the chain.

    Each selector contributes only its first match; a selector whose first
    match has no text falls through to the next alternative.

    Example:
        >>> tree = BeautifulSoup("<h1 class='b'>Hi</h1>", "lxml")
        >>> select_text(tree, "h1.a, h1.b")
        'Hi'
    """
    for selector in split_selectors(chain):
        matches = _select(tree, selector)
        if matches:
            text = matches[0].get_text().strip()
            if text:
                return text
    return ""


def select_markup(tree: BeautifulSoup, chain: str | None) -> str:
    """Return the markup of every element matched by the first productive selector.

    Elements are joined with a blank line, keeping their own tags so that
    paragraph boundaries survive into block conversion.
    """
    for selector in split_selectors(chain):
        fragments = [str(el).strip() for el in _select(tree, selector)]
        fragments = [fragment for fragment in fragments if fragment]
        if fragments:
            return "\n\n".join(fragments)
    return ""


def _post_id_from_classes(classes: list[str]) -> str:
    for token in classes:
        if token.startswith(POST_CLASS_PREFIX):
            post_id = token.split("-")[1]
            if post_id:
                return post_id
    return ""


def derive_entry_id(tree: BeautifulSoup, url: str, rule: SourceRule) -> str:
    """Derive the article's stable identity.

    Looks for a ``post-<id>`` class token on the first element matched by each
    entryId selector; sources listed in ``ENTRY_ID_OVERRIDES`` format that id.
    Without one, the last URL path segment stripped to alphanumerics is used,
    so ``https://x.com/news/hello-world`` yields ``helloworld``.
    """
    override = ENTRY_ID_OVERRIDES.get(rule.name)
    for selector in split_selectors(rule.selectors.entry_id):
        matches = _select(tree, selector)
        if not matches:
            continue
        post_id = _post_id_from_classes(matches[0].get("class") or [])
        if post_id:
            return override(rule, post_id) if override else post_id

    last_segment = url.split("?")[0].rstrip("/").split("/")[-1]
    return re.sub(r"[^a-zA-Z0-9]", "", last_segment)


def to_local_naive(value: datetime) -> datetime:
    """Convert an offset-aware datetime to naive local time; naive values pass through.

    Stored entries are compared when ordering the sync queue, so every date
    must share the naive local form that ``datetime.now()`` returns.
    """
    if value.tzinfo is None:
        return value
    try:
        return value.astimezone().replace(tzinfo=None)
    except (OverflowError, OSError, ValueError):
        return value.replace(tzinfo=None)


def parse_article_date(
    text: str,
    rule: SourceRule,
    now: Callable[[], datetime] = datetime.now,
) -> datetime:
    """Parse an article's date text, falling back to ``now()``. Never raises.

    The result is always naive local time, whatever offset the text carried.
    """
    return to_local_naive(_parse_date_text(text, rule, now))


def _parse_date_text(
    text: str,
    rule: SourceRule,
    now: Callable[[], datetime],
) -> datetime:
    text = (text or "").strip()
    if not text:
        return now()

    if rule.date_format:
        normalize = DATE_TEXT_OVERRIDES.get(rule.name)
        if normalize:
            text = normalize(text)
        try:
            return datetime.strptime(text, rule.date_format)
        except ValueError:
            logger.warning(f"Date {text!r} does not match {rule.date_format!r}")
            return now()

    try:
        return date_parser.parse(text)
    except (ParserError, ValueError, OverflowError, TypeError) as e:
        logger.warning(f"Failed to parse date '{text}': {e}")
        return now()


def extract_from_tree(
    url: str,
    tree: BeautifulSoup,
    rule: SourceRule,
    now: Callable[[], datetime] = datetime.now,
) -> ExtractedArticle:
    """Extract every field of one article page. Pure apart from the clock fallback."""
    selectors = rule.selectors
    return ExtractedArticle(
        entry_id=derive_entry_id(tree, url, rule),
        title=select_text(tree, selectors.title),
        author=select_text(tree, selectors.author),
        summary=select_text(tree, selectors.summary),
        content=select_markup(tree, selectors.content),
        link=url,
        date=parse_article_date(select_text(tree, selectors.date), rule, now),
        source=rule.name,
    )


class FieldExtractor:
    """Fetches article pages and extracts their fields."""

    def __init__(self, fetcher: RetryingFetcher, settings: Settings):
        self.fetcher = fetcher
        self.settings = settings

    def extract(self, url: str, rule: SourceRule) -> ExtractedArticle | None:
        """Fetch and extract one article.

        Returns:
            The extracted article, or None when the page could not be retrieved
        """
        try:
            tree = self.fetcher.fetch_tree(url, rendered=rule.render_articles)
        except FetchError as e:
            logger.error(f"Failed to scrape article {url}: {e}")
            return None

        article = extract_from_tree(url, tree, rule)
        if not article.content:
            logger.warning(f"Content selector not found for {url}")
        logger.info(f"Scraped article data from {url}")
        return article
