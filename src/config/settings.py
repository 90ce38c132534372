"""Configuration settings for the Gaming News Crawler."""

from dataclasses import dataclass, field
from pathlib import Path
import json
import os

from dotenv import load_dotenv


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass(frozen=True)
class SourceSelectors:
    """Ordered CSS selector chains for each article field.

    Every value is a comma-separated list of alternatives, evaluated
    first-match-wins.
    """

    article_links: str
    title: str
    author: str
    content: str
    date: str
    entry_id: str
    summary: str = ""


@dataclass(frozen=True)
class SourceRule:
    """Declarative description of one news site.

    Attributes:
        name: Human-readable source identifier (e.g., "Atomix")
        base_url: Site root used to resolve relative links
        listing_path: Path of the article listing page
        selectors: Field selector chains
        next_page_selector: Pagination control selector, if the listing paginates
        next_page_loads_in_same_page: True when pagination replaces content in place
        date_format: strptime pattern for the date field, if known
        render_listing: Use the browser to load listing pages
        render_articles: Use the browser to load article pages
    """

    name: str
    base_url: str
    listing_path: str
    selectors: SourceSelectors
    next_page_selector: str | None = None
    next_page_loads_in_same_page: bool = False
    date_format: str | None = None
    render_listing: bool = True
    render_articles: bool = False

    @property
    def listing_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.listing_path}"

    @classmethod
    def from_dict(cls, data: dict) -> "SourceRule":
        """Build a rule from the camelCase JSON source configuration shape."""
        selectors = data.get("selectors") or {}
        return cls(
            name=data["name"],
            base_url=data["url"],
            listing_path=data.get("listingPath", ""),
            selectors=SourceSelectors(
                article_links=selectors.get("articleLinks", ""),
                title=selectors.get("title", ""),
                author=selectors.get("author", ""),
                content=selectors.get("content", ""),
                date=selectors.get("date", ""),
                entry_id=selectors.get("entryId", ""),
                summary=selectors.get("summary", ""),
            ),
            next_page_selector=data.get("nextPageSelector") or None,
            next_page_loads_in_same_page=bool(data.get("nextPageLoadsInSamePage", False)),
            date_format=data.get("dateFormat") or None,
            render_listing=bool(data.get("renderListing", True)),
            render_articles=bool(data.get("renderArticles", False)),
        )


DEFAULT_SOURCES: list[SourceRule] = [
    SourceRule(
        name="Atomix",
        base_url="https://atomix.vg",
        listing_path="/seccion/noticias",
        next_page_selector="div.pagination-center > span",
        next_page_loads_in_same_page=True,
        selectors=SourceSelectors(
            article_links='div.archivefit .post div.twelve.columns h2 a[href*="/"]',
            title="h1.featured-image-narrow-title",
            author="div.single-post-content div.row span.author-dark a[rel='author']",
            content="div.single-post-content div.row div.post-text",
            date="div.single-post-content div.row span.date-dark",
            entry_id="div.post",
        ),
    ),
]


@dataclass
class Settings:
    """Configuration settings for the crawler and Notion sync.

    Attributes:
        max_articles_per_run: Maximum article links kept per source
        max_pages: Maximum listing pages visited per source
        request_timeout_seconds: Per-attempt network/render timeout
        max_retries: Attempts per fetch before giving up
        retry_delay_seconds: Linear backoff base between attempts
        request_delay_seconds: Pause after each article fetch and Notion call
        selector_timeout_seconds: Wait for the link selector on a listing page
        pagination_timeout_seconds: Wait for content after a pagination click
        pagination_settle_seconds: Settle delay after an in-place pagination click
        user_agent: User-Agent header for all fetches
        headless: Run the browser headless
        max_rich_text_length: Per-paragraph-block text ceiling
        max_blocks: Per-article block ceiling
        notion_token: Notion integration token
        notion_database_id: Target Notion database
        sync_batch_size: Entries pushed to Notion per sync run
        max_sync_errors: Failed attempts before an entry is given up on
        store_path: JSON file holding extracted entries
        output_dir: Directory for run logs
        sources: Configured source rules
    """

    max_articles_per_run: int = 100
    max_pages: int = 10
    request_timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_delay_seconds: float = 2.0
    request_delay_seconds: float = 1.0
    selector_timeout_seconds: float = 10.0
    pagination_timeout_seconds: float = 5.0
    pagination_settle_seconds: float = 4.0
    user_agent: str = DEFAULT_USER_AGENT
    headless: bool = True
    max_rich_text_length: int = 2000
    max_blocks: int = 100
    notion_token: str = ""
    notion_database_id: str = ""
    sync_batch_size: int = 100
    max_sync_errors: int = 5
    store_path: str = "data/entries.json"
    output_dir: str = "src/output"
    sources: list[SourceRule] = field(default_factory=lambda: list(DEFAULT_SOURCES))

    @property
    def notion_configured(self) -> bool:
        return bool(self.notion_token and self.notion_database_id)

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If any configuration value is invalid.
        """
        errors: list[str] = []

        if self.max_articles_per_run < 1:
            errors.append("max_articles_per_run must be at least 1")

        if self.max_pages < 1:
            errors.append("max_pages must be at least 1")

        if self.max_retries < 1:
            errors.append("max_retries must be at least 1")

        if self.request_timeout_seconds <= 0.0:
            errors.append("request_timeout_seconds must be positive")

        for name in (
            "retry_delay_seconds",
            "request_delay_seconds",
            "selector_timeout_seconds",
            "pagination_timeout_seconds",
            "pagination_settle_seconds",
        ):
            if getattr(self, name) < 0.0:
                errors.append(f"{name} must be non-negative")

        if self.max_rich_text_length < 1:
            errors.append("max_rich_text_length must be at least 1")

        if self.max_blocks < 1:
            errors.append("max_blocks must be at least 1")

        if self.sync_batch_size < 1:
            errors.append("sync_batch_size must be at least 1")

        if self.max_sync_errors < 1:
            errors.append("max_sync_errors must be at least 1")

        if not self.sources:
            errors.append("No news sources configured")

        for rule in self.sources:
            # Static listings can only follow a control's href
            if (
                rule.next_page_selector
                and rule.next_page_loads_in_same_page
                and not rule.render_listing
            ):
                errors.append(
                    f"{rule.name}: in-place pagination requires render_listing"
                )

        if errors:
            raise ConfigurationError("; ".join(errors))


def _parse_float(value: str | None, default: float) -> float:
    """Parse a string to float, returning default if None or invalid."""
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_int(value: str | None, default: int) -> int:
    """Parse a string to int, returning default if None or invalid."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_bool(value: str | None, default: bool) -> bool:
    """Parse a truthy/falsy env string, returning default if None or unknown."""
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    return default


def load_sources(path: str | Path) -> list[SourceRule]:
    """Load source rules from a JSON file holding a list of source objects.

    Raises:
        ConfigurationError: If the file cannot be read or a rule is malformed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to read sources file {path}: {e}") from e

    if not isinstance(data, list):
        raise ConfigurationError(f"Sources file {path} must contain a JSON list")

    try:
        return [SourceRule.from_dict(item) for item in data]
    except (KeyError, TypeError, AttributeError) as e:
        raise ConfigurationError(f"Malformed source rule in {path}: {e}") from e


def load_settings(env_path: str | Path | None = None, validate: bool = True) -> Settings:
    """Load settings from environment variables and .env file.

    Args:
        env_path: Optional path to .env file. If None, searches for .env
                  in current directory and parent directories.
        validate: If True, validate settings after loading.

    Returns:
        Settings instance with loaded configuration.

    Raises:
        ConfigurationError: If the sources file is unreadable, or if
            validate=True and configuration is invalid.
    """
    if env_path:
        load_dotenv(env_path)
    else:
        load_dotenv()

    sources_file = os.getenv("SOURCES_FILE")
    sources = load_sources(sources_file) if sources_file else list(DEFAULT_SOURCES)

    settings = Settings(
        max_articles_per_run=_parse_int(os.getenv("MAX_ARTICLES_PER_RUN"), 100),
        max_pages=_parse_int(os.getenv("MAX_PAGES"), 10),
        request_timeout_seconds=_parse_float(
            os.getenv("REQUEST_TIMEOUT_SECONDS"), 30.0
        ),
        max_retries=_parse_int(os.getenv("MAX_RETRIES"), 3),
        retry_delay_seconds=_parse_float(os.getenv("RETRY_DELAY_SECONDS"), 2.0),
        request_delay_seconds=_parse_float(
            os.getenv("REQUEST_DELAY_SECONDS"), 1.0
        ),
        headless=_parse_bool(os.getenv("HEADLESS"), True),
        notion_token=os.getenv("NOTION_TOKEN", ""),
        notion_database_id=os.getenv("NOTION_DATABASE_ID", ""),
        sync_batch_size=_parse_int(os.getenv("SYNC_BATCH_SIZE"), 100),
        store_path=os.getenv("ENTRY_STORE_PATH", "data/entries.json"),
        output_dir=os.getenv("OUTPUT_DIR", "src/output"),
        sources=sources,
    )

    if validate:
        settings.validate()

    return settings
