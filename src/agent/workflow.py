"""Workflow orchestrator for crawl and Notion sync runs.

A crawl walks every configured source one at a time: discover article links,
extract each article in turn, and store new entries. A sync pushes stored
entries that are not yet in Notion. Failures are contained to the article,
entry or source they happen in; a run always moves on to the next unit.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Protocol, runtime_checkable

from src.config.settings import Settings, SourceRule
from src.connectors.notion import NotionConnector, SyncResult
from src.engines.content_blocks import ContentBlock, ContentBlockConverter
from src.engines.entry_store import EntryRecord, EntryStore
from src.engines.fetcher import BrowserSession, RetryingFetcher
from src.engines.field_extractor import FieldExtractor
from src.engines.link_discovery import LinkDiscoverer
from src.engines.observability import RunMetrics, create_run_metrics, log_stage_counts


logger = logging.getLogger(__name__)


@runtime_checkable
class PagePublisher(Protocol):
    """Protocol for destinations that accept converted entries."""

    def test_connection(self) -> bool:
        ...

    def create_page(self, record: EntryRecord, blocks: list[ContentBlock]) -> SyncResult:
        ...


def _crawl_source(
    rule: SourceRule,
    discoverer: LinkDiscoverer,
    extractor: FieldExtractor,
    store: EntryStore,
    metrics: RunMetrics,
    delay_seconds: float,
    sleep: Callable[[float], None],
) -> None:
    """Discover and extract every article of one source."""
    logger.info(f"Processing source: {rule.name}")
    links = discoverer.discover(rule)
    metrics.links_by_source[rule.name] = len(links)
    logger.info(f"Found {len(links)} links for {rule.name}")

    for link in links:
        metrics.processed_count += 1
        try:
            article = extractor.extract(link, rule)
            if article is None:
                logger.warning(f"Failed to scrape article: {link}")
                metrics.skipped_count += 1
                continue

            if store.save_if_new(article):
                metrics.saved_count += 1
                logger.info(f"Saved new article: {article.title}")
            else:
                metrics.skipped_count += 1
        except Exception as e:
            error_msg = f"Error processing article {link}: {e}"
            logger.error(error_msg)
            metrics.error_count += 1
            metrics.record_error(error_msg)
        finally:
            # Throttle between article fetches
            sleep(delay_seconds)


def run_crawl(
    settings: Settings,
    store: EntryStore,
    fetcher: RetryingFetcher | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunMetrics:
    """Crawl every configured source once.

    The browser session is owned by this run and released when it ends,
    whether or not the run fails.

    Args:
        settings: Crawl configuration and source rules
        store: Destination for new entries
        fetcher: Fetcher to use instead of one bound to a fresh browser session
        sleep: Delay function, replaceable in tests

    Returns:
        RunMetrics with per-source link counts and article outcomes
    """
    metrics = create_run_metrics()
    started = time.monotonic()
    logger.info("Starting crawler run...")

    with BrowserSession(settings) as session:
        fetcher = fetcher or RetryingFetcher(settings, session=session)
        discoverer = LinkDiscoverer(fetcher, settings, sleep=sleep)
        extractor = FieldExtractor(fetcher, settings)

        for rule in settings.sources:
            try:
                _crawl_source(
                    rule,
                    discoverer,
                    extractor,
                    store,
                    metrics,
                    settings.request_delay_seconds,
                    sleep,
                )
            except Exception as e:
                error_msg = f"Error processing source {rule.name}: {e}"
                logger.error(error_msg)
                metrics.error_count += 1
                metrics.record_error(error_msg)

    log_stage_counts("processed", metrics.processed_count)
    log_stage_counts("saved", metrics.saved_count)
    logger.info(
        f"Crawler run completed. Processed: {metrics.processed_count}, "
        f"Saved: {metrics.saved_count}, "
        f"Duration: {time.monotonic() - started:.1f}s"
    )
    return metrics


def run_sync(
    settings: Settings,
    store: EntryStore,
    publisher: PagePublisher | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunMetrics:
    """Publish pending entries to Notion.

    Entries are converted to blocks at sync time. A failed entry collects an
    error message and is retried on later runs until it reaches
    ``max_sync_errors``.

    Args:
        settings: Sync configuration and Notion credentials
        store: Entry store holding pending entries
        publisher: Destination to use instead of the configured Notion database
        sleep: Delay function, replaceable in tests

    Returns:
        RunMetrics with synced and failed counts
    """
    metrics = create_run_metrics()
    logger.info("Starting Notion sync run...")

    if publisher is None:
        if not settings.notion_configured:
            logger.warning("Notion token or database ID not configured, skipping sync")
            return metrics
        publisher = NotionConnector(
            settings.notion_token,
            settings.notion_database_id,
            timeout=settings.request_timeout_seconds,
        )

    if not publisher.test_connection():
        error_msg = "Notion connection failed, skipping sync"
        logger.error(error_msg)
        metrics.record_error(error_msg)
        return metrics

    converter = ContentBlockConverter(settings)
    entries = store.pending(settings.sync_batch_size)
    log_stage_counts("pending", len(entries))

    for record in entries:
        try:
            blocks = converter.convert(record.content, base_url=record.link)
            result = publisher.create_page(record, blocks)
            if result.success:
                store.mark_created(record.entry_id)
                metrics.synced_count += 1
                logger.info(f"Successfully synced to Notion: {record.title}")
            else:
                store.record_error(
                    record.entry_id,
                    f"Failed to create Notion page at {datetime.now().isoformat()}: {result.error}",
                    settings.max_sync_errors,
                )
                metrics.sync_error_count += 1
        except Exception as e:
            error_msg = f"Error syncing entry {record.entry_id} to Notion: {e}"
            logger.error(error_msg)
            store.record_error(record.entry_id, f"Sync error: {e}", settings.max_sync_errors)
            metrics.sync_error_count += 1
            metrics.record_error(error_msg)

        # Notion rate limit
        sleep(settings.request_delay_seconds)

    log_stage_counts("synced", metrics.synced_count)
    logger.info(
        f"Notion sync completed. Synced: {metrics.synced_count}, "
        f"Errors: {metrics.sync_error_count}"
    )
    return metrics
