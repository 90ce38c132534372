"""Runner module for the Gaming News Crawler.

This module wires together settings, the entry store and the workflows.
"""

import logging
import sys

from src.agent.workflow import run_crawl, run_sync
from src.config.settings import ConfigurationError, load_settings
from src.engines.entry_store import EntryStore
from src.engines.observability import create_run_metrics, write_run_log


# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_PIPELINE_ERROR = 2

COMMANDS = ("crawl", "sync", "all")


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: If True, set log level to DEBUG. Otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def run(command: str = "all", verbose: bool = False) -> int:
    """Run a crawl, a Notion sync, or both.

    Args:
        command: One of "crawl", "sync" or "all"
        verbose: If True, enable verbose/debug logging.

    Returns:
        Exit code:
        - 0: Success
        - 1: Configuration error
        - 2: Run failed unexpectedly
    """
    _setup_logging(verbose)
    logger = logging.getLogger(__name__)

    logger.info(f"Gaming News Crawler starting ({command})...")

    try:
        settings = load_settings(validate=True)
        logger.info(f"Configuration loaded: {len(settings.sources)} sources")
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    try:
        store = EntryStore(settings.store_path)
        metrics = create_run_metrics()

        if command in ("crawl", "all"):
            metrics = metrics.merge(run_crawl(settings, store))
        if command in ("sync", "all"):
            metrics = metrics.merge(run_sync(settings, store))
    except Exception as e:
        logger.exception(f"Run failed with unexpected error: {e}")
        return EXIT_PIPELINE_ERROR

    try:
        write_run_log(metrics, settings.output_dir)
    except OSError as e:
        logger.error(f"Failed to write run log: {e}")

    for error in metrics.errors:
        logger.warning(f"  - {error}")
    return EXIT_SUCCESS
