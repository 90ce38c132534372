#!/usr/bin/env python3
"""Main entry point for the Gaming News Crawler.

This module provides the CLI interface. Scheduling is left to cron or
launchd, which invoke one of the commands below.

Usage:
    python -m src.main              # Crawl, then sync to Notion
    python -m src.main crawl        # Crawl configured sources once
    python -m src.main sync         # Push pending entries to Notion once
    python -m src.main -v           # Run with verbose logging
"""

import argparse
import sys

from src.agent.runner import COMMANDS, run


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Command line arguments. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="gaming-news-crawler",
        description="Gaming News Crawler - scrape gaming news into Notion",
    )

    parser.add_argument(
        "command",
        nargs="?",
        choices=COMMANDS,
        default="all",
        help="Which stage to run (default: all)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging output",
    )

    return parser.parse_args(args)


def main(args: list[str] | None = None) -> int:
    """Main entry point for the crawler.

    Args:
        args: Command line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parsed = parse_args(args)
    return run(command=parsed.command, verbose=parsed.verbose)


if __name__ == "__main__":
    sys.exit(main())
