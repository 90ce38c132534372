"""Observability and run metrics for crawl and sync runs.

This module provides the statistics a run accumulates, a consistent log line
for stage counts, and a JSON run log written at the end of each run. The
counts are advisory; nothing downstream depends on their exact values.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)


@dataclass
class RunMetrics:
    """Metrics collected during a crawl and/or sync run.

    Attributes:
        links_by_source: Count of article links discovered per source
        processed_count: Article links attempted
        saved_count: New entries stored
        skipped_count: Articles already known or not retrievable
        error_count: Articles or sources that failed unexpectedly
        synced_count: Entries published to Notion
        sync_error_count: Entries that failed to publish
        errors: Error messages encountered during the run
        run_timestamp: Timestamp when the run started
    """
    links_by_source: dict[str, int] = field(default_factory=dict)
    processed_count: int = 0
    saved_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    synced_count: int = 0
    sync_error_count: int = 0
    errors: list[str] = field(default_factory=list)
    run_timestamp: datetime = field(default_factory=datetime.now)

    def record_error(self, message: str) -> None:
        self.errors.append(message)

    def merge(self, other: "RunMetrics") -> "RunMetrics":
        """Combine two runs' counts, keeping this run's timestamp."""
        return create_run_metrics(
            links_by_source={**self.links_by_source, **other.links_by_source},
            processed_count=self.processed_count + other.processed_count,
            saved_count=self.saved_count + other.saved_count,
            skipped_count=self.skipped_count + other.skipped_count,
            error_count=self.error_count + other.error_count,
            synced_count=self.synced_count + other.synced_count,
            sync_error_count=self.sync_error_count + other.sync_error_count,
            errors=self.errors + other.errors,
            run_timestamp=self.run_timestamp,
        )


def create_run_metrics(
    links_by_source: dict[str, int] | None = None,
    processed_count: int = 0,
    saved_count: int = 0,
    skipped_count: int = 0,
    error_count: int = 0,
    synced_count: int = 0,
    sync_error_count: int = 0,
    errors: list[str] | None = None,
    run_timestamp: datetime | None = None,
) -> RunMetrics:
    """Create a RunMetrics instance with proper defaults for optional fields.

    Example:
        >>> metrics = create_run_metrics(
        ...     links_by_source={"Atomix": 24},
        ...     processed_count=24,
        ...     saved_count=3,
        ... )
        >>> metrics.saved_count
        3
    """
    return RunMetrics(
        links_by_source=links_by_source or {},
        processed_count=processed_count,
        saved_count=saved_count,
        skipped_count=skipped_count,
        error_count=error_count,
        synced_count=synced_count,
        sync_error_count=sync_error_count,
        errors=errors or [],
        run_timestamp=run_timestamp or datetime.now(),
    )


def write_run_log(metrics: RunMetrics, output_dir: str = "src/output") -> str:
    """Write run metrics to a JSON log file.

    Creates ``run_log_YYYYMMDD_HHMMSS.json`` in ``output_dir``.

    Args:
        metrics: RunMetrics instance to write
        output_dir: Directory path for output file (default: "src/output")

    Returns:
        The filepath of the written JSON file

    Raises:
        OSError: If the output directory cannot be created or file cannot be written
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    timestamp = metrics.run_timestamp.strftime('%Y%m%d_%H%M%S')
    filepath = output_path / f"run_log_{timestamp}.json"

    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(_metrics_to_dict(metrics), f, indent=2, ensure_ascii=False)

    logger.info(f"Run log written to {filepath}")
    return str(filepath)


def _metrics_to_dict(metrics: RunMetrics) -> dict[str, Any]:
    """Convert RunMetrics to a JSON-serializable dictionary."""
    return {
        "links_by_source": metrics.links_by_source,
        "processed_count": metrics.processed_count,
        "saved_count": metrics.saved_count,
        "skipped_count": metrics.skipped_count,
        "error_count": metrics.error_count,
        "synced_count": metrics.synced_count,
        "sync_error_count": metrics.sync_error_count,
        "errors": metrics.errors,
        "run_timestamp": metrics.run_timestamp.isoformat(),
    }


def log_stage_counts(stage: str, count: int) -> None:
    """Log the count for a pipeline stage.

    Example:
        >>> log_stage_counts("saved", 3)
        # Logs: "Pipeline stage 'saved': 3 articles"
    """
    logger.info(f"Pipeline stage '{stage}': {count} articles")
