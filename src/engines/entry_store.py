"""JSON-file persistence for extracted entries and their Notion sync state."""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from src.engines.field_extractor import ExtractedArticle, to_local_naive


logger = logging.getLogger(__name__)


@dataclass
class EntryRecord:
    """A stored entry.

    Attributes:
        entry_id: Unique identity of the article
        title: Article headline
        author: Byline text
        summary: Summary text
        content: Raw content HTML
        link: Article URL
        entry_date: Publication time
        source: Source name
        created: True once the entry exists in Notion (or was given up on)
        entry_errors: Sync failure messages, oldest first
    """
    entry_id: str
    title: str
    author: str
    summary: str
    content: str
    link: str
    entry_date: datetime
    source: str = ""
    created: bool = False
    entry_errors: list[str] = field(default_factory=list)

    @classmethod
    def from_article(cls, article: ExtractedArticle) -> "EntryRecord":
        return cls(
            entry_id=article.entry_id,
            title=article.title,
            author=article.author,
            summary=article.summary,
            content=article.content,
            link=article.link,
            entry_date=article.date,
            source=article.source,
        )


def _record_to_dict(record: EntryRecord) -> dict[str, Any]:
    data = asdict(record)
    data["entry_date"] = record.entry_date.isoformat()
    return data


def _record_from_dict(data: dict[str, Any]) -> EntryRecord:
    data = dict(data)
    data["entry_date"] = to_local_naive(datetime.fromisoformat(data["entry_date"]))
    return EntryRecord(**data)


class EntryStore:
    """Entries keyed by ``entry_id``, written back to disk after each change.

    Saving an entry whose id is already known is a no-op.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._records: dict[str, EntryRecord] = {}
        if self.path.exists():
            with open(self.path, encoding="utf-8") as f:
                for item in json.load(f):
                    record = _record_from_dict(item)
                    self._records[record.entry_id] = record
            logger.debug(f"Loaded {len(self._records)} entries from {self.path}")

    def __len__(self) -> int:
        return len(self._records)

    def contains(self, entry_id: str) -> bool:
        return entry_id in self._records

    def get(self, entry_id: str) -> EntryRecord | None:
        return self._records.get(entry_id)

    def save_if_new(self, article: ExtractedArticle) -> bool:
        """Store ``article`` unless its entry id is already known.

        Returns:
            True if the article was stored
        """
        if article.entry_id in self._records:
            logger.debug(f"Article already exists: {article.link}")
            return False
        self._records[article.entry_id] = EntryRecord.from_article(article)
        self._flush()
        return True

    def pending(self, limit: int) -> list[EntryRecord]:
        """Entries not yet in Notion, newest first, at most ``limit``."""
        unsynced = [record for record in self._records.values() if not record.created]
        unsynced.sort(key=lambda record: record.entry_date, reverse=True)
        return unsynced[:limit]

    def mark_created(self, entry_id: str) -> None:
        record = self._records[entry_id]
        record.created = True
        record.entry_errors = []
        self._flush()

    def record_error(self, entry_id: str, message: str, max_errors: int) -> EntryRecord:
        """Append a sync error; after ``max_errors`` the entry is given up on."""
        record = self._records[entry_id]
        record.entry_errors.append(message)
        if len(record.entry_errors) >= max_errors:
            record.created = True
            logger.error(f"Entry has too many errors, marking as created: {entry_id}")
        self._flush()
        return record

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(
                [_record_to_dict(record) for record in self._records.values()],
                f,
                indent=2,
                ensure_ascii=False,
            )
        tmp_path.replace(self.path)
