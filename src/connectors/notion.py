"""Notion connector for publishing entries as database pages."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from notion_client import Client
from notion_client.errors import HTTPResponseError, RequestTimeoutError

from src.engines.content_blocks import ContentBlock, ImageBlock, RichSpan
from src.engines.entry_store import EntryRecord

logger = logging.getLogger(__name__)


NOTION_VERSION = "2022-06-28"

# API error responses, timeouts and transport failures
NOTION_ERRORS = (HTTPResponseError, RequestTimeoutError, httpx.HTTPError)


@dataclass
class SyncResult:
    """Result of a Notion page creation."""

    success: bool
    entry_id: str
    page_id: str | None
    error: str | None


def render_span(span: RichSpan) -> dict[str, Any]:
    """Render a span as a Notion rich-text object."""
    text: dict[str, Any] = {"content": span.text}
    if span.link:
        text["link"] = {"url": span.link}
    rich_text: dict[str, Any] = {"type": "text", "text": text}
    annotations = {
        name: True
        for name in ("bold", "italic", "underline")
        if getattr(span, name)
    }
    if annotations:
        rich_text["annotations"] = annotations
    return rich_text


def render_block(block: ContentBlock) -> dict[str, Any]:
    """Render a content block as a Notion block object."""
    if isinstance(block, ImageBlock):
        return {
            "object": "block",
            "type": "image",
            "image": {"type": "external", "external": {"url": block.url}},
        }
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {"rich_text": [render_span(span) for span in block.spans]},
    }


def _plain_text(content: str) -> list[dict[str, Any]]:
    return [{"text": {"content": content}}]


def build_page_payload(
    record: EntryRecord,
    database_id: str,
    blocks: list[ContentBlock],
) -> dict[str, Any]:
    """
    Build the request body that creates ``record`` as a page.

    The database is expected to have title, author, link, entryDate and
    summary properties.
    """
    return {
        "parent": {"type": "database_id", "database_id": database_id},
        "properties": {
            "title": {"title": _plain_text(record.title or "")},
            "author": {"rich_text": _plain_text(record.author or "")},
            "link": {"url": record.link or None},
            "entryDate": {"date": {"start": record.entry_date.isoformat()}},
            "summary": {"rich_text": _plain_text(record.summary or "")},
        },
        "children": [render_block(block) for block in blocks],
    }


class NotionConnector:
    """Creates pages in one Notion database through the official SDK."""

    def __init__(
        self,
        token: str,
        database_id: str,
        timeout: float = 30.0,
        client: Client | None = None,
    ):
        self.database_id = database_id
        self._client = client or Client(
            auth=token,
            timeout_ms=int(timeout * 1000),
            notion_version=NOTION_VERSION,
        )

    def test_connection(self) -> bool:
        """Check that the token can read the target database."""
        try:
            self._client.databases.retrieve(database_id=self.database_id)
        except NOTION_ERRORS as e:
            logger.error(f"Notion connection test failed: {e}")
            return False

        logger.info("Notion connection test successful")
        return True

    def create_page(self, record: EntryRecord, blocks: list[ContentBlock]) -> SyncResult:
        """
        Create a Notion page for ``record`` with ``blocks`` as its body.

        Args:
            record: Stored entry supplying the page properties
            blocks: Converted content, already within Notion's ceilings

        Returns:
            SyncResult with the new page id or an error message
        """
        payload = build_page_payload(record, self.database_id, blocks)
        try:
            page = self._client.pages.create(**payload)
        except NOTION_ERRORS as e:
            error_msg = f"Failed to create Notion page for entry {record.entry_id}: {e}"
            logger.error(error_msg)
            return SyncResult(
                success=False,
                entry_id=record.entry_id,
                page_id=None,
                error=error_msg
            )

        logger.info(f"Successfully created Notion page for entry: {record.entry_id}")
        return SyncResult(
            success=True,
            entry_id=record.entry_id,
            page_id=page.get("id"),
            error=None
        )
