"""Unit tests for the Notion connector."""

import logging
from datetime import datetime
from unittest.mock import MagicMock, patch

import httpx
from notion_client.errors import RequestTimeoutError

from src.connectors.notion import (
    NOTION_VERSION,
    NotionConnector,
    SyncResult,
    build_page_payload,
    render_block,
    render_span,
)
from src.engines.content_blocks import ImageBlock, ParagraphBlock, RichSpan
from src.engines.entry_store import EntryRecord


def _record() -> EntryRecord:
    return EntryRecord(
        entry_id="https://atomix.vg/?p=1",
        title="Nuevo tráiler",
        author="Ana",
        summary="Resumen",
        content="<p>body</p>",
        link="https://atomix.vg/noticia/trailer",
        entry_date=datetime(2024, 9, 12, 8, 30),
    )


def _connector() -> tuple[NotionConnector, MagicMock]:
    client = MagicMock()
    return NotionConnector("secret", "db123", client=client), client


class TestSyncResult:
    """Tests for SyncResult dataclass."""

    def test_failure_result(self):
        result = SyncResult(success=False, entry_id="a", page_id=None, error="boom")
        assert result.success is False
        assert result.page_id is None
        assert result.error == "boom"


class TestRendering:
    """Tests for block and payload rendering."""

    def test_render_span_only_includes_set_annotations(self):
        assert render_span(RichSpan("plain")) == {"type": "text", "text": {"content": "plain"}}
        assert render_span(RichSpan("x", link="https://a.example", bold=True)) == {
            "type": "text",
            "text": {"content": "x", "link": {"url": "https://a.example"}},
            "annotations": {"bold": True},
        }

    def test_render_blocks(self):
        paragraph = render_block(ParagraphBlock((RichSpan("hi"),)))
        image = render_block(ImageBlock("https://cdn.example/a.jpg"))

        assert paragraph["type"] == "paragraph"
        assert paragraph["paragraph"]["rich_text"][0]["text"]["content"] == "hi"
        assert image == {
            "object": "block",
            "type": "image",
            "image": {"type": "external", "external": {"url": "https://cdn.example/a.jpg"}},
        }

    def test_build_page_payload(self):
        payload = build_page_payload(_record(), "db123", [ParagraphBlock((RichSpan("hi"),))])

        assert payload["parent"] == {"type": "database_id", "database_id": "db123"}
        properties = payload["properties"]
        assert properties["title"]["title"][0]["text"]["content"] == "Nuevo tráiler"
        assert properties["author"]["rich_text"][0]["text"]["content"] == "Ana"
        assert properties["link"]["url"] == "https://atomix.vg/noticia/trailer"
        assert properties["entryDate"]["date"]["start"] == "2024-09-12T08:30:00"
        assert properties["summary"]["rich_text"][0]["text"]["content"] == "Resumen"
        assert len(payload["children"]) == 1


class TestNotionConnector:
    """Tests for NotionConnector."""

    def test_default_client_is_built_from_credentials(self):
        with patch("src.connectors.notion.Client") as client_cls:
            NotionConnector("secret", "db123", timeout=12.5)

        client_cls.assert_called_once_with(
            auth="secret", timeout_ms=12500, notion_version=NOTION_VERSION
        )

    def test_connection_success(self):
        connector, client = _connector()

        assert connector.test_connection() is True
        client.databases.retrieve.assert_called_once_with(database_id="db123")

    def test_connection_failure(self, caplog):
        connector, client = _connector()
        client.databases.retrieve.side_effect = httpx.ConnectError("down")

        with caplog.at_level(logging.ERROR):
            assert connector.test_connection() is False
        assert "Notion connection test failed" in caplog.text

    def test_create_page_success(self):
        connector, client = _connector()
        client.pages.create.return_value = {"id": "page-1"}

        result = connector.create_page(_record(), [ParagraphBlock((RichSpan("hi"),))])

        assert result == SyncResult(
            success=True, entry_id="https://atomix.vg/?p=1", page_id="page-1", error=None
        )
        kwargs = client.pages.create.call_args.kwargs
        assert kwargs["parent"]["database_id"] == "db123"
        assert kwargs["children"][0]["type"] == "paragraph"

    def test_create_page_timeout(self, caplog):
        """A timed-out request SHALL yield a failed result instead of raising."""
        connector, client = _connector()
        client.pages.create.side_effect = RequestTimeoutError()

        with caplog.at_level(logging.ERROR):
            result = connector.create_page(_record(), [])

        assert result.success is False
        assert result.page_id is None
        assert "Failed to create Notion page" in result.error
        assert "Failed to create Notion page" in caplog.text

    def test_create_page_transport_error(self):
        connector, client = _connector()
        client.pages.create.side_effect = httpx.ReadError("connection reset")

        result = connector.create_page(_record(), [])

        assert result.success is False
        assert "connection reset" in result.error
