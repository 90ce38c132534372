"""Connectors module - external service integrations."""

from src.connectors.notion import NotionConnector, SyncResult, build_page_payload

__all__ = ["NotionConnector", "SyncResult", "build_page_payload"]
