"""Engines module - core extraction and conversion components."""

from src.engines.content_blocks import (
    ContentBlock,
    ContentBlockConverter,
    ImageBlock,
    ParagraphBlock,
    RichSpan,
    convert,
)
from src.engines.fetcher import BrowserSession, FetchError, RetryingFetcher
from src.engines.field_extractor import ExtractedArticle, FieldExtractor
from src.engines.link_discovery import LinkDiscoverer

__all__ = [
    # Fetching
    "BrowserSession",
    "FetchError",
    "RetryingFetcher",
    # Discovery and extraction
    "LinkDiscoverer",
    "ExtractedArticle",
    "FieldExtractor",
    # Content blocks
    "ContentBlock",
    "ContentBlockConverter",
    "ImageBlock",
    "ParagraphBlock",
    "RichSpan",
    "convert",
]
