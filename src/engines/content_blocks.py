"""Conversion of article HTML into ordered paragraph and image blocks.

The converter walks the parsed fragment with a visitor that returns the spans
and blocks each node produces, in document order, instead of writing into
shared buffers. Paragraph-like elements (and the fragment root) group
consecutive spans into paragraph blocks, splitting them so no block exceeds
the rich-text length ceiling. The whole sequence is then cut to the block
ceiling, dropping trailing blocks.
"""

import logging
import re
from dataclasses import dataclass, replace
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from src.config.settings import Settings


logger = logging.getLogger(__name__)

# Notion's limits for a single rich-text run and for children per request
MAX_RICH_TEXT_LENGTH = 2000
MAX_BLOCKS = 100

PARAGRAPH_TAGS = frozenset({
    "p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "figcaption",
})

EMPHASIS_TAGS = {
    "b": "bold",
    "strong": "bold",
    "i": "italic",
    "em": "italic",
    "u": "underline",
}

# Inline runs that get a separator space when they touch a word
RUN_TAGS = frozenset(EMPHASIS_TAGS) | {"a"}

IGNORED_TAGS = frozenset({"script", "style", "noscript", "template", "iframe"})


@dataclass(frozen=True)
class RichSpan:
    """A run of text with an optional link and formatting annotations."""
    text: str
    link: str | None = None
    bold: bool = False
    italic: bool = False
    underline: bool = False

    def annotated(self, annotation: str) -> "RichSpan":
        return replace(self, **{annotation: True})


@dataclass(frozen=True)
class ParagraphBlock:
    """A paragraph made of rich-text spans."""
    spans: tuple[RichSpan, ...]

    kind = "paragraph"

    @property
    def text(self) -> str:
        return "".join(span.text for span in self.spans)


@dataclass(frozen=True)
class ImageBlock:
    """An externally hosted image."""
    url: str

    kind = "image"


ContentBlock = ParagraphBlock | ImageBlock
Item = RichSpan | ParagraphBlock | ImageBlock


def _resolve_url(value: str | None, base_url: str | None) -> str | None:
    if not value:
        return None
    url = urljoin(base_url, value.strip()) if base_url else value.strip()
    parsed = urlparse(url)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        return url
    return None


def _needs_separator(left: Item, right: Item) -> bool:
    return (
        isinstance(left, RichSpan)
        and isinstance(right, RichSpan)
        and not left.text[-1:].isspace()
        and not right.text[:1].isspace()
    )


def _is_styled(item: Item) -> bool:
    return isinstance(item, RichSpan) and bool(
        item.link or item.bold or item.italic or item.underline
    )


class _BlockVisitor:
    """Maps each node to the items it produces."""

    def __init__(self, max_rich_text_length: int, base_url: str | None):
        self.max_rich_text_length = max_rich_text_length
        self.base_url = base_url

    def visit(self, node) -> list[Item]:
        if isinstance(node, PreformattedString):
            return []
        if isinstance(node, NavigableString):
            return self.visit_text(node)
        if not isinstance(node, Tag):
            return []

        name = (node.name or "").lower()
        if name in IGNORED_TAGS:
            return []
        if name in PARAGRAPH_TAGS:
            return self.visit_paragraph(node)
        if name == "a":
            return self.visit_link(node)
        if name == "img":
            return self.visit_image(node)
        if name in EMPHASIS_TAGS:
            return self.visit_emphasis(node, EMPHASIS_TAGS[name])
        return self.visit_children(node)

    def visit_text(self, node: NavigableString) -> list[Item]:
        text = re.sub(r"\s+", " ", str(node))
        return [RichSpan(text)] if text else []

    def visit_paragraph(self, node: Tag) -> list[Item]:
        return self.group(self.visit_children(node))

    def visit_link(self, node: Tag) -> list[Item]:
        items: list[Item] = []
        for img in node.find_all("img"):
            items.extend(self.visit_image(img))

        text = re.sub(r"\s+", " ", node.get_text()).strip()
        if text:
            items.append(RichSpan(text, link=_resolve_url(node.get("href"), self.base_url)))
        return items

    def visit_image(self, node: Tag) -> list[Item]:
        url = _resolve_url(node.get("src") or node.get("data-src"), self.base_url)
        return [ImageBlock(url)] if url else []

    def visit_emphasis(self, node: Tag, annotation: str) -> list[Item]:
        return [
            item.annotated(annotation) if isinstance(item, RichSpan) else item
            for item in self.visit_children(node)
        ]

    def visit_children(self, node: Tag) -> list[Item]:
        """Concatenate the children's items, spacing out links and emphasis.

        A child opens or closes a run when it is a link or emphasis tag, or
        when the first or last span it produced is linked or annotated, so
        runs wrapped in transparent elements are spaced out too.
        """
        items: list[Item] = []
        after_run = False
        for child in node.children:
            produced = self.visit(child)
            if not produced:
                continue
            is_run_tag = isinstance(child, Tag) and child.name in RUN_TAGS
            opens_run = is_run_tag or (isinstance(child, Tag) and _is_styled(produced[0]))
            if (opens_run or after_run) and items and _needs_separator(items[-1], produced[0]):
                items.append(RichSpan(" "))
            items.extend(produced)
            after_run = is_run_tag or (isinstance(child, Tag) and _is_styled(produced[-1]))
        return items

    def group(self, items: list[Item]) -> list[ContentBlock]:
        """Close runs of spans into paragraph blocks, keeping blocks in place."""
        blocks: list[ContentBlock] = []
        run: list[RichSpan] = []
        for item in items:
            if isinstance(item, RichSpan):
                run.append(item)
                continue
            blocks.extend(self.pack(run))
            run = []
            blocks.append(item)
        blocks.extend(self.pack(run))
        return blocks

    def pack(self, spans: list[RichSpan]) -> list[ParagraphBlock]:
        """Split one paragraph's spans into blocks under the length ceiling."""
        spans = _trim_edges(spans)
        limit = self.max_rich_text_length

        pieces: list[RichSpan] = []
        for span in spans:
            if len(span.text) <= limit:
                pieces.append(span)
            else:
                pieces.extend(
                    replace(span, text=span.text[start:start + limit])
                    for start in range(0, len(span.text), limit)
                )

        blocks: list[ParagraphBlock] = []
        buffer: list[RichSpan] = []
        length = 0
        for piece in pieces:
            if buffer and length + len(piece.text) > limit:
                blocks.append(ParagraphBlock(tuple(buffer)))
                buffer = []
                length = 0
            buffer.append(piece)
            length += len(piece.text)
        if buffer:
            blocks.append(ParagraphBlock(tuple(buffer)))
        return blocks


def _trim_edges(spans: list[RichSpan]) -> list[RichSpan]:
    """Strip leading and trailing whitespace from a paragraph's span run."""
    spans = list(spans)
    while spans and not spans[0].text.lstrip():
        spans.pop(0)
    while spans and not spans[-1].text.rstrip():
        spans.pop()
    if not spans:
        return []
    spans[0] = replace(spans[0], text=spans[0].text.lstrip())
    spans[-1] = replace(spans[-1], text=spans[-1].text.rstrip())
    return spans


def convert(
    html: str,
    max_rich_text_length: int = MAX_RICH_TEXT_LENGTH,
    max_blocks: int = MAX_BLOCKS,
    base_url: str | None = None,
) -> list[ContentBlock]:
    """Convert an HTML fragment into an ordered list of content blocks.

    Args:
        html: Article content markup
        max_rich_text_length: Maximum combined span text per paragraph block
        max_blocks: Maximum number of blocks returned
        base_url: Used to resolve relative link and image URLs, if given

    Returns:
        Paragraph and image blocks in document order

    Example:
        >>> [b.text for b in convert("<p><b>hello</b> world</p>")]
        ['hello world']
    """
    if not html or not html.strip():
        return []

    visitor = _BlockVisitor(max_rich_text_length, base_url)
    tree = BeautifulSoup(html, "lxml")
    blocks = visitor.group(visitor.visit_children(tree))

    if len(blocks) > max_blocks:
        logger.debug(f"Truncating {len(blocks)} content blocks to {max_blocks}")
    return blocks[:max_blocks]


class ContentBlockConverter:
    """Block conversion with ceilings taken from settings."""

    def __init__(self, settings: Settings):
        self.max_rich_text_length = settings.max_rich_text_length
        self.max_blocks = settings.max_blocks

    def convert(self, html: str, base_url: str | None = None) -> list[ContentBlock]:
        return convert(
            html,
            max_rich_text_length=self.max_rich_text_length,
            max_blocks=self.max_blocks,
            base_url=base_url,
        )
