"""Extract document references embedded in rich-text record bodies.

The walker is a best-effort heuristic over an external, evolving schema: any
node shape it does not recognise is skipped, it never raises.
"""

import re
from typing import Any, Iterable

import structlog

from ticket_graph.models import DocumentReference

logger = structlog.get_logger()

CARD_TYPES = {"inlineCard", "blockCard", "embedCard"}
PAGE_TYPES = {"confluencePage"}
EXTENSION_TYPES = {"extension", "bodiedExtension", "inlineExtension"}
WIKI_PATH_SEGMENT = "/wiki/"

_PAGE_ID_PARAM = re.compile(r"[?&]pageId=(\d+)")
_PAGE_ID_PATH = re.compile(r"/pages/(\d+)")
_URL_PATTERN = re.compile(r"https?://[^\s<>\"')\]]+")


def page_id_from_url(url: str) -> str | None:
    """Pull a page id out of ``?pageId=123`` or ``/pages/123/...`` style URLs."""
    match = _PAGE_ID_PARAM.search(url) or _PAGE_ID_PATH.search(url)
    return match.group(1) if match else None


def page_url(base_url: str, page_id: str) -> str:
    return f"{base_url.rstrip('/')}/pages/viewpage.action?pageId={page_id}"


def is_document_url(url: Any, base_url: str) -> bool:
    if not isinstance(url, str) or not url:
        return False
    return (bool(base_url) and base_url.rstrip("/") in url) or WIKI_PATH_SEGMENT in url


class _Collector:
    def __init__(self, base_url: str) -> None:
        self.base_url = base_url
        self.seen: set[str] = set()
        self.references: list[DocumentReference] = []

    def emit(self, url: str, document_id: str | None, title: Any = None) -> None:
        if url in self.seen:
            return
        self.seen.add(url)
        self.references.append(
            DocumentReference(
                url=url,
                id=document_id,
                title=title if isinstance(title, str) and title else None,
            )
        )

    def visit(self, node: Any) -> None:
        if not isinstance(node, dict):
            return
        node_type = node.get("type")
        attrs = node.get("attrs")
        attrs = attrs if isinstance(attrs, dict) else {}

        if node_type in CARD_TYPES:
            url = attrs.get("url")
            if is_document_url(url, self.base_url):
                self.emit(url, page_id_from_url(url), attrs.get("title"))

        elif node_type in PAGE_TYPES:
            raw_id = attrs.get("id") or attrs.get("pageId")
            page_id = str(raw_id) if raw_id else None
            url = attrs.get("url")
            if not isinstance(url, str) or not url:
                url = page_url(self.base_url, page_id) if page_id else None
            if url:
                self.emit(url, page_id or page_id_from_url(url), attrs.get("title"))

        elif node_type in EXTENSION_TYPES:
            params = attrs.get("parameters")
            content_id = params.get("contentId") if isinstance(params, dict) else None
            if content_id:
                page_id = str(content_id)
                self.emit(page_url(self.base_url, page_id), page_id, params.get("title"))

        content = node.get("content")
        if isinstance(content, list):
            for child in content:
                self.visit(child)

        marks = node.get("marks")
        if isinstance(marks, list):
            for mark in marks:
                self.visit_mark(mark)

    def visit_mark(self, mark: Any) -> None:
        if not isinstance(mark, dict) or mark.get("type") != "link":
            return
        attrs = mark.get("attrs")
        href = attrs.get("href") if isinstance(attrs, dict) else None
        if is_document_url(href, self.base_url):
            self.emit(href, page_id_from_url(href), attrs.get("title"))


def extract_document_links(document: Any, base_url: str) -> list[DocumentReference]:
    """Walk an ADF tree pre-order and return document references in document order.

    Args:
        document: ADF root node (any value is accepted; non-dicts yield nothing)
        base_url: Document site root, e.g. https://acme.atlassian.net/wiki

    Returns:
        References deduplicated by URL
    """
    collector = _Collector(base_url)
    collector.visit(document)
    logger.debug("Extracted document links", count=len(collector.references))
    return collector.references


def extract_document_links_from_text(text: str, base_url: str) -> list[DocumentReference]:
    """Fallback for trackers without rich text (e.g. markdown bodies)."""
    collector = _Collector(base_url)
    for match in _URL_PATTERN.finditer(text or ""):
        url = match.group(0).rstrip(".,;:")
        if is_document_url(url, base_url):
            collector.emit(url, page_id_from_url(url))
    return collector.references


def merge_references(groups: Iterable[list[DocumentReference]]) -> list[DocumentReference]:
    """Concatenate reference lists, keeping the first occurrence of every URL."""
    seen: set[str] = set()
    merged: list[DocumentReference] = []
    for group in groups:
        for reference in group:
            if reference.url not in seen:
                seen.add(reference.url)
                merged.append(reference)
    return merged
