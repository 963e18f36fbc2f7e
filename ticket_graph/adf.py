"""Helpers for Atlassian Document Format (ADF) and storage-format bodies."""

import json
import re
from typing import Any

from ticket_graph.errors import MalformedDocumentError

BLOCK_TYPES = {
    "paragraph",
    "heading",
    "blockquote",
    "codeBlock",
    "listItem",
    "tableCell",
    "tableHeader",
    "panel",
    "rule",
}
CONTAINER_TYPES = {"bulletList", "orderedList", "taskList", "table", "tableRow"}

ISSUE_KEY_PATTERN = re.compile(r"\b([A-Z][A-Z0-9]+)-(\d+)\b")
_TAG_PATTERN = re.compile(r"<[^>]*>")
_SPACE_PATTERN = re.compile(r"\s+")


def parse_document(raw: Any) -> dict[str, Any]:
    """Coerce a description/comment body into an ADF dict.

    Raises:
        MalformedDocumentError: if ``raw`` is neither an ADF dict nor a JSON string encoding one
    """
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise MalformedDocumentError("Body is not an ADF document") from e
        if isinstance(data, dict):
            return data
    raise MalformedDocumentError(f"Unsupported document body type: {type(raw).__name__}")


def _inline_text(node: Any) -> str:
    if not isinstance(node, dict):
        return ""
    node_type = node.get("type")
    attrs = node.get("attrs") if isinstance(node.get("attrs"), dict) else {}
    if node_type == "text":
        text = node.get("text")
        return text if isinstance(text, str) else ""
    if node_type == "hardBreak":
        return "\n"
    if node_type == "mention":
        return str(attrs.get("text") or "")
    if node_type in ("inlineCard", "blockCard", "embedCard"):
        return str(attrs.get("url") or "")
    if node_type in ("emoji", "status"):
        return str(attrs.get("text") or attrs.get("shortName") or "")
    content = node.get("content")
    if isinstance(content, list):
        return "".join(_inline_text(child) for child in content)
    return ""


def _collect_lines(node: Any, lines: list[str]) -> None:
    if not isinstance(node, dict):
        return
    content = node.get("content")
    children = content if isinstance(content, list) else []
    has_blocks = any(isinstance(c, dict) and c.get("type") in BLOCK_TYPES | CONTAINER_TYPES for c in children)

    if node.get("type") in BLOCK_TYPES and not has_blocks:
        lines.append(_inline_text(node))
        return
    for child in children:
        _collect_lines(child, lines)


def adf_to_plain_text(adf: Any) -> str:
    """Flatten an ADF document to plain text, one line per block.

    Plain strings are returned unchanged so wiki-markup bodies from older
    API versions pass straight through.
    """
    if isinstance(adf, str):
        return adf
    if not isinstance(adf, dict):
        return ""
    lines: list[str] = []
    _collect_lines(adf, lines)
    return "\n".join(line for line in lines if line)


def storage_to_plain_text(html: str | None) -> str:
    """Strip tags from a storage-format (XHTML) body."""
    if not html:
        return ""
    return _SPACE_PATTERN.sub(" ", _TAG_PATTERN.sub(" ", html)).strip()


def extract_issue_keys(text: str) -> list[str]:
    """Issue keys (``ABC-123``) mentioned in text, first-seen order."""
    seen: dict[str, None] = {}
    for match in ISSUE_KEY_PATTERN.finditer(text or ""):
        seen.setdefault(match.group(0), None)
    return list(seen)

