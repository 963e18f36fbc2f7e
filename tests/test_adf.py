"""Tests for ADF helpers."""

import pytest

from ticket_graph.adf import (
    adf_to_plain_text,
    extract_issue_keys,
    parse_document,
    storage_to_plain_text,
)
from ticket_graph.errors import MalformedDocumentError


def test_flatten_paragraphs_and_lists() -> None:
    adf = {
        "type": "doc",
        "content": [
            {"type": "heading", "content": [{"type": "text", "text": "Plan"}]},
            {
                "type": "paragraph",
                "content": [
                    {"type": "text", "text": "Ping "},
                    {"type": "mention", "attrs": {"text": "@dana"}},
                    {"type": "hardBreak"},
                    {"type": "text", "text": "today"},
                ],
            },
            {
                "type": "bulletList",
                "content": [
                    {"type": "listItem", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "one"}]}]},
                    {"type": "listItem", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "two"}]}]},
                ],
            },
        ],
    }

    assert adf_to_plain_text(adf) == "Plan\nPing @dana\ntoday\none\ntwo"


def test_flatten_passes_strings_through() -> None:
    assert adf_to_plain_text("h1. wiki markup") == "h1. wiki markup"
    assert adf_to_plain_text(None) == ""


def test_parse_document_accepts_json_string() -> None:
    assert parse_document('{"type": "doc", "content": []}') == {"type": "doc", "content": []}


@pytest.mark.parametrize("raw", ["plain text", "[1, 2]", 5])
def test_parse_document_rejects_non_documents(raw: object) -> None:
    with pytest.raises(MalformedDocumentError):
        parse_document(raw)


def test_storage_to_plain_text() -> None:
    html = "<h1>Design</h1><p>Tracked in <strong>PROJ-12</strong>\n and  PROJ-7.</p>"

    assert storage_to_plain_text(html) == "Design Tracked in PROJ-12 and PROJ-7."


def test_extract_issue_keys_in_first_seen_order() -> None:
    assert extract_issue_keys("PROJ-12 then OPS-3, again PROJ-12; not-a-key x-1") == ["PROJ-12", "OPS-3"]
