"""Tests for document link extraction from rich-text bodies."""

import pytest

from ticket_graph.doc_links import (
    extract_document_links,
    extract_document_links_from_text,
    merge_references,
    page_id_from_url,
)
from ticket_graph.models import DocumentReference

BASE = "https://wiki.example/wiki"


def doc(*content: dict) -> dict:
    return {"type": "doc", "version": 1, "content": list(content)}


def paragraph(*content: dict) -> dict:
    return {"type": "paragraph", "content": list(content)}


def test_inline_card_with_page_id_query() -> None:
    adf = doc(
        paragraph(
            {"type": "text", "text": "See "},
            {"type": "inlineCard", "attrs": {"url": "https://wiki.example/wiki/pages/viewpage.action?pageId=555"}},
        )
    )

    refs = extract_document_links(adf, BASE)

    assert len(refs) == 1
    assert refs[0].id == "555"
    assert refs[0].url == "https://wiki.example/wiki/pages/viewpage.action?pageId=555"


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://x/wiki/pages/viewpage.action?pageId=555", "555"),
        ("https://x/wiki/pages/viewpage.action?spaceKey=ENG&pageId=42", "42"),
        ("https://x/wiki/spaces/ENG/pages/98765/Design+Doc", "98765"),
        ("https://x/wiki/spaces/ENG/overview", None),
    ],
)
def test_page_id_from_url(url: str, expected: str | None) -> None:
    assert page_id_from_url(url) == expected


def test_page_node_and_extension_and_link_mark() -> None:
    adf = doc(
        {"type": "confluencePage", "attrs": {"id": 101, "title": "Runbook"}},
        {
            "type": "bodiedExtension",
            "attrs": {"extensionKey": "include", "parameters": {"contentId": "202"}},
            "content": [paragraph({"type": "text", "text": "included"})],
        },
        paragraph(
            {
                "type": "text",
                "text": "architecture",
                "marks": [{"type": "link", "attrs": {"href": "https://wiki.example/wiki/spaces/ENG/pages/303/Arch"}}],
            }
        ),
    )

    refs = extract_document_links(adf, BASE)

    assert [r.id for r in refs] == ["101", "202", "303"]
    assert refs[0].title == "Runbook"
    assert refs[0].url == f"{BASE}/pages/viewpage.action?pageId=101"
    assert refs[1].url == f"{BASE}/pages/viewpage.action?pageId=202"


def test_non_document_links_are_ignored() -> None:
    adf = doc(
        paragraph(
            {"type": "inlineCard", "attrs": {"url": "https://github.com/acme/repo/pull/1"}},
            {
                "type": "text",
                "text": "docs",
                "marks": [{"type": "strong"}, {"type": "link", "attrs": {"href": "https://example.com/docs"}}],
            },
        )
    )

    assert extract_document_links(adf, BASE) == []


def test_duplicate_urls_are_reported_once() -> None:
    card = {"type": "inlineCard", "attrs": {"url": f"{BASE}/spaces/ENG/pages/7/Page"}}

    refs = extract_document_links(doc(paragraph(card), paragraph(card)), BASE)

    assert len(refs) == 1


def test_url_on_configured_site_without_page_id() -> None:
    refs = extract_document_links(
        doc(paragraph({"type": "inlineCard", "attrs": {"url": "https://docs.acme.io/display/ENG/Home"}})),
        "https://docs.acme.io",
    )

    assert refs == [DocumentReference(url="https://docs.acme.io/display/ENG/Home", id=None)]


@pytest.mark.parametrize(
    "document",
    [
        None,
        "not a document",
        42,
        {"type": "doc", "content": "oops"},
        {"type": "doc", "content": [None, 3, {"type": "inlineCard"}, {"type": "inlineCard", "attrs": []}]},
        {"type": "bodiedExtension", "attrs": {"parameters": "x"}},
    ],
)
def test_malformed_trees_yield_nothing(document: object) -> None:
    assert extract_document_links(document, BASE) == []


def test_plain_text_fallback() -> None:
    text = "Spec: https://wiki.example/wiki/spaces/ENG/pages/555/Spec. Code: https://github.com/acme/x"

    refs = extract_document_links_from_text(text, BASE)

    assert refs == [DocumentReference(url="https://wiki.example/wiki/spaces/ENG/pages/555/Spec", id="555")]


def test_merge_references_keeps_first_occurrence() -> None:
    a = DocumentReference(url="u1", id="1", title="first")
    b = DocumentReference(url="u1", id="1", title="second")
    c = DocumentReference(url="u2", id="2")

    assert merge_references([[a], [b, c]]) == [a, c]
