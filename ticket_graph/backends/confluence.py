"""Confluence REST backend for documents referenced from records."""

from typing import Any

import httpx
import structlog

from ticket_graph.adf import extract_issue_keys, storage_to_plain_text
from ticket_graph.backend import DocumentStore
from ticket_graph.backends.rest import Endpoint, RestClient
from ticket_graph.models import Document, SearchPage

logger = structlog.get_logger()


class ConfluenceBackend(DocumentStore):
    """Document store backed by the Confluence REST API."""

    def __init__(
        self,
        base_url: str,
        email: str | None = None,
        token: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize Confluence backend.

        Args:
            base_url: Wiki root including the context path, e.g. https://acme.atlassian.net/wiki
            email: Account email
            token: API token
            transport: Optional httpx transport (used by tests)
        """
        if not email or not token:
            raise ValueError("Confluence email and token required")
        logger.debug("Initializing Confluence backend", base_url=base_url)
        self.rest = RestClient(base_url, email=email, token=token, transport=transport)
        self.base_url = self.rest.base_url
        logger.info("Confluence backend initialized", base_url=self.base_url)

    def _to_document(self, raw: dict[str, Any], document_id: str | None = None) -> Document:
        webui = (raw.get("_links") or {}).get("webui")
        body = ((raw.get("body") or {}).get("storage") or {}).get("value")
        return Document(
            id=str(raw.get("id") or document_id or ""),
            title=raw.get("title") or "",
            url=f"{self.base_url}{webui}" if webui else None,
            body=storage_to_plain_text(body),
            ancestors=tuple(a.get("title") or "" for a in raw.get("ancestors") or [] if isinstance(a, dict)),
        )

    def fetch_document(self, document_id: str) -> Document:
        """Fetch a page with its storage body and ancestors."""
        logger.info("Fetching Confluence page", document_id=document_id)
        raw = self.rest.request(
            "GET",
            f"/rest/api/content/{document_id}",
            params={"expand": "body.storage,ancestors"},
        )
        document = self._to_document(raw or {}, document_id)
        logger.debug("Confluence page fetched", document_id=document_id, title=document.title)
        return document

    def search_documents(self, query: str, start_at: int = 0, max_results: int = 25) -> SearchPage:
        """Search pages with CQL, falling back to the generic search endpoint."""
        logger.info("Searching Confluence", cql=query, start_at=start_at, max_results=max_results)
        params = {"cql": query, "start": start_at, "limit": max_results}
        data = self.rest.request_first(
            [
                Endpoint("GET", "/rest/api/content/search", params=params, name="content search"),
                Endpoint("GET", "/rest/api/search", params=params, name="site search"),
            ],
            accept=lambda d: isinstance(d, dict) and isinstance(d.get("results"), list),
        )
        items = []
        for result in data["results"]:
            if not isinstance(result, dict):
                continue
            # Site search wraps the page in a "content" object.
            content = result.get("content") if isinstance(result.get("content"), dict) else result
            items.append(self._to_document(content))
        total = data.get("totalSize", data.get("size", len(items)))
        logger.info("Confluence search complete", count=len(items), total=total)
        return SearchPage(items=items, total=total, start_at=start_at, max_results=max_results)

    def linked_record_keys(self, document_id: str) -> list[str]:
        """Issue keys mentioned in a page body."""
        document = self.fetch_document(document_id)
        keys = extract_issue_keys(document.body)
        logger.debug("Issue keys found in page", document_id=document_id, count=len(keys))
        return keys
