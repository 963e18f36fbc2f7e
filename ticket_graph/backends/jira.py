"""Jira Cloud REST v3 backend."""

from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from ticket_graph.adf import adf_to_plain_text, parse_document
from ticket_graph.backend import FieldSelector, RecordStore
from ticket_graph.backends.rest import Endpoint, RestClient
from ticket_graph.errors import MalformedDocumentError
from ticket_graph.models import Comment, Component, Identity, Record, RecordLink, SearchPage, StrategyKind

logger = structlog.get_logger()

# Always requested so every fetched payload can be normalized into a Record.
MIN_FIELDS = [
    "summary",
    "status",
    "assignee",
    "reporter",
    "priority",
    "labels",
    "project",
    "issuetype",
    "created",
    "updated",
]
SEARCH_FIELDS = ["components", "description"]
DEFAULT_RELATION = "relates to"
TIME_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")


def fields_param(fields: FieldSelector = None) -> str:
    """Render a field projection, always including ``MIN_FIELDS``."""
    if fields is None:
        return ",".join(MIN_FIELDS)
    if fields == "all":
        return "*all"
    merged = dict.fromkeys(MIN_FIELDS)
    merged.update(dict.fromkeys(f for f in fields if f))
    return ",".join(merged)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse Jira timestamps such as ``2024-01-15T10:30:00.000+0000``."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    logger.debug("Unparseable timestamp", value=value)
    return None


def _identity(raw: Any) -> Identity | None:
    if not isinstance(raw, dict):
        return None
    return Identity(
        account_id=str(raw.get("accountId") or raw.get("name") or ""),
        display_name=str(raw.get("displayName") or ""),
    )


def _rich_text(raw: Any) -> tuple[str, dict[str, Any] | None]:
    """Return (plain text, ADF tree or None) for a description/comment body."""
    if raw is None:
        return "", None
    try:
        document = parse_document(raw)
    except MalformedDocumentError:
        # Wiki markup from older API versions: plain text only.
        return raw if isinstance(raw, str) else "", None
    return adf_to_plain_text(document), document


class JiraBackend(RecordStore):
    """Record store backed by the Jira Cloud REST API."""

    def __init__(
        self,
        base_url: str,
        email: str | None = None,
        token: str | None = None,
        comment_limit: int = 5,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize Jira backend.

        Args:
            base_url: Jira site root, e.g. https://acme.atlassian.net
            email: Account email
            token: API token
            comment_limit: Number of most recent comments kept per record
            transport: Optional httpx transport (used by tests)
        """
        if not email or not token:
            raise ValueError("Jira email and token required")
        logger.debug("Initializing Jira backend", base_url=base_url)
        self.rest = RestClient(base_url, email=email, token=token, transport=transport)
        self.base_url = self.rest.base_url
        self.comment_limit = comment_limit
        logger.info("Jira backend initialized", base_url=self.base_url)

    def _normalize(self, raw: dict[str, Any], key: str | None = None) -> Record:
        """Convert a raw Jira issue payload into a Record."""
        fields = raw.get("fields") or {}
        record_key = raw.get("key") or key or ""
        logger.debug("Normalizing Jira issue", key=record_key)

        description, description_doc = _rich_text(fields.get("description"))

        comments: list[Comment] = []
        comment_field = fields.get("comment") or {}
        raw_comments = (comment_field.get("comments") or []) if isinstance(comment_field, dict) else []
        window = raw_comments[-self.comment_limit :] if self.comment_limit > 0 else []
        for c in window:
            body, body_doc = _rich_text(c.get("body"))
            comments.append(
                Comment(
                    id=str(c.get("id") or ""),
                    author=_identity(c.get("author")) or Identity(account_id=""),
                    created=c.get("created") or "",
                    body=body,
                    body_doc=body_doc,
                )
            )

        links: list[RecordLink] = []
        for link in fields.get("issuelinks") or []:
            link_type = link.get("type") or {}
            if link.get("outwardIssue"):
                target = link["outwardIssue"].get("key")
                relation = link_type.get("outward") or DEFAULT_RELATION
            elif link.get("inwardIssue"):
                target = link["inwardIssue"].get("key")
                relation = link_type.get("inward") or DEFAULT_RELATION
            else:
                continue
            if target:
                links.append(RecordLink(target_key=target, relation=relation))

        project = (fields.get("project") or {}).get("key") or record_key.split("-", 1)[0]
        priority = fields.get("priority") or {}

        return Record(
            key=record_key,
            summary=fields.get("summary") or "",
            status=(fields.get("status") or {}).get("name") or "",
            issue_type=(fields.get("issuetype") or {}).get("name") or "",
            description=description,
            labels=tuple(dict.fromkeys(fields.get("labels") or [])),
            components=tuple(
                Component(id=str(c.get("id") or ""), name=c.get("name") or "") for c in fields.get("components") or []
            ),
            assignee=_identity(fields.get("assignee")),
            reporter=_identity(fields.get("reporter")),
            priority=priority.get("name") if isinstance(priority, dict) else None,
            created=parse_timestamp(fields.get("created")),
            updated=parse_timestamp(fields.get("updated")),
            project=project,
            url=f"{self.base_url}/browse/{record_key}",
            comments=tuple(comments),
            links=tuple(links),
            description_doc=description_doc,
        )

    def fetch_record(self, key: str, fields: FieldSelector = None) -> Record:
        """Fetch a Jira issue by key."""
        logger.info("Fetching Jira issue", key=key)
        path = f"/rest/api/3/issue/{quote(key, safe='')}"
        raw = self.rest.request("GET", path, params={"fields": fields_param(fields)})
        record = self._normalize(raw or {}, key)
        logger.debug("Jira issue fetched", key=key, links=len(record.links))
        return record

    def search_records(self, query: str, start_at: int = 0, max_results: int = 25) -> SearchPage:
        """Search issues with JQL, falling back across endpoint generations."""
        logger.info("Searching Jira issues", jql=query, start_at=start_at, max_results=max_results)
        fields = fields_param(SEARCH_FIELDS)
        params = {"jql": query, "startAt": start_at, "maxResults": max_results, "fields": fields}
        body = {"jql": query, "startAt": start_at, "maxResults": max_results, "fields": fields.split(",")}

        data = self.rest.request_first(
            [
                Endpoint("GET", "/rest/api/3/search/jql", params=params, name="search/jql GET"),
                Endpoint("POST", "/rest/api/3/search/jql", json=body, name="search/jql POST"),
                Endpoint("GET", "/rest/api/3/search", params=params, name="legacy search"),
            ],
            accept=lambda d: isinstance(d, dict) and isinstance(d.get("issues"), list),
        )
        items = [self._normalize(issue) for issue in data["issues"]]
        total = data.get("total")
        page = SearchPage(
            items=items,
            total=total if isinstance(total, int) else start_at + len(items),
            start_at=data.get("startAt", start_at),
            max_results=data.get("maxResults", max_results),
        )
        logger.info("Jira search complete", count=len(items), total=page.total)
        return page

    def similarity_query(self, kind: StrategyKind, value: str, record: Record) -> str:
        """Build JQL matching records that share ``value`` with ``record``."""
        quoted = '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
        if kind is StrategyKind.KEYWORD:
            clause = f"text ~ {quoted}"
        elif kind is StrategyKind.COMPONENT:
            clause = f"component = {quoted}"
            if record.project:
                clause = f'project = "{record.project}" AND {clause}'
        elif kind is StrategyKind.LABEL:
            clause = f"labels = {quoted}"
        elif kind is StrategyKind.ASSIGNEE:
            clause = f"assignee = {quoted}"
        else:
            raise ValueError(f"Unsupported strategy kind: {kind}")
        return f"{clause} AND key != {record.key} ORDER BY updated DESC"
