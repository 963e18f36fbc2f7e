"""GitHub issues backend implementation using PyGithub."""

from typing import Any

import structlog
from github import Auth, Github
from github.GithubException import (
    BadCredentialsException,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)
from github.Issue import Issue
from github.Repository import Repository

from ticket_graph.backend import FieldSelector, RecordStore
from ticket_graph.errors import AuthError, NotFoundError, RemoteError, TransientRemoteError
from ticket_graph.models import Comment, Component, Identity, Record, RecordLink, SearchPage, StrategyKind

logger = structlog.get_logger()

# (endpoint suffix, relation label) for each GitHub issue relationship.
RELATIONSHIP_ENDPOINTS = [
    ("dependencies/blocked_by", "is blocked by"),
    ("dependencies/blocking", "blocks"),
    ("parent", "is child of"),
    ("sub_issues", "is parent of"),
]


def translate_error(error: GithubException) -> RemoteError:
    """Map PyGithub exceptions onto the remote error taxonomy."""
    status = getattr(error, "status", None)
    if isinstance(error, BadCredentialsException):
        return AuthError(f"GitHub authentication failed: {error}", status=status)
    if isinstance(error, RateLimitExceededException):
        return TransientRemoteError(f"GitHub rate limit exceeded: {error}", status=status)
    if isinstance(error, UnknownObjectException) or status == 404:
        return NotFoundError(f"GitHub object not found: {error}", status=status)
    if status in (401, 403):
        return AuthError(f"GitHub access denied: {error}", status=status)
    if status is not None and (status == 429 or status >= 500):
        return TransientRemoteError(f"GitHub API error {status}: {error}", status=status)
    return RemoteError(f"GitHub API error {status}: {error}", status=status)


def _wants(fields: FieldSelector, name: str) -> bool:
    return fields == "all" or (fields is not None and name in fields)


class GitHubBackend(RecordStore):
    """GitHub-based record store using issues as records and issue relationships as links."""

    def __init__(self, owner: str, repo: str, token: str | None = None, comment_limit: int = 5) -> None:
        """Initialize GitHub backend.

        Args:
            owner: Repository owner
            repo: Repository name
            token: GitHub personal access token
            comment_limit: Number of most recent comments kept per record
        """
        self.owner = owner
        self.repo = repo
        self.token = token
        self.comment_limit = comment_limit
        if not self.token:
            raise ValueError("GitHub token required")

        logger.debug("Initializing GitHub backend", owner=owner, repo=repo)
        auth = Auth.Token(self.token)
        self.client = Github(auth=auth)
        try:
            self.repository: Repository = self.client.get_repo(f"{owner}/{repo}")
        except GithubException as e:
            raise translate_error(e) from e
        logger.info("GitHub backend initialized", owner=owner, repo=repo)

    def _fetch_links(self, number: str) -> list[RecordLink]:
        """Read dependency and sub-issue relationships through the REST API."""
        requester = self.client._Github__requester
        links: list[RecordLink] = []

        for suffix, relation in RELATIONSHIP_ENDPOINTS:
            url = f"/repos/{self.owner}/{self.repo}/issues/{number}/{suffix}"
            try:
                _, data = requester.requestJsonAndCheck("GET", url)
            except GithubException as e:
                error = translate_error(e)
                if not isinstance(error, NotFoundError):
                    raise error from e
                logger.debug("No relationships found", number=number, relation=relation, error=str(e))
                continue

            related: list[Any] = data if isinstance(data, list) else [data] if isinstance(data, dict) else []
            for item in related:
                if isinstance(item, dict) and item.get("number") is not None:
                    links.append(RecordLink(target_key=str(item["number"]), relation=relation))

        logger.debug("Retrieved issue relationships", number=number, count=len(links))
        return links

    def _issue_to_record(
        self,
        issue: Issue,
        links: list[RecordLink] | None = None,
        with_comments: bool = False,
    ) -> Record:
        """Convert GitHub issue to Record."""
        logger.debug("Converting GitHub issue to record", issue_number=issue.number)

        comments: list[Comment] = []
        if with_comments and self.comment_limit > 0:
            for c in list(issue.get_comments())[-self.comment_limit :]:
                comments.append(
                    Comment(
                        id=str(c.id),
                        author=Identity(account_id=c.user.login, display_name=c.user.login),
                        created=c.created_at.isoformat() if c.created_at else "",
                        body=c.body or "",
                    )
                )

        milestone = issue.milestone
        assignee = issue.assignee
        reporter = issue.user

        return Record(
            key=str(issue.number),
            summary=issue.title,
            status=issue.state.lower(),
            issue_type="pull request" if issue.pull_request else "issue",
            description=issue.body or "",
            labels=tuple(dict.fromkeys(label.name for label in issue.labels)),
            components=(Component(id=str(milestone.number), name=milestone.title),) if milestone else (),
            assignee=Identity(account_id=assignee.login, display_name=assignee.login)
            if assignee
            else None,
            reporter=Identity(account_id=reporter.login, display_name=reporter.login)
            if reporter
            else None,
            created=issue.created_at,
            updated=issue.updated_at,
            project=f"{self.owner}/{self.repo}",
            url=issue.html_url,
            comments=tuple(comments),
            links=tuple(links or ()),
        )

    def fetch_record(self, key: str, fields: FieldSelector = None) -> Record:
        """Read a GitHub issue by number.

        Relationships are only requested when ``fields`` asks for ``issuelinks``
        and comments only when it asks for ``comment``.
        """
        logger.info("Reading GitHub issue", key=key)
        try:
            issue = self.repository.get_issue(number=int(key))
            links = self._fetch_links(key) if _wants(fields, "issuelinks") else []
            record = self._issue_to_record(issue, links, with_comments=_wants(fields, "comment"))
        except ValueError as e:
            raise NotFoundError(f"Not a GitHub issue number: {key}") from e
        except GithubException as e:
            raise translate_error(e) from e
        logger.debug("GitHub issue read successfully", key=key, links=len(record.links))
        return record

    def search_records(self, query: str, start_at: int = 0, max_results: int = 25) -> SearchPage:
        """Search issues in the configured repository."""
        full_query = f"repo:{self.owner}/{self.repo} is:issue {query}"
        logger.info("Searching GitHub issues", query=full_query, start_at=start_at, max_results=max_results)
        try:
            results = self.client.search_issues(full_query)
            items = [self._issue_to_record(issue) for issue in results[start_at : start_at + max_results]]
            total = results.totalCount
        except GithubException as e:
            raise translate_error(e) from e
        logger.info("GitHub search complete", count=len(items), total=total)
        return SearchPage(items=items, total=total, start_at=start_at, max_results=max_results)

    def similarity_query(self, kind: StrategyKind, value: str, record: Record) -> str:
        """Build GitHub search qualifiers matching records that share ``value``."""
        quoted = '"' + value.replace('"', "") + '"'
        if kind is StrategyKind.KEYWORD:
            return f"{quoted} in:title,body"
        if kind is StrategyKind.COMPONENT:
            return f"milestone:{quoted}"
        if kind is StrategyKind.LABEL:
            return f"label:{quoted}"
        if kind is StrategyKind.ASSIGNEE:
            return f"assignee:{value}"
        raise ValueError(f"Unsupported strategy kind: {kind}")
