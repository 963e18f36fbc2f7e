"""Tests for GitHub backend record and relationship reading."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock

import pytest
from github import Github
from github.GithubException import (
    BadCredentialsException,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)
from github.Issue import Issue
from github.Repository import Repository

from ticket_graph.backends.github import GitHubBackend, translate_error
from ticket_graph.errors import AuthError, NotFoundError, RemoteError, TransientRemoteError
from ticket_graph.models import Identity, Record, StrategyKind
from ticket_graph.traversal import traverse


@pytest.fixture
def mock_github_client() -> Mock:
    """Create a mock PyGithub client."""
    client = MagicMock(spec=Github)
    client._Github__requester = MagicMock()
    return client


@pytest.fixture
def mock_repository() -> Mock:
    """Create a mock repository."""
    return MagicMock(spec=Repository)


@pytest.fixture
def github_backend(mock_github_client: Mock, mock_repository: Mock, monkeypatch: pytest.MonkeyPatch) -> GitHubBackend:
    """Create a GitHub backend with mocked client."""
    mock_github_client.get_repo.return_value = mock_repository

    with monkeypatch.context() as m:
        m.setattr("ticket_graph.backends.github.Github", lambda auth: mock_github_client)
        backend = GitHubBackend(owner="test_owner", repo="test_repo", token="fake_token")

    return backend


def make_user(login: str) -> Mock:
    """Create a user mock exposing only ``login``; other profile attributes would load /users/<login>."""
    user = Mock(spec=["login"])
    user.login = login
    return user


def make_issue(number: int, title: str = "Issue", labels: list[str] | None = None) -> Mock:
    """Create a mock issue; label mocks get ``name`` set after creation."""
    issue = MagicMock(spec=Issue)
    issue.number = number
    issue.title = title
    issue.body = "Body text"
    issue.state = "open"
    issue.pull_request = None
    issue.milestone = None
    issue.assignee = make_user("dana")
    issue.user = make_user("sam")
    issue.created_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
    issue.updated_at = datetime(2024, 1, 2, tzinfo=timezone.utc)
    issue.html_url = f"https://github.com/test_owner/test_repo/issues/{number}"
    label_mocks = []
    for name in labels or []:
        label = MagicMock()
        label.name = name
        label_mocks.append(label)
    issue.labels = label_mocks
    return issue


def relationships(mapping: dict[str, object]):
    """requestJsonAndCheck side effect serving relationship payloads by URL suffix."""

    def respond(method: str, url: str, **kwargs):
        for suffix, payload in mapping.items():
            if url.endswith(suffix):
                if isinstance(payload, Exception):
                    raise payload
                return {}, payload
        raise GithubException(404, {"message": "Not Found"}, None)

    return respond


def test_requires_token() -> None:
    with pytest.raises(ValueError, match="GitHub token required"):
        GitHubBackend(owner="o", repo="r", token=None)


def test_fetch_record_with_links(github_backend: GitHubBackend, mock_repository: Mock) -> None:
    mock_repository.get_issue.return_value = make_issue(1, "Ship it", labels=["bug", "bug", "backend"])
    requester = github_backend.client._Github__requester
    requester.requestJsonAndCheck.side_effect = relationships(
        {
            "dependencies/blocked_by": [{"number": 2}],
            "dependencies/blocking": [],
            "sub_issues": [{"number": 5}, {"title": "no number"}],
        }
    )

    record = github_backend.fetch_record("1", ["issuelinks"])

    mock_repository.get_issue.assert_called_once_with(number=1)
    assert record.key == "1"
    assert record.summary == "Ship it"
    assert record.labels == ("bug", "backend")
    assert record.assignee is not None and record.assignee.display_name == "dana"
    assert record.reporter is not None and record.reporter.display_name == "sam"
    assert record.project == "test_owner/test_repo"
    assert [(link.target_key, link.relation) for link in record.links] == [
        ("2", "is blocked by"),
        ("5", "is parent of"),
    ]
    called_urls = [c[0][1] for c in requester.requestJsonAndCheck.call_args_list]
    assert "/repos/test_owner/test_repo/issues/1/parent" in called_urls


def test_fetch_record_without_link_fields_skips_relationships(
    github_backend: GitHubBackend, mock_repository: Mock
) -> None:
    mock_repository.get_issue.return_value = make_issue(3)

    record = github_backend.fetch_record("3")

    assert record.links == ()
    assert record.comments == ()
    github_backend.client._Github__requester.requestJsonAndCheck.assert_not_called()


def test_fetch_record_keeps_recent_comments(github_backend: GitHubBackend, mock_repository: Mock) -> None:
    issue = make_issue(4)
    comments = []
    for i in range(7):
        comment = MagicMock()
        comment.id = i
        comment.user = make_user("dev")
        comment.created_at = datetime(2024, 1, 1 + i, tzinfo=timezone.utc)
        comment.body = f"comment {i}"
        comments.append(comment)
    issue.get_comments.return_value = comments
    mock_repository.get_issue.return_value = issue
    github_backend.client._Github__requester.requestJsonAndCheck.side_effect = relationships({})

    record = github_backend.fetch_record("4", "all")

    assert [c.body for c in record.comments] == ["comment 2", "comment 3", "comment 4", "comment 5", "comment 6"]


def test_fetch_record_with_non_numeric_key(github_backend: GitHubBackend) -> None:
    with pytest.raises(NotFoundError):
        github_backend.fetch_record("PROJ-1")


def test_fetch_missing_issue(github_backend: GitHubBackend, mock_repository: Mock) -> None:
    mock_repository.get_issue.side_effect = UnknownObjectException(404, {"message": "Not Found"}, None)

    with pytest.raises(NotFoundError):
        github_backend.fetch_record("99")


def test_relationship_auth_failure_propagates(github_backend: GitHubBackend, mock_repository: Mock) -> None:
    mock_repository.get_issue.return_value = make_issue(1)
    github_backend.client._Github__requester.requestJsonAndCheck.side_effect = relationships(
        {"dependencies/blocked_by": BadCredentialsException(401, {"message": "Bad credentials"}, None)}
    )

    with pytest.raises(AuthError):
        github_backend.fetch_record("1", ["issuelinks"])


def test_relationship_server_error_propagates(github_backend: GitHubBackend, mock_repository: Mock) -> None:
    mock_repository.get_issue.return_value = make_issue(1)
    github_backend.client._Github__requester.requestJsonAndCheck.side_effect = relationships(
        {
            "dependencies/blocked_by": GithubException(503, {"message": "Service Unavailable"}, None),
            "dependencies/blocking": [{"number": 3}],
        }
    )

    with pytest.raises(TransientRemoteError) as exc_info:
        github_backend.fetch_record("1", ["issuelinks"])

    assert exc_info.value.status == 503


def test_partially_read_relationships_omit_the_node(github_backend: GitHubBackend, mock_repository: Mock) -> None:
    mock_repository.get_issue.side_effect = lambda number: make_issue(number)

    def respond(method: str, url: str, **kwargs):
        if url.endswith("/issues/1/dependencies/blocking"):
            return {}, [{"number": 2}]
        if url.endswith("/issues/2/dependencies/blocked_by"):
            raise GithubException(502, {"message": "Bad Gateway"}, None)
        raise GithubException(404, {"message": "Not Found"}, None)

    github_backend.client._Github__requester.requestJsonAndCheck.side_effect = respond

    graph = traverse(github_backend, "1", 2)

    assert set(graph.nodes) == {"1"}
    assert [(e.source, e.target, e.relation) for e in graph.edges] == [("1", "2", "blocks")]


def test_identities_use_login_only(github_backend: GitHubBackend, mock_repository: Mock) -> None:
    issue = make_issue(6)
    comment = MagicMock()
    comment.id = 1
    comment.user = make_user("lee")
    comment.created_at = None
    comment.body = "LGTM"
    issue.get_comments.return_value = [comment]
    mock_repository.get_issue.return_value = issue
    github_backend.client._Github__requester.requestJsonAndCheck.side_effect = relationships({})

    record = github_backend.fetch_record("6", "all")

    assert record.assignee == Identity(account_id="dana", display_name="dana")
    assert record.reporter == Identity(account_id="sam", display_name="sam")
    assert record.comments[0].author == Identity(account_id="lee", display_name="lee")


def test_search_records(github_backend: GitHubBackend, mock_github_client: Mock) -> None:
    results = MagicMock()
    results.__getitem__.return_value = [make_issue(7, "Cache warmup")]
    results.totalCount = 1
    mock_github_client.search_issues.return_value = results

    page = github_backend.search_records('label:"cache"', 0, 20)

    mock_github_client.search_issues.assert_called_once_with('repo:test_owner/test_repo is:issue label:"cache"')
    results.__getitem__.assert_called_once_with(slice(0, 20))
    assert page.total == 1
    assert [r.key for r in page.items] == ["7"]


@pytest.mark.parametrize(
    "kind,expected",
    [
        (StrategyKind.KEYWORD, '"redis" in:title,body'),
        (StrategyKind.COMPONENT, 'milestone:"redis"'),
        (StrategyKind.LABEL, 'label:"redis"'),
        (StrategyKind.ASSIGNEE, "assignee:redis"),
    ],
)
def test_similarity_query(github_backend: GitHubBackend, kind: StrategyKind, expected: str) -> None:
    assert github_backend.similarity_query(kind, "redis", Record(key="1")) == expected


@pytest.mark.parametrize(
    "error,expected",
    [
        (BadCredentialsException(401, {}, None), AuthError),
        (RateLimitExceededException(403, {}, None), TransientRemoteError),
        (UnknownObjectException(404, {}, None), NotFoundError),
        (GithubException(403, {}, None), AuthError),
        (GithubException(502, {}, None), TransientRemoteError),
        (GithubException(422, {}, None), RemoteError),
    ],
)
def test_translate_error(error: GithubException, expected: type) -> None:
    translated = translate_error(error)

    assert type(translated) is expected
    assert translated.status == error.status
