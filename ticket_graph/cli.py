"""CLI for ticket graph."""

import json
from typing import Annotated, Literal

import structlog
from cyclopts import App, Parameter

from ticket_graph.analysis import DependencyAnalyzer
from ticket_graph.backend import DocumentStore, RecordStore
from ticket_graph.backends import ConfluenceBackend, GitHubBackend, JiraBackend
from ticket_graph.config import AnalysisSettings, Config, get_config
from ticket_graph.config_commands import config_app
from ticket_graph.errors import NotFoundError
from ticket_graph.graph_commands import graph_app
from ticket_graph.models import DependencyAnalysis, SimilarRecords
from ticket_graph.similarity import find_similar_records

logger = structlog.get_logger()

app = App(
    help="Ticket Graph - Dependency and context analysis for tracker tickets",
)

app.command(graph_app)
app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_settings(config: Config | None = None) -> AnalysisSettings:
    return AnalysisSettings.from_config(config or get_config())


def get_backend(config: Config | None = None) -> RecordStore:
    """Get the configured record store."""
    config = config or get_config()
    backend_type = config.get("backend", "jira")
    comment_limit = get_settings(config).comment_limit

    if backend_type == "jira":
        base_url = config.get("jira.base_url")
        if not base_url:
            raise ValueError(
                "Jira site not configured. Set it using:\n"
                "  tg config set jira.base_url https://<site>.atlassian.net\n"
                "  tg config set jira.email <email>\n"
                "  tg config set jira.token <api-token>"
            )
        return JiraBackend(
            base_url=base_url,
            email=config.get("jira.email"),
            token=config.get("jira.token"),
            comment_limit=comment_limit,
        )
    elif backend_type == "github":
        owner = config.get("github.owner")
        repo = config.get("github.repository")
        token = config.get("github.token")

        if not owner or not repo:
            raise ValueError(
                "GitHub owner and repo not configured. Set them using:\n"
                "  tg config set github.owner <owner>\n"
                "  tg config set github.repository <repo>"
            )
        return GitHubBackend(owner=owner, repo=repo, token=token, comment_limit=comment_limit)
    else:
        raise ValueError(f"Unknown backend: {backend_type}")


def get_document_store(config: Config | None = None) -> DocumentStore | None:
    """Get the configured document store, or None when no wiki is configured.

    Confluence settings default to the Jira site and credentials.
    """
    config = config or get_config()
    base_url = config.get("confluence.base_url")
    jira_url = config.get("jira.base_url")
    if not base_url and jira_url:
        base_url = f"{jira_url.rstrip('/')}/wiki"
    if not base_url:
        logger.debug("No document store configured")
        return None
    email = config.get("confluence.email") or config.get("jira.email")
    token = config.get("confluence.token") or config.get("jira.token")
    return ConfluenceBackend(base_url=base_url, email=email, token=token)


def get_analyzer() -> DependencyAnalyzer:
    config = get_config()
    return DependencyAnalyzer(
        get_backend(config),
        documents=get_document_store(config),
        settings=get_settings(config),
    )


def print_similar(similar: SimilarRecords) -> None:
    print(f"Similar tickets: {similar.summary}")
    for candidate in similar.candidates:
        print(f"  {candidate.confidence_score:.2f} {candidate.key}: {candidate.summary} [{candidate.status}]")
        print(f"       {', '.join(candidate.match_reason)}")


def print_analysis(result: DependencyAnalysis) -> None:
    ticket = result.ticket
    graph = result.dependency_graph
    print(f"Ticket: {ticket.key} {ticket.summary} ({ticket.status})")
    if ticket.url:
        print(f"URL: {ticket.url}")
    print(f"Dependencies: {result.insights.total_dependencies} ({len(graph.edges)} link(s))\n")

    if result.blockers:
        print("Blockers:")
        for blocker in result.blockers:
            age = f", {blocker.days_blocked} day(s)" if blocker.days_blocked is not None else ""
            print(f"  - {blocker.key} {blocker.summary} ({blocker.status}{age})")
        print()

    if graph.circular_deps:
        print("Circular dependencies:")
        for marker in graph.circular_deps:
            print(f"  - {marker}")
        print()

    if result.document_references:
        print("Documents:")
        for reference in result.document_references:
            print(f"  - {reference.title or reference.id or '(untitled)'}: {reference.url}")
        print()

    if result.insights.patterns:
        print("Patterns:")
        for pattern in result.insights.patterns:
            print(f"  - {pattern}")
        print()

    if result.terms.technical_terms:
        print(f"Technical terms: {', '.join(result.terms.technical_terms)}")
    if result.terms.keywords:
        print(f"Keywords: {', '.join(result.terms.keywords)}")

    if result.similar_records is not None and result.similar_records.is_sparse:
        print()
        print_similar(result.similar_records)


@app.command
def analyze(
    key: str,
    depth: int | None = None,
    similar: bool = True,
    limit: int | None = None,
    timeout: float | None = None,
    json_: Annotated[bool, Parameter(name="--json")] = False,
) -> None:
    """Analyze dependencies, blockers, documents and similar tickets for a ticket.

    Args:
        key: Ticket key, e.g. PROJ-123
        depth: Link depth to traverse (1-10)
        similar: Search for similar tickets when the ticket lacks context
        limit: Maximum number of similar tickets
        timeout: Time budget in seconds for the link traversal
        json_: Print the raw analysis as JSON
    """
    analyzer = get_analyzer()
    result = analyzer.analyze(key, depth=depth, detect_sparse=similar, similar_limit=limit, timeout=timeout)
    if json_:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_analysis(result)


@app.command
def docs(key: str) -> None:
    """List documents referenced by a ticket."""
    analyzer = get_analyzer()
    ticket = analyzer.records.fetch_record(key, "all")
    references = analyzer.resolve_documents(analyzer.document_references(ticket))

    if not references:
        print(f"No documents referenced by {key}")
        return

    print(f"Documents referenced by {key}:\n")
    for reference in references:
        print(f"  [{reference.id or '-'}] {reference.title or '(untitled)'}")
        print(f"      {reference.url}")


@app.command
def similar(key: str, limit: int | None = None) -> None:
    """Find tickets similar to a ticket that lacks context."""
    config = get_config()
    settings = get_settings(config)
    backend = get_backend(config)
    ticket = backend.fetch_record(key, "all")
    limit = limit if limit is not None else settings.similar_limit
    result = find_similar_records(backend, ticket, limit=limit, kinds=settings.strategies)
    print_similar(result)


@app.command
def backlinks(page_id: str, validate: bool = False) -> None:
    """List ticket keys mentioned in a document.

    Args:
        page_id: Document id
        validate: Only list keys that exist in the tracker
    """
    config = get_config()
    documents = get_document_store(config)
    if not isinstance(documents, ConfluenceBackend):
        raise ValueError("Confluence not configured. Set it using:\n  tg config set confluence.base_url <url>")

    keys = documents.linked_record_keys(page_id)
    if validate and keys:
        backend = get_backend(config)
        existing = []
        for key in keys:
            try:
                backend.fetch_record(key, ["summary"])
            except NotFoundError:
                logger.debug("Mentioned ticket does not exist", key=key)
                continue
            existing.append(key)
        keys = existing

    if not keys:
        print(f"No tickets mentioned in document {page_id}")
        return

    print(f"Tickets mentioned in document {page_id}:\n")
    for key in keys:
        print(f"  - {key}")


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    app(tokens)


def run() -> None:
    app.meta()


if __name__ == "__main__":
    run()
