"""Dependency analysis orchestration."""

from datetime import datetime, timezone
from typing import Callable

import structlog

from ticket_graph.backend import LINK_FIELDS, DocumentStore, RecordStore
from ticket_graph.blockers import build_insights, find_blockers
from ticket_graph.config import AnalysisSettings
from ticket_graph.doc_links import extract_document_links, extract_document_links_from_text, merge_references
from ticket_graph.errors import AuthError, RemoteError
from ticket_graph.keywords import extract_record_terms
from ticket_graph.models import DependencyAnalysis, DocumentReference, Record
from ticket_graph.similarity import find_similar_records
from ticket_graph.traversal import traverse, validate_depth

logger = structlog.get_logger()

ROOT_FIELDS = [*LINK_FIELDS, "created", "updated"]
TERM_LIMIT = 20


class DependencyAnalyzer:
    """Composes traversal, blocker analysis, document extraction, similarity search and term extraction."""

    def __init__(
        self,
        records: RecordStore,
        documents: DocumentStore | None = None,
        settings: AnalysisSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            records: Ticket tracker to read records from
            documents: Optional document store used to resolve referenced documents
            settings: Analysis knobs (depth, similarity limit, enabled strategies)
            clock: Returns "now"; injectable for tests
        """
        self.records = records
        self.documents = documents
        self.settings = settings or AnalysisSettings()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def document_base_url(self) -> str:
        return self.documents.base_url if self.documents else ""

    def document_references(self, record: Record) -> list[DocumentReference]:
        """References from the record's description and comments, deduplicated by URL."""
        groups = []
        bodies = [(record.description_doc, record.description)]
        bodies.extend((c.body_doc, c.body) for c in record.comments)
        for doc, text in bodies:
            if doc is not None:
                groups.append(extract_document_links(doc, self.document_base_url))
            elif text:
                groups.append(extract_document_links_from_text(text, self.document_base_url))
        return merge_references(groups)

    def resolve_documents(self, references: list[DocumentReference]) -> list[DocumentReference]:
        """Look up title and canonical URL for every reference that carries an id.

        Unresolvable documents keep their extracted details.
        """
        if self.documents is None:
            return references

        resolved: list[DocumentReference] = []
        seen_ids: set[str] = set()
        for reference in references:
            if reference.id is None:
                resolved.append(reference)
                continue
            if reference.id in seen_ids:
                continue
            seen_ids.add(reference.id)
            try:
                document = self.documents.fetch_document(reference.id)
            except AuthError:
                raise
            except RemoteError as e:
                logger.warning("Failed to resolve document", document_id=reference.id, error=str(e))
                resolved.append(reference)
                continue
            resolved.append(
                DocumentReference(
                    url=document.url or reference.url,
                    id=reference.id,
                    title=document.title or reference.title,
                )
            )
        return resolved

    def analyze(
        self,
        key: str,
        depth: int | None = None,
        detect_sparse: bool = True,
        similar_limit: int | None = None,
        timeout: float | None = None,
    ) -> DependencyAnalysis:
        """Run the full dependency analysis for one record.

        Raises:
            AuthError: credentials were rejected at any step
            NotFoundError: the root record does not exist
            ValueError: depth outside 1..10
        """
        depth = validate_depth(depth if depth is not None else self.settings.depth)
        limit = similar_limit if similar_limit is not None else self.settings.similar_limit
        analyzed_at = self.clock()
        logger.info("Starting dependency analysis", key=key, depth=depth)

        root = self.records.fetch_record(key, ROOT_FIELDS)
        graph = traverse(self.records, key, depth, timeout=timeout)

        blockers = find_blockers(graph, root.created, now=analyzed_at)
        insights = build_insights(graph, blockers)

        references = self.resolve_documents(self.document_references(root))

        similar = None
        if detect_sparse:
            similar = find_similar_records(self.records, root, limit=limit, kinds=self.settings.strategies)

        terms = extract_record_terms(root, graph).top(TERM_LIMIT)

        logger.info(
            "Dependency analysis complete",
            key=key,
            nodes=len(graph.nodes),
            blockers=len(blockers),
            documents=len(references),
        )
        return DependencyAnalysis(
            ticket=root,
            dependency_graph=graph,
            blockers=blockers,
            document_references=references,
            insights=insights,
            terms=terms,
            similar_records=similar,
            analyzed_at=analyzed_at,
            depth=depth,
        )
