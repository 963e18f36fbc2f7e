"""Data models for ticket graph analysis."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Identity:
    """A tracker user (assignee, reporter, comment author)."""

    account_id: str
    display_name: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"account_id": self.account_id, "display_name": self.display_name}


@dataclass(frozen=True)
class Component:
    """A component (or milestone) a record belongs to."""

    id: str
    name: str


@dataclass(frozen=True)
class Comment:
    """A single comment in a record's recent comment window."""

    id: str
    author: Identity
    created: str
    body: str
    body_doc: Any = None


@dataclass(frozen=True)
class RecordLink:
    """A link reported on a record, already resolved to the far end and its label."""

    target_key: str
    relation: str


@dataclass(frozen=True)
class Record:
    """Normalized snapshot of a single tracker record.

    Created once per fetch and never mutated during an analysis. ``links`` keeps
    the order the remote returned them in, ``description_doc`` holds the raw
    rich-text tree (if the tracker has one) for document link extraction.
    """

    key: str
    summary: str = ""
    status: str = ""
    issue_type: str = ""
    description: str = ""
    labels: tuple[str, ...] = ()
    components: tuple[Component, ...] = ()
    assignee: Identity | None = None
    reporter: Identity | None = None
    priority: str | None = None
    created: datetime | None = None
    updated: datetime | None = None
    project: str = ""
    url: str = ""
    comments: tuple[Comment, ...] = ()
    links: tuple[RecordLink, ...] = ()
    description_doc: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the analysis result (raw rich-text trees are dropped)."""
        return {
            "key": self.key,
            "summary": self.summary,
            "status": self.status,
            "issue_type": self.issue_type,
            "description": self.description or None,
            "labels": list(self.labels),
            "components": [{"id": c.id, "name": c.name} for c in self.components],
            "assignee": self.assignee.to_dict() if self.assignee else None,
            "reporter": self.reporter.to_dict() if self.reporter else None,
            "priority": self.priority,
            "created": _isoformat(self.created),
            "updated": _isoformat(self.updated),
            "url": self.url or None,
            "comments": [
                {"id": c.id, "author": c.author.to_dict(), "created": c.created, "body": c.body}
                for c in self.comments
            ],
        }


@dataclass(frozen=True)
class Edge:
    """Directed, labeled edge between two record keys."""

    source: str
    target: str
    relation: str

    def to_dict(self) -> dict[str, str]:
        return {"from": self.source, "to": self.target, "type": self.relation}


@dataclass
class DependencyGraph:
    """Result of one bounded traversal.

    ``edges`` may reference keys that are absent from ``nodes`` (dangling edges).
    """

    root: str
    nodes: dict[str, Record] = field(default_factory=dict)
    edges: list[Edge] = field(default_factory=list)
    circular_deps: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [record.to_dict() for record in self.nodes.values()],
            "edges": [edge.to_dict() for edge in self.edges],
            "circular_deps": list(self.circular_deps),
        }


@dataclass(frozen=True)
class Blocker:
    """A linked record impeding progress of the analyzed record."""

    key: str
    summary: str
    status: str
    blocked_since: datetime | None = None
    days_blocked: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "summary": self.summary,
            "status": self.status,
            "blocked_since": _isoformat(self.blocked_since),
            "days_blocked": self.days_blocked,
        }


@dataclass
class Insights:
    """Aggregate observations over a dependency graph."""

    total_dependencies: int
    blocking_chain_length: int
    avg_blocker_age_days: float | None = None
    patterns: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "total_dependencies": self.total_dependencies,
            "blocking_chain_length": self.blocking_chain_length,
            "patterns": list(self.patterns),
        }
        if self.avg_blocker_age_days is not None:
            data["avg_blocker_age_days"] = self.avg_blocker_age_days
        return data


@dataclass(frozen=True)
class DocumentReference:
    """A reference to an external document found in record text."""

    url: str
    id: str | None = None
    title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title or "", "url": self.url or None}


@dataclass(frozen=True)
class Document:
    """Normalized document from the document store."""

    id: str
    title: str = ""
    url: str | None = None
    body: str = ""
    ancestors: tuple[str, ...] = ()


@dataclass
class SearchPage:
    """One page of search results."""

    items: list[Any]
    total: int
    start_at: int = 0
    max_results: int = 0


class StrategyKind(str, Enum):
    """Similarity search categories and their weights."""

    KEYWORD = "keyword"
    COMPONENT = "component"
    LABEL = "label"
    ASSIGNEE = "assignee"

    @property
    def weight(self) -> float:
        return STRATEGY_WEIGHTS[self]


STRATEGY_WEIGHTS: dict[StrategyKind, float] = {
    StrategyKind.KEYWORD: 0.7,
    StrategyKind.COMPONENT: 0.9,
    StrategyKind.LABEL: 0.6,
    StrategyKind.ASSIGNEE: 0.4,
}


@dataclass(frozen=True)
class SearchStrategy:
    """A single similarity query with its description and weight."""

    query: str
    description: str
    weight: float
    kind: StrategyKind = StrategyKind.KEYWORD


@dataclass
class SimilarityCandidate:
    """A historical record found by one or more similarity strategies."""

    key: str
    summary: str
    status: str
    match_reason: list[str] = field(default_factory=list)
    confidence_score: float = 0.0
    labels: tuple[str, ...] = ()
    components: tuple[Component, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "summary": self.summary,
            "status": self.status,
            "match_reason": ", ".join(self.match_reason),
            "confidence_score": round(self.confidence_score, 4),
            "labels": list(self.labels),
            "components": [c.name for c in self.components],
        }


@dataclass
class SimilarRecords:
    """Outcome of the similarity search step."""

    is_sparse: bool
    candidates: list[SimilarityCandidate] = field(default_factory=list)
    summary: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_sparse": self.is_sparse,
            "candidates": [c.to_dict() for c in self.candidates],
            "summary": self.summary,
        }


@dataclass
class ExtractedTerms:
    """Technical terms and search keywords in first-seen order."""

    technical_terms: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)

    def top(self, limit: int) -> "ExtractedTerms":
        return ExtractedTerms(self.technical_terms[:limit], self.keywords[:limit])

    def to_dict(self) -> dict[str, list[str]]:
        return {"technical_terms": list(self.technical_terms), "keywords": list(self.keywords)}


@dataclass
class DependencyAnalysis:
    """Full dependency analysis for one root record."""

    ticket: Record
    dependency_graph: DependencyGraph
    blockers: list[Blocker]
    document_references: list[DocumentReference]
    insights: Insights
    terms: ExtractedTerms
    similar_records: SimilarRecords | None = None
    analyzed_at: datetime | None = None
    depth: int = 3

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ticket": self.ticket.to_dict(),
            "dependency_graph": self.dependency_graph.to_dict(),
            "blockers": [b.to_dict() for b in self.blockers],
            "document_references": [d.to_dict() for d in self.document_references],
            "insights": self.insights.to_dict(),
            "terms": self.terms.to_dict(),
        }
        if self.similar_records is not None:
            data["similar_records"] = self.similar_records.to_dict()
        data["metadata"] = {
            "analyzed_at": _isoformat(self.analyzed_at),
            "depth_traversed": self.depth,
            "tool_version": "1.0",
        }
        return data
