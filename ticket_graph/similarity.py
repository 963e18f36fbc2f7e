"""Similar-record discovery for records lacking descriptive metadata."""

from typing import Iterable

import structlog

from ticket_graph.backend import RecordStore
from ticket_graph.errors import AuthError, RemoteError
from ticket_graph.keywords import extract_terms, record_texts
from ticket_graph.models import Record, SearchStrategy, SimilarityCandidate, SimilarRecords, StrategyKind

logger = structlog.get_logger()

MIN_DESCRIPTION_LENGTH = 50
CORROBORATION_FACTOR = 0.3
SEARCH_PAGE_SIZE = 20
MAX_KEYWORD_QUERIES = 3


def is_sparse(record: Record) -> bool:
    """True if the record has no components, no labels, or a short description."""
    return (
        len(record.components) == 0
        or len(record.labels) == 0
        or len(record.description or "") < MIN_DESCRIPTION_LENGTH
    )


def build_strategies(
    store: RecordStore,
    record: Record,
    kinds: Iterable[StrategyKind] = tuple(StrategyKind),
    max_keywords: int = MAX_KEYWORD_QUERIES,
) -> list[SearchStrategy]:
    """One query per distinct value of every enabled category."""
    enabled = set(kinds)
    values: list[tuple[StrategyKind, str, str]] = []

    if StrategyKind.KEYWORD in enabled:
        text = "\n".join(t for t in record_texts(record) if t)
        for keyword in extract_terms(text).keywords[:max_keywords]:
            values.append((StrategyKind.KEYWORD, keyword, f"keyword match: {keyword}"))
    if StrategyKind.COMPONENT in enabled:
        for name in dict.fromkeys(c.name for c in record.components if c.name):
            values.append((StrategyKind.COMPONENT, name, f"same component: {name}"))
    if StrategyKind.LABEL in enabled:
        for label in dict.fromkeys(record.labels):
            values.append((StrategyKind.LABEL, label, f"shared label: {label}"))
    if StrategyKind.ASSIGNEE in enabled and record.assignee and record.assignee.account_id:
        name = record.assignee.display_name or record.assignee.account_id
        values.append((StrategyKind.ASSIGNEE, record.assignee.account_id, f"same assignee: {name}"))

    strategies = [
        SearchStrategy(
            query=store.similarity_query(kind, value, record),
            description=description,
            weight=kind.weight,
            kind=kind,
        )
        for kind, value, description in values
    ]
    logger.debug("Similarity strategies built", key=record.key, count=len(strategies))
    return strategies


def merge_candidate(
    candidates: dict[str, SimilarityCandidate],
    record: Record,
    strategy: SearchStrategy,
) -> SimilarityCandidate:
    """Add one search hit, boosting candidates already found by other strategies."""
    candidate = candidates.get(record.key)
    if candidate is None:
        candidate = SimilarityCandidate(
            key=record.key,
            summary=record.summary,
            status=record.status,
            match_reason=[strategy.description],
            confidence_score=strategy.weight,
            labels=record.labels,
            components=record.components,
        )
        candidates[record.key] = candidate
    else:
        candidate.confidence_score = min(1.0, candidate.confidence_score + strategy.weight * CORROBORATION_FACTOR)
        candidate.match_reason.append(strategy.description)
    return candidate


def search_similar(
    store: RecordStore,
    record: Record,
    strategies: list[SearchStrategy],
    limit: int = 10,
    page_size: int = SEARCH_PAGE_SIZE,
) -> list[SimilarityCandidate]:
    """Run every strategy and return candidates ranked by confidence.

    A failing strategy is skipped; authentication failures propagate.
    """
    candidates: dict[str, SimilarityCandidate] = {}
    for strategy in strategies:
        logger.debug("Running similarity strategy", description=strategy.description, query=strategy.query)
        try:
            page = store.search_records(strategy.query, 0, page_size)
        except AuthError:
            raise
        except RemoteError as e:
            logger.warning("Similarity strategy failed", description=strategy.description, error=str(e))
            continue
        for hit in page.items:
            if hit.key != record.key:
                merge_candidate(candidates, hit, strategy)

    ranked = sorted(candidates.values(), key=lambda c: c.confidence_score, reverse=True)
    return ranked[:limit]


def summarize(candidates: list[SimilarityCandidate], strategies: list[SearchStrategy]) -> str:
    if not candidates:
        return f"no similar tickets found using {len(strategies)} search strategies"
    top = candidates[0]
    return (
        f"found {len(candidates)} similar tickets using {len(strategies)} search strategies "
        f"(top match {top.key} at {top.confidence_score:.2f} confidence)"
    )


def find_similar_records(
    store: RecordStore,
    record: Record,
    limit: int = 10,
    kinds: Iterable[StrategyKind] = tuple(StrategyKind),
) -> SimilarRecords:
    """Search for similar records when ``record`` is sparse."""
    if not is_sparse(record):
        logger.info("Record has enough context, skipping similarity search", key=record.key)
        return SimilarRecords(
            is_sparse=False,
            summary="ticket has sufficient context; similarity search skipped",
        )

    logger.info("Searching for similar records", key=record.key, limit=limit)
    strategies = build_strategies(store, record, kinds)
    candidates = search_similar(store, record, strategies, limit=limit)
    logger.info("Similarity search complete", key=record.key, candidates=len(candidates))
    return SimilarRecords(is_sparse=True, candidates=candidates, summary=summarize(candidates, strategies))
