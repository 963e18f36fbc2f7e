"""Blocker identification and aging insights over a dependency graph."""

from datetime import datetime, timezone

import structlog

from ticket_graph.models import Blocker, DependencyGraph, Edge, Insights

logger = structlog.get_logger()

SECONDS_PER_DAY = 86400
LONG_TERM_BLOCKER_DAYS = 30


def is_blocking(edge: Edge) -> bool:
    return "block" in edge.relation.lower()


def find_blockers(
    graph: DependencyGraph,
    root_created: datetime | None,
    now: datetime | None = None,
) -> list[Blocker]:
    """Blockers for the graph root, in edge order.

    Each blocking edge whose target was fetched into the graph yields one
    blocker (deduplicated by key, the root itself excluded). The root's
    creation time stands in for when the block began.
    """
    now = now or datetime.now(timezone.utc)
    days_blocked = None
    if root_created is not None:
        if root_created.tzinfo is None:
            root_created = root_created.replace(tzinfo=timezone.utc)
        days_blocked = int((now - root_created).total_seconds() // SECONDS_PER_DAY)

    blockers: list[Blocker] = []
    seen: set[str] = set()
    for edge in graph.edges:
        if not is_blocking(edge) or edge.target == graph.root or edge.target in seen:
            continue
        node = graph.nodes.get(edge.target)
        if node is None:
            continue
        seen.add(edge.target)
        blockers.append(
            Blocker(
                key=node.key,
                summary=node.summary,
                status=node.status,
                blocked_since=root_created,
                days_blocked=days_blocked,
            )
        )

    logger.debug("Blockers identified", root=graph.root, count=len(blockers))
    return blockers


def build_insights(graph: DependencyGraph, blockers: list[Blocker]) -> Insights:
    """Summarize dependency counts, blocker age and notable patterns."""
    ages = [b.days_blocked for b in blockers if b.days_blocked is not None]
    avg_age = sum(ages) / len(ages) if ages else None
    # A 0/1 flag rather than a longest-path length.
    chain = 1 if any(e.source == graph.root and is_blocking(e) for e in graph.edges) else 0

    insights = Insights(
        total_dependencies=max(len(graph.nodes) - 1, 0),
        blocking_chain_length=chain,
        avg_blocker_age_days=avg_age,
    )

    if len(blockers) >= 2:
        insights.patterns.append(f"multiple blockers detected ({len(blockers)} issues blocking progress)")
    if graph.circular_deps:
        insights.patterns.append(f"circular dependencies found: {', '.join(graph.circular_deps)}")
    if avg_age is not None and avg_age > LONG_TERM_BLOCKER_DAYS:
        insights.patterns.append(f"long-term blockers (avg {round(avg_age)} days blocked)")

    logger.debug("Insights built", root=graph.root, patterns=len(insights.patterns))
    return insights
