"""Tests for blocker identification and insights."""

from datetime import datetime, timedelta

from ticket_graph.blockers import build_insights, find_blockers, is_blocking
from ticket_graph.models import DependencyGraph, Edge, Record


def graph_of(root: str, edges: list[Edge], keys: list[str], circular: list[str] | None = None) -> DependencyGraph:
    return DependencyGraph(
        root=root,
        nodes={k: Record(key=k) for k in keys},
        edges=edges,
        circular_deps=circular or [],
    )


def test_is_blocking_matches_any_block_relation() -> None:
    assert is_blocking(Edge("A", "B", "blocks"))
    assert is_blocking(Edge("A", "B", "is blocked by"))
    assert is_blocking(Edge("A", "B", "Blocks"))
    assert not is_blocking(Edge("A", "B", "relates to"))


def test_blocker_age_uses_root_creation_time(now: datetime) -> None:
    graph = graph_of("A", [Edge("A", "B", "is blocked by")], ["A", "B"])
    created = now - timedelta(days=12, hours=5)

    blockers = find_blockers(graph, created, now=now)

    assert len(blockers) == 1
    assert blockers[0].key == "B"
    assert blockers[0].days_blocked == 12
    assert blockers[0].blocked_since == created


def test_blockers_skip_root_duplicates_and_unfetched_targets(now: datetime) -> None:
    graph = graph_of(
        "A",
        [
            Edge("A", "B", "blocks"),
            Edge("B", "A", "blocks"),
            Edge("C", "B", "is blocked by"),
            Edge("A", "X", "blocks"),
            Edge("A", "C", "relates to"),
        ],
        ["A", "B", "C"],
    )

    blockers = find_blockers(graph, now, now=now)

    assert [b.key for b in blockers] == ["B"]


def test_unknown_creation_time_leaves_age_empty() -> None:
    graph = graph_of("A", [Edge("A", "B", "blocks")], ["A", "B"])

    blockers = find_blockers(graph, None)

    assert blockers[0].days_blocked is None
    assert blockers[0].blocked_since is None


def test_naive_creation_time_is_treated_as_utc(now: datetime) -> None:
    graph = graph_of("A", [Edge("A", "B", "blocks")], ["A", "B"])

    blockers = find_blockers(graph, datetime(2024, 5, 1, 12, 0), now=now)

    assert blockers[0].days_blocked == 31


def test_insights_report_all_patterns(now: datetime) -> None:
    graph = graph_of(
        "A",
        [Edge("A", "B", "is blocked by"), Edge("A", "C", "is blocked by"), Edge("C", "A", "blocks")],
        ["A", "B", "C"],
        circular=["A (circular dependency detected)"],
    )
    blockers = find_blockers(graph, now - timedelta(days=45), now=now)

    insights = build_insights(graph, blockers)

    assert insights.total_dependencies == 2
    assert insights.blocking_chain_length == 1
    assert insights.avg_blocker_age_days == 45
    assert insights.patterns == [
        "multiple blockers detected (2 issues blocking progress)",
        "circular dependencies found: A (circular dependency detected)",
        "long-term blockers (avg 45 days blocked)",
    ]


def test_insights_for_isolated_record() -> None:
    graph = graph_of("A", [], ["A"])

    insights = build_insights(graph, [])

    assert insights.total_dependencies == 0
    assert insights.blocking_chain_length == 0
    assert insights.avg_blocker_age_days is None
    assert insights.patterns == []
    assert "avg_blocker_age_days" not in insights.to_dict()


def test_empty_graph_never_reports_negative_dependencies() -> None:
    insights = build_insights(DependencyGraph(root="A"), [])

    assert insights.total_dependencies == 0


def test_recent_single_blocker_has_no_patterns(now: datetime) -> None:
    graph = graph_of("A", [Edge("B", "C", "blocks")], ["A", "B", "C"])
    blockers = find_blockers(graph, now - timedelta(days=3), now=now)

    insights = build_insights(graph, blockers)

    assert [b.key for b in blockers] == ["C"]
    # Only edges leaving the root count towards the chain flag.
    assert insights.blocking_chain_length == 0
    assert insights.patterns == []
