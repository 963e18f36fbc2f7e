"""Bounded-depth traversal of a record link graph with cycle detection."""

import time
from dataclasses import dataclass, field
from typing import Iterator

import structlog

from ticket_graph.backend import LINK_FIELDS, RecordStore
from ticket_graph.errors import AuthError, RemoteError
from ticket_graph.models import DependencyGraph, Edge, Record, RecordLink

logger = structlog.get_logger()

MIN_DEPTH = 1
MAX_DEPTH = 10
CYCLE_MARKER = "{key} (circular dependency detected)"


@dataclass
class _Frame:
    key: str
    depth: int
    links: Iterator[RecordLink]
    # Re-expansion from a shallower depth: edges were already recorded.
    replay: bool = False


@dataclass
class TraversalContext:
    """Working state owned by a single traversal invocation.

    ``visited`` maps each fully processed key to the depth it was expanded at,
    so a key first reached near the depth bound can still be expanded when a
    shorter path to it turns up later. Failed fetches are recorded at depth 0
    and never retried.
    """

    root: str
    max_depth: int
    deadline: float | None = None
    nodes: dict[str, Record] = field(default_factory=dict)
    edges: list[Edge] = field(default_factory=list)
    circular_deps: list[str] = field(default_factory=list)
    visited: dict[str, int] = field(default_factory=dict)
    visiting: set[str] = field(default_factory=set)

    def mark_cycle(self, key: str) -> None:
        marker = CYCLE_MARKER.format(key=key)
        if marker not in self.circular_deps:
            logger.info("Circular dependency detected", key=key)
            self.circular_deps.append(marker)

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def to_graph(self) -> DependencyGraph:
        return DependencyGraph(
            root=self.root,
            nodes=dict(self.nodes),
            edges=list(self.edges),
            circular_deps=list(self.circular_deps),
        )


def validate_depth(max_depth: int) -> int:
    if not isinstance(max_depth, int) or not MIN_DEPTH <= max_depth <= MAX_DEPTH:
        raise ValueError(f"Depth must be between {MIN_DEPTH} and {MAX_DEPTH}, got {max_depth!r}")
    return max_depth


def _fetch(store: RecordStore, ctx: TraversalContext, key: str) -> Record | None:
    """Fetch a node, containing every failure except authentication."""
    if ctx.expired():
        logger.warning("Traversal deadline exceeded, skipping record", key=key)
        return None
    try:
        return store.fetch_record(key, LINK_FIELDS)
    except AuthError:
        logger.error("Authentication failed during traversal", key=key)
        raise
    except RemoteError as e:
        logger.warning("Failed to fetch linked record, omitting it", key=key, error=str(e))
        return None


def _enter(store: RecordStore, ctx: TraversalContext, key: str, depth: int) -> _Frame | None:
    """Apply the per-node transition rules; return a frame to expand, if any."""
    if depth > ctx.max_depth:
        return None
    if key in ctx.visiting:
        ctx.mark_cycle(key)
        return None
    if key in ctx.visited:
        expanded_at = ctx.visited[key]
        record = ctx.nodes.get(key)
        if record is None or expanded_at <= depth:
            return None
        logger.debug("Re-expanding record from shallower depth", key=key, depth=depth, previous=expanded_at)
        ctx.visiting.add(key)
        return _Frame(key, depth, iter(record.links), replay=True)

    ctx.visiting.add(key)
    record = _fetch(store, ctx, key)
    if record is None:
        ctx.visiting.discard(key)
        ctx.visited[key] = 0
        return None

    ctx.nodes.setdefault(key, record)
    logger.debug("Record added to graph", key=key, depth=depth, links=len(record.links))
    return _Frame(key, depth, iter(record.links))


def traverse(
    store: RecordStore,
    root: str,
    max_depth: int = 3,
    timeout: float | None = None,
) -> DependencyGraph:
    """Depth-first traversal of the link graph starting at ``root``.

    The root sits at depth 1. Every link of an expanded record becomes an edge,
    including links whose target lies past the depth bound (dangling edges).
    Records that fail to fetch are left out of ``nodes``; authentication
    failures abort the traversal.

    Args:
        store: Record store to fetch from
        root: Key of the starting record
        max_depth: Depth bound, 1 to 10
        timeout: Optional time budget in seconds; records not fetched in time are omitted

    Returns:
        The dependency graph for this invocation
    """
    validate_depth(max_depth)
    deadline = time.monotonic() + timeout if timeout is not None else None
    ctx = TraversalContext(root=root, max_depth=max_depth, deadline=deadline)
    logger.info("Starting traversal", root=root, max_depth=max_depth)

    stack: list[_Frame] = []
    frame = _enter(store, ctx, root, 1)
    if frame is not None:
        stack.append(frame)

    while stack:
        frame = stack[-1]
        link = next(frame.links, None)
        if link is None:
            stack.pop()
            ctx.visiting.discard(frame.key)
            ctx.visited[frame.key] = frame.depth
            continue

        if not frame.replay:
            ctx.edges.append(Edge(source=frame.key, target=link.target_key, relation=link.relation))

        if link.target_key in ctx.visiting:
            # Back-edge to an ancestor on the active path, also at the depth frontier.
            ctx.mark_cycle(link.target_key)
        elif frame.depth < ctx.max_depth:
            child = _enter(store, ctx, link.target_key, frame.depth + 1)
            if child is not None:
                stack.append(child)

    graph = ctx.to_graph()
    logger.info(
        "Traversal complete",
        root=root,
        nodes=len(graph.nodes),
        edges=len(graph.edges),
        cycles=len(graph.circular_deps),
    )
    return graph
