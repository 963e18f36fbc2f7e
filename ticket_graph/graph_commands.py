"""Dependency graph commands for ticket graph CLI."""

from cyclopts import App

from ticket_graph.analysis import ROOT_FIELDS
from ticket_graph.blockers import find_blockers
from ticket_graph.models import DependencyGraph
from ticket_graph.traversal import traverse

graph_app = App(name="graph", help="Inspect the link graph around a ticket")


def tree_lines(graph: DependencyGraph) -> list[str]:
    """Indented rendering of the graph, each key expanded once."""
    children: dict[str, list[tuple[str, str]]] = {}
    for edge in graph.edges:
        children.setdefault(edge.source, []).append((edge.relation, edge.target))

    lines: list[str] = []
    expanded: set[str] = set()

    def label(key: str) -> str:
        node = graph.nodes.get(key)
        return f"{key} {node.summary} ({node.status})" if node else f"{key} (not fetched)"

    def walk(key: str, indent: int) -> None:
        expanded.add(key)
        for relation, target in children.get(key, []):
            suffix = " ..." if target in expanded and children.get(target) else ""
            lines.append(f"{'  ' * indent}--[{relation}]--> {label(target)}{suffix}")
            if target not in expanded:
                walk(target, indent + 1)

    lines.append(label(graph.root))
    walk(graph.root, 1)
    return lines


@graph_app.command
def tree(key: str, depth: int = 3) -> None:
    """Display the link tree of a ticket."""
    from ticket_graph.cli import get_backend

    graph = traverse(get_backend(), key, depth)
    for line in tree_lines(graph):
        print(line)


@graph_app.command
def cycles(key: str, depth: int = 3) -> None:
    """Find and display circular dependencies reachable from a ticket."""
    from ticket_graph.cli import get_backend

    graph = traverse(get_backend(), key, depth)

    if not graph.circular_deps:
        print("No cycles found")
        return

    print(f"Found {len(graph.circular_deps)} cycle(s):\n")
    for i, marker in enumerate(graph.circular_deps, 1):
        print(f"{i}. {marker}")


@graph_app.command
def blockers(key: str, depth: int = 3) -> None:
    """List the tickets blocking a ticket."""
    from ticket_graph.cli import get_backend

    backend = get_backend()
    root = backend.fetch_record(key, ROOT_FIELDS)
    graph = traverse(backend, key, depth)
    found = find_blockers(graph, root.created)

    if not found:
        print(f"No blockers found for {key}")
        return

    print(f"Blockers for {key}:\n")
    for blocker in found:
        age = f" blocked {blocker.days_blocked} day(s)" if blocker.days_blocked is not None else ""
        print(f"  - {blocker.key} {blocker.summary} ({blocker.status}){age}")
