"""Flow commands - edit a flow file node by node."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..models import Graph, NodeKind, Position
from .flowfile import read_flow, write_flow


def run_init(path: Path, *, force: bool = False) -> int:
    console = Console(stderr=True)
    if path.exists() and not force:
        console.print(f"Error: '{path}' already exists (use --force to overwrite)", style="bold red")
        return 1
    write_flow(path, Graph())
    console.print(f"Created empty flow {path}", style="green")
    return 0


def run_add_node(path: Path, kind: str, label: str | None, x: float, y: float) -> int:
    console = Console(stderr=True)
    graph = read_flow(path, console)
    if graph is None:
        return 1
    try:
        node_kind = NodeKind.parse(kind)
    except ValueError as e:
        console.print(f"Error: {e}", style="bold red")
        return 1

    node_id = graph.add_node(node_kind, label, Position(x=x, y=y))
    write_flow(path, graph)
    print(node_id)
    return 0


def run_add_edge(path: Path, source: str, target: str) -> int:
    console = Console(stderr=True)
    graph = read_flow(path, console)
    if graph is None:
        return 1

    # Edges to unknown nodes are allowed; validation reports them
    for end in (source, target):
        if end not in graph.nodes:
            console.print(f"[yellow]Warning:[/] node '{end}' does not exist in {path.name}")

    ref = graph.add_edge(source, target)
    write_flow(path, graph)
    print(ref)
    return 0


def run_remove_node(path: Path, node_id: str) -> int:
    console = Console(stderr=True)
    graph = read_flow(path, console)
    if graph is None:
        return 1
    if node_id not in graph.nodes:
        console.print(f"Node '{node_id}' not found; nothing removed", style="dim")
    graph.remove_node(node_id)
    write_flow(path, graph)
    return 0


def run_remove_edge(path: Path, ref: str) -> int:
    console = Console(stderr=True)
    graph = read_flow(path, console)
    if graph is None:
        return 1
    if ref not in graph.edges:
        console.print(f"Edge '{ref}' not found; nothing removed", style="dim")
    graph.remove_edge(ref)
    write_flow(path, graph)
    return 0


def run_set(path: Path, node_id: str, field_name: str, value: str) -> int:
    """Set one metadata field (wire or attribute name) on a node."""
    console = Console(stderr=True)
    graph = read_flow(path, console)
    if graph is None:
        return 1
    if node_id not in graph.nodes:
        console.print(f"Error: node '{node_id}' not found", style="bold red")
        return 1

    graph.update_metadata(node_id, {field_name: value})
    write_flow(path, graph)
    return 0


def run_show(path: Path) -> int:
    console = Console(stderr=True)
    graph = read_flow(path, console)
    if graph is None:
        return 1

    out = Console()
    nodes = Table(title=f"Nodes ({len(graph.nodes)})", show_lines=False)
    nodes.add_column("Id", style="dim")
    nodes.add_column("Kind")
    nodes.add_column("Label")
    nodes.add_column("Legal basis")
    nodes.add_column("Position", justify="right")
    for node in graph.nodes.values():
        meta = graph.metadata.get(node.id)
        basis = meta.legal_basis.value if meta and meta.legal_basis else ""
        nodes.add_row(
            node.id,
            node.kind.value,
            node.label,
            basis,
            f"{node.position.x:.0f}, {node.position.y:.0f}",
        )
    out.print(nodes)

    edges = Table(title=f"Edges ({len(graph.edges)})")
    edges.add_column("Ref", style="dim")
    edges.add_column("Source")
    edges.add_column("Target")
    for edge in graph.edges.values():
        edges.add_row(edge.id, edge.source, edge.target)
    out.print(edges)
    return 0
