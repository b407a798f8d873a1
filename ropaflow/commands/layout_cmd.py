"""Layout command - auto-arrange a flow file."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from ..config import Settings
from ..layout import apply_layout
from .flowfile import read_flow, write_flow


def run_layout(path: Path, *, direction: str = "LR", out: Path | None = None, settings: Settings | None = None) -> int:
    """Lay out the flow in ``path`` and write it back (or to ``out``).

    Returns:
        Exit code (0 = success, 1 = unreadable flow file)
    """
    console = Console(stderr=True)
    graph = read_flow(path, console)
    if graph is None:
        return 1

    result = apply_layout(graph, direction, settings)

    target = out or path
    write_flow(target, graph)
    console.print(
        f"Laid out {len(result.positions)} node(s) in {len(result.order)} rank(s) "
        f"({result.direction}, {result.crossings} crossing(s)) -> {target}",
        style="green",
    )
    if result.ignored_edges:
        console.print(f"{len(result.ignored_edges)} edge(s) ignored for ranking (cycles, self-loops, dangling)", style="dim")
    return 0
