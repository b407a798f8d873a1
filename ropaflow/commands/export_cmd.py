"""Export command - render a flow file to PNG, SVG or JSON."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from ..config import Settings
from ..export import Exporter
from .flowfile import read_flow


def run_export(
    path: Path,
    *,
    fmt: str = "png",
    name: str | None = None,
    out_dir: Path = Path("."),
    settings: Settings | None = None,
) -> int:
    """Write ``<name-slug>.<fmt>`` into ``out_dir``.

    The flow name defaults to the flow file's stem.

    Returns:
        Exit code (0 = written, 1 = unreadable input or render failure)
    """
    console = Console(stderr=True)
    graph = read_flow(path, console)
    if graph is None:
        return 1

    flow_name = path.stem if name is None else name
    written = Exporter(settings).export(graph, flow_name, fmt, out_dir)
    if written is None:
        console.print("Export failed; see log for details", style="bold red")
        return 1

    console.print(f"Wrote {written}", style="green")
    return 0
