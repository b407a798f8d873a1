"""Reading and writing flow files (the graph payload as JSON)."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console

from ..models import Graph


def read_flow(path: Path, console: Console) -> Graph | None:
    """Load a flow file, printing an error and returning None on failure."""
    if not path.exists():
        console.print(f"Error: flow file '{path}' not found", style="bold red")
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Graph.from_dict(data)
    except (OSError, json.JSONDecodeError, ValueError) as e:
        console.print(f"Error: could not read flow file '{path}': {e}", style="bold red")
        return None


def write_flow(path: Path, graph: Graph) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(graph.to_dict(), indent=2) + "\n", encoding="utf-8")
