"""Validate command - report structural problems in a flow file."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console

from ..validation import validate_graph
from .flowfile import read_flow


def run_validate(path: Path, *, output_json: bool = False) -> int:
    """Run all validation rules on a flow file.

    Returns:
        Exit code (0 = no issues, 1 = issues found or unreadable file)
    """
    console = Console(stderr=True)
    graph = read_flow(path, console)
    if graph is None:
        return 1

    issues = validate_graph(graph)

    if output_json:
        print(json.dumps([i.to_dict() for i in issues], indent=2))
        return 1 if issues else 0

    if not issues:
        console.print(f"✓ {path.name}: no issues", style="green")
        return 0

    for issue in issues:
        style = "red" if issue.level == "error" else "yellow"
        console.print(str(issue), style=style, markup=False)
    console.print(f"\n{len(issues)} issue(s) in {path.name}", style="bold")
    return 1
