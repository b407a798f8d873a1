"""Snapshot commands - save, list, load, archive and delete stored flows."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config import Settings
from ..store import FileBlobStore, SnapshotStore
from .flowfile import read_flow, write_flow


def open_store(settings: Settings) -> SnapshotStore:
    return SnapshotStore(FileBlobStore(settings.store_dir), key=settings.collection_key)


def run_save(settings: Settings, name: str, path: Path) -> int:
    console = Console(stderr=True)
    graph = read_flow(path, console)
    if graph is None:
        return 1

    store = open_store(settings)
    index = store.save(name, graph)
    snapshot = store.get(index)
    console.print(f"Saved '{snapshot.name}' as entry {index} ({len(store)} in collection)", style="green")
    return 0


def run_update(settings: Settings, index: int, path: Path) -> int:
    console = Console(stderr=True)
    graph = read_flow(path, console)
    if graph is None:
        return 1

    store = open_store(settings)
    if not store.save_version(index, graph):
        console.print(f"Error: no snapshot at index {index}", style="bold red")
        return 1
    snapshot = store.get(index)
    console.print(f"Saved version {len(snapshot.versions)} of '{snapshot.name}'", style="green")
    return 0


def run_list(settings: Settings, *, archived: bool = False, output_json: bool = False) -> int:
    store = open_store(settings)
    entries = store.entries(archived)

    if output_json:
        rows = [
            {
                "index": i,
                "name": s.name,
                "versions": len(s.versions),
                "archived": s.archived,
                "lastUpdated": s.last_updated,
            }
            for i, s in entries
        ]
        print(json.dumps(rows, indent=2))
        return 0

    label = "Archived flows" if archived else "Flows"
    table = Table(title=f"{label} ({len(entries)})")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Versions", justify="right")
    table.add_column("Nodes", justify="right")
    table.add_column("Last updated", style="dim")
    for i, s in entries:
        nodes = len(s.latest.graph.nodes) if s.latest else 0
        table.add_row(str(i), s.name, str(len(s.versions)), str(nodes), s.last_updated)
    Console().print(table)
    return 0


def run_load(settings: Settings, index: int, out: Path | None = None) -> int:
    console = Console(stderr=True)
    store = open_store(settings)
    graph = store.load(index)
    if graph is None:
        console.print(f"Error: no snapshot at index {index}", style="bold red")
        return 1

    if out:
        write_flow(out, graph)
        console.print(f"Wrote '{store.get(index).name}' to {out}", style="green")
    else:
        print(json.dumps(graph.to_dict(), indent=2))
    return 0


def run_archive(settings: Settings, index: int, *, archived: bool = True) -> int:
    console = Console(stderr=True)
    store = open_store(settings)
    if not store.set_archived(index, archived):
        console.print(f"Error: no snapshot at index {index}", style="bold red")
        return 1
    state = "Archived" if archived else "Restored"
    console.print(f"{state} '{store.get(index).name}'", style="green")
    return 0


def run_delete(settings: Settings, index: int) -> int:
    console = Console(stderr=True)
    store = open_store(settings)
    snapshot = store.get(index)
    if snapshot is None:
        console.print(f"Error: no snapshot at index {index}", style="bold red")
        return 1
    store.delete(index)
    console.print(f"Deleted '{snapshot.name}' ({len(snapshot.versions)} version(s))", style="green")
    return 0
