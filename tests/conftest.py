"""Pytest configuration and fixtures."""

import json
from pathlib import Path

import pytest

from ropaflow.config import Settings
from ropaflow.models import Graph, NodeKind
from ropaflow.store import MemoryBlobStore, SnapshotStore


class Clock:
    """Deterministic timestamps: 2024-01-01T00:00:00+00:00, then one second later each call."""

    def __init__(self):
        self.ticks = 0

    def __call__(self) -> str:
        stamp = f"2024-01-01T00:00:{self.ticks:02d}+00:00"
        self.ticks += 1
        return stamp


@pytest.fixture
def chain_graph() -> Graph:
    """A (process) -> B (dataStore) -> C (thirdParty)."""
    graph = Graph()
    a = graph.add_node(NodeKind.PROCESS, "A")
    b = graph.add_node(NodeKind.DATA_STORE, "B")
    c = graph.add_node(NodeKind.THIRD_PARTY, "C")
    graph.add_edge(a, b)
    graph.add_edge(b, c)
    return graph


@pytest.fixture
def blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def store(blobs: MemoryBlobStore, clock: Clock) -> SnapshotStore:
    return SnapshotStore(blobs, clock=clock)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Default settings with the snapshot store inside tmp_path."""
    return Settings(store_dir=tmp_path / ".ropaflow")


@pytest.fixture
def flow_file(tmp_path: Path, chain_graph: Graph) -> Path:
    """The chain graph written as a flow file."""
    path = tmp_path / "flow.json"
    path.write_text(json.dumps(chain_graph.to_dict(), indent=2), encoding="utf-8")
    return path
