"""Tests for the snapshot store."""

import json
import logging
from pathlib import Path

from ropaflow.config import COLLECTION_KEY
from ropaflow.models import Graph, NodeKind
from ropaflow.store import FileBlobStore, MemoryBlobStore, SnapshotStore


class FailingBlobStore(MemoryBlobStore):
    def write(self, key: str, value: str) -> None:
        raise OSError("disk full")


def test_save_and_load_round_trip(store: SnapshotStore, chain_graph: Graph):
    index = store.save("Onboarding", chain_graph)

    assert index == 0
    loaded = store.load(index)
    assert loaded.to_dict() == chain_graph.to_dict()
    assert loaded is not chain_graph


def test_saving_same_name_twice_creates_two_entries(store: SnapshotStore, chain_graph: Graph):
    store.save("Flow1", chain_graph)
    store.save("Flow1", chain_graph)

    assert len(store) == 2
    assert [s.name for s in store.collection] == ["Flow1", "Flow1"]
    assert all(len(s.versions) == 1 for s in store.collection)


def test_new_entries_are_prepended(store: SnapshotStore, chain_graph: Graph):
    store.save("First", chain_graph)
    store.save("Second", chain_graph)
    assert [s.name for s in store.collection] == ["Second", "First"]


def test_saved_graph_is_a_copy(store: SnapshotStore, chain_graph: Graph):
    store.save("Flow", chain_graph)
    chain_graph.add_node(NodeKind.PROCESS, "Later")
    assert len(store.load(0).nodes) == 3


def test_blank_name_gets_timestamp_name(store: SnapshotStore, chain_graph: Graph):
    store.save("   ", chain_graph)
    assert store.get(0).name == "Flow 2024-01-01T00:00:00+00:00"


def test_save_version_prepends(store: SnapshotStore, chain_graph: Graph):
    store.save("Flow", chain_graph)
    changed = chain_graph.copy()
    changed.add_node(NodeKind.CONTROLLER, "Controller")

    assert store.save_version(0, changed)
    snapshot = store.get(0)
    assert len(snapshot.versions) == 2
    assert len(snapshot.latest.graph.nodes) == 4
    assert snapshot.last_updated == snapshot.latest.timestamp
    assert len(store.load(0).nodes) == 4


def test_index_out_of_range(store: SnapshotStore, chain_graph: Graph):
    assert store.load(0) is None
    assert store.get(-1) is None
    assert not store.save_version(3, chain_graph)
    assert not store.set_archived(3)
    assert not store.delete(3)


def test_archive_filter(store: SnapshotStore, chain_graph: Graph):
    store.save("Old", chain_graph)
    store.save("Current", chain_graph)
    store.set_archived(1)

    assert [s.name for s in store.list_snapshots()] == ["Current"]
    assert [s.name for s in store.list_snapshots(archived=True)] == ["Old"]
    assert [i for i, _ in store.entries(archived=True)] == [1]

    store.set_archived(1, False)
    assert len(store.list_snapshots()) == 2


def test_delete(store: SnapshotStore, chain_graph: Graph):
    store.save("A", chain_graph)
    store.save("B", chain_graph)
    assert store.delete(0)
    assert [s.name for s in store.collection] == ["A"]


def test_wire_format(store: SnapshotStore, blobs: MemoryBlobStore, chain_graph: Graph):
    store.save("Flow", chain_graph)

    data = json.loads(blobs.blobs[COLLECTION_KEY])
    assert isinstance(data, list)
    entry = data[0]
    assert set(entry) == {"name", "versions", "archived", "lastUpdated"}
    assert set(entry["versions"][0]) == {"snapshot", "timestamp"}
    assert set(entry["versions"][0]["snapshot"]) == {"nodes", "edges", "nodeMetadata"}


def test_collection_survives_reload(blobs: MemoryBlobStore, chain_graph: Graph):
    SnapshotStore(blobs).save("Flow", chain_graph)
    fresh = SnapshotStore(blobs)
    assert len(fresh) == 1
    assert fresh.load(0).to_dict() == chain_graph.to_dict()


def test_corrupt_collection_loads_empty(caplog):
    blobs = MemoryBlobStore({COLLECTION_KEY: "{not json"})
    with caplog.at_level(logging.WARNING):
        store = SnapshotStore(blobs)
        assert len(store) == 0
    assert "not valid JSON" in caplog.text


def test_non_list_collection_loads_empty():
    blobs = MemoryBlobStore({COLLECTION_KEY: json.dumps({"name": "x"})})
    assert len(SnapshotStore(blobs)) == 0


def test_malformed_entries_are_skipped(chain_graph: Graph):
    good = {"name": "Good", "versions": [{"snapshot": chain_graph.to_dict(), "timestamp": "t"}], "archived": False}
    blobs = MemoryBlobStore({COLLECTION_KEY: json.dumps([good, "junk", {"name": "Bad", "versions": "nope"}])})
    store = SnapshotStore(blobs)
    assert [s.name for s in store.collection] == ["Good"]


def test_write_failure_is_logged_not_raised(chain_graph: Graph, caplog):
    store = SnapshotStore(FailingBlobStore())
    with caplog.at_level(logging.ERROR):
        index = store.save("Flow", chain_graph)
    assert index == 0
    assert len(store) == 1
    assert "Failed to write snapshot collection" in caplog.text


def test_save_callback_receives_entry(blobs: MemoryBlobStore, chain_graph: Graph):
    seen = []
    store = SnapshotStore(blobs, on_saved=seen.append)
    store.save("Flow", chain_graph)
    store.save_version(0, chain_graph)

    assert len(seen) == 2
    assert seen[0]["name"] == "Flow"
    assert len(seen[1]["versions"]) == 2


def test_save_callback_failure_is_swallowed(blobs: MemoryBlobStore, chain_graph: Graph, caplog):
    def explode(entry):
        raise RuntimeError("listener broke")

    store = SnapshotStore(blobs, on_saved=explode)
    with caplog.at_level(logging.ERROR):
        assert store.save("Flow", chain_graph) == 0
    assert COLLECTION_KEY in blobs.blobs
    assert "Save callback failed" in caplog.text


def test_file_blob_store_persists(tmp_path: Path, chain_graph: Graph):
    directory = tmp_path / "store"
    SnapshotStore(FileBlobStore(directory)).save("Flow", chain_graph)

    path = directory / f"{COLLECTION_KEY}.json"
    assert path.exists()
    assert not list(directory.glob("*.tmp"))
    assert len(SnapshotStore(FileBlobStore(directory))) == 1


def test_file_blob_store_missing_key(tmp_path: Path):
    assert FileBlobStore(tmp_path / "nowhere").read(COLLECTION_KEY) is None
