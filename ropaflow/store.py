"""
Versioned, named flow snapshots kept in a key-value blob store.

The whole collection lives under one key as a JSON array, newest entry
first. Entries are addressed by their index in that array; names are labels
only and may repeat. Every change rewrites the full collection.

Storage problems never interrupt editing: unreadable data loads as an empty
collection, and failed writes are logged while the in-memory collection
stays current for the session.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Protocol

from .config import COLLECTION_KEY
from .models import Graph
from .util import utc_now_iso

logger = logging.getLogger(__name__)

SaveCallback = Callable[[dict[str, Any]], None]


class BlobStore(Protocol):
    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...


class MemoryBlobStore:
    """Dict-backed blob store."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.blobs: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> str | None:
        return self.blobs.get(key)

    def write(self, key: str, value: str) -> None:
        self.blobs[key] = value


class FileBlobStore:
    """
    One JSON file per key inside a directory:

        .ropaflow/ropa_flows_v3.json
    """

    def __init__(self, directory: Path):
        self.directory = directory

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)

        # Write atomically (write to temp, then rename)
        temp_path = path.with_suffix(".tmp")
        temp_path.write_text(value, encoding="utf-8")
        temp_path.replace(path)


@dataclass
class SnapshotVersion:
    graph: Graph
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {"snapshot": self.graph.to_dict(), "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict) -> "SnapshotVersion":
        if not isinstance(data, dict):
            raise ValueError("version must be an object")
        return cls(graph=Graph.from_dict(data.get("snapshot") or {}), timestamp=str(data.get("timestamp", "")))


@dataclass
class FlowSnapshot:
    """A named flow and its saved versions, most recent first."""

    name: str
    versions: list[SnapshotVersion] = field(default_factory=list)
    archived: bool = False
    last_updated: str = ""

    @property
    def latest(self) -> SnapshotVersion | None:
        return self.versions[0] if self.versions else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "versions": [v.to_dict() for v in self.versions],
            "archived": self.archived,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FlowSnapshot":
        if not isinstance(data, dict):
            raise ValueError("snapshot entry must be an object")
        versions = data.get("versions") or []
        if not isinstance(versions, list):
            raise ValueError("versions must be a list")
        return cls(
            name=str(data.get("name", "")),
            versions=[SnapshotVersion.from_dict(v) for v in versions],
            archived=bool(data.get("archived", False)),
            last_updated=str(data.get("lastUpdated", "")),
        )


class SnapshotStore:
    """Index-addressed collection of flow snapshots."""

    def __init__(
        self,
        blobs: BlobStore,
        key: str = COLLECTION_KEY,
        on_saved: SaveCallback | None = None,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.blobs = blobs
        self.key = key
        self.on_saved = on_saved
        self.clock = clock
        self._collection: list[FlowSnapshot] | None = None

    @property
    def collection(self) -> list[FlowSnapshot]:
        if self._collection is None:
            self._collection = self._read()
        return self._collection

    def reload(self) -> None:
        """Drop the in-memory collection so the next access re-reads storage."""
        self._collection = None

    def __len__(self) -> int:
        return len(self.collection)

    def _read(self) -> list[FlowSnapshot]:
        try:
            raw = self.blobs.read(self.key)
        except Exception as e:
            logger.warning("Could not read snapshot collection %r: %s", self.key, e)
            return []
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Snapshot collection %r is not valid JSON (%s); starting empty", self.key, e)
            return []
        if not isinstance(data, list):
            logger.warning("Snapshot collection %r is not a list; starting empty", self.key)
            return []

        snapshots = []
        for i, entry in enumerate(data):
            try:
                snapshots.append(FlowSnapshot.from_dict(entry))
            except ValueError as e:
                logger.warning("Skipping malformed snapshot entry %d: %s", i, e)
        return snapshots

    def _persist(self) -> None:
        payload = json.dumps([s.to_dict() for s in self.collection], indent=2)
        try:
            self.blobs.write(self.key, payload)
        except Exception:
            logger.exception("Failed to write snapshot collection %r", self.key)

    def _notify(self, snapshot: FlowSnapshot) -> None:
        if self.on_saved is None:
            return
        try:
            self.on_saved(snapshot.to_dict())
        except Exception:
            logger.exception("Save callback failed for snapshot %r", snapshot.name)

    def _valid(self, index: int) -> bool:
        return 0 <= index < len(self.collection)

    def save(self, name: str, graph: Graph) -> int:
        """Store ``graph`` as a new entry at the top of the collection.

        Saving under a name that already exists still creates a new entry.
        Returns the new entry's index (always 0).
        """
        now = self.clock()
        name = (name or "").strip() or f"Flow {now}"
        snapshot = FlowSnapshot(
            name=name,
            versions=[SnapshotVersion(graph=graph.copy(), timestamp=now)],
            archived=False,
            last_updated=now,
        )
        self.collection.insert(0, snapshot)
        self._persist()
        logger.info("Saved flow %r (%d node(s), %d edge(s))", name, len(graph.nodes), len(graph.edges))
        self._notify(snapshot)
        return 0

    def save_version(self, index: int, graph: Graph) -> bool:
        """Prepend a new version to the entry at ``index``."""
        if not self._valid(index):
            logger.warning("No snapshot at index %d", index)
            return False
        snapshot = self.collection[index]
        now = self.clock()
        snapshot.versions.insert(0, SnapshotVersion(graph=graph.copy(), timestamp=now))
        snapshot.last_updated = now
        self._persist()
        logger.info("Saved version %d of flow %r", len(snapshot.versions), snapshot.name)
        self._notify(snapshot)
        return True

    def get(self, index: int) -> FlowSnapshot | None:
        return self.collection[index] if self._valid(index) else None

    def load(self, index: int) -> Graph | None:
        """Most recent version of the entry at ``index``, or None."""
        snapshot = self.get(index)
        if snapshot is None or snapshot.latest is None:
            return None
        return snapshot.latest.graph.copy()

    def entries(self, archived: bool | None = None) -> list[tuple[int, FlowSnapshot]]:
        """(index, snapshot) pairs, optionally filtered by archived flag."""
        return [
            (i, s) for i, s in enumerate(self.collection) if archived is None or s.archived == archived
        ]

    def list_snapshots(self, archived: bool = False) -> list[FlowSnapshot]:
        return [s for _, s in self.entries(archived)]

    def set_archived(self, index: int, archived: bool = True) -> bool:
        snapshot = self.get(index)
        if snapshot is None:
            return False
        snapshot.archived = archived
        snapshot.last_updated = self.clock()
        self._persist()
        return True

    def delete(self, index: int) -> bool:
        if not self._valid(index):
            return False
        removed = self.collection.pop(index)
        self._persist()
        logger.info("Deleted flow %r", removed.name)
        return True
