"""Data models for flow graphs: nodes, edges and per-node metadata."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any

from .util import new_id

logger = logging.getLogger(__name__)

NodeId = str
EdgeRef = str


class NodeKind(str, Enum):
    """Roles a node can play in a data-processing flow."""

    CONTROLLER = "controller"
    DATA_SUBJECT = "dataSubject"
    DATA_STORE = "dataStore"
    THIRD_PARTY = "thirdParty"
    PROCESS = "process"

    @property
    def default_label(self) -> str:
        return _DEFAULT_LABELS[self]

    @classmethod
    def parse(cls, value: str) -> "NodeKind":
        """Accept either the wire value (``dataStore``) or the member name (``data_store``)."""
        try:
            return cls(value)
        except ValueError:
            pass
        try:
            return cls[value.strip().upper().replace("-", "_")]
        except KeyError:
            raise ValueError(f"Unknown node kind: {value!r}") from None


_DEFAULT_LABELS = {
    NodeKind.CONTROLLER: "Controller",
    NodeKind.DATA_SUBJECT: "Data Subject",
    NodeKind.DATA_STORE: "Data Store",
    NodeKind.THIRD_PARTY: "Third Party",
    NodeKind.PROCESS: "Process",
}


class LegalBasis(str, Enum):
    """Lawful bases for processing personal data."""

    CONSENT = "Consent"
    CONTRACT = "Contract"
    LEGAL_OBLIGATION = "Legal Obligation"
    LEGITIMATE_INTEREST = "Legitimate Interest"
    VITAL_INTEREST = "Vital Interest"
    PUBLIC_INTEREST = "Public Interest"

    @classmethod
    def parse(cls, value: Any) -> "LegalBasis | None":
        """Coerce a form/wire value; blank or unrecognized values give None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            return None
        text = value.strip()
        for member in cls:
            if text.lower() in (member.value.lower(), member.name.lower()):
                return member
        logger.warning("Ignoring unknown legal basis %r", value)
        return None


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict) -> "Position":
        return cls(x=float(data.get("x", 0.0)), y=float(data.get("y", 0.0)))


@dataclass
class Node:
    """A box on the canvas."""

    id: NodeId
    position: Position
    kind: NodeKind
    label: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position.to_dict(),
            "kind": self.kind.value,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Node":
        return cls(
            id=str(data["id"]),
            position=Position.from_dict(data.get("position") or {}),
            kind=NodeKind.parse(str(data.get("kind", NodeKind.PROCESS.value))),
            label=str(data.get("label", "")),
        )


@dataclass
class Edge:
    """A directed connection between two nodes, by id only."""

    id: EdgeRef
    source: NodeId
    target: NodeId

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "source": self.source, "target": self.target}

    @classmethod
    def from_dict(cls, data: dict) -> "Edge":
        ref = data.get("id") or new_id("e")
        return cls(id=str(ref), source=str(data["source"]), target=str(data["target"]))


# Wire (camelCase) name -> attribute name
METADATA_FIELDS = {
    "kind": "kind",
    "label": "label",
    "dataCategory": "data_category",
    "processingActivity": "processing_activity",
    "legalBasis": "legal_basis",
    "retentionPeriod": "retention_period",
    "description": "description",
}


@dataclass
class NodeMetadata:
    """Descriptive fields attached to a node, edited through the inspector form."""

    kind: NodeKind
    label: str
    data_category: str = ""
    processing_activity: str = ""
    legal_basis: LegalBasis | None = None
    retention_period: str = ""
    description: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind.value,
            "label": self.label,
            "dataCategory": self.data_category,
            "processingActivity": self.processing_activity,
            "legalBasis": self.legal_basis.value if self.legal_basis else "",
            "retentionPeriod": self.retention_period,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NodeMetadata":
        return cls(
            kind=NodeKind.parse(str(data.get("kind", NodeKind.PROCESS.value))),
            label=str(data.get("label", "")),
            data_category=str(data.get("dataCategory", "")),
            processing_activity=str(data.get("processingActivity", "")),
            legal_basis=LegalBasis.parse(data.get("legalBasis")),
            retention_period=str(data.get("retentionPeriod", "")),
            description=str(data.get("description", "")),
        )


def _normalize_patch(patch: dict[str, Any]) -> dict[str, Any]:
    """Map wire or attribute keys to attribute names and coerce enum values."""
    attr_names = {f.name for f in fields(NodeMetadata)}
    out: dict[str, Any] = {}
    for key, value in patch.items():
        attr = METADATA_FIELDS.get(key, key)
        if attr not in attr_names:
            logger.debug("Ignoring unknown metadata field %r", key)
            continue
        if attr == "legal_basis":
            # Blank clears the field; an unrecognized value leaves it as is
            blank = value is None or (isinstance(value, str) and not value.strip())
            parsed = LegalBasis.parse(value)
            if parsed is None and not blank:
                continue
            value = parsed
        elif attr == "kind":
            try:
                value = value if isinstance(value, NodeKind) else NodeKind.parse(str(value))
            except ValueError:
                logger.warning("Ignoring unknown node kind %r", value)
                continue
        else:
            value = "" if value is None else str(value)
        out[attr] = value
    return out


@dataclass
class Graph:
    """Nodes, edges and metadata, each keyed by id in insertion order.

    Edges may reference ids that are not (or no longer) nodes; that is
    reported by validation rather than prevented here.
    """

    nodes: dict[NodeId, Node] = field(default_factory=dict)
    edges: dict[EdgeRef, Edge] = field(default_factory=dict)
    metadata: dict[NodeId, NodeMetadata] = field(default_factory=dict)

    def add_node(
        self,
        kind: NodeKind,
        label: str | None = None,
        position: Position | tuple[float, float] = Position(),
    ) -> NodeId:
        """Create a node plus its metadata entry and return the new id."""
        if isinstance(position, tuple):
            position = Position(*position)
        if label is None:
            label = kind.default_label

        node_id = new_id("n")
        while node_id in self.nodes:
            node_id = new_id("n")

        self.nodes[node_id] = Node(id=node_id, position=position, kind=kind, label=label)
        self.metadata[node_id] = NodeMetadata(kind=kind, label=label)
        return node_id

    def remove_node(self, node_id: NodeId) -> None:
        """Remove a node, every edge touching it, and its metadata. Unknown ids are ignored."""
        if node_id not in self.nodes:
            return
        del self.nodes[node_id]
        self.metadata.pop(node_id, None)
        self.edges = {
            ref: e for ref, e in self.edges.items() if e.source != node_id and e.target != node_id
        }

    def add_edge(self, source: NodeId, target: NodeId) -> EdgeRef:
        ref = new_id("e")
        while ref in self.edges:
            ref = new_id("e")
        self.edges[ref] = Edge(id=ref, source=source, target=target)
        return ref

    def remove_edge(self, ref: EdgeRef) -> None:
        self.edges.pop(ref, None)

    def update_metadata(self, node_id: NodeId, patch: dict[str, Any]) -> None:
        """Shallow-merge ``patch`` into a node's metadata.

        Label and kind changes are mirrored onto the node itself.
        """
        current = self.metadata.get(node_id)
        if current is None:
            return
        changes = _normalize_patch(patch)
        if not changes:
            return
        updated = replace(current, **changes)
        self.metadata[node_id] = updated

        node = self.nodes.get(node_id)
        if node is not None and (node.label != updated.label or node.kind != updated.kind):
            self.nodes[node_id] = replace(node, label=updated.label, kind=updated.kind)

    def move_node(self, node_id: NodeId, position: Position) -> None:
        node = self.nodes.get(node_id)
        if node is not None:
            self.nodes[node_id] = replace(node, position=position)

    def set_positions(self, positions: dict[NodeId, Position]) -> None:
        """Replace positions for all nodes in one step."""
        self.nodes = {
            node_id: replace(node, position=positions.get(node_id, node.position))
            for node_id, node in self.nodes.items()
        }

    def bring_to_front(self, node_id: NodeId) -> None:
        node = self.nodes.pop(node_id, None)
        if node is not None:
            self.nodes[node_id] = node

    def send_to_back(self, node_id: NodeId) -> None:
        node = self.nodes.pop(node_id, None)
        if node is not None:
            self.nodes = {node_id: node, **self.nodes}

    def incident_edges(self, node_id: NodeId) -> list[Edge]:
        return [e for e in self.edges.values() if node_id in (e.source, e.target)]

    def copy(self) -> "Graph":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the ``{nodes, edges, nodeMetadata}`` payload."""
        return {
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "edges": [e.to_dict() for e in self.edges.values()],
            "nodeMetadata": {node_id: m.to_dict() for node_id, m in self.metadata.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Graph":
        """Parse a payload. Raises ValueError on structurally malformed input.

        Where a node and its metadata entry disagree on label or kind, the
        metadata entry wins.
        """
        if not isinstance(data, dict):
            raise ValueError("graph payload must be an object")
        try:
            graph = cls()
            for raw in data.get("nodes") or []:
                node = Node.from_dict(raw)
                graph.nodes[node.id] = node
            for raw in data.get("edges") or []:
                edge = Edge.from_dict(raw)
                graph.edges[edge.id] = edge
            raw_metadata = {str(k): v for k, v in (data.get("nodeMetadata") or {}).items()}
            for node_id, raw in raw_metadata.items():
                graph.metadata[node_id] = NodeMetadata.from_dict(raw)
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"malformed graph payload: {e}") from e

        for node_id, node in graph.nodes.items():
            meta = graph.metadata.get(node_id)
            if meta is None:
                # Nodes saved without a metadata entry still get one
                graph.metadata[node_id] = NodeMetadata(kind=node.kind, label=node.label)
                continue
            raw = raw_metadata[node_id]
            label = meta.label if "label" in raw else node.label
            kind = meta.kind if "kind" in raw else node.kind
            if label != node.label or kind != node.kind:
                logger.debug("Node %s label/kind taken from its metadata entry", node_id)
            graph.metadata[node_id] = replace(meta, label=label, kind=kind)
            graph.nodes[node_id] = replace(node, label=label, kind=kind)
        return graph
