"""ropaflow - build, lay out, validate, version and export data-flow diagrams."""

__version__ = "0.1.0"

from .models import Edge, Graph, LegalBasis, Node, NodeKind, NodeMetadata, Position
from .layout import LayoutResult, apply_layout, compute_layout
from .validation import FlowRules, ValidationIssue, validate_graph
from .store import FileBlobStore, FlowSnapshot, MemoryBlobStore, SnapshotStore
from .export import Exporter
from .surface import FlowEditor, GestureKind, PanelSide

__all__ = [
    "__version__",
    "Edge",
    "Graph",
    "LegalBasis",
    "Node",
    "NodeKind",
    "NodeMetadata",
    "Position",
    "LayoutResult",
    "apply_layout",
    "compute_layout",
    "FlowRules",
    "ValidationIssue",
    "validate_graph",
    "FileBlobStore",
    "FlowSnapshot",
    "MemoryBlobStore",
    "SnapshotStore",
    "Exporter",
    "FlowEditor",
    "GestureKind",
    "PanelSide",
]
