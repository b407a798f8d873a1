"""
Editing surface: selection, pointer gestures and side panels.

Gestures form a small state machine. Each one starts from ``idle`` on a
pointer press and returns to ``idle`` on release:

    idle -> dragging-node      (press on a node)
    idle -> connecting-edge    (press on a node's connection handle)
    idle -> resizing-panel     (press on a panel's resize handle)

Pointer moves are computed from the state captured when the gesture began,
not from the previous move, so repeated or dropped move events cannot make a
node or panel drift.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from .config import Settings
from .export import Exporter
from .layout import LayoutResult, apply_layout
from .models import EdgeRef, Graph, NodeId, NodeKind, NodeMetadata, Position
from .store import SnapshotStore
from .validation import ValidationIssue, validate_graph

logger = logging.getLogger(__name__)


class GestureKind(str, Enum):
    IDLE = "idle"
    DRAGGING_NODE = "dragging-node"
    CONNECTING_EDGE = "connecting-edge"
    RESIZING_PANEL = "resizing-panel"


class PanelSide(str, Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass
class PanelState:
    width: float
    min_width: float
    max_width: float
    visible: bool = True

    def clamp(self, width: float) -> float:
        return max(self.min_width, min(self.max_width, width))


@dataclass
class PanelLayout:
    """Widths and visibility of the palette (left) and inspector (right) panels."""

    left: PanelState
    right: PanelState

    @classmethod
    def from_settings(cls, settings: Settings) -> "PanelLayout":
        left = PanelState(settings.left_panel_width, settings.left_panel_min, settings.left_panel_max)
        right = PanelState(settings.right_panel_width, settings.right_panel_min, settings.right_panel_max)
        left.width = left.clamp(left.width)
        right.width = right.clamp(right.width)
        return cls(left=left, right=right)

    def panel(self, side: PanelSide) -> PanelState:
        return self.left if side == PanelSide.LEFT else self.right

    def toggle(self, side: PanelSide) -> bool:
        panel = self.panel(side)
        panel.visible = not panel.visible
        return panel.visible


@dataclass
class Gesture:
    kind: GestureKind = GestureKind.IDLE
    origin: tuple[float, float] = (0.0, 0.0)
    node_id: NodeId | None = None  # dragged node, or connection source
    side: PanelSide | None = None
    start_position: Position | None = None
    start_width: float = 0.0


class FlowEditor:
    """Editing context for one flow.

    Holds the graph being edited together with selection, gesture and panel
    state, and routes save/export/layout/validate requests to their engines.
    """

    def __init__(
        self,
        graph: Graph | None = None,
        *,
        name: str = "",
        settings: Settings | None = None,
        store: SnapshotStore | None = None,
        exporter: Exporter | None = None,
        rng: random.Random | None = None,
        on_close: Callable[[], None] | None = None,
    ):
        self.graph = graph if graph is not None else Graph()
        self.name = name
        self.settings = settings or Settings()
        self.store = store
        self.exporter = exporter or Exporter(self.settings)
        self.rng = rng or random.Random()
        self.on_close = on_close

        self.panels = PanelLayout.from_settings(self.settings)
        self.gesture = Gesture()
        self.selected: NodeId | None = None
        self.diagnostics: list[ValidationIssue] = []
        self.snapshot_index: int | None = None

    # -------------------------------------------------------------------------
    # Selection and the metadata form
    # -------------------------------------------------------------------------

    def select(self, node_id: NodeId) -> None:
        self.selected = node_id if node_id in self.graph.nodes else None

    def clear_selection(self) -> None:
        self.selected = None

    @property
    def form(self) -> NodeMetadata | None:
        """Metadata bound to the inspector form for the selected node."""
        if self.selected is None:
            return None
        return self.graph.metadata.get(self.selected)

    def edit_selected(self, **changes: Any) -> None:
        """Apply form edits to the selected node immediately."""
        if self.selected is None:
            return
        self.graph.update_metadata(self.selected, changes)

    # -------------------------------------------------------------------------
    # Graph edits
    # -------------------------------------------------------------------------

    def create_node(self, kind: NodeKind, label: str | None = None) -> NodeId:
        """Add a node at a pseudo-random spot on the canvas."""
        s = self.settings
        x = self.rng.uniform(0.0, max(0.0, s.canvas_width - s.node_width))
        y = self.rng.uniform(0.0, max(0.0, s.canvas_height - s.node_height))
        return self.graph.add_node(kind, label, Position(x=round(x, 1), y=round(y, 1)))

    def connect(self, source: NodeId, target: NodeId) -> EdgeRef:
        return self.graph.add_edge(source, target)

    def delete_selected(self) -> None:
        if self.selected is None:
            return
        self.graph.remove_node(self.selected)
        self.selected = None

    def bring_to_front(self) -> None:
        if self.selected is not None:
            self.graph.bring_to_front(self.selected)

    def send_to_back(self) -> None:
        if self.selected is not None:
            self.graph.send_to_back(self.selected)

    def toggle_panel(self, side: PanelSide) -> bool:
        return self.panels.toggle(side)

    # -------------------------------------------------------------------------
    # Pointer gestures
    # -------------------------------------------------------------------------

    @property
    def idle(self) -> bool:
        return self.gesture.kind == GestureKind.IDLE

    def press_canvas(self) -> None:
        """Press on empty canvas: clears the selection."""
        if self.idle:
            self.clear_selection()

    def press_node(self, node_id: NodeId, x: float, y: float) -> None:
        """Press on a node body: select it and start dragging."""
        node = self.graph.nodes.get(node_id)
        if not self.idle or node is None:
            return
        self.select(node_id)
        self.gesture = Gesture(
            kind=GestureKind.DRAGGING_NODE,
            origin=(x, y),
            node_id=node_id,
            start_position=node.position,
        )

    def press_handle(self, node_id: NodeId, x: float, y: float) -> None:
        """Press on a node's connection handle: start connecting from it."""
        if not self.idle or node_id not in self.graph.nodes:
            return
        self.gesture = Gesture(kind=GestureKind.CONNECTING_EDGE, origin=(x, y), node_id=node_id)

    def press_resizer(self, side: PanelSide, x: float, y: float = 0.0) -> None:
        panel = self.panels.panel(side)
        if not self.idle or not panel.visible:
            return
        self.gesture = Gesture(
            kind=GestureKind.RESIZING_PANEL,
            origin=(x, y),
            side=side,
            start_width=panel.width,
        )

    def move(self, x: float, y: float) -> None:
        g = self.gesture
        dx = x - g.origin[0]
        dy = y - g.origin[1]

        if g.kind == GestureKind.DRAGGING_NODE and g.node_id and g.start_position is not None:
            self.graph.move_node(g.node_id, Position(x=g.start_position.x + dx, y=g.start_position.y + dy))
        elif g.kind == GestureKind.RESIZING_PANEL and g.side is not None:
            panel = self.panels.panel(g.side)
            # The right panel's handle sits on its left edge, so moving left widens it
            delta = dx if g.side == PanelSide.LEFT else -dx
            panel.width = panel.clamp(g.start_width + delta)

    def release(self, x: float, y: float, target: NodeId | None = None) -> EdgeRef | None:
        """End the active gesture. Returns the new edge when a connection completes."""
        g = self.gesture
        edge: EdgeRef | None = None

        if g.kind in (GestureKind.DRAGGING_NODE, GestureKind.RESIZING_PANEL):
            self.move(x, y)
        elif g.kind == GestureKind.CONNECTING_EDGE and g.node_id is not None:
            if target is not None and target != g.node_id and target in self.graph.nodes and g.node_id in self.graph.nodes:
                edge = self.connect(g.node_id, target)
            else:
                logger.debug("Connection from %s dropped (target=%r)", g.node_id, target)

        self.gesture = Gesture()
        return edge

    # -------------------------------------------------------------------------
    # Engines
    # -------------------------------------------------------------------------

    def auto_layout(self, direction: str = "LR") -> LayoutResult:
        """Re-derive every node position. Ends any node drag first."""
        if self.gesture.kind == GestureKind.DRAGGING_NODE:
            self.gesture = Gesture()
        return apply_layout(self.graph, direction, self.settings)

    def validate(self) -> list[ValidationIssue]:
        self.diagnostics = validate_graph(self.graph)
        return self.diagnostics

    def save(self, name: str | None = None) -> int | None:
        """Save the flow as a new snapshot entry."""
        if self.store is None:
            logger.warning("No snapshot store configured; flow not saved")
            return None
        if name is not None:
            self.name = name
        index = self.store.save(self.name, self.graph)
        snapshot = self.store.get(index)
        if snapshot is not None:
            self.name = snapshot.name
        self.snapshot_index = index
        return index

    def save_version(self) -> bool:
        """Add a version to the snapshot this flow was last saved to or opened from."""
        if self.store is None or self.snapshot_index is None:
            return False
        return self.store.save_version(self.snapshot_index, self.graph)

    def open(self, index: int) -> bool:
        if self.store is None:
            return False
        graph = self.store.load(index)
        if graph is None:
            return False
        snapshot = self.store.get(index)
        self.graph = graph
        self.name = snapshot.name if snapshot else ""
        self.snapshot_index = index
        self.selected = None
        self.gesture = Gesture()
        self.diagnostics = []
        return True

    def export(self, fmt: str = "png", out_dir: Path = Path(".")) -> Path | None:
        return self.exporter.export(self.graph, self.name, fmt, out_dir)

    def close(self) -> None:
        self.gesture = Gesture()
        if self.on_close is None:
            return
        try:
            self.on_close()
        except Exception:
            logger.exception("Close callback failed")
