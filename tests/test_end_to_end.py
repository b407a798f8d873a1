"""End-to-end: build a flow in the editor, lay it out, check it and save it twice."""

import random

from ropaflow.models import NodeKind
from ropaflow.store import MemoryBlobStore, SnapshotStore
from ropaflow.surface import FlowEditor


def test_build_layout_validate_and_save():
    store = SnapshotStore(MemoryBlobStore())
    editor = FlowEditor(store=store, rng=random.Random(0))

    a = editor.create_node(NodeKind.PROCESS, "A")
    b = editor.create_node(NodeKind.DATA_STORE, "B")
    c = editor.create_node(NodeKind.THIRD_PARTY, "C")
    editor.connect(a, b)
    editor.connect(b, c)

    result = editor.auto_layout("LR")
    assert result.ranks[a] == 0 < result.ranks[b] == 1 < result.ranks[c] == 2
    nodes = editor.graph.nodes
    assert nodes[a].position.x < nodes[b].position.x < nodes[c].position.x

    assert editor.validate() == []

    editor.save("Flow1")
    assert len(store) == 1
    assert len(store.get(0).versions) == 1

    editor.save("Flow1")
    assert len(store) == 2
    assert [s.name for s in store.collection] == ["Flow1", "Flow1"]


def test_connect_by_gesture_then_layout():
    editor = FlowEditor(rng=random.Random(0))
    a = editor.create_node(NodeKind.CONTROLLER, "Controller")
    b = editor.create_node(NodeKind.PROCESS, "Payroll")

    editor.press_handle(a, 0, 0)
    editor.move(50, 50)
    ref = editor.release(100, 100, target=b)
    assert ref in editor.graph.edges

    editor.auto_layout("TB")
    assert editor.graph.nodes[a].position.y < editor.graph.nodes[b].position.y
