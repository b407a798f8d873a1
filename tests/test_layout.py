"""Tests for the layered layout engine."""

import pytest

from ropaflow.config import Settings
from ropaflow.layout import apply_layout, assign_ranks, break_cycles, compute_layout, count_crossings
from ropaflow.models import Graph, NodeKind, Position


def _graph(labels: list[str], edges: list[tuple[str, str]]) -> tuple[Graph, dict[str, str]]:
    graph = Graph()
    ids = {label: graph.add_node(NodeKind.PROCESS, label) for label in labels}
    for src, dst in edges:
        graph.add_edge(ids.get(src, src), ids.get(dst, dst))
    return graph, ids


def test_chain_ranks_and_x_increase(chain_graph: Graph):
    a, b, c = list(chain_graph.nodes)
    result = apply_layout(chain_graph, "LR")

    assert (result.ranks[a], result.ranks[b], result.ranks[c]) == (0, 1, 2)
    xs = [chain_graph.nodes[n].position.x for n in (a, b, c)]
    assert xs[0] < xs[1] < xs[2]


def test_rank_is_longest_path():
    graph, ids = _graph(["A", "B", "C", "D"], [("A", "B"), ("B", "C"), ("A", "C"), ("C", "D")])
    result = compute_layout(graph)
    assert result.ranks[ids["C"]] == 2
    assert result.ranks[ids["D"]] == 3


def test_every_edge_goes_forward_in_acyclic_graph():
    graph, ids = _graph(
        ["A", "B", "C", "D", "E"],
        [("A", "C"), ("B", "C"), ("C", "D"), ("A", "E"), ("E", "D")],
    )
    result = compute_layout(graph)
    for edge in graph.edges.values():
        assert result.ranks[edge.target] > result.ranks[edge.source]


def test_isolated_nodes_rank_zero_in_arrival_order():
    graph, ids = _graph(["X", "Y", "Z"], [])
    result = compute_layout(graph)

    assert all(rank == 0 for rank in result.ranks.values())
    assert result.order == [[ids["X"], ids["Y"], ids["Z"]]]
    ys = [result.positions[ids[k]].y for k in ("X", "Y", "Z")]
    assert ys[0] < ys[1] < ys[2]


def test_cycle_is_tolerated():
    graph, ids = _graph(["A", "B", "C"], [("A", "B"), ("B", "C"), ("C", "A")])
    result = compute_layout(graph)

    assert set(result.positions) == set(ids.values())
    assert len(result.ignored_edges) == 1
    assert result.ranks[ids["A"]] == 0
    for ref, edge in graph.edges.items():
        if ref not in result.ignored_edges:
            assert result.ranks[edge.target] >= result.ranks[edge.source] + 1


def test_ranking_edges_go_forward_with_nested_cycles():
    graph, ids = _graph(
        ["A", "B", "C", "D", "E", "F"],
        [("A", "B"), ("B", "C"), ("C", "A"), ("C", "D"), ("D", "E"), ("E", "C"), ("E", "F"), ("F", "F")],
    )
    result = compute_layout(graph)

    assert set(result.positions) == set(ids.values())
    kept = [e for ref, e in graph.edges.items() if ref not in result.ignored_edges]
    assert len(kept) == len(result.ranking_edges)
    for edge in kept:
        assert result.ranks[edge.target] >= result.ranks[edge.source] + 1


def test_self_loop_and_dangling_edges_are_ignored_for_ranking():
    graph, ids = _graph(["A", "B"], [("A", "A"), ("A", "ghost"), ("A", "B")])
    kept, ignored = break_cycles(graph)

    assert kept == [(ids["A"], ids["B"])]
    assert len(ignored) == 2
    result = compute_layout(graph)
    assert result.ranks == {ids["A"]: 0, ids["B"]: 1}


def test_layout_is_deterministic():
    graph, _ = _graph(
        ["A", "B", "C", "D", "E", "F"],
        [("A", "D"), ("B", "E"), ("C", "F"), ("A", "F"), ("C", "D"), ("F", "A")],
    )
    first = compute_layout(graph)
    second = compute_layout(graph.copy())
    assert first.positions == second.positions
    assert first.order == second.order


def test_layout_leaves_edges_unchanged(chain_graph: Graph):
    edges_before = dict(chain_graph.edges)
    apply_layout(chain_graph)
    assert chain_graph.edges == edges_before


def test_barycenter_ordering_removes_crossing():
    # Arrival order puts a crossing between the ranks: A->D, B->C
    graph, ids = _graph(["A", "B", "C", "D"], [("A", "D"), ("B", "C")])
    result = compute_layout(graph)
    assert result.crossings == 0
    assert result.order[1] == [ids["D"], ids["C"]]


def test_zero_passes_keeps_arrival_order():
    graph, ids = _graph(["A", "B", "C", "D"], [("A", "D"), ("B", "C")])
    result = compute_layout(graph, settings=Settings(ordering_passes=0))
    assert result.order[1] == [ids["C"], ids["D"]]
    assert result.crossings == 1


def test_spacing_uses_node_box_and_gaps():
    settings = Settings(node_width=100, node_height=50, rank_gap=20, node_gap=10)
    graph, ids = _graph(["A", "B", "C"], [("A", "B"), ("A", "C")])
    result = compute_layout(graph, "LR", settings)

    assert result.positions[ids["B"]].x - result.positions[ids["A"]].x == 120
    assert result.positions[ids["C"]].y - result.positions[ids["B"]].y == 60
    # The single rank-0 node is centred against the two in rank 1
    assert result.positions[ids["A"]].y == 30


def test_top_to_bottom_swaps_axes(chain_graph: Graph):
    a, b, c = list(chain_graph.nodes)
    result = compute_layout(chain_graph, "tb")

    assert result.direction == "TB"
    ys = [result.positions[n].y for n in (a, b, c)]
    assert ys[0] < ys[1] < ys[2]
    assert len({result.positions[n].x for n in (a, b, c)}) == 1


def test_unknown_direction_raises(chain_graph: Graph):
    with pytest.raises(ValueError):
        compute_layout(chain_graph, "RL")


def test_empty_graph():
    result = apply_layout(Graph())
    assert result.positions == {}
    assert result.order == []


def test_assign_ranks_and_count_crossings_helpers():
    ranks = assign_ranks(["a", "b", "c"], [("a", "c"), ("b", "c")])
    assert ranks == {"a": 0, "b": 0, "c": 1}
    assert count_crossings([["a", "b"], ["d", "c"]], [("a", "c"), ("b", "d")], {"a": 0, "b": 0, "c": 1, "d": 1}) == 1


def test_apply_layout_replaces_positions(chain_graph: Graph):
    for node_id in chain_graph.nodes:
        chain_graph.move_node(node_id, Position(999, 999))
    result = apply_layout(chain_graph)
    for node_id, node in chain_graph.nodes.items():
        assert node.position == result.positions[node_id]
