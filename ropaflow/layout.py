"""
Layered auto-layout for flow graphs.

Phases:
  1. Cycle breaking: a depth-first walk in node/edge order drops edges that
     close a cycle, along with self-loops and dangling edges.
  2. Ranking: longest path from the sources (nodes without incoming edges).
  3. Ordering: barycenter sweeps (down, then up) for a fixed number of
     passes, keeping the ordering with the fewest crossings.
  4. Coordinates: ranks along the layout direction, nodes across it,
     each rank centred against the widest one.

Everything iterates in graph insertion order, so the same graph always gets
the same layout.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from .config import Settings
from .models import EdgeRef, Graph, NodeId, Position

logger = logging.getLogger(__name__)

DIRECTIONS = ("LR", "TB")


@dataclass
class LayoutResult:
    direction: str
    positions: dict[NodeId, Position] = field(default_factory=dict)
    ranks: dict[NodeId, int] = field(default_factory=dict)
    order: list[list[NodeId]] = field(default_factory=list)  # one list per rank
    ranking_edges: list[tuple[NodeId, NodeId]] = field(default_factory=list)
    ignored_edges: list[EdgeRef] = field(default_factory=list)
    crossings: int = 0


def normalize_direction(direction: str) -> str:
    d = (direction or "").strip().upper()
    if d not in DIRECTIONS:
        raise ValueError(f"Unknown layout direction {direction!r} (expected one of {', '.join(DIRECTIONS)})")
    return d


def break_cycles(graph: Graph) -> tuple[list[tuple[NodeId, NodeId]], list[EdgeRef]]:
    """Split edges into those used for ranking and those ignored.

    Ignored: self-loops, edges with a missing endpoint, and edges that reach
    a node still on the depth-first stack (back edges).
    """
    out: dict[NodeId, list[tuple[NodeId, EdgeRef]]] = {n: [] for n in graph.nodes}
    ignored: list[EdgeRef] = []
    for ref, e in graph.edges.items():
        if e.source not in graph.nodes or e.target not in graph.nodes or e.source == e.target:
            ignored.append(ref)
            continue
        out[e.source].append((e.target, ref))

    on_stack: set[NodeId] = set()
    done: set[NodeId] = set()
    back: set[EdgeRef] = set()

    for root in graph.nodes:
        if root in done:
            continue
        stack: list[tuple[NodeId, int]] = [(root, 0)]
        on_stack.add(root)
        while stack:
            node, i = stack[-1]
            targets = out[node]
            if i >= len(targets):
                stack.pop()
                on_stack.discard(node)
                done.add(node)
                continue
            stack[-1] = (node, i + 1)
            target, ref = targets[i]
            if target in on_stack:
                back.add(ref)
            elif target not in done:
                on_stack.add(target)
                stack.append((target, 0))

    kept: list[tuple[NodeId, NodeId]] = []
    for ref, e in graph.edges.items():
        if ref in back:
            ignored.append(ref)
        elif ref not in ignored:
            kept.append((e.source, e.target))
    return kept, ignored


def assign_ranks(nodes: list[NodeId], edges: list[tuple[NodeId, NodeId]]) -> dict[NodeId, int]:
    """Longest-path ranks over an acyclic edge list (Kahn's algorithm)."""
    in_degree = {n: 0 for n in nodes}
    succs: dict[NodeId, list[NodeId]] = {n: [] for n in nodes}
    for src, dst in edges:
        succs[src].append(dst)
        in_degree[dst] += 1

    ranks = {n: 0 for n in nodes}
    queue = deque(n for n in nodes if in_degree[n] == 0)
    while queue:
        node = queue.popleft()
        for dst in succs[node]:
            ranks[dst] = max(ranks[dst], ranks[node] + 1)
            in_degree[dst] -= 1
            if in_degree[dst] == 0:
                queue.append(dst)
    return ranks


def count_crossings(order: list[list[NodeId]], edges: list[tuple[NodeId, NodeId]], ranks: dict[NodeId, int]) -> int:
    """Count crossings between edges joining the same pair of adjacent ranks."""
    index = {n: i for layer in order for i, n in enumerate(layer)}
    by_rank: dict[int, list[tuple[int, int]]] = {}
    for src, dst in edges:
        if ranks[dst] == ranks[src] + 1:
            by_rank.setdefault(ranks[src], []).append((index[src], index[dst]))

    total = 0
    for segs in by_rank.values():
        for i in range(len(segs)):
            a, b = segs[i]
            for c, d in segs[i + 1 :]:
                if (a - c) * (b - d) < 0:
                    total += 1
    return total


def _sweep(order: list[list[NodeId]], neighbours: dict[NodeId, list[NodeId]], rank_range: range) -> None:
    for r in rank_range:
        index = {n: i for layer in order for i, n in enumerate(layer)}

        def key(n: NodeId, index=index) -> tuple[float, int]:
            adj = neighbours[n]
            if not adj:
                return (float(index[n]), index[n])
            return (sum(index[m] for m in adj) / len(adj), index[n])

        order[r] = sorted(order[r], key=key)


def order_ranks(
    nodes: list[NodeId],
    edges: list[tuple[NodeId, NodeId]],
    ranks: dict[NodeId, int],
    passes: int,
) -> tuple[list[list[NodeId]], int]:
    """Order nodes within ranks by barycenter sweeps; returns (order, crossings)."""
    rank_count = max(ranks.values(), default=-1) + 1
    order: list[list[NodeId]] = [[] for _ in range(rank_count)]
    for n in nodes:
        order[ranks[n]].append(n)

    preds: dict[NodeId, list[NodeId]] = {n: [] for n in nodes}
    succs: dict[NodeId, list[NodeId]] = {n: [] for n in nodes}
    for src, dst in edges:
        preds[dst].append(src)
        succs[src].append(dst)

    best = [list(layer) for layer in order]
    best_crossings = count_crossings(best, edges, ranks)

    for _ in range(passes):
        if best_crossings == 0:
            break
        _sweep(order, preds, range(1, rank_count))
        _sweep(order, succs, range(rank_count - 2, -1, -1))
        crossings = count_crossings(order, edges, ranks)
        if crossings < best_crossings:
            best = [list(layer) for layer in order]
            best_crossings = crossings

    return best, best_crossings


def compute_layout(graph: Graph, direction: str = "LR", settings: Settings | None = None) -> LayoutResult:
    """Compute positions for every node without touching the graph."""
    settings = settings or Settings()
    direction = normalize_direction(direction)

    nodes = list(graph.nodes)
    edges, ignored = break_cycles(graph)
    if ignored:
        logger.debug("Layout ignoring %d edge(s) for ranking: %s", len(ignored), ignored)

    ranks = assign_ranks(nodes, edges)
    order, crossings = order_ranks(nodes, edges, ranks, settings.ordering_passes)

    w, h = settings.node_width, settings.node_height
    if direction == "LR":
        rank_step = w + settings.rank_gap
        cross_step = h + settings.node_gap
    else:
        rank_step = h + settings.rank_gap
        cross_step = w + settings.node_gap

    widest = max((len(layer) for layer in order), default=0)
    positions: dict[NodeId, Position] = {}
    for r, layer in enumerate(order):
        offset = (widest - len(layer)) * cross_step / 2
        for i, n in enumerate(layer):
            along = r * rank_step
            across = i * cross_step + offset
            if direction == "LR":
                positions[n] = Position(x=along, y=across)
            else:
                positions[n] = Position(x=across, y=along)

    return LayoutResult(
        direction=direction,
        positions=positions,
        ranks=ranks,
        order=order,
        ranking_edges=edges,
        ignored_edges=ignored,
        crossings=crossings,
    )


def apply_layout(graph: Graph, direction: str = "LR", settings: Settings | None = None) -> LayoutResult:
    """Lay out ``graph`` and replace all node positions at once."""
    result = compute_layout(graph, direction, settings)
    graph.set_positions(result.positions)
    logger.info(
        "Laid out %d node(s) in %d rank(s), direction %s, %d crossing(s)",
        len(result.positions),
        len(result.order),
        result.direction,
        result.crossings,
    )
    return result
