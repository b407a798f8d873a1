"""Structural checks for flow graphs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .models import Graph


@dataclass
class ValidationIssue:
    """A single validation finding."""

    rule: str
    subject: str  # node id or edge ref
    message: str
    level: Literal["error", "warning"] = "warning"

    def __str__(self) -> str:
        return f"{self.level.upper()}: [{self.rule}] {self.subject} - {self.message}"

    def to_dict(self) -> dict[str, str]:
        return {"rule": self.rule, "level": self.level, "subject": self.subject, "message": self.message}


class FlowRules:
    """Collection of validation rules for a flow graph.

    Rules only read the graph, so they can run at any point while editing.
    """

    def __init__(self, graph: Graph):
        self.graph = graph

    def run_all(self) -> list[ValidationIssue]:
        """Run all checks and return findings."""
        results = []
        results.extend(self.check_missing_labels())
        results.extend(self.check_isolated_nodes())
        results.extend(self.check_dangling_edges())
        return results

    def check_missing_labels(self) -> list[ValidationIssue]:
        results = []
        for node in self.graph.nodes.values():
            if not node.label.strip():
                results.append(
                    ValidationIssue(
                        rule="missing-label",
                        subject=node.id,
                        message=f"{node.kind.default_label} node has no label",
                    )
                )
        return results

    def check_isolated_nodes(self) -> list[ValidationIssue]:
        """Flag nodes with no edges at all.

        A graph with a single node is never flagged.
        """
        if len(self.graph.nodes) <= 1:
            return []

        connected = set()
        for edge in self.graph.edges.values():
            connected.add(edge.source)
            connected.add(edge.target)

        results = []
        for node in self.graph.nodes.values():
            if node.id not in connected:
                name = node.label.strip() or node.id
                results.append(
                    ValidationIssue(
                        rule="isolated-node",
                        subject=node.id,
                        message=f"Node '{name}' is not connected to any other node",
                    )
                )
        return results

    def check_dangling_edges(self) -> list[ValidationIssue]:
        results = []
        for edge in self.graph.edges.values():
            missing = [end for end in dict.fromkeys((edge.source, edge.target)) if end not in self.graph.nodes]
            if missing:
                results.append(
                    ValidationIssue(
                        rule="dangling-edge",
                        subject=edge.id,
                        message=f"Edge {edge.source} -> {edge.target} references missing node(s): {', '.join(missing)}",
                        level="error",
                    )
                )
        return results


def validate_graph(graph: Graph) -> list[ValidationIssue]:
    return FlowRules(graph).run_all()
