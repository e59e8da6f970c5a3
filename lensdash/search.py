"""In-place fuzzy narrowing of the visible list with a restoration snapshot."""

from __future__ import annotations

from dataclasses import dataclass

from lensdash.algorithms import fuzzy_find
from lensdash.models import FlatNode


@dataclass(frozen=True)
class SearchSnapshot:
    nodes: list[FlatNode]
    upstream: list[FlatNode]
    cursor: int
    scroll: int
    selected_id: str


@dataclass
class FuzzySearch:
    active: bool = False
    query: str = ""
    snapshot: SearchSnapshot | None = None
    result_count: int = 0

    def open(self, snapshot: SearchSnapshot) -> None:
        self.active = True
        self.query = ""
        self.snapshot = snapshot
        self.result_count = len(snapshot.upstream) + len(snapshot.nodes)

    def close(self) -> SearchSnapshot | None:
        snapshot = self.snapshot
        self.active = False
        self.query = ""
        self.snapshot = None
        self.result_count = 0
        return snapshot


def search_text(node: FlatNode) -> str:
    return f"{node.issue.id} {node.issue.title}"


def filter_nodes(query: str, nodes: list[FlatNode]) -> list[FlatNode]:
    """Nodes matching ``query`` ordered by match score."""
    return [nodes[match.index] for match in fuzzy_find(query, [search_text(node) for node in nodes])]


def filter_centered(
    query: str,
    upstream: list[FlatNode],
    ego: FlatNode,
    downstream: list[FlatNode],
) -> tuple[list[FlatNode], list[FlatNode]]:
    """Filter upstream and downstream together; the ego is never filtered out."""
    upstream_ids = {node.issue_id for node in upstream}
    matches = filter_nodes(query, [*upstream, ego, *downstream])
    kept_upstream = [node for node in matches if node.issue_id in upstream_ids]
    kept_downstream = [
        node for node in matches if node.issue_id not in upstream_ids and node.issue_id != ego.issue_id
    ]
    return kept_upstream, kept_downstream
