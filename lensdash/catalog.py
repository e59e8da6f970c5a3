"""Immutable graph index over an issue catalog."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from lensdash.models import DependencyKind, EffectiveStatus, Issue, Status

logger = logging.getLogger(__name__)


class CatalogIndex:
    """Adjacency maps built once per dashboard.

    ``downstream`` unions children and blocked issues, ``upstream`` unions
    parents and blockers. ``blocked_by`` keeps the first open blocker seen in
    catalog order. Dependencies on unknown ids are dropped.
    """

    def __init__(self, issues: Iterable[Issue]) -> None:
        self.by_id: dict[str, Issue] = {}
        ordered: list[Issue] = []
        for issue in issues:
            if issue.id in self.by_id:
                logger.warning("Duplicate issue id %s ignored", issue.id)
                continue
            self.by_id[issue.id] = issue
            ordered.append(issue)
        self.issues: tuple[Issue, ...] = tuple(ordered)
        self.position: dict[str, int] = {issue.id: idx for idx, issue in enumerate(self.issues)}
        self.open_ids: frozenset[str] = frozenset(i.id for i in self.issues if i.status != Status.CLOSED)

        self.downstream: dict[str, list[str]] = {}
        self.upstream: dict[str, list[str]] = {}
        self.children: dict[str, list[str]] = {}
        self.blocks: dict[str, list[str]] = {}
        self.blocked_by: dict[str, str] = {}
        edges: set[tuple[str, str, str]] = set()

        dropped = 0
        for issue in self.issues:
            for dep in issue.dependencies:
                target = dep.depends_on_id
                if dep.kind not in (DependencyKind.BLOCKS, DependencyKind.PARENT_CHILD):
                    continue
                if target not in self.by_id or target == issue.id:
                    dropped += 1
                    continue
                _append_unique(self.downstream, edges, "down", target, issue.id)
                _append_unique(self.upstream, edges, "up", issue.id, target)
                if dep.kind == DependencyKind.BLOCKS:
                    _append_unique(self.blocks, edges, "blocks", target, issue.id)
                    if issue.id not in self.blocked_by and target in self.open_ids:
                        self.blocked_by[issue.id] = target
                else:
                    _append_unique(self.children, edges, "children", target, issue.id)
        if dropped:
            logger.debug("Dropped %s dangling or self-referencing dependencies", dropped)

    def __len__(self) -> int:
        return len(self.issues)

    def __contains__(self, issue_id: object) -> bool:
        return issue_id in self.by_id

    def get(self, issue_id: str) -> Issue | None:
        return self.by_id.get(issue_id)

    def downstream_of(self, issue_id: str) -> list[str]:
        return self.downstream.get(issue_id, [])

    def upstream_of(self, issue_id: str) -> list[str]:
        return self.upstream.get(issue_id, [])

    def children_of(self, issue_id: str) -> list[str]:
        return self.children.get(issue_id, [])

    def blocked_issues_of(self, issue_id: str) -> list[str]:
        return self.blocks.get(issue_id, [])

    def blocker_of(self, issue_id: str) -> str:
        return self.blocked_by.get(issue_id, "")

    def is_open(self, issue_id: str) -> bool:
        return issue_id in self.open_ids

    def effective_status(self, issue: Issue) -> EffectiveStatus:
        if issue.status == Status.CLOSED:
            return EffectiveStatus.CLOSED
        if issue.status == Status.IN_PROGRESS:
            return EffectiveStatus.IN_PROGRESS
        if issue.status == Status.BLOCKED or issue.id in self.blocked_by:
            return EffectiveStatus.BLOCKED
        return EffectiveStatus.READY

    def sort_key(self, issue: Issue) -> tuple[int, int]:
        return (self.effective_status(issue).rank, issue.priority)

    def sorted_issues(self, issues: Iterable[Issue]) -> list[Issue]:
        """Stable sort by effective status rank, then priority."""
        return sorted(issues, key=self.sort_key)

    def issues_in(self, ids: Iterable[str]) -> list[Issue]:
        """Issues for the given ids, in catalog order."""
        wanted = set(ids)
        return [issue for issue in self.issues if issue.id in wanted]

    def resolve(self, ids: Sequence[str]) -> list[Issue]:
        """Issues for the given ids, in the given order, skipping unknown ids."""
        return [self.by_id[issue_id] for issue_id in ids if issue_id in self.by_id]

    def all_labels(self) -> list[str]:
        return sorted({label for issue in self.issues for label in issue.labels})


def _append_unique(
    graph: dict[str, list[str]], seen: set[tuple[str, str, str]], name: str, key: str, value: str
) -> None:
    # seen mirrors every bucket, keyed by map name
    edge = (name, key, value)
    if edge in seen:
        return
    seen.add(edge)
    graph.setdefault(key, []).append(value)
