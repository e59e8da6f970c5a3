"""Workstream detection over the visible issue set."""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from lensdash.catalog import CatalogIndex
from lensdash.models import CrossWorkstreamBlocker, EffectiveStatus, Issue, Workstream

logger = logging.getLogger(__name__)

STANDALONE_ID = "standalone"
STANDALONE_NAME = "Standalone"


class UnionFind:
    def __init__(self, members: list[str]) -> None:
        self.parent = {m: m for m in members}
        self.rank = {m: 0 for m in members}

    def find(self, x: str) -> str:
        if self.parent[x] != x:
            self.parent[x] = self.find(self.parent[x])
        return self.parent[x]

    def union(self, a: str, b: str) -> None:
        ra = self.find(a)
        rb = self.find(b)
        if ra == rb:
            return

        if self.rank[ra] < self.rank[rb]:
            self.parent[ra] = rb
        elif self.rank[ra] > self.rank[rb]:
            self.parent[rb] = ra
        else:
            self.parent[rb] = ra
            self.rank[ra] += 1


@dataclass(frozen=True)
class GroupingOptions:
    max_depth: int = 3
    min_group_size: int = 2
    related_label_count: int = 3


class WorkstreamPartitioner(Protocol):
    def partition(self, issues: list[Issue], primaries: frozenset[str], lens_name: str) -> list[Workstream]:
        ...


def format_workstream_name(label: str) -> str:
    if ":" in label:
        label = label.split(":", maxsplit=1)[1]
    return label[:1].upper() + label[1:]


def top_labels(counts: Counter[str], n: int) -> list[str]:
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [label for label, _ in ranked[:n]]


def build_workstream(
    ws_id: str,
    name: str,
    issues: list[Issue],
    catalog: CatalogIndex,
    *,
    primaries: frozenset[str] | None = None,
    exclude_labels: Iterable[str] = (),
    related_label_count: int = 3,
    depth: int = 0,
) -> Workstream:
    """Workstream with status counts; ``primaries=None`` counts every issue as primary."""
    ws = Workstream(id=ws_id, name=name, issues=list(issues), depth=depth)
    excluded = set(exclude_labels)
    label_counts: Counter[str] = Counter()
    for issue in ws.issues:
        if primaries is None or issue.id in primaries:
            ws.primary_count += 1
        else:
            ws.context_count += 1

        status = catalog.effective_status(issue)
        if status is EffectiveStatus.CLOSED:
            ws.closed_count += 1
        elif status is EffectiveStatus.IN_PROGRESS:
            ws.in_progress_count += 1
        elif status is EffectiveStatus.BLOCKED:
            ws.blocked_count += 1
        else:
            ws.ready_count += 1

        label_counts.update(label for label in issue.labels if label not in excluded)

    if ws.issues:
        ws.progress = ws.closed_count / len(ws.issues)
    ws.is_blocked = ws.ready_count == 0 and ws.in_progress_count == 0 and ws.closed_count < len(ws.issues)
    ws.related_labels = top_labels(label_counts, related_label_count)
    return ws


class ComponentPartitioner:
    """Weakly connected components over parent-child and blocks edges.

    Edges are restricted to the visible set. Singleton components are pooled
    into one standalone workstream sorted last.
    """

    def __init__(self, catalog: CatalogIndex, *, options: GroupingOptions | None = None, anchor_id: str = "") -> None:
        self.catalog = catalog
        self.options = options or GroupingOptions()
        self.anchor_id = anchor_id

    def partition(self, issues: list[Issue], primaries: frozenset[str], lens_name: str) -> list[Workstream]:
        if not issues:
            return []

        member_ids = [issue.id for issue in issues]
        visible = set(member_ids)
        uf = UnionFind(member_ids)
        for issue in issues:
            for up in self.catalog.upstream_of(issue.id):
                if up in visible:
                    uf.union(issue.id, up)

        components: dict[str, list[Issue]] = defaultdict(list)
        for issue in issues:
            components[uf.find(issue.id)].append(issue)

        workstreams: list[Workstream] = []
        standalone: list[Issue] = []
        for members in components.values():
            if len(members) == 1 and members[0].id != self.anchor_id:
                standalone.extend(members)
                continue
            workstreams.append(
                build_workstream(
                    f"ws:{members[0].id}",
                    self._name_for(members, lens_name, visible),
                    members,
                    self.catalog,
                    primaries=primaries,
                    exclude_labels=[lens_name],
                    related_label_count=self.options.related_label_count,
                )
            )

        workstreams.sort(key=lambda ws: (-len(ws.issues), ws.name))
        if standalone:
            workstreams.append(
                build_workstream(
                    STANDALONE_ID,
                    STANDALONE_NAME,
                    standalone,
                    self.catalog,
                    primaries=primaries,
                    exclude_labels=[lens_name],
                    related_label_count=self.options.related_label_count,
                )
            )

        detect_cross_workstream_blockers(workstreams, self.catalog)
        logger.debug("Partitioned %s issues into %s workstreams", len(issues), len(workstreams))
        return workstreams

    def _name_for(self, members: list[Issue], lens_name: str, visible: set[str]) -> str:
        counts: Counter[str] = Counter(
            label for issue in members for label in issue.labels if label != lens_name
        )
        if counts:
            return format_workstream_name(top_labels(counts, 1)[0])
        for issue in members:
            if issue.id == self.anchor_id:
                return issue.title
        for issue in members:
            if not any(up in visible for up in self.catalog.upstream_of(issue.id)):
                return issue.title
        return members[0].title


def detect_cross_workstream_blockers(workstreams: list[Workstream], catalog: CatalogIndex) -> None:
    if len(workstreams) < 2:
        return

    owner: dict[str, int] = {}
    for idx, ws in enumerate(workstreams):
        for issue in ws.issues:
            owner[issue.id] = idx

    for idx, ws in enumerate(workstreams):
        for issue in ws.issues:
            if issue.is_closed:
                continue
            for blocker_id in catalog.upstream_of(issue.id):
                if issue.id not in catalog.blocked_issues_of(blocker_id):
                    continue
                other = owner.get(blocker_id)
                if other is None or other == idx or not catalog.is_open(blocker_id):
                    continue
                ws.cross_blocked_by.append(
                    CrossWorkstreamBlocker(
                        blocker_id=blocker_id,
                        blocker_workstream=workstreams[other].name,
                        blocked_id=issue.id,
                        blocked_workstream=ws.name,
                    )
                )
            for blocked_id in catalog.blocked_issues_of(issue.id):
                other = owner.get(blocked_id)
                if other is None or other == idx:
                    continue
                ws.cross_blocks.append(
                    CrossWorkstreamBlocker(
                        blocker_id=issue.id,
                        blocker_workstream=ws.name,
                        blocked_id=blocked_id,
                        blocked_workstream=workstreams[other].name,
                    )
                )


def _common_labels(issues: list[Issue]) -> set[str]:
    counts = Counter(label for issue in issues for label in issue.labels)
    return {label for label, count in counts.items() if count * 2 > len(issues)}


def subdivide_workstream(
    ws: Workstream,
    catalog: CatalogIndex,
    primaries: frozenset[str],
    options: GroupingOptions,
    *,
    exclude_labels: frozenset[str] = frozenset(),
) -> list[Workstream]:
    """Split ``ws`` by its most frequent secondary label, recursively.

    A split is kept only when it produces at least two groups of
    ``min_group_size`` issues.
    """
    ws.sub_workstreams = []
    if ws.depth >= options.max_depth:
        return []
    min_size = max(2, options.min_group_size)
    if len(ws.issues) < min_size * 2:
        return []

    excluded = exclude_labels | _common_labels(ws.issues)
    counts: Counter[str] = Counter(
        label for issue in ws.issues for label in issue.labels if label not in excluded
    )
    rank = {label: idx for idx, label in enumerate(top_labels(counts, len(counts)))}

    buckets: dict[str, list[Issue]] = defaultdict(list)
    leftovers: list[Issue] = []
    for issue in ws.issues:
        ranked = [label for label in issue.labels if label in rank]
        if not ranked:
            leftovers.append(issue)
            continue
        buckets[min(ranked, key=rank.__getitem__)].append(issue)

    groups: list[tuple[str, list[Issue]]] = []
    for label, members in buckets.items():
        if len(members) >= min_size:
            groups.append((label, members))
        else:
            leftovers.extend(members)
    if len(groups) < 2:
        return []

    groups.sort(key=lambda item: (-len(item[1]), item[0]))
    subs = [
        build_workstream(
            f"{ws.id}/{label}",
            format_workstream_name(label),
            members,
            catalog,
            primaries=primaries,
            exclude_labels=excluded | {label},
            related_label_count=options.related_label_count,
            depth=ws.depth + 1,
        )
        for label, members in groups
    ]
    if leftovers:
        order = {issue.id: idx for idx, issue in enumerate(ws.issues)}
        leftovers.sort(key=lambda issue: order[issue.id])
        subs.append(
            build_workstream(
                f"{ws.id}/{STANDALONE_ID}",
                STANDALONE_NAME,
                leftovers,
                catalog,
                primaries=primaries,
                exclude_labels=excluded,
                related_label_count=options.related_label_count,
                depth=ws.depth + 1,
            )
        )

    for sub, (label, _) in zip(subs, groups):
        subdivide_workstream(sub, catalog, primaries, options, exclude_labels=excluded | {label})
    ws.sub_workstreams = subs
    return subs


def subdivide_all(
    workstreams: list[Workstream],
    catalog: CatalogIndex,
    primaries: frozenset[str],
    options: GroupingOptions,
    *,
    exclude_labels: frozenset[str] = frozenset(),
) -> None:
    for ws in workstreams:
        subdivide_workstream(ws, catalog, primaries, options, exclude_labels=exclude_labels)
