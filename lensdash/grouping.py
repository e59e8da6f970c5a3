"""Attribute grouping of the primary set (label popularity, priority, status)."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass

from lensdash.catalog import CatalogIndex
from lensdash.clustering import build_workstream
from lensdash.models import EffectiveStatus, GroupByMode, Issue, Workstream

PRIORITY_BUCKETS = ("P0 Critical", "P1 High", "P2 Medium", "P3+ Other")

STATUS_BUCKETS = (
    (EffectiveStatus.READY, "Open"),
    (EffectiveStatus.IN_PROGRESS, "In Progress"),
    (EffectiveStatus.BLOCKED, "Blocked"),
    (EffectiveStatus.CLOSED, "Closed"),
)


@dataclass(frozen=True)
class GroupingSettings:
    subgroup_min_issues: int = 4
    subgroup_min_size: int = 2
    core_name: str = "Core"
    unlabeled_name: str = "Unlabeled"


def _group(name: str, issues: list[Issue], catalog: CatalogIndex, *, depth: int = 0) -> Workstream:
    return build_workstream(f"group:{name}", name, issues, catalog, depth=depth)


def group_by_label(
    primaries: list[Issue],
    catalog: CatalogIndex,
    settings: GroupingSettings | None = None,
) -> list[Workstream]:
    """Assign every issue to its most popular label; emit groups by popularity."""
    settings = settings or GroupingSettings()
    counts: Counter[str] = Counter(label for issue in primaries for label in issue.labels)
    ranked = [label for label, _ in sorted(counts.items(), key=lambda item: (-item[1], item[0]))]
    rank = {label: idx for idx, label in enumerate(ranked)}

    groups: dict[str, list[Issue]] = defaultdict(list)
    unlabeled: list[Issue] = []
    for issue in primaries:
        if not issue.labels:
            unlabeled.append(issue)
            continue
        groups[min(issue.labels, key=rank.__getitem__)].append(issue)

    result: list[Workstream] = []
    for label in ranked:
        members = groups.get(label)
        if not members:
            continue
        group = _group(label, members, catalog)
        group.sub_workstreams = _label_subgroups(group, label, rank, catalog, settings)
        result.append(group)
    if unlabeled:
        result.append(_group(settings.unlabeled_name, unlabeled, catalog))
    return result


def _label_subgroups(
    parent: Workstream,
    primary_label: str,
    rank: dict[str, int],
    catalog: CatalogIndex,
    settings: GroupingSettings,
) -> list[Workstream]:
    if len(parent.issues) < settings.subgroup_min_issues:
        return []

    buckets: dict[str, list[Issue]] = defaultdict(list)
    core: list[Issue] = []
    for issue in parent.issues:
        secondary = [label for label in issue.labels if label != primary_label and label in rank]
        if secondary:
            buckets[min(secondary, key=rank.__getitem__)].append(issue)
        else:
            core.append(issue)

    if len(buckets) < 2:
        return []

    kept: list[tuple[str, list[Issue]]] = []
    for label, members in buckets.items():
        if len(members) >= settings.subgroup_min_size:
            kept.append((label, members))
        else:
            core.extend(members)
    kept.sort(key=lambda item: -len(item[1]))

    subs = [_group(label, members, catalog, depth=1) for label, members in kept]
    if core:
        subs.append(_group(settings.core_name, core, catalog, depth=1))
    return subs


def group_by_priority(primaries: list[Issue], catalog: CatalogIndex) -> list[Workstream]:
    buckets: list[list[Issue]] = [[] for _ in PRIORITY_BUCKETS]
    for issue in primaries:
        buckets[min(max(issue.priority, 0), len(PRIORITY_BUCKETS) - 1)].append(issue)
    return [_group(name, members, catalog) for name, members in zip(PRIORITY_BUCKETS, buckets) if members]


def group_by_status(primaries: list[Issue], catalog: CatalogIndex) -> list[Workstream]:
    buckets: dict[EffectiveStatus, list[Issue]] = defaultdict(list)
    for issue in primaries:
        buckets[catalog.effective_status(issue)].append(issue)
    return [_group(name, buckets[status], catalog) for status, name in STATUS_BUCKETS if buckets.get(status)]


def build_groups(
    mode: GroupByMode,
    primaries: list[Issue],
    catalog: CatalogIndex,
    settings: GroupingSettings | None = None,
) -> list[Workstream]:
    if mode is GroupByMode.PRIORITY:
        return group_by_priority(primaries, catalog)
    if mode is GroupByMode.STATUS:
        return group_by_status(primaries, catalog)
    return group_by_label(primaries, catalog, settings)
