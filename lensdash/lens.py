"""Lens descriptors and depth materialization of primary sets."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace

from lensdash.catalog import CatalogIndex
from lensdash.models import DepthOption, LensKind
from lensdash.scope import ScopeFilter

logger = logging.getLogger(__name__)

NOT_FOUND_PREFIX = "Not Found: "


@dataclass(frozen=True)
class LensDescriptor:
    kind: LensKind
    value: str

    @classmethod
    def label(cls, name: str) -> LensDescriptor:
        return cls(LensKind.LABEL, name)

    @classmethod
    def epic(cls, issue_id: str) -> LensDescriptor:
        return cls(LensKind.EPIC, issue_id)

    @classmethod
    def bead(cls, issue_id: str) -> LensDescriptor:
        return cls(LensKind.BEAD, issue_id)

    @property
    def is_anchored(self) -> bool:
        return self.kind is not LensKind.LABEL


@dataclass(frozen=True)
class MaterializedLens:
    """Per-depth primary sets for one lens over one catalog.

    For anchored lenses every entry of ``depth_sets`` contains the anchor.
    """

    descriptor: LensDescriptor
    name: str
    anchor_id: str = ""
    found: bool = True
    direct_ids: frozenset[str] = frozenset()
    primary_ids: frozenset[str] = frozenset()
    depth_sets: dict[DepthOption, frozenset[str]] = field(default_factory=dict)

    @property
    def kind(self) -> LensKind:
        return self.descriptor.kind

    def primaries_for(self, depth: DepthOption) -> frozenset[str]:
        if self.descriptor.is_anchored:
            return self.depth_sets.get(depth, self.primary_ids)
        if depth is DepthOption.ONE:
            return self.direct_ids
        return self.primary_ids


def expand_descendants(
    seeds: Iterable[str],
    neighbours: Callable[[str], list[str]],
) -> frozenset[str]:
    """BFS closure of ``seeds`` following ``neighbours``."""
    result = set(seeds)
    queue = deque(result)
    while queue:
        current = queue.popleft()
        for nxt in neighbours(current):
            if nxt not in result:
                result.add(nxt)
                queue.append(nxt)
    return frozenset(result)


def descendants_by_level(
    anchor_id: str,
    neighbours: Callable[[str], list[str]],
) -> dict[str, int]:
    """Hop distance from ``anchor_id`` for every reachable id (anchor excluded)."""
    levels: dict[str, int] = {}
    visited = {anchor_id}
    queue: deque[tuple[str, int]] = deque([(anchor_id, 0)])
    while queue:
        current, level = queue.popleft()
        for nxt in neighbours(current):
            if nxt in visited:
                continue
            visited.add(nxt)
            levels[nxt] = level + 1
            queue.append((nxt, level + 1))
    return levels


def cumulative_depth_sets(anchor_id: str, levels: dict[str, int]) -> dict[DepthOption, frozenset[str]]:
    sets: dict[DepthOption, frozenset[str]] = {}
    for depth in DepthOption:
        if depth is DepthOption.ALL:
            members = set(levels)
        else:
            members = {issue_id for issue_id, level in levels.items() if level <= depth.value}
        members.add(anchor_id)
        sets[depth] = frozenset(members)
    return sets


def materialize(descriptor: LensDescriptor, catalog: CatalogIndex) -> MaterializedLens:
    if descriptor.kind is LensKind.LABEL:
        direct = frozenset(issue.id for issue in catalog.issues if issue.has_label(descriptor.value))
        return MaterializedLens(
            descriptor=descriptor,
            name=descriptor.value,
            direct_ids=direct,
            primary_ids=expand_descendants(direct, catalog.children_of),
        )

    anchor = catalog.get(descriptor.value)
    if anchor is None:
        logger.warning("%s lens anchor %s not found in catalog", descriptor.kind.value, descriptor.value)
        return MaterializedLens(
            descriptor=descriptor,
            name=NOT_FOUND_PREFIX + descriptor.value,
            found=False,
        )

    if descriptor.kind is LensKind.EPIC:
        neighbours = catalog.children_of
    else:
        neighbours = _children_then_blocked(catalog)

    levels = descendants_by_level(anchor.id, neighbours)
    depth_sets = cumulative_depth_sets(anchor.id, levels)
    return MaterializedLens(
        descriptor=descriptor,
        name=anchor.title,
        anchor_id=anchor.id,
        direct_ids=frozenset(catalog.children_of(anchor.id)),
        primary_ids=depth_sets[DepthOption.ALL],
        depth_sets=depth_sets,
    )


def _children_then_blocked(catalog: CatalogIndex) -> Callable[[str], list[str]]:
    def neighbours(issue_id: str) -> list[str]:
        return catalog.children_of(issue_id) + catalog.blocked_issues_of(issue_id)

    return neighbours


def apply_scope(lens: MaterializedLens, scope: ScopeFilter, catalog: CatalogIndex) -> MaterializedLens:
    """Restrict primaries to issues matching ``scope``.

    Label lenses intersect the label match with the scope before expanding
    descendants again. Anchored lenses filter every depth set and keep the
    anchor.
    """
    if not scope.active or not lens.found:
        return lens

    def keep(issue_id: str) -> bool:
        if issue_id == lens.anchor_id:
            return True
        issue = catalog.get(issue_id)
        return issue is not None and scope.matches(issue)

    if lens.kind is LensKind.LABEL:
        direct = frozenset(issue_id for issue_id in lens.direct_ids if keep(issue_id))
        return replace(
            lens,
            direct_ids=direct,
            primary_ids=expand_descendants(direct, catalog.children_of),
        )

    return replace(
        lens,
        direct_ids=frozenset(i for i in lens.direct_ids if keep(i)),
        primary_ids=frozenset(i for i in lens.primary_ids if keep(i)),
        depth_sets={depth: frozenset(i for i in ids if keep(i)) for depth, ids in lens.depth_sets.items()},
    )
