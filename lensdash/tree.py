"""Tree construction, ego-centered layout and flattening."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from lensdash.catalog import CatalogIndex
from lensdash.models import DepthOption, FlatNode, Issue, LensCounts, TreeNode


@dataclass
class Forest:
    roots: list[TreeNode] = field(default_factory=list)
    nodes: list[FlatNode] = field(default_factory=list)
    counts: LensCounts = field(default_factory=LensCounts)


@dataclass
class EgoLayout:
    upstream: list[FlatNode] = field(default_factory=list)
    ego: FlatNode | None = None
    roots: list[TreeNode] = field(default_factory=list)
    downstream: list[FlatNode] = field(default_factory=list)
    counts: LensCounts = field(default_factory=LensCounts)

    @property
    def nodes(self) -> list[FlatNode]:
        """Upstream, ego and downstream concatenated in display order."""
        ego = [self.ego] if self.ego is not None else []
        return [*self.upstream, *ego, *self.downstream]


class TreeBuilder:
    """Forest of primaries expanded downstream, plus upstream context chains."""

    def __init__(
        self,
        catalog: CatalogIndex,
        primaries: frozenset[str],
        depth: DepthOption,
        *,
        anchor_id: str = "",
    ) -> None:
        self.catalog = catalog
        self.primaries = primaries
        self.depth = depth
        self.max_depth = depth.max_depth
        self.anchor_id = anchor_id
        self.seen: set[str] = set()
        self.counts = LensCounts()

    def build(self) -> Forest:
        roots: list[TreeNode] = []
        root_issues = self._root_issues()
        for idx, issue in enumerate(root_issues):
            node = self._build_node(issue, 0, idx == len(root_issues) - 1, [])
            if node is not None:
                roots.append(node)

        if self.depth is not DepthOption.ONE:
            roots.extend(self._context_roots())

        fix_tree(roots)
        return Forest(roots=roots, nodes=flatten(roots, self.catalog), counts=self.counts)

    def _root_issues(self) -> list[Issue]:
        primaries = self.catalog.issues_in(self.primaries)
        if self.depth is DepthOption.ONE:
            candidates = primaries
        else:
            candidates = [
                issue
                for issue in primaries
                if issue.id == self.anchor_id or not self._blocked_by_open_primary(issue.id)
            ]
            if not candidates:
                candidates = primaries
        return sorted(candidates, key=lambda issue: (issue.id != self.anchor_id, *self.catalog.sort_key(issue)))

    def _blocked_by_open_primary(self, issue_id: str) -> bool:
        return any(
            upstream_id in self.primaries and self.catalog.is_open(upstream_id)
            for upstream_id in self.catalog.upstream_of(issue_id)
        )

    def _build_node(
        self,
        issue: Issue,
        depth: int,
        is_last: bool,
        parent_path: list[bool],
        *,
        within: frozenset[str] | None = None,
    ) -> TreeNode | None:
        if issue.id in self.seen:
            return None
        self.seen.add(issue.id)

        node = TreeNode(
            issue=issue,
            is_primary=issue.id in self.primaries,
            is_entry=bool(self.anchor_id) and issue.id == self.anchor_id,
            depth=depth,
            is_last=is_last,
            parent_path=list(parent_path),
        )
        self.counts.record(self.catalog.effective_status(issue), primary=node.is_primary)

        if depth < self.max_depth - 1:
            child_ids = [
                child_id
                for child_id in self.catalog.downstream_of(issue.id)
                if child_id not in self.seen and (within is None or child_id in within)
            ]
            children = self.catalog.sorted_issues(self.catalog.resolve(child_ids))
            child_path = [*parent_path, is_last]
            for idx, child in enumerate(children):
                child_node = self._build_node(
                    child,
                    depth + 1,
                    idx == len(children) - 1,
                    child_path,
                    within=within,
                )
                if child_node is not None:
                    node.children.append(child_node)
        return node

    def _context_roots(self) -> list[TreeNode]:
        context = self._context_blockers()
        if not context:
            return []

        unseen = [issue for issue in self.catalog.issues_in(context) if issue.id not in self.seen]
        unseen = self.catalog.sorted_issues(unseen)
        roots = [
            issue
            for issue in unseen
            if not any(
                up in context and up not in self.seen for up in self.catalog.upstream_of(issue.id)
            )
        ]
        if not roots:
            roots = unseen

        built: list[TreeNode] = []
        for idx, issue in enumerate(roots):
            node = self._build_node(issue, 0, idx == len(roots) - 1, [], within=context)
            if node is not None:
                built.append(node)
        return built

    def _context_blockers(self) -> frozenset[str]:
        """Non-primary upstream chains of the primaries that were not reached downstream."""
        context: set[str] = set()
        queue: deque[str] = deque()
        for issue in self.catalog.issues_in(self.primaries):
            for up in self.catalog.upstream_of(issue.id):
                if up not in self.primaries and up not in self.seen and up not in context:
                    context.add(up)
                    queue.append(up)
        while queue:
            current = queue.popleft()
            for up in self.catalog.upstream_of(current):
                if up not in self.primaries and up not in self.seen and up not in context:
                    context.add(up)
                    queue.append(up)
        return frozenset(context)


class EgoBuilder:
    """Upstream blockers above the anchor, downstream tree below it."""

    def __init__(
        self,
        catalog: CatalogIndex,
        primaries: frozenset[str],
        depth: DepthOption,
        *,
        anchor_id: str,
    ) -> None:
        self.catalog = catalog
        self.primaries = primaries
        self.max_depth = depth.max_depth
        self.anchor_id = anchor_id
        self.seen: set[str] = set()
        self.counts = LensCounts()

    def build(self) -> EgoLayout:
        anchor = self.catalog.get(self.anchor_id)
        if anchor is None:
            return EgoLayout()

        ego_node = TreeNode(issue=anchor, is_primary=True, is_entry=True, is_last=True)
        ego = _flat_node(ego_node, "", self.catalog, set())
        self.seen.add(anchor.id)
        self.counts.record(ego.status, primary=True)

        upstream: list[FlatNode] = []
        blockers = [
            issue
            for issue in self.catalog.resolve(self.catalog.upstream_of(anchor.id))
            if not issue.is_closed and issue.id not in self.seen
        ]
        blockers = self.catalog.sorted_issues(blockers)
        for idx, blocker in enumerate(blockers):
            self.seen.add(blocker.id)
            node = TreeNode(
                issue=blocker,
                is_primary=blocker.id in self.primaries,
                rel_depth=-1,
                is_last=idx == len(blockers) - 1,
                is_upstream=True,
            )
            flat = _flat_node(node, "", self.catalog, set())
            upstream.append(flat)
            self.counts.record(flat.status, primary=node.is_primary)

        roots: list[TreeNode] = []
        below = [
            issue
            for issue in self.catalog.resolve(self.catalog.downstream_of(anchor.id))
            if issue.id not in self.seen
        ]
        below = self.catalog.sorted_issues(below)
        for idx, issue in enumerate(below):
            node = self._build_node(issue, 1, idx == len(below) - 1, [ego_node.is_last])
            if node is not None:
                roots.append(node)

        fix_tree(roots, base_path=[ego_node.is_last])
        ancestors = {anchor.id, *(flat.issue_id for flat in upstream)}
        downstream: list[FlatNode] = []
        for root in roots:
            _flatten_into(root, ancestors, self.catalog, downstream)
        return EgoLayout(upstream=upstream, ego=ego, roots=roots, downstream=downstream, counts=self.counts)

    def _build_node(self, issue: Issue, rel_depth: int, is_last: bool, parent_path: list[bool]) -> TreeNode | None:
        if issue.id in self.seen:
            return None
        self.seen.add(issue.id)

        node = TreeNode(
            issue=issue,
            is_primary=issue.id in self.primaries,
            depth=rel_depth,
            rel_depth=rel_depth,
            is_last=is_last,
            parent_path=list(parent_path),
        )
        self.counts.record(self.catalog.effective_status(issue), primary=node.is_primary)

        if rel_depth < self.max_depth:
            children = [
                child
                for child in self.catalog.resolve(self.catalog.downstream_of(issue.id))
                if child.id not in self.seen
            ]
            children = self.catalog.sorted_issues(children)
            child_path = [*parent_path, is_last]
            for idx, child in enumerate(children):
                child_node = self._build_node(child, rel_depth + 1, idx == len(children) - 1, child_path)
                if child_node is not None:
                    node.children.append(child_node)
        return node


def fix_tree(roots: list[TreeNode], *, base_path: list[bool] | None = None) -> None:
    """Recompute is_last and parent_path once every sibling list is final."""
    base = list(base_path or [])
    for idx, root in enumerate(roots):
        root.is_last = idx == len(roots) - 1
        root.parent_path = list(base)
        _fix_children(root, base)


def _fix_children(node: TreeNode, parent_path: list[bool]) -> None:
    child_path = [*parent_path, node.is_last]
    for idx, child in enumerate(node.children):
        child.is_last = idx == len(node.children) - 1
        child.parent_path = list(child_path)
        _fix_children(child, child_path)


def tree_prefix(node: TreeNode) -> str:
    if node.depth == 0:
        return ""
    bars = "".join("  " if was_last else "│ " for was_last in node.parent_path)
    return bars + ("└─" if node.is_last else "├─")


def flatten(roots: Iterable[TreeNode], catalog: CatalogIndex) -> list[FlatNode]:
    result: list[FlatNode] = []
    for root in roots:
        _flatten_into(root, set(), catalog, result)
    return result


def _flatten_into(node: TreeNode, ancestors: set[str], catalog: CatalogIndex, out: list[FlatNode]) -> None:
    out.append(_flat_node(node, tree_prefix(node), catalog, ancestors))
    child_ancestors = {*ancestors, node.issue.id}
    for child in node.children:
        _flatten_into(child, child_ancestors, catalog, out)


def _flat_node(node: TreeNode, prefix: str, catalog: CatalogIndex, ancestors: set[str]) -> FlatNode:
    blocker = catalog.blocker_of(node.issue.id)
    return FlatNode(
        node=node,
        prefix=prefix,
        status=catalog.effective_status(node.issue),
        blocked_by=blocker,
        blocker_in_tree=bool(blocker) and blocker in ancestors,
    )


def build_workstream_tree(issues: list[Issue], catalog: CatalogIndex, depth: DepthOption) -> list[FlatNode]:
    """Dependency tree restricted to one workstream's blocks edges."""
    member_ids = {issue.id for issue in issues}
    blocked_here = {
        issue.id
        for issue in issues
        if any(blocker in member_ids for blocker in _blockers_of(issue, catalog))
    }
    roots = [issue for issue in issues if issue.id not in blocked_here] or list(issues)

    max_depth = depth.max_depth
    seen: set[str] = set()

    def build(issue: Issue, level: int, is_last: bool) -> TreeNode | None:
        if issue.id in seen:
            return None
        seen.add(issue.id)
        node = TreeNode(issue=issue, is_primary=True, depth=level, is_last=is_last)
        if level < max_depth - 1:
            children = [
                child
                for child in catalog.resolve(catalog.blocked_issues_of(issue.id))
                if child.id in member_ids and child.id not in seen
            ]
            for idx, child in enumerate(catalog.sorted_issues(children)):
                child_node = build(child, level + 1, idx == len(children) - 1)
                if child_node is not None:
                    node.children.append(child_node)
        return node

    built: list[TreeNode] = []
    for idx, issue in enumerate(roots):
        node = build(issue, 0, idx == len(roots) - 1)
        if node is not None:
            built.append(node)
    fix_tree(built)
    return flatten(built, catalog)


def _blockers_of(issue: Issue, catalog: CatalogIndex) -> list[str]:
    return [up for up in catalog.upstream_of(issue.id) if issue.id in catalog.blocked_issues_of(up)]
