"""Lens dashboard: materialization pipeline plus navigable view state."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from lensdash.catalog import CatalogIndex
from lensdash.clustering import ComponentPartitioner, WorkstreamPartitioner, subdivide_all
from lensdash.config import LensDashConfig, load_effective_config
from lensdash.grouping import build_groups
from lensdash.hooks import HookManager, HookName
from lensdash.lens import LensDescriptor, MaterializedLens, apply_scope, materialize
from lensdash.models import (
    CentralityScore,
    DepthOption,
    FlatNode,
    GroupByMode,
    Issue,
    LensCounts,
    LensKind,
    ScopeMode,
    ViewType,
    Workstream,
)
from lensdash.navigation import (
    GroupLines,
    Viewport,
    WorkstreamLines,
    calculate_viewport,
    content_lines,
    flat_line_position,
    grouped_cursor_line,
    grouped_total_lines,
    page_size,
    scroll_for,
    total_flat_lines,
    workstream_cursor_line,
    workstream_total_lines,
)
from lensdash.scope import (
    ScopeFilter,
    ScopeInput,
    available_scope_labels,
    complete_label,
    find_catalog_label,
    is_printable_key,
)
from lensdash.search import FuzzySearch, SearchSnapshot, filter_centered, filter_nodes
from lensdash.tree import EgoBuilder, TreeBuilder, build_workstream_tree

logger = logging.getLogger(__name__)


class LensDashboard:
    """Read-only explorer over one lens of an issue catalog.

    Every key intent is a synchronous method that mutates view state. The
    catalog is shared read-only; all derived structures belong to the
    dashboard and are rebuilt wholesale when depth, scope or centering
    changes.
    """

    def __init__(
        self,
        issues: Iterable[Issue] | CatalogIndex,
        descriptor: LensDescriptor,
        *,
        config: LensDashConfig | None = None,
        centrality: dict[str, CentralityScore] | None = None,
        partitioner: WorkstreamPartitioner | None = None,
        hooks: HookManager | None = None,
    ) -> None:
        self.config = config or LensDashConfig()
        self.catalog = issues if isinstance(issues, CatalogIndex) else CatalogIndex(issues)
        self.descriptor = descriptor
        self.centrality = dict(centrality or {})
        self.hooks = hooks or HookManager()
        self.lens: MaterializedLens = materialize(descriptor, self.catalog)
        self.partitioner: WorkstreamPartitioner = partitioner or ComponentPartitioner(
            self.catalog,
            options=self.config.workstreams.options(),
            anchor_id=self.lens.anchor_id,
        )

        dashboard_config = self.config.dashboard
        self.depth = dashboard_config.default_depth
        self.view_type = ViewType.FLAT
        self.group_by_mode = dashboard_config.group_by
        self._centered = descriptor.is_anchored and dashboard_config.centered_by_default
        self.scope = ScopeFilter(mode=dashboard_config.scope_mode)
        self.scope_input = ScopeInput()
        self.search = FuzzySearch()

        self.width = self.config.viewport.width
        self.height = self.config.viewport.height

        self.primary_ids: frozenset[str] = frozenset()
        self.flat_nodes: list[FlatNode] = []
        self.upstream_nodes: list[FlatNode] = []
        self.ego_node: FlatNode | None = None
        self.counts = LensCounts()
        self.cursor = 0
        self.scroll = 0
        self.selected_issue_id = ""

        self.workstreams: list[Workstream] = []
        self.ws_cursor = 0
        self.ws_issue_cursor = -1
        self.ws_scroll = 0
        self.ws_expanded: dict[int, bool] = {}
        self.sub_ws_expanded: dict[int, dict[int, bool]] = {}
        self.sub_ws_cursor: dict[int, int] = {}
        self.ws_tree_view = False
        self.subdivided = False

        self.grouped_sections: list[Workstream] = []
        self.grouped_cursor = 0
        self.grouped_sub_cursor = -1
        self.grouped_issue_cursor = -1
        self.grouped_scroll = 0
        self.group_expanded: dict[int, bool] = {}
        self.sub_group_expanded: dict[int, dict[int, bool]] = {}
        self.grouped_tree_view = False

        logger.info(
            "Opening %s lens %r over %s issues (depth=%s)",
            descriptor.kind.value,
            descriptor.value,
            len(self.catalog),
            self.depth.label,
        )
        self._rebuild("init")
        if self.is_centered_mode:
            self.cursor = len(self.upstream_nodes)
            self._refresh_selection()
            self._ensure_visible()

    @classmethod
    def from_repo(
        cls,
        repo_path: str | Path,
        issues: Iterable[Issue] | CatalogIndex,
        descriptor: LensDescriptor,
        org_defaults: dict | None = None,
        system_defaults: dict | None = None,
        runtime_override: dict | None = None,
        centrality: dict[str, CentralityScore] | None = None,
        partitioner: WorkstreamPartitioner | None = None,
        hooks: HookManager | None = None,
    ) -> LensDashboard:
        config = load_effective_config(
            repo_path=repo_path,
            org_defaults=org_defaults,
            system_defaults=system_defaults,
            runtime_override=runtime_override,
        )
        return cls(
            issues,
            descriptor,
            config=config,
            centrality=centrality,
            partitioner=partitioner,
            hooks=hooks,
        )

    @classmethod
    def for_label(cls, issues: Iterable[Issue] | CatalogIndex, label: str, **kwargs: Any) -> LensDashboard:
        return cls(issues, LensDescriptor.label(label), **kwargs)

    @classmethod
    def for_epic(cls, issues: Iterable[Issue] | CatalogIndex, epic_id: str, **kwargs: Any) -> LensDashboard:
        return cls(issues, LensDescriptor.epic(epic_id), **kwargs)

    @classmethod
    def for_bead(cls, issues: Iterable[Issue] | CatalogIndex, issue_id: str, **kwargs: Any) -> LensDashboard:
        return cls(issues, LensDescriptor.bead(issue_id), **kwargs)

    # Observable state

    @property
    def lens_name(self) -> str:
        return self.lens.name

    @property
    def lens_kind(self) -> LensKind:
        return self.descriptor.kind

    @property
    def not_found(self) -> bool:
        return not self.lens.found

    @property
    def is_centered_mode(self) -> bool:
        return self._centered and self.descriptor.is_anchored and self.lens.found

    @property
    def visible_nodes(self) -> list[FlatNode]:
        """Navigable list in display order; in centered mode upstream, ego, then downstream."""
        if self.is_centered_mode and self.ego_node is not None:
            return [*self.upstream_nodes, self.ego_node, *self.flat_nodes]
        return list(self.flat_nodes)

    @property
    def scope_labels(self) -> list[str]:
        return list(self.scope.labels)

    @property
    def scope_mode(self) -> ScopeMode:
        return self.scope.mode

    @property
    def has_scope(self) -> bool:
        return self.scope.active

    @property
    def grouped_cursor_position(self) -> tuple[int, int, int]:
        return self.grouped_cursor, self.grouped_sub_cursor, self.grouped_issue_cursor

    @property
    def viewport(self) -> Viewport:
        return calculate_viewport(
            self.width,
            self.height,
            has_scope=self.scope.active,
            scope_input_open=self.scope_input.active,
            settings=self.config.viewport.settings(),
        )

    def centrality_of(self, issue_id: str) -> CentralityScore | None:
        return self.centrality.get(issue_id)

    def available_scope_labels(self) -> list[str]:
        return available_scope_labels(self.catalog, self.scope)

    # Rebuild pipeline

    def _hook_context(self, reason: str) -> dict[str, Any]:
        return {
            "lens": self.lens_name,
            "kind": self.descriptor.kind.value,
            "depth": self.depth.label,
            "reason": reason,
        }

    def _rebuild(self, reason: str) -> None:
        started = time.perf_counter()
        context = self._hook_context(reason)
        self.hooks.emit(HookName.BEFORE_REBUILD, context, {})
        if self.search.active:
            self.search.close()

        scoped = apply_scope(self.lens, self.scope, self.catalog)
        self.primary_ids = scoped.primaries_for(self.depth) if scoped.found else frozenset()

        if not scoped.found:
            self.flat_nodes, self.upstream_nodes, self.ego_node = [], [], None
            self.counts = LensCounts()
        elif self.is_centered_mode:
            layout = EgoBuilder(self.catalog, self.primary_ids, self.depth, anchor_id=scoped.anchor_id).build()
            self.upstream_nodes = layout.upstream
            self.ego_node = layout.ego
            self.flat_nodes = layout.downstream
            self.counts = layout.counts
        else:
            forest = TreeBuilder(self.catalog, self.primary_ids, self.depth, anchor_id=scoped.anchor_id).build()
            self.upstream_nodes, self.ego_node = [], None
            self.flat_nodes = forest.nodes
            self.counts = forest.counts

        self._recompute_workstreams(context)
        self._build_grouped_sections()
        self._clamp_cursor()
        self._refresh_selection()
        self._ensure_visible()

        elapsed = time.perf_counter() - started
        logger.debug(
            "Rebuilt %s (%s): total=%s primary=%s context=%s in %.4fs",
            self.lens_name,
            reason,
            self.counts.total,
            self.counts.primary,
            self.counts.context,
            elapsed,
        )
        logger.info(
            "Lens %s at depth %s: %s issues (%s primary, %s context), %s workstreams",
            self.lens_name,
            self.depth.label,
            self.counts.total,
            self.counts.primary,
            self.counts.context,
            len(self.workstreams),
        )
        self.hooks.emit(
            HookName.AFTER_REBUILD,
            context,
            {
                "total": self.counts.total,
                "primary": self.counts.primary,
                "context": self.counts.context,
                "elapsed": elapsed,
            },
        )

    def _display_issues(self) -> list[Issue]:
        seen: set[str] = set()
        issues: list[Issue] = []
        for node in self.visible_nodes:
            if node.issue_id not in seen:
                seen.add(node.issue_id)
                issues.append(node.issue)
        return issues

    def _recompute_workstreams(self, context: dict[str, Any]) -> None:
        workstreams = self.partitioner.partition(self._display_issues(), self.primary_ids, self.lens_name)
        self.set_workstreams(workstreams)
        if self.config.workstreams.subdivide_on_start:
            self.toggle_subdivision()
        self.hooks.emit(HookName.AFTER_WORKSTREAMS, context, {"workstreams": len(self.workstreams)})

    def set_workstreams(self, workstreams: list[Workstream]) -> None:
        """Install a partition; expansion, sub-cursor and subdivision state reset."""
        if self.descriptor.kind is LensKind.EPIC and self.lens.anchor_id and len(workstreams) > 1:
            anchor = self.lens.anchor_id
            workstreams = sorted(workstreams, key=lambda ws: not ws.contains(anchor))
        self.workstreams = list(workstreams)
        self.ws_expanded = {}
        self.sub_ws_expanded = {}
        self.sub_ws_cursor = {}
        self.subdivided = False
        if not self.workstreams:
            self.ws_cursor, self.ws_issue_cursor = 0, -1
            return
        self.ws_cursor = min(self.ws_cursor, len(self.workstreams) - 1)
        visible = self.visible_issue_count(self.ws_cursor)
        if self.ws_issue_cursor >= visible:
            self.ws_issue_cursor = visible - 1

    def _build_grouped_sections(self) -> None:
        primaries = self.catalog.issues_in(self.primary_ids)
        self.grouped_sections = build_groups(
            self.group_by_mode,
            primaries,
            self.catalog,
            self.config.grouping.settings(),
        )
        self.group_expanded = {0: True} if self.grouped_sections else {}
        self.sub_group_expanded = {}
        if self.grouped_cursor >= len(self.grouped_sections):
            self.grouped_cursor = 0
        self.grouped_sub_cursor = -1
        self.grouped_issue_cursor = -1

    def _clamp_cursor(self) -> None:
        total = len(self.visible_nodes)
        if total == 0:
            self.cursor = 0
        elif self.cursor >= total:
            self.cursor = len(self.upstream_nodes) if self.is_centered_mode else total - 1
        elif self.cursor < 0:
            self.cursor = 0

    # Selection and scroll

    def _refresh_selection(self) -> None:
        if self.view_type is ViewType.WORKSTREAM:
            self.selected_issue_id = self._selected_from_workstreams()
        elif self.view_type is ViewType.GROUPED:
            self.selected_issue_id = self._selected_from_groups()
        else:
            nodes = self.visible_nodes
            self.selected_issue_id = nodes[self.cursor].issue_id if 0 <= self.cursor < len(nodes) else ""

    def _ensure_visible(self) -> None:
        viewport = self.viewport
        if self.view_type is ViewType.WORKSTREAM:
            layout = self._workstream_layout()
            self.ws_scroll = scroll_for(
                workstream_cursor_line(layout, self.ws_cursor, self.ws_issue_cursor),
                workstream_total_lines(layout),
                content_lines(viewport, ViewType.WORKSTREAM),
            )
            return
        if self.view_type is ViewType.GROUPED:
            layout = self._grouped_layout()
            self.grouped_scroll = scroll_for(
                grouped_cursor_line(layout, self.grouped_cursor, self.grouped_sub_cursor, self.grouped_issue_cursor),
                grouped_total_lines(layout),
                content_lines(viewport, ViewType.GROUPED),
            )
            return
        visible = content_lines(viewport, ViewType.FLAT)
        if self.is_centered_mode:
            self.scroll = scroll_for(self.cursor, len(self.visible_nodes), visible)
        else:
            self.scroll = scroll_for(
                flat_line_position(self.flat_nodes, self.cursor),
                total_flat_lines(self.flat_nodes),
                visible,
            )

    def set_size(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self._ensure_visible()

    def _set_cursor(self, index: int) -> None:
        nodes = self.visible_nodes
        if not nodes:
            return
        self.cursor = min(max(index, 0), len(nodes) - 1)
        self.selected_issue_id = nodes[self.cursor].issue_id
        self._ensure_visible()

    # Flat / centered navigation

    def move_up(self) -> None:
        if self.view_type is ViewType.GROUPED and self.grouped_sections:
            self._move_up_grouped()
        elif self.view_type is ViewType.WORKSTREAM and self.workstreams:
            self._move_up_ws()
        elif self.cursor > 0:
            self._set_cursor(self.cursor - 1)

    def move_down(self) -> None:
        if self.view_type is ViewType.GROUPED and self.grouped_sections:
            self._move_down_grouped()
        elif self.view_type is ViewType.WORKSTREAM and self.workstreams:
            self._move_down_ws()
        elif self.cursor < len(self.visible_nodes) - 1:
            self._set_cursor(self.cursor + 1)

    def page_up(self) -> None:
        size = page_size(self.height)
        if self.view_type is ViewType.GROUPED and self.grouped_sections:
            for _ in range(size):
                self._move_up_grouped()
        elif self.view_type is ViewType.WORKSTREAM and self.workstreams:
            for _ in range(size):
                self._move_up_ws()
        else:
            self._set_cursor(self.cursor - size)

    def page_down(self) -> None:
        size = page_size(self.height)
        if self.view_type is ViewType.GROUPED and self.grouped_sections:
            for _ in range(size):
                self._move_down_grouped()
        elif self.view_type is ViewType.WORKSTREAM and self.workstreams:
            for _ in range(size):
                self._move_down_ws()
        else:
            self._set_cursor(self.cursor + size)

    def go_to_top(self) -> None:
        if self.view_type is ViewType.GROUPED and self.grouped_sections:
            self.grouped_cursor, self.grouped_sub_cursor, self.grouped_issue_cursor = 0, -1, -1
            self._after_grouped_move()
        elif self.view_type is ViewType.WORKSTREAM and self.workstreams:
            self.ws_cursor, self.ws_issue_cursor = 0, -1
            self._after_ws_move()
        else:
            self._set_cursor(0)

    def go_to_bottom(self) -> None:
        if self.view_type is ViewType.GROUPED and self.grouped_sections:
            self.grouped_cursor = len(self.grouped_sections) - 1
            group = self.grouped_sections[self.grouped_cursor]
            self.grouped_sub_cursor, self.grouped_issue_cursor = -1, -1
            if self.group_expanded.get(self.grouped_cursor, False):
                if group.sub_workstreams:
                    self.grouped_sub_cursor = len(group.sub_workstreams) - 1
                    if self.is_sub_group_expanded(self.grouped_cursor, self.grouped_sub_cursor):
                        self.grouped_issue_cursor = len(group.sub_workstreams[self.grouped_sub_cursor].issues) - 1
                else:
                    self.grouped_issue_cursor = len(group.issues) - 1
            self._after_grouped_move()
        elif self.view_type is ViewType.WORKSTREAM and self.workstreams:
            self.ws_cursor = len(self.workstreams) - 1
            self.ws_issue_cursor = self.visible_issue_count(self.ws_cursor) - 1
            self._after_ws_move()
        else:
            self._set_cursor(len(self.visible_nodes) - 1)

    def next_section(self) -> None:
        """Jump to the first node whose status differs from the current one."""
        nodes = self.visible_nodes
        if not nodes:
            return
        current = nodes[self.cursor].status
        for idx in range(self.cursor + 1, len(nodes)):
            if nodes[idx].status != current:
                self._set_cursor(idx)
                return

    def prev_section(self) -> None:
        nodes = self.visible_nodes
        if not nodes:
            return
        current = nodes[self.cursor].status
        start = self.cursor
        while start > 0 and nodes[start - 1].status == current:
            start -= 1
        if self.cursor == start and start > 0:
            self._set_cursor(start - 1)
        else:
            self._set_cursor(start)

    # Depth and centering

    def cycle_depth(self) -> None:
        self.depth = self.depth.next()
        self._rebuild("depth")

    def set_depth(self, depth: DepthOption | str | int) -> None:
        self.depth = depth if isinstance(depth, DepthOption) else DepthOption.parse(depth)
        self._rebuild("depth")

    def toggle_centered_mode(self) -> None:
        if not self.descriptor.is_anchored:
            return
        self._centered = not self._centered
        self.cursor = 0
        self.scroll = 0
        self._rebuild("centered")
        if self.is_centered_mode:
            self.cursor = len(self.upstream_nodes)
            self._refresh_selection()
            self._ensure_visible()

    # View types

    def toggle_view_type(self) -> None:
        """Flat and grouped switch to workstreams; workstreams switch back to flat."""
        if self.view_type is ViewType.WORKSTREAM:
            self.view_type = ViewType.FLAT
            self._clamp_cursor()
        else:
            self.view_type = ViewType.WORKSTREAM
            self.ws_cursor, self.ws_issue_cursor = 0, -1
        self._refresh_selection()
        self._ensure_visible()

    def enter_grouped_view(self) -> None:
        self.view_type = ViewType.GROUPED
        self.grouped_cursor = 0
        self._build_grouped_sections()
        self.grouped_scroll = 0
        self._refresh_selection()

    def exit_grouped_view(self) -> None:
        self.view_type = ViewType.FLAT
        self._clamp_cursor()
        self._refresh_selection()
        self._ensure_visible()

    def cycle_group_by_mode(self) -> None:
        self.group_by_mode = self.group_by_mode.next()
        self.grouped_cursor = 0
        self._build_grouped_sections()
        self.grouped_scroll = 0
        if self.view_type is ViewType.GROUPED:
            self._refresh_selection()

    # Workstream view

    def workstream_tree(self, ws_idx: int) -> list[FlatNode]:
        """Dependency tree of one workstream's issues, bounded by the current depth."""
        if not 0 <= ws_idx < len(self.workstreams):
            return []
        return build_workstream_tree(self.workstreams[ws_idx].issues, self.catalog, self.depth)

    def visible_issue_count(self, ws_idx: int) -> int:
        if not 0 <= ws_idx < len(self.workstreams):
            return 0
        expanded = self.ws_expanded.get(ws_idx, False)
        if self.ws_tree_view and expanded:
            return len(self.workstream_tree(ws_idx))
        total = len(self.workstreams[ws_idx].issues)
        preview = self.config.dashboard.collapsed_preview
        if not expanded and total > preview:
            return preview
        return total

    def hidden_issue_count(self, ws_idx: int) -> int:
        """Issues behind the "+N more" line of a collapsed workstream."""
        if not 0 <= ws_idx < len(self.workstreams) or self.ws_tree_view:
            return 0
        if self.ws_expanded.get(ws_idx, False):
            return 0
        return max(0, len(self.workstreams[ws_idx].issues) - self.config.dashboard.collapsed_preview)

    def _workstream_layout(self) -> list[WorkstreamLines]:
        return [
            WorkstreamLines(issue_lines=self.visible_issue_count(idx), more_line=self.hidden_issue_count(idx) > 0)
            for idx in range(len(self.workstreams))
        ]

    def _selected_from_workstreams(self) -> str:
        if not self.workstreams:
            return ""
        ws = self.workstreams[self.ws_cursor]
        if self.ws_issue_cursor < 0:
            return ws.issues[0].id if ws.issues else ""
        if self.ws_tree_view and self.ws_expanded.get(self.ws_cursor, False):
            nodes = self.workstream_tree(self.ws_cursor)
            if self.ws_issue_cursor < len(nodes):
                return nodes[self.ws_issue_cursor].issue_id
            return nodes[-1].issue_id if nodes else ""
        if self.ws_issue_cursor < min(self.visible_issue_count(self.ws_cursor), len(ws.issues)):
            return ws.issues[self.ws_issue_cursor].id
        return ws.issues[0].id if ws.issues else ""

    def _after_ws_move(self) -> None:
        self.selected_issue_id = self._selected_from_workstreams()
        self._ensure_visible()

    def _move_up_ws(self) -> None:
        if self.ws_issue_cursor > 0:
            self.ws_issue_cursor -= 1
        elif self.ws_issue_cursor == 0:
            self.ws_issue_cursor = -1
        elif self.ws_cursor > 0:
            self.ws_cursor -= 1
            self.ws_issue_cursor = self.visible_issue_count(self.ws_cursor) - 1
        self._after_ws_move()

    def _move_down_ws(self) -> None:
        visible = self.visible_issue_count(self.ws_cursor)
        last_ws = len(self.workstreams) - 1
        if self.ws_issue_cursor < 0:
            if visible > 0:
                self.ws_issue_cursor = 0
            elif self.ws_cursor < last_ws:
                self.ws_cursor += 1
        elif self.ws_issue_cursor < visible - 1:
            self.ws_issue_cursor += 1
        elif self.ws_cursor < last_ws:
            self.ws_cursor += 1
            self.ws_issue_cursor = -1
        self._after_ws_move()

    def toggle_workstream_expand(self) -> None:
        if not self.workstreams:
            return
        was_expanded = self.ws_expanded.get(self.ws_cursor, False)
        self.ws_expanded[self.ws_cursor] = not was_expanded
        if was_expanded and self.ws_issue_cursor >= 0:
            visible = self.visible_issue_count(self.ws_cursor)
            if self.ws_issue_cursor >= visible:
                self.ws_issue_cursor = visible - 1
        if self.view_type is ViewType.WORKSTREAM:
            self._after_ws_move()

    def expand_workstream(self) -> None:
        if self.workstreams:
            self.ws_expanded[self.ws_cursor] = True

    def is_workstream_expanded(self, ws_idx: int) -> bool:
        return self.ws_expanded.get(ws_idx, False)

    def expand_all_workstreams(self) -> None:
        for idx, ws in enumerate(self.workstreams):
            self.ws_expanded[idx] = True
            subs = self.sub_ws_expanded.setdefault(idx, {})
            for sub_idx in range(len(ws.sub_workstreams)):
                subs[sub_idx] = True

    def collapse_all_workstreams(self) -> None:
        for idx in range(len(self.workstreams)):
            self.ws_expanded[idx] = False
            for sub_idx in self.sub_ws_expanded.get(idx, {}):
                self.sub_ws_expanded[idx][sub_idx] = False
        self.ws_issue_cursor = -1
        for idx in self.sub_ws_cursor:
            self.sub_ws_cursor[idx] = -1
        if self.view_type is ViewType.WORKSTREAM:
            self._after_ws_move()

    def toggle_subdivision(self) -> None:
        self.subdivided = not self.subdivided
        if self.subdivided:
            subdivide_all(
                self.workstreams,
                self.catalog,
                self.primary_ids,
                self.config.workstreams.options(),
                exclude_labels=self._lens_labels(),
            )
        else:
            for ws in self.workstreams:
                ws.sub_workstreams = []
        self.sub_ws_cursor = {}
        self.sub_ws_expanded = {}

    def _lens_labels(self) -> frozenset[str]:
        labels = set(self.scope.labels)
        if self.descriptor.kind is LensKind.LABEL:
            labels.add(self.descriptor.value)
        return frozenset(labels)

    def has_sub_workstreams(self, ws_idx: int) -> bool:
        return 0 <= ws_idx < len(self.workstreams) and bool(self.workstreams[ws_idx].sub_workstreams)

    def is_sub_workstream_expanded(self, ws_idx: int, sub_idx: int) -> bool:
        return self.sub_ws_expanded.get(ws_idx, {}).get(sub_idx, False)

    def toggle_sub_workstream_expand(self, ws_idx: int, sub_idx: int) -> None:
        subs = self.sub_ws_expanded.setdefault(ws_idx, {})
        subs[sub_idx] = not subs.get(sub_idx, False)

    def toggle_ws_tree_view(self) -> None:
        self.ws_tree_view = not self.ws_tree_view
        if self.view_type is ViewType.WORKSTREAM and self.workstreams:
            visible = self.visible_issue_count(self.ws_cursor)
            if self.ws_issue_cursor >= visible:
                self.ws_issue_cursor = visible - 1
            self._after_ws_move()

    def next_workstream(self) -> None:
        if not self.workstreams:
            return
        if self.ws_issue_cursor >= 0:
            self.ws_issue_cursor = -1
        elif self.ws_cursor < len(self.workstreams) - 1:
            self.ws_expanded[self.ws_cursor] = False
            self.ws_cursor += 1
            self.ws_expanded[self.ws_cursor] = True
        self._after_ws_move()

    def prev_workstream(self) -> None:
        if not self.workstreams:
            return
        if self.ws_issue_cursor >= 0:
            self.ws_issue_cursor = -1
        elif self.ws_cursor > 0:
            self.ws_expanded[self.ws_cursor] = False
            self.ws_cursor -= 1
            self.ws_expanded[self.ws_cursor] = True
        self._after_ws_move()

    # Grouped view

    def is_group_expanded(self, group_idx: int) -> bool:
        return self.group_expanded.get(group_idx, False)

    def is_sub_group_expanded(self, group_idx: int, sub_idx: int) -> bool:
        return self.sub_group_expanded.get(group_idx, {}).get(sub_idx, False)

    def _set_sub_group_expanded(self, group_idx: int, sub_idx: int, value: bool) -> None:
        self.sub_group_expanded.setdefault(group_idx, {})[sub_idx] = value

    def _grouped_layout(self) -> list[GroupLines]:
        layout: list[GroupLines] = []
        for idx, group in enumerate(self.grouped_sections):
            layout.append(
                GroupLines(
                    expanded=self.is_group_expanded(idx),
                    issue_lines=len(group.issues),
                    sub_issue_lines=[
                        len(sub.issues) if self.is_sub_group_expanded(idx, sub_idx) else 0
                        for sub_idx, sub in enumerate(group.sub_workstreams)
                    ],
                )
            )
        return layout

    def _selected_from_groups(self) -> str:
        if self.grouped_issue_cursor < 0 or not 0 <= self.grouped_cursor < len(self.grouped_sections):
            return ""
        group = self.grouped_sections[self.grouped_cursor]
        if 0 <= self.grouped_sub_cursor < len(group.sub_workstreams):
            issues = group.sub_workstreams[self.grouped_sub_cursor].issues
        else:
            issues = group.issues
        if self.grouped_issue_cursor < len(issues):
            return issues[self.grouped_issue_cursor].id
        return ""

    def _after_grouped_move(self) -> None:
        self.selected_issue_id = self._selected_from_groups()
        self._ensure_visible()

    def _last_issue_of_sub(self, group_idx: int, sub_idx: int) -> int:
        if not self.is_sub_group_expanded(group_idx, sub_idx):
            return -1
        return len(self.grouped_sections[group_idx].sub_workstreams[sub_idx].issues) - 1

    def _move_up_grouped(self) -> None:
        group = self.grouped_sections[self.grouped_cursor]
        if self.grouped_issue_cursor > 0:
            self.grouped_issue_cursor -= 1
        elif self.grouped_issue_cursor == 0:
            self.grouped_issue_cursor = -1
        elif self.grouped_sub_cursor >= 0 and group.sub_workstreams:
            if self.grouped_sub_cursor > 0:
                self.grouped_sub_cursor -= 1
                self.grouped_issue_cursor = self._last_issue_of_sub(self.grouped_cursor, self.grouped_sub_cursor)
            else:
                self.grouped_sub_cursor = -1
        elif self.grouped_sub_cursor >= 0:
            self.grouped_sub_cursor = -1
        elif self.grouped_cursor > 0:
            self.grouped_cursor -= 1
            previous = self.grouped_sections[self.grouped_cursor]
            expanded = self.is_group_expanded(self.grouped_cursor)
            if expanded and previous.sub_workstreams:
                self.grouped_sub_cursor = len(previous.sub_workstreams) - 1
                self.grouped_issue_cursor = self._last_issue_of_sub(self.grouped_cursor, self.grouped_sub_cursor)
            elif expanded and previous.issues:
                self.grouped_sub_cursor = -1
                self.grouped_issue_cursor = len(previous.issues) - 1
            else:
                self.grouped_sub_cursor = -1
                self.grouped_issue_cursor = -1
        self._after_grouped_move()

    def _next_group_header(self) -> None:
        if self.grouped_cursor < len(self.grouped_sections) - 1:
            self.grouped_cursor += 1
            self.grouped_sub_cursor = -1
            self.grouped_issue_cursor = -1

    def _move_down_grouped(self) -> None:
        group = self.grouped_sections[self.grouped_cursor]
        subs = group.sub_workstreams
        if 0 <= self.grouped_sub_cursor < len(subs):
            sub_issues = len(subs[self.grouped_sub_cursor].issues)
            sub_expanded = self.is_sub_group_expanded(self.grouped_cursor, self.grouped_sub_cursor)
            if self.grouped_issue_cursor < 0 and sub_expanded and sub_issues > 0:
                self.grouped_issue_cursor = 0
            elif 0 <= self.grouped_issue_cursor < sub_issues - 1:
                self.grouped_issue_cursor += 1
            elif self.grouped_sub_cursor < len(subs) - 1:
                self.grouped_sub_cursor += 1
                self.grouped_issue_cursor = -1
            else:
                self._next_group_header()
        elif self.grouped_sub_cursor >= 0:
            self.grouped_sub_cursor = -1
            self.grouped_issue_cursor = -1
            if self.grouped_cursor < len(self.grouped_sections) - 1:
                self.grouped_cursor += 1
        elif self.grouped_issue_cursor >= 0:
            if self.grouped_issue_cursor < len(group.issues) - 1:
                self.grouped_issue_cursor += 1
            else:
                self._next_group_header()
        else:
            expanded = self.is_group_expanded(self.grouped_cursor)
            if expanded and subs:
                self.grouped_sub_cursor = 0
                self.grouped_issue_cursor = -1
            elif expanded and group.issues:
                self.grouped_issue_cursor = 0
            else:
                self._next_group_header()
        self._after_grouped_move()

    def toggle_grouped_expand(self) -> None:
        if not 0 <= self.grouped_cursor < len(self.grouped_sections):
            return
        group = self.grouped_sections[self.grouped_cursor]
        if 0 <= self.grouped_sub_cursor < len(group.sub_workstreams) and self.grouped_issue_cursor < 0:
            self._set_sub_group_expanded(
                self.grouped_cursor,
                self.grouped_sub_cursor,
                not self.is_sub_group_expanded(self.grouped_cursor, self.grouped_sub_cursor),
            )
        elif self.grouped_issue_cursor < 0 and self.grouped_sub_cursor < 0:
            expanded = not self.is_group_expanded(self.grouped_cursor)
            self.group_expanded[self.grouped_cursor] = expanded
            if not expanded:
                self.grouped_issue_cursor = -1
        if self.view_type is ViewType.GROUPED:
            self._after_grouped_move()

    def toggle_grouped_tree_view(self) -> None:
        self.grouped_tree_view = not self.grouped_tree_view

    def expand_group(self) -> None:
        if 0 <= self.grouped_cursor < len(self.grouped_sections):
            self.group_expanded[self.grouped_cursor] = True

    def next_group(self) -> None:
        """Advance to the next group or sub-group, expanding it and collapsing the one left."""
        if not 0 <= self.grouped_cursor < len(self.grouped_sections):
            return
        group = self.grouped_sections[self.grouped_cursor]
        if self.grouped_issue_cursor >= 0:
            self.grouped_issue_cursor = -1
            self._after_grouped_move()
            return

        if self.grouped_sub_cursor >= 0 and group.sub_workstreams:
            self._set_sub_group_expanded(self.grouped_cursor, self.grouped_sub_cursor, False)
            if self.grouped_sub_cursor < len(group.sub_workstreams) - 1:
                self.grouped_sub_cursor += 1
                self._set_sub_group_expanded(self.grouped_cursor, self.grouped_sub_cursor, True)
                self._after_grouped_move()
                return
            self.grouped_sub_cursor = -1
        elif not self.is_group_expanded(self.grouped_cursor):
            self.group_expanded[self.grouped_cursor] = True
            if group.sub_workstreams:
                self.grouped_sub_cursor = 0
                self._set_sub_group_expanded(self.grouped_cursor, 0, True)
            self._after_grouped_move()
            return
        elif group.sub_workstreams:
            self.grouped_sub_cursor = 0
            self._set_sub_group_expanded(self.grouped_cursor, 0, True)
            self._after_grouped_move()
            return

        self._next_group_header()
        self._after_grouped_move()

    def prev_group(self) -> None:
        if not 0 <= self.grouped_cursor < len(self.grouped_sections):
            return
        group = self.grouped_sections[self.grouped_cursor]
        if self.grouped_issue_cursor >= 0:
            self.grouped_issue_cursor = -1
        elif self.grouped_sub_cursor >= 0 and group.sub_workstreams:
            self._set_sub_group_expanded(self.grouped_cursor, self.grouped_sub_cursor, False)
            if self.grouped_sub_cursor > 0:
                self.grouped_sub_cursor -= 1
                self._set_sub_group_expanded(self.grouped_cursor, self.grouped_sub_cursor, True)
            else:
                self.grouped_sub_cursor = -1
        elif self.grouped_cursor > 0:
            self.grouped_cursor -= 1
            previous = self.grouped_sections[self.grouped_cursor]
            if self.is_group_expanded(self.grouped_cursor) and previous.sub_workstreams:
                self.grouped_sub_cursor = len(previous.sub_workstreams) - 1
                self._set_sub_group_expanded(self.grouped_cursor, self.grouped_sub_cursor, True)
            else:
                self.grouped_sub_cursor = -1
        self._after_grouped_move()

    def expand_all_groups(self) -> None:
        for idx, group in enumerate(self.grouped_sections):
            self.group_expanded[idx] = True
            for sub_idx in range(len(group.sub_workstreams)):
                self._set_sub_group_expanded(idx, sub_idx, True)

    def collapse_all_groups(self) -> None:
        for idx in range(len(self.grouped_sections)):
            self.group_expanded[idx] = False
            for sub_idx in self.sub_group_expanded.get(idx, {}):
                self.sub_group_expanded[idx][sub_idx] = False
        self.grouped_sub_cursor = -1
        self.grouped_issue_cursor = -1
        if self.view_type is ViewType.GROUPED:
            self._after_grouped_move()

    # Scope

    def _scope_changed(self) -> None:
        self._rebuild("scope")
        self.hooks.emit(
            HookName.SCOPE_CHANGED,
            self._hook_context("scope"),
            {"labels": list(self.scope.labels), "mode": self.scope.mode.value},
        )

    def add_scope_label(self, label: str) -> None:
        if self.scope.add(label):
            self._scope_changed()

    def remove_scope_label(self, label: str) -> None:
        if self.scope.remove(label):
            self._scope_changed()

    def remove_last_scope_label(self) -> bool:
        if not self.scope.remove_last():
            return False
        self._scope_changed()
        return True

    def clear_scope(self) -> None:
        self.scope.clear()
        self._scope_changed()

    def toggle_scope_mode(self) -> None:
        self.scope.toggle_mode()
        if self.scope.active:
            self._scope_changed()

    def open_scope_input(self) -> None:
        self.scope_input.open()

    def close_scope_input(self) -> None:
        self.scope_input.close()

    def handle_scope_input_key(self, key: str) -> tuple[bool, str]:
        """Feed one key to the scope prompt; returns (handled, status message)."""
        if key == "esc":
            self.close_scope_input()
            return True, "Scope input cancelled"
        if key == "enter":
            text = self.scope_input.text.strip()
            if not text:
                self.close_scope_input()
                return True, ""
            label = find_catalog_label(self.catalog, text)
            if label is None:
                self.scope_input.text = ""
                return True, f"Label '{text}' not found"
            self.close_scope_input()
            if label in self.scope.labels:
                return True, f"'{label}' already in scope"
            self.add_scope_label(label)
            return True, f"Added '{label}' to scope ({self.scope.mode.short})"
        if key in {"backspace", "ctrl+h"}:
            self.scope_input.backspace()
            return True, ""
        if key == "tab":
            if self.scope_input.text:
                completion = complete_label(self.scope_input.text, self.available_scope_labels())
                if completion is not None:
                    self.scope_input.text = completion
            return True, ""
        if is_printable_key(key):
            self.scope_input.append(key)
            return True, ""
        return False, ""

    # Fuzzy search

    def open_fuzzy_search(self) -> None:
        self.search.open(
            SearchSnapshot(
                nodes=list(self.flat_nodes),
                upstream=list(self.upstream_nodes),
                cursor=self.cursor,
                scroll=self.scroll,
                selected_id=self.selected_issue_id,
            )
        )

    def _apply_fuzzy_filter(self) -> None:
        snapshot = self.search.snapshot
        if snapshot is None:
            return
        query = self.search.query.strip()
        if not query:
            self.flat_nodes = list(snapshot.nodes)
            self.upstream_nodes = list(snapshot.upstream)
        elif self.is_centered_mode and self.ego_node is not None:
            self.upstream_nodes, self.flat_nodes = filter_centered(
                query, snapshot.upstream, self.ego_node, snapshot.nodes
            )
        else:
            self.flat_nodes = filter_nodes(query, snapshot.nodes)
        self.search.result_count = len(self.upstream_nodes) + len(self.flat_nodes)
        self.cursor = 0
        self.scroll = 0
        nodes = self.visible_nodes
        self.selected_issue_id = nodes[0].issue_id if nodes else ""

    def handle_fuzzy_key(self, key: str) -> tuple[bool, str]:
        if not self.search.active:
            return False, ""
        if key == "esc":
            self.close_fuzzy_search()
            return True, "Search cancelled"
        if key == "enter":
            if self.visible_nodes:
                return True, f"Jumped to {self.confirm_fuzzy_search()}"
            self.close_fuzzy_search()
            return True, "No matches"
        if key in {"up", "k", "ctrl+p"}:
            self.move_up()
            return True, ""
        if key in {"down", "j", "ctrl+n"}:
            self.move_down()
            return True, ""
        if key in {"backspace", "ctrl+h"}:
            if self.search.query:
                self.search.query = self.search.query[:-1]
                self._apply_fuzzy_filter()
            return True, ""
        if key == "ctrl+u":
            self.search.query = ""
            self._apply_fuzzy_filter()
            return True, ""
        if is_printable_key(key):
            self.search.query += key
            self._apply_fuzzy_filter()
            return True, ""
        return False, ""

    def confirm_fuzzy_search(self) -> str:
        """Restore the full list, keep the selection, and return the selected id."""
        if not self.search.active:
            return ""
        selected = self.selected_issue_id
        snapshot = self.search.close()
        if snapshot is not None:
            self.flat_nodes = list(snapshot.nodes)
            self.upstream_nodes = list(snapshot.upstream)
        ids = [node.issue_id for node in self.visible_nodes]
        self.cursor = ids.index(selected) if selected in ids else 0
        self.scroll = 0
        self._refresh_selection()
        self._ensure_visible()
        self.hooks.emit(HookName.SEARCH_CONFIRMED, self._hook_context("search"), {"selected": selected})
        return selected

    def close_fuzzy_search(self) -> None:
        if not self.search.active:
            return
        snapshot = self.search.close()
        if snapshot is None:
            return
        self.flat_nodes = list(snapshot.nodes)
        self.upstream_nodes = list(snapshot.upstream)
        self.cursor = snapshot.cursor
        self.scroll = snapshot.scroll
        self.selected_issue_id = snapshot.selected_id
