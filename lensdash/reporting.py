"""Plain-text dump of a dashboard's current view."""

from __future__ import annotations

import re
from collections import defaultdict
from datetime import UTC, datetime
from pathlib import Path

from lensdash.algorithms import hierarchical_id_key
from lensdash.dashboard import LensDashboard
from lensdash.models import Issue, Workstream

RULE = "-" * 40


def _percent(value: float) -> int:
    return int(value * 100)


def render_workstream(ws: Workstream, indent: int) -> list[str]:
    prefix = "  " * indent
    lines = [
        f"{prefix}[{ws.id}] {ws.name} ({len(ws.issues)} issues, {_percent(ws.progress)}% done)",
        f"{prefix}  Ready: {ws.ready_count}, Blocked: {ws.blocked_count}, "
        f"In Progress: {ws.in_progress_count}, Closed: {ws.closed_count}",
    ]
    if ws.related_labels:
        lines.append(f"{prefix}  Labels: {', '.join(ws.related_labels)}")
    if ws.issues:
        lines.append(f"{prefix}  Issues:")
        lines.extend(f"{prefix}    - [{issue.id}] {issue.title} ({issue.status.value})" for issue in ws.issues)
    if ws.sub_workstreams:
        lines.append(f"{prefix}  Sub-workstreams ({len(ws.sub_workstreams)}):")
        for sub in ws.sub_workstreams:
            lines.extend(render_workstream(sub, indent + 1))
    lines.append("")
    return lines


def _render_by_depth(dashboard: LensDashboard) -> list[str]:
    nodes = dashboard.visible_nodes
    if not nodes:
        return ["", "  No issues in current view"]

    by_depth: dict[int, list[Issue]] = defaultdict(list)
    for node in nodes:
        by_depth[node.node.depth].append(node.issue)

    lines: list[str] = []
    for depth in sorted(by_depth):
        issues = sorted(by_depth[depth], key=lambda issue: hierarchical_id_key(issue.id))
        lines.append("")
        lines.append(f"Depth {depth} ({len(issues)} issues):")
        lines.extend(f"  [{issue.id}] {issue.title} ({issue.status.value})" for issue in issues)
    return lines


def render_dump(dashboard: LensDashboard, *, generated_at: datetime | None = None) -> str:
    counts = dashboard.counts
    generated = (generated_at or datetime.now(UTC)).isoformat(timespec="seconds")
    lines = [
        f"Label Dashboard Dump: {dashboard.lens_name}",
        f"Generated: {generated}",
        "=" * 60,
        "",
        "SUMMARY",
        RULE,
        f"  Total: {counts.total} issues ({counts.primary} primary, {counts.context} context)",
        f"  Ready: {counts.ready}, Blocked: {counts.blocked}, "
        f"In Progress: {counts.in_progress}, Closed: {counts.closed}",
        f"  Progress: {_percent(counts.progress)}%",
        f"  Dependency Depth: {dashboard.depth.label}",
    ]
    if dashboard.scope.active:
        lines.append(f"  Scope: {', '.join(dashboard.scope_labels)} ({dashboard.scope_mode.title})")
    lines.append("")

    if dashboard.workstreams:
        lines.extend(["WORKSTREAMS (Hierarchical)", RULE])
        for ws in dashboard.workstreams:
            lines.extend(render_workstream(ws, 0))
        lines.append("")

    lines.extend(["ISSUES BY DEPTH", RULE])
    lines.extend(_render_by_depth(dashboard))
    return "\n".join(lines) + "\n"


def dump_filename(lens_name: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9._-]+", "-", lens_name).strip("-") or "lens"
    return f"{slug}-dump.txt"


def write_dump(dashboard: LensDashboard, output_dir: str | Path) -> Path:
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / dump_filename(dashboard.lens_name)
    path.write_text(render_dump(dashboard))
    return path
