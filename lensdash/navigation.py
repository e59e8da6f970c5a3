"""Viewport arithmetic and line walkers for the three view coordinate systems."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from lensdash.models import FlatNode, ViewType


@dataclass(frozen=True)
class ViewportSettings:
    header_lines: int = 4
    footer_lines: int = 2
    min_content_height: int = 5


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int
    header_lines: int
    footer_lines: int
    content_height: int


def calculate_viewport(
    width: int,
    height: int,
    *,
    has_scope: bool = False,
    scope_input_open: bool = False,
    settings: ViewportSettings | None = None,
) -> Viewport:
    settings = settings or ViewportSettings()
    header = settings.header_lines
    if has_scope:
        header += 1
    if scope_input_open:
        header += 2
    content = max(settings.min_content_height, height - header - settings.footer_lines)
    return Viewport(
        width=width,
        height=height,
        header_lines=header,
        footer_lines=settings.footer_lines,
        content_height=content,
    )


def content_lines(viewport: Viewport, view: ViewType) -> int:
    """Visible list lines once the view's own two-line header is drawn."""
    minimum = 3 if view is ViewType.WORKSTREAM else 5
    return max(minimum, viewport.content_height - 2)


def max_scroll(total_lines: int, visible_lines: int) -> int:
    return max(0, total_lines - visible_lines + visible_lines // 4)


def scroll_for(cursor_line: int, total_lines: int, visible_lines: int) -> int:
    """Scroll offset placing the cursor a quarter viewport from the top, clamped."""
    target = max(0, cursor_line - visible_lines // 4)
    return min(target, max_scroll(total_lines, visible_lines))


def page_size(height: int) -> int:
    return max(3, (height - 8) // 2)


def flat_line_position(nodes: Sequence[FlatNode], index: int) -> int:
    """Screen line of ``nodes[index]`` counting a header line per status change."""
    if index < 0 or not nodes:
        return 0
    index = min(index, len(nodes) - 1)
    line = 0
    last_status = None
    for idx in range(index + 1):
        if nodes[idx].status != last_status:
            line += 1
            last_status = nodes[idx].status
        if idx < index:
            line += 1
    return line


def total_flat_lines(nodes: Sequence[FlatNode]) -> int:
    lines = 0
    last_status = None
    for node in nodes:
        if node.status != last_status:
            lines += 1
            last_status = node.status
        lines += 1
    return lines


@dataclass(frozen=True)
class WorkstreamLines:
    """Rendered shape of one workstream: navigable issue lines and an optional "+N more" line."""

    issue_lines: int
    more_line: bool = False


def workstream_cursor_line(layout: Sequence[WorkstreamLines], ws_cursor: int, issue_cursor: int) -> int:
    line = 0
    for idx, shape in enumerate(layout):
        if idx == ws_cursor and issue_cursor < 0:
            return line
        line += 1
        if idx == ws_cursor:
            if shape.issue_lines == 0:
                return line - 1
            return line + min(issue_cursor, shape.issue_lines - 1)
        line += shape.issue_lines
        if shape.more_line:
            line += 1
        line += 1
    return line


def workstream_total_lines(layout: Sequence[WorkstreamLines]) -> int:
    return sum(1 + shape.issue_lines + (1 if shape.more_line else 0) + 1 for shape in layout)


@dataclass(frozen=True)
class GroupLines:
    """Rendered shape of one group.

    ``sub_issue_lines`` holds one entry per sub-group (0 when collapsed) and is
    empty for groups without sub-groups. A collapsed group shows no lines.
    """

    expanded: bool
    issue_lines: int = 0
    sub_issue_lines: list[int] = field(default_factory=list)

    @property
    def body_lines(self) -> int:
        if not self.expanded:
            return 0
        if self.sub_issue_lines:
            return sum(1 + count for count in self.sub_issue_lines)
        return self.issue_lines


def grouped_cursor_line(layout: Sequence[GroupLines], group: int, sub: int, issue: int) -> int:
    line = 0
    for idx in range(min(group, len(layout))):
        line += 1 + layout[idx].body_lines + 1
    if group >= len(layout):
        return line

    shape = layout[group]
    if not shape.expanded:
        return line
    if not shape.sub_issue_lines:
        return line + (issue + 1 if issue >= 0 else 0)
    if sub < 0:
        return line
    line += 1
    for sub_idx in range(min(sub, len(shape.sub_issue_lines))):
        line += 1 + shape.sub_issue_lines[sub_idx]
    return line + (issue + 1 if issue >= 0 else 0)


def grouped_total_lines(layout: Sequence[GroupLines]) -> int:
    return sum(1 + shape.body_lines + 1 for shape in layout)
