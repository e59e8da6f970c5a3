"""Core domain models for the lens dashboard."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Status(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    CLOSED = "closed"


class IssueType(str, Enum):
    BUG = "bug"
    FEATURE = "feature"
    TASK = "task"
    EPIC = "epic"
    CHORE = "chore"


class DependencyKind(str, Enum):
    BLOCKS = "blocks"
    RELATED = "related"
    PARENT_CHILD = "parent-child"
    DISCOVERED_FROM = "discovered-from"


class EffectiveStatus(str, Enum):
    """Display status derived from the issue status and open blockers."""

    READY = "ready"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    CLOSED = "closed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    EffectiveStatus.READY: 0,
    EffectiveStatus.IN_PROGRESS: 1,
    EffectiveStatus.BLOCKED: 2,
    EffectiveStatus.CLOSED: 3,
}


class LensKind(str, Enum):
    LABEL = "label"
    EPIC = "epic"
    BEAD = "bead"


class DepthOption(int, Enum):
    ONE = 1
    TWO = 2
    THREE = 3
    ALL = -1

    @property
    def max_depth(self) -> int:
        return 100 if self is DepthOption.ALL else int(self.value)

    @property
    def label(self) -> str:
        return "All" if self is DepthOption.ALL else str(self.value)

    def next(self) -> DepthOption:
        return _DEPTH_CYCLE[self]

    @classmethod
    def parse(cls, value: str | int) -> DepthOption:
        """Accept 1, 2, 3, -1 or "all" (case-insensitive)."""
        if isinstance(value, str):
            text = value.strip().lower()
            if text in {"all", "inf", "-1"}:
                return cls.ALL
            try:
                value = int(text)
            except ValueError as exc:
                raise ValueError(f"Unknown depth option: {value!r}") from exc
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"Unknown depth option: {value!r}") from exc


_DEPTH_CYCLE = {
    DepthOption.ONE: DepthOption.TWO,
    DepthOption.TWO: DepthOption.THREE,
    DepthOption.THREE: DepthOption.ALL,
    DepthOption.ALL: DepthOption.ONE,
}


class ViewType(str, Enum):
    FLAT = "flat"
    WORKSTREAM = "workstream"
    GROUPED = "grouped"


class GroupByMode(str, Enum):
    LABEL = "label"
    PRIORITY = "priority"
    STATUS = "status"

    @property
    def title(self) -> str:
        return self.value.capitalize()

    def next(self) -> GroupByMode:
        order = list(GroupByMode)
        return order[(order.index(self) + 1) % len(order)]


class ScopeMode(str, Enum):
    UNION = "union"
    INTERSECTION = "intersection"

    @property
    def title(self) -> str:
        return "Union (ANY)" if self is ScopeMode.UNION else "Intersection (ALL)"

    @property
    def short(self) -> str:
        return "∪ ANY" if self is ScopeMode.UNION else "∩ ALL"

    def toggled(self) -> ScopeMode:
        return ScopeMode.INTERSECTION if self is ScopeMode.UNION else ScopeMode.UNION


class Dependency(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    issue_id: str = ""
    depends_on_id: str
    kind: DependencyKind = Field(
        default=DependencyKind.BLOCKS,
        validation_alias=AliasChoices("kind", "type"),
    )

    @field_validator("kind", mode="before")
    @classmethod
    def _empty_kind_blocks(cls, value: Any) -> Any:
        if value is None or value == "":
            return DependencyKind.BLOCKS
        return value


class Issue(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str = ""
    status: Status = Status.OPEN
    priority: int = 2
    issue_type: IssueType = IssueType.TASK
    labels: list[str] = Field(default_factory=list)
    dependencies: list[Dependency] = Field(default_factory=list)
    assignee: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None

    @property
    def is_closed(self) -> bool:
        return self.status == Status.CLOSED

    def has_label(self, label: str) -> bool:
        return label in self.labels


class CentralityScore(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pagerank: float = 0.0
    betweenness: float = 0.0


@dataclass
class TreeNode:
    issue: Issue
    is_primary: bool = False
    is_entry: bool = False
    children: list[TreeNode] = field(default_factory=list)
    depth: int = 0
    rel_depth: int = 0
    is_last: bool = False
    parent_path: list[bool] = field(default_factory=list)
    is_upstream: bool = False


@dataclass(frozen=True)
class FlatNode:
    node: TreeNode
    prefix: str
    status: EffectiveStatus
    blocked_by: str = ""
    blocker_in_tree: bool = False

    @property
    def issue(self) -> Issue:
        return self.node.issue

    @property
    def issue_id(self) -> str:
        return self.node.issue.id


@dataclass
class LensCounts:
    total: int = 0
    primary: int = 0
    context: int = 0
    ready: int = 0
    in_progress: int = 0
    blocked: int = 0
    closed: int = 0

    def record(self, status: EffectiveStatus, *, primary: bool) -> None:
        self.total += 1
        if primary:
            self.primary += 1
        else:
            self.context += 1
        if status is EffectiveStatus.READY:
            self.ready += 1
        elif status is EffectiveStatus.IN_PROGRESS:
            self.in_progress += 1
        elif status is EffectiveStatus.BLOCKED:
            self.blocked += 1
        else:
            self.closed += 1

    @property
    def progress(self) -> float:
        return self.closed / self.total if self.total else 0.0


@dataclass(frozen=True)
class CrossWorkstreamBlocker:
    blocker_id: str
    blocker_workstream: str
    blocked_id: str
    blocked_workstream: str


@dataclass
class Workstream:
    id: str
    name: str
    issues: list[Issue] = field(default_factory=list)
    primary_count: int = 0
    context_count: int = 0
    ready_count: int = 0
    in_progress_count: int = 0
    blocked_count: int = 0
    closed_count: int = 0
    progress: float = 0.0
    is_blocked: bool = False
    related_labels: list[str] = field(default_factory=list)
    cross_blocked_by: list[CrossWorkstreamBlocker] = field(default_factory=list)
    cross_blocks: list[CrossWorkstreamBlocker] = field(default_factory=list)
    sub_workstreams: list[Workstream] = field(default_factory=list)
    depth: int = 0

    @property
    def issue_ids(self) -> list[str]:
        return [issue.id for issue in self.issues]

    def contains(self, issue_id: str) -> bool:
        return any(issue.id == issue_id for issue in self.issues)
