"""Lens picker over labels, epics and individual issues."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum

from lensdash.algorithms import fuzzy_find, hierarchical_id_key
from lensdash.catalog import CatalogIndex
from lensdash.lens import LensDescriptor, expand_descendants
from lensdash.models import CentralityScore, Issue, IssueType, LensKind, ScopeMode, Status
from lensdash.scope import ScopeFilter

logger = logging.getLogger(__name__)

JUMP_SIZE = 5


class SearchMode(str, Enum):
    MERGED = "merged"
    EPIC = "epic"
    LABEL = "label"
    BEAD = "bead"

    def next(self) -> SearchMode:
        order = list(SearchMode)
        return order[(order.index(self) + 1) % len(order)]


@dataclass(frozen=True)
class LensItem:
    kind: LensKind
    value: str
    title: str
    issue_count: int = 0
    closed_count: int = 0
    progress: float = 0.0
    is_pinned: bool = False
    overlap_count: int = 0

    @property
    def search_text(self) -> str:
        return f"{self.title} {self.value}"

    def descriptor(self) -> LensDescriptor:
        return LensDescriptor(self.kind, self.value)


@dataclass(frozen=True)
class CentralityRank:
    pagerank_rank: int = 0
    pagerank: float = 0.0
    betweenness_rank: int = 0
    betweenness: float = 0.0
    total: int = 0


def _progress(closed: int, total: int) -> float:
    return closed / total if total else 0.0


class LensSelector:
    """Picker state driven by key strings, with vim-style normal and insert modes."""

    def __init__(
        self,
        issues: Iterable[Issue],
        *,
        centrality: dict[str, CentralityScore] | None = None,
        default_scope_mode: ScopeMode = ScopeMode.UNION,
    ) -> None:
        self.catalog = CatalogIndex(issues)
        self.centrality = centrality
        self.default_scope_mode = default_scope_mode

        self.epics = self._build_epics()
        self.labels = self._build_labels()
        self.beads = [
            LensItem(kind=LensKind.BEAD, value=issue.id, title=issue.title, issue_count=1)
            for issue in sorted(self.catalog.issues, key=lambda issue: hierarchical_id_key(issue.id))
        ]

        self.scope = ScopeFilter(mode=default_scope_mode)
        self.search_mode = SearchMode.MERGED
        self.query = ""
        self.items: list[LensItem] = []
        self.selected_index = 0
        self.insert_mode = False
        self.scope_add_mode = False
        self.review_requested = False
        self.confirmed = False
        self.cancelled = False
        self.selected_item: LensItem | None = None
        self.scoped_labels: list[str] = []
        self._rebuild_items()

    def _build_epics(self) -> list[LensItem]:
        epics: list[LensItem] = []
        for issue in self.catalog.issues:
            if issue.issue_type != IssueType.EPIC or issue.is_closed:
                continue
            descendants = self.epic_descendants(issue.id)
            closed = sum(1 for child in descendants if child.is_closed)
            epics.append(
                LensItem(
                    kind=LensKind.EPIC,
                    value=issue.id,
                    title=issue.title,
                    issue_count=len(descendants),
                    closed_count=closed,
                    progress=_progress(closed, len(descendants)),
                )
            )
        epics.sort(key=lambda item: (item.progress, item.title))
        return epics

    def _build_labels(self) -> list[LensItem]:
        totals: Counter[str] = Counter()
        closed: Counter[str] = Counter()
        for issue in self.catalog.issues:
            for label in set(issue.labels):
                totals[label] += 1
                if issue.is_closed:
                    closed[label] += 1
        return [
            LensItem(
                kind=LensKind.LABEL,
                value=label,
                title=label,
                issue_count=totals[label],
                closed_count=closed[label],
                progress=_progress(closed[label], totals[label]),
            )
            for label in sorted(totals)
        ]

    def handle_key(self, key: str) -> bool:
        if self.insert_mode:
            return self._handle_insert_key(key)
        return self._handle_normal_key(key)

    def _handle_insert_key(self, key: str) -> bool:
        if key == "esc":
            self.insert_mode = False
            self.scope_add_mode = False
            return True
        if key == "enter":
            item = self.current_item
            if item is None:
                return True
            if self.scope_add_mode and item.kind is LensKind.LABEL:
                self.add_to_scope(item.value)
                self.insert_mode = False
                self.scope_add_mode = False
                self.query = ""
                return True
            self._confirm(item)
            return True
        if key == "backspace":
            if self.query:
                self.query = self.query[:-1]
                self._filter()
            return True
        if key == "tab":
            if self.scope_add_mode and self.query:
                completion = self._complete_label(self.query)
                if completion is not None:
                    self.query = completion
                    self._filter()
            return True
        if key == "up":
            self.move(-1)
            return True
        if key == "down":
            self.move(1)
            return True
        if len(key) == 1:
            self.query += key
            self._filter()
            return True
        return False

    def _handle_normal_key(self, key: str) -> bool:
        if key in {"up", "k"}:
            self.move(-1)
        elif key in {"down", "j"}:
            self.move(1)
        elif key == "u":
            self.move(-JUMP_SIZE)
        elif key == "d":
            self.move(JUMP_SIZE)
        elif key in {"i", "/"}:
            self.insert_mode = True
            self.scope_add_mode = False
        elif key == "s":
            self.insert_mode = True
            self.scope_add_mode = True
        elif key == "S":
            if len(self.scope.labels) >= 2:
                self.scope.toggle_mode()
                self._filter_by_scope()
        elif key == "m":
            self.search_mode = self.search_mode.next()
            self._filter()
        elif key == "r":
            item = self.current_item
            if item is not None:
                self.review_requested = True
                self._confirm(item)
        elif key == "enter":
            item = self.current_item
            if item is not None:
                self._confirm(item)
        elif key in {"esc", "q"}:
            if key == "esc" and self.scope.active:
                self.clear_scope()
            else:
                self.cancelled = True
                self.confirmed = False
                self.selected_item = None
        elif key == "backspace":
            if self.query:
                self.query = ""
                self._filter()
            elif self.scope.remove_last():
                self._filter_by_scope()
        else:
            return False
        return True

    @property
    def current_item(self) -> LensItem | None:
        if 0 <= self.selected_index < len(self.items):
            return self.items[self.selected_index]
        return None

    def move(self, delta: int) -> None:
        if not self.items:
            self.selected_index = 0
            return
        self.selected_index = min(max(self.selected_index + delta, 0), len(self.items) - 1)

    def set_query(self, value: str) -> None:
        self.query = value
        self._filter()

    def _confirm(self, item: LensItem) -> None:
        self.selected_item = item
        if self.scope.active and item.kind is LensKind.LABEL:
            self.scoped_labels = [*self.scope.labels, item.value]
        self.confirmed = True
        logger.debug("Lens selected: %s %s", item.kind.value, item.value)

    def _complete_label(self, prefix: str) -> str | None:
        lowered = prefix.lower()
        for item in self.labels:
            if item.value.lower().startswith(lowered):
                return item.value
        for item in self.labels:
            if lowered in item.value.lower():
                return item.value
        return None

    def add_to_scope(self, label: str) -> None:
        self.scope.add(label)
        self._filter_by_scope()

    def clear_scope(self) -> None:
        self.scope = ScopeFilter(mode=self.default_scope_mode)
        self.scoped_labels = []
        self.query = ""
        self._rebuild_items()

    def reset(self) -> None:
        self.confirmed = False
        self.cancelled = False
        self.selected_item = None
        self.search_mode = SearchMode.MERGED
        self.insert_mode = False
        self.scope_add_mode = False
        self.review_requested = False
        self.clear_scope()

    def _mode_items(self, *, with_beads: bool) -> list[LensItem]:
        if self.search_mode is SearchMode.EPIC:
            return list(self.epics)
        if self.search_mode is SearchMode.LABEL:
            return list(self.labels)
        if self.search_mode is SearchMode.BEAD:
            return list(self.beads)
        merged = [*self.epics, *self.labels]
        if with_beads:
            merged.extend(self.beads)
        return merged

    def _rebuild_items(self) -> None:
        self.items = self._mode_items(with_beads=False)
        self.selected_index = 0

    def _filter(self) -> None:
        query = self.query.strip()
        self.selected_index = 0

        if self.scope_add_mode:
            source = list(self.labels)
        elif not query:
            if self.scope.active:
                self._filter_by_scope()
            else:
                self._rebuild_items()
            return
        elif self.scope.active:
            source = self._scoped_items(sort_by_overlap=False)
        else:
            source = self._mode_items(with_beads=True)

        if not query:
            self.items = source
            return
        self.items = [source[match.index] for match in fuzzy_find(query, [item.search_text for item in source])]

    def _filter_by_scope(self) -> None:
        if not self.scope.active:
            self._rebuild_items()
            return
        self.items = self._scoped_items(sort_by_overlap=True)
        self.selected_index = 0

    def _scoped_items(self, *, sort_by_overlap: bool) -> list[LensItem]:
        matching = {issue.id for issue in self.catalog.issues if self.scope.matches(issue)}
        overlap: Counter[str] = Counter(
            label
            for issue in self.catalog.issues
            if issue.id in matching
            for label in issue.labels
            if label not in self.scope.labels
        )

        def epics() -> list[LensItem]:
            result = []
            for item in self.epics:
                count = sum(1 for child in self.epic_descendants(item.value) if child.id in matching)
                if count:
                    result.append(replace(item, overlap_count=count))
            return result

        def labels() -> list[LensItem]:
            return [
                replace(item, overlap_count=overlap[item.value])
                for item in self.labels
                if item.value not in self.scope.labels and overlap[item.value] > 0
            ]

        if self.search_mode is SearchMode.EPIC:
            return epics()
        if self.search_mode is SearchMode.BEAD:
            return [item for item in self.beads if item.value in matching]
        if self.search_mode is SearchMode.LABEL:
            result = labels()
        else:
            beads = [replace(item, overlap_count=1) for item in self.beads if item.value in matching]
            result = [*beads, *epics(), *labels()]
        if sort_by_overlap:
            result.sort(key=lambda item: -item.overlap_count)
        return result

    def epic_descendants(self, epic_id: str) -> list[Issue]:
        ids = expand_descendants([epic_id], self.catalog.children_of) - {epic_id}
        return self.catalog.issues_in(ids)

    def blockers(self, issue_id: str) -> list[str]:
        return [up for up in self.catalog.upstream_of(issue_id) if issue_id in self.catalog.blocked_issues_of(up)]

    def dependents(self, issue_id: str) -> list[str]:
        return list(self.catalog.blocked_issues_of(issue_id))

    def issues_with_label(self, label: str) -> list[Issue]:
        return [issue for issue in self.catalog.issues if issue.has_label(label)]

    def related_labels(self, label: str, limit: int = 0) -> list[tuple[str, int]]:
        counts: Counter[str] = Counter(
            other for issue in self.issues_with_label(label) for other in issue.labels if other != label
        )
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:limit] if limit > 0 else ranked

    @staticmethod
    def count_statuses(issues: Iterable[Issue]) -> dict[Status, int]:
        return dict(Counter(issue.status for issue in issues))

    @staticmethod
    def count_types(issues: Iterable[Issue]) -> dict[IssueType, int]:
        return dict(Counter(issue.issue_type for issue in issues))

    def centrality_rank(self, issue_id: str) -> CentralityRank:
        """1-based rank of ``issue_id`` by PageRank and by betweenness."""
        if not self.centrality:
            return CentralityRank()
        score = self.centrality.get(issue_id, CentralityScore())
        pagerank_rank = 1 + sum(
            1 for other, s in self.centrality.items() if other != issue_id and s.pagerank > score.pagerank
        )
        betweenness_rank = 1 + sum(
            1 for other, s in self.centrality.items() if other != issue_id and s.betweenness > score.betweenness
        )
        return CentralityRank(
            pagerank_rank=pagerank_rank,
            pagerank=score.pagerank,
            betweenness_rank=betweenness_rank,
            betweenness=score.betweenness,
            total=len(self.catalog),
        )
