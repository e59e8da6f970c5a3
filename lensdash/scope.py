"""Multi-label scope filter and scope label suggestions."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from lensdash.catalog import CatalogIndex
from lensdash.models import Issue, ScopeMode


@dataclass
class ScopeFilter:
    labels: list[str] = field(default_factory=list)
    mode: ScopeMode = ScopeMode.UNION

    @property
    def active(self) -> bool:
        return bool(self.labels)

    def matches(self, issue: Issue) -> bool:
        if not self.labels:
            return True
        if self.mode is ScopeMode.INTERSECTION:
            return all(label in issue.labels for label in self.labels)
        return any(label in issue.labels for label in self.labels)

    def add(self, label: str) -> bool:
        if not label or label in self.labels:
            return False
        self.labels.append(label)
        return True

    def remove(self, label: str) -> bool:
        if label not in self.labels:
            return False
        self.labels.remove(label)
        return True

    def remove_last(self) -> bool:
        if not self.labels:
            return False
        self.labels.pop()
        return True

    def clear(self) -> None:
        self.labels.clear()

    def toggle_mode(self) -> None:
        self.mode = self.mode.toggled()

    def copy(self) -> ScopeFilter:
        return ScopeFilter(labels=list(self.labels), mode=self.mode)


def available_scope_labels(catalog: CatalogIndex, scope: ScopeFilter) -> list[str]:
    """Labels worth adding to ``scope``.

    Without a scope every catalog label is offered alphabetically. With one,
    only labels that co-occur on matching issues are offered, most frequent
    first.
    """
    if not scope.active:
        return catalog.all_labels()

    counts: Counter[str] = Counter()
    for issue in catalog.issues:
        if not scope.matches(issue):
            continue
        for label in issue.labels:
            if label not in scope.labels:
                counts[label] += 1
    return [label for label, _ in sorted(counts.items(), key=lambda item: (-item[1], item[0]))]


def find_catalog_label(catalog: CatalogIndex, text: str) -> str | None:
    """Case-insensitive label lookup returning the label as spelled in the data."""
    wanted = text.strip().lower()
    if not wanted:
        return None
    for label in catalog.all_labels():
        if label.lower() == wanted:
            return label
    return None


def complete_label(prefix: str, candidates: list[str]) -> str | None:
    lowered = prefix.lower()
    for label in candidates:
        if label.lower().startswith(lowered):
            return label
    return None


def is_printable_key(key: str) -> bool:
    return len(key) == 1 and " " <= key <= "~"


@dataclass
class ScopeInput:
    """Text state of the inline scope label prompt."""

    active: bool = False
    text: str = ""

    def open(self) -> None:
        self.active = True
        self.text = ""

    def close(self) -> None:
        self.active = False
        self.text = ""

    def backspace(self) -> None:
        self.text = self.text[:-1]

    def append(self, char: str) -> None:
        self.text += char
