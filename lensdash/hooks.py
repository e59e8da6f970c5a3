"""Hook registry for dashboard lifecycle events."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any


class HookName(str, Enum):
    BEFORE_REBUILD = "before_rebuild"
    AFTER_REBUILD = "after_rebuild"
    AFTER_WORKSTREAMS = "after_workstreams"
    SCOPE_CHANGED = "scope_changed"
    SEARCH_CONFIRMED = "search_confirmed"
    ON_ERROR = "on_error"


HookCallback = Callable[[dict[str, Any], dict[str, Any]], dict[str, Any] | None]


class HookManager:
    """In-process hook manager; callbacks run in registration order."""

    def __init__(self) -> None:
        self._callbacks: dict[HookName, list[HookCallback]] = defaultdict(list)

    def register(self, name: HookName, callback: HookCallback) -> None:
        self._callbacks[name].append(callback)

    def has_callbacks(self, name: HookName) -> bool:
        return bool(self._callbacks.get(name))

    def emit(self, name: HookName, context: dict[str, Any], envelope: dict[str, Any]) -> dict[str, Any]:
        """Run callbacks for ``name``; each may return a patch merged into the envelope.

        A raising callback is reported to ``ON_ERROR`` callbacks and skipped.
        """
        result = dict(envelope)
        for callback in self._callbacks[name]:
            try:
                patch = callback(context, dict(result))
            except Exception as exc:
                self._emit_error(exc, {"hook": name.value, **context})
                continue
            if patch:
                result.update(patch)
        return result

    def _emit_error(self, exc: Exception, context: dict[str, Any]) -> None:
        for callback in self._callbacks[HookName.ON_ERROR]:
            callback({"exception": exc, **context}, {})
