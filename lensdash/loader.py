"""Issue catalog loading from JSONL or JSON-array files."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from lensdash.models import Issue

logger = logging.getLogger(__name__)

BOM = "\ufeff"


def parse_issue_lines(lines: Iterable[str], *, source: str = "<input>") -> list[Issue]:
    """Parse JSONL text; blank, malformed and invalid lines are skipped with a warning."""
    issues: list[Issue] = []
    for line_number, line in enumerate(lines, start=1):
        if line_number == 1:
            line = line.removeprefix(BOM)
        text = line.strip()
        if not text:
            continue
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Skipping malformed JSON in %s line %s: %s", source, line_number, exc)
            continue
        try:
            issues.append(Issue.model_validate(raw))
        except ValidationError as exc:
            logger.warning(
                "Skipping invalid issue in %s line %s: %s",
                source,
                line_number,
                exc.errors()[0]["msg"] if exc.errors() else exc,
            )
    return issues


def load_issues(path: str | Path) -> list[Issue]:
    """Load a catalog file.

    A file whose first non-blank character is ``[`` is read as a JSON array
    and must be valid as a whole; anything else is read as JSONL.
    """
    file_path = Path(path)
    text = file_path.read_text(encoding="utf-8").removeprefix(BOM)
    if text.lstrip().startswith("["):
        raw = json.loads(text)
        if not isinstance(raw, list):
            raise ValueError(f"{file_path} must contain a JSON array of issues")
        issues = [Issue.model_validate(item) for item in raw]
    else:
        issues = parse_issue_lines(text.splitlines(), source=str(file_path))
    logger.info("Loaded %s issues from %s", len(issues), file_path)
    return issues


def find_catalog(repo_path: str | Path, candidates: Iterable[str]) -> Path:
    """First existing candidate path under ``repo_path``."""
    repo = Path(repo_path)
    tried: list[str] = []
    for candidate in candidates:
        path = repo / candidate
        if path.is_file():
            logger.debug("Using issue catalog %s", path)
            return path
        tried.append(str(path))
    raise FileNotFoundError(f"No issue catalog found; tried: {', '.join(tried) or 'nothing'}")
