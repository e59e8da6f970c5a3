import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from lensdash.loader import find_catalog, load_issues, parse_issue_lines
from lensdash.models import DependencyKind, Status


def test_jsonl_loader_skips_blank_malformed_and_invalid_lines(tmp_path: Path, caplog) -> None:
    path = tmp_path / "issues.jsonl"
    lines = [
        "\ufeff" + json.dumps({"id": "A", "title": "First", "status": "in_progress"}),
        "",
        "{not json",
        json.dumps({"id": "B"}),
        json.dumps(
            {
                "id": "C",
                "title": "Third",
                "dependencies": [{"issue_id": "C", "depends_on_id": "A", "type": "blocks"}],
            }
        ),
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    with caplog.at_level("WARNING"):
        issues = load_issues(path)

    assert [issue.id for issue in issues] == ["A", "C"]
    assert issues[0].status is Status.IN_PROGRESS
    assert issues[1].dependencies[0].kind is DependencyKind.BLOCKS
    assert "malformed JSON" in caplog.text
    assert "invalid issue" in caplog.text


def test_json_array_loader(tmp_path: Path) -> None:
    path = tmp_path / "issues.json"
    path.write_text(json.dumps([{"id": "A", "title": "First"}, {"id": "B", "title": "Second", "labels": ["x"]}]))

    issues = load_issues(path)

    assert [issue.id for issue in issues] == ["A", "B"]
    assert issues[1].labels == ["x"]


def test_json_array_loader_rejects_invalid_items(tmp_path: Path) -> None:
    path = tmp_path / "issues.json"
    path.write_text(json.dumps([{"id": "A"}]))

    with pytest.raises(ValidationError):
        load_issues(path)


def test_parse_issue_lines_only_strips_bom_on_first_line() -> None:
    issues = parse_issue_lines(
        [
            "\ufeff" + json.dumps({"id": "A", "title": "First"}),
            json.dumps({"id": "B", "title": "Second"}),
        ]
    )

    assert [issue.id for issue in issues] == ["A", "B"]


def test_find_catalog_returns_first_existing_candidate(tmp_path: Path) -> None:
    beads = tmp_path / ".beads"
    beads.mkdir()
    (beads / "beads.jsonl").write_text("")

    found = find_catalog(tmp_path, [".beads/issues.jsonl", ".beads/beads.jsonl"])
    assert found == beads / "beads.jsonl"

    with pytest.raises(FileNotFoundError, match="issues.jsonl"):
        find_catalog(tmp_path, [".beads/issues.jsonl"])
