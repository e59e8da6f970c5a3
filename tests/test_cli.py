import json
from pathlib import Path

import pytest

from lensdash import cli


def _write_catalog(repo: Path) -> Path:
    beads = repo / ".beads"
    beads.mkdir(parents=True)
    rows = [
        {"id": "E", "title": "Platform epic", "issue_type": "epic"},
        {
            "id": "A",
            "title": "Build API",
            "labels": ["backend", "api"],
            "dependencies": [{"depends_on_id": "E", "type": "parent-child"}],
        },
        {
            "id": "B",
            "title": "Write docs",
            "labels": ["backend", "docs"],
            "dependencies": [
                {"depends_on_id": "A", "type": "blocks"},
                {"depends_on_id": "E", "type": "parent-child"},
            ],
        },
        {"id": "C", "title": "Old page", "labels": ["frontend"], "status": "closed", "priority": 1},
    ]
    path = beads / "issues.jsonl"
    path.write_text("\n".join(json.dumps(row) for row in rows) + "\n")
    return path


def test_cli_parser_requires_exactly_one_lens() -> None:
    parser = cli.build_parser()
    parsed = parser.parse_args(["show", "--label", "backend", "--depth", "all", "--scope", "a", "--scope", "b"])
    assert parsed.command == "show"
    assert parsed.scope == ["a", "b"]

    with pytest.raises(SystemExit):
        parser.parse_args(["show", "--label", "backend", "--epic", "E"])
    with pytest.raises(SystemExit):
        parser.parse_args(["show"])

    assert parser.parse_args(["lenses"]).mode == "merged"


def test_show_label_lens_prints_sections(tmp_path: Path, capsys) -> None:
    _write_catalog(tmp_path)

    exit_code = cli.main(["show", "--repo-path", str(tmp_path), "--label", "backend"])
    out = capsys.readouterr().out

    assert exit_code == 0
    assert "Label lens: backend (depth 2, 3 issues: 2 primary, 1 context)" in out
    assert "-- ready --" in out
    assert "A [ready] Build API" in out
    assert "B [blocked] Write docs" in out


def test_show_with_intersection_scope_keeps_context(tmp_path: Path, capsys) -> None:
    catalog = _write_catalog(tmp_path)

    exit_code = cli.main(
        [
            "show",
            "--input",
            str(catalog),
            "--label",
            "backend",
            "--scope",
            "docs",
            "--scope-mode",
            "intersection",
        ]
    )
    out = capsys.readouterr().out

    assert exit_code == 0
    assert "Scope: docs [∩ ALL]" in out
    assert "B [blocked] Write docs <- blocked by A" in out
    assert "Build API (context)" in out


def test_show_epic_is_centered_unless_flat(tmp_path: Path, capsys) -> None:
    _write_catalog(tmp_path)

    assert cli.main(["show", "--repo-path", str(tmp_path), "--epic", "E"]) == 0
    centered = capsys.readouterr().out
    assert "> E [ready] Platform epic" in centered

    assert cli.main(["show", "--repo-path", str(tmp_path), "--epic", "E", "--flat", "--depth", "1"]) == 0
    flat = capsys.readouterr().out
    assert "> E" not in flat
    assert "E [ready] Platform epic" in flat


def test_runtime_override_yaml_is_applied(tmp_path: Path, capsys) -> None:
    _write_catalog(tmp_path)
    override = tmp_path / "override.yaml"
    override.write_text("dashboard:\n  centered_by_default: false\n")

    exit_code = cli.main(
        ["show", "--repo-path", str(tmp_path), "--runtime-override", str(override), "--epic", "E"]
    )

    assert exit_code == 0
    assert "> E" not in capsys.readouterr().out


def test_workstreams_and_groups_commands(tmp_path: Path, capsys) -> None:
    _write_catalog(tmp_path)

    assert cli.main(["workstreams", "--repo-path", str(tmp_path), "--label", "backend", "--subdivide"]) == 0
    out = capsys.readouterr().out
    assert "(3 issues, 0% done)" in out

    assert cli.main(["groups", "--repo-path", str(tmp_path), "--label", "backend", "--group-by", "priority"]) == 0
    out = capsys.readouterr().out
    assert "Grouped by Priority" in out
    assert "P2 Medium (2)" in out


def test_lenses_command_lists_and_filters(tmp_path: Path, capsys) -> None:
    _write_catalog(tmp_path)

    assert cli.main(["lenses", "--repo-path", str(tmp_path)]) == 0
    out = capsys.readouterr().out
    assert "epic  E  Platform epic  (0/2 closed)" in out
    assert "label frontend  (1/1 closed)" in out

    assert cli.main(["lenses", "--repo-path", str(tmp_path), "--mode", "label", "--query", "doc"]) == 0
    out = capsys.readouterr().out
    assert "label docs" in out
    assert "label api" not in out


def test_dump_command_writes_file(tmp_path: Path, capsys) -> None:
    _write_catalog(tmp_path)
    out_dir = tmp_path / "out"

    exit_code = cli.main(
        ["dump", "--repo-path", str(tmp_path), "--label", "backend", "--output-dir", str(out_dir)]
    )

    assert exit_code == 0
    dump = out_dir / "backend-dump.txt"
    assert dump.exists()
    assert str(dump) in capsys.readouterr().out


def test_missing_catalog_or_bad_yaml_exits_nonzero(tmp_path: Path) -> None:
    assert cli.main(["show", "--repo-path", str(tmp_path), "--label", "backend"]) == 1

    _write_catalog(tmp_path)
    bad = tmp_path / "org.yaml"
    bad.write_text("- not\n- a mapping\n")
    assert cli.main(["show", "--repo-path", str(tmp_path), "--org-config", str(bad), "--label", "backend"]) == 1
