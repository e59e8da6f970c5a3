from pathlib import Path

import pytest
from pydantic import ValidationError

from lensdash.config import LensDashConfig, load_effective_config
from lensdash.dashboard import LensDashboard
from lensdash.lens import LensDescriptor
from lensdash.models import DepthOption, GroupByMode, Issue, ScopeMode


def test_config_precedence(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()

    (repo / ".lensdash.yaml").write_text(
        """
dashboard:
  default_depth: 3
workstreams:
  min_group_size: 4
"""
    )

    system = {
        "dashboard": {"default_depth": 1, "group_by": "status"},
        "workstreams": {"min_group_size": 5},
    }
    org = {
        "dashboard": {"default_depth": 2, "group_by": "priority"},
    }
    runtime = {
        "workstreams": {"min_group_size": 6},
    }

    cfg = load_effective_config(repo, org_defaults=org, system_defaults=system, runtime_override=runtime)

    assert cfg.dashboard.default_depth is DepthOption.THREE
    assert cfg.dashboard.group_by is GroupByMode.PRIORITY
    assert cfg.workstreams.min_group_size == 6
    assert cfg.workstreams.options().min_group_size == 6


def test_defaults_without_any_layer(tmp_path: Path) -> None:
    cfg = load_effective_config(tmp_path)

    assert cfg.dashboard.default_depth is DepthOption.TWO
    assert cfg.dashboard.centered_by_default
    assert cfg.dashboard.scope_mode is ScopeMode.UNION
    assert cfg.viewport.settings().header_lines == 4
    assert cfg.catalog.paths == [".beads/issues.jsonl", ".beads/beads.jsonl"]


def test_depth_accepts_all_keyword() -> None:
    cfg = LensDashConfig.model_validate({"dashboard": {"default_depth": "all"}})

    assert cfg.dashboard.default_depth is DepthOption.ALL


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ValidationError):
        LensDashConfig.model_validate({"dashboard": {"colour": "blue"}})


def test_repo_config_must_be_mapping(tmp_path: Path) -> None:
    (tmp_path / ".lensdash.yaml").write_text("- just\n- a list\n")

    with pytest.raises(ValueError, match="YAML mapping"):
        load_effective_config(tmp_path)


def test_dashboard_from_repo_applies_config(tmp_path: Path) -> None:
    (tmp_path / ".lensdash.yaml").write_text("dashboard:\n  centered_by_default: false\n  default_depth: 1\n")
    issues = [
        Issue.model_validate({"id": "E", "title": "Epic", "issue_type": "epic"}),
        Issue.model_validate(
            {"id": "C", "title": "Child", "dependencies": [{"depends_on_id": "E", "type": "parent-child"}]}
        ),
    ]

    dashboard = LensDashboard.from_repo(tmp_path, issues, LensDescriptor.epic("E"))

    assert not dashboard.is_centered_mode
    assert dashboard.depth is DepthOption.ONE
    assert [node.issue_id for node in dashboard.visible_nodes] == ["E", "C"]
