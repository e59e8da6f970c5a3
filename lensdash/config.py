"""Configuration models and loading for the lens dashboard."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from lensdash.clustering import GroupingOptions
from lensdash.grouping import GroupingSettings
from lensdash.models import DepthOption, GroupByMode, ScopeMode
from lensdash.navigation import ViewportSettings

REPO_CONFIG_NAME = ".lensdash.yaml"


class DashboardConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_depth: DepthOption = DepthOption.TWO
    centered_by_default: bool = True
    group_by: GroupByMode = GroupByMode.LABEL
    scope_mode: ScopeMode = ScopeMode.UNION
    collapsed_preview: int = Field(default=3, ge=1)

    @field_validator("default_depth", mode="before")
    @classmethod
    def _parse_depth(cls, value: Any) -> Any:
        if isinstance(value, (str, int)) and not isinstance(value, DepthOption):
            return DepthOption.parse(value)
        return value


class ViewportConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    width: int = Field(default=80, ge=1)
    height: int = Field(default=24, ge=1)
    header_lines: int = Field(default=4, ge=0)
    footer_lines: int = Field(default=2, ge=0)
    min_content_height: int = Field(default=5, ge=1)

    def settings(self) -> ViewportSettings:
        return ViewportSettings(
            header_lines=self.header_lines,
            footer_lines=self.footer_lines,
            min_content_height=self.min_content_height,
        )


class WorkstreamConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_depth: int = Field(default=3, ge=1)
    min_group_size: int = Field(default=2, ge=1)
    related_label_count: int = Field(default=3, ge=0)
    subdivide_on_start: bool = False

    def options(self) -> GroupingOptions:
        return GroupingOptions(
            max_depth=self.max_depth,
            min_group_size=self.min_group_size,
            related_label_count=self.related_label_count,
        )


class GroupingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    subgroup_min_issues: int = Field(default=4, ge=1)
    subgroup_min_size: int = Field(default=2, ge=1)
    core_name: str = "Core"
    unlabeled_name: str = "Unlabeled"

    def settings(self) -> GroupingSettings:
        return GroupingSettings(
            subgroup_min_issues=self.subgroup_min_issues,
            subgroup_min_size=self.subgroup_min_size,
            core_name=self.core_name,
            unlabeled_name=self.unlabeled_name,
        )


class CatalogConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    paths: list[str] = Field(default_factory=lambda: [".beads/issues.jsonl", ".beads/beads.jsonl"])


class LensDashConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    workstreams: WorkstreamConfig = Field(default_factory=WorkstreamConfig)
    grouping: GroupingConfig = Field(default_factory=GroupingConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a YAML mapping")
    return data


def load_effective_config(
    repo_path: str | Path,
    org_defaults: dict[str, Any] | None = None,
    system_defaults: dict[str, Any] | None = None,
    runtime_override: dict[str, Any] | None = None,
) -> LensDashConfig:
    """Load config with precedence runtime > repo .lensdash.yaml > org > system."""
    repo = Path(repo_path)
    repo_config = _load_yaml(repo / REPO_CONFIG_NAME)

    merged: dict[str, Any] = {}
    for layer in (system_defaults, org_defaults, repo_config, runtime_override):
        if layer:
            merged = _deep_merge(merged, layer)

    return LensDashConfig.model_validate(merged)
