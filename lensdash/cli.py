"""CLI entrypoint for browsing an issue catalog through a lens."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import yaml

from lensdash.config import LensDashConfig, load_effective_config
from lensdash.dashboard import LensDashboard
from lensdash.lens import LensDescriptor
from lensdash.loader import find_catalog, load_issues
from lensdash.logging_utils import configure_logging
from lensdash.models import FlatNode, GroupByMode, Issue, ScopeMode
from lensdash.reporting import render_workstream, write_dump
from lensdash.selector import LensSelector, SearchMode

logger = logging.getLogger(__name__)

DEPTH_CHOICES = ["1", "2", "3", "all"]


def _load_yaml_dict(path: str | None) -> dict | None:
    if not path:
        return None
    data = yaml.safe_load(Path(path).read_text())
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must decode to a mapping")
    return data


def _load_config(args: argparse.Namespace) -> LensDashConfig:
    return load_effective_config(
        repo_path=args.repo_path,
        org_defaults=_load_yaml_dict(args.org_config),
        system_defaults=_load_yaml_dict(args.system_config),
        runtime_override=_load_yaml_dict(args.runtime_override),
    )


def _load_catalog(args: argparse.Namespace, config: LensDashConfig) -> list[Issue]:
    path = Path(args.input) if args.input else find_catalog(args.repo_path, config.catalog.paths)
    return load_issues(path)


def _descriptor(args: argparse.Namespace) -> LensDescriptor:
    if args.label:
        return LensDescriptor.label(args.label)
    if args.epic:
        return LensDescriptor.epic(args.epic)
    return LensDescriptor.bead(args.bead)


def _build_dashboard(args: argparse.Namespace) -> LensDashboard:
    config = _load_config(args)
    issues = _load_catalog(args, config)
    dashboard = LensDashboard(issues, _descriptor(args), config=config)

    if args.depth:
        dashboard.set_depth(args.depth)
    if args.flat and dashboard.is_centered_mode:
        dashboard.toggle_centered_mode()
    if args.scope_mode and ScopeMode(args.scope_mode) is not dashboard.scope_mode:
        dashboard.toggle_scope_mode()
    for label in args.scope or []:
        dashboard.add_scope_label(label)
    if dashboard.not_found:
        logger.warning("Lens target %s not found; showing an empty view", dashboard.descriptor.value)
    return dashboard


def _add_common_config_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--input", help="Issue catalog file (JSONL or JSON array); discovered under --repo-path if omitted")
    cmd.add_argument("--repo-path", default=".", help="Repository root path")
    cmd.add_argument("--org-config", help="Optional org defaults YAML")
    cmd.add_argument("--system-config", help="Optional system defaults YAML")
    cmd.add_argument("--runtime-override", help="Optional runtime override YAML")


def _add_scope_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--scope", action="append", metavar="LABEL", help="Restrict to issues with this label (repeatable)")
    cmd.add_argument("--scope-mode", choices=[mode.value for mode in ScopeMode], help="How multiple scope labels combine")


def _add_lens_flags(cmd: argparse.ArgumentParser) -> None:
    lens = cmd.add_mutually_exclusive_group(required=True)
    lens.add_argument("--label", help="Label lens: every issue carrying this label")
    lens.add_argument("--epic", help="Epic lens: an epic and its parent-child descendants")
    lens.add_argument("--bead", help="Bead lens: an issue, its descendants and everything it unblocks")
    cmd.add_argument("--depth", choices=DEPTH_CHOICES, help="Dependency depth")
    cmd.add_argument("--flat", action="store_true", help="Disable the ego-centered layout for epic and bead lenses")
    _add_scope_flags(cmd)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Lens dashboard over an issue dependency graph")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Print the lens as a dependency tree")
    _add_common_config_flags(show)
    _add_lens_flags(show)

    workstreams = sub.add_parser("workstreams", help="Print the workstream partition of the lens")
    _add_common_config_flags(workstreams)
    _add_lens_flags(workstreams)
    workstreams.add_argument("--subdivide", action="store_true", help="Split workstreams by secondary labels")

    groups = sub.add_parser("groups", help="Print the lens grouped by an attribute")
    _add_common_config_flags(groups)
    _add_lens_flags(groups)
    groups.add_argument("--group-by", choices=[mode.value for mode in GroupByMode], help="Grouping attribute")

    lenses = sub.add_parser("lenses", help="List the available lenses")
    _add_common_config_flags(lenses)
    _add_scope_flags(lenses)
    lenses.add_argument("--mode", choices=[mode.value for mode in SearchMode], default=SearchMode.MERGED.value)
    lenses.add_argument("--query", default="", help="Fuzzy filter over lens titles")

    dump = sub.add_parser("dump", help="Write a plain-text dump of the lens")
    _add_common_config_flags(dump)
    _add_lens_flags(dump)
    dump.add_argument("--output-dir", default=".", help="Directory for the dump file")

    return parser


def _format_node(node: FlatNode) -> str:
    line = f"{node.prefix}{node.issue_id} [{node.status.value}] {node.issue.title}"
    if not node.node.is_primary:
        line += " (context)"
    if node.blocked_by and not node.blocker_in_tree:
        line += f" <- blocked by {node.blocked_by}"
    return line


def _print_header(dashboard: LensDashboard) -> None:
    counts = dashboard.counts
    print(
        f"{dashboard.descriptor.kind.value.title()} lens: {dashboard.lens_name} "
        f"(depth {dashboard.depth.label}, {counts.total} issues: "
        f"{counts.primary} primary, {counts.context} context)"
    )
    if dashboard.scope.active:
        print(f"Scope: {', '.join(dashboard.scope_labels)} [{dashboard.scope_mode.short}]")


def _run_show(args: argparse.Namespace) -> int:
    dashboard = _build_dashboard(args)
    _print_header(dashboard)
    if dashboard.is_centered_mode and dashboard.ego_node is not None:
        if dashboard.upstream_nodes:
            print("Blocked by:")
            for node in dashboard.upstream_nodes:
                print(f"  {_format_node(node)}")
        print(f"> {_format_node(dashboard.ego_node)}")
        for node in dashboard.flat_nodes:
            print(f"  {_format_node(node)}")
        return 0

    last_status = None
    for node in dashboard.flat_nodes:
        if node.status != last_status:
            print(f"-- {node.status.value} --")
            last_status = node.status
        print(_format_node(node))
    return 0


def _run_workstreams(args: argparse.Namespace) -> int:
    dashboard = _build_dashboard(args)
    if args.subdivide and not dashboard.subdivided:
        dashboard.toggle_subdivision()
    _print_header(dashboard)
    for ws in dashboard.workstreams:
        for line in render_workstream(ws, 0):
            print(line)
        for blocker in ws.cross_blocked_by:
            print(f"  ! {blocker.blocked_id} waits on {blocker.blocker_id} in {blocker.blocker_workstream}")
    return 0


def _run_groups(args: argparse.Namespace) -> int:
    dashboard = _build_dashboard(args)
    if args.group_by:
        while dashboard.group_by_mode is not GroupByMode(args.group_by):
            dashboard.cycle_group_by_mode()
    dashboard.enter_grouped_view()
    dashboard.expand_all_groups()
    _print_header(dashboard)
    print(f"Grouped by {dashboard.group_by_mode.title}")
    for group in dashboard.grouped_sections:
        print(f"{group.name} ({len(group.issues)})")
        if group.sub_workstreams:
            for sub in group.sub_workstreams:
                print(f"  {sub.name} ({len(sub.issues)})")
                for issue in sub.issues:
                    print(f"    {issue.id} {issue.title}")
        else:
            for issue in group.issues:
                print(f"  {issue.id} {issue.title}")
    return 0


def _run_lenses(args: argparse.Namespace) -> int:
    config = _load_config(args)
    selector = LensSelector(_load_catalog(args, config), default_scope_mode=config.dashboard.scope_mode)
    if args.scope_mode and ScopeMode(args.scope_mode) is not selector.scope.mode:
        selector.scope.toggle_mode()
    for label in args.scope or []:
        selector.add_to_scope(label)
    while selector.search_mode is not SearchMode(args.mode):
        selector.handle_key("m")
    if args.query:
        selector.set_query(args.query)

    for item in selector.items:
        line = f"{item.kind.value:<5} {item.value}"
        if item.title != item.value:
            line += f"  {item.title}"
        line += f"  ({item.closed_count}/{item.issue_count} closed)"
        if item.overlap_count:
            line += f"  overlap={item.overlap_count}"
        print(line)
    return 0


def _run_dump(args: argparse.Namespace) -> int:
    dashboard = _build_dashboard(args)
    path = write_dump(dashboard, args.output_dir)
    logger.info("Wrote dump to %s", path)
    print(path)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    commands = {
        "show": _run_show,
        "workstreams": _run_workstreams,
        "groups": _run_groups,
        "lenses": _run_lenses,
        "dump": _run_dump,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return handler(args)
    except (ValueError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
