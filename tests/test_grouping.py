from lensdash.catalog import CatalogIndex
from lensdash.grouping import GroupingSettings, build_groups, group_by_label
from lensdash.models import GroupByMode, Issue


def _issue(
    issue_id: str,
    *,
    labels: tuple[str, ...] = (),
    status: str = "open",
    priority: int = 2,
    blocked_by: tuple[str, ...] = (),
) -> Issue:
    return Issue.model_validate(
        {
            "id": issue_id,
            "title": f"Title {issue_id}",
            "status": status,
            "priority": priority,
            "labels": list(labels),
            "dependencies": [{"depends_on_id": blocker, "type": "blocks"} for blocker in blocked_by],
        }
    )


def test_priority_buckets_in_fixed_order_without_empty_ones() -> None:
    issues = [_issue(f"I{idx}", priority=p) for idx, p in enumerate([2, 0, 3, 0, 2, 1])]
    catalog = CatalogIndex(issues)

    groups = build_groups(GroupByMode.PRIORITY, issues, catalog)

    assert [(g.name, len(g.issues)) for g in groups] == [
        ("P0 Critical", 2),
        ("P1 High", 1),
        ("P2 Medium", 2),
        ("P3+ Other", 1),
    ]
    assert groups[0].id == "group:P0 Critical"


def test_priority_above_three_falls_into_other_bucket() -> None:
    issues = [_issue("low", priority=4), _issue("urgent", priority=0)]

    groups = build_groups(GroupByMode.PRIORITY, issues, CatalogIndex(issues))

    assert [g.name for g in groups] == ["P0 Critical", "P3+ Other"]


def test_status_grouping_uses_effective_status() -> None:
    issues = [
        _issue("blocker"),
        _issue("waiting", blocked_by=("blocker",)),
        _issue("done", status="closed"),
        _issue("busy", status="in_progress"),
    ]
    catalog = CatalogIndex(issues)

    groups = build_groups(GroupByMode.STATUS, issues, catalog)

    assert [(g.name, g.issue_ids) for g in groups] == [
        ("Open", ["blocker"]),
        ("In Progress", ["busy"]),
        ("Blocked", ["waiting"]),
        ("Closed", ["done"]),
    ]


def test_label_grouping_assigns_most_popular_label_and_subgroups() -> None:
    issues = [
        _issue("i1", labels=("team", "db")),
        _issue("i2", labels=("team", "db")),
        _issue("i3", labels=("team", "ui")),
        _issue("i4", labels=("ui", "team")),
        _issue("i5", labels=("team",)),
        _issue("i6"),
        _issue("i7", labels=("solo",)),
    ]
    catalog = CatalogIndex(issues)

    groups = group_by_label(issues, catalog)

    assert [g.name for g in groups] == ["team", "solo", "Unlabeled"]
    team = groups[0]
    assert team.issue_ids == ["i1", "i2", "i3", "i4", "i5"]
    assert [(sub.name, sub.issue_ids) for sub in team.sub_workstreams] == [
        ("db", ["i1", "i2"]),
        ("ui", ["i3", "i4"]),
        ("Core", ["i5"]),
    ]
    assert groups[1].sub_workstreams == []
    assert groups[2].issue_ids == ["i6"]


def test_small_label_groups_are_not_subdivided() -> None:
    issues = [
        _issue("a", labels=("team", "db")),
        _issue("b", labels=("team", "ui")),
        _issue("c", labels=("team",)),
    ]

    groups = group_by_label(issues, CatalogIndex(issues))

    assert groups[0].name == "team"
    assert groups[0].sub_workstreams == []


def test_undersized_subgroups_collapse_into_core() -> None:
    issues = [
        _issue("a", labels=("team", "db")),
        _issue("b", labels=("team", "db")),
        _issue("c", labels=("team", "ui")),
        _issue("d", labels=("team", "ops")),
    ]
    settings = GroupingSettings(core_name="Everything else")

    groups = group_by_label(issues, CatalogIndex(issues), settings)

    assert [(sub.name, sub.issue_ids) for sub in groups[0].sub_workstreams] == [
        ("db", ["a", "b"]),
        ("Everything else", ["c", "d"]),
    ]
