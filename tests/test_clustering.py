from lensdash.catalog import CatalogIndex
from lensdash.clustering import (
    STANDALONE_ID,
    STANDALONE_NAME,
    ComponentPartitioner,
    GroupingOptions,
    UnionFind,
    build_workstream,
    detect_cross_workstream_blockers,
    format_workstream_name,
    subdivide_workstream,
)
from lensdash.models import Issue


def _issue(
    issue_id: str,
    *,
    labels: tuple[str, ...] = (),
    status: str = "open",
    blocked_by: tuple[str, ...] = (),
    parent: str = "",
) -> Issue:
    deps = [{"depends_on_id": blocker, "type": "blocks"} for blocker in blocked_by]
    if parent:
        deps.append({"depends_on_id": parent, "type": "parent-child"})
    return Issue.model_validate(
        {
            "id": issue_id,
            "title": f"Title {issue_id}",
            "status": status,
            "labels": list(labels),
            "dependencies": deps,
        }
    )


def test_union_find_merges_components() -> None:
    uf = UnionFind(["a", "b", "c", "d"])
    uf.union("a", "b")
    uf.union("c", "d")
    uf.union("b", "d")

    assert len({uf.find(member) for member in ["a", "b", "c", "d"]}) == 1


def test_partition_groups_connected_issues_and_pools_singletons() -> None:
    issues = [
        _issue("A", labels=("L",)),
        _issue("B", labels=("L",), blocked_by=("A",)),
        _issue("C", labels=("L", "area:backend")),
        _issue("D", labels=("L",), parent="C"),
        _issue("E", labels=("L",), status="closed"),
        _issue("F", labels=("L",)),
    ]
    catalog = CatalogIndex(issues)

    workstreams = ComponentPartitioner(catalog).partition(issues, frozenset({"A", "B", "C", "D", "E"}), "L")

    assert [ws.name for ws in workstreams] == ["Backend", "Title A", STANDALONE_NAME]
    assert workstreams[0].issue_ids == ["C", "D"]
    assert workstreams[1].issue_ids == ["A", "B"]
    standalone = workstreams[-1]
    assert standalone.id == STANDALONE_ID
    assert standalone.issue_ids == ["E", "F"]
    assert standalone.primary_count == 1
    assert standalone.context_count == 1
    assert standalone.closed_count == 1
    assert standalone.progress == 0.5


def test_partition_keeps_anchor_singleton_out_of_standalone() -> None:
    issues = [_issue("E"), _issue("X")]
    catalog = CatalogIndex(issues)

    workstreams = ComponentPartitioner(catalog, anchor_id="E").partition(issues, frozenset({"E"}), "Epic")

    assert [ws.issue_ids for ws in workstreams] == [["E"], ["X"]]
    assert workstreams[0].name == "Title E"


def test_partition_of_nothing_is_empty() -> None:
    assert ComponentPartitioner(CatalogIndex([])).partition([], frozenset(), "L") == []


def test_build_workstream_counts_and_blocked_flag() -> None:
    issues = [
        _issue("A", status="in_progress", labels=("api", "db")),
        _issue("B", blocked_by=("A",), labels=("api",)),
        _issue("C", status="closed", labels=("ui",)),
    ]
    catalog = CatalogIndex(issues)

    ws = build_workstream("ws:A", "Api", issues, catalog, exclude_labels=["db"], related_label_count=2)
    assert (ws.ready_count, ws.in_progress_count, ws.blocked_count, ws.closed_count) == (0, 1, 1, 1)
    assert ws.primary_count == 3
    assert ws.related_labels == ["api", "ui"]
    assert not ws.is_blocked

    stuck = build_workstream("ws:B", "Stuck", [catalog.get("B")], catalog)
    assert stuck.is_blocked


def test_cross_workstream_blockers_recorded_on_both_sides() -> None:
    issues = [_issue("A"), _issue("B", blocked_by=("A",)), _issue("C", blocked_by=("A",))]
    catalog = CatalogIndex(issues)
    upstream = build_workstream("ws:A", "Upstream", [catalog.get("A")], catalog)
    downstream = build_workstream("ws:B", "Downstream", [catalog.get("B"), catalog.get("C")], catalog)

    detect_cross_workstream_blockers([upstream, downstream], catalog)

    assert [(b.blocker_id, b.blocked_id) for b in downstream.cross_blocked_by] == [("A", "B"), ("A", "C")]
    assert downstream.cross_blocked_by[0].blocker_workstream == "Upstream"
    assert [(b.blocker_id, b.blocked_id) for b in upstream.cross_blocks] == [("A", "B"), ("A", "C")]
    assert upstream.cross_blocks[0].blocked_workstream == "Downstream"
    assert upstream.cross_blocked_by == []
    assert downstream.cross_blocks == []


def test_format_workstream_name_strips_namespace() -> None:
    assert format_workstream_name("area:backend") == "Backend"
    assert format_workstream_name("frontend") == "Frontend"


def test_subdivide_splits_by_secondary_label() -> None:
    issues = [
        _issue("R", labels=("x",)),
        _issue("a", labels=("x", "front")),
        _issue("b", labels=("x", "front")),
        _issue("c", labels=("x", "back")),
        _issue("d", labels=("x", "back")),
    ]
    catalog = CatalogIndex(issues)
    ws = build_workstream("ws:R", "X", issues, catalog)

    subs = subdivide_workstream(ws, catalog, frozenset(), GroupingOptions())

    assert [sub.name for sub in subs] == ["Back", "Front", STANDALONE_NAME]
    assert [sub.issue_ids for sub in subs] == [["c", "d"], ["a", "b"], ["R"]]
    assert all(sub.depth == 1 for sub in subs)
    assert ws.sub_workstreams == subs


def test_subdivide_requires_two_groups_of_minimum_size() -> None:
    issues = [
        _issue("a", labels=("front",)),
        _issue("b", labels=("front",)),
        _issue("c", labels=("back",)),
        _issue("d"),
    ]
    catalog = CatalogIndex(issues)
    ws = build_workstream("ws:a", "Mixed", issues, catalog)

    assert subdivide_workstream(ws, catalog, frozenset(), GroupingOptions()) == []
    assert ws.sub_workstreams == []


def test_subdivide_respects_max_depth() -> None:
    issues = [_issue(name, labels=(tag,)) for name, tag in [("a", "p"), ("b", "p"), ("c", "q"), ("d", "q")]]
    catalog = CatalogIndex(issues)
    ws = build_workstream("ws:a", "Deep", issues, catalog, depth=1)

    assert subdivide_workstream(ws, catalog, frozenset(), GroupingOptions(max_depth=1)) == []
