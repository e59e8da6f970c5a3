from lensdash.models import CentralityScore, Issue, IssueType, LensKind, ScopeMode, Status
from lensdash.selector import LensSelector, SearchMode


def _issue(
    issue_id: str,
    title: str,
    *,
    labels: tuple[str, ...] = (),
    status: str = "open",
    issue_type: str = "task",
    parent: str = "",
    blocked_by: tuple[str, ...] = (),
) -> Issue:
    deps = [{"depends_on_id": blocker, "type": "blocks"} for blocker in blocked_by]
    if parent:
        deps.append({"depends_on_id": parent, "type": "parent-child"})
    return Issue.model_validate(
        {
            "id": issue_id,
            "title": title,
            "labels": list(labels),
            "status": status,
            "issue_type": issue_type,
            "dependencies": deps,
        }
    )


def _catalog() -> list[Issue]:
    return [
        _issue("E1", "Auth epic", issue_type="epic"),
        _issue("E2", "Old epic", issue_type="epic", status="closed"),
        _issue("T1", "Login flow", labels=("auth",), status="closed", parent="E1"),
        _issue("T2", "Token refresh", labels=("auth", "api"), parent="E1"),
        _issue("T3", "Rate limits", labels=("api",), blocked_by=("T2",)),
    ]


def test_epics_and_labels_carry_progress() -> None:
    selector = LensSelector(_catalog())

    assert [(item.value, item.issue_count, item.closed_count) for item in selector.epics] == [("E1", 2, 1)]
    assert selector.epics[0].progress == 0.5
    assert [(item.value, item.issue_count, item.closed_count) for item in selector.labels] == [
        ("api", 2, 0),
        ("auth", 2, 1),
    ]
    assert [item.value for item in selector.items] == ["E1", "api", "auth"]
    assert [item.value for item in selector.beads] == ["E1", "E2", "T1", "T2", "T3"]


def test_normal_mode_navigation_and_mode_cycle() -> None:
    selector = LensSelector(_catalog())

    assert selector.handle_key("j")
    assert selector.selected_index == 1
    selector.handle_key("d")
    assert selector.selected_index == 2
    selector.handle_key("u")
    assert selector.selected_index == 0
    selector.handle_key("k")
    assert selector.selected_index == 0

    selector.handle_key("m")
    assert selector.search_mode is SearchMode.EPIC
    assert [item.value for item in selector.items] == ["E1"]
    selector.handle_key("m")
    selector.handle_key("m")
    assert selector.search_mode is SearchMode.BEAD
    assert len(selector.items) == 5

    assert not selector.handle_key("F5")


def test_insert_mode_fuzzy_filters_and_confirms() -> None:
    selector = LensSelector(_catalog())

    selector.handle_key("i")
    for char in "auth":
        selector.handle_key(char)

    assert selector.query == "auth"
    top = selector.current_item
    assert top is not None
    assert (top.kind, top.value) == (LensKind.LABEL, "auth")

    selector.handle_key("enter")
    assert selector.confirmed
    assert selector.selected_item == top
    assert selector.selected_item.descriptor().value == "auth"


def test_scope_add_mode_builds_scoped_item_list() -> None:
    selector = LensSelector(_catalog())

    selector.handle_key("s")
    for char in "api":
        selector.handle_key(char)
    selector.handle_key("enter")

    assert not selector.insert_mode
    assert selector.scope.labels == ["api"]
    assert [(item.kind, item.value) for item in selector.items] == [
        (LensKind.BEAD, "T2"),
        (LensKind.BEAD, "T3"),
        (LensKind.EPIC, "E1"),
        (LensKind.LABEL, "auth"),
    ]
    assert all(item.overlap_count == 1 for item in selector.items)

    selector.selected_index = 3
    selector.handle_key("enter")
    assert selector.scoped_labels == ["api", "auth"]


def test_escape_clears_scope_before_cancelling() -> None:
    selector = LensSelector(_catalog(), default_scope_mode=ScopeMode.INTERSECTION)
    selector.add_to_scope("api")

    selector.handle_key("esc")
    assert not selector.scope.active
    assert selector.scope.mode is ScopeMode.INTERSECTION
    assert not selector.cancelled

    selector.handle_key("q")
    assert selector.cancelled
    assert selector.selected_item is None


def test_scope_mode_toggle_needs_two_labels() -> None:
    selector = LensSelector(_catalog())
    selector.add_to_scope("api")
    selector.handle_key("S")
    assert selector.scope.mode is ScopeMode.UNION

    selector.add_to_scope("auth")
    selector.handle_key("S")
    assert selector.scope.mode is ScopeMode.INTERSECTION
    assert [item.value for item in selector.items if item.kind is LensKind.BEAD] == ["T2"]


def test_review_key_confirms_with_review_flag() -> None:
    selector = LensSelector(_catalog())
    selector.handle_key("r")

    assert selector.review_requested
    assert selector.confirmed

    selector.reset()
    assert not selector.confirmed
    assert not selector.review_requested
    assert selector.search_mode is SearchMode.MERGED


def test_graph_statistics() -> None:
    selector = LensSelector(_catalog())

    assert [issue.id for issue in selector.epic_descendants("E1")] == ["T1", "T2"]
    assert selector.blockers("T3") == ["T2"]
    assert selector.dependents("T2") == ["T3"]
    assert selector.related_labels("api") == [("auth", 1)]
    assert selector.related_labels("auth", limit=1) == [("api", 1)]

    issues = selector.issues_with_label("auth")
    assert LensSelector.count_statuses(issues) == {Status.CLOSED: 1, Status.OPEN: 1}
    assert LensSelector.count_types(issues) == {IssueType.TASK: 2}


def test_centrality_rank_is_one_based() -> None:
    centrality = {
        "T1": CentralityScore(pagerank=0.5, betweenness=0.1),
        "T2": CentralityScore(pagerank=0.2, betweenness=0.9),
        "T3": CentralityScore(pagerank=0.1, betweenness=0.0),
    }
    selector = LensSelector(_catalog(), centrality=centrality)

    rank = selector.centrality_rank("T2")
    assert (rank.pagerank_rank, rank.betweenness_rank) == (2, 1)
    assert rank.total == 5
    assert LensSelector(_catalog()).centrality_rank("T2").pagerank_rank == 0
