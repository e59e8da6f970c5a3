from lensdash.models import EffectiveStatus, FlatNode, Issue, TreeNode
from lensdash.search import FuzzySearch, SearchSnapshot, filter_centered, filter_nodes, search_text


def _node(issue_id: str, title: str) -> FlatNode:
    return FlatNode(node=TreeNode(issue=Issue(id=issue_id, title=title)), prefix="", status=EffectiveStatus.READY)


def test_filter_nodes_matches_id_and_title() -> None:
    nodes = [_node("A1", "Login page"), _node("A2", "Catalog"), _node("A3", "Settings")]

    assert search_text(nodes[0]) == "A1 Login page"
    assert [node.issue_id for node in filter_nodes("log", nodes)] == ["A1", "A2"]
    assert [node.issue_id for node in filter_nodes("a3", nodes)] == ["A3"]
    assert filter_nodes("zzz", nodes) == []


def test_filter_centered_never_drops_ego() -> None:
    upstream = [_node("U1", "Schema migration")]
    ego = _node("E", "Ego issue")
    downstream = [_node("D1", "Render charts"), _node("D2", "Schema docs")]

    kept_up, kept_down = filter_centered("schema", upstream, ego, downstream)

    assert [node.issue_id for node in kept_up] == ["U1"]
    assert [node.issue_id for node in kept_down] == ["D2"]

    none_up, none_down = filter_centered("ego iss", upstream, ego, downstream)
    assert none_up == []
    assert none_down == []


def test_search_state_returns_snapshot_on_close() -> None:
    nodes = [_node("A", "First")]
    snapshot = SearchSnapshot(nodes=nodes, upstream=[], cursor=0, scroll=0, selected_id="A")
    search = FuzzySearch()

    search.open(snapshot)
    assert search.active
    assert search.result_count == 1

    search.query = "fi"
    assert search.close() is snapshot
    assert not search.active
    assert search.query == ""
    assert search.snapshot is None
