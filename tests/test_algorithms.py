from lensdash.algorithms import compare_hierarchical_ids, fuzzy_find, fuzzy_score, hierarchical_id_key


def test_fuzzy_score_requires_ordered_subsequence() -> None:
    assert fuzzy_score("", "anything") is None
    assert fuzzy_score("xyz", "Login page") is None
    assert fuzzy_score("gol", "Login") is None

    result = fuzzy_score("LOG", "Login")
    assert result is not None
    _, positions = result
    assert positions == (0, 1, 2)


def test_fuzzy_prefers_word_boundaries_and_adjacency() -> None:
    matches = fuzzy_find("log", ["A2 Catalog", "A1 Login page", "A3 Settings"])

    assert [match.text for match in matches] == ["A1 Login page", "A2 Catalog"]
    assert matches[0].index == 1
    assert matches[0].score > matches[1].score


def test_fuzzy_ties_keep_input_order() -> None:
    matches = fuzzy_find("ab", ["ab one", "ab two"])

    assert [match.index for match in matches] == [0, 1]


def test_camel_case_boundary_bonus() -> None:
    camel = fuzzy_score("s", "getStatus")
    plain = fuzzy_score("s", "getastatus")

    assert camel is not None and plain is not None
    assert camel[0] > plain[0]


def test_hierarchical_ids_sort_numerically_with_parents_first() -> None:
    ids = ["x.10", "x.2", "x", "x.2.1", "w"]

    assert sorted(ids, key=hierarchical_id_key) == ["w", "x", "x.2", "x.2.1", "x.10"]
    assert compare_hierarchical_ids("x.a", "x.b") == -1
    assert compare_hierarchical_ids("x.1", "x.1") == 0
