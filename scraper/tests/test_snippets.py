from adharvest.snippets import MAX_SNIPPETS, merge_snippets, unique_snippets


def test_merge_snippets_appends_unseen_items_in_order():
    assert merge_snippets(["a", "b"], ["b", "c", "a", "d"]) == ["a", "b", "c", "d"]


def test_merge_snippets_dedupes_within_incoming():
    assert merge_snippets([], ["x", "x", "y", "x"]) == ["x", "y"]


def test_merge_snippets_is_idempotent_for_subsets():
    existing = ["a", "b", "c"]
    assert merge_snippets(existing, ["c", "a"]) == existing
    assert merge_snippets(existing, existing) == existing


def test_merge_snippets_respects_cap():
    merged = merge_snippets(["a", "b"], ["c", "d", "e"], cap=3)
    assert merged == ["a", "b", "c"]
    assert merge_snippets(["a", "b", "c", "d"], ["e"], cap=3) == ["a", "b", "c"]


def test_merge_snippets_does_not_mutate_inputs():
    existing = ["a"]
    incoming = ["b"]
    merge_snippets(existing, incoming)
    assert existing == ["a"]
    assert incoming == ["b"]


def test_unique_snippets_applies_default_cap():
    snippets = [f"s{i}" for i in range(MAX_SNIPPETS + 5)] + ["s0"]
    out = unique_snippets(snippets)
    assert len(out) == MAX_SNIPPETS
    assert out[0] == "s0"
