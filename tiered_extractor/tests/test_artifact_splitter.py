"""Tests for tiered_extractor.core.artifact_splitter module.

Tests flattening an artifact forest and regrouping it:
- default, node, artifact and top_level modes
- requested depths
- top-level ancestor lookup with broken chains
"""

import pytest

from tiered_extractor.core.artifact_splitter import (
    SPLIT_BY_ARTIFACT,
    SPLIT_BY_NODE,
    SPLIT_BY_TOP_LEVEL,
    SPLIT_DEFAULT,
    find_top_level_ancestor,
    split,
)


@pytest.fixture
def forest(make_page):
    """Two documents, each with two pages; pages produced by two different units."""
    doc_a = make_page(10, position=0, children=[
        make_page(11, position=0, parent_artifact_id=10, producer_id=1),
        make_page(12, position=1, parent_artifact_id=10, producer_id=2),
    ])
    doc_b = make_page(20, position=1, children=[
        make_page(21, position=0, parent_artifact_id=20, producer_id=1),
        make_page(22, position=1, parent_artifact_id=20, producer_id=2),
    ])
    return [doc_a, doc_b]


def _ids(groups):
    return [[a.id for a in group] for group in groups]


# =============================================================================
# split tests
# =============================================================================


class TestSplit:
    """Tests for split()."""

    def test_no_levels_returns_roots_as_one_group(self, forest):
        assert _ids(split(SPLIT_DEFAULT, forest)) == [[10, 20]]

    def test_no_levels_top_level_gives_one_group_per_root(self, forest):
        assert _ids(split(SPLIT_BY_TOP_LEVEL, forest)) == [[10], [20]]

    def test_empty_input(self):
        assert split(SPLIT_DEFAULT, []) == []
        assert split(SPLIT_DEFAULT, [], levels=[1]) == []

    def test_default_flattens_requested_depth(self, forest):
        assert _ids(split(SPLIT_DEFAULT, forest, levels=[1])) == [[11, 12, 21, 22]]

    def test_multiple_depths_depth_first(self, forest):
        assert _ids(split(SPLIT_DEFAULT, forest, levels=[0, 1])) == [[10, 11, 12, 20, 21, 22]]

    def test_by_node_groups_by_producer(self, forest):
        assert _ids(split(SPLIT_BY_NODE, forest, levels=[1])) == [[11, 21], [12, 22]]

    def test_by_artifact_one_group_each(self, forest):
        assert _ids(split(SPLIT_BY_ARTIFACT, forest, levels=[1])) == [[11], [12], [21], [22]]

    def test_by_top_level_groups_by_root(self, forest):
        assert _ids(split(SPLIT_BY_TOP_LEVEL, forest, levels=[1])) == [[11, 12], [21, 22]]

    def test_unknown_mode_raises(self, forest):
        with pytest.raises(ValueError, match="Unknown split mode"):
            split("by_colour", forest)


# =============================================================================
# find_top_level_ancestor tests
# =============================================================================


class TestFindTopLevelAncestor:
    """Tests for find_top_level_ancestor()."""

    def test_walks_to_root(self, make_page):
        root = make_page(1)
        middle = make_page(2, parent_artifact_id=1)
        leaf = make_page(3, parent_artifact_id=2)
        index = {a.id: a for a in (root, middle, leaf)}
        assert find_top_level_ancestor(leaf, index).id == 1

    def test_stops_when_parent_missing(self, make_page):
        middle = make_page(2, parent_artifact_id=99)
        leaf = make_page(3, parent_artifact_id=2)
        index = {a.id: a for a in (middle, leaf)}
        assert find_top_level_ancestor(leaf, index).id == 2

    def test_stops_on_cycle(self, make_page):
        a = make_page(1, parent_artifact_id=2)
        b = make_page(2, parent_artifact_id=1)
        index = {1: a, 2: b}
        assert find_top_level_ancestor(a, index).id == 2
