"""Tests for the topology and adjacency model."""

from __future__ import annotations

import pytest

from containmesh.errors import InvalidTopology
from containmesh.topology import (
    AdjacencyMatrix,
    Topology,
    acquire,
    format_matrix,
    validate,
)


def _scripted(answers):
    """Return a prompt callable replaying ``answers`` and the questions it saw."""
    remaining = list(answers)
    asked = []

    def prompt(question: str) -> str:
        asked.append(question)
        return remaining.pop(0)

    return prompt, asked


class TestTopology:
    def test_defaults_derive_name_prefix_from_image(self):
        topo = Topology(group_count=2, nodes_per_group=3, links_per_pair=1, image_ref="img")
        assert topo.name_prefix == "cont_img"
        assert topo.total_nodes == 6
        assert topo.privileged is False

    def test_group_and_link_indices(self):
        topo = Topology(group_count=3, nodes_per_group=4, links_per_pair=2, image_ref="img")
        assert list(topo.group_node_indices(1)) == [4, 5, 6, 7]
        assert list(topo.link_node_indices(2)) == [8, 9]

    @pytest.mark.parametrize(
        "groups,nodes,links",
        [(0, 1, 1), (1, 0, 1), (1, 1, 0), (2, 2, 3), (-1, 2, 1)],
    )
    def test_rejects_bad_counts(self, groups, nodes, links):
        with pytest.raises(InvalidTopology):
            Topology(group_count=groups, nodes_per_group=nodes, links_per_pair=links, image_ref="img")

    def test_rejects_empty_image(self):
        with pytest.raises(InvalidTopology):
            Topology(group_count=1, nodes_per_group=1, links_per_pair=1, image_ref="")

    def test_is_immutable(self):
        topo = Topology(group_count=1, nodes_per_group=1, links_per_pair=1, image_ref="img")
        with pytest.raises(AttributeError):
            topo.group_count = 4


class TestValidate:
    def test_accepts_square_matrix_of_right_size(self):
        matrix = validate([[False, True], [False, False]], 2)
        assert isinstance(matrix, AdjacencyMatrix)
        assert matrix.to_list() == [[False, True], [False, False]]

    def test_rejects_wrong_row_count(self):
        with pytest.raises(InvalidTopology):
            validate([[False, True], [False, False]], 3)

    def test_rejects_ragged_rows(self):
        with pytest.raises(InvalidTopology):
            validate([[False, True], [False]], 2)

    def test_rejects_rectangular_matrix(self):
        with pytest.raises(InvalidTopology):
            validate([[False, True, True], [False, False, True]], 2)


class TestAdjacencyMatrix:
    def test_links_are_directed_and_skip_diagonal(self):
        matrix = AdjacencyMatrix([[True, True, False], [False, True, False], [True, True, True]])
        assert list(matrix.links()) == [(0, 1), (2, 0), (2, 1)]
        assert matrix.linked(0, 1) is True
        assert matrix.linked(1, 0) is False
        assert matrix.linked(0, 0) is False

    def test_format_matrix_marks_diagonal(self):
        text = format_matrix(AdjacencyMatrix([[False, True], [False, False]]))
        assert text.splitlines() == [
            "The adjacency matrix is:",
            "  0 1 ",
            "0 X 1 ",
            "1 0 X ",
        ]


class TestAcquire:
    def test_single_group_never_prompts(self):
        def prompt(_):
            raise AssertionError("prompted for a single group")

        matrix = acquire(1, prompt=prompt, output=lambda _: None)
        assert matrix.to_list() == [[False]]
        assert list(matrix.links()) == []

    def test_presupplied_matrix_is_validated_not_prompted(self):
        def prompt(_):
            raise AssertionError("prompted with a supplied matrix")

        matrix = acquire(2, [[False, True], [False, False]], prompt=prompt)
        assert list(matrix.links()) == [(0, 1)]

        with pytest.raises(InvalidTopology):
            acquire(3, [[False, True], [False, False]], prompt=prompt)

    def test_interactive_asks_every_ordered_pair(self):
        prompt, asked = _scripted(["y", "N", "Y"])
        printed = []
        matrix = acquire(2, prompt=prompt, output=printed.append)

        assert matrix.to_list() == [[False, True], [False, False]]
        assert asked[0] == "Do you want a link between network 0 and network 1 (Y/N): "
        assert asked[1] == "Do you want a link between network 1 and network 0 (Y/N): "
        assert any("The adjacency matrix is:" in line for line in printed)

    def test_interactive_repeats_until_confirmed(self):
        # first round rejected, second accepted
        prompt, asked = _scripted(["y", "y", "n", "n", "y", "y"])
        matrix = acquire(2, prompt=prompt, output=lambda _: None)

        assert matrix.to_list() == [[False, False], [True, False]]
        assert len(asked) == 6
