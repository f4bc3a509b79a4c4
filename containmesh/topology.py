"""Topology model for a container mesh.

A mesh is ``group_count`` isolated networks, each holding
``nodes_per_group`` containers. Groups are cross-linked according to a
square adjacency matrix where ``matrix[i][j]`` means "attach the first
``links_per_pair`` nodes of group i to the network of group j". The relation
is directed: ``matrix[i][j]`` says nothing about ``matrix[j][i]``, and the
diagonal is never consulted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Sequence

from containmesh import naming
from containmesh.errors import InvalidTopology


logger = logging.getLogger(__name__)

DEFAULT_NETWORK_PREFIX = "test_network"


@dataclass(frozen=True)
class Topology:
    """Immutable sizing and naming parameters for one mesh."""
    group_count: int
    nodes_per_group: int
    links_per_pair: int
    image_ref: str
    name_prefix: str = ""
    network_prefix: str = DEFAULT_NETWORK_PREFIX
    # Nodes run privileged only when explicitly requested
    privileged: bool = False

    def __post_init__(self):
        if self.group_count < 1 or self.nodes_per_group < 1 or self.links_per_pair < 1:
            raise InvalidTopology(
                "The number of containers, networks and links must be greater than 0"
            )
        if self.links_per_pair > self.nodes_per_group:
            raise InvalidTopology(
                f"links per pair ({self.links_per_pair}) exceeds nodes per group "
                f"({self.nodes_per_group})"
            )
        if not self.image_ref:
            raise InvalidTopology("image reference must not be empty")
        if not self.network_prefix:
            raise InvalidTopology("network prefix must not be empty")
        if not self.name_prefix:
            object.__setattr__(self, "name_prefix", naming.default_name_prefix(self.image_ref))

    @property
    def total_nodes(self) -> int:
        return self.group_count * self.nodes_per_group

    def node_name(self, index: int) -> str:
        return naming.node_name(self.name_prefix, index)

    def network_name(self, group_index: int) -> str:
        return naming.network_name(self.network_prefix, group_index)

    def group_node_indices(self, group_index: int) -> range:
        """Global indices of the nodes belonging to a group."""
        start = naming.global_index(group_index, 0, self.nodes_per_group)
        return range(start, start + self.nodes_per_group)

    def link_node_indices(self, group_index: int) -> range:
        """Global indices of the nodes of a group used for outgoing links."""
        start = naming.global_index(group_index, 0, self.nodes_per_group)
        return range(start, start + self.links_per_pair)


class AdjacencyMatrix:
    """Square, directed boolean adjacency matrix between groups."""

    def __init__(self, rows: Sequence[Sequence[bool]]):
        self._rows = tuple(tuple(bool(v) for v in row) for row in rows)

    @classmethod
    def empty(cls, group_count: int) -> "AdjacencyMatrix":
        return cls([[False] * group_count for _ in range(group_count)])

    @property
    def size(self) -> int:
        return len(self._rows)

    def __getitem__(self, index: int) -> tuple[bool, ...]:
        return self._rows[index]

    def __len__(self) -> int:
        return len(self._rows)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AdjacencyMatrix):
            return self._rows == other._rows
        return NotImplemented

    def __repr__(self) -> str:
        return f"AdjacencyMatrix({self.to_list()!r})"

    def linked(self, source: int, target: int) -> bool:
        """True when group ``source`` reaches into group ``target``."""
        if source == target:
            return False
        return self._rows[source][target]

    def links(self) -> Iterator[tuple[int, int]]:
        """Yield ordered (source, target) pairs in row-major order."""
        for i in range(self.size):
            for j in range(self.size):
                if i != j and self._rows[i][j]:
                    yield i, j

    def to_list(self) -> list[list[bool]]:
        return [list(row) for row in self._rows]


def validate(
    matrix: AdjacencyMatrix | Sequence[Sequence[bool]],
    group_count: int,
) -> AdjacencyMatrix:
    """Check the matrix shape against the group count.

    Raises:
        InvalidTopology: row count differs from ``group_count`` or the matrix
            is not square.
    """
    rows = matrix.to_list() if isinstance(matrix, AdjacencyMatrix) else [list(r) for r in matrix]
    if len(rows) != group_count:
        raise InvalidTopology(
            f"the number of networks ({group_count}) is not equal to the number "
            f"of rows in the matrix ({len(rows)})"
        )
    for i, row in enumerate(rows):
        if len(row) != len(rows):
            raise InvalidTopology(
                f"the matrix is not square: row {i} has {len(row)} entries, "
                f"expected {len(rows)}"
            )
    return matrix if isinstance(matrix, AdjacencyMatrix) else AdjacencyMatrix(rows)


def format_matrix(matrix: AdjacencyMatrix) -> str:
    """Render the matrix with group headers, 1/0 cells and X on the diagonal."""
    lines = ["The adjacency matrix is:"]
    lines.append("  " + "".join(f"{i} " for i in range(matrix.size)))
    for i in range(matrix.size):
        cells = []
        for j in range(matrix.size):
            if i == j:
                cells.append("X ")
            else:
                cells.append("1 " if matrix[i][j] else "0 ")
        lines.append(f"{i} " + "".join(cells))
    return "\n".join(lines)


def _is_yes(answer: str) -> bool:
    return answer.strip().upper() == "Y"


def acquire(
    group_count: int,
    matrix: AdjacencyMatrix | Sequence[Sequence[bool]] | None = None,
    prompt: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
) -> AdjacencyMatrix:
    """Return the adjacency matrix for ``group_count`` groups.

    A pre-supplied matrix is validated and returned as-is. Otherwise the user
    is asked Y/N for every ordered pair (i, j), i != j; the result is shown
    back and the questionnaire repeats until it is confirmed. A single group
    needs no links, so no prompting happens.
    """
    if group_count < 1:
        raise InvalidTopology(f"group count must be >= 1, got {group_count}")
    if matrix is not None:
        return validate(matrix, group_count)
    if group_count == 1:
        return AdjacencyMatrix.empty(1)

    output("Please reply to the following questions to build the adjacency matrix:")
    while True:
        rows = [[False] * group_count for _ in range(group_count)]
        for i in range(group_count):
            for j in range(group_count):
                if i == j:
                    continue
                rows[i][j] = _is_yes(
                    prompt(f"Do you want a link between network {i} and network {j} (Y/N): ")
                )
        candidate = AdjacencyMatrix(rows)
        output(format_matrix(candidate))
        if _is_yes(prompt("Is the adjacency matrix correct? (Y/N): ")):
            logger.debug(f"Adjacency matrix accepted: {candidate.to_list()}")
            return candidate
