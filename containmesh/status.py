"""Read-only status snapshot of a mesh."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from containmesh.lifecycle import LifecycleTracker
from containmesh.topology import AdjacencyMatrix, Topology


class MeshStatus(BaseModel):
    """Graph encoding served to external observers."""
    model_config = ConfigDict(populate_by_name=True)

    num_networks: int = Field(alias="NumNetworks")
    num_containers: int = Field(alias="NumContainers")
    num_links: int = Field(alias="NumLinks")
    stopped_containers: list[int] = Field(default_factory=list, alias="StoppedContainers")
    net_matrix: list[list[bool]] | None = Field(default=None, alias="NetMatrix")


def snapshot(
    topology: Topology,
    matrix: AdjacencyMatrix | None,
    tracker: LifecycleTracker | None = None,
) -> MeshStatus:
    """Build a status snapshot. Pure: no runtime queries."""
    return MeshStatus(
        num_networks=topology.group_count,
        num_containers=topology.nodes_per_group,
        num_links=topology.links_per_pair,
        stopped_containers=tracker.stopped() if tracker else [],
        net_matrix=matrix.to_list() if matrix is not None else None,
    )
