"""Environment builder: networks, then nodes, then links.

Ordering is the correctness mechanism. Every network exists before any node
joins it and every node exists before any link attaches it. Nodes of a
single group are independent and may be created concurrently; groups and
phases never overlap.

Architecture:

    ┌────────────┐   ┌────────────┐   ┌────────────┐
    │  networks  │──>│   nodes    │──>│   links    │
    │ (1/group)  │   │ (N/group)  │   │ (matrix)   │
    └────────────┘   └────────────┘   └────────────┘
            │               │               │
            └───── ProgressReporter.emit ───┘

A failure aborts the remaining steps. Nothing is rolled back; the caller is
expected to run the reaper, which works from names alone.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from containmesh import naming
from containmesh.errors import NodeNotFound, RuntimeOperationFailed
from containmesh.lifecycle import LifecycleTracker, NodeState
from containmesh.progress import NullReporter, ProgressReporter, timed
from containmesh.runtime.base import ContainerSpec, Runtime
from containmesh.topology import AdjacencyMatrix, Topology, validate


logger = logging.getLogger(__name__)

NETWORK_DRIVER = "bridge"


@dataclass
class Network:
    """One group's isolated network."""
    group_index: int
    name: str
    runtime_id: str = ""


@dataclass
class Node:
    """One container of the mesh."""
    global_index: int
    group_index: int
    local_index: int
    name: str
    runtime_id: str = ""


@dataclass
class Environment:
    """Everything created for one mesh run."""
    topology: Topology
    matrix: AdjacencyMatrix
    tracker: LifecycleTracker
    networks: list[Network] = field(default_factory=list)
    nodes: list[Node] = field(default_factory=list)
    links: list[tuple[int, int]] = field(default_factory=list)  # (source group, target group)

    def node(self, index: int) -> Node:
        return self.nodes[index]

    def node_state(self, index: int) -> NodeState | None:
        return self.tracker.state(index)


class EnvironmentBuilder:
    """Drives the runtime through the build sequence for a topology."""

    def __init__(
        self,
        runtime: Runtime,
        reporter: ProgressReporter | None = None,
        parallel: bool = False,
    ):
        self.runtime = runtime
        self.reporter = reporter or NullReporter()
        self.parallel = parallel

    async def build(
        self,
        topology: Topology,
        matrix: AdjacencyMatrix,
        tracker: LifecycleTracker | None = None,
    ) -> Environment:
        """Create the whole mesh.

        Raises:
            InvalidTopology: the matrix does not fit the topology (checked
                before any runtime call).
            RuntimeOperationFailed: a runtime call failed; ``step`` names the
                phase that was interrupted.
        """
        matrix = validate(matrix, topology.group_count)
        env = Environment(
            topology=topology,
            matrix=matrix,
            tracker=tracker or LifecycleTracker(topology, self.runtime),
        )
        logger.info(
            f"Building mesh: {topology.group_count} networks x "
            f"{topology.nodes_per_group} containers, {topology.links_per_pair} links per pair"
        )
        if topology.privileged:
            logger.warning("Containers will run in privileged mode")

        await self._run_step("networks", self._create_networks(env))
        await self._run_step("containers", self._create_nodes(env))
        if topology.group_count > 1:
            await self._run_step("links", self._create_links(env))
        logger.info(
            f"Mesh ready: {len(env.networks)} networks, {len(env.nodes)} containers, "
            f"{len(env.links)} group links"
        )
        return env

    async def _run_step(self, step: str, coro) -> None:
        try:
            await coro
        except RuntimeOperationFailed as e:
            logger.error(f"Build aborted during {step}: {e}")
            raise e.with_step(step)
        except NodeNotFound as e:
            # container vanished between create and start
            logger.error(f"Build aborted during {step}: {e}")
            raise RuntimeOperationFailed(
                "container start", e.name or "?", e.message, step=step
            ) from e

    async def _create_networks(self, env: Environment) -> None:
        for group in range(env.topology.group_count):
            name = env.topology.network_name(group)
            with timed(self.reporter, f"Network {name} created successfully"):
                network_id = await asyncio.to_thread(
                    self.runtime.create_network, name, NETWORK_DRIVER
                )
            env.networks.append(Network(group_index=group, name=name, runtime_id=network_id))

    async def _create_nodes(self, env: Environment) -> None:
        topology = env.topology
        for group in range(topology.group_count):
            nodes = []
            for local in range(topology.nodes_per_group):
                index = naming.global_index(group, local, topology.nodes_per_group)
                nodes.append(Node(
                    global_index=index,
                    group_index=group,
                    local_index=local,
                    name=topology.node_name(index),
                ))
            if self.parallel:
                # let every sibling settle so nothing is created after we raise
                results = await asyncio.gather(
                    *(self._create_node(env, n) for n in nodes), return_exceptions=True
                )
                failures = [r for r in results if isinstance(r, BaseException)]
                if failures:
                    raise failures[0]
            else:
                for node in nodes:
                    await self._create_node(env, node)
            env.nodes.extend(nodes)

    async def _create_node(self, env: Environment, node: Node) -> None:
        spec = ContainerSpec(
            name=node.name,
            image=env.topology.image_ref,
            network=env.topology.network_name(node.group_index),
            privileged=env.topology.privileged,
        )
        with timed(self.reporter, f"Container {node.name} created successfully"):
            node.runtime_id = await asyncio.to_thread(self.runtime.create_container, spec)
        env.tracker.record(node.global_index, NodeState.CREATED)

        with timed(self.reporter, f"Container {node.name} started successfully"):
            await asyncio.to_thread(self.runtime.start_container, node.runtime_id)
        env.tracker.record(node.global_index, NodeState.RUNNING)

    async def _create_links(self, env: Environment) -> None:
        topology = env.topology
        for source, target in env.matrix.links():
            target_network = topology.network_name(target)
            with timed(self.reporter, f"Network {source} linked to network {target}"):
                for index in topology.link_node_indices(source):
                    await asyncio.to_thread(
                        self.runtime.connect, target_network, topology.node_name(index)
                    )
            env.links.append((source, target))
