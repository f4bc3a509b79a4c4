"""Per-node lifecycle state tracking.

States move created -> running -> stopped -> running (restart) and finally
to removed, which only teardown performs. The table is process-local: a
tracker only knows the nodes it was told about by the builder and the stops
it issued itself, so restarting a node stopped by another process fails.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from containmesh.errors import InvalidTransition, MeshError, NodeNotFound
from containmesh.metrics import node_operation_errors
from containmesh.runtime.base import Runtime
from containmesh.topology import Topology


logger = logging.getLogger(__name__)


class NodeState(str, Enum):
    """Lifecycle state of a mesh node."""
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    REMOVED = "removed"


class LifecycleTracker:
    """Owns the node-state table for one mesh environment."""

    def __init__(self, topology: Topology, runtime: Runtime):
        self.topology = topology
        self.runtime = runtime
        self._states: dict[int, NodeState] = {}
        self._locks: dict[int, asyncio.Lock] = {}

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.topology.total_nodes:
            raise NodeNotFound(
                f"node {index} out of range: the containers are numbered from 0 to "
                f"{self.topology.total_nodes - 1}",
                self.topology.node_name(index) if index >= 0 else None,
            )

    def _lock(self, index: int) -> asyncio.Lock:
        if index not in self._locks:
            self._locks[index] = asyncio.Lock()
        return self._locks[index]

    def state(self, index: int) -> NodeState | None:
        return self._states.get(index)

    def record(self, index: int, state: NodeState) -> None:
        """Record a state reported by the builder."""
        self._check_index(index)
        current = self._states.get(index)
        if current == NodeState.REMOVED:
            raise InvalidTransition(f"node {index} has been removed", index)
        self._states[index] = state

    def stopped(self) -> list[int]:
        """Indices of nodes this tracker has stopped, ascending."""
        return sorted(i for i, s in self._states.items() if s == NodeState.STOPPED)

    def mark_removed(self) -> None:
        """Move every tracked node to the terminal removed state."""
        for index in self._states:
            self._states[index] = NodeState.REMOVED

    async def _resolve(self, index: int, running_only: bool) -> str:
        name = self.topology.node_name(index)
        container = await asyncio.to_thread(
            self.runtime.find_container, name, running_only
        )
        if container is None:
            qualifier = "running container" if running_only else "container"
            raise NodeNotFound(f"{qualifier} {name} not found", name)
        return container.id

    async def stop(self, index: int) -> None:
        """Stop a running node.

        Raises:
            InvalidTransition: the node is not tracked as running.
            NodeNotFound: no running container carries the node's name.
        """
        self._check_index(index)
        async with self._lock(index):
            current = self._states.get(index)
            if current != NodeState.RUNNING:
                node_operation_errors.labels(operation="stop").inc()
                if current is None:
                    raise InvalidTransition(f"container {index} is not tracked as running", index)
                raise InvalidTransition(f"container {index} is {current.value}, not running", index)
            try:
                container_id = await self._resolve(index, running_only=True)
                await asyncio.to_thread(self.runtime.stop_container, container_id)
            except MeshError:
                node_operation_errors.labels(operation="stop").inc()
                raise
            self._states[index] = NodeState.STOPPED
        logger.info(f"Container {self.topology.node_name(index)} stopped successfully")

    async def restart(self, index: int) -> None:
        """Start a node previously stopped by this tracker.

        Raises:
            InvalidTransition: the node was not stopped by this tracker.
            NodeNotFound: the container no longer exists.
        """
        self._check_index(index)
        async with self._lock(index):
            if self._states.get(index) != NodeState.STOPPED:
                node_operation_errors.labels(operation="restart").inc()
                raise InvalidTransition(f"container {index} is not stopped", index)
            try:
                container_id = await self._resolve(index, running_only=False)
                await asyncio.to_thread(self.runtime.start_container, container_id)
            except MeshError:
                node_operation_errors.labels(operation="restart").inc()
                raise
            self._states[index] = NodeState.RUNNING
        logger.info(f"Container {self.topology.node_name(index)} restarted successfully")
