"""Base runtime interface for container mesh orchestration.

The orchestration core only depends on the semantics of these operations:
each call is synchronous, returns an opaque ID (or nothing), and raises
RuntimeOperationFailed on failure. Async callers run them through
``asyncio.to_thread``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class ContainerStatus(str, Enum):
    """Runtime status of a container."""
    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    RESTARTING = "restarting"
    EXITED = "exited"
    DEAD = "dead"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "ContainerStatus":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass
class ContainerInfo:
    """A container as reported by the runtime."""
    id: str
    name: str
    status: ContainerStatus = ContainerStatus.UNKNOWN


@dataclass
class NetworkInfo:
    """A network as reported by the runtime."""
    id: str
    name: str


@dataclass
class ContainerSpec:
    """Everything needed to create one mesh node."""
    name: str
    image: str
    network: str
    command: tuple[str, ...] = ("tail", "-f", "/dev/null")
    privileged: bool = False


class Runtime(ABC):
    """Abstract base class for container runtimes."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Runtime name (e.g., 'docker')."""
        ...

    @abstractmethod
    def create_network(self, name: str, driver: str = "bridge") -> str:
        """Create a network and return its ID."""
        ...

    @abstractmethod
    def remove_network(self, network_id: str) -> None:
        ...

    @abstractmethod
    def list_networks(self) -> list[NetworkInfo]:
        ...

    @abstractmethod
    def create_container(self, spec: ContainerSpec) -> str:
        """Create (but do not start) a container and return its ID."""
        ...

    @abstractmethod
    def start_container(self, container_id: str) -> None:
        ...

    @abstractmethod
    def stop_container(self, container_id: str) -> None:
        ...

    @abstractmethod
    def remove_container(self, container_id: str, force: bool = True) -> None:
        ...

    @abstractmethod
    def list_containers(self, all: bool = True) -> list[ContainerInfo]:
        """List containers, including stopped ones when ``all`` is set."""
        ...

    @abstractmethod
    def connect(self, network: str, container: str) -> None:
        """Attach an existing container to an additional network."""
        ...

    @abstractmethod
    def build_image(self, context_path: str, tag: str, dockerfile: str = "Dockerfile") -> str:
        """Build an image from a directory and return its ID."""
        ...

    @abstractmethod
    def pull_image(self, reference: str) -> str:
        """Pull an image and return its ID."""
        ...

    def find_container(self, name: str, running_only: bool = False) -> ContainerInfo | None:
        """Find a container by exact name.

        Runtimes may report names with a leading slash; it is ignored.
        """
        for container in self.list_containers(all=not running_only):
            if container.name.lstrip("/") != name:
                continue
            if running_only and container.status != ContainerStatus.RUNNING:
                continue
            return container
        return None
