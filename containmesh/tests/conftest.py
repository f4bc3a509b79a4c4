from __future__ import annotations

import pytest

from containmesh.config import settings
from containmesh.errors import NodeNotFound, RuntimeOperationFailed
from containmesh.runtime import reset_runtimes
from containmesh.runtime.base import (
    ContainerInfo,
    ContainerSpec,
    ContainerStatus,
    NetworkInfo,
    Runtime,
)


class FakeRuntime(Runtime):
    """In-memory runtime that records every call.

    ``fail_on`` holds (operation, resource) pairs that raise
    RuntimeOperationFailed when hit.
    """

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.containers: dict[str, ContainerInfo] = {}
        self.networks: dict[str, NetworkInfo] = {}
        self.memberships: dict[str, list[str]] = {}  # container name -> network names
        self.specs: dict[str, ContainerSpec] = {}
        self.fail_on: set[tuple[str, str]] = set()

    @property
    def name(self) -> str:
        return "fake"

    def _record(self, operation: str, resource: str) -> None:
        self.calls.append((operation, resource))
        if (operation, resource) in self.fail_on:
            raise RuntimeOperationFailed(operation, resource, "injected failure")

    def add_container(self, name: str, status=ContainerStatus.RUNNING) -> ContainerInfo:
        info = ContainerInfo(id=f"c-{name}", name=name, status=status)
        self.containers[info.id] = info
        self.memberships.setdefault(name, [])
        return info

    def add_network(self, name: str) -> NetworkInfo:
        info = NetworkInfo(id=f"n-{name}", name=name)
        self.networks[info.id] = info
        return info

    def create_network(self, name: str, driver: str = "bridge") -> str:
        self._record("create_network", name)
        return self.add_network(name).id

    def remove_network(self, network_id: str) -> None:
        self._record("remove_network", network_id)
        if network_id not in self.networks:
            raise RuntimeOperationFailed("network remove", network_id, "no such network")
        del self.networks[network_id]

    def list_networks(self) -> list[NetworkInfo]:
        self.calls.append(("list_networks", "*"))
        return list(self.networks.values())

    def create_container(self, spec: ContainerSpec) -> str:
        self._record("create_container", spec.name)
        if spec.network not in {n.name for n in self.networks.values()}:
            raise RuntimeOperationFailed("container create", spec.name, "network missing")
        info = self.add_container(spec.name, ContainerStatus.CREATED)
        self.memberships[spec.name] = [spec.network]
        self.specs[spec.name] = spec
        return info.id

    def start_container(self, container_id: str) -> None:
        self._record("start_container", container_id)
        if container_id not in self.containers:
            raise NodeNotFound(f"container {container_id} not found", container_id)
        self.containers[container_id].status = ContainerStatus.RUNNING

    def stop_container(self, container_id: str) -> None:
        self._record("stop_container", container_id)
        if container_id not in self.containers:
            raise NodeNotFound(f"container {container_id} not found", container_id)
        self.containers[container_id].status = ContainerStatus.EXITED

    def remove_container(self, container_id: str, force: bool = True) -> None:
        self._record("remove_container", container_id)
        info = self.containers.pop(container_id, None)
        if info is None:
            raise RuntimeOperationFailed("container remove", container_id, "no such container")
        self.memberships.pop(info.name, None)

    def list_containers(self, all: bool = True) -> list[ContainerInfo]:
        self.calls.append(("list_containers", "*"))
        return [
            c for c in self.containers.values()
            if all or c.status == ContainerStatus.RUNNING
        ]

    def connect(self, network: str, container: str) -> None:
        self._record("connect", f"{container}->{network}")
        if container not in self.memberships:
            raise RuntimeOperationFailed("network connect", container, "no such container")
        self.memberships[container].append(network)

    def build_image(self, context_path: str, tag: str, dockerfile: str = "Dockerfile") -> str:
        self._record("build_image", tag)
        return f"img-{tag}"

    def pull_image(self, reference: str) -> str:
        self._record("pull_image", reference)
        return f"img-{reference}"

    def operations(self, operation: str) -> list[str]:
        return [resource for op, resource in self.calls if op == operation]


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch, tmp_path):
    """Keep generated files in a temp dir and drop cached runtimes."""
    monkeypatch.setattr(settings, "connect_script", str(tmp_path / "connect_to_host.sh"))
    reset_runtimes()
    yield
    reset_runtimes()


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()
