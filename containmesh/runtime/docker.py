"""Docker runtime for container mesh orchestration.

Wraps the Docker SDK behind the Runtime interface. Every call is timed via
``observe_runtime_call`` and Docker SDK exceptions are translated into
RuntimeOperationFailed / NodeNotFound so callers never see transport
details.
"""

from __future__ import annotations

import logging

import docker
from docker.errors import DockerException, NotFound

from containmesh.config import settings
from containmesh.errors import NodeNotFound, RuntimeOperationFailed
from containmesh.metrics import observe_runtime_call
from containmesh.runtime.base import (
    ContainerInfo,
    ContainerSpec,
    ContainerStatus,
    NetworkInfo,
    Runtime,
)


logger = logging.getLogger(__name__)

# Registry used when pulling bare image names
DEFAULT_REGISTRY = "docker.io/library/"


class DockerRuntime(Runtime):
    """Native Docker runtime backed by the Docker SDK."""

    def __init__(self, client: docker.DockerClient | None = None):
        self._docker = client

    @property
    def name(self) -> str:
        return "docker"

    @property
    def docker(self) -> docker.DockerClient:
        """Lazy-initialize Docker client."""
        if self._docker is None:
            if settings.docker_socket:
                self._docker = docker.DockerClient(
                    base_url=settings.docker_socket,
                    timeout=settings.docker_client_timeout,
                )
            else:
                self._docker = docker.from_env(timeout=settings.docker_client_timeout)
        return self._docker

    # =========================================================================
    # Networks
    # =========================================================================

    def create_network(self, name: str, driver: str = "bridge") -> str:
        with observe_runtime_call("network_create"):
            try:
                network = self.docker.networks.create(name=name, driver=driver)
            except DockerException as e:
                raise RuntimeOperationFailed("network create", name, e) from e
        logger.debug(f"Created network {name} ({network.id})")
        return network.id

    def remove_network(self, network_id: str) -> None:
        with observe_runtime_call("network_remove"):
            try:
                self.docker.networks.get(network_id).remove()
            except DockerException as e:
                raise RuntimeOperationFailed("network remove", network_id, e) from e

    def list_networks(self) -> list[NetworkInfo]:
        with observe_runtime_call("network_list"):
            try:
                networks = self.docker.networks.list()
            except DockerException as e:
                raise RuntimeOperationFailed("network list", "*", e) from e
        return [NetworkInfo(id=n.id, name=n.name) for n in networks]

    def connect(self, network: str, container: str) -> None:
        with observe_runtime_call("network_connect"):
            try:
                self.docker.networks.get(network).connect(container)
            except DockerException as e:
                raise RuntimeOperationFailed(
                    "network connect", f"{container} -> {network}", e
                ) from e

    # =========================================================================
    # Containers
    # =========================================================================

    def create_container(self, spec: ContainerSpec) -> str:
        with observe_runtime_call("container_create"):
            try:
                container = self.docker.containers.create(
                    image=spec.image,
                    command=list(spec.command),
                    name=spec.name,
                    privileged=spec.privileged,
                    network=spec.network,
                    detach=True,
                )
            except DockerException as e:
                raise RuntimeOperationFailed("container create", spec.name, e) from e
        return container.id

    def start_container(self, container_id: str) -> None:
        with observe_runtime_call("container_start"):
            try:
                self.docker.containers.get(container_id).start()
            except NotFound as e:
                raise NodeNotFound(f"container {container_id} not found", container_id) from e
            except DockerException as e:
                raise RuntimeOperationFailed("container start", container_id, e) from e

    def stop_container(self, container_id: str) -> None:
        with observe_runtime_call("container_stop"):
            try:
                self.docker.containers.get(container_id).stop(
                    timeout=settings.container_stop_timeout
                )
            except NotFound as e:
                raise NodeNotFound(f"container {container_id} not found", container_id) from e
            except DockerException as e:
                raise RuntimeOperationFailed("container stop", container_id, e) from e

    def remove_container(self, container_id: str, force: bool = True) -> None:
        with observe_runtime_call("container_remove"):
            try:
                self.docker.containers.get(container_id).remove(force=force)
            except DockerException as e:
                raise RuntimeOperationFailed("container remove", container_id, e) from e

    def list_containers(self, all: bool = True) -> list[ContainerInfo]:
        with observe_runtime_call("container_list"):
            try:
                containers = self.docker.containers.list(all=all)
            except DockerException as e:
                raise RuntimeOperationFailed("container list", "*", e) from e
        return [
            ContainerInfo(
                id=c.id,
                name=c.name,
                status=ContainerStatus.parse(c.status),
            )
            for c in containers
        ]

    # =========================================================================
    # Images
    # =========================================================================

    def build_image(self, context_path: str, tag: str, dockerfile: str = "Dockerfile") -> str:
        with observe_runtime_call("image_build"):
            try:
                image, build_logs = self.docker.images.build(
                    path=context_path,
                    dockerfile=dockerfile,
                    tag=tag,
                )
            except (DockerException, TypeError) as e:
                raise RuntimeOperationFailed("image build", tag, e) from e
        for chunk in build_logs:
            line = chunk.get("stream", "").rstrip()
            if line:
                logger.debug(f"[build {tag}] {line}")
        logger.info(f"Image {tag} built successfully")
        return image.id

    def pull_image(self, reference: str) -> str:
        full_ref = reference if "/" in reference else f"{DEFAULT_REGISTRY}{reference}"
        repository, tag = full_ref, "latest"
        if ":" in full_ref.rsplit("/", 1)[-1]:
            repository, tag = full_ref.rsplit(":", 1)
        with observe_runtime_call("image_pull"):
            try:
                image = self.docker.images.pull(repository, tag=tag)
            except DockerException as e:
                raise RuntimeOperationFailed("image pull", full_ref, e) from e
        logger.info(f"Image {full_ref} pulled successfully")
        return image.id
