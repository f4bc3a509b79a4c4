"""ContainMesh configuration.

Process-wide defaults come from environment variables (``Settings``). A run
is described by ``MeshConfig``, assembled from CLI flags and optionally
overlaid with a YAML file of the form::

    ImageSettings:
      DockerFilePath: ./
      ImageName: alpine
      IgnoreBuild: true
      PullImage: false
    NetworkSettings:
      NetworkName: net
      NumLinks: 1
      NumContainers: 3
      NumNetworks: 2
      NetMatrix:
        - [false, true]
        - [false, false]
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from containmesh.errors import InvalidTopology
from containmesh.topology import AdjacencyMatrix, Topology


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    # Docker settings
    docker_socket: str = ""  # Empty means docker.from_env() defaults
    docker_client_timeout: int = 120
    runtime: str = "docker"

    # Container operations
    container_stop_timeout: int = 10

    # Run defaults (overridable from the command line)
    image_name: str = "test_name"
    network_name: str = "test_network"
    num_containers: int = 5
    num_networks: int = 1
    num_links: int = 1
    dockerfile_path: str = "./"
    ignore_build: bool = True
    pull_image: bool = False

    # Nodes can manipulate their own interfaces only when privileged
    privileged: bool = False
    # Create the nodes of a group concurrently
    parallel_group_create: bool = False

    # Status API
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Helper script
    connect_script: str = "connect_to_host.sh"

    log_level: str = "INFO"

    class Config:
        env_prefix = "CONTAINMESH_"


settings = Settings()


class ImageSection(BaseModel):
    """YAML ``ImageSettings`` section."""
    DockerFilePath: str = ""
    ImageName: str = ""
    IgnoreBuild: bool = False
    PullImage: bool = False


class NetworkSection(BaseModel):
    """YAML ``NetworkSettings`` section."""
    NetworkName: str = ""
    NumLinks: int = 0
    NumContainers: int = 0
    NumNetworks: int = 0
    NetMatrix: list[list[bool]] | None = None


class YamlConfig(BaseModel):
    ImageSettings: ImageSection = Field(default_factory=ImageSection)
    NetworkSettings: NetworkSection = Field(default_factory=NetworkSection)


class MeshConfig(BaseModel):
    """Resolved configuration for one mesh run."""
    image_name: str = settings.image_name
    network_name: str = settings.network_name
    num_containers: int = settings.num_containers
    num_networks: int = settings.num_networks
    num_links: int = settings.num_links
    dockerfile_path: str = settings.dockerfile_path
    ignore_build: bool = settings.ignore_build
    pull_image: bool = settings.pull_image
    privileged: bool = settings.privileged
    net_matrix: list[list[bool]] | None = None

    def topology(self) -> Topology:
        """Build the validated topology for this run.

        Raises:
            InvalidTopology: counts are non-positive or links exceed nodes.
        """
        return Topology(
            group_count=self.num_networks,
            nodes_per_group=self.num_containers,
            links_per_pair=self.num_links,
            image_ref=self.image_name,
            network_prefix=self.network_name,
            privileged=self.privileged,
        )

    def matrix(self) -> AdjacencyMatrix | None:
        if self.net_matrix is None:
            return None
        return AdjacencyMatrix(self.net_matrix)


def load_yaml_config(path: str | Path, base: MeshConfig | None = None) -> MeshConfig:
    """Overlay a YAML configuration file on ``base``.

    Non-empty YAML values win; ``IgnoreBuild`` and ``PullImage`` always
    override. A supplied ``NetMatrix`` must have one row per network and be
    square.

    Raises:
        InvalidTopology: the file cannot be read or parsed, or the matrix
            shape is wrong.
    """
    base = base or MeshConfig()
    file_path = Path(path).resolve()
    try:
        raw = yaml.safe_load(file_path.read_text())
    except OSError as e:
        raise InvalidTopology(f"error reading the yaml file {file_path}: {e}") from e
    except yaml.YAMLError as e:
        raise InvalidTopology(f"error parsing the yaml file {file_path}: {e}") from e

    try:
        parsed = YamlConfig.model_validate(raw or {})
    except ValidationError as e:
        raise InvalidTopology(f"invalid yaml configuration {file_path}: {e}") from e

    image = parsed.ImageSettings
    network = parsed.NetworkSettings
    updates: dict = {
        "ignore_build": image.IgnoreBuild,
        "pull_image": image.PullImage,
    }

    if network.NetMatrix is not None:
        if len(network.NetMatrix) != network.NumNetworks:
            raise InvalidTopology(
                "the number of networks is not equal to the number of rows in the matrix"
            )
        if any(len(row) != len(network.NetMatrix) for row in network.NetMatrix):
            raise InvalidTopology("the matrix is not square")
        updates["net_matrix"] = network.NetMatrix

    if image.ImageName:
        updates["image_name"] = image.ImageName
    if image.DockerFilePath:
        updates["dockerfile_path"] = image.DockerFilePath
    if network.NetworkName:
        updates["network_name"] = network.NetworkName
    if network.NumContainers:
        updates["num_containers"] = network.NumContainers
    if network.NumNetworks:
        updates["num_networks"] = network.NumNetworks
    if network.NumLinks:
        updates["num_links"] = network.NumLinks

    logger.info(f"Loaded configuration from {file_path}")
    return base.model_copy(update=updates)
