"""Container runtimes for the mesh orchestrator."""

from __future__ import annotations

from typing import Callable

from containmesh.config import settings
from containmesh.runtime.base import (
    ContainerInfo,
    ContainerSpec,
    ContainerStatus,
    NetworkInfo,
    Runtime,
)
from containmesh.runtime.docker import DockerRuntime


_FACTORIES: dict[str, Callable[[], Runtime]] = {
    "docker": DockerRuntime,
}
_instances: dict[str, Runtime] = {}


def list_runtimes() -> list[str]:
    return sorted(_FACTORIES)


def get_runtime(name: str | None = None) -> Runtime:
    """Return the shared runtime instance registered under ``name``.

    Defaults to ``settings.runtime``.
    """
    name = name or settings.runtime
    if name not in _FACTORIES:
        raise ValueError(f"Unknown runtime '{name}' (available: {', '.join(list_runtimes())})")
    if name not in _instances:
        _instances[name] = _FACTORIES[name]()
    return _instances[name]


def reset_runtimes() -> None:
    """Drop cached runtime instances (used by tests)."""
    _instances.clear()


__all__ = [
    "ContainerInfo",
    "ContainerSpec",
    "ContainerStatus",
    "NetworkInfo",
    "Runtime",
    "DockerRuntime",
    "get_runtime",
    "list_runtimes",
    "reset_runtimes",
]
