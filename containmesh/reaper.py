"""Prefix-based teardown of mesh resources.

The reaper never looks at in-memory environment state. It lists every
container and network on the runtime, keeps those whose name matches the
mesh prefixes, and force-removes containers first, then networks. This makes
it the recovery path after a crash or a partially completed build, and
running it twice is harmless.

Hazard: the default predicate is a plain substring test. Any unrelated
container or network whose name contains the prefix (for example a prefix
of ``net`` and a user network called ``internet-bridge``) will be removed
too. Choose distinctive prefixes, or inject a stricter ``matches`` callable.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from containmesh.errors import RuntimeOperationFailed
from containmesh.progress import NullReporter, ProgressReporter, timed
from containmesh.runtime.base import Runtime


logger = logging.getLogger(__name__)

MatchPredicate = Callable[[str, str], bool]


def substring_match(name: str, prefix: str) -> bool:
    """True when ``prefix`` occurs anywhere in ``name``."""
    return bool(prefix) and prefix in name


def prefix_match(name: str, prefix: str) -> bool:
    """Stricter alternative: ``name`` starts with ``prefix`` (leading '/' ignored)."""
    return bool(prefix) and name.lstrip("/").startswith(prefix)


@dataclass
class ReapResult:
    """Outcome of a reap run."""
    containers_removed: list[str] = field(default_factory=list)
    networks_removed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "containers_removed": len(self.containers_removed),
            "networks_removed": len(self.networks_removed),
            "errors": list(self.errors),
        }


class Reaper:
    """Removes every runtime resource matching the mesh naming prefixes."""

    def __init__(
        self,
        runtime: Runtime,
        reporter: ProgressReporter | None = None,
        matches: MatchPredicate = substring_match,
        keep_going: bool = False,
    ):
        self.runtime = runtime
        self.reporter = reporter or NullReporter()
        self.matches = matches
        self.keep_going = keep_going

    async def reap(self, name_prefix: str, network_prefix: str) -> ReapResult:
        """Remove matching containers, then matching networks.

        Raises:
            RuntimeOperationFailed: listing failed, or a removal failed and
                ``keep_going`` is off.
        """
        result = ReapResult()

        containers = await asyncio.to_thread(self.runtime.list_containers, True)
        doomed = [c for c in containers if self.matches(c.name, name_prefix)]
        for container in doomed:
            name = container.name.lstrip("/")
            try:
                with timed(self.reporter, f"Container {name} removed successfully"):
                    await asyncio.to_thread(self.runtime.remove_container, container.id, True)
            except RuntimeOperationFailed as e:
                self._handle_failure(result, e.with_step("teardown containers"))
                continue
            result.containers_removed.append(name)

        networks = await asyncio.to_thread(self.runtime.list_networks)
        doomed_networks = [n for n in networks if self.matches(n.name, network_prefix)]
        for network in doomed_networks:
            try:
                with timed(self.reporter, f"Network {network.name} removed successfully"):
                    await asyncio.to_thread(self.runtime.remove_network, network.id)
            except RuntimeOperationFailed as e:
                self._handle_failure(result, e.with_step("teardown networks"))
                continue
            result.networks_removed.append(network.name)

        logger.info(
            f"Teardown for {name_prefix!r}/{network_prefix!r}: "
            f"{len(result.containers_removed)} containers, "
            f"{len(result.networks_removed)} networks removed"
        )
        return result

    def _handle_failure(self, result: ReapResult, error: RuntimeOperationFailed) -> None:
        if not self.keep_going:
            logger.error(f"Teardown aborted: {error}")
            raise error
        logger.warning(f"Teardown continuing past failure: {error}")
        result.errors.append(str(error))


async def teardown(
    env,
    runtime: Runtime,
    reporter: ProgressReporter | None = None,
    matches: MatchPredicate = substring_match,
) -> ReapResult:
    """Reap an environment's resources and mark its nodes removed."""
    reaper = Reaper(runtime, reporter, matches=matches)
    result = await reaper.reap(env.topology.name_prefix, env.topology.network_prefix)
    env.tracker.mark_removed()
    return result
