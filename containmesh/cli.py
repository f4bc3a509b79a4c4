"""Console entrypoint for the ``containmesh`` command.

Flow: remove leftovers from earlier runs, prepare the image, build the mesh
while streaming progress, write the connect helper, run the interactive menu,
then tear everything down again.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Awaitable, Callable, List, Optional, TypeVar

from containmesh.builder import Environment, EnvironmentBuilder
from containmesh.config import MeshConfig, load_yaml_config, settings
from containmesh.connect_script import write_connect_script
from containmesh.errors import InvalidTopology, MeshError
from containmesh.lifecycle import LifecycleTracker
from containmesh.progress import ProgressReporter, QueueReporter
from containmesh.reaper import Reaper, teardown
from containmesh.runtime import Runtime, get_runtime
from containmesh.status import snapshot
from containmesh.topology import AdjacencyMatrix, Topology, acquire, format_matrix


logger = logging.getLogger(__name__)

T = TypeVar("T")

MENU_CHOICES = [
    "Print the network adjacency matrix",
    "Stop a container",
    "Restart a container",
    "Exit",
]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="containmesh",
        description="Create an isolated multi-container test mesh on this host.",
    )
    parser.add_argument("-i", dest="image_name", default=settings.image_name, help="Image name")
    parser.add_argument(
        "-c", dest="num_containers", type=int, default=settings.num_containers,
        help="Number of containers per network",
    )
    parser.add_argument(
        "-n", dest="num_networks", type=int, default=settings.num_networks,
        help="Number of networks",
    )
    parser.add_argument(
        "-N", dest="network_name", default=settings.network_name, help="Network name prefix",
    )
    parser.add_argument(
        "-l", dest="num_links", type=int, default=settings.num_links,
        help="Number of containers linked into each target network",
    )
    parser.add_argument(
        "--path", dest="dockerfile_path", default=settings.dockerfile_path,
        help="Path to the folder that contains the Dockerfile",
    )
    parser.add_argument(
        "-b", "--ignore-build", dest="ignore_build",
        action=argparse.BooleanOptionalAction, default=settings.ignore_build,
        help="Skip building the image",
    )
    parser.add_argument(
        "-p", "--pull", dest="pull_image", action="store_true", default=settings.pull_image,
        help="Pull the image from Docker Hub",
    )
    parser.add_argument("-y", dest="yaml_path", help="YAML configuration file")
    parser.add_argument(
        "--privileged", action="store_true", default=settings.privileged,
        help="Run containers in privileged mode (lets nodes manage their interfaces)",
    )
    parser.add_argument(
        "--parallel", action="store_true", default=settings.parallel_group_create,
        help="Create the containers of a network concurrently",
    )
    parser.add_argument("--api-port", type=int, help="Serve the status API on this port")
    parser.add_argument(
        "--reap-only", action="store_true",
        help="Only remove resources left over by a previous run",
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_config(args: argparse.Namespace) -> MeshConfig:
    """Merge command line flags with an optional YAML file."""
    config = MeshConfig(
        image_name=args.image_name,
        network_name=args.network_name,
        num_containers=args.num_containers,
        num_networks=args.num_networks,
        num_links=args.num_links,
        dockerfile_path=args.dockerfile_path,
        ignore_build=args.ignore_build,
        pull_image=args.pull_image,
        privileged=args.privileged,
    )
    if args.yaml_path:
        config = load_yaml_config(args.yaml_path, base=config)
    return config


async def with_progress(
    title: str,
    work: Callable[[ProgressReporter], Awaitable[T]],
    output: Callable[[str], None] = print,
) -> T:
    """Run ``work`` while a separate task renders its progress events."""
    reporter = QueueReporter()

    async def render() -> None:
        output(title)
        async for event in reporter:
            output(f"  {event}")

    view = asyncio.create_task(render())
    try:
        return await work(reporter)
    finally:
        reporter.close()
        await view


async def _ask(prompt: Callable[[str], str], text: str) -> str:
    return await asyncio.to_thread(prompt, text)


async def _ask_index(prompt: Callable[[str], str], output, total: int) -> int:
    output(f"The containers are numbered from 0 to {total - 1}")
    while True:
        answer = await _ask(prompt, "Enter the container number: ")
        try:
            index = int(answer.strip())
        except ValueError:
            index = -1
        if 0 <= index < total:
            return index
        output("Invalid container number")


async def run_menu(
    env: Environment,
    prompt: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
) -> None:
    """Post-build menu: inspect the matrix, stop or restart nodes."""
    topology = env.topology
    while True:
        output("\n\t\tMENU\nChoose what you want to do:\n")
        for number, choice in enumerate(MENU_CHOICES, start=1):
            output(f"  {number}) {choice}")
        answer = (await _ask(prompt, "> ")).strip()

        if answer == "1":
            if topology.group_count == 1:
                output("The adjacency matrix is not available because there is only 1 network")
            else:
                output(format_matrix(env.matrix))
        elif answer in ("2", "3"):
            index = await _ask_index(prompt, output, topology.total_nodes)
            try:
                if answer == "2":
                    await env.tracker.stop(index)
                    output(f"Container {index} stopped successfully")
                else:
                    await env.tracker.restart(index)
                    output(f"Container {index} restarted successfully")
            except MeshError as e:
                output(f"Error: {e}")
        elif answer in ("4", "q"):
            output("Exiting...")
            return
        else:
            output("Invalid choice")


async def reap_leftovers(
    runtime: Runtime,
    topology: Topology,
    title: str,
    output: Callable[[str], None] = print,
):
    """Remove every resource matching the topology prefixes."""
    return await with_progress(
        title,
        lambda reporter: Reaper(runtime, reporter).reap(
            topology.name_prefix, topology.network_prefix
        ),
        output,
    )


async def prepare_image(runtime: Runtime, config: MeshConfig) -> None:
    if not config.ignore_build:
        await asyncio.to_thread(runtime.build_image, config.dockerfile_path, config.image_name)
    if config.pull_image:
        await asyncio.to_thread(runtime.pull_image, config.image_name)


async def run(
    config: MeshConfig,
    topology: Topology,
    matrix: AdjacencyMatrix,
    runtime: Runtime,
    api_port: int | None = None,
    parallel: bool = False,
    prompt: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
) -> int:
    """Full interactive session. Returns the process exit code."""
    await reap_leftovers(runtime, topology, "Deleting leftovers from previous runs...", output)
    await prepare_image(runtime, config)

    tracker = LifecycleTracker(topology, runtime)
    builder = lambda reporter: EnvironmentBuilder(runtime, reporter, parallel).build(
        topology, matrix, tracker
    )
    try:
        env = await with_progress("Setting up the environment...", builder, output)
    except MeshError as e:
        output(f"Error: {e}")
        output(
            f"The mesh is partially built. Run 'containmesh --reap-only -i {config.image_name} "
            f"-N {config.network_name}' to remove it."
        )
        return 1

    script = write_connect_script(settings.connect_script, topology)
    if api_port:
        from containmesh.api import serve_in_background
        serve_in_background(lambda: snapshot(topology, matrix, tracker), port=api_port)

    try:
        await run_menu(env, prompt, output)
    finally:
        await with_progress(
            "Deleting the environment...",
            lambda reporter: teardown(env, runtime, reporter),
            output,
        )
        script.unlink(missing_ok=True)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Parse ``containmesh`` CLI arguments and run a session."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = parse_config(args)
        topology = config.topology()
        runtime = get_runtime()
        if args.reap_only:
            asyncio.run(reap_leftovers(runtime, topology, "Deleting the environment..."))
            return 0
        matrix = acquire(topology.group_count, config.matrix())
        return asyncio.run(run(
            config, topology, matrix, runtime,
            api_port=args.api_port,
            parallel=args.parallel,
        ))
    except InvalidTopology as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    except MeshError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
