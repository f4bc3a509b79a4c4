"""Generated helper script for entering a mesh node by its index."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from containmesh.topology import Topology


logger = logging.getLogger(__name__)

_USAGE = '''    echo "This script is used to enter a container by its number
	Usage:
	$0 <container_number>
	"'''

_TEMPLATE = """#!/bin/bash
if [ -z "$1" ]; then
{usage}
    exit 1
fi

case $1 in
    ''|*[!0-9]*) {usage_inline}
    exit 1 ;;
    *) ;;
esac

if [ "$1" -ge "{total}" ]; then
    echo "the container number must be less than {total}"
    exit 1
else
    sudo docker container exec -it {prefix}$1 /bin/sh
fi
"""


def render_connect_script(total_nodes: int, name_prefix: str) -> str:
    """Render the bash helper for ``total_nodes`` nodes named ``name_prefix<n>``."""
    if total_nodes < 1:
        raise ValueError(f"total nodes must be >= 1, got {total_nodes}")
    return _TEMPLATE.format(
        usage=_USAGE,
        usage_inline=_USAGE.strip(),
        total=total_nodes,
        prefix=name_prefix,
    )


def write_connect_script(path: str | Path, topology: Topology) -> Path:
    """Write the helper script for ``topology`` and make it executable."""
    script = Path(path)
    script.write_text(render_connect_script(topology.total_nodes, topology.name_prefix))
    os.chmod(script, 0o755)
    logger.info(f"Bash script successfully created: {script}")
    return script
