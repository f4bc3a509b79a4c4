"""Centralized naming conventions for mesh networks and nodes.

All components that construct or look up container/network names MUST use
these functions so that build-time creation and prefix-based teardown agree
on resource identity.
"""

# Prefix placed in front of the image reference to form node names
NODE_NAME_PREFIX = "cont_"


def default_name_prefix(image_ref: str) -> str:
    """Node name prefix derived from the image reference.

    Format: cont_{image_ref}
    """
    return f"{NODE_NAME_PREFIX}{image_ref}"


def network_name(prefix: str, group_index: int) -> str:
    """Generate the network name for a group.

    Format: {prefix}{group_index}
    """
    if group_index < 0:
        raise ValueError(f"group index must be >= 0, got {group_index}")
    return f"{prefix}{group_index}"


def node_name(prefix: str, global_index: int) -> str:
    """Generate the container name for a node.

    Format: {prefix}{global_index}
    """
    if global_index < 0:
        raise ValueError(f"node index must be >= 0, got {global_index}")
    return f"{prefix}{global_index}"


def global_index(group_index: int, local_index: int, nodes_per_group: int) -> int:
    """Flatten (group, local) into the mesh-wide node index."""
    if nodes_per_group < 1:
        raise ValueError(f"nodes per group must be >= 1, got {nodes_per_group}")
    if group_index < 0 or not 0 <= local_index < nodes_per_group:
        raise ValueError(
            f"index ({group_index}, {local_index}) out of range for "
            f"{nodes_per_group} nodes per group"
        )
    return group_index * nodes_per_group + local_index


def split_index(index: int, nodes_per_group: int) -> tuple[int, int]:
    """Inverse of global_index: return (group_index, local_index)."""
    if nodes_per_group < 1:
        raise ValueError(f"nodes per group must be >= 1, got {nodes_per_group}")
    if index < 0:
        raise ValueError(f"node index must be >= 0, got {index}")
    return divmod(index, nodes_per_group)
