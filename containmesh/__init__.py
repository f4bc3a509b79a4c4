"""ContainMesh - isolated multi-container test meshes on a single host."""

__version__ = "0.1.0"
