"""Exception types raised by the mesh orchestration core."""

from __future__ import annotations


class MeshError(Exception):
    """Base exception for mesh orchestration errors."""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTopology(MeshError):
    """Raised when topology parameters or the adjacency matrix are invalid."""
    pass


class RuntimeOperationFailed(MeshError):
    """A container runtime call failed.

    Carries the runtime operation, the resource it targeted and the
    underlying cause. ``step`` is filled in by the orchestration layer so
    the caller can tell which phase of a build or teardown was interrupted.
    """
    def __init__(
        self,
        operation: str,
        resource: str,
        cause: BaseException | str | None = None,
        step: str | None = None,
    ):
        self.operation = operation
        self.resource = resource
        self.cause = cause
        self.step = step
        super().__init__(self._format())

    def _format(self) -> str:
        prefix = f"[{self.step}] " if self.step else ""
        detail = f": {self.cause}" if self.cause else ""
        return f"{prefix}{self.operation} failed for {self.resource}{detail}"

    def with_step(self, step: str) -> "RuntimeOperationFailed":
        """Tag the error with the orchestration step that was running."""
        self.step = step
        self.message = self._format()
        self.args = (self.message,)
        return self


class NodeNotFound(MeshError):
    """Raised when a node cannot be resolved to a runtime container."""
    def __init__(self, message: str, name: str | None = None):
        super().__init__(message)
        self.name = name


class InvalidTransition(MeshError):
    """Raised when a stop/restart is requested from the wrong node state."""
    def __init__(self, message: str, global_index: int | None = None):
        super().__init__(message)
        self.global_index = global_index
