"""HTTP status surface for a running mesh.

Read-only: the endpoints only call the status source they were given and
never touch the runtime or the builder.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from fastapi import FastAPI, HTTPException, Response

from containmesh import __version__
from containmesh.config import settings
from containmesh.metrics import get_metrics
from containmesh.status import MeshStatus


logger = logging.getLogger(__name__)

StatusSource = Callable[[], "MeshStatus | None"]


def create_app(status_source: StatusSource) -> FastAPI:
    """Create the status API bound to ``status_source``."""
    app = FastAPI(title="ContainMesh", version=__version__)

    @app.get("/health")
    def health():
        """Basic health check."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/api/graph")
    def graph():
        """Topology and stopped-node snapshot."""
        status = status_source()
        if status is None:
            raise HTTPException(status_code=503, detail="Mesh not built yet")
        return status.model_dump(by_alias=True)

    @app.get("/metrics")
    def metrics():
        """Prometheus metrics endpoint."""
        content, content_type = get_metrics()
        return Response(content=content, media_type=content_type)

    return app


def serve_in_background(
    status_source: StatusSource,
    host: str | None = None,
    port: int | None = None,
) -> threading.Thread:
    """Run the status API with uvicorn on a daemon thread."""
    import uvicorn

    config = uvicorn.Config(
        create_app(status_source),
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="containmesh-api", daemon=True)
    thread.start()
    logger.info(f"Status API listening on {config.host}:{config.port}")
    return thread
