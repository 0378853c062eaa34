"""HTTP introspection endpoints for the controller."""

from typing import Any

from fastapi import FastAPI, Response

from . import metrics
from .state import TrackedEntityStore


def create_app(store: TrackedEntityStore) -> FastAPI:
    """
    Build the introspection app.

    ``/state`` serializes a store snapshot; it never waits on a diff cycle.
    """
    app = FastAPI(
        title="alb-reconciler",
        description="Tracked ingress state and controller metrics",
    )

    @app.get("/state")
    async def state() -> dict[str, Any]:
        """Current tracked-entity set."""
        return store.as_dict()

    @app.get("/metrics")
    async def prometheus_metrics() -> Response:
        """Prometheus metrics."""
        return Response(content=metrics.generate_metrics(), media_type=metrics.get_content_type())

    @app.get("/healthz")
    async def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "healthy", "initialized": store.initialized}

    return app
