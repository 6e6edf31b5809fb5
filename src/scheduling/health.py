"""Health and readiness endpoints for container orchestration.

Provides two top-level routes:

- ``GET /health`` -- Liveness probe.  Returns 200 if the process is alive.
- ``GET /ready``  -- Readiness probe.  Returns 200 only when the scheduling
  database answers a trivial query **and** the delivery service is wired.
  Returns 503 with per-check details otherwise.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*.

    Args:
        app: The FastAPI application instance.
    """

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe -- always returns 200 if the process is running."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe -- checks the database and the delivery service."""
        services: dict[str, Any] = request.app.state.services
        checks: dict[str, str] = {}

        store = services.get("delivery_store")
        if store is not None:
            try:
                await asyncio.to_thread(store.ping)
                checks["database"] = "ok"
            except Exception:
                checks["database"] = "fail"
        else:
            checks["database"] = "fail"

        checks["delivery_service"] = "ok" if services.get("delivery_service") else "fail"

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
