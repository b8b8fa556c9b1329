from __future__ import annotations

import os

import anyio
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from netflow_tuning.config import get_settings
from netflow_tuning.errors import MetricUnavailableError
from netflow_tuning.metrics import probe_cluster_health
from server import mcp


@mcp.custom_route("/healthz", methods=["GET"])
async def healthcheck(request):
    return JSONResponse({"status": "ok"})


@mcp.custom_route("/readyz", methods=["GET"])
async def readiness(request):
    """Ready when artifacts can be written and the search engine answers."""
    settings = get_settings()
    output_ok = settings.output_dir.is_dir() and os.access(settings.output_dir, os.W_OK)

    try:
        cluster = await anyio.to_thread.run_sync(
            probe_cluster_health, settings.elasticsearch_url, settings.probe_timeout
        )
        elasticsearch = cluster.value
    except MetricUnavailableError as exc:
        elasticsearch = "unreachable"
        detail = str(exc)
    else:
        detail = None

    ready = output_ok and elasticsearch != "unreachable"
    body = {
        "status": "ready" if ready else "degraded",
        "output_dir": str(settings.output_dir),
        "output_writable": output_ok,
        "elasticsearch": elasticsearch,
    }
    if detail:
        body["error"] = detail
    return JSONResponse(body, status_code=200 if ready else 503)


# The streamable HTTP app serves /mcp and the routes above.
app = mcp.streamable_http_app()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
