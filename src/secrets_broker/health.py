"""Liveness, readiness and metrics endpoint."""

from __future__ import annotations

import threading
from typing import Any

from prometheus_client import make_wsgi_app
from werkzeug.middleware.dispatcher import DispatcherMiddleware
from werkzeug.serving import make_server
from werkzeug.wrappers import Request, Response

_PROBES = {
    "/healthz": '{"status":"ok"}',
    "/readyz": '{"status":"ready"}',
}


@Request.application
def probe_app(request: Request) -> Response:
    """Answer the kubelet's probes."""
    body = _PROBES.get(request.path)
    if body is None:
        return Response('{"error":"not found"}', status=404, mimetype="application/json")
    return Response(body, mimetype="application/json")


def create_combined_wsgi_app() -> Any:
    """Probes at the root with the Prometheus exporter mounted at ``/metrics``."""
    return DispatcherMiddleware(probe_app, {"/metrics": make_wsgi_app()})


def start_http_server(port: int) -> threading.Thread:
    """Serve the combined app from a daemon thread.

    Args:
        port: Port to listen on, all interfaces

    Returns:
        The serving thread
    """
    server = make_server("", port, create_combined_wsgi_app(), threaded=True)
    thread = threading.Thread(target=server.serve_forever, name="health-server", daemon=True)
    thread.start()
    return thread
