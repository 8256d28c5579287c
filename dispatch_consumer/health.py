"""health.py — Liveness endpoint, served on a background thread.

GET /health -> 200 {"status": "healthy", "timestamp": <RFC3339>, "service": <name>}

Independent of the consume loop: a stalled worker invoke does not make the
process report unhealthy.
"""

from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict

from dispatch_consumer.config import DEFAULT_SERVICE_NAME, logger
from dispatch_consumer.serialization import _now_z

__all__ = ["HealthServer", "health_payload", "start_health_server"]


def health_payload(service_name: str) -> Dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": _now_z(),
        "service": service_name,
    }


class _HealthHandler(BaseHTTPRequestHandler):
    server_version = "dispatch-consumer-health"

    def _send_json_response(self, status_code: int, body: Dict[str, Any]) -> None:
        encoded = json.dumps(body).encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def do_GET(self) -> None:
        path = self.path.split("?", 1)[0]
        if path == "/health":
            self._send_json_response(200, health_payload(self.server.service_name))
        else:
            self._send_json_response(404, {"error": "not found"})

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("health: %s - %s", self.address_string(), format % args)


class HealthServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, port: int, service_name: str = DEFAULT_SERVICE_NAME, host: str = "") -> None:
        super().__init__((host, port), _HealthHandler)
        self.service_name = service_name
        self._thread = None

    @property
    def port(self) -> int:
        return self.server_address[1]

    def start(self) -> "HealthServer":
        self._thread = threading.Thread(
            target=self.serve_forever, name="health-server", daemon=True,
        )
        self._thread.start()
        logger.info("[INFO] Health check server starting on port %d", self.port)
        return self

    def stop(self, timeout: float = 5.0) -> None:
        """Stop serving and wait up to ``timeout`` seconds for the thread."""
        if self._thread is None:
            return
        self.shutdown()
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("[WARNING] Health server did not stop within %.1fs", timeout)
        self.server_close()
        self._thread = None


def start_health_server(port: int, service_name: str = DEFAULT_SERVICE_NAME) -> HealthServer:
    return HealthServer(port, service_name).start()
