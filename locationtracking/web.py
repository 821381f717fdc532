"""A small JSON-over-HTTP server with request metrics."""

from __future__ import annotations

import json
import logging
import threading
from collections import Counter
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Mapping

log = logging.getLogger(__name__)

Handler = Callable[[bytes], "tuple[int, Any]"]


class RequestMetrics:
    """Counts handled requests and renders them in the Prometheus text format."""

    def __init__(self) -> None:
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def record(self, method: str, path: str, status: int) -> None:
        with self._lock:
            self._counts[(method, path, str(status))] += 1

    def render(self) -> str:
        lines = [
            "# HELP http_requests_total Total HTTP requests handled.",
            "# TYPE http_requests_total counter",
        ]
        with self._lock:
            items = sorted(self._counts.items())
        for (method, path, code), count in items:
            path = path.replace("\\", "\\\\").replace('"', '\\"')
            lines.append(f'http_requests_total{{method="{method}",path="{path}",code="{code}"}} {count}')
        return "\n".join(lines) + "\n"


class JsonServer:
    """Routes (method, path) to handlers that take a body and return (status, payload).

    A payload of None sends an empty body; otherwise it is sent as JSON.
    GET /metrics is always served.
    """

    def __init__(self, routes: Mapping[tuple[str, str], Handler], address: tuple[str, int] = ("", 8080)) -> None:
        self.metrics = RequestMetrics()
        self._routes = dict(routes)
        self._server = ThreadingHTTPServer(address, self._make_handler())
        self._server.daemon_threads = True

    @property
    def port(self) -> int:
        return self._server.server_address[1]

    def _make_handler(self):
        server = self

        class _RequestHandler(BaseHTTPRequestHandler):
            def _dispatch(self) -> None:
                method, path = self.command, self.path.split("?", 1)[0]
                length = int(self.headers.get("Content-Length") or 0)
                body = self.rfile.read(length) if length else b""
                status, content, ctype = server._respond(method, path, body)
                self.send_response(status)
                if content:
                    self.send_header("Content-Type", ctype)
                self.send_header("Content-Length", str(len(content)))
                self.end_headers()
                self.wfile.write(content)
                server.metrics.record(method, path, status)

            do_GET = do_POST = do_PUT = do_DELETE = do_PATCH = _dispatch

            def log_message(self, format: str, *args: Any) -> None:
                log.debug(format, *args)

        return _RequestHandler

    def _respond(self, method: str, path: str, body: bytes) -> tuple[int, bytes, str]:
        if path == "/metrics" and method == "GET":
            return 200, self.metrics.render().encode(), "text/plain; version=0.0.4"
        handler = self._routes.get((method, path))
        if handler is None:
            known = path == "/metrics" or any(p == path for _, p in self._routes)
            return (405 if known else 404), b"", ""
        try:
            status, payload = handler(body)
        except Exception:
            log.exception("error handling %s %s", method, path)
            return 500, b"", ""
        if payload is None:
            return status, b"", ""
        return status, (json.dumps(payload) + "\n").encode(), "application/json"

    def serve_forever(self) -> None:
        self._server.serve_forever()

    def shutdown(self, timeout: float = 10.0) -> bool:
        """Stop serving; return False if that took longer than timeout seconds."""
        stopper = threading.Thread(target=self._server.shutdown, daemon=True)
        stopper.start()
        stopper.join(timeout)
        self._server.server_close()
        return not stopper.is_alive()