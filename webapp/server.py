"""Background WSGI listener serving the health application."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from flask import Flask
from werkzeug.serving import BaseWSGIServer, make_server

from shared_lib.errors import HealthListenerError

DEFAULT_HOST = "0.0.0.0"


class HealthServer:
    """Serves ``app`` on a daemon thread; restartable on a new port."""

    def __init__(self, app: Flask, host: str = DEFAULT_HOST) -> None:
        self._app = app
        self._host = host
        self._lock = threading.Lock()
        self._server: Optional[BaseWSGIServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._server is not None

    @property
    def port(self) -> Optional[int]:
        with self._lock:
            if self._server is None:
                return None
            return int(self._server.server_address[1])

    def start(self, port: int) -> None:
        with self._lock:
            if self._server is not None:
                return
            try:
                server = make_server(self._host, port, self._app, threaded=True)
            except (OSError, SystemExit) as exc:
                # werkzeug exits instead of raising when the port is taken.
                raise HealthListenerError(
                    f"Cannot listen for health checks on {self._host}:{port}"
                ) from exc
            thread = threading.Thread(
                target=server.serve_forever,
                name="health-server",
                daemon=True,
            )
            self._server = server
            self._thread = thread
            thread.start()
        logging.info(
            "Health endpoint listening on http://%s:%s/health",
            self._host,
            server.server_address[1],
        )

    def stop(self) -> None:
        with self._lock:
            server, thread = self._server, self._thread
            self._server = None
            self._thread = None
        if server is None:
            return
        server.shutdown()
        server.server_close()
        if thread is not None:
            thread.join(timeout=5)
        logging.info("Health endpoint stopped.")

    def restart(self, port: int) -> None:
        self.stop()
        self.start(port)
