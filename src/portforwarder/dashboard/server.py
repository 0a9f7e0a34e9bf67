"""Background HTTP server hosting the dashboard."""

import socket
import threading

from flask import Flask
from werkzeug.serving import (
    BaseWSGIServer,
    get_sockaddr,
    make_server,
    select_address_family,
)

from ..common.logging import get_logger

logger = get_logger(__name__)

DEFAULT_HOST = "0.0.0.0"


class DashboardServer:
    """Serves a WSGI app on its own thread until stopped."""

    def __init__(self, app: Flask, port: int, host: str = DEFAULT_HOST):
        self.app = app
        self.port = port
        self.host = host
        self._server: BaseWSGIServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Bind the port and start serving.

        Raises:
            OSError: If the port cannot be bound
        """
        if self._server is not None:
            logger.warning("Dashboard already running", port=self.port)
            return

        # werkzeug exits the interpreter on bind errors, so bind here and hand
        # it the listening descriptor
        listener = self._bind()
        try:
            self._server = make_server(
                self.host, self.port, self.app, threaded=True, fd=listener.fileno()
            )
        finally:
            listener.close()
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="dashboard", daemon=True
        )
        self._thread.start()
        logger.info(
            f"Listening on http://127.0.0.1:{self.port}/", host=self.host, port=self.port
        )

    def _bind(self) -> socket.socket:
        family = select_address_family(self.host, self.port)
        listener = socket.socket(family, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind(get_sockaddr(self.host, self.port, family))
            listener.listen(128)
        except OSError:
            listener.close()
            raise
        return listener

    @property
    def bound_port(self) -> int | None:
        """Port actually bound, useful when started on port 0."""
        if self._server is None:
            return None
        return self._server.server_address[1]

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop serving and release the port."""
        server, thread = self._server, self._thread
        self._server = None
        self._thread = None
        if server is None:
            return

        server.shutdown()
        server.server_close()
        if thread is not None:
            thread.join(timeout)
        logger.info("Dashboard stopped", port=self.port)
