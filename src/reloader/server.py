"""Uvicorn server running the reloader app on a background thread."""

import threading
import time

import uvicorn
from fastapi import FastAPI

from reloader.errors import ConstructionError


class ServerThread:
    """Runs a uvicorn server with its own event loop on a daemon thread.

    Uvicorn skips signal handler installation off the main thread, so the
    host application keeps control of SIGINT/SIGTERM.

    Attributes:
        host: Bind address.
        requested_port: Port passed in; 0 lets the OS choose.
    """

    def __init__(
        self,
        app: FastAPI,
        host: str = "127.0.0.1",
        port: int = 9000,
        shutdown_timeout: float = 5.0,
        log_level: str = "warning",
    ) -> None:
        """Initialize server thread.

        Args:
            app: ASGI application to serve.
            host: Bind address.
            port: TCP port, 0 for any free port.
            shutdown_timeout: Seconds uvicorn waits for open connections.
            log_level: Level for uvicorn's own loggers.
        """
        self.host = host
        self.requested_port = port
        self._shutdown_timeout = shutdown_timeout
        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=log_level,
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=max(1, int(shutdown_timeout)),
        )
        self._server = uvicorn.Server(config)
        self._thread: threading.Thread | None = None
        self._port: int | None = None
        self._startup_error: BaseException | None = None

    @property
    def is_running(self) -> bool:
        """Whether the server thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def port(self) -> int:
        """Port actually bound. Only valid after ``start``."""
        if self._port is None:
            raise RuntimeError("server has not started")
        return self._port

    def start(self, timeout: float = 5.0) -> int:
        """Start serving and wait until the socket is bound.

        Args:
            timeout: Seconds to wait for startup.

        Returns:
            The bound port.

        Raises:
            ConstructionError: If the server fails to bind in time.
        """
        self._thread = threading.Thread(
            target=self._serve,
            name="reloader-server",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + timeout
        while not self._server.started:
            if not self._thread.is_alive():
                raise ConstructionError(
                    f"server failed to bind {self.host}:{self.requested_port}: "
                    f"{self._startup_error}"
                ) from self._startup_error
            if time.monotonic() > deadline:
                self.stop()
                raise ConstructionError(f"server did not start within {timeout}s")
            time.sleep(0.01)

        self._port = self._bound_port()
        return self._port

    def _serve(self) -> None:
        try:
            self._server.run()
        except SystemExit as e:
            # uvicorn exits from inside the except block that caught the bind error
            self._startup_error = e.__context__ or e
        except Exception as e:
            self._startup_error = e

    def stop(self) -> None:
        """Ask uvicorn to exit and wait for the thread. Idempotent."""
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=self._shutdown_timeout + 1.0)
            self._thread = None

    def _bound_port(self) -> int:
        for server in self._server.servers:
            for sock in server.sockets:
                return int(sock.getsockname()[1])
        return self.requested_port
