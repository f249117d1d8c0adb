import logging
import signal
import socket
from enum import Enum

import uvicorn
from fastapi import FastAPI

from .config import Settings

logger = logging.getLogger(__name__)


class ServerState(str, Enum):
    STARTING = "starting"
    LISTENING = "listening"
    DRAINING = "draining"
    STOPPED = "stopped"


class ProxyServer(uvicorn.Server):
    """
    uvicorn server with the router's shutdown semantics.

    SIGTERM and SIGINT both start a drain: the listening socket is closed and
    every request already accepted runs to completion, with no timeout. The
    signal is not re-raised afterwards, so the process exits with status 0.
    """
    def __init__(self, app: FastAPI, settings: Settings):
        config = uvicorn.Config(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level,
            lifespan="on",
            timeout_graceful_shutdown=None,
        )
        super().__init__(config)
        self.settings = settings
        self.in_flight = app.state.in_flight
        self.state = ServerState.STARTING

    def bind(self) -> socket.socket:
        """Bind the listening socket, exiting with status 1 if that fails."""
        sock = socket.socket(socket.AF_INET6 if ":" in self.settings.host else socket.AF_INET)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.settings.host, self.settings.port))
        except OSError as exc:
            sock.close()
            logger.error("Could not bind %s:%d: %s", self.settings.host, self.settings.port, exc)
            raise SystemExit(1) from exc
        return sock

    def serve_forever(self) -> None:
        sock = self.bind()
        try:
            self.run(sockets=[sock])
        finally:
            sock.close()

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        if self.should_exit:
            return
        self.state = ServerState.LISTENING
        port = sockets[0].getsockname()[1] if sockets else self.settings.port
        logger.info("API Proxy server running on port %d", port)
        logger.info("Health check: http://localhost:%d/health", port)
        logger.info("API v1 routes: http://localhost:%d/*", port)
        logger.info("API v2 routes: http://localhost:%d/v2/*", port)

    def handle_exit(self, sig: int, frame) -> None:
        # Same path for both signals; a second SIGINT does not force an exit.
        if self.state is not ServerState.DRAINING:
            logger.info("%s received, shutting down gracefully", signal.Signals(sig).name)
            self.state = ServerState.DRAINING
        self.should_exit = True

    async def shutdown(self, sockets=None) -> None:
        logger.info("Draining %d in-flight request(s)", self.in_flight.count)
        await super().shutdown(sockets=sockets)
        await self.in_flight.wait_idle()
        self.state = ServerState.STOPPED
        logger.info("Process terminated")
