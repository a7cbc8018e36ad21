"""Liveness probe for the worker's process supervisor."""

import threading
from typing import Callable

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from .logger import get_logger

logger = get_logger()


def create_app(is_alive: Callable[[], bool]) -> FastAPI:
    """Build the health app: GET /health -> 200 'healthy' or 503 'unhealthy'."""
    app = FastAPI(title="ltxworker health", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/health", response_class=PlainTextResponse)
    def health() -> PlainTextResponse:
        if is_alive():
            return PlainTextResponse("healthy")
        return PlainTextResponse("unhealthy", status_code=503)

    return app


class HealthServer:
    """Serves the health app with uvicorn on a daemon thread."""

    def __init__(self, is_alive: Callable[[], bool], port: int = 8081, host: str = "0.0.0.0"):
        self.app = create_app(is_alive)
        self.server = uvicorn.Server(
            uvicorn.Config(self.app, host=host, port=port, log_level="warning", access_log=False)
        )
        self._thread = threading.Thread(target=self.server.run, name="health", daemon=True)

    @property
    def port(self) -> int:
        return self.server.config.port

    def start(self) -> "HealthServer":
        self._thread.start()
        logger.info("Health probe listening", port=self.port)
        return self

    def stop(self, timeout: float = 5.0):
        self.server.should_exit = True
        self._thread.join(timeout)
