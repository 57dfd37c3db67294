from abc import abstractmethod
from typing import Optional

from fastapi import FastAPI
from fastapi.applications import AppType
from fastapi.responses import ORJSONResponse
from loguru import logger
from starlette.types import Lifespan
import uvicorn

from imagebouncer.config import ServerConfig


class WebServer:
    """Async web server for the admission webhook using FastAPI."""

    def __init__(self, config: ServerConfig, lifespan: Optional[Lifespan[AppType]] = None):
        self.config = config
        self.app = FastAPI(
            debug=config.debug,
            default_response_class=ORJSONResponse,
            lifespan=lifespan,
        )
        self._setup_routes()

    @abstractmethod
    def _setup_routes(self):
        """
        Setup web routes.
        Example:
        self.app.add_api_route('/route', self.handle_route, methods=["GET"])
        """
        raise NotImplementedError()

    def uvicorn_options(self) -> dict:
        """Build the keyword arguments for uvicorn.run."""
        options = {
            "host": self.config.bind_address,
            "port": self.config.port,
        }

        if self.config.tls_cert_path and self.config.tls_key_path:
            options["ssl_certfile"] = str(self.config.tls_cert_path)
            options["ssl_keyfile"] = str(self.config.tls_key_path)
            logger.info("TLS enabled, no client certificate verification")
        elif self.config.require_tls:
            raise ValueError("TLS certificate and key are required to serve the webhook")
        else:
            logger.warning("Starting server without TLS; intended for local testing only")

        return options

    def run(self):
        """Run the webhook server."""
        options = self.uvicorn_options()
        logger.info(f"Starting server on {self.config.bind_address}:{self.config.port}")

        uvicorn.run(
            self.app,
            log_level="debug" if self.config.debug else "info",
            **options,
        )
