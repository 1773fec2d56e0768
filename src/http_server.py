"""
HTTP server for hosting platforms and ad-hoc status lookups.

Provides / (liveness with uptime), /health for container healthchecks, and
/status?domain=...&port=... for querying any Minecraft server on demand.
"""
import time
from datetime import datetime, timezone
from typing import Any, Optional

from aiohttp import web
import structlog

from config import SERVICE_NAME

logger = structlog.get_logger()


class StatusHttpServer:
    """aiohttp server exposing liveness and on-demand status routes."""

    def __init__(self, on_demand: Any, host: str = "0.0.0.0", port: int = 3000):
        """
        Initialize HTTP server.

        Args:
            on_demand: OnDemandQuery used by /status
            host: Host to bind to (default: 0.0.0.0)
            port: Port to bind to (default: 3000)
        """
        self.on_demand = on_demand
        self.host = host
        self.port = port
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None
        self._started_monotonic = time.monotonic()
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Configure HTTP routes."""
        self.app.router.add_get("/", self.root_handler)
        self.app.router.add_get("/health", self.health_handler)
        self.app.router.add_get("/status", self.status_handler)

    async def root_handler(self, request: web.Request) -> web.Response:
        """200 OK with process uptime."""
        return web.json_response({
            "status": "Bot is running!",
            "uptime": round(time.monotonic() - self._started_monotonic, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    async def health_handler(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({
            "status": "healthy",
            "service": SERVICE_NAME,
        })

    async def status_handler(self, request: web.Request) -> web.Response:
        """
        Query a Minecraft server.

        Returns:
            200 with player info, 400 on bad parameters, 503 if unreachable
        """
        domain = request.query.get("domain")
        port = request.query.get("port")

        status, body = await self.on_demand.query_endpoint(domain, port)
        logger.debug("status_endpoint_served", domain=domain, port=port, status=status)
        return web.json_response(body, status=status)

    async def start(self) -> None:
        """Start the HTTP server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(self.runner, self.host, self.port)
        await self.site.start()

        logger.info("http_server_started", host=self.host, port=self.port)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self.site is not None:
            await self.site.stop()

        if self.runner is not None:
            await self.runner.cleanup()

        logger.info("http_server_stopped")
