"""
MC Player Watch - Main Entry Point

Polls Minecraft servers, announces joins, leaves, outages and recoveries in a
Discord channel, and serves on-demand status via /now and HTTP /status.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional, Any

import structlog

from bot.notification_dispatcher import NotificationDispatcher
from bot.player_monitor import PlayerMonitor
from config import Config, load_config, validate_config, __version__
from discord_interface import DiscordInterfaceFactory, DiscordInterface
from enrichment import GeminiEnricher
from http_server import StatusHttpServer
from on_demand import OnDemandQuery
from server_state import ServerStateStore
from status_source import StatusSource

logger = structlog.get_logger()


def setup_logging(log_level: str, log_format: str) -> None:
    """
    Configure structured logging.

    Args:
        log_level: Logging level (debug, info, warning, error, critical)
        log_format: Output format ("json" or "console")
    """
    level_map: dict[str, int] = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }

    min_level = level_map.get(log_level.lower(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger.info("logging_configured", level=log_level, format=log_format)


class Application:
    """Main application orchestrator."""

    def __init__(self) -> None:
        self.config: Optional[Config] = None
        self.status_source: Optional[StatusSource] = None
        self.state_store: Optional[ServerStateStore] = None
        self.on_demand: Optional[OnDemandQuery] = None
        self.http_server: Optional[StatusHttpServer] = None
        self.enricher: Optional[GeminiEnricher] = None
        self.discord: Optional[DiscordInterface] = None
        self.dispatcher: Optional[NotificationDispatcher] = None
        self.monitor: Optional[PlayerMonitor] = None
        self.shutdown_event: asyncio.Event = asyncio.Event()

    async def setup(self) -> None:
        """Load configuration and build components. Raises on bad configuration."""
        logger.info("application_starting", version=__version__)

        try:
            self.config = load_config()
            if not validate_config(self.config):
                raise ValueError("Configuration validation failed")
        except Exception as e:
            logger.error("config_load_failed", error=str(e))
            raise

        setup_logging(self.config.log_level, self.config.log_format)

        self.status_source = StatusSource(timeout=self.config.query_timeout)
        self.state_store = ServerStateStore()
        self.on_demand = OnDemandQuery(self.status_source, self.config.servers)

        if self.config.enrichment_enabled:
            assert self.config.gemini_api_key is not None
            self.enricher = GeminiEnricher(
                api_key=self.config.gemini_api_key,
                model=self.config.gemini_model,
                timeout=self.config.enrichment_timeout,
            )

        self.http_server = StatusHttpServer(
            on_demand=self.on_demand,
            host=self.config.http_host,
            port=self.config.http_port,
        )

        logger.info(
            "application_configured",
            http_port=self.config.http_port,
            servers=list(self.config.servers),
            check_interval=self.config.check_interval,
            enrichment=self.config.enrichment_enabled,
            announce_initial_roster=self.config.announce_initial_roster,
        )

    async def start(self) -> None:
        """Start HTTP, connect Discord, then begin monitoring."""
        logger.info("application_starting_components")
        assert self.config is not None, "Config not loaded"
        assert self.http_server is not None, "HTTP server not initialized"

        await self.http_server.start()

        self.discord = DiscordInterfaceFactory.create_interface(
            self.config, on_demand=self.on_demand
        )
        await self.discord.connect()

        if self.enricher is not None:
            await self.enricher.connect()

        self.dispatcher = NotificationDispatcher(self.discord, enricher=self.enricher)
        self.monitor = PlayerMonitor(
            servers=self.config.servers,
            status_source=self.status_source,
            dispatcher=self.dispatcher,
            state_store=self.state_store,
            interval=self.config.check_interval,
            announce_initial_roster=self.config.announce_initial_roster,
        )
        await self.monitor.start()

        logger.info("application_running")

    async def stop(self) -> None:
        """Gracefully stop all components."""
        logger.info("application_stopping")

        if self.monitor is not None:
            try:
                await self.monitor.stop()
            except Exception as e:
                logger.error("monitor_stop_failed", error=str(e))

        if self.enricher is not None:
            try:
                await self.enricher.close()
            except Exception as e:
                logger.warning("enricher_close_failed", error=str(e))

        if self.discord is not None:
            try:
                await self.discord.disconnect()
            except Exception as e:
                logger.warning("discord_disconnect_failed", error=str(e))

        if self.http_server is not None:
            try:
                await self.http_server.stop()
            except Exception as e:
                logger.warning("http_server_stop_failed", error=str(e))

        logger.info("application_stopped")

    async def run(self) -> None:
        """Main application run loop."""
        try:
            await self.setup()
            await self.start()
            await self.shutdown_event.wait()
        except KeyboardInterrupt:
            logger.info("received_keyboard_interrupt")
        except Exception as e:
            logger.error("application_error", error=str(e), exc_info=True)
            raise
        finally:
            await self.stop()


async def main() -> None:
    """Main async entry point."""
    app = Application()

    def _signal_handler(signum: int, frame: Any) -> None:
        logger.info("received_signal", signal=signal.Signals(signum).name)
        app.shutdown_event.set()

    try:
        signal.signal(signal.SIGINT, _signal_handler)
        signal.signal(signal.SIGTERM, _signal_handler)
    except (ValueError, OSError):
        # Not the main thread, or the platform lacks these signals.
        pass

    try:
        await app.run()
    except Exception as e:
        logger.error("fatal_error", error=str(e), exc_info=True)
        sys.exit(1)


def cli() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown complete.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
