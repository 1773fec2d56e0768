# Copyright (c) 2025 Stephen Clau
#
# This file is part of MC Player Watch.
#
# MC Player Watch is dual-licensed:
#
# 1. GNU Affero General Public License v3.0 (AGPL-3.0)
#    See LICENSE file for full terms
#
# 2. Commercial License
#    For proprietary use without AGPL requirements
#    Contact: licensing@laudiversified.com
#
# SPDX-License-Identifier: AGPL-3.0-only OR Commercial


"""
Minecraft server status queries.

Wraps the mcstatus Server List Ping client behind a single call that either
returns an immutable ServerSnapshot or raises QueryFailure. Latency of every
query is bounded by a timeout so a dead host cannot stall a monitoring sweep.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple

import structlog
from mcstatus import JavaServer

from config import DEFAULT_MINECRAFT_PORT, ServerConfig

logger = structlog.get_logger()


class QueryFailure(Exception):
    """Target unreachable, timed out, or answered with a protocol error."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason or "Server not reachable")
        self.reason = reason or "Server not reachable"


@dataclass(frozen=True)
class ServerSnapshot:
    """One observation of a server. Produced fresh per poll and never mutated."""

    reachable: bool
    players: Tuple[str, ...] = ()
    online_count: int = 0
    motd: str = ""
    version: str = ""


@dataclass(frozen=True)
class PollResult:
    """Tagged outcome of polling one server: a snapshot or a failure reason."""

    server: ServerConfig
    snapshot: Optional[ServerSnapshot] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.snapshot is not None and self.error is None

    @classmethod
    def success(cls, server: ServerConfig, snapshot: ServerSnapshot) -> "PollResult":
        return cls(server=server, snapshot=snapshot)

    @classmethod
    def failure(cls, server: ServerConfig, reason: str) -> "PollResult":
        return cls(server=server, error=reason or "Server not reachable")


def unique_names(names: Iterable[Optional[str]]) -> Tuple[str, ...]:
    """Drop blanks and duplicates while keeping first-seen order."""
    seen: dict[str, None] = {}
    for name in names:
        if name and name not in seen:
            seen[name] = None
    return tuple(seen)


def snapshot_from_status(status: Any) -> ServerSnapshot:
    """Convert an mcstatus JavaStatusResponse into a ServerSnapshot."""
    sample = status.players.sample or []
    players = unique_names(getattr(player, "name", None) for player in sample)

    motd = ""
    motd_obj = getattr(status, "motd", None)
    if motd_obj is not None:
        motd = motd_obj.to_plain() if hasattr(motd_obj, "to_plain") else str(motd_obj)

    return ServerSnapshot(
        reachable=True,
        players=players,
        online_count=int(status.players.online or 0),
        motd=motd.strip(),
        version=getattr(status.version, "name", "") or "",
    )


class StatusSource:
    """Query Minecraft servers with a bounded timeout."""

    def __init__(self, timeout: float = 5.0) -> None:
        """
        Args:
            timeout: Seconds allowed for a full status exchange before it fails.
        """
        self.timeout = timeout

    async def _resolve(self, host: str, port: int) -> JavaServer:
        """Follow the _minecraft._tcp SRV record when no explicit port was given."""
        if port == DEFAULT_MINECRAFT_PORT:
            return await JavaServer.async_lookup(host, timeout=self.timeout)
        return JavaServer(host, port, timeout=self.timeout)

    async def _fetch(self, host: str, port: int) -> Any:
        server = await self._resolve(host, port)
        return await server.async_status()

    async def query_status(self, host: str, port: int) -> ServerSnapshot:
        """
        Query one server.

        The default port triggers an SRV lookup, so hosts that publish their
        real address through DNS resolve the same way a game client does.

        Returns:
            ServerSnapshot for a reachable server

        Raises:
            QueryFailure: On timeout, connection error, or malformed response
        """
        try:
            status = await asyncio.wait_for(self._fetch(host, port), timeout=self.timeout)
            snapshot = snapshot_from_status(status)
        except asyncio.TimeoutError:
            raise QueryFailure(f"Timed out after {self.timeout:g}s")
        except QueryFailure:
            raise
        except Exception as e:
            raise QueryFailure(str(e) or type(e).__name__) from e

        logger.debug(
            "status_query_succeeded",
            host=host,
            port=port,
            online=snapshot.online_count,
            players=list(snapshot.players),
        )
        return snapshot

    async def poll(self, server: ServerConfig) -> PollResult:
        """Query a configured server and tag the outcome. Never raises QueryFailure."""
        try:
            snapshot = await self.query_status(server.host, server.port)
        except QueryFailure as e:
            logger.warning(
                "status_query_failed",
                server_name=server.name,
                address=server.address,
                error=e.reason,
            )
            return PollResult.failure(server, e.reason)

        return PollResult.success(server, snapshot)
