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
On-demand status reads for the /now command and the HTTP /status endpoint.

These paths query servers fresh and never read or write monitoring state, so
they can run while a sweep is in progress.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from config import DEFAULT_MINECRAFT_PORT, ServerConfig
from status_source import QueryFailure, ServerSnapshot

logger = structlog.get_logger()


def format_server_line(server: ServerConfig, snapshot: ServerSnapshot) -> str:
    """One /now entry for a reachable server."""
    count = len(snapshot.players)
    if count > 0:
        return f"👥 **{server.name}**: {count} online\n> {', '.join(snapshot.players)}"
    return f"💤 **{server.name}**: No one online"


def format_unreachable_line(server: ServerConfig) -> str:
    return f"⚠️ **{server.name}**: Unreachable"


class OnDemandQuery:
    """Immediate status reads that bypass the monitor's state and diffing."""

    def __init__(self, status_source: Any, servers: Mapping[str, ServerConfig]) -> None:
        """
        Args:
            status_source: StatusSource providing async query_status(host, port)
            servers: Configured servers, in display order
        """
        self.status_source = status_source
        self.servers = servers

    async def status_lines(self) -> List[str]:
        """Query every configured server; one line per server, failures inline."""
        configs = list(self.servers.values())
        outcomes = await asyncio.gather(
            *(self.status_source.query_status(c.host, c.port) for c in configs),
            return_exceptions=True,
        )

        lines: List[str] = []
        for config, outcome in zip(configs, outcomes):
            if isinstance(outcome, BaseException):
                logger.info(
                    "on_demand_server_unreachable",
                    server_name=config.name,
                    error=str(outcome),
                )
                lines.append(format_unreachable_line(config))
            else:
                lines.append(format_server_line(config, outcome))
        return lines

    async def summarize_all(self) -> str:
        """The full /now reply."""
        lines = await self.status_lines()
        if not lines:
            return "No servers configured."
        return "\n\n".join(lines)

    async def query_endpoint(
        self, domain: Optional[str], port: Optional[str] = None
    ) -> Tuple[int, Dict[str, Any]]:
        """
        Query an arbitrary server for the HTTP endpoint.

        Returns:
            (HTTP status, JSON body): 200 on success, 400 for a missing domain or
            bad port, 503 when the target cannot be reached.
        """
        if not domain or not domain.strip():
            return 400, {"error": "Missing domain parameter."}

        if port is None or port == "":
            port_number = DEFAULT_MINECRAFT_PORT
        else:
            try:
                port_number = int(port)
            except (TypeError, ValueError):
                return 400, {"error": f"Invalid port parameter: {port}"}
            if not 1 <= port_number <= 65535:
                return 400, {"error": f"Invalid port parameter: {port}"}

        try:
            snapshot = await self.status_source.query_status(domain.strip(), port_number)
        except QueryFailure as e:
            logger.info("status_endpoint_unreachable", domain=domain, port=port_number, error=e.reason)
            return 503, {"online": False, "error": e.reason or "Server not reachable"}

        return 200, {
            "online": True,
            "playersOnline": snapshot.online_count,
            "players": list(snapshot.players),
            "motd": snapshot.motd,
            "version": snapshot.version,
        }
