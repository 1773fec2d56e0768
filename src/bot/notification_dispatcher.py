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

"""State-change notifications (recovery, join, leave, unreachable)."""

from __future__ import annotations

from typing import Any, Optional, Sequence

import structlog

from config import ServerConfig
from enrichment import Enricher

logger = structlog.get_logger()


def format_recovered(server: ServerConfig) -> str:
    return f"✅ Server **{server.name}** is reachable again"


def format_joined(server: ServerConfig, names: Sequence[str]) -> str:
    return f"🟢 **{server.name}** player joined: {', '.join(names)}"


def format_left(server: ServerConfig, names: Sequence[str]) -> str:
    return f"🔴 **{server.name}** player left: {', '.join(names)}"


def format_unreachable(server: ServerConfig) -> str:
    return f"⚠️ Cannot reach **{server.name}** ({server.host}:{server.port})"


class NotificationDispatcher:
    """
    Format and send notifications for one server's poll outcome.

    Sends never raise: a failed send is logged and reported as False so the
    caller can carry on updating state.
    """

    def __init__(self, interface: Any, enricher: Optional[Enricher] = None) -> None:
        """
        Args:
            interface: DiscordInterface (anything with async send_message(str) -> bool)
            enricher: Optional Enricher used to dress up join messages
        """
        self.interface = interface
        self.enricher = enricher

    async def _send(self, text: str, kind: str, server: ServerConfig) -> bool:
        try:
            sent = await self.interface.send_message(text)
        except Exception as e:
            logger.warning(
                "notification_send_failed",
                kind=kind,
                server_name=server.name,
                error=str(e),
            )
            return False

        if not sent:
            logger.warning("notification_not_delivered", kind=kind, server_name=server.name)
            return False

        logger.info("notification_sent", kind=kind, server_name=server.name)
        return True

    async def notify_recovered(self, server: ServerConfig) -> bool:
        return await self._send(format_recovered(server), "recovered", server)

    async def notify_joined(self, server: ServerConfig, names: Sequence[str]) -> bool:
        """Send an enriched join message, or the plain one if enrichment fails."""
        text = await self._enriched_join_text(server, names)
        return await self._send(text, "joined", server)

    async def notify_left(self, server: ServerConfig, names: Sequence[str]) -> bool:
        return await self._send(format_left(server, names), "left", server)

    async def notify_unreachable(self, server: ServerConfig) -> bool:
        return await self._send(format_unreachable(server), "unreachable", server)

    async def _enriched_join_text(self, server: ServerConfig, names: Sequence[str]) -> str:
        fallback = format_joined(server, names)
        if self.enricher is None:
            return fallback

        try:
            result = await self.enricher.summarize(list(names))
        except Exception as e:
            logger.warning("enrichment_raised", server_name=server.name, error=str(e))
            return fallback

        if not result.ok:
            logger.info(
                "enrichment_fallback",
                server_name=server.name,
                reason=result.error,
            )
            return fallback

        return result.text
