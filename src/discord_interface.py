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
Notification transport for Discord.

Everything the monitor says goes through DiscordInterface.send_message(),
which reports failure as False instead of raising.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Optional

import discord
import structlog

logger = structlog.get_logger()

# Discord rejects message content longer than this.
MESSAGE_LIMIT = 2000


def truncate_message(message: str, limit: int = MESSAGE_LIMIT) -> str:
    if len(message) <= limit:
        return message
    return message[: limit - 3] + "..."


class DiscordInterface(ABC):
    """Abstract interface for Discord communication."""

    @abstractmethod
    async def connect(self) -> None:
        """Connect to Discord."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect from Discord."""
        pass

    @abstractmethod
    async def send_message(self, message: str) -> bool:
        """Send a plain text message to the notification channel."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if connected to Discord."""
        pass


class BotDiscordInterface(DiscordInterface):
    """Discord interface backed by a DiscordBot client."""

    def __init__(self, discord_bot: Any, channel_id: Optional[int] = None) -> None:
        self.bot = discord_bot
        self.channel_id = channel_id

    async def connect(self) -> None:
        await self.bot.connect_bot()
        logger.info("bot_interface_connected", channel_id=self.channel_id)

    async def disconnect(self) -> None:
        await self.bot.disconnect_bot()
        logger.info("bot_interface_disconnected")

    async def _resolve_channel(self, channel_id: int) -> Optional[Any]:
        """Look the channel up in the cache, fetching it from the API on a miss."""
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id)
        return channel

    async def send_message(self, message: str) -> bool:
        if not self.bot.is_connected:
            logger.warning("send_message_not_connected")
            return False

        target_channel_id = self.channel_id or self.bot.event_channel_id
        if target_channel_id is None:
            logger.warning("send_message_no_channel")
            return False

        try:
            channel = await self._resolve_channel(target_channel_id)
            if channel is None:
                logger.error("send_message_channel_not_found", channel_id=target_channel_id)
                return False

            if not isinstance(channel, discord.abc.Messageable):
                logger.error("send_message_invalid_channel_type", channel_id=target_channel_id)
                return False

            await channel.send(truncate_message(message))
            logger.debug("message_sent", channel_id=target_channel_id, length=len(message))
            return True

        except discord.errors.NotFound:
            logger.error("send_message_channel_not_found", channel_id=target_channel_id)
            return False
        except discord.errors.Forbidden:
            logger.error("send_message_forbidden", channel_id=target_channel_id)
            return False
        except discord.errors.HTTPException as e:
            logger.error("send_message_http_error", error=str(e))
            return False
        except Exception as e:
            logger.error("send_message_unexpected_error", error=str(e), exc_info=True)
            return False

    @property
    def is_connected(self) -> bool:
        return self.bot.is_connected


class DiscordInterfaceFactory:
    """Factory for creating Discord interface instances."""

    @staticmethod
    def create_interface(config: Any, on_demand: Optional[Any] = None) -> BotDiscordInterface:
        """
        Create the bot-backed interface from configuration.

        Args:
            config: Application configuration with discord_bot_token and channel_id
            on_demand: OnDemandQuery backing the /now command

        Raises:
            ValueError: If bot token or channel is not configured
        """
        if not config.discord_bot_token:
            raise ValueError("discord_bot_token is REQUIRED")

        if not config.channel_id:
            raise ValueError("channel_id is REQUIRED")

        from discord_bot import DiscordBot

        bot = DiscordBot(
            token=config.discord_bot_token,
            event_channel_id=config.channel_id,
            on_demand=on_demand,
        )
        logger.info("creating_bot_interface", channel_id=config.channel_id)
        return BotDiscordInterface(bot, channel_id=config.channel_id)
