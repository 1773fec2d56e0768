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

"""Discord bot client.

Owns the gateway connection and the slash command tree. Monitoring and
notification logic live in bot.player_monitor and bot.notification_dispatcher;
this class only provides the connection they send through.
"""

import asyncio
from typing import Optional, Any

import discord
from discord import app_commands
import structlog

from bot.commands import register_now_command

logger = structlog.get_logger()


class DiscordBot(discord.Client):
    """Discord bot client with slash command support."""

    def __init__(
        self,
        token: str,
        event_channel_id: Optional[int] = None,
        *,
        on_demand: Optional[Any] = None,
        intents: Optional[discord.Intents] = None,
    ):
        """
        Initialize Discord bot.

        Args:
            token: Discord bot token
            event_channel_id: Channel that receives notifications
            on_demand: OnDemandQuery backing the /now command
            intents: Discord intents (guilds only if None)
        """
        if intents is None:
            intents = discord.Intents.none()
            intents.guilds = True

        super().__init__(intents=intents)

        self.token = token
        self.event_channel_id = event_channel_id
        self.on_demand = on_demand
        self.tree = app_commands.CommandTree(self)
        self._ready_event = asyncio.Event()
        self._connected = False
        self._connection_task: Optional[asyncio.Task] = None

        logger.info("discord_bot_initialized", channel_id=event_channel_id)

    # ========================================================================
    # Bot Lifecycle
    # ========================================================================

    async def setup_hook(self) -> None:
        """Called when the bot is starting up. Set up commands here."""
        register_now_command(self)
        logger.info("discord_bot_setup_complete")

    async def on_ready(self) -> None:
        """Called when bot is ready (fires on initial connect AND reconnects)."""
        if self.user is None:
            logger.error("discord_bot_ready_but_no_user")
            return

        logger.info(
            "discord_bot_ready",
            bot_name=self.user.name,
            bot_id=self.user.id,
            guilds=len(self.guilds),
        )

        self._connected = True
        self._ready_event.set()

        try:
            synced = await self.tree.sync()
            logger.info(
                "commands_synced_globally",
                count=len(synced),
                commands=[cmd.name for cmd in synced],
            )
        except Exception as e:
            logger.error("command_sync_failed", error=str(e), exc_info=True)

    async def on_disconnect(self) -> None:
        """Called when bot disconnects."""
        self._connected = False
        logger.warning("discord_bot_disconnected")

    async def on_resumed(self) -> None:
        self._connected = True
        logger.info("discord_bot_resumed")

    async def on_error(self, event: str, *args, **kwargs) -> None:
        logger.error("discord_bot_error", event=event, exc_info=True)

    # ========================================================================
    # Connection Management
    # ========================================================================

    async def connect_bot(self, timeout: float = 30.0) -> None:
        """Log in, open the gateway, and wait until the bot is ready."""
        try:
            logger.info("connecting_to_discord")
            await self.login(self.token)
            self._connection_task = asyncio.create_task(self.connect())

            try:
                await asyncio.wait_for(self._ready_event.wait(), timeout=timeout)
                self._connected = True
                logger.info("discord_bot_connected")
            except asyncio.TimeoutError:
                logger.error("discord_bot_connection_timeout")
                if self._connection_task is not None:
                    self._connection_task.cancel()
                    try:
                        await self._connection_task
                    except asyncio.CancelledError:
                        pass
                raise ConnectionError(
                    f"Discord bot connection timed out after {timeout:g} seconds"
                )
        except discord.errors.LoginFailure as e:
            logger.error("discord_login_failed", error=str(e))
            raise ConnectionError(f"Discord login failed: {e}")
        except Exception as e:
            logger.error("discord_bot_connection_failed", error=str(e), exc_info=True)
            raise

    async def disconnect_bot(self) -> None:
        """Disconnect the bot from Discord."""
        if self._connected or self._connection_task is not None:
            logger.info("disconnecting_from_discord")

            self._connected = False

            if self._connection_task is not None:
                if not self._connection_task.done():
                    self._connection_task.cancel()
                    try:
                        await self._connection_task
                    except asyncio.CancelledError:
                        pass
                self._connection_task = None

            if not self.is_closed():
                await self.close()
            logger.info("discord_bot_disconnected")

    @property
    def is_connected(self) -> bool:
        """Check if bot is connected to Discord."""
        return self._connected
