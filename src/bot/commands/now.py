"""/now slash command: immediate player counts for every configured server."""

from dataclasses import dataclass
from typing import Any, Optional

import discord
import structlog

from discord_interface import truncate_message

logger = structlog.get_logger()


@dataclass
class CommandResult:
    """Outcome of a command handler, ready to be sent back to Discord."""

    success: bool
    content: str
    ephemeral: bool = False


class NowCommandHandler:
    """
    Handler for /now.

    Pure logic: defer → query all servers via OnDemandQuery → format reply.
    """

    def __init__(self, on_demand: Any) -> None:
        self.on_demand = on_demand

    async def execute(self, interaction: discord.Interaction) -> CommandResult:
        logger.info(
            "handler_invoked",
            handler="NowCommandHandler",
            user=interaction.user.name,
            user_id=interaction.user.id,
        )

        # Queries can take several seconds; Discord needs an ack within 3.
        if not interaction.response.is_done():
            await interaction.response.defer()

        try:
            content = await self.on_demand.summarize_all()
        except Exception as e:
            logger.error("now_command_failed", error=str(e), exc_info=True)
            return CommandResult(
                success=False,
                content=f"❌ Failed to query servers: {e}",
                ephemeral=True,
            )

        logger.info("now_command_executed", user=interaction.user.name)
        return CommandResult(success=True, content=truncate_message(content))


async def send_command_response(interaction: discord.Interaction, result: CommandResult) -> None:
    """Deliver a handler result, editing the deferred reply when there is one."""
    if interaction.response.is_done():
        await interaction.edit_original_response(content=result.content)
    else:
        await interaction.response.send_message(result.content, ephemeral=result.ephemeral)


def register_now_command(bot: Any, on_demand: Optional[Any] = None) -> Optional[NowCommandHandler]:
    """
    Register /now on the bot's command tree.

    Args:
        bot: DiscordBot with a tree attribute
        on_demand: OnDemandQuery; defaults to bot.on_demand

    Returns:
        The handler, or None if no on-demand query is available
    """
    on_demand = on_demand if on_demand is not None else getattr(bot, "on_demand", None)
    if on_demand is None:
        logger.warning("now_command_not_registered", reason="no on-demand query configured")
        return None

    handler = NowCommandHandler(on_demand)

    @bot.tree.command(name="now", description="Check how many players are online on each server.")
    async def now_command(interaction: discord.Interaction) -> None:
        try:
            result = await handler.execute(interaction)
            await send_command_response(interaction, result)
        except Exception as e:
            logger.error("now_command_exception", error=str(e), exc_info=True)
            if not interaction.response.is_done():
                await interaction.response.send_message(
                    f"❌ Now command error: {e}", ephemeral=True
                )

    logger.info("slash_commands_registered", commands=["now"])
    return handler
