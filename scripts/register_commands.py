#!/usr/bin/env python3
"""
Register the /now slash command with Discord.

The bot also syncs its command tree on every start; run this once when
deploying to a new application so the command appears before the first login.

Usage:
    DISCORD_BOT_TOKEN=... DISCORD_CLIENT_ID=... python scripts/register_commands.py
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List

import aiohttp
import structlog

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from config import get_config_value  # noqa: E402

logger = structlog.get_logger()

DISCORD_API = "https://discord.com/api/v10"

COMMANDS: List[Dict[str, Any]] = [
    {
        "name": "now",
        "description": "Check how many players are online on each server.",
        "type": 1,
    }
]


async def register_commands(token: str, client_id: str) -> bool:
    """PUT the command list, replacing any existing global commands."""
    url = f"{DISCORD_API}/applications/{client_id}/commands"
    headers = {"Authorization": f"Bot {token}"}

    timeout = aiohttp.ClientTimeout(total=15)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        try:
            async with session.put(url, json=COMMANDS, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error(
                        "slash_command_registration_failed",
                        status=response.status,
                        error=error_text[:200],
                    )
                    return False
                registered = await response.json()
        except aiohttp.ClientError as e:
            logger.error("slash_command_registration_http_error", error=str(e))
            return False

    logger.info(
        "slash_commands_registered",
        commands=[cmd.get("name") for cmd in registered],
    )
    return True


def main() -> int:
    try:
        token = get_config_value("DISCORD_BOT_TOKEN", secret_name="discord_bot_token", required=True)
        client_id = get_config_value("DISCORD_CLIENT_ID", required=True)
    except ValueError as e:
        logger.error("missing_configuration", error=str(e))
        return 1

    logger.info("registering_slash_commands")
    ok = asyncio.run(register_commands(token or "", client_id or ""))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
