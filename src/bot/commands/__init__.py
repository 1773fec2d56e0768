"""Discord slash command registration.

Exports register_now_command(), which adds /now to the bot's command tree.
"""

from .now import register_now_command, NowCommandHandler, CommandResult

__all__ = ["register_now_command", "NowCommandHandler", "CommandResult"]
