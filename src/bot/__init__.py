"""Discord bot module - monitoring and notification components."""

from .notification_dispatcher import NotificationDispatcher
from .player_monitor import PlayerMonitor

__all__ = [
    "NotificationDispatcher",
    "PlayerMonitor",
]
