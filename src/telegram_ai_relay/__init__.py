"""Telegram AI Relay - forwards Telegram chat messages to an AI completion backend."""

from .commands import GREETING, extract_command, is_start_command
from .completion_client import CompletionClient
from .config import POLL_INTERVAL, Settings, get_settings
from .relay_service import RelayService, main
from .sessions import ChatSessions
from .telegram_client import TelegramClient

__version__ = "0.1.0"

__all__ = [
    "RelayService",
    "TelegramClient",
    "CompletionClient",
    "ChatSessions",
    "Settings",
    "get_settings",
    "extract_command",
    "is_start_command",
    "GREETING",
    "POLL_INTERVAL",
    "main",
]
