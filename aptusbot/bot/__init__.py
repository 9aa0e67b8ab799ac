"""
Telegram integration
"""
from .client import TelegramClient, TelegramError

__all__ = [
    "TelegramClient",
    "TelegramError",
]
