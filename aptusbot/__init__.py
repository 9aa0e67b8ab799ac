"""
Aptus Assist Bot

Watches an Aptus booking portal for freed-up passes and books them on
request:

1. Portal client (aptusbot.portal)
   - Replays the browser login handshake over plain HTTP
   - Scrapes the weekly booking calendar
   - Books and cancels passes

2. Sync engine (aptusbot.sync)
   - Polls the coming weeks, diffs against stored statuses
   - Announces passes that went from busy/own to free
"""
from .common.config import Config, load_config

__version__ = "1.0.0"

__all__ = [
    "Config",
    "load_config",
]
