"""
Telegram bot module: files in, shareable links out.

ARCHITECTURE: thin routing layer over the cloud storage backend.
- Receives webhook updates from Telegram
- Drops redelivered updates (dedup.py)
- Registers users lazily (session.py)
- Routes commands, buttons and files (handlers.py)
- Uploads go straight from Telegram to object storage
  (app/services/upload.py), never through our server's storage
"""

from .bot import handle_telegram_update, initialize_bot, shutdown_bot
from .dedup import UpdateDeduplicator
from .session import SessionResolver

__all__ = [
    "handle_telegram_update",
    "initialize_bot",
    "shutdown_bot",
    "UpdateDeduplicator",
    "SessionResolver",
]
