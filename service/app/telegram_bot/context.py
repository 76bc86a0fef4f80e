"""
Shared services for Telegram handlers.

One BotServices instance per Application, stored in bot_data so that
handlers (and tests) get their collaborators from the handler context
instead of module globals.
"""

from dataclasses import dataclass
from typing import Any, Mapping

from app.services.cloud_storage import CloudStorageApi
from app.services.upload import DirectUploadOrchestrator
from .dedup import UpdateDeduplicator
from .session import SessionResolver

SERVICES_KEY = "services"


@dataclass
class BotServices:
    api: CloudStorageApi
    sessions: SessionResolver
    uploader: DirectUploadOrchestrator
    dedup: UpdateDeduplicator
    links_page_size: int = 5


def services_from_bot_data(bot_data: Mapping[str, Any]) -> BotServices:
    return bot_data[SERVICES_KEY]


def get_services(context) -> BotServices:
    """Services for a handler's CallbackContext."""
    return services_from_bot_data(context.bot_data)
