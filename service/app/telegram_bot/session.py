"""
Lazy registration bridge between Telegram and the cloud storage backend.

Every interaction calls create-user; the backend is idempotent by
telegram id and tells us whether the account was just created. The
returned token is cached per telegram id for the process lifetime.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.errors import CloudStorageError, SessionResolutionError
from app.logging_config import bot_logger as logger
from app.services.cloud_storage import CloudStorageApi
from app.services.schemas import User
from .stores import InMemoryStore, KeyValueStore


@dataclass
class Registration:
    user: User
    token: str
    is_new_user: bool


class SessionResolver:
    """
    Resolves a Telegram user to a backend account.

    The token cache is an optimization only: backend calls identify the
    caller by telegram id, not by token.
    """

    def __init__(self, api: CloudStorageApi, token_store: Optional[KeyValueStore[str]] = None):
        self.api = api
        self.token_store = token_store if token_store is not None else InMemoryStore()

    async def ensure_registered(
        self,
        telegram_id: str,
        display_name: str | None = None,
        phone_number: str | None = None,
    ) -> Registration:
        logger.info(f"Resolving telegram_id={telegram_id}, display_name={display_name}")

        try:
            response = await self.api.create_user(
                telegram_id=telegram_id,
                name=display_name,
                phone_number=phone_number,
            )
        except CloudStorageError as e:
            logger.error(f"Registration failed for telegram_id={telegram_id}: {e}")
            raise SessionResolutionError(telegram_id, e) from e

        data = response.data
        self.token_store.put(telegram_id, data.token)

        if data.is_new_user:
            logger.info(f"Created new user: user_id={data.user.id}")
        else:
            logger.debug(f"Found existing user: user_id={data.user.id}")

        return Registration(user=data.user, token=data.token, is_new_user=data.is_new_user)

    def cached_token(self, telegram_id: str) -> str | None:
        return self.token_store.get(telegram_id)

    def forget(self, telegram_id: str) -> None:
        """Drop the cached token, e.g. after the account was deleted."""
        self.token_store.evict(telegram_id)
