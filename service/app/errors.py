"""
Error taxonomy shared by the storage client, the upload orchestrator
and the Telegram handlers.

Handlers catch these and pick their own wording; anything else ends up
in the bot error handler.
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.schemas import ApiErrorResponse


class BotError(Exception):
    """Base class for all expected bot failures."""


# Cloud storage backend

class CloudStorageError(BotError):
    """Anything that went wrong talking to the cloud storage backend."""


class CloudStorageApiError(CloudStorageError):
    """Backend answered with a non-success status and an error envelope."""

    def __init__(
        self,
        message: str,
        status_code: int,
        response: Optional["ApiErrorResponse"] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class CloudStorageTransportError(CloudStorageError):
    """Backend (or object storage) could not be reached."""


# Policy rejections happen before any network call

class PolicyRejection(BotError):
    pass


class FileTooLargeError(PolicyRejection):
    def __init__(self, declared_size: int, limit: int):
        super().__init__(f"File size {declared_size} exceeds limit of {limit} bytes")
        self.declared_size = declared_size
        self.limit = limit


class ContactMismatchError(PolicyRejection):
    def __init__(self, sender_id: int, contact_user_id: Optional[int]):
        super().__init__(
            f"Contact user_id={contact_user_id} does not match sender {sender_id}"
        )
        self.sender_id = sender_id
        self.contact_user_id = contact_user_id


# Router-level errors

class IdentityMissingError(BotError):
    """Update carries no sender."""

    def __init__(self, update_id: Optional[int] = None):
        super().__init__(f"Update {update_id} has no sender")
        self.update_id = update_id


class SessionResolutionError(BotError):
    """Lazy registration with the backend failed."""

    def __init__(self, telegram_id: str, cause: Exception):
        super().__init__(f"Failed to register telegram_id {telegram_id}: {cause}")
        self.telegram_id = telegram_id
        self.cause = cause


class InvalidCallbackData(BotError):
    """Button payload that does not parse into a known command."""

    def __init__(self, data: Optional[str], reason: str = "unknown action"):
        super().__init__(f"Invalid callback data {data!r}: {reason}")
        self.data = data
        self.reason = reason


class UploadStepError(BotError):
    """An upload transaction aborted at a specific step."""

    def __init__(self, step: str, cause: Exception):
        super().__init__(f"Upload failed at step '{step}': {cause}")
        self.step = step
        self.cause = cause
