"""
Direct upload orchestration: Telegram → object storage, bypassing our server.

PRESIGNED FLOW (default):
=========================
1. presign  - backend reserves an object and returns a presigned PUT URL
2. fetch    - download the file bytes from Telegram by file_id
3. transfer - PUT the bytes straight to the presigned URL
4. confirm  - backend finalizes the object and returns the share link

Any failing step aborts the transaction with UploadStepError tagged with
that step. Nothing is retried here: the backend may already hold a
pending object, so a retry must come from a fresh user action.

LEGACY FLOW (LEGACY_UPLOAD_ENABLED):
====================================
fetch → multipart upload through the backend → generate share link.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

from app.errors import FileTooLargeError, UploadStepError
from app.logging_config import bot_logger as logger
from .cloud_storage import CloudStorageApi

T = TypeVar("T")

MAX_FILE_SIZE_BYTES = 20 * 1024 * 1024  # Telegram Bot API download limit


class MediaKind(str, Enum):
    DOCUMENT = "document"
    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"
    VOICE = "voice"


class UploadStep(str, Enum):
    PRESIGN = "presign"
    FETCH = "fetch"
    TRANSFER = "transfer"
    CONFIRM = "confirm"
    # legacy flow only
    UPLOAD = "upload"
    SHARE = "share"


@dataclass(frozen=True)
class MediaUpload:
    """One file to upload, whatever kind of Telegram message it came from."""
    kind: MediaKind
    source_file_id: str
    filename: str
    content_type: str
    declared_size: Optional[int] = None


@dataclass
class UploadResult:
    fs_object_id: str
    filename: str
    size: int
    shareable_link: str
    expires_at: Optional[str] = None


class FileSource(Protocol):
    """Where the bytes come from (Telegram in production)."""

    async def fetch(self, file_id: str) -> bytes:
        ...


class DirectUploadOrchestrator:
    def __init__(
        self,
        api: CloudStorageApi,
        file_source: FileSource,
        max_file_size: int = MAX_FILE_SIZE_BYTES,
        legacy_upload: bool = False,
    ):
        self.api = api
        self.file_source = file_source
        self.max_file_size = max_file_size
        self.legacy_upload = legacy_upload

    def check_size(self, media: MediaUpload) -> None:
        """Pre-flight guard, runs before any network call."""
        if media.declared_size is not None and media.declared_size > self.max_file_size:
            raise FileTooLargeError(media.declared_size, self.max_file_size)

    async def upload(self, telegram_id: str, media: MediaUpload) -> UploadResult:
        self.check_size(media)

        logger.info(
            f"Upload started: telegram_id={telegram_id}, kind={media.kind.value}, "
            f"filename={media.filename}, size={media.declared_size}, legacy={self.legacy_upload}"
        )

        if self.legacy_upload:
            result = await self._upload_legacy(telegram_id, media)
        else:
            result = await self._upload_direct(telegram_id, media)

        logger.info(f"Upload finished: fs_object_id={result.fs_object_id}, size={result.size}")
        return result

    async def _upload_direct(self, telegram_id: str, media: MediaUpload) -> UploadResult:
        slot_response = await self._run_step(
            UploadStep.PRESIGN,
            self.api.get_upload_url,
            telegram_id=telegram_id,
            filename=media.filename,
            content_type=media.content_type,
            file_size=media.declared_size or 0,
        )
        slot = slot_response.data
        logger.debug(f"Reserved fs_object_id={slot.fs_object_id}, s3_key={slot.s3_key}")

        content = await self._run_step(UploadStep.FETCH, self.file_source.fetch, media.source_file_id)

        # Content-Type must match what get_upload_url was told
        await self._run_step(
            UploadStep.TRANSFER,
            self.api.upload_to_storage,
            slot.upload_url,
            content,
            media.content_type,
        )

        completed = await self._run_step(
            UploadStep.CONFIRM,
            self.api.complete_upload,
            telegram_id=telegram_id,
            fs_object_id=slot.fs_object_id,
        )
        data = completed.data

        return UploadResult(
            fs_object_id=data.fs_object_id,
            filename=data.filename,
            size=data.size,
            shareable_link=data.shareable_link,
        )

    async def _upload_legacy(self, telegram_id: str, media: MediaUpload) -> UploadResult:
        content = await self._run_step(UploadStep.FETCH, self.file_source.fetch, media.source_file_id)

        uploaded = await self._run_step(
            UploadStep.UPLOAD,
            self.api.upload_file,
            telegram_id=telegram_id,
            filename=media.filename,
            content_type=media.content_type,
            content=content,
        )

        share = await self._run_step(
            UploadStep.SHARE,
            self.api.generate_share_link,
            telegram_id=telegram_id,
            fs_object_id=uploaded.data.fs_object_id,
        )

        return UploadResult(
            fs_object_id=uploaded.data.fs_object_id,
            filename=share.data.filename,
            size=share.data.file_size,
            shareable_link=share.data.shareable_link,
            expires_at=share.data.expires_at,
        )

    async def _run_step(self, step: UploadStep, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Upload step '{step.value}' failed: {e}", exc_info=True)
            raise UploadStepError(step.value, e) from e
