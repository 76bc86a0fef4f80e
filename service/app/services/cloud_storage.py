"""
Cloud storage backend API client.

Thin typed wrapper over the backend's bot endpoints. Every request
carries the shared X-API-Key header; user-scoped calls identify the
caller by telegram id (the backend re-derives authorization from it).

JSON endpoints go through _post(). The legacy multipart upload and the
presigned PUT to object storage have their own request code.
"""

from typing import Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from app.config import get_settings
from app.errors import CloudStorageApiError, CloudStorageTransportError
from app.logging_config import bot_logger as logger
from .schemas import (
    ApiErrorResponse,
    BackendModel,
    CompleteUploadResponse,
    CreateUserRequest,
    CreateUserResponse,
    DeleteAccountResponse,
    DeleteShareLinkResponse,
    FileObjectRequest,
    GenerateShareLinkResponse,
    GetLinksWithViewsRequest,
    GetLinksWithViewsResponse,
    GetUploadUrlRequest,
    GetUploadUrlResponse,
    ListSharedFilesResponse,
    TelegramIdRequest,
    UpdatePhoneRequest,
    UpdatePhoneResponse,
    UploadFileResponse,
)

T = TypeVar("T", bound=BackendModel)

BOT_API_PREFIX = "/api/v1/auth/bot"


class CloudStorageApi:
    """
    Client for the cloud storage backend.

    Pass `transport` to route requests through a custom httpx transport
    (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{BOT_API_PREFIX}{endpoint}"

    async def _post(self, endpoint: str, payload: BackendModel, response_model: type[T]) -> T:
        url = self._url(endpoint)
        try:
            response = await self.client.post(
                url,
                json=payload.to_payload(),
                headers={"X-API-Key": self.api_key},
            )
        except httpx.HTTPError as e:
            logger.error(f"Backend request to {endpoint} failed: {e}")
            raise CloudStorageTransportError(f"Cloud storage backend unreachable: {e}") from e

        return self._parse(response, response_model, "API request failed")

    def _parse(self, response: httpx.Response, response_model: type[T], default_error: str) -> T:
        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.is_success:
            raise self._api_error(response.status_code, data, default_error)

        if data is None:
            raise CloudStorageApiError("Invalid response from backend", response.status_code)

        try:
            return response_model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Unexpected backend response shape for {response_model.__name__}: {e}")
            raise CloudStorageApiError("Unexpected response from backend", response.status_code) from e

    @staticmethod
    def _api_error(status_code: int, data, default_error: str) -> CloudStorageApiError:
        envelope = None
        if isinstance(data, dict):
            try:
                envelope = ApiErrorResponse.model_validate(data)
            except ValidationError:
                envelope = None

        message = default_error
        if envelope is not None:
            message = envelope.message or envelope.error or default_error

        logger.warning(f"Backend error {status_code}: {message}")
        return CloudStorageApiError(message, status_code, envelope)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(
        self,
        telegram_id: str,
        name: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> CreateUserResponse:
        """Register a Telegram user. Idempotent: existing users come back with isNewUser=false."""
        payload = CreateUserRequest(telegram_id=telegram_id, name=name, phone_number=phone_number)
        return await self._post("/create-user", payload, CreateUserResponse)

    async def update_phone(self, telegram_id: str, phone_number: str) -> UpdatePhoneResponse:
        payload = UpdatePhoneRequest(telegram_id=telegram_id, phone_number=phone_number)
        return await self._post("/update-phone", payload, UpdatePhoneResponse)

    async def delete_account(self, telegram_id: str) -> DeleteAccountResponse:
        payload = TelegramIdRequest(telegram_id=telegram_id)
        return await self._post("/delete-account", payload, DeleteAccountResponse)

    # ------------------------------------------------------------------
    # Direct (presigned) uploads
    # ------------------------------------------------------------------

    async def get_upload_url(
        self,
        telegram_id: str,
        filename: str,
        content_type: str,
        file_size: int,
    ) -> GetUploadUrlResponse:
        payload = GetUploadUrlRequest(
            telegram_id=telegram_id,
            filename=filename,
            content_type=content_type,
            file_size=file_size,
        )
        return await self._post("/get-upload-url", payload, GetUploadUrlResponse)

    async def upload_to_storage(self, upload_url: str, content: bytes, content_type: str) -> None:
        """
        PUT raw bytes to a presigned object storage URL.

        No X-API-Key here: the URL itself carries the credentials, and the
        Content-Type must match the type declared when the URL was issued.
        """
        try:
            response = await self.client.put(
                upload_url,
                content=content,
                headers={"Content-Type": content_type},
            )
        except httpx.HTTPError as e:
            logger.error(f"Object storage PUT failed: {e}")
            raise CloudStorageTransportError(f"Object storage unreachable: {e}") from e

        if not response.is_success:
            raise CloudStorageApiError("Failed to upload to storage", response.status_code)

    async def complete_upload(self, telegram_id: str, fs_object_id: str) -> CompleteUploadResponse:
        payload = FileObjectRequest(telegram_id=telegram_id, fs_object_id=fs_object_id)
        return await self._post("/complete-upload", payload, CompleteUploadResponse)

    # ------------------------------------------------------------------
    # Legacy multipart upload
    # ------------------------------------------------------------------

    async def upload_file(
        self,
        telegram_id: str,
        filename: str,
        content_type: str,
        content: bytes,
    ) -> UploadFileResponse:
        """Upload bytes through the backend as multipart/form-data."""
        url = self._url("/upload-file")
        headers = {
            "X-API-Key": self.api_key,
            "X-Telegram-Id": telegram_id,
            "X-Filename": quote(filename, safe=""),
            "X-Content-Type": content_type,
        }
        try:
            response = await self.client.post(
                url,
                files={"file": (filename, content, content_type)},
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Legacy upload request failed: {e}")
            raise CloudStorageTransportError(f"Cloud storage backend unreachable: {e}") from e

        return self._parse(response, UploadFileResponse, "Upload failed")

    async def generate_share_link(self, telegram_id: str, fs_object_id: str) -> GenerateShareLinkResponse:
        payload = FileObjectRequest(telegram_id=telegram_id, fs_object_id=fs_object_id)
        return await self._post("/generate-share-link", payload, GenerateShareLinkResponse)

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    async def list_shared_files(self, telegram_id: str) -> ListSharedFilesResponse:
        payload = TelegramIdRequest(telegram_id=telegram_id)
        return await self._post("/list-shared-files", payload, ListSharedFilesResponse)

    async def delete_share_link(self, telegram_id: str, fs_object_id: str) -> DeleteShareLinkResponse:
        payload = FileObjectRequest(telegram_id=telegram_id, fs_object_id=fs_object_id)
        return await self._post("/delete-share-link", payload, DeleteShareLinkResponse)

    async def get_links_with_views(
        self,
        telegram_id: str,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> GetLinksWithViewsResponse:
        payload = GetLinksWithViewsRequest(telegram_id=telegram_id, page=page, limit=limit)
        return await self._post("/links-with-views", payload, GetLinksWithViewsResponse)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()


# Global instance
_cloud_storage_api: Optional[CloudStorageApi] = None


def get_cloud_storage_api() -> CloudStorageApi:
    """Get or create cloud storage API client singleton."""
    global _cloud_storage_api
    if _cloud_storage_api is None:
        settings = get_settings()
        _cloud_storage_api = CloudStorageApi(
            base_url=settings.cloud_storage_api_url,
            api_key=settings.bot_api_key,
            timeout=settings.http_timeout_seconds,
        )
    return _cloud_storage_api


async def close_cloud_storage_api() -> None:
    """Close and drop the singleton client."""
    global _cloud_storage_api
    if _cloud_storage_api is not None:
        await _cloud_storage_api.close()
        _cloud_storage_api = None
