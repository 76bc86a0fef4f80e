"""
Request/response models for the cloud storage backend bot API.

The backend speaks camelCase JSON; models use snake_case attributes
with aliases so both forms are accepted on input.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BackendModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Envelope(BackendModel):
    status: str
    message: str = ""


class ApiErrorResponse(BackendModel):
    status: str = "error"
    message: str = ""
    error: Optional[str] = None


# Users

class CreateUserRequest(BackendModel):
    telegram_id: str = Field(..., alias="telegramId")
    name: Optional[str] = None
    phone_number: Optional[str] = Field(None, alias="phoneNumber")


class User(BackendModel):
    id: str
    telegram_id: str = Field(..., alias="telegramId")
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    name: str = ""
    profile_pic: Optional[str] = Field(None, alias="profilePic")
    is_phone_verified: bool = Field(False, alias="isPhoneVerified")
    created_at: Optional[str] = Field(None, alias="createdAt")


class CreateUserData(BackendModel):
    user: User
    token: str
    is_new_user: bool = Field(..., alias="isNewUser")


class CreateUserResponse(Envelope):
    data: CreateUserData


class UpdatePhoneRequest(BackendModel):
    telegram_id: str = Field(..., alias="telegramId")
    phone_number: str = Field(..., alias="phoneNumber")


class UpdatePhoneData(BackendModel):
    user: User


class UpdatePhoneResponse(Envelope):
    data: UpdatePhoneData


class DeleteAccountData(BackendModel):
    deleted: bool


class DeleteAccountResponse(Envelope):
    data: DeleteAccountData


class TelegramIdRequest(BackendModel):
    telegram_id: str = Field(..., alias="telegramId")


# Uploads

class GetUploadUrlRequest(BackendModel):
    telegram_id: str = Field(..., alias="telegramId")
    filename: str
    content_type: str = Field(..., alias="contentType")
    file_size: int = Field(..., alias="fileSize")


class UploadSlot(BackendModel):
    fs_object_id: str = Field(..., alias="fsObjectId")
    upload_url: str = Field(..., alias="uploadUrl")
    s3_key: str = Field(..., alias="s3Key")


class GetUploadUrlResponse(Envelope):
    data: UploadSlot


class FileObjectRequest(BackendModel):
    """Body shared by complete-upload, generate-share-link and delete-share-link."""
    telegram_id: str = Field(..., alias="telegramId")
    fs_object_id: str = Field(..., alias="fsObjectId")


class CompletedUpload(BackendModel):
    fs_object_id: str = Field(..., alias="fsObjectId")
    filename: str
    size: int
    source_type: str = Field("", alias="sourceType")
    shareable_link: str = Field(..., alias="shareableLink")


class CompleteUploadResponse(Envelope):
    data: CompletedUpload


class UploadedFile(BackendModel):
    fs_object_id: str = Field(..., alias="fsObjectId")
    filename: str
    size: int
    source_type: str = Field("", alias="sourceType")


class UploadFileResponse(Envelope):
    data: UploadedFile


class ShareLink(BackendModel):
    shareable_link: str = Field(..., alias="shareableLink")
    filename: str
    file_size: int = Field(..., alias="fileSize")
    expires_at: Optional[str] = Field(None, alias="expiresAt")


class GenerateShareLinkResponse(Envelope):
    data: ShareLink


# Listing

class SharedFile(BackendModel):
    fs_object_id: str = Field(..., alias="fsObjectId")
    filename: str
    size: int
    source_type: str = Field("", alias="sourceType")
    created_at: Optional[str] = Field(None, alias="createdAt")
    share_created_at: Optional[str] = Field(None, alias="shareCreatedAt")


class ListSharedFilesData(BackendModel):
    files: list[SharedFile] = Field(default_factory=list)


class ListSharedFilesResponse(Envelope):
    data: ListSharedFilesData


class DeletedShareLink(BackendModel):
    fs_object_id: str = Field(..., alias="fsObjectId")
    filename: str


class DeleteShareLinkResponse(Envelope):
    data: DeletedShareLink


class GetLinksWithViewsRequest(BackendModel):
    telegram_id: str = Field(..., alias="telegramId")
    page: Optional[int] = None
    limit: Optional[int] = None


class LinkWithViews(BackendModel):
    fs_object_id: str = Field(..., alias="fsObjectId")
    filename: str
    size: int
    source_type: str = Field("", alias="sourceType")
    view_count: int = Field(0, alias="viewCount")
    shareable_link: str = Field(..., alias="shareableLink")
    created_at: Optional[str] = Field(None, alias="createdAt")
    share_created_at: Optional[str] = Field(None, alias="shareCreatedAt")
    expires_at: Optional[str] = Field(None, alias="expiresAt")


class Pagination(BackendModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(..., alias="totalPages")


class LinksWithViewsData(BackendModel):
    links: list[LinkWithViews] = Field(default_factory=list)
    pagination: Pagination


class GetLinksWithViewsResponse(Envelope):
    data: LinksWithViewsData
