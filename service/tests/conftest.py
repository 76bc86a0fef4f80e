"""
Shared fixtures: an in-memory fake of the cloud storage backend served
through httpx.MockTransport, and helpers to build Telegram-like mocks.
"""

from __future__ import annotations

import json
from collections import Counter
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.services.cloud_storage import CloudStorageApi
from app.services.upload import DirectUploadOrchestrator
from app.telegram_bot.context import SERVICES_KEY, BotServices
from app.telegram_bot.dedup import UpdateDeduplicator
from app.telegram_bot.session import SessionResolver

BASE_URL = "https://storage.test"
API_KEY = "test-api-key"
STORAGE_HOST = "bucket.s3.test"


class FakeBackend:
    """
    Minimal stateful stand-in for the backend bot API plus object storage.

    `calls` counts requests per path; `requests` keeps them in order.
    Set `fail[path] = (status, body)` to make an endpoint fail.
    """

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.links: dict[str, list[dict]] = {}
        self.pending: dict[str, dict] = {}
        self.stored: dict[str, bytes] = {}
        self.calls: Counter = Counter()
        self.requests: list[httpx.Request] = []
        self.fail: dict[str, tuple[int, Any]] = {}
        self.storage_status: int | None = None
        self._next_id = 1

    def _new_id(self, prefix: str) -> str:
        value = f"{prefix}-{self._next_id}"
        self._next_id += 1
        return value

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        self.calls[path] += 1

        if path in self.fail:
            status, body = self.fail[path]
            if isinstance(body, (dict, list)):
                return httpx.Response(status, json=body)
            return httpx.Response(status, text=body or "")

        if request.url.host == STORAGE_HOST:
            return self._storage_put(request)

        name = path.rsplit("/", 1)[-1]
        if name == "upload-file":
            return self._upload_file(request)

        body = json.loads(request.content or b"{}")
        handler = getattr(self, "_" + name.replace("-", "_"), None)
        if handler is None:
            return httpx.Response(404, json={"status": "error", "message": "Not found"})
        return handler(body)

    # users

    def _create_user(self, body: dict) -> httpx.Response:
        telegram_id = body["telegramId"]
        is_new = telegram_id not in self.users
        if is_new:
            self.users[telegram_id] = {
                "id": self._new_id("user"),
                "telegramId": telegram_id,
                "phoneNumber": body.get("phoneNumber"),
                "name": body.get("name") or "",
                "profilePic": None,
                "isPhoneVerified": False,
                "createdAt": "2026-01-02T03:04:05.000Z",
            }
        return httpx.Response(201 if is_new else 200, json={
            "status": "success",
            "message": "User created" if is_new else "User exists",
            "data": {"user": self.users[telegram_id], "token": f"token-{telegram_id}", "isNewUser": is_new},
        })

    def _user_or_404(self, telegram_id: str):
        if telegram_id not in self.users:
            return httpx.Response(404, json={"status": "error", "message": "User not found"})
        return None

    def _update_phone(self, body: dict) -> httpx.Response:
        missing = self._user_or_404(body["telegramId"])
        if missing:
            return missing
        user = self.users[body["telegramId"]]
        user.update(phoneNumber=body["phoneNumber"], isPhoneVerified=True)
        return httpx.Response(200, json={"status": "success", "message": "ok", "data": {"user": user}})

    def _delete_account(self, body: dict) -> httpx.Response:
        missing = self._user_or_404(body["telegramId"])
        if missing:
            return missing
        del self.users[body["telegramId"]]
        self.links.pop(body["telegramId"], None)
        return httpx.Response(200, json={"status": "success", "message": "Deleted", "data": {"deleted": True}})

    # uploads

    def _get_upload_url(self, body: dict) -> httpx.Response:
        missing = self._user_or_404(body["telegramId"])
        if missing:
            return missing
        fs_object_id = self._new_id("obj")
        self.pending[fs_object_id] = body
        return httpx.Response(200, json={"status": "success", "message": "ok", "data": {
            "fsObjectId": fs_object_id,
            "uploadUrl": f"https://{STORAGE_HOST}/uploads/{fs_object_id}?signature=abc",
            "s3Key": f"uploads/{fs_object_id}",
        }})

    def _storage_put(self, request: httpx.Request) -> httpx.Response:
        if self.storage_status is not None:
            return httpx.Response(self.storage_status, text="storage error")
        fs_object_id = request.url.path.rsplit("/", 1)[-1]
        declared = self.pending.get(fs_object_id)
        if declared is None or request.headers.get("Content-Type") != declared["contentType"]:
            return httpx.Response(403, text="SignatureDoesNotMatch")
        self.stored[fs_object_id] = request.content
        return httpx.Response(200)

    def _complete_upload(self, body: dict) -> httpx.Response:
        fs_object_id = body["fsObjectId"]
        if fs_object_id not in self.stored:
            return httpx.Response(400, json={"status": "error", "message": "Upload not found in storage"})
        declared = self.pending.pop(fs_object_id)
        link = self.add_link(body["telegramId"], fs_object_id, declared["filename"], len(self.stored[fs_object_id]))
        return httpx.Response(200, json={"status": "success", "message": "ok", "data": {
            "fsObjectId": fs_object_id,
            "filename": link["filename"],
            "size": link["size"],
            "sourceType": "telegram",
            "shareableLink": link["shareableLink"],
        }})

    def _upload_file(self, request: httpx.Request) -> httpx.Response:
        telegram_id = request.headers["X-Telegram-Id"]
        missing = self._user_or_404(telegram_id)
        if missing:
            return missing
        fs_object_id = self._new_id("obj")
        self.stored[fs_object_id] = request.content
        self.pending[fs_object_id] = {"filename": request.headers["X-Filename"]}
        return httpx.Response(201, json={"status": "success", "message": "ok", "data": {
            "fsObjectId": fs_object_id,
            "filename": request.headers["X-Filename"],
            "size": 42,
            "sourceType": "telegram",
        }})

    def _generate_share_link(self, body: dict) -> httpx.Response:
        fs_object_id = body["fsObjectId"]
        declared = self.pending.pop(fs_object_id)
        link = self.add_link(body["telegramId"], fs_object_id, declared["filename"], 42)
        return httpx.Response(200, json={"status": "success", "message": "ok", "data": {
            "shareableLink": link["shareableLink"],
            "filename": link["filename"],
            "fileSize": 42,
            "expiresAt": None,
        }})

    # links

    def add_link(self, telegram_id: str, fs_object_id: str, filename: str, size: int) -> dict:
        link = {
            "fsObjectId": fs_object_id,
            "filename": filename,
            "size": size,
            "sourceType": "telegram",
            "viewCount": 0,
            "shareableLink": f"https://share.test/s/{fs_object_id}",
            "createdAt": "2026-01-02T03:04:05.000Z",
            "shareCreatedAt": "2026-01-02T03:04:05.000Z",
            "expiresAt": None,
        }
        self.links.setdefault(telegram_id, []).append(link)
        return link

    def seed_links(self, telegram_id: str, count: int) -> None:
        for i in range(count):
            self.add_link(telegram_id, f"seed-{i + 1}", f"file-{i + 1}.txt", 1000 * (i + 1))

    def _list_shared_files(self, body: dict) -> httpx.Response:
        files = [
            {k: link[k] for k in ("fsObjectId", "filename", "size", "sourceType", "createdAt", "shareCreatedAt")}
            for link in self.links.get(body["telegramId"], [])
        ]
        return httpx.Response(200, json={"status": "success", "message": "ok", "data": {"files": files}})

    def _delete_share_link(self, body: dict) -> httpx.Response:
        links = self.links.get(body["telegramId"], [])
        for link in links:
            if link["fsObjectId"] == body["fsObjectId"]:
                links.remove(link)
                return httpx.Response(200, json={"status": "success", "message": "ok", "data": {
                    "fsObjectId": link["fsObjectId"], "filename": link["filename"],
                }})
        return httpx.Response(404, json={"status": "error", "message": "Share link not found"})

    def _links_with_views(self, body: dict) -> httpx.Response:
        page = body.get("page", 1)
        limit = body.get("limit", 10)
        links = self.links.get(body["telegramId"], [])
        total = len(links)
        start = (page - 1) * limit
        return httpx.Response(200, json={"status": "success", "message": "ok", "data": {
            "links": links[start:start + limit],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": (total + limit - 1) // limit,
            },
        }})


class FakeFileSource:
    def __init__(self, content: bytes = b"hello world", error: Exception | None = None):
        self.content = content
        self.error = error
        self.fetched: list[str] = []

    async def fetch(self, file_id: str) -> bytes:
        self.fetched.append(file_id)
        if self.error:
            raise self.error
        return self.content


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def api(backend):
    client = CloudStorageApi(BASE_URL, API_KEY, transport=httpx.MockTransport(backend))
    yield client
    await client.close()


@pytest.fixture
def file_source() -> FakeFileSource:
    return FakeFileSource()


@pytest.fixture
def services(api, file_source) -> BotServices:
    return BotServices(
        api=api,
        sessions=SessionResolver(api),
        uploader=DirectUploadOrchestrator(api, file_source),
        dedup=UpdateDeduplicator(10),
        links_page_size=5,
    )


@pytest.fixture
def context(services):
    ctx = MagicMock()
    ctx.bot_data = {SERVICES_KEY: services}
    ctx.args = []
    return ctx


def make_user(user_id: int = 111, first_name: str = "Ada"):
    user = MagicMock()
    user.id = user_id
    user.first_name = first_name
    user.full_name = first_name
    return user


def make_message_update(user=None, **message_fields):
    """Update with an effective_message whose reply_text returns an editable status message."""
    update = MagicMock()
    update.update_id = 1
    update.effective_user = user
    message = MagicMock()
    for name in ("document", "photo", "video", "audio", "voice", "contact"):
        setattr(message, name, None)
    for name, value in message_fields.items():
        setattr(message, name, value)
    status_message = MagicMock()
    status_message.edit_text = AsyncMock()
    message.reply_text = AsyncMock(return_value=status_message)
    update.effective_message = message
    return update


def make_callback_update(data: str, user=None):
    update = MagicMock()
    update.effective_user = user
    query = MagicMock()
    query.data = data
    query.answer = AsyncMock()
    query.edit_message_text = AsyncMock()
    update.callback_query = query
    return update
