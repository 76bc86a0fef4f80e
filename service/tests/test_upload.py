"""
Tests for the direct upload orchestrator.

The fake backend records every request, so step order and "nothing
after a failed step" can be checked from the request log.
"""

import json

import pytest

from app.errors import CloudStorageApiError, FileTooLargeError, UploadStepError
from app.services.upload import (
    MAX_FILE_SIZE_BYTES,
    DirectUploadOrchestrator,
    MediaKind,
    MediaUpload,
    UploadStep,
)
from conftest import STORAGE_HOST, FakeFileSource

PREFIX = "/api/v1/auth/bot"


def _media(size=11, content_type="text/plain", filename="notes.txt") -> MediaUpload:
    return MediaUpload(
        kind=MediaKind.DOCUMENT,
        source_file_id="tg-file-1",
        filename=filename,
        content_type=content_type,
        declared_size=size,
    )


def _trace(backend) -> list[str]:
    """Backend request log mapped to step names (fetch is tracked separately)."""
    names = []
    for request in backend.requests:
        if request.url.host == STORAGE_HOST:
            names.append("transfer")
        else:
            names.append(request.url.path.rsplit("/", 1)[-1])
    return names


@pytest.fixture
async def registered(api):
    await api.create_user("111")


@pytest.mark.anyio
async def test_successful_upload_runs_steps_in_order(api, backend, registered) -> None:
    order = []

    class RecordingSource(FakeFileSource):
        async def fetch(self, file_id):
            order.append(("fetch", len(backend.requests)))
            return await super().fetch(file_id)

    source = RecordingSource(b"hello world")
    orchestrator = DirectUploadOrchestrator(api, source)
    backend.requests.clear()

    result = await orchestrator.upload("111", _media())

    assert _trace(backend) == ["get-upload-url", "transfer", "complete-upload"]
    # fetch happened after presign and before the transfer
    assert order == [("fetch", 1)]
    assert source.fetched == ["tg-file-1"]

    assert result.filename == "notes.txt"
    assert result.size == len(b"hello world")
    assert result.shareable_link == f"https://share.test/s/{result.fs_object_id}"
    assert backend.stored[result.fs_object_id] == b"hello world"


@pytest.mark.anyio
async def test_presign_declares_file_metadata(api, backend, file_source, registered) -> None:
    orchestrator = DirectUploadOrchestrator(api, file_source)
    result = await orchestrator.upload("111", _media(size=11, content_type="image/png", filename="a.png"))

    presign = next(r for r in backend.requests if r.url.path.endswith("/get-upload-url"))
    put = next(r for r in backend.requests if r.url.host == STORAGE_HOST)
    body = json.loads(presign.content)
    assert body["contentType"] == "image/png"
    assert body["fileSize"] == 11
    assert put.headers["Content-Type"] == "image/png"
    assert result.fs_object_id in put.url.path


@pytest.mark.anyio
async def test_oversized_file_makes_no_network_calls(api, backend, file_source) -> None:
    orchestrator = DirectUploadOrchestrator(api, file_source)

    with pytest.raises(FileTooLargeError) as exc_info:
        await orchestrator.upload("111", _media(size=MAX_FILE_SIZE_BYTES + 1))

    assert exc_info.value.limit == MAX_FILE_SIZE_BYTES
    assert backend.requests == []
    assert file_source.fetched == []


@pytest.mark.anyio
async def test_exact_limit_is_allowed(api, file_source, registered) -> None:
    orchestrator = DirectUploadOrchestrator(api, file_source)
    result = await orchestrator.upload("111", _media(size=MAX_FILE_SIZE_BYTES))
    assert result.shareable_link


@pytest.mark.anyio
async def test_presign_failure_stops_everything(api, backend, file_source, registered) -> None:
    backend.fail[f"{PREFIX}/get-upload-url"] = (400, {"status": "error", "message": "Unsupported file type"})
    orchestrator = DirectUploadOrchestrator(api, file_source)
    backend.requests.clear()

    with pytest.raises(UploadStepError) as exc_info:
        await orchestrator.upload("111", _media())

    assert exc_info.value.step == UploadStep.PRESIGN.value
    assert isinstance(exc_info.value.cause, CloudStorageApiError)
    assert exc_info.value.cause.message == "Unsupported file type"
    assert file_source.fetched == []
    assert _trace(backend) == ["get-upload-url"]


@pytest.mark.anyio
async def test_fetch_failure_stops_transfer_and_confirm(api, backend, registered) -> None:
    source = FakeFileSource(error=RuntimeError("File is too big"))
    orchestrator = DirectUploadOrchestrator(api, source)
    backend.requests.clear()

    with pytest.raises(UploadStepError) as exc_info:
        await orchestrator.upload("111", _media())

    assert exc_info.value.step == UploadStep.FETCH.value
    assert _trace(backend) == ["get-upload-url"]


@pytest.mark.anyio
async def test_transfer_failure_stops_confirm(api, backend, file_source, registered) -> None:
    backend.storage_status = 403
    orchestrator = DirectUploadOrchestrator(api, file_source)
    backend.requests.clear()

    with pytest.raises(UploadStepError) as exc_info:
        await orchestrator.upload("111", _media())

    assert exc_info.value.step == UploadStep.TRANSFER.value
    assert exc_info.value.cause.status_code == 403
    assert _trace(backend) == ["get-upload-url", "transfer"]


@pytest.mark.anyio
async def test_confirm_failure_is_tagged(api, backend, file_source, registered) -> None:
    backend.fail[f"{PREFIX}/complete-upload"] = (500, {"status": "error", "message": "Could not finalize"})
    orchestrator = DirectUploadOrchestrator(api, file_source)

    with pytest.raises(UploadStepError) as exc_info:
        await orchestrator.upload("111", _media())

    assert exc_info.value.step == UploadStep.CONFIRM.value
    assert exc_info.value.cause.message == "Could not finalize"


@pytest.mark.anyio
async def test_no_retry_after_failure(api, backend, file_source, registered) -> None:
    backend.fail[f"{PREFIX}/complete-upload"] = (500, {"status": "error", "message": "boom"})
    orchestrator = DirectUploadOrchestrator(api, file_source)

    with pytest.raises(UploadStepError):
        await orchestrator.upload("111", _media())

    assert backend.calls[f"{PREFIX}/get-upload-url"] == 1
    assert backend.calls[f"{PREFIX}/complete-upload"] == 1


@pytest.mark.anyio
async def test_unknown_size_is_declared_as_zero(api, backend, file_source, registered) -> None:
    orchestrator = DirectUploadOrchestrator(api, file_source)
    await orchestrator.upload("111", _media(size=None))

    presign = next(r for r in backend.requests if r.url.path.endswith("/get-upload-url"))
    assert json.loads(presign.content)["fileSize"] == 0


@pytest.mark.anyio
async def test_legacy_flow_uses_multipart_and_share_link(api, backend, file_source, registered) -> None:
    orchestrator = DirectUploadOrchestrator(api, file_source, legacy_upload=True)
    backend.requests.clear()

    result = await orchestrator.upload("111", _media())

    assert _trace(backend) == ["upload-file", "generate-share-link"]
    assert file_source.fetched == ["tg-file-1"]
    assert result.shareable_link.startswith("https://share.test/s/")
    assert result.size == 42


@pytest.mark.anyio
async def test_legacy_flow_still_checks_size(api, backend, file_source) -> None:
    orchestrator = DirectUploadOrchestrator(api, file_source, legacy_upload=True)

    with pytest.raises(FileTooLargeError):
        await orchestrator.upload("111", _media(size=MAX_FILE_SIZE_BYTES + 1))

    assert backend.requests == []
