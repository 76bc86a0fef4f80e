"""
Normalization of Telegram media messages into MediaUpload.

Each message kind stores its file differently (photos come as a list of
sizes, voice notes have no file name, ...). Everything downstream only
sees the normalized MediaUpload.
"""

from typing import Optional

from telegram import Bot, Message

from app.services.upload import MediaKind, MediaUpload

# (default extension, default content type) per kind
MEDIA_DEFAULTS = {
    MediaKind.DOCUMENT: ("", "application/octet-stream"),
    MediaKind.PHOTO: (".jpg", "image/jpeg"),
    MediaKind.VIDEO: (".mp4", "video/mp4"),
    MediaKind.AUDIO: (".mp3", "audio/mpeg"),
    MediaKind.VOICE: (".ogg", "audio/ogg"),
}


def _default_filename(kind: MediaKind, file_unique_id: str) -> str:
    extension, _ = MEDIA_DEFAULTS[kind]
    return f"{kind.value}_{file_unique_id}{extension}"


def _build(kind: MediaKind, attachment, file_name: Optional[str] = None, mime_type: Optional[str] = None) -> MediaUpload:
    _, default_type = MEDIA_DEFAULTS[kind]
    return MediaUpload(
        kind=kind,
        source_file_id=attachment.file_id,
        filename=file_name or _default_filename(kind, attachment.file_unique_id),
        content_type=mime_type or default_type,
        declared_size=attachment.file_size,
    )


def normalize_media(message: Message) -> Optional[MediaUpload]:
    """Return the MediaUpload for a media message, or None for anything else."""
    if message.document:
        doc = message.document
        return _build(MediaKind.DOCUMENT, doc, doc.file_name, doc.mime_type)

    if message.photo:
        # Sizes are ordered smallest to largest
        return _build(MediaKind.PHOTO, message.photo[-1])

    if message.video:
        video = message.video
        return _build(MediaKind.VIDEO, video, video.file_name, video.mime_type)

    if message.audio:
        audio = message.audio
        return _build(MediaKind.AUDIO, audio, audio.file_name, audio.mime_type)

    if message.voice:
        voice = message.voice
        return _build(MediaKind.VOICE, voice, mime_type=voice.mime_type)

    return None


class TelegramFileSource:
    """Downloads file bytes from Telegram: getFile, then fetch from the returned path."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def fetch(self, file_id: str) -> bytes:
        telegram_file = await self.bot.get_file(file_id)
        content = await telegram_file.download_as_bytearray()
        return bytes(content)
