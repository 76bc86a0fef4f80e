"""
Presentation helpers: turn backend results into Telegram text and buttons.

Pure functions, no I/O. Texts use HTML parse mode; user-supplied values
(file names) are escaped. Buttons are rows of
{"text": ..., "callback_data": ...} dicts, converted to
InlineKeyboardMarkup by the handlers.
"""

from dataclasses import dataclass, field
from html import escape
from typing import Optional

from app.errors import (
    CloudStorageApiError,
    CloudStorageTransportError,
    ContactMismatchError,
    FileTooLargeError,
    IdentityMissingError,
    InvalidCallbackData,
    SessionResolutionError,
    UploadStepError,
)
from app.services.schemas import LinkWithViews, Pagination, SharedFile, User
from app.services.upload import UploadResult
from .callbacks import CallbackAction, CallbackCommand, delete_link, links_page

KB = 1024
MB = 1024 * 1024

MAX_BUTTON_LABEL = 30

GENERIC_ERROR = "❌ Something went wrong. Please try again later."
TRANSPORT_ERROR = "❌ Storage service is unavailable. Please try again later."
IDENTITY_ERROR = "❌ Could not identify your account. Please try again."

UPLOAD_STEP_MESSAGES = {
    "presign": "Could not prepare the upload",
    "fetch": "Could not download the file from Telegram",
    "transfer": "Could not transfer the file to storage",
    "confirm": "Could not finalize the upload",
    "upload": "Could not upload the file",
    "share": "Could not create a share link",
}

HELP_TEXT = """📖 <b>How to use this bot</b>

<b>Uploading:</b>
Send me any document, photo, video, audio or voice message
and I'll reply with a shareable link.
Maximum file size is 20 MB.

<b>Commands:</b>
/start — register and get started
/status — your account info
/links — your shared links with view counts
/delete — delete a shared link
/deleteaccount — delete your account
/help — this help

<b>Phone number:</b>
Use the "Share phone number" button to verify your phone."""


@dataclass
class RenderedMessage:
    text: str
    buttons: list[list[dict]] = field(default_factory=list)


def format_file_size(size: int) -> str:
    """Human-readable size: bytes below 1 KB, one decimal place above."""
    if size < KB:
        return f"{size} B"
    if size < MB:
        return f"{size / KB:.1f} KB"
    return f"{size / MB:.1f} MB"


def format_date(value: Optional[str]) -> str:
    """ISO-8601 timestamp → YYYY-MM-DD."""
    if not value:
        return "—"
    return value[:10]


def _button(text: str, command: CallbackCommand) -> dict:
    return {"text": text, "callback_data": command.encode()}


def _truncate(name: str) -> str:
    if len(name) > MAX_BUTTON_LABEL:
        return name[:MAX_BUTTON_LABEL - 3] + "..."
    return name


# ----------------------------------------------------------------------
# Account
# ----------------------------------------------------------------------

def render_welcome(first_name: Optional[str], is_new_user: bool) -> str:
    name = escape(first_name or "there")
    if is_new_user:
        return (
            f"👋 Welcome, {name}!\n\n"
            "Your account has been created.\n"
            "Send me any file and I'll give you a shareable link.\n\n"
            "Use /help to see what I can do."
        )
    return (
        f"👋 Welcome back, {name}!\n\n"
        "Send me a file to get a shareable link, or use /links to see your links."
    )


def render_account_status(user: User, is_new_user: bool = False) -> str:
    phone = escape(user.phone_number) if user.phone_number else "not set"
    verified = "✅ verified" if user.is_phone_verified else "❌ not verified"
    lines = [
        "👤 <b>Your account</b>",
        "",
        f"Name: {escape(user.name or '—')}",
        f"Telegram ID: <code>{escape(user.telegram_id)}</code>",
        f"Phone: {phone} ({verified})",
        f"Member since: {format_date(user.created_at)}",
    ]
    if is_new_user:
        lines += ["", "🆕 A new account was just created for you."]
    return "\n".join(lines)


def render_phone_verified(user: User) -> str:
    return (
        "✅ Phone number verified!\n\n"
        f"Phone: {escape(user.phone_number or '')}"
    )


# ----------------------------------------------------------------------
# Uploads
# ----------------------------------------------------------------------

def render_upload_started(filename: str, size: Optional[int]) -> str:
    size_text = f" ({format_file_size(size)})" if size is not None else ""
    return f"⏳ Uploading <b>{escape(filename)}</b>{size_text}..."


def render_upload_success(result: UploadResult) -> str:
    text = (
        "✅ <b>File uploaded!</b>\n\n"
        f"📄 {escape(result.filename)}\n"
        f"📦 {format_file_size(result.size)}\n\n"
        f"🔗 {escape(result.shareable_link)}"
    )
    if result.expires_at:
        text += f"\n\n⏰ Expires: {format_date(result.expires_at)}"
    return text


# ----------------------------------------------------------------------
# Links
# ----------------------------------------------------------------------

def render_links_page(links: list[LinkWithViews], pagination: Pagination) -> RenderedMessage:
    """Render one page of /links with prev/next buttons."""
    if pagination.total == 0:
        return RenderedMessage("📭 You don't have any shared links yet.\n\nSend me a file to create one.")

    if not links:
        buttons = []
        if pagination.total_pages >= 1:
            buttons = [[_button("⬅️ Last page", links_page(pagination.total_pages))]]
        return RenderedMessage(
            f"📭 No links on page {pagination.page}.\n"
            f"You have {pagination.total} link(s) on {pagination.total_pages} page(s).",
            buttons,
        )

    offset = (pagination.page - 1) * pagination.limit
    lines = [
        f"🔗 <b>Your links</b> (page {pagination.page}/{pagination.total_pages}, total {pagination.total})",
        "",
    ]
    for index, link in enumerate(links, start=offset + 1):
        lines.append(f"{index}. <b>{escape(link.filename)}</b> ({format_file_size(link.size)})")
        lines.append(f"   👁 {link.view_count} view(s) · created {format_date(link.share_created_at or link.created_at)}")
        if link.expires_at:
            lines.append(f"   ⏰ expires {format_date(link.expires_at)}")
        lines.append(f"   {escape(link.shareable_link)}")
        lines.append("")

    nav = []
    if pagination.page > 1:
        nav.append(_button("⬅️ Previous", links_page(pagination.page - 1)))
    if pagination.page < pagination.total_pages:
        nav.append(_button("Next ➡️", links_page(pagination.page + 1)))

    return RenderedMessage("\n".join(lines).rstrip(), [nav] if nav else [])


def render_delete_selection(files: list[SharedFile]) -> RenderedMessage:
    """One button per shared file, plus cancel."""
    if not files:
        return RenderedMessage("📭 You don't have any shared links to delete.")

    buttons = [
        [_button(f"🗑️ {_truncate(f.filename)} ({format_file_size(f.size)})", delete_link(f.fs_object_id))]
        for f in files
    ]
    buttons.append([_button("❌ Cancel", CallbackCommand(CallbackAction.DELETE_LINK_CANCEL))])

    return RenderedMessage("🗑️ <b>Which link do you want to delete?</b>", buttons)


def render_delete_account_prompt() -> RenderedMessage:
    return RenderedMessage(
        "⚠️ <b>Delete your account?</b>\n\n"
        "All your files and shared links will be removed. This cannot be undone.",
        [[
            _button("🗑️ Delete", CallbackCommand(CallbackAction.DELETE_ACCOUNT_CONFIRM)),
            _button("❌ Cancel", CallbackCommand(CallbackAction.DELETE_ACCOUNT_CANCEL)),
        ]],
    )


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

def _error_detail(error: Exception) -> str:
    if isinstance(error, CloudStorageApiError):
        return error.message
    if isinstance(error, CloudStorageTransportError):
        return "service unavailable, please try again later"
    return "please try again later"


def describe_error(error: Exception) -> str:
    """User-facing text for an error. Plain text, not HTML."""
    if isinstance(error, FileTooLargeError):
        return (
            f"❌ File is too large ({format_file_size(error.declared_size)}).\n"
            f"Maximum size is {format_file_size(error.limit)}."
        )
    if isinstance(error, ContactMismatchError):
        return "❌ Please share your own contact, not someone else's."
    if isinstance(error, IdentityMissingError):
        return IDENTITY_ERROR
    if isinstance(error, InvalidCallbackData):
        return "❌ Invalid page" if error.reason == "invalid page" else "❌ Invalid action"
    if isinstance(error, UploadStepError):
        prefix = UPLOAD_STEP_MESSAGES.get(error.step, "Upload failed")
        return f"❌ {prefix}: {_error_detail(error.cause)}"
    if isinstance(error, SessionResolutionError):
        return describe_error(error.cause)
    if isinstance(error, CloudStorageApiError):
        return f"❌ {error.message}"
    if isinstance(error, CloudStorageTransportError):
        return TRANSPORT_ERROR
    return GENERIC_ERROR
