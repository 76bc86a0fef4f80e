"""
Telegram message, command and button handlers.

Single-turn commands:
- /start, /status, /help, fallback text
- media (document/photo/video/audio/voice) → one status message,
  edited in place with the link or the error

Button flows (callback data parsed once, see callbacks.py):
- /links → page N, re-entrant via prev/next buttons
- /delete → file selection → deleted | cancelled
- /deleteaccount → confirmation → deleted | cancelled

Phone verification: user shares a contact; it must be their own.

Every handler checks the sender first and catches backend errors itself,
so each reply can be worded for its command. Anything unexpected goes
to handle_error.
"""

from telegram import (
    Contact,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
    Update,
    User,
)
from telegram.ext import ContextTypes

from app.errors import (
    CloudStorageError,
    ContactMismatchError,
    FileTooLargeError,
    IdentityMissingError,
    InvalidCallbackData,
    SessionResolutionError,
    UploadStepError,
)
from app.logging_config import bot_logger as logger
from .callbacks import CallbackAction, CallbackCommand, object_digest, parse_callback_data, parse_page
from .context import BotServices, get_services
from .formatting import (
    GENERIC_ERROR,
    HELP_TEXT,
    RenderedMessage,
    describe_error,
    render_account_status,
    render_delete_account_prompt,
    render_delete_selection,
    render_links_page,
    render_phone_verified,
    render_upload_started,
    render_upload_success,
    render_welcome,
)
from .media import normalize_media

SHARE_PHONE_KEYBOARD = ReplyKeyboardMarkup(
    [[KeyboardButton("📱 Share phone number", request_contact=True)]],
    resize_keyboard=True,
    one_time_keyboard=True,
)


def to_inline_markup(buttons: list[list[dict]]) -> InlineKeyboardMarkup | None:
    if not buttons:
        return None
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(b["text"], callback_data=b["callback_data"]) for b in row] for row in buttons]
    )


async def _reply_rendered(update: Update, rendered: RenderedMessage) -> None:
    await update.effective_message.reply_text(
        rendered.text,
        parse_mode="HTML",
        reply_markup=to_inline_markup(rendered.buttons),
    )


def require_sender(update: Update) -> User:
    """The sending user, or IdentityMissingError for channel posts and the like."""
    user = update.effective_user
    if user is None:
        raise IdentityMissingError(update.update_id)
    return user


async def _reply_identity_error(update: Update, error: IdentityMissingError) -> None:
    logger.warning(str(error))
    if update.effective_message:
        await update.effective_message.reply_text(describe_error(error))


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

async def handle_start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start: register lazily and greet new and returning users differently."""
    try:
        user = require_sender(update)
    except IdentityMissingError as e:
        await _reply_identity_error(update, e)
        return

    services = get_services(context)

    try:
        registration = await services.sessions.ensure_registered(
            telegram_id=str(user.id),
            display_name=user.full_name,
        )
    except SessionResolutionError as e:
        logger.error(f"/start registration failed for telegram_id={user.id}: {e}")
        await update.effective_message.reply_text(describe_error(e))
        return

    reply_markup = None
    if not registration.user.is_phone_verified:
        reply_markup = SHARE_PHONE_KEYBOARD

    await update.effective_message.reply_text(
        render_welcome(user.first_name, registration.is_new_user),
        parse_mode="HTML",
        reply_markup=reply_markup,
    )


async def handle_status_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /status.

    Goes through registration, so a deleted account is recreated here
    and the reply says so.
    """
    try:
        user = require_sender(update)
    except IdentityMissingError as e:
        await _reply_identity_error(update, e)
        return

    services = get_services(context)

    try:
        registration = await services.sessions.ensure_registered(
            telegram_id=str(user.id),
            display_name=user.full_name,
        )
    except SessionResolutionError as e:
        logger.error(f"/status failed for telegram_id={user.id}: {e}")
        await update.effective_message.reply_text(describe_error(e))
        return

    await update.effective_message.reply_text(
        render_account_status(registration.user, registration.is_new_user),
        parse_mode="HTML",
    )


async def handle_help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    await update.effective_message.reply_text(HELP_TEXT, parse_mode="HTML")


async def _render_links(services: BotServices, telegram_id: str, page: int) -> RenderedMessage:
    response = await services.api.get_links_with_views(
        telegram_id=telegram_id,
        page=page,
        limit=services.links_page_size,
    )
    return render_links_page(response.data.links, response.data.pagination)


async def handle_links_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /links [page]."""
    try:
        user = require_sender(update)
    except IdentityMissingError as e:
        await _reply_identity_error(update, e)
        return

    page = 1
    if context.args:
        try:
            page = parse_page(context.args[0])
        except InvalidCallbackData as e:
            await update.effective_message.reply_text(describe_error(e))
            return

    services = get_services(context)

    try:
        rendered = await _render_links(services, str(user.id), page)
    except CloudStorageError as e:
        logger.error(f"/links failed for telegram_id={user.id}: {e}")
        await update.effective_message.reply_text(describe_error(e))
        return

    await _reply_rendered(update, rendered)


async def handle_delete_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete: show shared files as selection buttons."""
    try:
        user = require_sender(update)
    except IdentityMissingError as e:
        await _reply_identity_error(update, e)
        return

    services = get_services(context)

    try:
        response = await services.api.list_shared_files(str(user.id))
    except CloudStorageError as e:
        logger.error(f"/delete listing failed for telegram_id={user.id}: {e}")
        await update.effective_message.reply_text(describe_error(e))
        return

    await _reply_rendered(update, render_delete_selection(response.data.files))


async def handle_delete_account_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /deleteaccount: ask for confirmation."""
    try:
        require_sender(update)
    except IdentityMissingError as e:
        await _reply_identity_error(update, e)
        return

    await _reply_rendered(update, render_delete_account_prompt())


# ----------------------------------------------------------------------
# Messages
# ----------------------------------------------------------------------

async def handle_media_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle document/photo/video/audio/voice.

    Size guard → registration → status message → orchestrator → edit status.
    """
    try:
        user = require_sender(update)
    except IdentityMissingError as e:
        await _reply_identity_error(update, e)
        return

    message = update.effective_message

    media = normalize_media(message)
    if media is None:
        await handle_text_message(update, context)
        return

    services = get_services(context)

    try:
        services.uploader.check_size(media)
    except FileTooLargeError as e:
        logger.info(f"Rejected {media.kind.value} from telegram_id={user.id}: {e}")
        await message.reply_text(describe_error(e))
        return

    try:
        await services.sessions.ensure_registered(
            telegram_id=str(user.id),
            display_name=user.full_name,
        )
    except SessionResolutionError as e:
        await message.reply_text(describe_error(e))
        return

    status_message = await message.reply_text(
        render_upload_started(media.filename, media.declared_size),
        parse_mode="HTML",
    )

    try:
        result = await services.uploader.upload(str(user.id), media)
    except (UploadStepError, FileTooLargeError) as e:
        await status_message.edit_text(describe_error(e))
        return

    await status_message.edit_text(render_upload_success(result), parse_mode="HTML")


def verify_contact(sender_id: int, contact: Contact) -> None:
    """A shared contact must belong to the sender; forwarded third-party contacts are rejected."""
    if contact.user_id is None or contact.user_id != sender_id:
        raise ContactMismatchError(sender_id, contact.user_id)


async def handle_contact_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle a shared contact: verify ownership, then store the phone number."""
    try:
        user = require_sender(update)
    except IdentityMissingError as e:
        await _reply_identity_error(update, e)
        return

    message = update.effective_message

    try:
        verify_contact(user.id, message.contact)
    except ContactMismatchError as e:
        logger.warning(f"Contact mismatch: {e}")
        await message.reply_text(describe_error(e), reply_markup=SHARE_PHONE_KEYBOARD)
        return

    services = get_services(context)

    try:
        response = await services.api.update_phone(str(user.id), message.contact.phone_number)
    except CloudStorageError as e:
        logger.error(f"Phone update failed for telegram_id={user.id}: {e}")
        await message.reply_text(describe_error(e))
        return

    await message.reply_text(
        render_phone_verified(response.data.user),
        parse_mode="HTML",
        reply_markup=ReplyKeyboardRemove(),
    )


async def handle_text_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Fallback for anything that is not a file or a known command."""
    await update.effective_message.reply_text(
        "📎 Send me a file to get a shareable link.\n"
        "Use /help to see all commands."
    )


# ----------------------------------------------------------------------
# Buttons
# ----------------------------------------------------------------------

async def handle_callback_query(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Parse the button payload once and dispatch on the typed action."""
    query = update.callback_query

    try:
        user = require_sender(update)
    except IdentityMissingError as e:
        await query.answer(describe_error(e), show_alert=True)
        return

    logger.info(f"Callback from user_id={user.id}: {query.data}")

    try:
        command = parse_callback_data(query.data)
    except InvalidCallbackData as e:
        logger.warning(str(e))
        await query.answer(describe_error(e), show_alert=True)
        return

    services = get_services(context)
    handler = CALLBACK_HANDLERS[command.action]
    await handler(query, services, str(user.id), command)


async def _on_links_page(query, services: BotServices, telegram_id: str, command: CallbackCommand) -> None:
    try:
        rendered = await _render_links(services, telegram_id, command.page)
    except CloudStorageError as e:
        logger.error(f"Links page {command.page} failed for telegram_id={telegram_id}: {e}")
        await query.answer(describe_error(e), show_alert=True)
        return

    await query.answer()
    await query.edit_message_text(
        rendered.text,
        parse_mode="HTML",
        reply_markup=to_inline_markup(rendered.buttons),
    )


async def _resolve_object_id(services: BotServices, telegram_id: str, command: CallbackCommand) -> str | None:
    if command.digest is None:
        return command.argument

    response = await services.api.list_shared_files(telegram_id)
    for shared in response.data.files:
        if object_digest(shared.fs_object_id) == command.digest:
            return shared.fs_object_id
    return None


async def _on_delete_link(query, services: BotServices, telegram_id: str, command: CallbackCommand) -> None:
    await query.answer()

    try:
        fs_object_id = await _resolve_object_id(services, telegram_id, command)
        if fs_object_id is None:
            await query.edit_message_text("❌ Share link not found")
            return
        response = await services.api.delete_share_link(telegram_id, fs_object_id)
    except CloudStorageError as e:
        logger.error(f"Delete link {command.argument} failed for telegram_id={telegram_id}: {e}")
        await query.edit_message_text(describe_error(e))
        return

    logger.info(f"Deleted share link fs_object_id={response.data.fs_object_id}")
    await query.edit_message_text(f"✅ Link for \"{response.data.filename}\" deleted.")


async def _on_delete_link_cancel(query, services: BotServices, telegram_id: str, command: CallbackCommand) -> None:
    await query.answer("Cancelled")
    await query.edit_message_text("❌ Deletion cancelled.")


async def _on_delete_account_confirm(query, services: BotServices, telegram_id: str, command: CallbackCommand) -> None:
    await query.answer()

    try:
        response = await services.api.delete_account(telegram_id)
    except CloudStorageError as e:
        logger.error(f"Account deletion failed for telegram_id={telegram_id}: {e}")
        await query.edit_message_text(describe_error(e))
        return

    if not response.data.deleted:
        await query.edit_message_text("❌ Your account could not be deleted. Please try again later.")
        return

    services.sessions.forget(telegram_id)
    logger.info(f"Deleted account for telegram_id={telegram_id}")

    await query.edit_message_text(
        "✅ Your account has been deleted.\n\n"
        "Send /start anytime to create a new one."
    )


async def _on_delete_account_cancel(query, services: BotServices, telegram_id: str, command: CallbackCommand) -> None:
    await query.answer("Cancelled")
    await query.edit_message_text("❌ Account deletion cancelled.")


CALLBACK_HANDLERS = {
    CallbackAction.LINKS_PAGE: _on_links_page,
    CallbackAction.DELETE_LINK: _on_delete_link,
    CallbackAction.DELETE_LINK_CANCEL: _on_delete_link_cancel,
    CallbackAction.DELETE_ACCOUNT_CONFIRM: _on_delete_account_confirm,
    CallbackAction.DELETE_ACCOUNT_CANCEL: _on_delete_account_cancel,
}


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors in handlers."""
    logger.error(f"Bot error: {context.error}", exc_info=context.error)

    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text(GENERIC_ERROR)
