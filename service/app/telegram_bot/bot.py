"""
Main Telegram bot handler.

Uses python-telegram-bot library with webhook mode: FastAPI receives the
update, handle_telegram_update() deduplicates it and feeds it to the
Application.
"""

from telegram import BotCommand, Update
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, MessageHandler, filters

from app.config import get_settings
from app.logging_config import bot_logger as logger
from app.services.cloud_storage import close_cloud_storage_api, get_cloud_storage_api
from app.services.upload import DirectUploadOrchestrator
from .context import SERVICES_KEY, BotServices, services_from_bot_data
from .dedup import UpdateDeduplicator
from .handlers import (
    handle_callback_query,
    handle_contact_message,
    handle_delete_account_command,
    handle_delete_command,
    handle_error,
    handle_help_command,
    handle_links_command,
    handle_media_message,
    handle_start_command,
    handle_status_command,
    handle_text_message,
)
from .media import TelegramFileSource
from .session import SessionResolver

BOT_COMMANDS = [
    BotCommand("start", "Register and get started"),
    BotCommand("status", "Your account info"),
    BotCommand("links", "Your shared links with view counts"),
    BotCommand("delete", "Delete a shared link"),
    BotCommand("deleteaccount", "Delete your account"),
    BotCommand("help", "How to use the bot"),
]

MEDIA_FILTER = filters.Document.ALL | filters.PHOTO | filters.VIDEO | filters.AUDIO | filters.VOICE


# Global application instance (initialized once)
_application: Application | None = None


def webhook_path(bot_token: str) -> str:
    """Secret webhook path, derived from the bot token."""
    return f"/webhook/{bot_token}"


def register_handlers(application: Application) -> None:
    application.add_handler(CommandHandler("start", handle_start_command))
    application.add_handler(CommandHandler("status", handle_status_command))
    application.add_handler(CommandHandler("help", handle_help_command))
    application.add_handler(CommandHandler("links", handle_links_command))
    application.add_handler(CommandHandler("delete", handle_delete_command))
    application.add_handler(CommandHandler("deleteaccount", handle_delete_account_command))

    # Files
    application.add_handler(MessageHandler(MEDIA_FILTER, handle_media_message))

    # Phone verification
    application.add_handler(MessageHandler(filters.CONTACT, handle_contact_message))

    # Everything else, unknown commands included
    application.add_handler(MessageHandler(filters.TEXT, handle_text_message))

    # Callback queries (inline keyboard buttons)
    application.add_handler(CallbackQueryHandler(handle_callback_query))

    application.add_error_handler(handle_error)


def get_bot_application() -> Application:
    """Get or create telegram bot application."""
    global _application

    if _application is None:
        settings = get_settings()

        application = (
            Application.builder()
            .token(settings.bot_token)
            .build()
        )

        api = get_cloud_storage_api()
        application.bot_data[SERVICES_KEY] = BotServices(
            api=api,
            sessions=SessionResolver(api),
            uploader=DirectUploadOrchestrator(
                api,
                TelegramFileSource(application.bot),
                max_file_size=settings.max_file_size_bytes,
                legacy_upload=settings.legacy_upload_enabled,
            ),
            dedup=UpdateDeduplicator(settings.dedup_capacity),
            links_page_size=settings.links_page_size,
        )

        register_handlers(application)

        _application = application
        logger.info("Telegram bot application initialized")

    return _application


async def handle_telegram_update(update_data: dict, application: Application | None = None) -> None:
    """
    Process incoming webhook update from Telegram.

    Called by the FastAPI webhook endpoint in a background task. The
    duplicate check runs before anything else, with no await in between.
    """
    app = application or get_bot_application()
    services = services_from_bot_data(app.bot_data)

    if not isinstance(update_data, dict):
        logger.warning(f"Received non-object update body: {type(update_data).__name__}")
        return

    update_id = update_data.get("update_id")
    # bool is an int subclass but never a valid update id
    if not isinstance(update_id, int) or isinstance(update_id, bool):
        logger.warning(f"Received update with invalid update_id: {update_id!r}")
        return

    if services.dedup.seen(update_id):
        logger.info(f"Duplicate update_id={update_id}, skipping")
        return

    try:
        update = Update.de_json(update_data, app.bot)

        if update:
            await app.process_update(update)
        else:
            logger.warning("Received invalid update data")

    except Exception as e:
        logger.error(f"Failed to process update {update_id}: {e}", exc_info=True)


async def initialize_bot() -> None:
    """
    Initialize bot application (call on startup).

    Registers the command menu and, when DOMAIN is configured, the webhook.
    """
    settings = get_settings()
    app = get_bot_application()
    await app.initialize()

    await app.bot.set_my_commands(BOT_COMMANDS)

    if settings.domain:
        webhook_url = f"{settings.domain.rstrip('/')}{webhook_path(settings.bot_token)}"
        await app.bot.set_webhook(
            url=webhook_url,
            secret_token=settings.webhook_secret or None,
        )
        logger.info("Webhook registered")
    else:
        logger.warning("DOMAIN is not set, webhook not registered")

    logger.info("Bot initialized successfully")


async def shutdown_bot() -> None:
    """
    Shutdown bot application (call on shutdown).

    Deregisters the webhook first so Telegram stops sending updates.
    """
    global _application
    if _application:
        settings = get_settings()
        if settings.domain:
            try:
                await _application.bot.delete_webhook()
                logger.info("Webhook removed")
            except Exception as e:
                logger.warning(f"Failed to remove webhook: {e}")

        await _application.shutdown()
        await close_cloud_storage_api()
        _application = None
        logger.info("Bot shut down")
