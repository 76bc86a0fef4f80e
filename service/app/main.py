import asyncio
import hmac
from datetime import datetime, timezone

from fastapi import FastAPI, Request, Header, HTTPException

from app.config import get_settings
from app.logging_config import bot_logger as logger
from app.telegram_bot.bot import handle_telegram_update, initialize_bot, shutdown_bot

app = FastAPI(
    title="File Link Bot",
    description="Telegram bot that turns uploaded files into shareable links",
    version="0.1.0"
)

# Keep references so background update tasks are not garbage collected
_background_tasks: set[asyncio.Task] = set()


# Lifecycle events
@app.on_event("startup")
async def startup_event():
    """Initialize bot and register webhook on startup."""
    logger.info("[STARTUP] Initializing Telegram bot...")
    await initialize_bot()
    logger.info("[STARTUP] Bot ready")


@app.on_event("shutdown")
async def shutdown_event():
    """Deregister webhook and shut the bot down (SIGINT/SIGTERM via uvicorn)."""
    logger.info("[SHUTDOWN] Shutting down Telegram bot...")
    await shutdown_bot()
    logger.info("[SHUTDOWN] Bot stopped")


@app.get("/")
async def root():
    """Liveness check."""
    return {
        "status": "Bot is alive 👋",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.environment,
        "version": "0.1.0"
    }


# Telegram webhook endpoint, the path embeds the bot token
@app.post("/webhook/{token}")
async def telegram_webhook(
    token: str,
    request: Request,
    x_telegram_bot_api_secret_token: str = Header(None)
):
    """
    Webhook endpoint for Telegram updates.

    Telegram sends updates here when messages arrive.
    """
    settings = get_settings()

    if not hmac.compare_digest(token, settings.bot_token):
        raise HTTPException(status_code=404, detail="Not found")

    # Verify secret token if configured
    if settings.webhook_secret:
        if x_telegram_bot_api_secret_token != settings.webhook_secret:
            raise HTTPException(status_code=403, detail="Invalid secret token")

    update_data = await request.json()

    # Handle update in background (fire-and-forget for fast 200 OK)
    task = asyncio.create_task(handle_telegram_update(update_data))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
