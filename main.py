"""
Main entry point for the salon reminder engine.

Starts the daily reminder scheduler and, when a bot token is configured,
the Telegram admin bot in polling mode.
"""

import asyncio
import sys

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from bot import register_admin_handlers
from config import settings
from db import get_db_client
from notifier import get_notifier
from scheduler import setup_scheduler, shutdown_scheduler
from utils.logging_config import quiet_third_party, setup_logging

# Configure logging using centralized configuration
logger = setup_logging(
    name=__name__, log_level="INFO", log_file="bot.log", log_dir="logs"
)
quiet_third_party()


async def run_admin_bot() -> None:
    """Poll Telegram for admin commands until cancelled."""
    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher()
    register_admin_handlers(dp)
    logger.info("Admin handlers registered")

    try:
        logger.info("Admin bot is running in polling mode. Press Ctrl+C to stop.")
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        try:
            await bot.session.close()
            logger.info("Bot session closed")
        except Exception as e:
            logger.error(f"Error closing bot session: {e}", exc_info=True)


async def main() -> None:
    """Start the scheduler and keep the process alive."""
    notifier = get_notifier()
    try:
        logger.info(
            f"Starting salon reminder engine ({settings.environment}, "
            f"notifier={notifier.name})..."
        )

        setup_scheduler(store=get_db_client(), notifier=notifier)
        logger.info("Scheduler started")

        if settings.bot_token:
            await run_admin_bot()
        else:
            logger.info("BOT_TOKEN not set, admin bot disabled. Press Ctrl+C to stop.")
            await asyncio.Event().wait()

    except KeyboardInterrupt:
        logger.info("Stopped by user")
    except asyncio.CancelledError:
        logger.info("Cancelled")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        raise  # Re-raise to ensure proper exit code
    finally:
        logger.info("Shutting down...")
        shutdown_scheduler()
        await notifier.close()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    try:
        settings.validate_all_required()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
