"""Application entry point"""

import asyncio
import logging
from dataclasses import dataclass

from aiogram import Bot, Dispatcher

from config import BOT_TOKEN, DATABASE_PATH, LOG_FORMAT, LOG_LEVEL
from database.connection import init_db
from handlers import subscription_handlers
from services.booking_service import BookingService
from services.channel_hub import ChannelHub
from services.notification_service import NotificationService

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)


@dataclass
class Core:
    hub: ChannelHub
    notification_service: NotificationService
    booking_service: BookingService


async def create_core(db_path: str = DATABASE_PATH) -> Core:
    """Migrate the database and wire the services together"""
    await init_db(db_path)
    hub = ChannelHub()
    notification_service = NotificationService(hub)
    booking_service = BookingService(db_path, notification_service)
    return Core(hub, notification_service, booking_service)


async def main():
    if not BOT_TOKEN:
        logging.error("BOT_TOKEN is not set; nothing to deliver notifications to")
        return

    core = await create_core()

    bot = Bot(token=BOT_TOKEN)
    dp = Dispatcher()

    # Injected into handlers by parameter name
    dp["hub"] = core.hub
    dp["db_path"] = DATABASE_PATH
    dp["booking_service"] = core.booking_service
    dp["notification_service"] = core.notification_service

    dp.include_router(subscription_handlers.router)

    logging.info("🚀 Salon notification bot started")

    try:
        await dp.start_polling(bot, skip_updates=True)
    finally:
        await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
