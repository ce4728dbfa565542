"""Telegram subscription commands

A chat subscribes to its user's notification channels with /start and
unsubscribes with /stop. The hub and database path are injected through
the dispatcher.
"""

import logging

from aiogram import Bot, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from database.connection import connect
from database.repositories import UserRepository
from services.channel_hub import ChannelHub
from services.telegram_transport import TelegramConnection

router = Router()


@router.message(CommandStart())
async def start_cmd(message: Message, bot: Bot, hub: ChannelHub, db_path: str):
    """Subscribe this chat to the sender's channels"""
    telegram_id = message.from_user.id
    async with connect(db_path) as db:
        user = await UserRepository.get_by_telegram_id(db, telegram_id)
        actor = await UserRepository.resolve_actor(db, user.id) if user else None

    if actor is None:
        logging.warning(f"Unknown or inactive Telegram user {telegram_id} tried to subscribe")
        await message.answer(
            "❌ Your Telegram account is not linked to an active salon profile."
        )
        return

    channels = hub.join(actor, TelegramConnection(bot, message.chat.id))
    await message.answer(
        f"✅ Hi {user.name}! You will receive appointment notifications here.\n"
        f"Channels: {', '.join(channels)}\n\n"
        "Send /stop to unsubscribe."
    )


@router.message(Command("stop"))
async def stop_cmd(message: Message, bot: Bot, hub: ChannelHub):
    """Unsubscribe this chat from every channel"""
    hub.leave(TelegramConnection(bot, message.chat.id))
    logging.info(f"Chat {message.chat.id} unsubscribed")
    await message.answer("🔕 Notifications stopped. Send /start to subscribe again.")
