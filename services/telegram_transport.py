"""Telegram binding for notification channels"""

from aiogram import Bot

from services.channel_hub import Event

EVENT_ICONS = {
    "appointment.created": "🔔",
    "appointment.updated": "🔄",
    "appointment.cancelled": "❌",
    "emergency.summary": "🚨",
    "walk-in.created": "🚶",
    "queue.updated": "📋",
}


def format_event_text(event: Event) -> str:
    """Short chat message for an event"""
    lines = [f"{EVENT_ICONS.get(event.name, '•')} {event.message or event.name}"]

    appointment = event.payload.get("appointment")
    if appointment:
        lines.append(
            f"📅 {appointment['date']} {appointment['start_time']}-{appointment['end_time']}"
        )
        lines.append(f"Status: {appointment['status']}")
    return "\n".join(lines)


class TelegramConnection:
    """A Telegram chat subscribed to an actor's channels"""

    def __init__(self, bot: Bot, chat_id: int):
        self.bot = bot
        self.chat_id = chat_id

    def __eq__(self, other):
        return isinstance(other, TelegramConnection) and other.chat_id == self.chat_id

    def __hash__(self):
        return hash(("telegram", self.chat_id))

    async def send(self, event: Event) -> None:
        await self.bot.send_message(self.chat_id, format_event_text(event))
