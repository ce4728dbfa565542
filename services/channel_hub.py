"""Logical channels and their subscribed connections"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Set

from database.models import Actor, Role

BARBERS_CHANNEL = "barbers"
MANAGERS_CHANNEL = "managers"


def user_channel(user_id: int) -> str:
    return f"user-{user_id}"


def salon_channel(salon_id: int) -> str:
    return f"salon-{salon_id}"


def channels_for(actor: Actor) -> List[str]:
    """Channels a connecting actor joins"""
    channels = [user_channel(actor.user_id)]
    if actor.role is Role.BARBER:
        channels.append(BARBERS_CHANNEL)
    elif actor.role is Role.MANAGER:
        channels.append(MANAGERS_CHANNEL)
        channels.extend(salon_channel(salon_id) for salon_id in actor.managed_salon_ids)
    return channels


@dataclass
class Event:
    """One message for one logical channel"""
    name: str
    channel: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        return self.payload.get("message", "")


class Connection(Protocol):
    async def send(self, event: Event) -> None:
        ...


class QueueConnection:
    """In-process subscriber backed by an asyncio queue"""

    def __init__(self, maxsize: int = 0):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    async def send(self, event: Event) -> None:
        # Full queue means a stalled subscriber; the event is dropped
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logging.warning(f"Subscriber queue full, dropped {event.name} for {event.channel}")

    async def receive(self) -> Event:
        return await self.queue.get()

    def drain(self) -> List[Event]:
        events = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events


class ChannelHub:
    """Membership table plus at-most-once fan-out

    Membership changes only on connect/disconnect of a connection.
    """

    def __init__(self):
        self._channels: Dict[str, Set[Connection]] = defaultdict(set)

    def join_channel(self, channel: str, connection: Connection):
        self._channels[channel].add(connection)

    def join(self, actor: Actor, connection: Connection) -> List[str]:
        channels = channels_for(actor)
        for channel in channels:
            self.join_channel(channel, connection)
        logging.info(f"User {actor.user_id} joined {', '.join(channels)}")
        return channels

    def leave(self, connection: Connection):
        for channel in list(self._channels):
            self._channels[channel].discard(connection)
            if not self._channels[channel]:
                del self._channels[channel]

    def members(self, channel: str) -> List[Connection]:
        return list(self._channels.get(channel, ()))

    async def publish(self, event: Event) -> int:
        """Deliver to every member of the event's channel

        Returns:
            int: number of successful deliveries
        """
        delivered = 0
        for connection in self.members(event.channel):
            try:
                await connection.send(event)
                delivered += 1
            except Exception as e:
                logging.error(f"Failed to deliver {event.name} to {event.channel}: {e}")
        return delivered
