"""Pytest configuration and shared fixtures

This file contains:
- Test environment setup
- Mock objects for aiogram (Bot, Message)
- A migrated, seeded database per test
- Actors, subscribers and service fixtures
"""

import os
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import AsyncMock, Mock

import pytest
from aiogram.types import Chat, Message, User as TelegramUser

# Add the project root to PYTHONPATH
sys.path.insert(0, str(Path(__file__).parent.parent))

# ============================================================================
# TEST ENVIRONMENT
# ============================================================================

# Environment must be set BEFORE config is imported
os.environ["BOT_TOKEN"] = "1234567890:ABCdefGHIjklMNOpqrsTUVwxyz12345678"
os.environ["SALON_TIMEZONE"] = "UTC"
os.environ["SLOT_MINUTES"] = "30"

from database.connection import init_db, write_transaction  # noqa: E402
from database.models import (  # noqa: E402
    Actor,
    OperatingHoursEntry,
    Role,
    Salon,
    Service,
    User,
    WorkScheduleEntry,
)
from database.repositories import CatalogRepository, UserRepository  # noqa: E402
from services.booking_service import BookingService  # noqa: E402
from services.channel_hub import ChannelHub, QueueConnection  # noqa: E402
from services.notification_service import NotificationService  # noqa: E402
from utils.datetime_utils import today_local  # noqa: E402

# ============================================================================
# SEED DATA
# ============================================================================

CUSTOMER_ID = 1
OTHER_CUSTOMER_ID = 2
BARBER_ID = 10
OTHER_BARBER_ID = 11
INACTIVE_BARBER_ID = 12
MANAGER_ID = 20
OTHER_MANAGER_ID = 21
ADMIN_ID = 30

SALON_ID = 100
OTHER_SALON_ID = 101

HAIRCUT_ID = 200  # 30 minutes
COLOR_ID = 201  # 75 minutes, occupies 90 on the grid
RETIRED_SERVICE_ID = 202

CUSTOMER_TELEGRAM_ID = 555001


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: integration test")
    config.addinivalue_line("markers", "unit: unit test")


# ============================================================================
# DATES
# ============================================================================


def _next_monday(today: date) -> date:
    days_ahead = (7 - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


@pytest.fixture
def monday() -> str:
    """Next Monday, always in the future"""
    return _next_monday(today_local()).isoformat()


@pytest.fixture
def saturday(monday) -> str:
    return (date.fromisoformat(monday) + timedelta(days=5)).isoformat()


@pytest.fixture
def sunday(monday) -> str:
    return (date.fromisoformat(monday) + timedelta(days=6)).isoformat()


@pytest.fixture
def past_monday(monday) -> str:
    """A Monday at least one day in the past"""
    return (date.fromisoformat(monday) - timedelta(days=7)).isoformat()


# ============================================================================
# DATABASE
# ============================================================================


async def seed_database(db_path: str):
    async with write_transaction(db_path) as db:
        for user in (
            User(CUSTOMER_ID, "Alice", Role.CUSTOMER, telegram_id=CUSTOMER_TELEGRAM_ID),
            User(OTHER_CUSTOMER_ID, "Bob", Role.CUSTOMER),
            User(BARBER_ID, "Carlos", Role.BARBER),
            User(OTHER_BARBER_ID, "Dana", Role.BARBER),
            User(INACTIVE_BARBER_ID, "Eli", Role.BARBER, is_active=False),
            User(MANAGER_ID, "Morgan", Role.MANAGER),
            User(OTHER_MANAGER_ID, "Nico", Role.MANAGER),
            User(ADMIN_ID, "Root", Role.ADMIN),
        ):
            await UserRepository.upsert_user(db, user)

        # Main salon: weekdays 09-18, Saturday 10-16, closed Sunday
        hours = [OperatingHoursEntry(day, "09:00", "18:00") for day in range(1, 6)]
        hours.append(OperatingHoursEntry(6, "10:00", "16:00"))
        hours.append(OperatingHoursEntry(0, "00:00", "00:00", is_closed=True))
        await CatalogRepository.upsert_salon(
            db, Salon(SALON_ID, "Downtown", operating_hours=hours, staff_ids=[BARBER_ID])
        )
        # Second salon has no configured hours
        await CatalogRepository.upsert_salon(
            db, Salon(OTHER_SALON_ID, "Uptown", staff_ids=[OTHER_BARBER_ID])
        )

        await UserRepository.set_managed_salons(db, MANAGER_ID, [SALON_ID])
        await UserRepository.set_managed_salons(db, OTHER_MANAGER_ID, [OTHER_SALON_ID])

        await CatalogRepository.upsert_service(db, Service(HAIRCUT_ID, "Haircut", 25.0, 30))
        await CatalogRepository.upsert_service(db, Service(COLOR_ID, "Coloring", 80.0, 75))
        await CatalogRepository.upsert_service(
            db, Service(RETIRED_SERVICE_ID, "Hot towel", 10.0, 30, is_active=False)
        )

        # Carlos works Monday to Saturday 09-18, Sunday off
        await CatalogRepository.set_work_schedule(
            db,
            BARBER_ID,
            [WorkScheduleEntry(day, "09:00", "18:00") for day in range(1, 7)]
            + [WorkScheduleEntry(0, "09:00", "18:00", is_working=False)],
        )
        # Dana works Mondays 10-14 only
        await CatalogRepository.set_work_schedule(
            db, OTHER_BARBER_ID, [WorkScheduleEntry(1, "10:00", "14:00")]
        )


@pytest.fixture
async def db_path(tmp_path) -> str:
    """Migrated and seeded database file"""
    path = str(tmp_path / "test_salon.db")
    await init_db(path)
    await seed_database(path)
    return path


# ============================================================================
# ACTORS
# ============================================================================


@pytest.fixture
def actors() -> Dict[str, Actor]:
    return {
        "customer": Actor(CUSTOMER_ID, Role.CUSTOMER),
        "other_customer": Actor(OTHER_CUSTOMER_ID, Role.CUSTOMER),
        "barber": Actor(BARBER_ID, Role.BARBER),
        "other_barber": Actor(OTHER_BARBER_ID, Role.BARBER),
        "manager": Actor(MANAGER_ID, Role.MANAGER, (SALON_ID,)),
        "other_manager": Actor(OTHER_MANAGER_ID, Role.MANAGER, (OTHER_SALON_ID,)),
        "admin": Actor(ADMIN_ID, Role.ADMIN),
    }


# ============================================================================
# NOTIFICATIONS
# ============================================================================


@pytest.fixture
def hub() -> ChannelHub:
    return ChannelHub()


@pytest.fixture
def subscribers(hub, actors) -> Dict[str, QueueConnection]:
    """One in-process connection per actor, joined to its channels"""
    connections = {}
    for name, actor in actors.items():
        connection = QueueConnection()
        hub.join(actor, connection)
        connections[name] = connection
    return connections


@pytest.fixture
def notification_service(hub) -> NotificationService:
    return NotificationService(hub)


@pytest.fixture
async def booking_service(db_path, notification_service) -> BookingService:
    return BookingService(db_path, notification_service)


@pytest.fixture
def book(booking_service, actors, monday):
    """Book Carlos for a customer, failing the test if the booking fails"""

    async def _book(
        start_time: str,
        end_time: str = None,
        customer: str = "customer",
        day: str = None,
        service_id: int = HAIRCUT_ID,
    ):
        actor = actors[customer]
        result = await booking_service.create_appointment(
            actor,
            actor.user_id,
            BARBER_ID,
            service_id,
            SALON_ID,
            day or monday,
            start_time,
            end_time,
        )
        assert result.success, result.message
        return result.value

    return _book


# ============================================================================
# MOCK BOT
# ============================================================================


class MockBot:
    """Mock Telegram Bot for tests"""

    def __init__(self):
        self.sent_messages: List[Dict[str, Any]] = []
        self.session = Mock()
        self.session.close = AsyncMock()

    async def send_message(self, chat_id: int, text: str, reply_markup=None, **kwargs):
        self.sent_messages.append({"chat_id": chat_id, "text": text, **kwargs})
        message = Mock(spec=Message)
        message.message_id = len(self.sent_messages)
        message.text = text
        return message

    def clear_history(self):
        self.sent_messages.clear()


class FailingBot(MockBot):
    """Bot whose every delivery fails"""

    async def send_message(self, chat_id: int, text: str, reply_markup=None, **kwargs):
        raise RuntimeError("Telegram is unreachable")


@pytest.fixture
def mock_bot():
    return MockBot()


@pytest.fixture
def mock_message():
    """Factory for mock Message objects"""

    def _create_message(text: str = "/start", user_id: int = 12345, chat_id: int = 12345) -> Message:
        message = Mock(spec=Message)
        message.text = text
        message.message_id = 1
        message.date = datetime.now()

        message.from_user = Mock(spec=TelegramUser)
        message.from_user.id = user_id
        message.chat = Mock(spec=Chat)
        message.chat.id = chat_id
        message.answer = AsyncMock(return_value=Mock(spec=Message))
        return message

    return _create_message
