"""Application configuration"""

import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

# Telegram (optional: notification channels are bound to chats only when set)
BOT_TOKEN = os.getenv("BOT_TOKEN")

# Database
DATABASE_PATH = os.getenv("DATABASE_PATH", "salon.db")
DB_BUSY_TIMEOUT = float(os.getenv("DB_BUSY_TIMEOUT", "5.0"))  # seconds
DB_LOCK_RETRIES = int(os.getenv("DB_LOCK_RETRIES", "3"))
DB_LOCK_RETRY_DELAY = 0.05  # seconds, doubled on each retry

# Scheduling
SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "30"))
DEFAULT_PRODUCT_UNIT = "ml"

# Time zone used to decide what "today" is
TIMEZONE = ZoneInfo(os.getenv("SALON_TIMEZONE", "UTC"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Weekday names, indexed 0=Sunday as in work schedules
DAY_NAMES = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]
