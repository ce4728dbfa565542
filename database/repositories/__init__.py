"""Repositories over an open database connection"""

from database.repositories.appointment_repository import AppointmentRepository
from database.repositories.catalog_repository import CatalogRepository
from database.repositories.user_repository import UserRepository

__all__ = [
    "AppointmentRepository",
    "CatalogRepository",
    "UserRepository",
]
