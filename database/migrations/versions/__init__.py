"""Schema migration versions"""

from database.migrations.versions.v001_initial_schema import InitialSchema
from database.migrations.versions.v002_active_slot_unique_index import ActiveSlotUniqueIndex

ALL_MIGRATIONS = [InitialSchema, ActiveSlotUniqueIndex]

__all__ = ["InitialSchema", "ActiveSlotUniqueIndex", "ALL_MIGRATIONS"]
