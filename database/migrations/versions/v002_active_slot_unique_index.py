"""Unique start per barber and day among appointments that hold the slot"""

from database.migrations.migration_manager import Migration


class ActiveSlotUniqueIndex(Migration):
    version = 2
    description = "Partial unique index on (barber_id, date, start_time) for active appointments"

    async def upgrade(self, db):
        await db.execute(
            """CREATE UNIQUE INDEX IF NOT EXISTS idx_appointments_active_slot
            ON appointments(barber_id, date, start_time)
            WHERE status NOT IN ('cancelled', 'no-show', 'emergency-cancelled')"""
        )

    async def downgrade(self, db):
        await db.execute("DROP INDEX IF EXISTS idx_appointments_active_slot")
