"""Initial schema: directory/catalog mirror and appointments"""

from database.migrations.migration_manager import Migration


class InitialSchema(Migration):
    version = 1
    description = "Directory, catalog mirror and appointments with query indexes"

    async def upgrade(self, db):
        # Mirror of the identity service
        await db.execute(
            """CREATE TABLE IF NOT EXISTS users
            (id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            role TEXT NOT NULL CHECK (role IN ('customer', 'barber', 'manager', 'admin')),
            is_active BOOLEAN NOT NULL DEFAULT 1,
            telegram_id INTEGER UNIQUE)"""
        )

        # Mirror of the catalog service
        await db.execute(
            """CREATE TABLE IF NOT EXISTS salons
            (id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT 1)"""
        )

        await db.execute(
            """CREATE TABLE IF NOT EXISTS manager_salons
            (manager_id INTEGER NOT NULL REFERENCES users(id),
            salon_id INTEGER NOT NULL REFERENCES salons(id),
            PRIMARY KEY (manager_id, salon_id))"""
        )

        await db.execute(
            """CREATE TABLE IF NOT EXISTS salon_staff
            (salon_id INTEGER NOT NULL REFERENCES salons(id),
            barber_id INTEGER NOT NULL REFERENCES users(id),
            PRIMARY KEY (salon_id, barber_id))"""
        )

        await db.execute(
            """CREATE TABLE IF NOT EXISTS salon_operating_hours
            (salon_id INTEGER NOT NULL REFERENCES salons(id),
            day INTEGER NOT NULL CHECK (day BETWEEN 0 AND 6),
            open_time TEXT NOT NULL,
            close_time TEXT NOT NULL,
            is_closed BOOLEAN NOT NULL DEFAULT 0,
            PRIMARY KEY (salon_id, day))"""
        )

        await db.execute(
            """CREATE TABLE IF NOT EXISTS services
            (id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            price REAL NOT NULL,
            duration_minutes INTEGER NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT 1)"""
        )

        await db.execute(
            """CREATE TABLE IF NOT EXISTS work_schedules
            (barber_id INTEGER NOT NULL REFERENCES users(id),
            day INTEGER NOT NULL CHECK (day BETWEEN 0 AND 6),
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            is_working BOOLEAN NOT NULL DEFAULT 1,
            PRIMARY KEY (barber_id, day))"""
        )

        await db.execute(
            """CREATE TABLE IF NOT EXISTS appointments
            (id INTEGER PRIMARY KEY AUTOINCREMENT,
            customer_id INTEGER NOT NULL REFERENCES users(id),
            barber_id INTEGER NOT NULL REFERENCES users(id),
            service_id INTEGER NOT NULL REFERENCES services(id),
            salon_id INTEGER NOT NULL REFERENCES salons(id),
            date TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            is_walk_in BOOLEAN NOT NULL DEFAULT 0,
            queue_number INTEGER,
            estimated_wait_time INTEGER,
            cancellation_reason TEXT,
            cancelled_by TEXT,
            cancellation_time TEXT,
            is_emergency BOOLEAN NOT NULL DEFAULT 0,
            emergency_details TEXT,
            completed_by TEXT,
            price REAL,
            is_paid BOOLEAN NOT NULL DEFAULT 0,
            payment_method TEXT,
            products_used TEXT NOT NULL DEFAULT '[]',
            rating INTEGER CHECK (rating BETWEEN 1 AND 5),
            review TEXT,
            notes TEXT,
            created_at TEXT NOT NULL)"""
        )

        # Availability / conflict checks, customer history, salon views
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_appointments_barber ON appointments(barber_id, date, status)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_appointments_customer ON appointments(customer_id, date, status)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_appointments_salon ON appointments(salon_id, date, status)"
        )

    async def downgrade(self, db):
        await db.execute("DROP TABLE IF EXISTS appointments")
        await db.execute("DROP TABLE IF EXISTS work_schedules")
        await db.execute("DROP TABLE IF EXISTS services")
        await db.execute("DROP TABLE IF EXISTS salon_operating_hours")
        await db.execute("DROP TABLE IF EXISTS salon_staff")
        await db.execute("DROP TABLE IF EXISTS manager_salons")
        await db.execute("DROP TABLE IF EXISTS salons")
        await db.execute("DROP TABLE IF EXISTS users")
