#!/usr/bin/env python3
"""Database migration script - creates all tables."""

import asyncio

from blinks_relay.config import get_settings
from blinks_relay.ledger.database import close_db, init_db


async def main():
    """Run database migrations."""
    settings = get_settings()

    print(f"Database URL: {settings._redact_url(settings.database_url)}")
    print("Creating database tables...")

    try:
        await init_db()
        print("Database tables created successfully!")
    except Exception as e:
        print(f"Error creating tables: {e}")
        raise
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
