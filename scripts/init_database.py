#!/usr/bin/env python3
"""
Create the service portal tables in Postgres (service_requests,
payment_attempts, service_pricing, registrations) and seed service_pricing from
config/pricing_catalog.yml when it is empty.

Uses DATABASE_URL environment variable. Does NOT drop existing tables.
"""

from __future__ import annotations
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

# Make sure src is on sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError

from src.database.postgres_real import PostgresDB
from src.database.redis import RedisCache
from src.error_handler import PortalError
from src.integrations.policy.pricing_service import PricingService
from src.utils.config_loader import load_pricing_catalog, load_settings


async def _init(url: str, catalog_path) -> int:
    db = PostgresDB(url)
    try:
        async with db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")

        # Create all tables (only missing ones will be added)
        await db.create_tables()
        async with db.engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        print("✅ App tables now exist:", sorted(tables))

        pricing = PricingService(db, RedisCache(ttl_seconds=0), load_pricing_catalog(catalog_path))
        inserted = await pricing.seed_if_empty()
        if inserted:
            print(f"✅ Seeded {inserted} pricing entries")
        else:
            print("✅ Pricing table already populated, nothing seeded")
        return 0
    finally:
        await db.close()


def main() -> int:
    settings = load_settings()
    if not settings.database_url:
        print("DATABASE_URL is not set", file=sys.stderr)
        return 1

    try:
        return asyncio.run(_init(settings.database_url, settings.pricing_catalog_path))
    except OperationalError as e:
        print(f"❌ Failed to connect to database: {e}", file=sys.stderr)
        return 2
    except (PortalError, FileNotFoundError, ValueError) as e:
        print(f"❌ Initialization failed: {e}", file=sys.stderr)
        return 3


if __name__ == "__main__":
    sys.exit(main())
