#!/usr/bin/env python
"""Check database connectivity and the sales webhook tables.

Usage:
    python scripts/check_db.py
"""

import asyncio
import sys

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.config import get_settings

REQUIRED_TABLES = ("device_registry", "sales")


async def check_database():
    """Verify database connection, required tables and the dedup constraint."""
    settings = get_settings()

    print("VendoLedger - Database Connectivity Check")
    print("=" * 45)

    missing = settings.missing_required
    if missing:
        print(f"[WARN] Not configured: {', '.join(missing)}")
    if not settings.database_url:
        print("[FAIL] DATABASE_URL is required")
        return 1

    print(f"Database: {make_url(settings.database_url).render_as_string(hide_password=True)}")
    print()

    engine = create_async_engine(settings.database_dsn)

    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            assert result.scalar() == 1
            print("[OK] Basic connectivity")

            status = 0
            for table in REQUIRED_TABLES:
                result = await conn.execute(text("SELECT to_regclass(:name)"), {"name": table})
                if result.scalar():
                    print(f"[OK] Table '{table}' exists")
                else:
                    print(f"[FAIL] Table '{table}' missing")
                    status = 1

            result = await conn.execute(
                text("SELECT 1 FROM pg_constraint WHERE conname = 'uq_sales_tenant_txn'")
            )
            if result.scalar():
                print("[OK] Unique constraint on sales(tenant_id, txn)")
            else:
                print("[WARN] uq_sales_tenant_txn missing - duplicate txns will not be detected")
                status = 1

        print()
        print("Database check completed." if status == 0 else "Database check found problems.")
        return status

    except Exception as e:
        print(f"[FAIL] Connection failed: {e}")
        print()
        print("Troubleshooting:")
        print("  1. Check DATABASE_URL and DATABASE_PASSWORD in the environment or .env")
        print("  2. Verify the database accepts connections from this host")
        return 1

    finally:
        await engine.dispose()


def main():
    sys.exit(asyncio.run(check_database()))


if __name__ == "__main__":
    main()
