#!/usr/bin/env python
"""Check database connectivity and the document table.

Usage:
    uv run python scripts/check_db.py
"""

import asyncio
import sys

from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.config import get_settings
from app.features.documents.models import StoredDocument


async def check_database():
    """Verify database connection and report document counts per collection."""
    settings = get_settings()

    print("AmacusiReports - Database Connectivity Check")
    print("=" * 45)
    print(f"Database URL: {settings.database_url.split('@')[1]}")  # Hide credentials
    print()

    engine = create_async_engine(settings.database_url)

    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            assert result.scalar() == 1
            print("[OK] Basic connectivity")

            result = await conn.execute(text("SELECT version()"))
            version = result.scalar()
            print(f"[OK] PostgreSQL version: {version[:50]}...")

            try:
                result = await conn.execute(
                    select(StoredDocument.collection, func.count())
                    .group_by(StoredDocument.collection)
                    .order_by(StoredDocument.collection)
                )
            except SQLAlchemyError:
                print("[WARN] document table missing")
                print("       Run: uv run alembic upgrade head")
            else:
                rows = result.all()
                if not rows:
                    print("[WARN] document table is empty")
                for collection, count in rows:
                    print(f"[OK] {collection:<12} {count:>8,} documents")

        print()
        print("Database check completed successfully!")
        return 0

    except Exception as e:
        print(f"[FAIL] Connection failed: {e}")
        print()
        print("Troubleshooting:")
        print("  1. Ensure Docker is running: docker-compose up -d")
        print("  2. Check DATABASE_URL in .env file")
        print("  3. Verify PostgreSQL container is healthy: docker-compose ps")
        return 1

    finally:
        await engine.dispose()


def main():
    sys.exit(asyncio.run(check_database()))


if __name__ == "__main__":
    main()
