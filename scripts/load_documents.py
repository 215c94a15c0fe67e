#!/usr/bin/env python
"""Load storefront collections into the document table.

The input is a JSON export keyed by collection name, each holding a list of
documents with an ``id``:

    {"orders": [...], "products": [...], "users": [...]}

Usage:
    # Load (insert or replace) every document in an export
    uv run python scripts/load_documents.py --load export.json --confirm

    # Preview what would be loaded
    uv run python scripts/load_documents.py --load export.json --dry-run

    # Delete one collection
    uv run python scripts/load_documents.py --delete --collection orders --confirm

    # Show document counts
    uv run python scripts/load_documents.py --status
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from datetime import tzinfo
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import get_settings
from app.features.documents import ORDERS, PRODUCTS, USERS
from app.features.documents.models import StoredDocument
from app.features.documents.store import CREATED_AT_FIELD, coerce_datetime

COLLECTIONS = (ORDERS, PRODUCTS, USERS)
BATCH_SIZE = 500


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="AmacusiReports document loader",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument(
        "--load",
        type=Path,
        metavar="FILE",
        help="Load documents from a JSON export",
    )
    mode_group.add_argument(
        "--delete",
        action="store_true",
        help="Delete stored documents",
    )
    mode_group.add_argument(
        "--status",
        action="store_true",
        help="Show document counts per collection",
    )

    parser.add_argument(
        "--collection",
        choices=COLLECTIONS,
        help="Restrict loading or deletion to one collection",
    )
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Confirm writes",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview without writing",
    )
    return parser


def read_export(path: Path, only: str | None = None) -> dict[str, list[dict[str, Any]]]:
    """Read a JSON export, keeping known collections.

    Raises:
        ValueError: If the file is not an object of document lists.
    """
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Export must be a JSON object keyed by collection")

    export: dict[str, list[dict[str, Any]]] = {}
    for collection in COLLECTIONS:
        if only and collection != only:
            continue
        docs = raw.get(collection, [])
        if not isinstance(docs, list):
            raise ValueError(f"Collection '{collection}' must be a list")
        export[collection] = [doc for doc in docs if isinstance(doc, dict) and doc.get("id")]
    return export


def to_row(collection: str, document: dict[str, Any], naive_tz: tzinfo) -> dict[str, Any]:
    """Map a document onto a ``document`` table row.

    Naive ``createdAt`` values are read in the report time zone.
    """
    return {
        "collection": collection,
        "doc_id": str(document["id"]),
        "created_at": coerce_datetime(document.get(CREATED_AT_FIELD), naive_tz),
        "data": document,
    }


def print_counts(counts: dict[str, int], title: str) -> None:
    """Print collection counts in a formatted way."""
    print(f"\n{title}:")
    print("-" * 40)
    for collection, count in counts.items():
        print(f"  {collection:<30} {count:>8,}")
    print("-" * 40)
    print(f"  {'Total':<30} {sum(counts.values()):>8,}")
    print()


async def run_load(args: argparse.Namespace, session: AsyncSession) -> int:
    try:
        export = read_export(args.load, args.collection)
    except (OSError, ValueError) as e:
        print(f"ERROR: Cannot read {args.load}: {e}")
        return 1

    counts = {collection: len(docs) for collection, docs in export.items()}
    if args.dry_run:
        print_counts(counts, "Would load")
        return 0
    if not args.confirm:
        print("ERROR: --confirm flag required for loading documents.")
        print("Use --dry-run to preview or --confirm to proceed.")
        return 1

    naive_tz = ZoneInfo(get_settings().report_timezone)
    for collection, docs in export.items():
        for offset in range(0, len(docs), BATCH_SIZE):
            batch = docs[offset : offset + BATCH_SIZE]
            rows = [to_row(collection, doc, naive_tz) for doc in batch]
            stmt = insert(StoredDocument).values(rows)
            stmt = stmt.on_conflict_do_update(
                constraint="uq_document_collection_doc_id",
                set_={"created_at": stmt.excluded.created_at, "data": stmt.excluded.data},
            )
            await session.execute(stmt)
    await session.commit()

    print_counts(counts, "Loaded")
    return 0


async def run_delete(args: argparse.Namespace, session: AsyncSession) -> int:
    counts = await collection_counts(session)
    if args.collection:
        counts = {args.collection: counts.get(args.collection, 0)}

    if args.dry_run:
        print_counts(counts, "Would delete")
        return 0
    if not args.confirm:
        print("ERROR: --confirm flag required for deletion.")
        print("Use --dry-run to preview or --confirm to proceed.")
        return 1

    stmt = delete(StoredDocument)
    if args.collection:
        stmt = stmt.where(StoredDocument.collection == args.collection)
    await session.execute(stmt)
    await session.commit()

    print_counts(counts, "Deleted")
    return 0


async def collection_counts(session: AsyncSession) -> dict[str, int]:
    result = await session.execute(
        select(StoredDocument.collection, func.count()).group_by(StoredDocument.collection)
    )
    return {collection: count for collection, count in result.all()}


async def main() -> int:
    """Main entry point."""
    args = create_parser().parse_args()

    settings = get_settings()
    engine = create_async_engine(settings.database_url)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with session_maker() as session:
            if args.load:
                return await run_load(args, session)
            if args.delete:
                return await run_delete(args, session)
            print_counts(await collection_counts(session), "Stored documents")
            return 0
    finally:
        await engine.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
