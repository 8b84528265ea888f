#!/usr/bin/env python3
"""
Placeholder Image Cleanup

Finds placeholder image URLs (placehold.co, via.placeholder.com and similar)
left behind by seed data and removes them so the app falls back to its own
empty states.

- equipment.image_url and bag_equipment.custom_photo_url are set to NULL
- equipment_photos rows with placeholder URLs are deleted (--cleanup-photos)

Usage:
    python scripts/maintenance/cleanup_placeholder_images.py                    # dry run
    python scripts/maintenance/cleanup_placeholder_images.py --execute --confirm
    python scripts/maintenance/cleanup_placeholder_images.py --execute --confirm --cleanup-photos
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from scripts.database.supabase_admin import describe_api_error, get_service_client
from utils.logging import log_banner, setup_script_logging

PLACEHOLDER_MARKERS = ("placehold", "placeholder")

ACTION_CLEAR = "clear"
ACTION_DELETE = "delete"


@dataclass(frozen=True)
class PlaceholderTarget:
    table: str
    column: str
    select: str
    action: str


EQUIPMENT_TARGET = PlaceholderTarget(
    "equipment", "image_url", "id, brand, model, category, image_url", ACTION_CLEAR
)
BAG_EQUIPMENT_TARGET = PlaceholderTarget(
    "bag_equipment", "custom_photo_url", "id, bag_id, equipment_id, custom_photo_url", ACTION_CLEAR
)
EQUIPMENT_PHOTOS_TARGET = PlaceholderTarget(
    "equipment_photos", "photo_url", "id, equipment_id, photo_url", ACTION_DELETE
)


@dataclass
class TableStats:
    found: int = 0
    changed: int = 0
    errors: int = 0


def is_placeholder_url(url: Optional[str]) -> bool:
    if not url:
        return False
    lowered = url.lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)


def placeholder_filter(column: str) -> str:
    """PostgREST or-filter matching any placeholder marker in a column."""
    return ",".join(f"{column}.ilike.%{marker}%" for marker in PLACEHOLDER_MARKERS)


def validate_flags(execute: bool, confirm: bool) -> Optional[str]:
    """Return an error message when changes were requested without confirmation."""
    if execute and not confirm:
        return (
            "This script will modify your database! "
            "To execute changes, run with: --execute --confirm"
        )
    return None


def find_placeholders(client, target: PlaceholderTarget) -> List[dict]:
    response = (
        client.table(target.table)
        .select(target.select)
        .or_(placeholder_filter(target.column))
        .execute()
    )
    return [row for row in response.data or [] if is_placeholder_url(row.get(target.column))]


def cleanup_target(
    client,
    target: PlaceholderTarget,
    dry_run: bool,
    logger: logging.Logger,
) -> TableStats:
    """
    Clear or delete placeholder rows in one table.

    Returns:
        TableStats: found/changed/errors for the table
    """
    stats = TableStats()
    try:
        rows = find_placeholders(client, target)
    except Exception as e:
        logger.error(f"❌ Error fetching {target.table}: {describe_api_error(e)}")
        stats.errors += 1
        return stats

    stats.found = len(rows)
    logger.info(f"Found {stats.found} {target.table} rows with placeholder {target.column}")
    if dry_run or not rows:
        return stats

    verb = "Deleted" if target.action == ACTION_DELETE else "Updated"
    for row in rows:
        try:
            if target.action == ACTION_DELETE:
                client.table(target.table).delete().eq("id", row["id"]).execute()
            else:
                client.table(target.table).update({target.column: None}).eq(
                    "id", row["id"]
                ).execute()
            stats.changed += 1
            if stats.changed % 10 == 0:
                logger.info(f"  ✓ {verb} {stats.changed}/{stats.found}")
        except Exception as e:
            logger.error(f"  ❌ Failed on {target.table} {row['id']}: {describe_api_error(e)}")
            stats.errors += 1

    logger.info(f"  ✅ {verb} {stats.changed} {target.table} rows")
    if stats.errors:
        logger.warning(f"  ⚠️  {stats.errors} errors occurred")
    return stats


def run_cleanup(
    client, dry_run: bool, cleanup_photos: bool, logger: logging.Logger
) -> Dict[str, TableStats]:
    targets = [EQUIPMENT_TARGET, BAG_EQUIPMENT_TARGET]
    if cleanup_photos:
        targets.append(EQUIPMENT_PHOTOS_TARGET)

    results = {}
    for step, target in enumerate(targets, 1):
        logger.info(f"Step {step}: {target.table}.{target.column}")
        results[target.table] = cleanup_target(client, target, dry_run, logger)
    return results


def main():
    parser = argparse.ArgumentParser(description="Remove placeholder image URLs")
    parser.add_argument("--execute", action="store_true", help="Apply changes")
    parser.add_argument("--confirm", action="store_true", help="Confirm --execute")
    parser.add_argument(
        "--cleanup-photos",
        action="store_true",
        help="Also delete equipment_photos rows with placeholder URLs",
    )
    args = parser.parse_args()

    logger = setup_script_logging("cleanup_placeholder_images")

    error = validate_flags(args.execute, args.confirm)
    if error:
        logger.error(f"⚠️  WARNING: {error}")
        logger.error("To see what would be changed, run without flags (dry run).")
        sys.exit(1)

    dry_run = not args.execute
    log_banner(
        logger,
        f"PLACEHOLDER IMAGE CLEANUP {'(DRY RUN)' if dry_run else '(EXECUTING)'}",
    )

    try:
        client = get_service_client()
    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        sys.exit(1)

    results = run_cleanup(client, dry_run, args.cleanup_photos, logger)

    log_banner(logger, "CLEANUP SUMMARY")
    for table, stats in results.items():
        logger.info(f"{table}: found {stats.found}")
        if not dry_run:
            logger.info(f"  changed {stats.changed}, errors {stats.errors}")
    if dry_run:
        logger.info("This was a dry run. Run with --execute --confirm to apply changes.")

    sys.exit(1 if any(s.errors for s in results.values()) else 0)


if __name__ == "__main__":
    main()
