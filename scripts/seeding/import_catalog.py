#!/usr/bin/env python3
"""
Equipment Catalog Import

Loads equipment items from a JSON file (a list of objects, typically the
output of a scraping run under scraped-data/) and inserts the ones the
catalog does not have yet.

Items are validated with EquipmentItem before anything is written. An item
is considered present when a catalog row has the same brand and model,
compared case-insensitively. Duplicates inside the file are dropped too.

Usage:
    python scripts/seeding/import_catalog.py scraped-data/drivers.json
    python scripts/seeding/import_catalog.py scraped-data/putters.json --dry-run
"""

import argparse
import json
import logging
import os
import sys
from typing import Dict, Iterable, List, Set, Tuple

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from config.settings import config
from scripts.collectors.equipment_schemas import EquipmentItem, load_equipment_file
from scripts.database.supabase_admin import (
    describe_api_error,
    fetch_all_rows,
    get_service_client,
)
from utils.logging import log_banner, setup_script_logging


def catalog_key(brand: str, model: str) -> Tuple[str, str]:
    return ((brand or "").strip().lower(), (model or "").strip().lower())


def existing_catalog_keys(client) -> Set[Tuple[str, str]]:
    rows = fetch_all_rows(client, "equipment", "id, brand, model")
    return {catalog_key(row.get("brand"), row.get("model")) for row in rows}


def select_new_items(
    items: Iterable[dict], existing: Set[Tuple[str, str]]
) -> Tuple[List[dict], int]:
    """
    Drop items already in the catalog or repeated earlier in the input.

    Returns:
        Tuple[List[dict], int]: (rows to insert, number skipped)
    """
    seen = set(existing)
    new_rows: List[dict] = []
    skipped = 0

    for item in items:
        key = catalog_key(item["brand"], item["model"])
        if key in seen:
            skipped += 1
            continue
        seen.add(key)
        item = {k: v for k, v in item.items() if k != "id"}
        new_rows.append(EquipmentItem.model_validate(item).to_row())

    return new_rows, skipped


def batched(rows: List[dict], size: int):
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


def insert_rows(
    client, rows: List[dict], logger: logging.Logger, batch_size: int = None
) -> Tuple[int, int]:
    """
    Insert rows in batches; a failed batch is logged and counted.

    Returns:
        Tuple[int, int]: (rows inserted, rows in failed batches)
    """
    batch_size = batch_size or config.IMPORT_BATCH_SIZE
    inserted = 0
    failed = 0

    for number, batch in enumerate(batched(rows, batch_size), start=1):
        try:
            client.table("equipment").insert(batch).execute()
            inserted += len(batch)
            logger.info(f"✅ Batch {number}: inserted {len(batch)} items")
        except Exception as e:
            failed += len(batch)
            logger.error(f"❌ Batch {number} failed: {describe_api_error(e)}")

    return inserted, failed


def import_catalog(
    client, path: str, logger: logging.Logger, dry_run: bool = False
) -> Dict[str, int]:
    """
    Validate, de-duplicate and insert the items in a JSON file.

    Returns:
        Dict[str, int]: counts of loaded, invalid, skipped, inserted and failed

    Raises:
        ValueError: If the file does not contain a JSON list
    """
    items, errors = load_equipment_file(path)
    for error in errors:
        logger.warning(f"⚠️  {os.path.basename(path)} {error}")
    logger.info(f"📂 Loaded {len(items)} valid items from {path}")

    new_rows, skipped = select_new_items(items, existing_catalog_keys(client))
    logger.info(f"📊 {len(new_rows)} new, {skipped} already in catalog")

    counts = {
        "loaded": len(items),
        "invalid": len(errors),
        "skipped": skipped,
        "inserted": 0,
        "failed": 0,
    }

    if dry_run:
        for row in new_rows:
            logger.info(f"📝 [DRY RUN] Would insert {row['brand']} {row['model']} ({row['category']})")
        return counts

    counts["inserted"], counts["failed"] = insert_rows(client, new_rows, logger)
    return counts


def main():
    parser = argparse.ArgumentParser(description="Import equipment items from a JSON file")
    parser.add_argument("path", help="JSON file holding a list of equipment objects")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be inserted")
    args = parser.parse_args()

    logger = setup_script_logging("import_catalog")
    log_banner(logger, "📦 Equipment Catalog Import")

    try:
        counts = import_catalog(get_service_client(), args.path, logger, args.dry_run)
    except FileNotFoundError:
        logger.error(f"❌ File not found: {args.path}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        logger.error(f"❌ {args.path} is not valid JSON: {e}")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"❌ Fatal error: {describe_api_error(e)}")
        sys.exit(1)

    logger.info(
        f"✅ Complete! Inserted {counts['inserted']}, skipped {counts['skipped']}, "
        f"invalid {counts['invalid']}, failed {counts['failed']}"
    )
    sys.exit(1 if counts["failed"] else 0)


if __name__ == "__main__":
    main()
