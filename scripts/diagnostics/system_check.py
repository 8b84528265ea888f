#!/usr/bin/env python3
"""
System Check

Checks the tables behind each feature area (tees, feed, forum, badges, bags)
and reports which exist, which are missing, and how many rows they hold.

Usage:
    python scripts/diagnostics/system_check.py
    python scripts/diagnostics/system_check.py --area forum --area badges
    python scripts/diagnostics/system_check.py --anon   # check as a logged-out visitor
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from scripts.database.supabase_admin import (
    describe_api_error,
    get_anon_client,
    get_service_client,
    is_missing_table_error,
    is_permission_error,
)
from utils.logging import log_banner, setup_script_logging

STATUS_OK = "ok"
STATUS_MISSING = "missing"
STATUS_DENIED = "denied"
STATUS_ERROR = "error"

# Feature area -> tables; required tables fail the check when missing
FEATURE_TABLES: Dict[str, List[tuple]] = {
    "tees": [
        ("feed_likes", True),
        ("bag_tees", False),
        ("equipment_tees", False),
    ],
    "feed": [
        ("feed_posts", True),
        ("feed_likes", True),
    ],
    "forum": [
        ("forum_categories", True),
        ("forum_threads", True),
        ("forum_posts", True),
        ("forum_reactions", False),
    ],
    "badges": [
        ("badges", True),
        ("user_badges", True),
    ],
    "bags": [
        ("user_bags", True),
        ("bag_equipment", True),
        ("equipment", True),
        ("equipment_photos", False),
    ],
}


@dataclass
class TableCheck:
    area: str
    table: str
    required: bool
    status: str
    rows: int = 0
    error: Optional[str] = None

    @property
    def is_failure(self) -> bool:
        return self.required and self.status != STATUS_OK


def check_table(client, area: str, table: str, required: bool) -> TableCheck:
    """Count rows in one table and classify any error."""
    try:
        response = client.table(table).select("*", count="exact").limit(5).execute()
    except Exception as e:
        if is_missing_table_error(e):
            status = STATUS_MISSING
        elif is_permission_error(e):
            status = STATUS_DENIED
        else:
            status = STATUS_ERROR
        return TableCheck(area, table, required, status, error=describe_api_error(e))

    rows = response.count if response.count is not None else len(response.data or [])
    return TableCheck(area, table, required, STATUS_OK, rows=rows)


def run_system_check(
    client,
    areas: Optional[List[str]] = None,
    logger: Optional[logging.Logger] = None,
) -> List[TableCheck]:
    """
    Check every table in the selected feature areas.

    Args:
        client: Supabase client to query with
        areas: Feature areas to check; defaults to all of FEATURE_TABLES
        logger: Logger for progress output

    Returns:
        List[TableCheck]: One result per checked table
    """
    logger = logger or logging.getLogger(__name__)
    results = []

    for area in areas or list(FEATURE_TABLES):
        logger.info(f"🔍 Checking {area}...")
        for table, required in FEATURE_TABLES[area]:
            result = check_table(client, area, table, required)
            results.append(result)

            if result.status == STATUS_OK:
                logger.info(f"   ✅ {table}: {result.rows} rows")
            elif result.status == STATUS_MISSING:
                log = logger.error if required else logger.warning
                marker = "❌" if required else "⚠️ "
                log(f"   {marker} {table}: table does not exist")
            elif result.status == STATUS_DENIED:
                logger.warning(f"   ⚠️  {table}: permission denied ({result.error})")
            else:
                logger.error(f"   ❌ {table}: {result.error}")

    return results


def main():
    parser = argparse.ArgumentParser(description="Check Teed.club feature tables")
    parser.add_argument(
        "--area",
        action="append",
        choices=sorted(FEATURE_TABLES),
        help="Feature area to check (repeatable, default all)",
    )
    parser.add_argument(
        "--anon", action="store_true", help="Query with the anonymous client"
    )
    args = parser.parse_args()

    logger = setup_script_logging("system_check")
    log_banner(logger, "🏌️ Teed.club System Check")

    try:
        client = get_anon_client() if args.anon else get_service_client()
    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        sys.exit(1)

    results = run_system_check(client, args.area, logger)

    failures = [r for r in results if r.is_failure]
    log_banner(logger, "📊 Summary")
    logger.info(f"Tables checked: {len(results)}")
    logger.info(f"OK: {sum(1 for r in results if r.status == STATUS_OK)}")
    if failures:
        logger.error(f"❌ Required tables unavailable: {', '.join(r.table for r in failures)}")
        logger.info("   Apply pending migrations: python scripts/database/migrations.py --list")
        sys.exit(1)
    logger.info("✅ All required tables available")


if __name__ == "__main__":
    main()
