#!/usr/bin/env python3
"""
Retroactive Badge Check

Runs check_and_award_badges() for one user or for every profile, so badges
introduced after users were already active get awarded retroactively.

Usage:
    python scripts/maintenance/badge_backfill.py --user <uuid>
    python scripts/maintenance/badge_backfill.py --limit 50 --verbose
    python scripts/maintenance/badge_backfill.py --dry-run
"""

import argparse
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import List, Optional

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from scripts.database.supabase_admin import (
    count_rows,
    describe_api_error,
    get_service_client,
)
from utils.logging import log_banner, setup_script_logging

PAGE_SIZE = 100
EARNED_PROGRESS = 100


@dataclass
class BadgeResult:
    awarded: int = 0
    updated: int = 0
    errors: int = 0

    def add(self, other: "BadgeResult"):
        self.awarded += other.awarded
        self.updated += other.updated
        self.errors += other.errors


def split_award_results(rows: Optional[List[dict]]):
    """Split check_and_award_badges() output into (newly earned, progress only) names."""
    rows = rows or []
    newly = [row["badge_name"] for row in rows if row.get("newly_earned")]
    updated = [row["badge_name"] for row in rows if not row.get("newly_earned")]
    return newly, updated


def pending_badges(client, user_id: str) -> List[str]:
    """Names of active badges the user has not fully earned."""
    earned = (
        client.table("user_badges")
        .select("badge_id")
        .eq("user_id", user_id)
        .eq("progress", EARNED_PROGRESS)
        .execute()
    )
    earned_ids = {row["badge_id"] for row in earned.data or []}

    badges = client.table("badges").select("id, name").eq("is_active", True).execute()
    return [row["name"] for row in badges.data or [] if row["id"] not in earned_ids]


def check_user(
    client,
    user_id: str,
    logger: logging.Logger,
    dry_run: bool = False,
    verbose: bool = False,
) -> BadgeResult:
    """Award (or in dry run, list candidate) badges for one user."""
    logger.info(f"👤 Checking badges for user: {user_id}")

    try:
        if dry_run:
            candidates = pending_badges(client, user_id)
            logger.info(f"   📋 Potential new badges to check: {len(candidates)}")
            if verbose:
                for name in candidates:
                    logger.info(f"      - Would check: {name}")
            return BadgeResult()

        response = client.rpc("check_and_award_badges", {"p_user_id": user_id}).execute()
    except Exception as e:
        logger.error(f"   ❌ Error checking badges: {describe_api_error(e)}")
        return BadgeResult(errors=1)

    newly, updated = split_award_results(response.data)
    if newly:
        logger.info("   🎉 Newly awarded badges:")
        for name in newly:
            logger.info(f"      - {name}")
    if updated and verbose:
        logger.info("   📊 Updated progress for:")
        for name in updated:
            logger.info(f"      - {name}")

    return BadgeResult(awarded=len(newly), updated=len(updated))


def iter_profile_ids(client, limit: Optional[int] = None):
    """Yield profile ids oldest first, paging PAGE_SIZE at a time."""
    offset = 0
    yielded = 0
    while True:
        response = (
            client.table("profiles")
            .select("id")
            .order("created_at")
            # id breaks created_at ties
            .order("id")
            .range(offset, offset + PAGE_SIZE - 1)
            .execute()
        )
        rows = response.data or []
        for row in rows:
            if limit is not None and yielded >= limit:
                return
            yield row["id"]
            yielded += 1
        if len(rows) < PAGE_SIZE:
            return
        offset += PAGE_SIZE


def check_all_users(
    client,
    logger: logging.Logger,
    limit: Optional[int] = None,
    dry_run: bool = False,
    verbose: bool = False,
) -> BadgeResult:
    total_users = count_rows(client, "profiles")
    target = min(total_users, limit) if limit else total_users
    logger.info(f"📊 Total users to process: {target}")

    totals = BadgeResult()
    processed = 0
    started = time.time()

    for user_id in iter_profile_ids(client, limit):
        totals.add(check_user(client, user_id, logger, dry_run, verbose))
        processed += 1
        if processed % 10 == 0:
            logger.info(f"   Progress: {processed}/{target}")

    duration = time.time() - started
    logger.info(f"   Users processed: {processed} in {duration:.2f} seconds")
    return totals


def main():
    parser = argparse.ArgumentParser(description="Retroactively award badges")
    parser.add_argument("--user", metavar="UUID", help="Process a single user")
    parser.add_argument("--limit", type=int, metavar="N", help="Process only the first N users")
    parser.add_argument("--dry-run", action="store_true", help="Preview without awarding")
    parser.add_argument("--verbose", action="store_true", help="Show progress-only updates")
    args = parser.parse_args()

    logger = setup_script_logging("badge_backfill")
    log_banner(logger, "🏅 Retroactive Badge Check")

    try:
        client = get_service_client()
        if args.user:
            totals = check_user(client, args.user, logger, args.dry_run, args.verbose)
        else:
            totals = check_all_users(client, logger, args.limit, args.dry_run, args.verbose)
    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"❌ Fatal error: {describe_api_error(e)}")
        sys.exit(1)

    logger.info("📊 Summary:")
    logger.info(f"   - Badges awarded: {totals.awarded}")
    logger.info(f"   - Progress updated: {totals.updated}")
    logger.info(f"   - Errors: {totals.errors}")
    sys.exit(1 if totals.errors else 0)


if __name__ == "__main__":
    main()
