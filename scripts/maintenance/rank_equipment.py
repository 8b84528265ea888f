#!/usr/bin/env python3
"""
Equipment Ranking

Recomputes the per-category ranking shown on the equipment browse pages.

Ranking Pipeline:
1. Refresh photos_count through update_equipment_photo_counts() (a failure
   is logged and the existing counts are used)
2. Aggregate bag usage per equipment item: bags_count (unique bags) and
   total_bag_tees (sum of tees_count over those bags)
3. Score items with photos:
   ranking_score = total_bag_tees * 10000 + photos_count * 100 + bags_count * 10
   Items without photos score -1 and are not ranked
4. Rank within each category by score (ties broken by id)
5. Clear every category_rank, then write the new ranks and stats

Usage:
    python scripts/maintenance/rank_equipment.py
    python scripts/maintenance/rank_equipment.py --dry-run
"""

import argparse
import logging
import os
import sys
from datetime import datetime, timezone
from typing import List, Optional

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

import pandas as pd

from config.settings import config
from scripts.database.supabase_admin import (
    describe_api_error,
    fetch_all_rows,
    get_service_client,
)
from utils.logging import log_banner, setup_script_logging

TEES_WEIGHT = 10000
PHOTOS_WEIGHT = 100
BAGS_WEIGHT = 10
UNRANKED_SCORE = -1

RANKING_COLUMNS = [
    "id",
    "category",
    "photos_count",
    "bags_count",
    "total_bag_tees",
    "ranking_score",
    "category_rank",
]


def aggregate_bag_usage(bag_rows: List[dict]) -> pd.DataFrame:
    """
    Per-equipment bag statistics from bag_equipment rows joined to user_bags.

    Each row needs ``equipment_id``, ``bag_id`` and ``tees_count`` (the bag's
    tees). An item listed twice in the same bag counts once.

    Returns:
        pd.DataFrame: columns equipment_id, bags_count, total_bag_tees
    """
    columns = ["equipment_id", "bags_count", "total_bag_tees"]
    if not bag_rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(bag_rows, columns=["equipment_id", "bag_id", "tees_count"])
    df["tees_count"] = df["tees_count"].fillna(0).astype(int)
    unique_bags = df.drop_duplicates(subset=["equipment_id", "bag_id"])

    return (
        unique_bags.groupby("equipment_id")
        .agg(bags_count=("bag_id", "size"), total_bag_tees=("tees_count", "sum"))
        .reset_index()[columns]
    )


def compute_rankings(equipment_rows: List[dict], bag_usage: pd.DataFrame) -> pd.DataFrame:
    """
    Score and rank equipment within each category.

    Args:
        equipment_rows: Rows with id, category, photos_count
        bag_usage: Output of aggregate_bag_usage

    Returns:
        pd.DataFrame: RANKING_COLUMNS for every equipment row; category_rank is
            None for items without photos
    """
    if not equipment_rows:
        return pd.DataFrame(columns=RANKING_COLUMNS)

    df = pd.DataFrame(equipment_rows, columns=["id", "category", "photos_count"])
    df["photos_count"] = df["photos_count"].fillna(0).astype(int)

    df = df.merge(bag_usage, how="left", left_on="id", right_on="equipment_id")
    df["bags_count"] = df["bags_count"].fillna(0).astype(int)
    df["total_bag_tees"] = df["total_bag_tees"].fillna(0).astype(int)

    has_photos = df["photos_count"] > 0
    df["ranking_score"] = (
        df["total_bag_tees"] * TEES_WEIGHT
        + df["photos_count"] * PHOTOS_WEIGHT
        + df["bags_count"] * BAGS_WEIGHT
    ).where(has_photos, UNRANKED_SCORE)

    ranked = df[has_photos].sort_values(
        ["category", "ranking_score", "id"], ascending=[True, False, True]
    )
    ranks = ranked.groupby("category", dropna=False).cumcount() + 1
    df["category_rank"] = ranks.reindex(df.index).astype("Int64")

    return df[RANKING_COLUMNS].sort_values(["category", "category_rank"]).reset_index(drop=True)


def ranking_updates(rankings: pd.DataFrame, ranked_at: Optional[str] = None) -> List[dict]:
    """Update payloads for ranked items only."""
    ranked_at = ranked_at or datetime.now(timezone.utc).isoformat()
    updates = []
    for row in rankings[rankings["category_rank"].notna()].itertuples(index=False):
        updates.append(
            {
                "id": row.id,
                "category_rank": int(row.category_rank),
                "total_bag_tees": int(row.total_bag_tees),
                "bags_count": int(row.bags_count),
                "photos_count": int(row.photos_count),
                "ranking_score": float(row.ranking_score),
                "last_ranked_at": ranked_at,
            }
        )
    return updates


def load_bag_rows(client) -> List[dict]:
    """bag_equipment rows flattened with their bag's tees_count."""
    rows = fetch_all_rows(client, "bag_equipment", "id, equipment_id, bag_id, user_bags(tees_count)")
    flattened = []
    for row in rows:
        bag = row.get("user_bags") or {}
        flattened.append(
            {
                "equipment_id": row["equipment_id"],
                "bag_id": row["bag_id"],
                "tees_count": bag.get("tees_count") or 0,
            }
        )
    return flattened


def run_ranking(client, logger: logging.Logger, dry_run: bool = False) -> int:
    """
    Run the full ranking pipeline.

    Returns:
        int: Number of failed row updates
    """
    logger.info("Step 1: Updating photo counts...")
    try:
        client.rpc("update_equipment_photo_counts", {}).execute()
    except Exception as e:
        logger.warning(f"⚠️  Error updating photo counts, using existing counts: {describe_api_error(e)}")

    logger.info("Step 2: Calculating bag usage statistics...")
    bag_usage = aggregate_bag_usage(load_bag_rows(client))

    logger.info("Step 3: Fetching equipment with photo counts...")
    equipment = fetch_all_rows(client, "equipment", "id, category, photos_count")

    logger.info("Step 4: Calculating ranking scores...")
    rankings = compute_rankings(equipment, bag_usage)
    updates = ranking_updates(rankings)

    ranked = rankings[rankings["category_rank"].notna()]
    for category, group in ranked.groupby("category", dropna=False):
        logger.info(f"  {category}: Ranked {len(group)} items with photos")

    if dry_run:
        logger.info(f"📝 [DRY RUN] Would write {len(updates)} rankings")
        for update in updates[:10]:
            logger.info(f"   #{update['category_rank']} {update['id']} score={update['ranking_score']:.0f}")
        return 0

    logger.info("Step 5: Updating database with rankings...")
    client.table("equipment").update({"category_rank": None}).not_.is_("id", "null").execute()

    errors = 0
    batch_size = config.RANKING_BATCH_SIZE
    for start in range(0, len(updates), batch_size):
        batch = updates[start : start + batch_size]
        for update in batch:
            payload = {key: value for key, value in update.items() if key != "id"}
            try:
                client.table("equipment").update(payload).eq("id", update["id"]).execute()
            except Exception as e:
                logger.error(f"❌ Error updating equipment {update['id']}: {describe_api_error(e)}")
                errors += 1
        logger.info(f"  Updated {min(start + batch_size, len(updates))} of {len(updates)} items")

    logger.info("✅ Ranking complete!")
    logger.info(f"   Total equipment ranked: {len(updates)}")
    logger.info(f"   Categories processed: {ranked['category'].nunique()}")
    return errors


def main():
    parser = argparse.ArgumentParser(description="Recompute equipment category rankings")
    parser.add_argument("--dry-run", action="store_true", help="Compute without writing")
    args = parser.parse_args()

    logger = setup_script_logging("rank_equipment")
    log_banner(logger, "🏆 Equipment ranking")

    try:
        client = get_service_client()
        errors = run_ranking(client, logger, args.dry_run)
    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"❌ Fatal error during ranking: {describe_api_error(e)}")
        sys.exit(1)

    sys.exit(1 if errors else 0)


if __name__ == "__main__":
    main()
