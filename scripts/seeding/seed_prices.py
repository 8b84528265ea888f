#!/usr/bin/env python3
"""
Manual Price Seeding

Adds known retailer prices with direct product URLs for high-value items.
This is more reliable than scraping for the handful of products people look
up most.

Each entry locates its equipment row by model name, then writes one
equipment_prices row per retailer: updated if the retailer already has a
price for that item, inserted otherwise.

Usage:
    python scripts/seeding/seed_prices.py
    python scripts/seeding/seed_prices.py --dry-run
"""

import argparse
import logging
import os
import sys
from typing import Dict, List, Optional

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from scripts.collectors.equipment_schemas import PriceEntry
from scripts.database.supabase_admin import describe_api_error, get_service_client
from utils.logging import log_banner, setup_script_logging

MANUAL_PRICE_DATA: List[Dict] = [
    {
        "equipment_search": "Scotty Cameron Special Select Newport 2 Plus",
        "prices": [
            {
                "retailer": "Titleist Direct",
                "price": 499.99,
                "url": "https://www.titleist.com/golf-clubs/putters/special-select/special-select-newport-2-plus",
            },
            {
                "retailer": "Amazon",
                "price": 479.99,
                "url": "https://www.amazon.com/Titleist-Scotty-Cameron-Special-Newport/dp/B0BVP8MFYC",
            },
            {
                "retailer": "2nd Swing Golf - New",
                "price": 499.99,
                "url": "https://www.2ndswing.com/pv-2091034503-scotty-cameron-2023-special-select-newport-2-plus-putter.aspx",
            },
            {
                "retailer": "2nd Swing Golf - Used Excellent",
                "price": 399.99,
                "url": "https://www.2ndswing.com/pv-2091034503-scotty-cameron-2023-special-select-newport-2-plus-putter.aspx?facet=Condition%3AUsed",
            },
            {
                "retailer": "PGA Tour Superstore",
                "price": 499.99,
                "url": "https://www.pgatoursuperstore.com/special-select-newport-2-plus-putter/2000000023638.html",
            },
        ],
    },
    {
        "equipment_search": "TaylorMade Qi10 Max",
        "prices": [
            {
                "retailer": "TaylorMade Direct",
                "price": 599.99,
                "url": "https://www.taylormade.com/Qi10-Max-Driver/DW-TA093.html",
            },
            {
                "retailer": "Amazon",
                "price": 579.95,
                "url": "https://www.amazon.com/TaylorMade-Qi10-Max-Driver/dp/B0CL5K2QNW",
            },
            {
                "retailer": "Golf Galaxy",
                "price": 599.99,
                "url": "https://www.golfgalaxy.com/p/taylormade-qi10-max-driver-24tayyq10mxdrvrxxxdri/24tayyq10mxdrvrxxxdri",
            },
        ],
    },
    {
        "equipment_search": "Titleist Pro V1",
        "prices": [
            {
                "retailer": "Titleist Direct",
                "price": 54.99,
                "url": "https://www.titleist.com/golf-balls/pro-v1",
            },
            {
                "retailer": "Amazon",
                "price": 52.99,
                "url": "https://www.amazon.com/Titleist-Pro-V1-Golf-Balls/dp/B0CQXKQ5ZS",
            },
            {
                "retailer": "Dick's Sporting Goods",
                "price": 54.99,
                "url": "https://www.dickssportinggoods.com/p/titleist-2023-pro-v1-golf-balls-23ttlapv1whtxxxxxgbl/23ttlapv1whtxxxxxgbl",
            },
        ],
    },
    {
        "equipment_search": "Callaway Paradym Ai Smoke MAX",
        "prices": [
            {
                "retailer": "Callaway Direct",
                "price": 599.99,
                "url": "https://www.callawaygolf.com/golf-clubs/drivers/paradym-ai-smoke-max-driver.html",
            },
            {
                "retailer": "Amazon",
                "price": 569.99,
                "url": "https://www.amazon.com/Callaway-Paradym-Smoke-Driver/dp/B0CRHQ8Y3W",
            },
        ],
    },
]


def model_search_term(equipment_search: str) -> str:
    """The last two words of a product name, matched against equipment.model."""
    return " ".join(equipment_search.split()[-2:])


def find_equipment(client, equipment_search: str) -> Optional[dict]:
    response = (
        client.table("equipment")
        .select("id, brand, model")
        .ilike("model", f"%{model_search_term(equipment_search)}%")
        .limit(1)
        .execute()
    )
    rows = response.data or []
    return rows[0] if rows else None


def upsert_price(client, equipment_id: str, entry: PriceEntry) -> str:
    """
    Write one retailer price, updating an existing row for the same retailer.

    Returns:
        str: "updated" or "inserted"
    """
    existing = (
        client.table("equipment_prices")
        .select("id")
        .eq("equipment_id", equipment_id)
        .eq("retailer", entry.retailer)
        .limit(1)
        .execute()
    )
    values = {"price": entry.price, "url": entry.url, "in_stock": entry.in_stock}

    if existing.data:
        client.table("equipment_prices").update(values).eq("id", existing.data[0]["id"]).execute()
        return "updated"

    client.table("equipment_prices").insert(
        {"equipment_id": equipment_id, "retailer": entry.retailer, **values}
    ).execute()
    return "inserted"


def seed_prices(
    client,
    logger: logging.Logger,
    price_data: List[Dict] = MANUAL_PRICE_DATA,
    dry_run: bool = False,
) -> Dict[str, int]:
    """
    Seed every product in ``price_data``.

    Returns:
        Dict[str, int]: counts of inserted, updated, not_found and errors
    """
    counts = {"inserted": 0, "updated": 0, "not_found": 0, "errors": 0}

    for product in price_data:
        entries = [PriceEntry.model_validate(p) for p in product["prices"]]
        equipment = find_equipment(client, product["equipment_search"])
        if not equipment:
            logger.warning(f"❌ Not found: {product['equipment_search']}")
            counts["not_found"] += 1
            continue

        logger.info(f"📦 {equipment['brand']} {equipment['model']}")
        for entry in entries:
            if dry_run:
                logger.info(f"  📝 [DRY RUN] {entry.retailer}: ${entry.price:.2f}")
                continue
            try:
                outcome = upsert_price(client, equipment["id"], entry)
            except Exception as e:
                logger.error(f"  ❌ Error adding {entry.retailer}: {describe_api_error(e)}")
                counts["errors"] += 1
                continue
            counts[outcome] += 1
            icon = "📝 Updated" if outcome == "updated" else "✅ Added"
            logger.info(f"  {icon} {entry.retailer}: ${entry.price:.2f}")

    return counts


def log_price_summary(client, logger: logging.Logger):
    """Current prices grouped by product."""
    response = (
        client.table("equipment_prices")
        .select("equipment_id, retailer, price, url, in_stock, equipment:equipment_id(brand, model)")
        .order("equipment_id")
        .order("price")
        .execute()
    )

    logger.info("📊 Current Prices by Product:")
    current = None
    for row in response.data or []:
        if row["equipment_id"] != current:
            current = row["equipment_id"]
            equipment = row.get("equipment") or {}
            logger.info(f"{equipment.get('brand', '?')} {equipment.get('model', '?')}:")
        stock = "✅" if row.get("in_stock") else "❌"
        logger.info(f"  {stock} {row['retailer']}: ${float(row['price']):.2f}")


def main():
    parser = argparse.ArgumentParser(description="Seed curated retailer prices")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be written")
    args = parser.parse_args()

    logger = setup_script_logging("seed_prices")
    log_banner(logger, "💰 Adding Manual Price Data")

    try:
        client = get_service_client()
        counts = seed_prices(client, logger, dry_run=args.dry_run)
        if not args.dry_run:
            log_price_summary(client, logger)
    except ValueError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"❌ Fatal error: {describe_api_error(e)}")
        sys.exit(1)

    logger.info(
        f"✅ Complete! Added {counts['inserted']}, updated {counts['updated']}, "
        f"not found {counts['not_found']}, errors {counts['errors']}"
    )
    sys.exit(1 if counts["errors"] else 0)


if __name__ == "__main__":
    main()
