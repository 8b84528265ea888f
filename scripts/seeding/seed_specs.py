#!/usr/bin/env python3
"""
Sample Specs Seeding

Fills equipment.specs with representative category templates so the detail
pages have something to render in development and staging projects.
Existing specs keys win over template keys.

Usage:
    python scripts/seeding/seed_specs.py --limit 10
    python scripts/seeding/seed_specs.py --category driver --dry-run
"""

import argparse
import logging
import os
import sys
from typing import Dict, Optional

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from scripts.collectors.equipment_schemas import normalize_category
from scripts.database.supabase_admin import describe_api_error, get_service_client
from utils.logging import log_banner, setup_script_logging

SAMPLE_SPECS: Dict[str, Dict] = {
    "driver": {
        "loft_options": ["9°", "10.5°", "12°"],
        "shaft_flex": ["Senior", "Regular", "Stiff", "X-Stiff"],
        "head_size": "460cc",
        "material": "Titanium with Carbon Crown",
        "adjustability": "Yes - 4° Loft Sleeve",
        "stock_shaft": "Project X HZRDUS",
        "launch": "Mid-High",
        "spin": "Low-Mid",
        "forgiveness": "Very High",
        "key_features": [
            "Consistent ball speeds across the face",
            "Adjustable perimeter weighting",
            "Premium shaft options available",
        ],
    },
    "iron": {
        "set_composition": "4-PW (7 clubs)",
        "shaft_options": ["KBS Tour Steel", "UST Recoil Graphite"],
        "material": "Forged 1025 Carbon Steel",
        "technology": "Hollow Body Construction",
        "offset": "Progressive (more in long irons)",
        "sole_width": "Medium",
        "finish": "Chrome",
        "launch": "Mid-High",
        "forgiveness": "High",
        "key_features": [
            "Forged construction for feel",
            "Tungsten weighting for optimal CG",
            "Progressive offset design",
        ],
    },
    "putter": {
        "head_style": "Blade",
        "length_options": ['33"', '34"', '35"'],
        "material": "303 Stainless Steel",
        "toe_hang": "35°",
        "neck_style": "Plumber's Neck",
        "weight": "340g",
        "lie_angle": "70°",
        "loft": "3°",
        "finish": "Tour Black",
        "key_features": [
            "Precision milled head",
            "Adjustable sole weights",
        ],
    },
    "wedge": {
        "loft": "56°",
        "bounce": "12°",
        "grind": "S Grind",
        "material": "8620 Carbon Steel",
        "finish": "Tour Chrome",
        "grooves": "Spin Milled",
        "shaft_options": ["Dynamic Gold", "KBS Hi-Rev"],
        "lie_angle": "64°",
        "key_features": [
            "Maximum spin around the greens",
            "Multiple grind options available",
        ],
    },
}


def generic_specs(item: dict) -> Dict:
    return {
        "material": "Premium Composite",
        "technology": "Advanced Construction",
        "description": f"High-quality {item.get('category') or 'equipment'} from {item.get('brand') or 'an established brand'}",
        "key_features": ["Premium materials", "Tour-level performance"],
    }


def specs_template(item: dict) -> Dict:
    """Template for an item's category, falling back to generic specs."""
    category = normalize_category(item.get("category") or "")
    return SAMPLE_SPECS.get(category) or generic_specs(item)


def merge_specs(existing: Optional[Dict], template: Dict) -> Dict:
    """Template keys filled in under the item's existing specs."""
    merged = dict(template)
    merged.update(existing or {})
    return merged


def seed_specs(
    client,
    logger: logging.Logger,
    limit: int = 10,
    category: Optional[str] = None,
    dry_run: bool = False,
) -> int:
    """
    Merge templates into up to ``limit`` equipment rows.

    Returns:
        int: Number of failed updates
    """
    query = client.table("equipment").select("id, brand, model, category, specs")
    if category:
        query = query.eq("category", normalize_category(category))
    response = query.limit(limit).execute()
    items = response.data or []
    logger.info(f"Found {len(items)} equipment items to enhance with specs")

    errors = 0
    for item in items:
        specs = merge_specs(item.get("specs"), specs_template(item))
        label = f"{item.get('brand')} {item.get('model')}"
        if dry_run:
            logger.info(f"📝 [DRY RUN] {label}: {len(specs)} spec fields")
            continue
        try:
            client.table("equipment").update({"specs": specs}).eq("id", item["id"]).execute()
            logger.info(f"✅ Updated {label} with {len(specs)} spec fields")
        except Exception as e:
            logger.error(f"❌ Error updating {label}: {describe_api_error(e)}")
            errors += 1
    return errors


def main():
    parser = argparse.ArgumentParser(description="Seed sample equipment specs")
    parser.add_argument("--limit", type=int, default=10, metavar="N")
    parser.add_argument("--category", help="Only items in this category")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    logger = setup_script_logging("seed_specs")
    log_banner(logger, "📋 Adding sample equipment specs")

    try:
        errors = seed_specs(get_service_client(), logger, args.limit, args.category, args.dry_run)
    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"❌ Fatal error: {describe_api_error(e)}")
        sys.exit(1)

    sys.exit(1 if errors else 0)


if __name__ == "__main__":
    main()
