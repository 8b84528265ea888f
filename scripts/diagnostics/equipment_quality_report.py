#!/usr/bin/env python3
"""
Equipment Data Quality Report

Loads the equipment catalog into a pandas DataFrame and reports basic
statistics, category distribution, field completeness, specs structure per
category, and likely data issues (inconsistent category names, duplicates).

Usage:
    python scripts/diagnostics/equipment_quality_report.py
    python scripts/diagnostics/equipment_quality_report.py --output-dir reports
"""

import argparse
import logging
import os
import sys
from typing import Dict, List, Optional

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

import pandas as pd

from scripts.collectors.equipment_schemas import normalize_category
from scripts.database.supabase_admin import fetch_all_rows, get_service_client
from utils.logging import log_banner, setup_script_logging

EQUIPMENT_COLUMNS = "id, brand, model, category, specs, image_url, added_by_user_id"


def load_equipment_frame(client) -> pd.DataFrame:
    """Read the full equipment table into a DataFrame."""
    rows = fetch_all_rows(client, "equipment", EQUIPMENT_COLUMNS)
    return pd.DataFrame(rows, columns=[c.strip() for c in EQUIPMENT_COLUMNS.split(",")])


def _blank(series: pd.Series) -> pd.Series:
    """True where a text column is null or empty."""
    return series.isna() | (series.astype(str).str.strip() == "")


def _has_specs(series: pd.Series) -> pd.Series:
    return series.apply(lambda value: isinstance(value, dict) and len(value) > 0)


def basic_statistics(df: pd.DataFrame) -> Dict[str, int]:
    total = len(df)
    user_generated = int(df["added_by_user_id"].notna().sum()) if total else 0
    return {
        "total": total,
        "user_generated": user_generated,
        "seed": total - user_generated,
    }


def category_distribution(df: pd.DataFrame) -> pd.DataFrame:
    """
    Count items per category, split into user-generated and seed rows.

    Returns:
        pd.DataFrame: columns category, total, user, system; sorted by total
    """
    if df.empty:
        return pd.DataFrame(columns=["category", "total", "user", "system"])

    frame = pd.DataFrame(
        {
            "category": df["category"].fillna("NULL"),
            "user": df["added_by_user_id"].notna().astype(int),
        }
    )
    grouped = frame.groupby("category").agg(total=("user", "size"), user=("user", "sum"))
    grouped["system"] = grouped["total"] - grouped["user"]
    return (
        grouped.reset_index()
        .sort_values(["total", "category"], ascending=[False, True])
        .reset_index(drop=True)
    )


def completeness(df: pd.DataFrame) -> Dict[str, Dict[str, float]]:
    """
    Missing/present counts and percentages for key fields.

    Returns:
        Dict[str, Dict[str, float]]: field -> {"count", "percent"}; brand and
            model report missing values, specs and image report present values
    """
    total = len(df)

    def entry(count: int) -> Dict[str, float]:
        percent = round(count / total * 100, 1) if total else 0.0
        return {"count": int(count), "percent": percent}

    if not total:
        return {key: entry(0) for key in ("missing_brand", "missing_model", "has_specs", "has_image")}

    return {
        "missing_brand": entry(_blank(df["brand"]).sum()),
        "missing_model": entry(_blank(df["model"]).sum()),
        "has_specs": entry(_has_specs(df["specs"]).sum()),
        "has_image": entry((~_blank(df["image_url"])).sum()),
    }


def specs_key_frequency(df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """
    For each category, how often each specs key appears.

    Returns:
        Dict[str, pd.DataFrame]: category -> DataFrame(key, count, percent)
    """
    with_specs = df[_has_specs(df["specs"])] if not df.empty else df
    result: Dict[str, pd.DataFrame] = {}

    for category, group in with_specs.groupby(with_specs["category"].fillna("unknown")):
        keys = group["specs"].apply(lambda specs: list(specs.keys())).explode()
        counts = keys.value_counts().rename_axis("key").reset_index(name="count")
        counts["percent"] = (counts["count"] / len(group) * 100).round(0).astype(int)
        result[category] = counts.sort_values(["count", "key"], ascending=[False, True]).reset_index(
            drop=True
        )

    return result


def inconsistent_categories(df: pd.DataFrame) -> List[str]:
    """Category names that differ from their canonical form ("Irons", "fairway-wood")."""
    categories = df["category"].dropna().unique() if not df.empty else []
    return sorted(
        category for category in categories if category != normalize_category(category)
    )


def find_duplicates(df: pd.DataFrame) -> pd.DataFrame:
    """
    Groups of rows sharing brand and model (case-insensitive) within a category.

    Returns:
        pd.DataFrame: columns brand, model, category, count; largest groups first
    """
    columns = ["brand", "model", "category", "count"]
    if df.empty:
        return pd.DataFrame(columns=columns)

    candidates = df[~_blank(df["brand"]) & ~_blank(df["model"])]
    keyed = pd.DataFrame(
        {
            "brand": candidates["brand"].str.strip().str.lower(),
            "model": candidates["model"].str.strip().str.lower(),
            "category": candidates["category"].fillna(""),
        }
    )
    counts = keyed.groupby(["brand", "model", "category"]).size().reset_index(name="count")
    duplicates = counts[counts["count"] > 1]
    return duplicates.sort_values(
        ["count", "brand", "model"], ascending=[False, True, True]
    ).reset_index(drop=True)[columns]


def log_report(df: pd.DataFrame, logger: logging.Logger, output_dir: Optional[str] = None):
    stats = basic_statistics(df)
    log_banner(logger, "🏌️ EQUIPMENT TABLE DATA QUALITY REPORT")

    logger.info("📊 BASIC STATISTICS")
    logger.info(f"Total Equipment Items: {stats['total']}")
    logger.info(f"User-Generated Items: {stats['user_generated']}")
    logger.info(f"Seed/System Items: {stats['seed']}")

    logger.info("📈 CATEGORY DISTRIBUTION")
    distribution = category_distribution(df)
    logger.info(f"{'Category':<18} | {'Total':>5} | {'User':>4} | {'System':>6}")
    for row in distribution.itertuples(index=False):
        logger.info(f"{row.category:<18} | {row.total:>5} | {row.user:>4} | {row.system:>6}")

    logger.info("🔍 DATA COMPLETENESS")
    complete = completeness(df)
    labels = {
        "missing_brand": "Missing Brand",
        "missing_model": "Missing Model",
        "has_specs": "Has Specs Data",
        "has_image": "Has Image URL",
    }
    for key, label in labels.items():
        logger.info(f"{label}: {complete[key]['count']} items ({complete[key]['percent']}%)")

    logger.info("📋 SPECS DATA STRUCTURE")
    for category, frequency in specs_key_frequency(df).items():
        logger.info(f"{category.upper()}:")
        for row in frequency.itertuples(index=False):
            logger.info(f"  {row.key}: {row.count} ({row.percent}%)")

    logger.info("⚠️  POTENTIAL DATA QUALITY ISSUES")
    naming = inconsistent_categories(df)
    if naming:
        logger.warning("Inconsistent category naming:")
        for category in naming:
            logger.warning(f'  "{category}"')

    duplicates = find_duplicates(df)
    if not duplicates.empty:
        logger.warning(f"Potential duplicates found: {len(duplicates)} groups")
        for row in duplicates.head(10).itertuples(index=False):
            logger.warning(f"  {row.brand} {row.model} ({row.category}): {row.count} entries")

    if not naming and duplicates.empty:
        logger.info("✅ No naming or duplicate issues found")

    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
        distribution.to_csv(os.path.join(output_dir, "category_distribution.csv"), index=False)
        duplicates.to_csv(os.path.join(output_dir, "duplicate_candidates.csv"), index=False)
        logger.info(f"📝 Results saved to: {output_dir}")


def main():
    parser = argparse.ArgumentParser(description="Equipment catalog data quality report")
    parser.add_argument("--output-dir", help="Also write CSV results to this directory")
    args = parser.parse_args()

    logger = setup_script_logging("equipment_quality_report")

    try:
        df = load_equipment_frame(get_service_client())
    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"❌ Report generation failed: {e}")
        sys.exit(1)

    log_report(df, logger, args.output_dir)


if __name__ == "__main__":
    main()
