#!/usr/bin/env python3
"""
Schema Verification Script

This script verifies that the Teed.club schema on the hosted Postgres instance
has the tables, row-level security settings and RPC functions the application
and the ops scripts depend on.

Usage:
    python scripts/database/verify_schema.py

This will:
1. Connect to the database over SUPABASE_DB_URL
2. Verify all expected tables exist
3. Check that RLS is enabled on each of them
4. Check that the expected RPC functions are installed
5. Report any issues found
"""

import os
import sys
from typing import List

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text

from scripts.database.supabase_admin import get_postgres_engine
from utils.logging import log_banner, setup_script_logging

EXPECTED_TABLES = [
    "profiles",
    "equipment",
    "equipment_photos",
    "equipment_prices",
    "user_bags",
    "bag_equipment",
    "bag_tees",
    "equipment_tees",
    "feed_posts",
    "feed_likes",
    "forum_categories",
    "forum_threads",
    "forum_posts",
    "forum_reactions",
    "badges",
    "user_badges",
    "waitlist_applications",
    "invite_codes",
    "feature_flags",
]

EXPECTED_FUNCTIONS = [
    "exec_sql",
    "approve_user_by_email_if_capacity",
    "check_auto_approval_eligibility",
    "validate_invite_code",
    "redeem_invite_code_atomic",
    "generate_invite_codes",
    "check_and_award_badges",
    "update_equipment_photo_counts",
]


def verify_table_structure(engine, logger, tables: List[str] = EXPECTED_TABLES) -> bool:
    """Verify that all expected tables exist."""
    logger.info("🔍 Verifying table structure...")

    all_correct = True

    try:
        inspector = inspect(engine)
        existing_tables = set(inspector.get_table_names(schema="public"))

        for table_name in tables:
            if table_name in existing_tables:
                logger.info(f"✅ Table {table_name} - Found")
            else:
                logger.error(f"❌ Table {table_name} - Missing")
                all_correct = False

    except Exception as e:
        logger.error(f"❌ Error checking tables: {e}")
        all_correct = False

    return all_correct


def verify_rls_enabled(engine, logger, tables: List[str] = EXPECTED_TABLES) -> bool:
    """Verify that row-level security is enabled on every expected table."""
    logger.info("🔍 Verifying row-level security...")

    all_correct = True

    try:
        with engine.connect() as conn:
            result = conn.execute(
                text(
                    """
                SELECT c.relname, c.relrowsecurity
                FROM pg_class c
                JOIN pg_namespace n ON n.oid = c.relnamespace
                WHERE n.nspname = 'public'
                    AND c.relkind = 'r'
                    AND c.relname = ANY(:tables)
            """
                ),
                {"tables": list(tables)},
            )
            rls_by_table = {row[0]: bool(row[1]) for row in result.fetchall()}

        for table_name in tables:
            if table_name not in rls_by_table:
                # Missing tables are reported by the structure check
                continue
            if rls_by_table[table_name]:
                logger.info(f"✅ {table_name} - RLS enabled")
            else:
                logger.error(f"❌ {table_name} - RLS disabled")
                all_correct = False

    except Exception as e:
        logger.error(f"❌ Error checking RLS: {e}")
        all_correct = False

    return all_correct


def verify_functions(engine, logger, functions: List[str] = EXPECTED_FUNCTIONS) -> bool:
    """Verify that the RPC functions are installed in the public schema."""
    logger.info("🔍 Verifying RPC functions...")

    all_correct = True

    try:
        with engine.connect() as conn:
            result = conn.execute(
                text(
                    """
                SELECT DISTINCT p.proname
                FROM pg_proc p
                JOIN pg_namespace n ON n.oid = p.pronamespace
                WHERE n.nspname = 'public'
                    AND p.proname = ANY(:functions)
            """
                ),
                {"functions": list(functions)},
            )
            installed = {row[0] for row in result.fetchall()}

        for function_name in functions:
            if function_name in installed:
                logger.info(f"✅ {function_name}() - Found")
            else:
                logger.error(f"❌ {function_name}() - Missing")
                all_correct = False

    except Exception as e:
        logger.error(f"❌ Error checking functions: {e}")
        all_correct = False

    return all_correct


def main():
    """Main function to verify the schema."""
    logger = setup_script_logging("schema_verification")

    try:
        logger.info("🚀 Starting schema verification...")

        engine = get_postgres_engine()

        checks = [
            ("Table Structure", verify_table_structure),
            ("Row-Level Security", verify_rls_enabled),
            ("RPC Functions", verify_functions),
        ]

        all_passed = True

        for check_name, check_func in checks:
            logger.info(f"📋 Running {check_name} check...")
            if not check_func(engine, logger):
                all_passed = False
                logger.error(f"❌ {check_name} check failed")
            else:
                logger.info(f"✅ {check_name} check passed")

        log_banner(logger, "📊 Schema verification summary", width=60)
        if all_passed:
            logger.info("🎉 ALL CHECKS PASSED! Schema verification successful!")
        else:
            logger.error("❌ SOME CHECKS FAILED! Run scripts/database/migrations.py --all")
            sys.exit(1)

    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"❌ Schema verification failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
