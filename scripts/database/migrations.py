#!/usr/bin/env python3
"""
Migration Runner

This script applies the SQL migrations shipped in sql/migrations/ to the
Teed.club Supabase project and then checks that the functions each migration
is expected to install are visible through PostgREST.

Usage:
    # List available migrations
    python scripts/database/migrations.py --list

    # Apply specific migrations in order
    python scripts/database/migrations.py atomic_approval atomic_redeem

    # Apply everything
    python scripts/database/migrations.py --all

    # Print SQL without executing (for pasting into the dashboard)
    python scripts/database/migrations.py --print atomic_redeem

Execution goes through SqlExecutor: a single transaction over SUPABASE_DB_URL
when configured, the exec_sql RPC otherwise, and manual instructions as the
last resort.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from config.settings import config
from scripts.database.sql_executor import (
    STATUS_APPLIED,
    STATUS_FAILED,
    STATUS_MANUAL,
    ExecutionResult,
    SqlExecutor,
    load_sql_file,
)
from scripts.database.supabase_admin import function_exists, get_service_client
from utils.logging import log_banner, setup_script_logging


@dataclass(frozen=True)
class Migration:
    """A shipped SQL migration and the functions it should leave behind."""

    name: str
    filename: str
    description: str
    functions: Tuple[str, ...] = field(default_factory=tuple)


MIGRATIONS: List[Migration] = [
    Migration(
        "exec_sql",
        "000_exec_sql.sql",
        "exec_sql helper used to run SQL through PostgREST",
    ),
    Migration(
        "atomic_approval",
        "010_atomic_approval_functions.sql",
        "Capacity-locked beta approval functions",
        functions=(
            "check_auto_approval_eligibility",
            "approve_user_by_email_if_capacity",
        ),
    ),
    Migration(
        "atomic_redeem",
        "020_atomic_redeem_functions.sql",
        "Atomic invite code validation, redemption and generation",
        functions=("validate_invite_code", "redeem_invite_code_atomic"),
    ),
    Migration(
        "badge_system",
        "030_badge_system.sql",
        "Badge tables and check_and_award_badges()",
    ),
    Migration(
        "equipment_ranking",
        "040_equipment_ranking.sql",
        "Ranking columns and update_equipment_photo_counts()",
    ),
    Migration(
        "equipment_prices",
        "050_equipment_prices.sql",
        "Retailer price table with public read policy",
    ),
    Migration(
        "shaft_grip_referrals",
        "060_shaft_grip_referrals.sql",
        "Shaft/grip references on bag equipment and profile referral codes",
    ),
]

MIGRATIONS_BY_NAME: Dict[str, Migration] = {m.name: m for m in MIGRATIONS}


def get_migration(name: str) -> Migration:
    """
    Look up a migration by name.

    Raises:
        KeyError: If no migration has that name
    """
    try:
        return MIGRATIONS_BY_NAME[name]
    except KeyError:
        available = ", ".join(MIGRATIONS_BY_NAME)
        raise KeyError(f"Unknown migration '{name}'. Available: {available}")


def migration_path(migration: Migration, migrations_dir: Optional[str] = None) -> str:
    return os.path.join(migrations_dir or config.SQL_MIGRATIONS_DIR, migration.filename)


class MigrationRunner:
    """Apply migrations and verify the functions they install."""

    def __init__(
        self,
        executor: SqlExecutor,
        logger: Optional[logging.Logger] = None,
        client=None,
        migrations_dir: Optional[str] = None,
    ):
        self.executor = executor
        self.logger = logger or logging.getLogger(__name__)
        self.client = client
        self.migrations_dir = migrations_dir

    def load(self, name: str) -> str:
        return load_sql_file(migration_path(get_migration(name), self.migrations_dir))

    def run(self, name: str) -> ExecutionResult:
        """
        Apply one migration, then check its functions if it was applied.

        Args:
            name (str): Migration name

        Returns:
            ExecutionResult: applied, manual or failed
        """
        migration = get_migration(name)
        self.logger.info(f"🚀 Starting migration: {migration.name} ({migration.description})")

        sql = self.load(name)
        result = self.executor.execute(migration.name, sql)

        if result.status == STATUS_APPLIED and migration.functions:
            self.logger.info("🔍 Checking functions...")
            missing = self.verify_functions(migration.functions)
            if missing:
                self.logger.warning(
                    f"⚠️  Migration ran but functions are not visible yet: {', '.join(missing)}"
                )
        return result

    def run_many(self, names: List[str]) -> List[ExecutionResult]:
        """Apply migrations in order, stopping at the first failure."""
        results = []
        for name in names:
            result = self.run(name)
            results.append(result)
            if result.status == STATUS_FAILED:
                self.logger.error(f"❌ Stopping after failed migration: {name}")
                break
        return results

    def verify_functions(self, functions) -> List[str]:
        """
        Report which of the given functions PostgREST cannot find.

        Functions are looked up without running them (see ``function_exists``);
        a lookup that cannot reach the API counts as missing.

        Returns:
            List[str]: Names of functions that could not be found
        """
        client = self.client or get_service_client()
        missing = []
        for function_name in functions:
            try:
                exists = function_exists(client, function_name)
            except Exception as e:
                self.logger.error(f"   ❌ {function_name}: could not check ({e})")
                missing.append(function_name)
                continue
            if exists:
                self.logger.info(f"   ✅ {function_name}: installed")
            else:
                self.logger.error(f"   ❌ {function_name}: not found")
                missing.append(function_name)
        return missing


def summarize(results: List[ExecutionResult], logger: logging.Logger) -> int:
    """Log a summary and return the process exit code."""
    log_banner(logger, "📊 Migration Summary")
    for result in results:
        icon = {STATUS_APPLIED: "✅", STATUS_MANUAL: "📝", STATUS_FAILED: "❌"}[
            result.status
        ]
        logger.info(
            f"{icon} {result.name}: {result.status} ({result.statements} statements via {result.method})"
        )

    if any(r.status == STATUS_FAILED for r in results):
        return 1
    if any(r.status == STATUS_MANUAL for r in results):
        logger.info("Some migrations need to be applied manually; see the SQL above.")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Apply Teed.club SQL migrations")
    parser.add_argument("names", nargs="*", help="Migration names to apply, in order")
    parser.add_argument("--all", action="store_true", help="Apply every migration")
    parser.add_argument("--list", action="store_true", help="List migrations and exit")
    parser.add_argument(
        "--print", dest="print_only", action="store_true", help="Print SQL without executing"
    )
    args = parser.parse_args()

    logger = setup_script_logging("migrations")

    if args.list:
        for migration in MIGRATIONS:
            logger.info(f"{migration.name:<22} {migration.filename:<38} {migration.description}")
        return

    names = [m.name for m in MIGRATIONS] if args.all else args.names
    if not names:
        parser.error("specify migration names or --all")

    try:
        for name in names:
            get_migration(name)
    except KeyError as e:
        logger.error(f"❌ {e.args[0]}")
        sys.exit(1)

    if args.print_only:
        for name in names:
            sql = load_sql_file(migration_path(get_migration(name)))
            print(f"-- {name}\n{sql}\n")
        return

    try:
        executor = SqlExecutor.from_config(logger)
        runner = MigrationRunner(executor, logger)
        results = runner.run_many(names)
    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"❌ Migration failed: {e}")
        sys.exit(1)

    sys.exit(summarize(results, logger))


if __name__ == "__main__":
    main()
