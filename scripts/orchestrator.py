#!/usr/bin/env python3
"""
Ops Playbook Orchestrator

This script runs a named playbook of ops scripts in order, with fail-fast
error handling and logging. Each step runs as its own process, exactly as
an operator would run it by hand.

Playbooks:
- setup: apply SQL migrations, apply RLS policy groups, verify the schema,
  run the health check
- maintenance: clear placeholder images, refresh equipment rankings,
  backfill badges

Usage:
    # Bring a project up to date
    python scripts/orchestrator.py setup

    # Nightly maintenance
    python scripts/orchestrator.py maintenance

    # Show the execution plan
    python scripts/orchestrator.py setup --dry-run

Features:
- Sequential execution, stopping at the first failed step
- Pre-flight connectivity checks
- Dry run support
- Per-step timeout protection
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
import time

# Add project root to path for imports
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import text

from config.settings import config
from scripts.database.rls_policies import POLICY_CATALOG
from scripts.database.supabase_admin import (
    count_rows,
    describe_api_error,
    get_postgres_engine,
    get_service_client,
)
from utils.logging import setup_logging

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def _rls_args() -> list[str]:
    args = ["--apply"]
    for group in POLICY_CATALOG:
        args.extend(["--group", group])
    return args


# playbook name -> [(step name, script path, extra args)]
PLAYBOOKS: dict[str, list[tuple[str, str, list[str]]]] = {
    "setup": [
        ("SQL Migrations", "scripts/database/migrations.py", ["--all"]),
        ("RLS Policies", "scripts/database/rls_policies.py", _rls_args()),
        ("Schema Verification", "scripts/database/verify_schema.py", []),
        ("Health Check", "scripts/diagnostics/health_check.py", []),
    ],
    "maintenance": [
        (
            "Placeholder Image Cleanup",
            "scripts/maintenance/cleanup_placeholder_images.py",
            ["--execute", "--confirm"],
        ),
        ("Equipment Ranking", "scripts/maintenance/rank_equipment.py", []),
        ("Badge Backfill", "scripts/maintenance/badge_backfill.py", []),
    ],
}


def build_command(script_path: str, extra_args: list[str]) -> list[str]:
    return [sys.executable, script_path, *extra_args]


class PlaybookOrchestrator:
    """Run ops playbooks step by step."""

    def __init__(self, logger=None):
        self.logger = logger or setup_logging(
            log_level=config.LOG_LEVEL,
            log_file=config.ORCHESTRATOR_LOG_FILE,
            logger_name="orchestrator",
        )
        self.start_time = time.time()

    def run_playbook(self, name: str, dry_run: bool = False) -> bool:
        """
        Run every step of a playbook.

        Args:
            name: Key into PLAYBOOKS
            dry_run: Show execution plan without running commands

        Returns:
            bool: True if every step completed successfully, False otherwise
        """
        steps = PLAYBOOKS[name]
        self.logger.info(f"🚀 Starting playbook: {name}")
        self.logger.info(f"Configuration: dry_run={dry_run}")

        if not dry_run and not self._pre_flight_checks(steps):
            return False

        total_steps = len(steps)
        for i, (step_name, script_path, extra_args) in enumerate(steps, 1):
            self.logger.info(f"📋 Step {i}/{total_steps}: {step_name}")

            if not self._run_step(step_name, script_path, extra_args, dry_run):
                self._log_failure_summary(step_name, i, total_steps)
                return False

            self.logger.info(f"✅ Completed: {step_name}")

        self._log_success_summary(name, total_steps)
        return True

    def _pre_flight_checks(self, steps: list[tuple[str, str, list[str]]]) -> bool:
        """
        Check scripts are present and the project is reachable.

        Returns:
            bool: True if all checks pass, False otherwise
        """
        self.logger.info("🔍 Performing pre-flight checks...")

        for _, script_path, _ in steps:
            if not os.path.exists(os.path.join(PROJECT_ROOT, script_path)):
                self.logger.error(f"❌ Script not found: {script_path}")
                return False

        try:
            count_rows(get_service_client(), "profiles")
            self.logger.info("✅ Supabase API connectivity verified")
        except ValueError as e:
            self.logger.error(f"❌ Missing required configuration: {e}")
            return False
        except Exception as e:
            self.logger.error(f"❌ Supabase connectivity check failed: {describe_api_error(e)}")
            return False

        if config.has_direct_database():
            try:
                with get_postgres_engine().connect() as conn:
                    conn.execute(text("SELECT 1"))
                self.logger.info("✅ Direct database connectivity verified")
            except Exception as e:
                self.logger.error(f"❌ Database connectivity check failed: {e!s}")
                return False
        else:
            self.logger.warning(
                "⚠️  SUPABASE_DB_URL not set; SQL steps will use exec_sql or print manual instructions"
            )

        log_dir = os.path.dirname(config.ORCHESTRATOR_LOG_FILE)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)
            self.logger.info(f"📁 Created log directory: {log_dir}")

        self.logger.info("✅ All pre-flight checks passed")
        return True

    def _run_step(
        self, step_name: str, script_path: str, extra_args: list[str], dry_run: bool
    ) -> bool:
        cmd = build_command(script_path, extra_args)
        cmd_str = " ".join(cmd)
        self.logger.info(f"Command: {cmd_str}")

        if dry_run:
            self.logger.info(f"[DRY RUN] Would execute: {cmd_str}")
            return True

        timeout = config.ORCHESTRATOR_STEP_TIMEOUT
        try:
            self.logger.info(f"⚙️  Executing: {step_name}")
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=PROJECT_ROOT,
            )
        except subprocess.TimeoutExpired:
            self.logger.error(f"❌ {step_name} timed out after {timeout} seconds")
            return False
        except OSError as e:
            self.logger.error(f"❌ {step_name} failed to start: {e!s}")
            return False

        if result.returncode == 0:
            if result.stdout.strip():
                self.logger.debug(f"Output from {step_name}:\n{result.stdout}")
            return True

        self.logger.error(f"❌ {step_name} failed with exit code: {result.returncode}")
        if result.stderr.strip():
            self.logger.error(f"Error output:\n{result.stderr}")
        if result.stdout.strip():
            self.logger.error(f"Standard output:\n{result.stdout}")
        return False

    def _elapsed(self) -> str:
        elapsed = time.time() - self.start_time
        if elapsed > 60:
            return f"{elapsed / 60:.1f} minutes"
        return f"{elapsed:.1f} seconds"

    def _log_success_summary(self, name: str, total_steps: int) -> None:
        self.logger.info(f"🎉 Playbook {name} completed successfully!")
        self.logger.info(f"📊 Summary: {total_steps}/{total_steps} steps completed")
        self.logger.info(f"⏱️  Total runtime: {self._elapsed()}")

    def _log_failure_summary(
        self, failed_step: str, failed_at: int, total_steps: int
    ) -> None:
        self.logger.error("💥 Playbook failed!")
        self.logger.error(f"❌ Failed at step {failed_at}/{total_steps}: {failed_step}")
        self.logger.error(f"⏱️  Runtime before failure: {self._elapsed()}")
        self.logger.error("🔧 Check the logs above for detailed error information")


def main() -> int:
    """
    Main function for the orchestrator script.

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(
        description="Teed.club ops playbook orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s setup                 # Migrations, RLS, schema check, health check
  %(prog)s maintenance           # Cleanup, ranking, badges
  %(prog)s setup --dry-run       # Show execution plan without running

Notes:
  - Steps run sequentially with fail-fast behavior
  - Check logs/orchestrator.log for detailed progress
        """,
    )
    parser.add_argument("playbook", choices=sorted(PLAYBOOKS), help="Playbook to run")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show execution plan without actually running commands",
    )
    args = parser.parse_args()

    try:
        orchestrator = PlaybookOrchestrator()
        success = orchestrator.run_playbook(args.playbook, dry_run=args.dry_run)
        return 0 if success else 1
    except KeyboardInterrupt:
        print("\n🛑 Playbook interrupted by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
