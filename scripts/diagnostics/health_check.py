#!/usr/bin/env python3
"""
Master Health Check

Run this when anything seems broken. It combines the essential checks for the
Teed.club backend in one place:

1. Database connection (profile count through the service client)
2. Anonymous waitlist submission, with cleanup of the test row
3. Admin users configured
4. Beta capacity against the cap stored in feature_flags
5. RLS sanity as seen by an anonymous visitor
6. Critical RPC functions installed

Usage:
    python scripts/diagnostics/health_check.py

Exits 1 when any check fails (status "critical").
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Callable, List, Optional

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from config.settings import config
from scripts.database.rls_policies import check_anonymous_insert
from scripts.database.supabase_admin import (
    count_active_beta_users,
    count_rows,
    describe_api_error,
    function_exists,
    get_anon_client,
    get_beta_cap,
    get_feature_flags,
    get_service_client,
)
from utils.logging import log_banner, setup_script_logging

STATUS_HEALTHY = "healthy"
STATUS_DEGRADED = "degraded"
STATUS_CRITICAL = "critical"

CHECK_DATABASE = "Database connection"
CHECK_WAITLIST = "Waitlist submission"
CHECK_ADMINS = "Admin system"
CHECK_CAPACITY = "Beta capacity"
CHECK_RLS = "RLS policies"
CHECK_FUNCTIONS = "Database functions"

# Tables an anonymous visitor may read; waitlist_applications must stay private
ANON_READABLE_TABLES = ["profiles", "user_bags", "feed_posts"]
ANON_PRIVATE_TABLES = ["waitlist_applications"]

# Checked for existence only; approve_user_by_email_if_capacity writes
CRITICAL_FUNCTIONS = [
    "approve_user_by_email_if_capacity",
    "check_auto_approval_eligibility",
    "validate_invite_code",
]

RECOMMENDED_ACTIONS = {
    CHECK_WAITLIST: [
        "Fix waitlist submission:",
        "   python scripts/database/rls_policies.py --group waitlist --apply",
    ],
    CHECK_ADMINS: [
        "Fix admin system:",
        "   UPDATE profiles SET is_admin = true WHERE email = 'your-email';",
    ],
    CHECK_DATABASE: [
        "Check database connection:",
        "   Verify .env.local has the correct SUPABASE_URL and service key",
        "   Check the Supabase dashboard is accessible",
    ],
    CHECK_FUNCTIONS: [
        "Install missing functions:",
        "   python scripts/database/migrations.py atomic_approval atomic_redeem",
    ],
    CHECK_RLS: [
        "Review RLS policies:",
        "   python scripts/database/rls_policies.py --list",
    ],
}


@dataclass
class HealthReport:
    """Aggregated results of a health check run."""

    passed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def record(self, check: str, ok: bool):
        (self.passed if ok else self.failed).append(check)

    @property
    def status(self) -> str:
        if self.failed:
            return STATUS_CRITICAL
        if self.warnings:
            return STATUS_DEGRADED
        return STATUS_HEALTHY

    @property
    def exit_code(self) -> int:
        return 1 if self.status == STATUS_CRITICAL else 0

    def recommended_actions(self) -> List[str]:
        lines = []
        for check in self.failed:
            lines.extend(RECOMMENDED_ACTIONS.get(check, []))
        return lines


def check_database_connection(admin, anon, report: HealthReport, logger: logging.Logger):
    try:
        total = count_rows(admin, "profiles")
        logger.info("✅ Database connected")
        logger.info(f"   Total profiles: {total}")
        report.record(CHECK_DATABASE, True)
    except Exception as e:
        logger.error(f"❌ Database connection failed: {describe_api_error(e)}")
        report.record(CHECK_DATABASE, False)


def check_waitlist_submission(admin, anon, report: HealthReport, logger: logging.Logger):
    allowed, error = check_anonymous_insert(anon, admin, logger)
    if allowed:
        logger.info("✅ Anonymous users can submit")
    else:
        logger.error(f"❌ Anonymous submission BLOCKED: {error}")
    report.record(CHECK_WAITLIST, allowed)


def check_admin_system(admin, anon, report: HealthReport, logger: logging.Logger):
    try:
        response = (
            admin.table("profiles")
            .select("email, username, is_admin")
            .eq("is_admin", True)
            .execute()
        )
    except Exception as e:
        logger.error(f"❌ Cannot check admin status: {describe_api_error(e)}")
        report.record(CHECK_ADMINS, False)
        return

    admins = response.data or []
    if not admins:
        logger.warning("⚠️  No admin users configured")
        report.warnings.append("No admin users")
        return

    logger.info("✅ Admin system working")
    logger.info(f"   Active admins: {len(admins)}")
    for row in admins:
        logger.info(f"   - {row.get('email') or row.get('username')}")
    report.record(CHECK_ADMINS, True)


def check_beta_capacity(admin, anon, report: HealthReport, logger: logging.Logger):
    try:
        cap = get_beta_cap(get_feature_flags(admin))
        beta_users = count_active_beta_users(admin)
        pending = count_rows(admin, "waitlist_applications", status="pending")
    except Exception as e:
        logger.error(f"❌ Beta tracking failed: {describe_api_error(e)}")
        report.record(CHECK_CAPACITY, False)
        return

    remaining = cap - beta_users
    logger.info("✅ Beta tracking working")
    logger.info(f"   Beta users: {beta_users}/{cap}")
    logger.info(f"   Capacity remaining: {remaining}")
    logger.info(f"   Pending applications: {pending}")
    report.record(CHECK_CAPACITY, True)

    if remaining <= config.LOW_CAPACITY_THRESHOLD:
        logger.warning("   ⚠️  Low capacity warning!")
        report.warnings.append("Low beta capacity")


def check_rls_policies(admin, anon, report: HealthReport, logger: logging.Logger):
    ok = True
    for table in ANON_READABLE_TABLES:
        try:
            anon.table(table).select("id").limit(1).execute()
            logger.info(f"   ✅ {table}: readable by anonymous visitors")
        except Exception as e:
            logger.error(f"   ❌ {table}: {describe_api_error(e)}")
            ok = False

    for table in ANON_PRIVATE_TABLES:
        try:
            response = anon.table(table).select("id").limit(1).execute()
        except Exception:
            logger.info(f"   ✅ {table}: hidden from anonymous visitors")
            continue
        if response.data:
            logger.warning(f"   ⚠️  {table}: Too permissive (anon can SELECT)")
            report.warnings.append(f"{table} RLS too permissive")
        else:
            logger.info(f"   ✅ {table}: no rows visible to anonymous visitors")

    report.record(CHECK_RLS, ok)


def check_database_functions(admin, anon, report: HealthReport, logger: logging.Logger):
    ok = True
    for function_name in CRITICAL_FUNCTIONS:
        try:
            exists = function_exists(admin, function_name)
        except Exception as e:
            logger.error(f"   ❌ {function_name}: Could not check ({e})")
            ok = False
            continue
        if exists:
            logger.info(f"   ✅ {function_name}: Available")
        else:
            logger.error(f"   ❌ {function_name}: Missing")
            ok = False
    report.record(CHECK_FUNCTIONS, ok)


CHECKS: List[tuple] = [
    ("1️⃣  DATABASE CONNECTION", check_database_connection),
    ("2️⃣  WAITLIST SUBMISSION (Critical)", check_waitlist_submission),
    ("3️⃣  ADMIN SYSTEM", check_admin_system),
    ("4️⃣  BETA CAPACITY", check_beta_capacity),
    ("5️⃣  RLS POLICIES", check_rls_policies),
    ("6️⃣  DATABASE FUNCTIONS", check_database_functions),
]


def run_health_check(
    admin,
    anon,
    logger: Optional[logging.Logger] = None,
    checks: Optional[List[tuple]] = None,
) -> HealthReport:
    """
    Run every check and collect the results.

    Args:
        admin: Service-role Supabase client
        anon: Anonymous Supabase client
        logger: Logger for progress output
        checks: (title, check function) pairs; defaults to CHECKS

    Returns:
        HealthReport: passed/failed/warnings
    """
    logger = logger or logging.getLogger(__name__)
    report = HealthReport()
    for title, check in checks or CHECKS:
        logger.info(title)
        logger.info("-" * 40)
        check(admin, anon, report, logger)
    return report


def log_report(report: HealthReport, logger: logging.Logger):
    log_banner(logger, "📊 HEALTH CHECK REPORT")

    if report.status == STATUS_HEALTHY:
        logger.info("🎉 SYSTEM FULLY OPERATIONAL! All checks passed.")
    elif report.status == STATUS_DEGRADED:
        logger.warning("⚠️  SYSTEM OPERATIONAL WITH WARNINGS")
        for warning in report.warnings:
            logger.warning(f"  - {warning}")
    else:
        logger.error("❌ CRITICAL ISSUES DETECTED")
        for failure in report.failed:
            logger.error(f"  ✗ {failure}")
        for warning in report.warnings:
            logger.warning(f"  ⚠ {warning}")
        logger.info("RECOMMENDED ACTIONS:")
        for line in report.recommended_actions():
            logger.info(f"  {line}")

    logger.info(f"Passed checks: {len(report.passed)}")
    logger.info(f"Failed checks: {len(report.failed)}")
    logger.info(f"Warnings: {len(report.warnings)}")


def main():
    logger = setup_script_logging("health_check")
    log_banner(logger, "🏥 MASTER HEALTH CHECK - Teed.club System Diagnostics")

    try:
        admin = get_service_client()
        anon = get_anon_client()
    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        sys.exit(1)

    report = run_health_check(admin, anon, logger)
    log_report(report, logger)
    sys.exit(report.exit_code)


if __name__ == "__main__":
    main()
