#!/usr/bin/env python3
"""
Beta Admin Tools

Command-line administration for the Teed.club closed beta. Beta capacity is
``feature_flags.beta_cap`` (singleton row id=1); active beta users are
profiles with beta_access = true that have not been soft-deleted.

Approvals and invite redemptions go through the atomic SQL functions, which
take a lock and re-check capacity inside the transaction, so two operators
running this tool at the same time cannot push the beta over its cap.

Usage:
    python scripts/admin/beta_admin.py status
    python scripts/admin/beta_admin.py queue --limit 20
    python scripts/admin/beta_admin.py approve --email someone@example.com
    python scripts/admin/beta_admin.py approve --top 10
    python scripts/admin/beta_admin.py approve --min-score 80 --yes --no-invites
    python scripts/admin/beta_admin.py set-cap 200
    python scripts/admin/beta_admin.py toggle-public-beta
    python scripts/admin/beta_admin.py invite-codes --count 5 --max-uses 2
    python scripts/admin/beta_admin.py validate-code abcd1234
    python scripts/admin/beta_admin.py redeem --code ABCD1234 --user-id <uuid>
    python scripts/admin/beta_admin.py export --output waitlist.csv
"""

import argparse
import logging
import os
import secrets
import string
import sys
from datetime import date
from typing import Dict, List, Optional, Tuple

import pandas as pd

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from config.settings import config
from scripts.database.supabase_admin import (
    FEATURE_FLAGS_ID,
    count_active_beta_users,
    count_rows,
    describe_api_error,
    fetch_all_rows,
    get_beta_cap,
    get_feature_flags,
    get_service_client,
    is_missing_function_error,
)
from utils.logging import log_banner, setup_script_logging

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits

RESULT_MESSAGES = {
    "invalid_code": "Invite code is invalid, inactive or expired",
    "code_exhausted": "Invite code has no uses remaining",
    "at_capacity": "Beta is at capacity",
    "not_found": "No waitlist application or profile for that email",
}

EXPORT_COLUMNS = {
    "email": "Email",
    "display_name": "Name",
    "city_region": "City",
    "score": "Score",
    "status": "Status",
    "created_at": "Applied",
    "approved_at": "Approved",
}


def normalize_invite_code(code: str) -> str:
    return (code or "").strip().upper()


def generate_code(length: Optional[int] = None) -> str:
    """Random upper-case alphanumeric invite code."""
    length = length or config.INVITE_CODE_LENGTH
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def invite_url(code: str) -> str:
    return f"{config.SITE_BASE_URL}/waitlist?code={code}"


def describe_result(result: Optional[Dict]) -> Tuple[bool, str]:
    """
    Interpret the jsonb returned by the approval, redeem and validate functions.

    Approval and redeem results carry ``ok``; validate results carry ``valid``.

    Returns:
        Tuple[bool, str]: (success, human-readable message)
    """
    if not result:
        return False, "Empty response from database function"

    ok = result.get("ok", result.get("valid", False))
    if ok:
        if result.get("status") == "already_approved":
            return True, "Already has beta access"
        if "uses_remaining" in result:
            return True, f"Valid ({result['uses_remaining']} uses remaining)"
        return True, result.get("message") or "Approved"

    error = result.get("error", "unknown_error")
    return False, RESULT_MESSAGES.get(error, result.get("message") or error)


# ---------------------------------------------------------------------------
# Queries and writes
# ---------------------------------------------------------------------------


def get_beta_status(client) -> Dict:
    flags = get_feature_flags(client)
    cap = get_beta_cap(flags)
    active = count_active_beta_users(client)
    return {
        "beta_cap": cap,
        "public_beta_enabled": bool(flags.get("public_beta_enabled")),
        "active_users": active,
        "total_users": count_rows(client, "profiles", beta_access=True),
        "spots_remaining": max(0, cap - active),
        "pending": count_rows(client, "waitlist_applications", status="pending"),
        "approved": count_rows(client, "waitlist_applications", status="approved"),
        "flags": flags,
    }


def fetch_pending(
    client, limit: Optional[int] = None, min_score: Optional[int] = None
) -> List[Dict]:
    """Pending applications, highest score first, ties broken by id."""
    query = (
        client.table("waitlist_applications")
        .select("id, email, display_name, city_region, score, created_at")
        .eq("status", "pending")
    )
    if min_score is not None:
        query = query.gte("score", min_score)
    query = query.order("score", desc=True).order("id")
    if limit is not None:
        query = query.limit(limit)
    return query.execute().data or []


def approve_email(
    client, email: str, display_name: Optional[str] = None, grant_invites: bool = True
) -> Dict:
    params = {"p_email": email.strip().lower(), "p_grant_invites": grant_invites}
    if display_name:
        params["p_display_name"] = display_name
    response = client.rpc("approve_user_by_email_if_capacity", params).execute()
    return response.data or {}


def approve_applications(
    client,
    applications: List[Dict],
    logger: logging.Logger,
    grant_invites: bool = True,
) -> Dict[str, int]:
    """
    Approve applications in order, stopping once the beta is full.

    Returns:
        Dict[str, int]: counts of approved, already_approved and failed
    """
    counts = {"approved": 0, "already_approved": 0, "failed": 0}

    for app in applications:
        try:
            result = approve_email(
                client, app["email"], app.get("display_name"), grant_invites
            )
        except Exception as e:
            logger.error(f"  ❌ {app['email']}: {describe_api_error(e)}")
            counts["failed"] += 1
            continue

        ok, message = describe_result(result)
        if ok and result.get("status") == "already_approved":
            counts["already_approved"] += 1
            logger.info(f"  ⚠️  {app['email']}: {message}")
        elif ok:
            counts["approved"] += 1
            logger.info(f"  ✅ {app['email']} (score: {app.get('score', '-')})")
        else:
            counts["failed"] += 1
            logger.error(f"  ❌ {app['email']}: {message}")
            if result.get("error") == "at_capacity":
                logger.warning("⚠️  Beta is full, stopping approvals")
                break

    return counts


def set_beta_cap(client, cap: int):
    if cap < 1:
        raise ValueError("Beta cap must be at least 1")
    client.table("feature_flags").update({"beta_cap": cap}).eq("id", FEATURE_FLAGS_ID).execute()


def set_public_beta(client, enabled: bool):
    client.table("feature_flags").update({"public_beta_enabled": enabled}).eq(
        "id", FEATURE_FLAGS_ID
    ).execute()


def create_invite_codes(
    client, count: int, max_uses: int = 1, logger: Optional[logging.Logger] = None
) -> List[str]:
    """
    Create ``count`` invite codes.

    Uses the generate_invite_codes() function when installed; otherwise
    inserts random codes directly, skipping any insert that fails.
    """
    logger = logger or logging.getLogger(__name__)
    try:
        response = client.rpc(
            "generate_invite_codes", {"p_count": count, "p_max_uses": max_uses}
        ).execute()
        return list(response.data or [])
    except Exception as e:
        if not is_missing_function_error(e):
            raise
        logger.warning("⚠️  generate_invite_codes() not installed, inserting codes directly")

    codes = []
    for _ in range(count):
        code = generate_code()
        try:
            client.table("invite_codes").insert(
                {"code": code, "max_uses": max_uses, "uses": 0, "active": True}
            ).execute()
        except Exception as e:
            logger.error(f"❌ Could not insert {code}: {describe_api_error(e)}")
            continue
        codes.append(code)
    return codes


def validate_code(client, code: str) -> Dict:
    response = client.rpc("validate_invite_code", {"p_code": normalize_invite_code(code)}).execute()
    return response.data or {}


def redeem_code(
    client,
    code: str,
    user_id: str,
    email: Optional[str] = None,
    display_name: Optional[str] = None,
) -> Dict:
    params = {"p_code": normalize_invite_code(code), "p_user_id": user_id}
    if email:
        params["p_email"] = email.strip().lower()
    if display_name:
        params["p_display_name"] = display_name
    response = client.rpc("redeem_invite_code_atomic", params).execute()
    return response.data or {}


def waitlist_frame(rows: List[Dict]) -> pd.DataFrame:
    """Applications as an export frame, newest first."""
    df = pd.DataFrame(rows, columns=list(EXPORT_COLUMNS))
    df = df.sort_values("created_at", ascending=False, na_position="last")
    df = df.rename(columns=EXPORT_COLUMNS)
    return df.fillna("")


def default_export_path(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"waitlist-export-{today.isoformat()}.csv"


def export_waitlist(client, output: Optional[str] = None) -> Tuple[str, int]:
    """
    Write every waitlist application to CSV.

    Returns:
        Tuple[str, int]: (path written, number of applications)
    """
    rows = fetch_all_rows(client, "waitlist_applications")
    output = output or default_export_path()
    waitlist_frame(rows).to_csv(output, index=False)
    return output, len(rows)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def confirm(prompt: str, assume_yes: bool = False) -> bool:
    if assume_yes:
        return True
    return input(f"{prompt} (y/n): ").strip().lower() == "y"


def cmd_status(client, args, logger: logging.Logger) -> int:
    status = get_beta_status(client)
    flags = status["flags"]
    logger.info(f"Beta Cap: {status['beta_cap']}")
    logger.info(f"Public Beta: {'✅ Enabled' if status['public_beta_enabled'] else '❌ Disabled'}")
    logger.info(f"Active Beta Users: {status['active_users']}")
    logger.info(f"Total Beta Users (incl. deleted): {status['total_users']}")
    logger.info(f"Spots Remaining: {status['spots_remaining']}")
    logger.info("Waitlist Applications:")
    logger.info(f"  Pending: {status['pending']}")
    logger.info(f"  Approved: {status['approved']}")
    logger.info("🚩 Feature Flags:")
    logger.info(f"  Auto-approval Threshold: {flags.get('captcha_auto_threshold') or 75}")
    for key in sorted(flags):
        if key not in ("id", "beta_cap", "public_beta_enabled", "captcha_auto_threshold"):
            logger.info(f"  {key}: {flags[key]}")
    return 0


def cmd_queue(client, args, logger: logging.Logger) -> int:
    applications = fetch_pending(client, limit=args.limit)
    if not applications:
        logger.info("No pending applications")
        return 0

    logger.info(f"Top {len(applications)} Pending Applications (by score):")
    logger.info(f"{'Score':>5} | {'Email':<30} | {'Name':<20} | {'City':<17} | Applied")
    logger.info("-" * 100)
    for app in applications:
        applied = (app.get("created_at") or "")[:10]
        logger.info(
            f"{app.get('score', 0):>5} | {app['email']:<30} | "
            f"{(app.get('display_name') or '-')[:20]:<20} | "
            f"{(app.get('city_region') or '-')[:17]:<17} | {applied}"
        )
    return 0


def cmd_approve(client, args, logger: logging.Logger) -> int:
    if args.email:
        result = approve_email(client, args.email, grant_invites=not args.no_invites)
        ok, message = describe_result(result)
        if ok:
            logger.info(f"✅ {args.email}: {message}")
            return 0
        logger.error(f"❌ {args.email}: {message}")
        return 1

    if args.top is not None:
        applications = fetch_pending(client, limit=args.top)
    else:
        applications = fetch_pending(client, min_score=args.min_score)

    if not applications:
        logger.info("No applications meet criteria")
        return 0

    logger.info(f"Found {len(applications)} applications to approve")
    if not confirm("Approve all?", args.yes):
        logger.info("Cancelled")
        return 0

    counts = approve_applications(client, applications, logger, not args.no_invites)
    logger.info(
        f"📊 Approved {counts['approved']}, already approved {counts['already_approved']}, "
        f"failed {counts['failed']}"
    )
    return 1 if counts["failed"] else 0


def cmd_set_cap(client, args, logger: logging.Logger) -> int:
    previous = get_beta_cap(get_feature_flags(client))
    set_beta_cap(client, args.cap)
    logger.info(f"✅ Beta cap updated from {previous} to {args.cap}")
    return 0


def cmd_toggle_public_beta(client, args, logger: logging.Logger) -> int:
    current = bool(get_feature_flags(client).get("public_beta_enabled"))
    logger.info(f"Current status: {'✅ Enabled' if current else '❌ Disabled'}")
    target = not current
    if not confirm(f"{'Enable' if target else 'Disable'} public beta?", args.yes):
        logger.info("Cancelled")
        return 0

    set_public_beta(client, target)
    logger.info(f"✅ Public beta {'enabled' if target else 'disabled'}")
    if target:
        logger.warning("⚠️  All new sign-ups will automatically get beta access!")
    return 0


def cmd_invite_codes(client, args, logger: logging.Logger) -> int:
    codes = create_invite_codes(client, args.count, args.max_uses, logger)
    logger.info(f"✅ Generated {len(codes)} invite codes")
    for code in codes:
        logger.info(f"  {code}  {invite_url(code)}")
    return 0 if len(codes) == args.count else 1


def cmd_validate_code(client, args, logger: logging.Logger) -> int:
    code = normalize_invite_code(args.code)
    ok, message = describe_result(validate_code(client, code))
    if ok:
        logger.info(f"✅ {code}: {message}")
        return 0
    logger.error(f"❌ {code}: {message}")
    return 1


def cmd_redeem(client, args, logger: logging.Logger) -> int:
    code = normalize_invite_code(args.code)
    result = redeem_code(client, code, args.user_id, args.email, args.display_name)
    ok, message = describe_result(result)
    if ok:
        logger.info(f"✅ {code} redeemed for {args.user_id}: {message}")
        return 0
    logger.error(f"❌ {code}: {message}")
    return 1


def cmd_export(client, args, logger: logging.Logger) -> int:
    path, count = export_waitlist(client, args.output)
    if not count:
        logger.info("No applications to export")
    logger.info(f"✅ Exported {count} applications to {path}")
    return 0


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Teed.club beta administration")
    subparsers = parser.add_subparsers(dest="command", required=True)

    status = subparsers.add_parser("status", help="Show beta capacity and waitlist counts")
    status.set_defaults(func=cmd_status)

    queue = subparsers.add_parser("queue", help="Show top pending applications")
    queue.add_argument("--limit", type=positive_int, default=20)
    queue.set_defaults(func=cmd_queue)

    approve = subparsers.add_parser("approve", help="Approve waitlist applications")
    target = approve.add_mutually_exclusive_group(required=True)
    target.add_argument("--email", help="Approve a single applicant")
    target.add_argument("--top", type=positive_int, metavar="N", help="Approve the top N by score")
    target.add_argument("--min-score", type=int, metavar="S", help="Approve all with score >= S")
    approve.add_argument(
        "--no-invites",
        action="store_true",
        help=f"Do not grant the default {config.DEFAULT_INVITE_QUOTA} invites to approved users",
    )
    approve.add_argument("--yes", action="store_true", help="Skip confirmation")
    approve.set_defaults(func=cmd_approve)

    set_cap = subparsers.add_parser("set-cap", help="Change the beta cap")
    set_cap.add_argument("cap", type=positive_int)
    set_cap.set_defaults(func=cmd_set_cap)

    toggle = subparsers.add_parser("toggle-public-beta", help="Flip the public beta flag")
    toggle.add_argument("--yes", action="store_true", help="Skip confirmation")
    toggle.set_defaults(func=cmd_toggle_public_beta)

    invites = subparsers.add_parser("invite-codes", help="Generate invite codes")
    invites.add_argument("--count", type=positive_int, required=True)
    invites.add_argument("--max-uses", type=positive_int, default=1)
    invites.set_defaults(func=cmd_invite_codes)

    validate = subparsers.add_parser("validate-code", help="Check an invite code")
    validate.add_argument("code")
    validate.set_defaults(func=cmd_validate_code)

    redeem = subparsers.add_parser("redeem", help="Redeem an invite code for a user")
    redeem.add_argument("--code", required=True)
    redeem.add_argument("--user-id", required=True, metavar="UUID")
    redeem.add_argument("--email")
    redeem.add_argument("--display-name")
    redeem.set_defaults(func=cmd_redeem)

    export = subparsers.add_parser("export", help="Export the waitlist to CSV")
    export.add_argument("--output", metavar="PATH")
    export.set_defaults(func=cmd_export)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logger = setup_script_logging("beta_admin")
    log_banner(logger, "🎯 TEED.CLUB BETA ADMIN TOOLS")

    try:
        return args.func(get_service_client(), args, logger)
    except ValueError as e:
        logger.error(f"❌ {e}")
        return 1
    except Exception as e:
        logger.error(f"❌ {args.command} failed: {describe_api_error(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
