#!/usr/bin/env python3
"""
RLS Policy Manager

This script rewrites row-level security policies on the Teed.club tables from
a hand-maintained catalog. Each policy group drops the existing policies on its
tables and recreates the catalogued ones, so repeated runs converge on the same
state.

Usage:
    # Show the catalog
    python scripts/database/rls_policies.py --list

    # Print the SQL for a group
    python scripts/database/rls_policies.py --group waitlist --print

    # Apply groups (direct connection, exec_sql RPC, or manual instructions)
    python scripts/database/rls_policies.py --group waitlist --group feed --apply

    # Show current policies (requires SUPABASE_DB_URL)
    python scripts/database/rls_policies.py --show equipment feed_posts

    # Check whether anonymous visitors can submit to the waitlist
    python scripts/database/rls_policies.py --check-waitlist
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import Engine, text

from scripts.collectors.equipment_schemas import WaitlistApplication
from scripts.database.sql_executor import STATUS_FAILED, SqlExecutor
from scripts.database.supabase_admin import (
    describe_api_error,
    get_anon_client,
    get_postgres_engine,
    get_service_client,
)
from utils.logging import log_banner, setup_script_logging

VALID_COMMANDS = {"ALL", "SELECT", "INSERT", "UPDATE", "DELETE"}

IS_ADMIN = (
    "EXISTS (SELECT 1 FROM public.profiles "
    "WHERE profiles.id = auth.uid() AND profiles.is_admin = true)"
)


def quote_ident(name: str) -> str:
    """Double-quote an SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class PolicySpec:
    """One row-level security policy."""

    name: str
    table: str
    command: str = "ALL"
    roles: Tuple[str, ...] = ("public",)
    using: Optional[str] = None
    with_check: Optional[str] = None

    def __post_init__(self):
        if self.command not in VALID_COMMANDS:
            raise ValueError(
                f"Invalid policy command '{self.command}' for {self.name}. "
                f"Must be one of: {sorted(VALID_COMMANDS)}"
            )
        if self.command == "INSERT" and self.using is not None:
            raise ValueError(f"INSERT policy {self.name} cannot have a USING clause")
        if self.command in ("SELECT", "DELETE") and self.with_check is not None:
            raise ValueError(
                f"{self.command} policy {self.name} cannot have a WITH CHECK clause"
            )


@dataclass(frozen=True)
class PolicyGroup:
    """Policies for a feature area, applied together."""

    name: str
    description: str
    policies: Tuple[PolicySpec, ...]
    grants: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def tables(self) -> List[str]:
        seen: List[str] = []
        for policy in self.policies:
            if policy.table not in seen:
                seen.append(policy.table)
        return seen


def render_drop_policy(policy_name: str, table: str) -> str:
    return f"DROP POLICY IF EXISTS {quote_ident(policy_name)} ON public.{quote_ident(table)};"


def render_drop_all_policies(table: str) -> str:
    """A DO block dropping every policy currently attached to the table."""
    return (
        "DO $$\n"
        "DECLARE\n"
        "    r RECORD;\n"
        "BEGIN\n"
        "    FOR r IN\n"
        "        SELECT policyname FROM pg_policies\n"
        f"        WHERE schemaname = 'public' AND tablename = '{table}'\n"
        "    LOOP\n"
        f"        EXECUTE format('DROP POLICY IF EXISTS %I ON public.{quote_ident(table)}', r.policyname);\n"
        "    END LOOP;\n"
        "END $$;"
    )


def render_create_policy(policy: PolicySpec) -> str:
    lines = [
        f"CREATE POLICY {quote_ident(policy.name)}",
        f"    ON public.{quote_ident(policy.table)}",
        f"    FOR {policy.command}",
        f"    TO {', '.join(policy.roles)}",
    ]
    if policy.using is not None:
        lines.append(f"    USING ({policy.using})")
    if policy.with_check is not None:
        lines.append(f"    WITH CHECK ({policy.with_check})")
    return "\n".join(lines) + ";"


def render_table_policies(
    table: str, policies: Sequence[PolicySpec], drop_all_existing: bool = True
) -> str:
    """
    Render the SQL that resets one table's policies.

    Args:
        table (str): Table name in the public schema
        policies: Policies to create on the table
        drop_all_existing (bool): Drop every existing policy on the table
            (not just the catalogued names) before recreating

    Returns:
        str: SQL script
    """
    parts = [f"-- {table}"]
    if drop_all_existing:
        parts.append(render_drop_all_policies(table))
    else:
        parts.extend(render_drop_policy(p.name, table) for p in policies)
    parts.append(f"ALTER TABLE public.{quote_ident(table)} ENABLE ROW LEVEL SECURITY;")
    parts.extend(render_create_policy(p) for p in policies if p.table == table)
    return "\n".join(parts)


def render_group(group: PolicyGroup, drop_all_existing: bool = True) -> str:
    """Render the SQL for every table in a policy group, followed by its grants."""
    sections = [
        render_table_policies(
            table,
            [p for p in group.policies if p.table == table],
            drop_all_existing,
        )
        for table in group.tables
    ]
    if group.grants:
        sections.append("\n".join(group.grants))
    return "\n\n".join(sections)


POLICY_CATALOG: Dict[str, PolicyGroup] = {
    "waitlist": PolicyGroup(
        "waitlist",
        "Anonymous waitlist submission, admin review",
        (
            PolicySpec(
                "allow_anonymous_insert",
                "waitlist_applications",
                "INSERT",
                ("anon", "authenticated"),
                with_check="status = 'pending'",
            ),
            PolicySpec(
                "service_role_bypass",
                "waitlist_applications",
                "ALL",
                ("service_role",),
                using="true",
                with_check="true",
            ),
            PolicySpec(
                "admins_can_view_all",
                "waitlist_applications",
                "SELECT",
                ("authenticated",),
                using=IS_ADMIN,
            ),
        ),
        grants=(
            "GRANT INSERT ON public.waitlist_applications TO anon;",
            "GRANT ALL ON public.waitlist_applications TO service_role;",
        ),
    ),
    "equipment": PolicyGroup(
        "equipment",
        "Public catalog, community additions, owner edits",
        (
            PolicySpec(
                "equipment_public_read", "equipment", "SELECT", ("anon", "authenticated"), using="true"
            ),
            PolicySpec(
                "equipment_authenticated_insert",
                "equipment",
                "INSERT",
                ("authenticated",),
                with_check="added_by_user_id = auth.uid()",
            ),
            PolicySpec(
                "equipment_owner_update",
                "equipment",
                "UPDATE",
                ("authenticated",),
                using=f"added_by_user_id = auth.uid() OR {IS_ADMIN}",
                with_check=f"added_by_user_id = auth.uid() OR {IS_ADMIN}",
            ),
        ),
    ),
    "equipment_photos": PolicyGroup(
        "equipment_photos",
        "Public photos, uploader-managed",
        (
            PolicySpec(
                "equipment_photos_public_read",
                "equipment_photos",
                "SELECT",
                ("anon", "authenticated"),
                using="true",
            ),
            PolicySpec(
                "equipment_photos_owner_insert",
                "equipment_photos",
                "INSERT",
                ("authenticated",),
                with_check="user_id = auth.uid()",
            ),
            PolicySpec(
                "equipment_photos_owner_delete",
                "equipment_photos",
                "DELETE",
                ("authenticated",),
                using="user_id = auth.uid()",
            ),
        ),
    ),
    "bags": PolicyGroup(
        "bags",
        "Public bags, owner-managed contents",
        (
            PolicySpec("user_bags_public_read", "user_bags", "SELECT", ("anon", "authenticated"), using="true"),
            PolicySpec(
                "user_bags_owner_write",
                "user_bags",
                "ALL",
                ("authenticated",),
                using="user_id = auth.uid()",
                with_check="user_id = auth.uid()",
            ),
            PolicySpec(
                "bag_equipment_public_read", "bag_equipment", "SELECT", ("anon", "authenticated"), using="true"
            ),
            PolicySpec(
                "bag_equipment_owner_write",
                "bag_equipment",
                "ALL",
                ("authenticated",),
                using="EXISTS (SELECT 1 FROM public.user_bags WHERE user_bags.id = bag_equipment.bag_id AND user_bags.user_id = auth.uid())",
                with_check="EXISTS (SELECT 1 FROM public.user_bags WHERE user_bags.id = bag_equipment.bag_id AND user_bags.user_id = auth.uid())",
            ),
        ),
    ),
    "feed": PolicyGroup(
        "feed",
        "Public feed, own posts and tees",
        (
            PolicySpec("feed_posts_public_read", "feed_posts", "SELECT", ("anon", "authenticated"), using="true"),
            PolicySpec(
                "feed_posts_owner_insert",
                "feed_posts",
                "INSERT",
                ("authenticated",),
                with_check="user_id = auth.uid()",
            ),
            PolicySpec(
                "feed_posts_owner_update",
                "feed_posts",
                "UPDATE",
                ("authenticated",),
                using="user_id = auth.uid()",
                with_check="user_id = auth.uid()",
            ),
            PolicySpec(
                "feed_posts_owner_delete",
                "feed_posts",
                "DELETE",
                ("authenticated",),
                using="user_id = auth.uid()",
            ),
            PolicySpec("feed_likes_public_read", "feed_likes", "SELECT", ("anon", "authenticated"), using="true"),
            PolicySpec(
                "feed_likes_owner_insert",
                "feed_likes",
                "INSERT",
                ("authenticated",),
                with_check="user_id = auth.uid()",
            ),
            PolicySpec(
                "feed_likes_owner_delete",
                "feed_likes",
                "DELETE",
                ("authenticated",),
                using="user_id = auth.uid()",
            ),
        ),
    ),
    "forum": PolicyGroup(
        "forum",
        "Public forum, authors manage their own content",
        tuple(
            spec
            for table, owner in (
                ("forum_threads", "user_id"),
                ("forum_posts", "user_id"),
                ("forum_reactions", "user_id"),
            )
            for spec in (
                PolicySpec(f"{table}_public_read", table, "SELECT", ("anon", "authenticated"), using="true"),
                PolicySpec(
                    f"{table}_author_insert",
                    table,
                    "INSERT",
                    ("authenticated",),
                    with_check=f"{owner} = auth.uid()",
                ),
                PolicySpec(
                    f"{table}_author_update",
                    table,
                    "UPDATE",
                    ("authenticated",),
                    using=f"{owner} = auth.uid()",
                    with_check=f"{owner} = auth.uid()",
                ),
                PolicySpec(
                    f"{table}_author_delete",
                    table,
                    "DELETE",
                    ("authenticated",),
                    using=f"{owner} = auth.uid() OR {IS_ADMIN}",
                ),
            )
        ),
    ),
    "badges": PolicyGroup(
        "badges",
        "Public badge catalog and progress, awarded server-side",
        (
            PolicySpec("badges_public_read", "badges", "SELECT", ("anon", "authenticated"), using="true"),
            PolicySpec("user_badges_public_read", "user_badges", "SELECT", ("anon", "authenticated"), using="true"),
            PolicySpec(
                "user_badges_service_write",
                "user_badges",
                "ALL",
                ("service_role",),
                using="true",
                with_check="true",
            ),
        ),
    ),
}


def get_group(name: str) -> PolicyGroup:
    try:
        return POLICY_CATALOG[name]
    except KeyError:
        raise KeyError(
            f"Unknown policy group '{name}'. Available: {', '.join(POLICY_CATALOG)}"
        )


def fetch_policies(engine: Engine, tables: Sequence[str]) -> List[Dict[str, str]]:
    """
    List current RLS policies for the given tables from pg_policies.

    Args:
        engine (Engine): Direct Postgres engine
        tables: Table names in the public schema

    Returns:
        List[Dict[str, str]]: One dict per policy with table, name, command,
            roles, using and with_check
    """
    query = text(
        """
        SELECT tablename, policyname, cmd, roles::text AS roles, qual, with_check
        FROM pg_policies
        WHERE schemaname = 'public' AND tablename = ANY(:tables)
        ORDER BY tablename, policyname
        """
    )
    with engine.connect() as conn:
        rows = conn.execute(query, {"tables": list(tables)}).fetchall()

    return [
        {
            "table": row[0],
            "name": row[1],
            "command": row[2],
            "roles": row[3],
            "using": row[4] or "",
            "with_check": row[5] or "",
        }
        for row in rows
    ]


def check_anonymous_insert(
    anon_client, service_client, logger: Optional[logging.Logger] = None
) -> Tuple[bool, Optional[str]]:
    """
    Try a waitlist submission as an anonymous visitor.

    The test row is deleted with the service client afterwards.

    Returns:
        Tuple[bool, Optional[str]]: (allowed, error message when blocked)
    """
    logger = logger or logging.getLogger(__name__)
    check_email = f"rls-check-{int(time.time() * 1000)}@example.com"
    try:
        row = WaitlistApplication(
            email=check_email, display_name="RLS Check", city_region="Test", score=50
        )
        anon_client.table("waitlist_applications").insert(
            row.model_dump(), returning="minimal"
        ).execute()
    except Exception as e:
        return False, describe_api_error(e)

    try:
        service_client.table("waitlist_applications").delete().eq(
            "email", check_email
        ).execute()
    except Exception as e:
        logger.warning(f"⚠️  Could not clean up test row {check_email}: {e}")
    return True, None


def main():
    parser = argparse.ArgumentParser(description="Manage Teed.club RLS policies")
    parser.add_argument("--group", action="append", default=[], help="Policy group (repeatable)")
    parser.add_argument("--list", action="store_true", help="List policy groups")
    parser.add_argument("--print", dest="print_only", action="store_true", help="Print SQL")
    parser.add_argument("--apply", action="store_true", help="Apply the groups")
    parser.add_argument(
        "--keep-unlisted",
        action="store_true",
        help="Only drop catalogued policy names instead of every policy on the table",
    )
    parser.add_argument("--show", nargs="+", metavar="TABLE", help="Show current policies")
    parser.add_argument(
        "--check-waitlist", action="store_true", help="Test anonymous waitlist submission"
    )
    args = parser.parse_args()

    logger = setup_script_logging("rls_policies")

    if args.list:
        for group in POLICY_CATALOG.values():
            logger.info(
                f"{group.name:<18} {len(group.policies):>2} policies on {', '.join(group.tables)} - {group.description}"
            )
        return

    try:
        if args.show:
            policies = fetch_policies(get_postgres_engine(), args.show)
            if not policies:
                logger.warning("⚠️  No policies found")
            for policy in policies:
                logger.info(
                    f"{policy['table']:<24} {policy['name']:<40} {policy['command']:<7} {policy['roles']}"
                )
            return

        if args.check_waitlist:
            allowed, error = check_anonymous_insert(
                get_anon_client(), get_service_client(), logger
            )
            if allowed:
                logger.info("✅ Anonymous users can submit to the waitlist")
                return
            logger.error(f"❌ Anonymous submission BLOCKED: {error}")
            logger.info("   Fix: python scripts/database/rls_policies.py --group waitlist --apply")
            sys.exit(1)

        groups = [get_group(name) for name in args.group]
    except KeyError as e:
        logger.error(f"❌ {e.args[0]}")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        sys.exit(1)

    if not groups:
        parser.error("specify at least one --group (or --list / --show / --check-waitlist)")

    if args.print_only or not args.apply:
        for group in groups:
            print(f"-- Policy group: {group.name}\n{render_group(group, not args.keep_unlisted)}\n")
        return

    try:
        executor = SqlExecutor.from_config(logger)
    except ValueError as e:
        logger.error(f"❌ Missing required configuration: {e}")
        sys.exit(1)

    log_banner(logger, "🔒 Applying RLS policy groups")
    failed = False
    for group in groups:
        result = executor.execute(
            f"RLS group '{group.name}'", render_group(group, not args.keep_unlisted)
        )
        failed = failed or result.status == STATUS_FAILED

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
