"""
Supabase client construction and error classification shared by all scripts.

Every ops script talks to the hosted project through one of three handles:

- the service-role client (bypasses RLS) for administrative reads and writes
- the anon client, used by diagnostics to see the database the way a
  logged-out visitor does
- a SQLAlchemy engine over the project's direct Postgres connection, used
  for DDL and policy changes that PostgREST cannot express

Clients are cached per process. Missing credentials raise ``ValueError`` so
that each script's ``main()`` can log the problem and exit non-zero.
"""

from __future__ import annotations

from typing import Any

from postgrest.exceptions import APIError
from sqlalchemy import Engine, create_engine
from supabase import Client, create_client

from config.settings import config

# PostgREST / Postgres error codes the scripts branch on
MISSING_FUNCTION_CODES = {"PGRST202", "42883"}
MISSING_TABLE_CODES = {"PGRST205", "42P01"}
PERMISSION_DENIED_CODES = {"42501"}


class SupabaseAdmin:
    """Process-wide cache of Supabase clients."""

    _service_client: Client | None = None
    _anon_client: Client | None = None
    _engine: Engine | None = None

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS."""
        if cls._service_client is None:
            config.validate_for_supabase_operations()
            cls._service_client = create_client(
                config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY
            )
        return cls._service_client

    @classmethod
    def get_anon_client(cls) -> Client:
        """Client with the public anon key; subject to RLS."""
        if cls._anon_client is None:
            config.validate_for_anon_operations()
            cls._anon_client = create_client(
                config.SUPABASE_URL, config.SUPABASE_ANON_KEY
            )
        return cls._anon_client

    @classmethod
    def get_engine(cls) -> Engine:
        """SQLAlchemy engine over the direct Postgres connection."""
        if cls._engine is None:
            cls._engine = create_engine(config.get_database_url(), pool_pre_ping=True)
        return cls._engine

    @classmethod
    def reset_clients(cls):
        cls._service_client = None
        cls._anon_client = None
        if cls._engine is not None:
            cls._engine.dispose()
        cls._engine = None


def get_service_client() -> Client:
    return SupabaseAdmin.get_service_client()


def get_anon_client() -> Client:
    return SupabaseAdmin.get_anon_client()


def get_postgres_engine() -> Engine:
    """
    Create a SQLAlchemy engine for the project's Postgres database.

    Returns:
        Engine: SQLAlchemy engine configured from SUPABASE_DB_URL

    Raises:
        ValueError: If SUPABASE_DB_URL is not configured
    """
    return SupabaseAdmin.get_engine()


def error_code(exc: BaseException) -> str | None:
    """Return the PostgREST/Postgres error code carried by an exception, if any."""
    code = getattr(exc, "code", None)
    return str(code) if code else None


def describe_api_error(exc: BaseException) -> str:
    """
    Build a one-line description of a Supabase error for log output.

    Args:
        exc: Exception raised by a supabase-py call

    Returns:
        str: "message (code)" or the exception text
    """
    if isinstance(exc, APIError):
        message = exc.message or str(exc)
        if exc.code:
            return f"{message} ({exc.code})"
        return message
    return str(exc)


def is_missing_function_error(exc: BaseException) -> bool:
    """True when an RPC failed because the function is not installed."""
    if error_code(exc) in MISSING_FUNCTION_CODES:
        return True
    message = describe_api_error(exc).lower()
    return "could not find the function" in message or (
        "function" in message and "does not exist" in message
    )


def function_exists(client: Client, function_name: str) -> bool:
    """
    Check that an RPC function is installed without running its body.

    The function is called with no arguments. PostgREST rejects a call that
    matches no signature with PGRST202 before anything executes, and its hint
    names the real signature when the function exists with parameters. Only
    use this for functions that take at least one required parameter.

    Args:
        client: Supabase client to call through
        function_name: Function name in the public schema

    Returns:
        bool: False only when the function is not installed
    """
    try:
        client.rpc(function_name, {}).execute()
    except APIError as e:
        if not is_missing_function_error(e):
            return True
        hint = f"{e.message or ''} {e.hint or ''}"
        return f".{function_name}(" in hint
    return True


def is_missing_table_error(exc: BaseException) -> bool:
    """True when a query failed because the table does not exist."""
    if error_code(exc) in MISSING_TABLE_CODES:
        return True
    message = describe_api_error(exc).lower()
    return "could not find the table" in message or (
        "relation" in message and "does not exist" in message
    )


def is_permission_error(exc: BaseException) -> bool:
    """True when RLS or grants rejected the request."""
    if error_code(exc) in PERMISSION_DENIED_CODES:
        return True
    message = describe_api_error(exc).lower()
    return "row-level security" in message or "permission denied" in message


def count_rows(client: Client, table: str, **filters: Any) -> int:
    """
    Count rows in a table with optional equality filters.

    Args:
        client: Supabase client to query with
        table: Table name
        **filters: column=value equality filters; a value of None filters IS NULL

    Returns:
        int: exact row count reported by PostgREST
    """
    query = client.table(table).select("id", count="exact")
    for column, value in filters.items():
        if value is None:
            query = query.is_(column, "null")
        else:
            query = query.eq(column, value)
    response = query.limit(1).execute()
    return response.count or 0


FEATURE_FLAGS_ID = 1


def get_feature_flags(client: Client) -> dict:
    """
    Read the singleton feature_flags row.

    Returns:
        dict: The row, or an empty dict when it has not been created yet
    """
    response = (
        client.table("feature_flags")
        .select("*")
        .eq("id", FEATURE_FLAGS_ID)
        .maybe_single()
        .execute()
    )
    if response is None or not response.data:
        return {}
    return response.data


def get_beta_cap(flags: dict) -> int:
    return flags.get("beta_cap") or config.DEFAULT_BETA_CAP


def count_active_beta_users(client: Client) -> int:
    """Profiles with beta access that have not been soft-deleted."""
    return count_rows(client, "profiles", beta_access=True, deleted_at=None)


def fetch_all_rows(
    client: Client, table: str, columns: str = "*", page_size: int = 1000
) -> list:
    """
    Read every row of a table, paging past PostgREST's row limit.

    The server may cap a page below ``page_size`` (max-rows), so only an
    empty page ends the loop.

    Args:
        client: Supabase client to query with
        table: Table name
        columns: Select list
        page_size: Rows per request

    Returns:
        list: All rows as dicts, ordered by id
    """
    rows: list = []
    start = 0
    while True:
        response = (
            client.table(table)
            .select(columns)
            .order("id")
            .range(start, start + page_size - 1)
            .execute()
        )
        page = response.data or []
        if not page:
            return rows
        rows.extend(page)
        start += len(page)
