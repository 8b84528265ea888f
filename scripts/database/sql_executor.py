"""
SQL Executor for Teed.club Schema and Policy Changes

This module executes raw SQL (migrations, RLS policy rewrites, helper
functions) against the hosted Supabase Postgres instance. It consolidates the
execution strategy that every migration and policy script shares:

1. Direct Postgres: when SUPABASE_DB_URL is configured, all statements run
   inside a single transaction through SQLAlchemy. Any failure rolls the
   whole script back.
2. exec_sql RPC: without a direct connection, the script is sent to the
   ``exec_sql`` helper function through PostgREST (installed by
   ``sql/migrations/000_exec_sql.sql``).
3. Manual: if the helper function is not installed either, the SQL is logged
   with dashboard instructions so an operator can paste it into the SQL
   editor.

Example Usage:
    executor = SqlExecutor.from_config(logger)
    result = executor.execute("waitlist_rls", sql_text)
    if result.status == "manual":
        ...
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from config.settings import config
from scripts.database.supabase_admin import (
    describe_api_error,
    get_postgres_engine,
    get_service_client,
    is_missing_function_error,
)

EXEC_SQL_FUNCTION = "exec_sql"

STATUS_APPLIED = "applied"
STATUS_MANUAL = "manual"
STATUS_FAILED = "failed"

_DOLLAR_TAG = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)?\$")


@dataclass
class ExecutionResult:
    """Outcome of executing one SQL script."""

    name: str
    status: str
    statements: int = 0
    method: str = ""
    error: Optional[str] = None
    sql: str = field(default="", repr=False)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_APPLIED


def split_sql_statements(sql: str) -> List[str]:
    """
    Split a SQL script into individual statements on top-level semicolons.

    Semicolons inside single-quoted literals (including E'...' escape
    strings), double-quoted identifiers, ``--`` and ``/* */`` comments, and
    dollar-quoted bodies (``$$`` or ``$tag$``) do not end a statement, so
    ``CREATE FUNCTION`` and ``DO`` blocks survive intact. Statements
    consisting only of comments are dropped.

    Args:
        sql (str): SQL script text

    Returns:
        List[str]: Statements without their trailing semicolon
    """
    statements: List[str] = []
    current: List[str] = []
    has_content = False
    i = 0
    length = len(sql)

    def flush():
        nonlocal has_content
        statement = "".join(current).strip()
        if statement and has_content:
            statements.append(statement)
        current.clear()
        has_content = False

    while i < length:
        char = sql[i]
        nxt = sql[i + 1] if i + 1 < length else ""

        if char == "-" and nxt == "-":
            end = sql.find("\n", i)
            end = length if end == -1 else end
            current.append(sql[i:end])
            i = end
            continue

        if char == "/" and nxt == "*":
            # Postgres block comments nest
            depth = 0
            j = i
            while j < length:
                if sql.startswith("/*", j):
                    depth += 1
                    j += 2
                elif sql.startswith("*/", j):
                    depth -= 1
                    j += 2
                    if depth == 0:
                        break
                else:
                    j += 1
            current.append(sql[i:j])
            i = j
            continue

        if char in ("'", '"'):
            # E'...' strings allow backslash escapes
            escapes = (
                char == "'"
                and i > 0
                and sql[i - 1] in "Ee"
                and (i == 1 or not (sql[i - 2].isalnum() or sql[i - 2] == "_"))
            )
            j = i + 1
            while j < length:
                if escapes and sql[j] == "\\":
                    j += 2
                    continue
                if sql[j] == char:
                    # doubled quote is an escaped quote
                    if j + 1 < length and sql[j + 1] == char:
                        j += 2
                        continue
                    break
                j += 1
            current.append(sql[i : j + 1])
            has_content = True
            i = j + 1
            continue

        if char == "$":
            match = _DOLLAR_TAG.match(sql, i)
            if match:
                tag = match.group(0)
                end = sql.find(tag, match.end())
                end = length if end == -1 else end + len(tag)
                current.append(sql[i:end])
                has_content = True
                i = end
                continue

        if char == ";":
            flush()
            i += 1
            continue

        if not char.isspace():
            has_content = True
        current.append(char)
        i += 1

    flush()
    return statements


def load_sql_file(path: str) -> str:
    """
    Load a SQL file, failing loudly if it is missing or empty.

    Args:
        path (str): Path to the .sql file

    Returns:
        str: File contents

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"SQL file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        sql_content = f.read().strip()

    if not sql_content:
        raise ValueError(f"SQL file is empty: {path}")

    return sql_content


def manual_instructions(name: str, sql: str) -> List[str]:
    """Lines telling an operator how to apply SQL by hand."""
    return [
        f"📝 Manual fix required for: {name}",
        "   1. Go to Supabase Dashboard > SQL Editor",
        "   2. Paste the SQL below (the SQL only, not these instructions)",
        "   3. Click 'Run' and re-run this script to verify",
        "-" * 80,
        sql,
        "-" * 80,
    ]


class SqlExecutor:
    """
    Execute SQL scripts using the best channel available.

    The executor is stateless apart from its handles; each ``execute`` call
    is independent and reports its own ``ExecutionResult``.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        engine: Optional[Engine] = None,
        client=None,
    ):
        """
        Initialize the executor.

        Args:
            logger (Optional[logging.Logger]): Logger for progress output
            engine (Optional[Engine]): Direct Postgres engine; preferred when given
            client: Service-role Supabase client used for the exec_sql RPC
        """
        self.logger = logger or logging.getLogger(__name__)
        self.engine = engine
        self.client = client

    @classmethod
    def from_config(cls, logger: Optional[logging.Logger] = None) -> "SqlExecutor":
        """Build an executor from configuration: engine if SUPABASE_DB_URL is set."""
        if config.has_direct_database():
            return cls(logger=logger, engine=get_postgres_engine())
        return cls(logger=logger, client=get_service_client())

    def execute(self, name: str, sql: str) -> ExecutionResult:
        """
        Execute a SQL script.

        Args:
            name (str): Label used in log output (migration or policy group name)
            sql (str): Full SQL script

        Returns:
            ExecutionResult: applied, manual or failed
        """
        statements = split_sql_statements(sql)
        if not statements:
            self.logger.warning(f"⚠️  {name}: no SQL statements to execute")
            return ExecutionResult(name, STATUS_APPLIED, 0, method="none", sql=sql)

        if self.engine is not None:
            return self._execute_direct(name, sql, statements)
        return self._execute_rpc(name, sql, statements)

    def _execute_direct(
        self, name: str, sql: str, statements: List[str]
    ) -> ExecutionResult:
        self.logger.info(
            f"📝 Executing {name} over direct connection ({len(statements)} statements)..."
        )
        try:
            with self.engine.begin() as conn:
                # no_parameters keeps psycopg2 from reading %ROWTYPE or format()
                # specifiers as placeholders
                conn = conn.execution_options(no_parameters=True)
                for index, statement in enumerate(statements, 1):
                    self.logger.debug(
                        f"   Executing statement {index}/{len(statements)}..."
                    )
                    conn.exec_driver_sql(statement)
        except (SQLAlchemyError, TypeError) as e:
            self.logger.error(f"❌ {name} failed and was rolled back: {e}")
            return ExecutionResult(
                name,
                STATUS_FAILED,
                len(statements),
                method="postgres",
                error=str(e),
                sql=sql,
            )

        self.logger.info(f"✅ {name} applied")
        return ExecutionResult(
            name, STATUS_APPLIED, len(statements), method="postgres", sql=sql
        )

    def _execute_rpc(
        self, name: str, sql: str, statements: List[str]
    ) -> ExecutionResult:
        client = self.client or get_service_client()
        self.logger.info(f"📝 Executing {name} via {EXEC_SQL_FUNCTION} RPC...")
        try:
            client.rpc(EXEC_SQL_FUNCTION, {"sql": sql}).execute()
        except Exception as e:
            if is_missing_function_error(e):
                self.logger.warning(
                    f"⚠️  {EXEC_SQL_FUNCTION} RPC is not installed; cannot apply {name} automatically"
                )
                for line in manual_instructions(name, sql):
                    self.logger.info(line)
                return ExecutionResult(
                    name,
                    STATUS_MANUAL,
                    len(statements),
                    method="manual",
                    error=describe_api_error(e),
                    sql=sql,
                )
            self.logger.error(f"❌ {name} failed: {describe_api_error(e)}")
            return ExecutionResult(
                name,
                STATUS_FAILED,
                len(statements),
                method="rpc",
                error=describe_api_error(e),
                sql=sql,
            )

        self.logger.info(f"✅ {name} applied")
        return ExecutionResult(
            name, STATUS_APPLIED, len(statements), method="rpc", sql=sql
        )
