"""
Unit tests for verify_schema.py module.

The SQLAlchemy engine is a MagicMock; ``inspect`` is patched to return a
stub inspector.
"""

from unittest.mock import MagicMock, patch

from scripts.database import verify_schema
from scripts.database.verify_schema import (
    verify_functions,
    verify_rls_enabled,
    verify_table_structure,
)


def engine_returning(rows):
    engine = MagicMock()
    conn = engine.connect.return_value.__enter__.return_value
    conn.execute.return_value.fetchall.return_value = rows
    return engine, conn


class TestVerifyTableStructure:
    def test_all_present(self, test_logger):
        inspector = MagicMock()
        inspector.get_table_names.return_value = ["profiles", "equipment", "extra"]

        with patch.object(verify_schema, "inspect", return_value=inspector):
            assert verify_table_structure(MagicMock(), test_logger, ["profiles", "equipment"])

        inspector.get_table_names.assert_called_once_with(schema="public")

    def test_missing_table(self, test_logger):
        inspector = MagicMock()
        inspector.get_table_names.return_value = ["profiles"]

        with patch.object(verify_schema, "inspect", return_value=inspector):
            assert not verify_table_structure(MagicMock(), test_logger, ["profiles", "badges"])

    def test_connection_error(self, test_logger):
        with patch.object(verify_schema, "inspect", side_effect=RuntimeError("refused")):
            assert not verify_table_structure(MagicMock(), test_logger)


class TestVerifyRlsEnabled:
    def test_enabled(self, test_logger):
        engine, conn = engine_returning([("profiles", True), ("equipment", True)])

        assert verify_rls_enabled(engine, test_logger, ["profiles", "equipment"])
        params = conn.execute.call_args.args[1]
        assert params == {"tables": ["profiles", "equipment"]}

    def test_disabled(self, test_logger):
        engine, _ = engine_returning([("profiles", True), ("equipment", False)])

        assert not verify_rls_enabled(engine, test_logger, ["profiles", "equipment"])

    def test_missing_tables_not_reported_twice(self, test_logger):
        engine, _ = engine_returning([("profiles", True)])

        assert verify_rls_enabled(engine, test_logger, ["profiles", "badges"])


class TestVerifyFunctions:
    def test_all_installed(self, test_logger):
        engine, _ = engine_returning([("exec_sql",), ("validate_invite_code",)])

        assert verify_functions(engine, test_logger, ["exec_sql", "validate_invite_code"])

    def test_missing_function(self, test_logger):
        engine, _ = engine_returning([("exec_sql",)])

        assert not verify_functions(engine, test_logger, ["exec_sql", "check_and_award_badges"])

    def test_query_error(self, test_logger):
        engine = MagicMock()
        engine.connect.side_effect = RuntimeError("refused")

        assert not verify_functions(engine, test_logger)
