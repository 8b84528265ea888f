"""
Unit tests for supabase_admin.py module.
"""

from unittest.mock import patch

import pytest

from scripts.database import supabase_admin
from scripts.database.supabase_admin import (
    SupabaseAdmin,
    count_active_beta_users,
    count_rows,
    describe_api_error,
    error_code,
    fetch_all_rows,
    function_exists,
    get_beta_cap,
    get_feature_flags,
    is_missing_function_error,
    is_missing_table_error,
    is_permission_error,
)


class TestErrorClassification:
    def test_describe_api_error(self, api_error):
        assert describe_api_error(api_error("42501", "permission denied")) == (
            "permission denied (42501)"
        )

    def test_describe_plain_exception(self):
        assert describe_api_error(RuntimeError("boom")) == "boom"

    def test_error_code(self, api_error):
        assert error_code(api_error("PGRST202", "x")) == "PGRST202"
        assert error_code(RuntimeError("x")) is None

    @pytest.mark.parametrize("code", ["PGRST202", "42883"])
    def test_missing_function_codes(self, api_error, code):
        assert is_missing_function_error(api_error(code, "nope"))

    def test_missing_function_message(self):
        assert is_missing_function_error(RuntimeError("function public.exec_sql(text) does not exist"))

    @pytest.mark.parametrize("code", ["PGRST205", "42P01"])
    def test_missing_table_codes(self, api_error, code):
        assert is_missing_table_error(api_error(code, "nope"))
        assert not is_missing_function_error(api_error(code, "nope"))

    def test_permission(self, api_error):
        assert is_permission_error(api_error("42501", "denied"))
        assert is_permission_error(
            api_error("PGRST000", "new row violates row-level security policy")
        )
        assert not is_permission_error(api_error("23505", "duplicate key"))


class TestCountRows:
    def test_filters(self, fake_client, fake_query):
        query = fake_client.set_table("profiles", fake_query(count=7))

        assert count_rows(fake_client, "profiles", beta_access=True, deleted_at=None) == 7
        assert query.kwargs_for("select") == [{"count": "exact"}]
        assert query.called("eq") == [("beta_access", True)]
        assert query.called("is_") == [("deleted_at", "null")]

    def test_missing_count(self, fake_client, fake_query):
        fake_client.set_table("profiles", fake_query(count=None))
        assert count_rows(fake_client, "profiles") == 0

    def test_active_beta_users(self, fake_client, fake_query):
        query = fake_client.set_table("profiles", fake_query(count=3))

        assert count_active_beta_users(fake_client) == 3
        assert query.called("is_") == [("deleted_at", "null")]


class TestFeatureFlags:
    def test_row(self, fake_client, fake_query):
        fake_client.set_table("feature_flags", fake_query(data={"id": 1, "beta_cap": 200}))
        assert get_feature_flags(fake_client) == {"id": 1, "beta_cap": 200}

    def test_missing_row(self, fake_client, fake_query):
        fake_client.set_table("feature_flags", fake_query(data=None))
        assert get_feature_flags(fake_client) == {}

    def test_beta_cap_default(self):
        with patch.object(supabase_admin.config, "DEFAULT_BETA_CAP", 150):
            assert get_beta_cap({}) == 150
            assert get_beta_cap({"beta_cap": 300}) == 300


class TestFetchAllRows:
    def test_pages_until_empty(self, fake_client, fake_query):
        rows = [{"id": i} for i in range(5)]
        query = fake_client.set_table("equipment", fake_query(data=rows))

        assert fetch_all_rows(fake_client, "equipment", "id", page_size=2) == rows
        assert query.called("range") == [(0, 1), (2, 3), (4, 5), (5, 6)]
        assert query.called("order") == [("id",)] * 4

    def test_server_capped_page_does_not_stop_paging(self, fake_client, fake_query, fake_response):
        # max-rows of 2 on the server, 3 requested per page
        query = fake_client.set_table(
            "equipment",
            fake_query(
                responses=[
                    fake_response([{"id": 1}, {"id": 2}]),
                    fake_response([{"id": 3}, {"id": 4}]),
                    fake_response([]),
                ]
            ),
        )

        rows = fetch_all_rows(fake_client, "equipment", "id", page_size=3)

        assert rows == [{"id": 1}, {"id": 2}, {"id": 3}, {"id": 4}]
        assert query.called("range") == [(0, 2), (2, 4), (4, 6)]

    def test_empty_table(self, fake_client, fake_query):
        fake_client.set_table("equipment", fake_query(data=[]))

        assert fetch_all_rows(fake_client, "equipment") == []


class TestFunctionExists:
    def test_installed_function_runs_nothing(self, fake_client, fake_query, installed_function_error):
        fake_client.set_rpc(
            "approve_user_by_email_if_capacity",
            fake_query(responses=[installed_function_error("approve_user_by_email_if_capacity")]),
        )

        assert function_exists(fake_client, "approve_user_by_email_if_capacity")
        assert fake_client.rpc_calls == [("approve_user_by_email_if_capacity", {})]

    def test_missing_function(self, fake_client, fake_query, api_error):
        fake_client.set_rpc(
            "validate_invite_code",
            fake_query(
                responses=[
                    api_error(
                        "PGRST202",
                        "Could not find the function public.validate_invite_code without parameters in the schema cache",
                    )
                ]
            ),
        )

        assert not function_exists(fake_client, "validate_invite_code")

    def test_similar_name_in_hint_is_missing(self, fake_client, fake_query, installed_function_error):
        fake_client.set_rpc(
            "approve_user", fake_query(responses=[installed_function_error("approve_user_if_capacity")])
        )

        assert not function_exists(fake_client, "approve_user")

    def test_undefined_function_code(self, fake_client, fake_query, api_error):
        fake_client.set_rpc("f", fake_query(responses=[api_error("42883", "function f() does not exist")]))

        assert not function_exists(fake_client, "f")

    def test_other_error_means_installed(self, fake_client, fake_query, api_error):
        fake_client.set_rpc("f", fake_query(responses=[api_error("P0001", "bad input")]))

        assert function_exists(fake_client, "f")

    def test_network_errors_propagate(self, fake_client, fake_query):
        fake_client.set_rpc("f", fake_query(responses=[ConnectionError("refused")]))

        with pytest.raises(ConnectionError):
            function_exists(fake_client, "f")


class TestClientCache:
    def teardown_method(self):
        SupabaseAdmin.reset_clients()

    def test_service_client_cached(self):
        with patch.object(supabase_admin.config, "validate_for_supabase_operations"), patch.object(
            supabase_admin, "create_client"
        ) as create:
            first = SupabaseAdmin.get_service_client()
            second = SupabaseAdmin.get_service_client()

        assert first is second
        create.assert_called_once()

    def test_missing_credentials_raise(self):
        with patch.object(
            supabase_admin.config,
            "validate_for_supabase_operations",
            side_effect=ValueError("SUPABASE_SERVICE_KEY is required"),
        ):
            with pytest.raises(ValueError, match="SUPABASE_SERVICE_KEY"):
                SupabaseAdmin.get_service_client()
