"""
Shared test fixtures and configuration for the Teed.club ops test suite.

The Supabase client is replaced by ``FakeClient``: ``table()`` and ``rpc()``
hand back chainable ``FakeQuery`` objects that record every builder call and
return canned responses from ``execute()``. Tests configure responses per
table or function and then assert on the recorded calls.
"""

import logging
import os
from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv
from postgrest.exceptions import APIError

# Load test environment variables (if any)
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


class FakeResponse:
    def __init__(self, data=None, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """
    Chainable stand-in for a postgrest request builder.

    ``responses`` are returned by successive ``execute()`` calls; the last one
    repeats. An exception instance in the list is raised instead. A query
    built from ``data`` behaves like a table: ``range(start, end)`` returns
    that slice of the rows, so paging runs off the end onto an empty page.
    """

    def __init__(self, data=None, count=None, responses=None):
        self.paged = responses is None
        if responses is None:
            responses = [FakeResponse(data, count)]
        self.responses = list(responses)
        self.calls = []
        self.window = None

    @property
    def not_(self):
        self.calls.append(("not_", (), {}))
        return self

    def __getattr__(self, name):
        if name.startswith("__"):
            raise AttributeError(name)

        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            if name == "range":
                self.window = args
            return self

        return method

    def execute(self):
        self.calls.append(("execute", (), {}))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        window, self.window = self.window, None
        if isinstance(response, Exception):
            raise response
        if self.paged and window and isinstance(response.data, list):
            start, end = window
            return FakeResponse(response.data[start : end + 1], response.count)
        return response

    def called(self, name):
        """Argument tuples of every call to builder method ``name``."""
        return [args for method, args, _ in self.calls if method == name]

    def kwargs_for(self, name):
        return [kwargs for method, _, kwargs in self.calls if method == name]


class FakeClient:
    """Supabase client double with per-table and per-function queries."""

    def __init__(self):
        self.tables = {}
        self.functions = {}
        self.table_calls = []
        self.rpc_calls = []
        self.storage = MagicMock()

    def set_table(self, name, *queries):
        self.tables[name] = list(queries)
        return queries[0] if len(queries) == 1 else queries

    def set_rpc(self, name, query):
        self.functions[name] = query
        return query

    def table(self, name):
        self.table_calls.append(name)
        queue = self.tables.setdefault(name, [FakeQuery(data=[], count=0)])
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def rpc(self, name, params=None):
        self.rpc_calls.append((name, params))
        query = self.functions.setdefault(name, FakeQuery(data=None))
        query.calls.append(("rpc", (name, params), {}))
        return query


def make_api_error(code="PGRST000", message="Request failed", hint=None):
    return APIError({"message": message, "code": code, "details": None, "hint": hint})


@pytest.fixture
def fake_client():
    """Provide a fresh FakeClient."""
    return FakeClient()


@pytest.fixture
def fake_query():
    """Factory for FakeQuery objects."""
    return FakeQuery


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def api_error():
    """Factory for postgrest APIError instances with a given code."""
    return make_api_error


@pytest.fixture
def missing_function_error():
    return make_api_error("PGRST202", "Could not find the function public.exec_sql")


def signature_mismatch_error(function_name):
    """PGRST202 returned when a function exists but takes parameters."""
    return make_api_error(
        "PGRST202",
        f"Could not find the function public.{function_name} without parameters in the schema cache",
        hint=f"Perhaps you meant to call the function public.{function_name}(p_email)",
    )


@pytest.fixture
def installed_function_error():
    return signature_mismatch_error


@pytest.fixture
def test_logger():
    """Logger for code under test; output is visible through caplog."""
    logger = logging.getLogger("teed_ops_tests")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def sample_equipment_rows():
    """Equipment rows as returned by a select on the equipment table."""
    return [
        {
            "id": "eq-1",
            "brand": "TaylorMade",
            "model": "Qi10 Max",
            "category": "driver",
            "specs": {"loft": "10.5"},
            "image_url": "https://example.com/qi10.jpg",
            "added_by_user_id": "user-1",
        },
        {
            "id": "eq-2",
            "brand": "Titleist",
            "model": "Pro V1",
            "category": "balls",
            "specs": {},
            "image_url": None,
            "added_by_user_id": None,
        },
        {
            "id": "eq-3",
            "brand": "taylormade",
            "model": "QI10 MAX",
            "category": "driver",
            "specs": None,
            "image_url": "",
            "added_by_user_id": None,
        },
        {
            "id": "eq-4",
            "brand": "Scotty Cameron",
            "model": "Newport 2",
            "category": "putters",
            "specs": {"loft": "3", "length": "34"},
            "image_url": "https://example.com/newport.jpg",
            "added_by_user_id": "user-2",
        },
    ]
