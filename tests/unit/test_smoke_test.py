"""
Unit tests for site_smoke_test.py module.
"""

from unittest.mock import Mock

import pytest
import requests

from scripts.smoke.site_smoke_test import (
    PAGE_CHECKS,
    PageCheck,
    find_selector,
    run_page_check,
    run_smoke_tests,
)

SHELL_HTML = """
<html>
  <head><title>Teed.club</title></head>
  <body><div id="root"></div></body>
</html>
"""


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


def respond(session, status_code=200, text=SHELL_HTML):
    response = Mock()
    response.status_code = status_code
    response.text = text
    session.get.return_value = response
    return response


class TestFindSelector:
    def test_first_match_returned(self):
        assert find_selector(SHELL_HTML, ("#app", "#root", "title")) == "#root"

    def test_attribute_selector(self):
        html = '<div data-testid="equipment-card">Qi10</div>'
        assert find_selector(html, ('[data-testid="equipment-card"]',)) == (
            '[data-testid="equipment-card"]'
        )

    def test_no_match(self):
        assert find_selector("<p>hello</p>", ("#root", "main")) is None


class TestRunPageCheck:
    def test_pass(self, session):
        respond(session)

        result = run_page_check(session, "https://teed.club", PageCheck("home", "/"), {})

        assert result.passed
        assert result.matched_selector == "#root"
        session.get.assert_called_once()
        assert session.get.call_args.args[0] == "https://teed.club/"

    def test_unexpected_status(self, session):
        respond(session, status_code=500)

        result = run_page_check(session, "https://teed.club", PageCheck("feed", "/feed"), {})

        assert not result.passed
        assert result.status_code == 500
        assert "got 500" in result.error

    def test_not_found_accepts_404(self, session):
        respond(session, status_code=404, text="<main>Page not found</main>")
        check = PageCheck("not_found", "/missing", expected_status=(200, 404))

        assert run_page_check(session, "https://teed.club/", check, {}).passed

    def test_missing_selector(self, session):
        respond(session, text="<html><body></body></html>")

        result = run_page_check(session, "https://teed.club", PageCheck("bags", "/bags"), {})

        assert not result.passed
        assert "found" in result.error

    def test_request_error(self, session):
        session.get.side_effect = requests.exceptions.ConnectionError("refused")

        result = run_page_check(session, "https://teed.club", PageCheck("home", "/"), {})

        assert not result.passed
        assert result.status_code is None
        assert "refused" in result.error

    def test_page_fetched_once(self, session):
        respond(session)
        cache = {}

        run_page_check(session, "https://teed.club", PageCheck("home", "/"), cache)
        run_page_check(session, "https://teed.club", PageCheck("title", "/", selectors=("title",)), cache)

        assert session.get.call_count == 1


class TestRunSmokeTests:
    def test_optional_failures_not_counted(self, session, test_logger):
        respond(session)

        results = run_smoke_tests("https://teed.club", session=session, logger=test_logger)

        assert len(results) == len(PAGE_CHECKS)
        assert not [r for r in results if r.is_failure]
        optional = [r for r in results if not r.check.required]
        assert optional and not any(r.passed for r in optional)

    def test_required_failure(self, session, test_logger):
        respond(session, status_code=503)

        results = run_smoke_tests(
            "https://teed.club", checks=[PageCheck("home", "/")], session=session, logger=test_logger
        )

        assert results[0].is_failure
