"""
Unit tests for the playbook orchestrator.

subprocess.run and the connectivity checks are patched; no step scripts run.
"""

import os
import subprocess
import sys
from unittest.mock import Mock, patch

import pytest

from scripts import orchestrator
from scripts.orchestrator import PLAYBOOKS, PlaybookOrchestrator, build_command


@pytest.fixture
def runner(test_logger):
    return PlaybookOrchestrator(logger=test_logger)


def completed(returncode=0, stdout="", stderr=""):
    return Mock(returncode=returncode, stdout=stdout, stderr=stderr)


def test_build_command():
    assert build_command("scripts/x.py", ["--all"]) == [sys.executable, "scripts/x.py", "--all"]


class TestPlaybooks:
    def test_step_scripts_exist(self):
        for steps in PLAYBOOKS.values():
            for _, script_path, _ in steps:
                assert os.path.exists(os.path.join(orchestrator.PROJECT_ROOT, script_path))

    def test_setup_applies_every_policy_group(self):
        _, _, args = PLAYBOOKS["setup"][1]
        assert args[0] == "--apply"
        groups = args[2::2]
        assert set(groups) == set(orchestrator.POLICY_CATALOG)

    def test_maintenance_cleanup_confirmed(self):
        _, _, args = PLAYBOOKS["maintenance"][0]
        assert args == ["--execute", "--confirm"]


class TestRunPlaybook:
    def test_dry_run_runs_nothing(self, runner):
        with patch.object(orchestrator.subprocess, "run") as run, patch.object(
            runner, "_pre_flight_checks"
        ) as checks:
            assert runner.run_playbook("setup", dry_run=True)

        run.assert_not_called()
        checks.assert_not_called()

    def test_all_steps_run(self, runner):
        with patch.object(runner, "_pre_flight_checks", return_value=True), patch.object(
            orchestrator.subprocess, "run", return_value=completed()
        ) as run:
            assert runner.run_playbook("maintenance")

        assert run.call_count == len(PLAYBOOKS["maintenance"])
        assert run.call_args.kwargs["cwd"] == orchestrator.PROJECT_ROOT

    def test_stops_at_first_failure(self, runner):
        with patch.object(runner, "_pre_flight_checks", return_value=True), patch.object(
            orchestrator.subprocess,
            "run",
            side_effect=[completed(), completed(returncode=1, stderr="boom")],
        ) as run:
            assert not runner.run_playbook("setup")

        assert run.call_count == 2

    def test_timeout_fails_step(self, runner):
        with patch.object(runner, "_pre_flight_checks", return_value=True), patch.object(
            orchestrator.subprocess,
            "run",
            side_effect=subprocess.TimeoutExpired(cmd="x", timeout=1),
        ):
            assert not runner.run_playbook("maintenance")

    def test_failed_pre_flight_stops(self, runner):
        with patch.object(runner, "_pre_flight_checks", return_value=False), patch.object(
            orchestrator.subprocess, "run"
        ) as run:
            assert not runner.run_playbook("setup")

        run.assert_not_called()


class TestPreFlightChecks:
    def test_missing_configuration(self, runner):
        with patch.object(
            orchestrator, "get_service_client", side_effect=ValueError("SUPABASE_URL is required")
        ):
            assert not runner._pre_flight_checks(PLAYBOOKS["maintenance"])

    def test_missing_script(self, runner):
        assert not runner._pre_flight_checks([("Nope", "scripts/does_not_exist.py", [])])

    def test_api_only(self, runner, fake_client, tmp_path):
        with patch.object(orchestrator, "get_service_client", return_value=fake_client), patch.object(
            orchestrator.config, "has_direct_database", return_value=False
        ), patch.object(orchestrator.config, "ORCHESTRATOR_LOG_FILE", str(tmp_path / "logs" / "o.log")):
            assert runner._pre_flight_checks(PLAYBOOKS["maintenance"])

        assert fake_client.table_calls == ["profiles"]
        assert (tmp_path / "logs").is_dir()
