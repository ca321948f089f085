"""Tests for the run.py entry point."""

import os
from unittest.mock import MagicMock, patch

import pytest

import run


def _main(argv, env):
    with patch.dict(os.environ, env, clear=True), patch("sys.argv", ["run.py"] + argv):
        run.main()


def test_version_exits_zero(capsys):
    with pytest.raises(SystemExit) as exc_info:
        _main(["--version"], {})
    assert exc_info.value.code == 0
    assert "near-social-db-migrator" in capsys.readouterr().out


def test_missing_accounts_exit_one(capsys):
    with pytest.raises(SystemExit) as exc_info:
        _main(["--env", "/nonexistent/.env"], {})
    assert exc_info.value.code == 1
    assert "SOURCE_ACCOUNT_ID is required" in capsys.readouterr().out


def test_config_error_exits_one(capsys):
    with pytest.raises(SystemExit) as exc_info:
        _main(["--env", "/nonexistent/.env"], {"FETCH_PAGE_SIZE": "fifty"})
    assert exc_info.value.code == 1
    assert "Configuration Error" in capsys.readouterr().out


def _run_with_results(results, argv=()):
    env = {
        "SOURCE_ACCOUNT_ID": "db.social08.near",
        "DESTINATION_ACCOUNT_ID": "social.near",
        "OUTPUT_RETENTION_DAYS": "0",
    }
    orchestrator = MagicMock()
    orchestrator.output_manager.retention_days = 0
    orchestrator.run.return_value = results
    with patch("run.MigrationOrchestrator", return_value=orchestrator) as factory:
        _main(["--env", "/nonexistent/.env"] + list(argv), env)
    return factory, orchestrator


def test_success_returns_normally():
    factory, orchestrator = _run_with_results({"success": True}, ["--dry-run"])
    config = factory.call_args.args[0]
    assert config.dry_run is True
    orchestrator.print_summary.assert_called_once_with({"success": True})


def test_failure_exits_one():
    with pytest.raises(SystemExit) as exc_info:
        _run_with_results({"success": False, "error": "boom"})
    assert exc_info.value.code == 1
